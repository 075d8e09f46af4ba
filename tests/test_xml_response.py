"""
Tests for the match serializer and response document builder
"""
import xml.etree.ElementTree as ET

import pytest

from textcheck.core.matches import Match
from textcheck.core.xml_response import (
    build_response,
    join_replacements,
    serialize_match,
    split_replacements,
)

ATTRIBUTE_ORDER = [
    "fromy", "fromx", "toy", "tox", "ruleId", "msg",
    "replacements", "context", "contextoffset", "errorlength",
]


def make_match(**overrides):
    values = dict(
        from_row=0, from_col=0, to_row=0, to_col=5,
        rule_id="UPPERCASE_SENTENCE_START",
        message="This sentence does not start with an uppercase letter",
        replacements=("This",),
        context="this is a test.",
        context_offset=0,
        error_length=4,
    )
    values.update(overrides)
    return Match(**values)


def test_documented_example():
    fragment = serialize_match(make_match())
    assert fragment == (
        '<error fromy="0" fromx="0" toy="0" tox="5" ruleId="UPPERCASE_SENTENCE_START" '
        'msg="This sentence does not start with an uppercase letter" replacements="This" '
        'context="this is a test." contextoffset="0" errorlength="4"/>'
    )


def test_attribute_order_is_fixed():
    fragment = serialize_match(make_match(replacements=("a", "b")))
    positions = [fragment.index(f' {name}="') for name in ATTRIBUTE_ORDER]
    assert positions == sorted(positions)


def test_empty_result_document():
    assert build_response([]) == (
        b'<?xml version="1.0" encoding="UTF-8"?>\n<matches>\n</matches>\n'
    )
    root = ET.fromstring(build_response([]))
    assert root.tag == "matches"
    assert len(root) == 0


def test_document_keeps_engine_order():
    matches = [
        make_match(from_col=9, to_col=10, rule_id="SECOND"),
        make_match(rule_id="FIRST"),
        make_match(from_col=3, to_col=4, rule_id="THIRD"),
    ]
    body = build_response(matches)
    assert body.startswith(b'<?xml version="1.0" encoding="UTF-8"?>\n')
    root = ET.fromstring(body)
    assert [e.get("ruleId") for e in root.findall("error")] == ["SECOND", "FIRST", "THIRD"]


@pytest.mark.parametrize("message", [
    'a < b & "c"',
    "it's <b>bold</b> & 'quoted'",
    "tab\there\nnew line\r\nwindows",
    "umlauts äöü and emoji \U0001F600",
])
def test_free_text_survives_parsing(message):
    match = make_match(message=message, context=message + " ctx", error_length=1)
    root = ET.fromstring(build_response([match]))
    error = root.find("error")
    assert error.get("msg") == message
    assert error.get("context") == message + " ctx"


def test_characters_xml_cannot_carry_are_replaced():
    match = make_match(message="bell\x07 and nul\x00")
    error = ET.fromstring(build_response([match])).find("error")
    assert error.get("msg") == "bell\ufffd and nul\ufffd"


def test_replacements_round_trip():
    suggestions = ["C#", "a\\b", "plain", "#", "x\\#y"]
    root = ET.fromstring(build_response([make_match(replacements=suggestions)]))
    assert split_replacements(root.find("error").get("replacements")) == suggestions


def test_replacement_order_preserved():
    assert join_replacements(["best", "second", "third"]) == "best#second#third"
    assert split_replacements("best#second#third") == ["best", "second", "third"]


def test_no_replacements():
    assert 'replacements=""' in serialize_match(make_match(replacements=()))
    assert split_replacements("") == []


def test_one_error_element_per_match():
    matches = [make_match(from_col=i, to_col=i + 1) for i in range(10)]
    root = ET.fromstring(build_response(matches))
    assert len(root.findall("error")) == 10
    assert [int(e.get("fromx")) for e in root] == list(range(10))
