"""
Tests for the Match value and its invariants
"""
import dataclasses

import pytest

from textcheck.core.matches import Match
from textcheck.core.positions import RangeError


def test_replacements_become_a_tuple():
    match = Match(0, 0, 0, 1, "RULE", "msg", ["a", "b"], "abc", 0, 1)
    assert match.replacements == ("a", "b")


def test_match_is_immutable():
    match = Match(0, 0, 0, 1, "RULE", "msg", (), "abc", 0, 1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        match.message = "changed"


@pytest.mark.parametrize("kwargs", [
    dict(from_row=1, to_row=0),
    dict(from_col=3, to_col=2),
    dict(rule_id=""),
    dict(rule_id="BAD ID"),
    dict(rule_id='QUOTE"ID'),
    dict(context_offset=3),
    dict(error_length=3, context_offset=1),
    dict(replacements=("",)),
    dict(from_col=-1),
])
def test_invariants(kwargs):
    values = dict(from_row=0, from_col=0, to_row=0, to_col=2, rule_id="RULE",
                  message="msg", replacements=(), context="abc",
                  context_offset=0, error_length=2)
    values.update(kwargs)
    with pytest.raises(ValueError):
        Match(**values)


def test_from_span_single_line():
    match = Match.from_span("this is a test", 0, 4, "UPPERCASE_SENTENCE_START",
                            "msg", ["This"])
    assert (match.from_row, match.from_col, match.to_row, match.to_col) == (0, 0, 0, 4)
    assert match.context == "this is a test"
    assert match.context_offset == 0
    assert match.error_length == 4


def test_from_span_multiline_context():
    text = "first line\nsecond line with error"
    start = text.index("error")
    match = Match.from_span(text, start, start + 5, "RULE", "msg", context_size=8)
    assert (match.from_row, match.from_col) == (1, 17)
    assert (match.to_row, match.to_col) == (1, 22)
    assert match.context == "ne with error"
    assert match.context[match.context_offset:match.context_offset + match.error_length] == "error"


def test_from_span_line_breaks_in_context_become_spaces():
    match = Match.from_span("ab\ncd", 3, 4, "RULE", "msg")
    assert match.context == "ab cd"
    assert match.context_offset == 3


def test_from_span_rejects_bad_offsets():
    with pytest.raises(RangeError):
        Match.from_span("abc", 2, 10, "RULE", "msg")


def test_from_span_empty_span_at_end_of_text():
    match = Match.from_span("Hello", 5, 5, "MISSING_PERIOD", "msg", ["."])
    assert (match.from_row, match.from_col, match.to_row, match.to_col) == (0, 5, 0, 5)
    assert match.context == "Hello "
    assert match.context_offset == 5
    assert match.error_length == 0


def test_from_span_empty_text():
    match = Match.from_span("", 0, 0, "EMPTY_TEXT", "msg")
    assert (match.from_row, match.from_col) == (0, 0)
    assert match.context == " "
    assert match.context_offset == 0
