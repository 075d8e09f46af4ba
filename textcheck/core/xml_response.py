"""
XML rendering of analysis results.

The attribute names and their order are fixed by existing clients:

    <error fromy="0" fromx="0" toy="0" tox="5" ruleId="..." msg="..."
           replacements="A#B" context="..." contextoffset="0" errorlength="4"/>
"""

import re
from typing import Iterable, List

from .matches import Match

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
ROOT_ELEMENT = "matches"
REPLACEMENT_DELIMITER = "#"
REPLACEMENT_ESCAPE = "\\"

_ATTRIBUTE_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
    "\t": "&#9;",
    "\n": "&#10;",
    "\r": "&#13;",
}
_ATTRIBUTE_SPECIALS = re.compile("[&<>\"'\t\n\r]")
# Anything XML 1.0 cannot carry, even as a character reference.
_INVALID_XML_CHARS = re.compile(
    "[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]"
)


def escape_attribute(value: str) -> str:
    """Escape ``value`` for use inside a double-quoted XML attribute."""
    value = _INVALID_XML_CHARS.sub("\ufffd", value)
    return _ATTRIBUTE_SPECIALS.sub(lambda m: _ATTRIBUTE_ENTITIES[m.group()], value)


def join_replacements(replacements: Iterable[str]) -> str:
    """Join suggestions with ``#``, escaping the delimiter and escape char."""
    return REPLACEMENT_DELIMITER.join(
        r.replace(REPLACEMENT_ESCAPE, REPLACEMENT_ESCAPE * 2)
         .replace(REPLACEMENT_DELIMITER, REPLACEMENT_ESCAPE + REPLACEMENT_DELIMITER)
        for r in replacements
    )


def split_replacements(value: str) -> List[str]:
    """Inverse of :func:`join_replacements`."""
    if not value:
        return []
    parts: List[str] = []
    current: List[str] = []
    chars = iter(value)
    for char in chars:
        if char == REPLACEMENT_ESCAPE:
            current.append(next(chars, REPLACEMENT_ESCAPE))
        elif char == REPLACEMENT_DELIMITER:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def serialize_match(match: Match) -> str:
    """Render one match as a self-closing ``error`` element."""
    attributes = (
        ("fromy", str(match.from_row)),
        ("fromx", str(match.from_col)),
        ("toy", str(match.to_row)),
        ("tox", str(match.to_col)),
        ("ruleId", match.rule_id),
        ("msg", match.message),
        ("replacements", join_replacements(match.replacements)),
        ("context", match.context),
        ("contextoffset", str(match.context_offset)),
        ("errorlength", str(match.error_length)),
    )
    rendered = " ".join(f'{name}="{escape_attribute(value)}"' for name, value in attributes)
    return f"<error {rendered}/>"


def build_response(matches: Iterable[Match]) -> bytes:
    """Build the complete UTF-8 document for ``matches``, keeping their order.

    Every element is rendered before the document is joined, so a failure
    part way through never yields a truncated document.
    """
    lines = [XML_DECLARATION, f"<{ROOT_ELEMENT}>"]
    lines.extend(serialize_match(match) for match in matches)
    lines.append(f"</{ROOT_ELEMENT}>")
    return ("\n".join(lines) + "\n").encode("utf-8")
