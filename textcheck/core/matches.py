"""
Match value produced by an analysis engine for one detected issue.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from .positions import TextPositions

RULE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:\-]+$")
DEFAULT_CONTEXT_SIZE = 40


@dataclass(frozen=True)
class Match:
    """One issue found in checked text.

    Attributes:
        from_row: Zero-based row where the span starts
        from_col: Zero-based column where the span starts
        to_row: Zero-based row where the span ends
        to_col: Zero-based column where the span ends (exclusive)
        rule_id: Identifier of the rule that fired
        message: Human readable description of the issue
        replacements: Suggested fixes, best first
        context: Excerpt of the text around the span
        context_offset: Index into ``context`` where the span starts
        error_length: Length of the span inside ``context``
    """
    from_row: int
    from_col: int
    to_row: int
    to_col: int
    rule_id: str
    message: str
    replacements: Tuple[str, ...] = field(default_factory=tuple)
    context: str = ""
    context_offset: int = 0
    error_length: int = 0

    def __post_init__(self):
        # Accept any iterable of suggestions but store an immutable tuple.
        object.__setattr__(self, "replacements", tuple(self.replacements))

        for name in ("from_row", "from_col", "to_row", "to_col",
                     "context_offset", "error_length"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer")
        if (self.from_row, self.from_col) > (self.to_row, self.to_col):
            raise ValueError("Match start lies after match end")
        if not self.rule_id or not RULE_ID_PATTERN.match(self.rule_id):
            raise ValueError(f"Invalid rule id: {self.rule_id!r}")
        if not self.context_offset < len(self.context):
            raise ValueError("context_offset must point inside context")
        if self.context_offset + self.error_length > len(self.context):
            raise ValueError("error_length runs past the end of context")
        for replacement in self.replacements:
            if not isinstance(replacement, str) or not replacement:
                raise ValueError("Replacements must be non-empty strings")

    @classmethod
    def from_span(
        cls,
        text: str,
        start: int,
        end: int,
        rule_id: str,
        message: str,
        replacements: Iterable[str] = (),
        context_size: int = DEFAULT_CONTEXT_SIZE,
        positions: Optional[TextPositions] = None,
    ) -> "Match":
        """Build a match for ``text[start:end]``.

        Positions come from the position model; the context is cut
        ``context_size`` characters either side of the span with line
        breaks shown as spaces.
        """
        positions = positions or TextPositions(text)
        begin, finish = positions.span(start, end)

        context_start = max(0, start - context_size)
        context_end = min(len(text), end + context_size)
        context = text[context_start:context_end]
        context = context.replace("\r", " ").replace("\n", " ")
        if start - context_start == len(context):
            # Empty span at the end of the text.
            context += " "

        return cls(
            from_row=begin.row,
            from_col=begin.col,
            to_row=finish.row,
            to_col=finish.col,
            rule_id=rule_id,
            message=message,
            replacements=tuple(replacements),
            context=context,
            context_offset=start - context_start,
            error_length=end - start,
        )
