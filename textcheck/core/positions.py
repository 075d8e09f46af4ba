"""
Mapping between character offsets and (row, column) positions.

Rows and columns are zero-based. A row ends at each line feed; the column
counts characters since the start of the row, so a carriage return in a
Windows line ending is the last character of its row.
"""

from bisect import bisect_right
from typing import List, NamedTuple, Tuple

LINE_BREAK = "\n"


class RangeError(ValueError):
    """Raised when an offset or position lies outside the text."""
    pass


class Position(NamedTuple):
    """Zero-based row/column point in a text."""
    row: int
    col: int


class TextPositions:
    """Offset <-> position lookups for one text.

    The line starts are computed once so repeated lookups for the matches of
    a single analysis run stay cheap.
    """

    def __init__(self, text: str):
        self.text = text
        self._line_starts: List[int] = [0]
        index = text.find(LINE_BREAK)
        while index != -1:
            self._line_starts.append(index + 1)
            index = text.find(LINE_BREAK, index + 1)

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def position(self, offset: int) -> Position:
        """Return the position of ``offset`` (``len(text)`` is allowed)."""
        if offset < 0 or offset > len(self.text):
            raise RangeError(
                f"Offset {offset} outside text of length {len(self.text)}"
            )
        row = bisect_right(self._line_starts, offset) - 1
        return Position(row, offset - self._line_starts[row])

    def span(self, start: int, end: int) -> Tuple[Position, Position]:
        """Return the positions bounding ``[start, end)``.

        Raises:
            RangeError: If ``start > end`` or either bound is outside the text
        """
        if start > end:
            raise RangeError(f"Span start {start} is after end {end}")
        return self.position(start), self.position(end)

    def offset(self, row: int, col: int) -> int:
        """Return the character offset of ``(row, col)``."""
        if row < 0 or row >= len(self._line_starts) or col < 0:
            raise RangeError(f"Position ({row}, {col}) outside text")
        line_start = self._line_starts[row]
        if row + 1 < len(self._line_starts):
            # The line feed itself is the last addressable column of a row.
            line_end = self._line_starts[row + 1] - 1
        else:
            line_end = len(self.text)
        if line_start + col > line_end:
            raise RangeError(f"Position ({row}, {col}) outside text")
        return line_start + col

    def contains(self, row: int, col: int) -> bool:
        try:
            self.offset(row, col)
        except RangeError:
            return False
        return True


def span_positions(text: str, start: int, end: int) -> Tuple[Position, Position]:
    """Positions of ``[start, end)`` in ``text``."""
    return TextPositions(text).span(start, end)
