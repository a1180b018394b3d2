"""
Source positions and text normalization for Nanako programs.

Locations are derived from character offsets into the (normalized) program
text, so every AST node can report where it came from without the parser
keeping a separate token stream.
"""

import bisect
from dataclasses import dataclass, field
from typing import List, Optional


# Full-width quotation marks that are folded to an ASCII double quote
QUOTE_CHARACTERS = "“”＂"

# Offset between a full-width ASCII variant and its half-width form
FULLWIDTH_OFFSET = 0xFEE0


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a range in source code.

    ``text`` is the complete program text the offsets refer to. It is kept
    for diagnostics and does not take part in equality.
    """
    start: SourceLocation
    end: SourceLocation
    text: str = field(default="", repr=False, compare=False)

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"

    @property
    def source(self) -> str:
        """The exact source text covered by this span."""
        return self.text[self.start.offset:self.end.offset]

    @property
    def line_text(self) -> str:
        """The full line on which the span starts."""
        return line_at(self.text, self.start.offset)

    @property
    def detail(self) -> "ErrorDetail":
        return error_details(self.text, self.start.offset)


@dataclass(frozen=True)
class ErrorDetail:
    """Location of an error, ready for display to a learner."""
    text: str = field(repr=False)
    line: int
    column: int
    line_text: str
    offset: int


def line_at(text: str, offset: int) -> str:
    """Return the line of ``text`` containing ``offset`` (without newline)."""
    offset = max(0, min(offset, len(text)))
    start = text.rfind("\n", 0, offset) + 1
    end = text.find("\n", offset)
    if end == -1:
        end = len(text)
    return text[start:end]


def error_details(text: str, offset: int) -> ErrorDetail:
    """Compute 1-based line/column and the offending line for an offset."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return ErrorDetail(
        text=text,
        line=line,
        column=column,
        line_text=line_at(text, offset),
        offset=offset,
    )


class LineIndex:
    """Maps offsets to SourceLocations in O(log n) per lookup."""

    def __init__(self, text: str, filename: Optional[str] = None):
        self.text = text
        self.filename = filename
        self._line_starts: List[int] = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def location(self, offset: int) -> SourceLocation:
        line = bisect.bisect_right(self._line_starts, offset)
        column = offset - self._line_starts[line - 1] + 1
        return SourceLocation(line, column, offset, self.filename)

    def span(self, start: int, end: int) -> SourceSpan:
        return SourceSpan(self.location(start), self.location(end), self.text)


def normalize(text: str) -> str:
    """Fold full-width digits, Latin letters and quote marks to ASCII.

    Other characters (including full-width punctuation such as ``？`` and
    the ideographic space) are left alone; the grammar accepts them as-is.
    """
    chars = []
    for ch in text:
        if ch in QUOTE_CHARACTERS:
            chars.append('"')
        elif "０" <= ch <= "９" or "Ａ" <= ch <= "Ｚ" or "ａ" <= ch <= "ｚ":
            chars.append(chr(ord(ch) - FULLWIDTH_OFFSET))
        else:
            chars.append(ch)
    return "".join(chars)
