"""
Debug Record Formatting
=======================

Expands the `.dbg` template for each label defined in pass 2, producing
one line of the debug file per label.

Template Escapes
----------------
| Escape       | Expansion                                          |
|--------------|----------------------------------------------------|
| {L}          | label name                                         |
| {C}          | aggregated comment text                            |
| {V}          | label value, uppercase hex without leading zeros   |
| {V+hex}      | label value plus a signed 32-bit hex offset        |
| {V-hex}      | label value minus a hex offset                     |

Any other `{...}` sequence is copied unchanged. A `{V...}` escape whose
offset is not a hex number is rejected when the template is set.

Example
-------
>>> template = DebugTemplate.parse("P:{V-8000}:{L}:{C}")
>>> template.expand("foo", 0x8002, "description of foo")
'P:2:foo:description of foo'
"""

from dataclasses import dataclass
from typing import Optional
import re

from asm65.errors import DirectiveError, SourceLocation


_OFFSET_RE = re.compile(r"^[+-]?[0-9A-Fa-f]+$")
_LINE_BREAK_RE = re.compile(r"\s*[\r\n]+\s*")

INT32_MIN = -0x80000000
INT32_MAX = 0x7FFFFFFF


def format_hex(value: int) -> str:
    """
    Format a value as uppercase hex without leading zeros.

    Negative values are shown as their 32-bit two's complement.
    """
    if value < 0:
        value &= 0xFFFFFFFF
    return f"{value:X}"


def collapse_lines(text: str) -> str:
    """Replace embedded line breaks (and the blanks around them) with one space."""
    return _LINE_BREAK_RE.sub(" ", text)


@dataclass(frozen=True)
class DebugTemplate:
    """
    A parsed `.dbg` template.

    Attributes:
        text: The template as written
        segments: Literal strings and escapes, in order. An escape is a
                  tuple ("L",), ("C",) or ("V", offset).
    """
    text: str
    segments: tuple

    @classmethod
    def parse(cls, text: str, location: Optional[SourceLocation] = None) -> "DebugTemplate":
        """
        Parse a template string.

        Raises:
            DirectiveError: If a `{V...}` escape carries a malformed offset
        """
        segments: list = []
        literal = []
        pos = 0

        while pos < len(text):
            start = text.find("{", pos)
            end = text.find("}", start + 1) if start != -1 else -1
            if start == -1 or end == -1:
                literal.append(text[pos:])
                break

            literal.append(text[pos:start])
            escape = cls._parse_escape(text[start + 1:end], location)
            if escape is None:
                literal.append(text[start:end + 1])
            else:
                if "".join(literal):
                    segments.append("".join(literal))
                literal = []
                segments.append(escape)
            pos = end + 1

        if "".join(literal):
            segments.append("".join(literal))

        return cls(text, tuple(segments))

    @staticmethod
    def _parse_escape(body: str, location: Optional[SourceLocation]) -> Optional[tuple]:
        if body in ("L", "C", "V"):
            return (body, 0) if body == "V" else (body,)
        if not body.startswith("V"):
            return None

        offset_text = body[1:]
        if not _OFFSET_RE.match(offset_text):
            raise DirectiveError(
                f"bad value offset '{offset_text}' in .dbg template",
                location,
                hint="use {V+hex} or {V-hex}, e.g. {V-8000}",
            )
        offset = int(offset_text, 16)
        if not INT32_MIN <= offset <= INT32_MAX:
            raise DirectiveError(
                f"value offset '{offset_text}' exceeds 32 bits",
                location,
            )
        return ("V", offset)

    def expand(self, name: str, value: int, comment: str = "") -> str:
        """Expand the template for one label."""
        parts = []
        for segment in self.segments:
            if isinstance(segment, str):
                parts.append(segment)
            elif segment[0] == "L":
                parts.append(name)
            elif segment[0] == "C":
                parts.append(collapse_lines(comment))
            else:
                parts.append(format_hex(value + segment[1]))
        return "".join(parts)


class CommentAggregator:
    """
    Gathers the comment text attached to a label.

    Consecutive comment-only lines are collected; any other line (blank,
    code, or skipped by a conditional) discards them. When a label line is
    reached, the collected text plus the label line's own comment forms
    the label's description.
    """

    def __init__(self):
        self._pending: list[str] = []

    def add(self, comment: str) -> None:
        """Record a comment-only line."""
        self._pending.append(comment)

    def clear(self) -> None:
        self._pending.clear()

    def take(self, inline_comment: Optional[str] = None) -> str:
        """Return the aggregated text for a label line and reset."""
        parts = self._pending + ([inline_comment] if inline_comment else [])
        self._pending = []
        return " ".join(part for part in parts if part)
