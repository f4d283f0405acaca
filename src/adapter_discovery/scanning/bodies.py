"""Class body boundary extraction.

Two variants:
    - brace-delimited: depth counting from the header's opening brace, with
      literal/comment awareness from the shared lexer
    - indentation-delimited: every following line indented deeper than the
      header, up to the first non-blank line at or below the header's level
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .stripper import LiteralLexer, StripRules


@dataclass(frozen=True)
class BodySpan:
    """Offsets of a brace-delimited body.

    ``start`` is just after the opening brace, ``end`` is the index of the
    matching closing brace (or ``len(text)`` when the body never closes).
    """

    start: int
    end: int
    closed: bool = True

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end


def find_brace_body(text: str, open_brace: int, rules: StripRules) -> BodySpan:
    """Return the span of the block opened by ``text[open_brace] == "{"``."""
    depth = 1
    start = open_brace + 1
    for segment in LiteralLexer(rules).segments(text, start):
        if segment.kind != "code":
            continue
        for k in range(segment.start, segment.end):
            ch = text[k]
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return BodySpan(start, k)
    return BodySpan(start, len(text), closed=False)


def indent_width(line: str) -> int:
    """Leading whitespace character count (tabs count as one)."""
    return len(line) - len(line.lstrip(" \t"))


def continuation_lines(text: str, rules: StripRules) -> frozenset[int]:
    """Indices of lines that begin inside a literal or an open bracket.

    Such lines carry no indentation: a column-0 line of a triple-quoted
    string does not close the body around it.
    """
    continued: set[int] = set()
    line = 0
    depth = 0
    for segment in LiteralLexer(rules).segments(text):
        for k in range(segment.start, segment.end):
            ch = text[k]
            if ch == "\n":
                line += 1
                if depth > 0 or (segment.kind == "literal" and k + 1 < segment.end):
                    continued.add(line)
            elif segment.kind == "code":
                if ch in "([{":
                    depth += 1
                elif ch in ")]}":
                    depth = max(0, depth - 1)
    return frozenset(continued)


def find_indented_body(
    lines: list[str],
    header_indent: int,
    first_line: int,
    continued: frozenset[int] = frozenset(),
) -> int:
    """Return the exclusive end line of an indentation-delimited body.

    Body lines start at ``first_line`` and continue while each line is blank,
    listed in ``continued``, or indented strictly deeper than
    ``header_indent``. Blank lines are part of the body.
    """
    end = first_line
    for index in range(first_line, len(lines)):
        line = lines[index]
        if index not in continued and line.strip() and indent_width(line) <= header_indent:
            break
        end = index + 1
    return end


def blank_nested_blocks(text: str) -> str:
    """Blank everything inside nested ``{...}`` blocks, keeping the braces.

    Expects stripped text. Newlines survive so line structure is preserved;
    the result reads as the top level of a body only.
    """
    chars = list(text)
    depth = 0
    for k, ch in enumerate(chars):
        if ch == "{":
            depth += 1
            if depth > 1:
                chars[k] = " "
        elif ch == "}":
            if depth > 1:
                chars[k] = " "
            depth = max(0, depth - 1)
        elif depth > 0 and ch not in "\r\n":
            chars[k] = " "
    return "".join(chars)


def blank_spans(text: str, spans: Iterable[tuple[int, int]]) -> str:
    """Replace the given ``(start, end)`` ranges with spaces, keeping newlines."""
    chars = list(text)
    for start, end in spans:
        for k in range(max(0, start), min(end, len(chars))):
            if chars[k] not in "\r\n":
                chars[k] = " "
    return "".join(chars)
