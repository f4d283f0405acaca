"""Literal and comment stripping.

Structural scans (header regexes, brace counting, parameter splitting) run on
a *stripped* copy of each file: comments and the contents of string/char
literals are replaced by spaces so braces, quotes and keywords embedded in
them can never be mistaken for code.

The stripped text has exactly the same length as the input and keeps every
newline, so offsets and line numbers found in it are valid in the original.
String delimiters are kept, only their contents are blanked:

    label = "a { b"   # note     ->    label = "     "

A literal or block comment left open at EOF blanks the rest of the file. The
stripper never raises.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

# Characters after which a "/" starts a regex literal rather than a division.
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = ("return", "typeof", "case", "do", "else", "in", "of", "void", "yield")


@dataclass(frozen=True)
class StripRules:
    """Lexical vocabulary of one ecosystem."""

    line_comments: tuple[str, ...] = ("//",)
    block_comments: tuple[tuple[str, str], ...] = (("/*", "*/"),)
    nested_block_comments: bool = False
    # Escape-aware quotes; a single-quoted form also covers char literals.
    quotes: tuple[str, ...] = ('"', "'")
    # Multi-line quotes, longest first.
    triple_quotes: tuple[str, ...] = ()
    triple_quote_escapes: bool = True
    # Backtick template literals (multi-line, ${...} interpolation).
    template_quote: str = ""
    # "${" interpolation inside ordinary double-quoted strings (Kotlin).
    string_interpolation: bool = False
    regex_literals: bool = False
    # Plain quoted strings end at an unescaped newline.
    single_line_strings: bool = True


C_STYLE_RULES = StripRules()
JAVA_RULES = StripRules(triple_quotes=('"""',))
KOTLIN_RULES = StripRules(
    nested_block_comments=True,
    triple_quotes=('"""',),
    triple_quote_escapes=False,
    string_interpolation=True,
)
TYPESCRIPT_RULES = StripRules(template_quote="`", regex_literals=True)
PYTHON_RULES = StripRules(
    line_comments=("#",),
    block_comments=(),
    triple_quotes=('"""', "'''"),
)


@dataclass(frozen=True)
class Segment:
    """A lexical region of the input.

    ``kind`` is "code", "comment" or "literal". For literals,
    ``content_start``/``content_end`` delimit the part between the quotes.
    """

    kind: str
    start: int
    end: int
    content_start: int = 0
    content_end: int = 0


class LiteralLexer:
    """Splits text into code, comment and literal segments."""

    def __init__(self, rules: StripRules):
        self.rules = rules
        self._triples = tuple(sorted(rules.triple_quotes, key=len, reverse=True))

    def segments(self, text: str, start: int = 0) -> Iterator[Segment]:
        """Yield consecutive segments covering ``text[start:]``."""
        n = len(text)
        i = start
        code_start = start
        while i < n:
            segment = self._match(text, i)
            if segment is None:
                i += 1
                continue
            if code_start < i:
                yield Segment("code", code_start, i)
            yield segment
            i = segment.end
            code_start = i
        if code_start < n:
            yield Segment("code", code_start, n)

    # ── Openers ────────────────────────────────────────────────

    def _match(self, text: str, i: int) -> Segment | None:
        rules = self.rules
        ch = text[i]

        for triple in self._triples:
            if text.startswith(triple, i):
                return self._scan_quoted(
                    text, i, triple, escapes=rules.triple_quote_escapes, multiline=True,
                    interpolation=rules.string_interpolation,
                )

        for opener, closer in rules.block_comments:
            if text.startswith(opener, i):
                return self._scan_block_comment(text, i, opener, closer)

        for marker in rules.line_comments:
            if text.startswith(marker, i):
                end = text.find("\n", i)
                return Segment("comment", i, len(text) if end == -1 else end)

        if ch in rules.quotes:
            return self._scan_quoted(
                text, i, ch, escapes=True, multiline=not rules.single_line_strings,
                interpolation=rules.string_interpolation and ch == '"',
            )

        if rules.template_quote and ch == rules.template_quote:
            return self._scan_quoted(text, i, ch, escapes=True, multiline=True, interpolation=True)

        if rules.regex_literals and ch == "/" and self._regex_allowed(text, i):
            return self._scan_regex(text, i)

        return None

    # ── Scanners ───────────────────────────────────────────────

    def _scan_quoted(
        self, text: str, i: int, delim: str, escapes: bool, multiline: bool, interpolation: bool
    ) -> Segment:
        n = len(text)
        j = i + len(delim)
        content_start = j
        while j < n:
            ch = text[j]
            if escapes and ch == "\\":
                j += 2
                continue
            if text.startswith(delim, j):
                return Segment("literal", i, j + len(delim), content_start, j)
            if ch == "\n" and not multiline:
                # Unterminated single-line string: stop at the line end.
                return Segment("literal", i, j, content_start, j)
            if interpolation and text.startswith("${", j):
                j = self._scan_interpolation(text, j + 2)
                continue
            j += 1
        return Segment("literal", i, n, content_start, n)

    def _scan_interpolation(self, text: str, j: int) -> int:
        """Skip a ``${ ... }`` expression, returning the index after ``}``."""
        n = len(text)
        depth = 0
        while j < n:
            nested = self._match(text, j)
            if nested is not None:
                j = nested.end
                continue
            ch = text[j]
            if ch == "{":
                depth += 1
            elif ch == "}":
                if depth == 0:
                    return j + 1
                depth -= 1
            j += 1
        return n

    def _scan_block_comment(self, text: str, i: int, opener: str, closer: str) -> Segment:
        n = len(text)
        j = i + len(opener)
        depth = 1
        while j < n:
            if self.rules.nested_block_comments and text.startswith(opener, j):
                depth += 1
                j += len(opener)
                continue
            if text.startswith(closer, j):
                depth -= 1
                j += len(closer)
                if depth == 0:
                    return Segment("comment", i, j)
                continue
            j += 1
        return Segment("comment", i, n)

    def _regex_allowed(self, text: str, i: int) -> bool:
        if i + 1 < len(text) and text[i + 1] in "/*":
            return False
        k = i - 1
        while k >= 0 and text[k] in " \t":
            k -= 1
        if k < 0 or text[k] == "\n":
            return True
        if text[k] in _REGEX_PRECEDERS:
            return True
        word_end = k + 1
        while k >= 0 and (text[k].isalnum() or text[k] == "_"):
            k -= 1
        return text[k + 1 : word_end] in _REGEX_KEYWORDS

    def _scan_regex(self, text: str, i: int) -> Segment:
        n = len(text)
        j = i + 1
        in_class = False
        while j < n:
            ch = text[j]
            if ch == "\\":
                j += 2
                continue
            if ch == "\n":
                # Not a regex after all; treat the slash as an operator.
                return Segment("code", i, i + 1)
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                return Segment("literal", i, j + 1, i + 1, j)
            j += 1
        return Segment("code", i, i + 1)


def _blank(chars: list[str], start: int, end: int) -> None:
    for k in range(start, end):
        if chars[k] not in "\r\n":
            chars[k] = " "


def strip_literals(text: str, rules: StripRules) -> str:
    """Blank comments and literal contents, preserving length and newlines."""
    chars = list(text)
    for segment in LiteralLexer(rules).segments(text):
        if segment.kind == "comment":
            _blank(chars, segment.start, segment.end)
        elif segment.kind == "literal":
            _blank(chars, segment.content_start, segment.content_end)
    return "".join(chars)


def strip_comments(text: str, rules: StripRules) -> str:
    """Blank comments only, keeping literals intact.

    Used as the source of type and default-value text, which must read as
    written but never include commentary.
    """
    chars = list(text)
    for segment in LiteralLexer(rules).segments(text):
        if segment.kind == "comment":
            _blank(chars, segment.start, segment.end)
    return "".join(chars)
