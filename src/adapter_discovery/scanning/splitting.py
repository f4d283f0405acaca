"""Depth-aware splitting helpers shared by the text front ends.

All helpers expect *stripped* text (see stripper.py), so brackets and
separators inside literals or comments are already gone.
"""

from __future__ import annotations

import re

_OPENERS = "([{<"
_CLOSERS = ")]}>"
_PAIRS = {"(": ")", "[": "]", "{": "}", "<": ">"}

_WS_RE = re.compile(r"\s+")


def collapse_ws(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WS_RE.sub(" ", text).strip()


def _is_arrow(text: str, k: int) -> bool:
    return k > 0 and text[k - 1] in "=-"


def split_top_level_spans(
    text: str, separator: str = ",", offset: int = 0
) -> list[tuple[int, int]]:
    """Split ``text`` on ``separator`` at zero bracket depth.

    Tracks (), [], {} and <> depth so that commas inside generic arguments or
    nested calls never split. A ``>`` belonging to ``=>`` or ``->`` is not a
    closing bracket, and depth never goes below zero.

    Returns (start, end) spans, shifted by ``offset``, with surrounding
    whitespace trimmed and empty parts dropped.
    """
    spans: list[tuple[int, int]] = []
    depth = 0
    start = 0
    for k, ch in enumerate(text):
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            if ch == ">" and _is_arrow(text, k):
                continue
            depth = max(0, depth - 1)
        elif ch == separator and depth == 0:
            spans.append((start, k))
            start = k + 1
    spans.append((start, len(text)))

    trimmed: list[tuple[int, int]] = []
    for s, e in spans:
        while s < e and text[s].isspace():
            s += 1
        while e > s and text[e - 1].isspace():
            e -= 1
        if s < e:
            trimmed.append((s + offset, e + offset))
    return trimmed


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """String form of :func:`split_top_level_spans`."""
    return [text[s:e] for s, e in split_top_level_spans(text, separator)]


def read_balanced(text: str, pos: int) -> int:
    """Return the index just after the bracket matching ``text[pos]``.

    Only the opening bracket's own kind is counted. Returns ``len(text)`` when
    the bracket never closes.
    """
    opener = text[pos]
    closer = _PAIRS[opener]
    depth = 0
    for k in range(pos, len(text)):
        ch = text[k]
        if ch == opener:
            depth += 1
        elif ch == closer:
            if closer == ">" and _is_arrow(text, k):
                continue
            depth -= 1
            if depth == 0:
                return k + 1
    return len(text)


def skip_ws(text: str, pos: int) -> int:
    """Index of the first non-whitespace character at or after ``pos``."""
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _ws_back(text: str, k: int, lo: int) -> int:
    while k > lo and text[k - 1].isspace():
        k -= 1
    return k


def _ident_back(text: str, k: int, lo: int) -> int:
    while k > lo and (text[k - 1].isalnum() or text[k - 1] in "_."):
        k -= 1
    return k


def _open_paren_back(text: str, close: int, lo: int) -> int:
    depth = 0
    for k in range(close, lo - 1, -1):
        if text[k] == ")":
            depth += 1
        elif text[k] == "(":
            depth -= 1
            if depth == 0:
                return k
    return -1


def annotations_before(text: str, pos: int, window: int = 400) -> list[str]:
    """Annotation/decorator names directly preceding a declaration at ``pos``.

    Walks backwards over the contiguous run of ``@Name`` / ``@Name(...)``
    entries immediately before ``pos``, looking at most ``window`` characters
    back. Anything else (a statement, a closing brace, a plain call) ends the
    run, so annotations belonging to an earlier declaration are never picked
    up. Names are returned in source order, without ``@``, arguments or
    package qualifier.
    """
    return annotation_run(text, pos, window)[0]


def annotation_run(text: str, pos: int, window: int = 400) -> tuple[list[str], int]:
    """Like :func:`annotations_before`, also returning where the run starts."""
    lo = max(0, pos - window)
    names: list[str] = []
    start = pos
    k = pos
    while True:
        k = _ws_back(text, k, lo)
        if k <= lo:
            break
        if text[k - 1] == ")":
            opener = _open_paren_back(text, k - 1, lo)
            if opener < 0:
                break
            k = _ws_back(text, opener, lo)
        name_start = _ident_back(text, k, lo)
        if name_start == k:
            break
        name = text[name_start:k]
        j = _ws_back(text, name_start, lo)
        if j > lo and text[j - 1] == ":":
            # Kotlin use-site target, e.g. @field:Json
            j = _ident_back(text, _ws_back(text, j - 1, lo), lo)
            j = _ws_back(text, j, lo)
        if j > lo and text[j - 1] == "@":
            names.append(name.rsplit(".", 1)[-1])
            k = j - 1
            start = k
            continue
        break
    names.reverse()
    return names, start


_LEADING_ANNOTATION_RE = re.compile(
    r"\s*@\s*(?:[A-Za-z_]\w*\s*:\s*(?=[A-Za-z_]))?([A-Za-z_][\w.]*)"
)


def take_annotations(text: str, pos: int = 0, end: int | None = None) -> tuple[list[str], int]:
    """Consume annotations at the start of ``text[pos:end]``.

    Returns the annotation names and the offset just after the last one
    (including its argument list).
    """
    if end is None:
        end = len(text)
    names: list[str] = []
    while True:
        match = _LEADING_ANNOTATION_RE.match(text, pos, end)
        if match is None or match.group(1) == "interface":
            break
        names.append(match.group(1).rsplit(".", 1)[-1])
        pos = match.end()
        j = skip_ws(text, pos)
        if j < end and text[j] == "(":
            pos = min(read_balanced(text, j), end)
    return names, pos


# Line endings that always continue onto the next line.
_CONTINUES_AFTER = frozenset(",=:|&.+-*/(<[")
# Line starts that always continue the previous line.
_CONTINUES_BEFORE = frozenset(".|&:=?)>],{")


def _continues(text: str, start: int, newline: int) -> bool:
    k = newline - 1
    while k >= start and text[k] in " \t\r":
        k -= 1
    if k < start:
        return True  # nothing on this chunk yet
    if text[k] in _CONTINUES_AFTER:
        return True
    j = newline + 1
    while j < len(text) and text[j] in " \t\r\n":
        j += 1
    return j < len(text) and text[j] in _CONTINUES_BEFORE


def split_declarations(flat: str, newline_terminates: bool = False) -> list[tuple[int, int]]:
    """Split a flattened class body into declaration spans.

    A declaration ends at a top-level ``;`` or at the ``}`` that closes a
    top-level block (a method body, initializer, or object type). When
    ``newline_terminates`` is set, a newline at zero depth also ends a
    declaration unless the line obviously continues.
    """
    spans: list[tuple[int, int]] = []
    start = 0
    paren = 0
    brace = 0

    def close(end: int) -> None:
        nonlocal start
        s, e = start, end
        while s < e and flat[s].isspace():
            s += 1
        while e > s and flat[e - 1].isspace():
            e -= 1
        if s < e and flat[s:e] != ";":
            spans.append((s, e))
        start = end

    for k, ch in enumerate(flat):
        if ch in "([":
            paren += 1
        elif ch in ")]":
            paren = max(0, paren - 1)
        elif ch == "{":
            brace += 1
        elif ch == "}":
            brace = max(0, brace - 1)
            if brace == 0 and paren == 0 and not _block_continues(flat, k):
                close(k + 1)
        elif ch == ";" and paren == 0 and brace == 0:
            close(k + 1)
        elif ch == "\n" and newline_terminates and paren == 0 and brace == 0:
            if not _continues(flat, start, k):
                close(k + 1)
    close(len(flat))
    return spans


def _block_continues(text: str, close_brace: int) -> bool:
    """True when a closed block is followed by more of the same declaration.

    Covers object types followed by ``;``/``[]``/``|``/``=`` and ``} = value``
    style initialisers.
    """
    j = close_brace + 1
    while j < len(text) and text[j] in " \t":
        j += 1
    return j < len(text) and text[j] in "[|&=;,)>?"


def find_top_level(text: str, targets: str, start: int = 0, end: int | None = None) -> int:
    """Index of the first character in ``targets`` at zero bracket depth, or -1.

    ``<``/``>`` are not tracked here: callers look for ``{``, ``;``, ``=`` and
    the like, where generic arguments cannot hide them.
    """
    if end is None:
        end = len(text)
    depth = 0
    for k in range(start, end):
        ch = text[k]
        if depth == 0 and ch in targets:
            return k
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
    return -1


def split_keyword_clauses(text: str, keywords: tuple[str, ...]) -> dict[str, str]:
    """Split a header tail on keywords that appear at zero depth.

    ``"extends Base<? extends T> implements A, B"`` with keywords
    ``("extends", "implements")`` gives
    ``{"": "", "extends": "Base<? extends T>", "implements": "A, B"}``. The
    ``""`` key holds any text before the first keyword.
    """
    clauses: dict[str, str] = {}
    current = ""
    chunk_start = 0
    depth = 0
    k = 0
    n = len(text)
    while k < n:
        ch = text[k]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS and not (ch == ">" and _is_arrow(text, k)):
            depth = max(0, depth - 1)
        elif depth == 0 and (k == 0 or not (text[k - 1].isalnum() or text[k - 1] in "_$")):
            for keyword in keywords:
                after = k + len(keyword)
                if text.startswith(keyword, k) and (
                    after >= n or not (text[after].isalnum() or text[after] in "_$")
                ):
                    clauses[current] = text[chunk_start:k].strip()
                    current = keyword
                    chunk_start = after
                    k = after - 1
                    break
        k += 1
    clauses[current] = text[chunk_start:].strip()
    return clauses
