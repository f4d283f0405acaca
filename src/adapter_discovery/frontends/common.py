"""Helpers shared by the text front ends."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..scanning.splitting import collapse_ws, skip_ws, split_top_level, take_annotations
from ..scanning.stripper import StripRules, strip_comments, strip_literals
from ..scanning.syntax import split_generic

_WORD_RE = re.compile(r"[A-Za-z_$][\w$-]*")
_IDENT_RE = re.compile(r"[A-Za-z_$][\w$]*")


@dataclass(frozen=True)
class SourceViews:
    """Three same-length views of one file.

    ``raw`` is the file as read; ``source`` has comments blanked and is where
    type and default text is sliced from; ``code`` additionally blanks
    literal contents and is what every structural scan runs on.
    """

    raw: str
    source: str
    code: str

    @classmethod
    def of(cls, content: str, rules: StripRules) -> SourceViews:
        return cls(content, strip_comments(content, rules), strip_literals(content, rules))

    def text(self, start: int, end: int) -> str:
        """Comment-free source text for a span, whitespace collapsed."""
        return collapse_ws(self.source[start:end])


def read_prefix(
    text: str, pos: int, end: int, modifiers: frozenset[str]
) -> tuple[list[str], set[str], int]:
    """Consume interleaved annotations and modifier keywords.

    Returns (annotation names, modifiers seen, offset of the first other token).
    """
    annotations: list[str] = []
    seen: set[str] = set()
    while True:
        names, pos = take_annotations(text, pos, end)
        annotations.extend(names)
        j = skip_ws(text, pos)
        match = _WORD_RE.match(text, j, end)
        if match is None or match.group(0) not in modifiers:
            return annotations, seen, j
        # A modifier keyword used as a name ("value: Int") is not a modifier.
        after = skip_ws(text, match.end())
        if after < end and text[after] in ":=(;,?<!":
            return annotations, seen, j
        seen.add(match.group(0))
        pos = match.end()


def split_name_from_type(declaration: str) -> Optional[tuple[str, str]]:
    """Split ``Type name`` into (type, name) for C-style declarations.

    The name is the trailing identifier; everything before it is the type.
    """
    declaration = declaration.strip()
    match = re.search(r"([A-Za-z_$][\w$]*)\s*$", declaration)
    if match is None:
        return None
    type_text = declaration[: match.start()].strip()
    if not type_text:
        return None
    return collapse_ws(type_text), match.group(1)


def is_identifier(text: str) -> bool:
    return _IDENT_RE.fullmatch(text) is not None


def simple_type_name(type_text: str) -> str:
    """Last dotted segment of a type's head, without generic arguments."""
    head, _ = split_generic(type_text)
    head = head.strip().rstrip("?!").strip()
    return head.rsplit(".", 1)[-1]


def collection_info(
    type_text: str,
    generic_heads: Iterable[str],
    array_types: Optional[dict[str, str]] = None,
    open_char: str = "<",
    close_char: str = ">",
) -> tuple[bool, Optional[str]]:
    """Decide whether a type is a collection, and of what.

    ``T[]`` suffixes and generic heads in ``generic_heads`` are collections;
    ``array_types`` maps specialised array type names (``IntArray``) to their
    element type.
    """
    text = type_text.strip().rstrip("?!").strip()
    if text.startswith("readonly "):
        text = text[len("readonly ") :].strip()
    if text.endswith("[]"):
        element = text[:-2].strip()
        if element.startswith("(") and element.endswith(")"):
            element = element[1:-1].strip()
        return True, element or None
    if array_types and text in array_types:
        return True, array_types[text]
    head, args = split_generic(text, open_char, close_char)
    if head.rsplit(".", 1)[-1] in generic_heads:
        if not args:
            return True, None
        return True, args[0].strip()
    return False, None


def union_members(type_text: str) -> list[str]:
    """Top-level ``|`` members of a union type."""
    return [collapse_ws(m) for m in split_top_level(type_text, "|")]


def dotted_module_path(file_path: str, root: Optional[str]) -> str:
    """Dotted path of a file relative to ``root``, extension dropped."""
    path = Path(file_path)
    parts: list[str]
    if root:
        try:
            parts = list(path.relative_to(root).parts)
        except ValueError:
            parts = [path.name]
    else:
        parts = [path.name]
    if not parts:
        return ""
    stem = parts[-1].rsplit(".", 1)[0] if "." in parts[-1] else parts[-1]
    # Declaration files: types.d.ts -> types
    if stem.endswith(".d"):
        stem = stem[:-2]
    parts[-1] = stem
    return ".".join(p for p in parts if p)
