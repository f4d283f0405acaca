"""Kotlin front end.

Headers may or may not have a body, and the primary constructor declares
properties:

    @Serializable
    data class User(val id: Long, var name: String? = null) : Base(), Named {
        val display: String get() = name ?: "?"
        suspend fun refresh(force: Boolean = false): User
    }

Member declarations end at a newline unless the line obviously continues.
"""

from __future__ import annotations

import re
from typing import Optional

from ..models import DiscoveredMethod, DiscoveredParameter, DiscoveredProperty
from ..scanning.bodies import blank_nested_blocks, blank_spans, find_brace_body
from ..scanning.languages import ECOSYSTEMS
from ..scanning.splitting import (
    annotation_run,
    find_top_level,
    read_balanced,
    skip_ws,
    split_declarations,
    split_keyword_clauses,
    split_top_level,
    split_top_level_spans,
)
from ..scanning.stripper import KOTLIN_RULES
from ..scanning.syntax import ClassInfo, type_parameter_names
from .common import SourceViews, collection_info, read_prefix

_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.`]+)", re.MULTILINE)

_HEADER_RE = re.compile(
    r"(?<![\w$.@])"
    r"(?P<mods>(?:(?:public|private|protected|internal|abstract|open|final|sealed|data|enum|inner"
    r"|value|annotation|expect|actual|external|companion|fun|inline)\s+)*)"
    r"(?P<kind>class|interface|object)\s+"
    r"(?P<name>`[^`\n]+`|[A-Za-z_]\w*)"
)

_NAME_RE = re.compile(r"`[^`\n]+`|[A-Za-z_]\w*")
_WORD_RE = re.compile(r"[A-Za-z_]\w*")

_VISIBILITY = frozenset({"public", "private", "protected", "internal"})
_NON_PUBLIC = frozenset({"private", "protected", "internal"})
# Words that end a property type written on one line.
_TYPE_TERMINATORS = ("by", "get", "set", "private", "protected", "internal", "public")

_MEMBER_MODIFIERS = frozenset(
    {
        "public",
        "private",
        "protected",
        "internal",
        "override",
        "open",
        "final",
        "abstract",
        "lateinit",
        "const",
        "suspend",
        "inline",
        "operator",
        "infix",
        "tailrec",
        "external",
        "actual",
        "expect",
    }
)
_PARAMETER_MODIFIERS = frozenset(
    {"public", "private", "protected", "internal", "override", "open", "final", "vararg", "crossinline", "noinline"}
)

COLLECTION_TYPES = frozenset(
    {
        "Iterable",
        "Collection",
        "MutableCollection",
        "List",
        "MutableList",
        "ArrayList",
        "Set",
        "MutableSet",
        "HashSet",
        "LinkedHashSet",
        "Array",
        "Sequence",
    }
)
ARRAY_TYPES = {
    "IntArray": "Int",
    "LongArray": "Long",
    "ShortArray": "Short",
    "ByteArray": "Byte",
    "CharArray": "Char",
    "BooleanArray": "Boolean",
    "FloatArray": "Float",
    "DoubleArray": "Double",
    "UIntArray": "UInt",
    "ULongArray": "ULong",
    "UShortArray": "UShort",
    "UByteArray": "UByte",
}


def _unquote(name: str) -> str:
    return name.strip("`")


class KotlinFrontEnd:
    """Finds classes, interfaces and objects in Kotlin source."""

    ecosystem = "kotlin"
    extensions = ECOSYSTEMS["kotlin"].extensions

    def parse_classes(
        self, content: str, file_path: str, root: Optional[str] = None
    ) -> list[ClassInfo]:
        views = SourceViews.of(content, KOTLIN_RULES)
        match = _PACKAGE_RE.search(views.code)
        namespace = match.group(1).replace("`", "") if match else ""

        classes: list[ClassInfo] = []
        self._parse_scope(views, blank_nested_blocks(views.code), 0, namespace, None, file_path, classes)
        return classes

    def _parse_scope(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        namespace: str,
        declaring: Optional[str],
        file_path: str,
        out: list[ClassInfo],
    ) -> list[tuple[int, int]]:
        """Parse every class header in ``flat``; return their absolute spans."""
        spans: list[tuple[int, int]] = []
        for match in _HEADER_RE.finditer(flat):
            mods = set(match.group("mods").split())
            kind = match.group("kind")
            name = _unquote(match.group("name"))

            pos = _skip_inline_ws(flat, match.end())
            generics = ""
            if pos < len(flat) and flat[pos] == "<":
                end = read_balanced(flat, pos)
                generics = flat[pos + 1 : end - 1]
                pos = _skip_inline_ws(flat, end)
            pos = self._skip_constructor_keyword(flat, pos)
            constructor: Optional[tuple[int, int]] = None
            if pos < len(flat) and flat[pos] == "(":
                end = read_balanced(flat, pos)
                constructor = (pos + 1, end - 1)
                pos = end

            header_end, has_body = self._header_end(flat, pos)
            annotations, run_start = annotation_run(flat, match.start())

            body = None
            if has_body:
                body = find_brace_body(views.raw, offset + header_end, KOTLIN_RULES)
                spans.append((offset + run_start, body.end + 1))
            else:
                spans.append((offset + run_start, offset + header_end))

            if "companion" in mods:
                continue

            info = ClassInfo(
                name=name,
                namespace=namespace,
                file_path=file_path,
                ecosystem=self.ecosystem,
                kind="enum" if "enum" in mods else kind,
                attributes=annotations,
                type_parameters=type_parameter_names(generics),
                declaring_type=declaring,
            )
            self._apply_header(info, kind, mods, flat[pos:header_end])
            out.append(info)

            if constructor is not None:
                info.properties.extend(self._constructor_properties(views, flat, offset, constructor))

            if body is not None:
                chain = f"{declaring}.{name}" if declaring else name
                body_flat = blank_nested_blocks(views.code[body.start : body.end])
                nested = self._parse_scope(views, body_flat, body.start, namespace, chain, file_path, out)
                member_flat = blank_spans(body_flat, [(s - body.start, e - body.start) for s, e in nested])
                self._parse_members(info, views, member_flat, body.start)
        return spans

    @staticmethod
    def _skip_constructor_keyword(flat: str, pos: int) -> int:
        """Skip ``private @Inject constructor`` before a primary constructor."""
        _, _, after = read_prefix(flat, pos, len(flat), _VISIBILITY)
        word = _WORD_RE.match(flat, after)
        if word is not None and word.group(0) == "constructor":
            return _skip_inline_ws(flat, word.end())
        return pos

    @staticmethod
    def _header_end(flat: str, pos: int) -> tuple[int, bool]:
        """Find the body's ``{``, or the end of a body-less header."""
        depth = 0
        n = len(flat)
        for k in range(pos, n):
            ch = flat[k]
            if ch in "([<":
                depth += 1
            elif ch in ")]>":
                if not (ch == ">" and flat[k - 1] == "-"):
                    depth = max(0, depth - 1)
            elif depth == 0:
                if ch == "{":
                    return k, True
                if ch in ";}=":
                    return k, False
                if ch == "\n" and not _header_continues(flat, pos, k):
                    return k, False
        return n, False

    def _apply_header(self, info: ClassInfo, kind: str, mods: set, tail: str) -> None:
        interface = kind == "interface"
        info.flags = {
            "is_abstract": "abstract" in mods,
            "is_sealed": "sealed" in mods,
            "is_final": "final" in mods,
            "is_open": "open" in mods,
            "is_data": "data" in mods,
            "is_enum": "enum" in mods,
            "is_object": kind == "object",
            "is_interface": interface,
        }
        tail = tail.strip()
        if not tail.startswith(":"):
            return
        supertypes = split_keyword_clauses(tail[1:], ("where",))[""]
        for entry in split_top_level(supertypes):
            entry = split_keyword_clauses(entry, ("by",))[""]
            call = find_top_level(entry, "(")
            if call >= 0 and not interface and info.base_type is None:
                info.base_type = entry[:call].strip()
            else:
                info.interfaces.append(entry.strip())

    # ── Members ────────────────────────────────────────────────

    def _constructor_properties(
        self, views: SourceViews, flat: str, offset: int, span: tuple[int, int]
    ) -> list[DiscoveredProperty]:
        properties = []
        for s, e in split_top_level_spans(flat[span[0] : span[1]], offset=span[0]):
            annotations, mods, pos = read_prefix(flat, s, e, _PARAMETER_MODIFIERS)
            word = _WORD_RE.match(flat, pos, e)
            if word is None or word.group(0) not in ("val", "var"):
                continue
            typed = self._typed_name(views, flat, offset, skip_ws(flat, word.end()), e)
            if typed is None:
                continue
            name, type_text, _ = typed
            if "vararg" in mods:
                type_text = f"Array<{type_text}>"
            properties.append(
                self._property(name, type_text, word.group(0) == "val", mods, annotations)
            )
        return properties

    def _parse_members(self, info: ClassInfo, views: SourceViews, flat: str, offset: int) -> None:
        pending: list[str] = []
        last_var: Optional[DiscoveredProperty] = None
        for start, end in split_declarations(flat, newline_terminates=True):
            if flat[end - 1] == ";":
                end -= 1
            annotations, mods, pos = read_prefix(flat, start, end, _MEMBER_MODIFIERS)
            if pos >= end:
                pending.extend(annotations)
                continue
            annotations = pending + annotations
            pending = []

            word = _WORD_RE.match(flat, pos, end)
            keyword = word.group(0) if word else ""
            if keyword in ("get", "set"):
                # accessor lines following a property
                if keyword == "set" and last_var is not None and mods & _NON_PUBLIC:
                    last_var.is_read_only = True
                continue
            last_var = None

            if keyword in ("val", "var"):
                prop = self._member_property(views, flat, offset, word.end(), end, keyword, mods, annotations)
                if prop is not None:
                    info.properties.append(prop)
                    if keyword == "var":
                        last_var = prop
            elif keyword == "fun":
                method = self._method(views, flat, offset, word.end(), end, mods, annotations)
                if method is not None:
                    info.methods.append(method)

    def _member_property(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        pos: int,
        end: int,
        keyword: str,
        mods: set,
        annotations: list[str],
    ) -> Optional[DiscoveredProperty]:
        if "const" in mods:
            return None
        pos = skip_ws(flat, pos)
        if pos < end and flat[pos] == "<":
            return None  # generic extension property
        typed = self._typed_name(views, flat, offset, pos, end)
        if typed is None:
            return None
        name, type_text, _ = typed
        prop = self._property(name, type_text, keyword == "val", mods, annotations)
        if keyword == "var":
            clauses = split_keyword_clauses(flat[pos:end], ("set",))
            if "set" in clauses and clauses[""].endswith(tuple(_NON_PUBLIC)):
                prop.is_read_only = True
        return prop

    def _typed_name(
        self, views: SourceViews, flat: str, offset: int, pos: int, end: int
    ) -> Optional[tuple[str, str, bool]]:
        """Parse ``name: Type [= default]``; returns (name, type, has_default)."""
        match = _NAME_RE.match(flat, pos, end)
        if match is None:
            return None
        colon = skip_ws(flat, match.end())
        if colon >= end or flat[colon] != ":":
            return None  # no explicit type, or an extension receiver
        type_start = skip_ws(flat, colon + 1)
        equals = self._find_equals(flat, type_start, end)
        type_end = end if equals < 0 else equals
        cut = split_keyword_clauses(flat[type_start:type_end], _TYPE_TERMINATORS)[""]
        type_text = views.text(offset + type_start, offset + type_start + len(cut))
        if not type_text:
            return None
        return _unquote(match.group(0)), type_text, equals >= 0

    @staticmethod
    def _find_equals(flat: str, start: int, end: int) -> int:
        k = find_top_level(flat, "=", start, end)
        while k >= 0 and k + 1 < end and flat[k + 1] in "=>":
            k = find_top_level(flat, "=", k + 2, end)
        return k

    @staticmethod
    def _property(
        name: str, type_text: str, read_only: bool, mods: set, annotations: list[str]
    ) -> DiscoveredProperty:
        is_collection, element = collection_info(type_text, COLLECTION_TYPES, ARRAY_TYPES)
        return DiscoveredProperty(
            name=name,
            type=type_text,
            is_nullable=type_text.endswith("?"),
            is_collection=is_collection,
            collection_element_type=element,
            is_read_only=read_only,
            is_public=not (mods & _NON_PUBLIC),
            attributes=list(annotations),
        )

    def _method(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        pos: int,
        end: int,
        mods: set,
        annotations: list[str],
    ) -> Optional[DiscoveredMethod]:
        pos = skip_ws(flat, pos)
        if pos < end and flat[pos] == "<":
            pos = skip_ws(flat, read_balanced(flat, pos))
        match = _NAME_RE.match(flat, pos, end)
        if match is None:
            return None
        opener = skip_ws(flat, match.end())
        if opener >= end or flat[opener] != "(":
            return None  # extension function or unrecognised shape
        close = read_balanced(flat, opener)

        parameters = []
        for s, e in split_top_level_spans(flat[opener + 1 : close - 1], offset=opener + 1):
            parameter = self._parameter(views, flat, offset, s, e)
            if parameter is None:
                return None
            parameters.append(parameter)

        return_type = "Unit"
        colon = skip_ws(flat, close)
        if colon < end and flat[colon] == ":":
            stop = find_top_level(flat, "{=", colon + 1, end)
            stop = end if stop < 0 else stop
            type_start = skip_ws(flat, colon + 1)
            cut = split_keyword_clauses(flat[type_start:stop], ("where",))[""]
            return_type = views.text(offset + type_start, offset + type_start + len(cut)) or "Unit"

        return DiscoveredMethod(
            name=_unquote(match.group(0)),
            return_type=return_type,
            is_async="suspend" in mods,
            is_public=not (mods & _NON_PUBLIC),
            parameters=parameters,
            attributes=annotations,
        )

    def _parameter(
        self, views: SourceViews, flat: str, offset: int, start: int, end: int
    ) -> Optional[DiscoveredParameter]:
        _, mods, pos = read_prefix(flat, start, end, _PARAMETER_MODIFIERS)
        typed = self._typed_name(views, flat, offset, pos, end)
        if typed is None:
            return None
        name, type_text, has_default = typed
        if "vararg" in mods:
            type_text = f"Array<{type_text}>"
        return DiscoveredParameter(
            name=name,
            type=type_text,
            is_nullable=type_text.endswith("?"),
            has_default_value=has_default,
        )


def _skip_inline_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in " \t":
        pos += 1
    return pos


def _header_continues(flat: str, start: int, newline: int) -> bool:
    """True when a header carries on past this newline."""
    k = newline - 1
    while k >= start and flat[k] in " \t\r":
        k -= 1
    if k >= start and flat[k] in ",:.(<":
        return True
    j = skip_ws(flat, newline)
    if j >= len(flat):
        return False
    if flat[j] in ":,{":
        return True
    word = _WORD_RE.match(flat, j)
    return word is not None and word.group(0) == "where"
