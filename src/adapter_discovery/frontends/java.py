"""Java front end.

Heuristic scan over stripped source:

    package com.acme.model;

    @Entity
    public final class Order extends Base implements Serializable {
        private final List<Line> lines;          -> property (read-only)
        public CompletableFuture<Void> save() {} -> method (async)
    }

Only declarations at the top level of a type body count as members; method
bodies, initializers and anonymous classes are blanked before splitting.
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
from ..scanning.stripper import JAVA_RULES
from ..scanning.syntax import ClassInfo, type_parameter_names
from .common import SourceViews, collection_info, read_prefix, simple_type_name

_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)

_HEADER_RE = re.compile(
    r"(?<![\w$.@])"
    r"(?P<mods>(?:(?:public|protected|private|abstract|final|sealed|non-sealed|static|strictfp)\s+)*)"
    r"(?P<kind>class|interface|enum|record|@\s*interface)\s+"
    r"(?P<name>[A-Za-z_$][\w$]*)"
)

_MEMBER_MODIFIERS = frozenset(
    {
        "public",
        "protected",
        "private",
        "static",
        "final",
        "abstract",
        "default",
        "synchronized",
        "native",
        "transient",
        "volatile",
        "strictfp",
        "sealed",
        "non-sealed",
    }
)

_DECLARATOR_RE = re.compile(
    r"(?P<type>.+?)\s*(?P<varargs>\.\.\.)?\s*(?<![\w$])(?P<name>[A-Za-z_$][\w$]*)\s*(?P<dims>(?:\[\s*\]\s*)*)\s*",
    re.DOTALL,
)
_NAME_ONLY_RE = re.compile(r"(?P<name>[A-Za-z_$][\w$]*)\s*(?P<dims>(?:\[\s*\]\s*)*)")

PRIMITIVES = frozenset({"boolean", "byte", "char", "short", "int", "long", "float", "double", "void"})
NON_NULL_ANNOTATIONS = frozenset({"NonNull", "NotNull", "Nonnull"})
ASYNC_TYPES = frozenset({"CompletableFuture", "Future", "CompletionStage"})
COLLECTION_TYPES = frozenset(
    {
        "Collection",
        "Iterable",
        "List",
        "ArrayList",
        "LinkedList",
        "Set",
        "HashSet",
        "LinkedHashSet",
        "TreeSet",
        "SortedSet",
        "NavigableSet",
        "Queue",
        "Deque",
        "ArrayDeque",
    }
)


def is_nullable(type_text: str, annotations: list[str]) -> bool:
    """Primitives are never null; references are unless annotated non-null."""
    if any(a in NON_NULL_ANNOTATIONS for a in annotations):
        return False
    if "Nullable" in annotations:
        return True
    return type_text.strip() not in PRIMITIVES


class JavaFrontEnd:
    """Finds classes, interfaces, enums and records in Java source."""

    ecosystem = "java"
    extensions = ECOSYSTEMS["java"].extensions

    def parse_classes(
        self, content: str, file_path: str, root: Optional[str] = None
    ) -> list[ClassInfo]:
        views = SourceViews.of(content, JAVA_RULES)
        match = _PACKAGE_RE.search(views.code)
        namespace = match.group(1) if match else ""

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
        """Parse every type header in ``flat``; return their absolute spans."""
        spans: list[tuple[int, int]] = []
        for match in _HEADER_RE.finditer(flat):
            brace = find_top_level(flat, "{;", match.end())
            if brace < 0 or flat[brace] == ";":
                continue

            mods = set(match.group("mods").split())
            kind = match.group("kind").replace(" ", "")
            name = match.group("name")

            pos = skip_ws(flat, match.end())
            generics = ""
            if pos < brace and flat[pos] == "<":
                end = read_balanced(flat, pos)
                generics = flat[pos + 1 : end - 1]
                pos = skip_ws(flat, end)
            components: Optional[tuple[int, int]] = None
            if kind == "record" and pos < brace and flat[pos] == "(":
                end = read_balanced(flat, pos)
                components = (pos + 1, end - 1)
                pos = end
            clauses = split_keyword_clauses(flat[pos:brace], ("extends", "implements", "permits"))

            annotations, run_start = annotation_run(flat, match.start())
            body = find_brace_body(views.raw, offset + brace, JAVA_RULES)

            info = ClassInfo(
                name=name,
                namespace=namespace,
                file_path=file_path,
                ecosystem=self.ecosystem,
                kind="interface" if kind == "@interface" else kind,
                attributes=annotations,
                type_parameters=type_parameter_names(generics),
                declaring_type=declaring,
            )
            self._apply_header(info, kind, mods, clauses)
            out.append(info)

            if components is not None:
                info.properties.extend(self._record_components(views, flat, offset, components))

            chain = f"{declaring}.{name}" if declaring else name
            body_flat = blank_nested_blocks(views.code[body.start : body.end])
            nested = self._parse_scope(views, body_flat, body.start, namespace, chain, file_path, out)
            member_flat = blank_spans(body_flat, [(s - body.start, e - body.start) for s, e in nested])
            self._parse_members(info, views, member_flat, body.start)

            spans.append((offset + run_start, body.end + 1))
        return spans

    def _apply_header(self, info: ClassInfo, kind: str, mods: set, clauses: dict) -> None:
        interface = kind in ("interface", "@interface")
        info.flags = {
            "is_abstract": "abstract" in mods,
            "is_sealed": "sealed" in mods,
            "is_final": "final" in mods or kind in ("record", "enum"),
            "is_static": "static" in mods,
            "is_enum": kind == "enum",
            "is_interface": interface,
        }
        extends = split_top_level(clauses.get("extends", ""))
        implements = split_top_level(clauses.get("implements", ""))
        if interface:
            info.interfaces = extends
        else:
            info.base_type = extends[0] if extends else None
            info.interfaces = implements

    # ── Members ────────────────────────────────────────────────

    def _record_components(
        self, views: SourceViews, flat: str, offset: int, span: tuple[int, int]
    ) -> list[DiscoveredProperty]:
        properties = []
        for s, e in split_top_level_spans(flat[span[0] : span[1]], offset=span[0]):
            param = self._parameter(views, flat, offset, s, e)
            if param is None:
                continue
            parameter, annotations = param
            is_collection, element = collection_info(parameter.type, COLLECTION_TYPES)
            properties.append(
                DiscoveredProperty(
                    name=parameter.name,
                    type=parameter.type,
                    is_nullable=parameter.is_nullable,
                    is_collection=is_collection,
                    collection_element_type=element,
                    is_read_only=True,
                    is_public=True,
                    attributes=annotations,
                )
            )
        return properties

    def _parse_members(self, info: ClassInfo, views: SourceViews, flat: str, offset: int) -> None:
        interface = info.flags.get("is_interface", False)
        constants_end = 0
        if info.kind == "enum":
            semicolon = find_top_level(flat, ";")
            constants_end = len(flat) if semicolon < 0 else semicolon + 1

        for start, end in split_declarations(flat):
            if start < constants_end:
                continue
            if flat[end - 1] == ";":
                end -= 1
            annotations, mods, pos = read_prefix(flat, start, end, _MEMBER_MODIFIERS)
            if pos >= end or flat[pos] == "{" or "static" in mods:
                continue

            opener = find_top_level(flat, "(=", pos, end)
            if opener >= 0 and flat[opener] == "(":
                method = self._method(views, flat, offset, pos, opener, end, annotations, mods, interface)
                if method is not None:
                    info.methods.append(method)
            elif not interface:
                info.properties.extend(self._fields(views, flat, offset, pos, end, annotations, mods))

    def _method(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        pos: int,
        opener: int,
        end: int,
        annotations: list[str],
        mods: set,
        interface: bool,
    ) -> Optional[DiscoveredMethod]:
        if flat[pos] == "<":
            pos = skip_ws(flat, read_balanced(flat, pos))
        match = re.fullmatch(r"(?P<type>.+?)\s+(?P<name>[A-Za-z_$][\w$]*)\s*", flat[pos:opener], re.DOTALL)
        if match is None:
            return None  # constructor or unrecognised shape
        return_type = views.text(offset + pos, offset + pos + match.end("type"))

        parameters = []
        close = read_balanced(flat, opener)
        for s, e in split_top_level_spans(flat[opener + 1 : close - 1], offset=opener + 1):
            param = self._parameter(views, flat, offset, s, e)
            if param is None:
                return None
            if param[0].name != "this":
                parameters.append(param[0])

        return DiscoveredMethod(
            name=match.group("name"),
            return_type=return_type,
            is_async=simple_type_name(return_type) in ASYNC_TYPES,
            is_public="public" in mods or (interface and "private" not in mods),
            parameters=parameters,
            attributes=annotations,
        )

    def _parameter(
        self, views: SourceViews, flat: str, offset: int, start: int, end: int
    ) -> Optional[tuple[DiscoveredParameter, list[str]]]:
        annotations, _, pos = read_prefix(flat, start, end, frozenset({"final"}))
        match = _DECLARATOR_RE.fullmatch(flat, pos, end)
        if match is None:
            return None
        type_text = views.text(offset + match.start("type"), offset + match.end("type"))
        if match.group("varargs"):
            type_text += "[]"
        type_text += "[]" * match.group("dims").count("[")
        parameter = DiscoveredParameter(
            name=match.group("name"),
            type=type_text,
            is_nullable=is_nullable(type_text, annotations),
        )
        return parameter, annotations

    def _fields(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        pos: int,
        end: int,
        annotations: list[str],
        mods: set,
    ) -> list[DiscoveredProperty]:
        properties: list[DiscoveredProperty] = []
        base_type = ""
        for index, (s, e) in enumerate(split_top_level_spans(flat[pos:end], offset=pos)):
            equals = find_top_level(flat, "=", s, e)
            if equals >= 0:
                e = equals
            if index == 0:
                match = _DECLARATOR_RE.fullmatch(flat, s, e)
                if match is None or match.group("varargs"):
                    return []
                base_type = views.text(offset + match.start("type"), offset + match.end("type"))
            else:
                match = _NAME_ONLY_RE.fullmatch(flat, s, e)
                if match is None:
                    continue
            type_text = base_type + "[]" * match.group("dims").count("[")
            is_collection, element = collection_info(type_text, COLLECTION_TYPES)
            properties.append(
                DiscoveredProperty(
                    name=match.group("name"),
                    type=type_text,
                    is_nullable=is_nullable(type_text, annotations),
                    is_collection=is_collection,
                    collection_element_type=element,
                    is_read_only="final" in mods,
                    is_public="public" in mods,
                    attributes=list(annotations),
                )
            )
        return properties
