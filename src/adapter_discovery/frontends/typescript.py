"""TypeScript front end.

Covers classes, interfaces, enums and object type aliases:

    export namespace Api {
        @Component()
        export class UserService extends Base implements OnInit {
            constructor(private readonly http: Http) {}  -> property "http"
            async load(id: string): Promise<User> {}     -> async (keyword)
        }
        export interface Repo { find(id: string): Promise<User>; }  -> async (Promise)
        export type Point = { x: number; y?: number };
    }

Classes outside a namespace block take the module path of their file,
relative to the source root.
"""

from __future__ import annotations

import re
from typing import Optional

from ..models import DiscoveredMethod, DiscoveredParameter, DiscoveredProperty
from ..scanning.bodies import blank_nested_blocks, find_brace_body
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
from ..scanning.stripper import TYPESCRIPT_RULES
from ..scanning.syntax import ClassInfo, type_parameter_names
from .common import (
    SourceViews,
    collection_info,
    dotted_module_path,
    read_prefix,
    simple_type_name,
    union_members,
)

_NAMESPACE_RE = re.compile(
    r"(?<![\w$.])(?:(?:export|declare)\s+)*(?:namespace|module)\s+"
    r"(?P<name>[A-Za-z_$][\w$.]*|\"[^\"\n]*\"|'[^'\n]*')\s*\{"
)

_HEADER_RE = re.compile(
    r"(?<![\w$.@])"
    r"(?P<mods>(?:(?:export|default|declare|abstract|const)\s+)*)"
    r"(?P<kind>class|interface|enum|type)\s+"
    r"(?P<name>[A-Za-z_$][\w$]*)"
)

_NAME_RE = re.compile(r"#?[A-Za-z_$][\w$]*")

_MEMBER_MODIFIERS = frozenset(
    {
        "public",
        "private",
        "protected",
        "static",
        "readonly",
        "abstract",
        "declare",
        "override",
        "async",
        "accessor",
    }
)
_PARAMETER_MODIFIERS = frozenset({"public", "private", "protected", "readonly", "override"})
_NON_PUBLIC = frozenset({"private", "protected"})

ASYNC_TYPES = frozenset({"Promise", "PromiseLike"})
COLLECTION_TYPES = frozenset({"Array", "ReadonlyArray", "Set", "ReadonlySet"})


def is_nullable(type_text: str, optional: bool = False) -> bool:
    """``?`` or a ``null``/``undefined`` union member makes a slot nullable."""
    if optional:
        return True
    return any(m in ("null", "undefined") for m in union_members(type_text))


def _non_null_type(type_text: str) -> str:
    members = [m for m in union_members(type_text) if m not in ("null", "undefined")]
    return " | ".join(members) if members else type_text


def _type_end(flat: str, start: int, end: int, stops: str) -> int:
    """First stop character at zero depth of ``()[]{}<>``, or ``end``.

    ``=`` only stops when it is a plain assignment (not ``=>`` or ``==``).
    A ``{`` only stops after some type text that does not continue with
    ``|``, ``&``, ``,`` or ``<``.
    """
    depth = 0
    for k in range(start, end):
        ch = flat[k]
        if depth == 0 and ch in stops:
            if ch == "=" and k + 1 < end and flat[k + 1] in "=>":
                continue
            if ch == "{":
                j = k - 1
                while j >= start and flat[j].isspace():
                    j -= 1
                if j >= start and flat[j] not in "|&,<:":
                    return k
            else:
                return k
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            if ch == ">" and flat[k - 1] == "=":
                continue
            depth = max(0, depth - 1)
    return end


class TypeScriptFrontEnd:
    """Finds classes, interfaces, enums and object type aliases in TypeScript."""

    ecosystem = "typescript"
    extensions = ECOSYSTEMS["typescript"].extensions

    def parse_classes(
        self, content: str, file_path: str, root: Optional[str] = None
    ) -> list[ClassInfo]:
        views = SourceViews.of(content, TYPESCRIPT_RULES)
        classes: list[ClassInfo] = []
        module = dotted_module_path(file_path, root)
        self._parse_scope(views, blank_nested_blocks(views.code), 0, module, None, file_path, classes)
        return classes

    def _parse_scope(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        module: str,
        namespace: Optional[str],
        file_path: str,
        out: list[ClassInfo],
    ) -> None:
        matches = sorted(
            list(_NAMESPACE_RE.finditer(flat)) + list(_HEADER_RE.finditer(flat)),
            key=lambda m: m.start(),
        )
        for match in matches:
            if match.re is _NAMESPACE_RE:
                name = views.raw[offset + match.start("name") : offset + match.end("name")].strip("\"'")
                inner = f"{namespace}.{name}" if namespace else name
                body = find_brace_body(views.raw, offset + match.end() - 1, TYPESCRIPT_RULES)
                body_flat = blank_nested_blocks(views.code[body.start : body.end])
                self._parse_scope(views, body_flat, body.start, module, inner, file_path, out)
            else:
                info = self._parse_header(views, flat, offset, match, namespace or module, file_path)
                if info is not None:
                    out.append(info)

    def _parse_header(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        match: re.Match,
        namespace: str,
        file_path: str,
    ) -> Optional[ClassInfo]:
        mods = set(match.group("mods").split())
        kind = match.group("kind")

        pos = skip_ws(flat, match.end())
        generics = ""
        if pos < len(flat) and flat[pos] == "<":
            end = read_balanced(flat, pos)
            generics = flat[pos + 1 : end - 1]
            pos = skip_ws(flat, end)

        if kind == "type":
            if not flat.startswith("=", pos):
                return None
            brace = skip_ws(flat, pos + 1)
            if brace >= len(flat) or flat[brace] != "{":
                return None  # only object type literals describe a shape
            clauses: dict[str, str] = {}
        else:
            brace = find_top_level(flat, "{;", pos)
            if brace < 0 or flat[brace] == ";":
                return None
            clauses = split_keyword_clauses(flat[pos:brace], ("extends", "implements"))

        info = ClassInfo(
            name=match.group("name"),
            namespace=namespace,
            file_path=file_path,
            ecosystem=self.ecosystem,
            kind=kind,
            attributes=annotation_run(flat, match.start())[0],
            type_parameters=type_parameter_names(generics),
        )
        extends = split_top_level(clauses.get("extends", ""))
        if kind == "interface":
            info.interfaces = extends
        else:
            info.base_type = extends[0] if extends else None
            info.interfaces = split_top_level(clauses.get("implements", ""))
        info.flags = {
            "is_abstract": "abstract" in mods,
            "is_enum": kind == "enum",
            "is_interface": kind == "interface",
        }

        if kind != "enum":
            body = find_brace_body(views.raw, offset + brace, TYPESCRIPT_RULES)
            body_flat = blank_nested_blocks(views.code[body.start : body.end])
            self._parse_members(info, views, body_flat, body.start)
        return info

    # ── Members ────────────────────────────────────────────────

    def _member_spans(self, info: ClassInfo, flat: str) -> list[tuple[int, int]]:
        spans = split_declarations(flat, newline_terminates=True)
        if info.kind == "class":
            return spans
        # Interface and type-literal members may also be comma separated.
        members = []
        for s, e in spans:
            members.extend(split_top_level_spans(flat[s:e], offset=s))
        return members

    def _parse_members(self, info: ClassInfo, views: SourceViews, flat: str, offset: int) -> None:
        contract = info.kind != "class"
        accessors: dict[str, DiscoveredProperty] = {}
        pending: list[str] = []

        for start, end in self._member_spans(info, flat):
            while end > start and flat[end - 1] in ";,":
                end -= 1
            annotations, mods, pos = read_prefix(flat, start, end, _MEMBER_MODIFIERS)
            if pos >= end:
                pending.extend(annotations)
                continue
            annotations = pending + annotations
            pending = []
            if "static" in mods or flat[pos] in "[{(<":
                continue

            name_match = _NAME_RE.match(flat, pos, end)
            if name_match is None:
                continue
            name = name_match.group(0)
            after = skip_ws(flat, name_match.end())

            if name in ("get", "set") and after < end and _NAME_RE.match(flat, after, end):
                self._accessor(info, views, flat, offset, name, after, end, mods, annotations, accessors)
                continue
            if name == "constructor" and after < end and flat[after] == "(":
                info.properties.extend(self._parameter_properties(views, flat, offset, after))
                continue
            if name == "new" and contract:
                continue

            optional = False
            if after < end and flat[after] in "?!":
                optional = flat[after] == "?"
                after = skip_ws(flat, after + 1)
            if after >= end:
                continue

            public = not (mods & _NON_PUBLIC) and not name.startswith("#")
            if flat[after] in "(<":
                infer_async = contract or "abstract" in mods
                method = self._method(views, flat, offset, name, after, end, mods, annotations, public, infer_async)
                if method is not None:
                    info.methods.append(method)
            elif flat[after] == ":":
                type_start = after + 1
                type_end = _type_end(flat, type_start, end, "=")
                type_text = views.text(offset + type_start, offset + type_end)
                if type_text:
                    info.properties.append(
                        self._property(name, type_text, optional, "readonly" in mods, public, annotations)
                    )

    def _property(
        self,
        name: str,
        type_text: str,
        optional: bool,
        read_only: bool,
        public: bool,
        annotations: list[str],
    ) -> DiscoveredProperty:
        is_collection, element = collection_info(_non_null_type(type_text), COLLECTION_TYPES)
        return DiscoveredProperty(
            name=name,
            type=type_text,
            is_nullable=is_nullable(type_text, optional),
            is_collection=is_collection,
            collection_element_type=element,
            is_read_only=read_only,
            is_public=public,
            attributes=list(annotations),
        )

    def _accessor(
        self,
        info: ClassInfo,
        views: SourceViews,
        flat: str,
        offset: int,
        keyword: str,
        pos: int,
        end: int,
        mods: set,
        annotations: list[str],
        accessors: dict[str, DiscoveredProperty],
    ) -> None:
        """Fold a get/set accessor into a property (read-only without a setter)."""
        name_match = _NAME_RE.match(flat, pos, end)
        opener = skip_ws(flat, name_match.end())
        if opener >= end or flat[opener] != "(":
            return
        close = read_balanced(flat, opener)
        name = name_match.group(0)

        if keyword == "get":
            type_text = "any"
            colon = skip_ws(flat, close)
            if colon < end and flat[colon] == ":":
                type_text = views.text(offset + colon + 1, offset + _type_end(flat, colon + 1, end, "{;"))
        else:
            params = split_top_level_spans(flat[opener + 1 : close - 1], offset=opener + 1)
            parameter = self._parameter(views, flat, offset, *params[0]) if params else None
            if parameter is None:
                return
            type_text = parameter[0].type

        existing = accessors.get(name)
        if existing is not None:
            if keyword == "set":
                existing.is_read_only = False
            return
        public = not (mods & _NON_PUBLIC) and not name.startswith("#")
        prop = self._property(name, type_text, False, keyword == "get", public, annotations)
        accessors[name] = prop
        info.properties.append(prop)

    def _parameter_properties(
        self, views: SourceViews, flat: str, offset: int, opener: int
    ) -> list[DiscoveredProperty]:
        properties = []
        close = read_balanced(flat, opener)
        for s, e in split_top_level_spans(flat[opener + 1 : close - 1], offset=opener + 1):
            parsed = self._parameter(views, flat, offset, s, e)
            if parsed is None:
                continue
            parameter, mods, annotations = parsed
            if not mods:
                continue
            properties.append(
                self._property(
                    parameter.name,
                    parameter.type,
                    parameter.is_nullable and not parameter.has_default_value,
                    "readonly" in mods,
                    not (mods & _NON_PUBLIC),
                    annotations,
                )
            )
        return properties

    def _method(
        self,
        views: SourceViews,
        flat: str,
        offset: int,
        name: str,
        pos: int,
        end: int,
        mods: set,
        annotations: list[str],
        public: bool,
        infer_async: bool,
    ) -> Optional[DiscoveredMethod]:
        if flat[pos] == "<":
            pos = skip_ws(flat, read_balanced(flat, pos))
        if pos >= end or flat[pos] != "(":
            return None
        close = read_balanced(flat, pos)

        parameters = []
        for s, e in split_top_level_spans(flat[pos + 1 : close - 1], offset=pos + 1):
            parsed = self._parameter(views, flat, offset, s, e)
            if parsed is None:
                return None
            if parsed[0].name != "this":
                parameters.append(parsed[0])

        return_type = "any"
        colon = skip_ws(flat, close)
        if colon < end and flat[colon] == ":":
            type_end = _type_end(flat, colon + 1, end, "{;")
            return_type = views.text(offset + colon + 1, offset + type_end) or return_type

        if infer_async:
            is_async = simple_type_name(return_type) in ASYNC_TYPES
        else:
            is_async = "async" in mods
        return DiscoveredMethod(
            name=name,
            return_type=return_type,
            is_async=is_async,
            is_public=public,
            parameters=parameters,
            attributes=annotations,
        )

    def _parameter(
        self, views: SourceViews, flat: str, offset: int, start: int, end: int
    ) -> Optional[tuple[DiscoveredParameter, set, list[str]]]:
        annotations, mods, pos = read_prefix(flat, start, end, _PARAMETER_MODIFIERS)
        rest = flat.startswith("...", pos)
        if rest:
            pos = skip_ws(flat, pos + 3)
        match = _NAME_RE.match(flat, pos, end)
        if match is None or match.group(0).startswith("#"):
            return None  # destructuring pattern or unrecognised shape
        pos = skip_ws(flat, match.end())
        optional = pos < end and flat[pos] == "?"
        if optional:
            pos = skip_ws(flat, pos + 1)

        type_text = "any[]" if rest else "any"
        if pos < end and flat[pos] == ":":
            type_end = _type_end(flat, pos + 1, end, "=")
            type_text = views.text(offset + pos + 1, offset + type_end)
            pos = type_end
        elif pos < end and flat[pos] != "=":
            return None
        has_default = pos < end and flat[pos] == "="
        if not type_text:
            return None

        parameter = DiscoveredParameter(
            name=match.group(0),
            type=type_text,
            is_nullable=is_nullable(type_text, optional),
            has_default_value=has_default,
        )
        return parameter, mods, annotations
