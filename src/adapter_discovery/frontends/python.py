"""Python front end.

Bodies are delimited by indentation. Properties come from three places:

    @dataclass(frozen=True)
    class Order(Base):
        id: int                      # class-level annotation
        def __init__(self, note: str | None = None):
            self.note = note         # typed through the annotated parameter
        @property
        def total(self) -> Decimal:  # read-only unless a setter exists
            ...

Methods are every ``def``/``async def`` directly in the class body except
dunders, static methods and class methods. Classes defined inside functions
are not reported.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import Optional

from ..models import DiscoveredMethod, DiscoveredParameter, DiscoveredProperty
from ..scanning.bodies import continuation_lines, find_indented_body, indent_width
from ..scanning.languages import ECOSYSTEMS
from ..scanning.splitting import (
    annotation_run,
    find_top_level,
    read_balanced,
    skip_ws,
    split_top_level,
    split_top_level_spans,
)
from ..scanning.stripper import PYTHON_RULES
from ..scanning.syntax import ClassInfo, split_generic, type_parameter_names
from .common import SourceViews, collection_info, dotted_module_path, union_members

_BLOCK_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<keyword>class|(?:async[ \t]+)?def)[ \t]+(?P<name>[A-Za-z_]\w*)",
    re.MULTILINE,
)
_NAME_RE = re.compile(r"[A-Za-z_]\w*")
_ANNOTATION_RE = re.compile(r"(?P<name>[A-Za-z_]\w*)[ \t]*:(?!=)")
_SELF_ASSIGN_RE = re.compile(
    r"^[ \t]*self\.(?P<name>[A-Za-z_]\w*)[ \t]*(?::(?P<type>[^=\n]+?))?[ \t]*=(?!=)",
    re.MULTILINE,
)

_KEYWORDS = frozenset(
    {
        "if", "elif", "else", "for", "while", "with", "try", "except", "finally",
        "match", "case", "return", "lambda", "pass", "raise", "del", "global", "nonlocal",
    }
)
_ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})
_SKIPPED_DECORATORS = frozenset({"staticmethod", "classmethod", "deleter"})
_PROPERTY_DECORATORS = frozenset({"property", "cached_property"})

COLLECTION_TYPES = frozenset(
    {
        "list",
        "List",
        "set",
        "Set",
        "frozenset",
        "FrozenSet",
        "deque",
        "Deque",
        "Sequence",
        "MutableSequence",
        "AbstractSet",
        "MutableSet",
        "Collection",
        "Iterable",
    }
)


def is_nullable(type_text: str) -> bool:
    """``Optional[X]``, ``X | None`` and ``Union[..., None]`` are nullable."""
    head, args = split_generic(type_text, "[", "]")
    head = head.rsplit(".", 1)[-1]
    if head == "Optional":
        return True
    if head == "Union" and any(a.strip() == "None" for a in args):
        return True
    return "None" in union_members(type_text)


def _non_optional(type_text: str) -> str:
    head, args = split_generic(type_text, "[", "]")
    head = head.rsplit(".", 1)[-1]
    if head == "Optional" and args:
        return args[0].strip()
    if head == "Union":
        members = [a.strip() for a in args if a.strip() != "None"]
    else:
        members = [m for m in union_members(type_text) if m != "None"]
    if len(members) == 1:
        return members[0]
    return type_text


def python_collection_info(type_text: str) -> tuple[bool, Optional[str]]:
    text = _non_optional(type_text)
    head, args = split_generic(text, "[", "]")
    if head.rsplit(".", 1)[-1] in ("tuple", "Tuple"):
        if len(args) == 2 and args[1].strip() == "...":
            return True, args[0].strip()
        return False, None
    return collection_info(text, COLLECTION_TYPES, open_char="[", close_char="]")


@dataclass
class _Block:
    """A ``class`` or ``def`` header with its indentation-delimited body."""

    keyword: str
    name: str
    indent: int
    start: int  # offset of the keyword
    header_line: int
    body_start: int  # first body line
    body_end: int  # exclusive
    params: Optional[tuple[int, int]] = None
    bases: Optional[tuple[int, int]] = None
    type_params: str = ""
    returns: Optional[tuple[int, int]] = None
    parent: Optional[_Block] = None

    @property
    def is_class(self) -> bool:
        return self.keyword == "class"

    @property
    def is_async(self) -> bool:
        return self.keyword.startswith("async")

    def contains(self, line: int) -> bool:
        return self.body_start <= line < self.body_end


class PythonFrontEnd:
    """Finds classes in Python source and stub files."""

    ecosystem = "python"
    extensions = ECOSYSTEMS["python"].extensions

    def parse_classes(
        self, content: str, file_path: str, root: Optional[str] = None
    ) -> list[ClassInfo]:
        views = SourceViews.of(content, PYTHON_RULES)
        lines = views.code.split("\n")
        line_starts = [0]
        for line in lines[:-1]:
            line_starts.append(line_starts[-1] + len(line) + 1)

        namespace = dotted_module_path(file_path, root)
        if namespace == "__init__" or namespace.endswith(".__init__"):
            namespace = namespace[: -len("__init__")].rstrip(".")

        continued = continuation_lines(views.raw, PYTHON_RULES)
        blocks = self._blocks(views.code, lines, line_starts, continued)
        classes: list[ClassInfo] = []
        for block in blocks:
            if not block.is_class:
                continue
            chain: list[str] = []
            parent = block.parent
            local = False
            while parent is not None:
                if not parent.is_class:
                    local = True
                    break
                chain.append(parent.name)
                parent = parent.parent
            if local:
                continue
            declaring = ".".join(reversed(chain)) or None
            members = [b for b in blocks if b.parent is block]
            classes.append(
                self._parse_class(views, lines, line_starts, block, members, namespace, declaring, file_path)
            )
        return classes

    # ── Structure ──────────────────────────────────────────────

    def _blocks(
        self, code: str, lines: list[str], line_starts: list[int], continued: frozenset[int]
    ) -> list[_Block]:
        """Every class/def header with its body range and enclosing block."""
        blocks: list[_Block] = []
        stack: list[_Block] = []
        for match in _BLOCK_RE.finditer(code):
            block = self._header(code, lines, line_starts, continued, match)
            if block is None:
                continue
            while stack and not (stack[-1].contains(block.header_line) and stack[-1].indent < block.indent):
                stack.pop()
            block.parent = stack[-1] if stack else None
            blocks.append(block)
            stack.append(block)
        return blocks

    def _header(
        self,
        code: str,
        lines: list[str],
        line_starts: list[int],
        continued: frozenset[int],
        match: re.Match,
    ) -> Optional[_Block]:
        keyword = " ".join(match.group("keyword").split())
        pos = match.end()
        block = _Block(
            keyword=keyword,
            name=match.group("name"),
            indent=indent_width(match.group("indent")),
            start=match.start("keyword"),
            header_line=bisect.bisect_right(line_starts, match.start()) - 1,
            body_start=0,
            body_end=0,
        )
        pos = skip_ws(code, pos)
        if pos < len(code) and code[pos] == "[":
            end = read_balanced(code, pos)
            block.type_params = code[pos + 1 : end - 1]
            pos = skip_ws(code, end)
        if pos < len(code) and code[pos] == "(":
            end = read_balanced(code, pos)
            if block.is_class:
                block.bases = (pos + 1, end - 1)
            else:
                block.params = (pos + 1, end - 1)
            pos = skip_ws(code, end)
        elif not block.is_class:
            return None
        if not block.is_class and code.startswith("->", pos):
            colon = find_top_level(code, ":", pos + 2)
            if colon < 0:
                return None
            block.returns = (pos + 2, colon)
            pos = colon
        if pos >= len(code) or code[pos] != ":":
            return None
        colon_line = bisect.bisect_right(line_starts, pos) - 1
        block.body_start = colon_line + 1
        block.body_end = find_indented_body(lines, block.indent, colon_line + 1, continued)
        return block

    # ── Classes ────────────────────────────────────────────────

    def _parse_class(
        self,
        views: SourceViews,
        lines: list[str],
        line_starts: list[int],
        block: _Block,
        members: list[_Block],
        namespace: str,
        declaring: Optional[str],
        file_path: str,
    ) -> ClassInfo:
        decorators, run_start = annotation_run(views.code, block.start)
        decorator_text = views.code[run_start : block.start]

        info = ClassInfo(
            name=block.name,
            namespace=namespace,
            file_path=file_path,
            ecosystem=self.ecosystem,
            attributes=decorators,
            type_parameters=type_parameter_names(block.type_params),
            declaring_type=declaring,
        )
        frozen = re.search(r"\bfrozen\s*=\s*True\b", decorator_text) is not None
        self._apply_bases(info, views, block)
        if (info.base_type or "").rsplit(".", 1)[-1] == "NamedTuple":
            frozen = True

        member_starts = {b.header_line: b for b in members}
        direct_indent = self._direct_indent(lines, block)
        abstract_methods = False

        line = block.body_start
        while line < block.body_end:
            text = lines[line]
            if not text.strip() or indent_width(text) != direct_indent:
                line += 1
                continue
            start = line_starts[line] + indent_width(text)
            end = self._statement_end(views.code, start)
            member = member_starts.get(line)

            if member is not None and not member.is_class:
                abstract_methods |= self._parse_def(info, views, lines, line_starts, member)
                line = max(member.body_end, line + 1)
                continue
            if member is not None:
                line = max(member.body_end, line + 1)
                continue

            prop = self._annotated_property(views, start, end, frozen)
            if prop is not None and not any(p.name == prop.name for p in info.properties):
                info.properties.append(prop)
            line = bisect.bisect_right(line_starts, end)

        if abstract_methods:
            info.flags["is_abstract"] = True
        return info

    def _apply_bases(self, info: ClassInfo, views: SourceViews, block: _Block) -> None:
        bases: list[str] = []
        abstract = False
        if block.bases is not None:
            for s, e in split_top_level_spans(views.code[block.bases[0] : block.bases[1]], offset=block.bases[0]):
                text = views.text(s, e)
                if "=" in text:
                    keyword, _, value = text.partition("=")
                    if keyword.strip() == "metaclass" and value.strip().rsplit(".", 1)[-1] == "ABCMeta":
                        abstract = True
                    continue
                bases.append(text)

        heads = [split_generic(b, "[", "]")[0].rsplit(".", 1)[-1] for b in bases]
        protocol = "Protocol" in heads
        enum = any(h in _ENUM_BASES for h in heads)
        for base, head in zip(bases, heads):
            if head in ("Generic", "Protocol") and not info.type_parameters:
                info.type_parameters = type_parameter_names(", ".join(split_generic(base, "[", "]")[1]))

        if protocol:
            info.kind = "interface"
            info.interfaces = [b for b, h in zip(bases, heads) if h != "Protocol"]
        else:
            rest = [b for b, h in zip(bases, heads) if h not in ("Generic", "object")]
            info.base_type = rest[0] if rest else None
            info.interfaces = rest[1:]
        if enum:
            info.kind = "enum"
        info.flags = {
            "is_abstract": abstract or "ABC" in heads,
            "is_enum": enum,
            "is_interface": protocol,
        }

    @staticmethod
    def _direct_indent(lines: list[str], block: _Block) -> int:
        for index in range(block.body_start, block.body_end):
            if lines[index].strip():
                return indent_width(lines[index])
        return -1

    @staticmethod
    def _statement_end(code: str, start: int) -> int:
        """Offset of the newline ending the logical line starting at ``start``."""
        depth = 0
        k = start
        n = len(code)
        while k < n:
            ch = code[k]
            if ch in "([{":
                depth += 1
            elif ch in ")]}":
                depth = max(0, depth - 1)
            elif ch == "\n" and depth == 0 and not code[start:k].rstrip(" \t\r").endswith("\\"):
                return k
            k += 1
        return n

    def _annotated_property(
        self, views: SourceViews, start: int, end: int, frozen: bool
    ) -> Optional[DiscoveredProperty]:
        match = _ANNOTATION_RE.match(views.code, start, end)
        if match is None or match.group("name") in _KEYWORDS:
            return None
        type_start = match.end()
        equals = find_top_level(views.code, "=", type_start, end)
        type_text = views.text(type_start, end if equals < 0 else equals)
        if not type_text:
            return None
        head, args = split_generic(type_text, "[", "]")
        head = head.rsplit(".", 1)[-1]
        if head == "ClassVar":
            return None
        read_only = frozen
        if head == "Final":
            read_only = True
            type_text = args[0].strip() if args else "Any"
        return self._property(match.group("name"), type_text, read_only)

    @staticmethod
    def _property(name: str, type_text: str, read_only: bool) -> DiscoveredProperty:
        is_collection, element = python_collection_info(type_text)
        return DiscoveredProperty(
            name=name,
            type=type_text,
            is_nullable=is_nullable(type_text),
            is_collection=is_collection,
            collection_element_type=element,
            is_read_only=read_only,
            is_public=not name.startswith("_"),
        )

    # ── Methods ────────────────────────────────────────────────

    def _parse_def(
        self,
        info: ClassInfo,
        views: SourceViews,
        lines: list[str],
        line_starts: list[int],
        block: _Block,
    ) -> bool:
        """Add a def to ``info``; returns True when it is an abstract method."""
        decorators = annotation_run(views.code, block.start)[0]
        name = block.name
        abstract = "abstractmethod" in decorators

        if name == "__init__":
            self._init_properties(info, views, line_starts, block)
            return abstract
        if name.startswith("__") and name.endswith("__"):
            return abstract
        if any(d in _SKIPPED_DECORATORS for d in decorators):
            return abstract

        return_type = views.text(*block.returns) if block.returns else "Any"

        if "setter" in decorators:
            for prop in info.properties:
                if prop.name == name:
                    prop.is_read_only = False
            return abstract
        if any(d in _PROPERTY_DECORATORS for d in decorators):
            if not any(p.name == name for p in info.properties):
                prop = self._property(name, return_type, True)
                prop.attributes = [d for d in decorators if d not in _PROPERTY_DECORATORS]
                info.properties.append(prop)
            return abstract

        parameters = self._parameters(views, block, drop_receiver=True)
        if parameters is None:
            return abstract
        method = DiscoveredMethod(
            name=name,
            return_type=return_type,
            is_async=block.is_async,
            is_public=not name.startswith("_"),
            parameters=parameters,
            attributes=list(decorators),
        )

        # typing.overload stubs stand in only until the implementation appears
        existing = next((i for i, m in enumerate(info.methods) if m.name == name), None)
        if "overload" in decorators:
            if existing is None:
                info.methods.append(method)
        elif existing is not None and "overload" in info.methods[existing].attributes:
            info.methods[existing] = method
        else:
            info.methods.append(method)
        return abstract

    def _parameters(
        self, views: SourceViews, block: _Block, drop_receiver: bool
    ) -> Optional[list[DiscoveredParameter]]:
        parameters: list[DiscoveredParameter] = []
        if block.params is None:
            return parameters
        spans = split_top_level_spans(views.code[block.params[0] : block.params[1]], offset=block.params[0])
        for index, (s, e) in enumerate(spans):
            parameter = self._parameter(views, s, e)
            if parameter is False:
                continue
            if parameter is None:
                return None
            if index == 0 and drop_receiver and parameter.name in ("self", "cls"):
                continue
            parameters.append(parameter)
        return parameters

    @staticmethod
    def _parameter(views: SourceViews, start: int, end: int):
        """Parse one parameter; False for ``/`` and bare ``*`` markers, None if unparseable."""
        code = views.code
        if code[start:end].strip() in ("/", "*"):
            return False
        pos = skip_ws(code, start)
        stars = 0
        while pos < end and code[pos] == "*":
            stars += 1
            pos += 1
        pos = skip_ws(code, pos)
        match = _NAME_RE.match(code, pos, end)
        if match is None or stars > 2:
            return None
        pos = skip_ws(code, match.end())

        equals = find_top_level(code, "=", pos, end)
        type_text = "Any"
        if pos < end and code[pos] == ":":
            type_text = views.text(pos + 1, end if equals < 0 else equals) or "Any"
        elif pos < end and code[pos] != "=":
            return None
        has_default = equals >= 0
        default_none = has_default and views.text(equals + 1, end) == "None"

        if stars == 1:
            type_text = f"tuple[{type_text}, ...]"
        elif stars == 2:
            type_text = f"dict[str, {type_text}]"
        return DiscoveredParameter(
            name=match.group(0),
            type=type_text,
            is_nullable=is_nullable(type_text) or default_none,
            has_default_value=has_default,
        )

    def _init_properties(
        self, info: ClassInfo, views: SourceViews, line_starts: list[int], block: _Block
    ) -> None:
        """Properties assigned on ``self`` inside ``__init__``."""
        parameters = {p.name: p for p in (self._parameters(views, block, drop_receiver=True) or [])}
        start = line_starts[block.body_start] if block.body_start < len(line_starts) else len(views.code)
        end = line_starts[block.body_end] if block.body_end < len(line_starts) else len(views.code)

        for match in _SELF_ASSIGN_RE.finditer(views.code, start, end):
            name = match.group("name")
            if any(p.name == name for p in info.properties):
                continue
            if match.group("type"):
                type_text = views.text(match.start("type"), match.end("type"))
            else:
                line_end = views.code.find("\n", match.end())
                value = views.code[match.end() : line_end if line_end >= 0 else end].strip()
                source = parameters.get(value)
                type_text = source.type if source is not None else "Any"
            info.properties.append(self._property(name, type_text, False))
