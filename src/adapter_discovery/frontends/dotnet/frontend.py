"""Compiled .NET assemblies as ClassInfo records."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ...models import DiscoveredMethod, DiscoveredParameter, DiscoveredProperty
from ...scanning.languages import ECOSYSTEMS
from ...scanning.syntax import ClassInfo
from ..common import collection_info, simple_type_name
from .metadata import (
    PARAM_OUT,
    TYPE_ABSTRACT,
    TYPE_INTERFACE,
    TYPE_SEALED,
    MethodRecord,
    PropertyRecord,
    TypeRecord,
    load_assembly,
)
from .signatures import DecodedType, simple_name

ASYNC_TYPES = frozenset({"Task", "ValueTask"})
COLLECTION_TYPES = frozenset(
    {
        "IEnumerable",
        "ICollection",
        "IList",
        "IReadOnlyCollection",
        "IReadOnlyList",
        "ISet",
        "IReadOnlySet",
        "List",
        "HashSet",
        "SortedSet",
        "LinkedList",
        "Queue",
        "Stack",
        "Collection",
        "ReadOnlyCollection",
        "ObservableCollection",
        "ImmutableArray",
        "ImmutableList",
        "ImmutableHashSet",
    }
)
INIT_ONLY = "System.Runtime.CompilerServices.IsExternalInit"

_IMPLICIT_BASES = frozenset({"System.Object", "System.ValueType", "System.Enum"})
_DELEGATE_BASES = frozenset({"System.MulticastDelegate", "System.Delegate"})


def _display_base(name: str) -> str:
    """``System.Collections.Generic.List`1`` -> ``List``; rendered generics pass through."""
    if "<" in name:
        return name
    return simple_name(name.rsplit(".", 1)[-1])


def _is_compiler_generated(record: TypeRecord) -> bool:
    return record.name.startswith("<") or "CompilerGenerated" in record.attributes


class AssemblyFrontEnd:
    """Reads public types out of compiled assemblies."""

    ecosystem = "csharp"
    extensions = ECOSYSTEMS["csharp"].extensions

    def parse_assembly(self, path: Path) -> list[ClassInfo]:
        """Raises ArtifactLoadError if ``path`` is not a .NET assembly."""
        return self.build(load_assembly(path), str(path))

    def build(self, records: list[TypeRecord], file_path: str) -> list[ClassInfo]:
        classes = []
        for record in records:
            if record.name == "<Module>" or _is_compiler_generated(record) or not record.is_public:
                continue
            if record.extends in _DELEGATE_BASES:
                continue
            classes.append(self._class(record, file_path))
        return classes

    def _class(self, record: TypeRecord, file_path: str) -> ClassInfo:
        chain: list[TypeRecord] = []
        outer = record.enclosing
        while outer is not None:
            chain.insert(0, outer)
            outer = outer.enclosing
        top = chain[0] if chain else record
        namespace = top.namespace

        nested_name = "+".join([t.name for t in chain] + [record.name])
        full_name = f"{namespace}.{nested_name}" if namespace else nested_name
        declaring = "+".join(simple_name(t.name) for t in chain) or None

        flags = record.flags
        interface = bool(flags & TYPE_INTERFACE)
        enum = record.extends == "System.Enum"
        struct = record.extends == "System.ValueType"
        is_record = any(m.name == "<Clone>$" for m in record.methods) or (
            struct and any(m.name == "PrintMembers" for m in record.methods)
        )
        static = bool(flags & TYPE_ABSTRACT) and bool(flags & TYPE_SEALED) and not interface

        if interface:
            kind = "interface"
        elif enum:
            kind = "enum"
        elif is_record:
            kind = "record"
        elif struct:
            kind = "struct"
        else:
            kind = "class"

        info = ClassInfo(
            name=simple_name(record.name),
            namespace=namespace,
            file_path=file_path,
            ecosystem=self.ecosystem,
            kind=kind,
            attributes=list(record.attributes),
            base_type=None
            if record.extends is None or record.extends in _IMPLICIT_BASES
            else _display_base(record.extends),
            interfaces=[_display_base(i) for i in record.interfaces],
            type_parameters=list(record.generic_params),
            flags={
                "is_abstract": bool(flags & TYPE_ABSTRACT) and not interface and not static,
                "is_sealed": bool(flags & TYPE_SEALED) and not static,
                "is_static": static,
                "is_enum": enum,
                "is_interface": interface,
            },
            declaring_type=declaring,
            full_name=full_name,
        )
        if enum:
            return info

        for prop in record.properties:
            converted = self._property(prop)
            if converted is not None:
                info.properties.append(converted)
        for method in record.methods:
            converted = self._method(method)
            if converted is not None:
                info.methods.append(converted)
        return info

    @staticmethod
    def _property(prop: PropertyRecord) -> Optional[DiscoveredProperty]:
        accessor = prop.getter or prop.setter
        if accessor is None or accessor.is_static:
            return None
        getter_public = prop.getter is not None and prop.getter.is_public
        setter_public = prop.setter is not None and prop.setter.is_public
        # init-only setters carry modreq(IsExternalInit) on their void return
        init_only = prop.setter is not None and INIT_ONLY in prop.setter.return_type.modreqs

        is_collection, element = _collection(prop.type)
        return DiscoveredProperty(
            name=prop.name,
            type=prop.type.text,
            is_nullable=prop.type.is_nullable,
            is_collection=is_collection,
            collection_element_type=element,
            is_read_only=not setter_public or init_only,
            is_public=getter_public or setter_public,
            attributes=list(prop.attributes),
        )

    @staticmethod
    def _method(method: MethodRecord) -> Optional[DiscoveredMethod]:
        if not method.is_public or method.is_static or method.is_special_name:
            return None
        if method.name.startswith("<"):
            return None
        parameters = [
            DiscoveredParameter(
                name=param.name,
                type=_parameter_text(param.type, param.flags),
                is_nullable=param.type.is_nullable,
                has_default_value=param.has_default,
                default_value=param.default_value,
            )
            for param in method.parameters
        ]
        return_type = method.return_type.text
        return DiscoveredMethod(
            name=method.name,
            return_type=return_type,
            is_async=simple_type_name(return_type) in ASYNC_TYPES or "AsyncStateMachine" in method.attributes,
            is_public=True,
            parameters=parameters,
            attributes=list(method.attributes),
        )


def _parameter_text(decoded: DecodedType, flags: int) -> str:
    if not decoded.is_byref:
        return decoded.text
    return f"{'out' if flags & PARAM_OUT else 'ref'} {decoded.text}"


def _collection(decoded: DecodedType) -> tuple[bool, Optional[str]]:
    if decoded.element_type is not None:
        return True, decoded.element_type
    if decoded.text == "string":
        return False, None
    return collection_info(decoded.text, COLLECTION_TYPES)
