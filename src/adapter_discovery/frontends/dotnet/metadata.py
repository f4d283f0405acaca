"""Read type definitions out of compiled .NET assemblies.

``dnfile`` parses the PE file and the metadata tables; this module walks the
tables it needs (TypeDef, MethodDef, Param, Property and friends) and turns
them into plain records so nothing above it depends on dnfile's row types.
"""

from __future__ import annotations

import fnmatch
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import dnfile

from ...exceptions import ArtifactLoadError
from ...logging_config import get_logger
from .signatures import (
    TYPEDEF,
    TYPEREF,
    DecodedType,
    SignatureError,
    SignatureReader,
    decode_constant,
    decode_method,
    decode_property,
)

logger = get_logger(__name__)

# MethodSemantics.Semantics
SEMANTICS_SETTER = 0x0001
SEMANTICS_GETTER = 0x0002

# Param.Flags
PARAM_IN = 0x0001
PARAM_OUT = 0x0002
PARAM_OPTIONAL = 0x0010
PARAM_HAS_DEFAULT = 0x1000

# MethodDef.Flags
METHOD_ACCESS_MASK = 0x0007
METHOD_PUBLIC = 0x0006
METHOD_STATIC = 0x0010
METHOD_ABSTRACT = 0x0400
METHOD_SPECIAL_NAME = 0x0800

# TypeDef.Flags
TYPE_VISIBILITY_MASK = 0x0007
TYPE_PUBLIC = 0x0001
TYPE_NESTED_PUBLIC = 0x0002
TYPE_INTERFACE = 0x0020
TYPE_ABSTRACT = 0x0080
TYPE_SEALED = 0x0100


@dataclass
class ParamRecord:
    name: str
    type: DecodedType
    flags: int = 0
    default_value: Any = None
    attributes: list[str] = field(default_factory=list)

    @property
    def has_default(self) -> bool:
        return bool(self.flags & PARAM_HAS_DEFAULT)


@dataclass
class MethodRecord:
    name: str
    flags: int
    return_type: DecodedType
    parameters: list[ParamRecord] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)
    generic_params: list[str] = field(default_factory=list)

    @property
    def is_public(self) -> bool:
        return self.flags & METHOD_ACCESS_MASK == METHOD_PUBLIC

    @property
    def is_static(self) -> bool:
        return bool(self.flags & METHOD_STATIC)

    @property
    def is_special_name(self) -> bool:
        return bool(self.flags & METHOD_SPECIAL_NAME)


@dataclass
class PropertyRecord:
    name: str
    type: DecodedType
    getter: Optional[MethodRecord] = None
    setter: Optional[MethodRecord] = None
    attributes: list[str] = field(default_factory=list)


@dataclass
class TypeRecord:
    """One TypeDef row with everything the front end reads from it."""

    name: str
    namespace: str
    flags: int
    extends: Optional[str] = None
    interfaces: list[str] = field(default_factory=list)
    generic_params: list[str] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)
    properties: list[PropertyRecord] = field(default_factory=list)
    methods: list[MethodRecord] = field(default_factory=list)
    enclosing: Optional[TypeRecord] = None

    @property
    def is_public(self) -> bool:
        visibility = self.flags & TYPE_VISIBILITY_MASK
        if self.enclosing is not None:
            return visibility == TYPE_NESTED_PUBLIC and self.enclosing.is_public
        return visibility == TYPE_PUBLIC


def _text(value: Any) -> str:
    """String heap values come back as heap items or plain str depending on version."""
    if value is None:
        return ""
    value = getattr(value, "value", value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _blob(value: Any) -> bytes:
    if value is None:
        return b""
    value = getattr(value, "value", value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise SignatureError(f"expected blob, got {type(value).__name__}")


def _raw(row: Any, column: str) -> int:
    """Raw integer column value, bypassing dnfile's enum wrappers."""
    struct = getattr(row, "struct", None)
    value = getattr(struct, column, None) if struct is not None else None
    if value is None:
        value = getattr(row, column, 0)
    return int(getattr(value, "value", value) or 0)


def _kind(row: Any) -> str:
    """Table name of a row object, e.g. ``TypeDef`` for a TypeDefRow."""
    name = type(row).__name__
    return name[:-3] if name.endswith("Row") else name


def _target(index: Any) -> tuple[str, int]:
    """(table, 1-based row) a table or coded index points at; ("", 0) for null."""
    if index is None:
        return "", 0
    row = getattr(index, "row", None)
    row_index = getattr(index, "row_index", 0) or 0
    if row is None or not row_index:
        return "", 0
    return _kind(row), row_index


def strip_attribute_suffix(name: str) -> str:
    if name.endswith("Attribute") and len(name) > len("Attribute"):
        return name[: -len("Attribute")]
    return name


class MetadataReader:
    """Wraps one loaded assembly's tables and resolves tokens against them."""

    def __init__(self, tables: Any):
        self._tables = tables
        self.type_defs = self._rows("TypeDef")
        self.type_refs = self._rows("TypeRef")
        self.type_specs = self._rows("TypeSpec")
        self.method_defs = self._rows("MethodDef")
        self.member_refs = self._rows("MemberRef")

        self._method_owner = self._owners()
        self._generic_params = self._collect_generic_params()
        self._attributes = self._collect_attributes()
        self._constants = self._collect_constants()
        self._semantics = self._collect_semantics()
        self._by_method: dict[int, MethodRecord] = {}

    def _rows(self, name: str) -> list:
        table = getattr(self._tables, name, None)
        if table is None:
            return []
        return list(getattr(table, "rows", None) or [])

    # ── Token resolution ───────────────────────────────────────

    def type_name(self, table: int, row: int) -> tuple[str, str]:
        rows = self.type_defs if table == TYPEDEF else self.type_refs if table == TYPEREF else []
        if not 0 < row <= len(rows):
            raise SignatureError(f"type token out of range: table {table}, row {row}")
        record = rows[row - 1]
        return _text(record.TypeNamespace), _text(record.TypeName)

    def type_spec(self, row: int) -> bytes:
        if not 0 < row <= len(self.type_specs):
            raise SignatureError(f"TypeSpec row out of range: {row}")
        return _blob(self.type_specs[row - 1].Signature)

    def coded_type_name(self, index: Any, type_params: Sequence[str] = ()) -> Optional[str]:
        """Display name of a TypeDefOrRef coded index."""
        table, row = _target(index)
        if table == "TypeDef":
            return self._display(*self.type_name(TYPEDEF, row))
        if table == "TypeRef":
            return self._display(*self.type_name(TYPEREF, row))
        if table == "TypeSpec":
            return SignatureReader(self.type_spec(row), self, type_params).read_type().text
        return None

    @staticmethod
    def _display(namespace: str, name: str) -> str:
        return f"{namespace}.{name}" if namespace else name

    # ── Table indexes ──────────────────────────────────────────

    def _owners(self) -> dict[int, int]:
        """MethodDef row -> owning TypeDef row."""
        owners: dict[int, int] = {}
        for type_index, row in enumerate(self.type_defs, 1):
            for method in getattr(row, "MethodList", None) or []:
                owners[getattr(method, "row_index", 0)] = type_index
        return owners

    def _collect_generic_params(self) -> dict[tuple[str, int], list[str]]:
        params: dict[tuple[str, int], list[tuple[int, str]]] = defaultdict(list)
        for row in self._rows("GenericParam"):
            try:
                params[_target(row.Owner)].append((_raw(row, "Number"), _text(row.Name)))
            except (AttributeError, ValueError) as e:
                logger.debug(f"Skipping generic parameter row: {e}")
        return {owner: [name for _, name in sorted(items)] for owner, items in params.items()}

    def _collect_attributes(self) -> dict[tuple[str, int], list[str]]:
        attributes: dict[tuple[str, int], list[str]] = defaultdict(list)
        for row in self._rows("CustomAttribute"):
            try:
                name = self._attribute_name(row.Type)
                parent = _target(row.Parent)
            except (SignatureError, AttributeError, IndexError, ValueError) as e:
                logger.debug(f"Skipping custom attribute row: {e}")
                continue
            if name:
                attributes[parent].append(strip_attribute_suffix(name))
        return attributes

    def _attribute_name(self, ctor: Any) -> Optional[str]:
        table, row = _target(ctor)
        if table == "MethodDef":
            owner = self._method_owner.get(row)
            if owner:
                return self.type_name(TYPEDEF, owner)[1]
            return None
        if table == "MemberRef":
            parent_table, parent_row = _target(self.member_refs[row - 1].Class)
            if parent_table == "TypeRef":
                return self.type_name(TYPEREF, parent_row)[1]
            if parent_table == "TypeDef":
                return self.type_name(TYPEDEF, parent_row)[1]
        return None

    def _collect_constants(self) -> dict[tuple[str, int], Any]:
        constants: dict[tuple[str, int], Any] = {}
        for row in self._rows("Constant"):
            try:
                constants[_target(row.Parent)] = decode_constant(_raw(row, "Type"), _blob(row.Value))
            except SignatureError as e:
                logger.debug(f"Undecodable constant: {e}")
        return constants

    # ── Records ────────────────────────────────────────────────

    def read_types(self, source: Path) -> list[TypeRecord]:
        """Every TypeDef as a TypeRecord, in table order.

        A type whose rows fail to decode is logged and left out; the rest of
        the assembly is still read.
        """
        records: dict[int, TypeRecord] = {}
        for index, row in enumerate(self.type_defs, 1):
            try:
                records[index] = self._type(index, row)
            except (SignatureError, AttributeError, IndexError, ValueError) as e:
                logger.warning(f"Cannot resolve type #{index} in {source}: {e}")

        for row in self._rows("NestedClass"):
            try:
                nested = records.get(_target(row.NestedClass)[1])
                enclosing = records.get(_target(row.EnclosingClass)[1])
            except (AttributeError, IndexError, ValueError) as e:
                logger.debug(f"Skipping nesting row in {source}: {e}")
                continue
            if nested is not None and enclosing is not None:
                nested.enclosing = enclosing

        for row in self._rows("InterfaceImpl"):
            try:
                record = records.get(_target(row.Class)[1])
                name = self.coded_type_name(row.Interface, record.generic_params) if record is not None else None
            except (SignatureError, AttributeError, IndexError, ValueError) as e:
                logger.warning(f"Cannot resolve an interface implementation in {source}: {e}")
                continue
            if name:
                record.interfaces.append(name)

        for row in self._rows("PropertyMap"):
            try:
                record = records.get(_target(row.Parent)[1])
            except (AttributeError, IndexError, ValueError) as e:
                logger.debug(f"Skipping property map row in {source}: {e}")
                continue
            if record is None:
                continue
            for prop in getattr(row, "PropertyList", None) or []:
                try:
                    record.properties.append(self._property(record, prop))
                except (SignatureError, AttributeError, IndexError, ValueError) as e:
                    logger.debug(f"Skipping property on {record.name}: {e}")

        return [records[k] for k in sorted(records)]

    def _type(self, index: int, row: Any) -> TypeRecord:
        generic_params = self._generic_params.get(("TypeDef", index), [])
        record = TypeRecord(
            name=_text(row.TypeName),
            namespace=_text(row.TypeNamespace),
            flags=_raw(row, "Flags"),
            extends=self.coded_type_name(row.Extends, generic_params),
            generic_params=generic_params,
            attributes=list(self._attributes.get(("TypeDef", index), [])),
        )
        methods: dict[int, MethodRecord] = {}
        for method in getattr(row, "MethodList", None) or []:
            method_index = getattr(method, "row_index", 0)
            try:
                methods[method_index] = self._method(method_index, method.row, generic_params)
            except (SignatureError, AttributeError, IndexError, ValueError) as e:
                logger.debug(f"Skipping method #{method_index} on {record.name}: {e}")
        record.methods = list(methods.values())
        self._by_method.update(methods)
        return record

    def _method(self, index: int, row: Any, type_params: list[str]) -> MethodRecord:
        method_params = self._generic_params.get(("MethodDef", index), [])
        signature = decode_method(_blob(row.Signature), self, type_params, method_params)

        names: dict[int, Any] = {}
        for param in getattr(row, "ParamList", None) or []:
            names[_raw(param.row, "Sequence")] = (getattr(param, "row_index", 0), param.row)

        parameters = []
        for position, decoded in enumerate(signature.parameters, 1):
            param_index, param_row = names.get(position, (0, None))
            key = ("Param", param_index)
            parameters.append(
                ParamRecord(
                    name=_text(param_row.Name) if param_row is not None else f"arg{position}",
                    type=decoded,
                    flags=_raw(param_row, "Flags") if param_row is not None else 0,
                    default_value=self._constants.get(key),
                    attributes=list(self._attributes.get(key, [])),
                )
            )
        return MethodRecord(
            name=_text(row.Name),
            flags=_raw(row, "Flags"),
            return_type=signature.return_type,
            parameters=parameters,
            attributes=list(self._attributes.get(("MethodDef", index), [])),
            generic_params=method_params,
        )

    def _property(self, owner: TypeRecord, index: Any) -> PropertyRecord:
        row_index = getattr(index, "row_index", 0)
        row = index.row
        record = PropertyRecord(
            name=_text(row.Name),
            type=decode_property(_blob(row.Type), self, owner.generic_params),
            attributes=list(self._attributes.get(("Property", row_index), [])),
        )
        for flags, method_index in self._semantics.get(row_index, []):
            method = self._by_method.get(method_index)
            if method is None:
                continue
            if flags & SEMANTICS_GETTER:
                record.getter = method
            elif flags & SEMANTICS_SETTER:
                record.setter = method
        return record

    def _collect_semantics(self) -> dict[int, list[tuple[int, int]]]:
        """Property row -> [(semantics flags, MethodDef row)]."""
        cache: dict[int, list[tuple[int, int]]] = defaultdict(list)
        for row in self._rows("MethodSemantics"):
            try:
                table, association = _target(row.Association)
                if table == "Property":
                    cache[association].append((_raw(row, "Semantics"), _target(row.Method)[1]))
            except (AttributeError, ValueError) as e:
                logger.debug(f"Skipping method semantics row: {e}")
        return cache


def load_assembly(path: Path) -> list[TypeRecord]:
    """Load one assembly and read its type definitions.

    Raises:
        ArtifactLoadError: If the file is not a loadable .NET assembly
    """
    try:
        pe = dnfile.dnPE(str(path))
    except Exception as e:
        raise ArtifactLoadError(path, str(e)) from e
    try:
        if pe.net is None or getattr(pe.net, "mdtables", None) is None:
            raise ArtifactLoadError(path, "no CLR metadata")
        return MetadataReader(pe.net.mdtables).read_types(path)
    finally:
        pe.close()


def find_assemblies(
    assembly_paths: list[Path],
    search_folders: list[Path],
    pattern: str,
    project_root: Optional[Path] = None,
) -> list[Path]:
    """Assemblies to load, explicit paths first, each reported once.

    Search folders are walked recursively and files are kept when their name
    matches the ``pattern`` glob. With no explicit paths and no folders,
    ``bin/Release`` and ``bin/Debug`` under ``project_root`` are searched the
    same way.
    """
    found: list[Path] = []
    seen: set[Path] = set()

    def add(path: Path) -> None:
        resolved = path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            found.append(resolved)

    for path in assembly_paths:
        if path.is_file():
            add(path)
        else:
            logger.warning(f"Assembly not found, skipping: {path}")

    folders = [(folder, True) for folder in search_folders]
    if not assembly_paths and not search_folders and project_root is not None:
        folders = [(project_root / "bin" / "Release", False), (project_root / "bin" / "Debug", False)]

    for folder, configured in folders:
        if not folder.is_dir():
            if configured:
                logger.warning(f"Assembly search folder does not exist, skipping: {folder}")
            continue
        for candidate in sorted(folder.rglob("*")):
            if candidate.is_file() and fnmatch.fnmatch(candidate.name, pattern):
                add(candidate)
    return found
