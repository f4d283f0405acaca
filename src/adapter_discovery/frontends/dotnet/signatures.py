"""ECMA-335 signature and constant blob decoding.

Signatures are rendered as C# would write them: ``int``, ``string``,
``List<Order>``, ``int?`` for ``Nullable<int>``, ``byte[]``. Type tokens
inside a blob are resolved through a :class:`TypeResolver`, so this module
never touches the metadata tables itself.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

# Element types (ECMA-335 II.23.1.16)
ELEMENT_TYPE_VOID = 0x01
ELEMENT_TYPE_BOOLEAN = 0x02
ELEMENT_TYPE_CHAR = 0x03
ELEMENT_TYPE_I1 = 0x04
ELEMENT_TYPE_U1 = 0x05
ELEMENT_TYPE_I2 = 0x06
ELEMENT_TYPE_U2 = 0x07
ELEMENT_TYPE_I4 = 0x08
ELEMENT_TYPE_U4 = 0x09
ELEMENT_TYPE_I8 = 0x0A
ELEMENT_TYPE_U8 = 0x0B
ELEMENT_TYPE_R4 = 0x0C
ELEMENT_TYPE_R8 = 0x0D
ELEMENT_TYPE_STRING = 0x0E
ELEMENT_TYPE_PTR = 0x0F
ELEMENT_TYPE_BYREF = 0x10
ELEMENT_TYPE_VALUETYPE = 0x11
ELEMENT_TYPE_CLASS = 0x12
ELEMENT_TYPE_VAR = 0x13
ELEMENT_TYPE_ARRAY = 0x14
ELEMENT_TYPE_GENERICINST = 0x15
ELEMENT_TYPE_TYPEDBYREF = 0x16
ELEMENT_TYPE_I = 0x18
ELEMENT_TYPE_U = 0x19
ELEMENT_TYPE_FNPTR = 0x1B
ELEMENT_TYPE_OBJECT = 0x1C
ELEMENT_TYPE_SZARRAY = 0x1D
ELEMENT_TYPE_MVAR = 0x1E
ELEMENT_TYPE_CMOD_REQD = 0x1F
ELEMENT_TYPE_CMOD_OPT = 0x20
ELEMENT_TYPE_SENTINEL = 0x41
ELEMENT_TYPE_PINNED = 0x45

# Calling convention bits
SIG_GENERIC = 0x10
SIG_HASTHIS = 0x20
SIG_PROPERTY = 0x08

# TypeDefOrRef coded index tags
TYPEDEF = 0
TYPEREF = 1
TYPESPEC = 2

PRIMITIVES = {
    ELEMENT_TYPE_VOID: ("void", True),
    ELEMENT_TYPE_BOOLEAN: ("bool", True),
    ELEMENT_TYPE_CHAR: ("char", True),
    ELEMENT_TYPE_I1: ("sbyte", True),
    ELEMENT_TYPE_U1: ("byte", True),
    ELEMENT_TYPE_I2: ("short", True),
    ELEMENT_TYPE_U2: ("ushort", True),
    ELEMENT_TYPE_I4: ("int", True),
    ELEMENT_TYPE_U4: ("uint", True),
    ELEMENT_TYPE_I8: ("long", True),
    ELEMENT_TYPE_U8: ("ulong", True),
    ELEMENT_TYPE_R4: ("float", True),
    ELEMENT_TYPE_R8: ("double", True),
    ELEMENT_TYPE_STRING: ("string", False),
    ELEMENT_TYPE_I: ("nint", True),
    ELEMENT_TYPE_U: ("nuint", True),
    ELEMENT_TYPE_OBJECT: ("object", False),
    ELEMENT_TYPE_TYPEDBYREF: ("TypedReference", True),
}

# System types written with their C# keyword when they appear as tokens.
ALIASES = {
    "System.Boolean": "bool",
    "System.Char": "char",
    "System.SByte": "sbyte",
    "System.Byte": "byte",
    "System.Int16": "short",
    "System.UInt16": "ushort",
    "System.Int32": "int",
    "System.UInt32": "uint",
    "System.Int64": "long",
    "System.UInt64": "ulong",
    "System.Single": "float",
    "System.Double": "double",
    "System.Decimal": "decimal",
    "System.String": "string",
    "System.Object": "object",
    "System.Void": "void",
}


class SignatureError(ValueError):
    """Raised when a blob does not decode as the expected signature."""


class TypeResolver(Protocol):
    """Resolves type tokens found inside signature blobs."""

    def type_name(self, table: int, row: int) -> tuple[str, str]:
        """(namespace, name) of a TypeDef (table 0) or TypeRef (table 1) row."""
        ...

    def type_spec(self, row: int) -> bytes:
        """Signature blob of a TypeSpec row."""
        ...


@dataclass
class DecodedType:
    """A type from a signature, rendered as C# text."""

    text: str
    is_value_type: bool = False
    is_nullable: bool = False
    is_byref: bool = False
    modreqs: tuple[str, ...] = ()
    element_type: Optional[str] = None  # array element


@dataclass
class MethodSignature:
    has_this: bool
    generic_count: int
    return_type: DecodedType
    parameters: list[DecodedType] = field(default_factory=list)


def simple_name(name: str) -> str:
    """Drop the generic arity suffix: ``List`1`` -> ``List``."""
    return name.split("`", 1)[0]


class SignatureReader:
    """Cursor over one signature blob."""

    def __init__(
        self,
        data: bytes,
        resolver: TypeResolver,
        type_params: Sequence[str] = (),
        method_params: Sequence[str] = (),
    ):
        self.data = bytes(data)
        self.pos = 0
        self.resolver = resolver
        self.type_params = list(type_params)
        self.method_params = list(method_params)

    # ── Primitives ─────────────────────────────────────────────

    def byte(self) -> int:
        if self.pos >= len(self.data):
            raise SignatureError("unexpected end of signature")
        value = self.data[self.pos]
        self.pos += 1
        return value

    def compressed(self) -> int:
        """Compressed unsigned integer (ECMA-335 II.23.2)."""
        b0 = self.byte()
        if b0 & 0x80 == 0:
            return b0
        if b0 & 0xC0 == 0x80:
            return ((b0 & 0x3F) << 8) | self.byte()
        if b0 & 0xE0 == 0xC0:
            return ((b0 & 0x1F) << 24) | (self.byte() << 16) | (self.byte() << 8) | self.byte()
        raise SignatureError(f"bad compressed integer lead byte 0x{b0:02x}")

    def type_token(self) -> tuple[int, int]:
        coded = self.compressed()
        return coded & 0x3, coded >> 2

    # ── Types ──────────────────────────────────────────────────

    def custom_mods(self) -> tuple[str, ...]:
        """Skip custom modifiers, returning the names of required ones."""
        required = []
        while self.pos < len(self.data) and self.data[self.pos] in (ELEMENT_TYPE_CMOD_REQD, ELEMENT_TYPE_CMOD_OPT):
            kind = self.byte()
            namespace, name = self._token_name(*self.type_token())
            if kind == ELEMENT_TYPE_CMOD_REQD:
                required.append(f"{namespace}.{name}" if namespace else name)
        return tuple(required)

    def read_type(self) -> DecodedType:
        et = self.byte()
        if et in PRIMITIVES:
            text, value_type = PRIMITIVES[et]
            return DecodedType(text, is_value_type=value_type, is_nullable=not value_type)

        if et in (ELEMENT_TYPE_CLASS, ELEMENT_TYPE_VALUETYPE):
            return self._named(*self.type_token(), value_type=et == ELEMENT_TYPE_VALUETYPE)

        if et == ELEMENT_TYPE_GENERICINST:
            kind = self.byte()
            table, row = self.type_token()
            args = [self.read_type() for _ in range(self.compressed())]
            return self._generic(table, row, args, value_type=kind == ELEMENT_TYPE_VALUETYPE)

        if et == ELEMENT_TYPE_SZARRAY:
            self.custom_mods()
            element = self.read_type()
            return DecodedType(f"{element.text}[]", is_nullable=True, element_type=element.text)

        if et == ELEMENT_TYPE_ARRAY:
            element = self.read_type()
            rank = self.compressed()
            for _ in range(self.compressed()):
                self.compressed()
            for _ in range(self.compressed()):
                self.compressed()
            commas = "," * max(rank - 1, 0)
            return DecodedType(f"{element.text}[{commas}]", is_nullable=True, element_type=element.text)

        if et in (ELEMENT_TYPE_VAR, ELEMENT_TYPE_MVAR):
            number = self.compressed()
            names = self.type_params if et == ELEMENT_TYPE_VAR else self.method_params
            text = names[number] if number < len(names) else f"T{number}"
            return DecodedType(text, is_nullable=True)

        if et == ELEMENT_TYPE_PTR:
            self.custom_mods()
            inner = self.read_type()
            return DecodedType(f"{inner.text}*", is_value_type=True)

        if et == ELEMENT_TYPE_BYREF:
            inner = self.read_type()
            inner.is_byref = True
            return inner

        if et == ELEMENT_TYPE_FNPTR:
            self.read_method()
            return DecodedType("IntPtr", is_value_type=True)

        if et in (ELEMENT_TYPE_CMOD_REQD, ELEMENT_TYPE_CMOD_OPT):
            self.pos -= 1
            mods = self.custom_mods()
            inner = self.read_type()
            inner.modreqs = mods + inner.modreqs
            return inner

        if et == ELEMENT_TYPE_PINNED:
            return self.read_type()

        raise SignatureError(f"unsupported element type 0x{et:02x}")

    def _token_name(self, table: int, row: int) -> tuple[str, str]:
        if table == TYPESPEC:
            spec = SignatureReader(self.resolver.type_spec(row), self.resolver, self.type_params, self.method_params)
            return "", spec.read_type().text
        return self.resolver.type_name(table, row)

    def _named(self, table: int, row: int, value_type: bool) -> DecodedType:
        if table == TYPESPEC:
            spec = SignatureReader(self.resolver.type_spec(row), self.resolver, self.type_params, self.method_params)
            return spec.read_type()
        namespace, name = self.resolver.type_name(table, row)
        qualified = f"{namespace}.{name}" if namespace else name
        text = ALIASES.get(qualified, simple_name(name))
        return DecodedType(text, is_value_type=value_type, is_nullable=not value_type)

    def _generic(self, table: int, row: int, args: list[DecodedType], value_type: bool) -> DecodedType:
        namespace, name = self._token_name(table, row)
        if namespace == "System" and simple_name(name) == "Nullable" and len(args) == 1:
            return DecodedType(f"{args[0].text}?", is_value_type=True, is_nullable=True)
        text = f"{simple_name(name)}<{', '.join(a.text for a in args)}>"
        return DecodedType(text, is_value_type=value_type, is_nullable=not value_type)

    # ── Signatures ─────────────────────────────────────────────

    def read_param(self) -> DecodedType:
        mods = self.custom_mods()
        decoded = self.read_type()
        decoded.modreqs = mods + decoded.modreqs
        return decoded

    def read_method(self) -> MethodSignature:
        conv = self.byte()
        generic_count = self.compressed() if conv & SIG_GENERIC else 0
        count = self.compressed()
        return_type = self.read_param()
        parameters = []
        for _ in range(count):
            if self.pos < len(self.data) and self.data[self.pos] == ELEMENT_TYPE_SENTINEL:
                self.pos += 1
            parameters.append(self.read_param())
        return MethodSignature(bool(conv & SIG_HASTHIS), generic_count, return_type, parameters)

    def read_property(self) -> DecodedType:
        conv = self.byte()
        if not conv & SIG_PROPERTY:
            raise SignatureError(f"not a property signature (0x{conv:02x})")
        count = self.compressed()
        decoded = self.read_param()
        for _ in range(count):
            self.read_param()
        return decoded


def decode_method(data: bytes, resolver: TypeResolver, type_params=(), method_params=()) -> MethodSignature:
    return SignatureReader(data, resolver, type_params, method_params).read_method()


def decode_property(data: bytes, resolver: TypeResolver, type_params=()) -> DecodedType:
    return SignatureReader(data, resolver, type_params).read_property()


_CONSTANT_FORMATS = {
    ELEMENT_TYPE_I1: "<b",
    ELEMENT_TYPE_U1: "<B",
    ELEMENT_TYPE_I2: "<h",
    ELEMENT_TYPE_U2: "<H",
    ELEMENT_TYPE_I4: "<i",
    ELEMENT_TYPE_U4: "<I",
    ELEMENT_TYPE_I8: "<q",
    ELEMENT_TYPE_U8: "<Q",
    ELEMENT_TYPE_R4: "<f",
    ELEMENT_TYPE_R8: "<d",
}


def decode_constant(element_type: int, data: bytes) -> Any:
    """Value of a Constant table blob.

    Null references (``ELEMENT_TYPE_CLASS``) decode to None.
    """
    data = bytes(data)
    if element_type == ELEMENT_TYPE_BOOLEAN:
        return bool(data[0]) if data else False
    if element_type == ELEMENT_TYPE_CHAR:
        return data[:2].decode("utf-16-le") if len(data) >= 2 else ""
    if element_type == ELEMENT_TYPE_STRING:
        return data.decode("utf-16-le", errors="replace")
    if element_type == ELEMENT_TYPE_CLASS:
        return None
    fmt = _CONSTANT_FORMATS.get(element_type)
    if fmt is None:
        raise SignatureError(f"unsupported constant type 0x{element_type:02x}")
    try:
        return struct.unpack(fmt, data[: struct.calcsize(fmt)])[0]
    except struct.error as e:
        raise SignatureError(f"truncated constant: {e}") from e
