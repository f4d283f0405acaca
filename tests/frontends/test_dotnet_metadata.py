"""Tests for frontends/dotnet/metadata.py - assembly tables and discovery of files."""

import struct
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any

import pytest

from adapter_discovery.exceptions import ArtifactLoadError
from adapter_discovery.frontends.dotnet import AssemblyFrontEnd, find_assemblies, load_assembly
from adapter_discovery.frontends.dotnet.metadata import (
    TYPE_NESTED_PUBLIC,
    TYPE_PUBLIC,
    MetadataReader,
    TypeRecord,
    strip_attribute_suffix,
)


class _Row:
    def __init__(self, **columns):
        self.__dict__.update(columns)


class TypeDefRow(_Row):
    pass


class TypeRefRow(_Row):
    pass


class MethodDefRow(_Row):
    pass


class ParamRow(_Row):
    pass


class PropertyRow(_Row):
    pass


class MemberRefRow(_Row):
    pass


class PropertyMapRow(_Row):
    pass


class MethodSemanticsRow(_Row):
    pass


class CustomAttributeRow(_Row):
    pass


class ConstantRow(_Row):
    pass


class InterfaceImplRow(_Row):
    pass


class NestedClassRow(_Row):
    pass


class TypeSpecRow(_Row):
    pass


@dataclass
class Ref:
    """A table or coded index: the row it points at and its 1-based position."""

    row: Any
    row_index: int


def _table(*rows):
    return SimpleNamespace(rows=list(rows))


@pytest.fixture
def tables():
    """An assembly with one public class ``Acme.Order``.

    It carries ``[GenerateAdapter]``, a ``string Name { get; }`` property and
    ``void Save(int count = 5)``.
    """
    object_ref = TypeRefRow(TypeNamespace="System", TypeName="Object")
    attribute_ref = TypeRefRow(TypeNamespace="Acme.Annotations", TypeName="GenerateAdapterAttribute")

    count_param = ParamRow(Sequence=1, Name="count", Flags=0x1000)
    get_name = MethodDefRow(Name="get_Name", Flags=0x0806, Signature=bytes([0x20, 0, 0x0E]), ParamList=[])
    save = MethodDefRow(
        Name="Save",
        Flags=0x0006,
        Signature=bytes([0x20, 1, 0x01, 0x08]),
        ParamList=[Ref(count_param, 1)],
    )

    module = TypeDefRow(TypeName="<Module>", TypeNamespace="", Flags=0, Extends=None, MethodList=[])
    order = TypeDefRow(
        TypeName="Order",
        TypeNamespace="Acme",
        Flags=TYPE_PUBLIC,
        Extends=Ref(object_ref, 1),
        MethodList=[Ref(get_name, 1), Ref(save, 2)],
    )

    name_prop = PropertyRow(Name="Name", Type=bytes([0x28, 0, 0x0E]))
    ctor = MemberRefRow(Class=Ref(attribute_ref, 2), Name=".ctor")

    return SimpleNamespace(
        TypeRef=_table(object_ref, attribute_ref),
        TypeDef=_table(module, order),
        MethodDef=_table(get_name, save),
        Param=_table(count_param),
        Property=_table(name_prop),
        PropertyMap=_table(PropertyMapRow(Parent=Ref(order, 2), PropertyList=[Ref(name_prop, 1)])),
        MethodSemantics=_table(
            MethodSemanticsRow(Semantics=0x0002, Method=Ref(get_name, 1), Association=Ref(name_prop, 1))
        ),
        MemberRef=_table(ctor),
        CustomAttribute=_table(CustomAttributeRow(Parent=Ref(order, 2), Type=Ref(ctor, 1))),
        Constant=_table(ConstantRow(Type=0x08, Parent=Ref(count_param, 1), Value=struct.pack("<i", 5))),
    )


class TestMetadataReader:
    """Test walking metadata tables into TypeRecords."""

    def test_reads_every_type_in_order(self, tables, tmp_path):
        records = MetadataReader(tables).read_types(tmp_path / "Acme.dll")
        assert [r.name for r in records] == ["<Module>", "Order"]
        assert records[0].extends is None

    def test_type_record(self, tables, tmp_path):
        order = MetadataReader(tables).read_types(tmp_path / "Acme.dll")[1]
        assert order.namespace == "Acme"
        assert order.extends == "System.Object"
        assert order.attributes == ["GenerateAdapter"]
        assert [m.name for m in order.methods] == ["get_Name", "Save"]

    def test_parameters_and_defaults(self, tables, tmp_path):
        order = MetadataReader(tables).read_types(tmp_path / "Acme.dll")[1]
        save = order.methods[1]
        assert save.return_type.text == "void"
        (count,) = save.parameters
        assert count.name == "count"
        assert count.type.text == "int"
        assert count.has_default
        assert count.default_value == 5

    def test_property_accessors(self, tables, tmp_path):
        order = MetadataReader(tables).read_types(tmp_path / "Acme.dll")[1]
        (name,) = order.properties
        assert name.name == "Name"
        assert name.type.text == "string"
        assert name.getter is order.methods[0]
        assert name.setter is None

    def test_missing_tables_are_empty(self, tmp_path):
        assert MetadataReader(SimpleNamespace()).read_types(tmp_path / "Empty.dll") == []

    def test_bad_rows_skipped(self, tables, tmp_path):
        """Undecodable interface, nesting and attribute rows leave the types intact."""
        order = tables.TypeDef.rows[1]
        disposable = TypeRefRow(TypeNamespace="System", TypeName="IDisposable")
        tables.TypeRef.rows.append(disposable)
        tables.TypeSpec = _table(TypeSpecRow(Signature=b"\xff"))
        tables.InterfaceImpl = _table(
            InterfaceImplRow(Class=Ref(order, 2), Interface=Ref(tables.TypeSpec.rows[0], 1)),
            InterfaceImplRow(Class=Ref(order, 2), Interface=Ref(disposable, 3)),
        )
        tables.NestedClass = _table(NestedClassRow(NestedClass=Ref(order, 2)))
        tables.CustomAttribute.rows.append(
            CustomAttributeRow(Parent=Ref(order, 2), Type=Ref(MemberRefRow(Name=".ctor"), 9))
        )

        records = MetadataReader(tables).read_types(tmp_path / "Acme.dll")
        assert [r.name for r in records] == ["<Module>", "Order"]
        assert records[1].interfaces == ["System.IDisposable"]
        assert records[1].enclosing is None
        assert records[1].attributes == ["GenerateAdapter"]

    def test_front_end_over_records(self, tables, tmp_path):
        records = MetadataReader(tables).read_types(tmp_path / "Acme.dll")
        (order,) = AssemblyFrontEnd().build(records, str(tmp_path / "Acme.dll"))
        assert order.full_name == "Acme.Order"
        assert order.attributes == ["GenerateAdapter"]
        assert order.base_type is None
        (name,) = order.properties
        assert name.is_read_only
        assert name.is_public
        (save,) = order.methods
        assert save.name == "Save"
        assert save.parameters[0].default_value == 5


class TestLoadAssembly:
    """Test loading files that are not assemblies."""

    def test_junk_file(self, tmp_path):
        junk = tmp_path / "junk.dll"
        junk.write_bytes(b"not a portable executable")
        with pytest.raises(ArtifactLoadError) as excinfo:
            load_assembly(junk)
        assert excinfo.value.path == junk

    def test_missing_file(self, tmp_path):
        with pytest.raises(ArtifactLoadError):
            load_assembly(tmp_path / "missing.dll")


class TestFindAssemblies:
    """Test assembly path resolution."""

    def test_explicit_paths_first(self, tmp_path):
        folder = tmp_path / "out"
        folder.mkdir()
        (folder / "B.dll").write_bytes(b"")
        (folder / "A.dll").write_bytes(b"")
        explicit = tmp_path / "Main.dll"
        explicit.write_bytes(b"")

        found = find_assemblies([explicit], [folder], "*.dll")
        assert [p.name for p in found] == ["Main.dll", "A.dll", "B.dll"]

    def test_missing_explicit_path_skipped(self, tmp_path):
        assert find_assemblies([tmp_path / "Gone.dll"], [], "*.dll") == []

    def test_pattern_and_recursive(self, tmp_path):
        """Search folders are walked into; only names matching the glob are kept."""
        folder = tmp_path / "out"
        (folder / "nested").mkdir(parents=True)
        (folder / "App.dll").write_bytes(b"")
        (folder / "App.pdb").write_bytes(b"")
        (folder / "Other.dll").write_bytes(b"")
        (folder / "nested" / "App.Deep.dll").write_bytes(b"")

        found = find_assemblies([], [folder], "App*.dll")
        assert [p.name for p in found] == ["App.dll", "App.Deep.dll"]

    def test_duplicates_reported_once(self, tmp_path):
        folder = tmp_path / "out"
        folder.mkdir()
        dll = folder / "App.dll"
        dll.write_bytes(b"")

        found = find_assemblies([dll, dll], [folder], "*.dll")
        assert found == [dll.resolve()]

    def test_build_output_fallback(self, tmp_path):
        """With no inputs configured, bin/Release and bin/Debug are searched recursively."""
        release = tmp_path / "bin" / "Release" / "net8.0"
        release.mkdir(parents=True)
        (release / "App.dll").write_bytes(b"")

        found = find_assemblies([], [], "*.dll", project_root=tmp_path)
        assert [p.name for p in found] == ["App.dll"]

    def test_no_fallback_without_root(self, tmp_path):
        assert find_assemblies([], [], "*.dll") == []


class TestHelpers:
    """Test small metadata helpers."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("GenerateAdapterAttribute", "GenerateAdapter"),
            ("Serializable", "Serializable"),
            ("Attribute", "Attribute"),
        ],
    )
    def test_strip_attribute_suffix(self, name, expected):
        assert strip_attribute_suffix(name) == expected

    def test_nested_visibility_follows_enclosing(self):
        hidden_outer = TypeRecord("Outer", "Acme", 0)
        public_outer = TypeRecord("Outer", "Acme", TYPE_PUBLIC)
        assert not TypeRecord("Inner", "", TYPE_NESTED_PUBLIC, enclosing=hidden_outer).is_public
        assert TypeRecord("Inner", "", TYPE_NESTED_PUBLIC, enclosing=public_outer).is_public
        assert not TypeRecord("Inner", "", TYPE_PUBLIC, enclosing=public_outer).is_public
