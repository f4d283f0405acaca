"""Tests for frontends/typescript.py - TypeScript class extraction."""

import pytest

from adapter_discovery.frontends.typescript import TypeScriptFrontEnd, is_nullable

SERVICE = """
import { Injectable } from "@angular/core";

@Injectable()
export class UserService extends Base<User> implements OnInit, OnDestroy {
    private static instances = 0;
    readonly name: string = "users";
    count?: number;
    private secret: string;
    #hidden: number;
    tags: Array<string> = [];
    cb: (a: number, b: string) => void;

    constructor(private readonly http: HttpClient, public retries: number = 3, plain: string) {
        super();
    }

    get total(): number { return 1; }
    get label(): string { return ""; }
    set label(value: string) {}

    async load(id: string, opts?: Options): Promise<User> {
        const template = `class Fake { ${id} }`;
        return null as any;
    }

    find(...ids: number[]): User | null { return null; }
}
"""

CONTRACTS = """
export interface Repo<T> extends Base, Other<T> {
    find(id: string): Promise<T>;
    readonly size: number, items: T[];
    new (x: number): Repo<T>;
}

export type Point = { x: number; y?: number };
type Id = string;

export enum Color { Red, Green }

export abstract class Shape {
    abstract area(): Promise<number>;
}
"""


def _by_name(classes):
    return {c.name: c for c in classes}


@pytest.fixture
def service(tmp_path):
    root = tmp_path / "src"
    path = root / "app" / "user.service.ts"
    (info,) = TypeScriptFrontEnd().parse_classes(SERVICE, str(path), str(root))
    return info


class TestTypeScriptClass:
    """Test class headers and module namespaces."""

    def test_module_namespace(self, service):
        """Classes outside a namespace block take their module path."""
        assert service.namespace == "app.user.service"
        assert service.full_name == "app.user.service.UserService"

    def test_header(self, service):
        assert service.attributes == ["Injectable"]
        assert service.base_type == "Base<User>"
        assert service.interfaces == ["OnInit", "OnDestroy"]

    def test_namespace_block(self):
        """Namespace blocks override the module path."""
        source = """
        export namespace Api.V1 {
            export class Client {}
        }
        """
        (client,) = TypeScriptFrontEnd().parse_classes(source, "/src/api.ts", "/src")
        assert client.full_name == "Api.V1.Client"


class TestTypeScriptProperties:
    """Test fields, parameter properties and accessors."""

    def test_property_order(self, service):
        """Static fields and plain constructor parameters are skipped."""
        assert [p.name for p in service.properties] == [
            "name",
            "count",
            "secret",
            "#hidden",
            "tags",
            "cb",
            "http",
            "retries",
            "total",
            "label",
        ]

    def test_field_details(self, service):
        props = {p.name: p for p in service.properties}
        assert props["name"].type == "string"
        assert props["name"].is_read_only
        assert props["count"].is_nullable
        assert not props["secret"].is_public
        assert not props["#hidden"].is_public
        assert props["tags"].is_collection
        assert props["tags"].collection_element_type == "string"
        assert props["cb"].type == "(a: number, b: string) => void"

    def test_parameter_properties(self, service):
        """Constructor parameters with modifiers declare properties."""
        props = {p.name: p for p in service.properties}
        assert props["http"].type == "HttpClient"
        assert props["http"].is_read_only
        assert not props["http"].is_public
        assert props["retries"].type == "number"
        assert props["retries"].is_public
        assert not props["retries"].is_nullable

    def test_accessors(self, service):
        """A getter alone is read-only; a matching setter makes it writable."""
        props = {p.name: p for p in service.properties}
        assert props["total"].type == "number"
        assert props["total"].is_read_only
        assert not props["label"].is_read_only


class TestTypeScriptMethods:
    """Test method extraction."""

    def test_methods(self, service):
        """Literal text inside bodies never leaks into members."""
        assert [m.name for m in service.methods] == ["load", "find"]

    def test_async_keyword(self, service):
        load = service.methods[0]
        assert load.is_async
        assert load.return_type == "Promise<User>"
        id_param, opts = load.parameters
        assert id_param.type == "string"
        assert opts.type == "Options"
        assert opts.is_nullable

    def test_rest_and_union(self, service):
        find = service.methods[1]
        assert find.parameters[0].type == "number[]"
        assert find.return_type == "User | null"
        assert not find.is_async


class TestTypeScriptContracts:
    """Test interfaces, type aliases, enums and abstract classes."""

    @pytest.fixture
    def contracts(self):
        return _by_name(TypeScriptFrontEnd().parse_classes(CONTRACTS, "/src/contracts.ts", "/src"))

    def test_found_kinds(self, contracts):
        """Non-object type aliases are not classes."""
        assert sorted(contracts) == ["Color", "Point", "Repo", "Shape"]

    def test_interface(self, contracts):
        repo = contracts["Repo"]
        assert repo.kind == "interface"
        assert repo.namespace == "contracts"
        assert repo.interfaces == ["Base", "Other<T>"]
        assert repo.type_parameters == ["T"]
        assert [m.name for m in repo.methods] == ["find"]
        assert repo.methods[0].is_async
        assert [p.name for p in repo.properties] == ["size", "items"]
        assert repo.properties[0].is_read_only
        assert repo.properties[1].collection_element_type == "T"

    def test_type_literal(self, contracts):
        point = contracts["Point"]
        assert point.kind == "type"
        assert [(p.name, p.is_nullable) for p in point.properties] == [("x", False), ("y", True)]

    def test_enum(self, contracts):
        color = contracts["Color"]
        assert color.flags["is_enum"]
        assert color.properties == []

    def test_abstract_method_async_from_type(self, contracts):
        shape = contracts["Shape"]
        assert shape.flags["is_abstract"]
        assert shape.methods[0].is_async


class TestTypeScriptNullability:
    """Test is_nullable."""

    def test_union_with_null_or_undefined(self):
        assert is_nullable("string | null")
        assert is_nullable("string | undefined")
        assert not is_nullable("string")

    def test_optional_marker(self):
        assert is_nullable("string", optional=True)
