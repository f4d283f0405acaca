"""Tests for frontends/python.py - Python class extraction."""

import textwrap

import pytest

from adapter_discovery.frontends.python import PythonFrontEnd, is_nullable, python_collection_info

ORDER = '''
from dataclasses import dataclass, field
from typing import ClassVar, Optional


@dataclass(frozen=True)
class Order(Base, Serializable):
    """An order.

    id: not a field
    """

    id: int
    lines: list[Line]
    note: Optional[str] = None
    KIND: ClassVar[str] = "order"
    _cache: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return Decimal(0)

    async def save(self, *, force: bool = False, **options: str) -> None:
        pass

    @staticmethod
    def build() -> "Order":
        ...

    def _internal(self, x):
        def helper():
            class Local:
                pass
        return x

    class Meta:
        table: str
'''


def _parse(source, relative="shop/models.py", root="/repo/src"):
    return PythonFrontEnd().parse_classes(textwrap.dedent(source), f"{root}/{relative}", root)


def _by_name(classes):
    return {c.name: c for c in classes}


@pytest.fixture
def order_classes():
    return _parse(ORDER)


class TestPythonClasses:
    """Test class discovery and naming."""

    def test_classes_found(self, order_classes):
        """Classes defined inside functions are not reported."""
        assert [c.full_name for c in order_classes] == [
            "shop.models.Order",
            "shop.models.Order.Meta",
        ]

    def test_header(self, order_classes):
        order = _by_name(order_classes)["Order"]
        assert order.attributes == ["dataclass"]
        assert order.base_type == "Base"
        assert order.interfaces == ["Serializable"]

    def test_nested_class(self, order_classes):
        meta = _by_name(order_classes)["Meta"]
        assert meta.declaring_type == "Order"
        assert [p.name for p in meta.properties] == ["table"]

    def test_package_init_maps_to_package(self):
        """Classes in __init__.py live in the package namespace."""
        (info,) = _parse("class Config:\n    debug: bool\n", relative="shop/__init__.py")
        assert info.full_name == "shop.Config"


class TestPythonProperties:
    """Test annotated attributes and @property."""

    def test_property_order(self, order_classes):
        """ClassVar annotations and docstring text are not properties."""
        order = _by_name(order_classes)["Order"]
        assert [p.name for p in order.properties] == ["id", "lines", "note", "_cache", "total"]

    def test_frozen_dataclass_is_read_only(self, order_classes):
        props = {p.name: p for p in _by_name(order_classes)["Order"].properties}
        assert props["id"].type == "int"
        assert props["id"].is_read_only
        assert not props["id"].is_nullable

    def test_details(self, order_classes):
        props = {p.name: p for p in _by_name(order_classes)["Order"].properties}
        assert props["lines"].is_collection
        assert props["lines"].collection_element_type == "Line"
        assert props["note"].is_nullable
        assert not props["note"].is_collection
        assert not props["_cache"].is_public
        assert not props["_cache"].is_collection
        assert props["total"].type == "Decimal"
        assert props["total"].is_read_only

    def test_init_assignments(self):
        """self.x assignments in __init__ are typed through annotations or parameters."""
        source = """
        class Customer:
            def __init__(self, name: str, email: str | None = None, tags=None):
                self.name = name
                self.email = email
                self.age: int = 0
                self._secret = "x"
                self.name = "again"
        """
        (customer,) = _parse(source)
        assert [(p.name, p.type) for p in customer.properties] == [
            ("name", "str"),
            ("email", "str | None"),
            ("age", "int"),
            ("_secret", "Any"),
        ]
        assert customer.properties[1].is_nullable
        assert not customer.properties[3].is_public
        assert customer.methods == []

    def test_property_setter_makes_writable(self):
        source = """
        class Account:
            @property
            def balance(self) -> int:
                return 0

            @balance.setter
            def balance(self, value: int) -> None:
                pass
        """
        (account,) = _parse(source)
        (balance,) = account.properties
        assert balance.type == "int"
        assert not balance.is_read_only
        assert account.methods == []


class TestPythonMethods:
    """Test def extraction."""

    def test_methods(self, order_classes):
        """Static methods and properties are not methods."""
        order = _by_name(order_classes)["Order"]
        assert [m.name for m in order.methods] == ["save", "_internal"]

    def test_async_and_parameters(self, order_classes):
        save = _by_name(order_classes)["Order"].methods[0]
        assert save.is_async
        assert save.return_type == "None"
        force, options = save.parameters
        assert (force.name, force.type, force.has_default_value) == ("force", "bool", True)
        assert (options.name, options.type) == ("options", "dict[str, str]")

    def test_untyped_parameters(self, order_classes):
        internal = _by_name(order_classes)["Order"].methods[1]
        assert not internal.is_public
        assert internal.return_type == "Any"
        assert [(p.name, p.type) for p in internal.parameters] == [("x", "Any")]

    def test_overloads_replaced_by_implementation(self):
        source = """
        from typing import overload

        class Parser:
            @overload
            def parse(self, x: int) -> int: ...
            @overload
            def parse(self, x: str) -> str: ...
            def parse(self, x, *rest: int):
                return x
        """
        (parser,) = _parse(source)
        (parse,) = parser.methods
        assert parse.attributes == []
        assert [(p.name, p.type) for p in parse.parameters] == [("x", "Any"), ("rest", "tuple[int, ...]")]


class TestPythonKinds:
    """Test protocols, enums and abstract classes."""

    def test_protocol_is_interface(self):
        source = """
        class Repo(Protocol[T]):
            def find(self, id: str) -> Optional[T]: ...
        """
        (repo,) = _parse(source)
        assert repo.kind == "interface"
        assert repo.flags["is_interface"]
        assert repo.type_parameters == ["T"]
        assert repo.methods[0].return_type == "Optional[T]"

    def test_enum(self):
        source = """
        class Color(str, Enum):
            RED = "red"
        """
        (color,) = _parse(source)
        assert color.kind == "enum"
        assert color.flags["is_enum"]
        assert color.properties == []

    def test_abstract(self):
        source = """
        class Shape(ABC):
            @abstractmethod
            def area(self) -> float:
                ...

        class Other(metaclass=ABCMeta):
            pass
        """
        shape, other = _parse(source)
        assert shape.flags["is_abstract"]
        assert other.flags["is_abstract"]
        assert other.base_type is None


class TestPythonTypeHelpers:
    """Test is_nullable and python_collection_info."""

    def test_nullable_forms(self):
        assert is_nullable("Optional[int]")
        assert is_nullable("Union[int, None]")
        assert is_nullable("int | None")
        assert not is_nullable("int")

    def test_collection_forms(self):
        assert python_collection_info("list[int]") == (True, "int")
        assert python_collection_info("Optional[Sequence[str]]") == (True, "str")
        assert python_collection_info("tuple[int, ...]") == (True, "int")
        assert python_collection_info("tuple[int, str]") == (False, None)
        assert python_collection_info("dict[str, int]") == (False, None)


class TestPythonContinuationLines:
    """Test bodies holding lines that sit at column 0 inside literals or brackets."""

    def test_members_after_multiline_string(self):
        source = (
            "class Template:\n"
            '    body = """\n'
            "<html>\n"
            '"""\n'
            "    title: str\n"
            "    def render(self, x: int) -> str:\n"
            "        pass\n"
        )
        (template,) = PythonFrontEnd().parse_classes(source, "/repo/src/shop/text.py", "/repo/src")
        assert [m.name for m in template.methods] == ["render"]
        assert [p.name for p in template.properties] == ["title"]

    def test_members_after_bracket_continuation(self):
        source = (
            "class Limits:\n"
            "    sizes: list[int] = [\n"
            "1, 2,\n"
            "]\n"
            "    def check(self) -> bool:\n"
            "        pass\n"
        )
        (limits,) = PythonFrontEnd().parse_classes(source, "/repo/src/shop/limits.py", "/repo/src")
        assert [m.name for m in limits.methods] == ["check"]
        assert [p.name for p in limits.properties] == ["sizes"]
