"""End-to-end tests for discovery/service.py over real source trees."""

import logging
import threading

import pytest

from adapter_discovery.config import DiscoveryConfig
from adapter_discovery.discovery import DiscoveryService
from adapter_discovery.exceptions import DiscoveryConflictError, FileAccessError, InvalidPathError
from adapter_discovery.frontends.java import JavaFrontEnd
from adapter_discovery.models import DiscoveryMethod
from adapter_discovery.scanning.base import SourceFile

ORDER_JAVA = """
package acme.orders;

@GenerateAdapter
public class Order {
    private String id;

    public String getId() {
        return id;
    }
}
"""

HELPER_JAVA = """
package acme.orders;

public class OrderHelper {
    public void help() {}
}
"""


def _config(tmp_path, **kwargs):
    kwargs.setdefault("workers", 1)
    return DiscoveryConfig(working_directory=str(tmp_path), **kwargs)


def _run(tmp_path, **kwargs):
    return DiscoveryService(_config(tmp_path, **kwargs)).discover()


def _stable(result):
    """Result classes without their capture timestamps."""
    out = []
    for cls in result.classes:
        data = cls.to_dict()
        data.pop("discovered_at")
        out.append(data)
    return out


class TestJavaDiscovery:
    """Test a single-ecosystem run end to end."""

    def test_attribute_discovery(self, tmp_path, write_tree):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA, "src/acme/orders/OrderHelper.java": HELPER_JAVA})
        result = _run(tmp_path, java_source_paths="src", attribute="GenerateAdapter")

        (order,) = result.classes
        assert order.full_name == "acme.orders.Order"
        assert order.discovery_method is DiscoveryMethod.ATTRIBUTE
        assert order.discovery_source == "GenerateAdapter"
        assert order.file_path.endswith("Order.java")
        assert order.metadata["ecosystem"] == "java"
        assert result.files_scanned == 2
        assert result.files_errored == 0

    def test_idempotent(self, tmp_path, write_tree):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA, "src/acme/orders/OrderHelper.java": HELPER_JAVA})
        first = _run(tmp_path, java_source_paths="src", patterns="Order")
        second = _run(tmp_path, java_source_paths="src", patterns="Order")
        assert _stable(first) == _stable(second)
        assert [c.name for c in first.classes] == ["Order", "OrderHelper"]

    def test_parallel_matches_sequential(self, tmp_path, write_tree):
        files = {
            f"src/acme/m{i}/Model{i}.java": f"package acme.m{i};\n\npublic class Model{i} {{}}\n" for i in range(12)
        }
        write_tree(files)
        sequential = _run(tmp_path, java_source_paths="src", namespaces="acme.*", workers=1)
        parallel = _run(tmp_path, java_source_paths="src", namespaces="acme.*", workers=4)
        assert _stable(sequential) == _stable(parallel)
        assert len(parallel.classes) == 12

    @pytest.mark.slow
    def test_large_tree_parallel(self, tmp_path, write_tree):
        files = {
            f"src/acme/p{i % 10}/Model{i}.java": f"package acme.p{i % 10};\n\npublic class Model{i} {{\n    public int id;\n}}\n"
            for i in range(400)
        }
        write_tree(files)
        sequential = _run(tmp_path, java_source_paths="src", patterns="^Model", workers=1)
        parallel = _run(tmp_path, java_source_paths="src", patterns="^Model", workers=8)
        assert _stable(sequential) == _stable(parallel)
        assert parallel.files_scanned == 400

    def test_literals_and_comments_ignored(self, tmp_path, write_tree):
        write_tree(
            {
                "src/acme/Real.java": """
                package acme;

                public class Real {
                    private String text = "class Fake { }";
                    // class Ghost {}
                    /* public class Phantom {} */
                }
                """
            }
        )
        result = _run(tmp_path, java_source_paths="src", patterns=".")
        assert [c.full_name for c in result.classes] == ["acme.Real"]

    def test_generic_bounds(self, tmp_path, write_tree):
        write_tree(
            {
                "src/acme/Box.java": """
                package acme;

                public class Box<T extends Comparable<T>> implements Container<Map<String, T>> {
                    public T value;

                    public void putAll(Map<String, List<T>> values, int count) {
                        String s = "}";
                    }
                }
                """
            }
        )
        (box,) = _run(tmp_path, java_source_paths="src", patterns="^Box$").classes
        assert box.full_name == "acme.Box"
        assert [p.name for p in box.properties] == ["value"]
        (put_all,) = box.methods
        assert [(p.name, p.type) for p in put_all.parameters] == [("values", "Map<String, List<T>>"), ("count", "int")]

    def test_file_path_strategy(self, tmp_path, write_tree):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA, "src/acme/other/Order2.java": HELPER_JAVA})
        result = _run(tmp_path, java_source_paths="src", file_paths="**/orders/*.java")
        assert [c.name for c in result.classes] == ["Order"]
        assert result.classes[0].discovery_method is DiscoveryMethod.FILE_PATH

    def test_priority_first_strategy_wins(self, tmp_path, write_tree):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA})
        (order,) = _run(
            tmp_path,
            java_source_paths="src",
            attribute="GenerateAdapter",
            patterns="Order",
            namespaces="acme.*",
        ).classes
        assert order.discovery_method is DiscoveryMethod.ATTRIBUTE


class TestConflicts:
    """Test that conflicting matches fail the run."""

    def test_same_class_two_rules(self, tmp_path, write_tree):
        """One name matched by attribute in one root and by pattern in another."""
        write_tree({"a/acme/orders/Order.java": ORDER_JAVA, "b/acme/orders/Order.java": HELPER_JAVA.replace("OrderHelper", "Order")})
        with pytest.raises(DiscoveryConflictError) as excinfo:
            _run(tmp_path, java_source_paths="a:b", attribute="GenerateAdapter", patterns="Order")
        (conflict,) = excinfo.value.conflicts
        assert conflict.full_name == "acme.orders.Order"
        assert {s.method for s in conflict.sources} == {DiscoveryMethod.ATTRIBUTE, DiscoveryMethod.PATTERN}

    def test_conflict_symmetric(self, tmp_path, write_tree):
        write_tree({"a/acme/orders/Order.java": ORDER_JAVA, "b/acme/orders/Order.java": HELPER_JAVA.replace("OrderHelper", "Order")})
        with pytest.raises(DiscoveryConflictError):
            _run(tmp_path, java_source_paths="b:a", attribute="GenerateAdapter", patterns="Order")

    def test_same_rule_in_two_roots_conflicts(self, tmp_path, write_tree):
        """Two definitions of one name conflict even under a single rule."""
        write_tree({"a/acme/orders/Order.java": ORDER_JAVA, "b/acme/orders/Order.java": ORDER_JAVA})
        with pytest.raises(DiscoveryConflictError) as excinfo:
            _run(tmp_path, java_source_paths="a:b", attribute="GenerateAdapter")
        (conflict,) = excinfo.value.conflicts
        assert conflict.distinct_rules == {(DiscoveryMethod.ATTRIBUTE, "GenerateAdapter")}
        assert len(conflict.sources) == 2

    def test_duplicate_definition_under_namespace_rule(self, tmp_path, write_tree):
        dup = "package acme.orders;\n\npublic class Dup {}\n"
        write_tree({"src/acme/orders/Dup.java": dup, "src/acme/orders/Copy.java": dup})
        with pytest.raises(DiscoveryConflictError) as excinfo:
            _run(tmp_path, java_source_paths="src", namespaces="acme.orders")
        (conflict,) = excinfo.value.conflicts
        assert conflict.full_name == "acme.orders.Dup"
        assert {s.method for s in conflict.sources} == {DiscoveryMethod.NAMESPACE}

    def test_conflict_across_ecosystems(self, tmp_path, write_tree):
        write_tree(
            {
                "java/acme/orders/Order.java": ORDER_JAVA,
                "kotlin/acme/orders/Order.kt": "package acme.orders\n\nclass Order(val id: String)\n",
            }
        )
        with pytest.raises(DiscoveryConflictError):
            _run(
                tmp_path,
                java_source_paths="java",
                kotlin_source_paths="kotlin",
                attribute="GenerateAdapter",
                namespaces="acme.orders",
            )

    def test_namespaces_disambiguate(self, tmp_path, write_tree):
        write_tree(
            {
                "src/billing/Order.java": "package billing;\n\npublic class Order {}\n",
                "src/shipping/Order.java": "package shipping;\n\npublic class Order {}\n",
            }
        )
        result = _run(tmp_path, java_source_paths="src", patterns="^Order$|shipping")
        assert [c.full_name for c in result.classes] == ["billing.Order", "shipping.Order"]


class TestRunControl:
    """Test empty rules, cancellation and per-file failures."""

    def test_empty_rules(self, tmp_path, write_tree):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA})
        result = _run(tmp_path, java_source_paths="src")
        assert result.classes == []
        assert result.files_scanned == 0

    def test_cancelled_before_start(self, tmp_path, write_tree):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA})
        cancel = threading.Event()
        cancel.set()
        result = DiscoveryService(_config(tmp_path, java_source_paths="src", patterns="Order")).discover(cancel)
        assert result.cancelled
        assert result.classes == []

    def test_unreadable_file_counted(self, tmp_path, write_tree, monkeypatch):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA, "src/acme/orders/OrderHelper.java": HELPER_JAVA})
        import adapter_discovery.discovery.service as service_module

        real_read = service_module.read_source_file

        def flaky_read(path, max_bytes=None):
            if path.name == "OrderHelper.java":
                raise FileAccessError(path, "permission denied")
            return real_read(path, max_bytes)

        monkeypatch.setattr(service_module, "read_source_file", flaky_read)
        result = _run(tmp_path, java_source_paths="src", patterns="Order")
        assert [c.name for c in result.classes] == ["Order"]
        assert result.files_errored == 1
        assert result.files_scanned == 2

    def test_parser_failure_counted(self, tmp_path, write_tree, monkeypatch):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA, "src/acme/orders/OrderHelper.java": HELPER_JAVA})
        real_parse = JavaFrontEnd.parse_classes

        def broken_parse(self, content, file_path, root=None):
            if file_path.endswith("OrderHelper.java"):
                raise ValueError("unexpected token")
            return real_parse(self, content, file_path, root)

        monkeypatch.setattr(JavaFrontEnd, "parse_classes", broken_parse)
        result = _run(tmp_path, java_source_paths="src", patterns="Order")
        assert [c.name for c in result.classes] == ["Order"]
        assert result.files_errored == 1

    def test_excluded_and_oversized_files_skipped(self, tmp_path, write_tree):
        write_tree(
            {
                "src/acme/Order.java": ORDER_JAVA,
                "src/acme/Order.generated.java": ORDER_JAVA,
                "src/acme/build/Built.java": ORDER_JAVA,
            }
        )
        result = _run(tmp_path, java_source_paths="src", attribute="GenerateAdapter")
        assert len(result.classes) == 1
        assert result.classes[0].file_path.endswith("acme/Order.java")
        assert result.files_skipped == 2

    def test_missing_inputs_skip_ecosystem(self, tmp_path):
        result = _run(tmp_path, ecosystems=["java"], patterns="Order")
        assert result.classes == []
        assert result.files_scanned == 0

    def test_bad_assembly_counted(self, tmp_path):
        (tmp_path / "bin").mkdir()
        (tmp_path / "bin" / "App.dll").write_bytes(b"MZ but not really")
        result = _run(tmp_path, csharp_assembly_paths="bin/App.dll", patterns=".")
        assert result.artifacts_failed == 1
        assert result.artifacts_loaded == 0
        assert result.classes == []

    def test_assembly_front_end_failure_counted(self, tmp_path, caplog):
        """Any failure inside one assembly is logged and counted, not raised."""

        class BrokenFrontEnd:
            def parse_assembly(self, path):
                raise KeyError("NestedClass")

        caplog.set_level(logging.WARNING, logger="adapter_discovery")
        discovery = DiscoveryService(_config(tmp_path, patterns=".")).analyze_assembly(
            BrokenFrontEnd(), tmp_path / "App.dll"
        )
        assert discovery.error is not None
        assert discovery.classes == ()
        assert "Failed to analyse assembly" in caplog.text

    def test_parse_error_reason_reported(self, tmp_path, write_tree, caplog):
        write_tree({"src/acme/orders/Order.java": ORDER_JAVA})

        class BrokenFrontEnd:
            ecosystem = "java"

            def parse_classes(self, content, file_path, root=None):
                raise ValueError("unexpected token")

        caplog.set_level(logging.WARNING, logger="adapter_discovery")
        source = SourceFile(path=tmp_path / "src/acme/orders/Order.java", root=tmp_path / "src")
        discovery = DiscoveryService(_config(tmp_path, patterns=".")).analyze_file(BrokenFrontEnd(), source)
        assert discovery.error == "unexpected token"
        assert "Parse error" in caplog.text

    def test_missing_paths_logged_without_rules(self, tmp_path, caplog):
        caplog.set_level(logging.INFO, logger="adapter_discovery")
        result = _run(tmp_path, ecosystems=["java", "python"])
        assert result.classes == []
        errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert errors == [
            "No source paths configured for java; skipping",
            "No source paths configured for python; skipping",
        ]

    @pytest.mark.parametrize("name", ["missing", "file.txt"])
    def test_invalid_working_directory(self, tmp_path, name):
        (tmp_path / "file.txt").write_text("")
        base = tmp_path / name
        with pytest.raises(InvalidPathError) as excinfo:
            DiscoveryService(DiscoveryConfig(working_directory=str(base), patterns=".")).discover()
        assert excinfo.value.path == base


class TestOtherEcosystems:
    """Test the remaining text front ends through the service."""

    def test_kotlin(self, tmp_path, write_tree):
        write_tree(
            {
                "src/acme/users/User.kt": """
                package acme.users

                @GenerateAdapter
                data class User(val id: Long, var name: String)

                class Plain
                """
            }
        )
        (user,) = _run(tmp_path, kotlin_source_paths="src", attribute="GenerateAdapter").classes
        assert user.full_name == "acme.users.User"
        assert [p.name for p in user.properties] == ["id", "name"]
        assert user.metadata["is_data"]

    def test_typescript_module_namespace(self, tmp_path, write_tree):
        write_tree(
            {
                "src/app/user.service.ts": """
                export class UserService {
                    name: string = "";

                    async load(id: string): Promise<void> {}
                }
                """
            }
        )
        (service,) = _run(tmp_path, typescript_source_paths="src", namespaces="app.*").classes
        assert service.full_name == "app.user.service.UserService"
        assert service.discovery_source == "app.*"
        assert service.methods[0].is_async

    def test_python_package_init(self, tmp_path, write_tree):
        write_tree(
            {
                "src/shop/__init__.py": """
                class Catalog:
                    pass
                """,
                "src/shop/models.py": """
                class OrderService:
                    def place(self, order_id: int) -> bool:
                        return True
                """,
            }
        )
        result = _run(tmp_path, python_source_paths="src", namespaces="shop*")
        assert [c.full_name for c in result.classes] == ["shop.Catalog", "shop.models.OrderService"]

    def test_ecosystem_order(self, tmp_path, write_tree):
        """Ecosystems run as java, kotlin, typescript, python regardless of configuration order."""
        write_tree(
            {
                "py/z/a.py": "class A:\n    pass\n",
                "ts/y/b.ts": "export class B {}\n",
                "kt/x/C.kt": "package x\n\nclass C\n",
                "java/w/D.java": "package w;\n\npublic class D {}\n",
            }
        )
        result = _run(
            tmp_path,
            python_source_paths="py",
            typescript_source_paths="ts",
            kotlin_source_paths="kt",
            java_source_paths="java",
            patterns="^[A-D]$",
        )
        assert [c.metadata["ecosystem"] for c in result.classes] == ["java", "kotlin", "typescript", "python"]
        assert [c.full_name for c in result.classes] == ["w.D", "x.C", "y.b.B", "z.a.A"]
