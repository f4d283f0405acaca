"""Language-neutral description of discovered classes.

These records are the contract between the front ends and the adapter
generator: every front end, text-scanned or compiled, produces the same shapes.

    DiscoveredClass
      ├── properties: DiscoveredProperty (declaration order)
      └── methods:    DiscoveredMethod (declaration order)
                        └── parameters: DiscoveredParameter (declaration order)

DiscoveryConflict is the aggregation record keyed by fully-qualified name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class DiscoveryMethod(Enum):
    """Which discovery strategy selected a class (in precedence order)."""

    ATTRIBUTE = "Attribute"
    PATTERN = "Pattern"
    NAMESPACE = "Namespace"
    FILE_PATH = "FilePath"


@dataclass
class DiscoveredParameter:
    """A method parameter.

    Text-scanned ecosystems only know *that* a default exists; the compiled
    metadata front end can also supply ``default_value``.
    """

    name: str
    type: str
    is_nullable: bool = False
    has_default_value: bool = False
    default_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "is_nullable": self.is_nullable,
            "has_default_value": self.has_default_value,
            "default_value": self.default_value,
        }


@dataclass
class DiscoveredProperty:
    """A property or field, with its type text as written in source."""

    name: str
    type: str
    is_nullable: bool = False
    is_collection: bool = False
    collection_element_type: Optional[str] = None
    is_read_only: bool = False
    is_public: bool = True
    attributes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "is_nullable": self.is_nullable,
            "is_collection": self.is_collection,
            "collection_element_type": self.collection_element_type,
            "is_read_only": self.is_read_only,
            "is_public": self.is_public,
            "attributes": list(self.attributes),
        }


@dataclass
class DiscoveredMethod:
    """A method signature."""

    name: str
    return_type: str
    is_async: bool = False
    is_public: bool = True
    parameters: list[DiscoveredParameter] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "return_type": self.return_type,
            "is_async": self.is_async,
            "is_public": self.is_public,
            "parameters": [p.to_dict() for p in self.parameters],
            "attributes": list(self.attributes),
        }


@dataclass
class DiscoveredClass:
    """A class selected for adapter generation.

    Attributes:
        name: Simple identifier
        full_name: Namespace-qualified name, the conflict key
        namespace: Enclosing namespace/package/module (may be empty)
        file_path: Absolute path of the source file or compiled artifact
        discovery_method: Strategy that selected the class
        discovery_source: Literal rule text that matched
        properties: Properties in declaration order
        methods: Methods in declaration order
        attributes: Annotation/decorator names on the class, duplicates kept
        metadata: Ecosystem-specific facts (flags, base type, interfaces, ...)
        discovered_at: Capture timestamp (UTC)
    """

    name: str
    full_name: str
    namespace: str
    file_path: str
    discovery_method: DiscoveryMethod
    discovery_source: str
    properties: list[DiscoveredProperty] = field(default_factory=list)
    methods: list[DiscoveredMethod] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    discovered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable representation."""
        return {
            "name": self.name,
            "full_name": self.full_name,
            "namespace": self.namespace,
            "file_path": self.file_path,
            "discovery_method": self.discovery_method.value,
            "discovery_source": self.discovery_source,
            "properties": [p.to_dict() for p in self.properties],
            "methods": [m.to_dict() for m in self.methods],
            "attributes": list(self.attributes),
            "metadata": dict(self.metadata),
            "discovered_at": self.discovered_at.isoformat(),
        }


@dataclass(frozen=True)
class DiscoveryMethodSource:
    """One successful match contributing to a fully-qualified name."""

    method: DiscoveryMethod
    source: str
    file_path: str


@dataclass
class DiscoveryConflict:
    """Every match recorded for one fully-qualified name.

    Created the first time the name is seen; one entry per match, including
    the first.
    """

    class_name: str
    full_name: str
    sources: list[DiscoveryMethodSource] = field(default_factory=list)

    @property
    def distinct_rules(self) -> set[tuple[DiscoveryMethod, str]]:
        """Distinct (method, source) rule instances that matched."""
        return {(s.method, s.source) for s in self.sources}

    @property
    def is_conflict(self) -> bool:
        """True when the name was matched more than once.

        Two definitions of one name conflict even when the same rule matched
        both; only a repeat of the same file under the same rule does not.
        """
        return len(set(self.sources)) > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "class_name": self.class_name,
            "full_name": self.full_name,
            "sources": [
                {"method": s.method.value, "source": s.source, "file_path": s.file_path}
                for s in self.sources
            ],
        }
