"""Per-file intermediate class model.

Front ends produce ClassInfo records while analysing a single file (or a
single compiled artifact). Only the finished DiscoveredClass built from a
ClassInfo and a DiscoveryMatch crosses into the shared aggregator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from ..models import DiscoveredClass, DiscoveredMethod, DiscoveredProperty
from .splitting import split_top_level

if TYPE_CHECKING:
    from ..discovery.strategies import DiscoveryMatch

# Boolean metadata flags every front end normalises its modifiers into.
FLAG_NAMES = (
    "is_abstract",
    "is_sealed",
    "is_final",
    "is_open",
    "is_data",
    "is_enum",
    "is_object",
    "is_interface",
    "is_static",
)


@dataclass
class ClassInfo:
    """A class-like declaration found by a front end.

    Attributes:
        name: Simple identifier
        namespace: Enclosing namespace/package/module ("" when none)
        file_path: Absolute path of the file or artifact
        ecosystem: Front end that produced it
        kind: class, interface, object, enum, struct, record or type
        attributes: Annotation/decorator names, source order
        base_type: Supertype, when one could be identified
        interfaces: Implemented/extended interfaces
        type_parameters: Generic parameter names
        flags: Normalised modifier flags (see FLAG_NAMES)
        properties: Properties in declaration order
        methods: Methods in declaration order
        declaring_type: Enclosing type chain for nested declarations
        full_name: Explicit fully-qualified name; derived when empty
    """

    name: str
    namespace: str
    file_path: str
    ecosystem: str
    kind: str = "class"
    attributes: list[str] = field(default_factory=list)
    base_type: Optional[str] = None
    interfaces: list[str] = field(default_factory=list)
    type_parameters: list[str] = field(default_factory=list)
    flags: dict[str, bool] = field(default_factory=dict)
    properties: list[DiscoveredProperty] = field(default_factory=list)
    methods: list[DiscoveredMethod] = field(default_factory=list)
    declaring_type: Optional[str] = None
    full_name: str = ""

    def __post_init__(self) -> None:
        if not self.full_name:
            parts = [p for p in (self.namespace, self.declaring_type, self.name) if p]
            self.full_name = ".".join(parts)

    def metadata(self) -> dict[str, Any]:
        """Ecosystem facts carried on the DiscoveredClass."""
        data: dict[str, Any] = {"ecosystem": self.ecosystem, "kind": self.kind}
        for flag in FLAG_NAMES:
            data[flag] = bool(self.flags.get(flag, False))
        if self.base_type:
            data["base_type"] = self.base_type
        data["interfaces"] = list(self.interfaces)
        data["type_parameters"] = list(self.type_parameters)
        if self.declaring_type:
            data["declaring_type"] = self.declaring_type
        return data

    def to_discovered(self, match: DiscoveryMatch) -> DiscoveredClass:
        return DiscoveredClass(
            name=self.name,
            full_name=self.full_name,
            namespace=self.namespace,
            file_path=self.file_path,
            discovery_method=match.method,
            discovery_source=match.source,
            properties=list(self.properties),
            methods=list(self.methods),
            attributes=list(self.attributes),
            metadata=self.metadata(),
        )


def split_generic(type_text: str, open_char: str = "<", close_char: str = ">") -> tuple[str, list[str]]:
    """Split ``Head<A, B>`` into ``("Head", ["A", "B"])``.

    Types without a trailing generic argument list come back unchanged with
    no arguments.
    """
    text = type_text.strip()
    if not text.endswith(close_char):
        return text, []
    opener = text.find(open_char)
    if opener <= 0:
        return text, []
    return text[:opener].strip(), split_top_level(text[opener + 1 : -1])


def type_parameter_names(generics: str) -> list[str]:
    """Names from a generic parameter list such as ``T extends Base, out R : Any``."""
    names: list[str] = []
    for part in split_top_level(generics):
        words = part.replace(":", " ").replace("=", " ").split()
        # Skip variance/reified modifiers; the name is the first plain word.
        for word in words:
            if word not in ("in", "out", "reified", "const", "*"):
                names.append(word.lstrip("*"))
                break
    return names
