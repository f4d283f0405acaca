"""Per-ecosystem front ends.

Text front ends turn one source file into ``ClassInfo`` records; the .NET
front end does the same for one compiled assembly. Front ends are looked up
by ecosystem name rather than subclassed.
"""

from __future__ import annotations

from typing import Optional, Protocol, Union

from ..exceptions import UnsupportedEcosystemError
from ..scanning.languages import ECOSYSTEM_ORDER
from ..scanning.syntax import ClassInfo
from .dotnet import AssemblyFrontEnd
from .java import JavaFrontEnd
from .kotlin import KotlinFrontEnd
from .python import PythonFrontEnd
from .typescript import TypeScriptFrontEnd


class FrontEnd(Protocol):
    """A text front end: source file in, classes out."""

    ecosystem: str
    extensions: tuple[str, ...]

    def parse_classes(
        self, content: str, file_path: str, root: Optional[str] = None
    ) -> list[ClassInfo]: ...


_TEXT_FRONTENDS = {
    "java": JavaFrontEnd,
    "kotlin": KotlinFrontEnd,
    "typescript": TypeScriptFrontEnd,
    "python": PythonFrontEnd,
}


def get_frontend(ecosystem: str) -> Union[FrontEnd, AssemblyFrontEnd]:
    """Return a fresh front end for ``ecosystem``.

    Raises:
        UnsupportedEcosystemError: If no front end handles ``ecosystem``.
    """
    if ecosystem == "csharp":
        return AssemblyFrontEnd()
    factory = _TEXT_FRONTENDS.get(ecosystem)
    if factory is None:
        raise UnsupportedEcosystemError(ecosystem, list(ECOSYSTEM_ORDER))
    return factory()


__all__ = [
    "FrontEnd",
    "AssemblyFrontEnd",
    "JavaFrontEnd",
    "KotlinFrontEnd",
    "PythonFrontEnd",
    "TypeScriptFrontEnd",
    "get_frontend",
]
