"""Run-scoped discovery failures."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import AdapterDiscoveryError

if TYPE_CHECKING:
    from ..models import DiscoveryConflict


class DiscoveryConflictError(AdapterDiscoveryError):
    """Raised when a fully-qualified name was matched by more than one rule.

    The whole run fails: no discovered class is released when any conflict
    exists.
    """

    def __init__(self, conflicts: list[DiscoveryConflict]):
        names = ", ".join(c.full_name for c in conflicts)
        super().__init__(
            f"Discovery conflicts detected for {len(conflicts)} class(es)",
            details={"classes": names},
        )
        self.conflicts = conflicts

    def report(self) -> str:
        """Render every conflicting (method, source, file) triple per class."""
        lines = [self.message + ":"]
        for conflict in self.conflicts:
            lines.append(f"  {conflict.class_name} ({conflict.full_name})")
            for entry in conflict.sources:
                lines.append(f"    - {entry.method.value}: '{entry.source}' in {entry.file_path}")
        return "\n".join(lines)
