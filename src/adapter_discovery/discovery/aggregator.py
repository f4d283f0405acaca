"""Merge per-file discoveries and decide conflicts once, at the end of a run."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import DiscoveryConflictError
from ..logging_config import get_logger
from ..models import DiscoveredClass, DiscoveryConflict, DiscoveryMethodSource

logger = get_logger(__name__)


@dataclass(frozen=True)
class FileDiscovery:
    """Everything one file (or assembly) contributed. Never mutated after creation."""

    file_path: str
    classes: tuple[DiscoveredClass, ...] = field(default_factory=tuple)
    error: Optional[str] = None


class DiscoveryAggregator:
    """Single owner of the merged result and of conflict detection.

    Every match is recorded against its fully-qualified name. ``finalize``
    releases the classes only when no name was matched by two distinct
    (method, source, file) entries; otherwise the run fails as a whole.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, DiscoveryConflict] = {}
        self._first: dict[str, DiscoveredClass] = {}

    def record(self, discovered: DiscoveredClass) -> None:
        with self._lock:
            self._record(discovered)

    def merge(self, result: FileDiscovery) -> None:
        with self._lock:
            for discovered in result.classes:
                self._record(discovered)

    def _record(self, discovered: DiscoveredClass) -> None:
        entry = self._entries.get(discovered.full_name)
        if entry is None:
            entry = DiscoveryConflict(class_name=discovered.name, full_name=discovered.full_name)
            self._entries[discovered.full_name] = entry
            self._first[discovered.full_name] = discovered
        entry.sources.append(
            DiscoveryMethodSource(
                method=discovered.discovery_method,
                source=discovered.discovery_source,
                file_path=discovered.file_path,
            )
        )
        logger.debug(
            f"Matched {discovered.full_name} via {discovered.discovery_method.value} "
            f"'{discovered.discovery_source}' in {discovered.file_path}"
        )

    @property
    def match_count(self) -> int:
        with self._lock:
            return sum(len(e.sources) for e in self._entries.values())

    def conflicts(self) -> list[DiscoveryConflict]:
        with self._lock:
            return [e for e in self._entries.values() if e.is_conflict]

    def finalize(self) -> list[DiscoveredClass]:
        """Return discovered classes in first-seen order.

        Raises:
            DiscoveryConflictError: If any fully-qualified name has conflicting matches
        """
        conflicts = self.conflicts()
        if conflicts:
            error = DiscoveryConflictError(conflicts)
            logger.error(error.report())
            raise error
        with self._lock:
            return list(self._first.values())
