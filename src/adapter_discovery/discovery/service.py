"""DiscoveryService: runs every enabled front end and merges the results.

Usage:
    service = DiscoveryService(load_config())
    result = service.discover()
    for cls in result.classes:
        ...

Ecosystems run in a fixed order (csharp, java, kotlin, typescript, python).
Each file is analysed independently into an immutable FileDiscovery; results
are merged into the aggregator in enumeration order, and the conflict
decision is taken once every ecosystem has finished.
"""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from ..exceptions import ArtifactLoadError, FileAccessError, InvalidPathError, ParsingError
from ..file_ops import read_source_file
from ..frontends import get_frontend
from ..frontends.dotnet import find_assemblies
from ..logging_config import get_logger
from ..models import DiscoveredClass
from ..scanning.base import SourceFile, SourceScanner
from ..scanning.languages import TEXT_ECOSYSTEMS, get_ecosystem_config
from ..scanning.syntax import ClassInfo
from .aggregator import DiscoveryAggregator, FileDiscovery
from .strategies import StrategyEvaluator

if TYPE_CHECKING:
    from ..config import DiscoveryConfig
    from ..frontends import AssemblyFrontEnd, FrontEnd

logger = get_logger(__name__)

# Default worker count: use CPU count, capped at 8 to avoid overwhelming I/O
_DEFAULT_WORKERS = min(os.cpu_count() or 4, 8)

T = TypeVar("T")


@dataclass
class DiscoveryResult:
    """Outcome of a successful run."""

    classes: list[DiscoveredClass] = field(default_factory=list)
    files_scanned: int = 0
    files_skipped: int = 0
    files_errored: int = 0
    artifacts_loaded: int = 0
    artifacts_failed: int = 0
    elapsed_seconds: float = 0.0
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "classes": [c.to_dict() for c in self.classes],
            "files_scanned": self.files_scanned,
            "files_skipped": self.files_skipped,
            "files_errored": self.files_errored,
            "artifacts_loaded": self.artifacts_loaded,
            "artifacts_failed": self.artifacts_failed,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "cancelled": self.cancelled,
        }


class DiscoveryService:
    """Discovers generation candidates across every configured ecosystem."""

    def __init__(self, config: DiscoveryConfig):
        self.config = config
        self.evaluator = StrategyEvaluator(config.rules())
        self._max_workers = config.workers or _DEFAULT_WORKERS

    def discover(self, cancel_event: Optional[threading.Event] = None) -> DiscoveryResult:
        """Run discovery.

        Args:
            cancel_event: When set, no further files are started

        Returns:
            DiscoveryResult with the discovered classes and run counters

        Raises:
            InvalidPathError: If the working directory is missing or not a directory
            DiscoveryConflictError: If any fully-qualified name has conflicting matches
        """
        start = time.perf_counter()
        result = DiscoveryResult()
        aggregator = DiscoveryAggregator()

        base = self.config.base_path
        if not base.exists():
            raise InvalidPathError(base, "Working directory does not exist")
        if not base.is_dir():
            raise InvalidPathError(base, "Working directory is not a directory")

        enabled = self.config.enabled_ecosystems()
        for ecosystem in enabled:
            if ecosystem in TEXT_ECOSYSTEMS and not self.config.source_roots(ecosystem):
                logger.error(f"No source paths configured for {ecosystem}; skipping")

        if self.evaluator.rules.is_empty:
            logger.info("No discovery rules configured; nothing to discover")
            return result

        for ecosystem in enabled:
            if _cancelled(cancel_event):
                result.cancelled = True
                break
            if get_ecosystem_config(ecosystem).body_mode == "metadata":
                self._discover_assemblies(aggregator, result, cancel_event)
                continue

            roots = self.config.source_roots(ecosystem)
            if roots:
                self._discover_sources(ecosystem, roots, aggregator, result, cancel_event)

        result.cancelled = result.cancelled or _cancelled(cancel_event)
        result.classes = aggregator.finalize()
        result.elapsed_seconds = time.perf_counter() - start

        logger.info(
            f"Discovered {len(result.classes)} classes from {result.files_scanned} files "
            f"and {result.artifacts_loaded} assemblies in {result.elapsed_seconds:.2f}s "
            f"({result.files_skipped} skipped, {result.files_errored + result.artifacts_failed} failed)"
        )
        return result

    # ── Source ecosystems ──────────────────────────────────────

    def _discover_sources(
        self,
        ecosystem: str,
        roots: list[Path],
        aggregator: DiscoveryAggregator,
        result: DiscoveryResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        scanner = SourceScanner(
            roots,
            get_ecosystem_config(ecosystem),
            exclude_patterns=self.config.exclude_patterns,
            max_file_size_bytes=self.config.max_file_size_bytes,
            max_files=self.config.max_files,
        )
        files = scanner.scan()
        result.files_skipped += scanner.files_skipped
        result.files_errored += scanner.files_errored

        frontend = get_frontend(ecosystem)
        logger.debug(f"{ecosystem}: analysing {len(files)} files")

        for discovery in self._map(lambda f: self.analyze_file(frontend, f), files, cancel_event):
            if discovery is None:
                result.cancelled = True
                break
            result.files_scanned += 1
            if discovery.error is not None:
                result.files_errored += 1
                continue
            aggregator.merge(discovery)

    def analyze_file(self, frontend: FrontEnd, source: SourceFile) -> FileDiscovery:
        """Parse one file and match its classes. Touches no shared state."""
        path = str(source.path)
        try:
            content = read_source_file(source.path, self.config.max_file_size_bytes)
            infos = _parse(frontend, content, source)
        except FileAccessError as e:
            logger.warning(f"Skipping unreadable file {path}: {e.reason}")
            return FileDiscovery(path, error=e.reason)
        except ParsingError as e:
            logger.warning(f"Parse error for {path}: {e.reason}")
            return FileDiscovery(path, error=e.reason)

        return FileDiscovery(path, self._match(infos, path))

    # ── Compiled assemblies ────────────────────────────────────

    def _discover_assemblies(
        self,
        aggregator: DiscoveryAggregator,
        result: DiscoveryResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        assemblies = find_assemblies(
            self.config.assembly_paths(),
            self.config.assembly_search_folders(),
            self.config.csharp_assembly_pattern,
            project_root=self.config.base_path,
        )
        if not assemblies:
            logger.error("No assemblies configured or found for csharp; skipping")
            return

        frontend = get_frontend("csharp")
        for discovery in self._map(lambda p: self.analyze_assembly(frontend, p), assemblies, cancel_event):
            if discovery is None:
                result.cancelled = True
                break
            if discovery.error is not None:
                result.artifacts_failed += 1
                continue
            result.artifacts_loaded += 1
            aggregator.merge(discovery)

    def analyze_assembly(self, frontend: AssemblyFrontEnd, path: Path) -> FileDiscovery:
        try:
            infos = frontend.parse_assembly(path)
        except ArtifactLoadError as e:
            logger.warning(f"Skipping assembly {path}: {e.reason}")
            return FileDiscovery(str(path), error=e.reason)
        except Exception as e:
            logger.warning(f"Failed to analyse assembly {path}: {e}")
            return FileDiscovery(str(path), error=str(e))
        return FileDiscovery(str(path), self._match(infos, str(path)))

    # ── Helpers ────────────────────────────────────────────────

    def _match(self, infos: list[ClassInfo], file_path: str) -> tuple[DiscoveredClass, ...]:
        matched = []
        for info in infos:
            match = self.evaluator.evaluate(info, file_path)
            if match is not None:
                matched.append(info.to_discovered(match))
        return tuple(matched)

    def _map(
        self,
        fn: Callable[[Any], T],
        items: list,
        cancel_event: Optional[threading.Event],
    ) -> Iterable[Optional[T]]:
        """Apply ``fn`` to each item, yielding results in item order.

        Items started after cancellation yield None.
        """

        def guarded(item):
            if _cancelled(cancel_event):
                return None
            return fn(item)

        if self._max_workers <= 1 or len(items) < 2:
            for item in items:
                yield guarded(item)
            return

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            yield from executor.map(guarded, items)


def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _parse(frontend: FrontEnd, content: str, source: SourceFile) -> list[ClassInfo]:
    """Run a text front end over one file.

    Raises:
        ParsingError: If the front end fails on the file's content
    """
    try:
        return frontend.parse_classes(content, str(source.path), str(source.root))
    except Exception as e:
        raise ParsingError(source.path, frontend.ecosystem, str(e)) from e
