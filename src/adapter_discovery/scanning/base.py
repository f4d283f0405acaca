"""Source file enumeration shared by every front end."""

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..file_ops import should_skip_file
from ..logging_config import get_logger
from .languages import EcosystemConfig, detect_ecosystem

logger = get_logger(__name__)


@dataclass(frozen=True)
class SourceFile:
    """A file selected for analysis, with the root it was found under."""

    path: Path
    root: Path


class SourceScanner:
    """Enumerates the input files of one ecosystem under a set of roots.

    Enumeration is deterministic: roots in configured order, files sorted
    within each root, each file reported once even when roots overlap.
    """

    def __init__(
        self,
        roots: Iterable[Path],
        ecosystem: EcosystemConfig,
        exclude_patterns: Optional[list[str]] = None,
        max_file_size_bytes: Optional[int] = None,
        max_files: Optional[int] = None,
    ):
        """
        Initialize scanner.

        Args:
            roots: Directories (or single files) to scan
            ecosystem: Ecosystem whose extensions and skip rules apply
            exclude_patterns: Glob patterns to exclude
            max_file_size_bytes: Larger files are skipped
            max_files: Stop after this many files
        """
        self.roots = [Path(r) for r in roots]
        self.ecosystem = ecosystem
        self.exclude_patterns = list(exclude_patterns or [])
        self.max_file_size_bytes = max_file_size_bytes
        self.max_files = max_files
        self.files_skipped = 0
        self.files_errored = 0
        logger.debug(f"Initialized {self.__class__.__name__} for {ecosystem.name}")

    def scan(self) -> list[SourceFile]:
        """
        Enumerate every matching file under the configured roots.

        Returns:
            Files to analyse, in enumeration order
        """
        files: list[SourceFile] = []
        seen: set[Path] = set()

        for root in self.roots:
            if not root.exists():
                logger.warning(f"Source path does not exist, skipping: {root}")
                continue

            for filepath in self._walk(root):
                if detect_ecosystem(filepath) != self.ecosystem.name:
                    continue

                resolved = filepath.resolve()
                if resolved in seen:
                    continue

                if self.max_files is not None and len(files) >= self.max_files:
                    logger.warning(f"Reached max files limit ({self.max_files})")
                    return files

                if self._skip(filepath, root):
                    self.files_skipped += 1
                    continue

                seen.add(resolved)
                files.append(SourceFile(path=resolved, root=root.resolve()))

        logger.debug(
            f"{self.ecosystem.name}: {len(files)} files found, {self.files_skipped} skipped, "
            f"{self.files_errored} errors"
        )
        return files

    def _walk(self, root: Path) -> list[Path]:
        if root.is_file():
            return [root]
        try:
            return sorted(p for p in root.rglob("*") if p.is_file())
        except (OSError, RecursionError) as e:
            self.files_errored += 1
            logger.warning(f"Cannot walk {root}: {e}")
            return []

    def _skip(self, filepath: Path, root: Path) -> bool:
        """True if the file sits in a skipped directory, is excluded, or is too large."""
        try:
            parts = filepath.relative_to(root).parts[:-1]
        except ValueError:
            parts = ()
        if any(part in self.ecosystem.skip_dirs for part in parts):
            logger.debug(f"Skipped (directory): {filepath}")
            return True

        if should_skip_file(filepath, self.exclude_patterns):
            logger.debug(f"Skipped (pattern): {filepath}")
            return True

        if self.max_file_size_bytes is not None:
            try:
                size = filepath.stat().st_size
            except OSError as e:
                logger.warning(f"Cannot stat {filepath}: {e}")
                return True
            if size > self.max_file_size_bytes:
                logger.debug(f"Skipped (size): {filepath} ({size} bytes)")
                return True
        return False
