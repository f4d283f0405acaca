"""Analysis-related exceptions: file access, parsing, artifact loading."""

from pathlib import Path
from typing import List

from .base import AdapterDiscoveryError


class AnalysisError(AdapterDiscoveryError):
    """Base class for analysis-related errors."""

    pass


class FileAccessError(AnalysisError):
    """Raised when a source file cannot be accessed or read."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Cannot access file: {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason


class ParsingError(AnalysisError):
    """Raised when file content cannot be parsed."""

    def __init__(self, filepath: Path, ecosystem: str, reason: str):
        super().__init__(
            f"Failed to parse {ecosystem} file: {filepath}",
            details={"filepath": str(filepath), "ecosystem": ecosystem, "reason": reason},
        )
        self.filepath = filepath
        self.ecosystem = ecosystem
        self.reason = reason


class ArtifactLoadError(AnalysisError):
    """Raised when a compiled artifact cannot be loaded."""

    def __init__(self, path: Path, reason: str):
        super().__init__(
            f"Cannot load artifact: {path}",
            details={"path": str(path), "reason": reason},
        )
        self.path = path
        self.reason = reason


class UnsupportedEcosystemError(AnalysisError):
    """Raised when asking for a front end that does not exist."""

    def __init__(self, ecosystem: str, supported: List[str]):
        super().__init__(
            f"Unsupported ecosystem: {ecosystem}",
            details={"ecosystem": ecosystem, "supported": ", ".join(supported)},
        )
        self.ecosystem = ecosystem
        self.supported = supported
