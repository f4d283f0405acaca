"""Exception hierarchy for Adapter Discovery."""

from .analysis import (
    AnalysisError,
    ArtifactLoadError,
    FileAccessError,
    ParsingError,
    UnsupportedEcosystemError,
)
from .base import AdapterDiscoveryError
from .config import (
    ConfigurationError,
    InvalidConfigError,
    InvalidPathError,
)
from .discovery import DiscoveryConflictError

__all__ = [
    "AdapterDiscoveryError",
    "AnalysisError",
    "ArtifactLoadError",
    "FileAccessError",
    "ParsingError",
    "UnsupportedEcosystemError",
    "ConfigurationError",
    "InvalidPathError",
    "InvalidConfigError",
    "DiscoveryConflictError",
]
