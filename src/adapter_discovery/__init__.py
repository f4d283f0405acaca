"""
Adapter Discovery - find adapter generation candidates across ecosystems

Scans Java, Kotlin, TypeScript and Python sources and compiled .NET
assemblies, selects classes by attribute, name pattern, namespace or file
path, and fails the run when one class name is selected more than once.
"""

__version__ = "0.1.0"

from .config import DiscoveryConfig, load_config
from .discovery import DiscoveryResult, DiscoveryService
from .models import (
    DiscoveredClass,
    DiscoveredMethod,
    DiscoveredParameter,
    DiscoveredProperty,
    DiscoveryConflict,
    DiscoveryMethod,
)

__all__ = [
    "DiscoveryConfig",
    "load_config",
    "DiscoveryService",  # Main entry point
    "DiscoveryResult",
    "DiscoveredClass",
    "DiscoveredMethod",
    "DiscoveredParameter",
    "DiscoveredProperty",
    "DiscoveryConflict",
    "DiscoveryMethod",
]
