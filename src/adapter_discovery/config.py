"""Configuration loading and management for Adapter Discovery.

Configuration sources are merged in priority order:
    1. Defaults (defined in DiscoveryConfig)
    2. Global config (~/.adapter-discovery.toml)
    3. Project config (./adapter-discovery.toml)
    4. Explicit config file
    5. Environment variables (ADAPTER_DISCOVERY_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(java_source_paths="src/main/java", patterns=".*Dto$")
    >>> config.source_roots("java")
    [PosixPath('.../src/main/java')]
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .discovery.strategies import DiscoveryRules
from .exceptions import ConfigurationError, InvalidConfigError
from .scanning.languages import ECOSYSTEM_ORDER

Verbosity = Literal["quiet", "normal", "verbose"]

ENV_PREFIX = "ADAPTER_DISCOVERY_"
PATH_SEPARATOR = ":"


@dataclass(frozen=True)
class DiscoveryConfig:
    """Configuration for a discovery run.

    Attributes:
        Inputs:
            working_directory: Base for relative paths
            java_source_paths: ``:``-delimited Java source roots
            kotlin_source_paths: ``:``-delimited Kotlin source roots
            typescript_source_paths: ``:``-delimited TypeScript source roots
            python_source_paths: ``:``-delimited Python source roots
            csharp_assembly_paths: ``:``-delimited assemblies to load
            csharp_search_folders: ``:``-delimited folders searched for assemblies
            csharp_assembly_pattern: File name glob used inside search folders
            ecosystems: Ecosystems to run (empty = every ecosystem with inputs)

        Discovery rules:
            attribute: Annotation/attribute/decorator name
            patterns: ``|``-delimited regular expressions over class names
            namespaces: ``|``-delimited namespace globs
            file_paths: ``|``-delimited file path globs

        File filtering:
            exclude_patterns: Glob patterns to exclude from analysis
            max_file_size_mb: Maximum file size to analyze (MB)
            max_files: Maximum number of files per ecosystem

        Performance tuning:
            workers: Number of parallel workers (None = auto-detect)

        Output control:
            verbosity: Logging verbosity level
    """

    working_directory: str = "."
    java_source_paths: str = ""
    kotlin_source_paths: str = ""
    typescript_source_paths: str = ""
    python_source_paths: str = ""
    csharp_assembly_paths: str = ""
    csharp_search_folders: str = ""
    csharp_assembly_pattern: str = "*.dll"
    ecosystems: list[str] = field(default_factory=list)

    attribute: Optional[str] = None
    patterns: Optional[str] = None
    namespaces: Optional[str] = None
    file_paths: Optional[str] = None

    exclude_patterns: list[str] = field(
        default_factory=lambda: [
            "*.min.js",
            "*.bundle.js",
            "*.generated.*",
            "*.g.cs",
            "*_pb2.py",
        ]
    )
    max_file_size_mb: float = 10.0
    max_files: int = 10000

    workers: Optional[int] = None  # None = auto-detect from CPU cores
    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        unknown = [e for e in self.ecosystems if e not in ECOSYSTEM_ORDER]
        if unknown:
            raise InvalidConfigError(
                "ecosystems", ", ".join(unknown), f"expected any of {', '.join(ECOSYSTEM_ORDER)}"
            )

        if self.workers is not None and self.workers < 1:
            raise InvalidConfigError("workers", self.workers, "must be at least 1")
        if self.max_file_size_mb <= 0:
            raise InvalidConfigError("max_file_size_mb", self.max_file_size_mb, "must be positive")
        if self.max_files < 1:
            raise InvalidConfigError("max_files", self.max_files, "must be at least 1")
        if not self.csharp_assembly_pattern.strip():
            raise InvalidConfigError("csharp_assembly_pattern", self.csharp_assembly_pattern, "must not be empty")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "expected quiet, normal or verbose")

        # Fail early on bad regexes rather than mid-run
        self.rules()

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return int(self.max_file_size_mb * 1024 * 1024)

    @property
    def base_path(self) -> Path:
        return Path(self.working_directory).expanduser()

    def _paths(self, value: str) -> list[Path]:
        paths = []
        for part in value.split(PATH_SEPARATOR):
            part = part.strip()
            if not part:
                continue
            path = Path(part).expanduser()
            paths.append(path if path.is_absolute() else self.base_path / path)
        return paths

    def source_roots(self, ecosystem: str) -> list[Path]:
        """Configured input paths for ``ecosystem``, relative ones anchored at the working directory.

        For ``csharp`` these are the explicit assemblies plus the search folders.
        """
        if ecosystem == "csharp":
            return self.assembly_paths() + self.assembly_search_folders()
        value = getattr(self, f"{ecosystem}_source_paths", None)
        if value is None:
            raise InvalidConfigError("ecosystem", ecosystem, "no source path setting")
        return self._paths(value)

    def assembly_paths(self) -> list[Path]:
        return self._paths(self.csharp_assembly_paths)

    def assembly_search_folders(self) -> list[Path]:
        return self._paths(self.csharp_search_folders)

    def enabled_ecosystems(self) -> list[str]:
        """Ecosystems to run, in processing order."""
        if self.ecosystems:
            return [e for e in ECOSYSTEM_ORDER if e in self.ecosystems]
        return [e for e in ECOSYSTEM_ORDER if self.source_roots(e)]

    def rules(self) -> DiscoveryRules:
        return DiscoveryRules.from_strings(
            attribute=self.attribute,
            patterns=self.patterns,
            namespaces=self.namespaces,
            file_paths=self.file_paths,
        )


def load_config(config_file: Optional[Path] = None, **overrides) -> DiscoveryConfig:
    """Load configuration with auto-discovery and merging.

    Configuration sources are merged in priority order (lowest to highest):
        1. Defaults (DiscoveryConfig field defaults)
        2. Global config (~/.adapter-discovery.toml)
        3. Project config (./adapter-discovery.toml)
        4. Explicit config file (if config_file provided)
        5. Environment variables (ADAPTER_DISCOVERY_* prefix)
        6. CLI overrides (kwargs; None values are ignored)

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags)

    Returns:
        Validated DiscoveryConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing, or a value fails validation
    """
    merged: dict = {}

    global_config = Path.home() / ".adapter-discovery.toml"
    if global_config.exists():
        try:
            merged.update(_load_toml_file(global_config))
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Invalid global config '{global_config}': {e}")

    project_config = Path.cwd() / "adapter-discovery.toml"
    if project_config.exists():
        try:
            merged.update(_load_toml_file(project_config))
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Invalid project config '{project_config}': {e}")

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        try:
            merged.update(_load_toml_file(config_file))
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Invalid config file '{config_file}': {e}")

    merged.update(_load_env_vars())

    # Convert verbosity boolean flags to string
    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update({k: v for k, v in overrides.items() if v is not None})

    # [discovery] and [sources] tables are flattened into top-level fields
    for section in ("discovery", "sources"):
        table = merged.pop(section, None)
        if isinstance(table, dict):
            for key, value in table.items():
                merged.setdefault(key, value)

    try:
        return DiscoveryConfig(**merged)
    except TypeError as e:
        # Unknown field in config
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from ADAPTER_DISCOVERY_* environment variables.

    Every field can be set this way, e.g. ``ADAPTER_DISCOVERY_JAVA_SOURCE_PATHS``,
    ``ADAPTER_DISCOVERY_PATTERNS`` or ``ADAPTER_DISCOVERY_WORKERS``. List fields
    take comma-separated values.

    Returns:
        Dict of field_name -> parsed_value for any variables found.
    """
    type_hints = get_type_hints(DiscoveryConfig)

    result: dict[str, Any] = {}

    for field_name in DiscoveryConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint, field_name)
            if parsed is not None:
                result[field_name] = parsed
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))

    return result


def _parse_env_value(value: str, type_hint: Any, field_name: str) -> Any:
    """Parse environment variable string to the correct type.

    Args:
        value: Raw string from environment
        type_hint: Type annotation from dataclass
        field_name: Field name for error messages

    Returns:
        Parsed value or None if can't parse

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)
    if origin is type(None):
        return None

    # Handle Optional[X] which is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    # Lists: comma-separated
    if origin is list or type_hint is list:
        return [part.strip() for part in value.split(",") if part.strip()]

    # Bool: accept true/false/1/0/yes/no
    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    # String (including Literal types like Verbosity)
    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigurationError: If tomllib/tomli not available
        Exception: If TOML parsing fails
    """
    try:
        # Python 3.11+ has tomllib in stdlib
        import tomllib
    except ModuleNotFoundError:
        try:
            # Fallback to tomli for Python 3.9-3.10
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
