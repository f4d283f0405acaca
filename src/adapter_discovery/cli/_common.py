"""Shared CLI helpers."""

from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import DiscoveryConfig, load_config

console = Console()


def resolve_config(config: Optional[Path] = None, **options) -> DiscoveryConfig:
    """Build configuration from CLI options; unset options fall through to files and env."""
    overrides = {key: value for key, value in options.items() if value not in (None, [], ())}
    return load_config(config_file=config, **overrides)


def join_paths(values: Optional[list[str]]) -> Optional[str]:
    """Repeated path options -> one ``:``-delimited setting."""
    if not values:
        return None
    return ":".join(values)


def join_rules(values: Optional[list[str]]) -> Optional[str]:
    """Repeated rule options -> one ``|``-delimited setting."""
    if not values:
        return None
    return "|".join(values)
