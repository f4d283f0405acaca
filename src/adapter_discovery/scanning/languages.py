"""Ecosystem configurations: the single source of truth for per-ecosystem facts.

Adding a new text ecosystem:
  1. Add an EcosystemConfig entry to ECOSYSTEMS below.
  2. Register its front end in adapter_discovery.frontends.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import UnsupportedEcosystemError
from .stripper import JAVA_RULES, KOTLIN_RULES, PYTHON_RULES, TYPESCRIPT_RULES, StripRules


@dataclass(frozen=True)
class EcosystemConfig:
    """Everything the scanner needs to know about an ecosystem."""

    name: str
    extensions: tuple[str, ...]

    # Lexical vocabulary for the stripper; None for compiled metadata.
    strip_rules: Optional[StripRules] = None

    # Body delimiting: "brace", "indent" or "metadata".
    body_mode: str = "brace"

    # Directory names never descended into.
    skip_dirs: tuple[str, ...] = (
        ".git",
        ".hg",
        ".svn",
        ".idea",
        ".vs",
        ".vscode",
        "node_modules",
        "bin",
        "obj",
        "build",
        "out",
        "dist",
        "target",
        ".gradle",
    )


_PYTHON_SKIP_DIRS = (
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".vscode",
    "venv",
    ".venv",
    "env",
    "__pycache__",
    ".tox",
    ".nox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".eggs",
    "build",
    "dist",
    "site-packages",
    "node_modules",
)


# ── Ecosystem definitions ──────────────────────────────────────────

ECOSYSTEMS = {
    "csharp": EcosystemConfig(
        name="csharp",
        extensions=(".dll", ".exe"),
        body_mode="metadata",
    ),
    "java": EcosystemConfig(
        name="java",
        extensions=(".java",),
        strip_rules=JAVA_RULES,
    ),
    "kotlin": EcosystemConfig(
        name="kotlin",
        extensions=(".kt", ".kts"),
        strip_rules=KOTLIN_RULES,
    ),
    "typescript": EcosystemConfig(
        name="typescript",
        extensions=(".ts", ".tsx", ".mts", ".cts"),
        strip_rules=TYPESCRIPT_RULES,
    ),
    "python": EcosystemConfig(
        name="python",
        extensions=(".py", ".pyi"),
        strip_rules=PYTHON_RULES,
        body_mode="indent",
        skip_dirs=_PYTHON_SKIP_DIRS,
    ),
}

# Fixed processing order; also the order results are emitted in.
ECOSYSTEM_ORDER = ("csharp", "java", "kotlin", "typescript", "python")

TEXT_ECOSYSTEMS = tuple(name for name in ECOSYSTEM_ORDER if ECOSYSTEMS[name].strip_rules)


def get_ecosystem_config(name: str) -> EcosystemConfig:
    """Look up an ecosystem by name. Raises UnsupportedEcosystemError if unknown."""
    try:
        return ECOSYSTEMS[name]
    except KeyError:
        raise UnsupportedEcosystemError(name, list(ECOSYSTEM_ORDER))


# Extension to ecosystem mapping (built from ECOSYSTEMS)
_EXTENSION_TO_ECOSYSTEM: dict[str, str] = {}
for _name, _cfg in ECOSYSTEMS.items():
    for _ext in _cfg.extensions:
        _EXTENSION_TO_ECOSYSTEM[_ext] = _name


def detect_ecosystem(filepath) -> str:
    """Detect the ecosystem from a file extension.

    Args:
        filepath: Path object or string

    Returns:
        Ecosystem name (e.g., "kotlin") or "unknown"
    """
    path = Path(filepath)
    return _EXTENSION_TO_ECOSYSTEM.get(path.suffix.lower(), "unknown")
