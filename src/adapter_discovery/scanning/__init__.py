"""Ecosystem-aware source scanning: stripping, body extraction, splitting."""

from .base import SourceFile, SourceScanner
from .bodies import (
    BodySpan,
    blank_nested_blocks,
    blank_spans,
    continuation_lines,
    find_brace_body,
    find_indented_body,
)
from .languages import (
    ECOSYSTEM_ORDER,
    ECOSYSTEMS,
    TEXT_ECOSYSTEMS,
    EcosystemConfig,
    detect_ecosystem,
    get_ecosystem_config,
)
from .splitting import annotations_before, read_balanced, split_declarations, split_top_level
from .stripper import LiteralLexer, StripRules, strip_comments, strip_literals
from .syntax import ClassInfo

__all__ = [
    # Enumeration
    "SourceFile",
    "SourceScanner",
    # Ecosystem config
    "EcosystemConfig",
    "ECOSYSTEMS",
    "ECOSYSTEM_ORDER",
    "TEXT_ECOSYSTEMS",
    "get_ecosystem_config",
    "detect_ecosystem",
    # Stripper
    "StripRules",
    "LiteralLexer",
    "strip_literals",
    "strip_comments",
    # Bodies
    "BodySpan",
    "find_brace_body",
    "continuation_lines",
    "find_indented_body",
    "blank_nested_blocks",
    "blank_spans",
    # Splitting
    "split_top_level",
    "read_balanced",
    "annotations_before",
    "split_declarations",
    # Intermediate model
    "ClassInfo",
]
