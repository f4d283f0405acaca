"""Discovery strategies: decide whether a parsed class is a generation candidate.

Four strategies are tried in a fixed order and the first that matches wins:

    Attribute  - a class annotation equals the configured name (case-insensitive)
    Pattern    - a regex matches the simple or fully-qualified name
    Namespace  - a glob fully matches the namespace (``*`` = any run)
    FilePath   - a glob fully matches the absolute file path
                 (``**`` = any run, ``*`` = any run within one path segment)

Each ``|``-delimited rule is tried on its own; the match records the single
rule text that hit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from ..exceptions import InvalidConfigError
from ..logging_config import get_logger
from ..models import DiscoveryMethod
from ..scanning.syntax import ClassInfo

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscoveryMatch:
    """The strategy and rule text that selected a class."""

    method: DiscoveryMethod
    source: str


@dataclass(frozen=True)
class _Rule:
    source: str
    regex: re.Pattern


def split_rules(value: Optional[str]) -> list[str]:
    """Split a ``|``-delimited rule list, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split("|") if part.strip()]


def namespace_glob(pattern: str) -> re.Pattern:
    """``Acme.*.Models`` -> anchored regex where ``*`` spans any run."""
    return re.compile("".join(".*" if ch == "*" else re.escape(ch) for ch in pattern))


def path_glob(pattern: str) -> re.Pattern:
    """``**/Models/*.java`` -> anchored regex; ``*`` stops at ``/``."""
    pattern = pattern.replace("\\", "/")
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


@dataclass(frozen=True)
class DiscoveryRules:
    """Compiled discovery configuration. Empty lists disable a strategy."""

    attribute: Optional[str] = None
    patterns: tuple[_Rule, ...] = field(default_factory=tuple)
    namespaces: tuple[_Rule, ...] = field(default_factory=tuple)
    file_paths: tuple[_Rule, ...] = field(default_factory=tuple)

    @classmethod
    def from_strings(
        cls,
        attribute: Optional[str] = None,
        patterns: Optional[str] = None,
        namespaces: Optional[str] = None,
        file_paths: Optional[str] = None,
    ) -> DiscoveryRules:
        """Build rules from configuration strings.

        Raises:
            InvalidConfigError: If a pattern is not a valid regular expression
        """
        compiled_patterns = []
        for source in split_rules(patterns):
            try:
                compiled_patterns.append(_Rule(source, re.compile(source)))
            except re.error as e:
                raise InvalidConfigError("patterns", source, f"Invalid regular expression: {e}") from e

        attribute = (attribute or "").strip().lstrip("@[").rstrip("]").strip() or None
        rules = cls(
            attribute=attribute,
            patterns=tuple(compiled_patterns),
            namespaces=tuple(_Rule(s, namespace_glob(s)) for s in split_rules(namespaces)),
            file_paths=tuple(_Rule(s, path_glob(s)) for s in split_rules(file_paths)),
        )
        logger.debug(
            f"Discovery rules: attribute={rules.attribute!r}, {len(rules.patterns)} patterns, "
            f"{len(rules.namespaces)} namespaces, {len(rules.file_paths)} file paths"
        )
        return rules

    @property
    def is_empty(self) -> bool:
        return not (self.attribute or self.patterns or self.namespaces or self.file_paths)


class StrategyEvaluator:
    """Applies DiscoveryRules to classes, in strategy precedence order."""

    def __init__(self, rules: DiscoveryRules):
        self.rules = rules
        self._attribute = _attribute_key(rules.attribute) if rules.attribute else None

    def evaluate(self, info: ClassInfo, file_path: Union[str, Path, None] = None) -> Optional[DiscoveryMatch]:
        """Return the first matching strategy for ``info``, or None."""
        if self._attribute is not None:
            if any(key == self._attribute for key in map(_attribute_key, info.attributes)):
                return DiscoveryMatch(DiscoveryMethod.ATTRIBUTE, self.rules.attribute)

        for rule in self.rules.patterns:
            if rule.regex.search(info.name) or rule.regex.search(info.full_name):
                return DiscoveryMatch(DiscoveryMethod.PATTERN, rule.source)

        for rule in self.rules.namespaces:
            if rule.regex.fullmatch(info.namespace):
                return DiscoveryMatch(DiscoveryMethod.NAMESPACE, rule.source)

        if self.rules.file_paths:
            path = str(file_path if file_path is not None else info.file_path).replace("\\", "/")
            for rule in self.rules.file_paths:
                if rule.regex.fullmatch(path):
                    return DiscoveryMatch(DiscoveryMethod.FILE_PATH, rule.source)

        return None


def _attribute_key(name: str) -> str:
    """Last dotted segment, lower-cased, without an ``Attribute`` suffix.

    ``@javax.persistence.Entity`` -> ``entity``, ``GenerateAdapterAttribute`` -> ``generateadapter``.
    """
    key = name.strip().lstrip("@").rsplit(".", 1)[-1].lower()
    if key.endswith("attribute") and len(key) > len("attribute"):
        key = key[: -len("attribute")]
    return key
