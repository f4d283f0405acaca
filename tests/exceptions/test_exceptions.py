"""Tests for the exception hierarchy."""

from pathlib import Path

import pytest

from adapter_discovery.exceptions import (
    AdapterDiscoveryError,
    AnalysisError,
    ArtifactLoadError,
    ConfigurationError,
    DiscoveryConflictError,
    FileAccessError,
    InvalidConfigError,
    InvalidPathError,
    ParsingError,
    UnsupportedEcosystemError,
)
from adapter_discovery.frontends import get_frontend
from adapter_discovery.models import DiscoveryConflict, DiscoveryMethod, DiscoveryMethodSource


class TestHierarchy:
    """Test that every error is catchable at the right level."""

    @pytest.mark.parametrize(
        "error, parent",
        [
            (FileAccessError(Path("a.java"), "denied"), AnalysisError),
            (ParsingError(Path("a.kt"), "kotlin", "bad"), AnalysisError),
            (ArtifactLoadError(Path("a.dll"), "not PE"), AnalysisError),
            (UnsupportedEcosystemError("cobol", ["java"]), AnalysisError),
            (InvalidPathError(Path("/nope"), "missing"), ConfigurationError),
            (InvalidConfigError("workers", 0, "must be at least 1"), ConfigurationError),
            (DiscoveryConflictError([]), AdapterDiscoveryError),
        ],
    )
    def test_parents(self, error, parent):
        assert isinstance(error, parent)
        assert isinstance(error, AdapterDiscoveryError)


class TestMessages:
    """Test messages and details."""

    def test_str_includes_details(self):
        error = FileAccessError(Path("src/A.java"), "permission denied")
        assert str(error) == "Cannot access file: src/A.java (filepath=src/A.java, reason=permission denied)"
        assert error.reason == "permission denied"

    def test_no_details(self):
        assert str(AdapterDiscoveryError("plain")) == "plain"

    def test_invalid_config(self):
        error = InvalidConfigError("workers", 0, "must be at least 1")
        assert error.details == {"key": "workers", "value": "0", "reason": "must be at least 1"}

    def test_unsupported_ecosystem_from_lookup(self):
        with pytest.raises(UnsupportedEcosystemError) as excinfo:
            get_frontend("cobol")
        assert "java" in excinfo.value.supported


class TestDiscoveryConflictError:
    """Test the conflict report."""

    def test_report(self):
        conflict = DiscoveryConflict(
            class_name="Order",
            full_name="acme.Order",
            sources=[
                DiscoveryMethodSource(DiscoveryMethod.ATTRIBUTE, "GenerateAdapter", "/src/a/Order.java"),
                DiscoveryMethodSource(DiscoveryMethod.FILE_PATH, "**/a/*.java", "/src/a/Order.java"),
            ],
        )
        error = DiscoveryConflictError([conflict])
        assert error.conflicts == [conflict]
        assert error.details == {"classes": "acme.Order"}
        assert error.report().splitlines() == [
            "Discovery conflicts detected for 1 class(es):",
            "  Order (acme.Order)",
            "    - Attribute: 'GenerateAdapter' in /src/a/Order.java",
            "    - FilePath: '**/a/*.java' in /src/a/Order.java",
        ]
