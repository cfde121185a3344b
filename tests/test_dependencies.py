"""Unit tests for archgen.dependencies.

Tests cover:
- parse_declared_dependencies on Gradle Kotlin DSL scripts
- Version conflicts (only when both sides pin a different version)
- Framework conflicts per framework
- suggest_resolution text
- apply_version_overrides
"""

from __future__ import annotations

import textwrap

import pytest

from archgen.dependencies import DependencyConflictDetector, parse_declared_dependencies
from archgen.models import Dependency

pytestmark = pytest.mark.unit

BUILD_SCRIPT = textwrap.dedent(
    """\
    dependencies {
        implementation("org.springframework.boot:spring-boot-starter-webflux")
        implementation(project(":domain"))
        testImplementation("org.testcontainers:testcontainers:1.19.0")
        // implementation("commented:out:1.0")
    }
    """
)


@pytest.fixture
def detector() -> DependencyConflictDetector:
    return DependencyConflictDetector()


def _dep(coordinate: str, scope: str = "implementation") -> Dependency:
    group, artifact, *version = coordinate.split(":")
    return Dependency(group=group, artifact=artifact, version=version[0] if version else "", scope=scope)


class TestParseDeclaredDependencies:
    def test_parses_coordinates(self):
        deps = parse_declared_dependencies(BUILD_SCRIPT)
        assert [(d.scope, d.key, d.version) for d in deps] == [
            ("implementation", "org.springframework.boot:spring-boot-starter-webflux", ""),
            ("testImplementation", "org.testcontainers:testcontainers", "1.19.0"),
        ]

    def test_empty_script(self):
        assert parse_declared_dependencies("") == []


class TestVersionConflicts:
    def test_different_versions(self, detector):
        existing = parse_declared_dependencies(BUILD_SCRIPT)
        conflicts = detector.detect_version_conflicts(existing, [_dep("org.testcontainers:testcontainers:1.20.1")])
        assert conflicts == [
            "Version conflict for org.testcontainers:testcontainers: existing version 1.19.0, new version 1.20.1"
        ]

    def test_same_or_unpinned_versions(self, detector):
        existing = parse_declared_dependencies(BUILD_SCRIPT)
        new = [
            _dep("org.testcontainers:testcontainers:1.19.0"),
            _dep("org.testcontainers:testcontainers"),
            _dep("org.springframework.boot:spring-boot-starter-webflux:3.3.0"),
        ]
        assert detector.detect_version_conflicts(existing, new) == []


class TestFrameworkConflicts:
    def test_spring_rejects_quarkus(self, detector):
        conflicts = detector.detect_framework_conflicts("spring", [_dep("io.quarkus:quarkus-redis-client")])
        assert conflicts == [
            "Framework conflict: io.quarkus:quarkus-redis-client may be incompatible with spring "
            "framework. Consider using spring-boot-starter alternatives."
        ]

    def test_quarkus_rejects_spring_boot(self, detector):
        conflicts = detector.detect_framework_conflicts(
            "Quarkus", [_dep("org.springframework.boot:spring-boot-starter-data-redis")]
        )
        assert len(conflicts) == 1
        assert "quarkus-arc, quarkus-resteasy" in conflicts[0]

    def test_unknown_framework(self, detector):
        assert detector.detect_framework_conflicts("helidon", [_dep("io.quarkus:x")]) == []


class TestSuggestResolution:
    def test_no_conflicts(self, detector):
        assert detector.suggest_resolution([]) == []

    def test_version_and_framework_sections(self, detector):
        suggestions = detector.suggest_resolution(["Version conflict for a:b", "Framework conflict: c:d"])
        assert suggestions[0] == "Dependency conflicts detected. Consider the following resolutions:"
        assert "For version conflicts:" in suggestions
        assert "For framework conflicts:" in suggestions
        assert suggestions[-3:] == [
            "To override dependency versions, add to .archgen.yml:",
            "dependencyOverrides:",
            "  'group:artifact': 'version'",
        ]


class TestVersionOverrides:
    def test_applies_matching_override(self, detector):
        deps = [_dep("org.testcontainers:testcontainers:1.20.1", "testImplementation"), _dep("a:b")]
        result = detector.apply_version_overrides(deps, {"org.testcontainers:testcontainers": "1.21.0"})
        assert result[0].coordinate == "org.testcontainers:testcontainers:1.21.0"
        assert result[0].scope == "testImplementation"
        assert result[1] is deps[1]
        assert deps[0].version == "1.20.1"

    def test_no_overrides(self, detector):
        deps = [_dep("a:b:1.0")]
        assert detector.apply_version_overrides(deps, None) == deps
