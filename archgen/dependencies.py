"""Dependency version overrides and conflict detection.

Conflicts are advisory: they are reported as warnings next to a generated
adapter and never stop a request.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

from archgen.config import CONFIG_FILE_NAME
from archgen.models import Dependency

# framework -> dependency group -> alternatives to suggest
INCOMPATIBLE_GROUPS: dict[str, dict[str, list[str]]] = {
    "spring": {
        "javax.enterprise": ["spring-context", "spring-boot-starter"],
        "io.quarkus": ["spring-boot-starter"],
    },
    "quarkus": {
        "org.springframework": ["quarkus-arc", "quarkus-resteasy"],
        "org.springframework.boot": ["quarkus-arc", "quarkus-resteasy"],
    },
    "micronaut": {
        "org.springframework": ["micronaut-inject"],
        "io.quarkus": ["micronaut-inject"],
    },
}

_DECLARATION_RE = re.compile(
    r"""^\s*(?P<scope>[A-Za-z]+)\(\s*"(?P<group>[^":\s]+):(?P<artifact>[^":\s]+)(?::(?P<version>[^"\s]+))?"\s*\)""",
    re.MULTILINE,
)


def parse_declared_dependencies(build_script: str) -> list[Dependency]:
    """Extract ``scope("group:artifact[:version]")`` lines from a Gradle script.

    ``project(...)`` and platform declarations are ignored.
    """
    return [
        Dependency(
            group=match.group("group"),
            artifact=match.group("artifact"),
            version=match.group("version") or "",
            scope=match.group("scope"),
        )
        for match in _DECLARATION_RE.finditer(build_script)
    ]


class DependencyConflictDetector:
    """Version and framework conflict checks for dependencies about to be added."""

    def detect_version_conflicts(
        self,
        existing: Iterable[Dependency],
        new: Iterable[Dependency],
    ) -> list[str]:
        existing_versions = {dep.key: dep.version for dep in existing}
        conflicts: list[str] = []
        for dep in new:
            current = existing_versions.get(dep.key)
            if current and dep.version and current != dep.version:
                conflicts.append(
                    f"Version conflict for {dep.key}: existing version {current}, "
                    f"new version {dep.version}"
                )
        return conflicts

    def detect_framework_conflicts(self, framework: str, new: Iterable[Dependency]) -> list[str]:
        incompatible = INCOMPATIBLE_GROUPS.get(framework.lower(), {})
        conflicts: list[str] = []
        for dep in new:
            alternatives = incompatible.get(dep.group)
            if alternatives:
                conflicts.append(
                    f"Framework conflict: {dep.key} may be incompatible with {framework} "
                    f"framework. Consider using {', '.join(alternatives)} alternatives."
                )
        return conflicts

    def suggest_resolution(self, conflicts: Sequence[str]) -> list[str]:
        """Human-readable advice for a list of conflict messages."""
        if not conflicts:
            return []

        suggestions = ["Dependency conflicts detected. Consider the following resolutions:"]
        if any("Version conflict" in conflict for conflict in conflicts):
            suggestions += [
                "For version conflicts:",
                "  - Use dependency management to enforce a single version",
                f"  - Add a version override in {CONFIG_FILE_NAME} under 'dependencyOverrides'",
            ]
        if any("Framework conflict" in conflict for conflict in conflicts):
            suggestions += [
                "For framework conflicts:",
                "  - Review adapter dependencies for framework compatibility",
                "  - Use framework-specific adapter variants when available",
            ]
        suggestions += [
            f"To override dependency versions, add to {CONFIG_FILE_NAME}:",
            "dependencyOverrides:",
            "  'group:artifact': 'version'",
        ]
        return suggestions

    @staticmethod
    def version_override(dep: Dependency, overrides: Mapping[str, str] | None) -> str | None:
        if not overrides:
            return None
        return overrides.get(dep.key)

    def apply_version_overrides(
        self,
        dependencies: Iterable[Dependency],
        overrides: Mapping[str, str] | None,
    ) -> list[Dependency]:
        """Copy of *dependencies* with any ``group:artifact`` override applied."""
        result: list[Dependency] = []
        for dep in dependencies:
            version = self.version_override(dep, overrides)
            result.append(dep.model_copy(update={"version": version}) if version else dep)
        return result
