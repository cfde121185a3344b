"""archgen configuration.

Two typed configuration layers, both Pydantic v2 models:

* ``Settings`` -- tool-level settings for one invocation (backup and cache
  roots, template source selection, HTTP timeout). Built by the CLI, usually
  via ``Settings.from_env()``, and injected into the composition root.
* ``ProjectConfig`` -- the persisted ``.archgen.yml`` document that records
  how a generated project was initialised (base package, architecture,
  paradigm, framework, dependency overrides).
"""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from enum import Enum
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from archgen.errors import ConfigurationError, ProjectNotInitialized
from archgen.utils import atomic_write_text, dump_yaml, load_yaml_text, package_to_path, to_pascal

# Used when running from a source tree that was never installed.
FALLBACK_VERSION = "0.4.0"


def installed_version() -> str:
    """Version of the installed archgen distribution."""
    try:
        return version("archgen")
    except PackageNotFoundError:
        return FALLBACK_VERSION


TOOL_VERSION = installed_version()
CONFIG_FILE_NAME = ".archgen.yml"

_PROJECT_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
_PACKAGE_SEGMENT_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_COORDINATE_KEY_RE = re.compile(r"^[^:\s]+:[^:\s]+$")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Paradigm(str, Enum):
    """Programming paradigm of the generated project."""

    REACTIVE = "reactive"
    IMPERATIVE = "imperative"


class Framework(str, Enum):
    """Application framework of the generated project."""

    SPRING = "spring"
    QUARKUS = "quarkus"


class TemplateMode(str, Enum):
    """Where templates are read from."""

    BUILTIN = "builtin"
    LOCAL = "local"
    REMOTE = "remote"


# ---------------------------------------------------------------------------
# Template source settings
# ---------------------------------------------------------------------------


class TemplateSettings(BaseModel):
    """Template source selection.

    ``mode`` is advisory: an explicit ``local_path`` always wins, then a
    ``repository`` (remote), then the built-in pack.
    """

    mode: TemplateMode = Field(default=TemplateMode.BUILTIN)
    local_path: Path | None = Field(default=None, description="Directory holding a template pack")
    repository: str | None = Field(default=None, description="Remote template repository URL")
    branch: str = Field(default="main", description="Branch used for remote templates")

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"mode": self.mode.value}
        if self.local_path is not None:
            doc["localPath"] = str(self.local_path)
        if self.repository:
            doc["repository"] = self.repository
        doc["branch"] = self.branch
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "TemplateSettings":
        kwargs: dict[str, Any] = {}
        if doc.get("mode"):
            kwargs["mode"] = str(doc["mode"]).lower()
        if doc.get("localPath"):
            kwargs["local_path"] = Path(str(doc["localPath"]))
        if doc.get("repository"):
            kwargs["repository"] = str(doc["repository"])
        if doc.get("branch"):
            kwargs["branch"] = str(doc["branch"])
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Tool settings
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    """Per-invocation tool settings.

    The backup and cache roots are explicit values here rather than fixed
    locations, so every run (and every test) can point them somewhere else.
    """

    backup_dir: Path = Field(
        default=Path(".archgen/backups"),
        description="Backup root; relative paths are resolved against the project root",
    )
    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".archgen" / "templates-cache",
        description="Root of the remote-template cache",
    )
    templates: TemplateSettings = Field(default_factory=TemplateSettings)
    auto_detect_dir: Path | None = Field(
        default=Path("../archgen-templates"),
        description="Sibling template checkout picked up automatically when present",
    )
    http_timeout: int = Field(default=30, ge=1, description="Per-request timeout in seconds")

    def backup_root(self, project_root: Path) -> Path:
        """Absolute backup root for *project_root*."""
        if self.backup_dir.is_absolute():
            return self.backup_dir
        return Path(project_root) / self.backup_dir

    def with_project(self, project: "ProjectConfig | None") -> "Settings":
        """Return a copy whose template settings are overlaid by *project*'s."""
        if project is None or project.templates is None:
            return self
        merged = self.templates.model_copy(
            update=project.templates.model_dump(exclude_unset=True)
        )
        return self.model_copy(update={"templates": merged})

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            ARCHGEN_BACKUP_DIR, ARCHGEN_CACHE_DIR, ARCHGEN_TEMPLATES_PATH,
            ARCHGEN_TEMPLATES_REPOSITORY, ARCHGEN_TEMPLATES_BRANCH,
            ARCHGEN_HTTP_TIMEOUT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("ARCHGEN_BACKUP_DIR"):
            kwargs["backup_dir"] = Path(os.environ["ARCHGEN_BACKUP_DIR"])
        if os.environ.get("ARCHGEN_CACHE_DIR"):
            kwargs["cache_dir"] = Path(os.environ["ARCHGEN_CACHE_DIR"])
        if os.environ.get("ARCHGEN_HTTP_TIMEOUT"):
            kwargs["http_timeout"] = int(os.environ["ARCHGEN_HTTP_TIMEOUT"])

        template_kwargs: dict[str, Any] = {}
        if os.environ.get("ARCHGEN_TEMPLATES_PATH"):
            template_kwargs["mode"] = TemplateMode.LOCAL
            template_kwargs["local_path"] = Path(os.environ["ARCHGEN_TEMPLATES_PATH"])
        if os.environ.get("ARCHGEN_TEMPLATES_REPOSITORY"):
            template_kwargs.setdefault("mode", TemplateMode.REMOTE)
            template_kwargs["repository"] = os.environ["ARCHGEN_TEMPLATES_REPOSITORY"]
        if os.environ.get("ARCHGEN_TEMPLATES_BRANCH"):
            template_kwargs["branch"] = os.environ["ARCHGEN_TEMPLATES_BRANCH"]
        if template_kwargs:
            kwargs["templates"] = TemplateSettings(**template_kwargs)

        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Persisted project configuration
# ---------------------------------------------------------------------------


class ProjectConfig(BaseModel):
    """The ``.archgen.yml`` document of a generated project."""

    name: str = Field(..., description="Project name (Gradle root project name)")
    base_package: str = Field(..., description="Base Java package, e.g. com.acme.shop")
    architecture: str = Field(default="hexagonal-single", description="Architecture descriptor id")
    paradigm: Paradigm = Field(default=Paradigm.REACTIVE)
    framework: Framework = Field(default=Framework.SPRING)
    tool_version: str = Field(default=TOOL_VERSION)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    adapters_as_modules: bool = Field(
        default=False, description="Generate every adapter as its own Gradle module"
    )
    dependency_overrides: dict[str, str] = Field(
        default_factory=dict,
        description="Version overrides keyed by 'group:artifact'",
    )
    templates: TemplateSettings | None = Field(default=None)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not _PROJECT_NAME_RE.match(value):
            raise ValueError(
                "project name must start with a letter and contain only letters, "
                "digits, '-' or '_'"
            )
        return value

    @field_validator("base_package")
    @classmethod
    def _check_base_package(cls, value: str) -> str:
        value = value.strip()
        segments = value.split(".")
        bad = [seg for seg in segments if not _PACKAGE_SEGMENT_RE.match(seg)]
        if not value or bad:
            raise ValueError(
                f"invalid base package '{value}': every segment must match [a-z][a-z0-9_]*"
            )
        return value

    @field_validator("architecture")
    @classmethod
    def _check_architecture(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("architecture must not be blank")
        return value

    @field_validator("dependency_overrides")
    @classmethod
    def _check_overrides(cls, value: dict[str, str]) -> dict[str, str]:
        for key in value:
            if not _COORDINATE_KEY_RE.match(key):
                raise ValueError(f"dependency override key '{key}' must be 'group:artifact'")
        return value

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def base_package_path(self) -> str:
        return package_to_path(self.base_package)

    @property
    def name_pascal(self) -> str:
        return to_pascal(self.name)

    @property
    def is_reactive(self) -> bool:
        return self.paradigm is Paradigm.REACTIVE

    # ------------------------------------------------------------------
    # Document mapping
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Map to the camelCase ``.archgen.yml`` layout."""
        doc: dict[str, Any] = {
            "project": {
                "name": self.name,
                "basePackage": self.base_package,
                "toolVersion": self.tool_version,
                "createdAt": self.created_at.isoformat(timespec="seconds"),
            },
            "architecture": {
                "type": self.architecture,
                "paradigm": self.paradigm.value,
                "framework": self.framework.value,
                "adaptersAsModules": self.adapters_as_modules,
            },
        }
        if self.templates is not None:
            doc["templates"] = self.templates.to_document()
        if self.dependency_overrides:
            doc["dependencyOverrides"] = dict(self.dependency_overrides)
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ProjectConfig":
        """Build from a parsed ``.archgen.yml`` mapping.

        Raises:
            ConfigurationError: If required sections are missing or invalid.
        """
        project = doc.get("project")
        architecture = doc.get("architecture")
        if not isinstance(project, dict) or not isinstance(architecture, dict):
            raise ConfigurationError(
                f"{CONFIG_FILE_NAME} must contain 'project' and 'architecture' sections"
            )

        kwargs: dict[str, Any] = {
            "name": project.get("name") or "",
            "base_package": project.get("basePackage") or "",
            "architecture": architecture.get("type") or "",
            "adapters_as_modules": bool(architecture.get("adaptersAsModules", False)),
        }
        if architecture.get("paradigm"):
            kwargs["paradigm"] = str(architecture["paradigm"]).lower()
        if architecture.get("framework"):
            kwargs["framework"] = str(architecture["framework"]).lower()
        if project.get("toolVersion"):
            kwargs["tool_version"] = str(project["toolVersion"])
        if project.get("createdAt"):
            kwargs["created_at"] = project["createdAt"]
        overrides = doc.get("dependencyOverrides")
        if isinstance(overrides, dict):
            kwargs["dependency_overrides"] = {str(k): str(v) for k, v in overrides.items()}
        templates = doc.get("templates")
        if isinstance(templates, dict):
            kwargs["templates"] = TemplateSettings.from_document(templates)

        try:
            return cls(**kwargs)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid {CONFIG_FILE_NAME}: {exc}") from exc

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_yaml(self) -> str:
        return dump_yaml(self.to_document())

    def save(self, root: Path) -> Path:
        """Atomically write ``<root>/.archgen.yml`` and return its path."""
        return atomic_write_text(Path(root) / CONFIG_FILE_NAME, self.to_yaml())

    @classmethod
    def load(cls, root: Path) -> "ProjectConfig":
        """Read ``<root>/.archgen.yml``.

        Raises:
            ProjectNotInitialized: If the file does not exist.
            ConfigurationError: If the file cannot be parsed.
        """
        path = Path(root) / CONFIG_FILE_NAME
        if not path.is_file():
            raise ProjectNotInitialized(root)
        try:
            doc = load_yaml_text(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, TypeError) as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
        return cls.from_document(doc)

    @staticmethod
    def exists(root: Path) -> bool:
        return (Path(root) / CONFIG_FILE_NAME).is_file()
