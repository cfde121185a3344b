"""Shared pytest fixtures for the archgen test suite.

Provides reusable fixtures for:
- Temporary project roots and backup directories
- The built-in template pack and its metadata / renderer
- Sample project configurations (single and multi-module)
- Orchestrators wired to the local file system
- Minimal in-memory template sources
"""

from __future__ import annotations

from pathlib import Path

import pytest

from archgen.backup import BackupCoordinator
from archgen.config import Paradigm, ProjectConfig
from archgen.errors import TemplateNotFound
from archgen.filestore import LocalFileStore
from archgen.models import ComponentConfig, ComponentKind, GenerationRequest
from archgen.orchestrator import GenerationOrchestrator
from archgen.scaffolder import BUILTIN_TEMPLATE_DIR, LocalTemplateSource, TemplateMetadataSource, TemplateRenderer


# ---------------------------------------------------------------------------
# In-memory template source
# ---------------------------------------------------------------------------


class DictTemplateSource:
    """``TemplateSource`` over a plain ``{path: text}`` mapping."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = dict(files or {})

    def read(self, path: str) -> str:
        key = path.lstrip("/")
        if key not in self.files:
            raise TemplateNotFound(path)
        return self.files[key]

    def exists(self, path: str) -> bool:
        return path.lstrip("/") in self.files

    def list(self, prefix: str = "") -> list[str]:
        wanted = prefix.strip("/")
        return sorted(p for p in self.files if not wanted or p.startswith(f"{wanted}/"))

    def describe(self) -> str:
        return "in-memory templates"


@pytest.fixture
def dict_source() -> DictTemplateSource:
    return DictTemplateSource()


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary directory for generated projects (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    """Backup root kept outside the project tree."""
    return tmp_path / "backups"


# ---------------------------------------------------------------------------
# Template pack
# ---------------------------------------------------------------------------


@pytest.fixture
def builtin_source() -> LocalTemplateSource:
    return LocalTemplateSource(BUILTIN_TEMPLATE_DIR)


@pytest.fixture
def builtin_metadata(builtin_source: LocalTemplateSource) -> TemplateMetadataSource:
    return TemplateMetadataSource(builtin_source)


@pytest.fixture
def builtin_renderer(builtin_source: LocalTemplateSource) -> TemplateRenderer:
    return TemplateRenderer(builtin_source)


# ---------------------------------------------------------------------------
# Project configurations
# ---------------------------------------------------------------------------


@pytest.fixture
def project_config() -> ProjectConfig:
    """Reactive Spring project on the single-module hexagonal layout."""
    return ProjectConfig(name="shop", base_package="com.acme.shop", architecture="hexagonal-single")


@pytest.fixture
def imperative_config() -> ProjectConfig:
    return ProjectConfig(
        name="shop",
        base_package="com.acme.shop",
        architecture="hexagonal-single",
        paradigm=Paradigm.IMPERATIVE,
    )


@pytest.fixture
def multi_module_config() -> ProjectConfig:
    return ProjectConfig(name="shop", base_package="com.acme.shop", architecture="hexagonal-multi")


@pytest.fixture
def granular_config() -> ProjectConfig:
    return ProjectConfig(
        name="shop", base_package="com.acme.shop", architecture="hexagonal-multi-granular"
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


@pytest.fixture
def orchestrator(
    builtin_metadata: TemplateMetadataSource,
    builtin_renderer: TemplateRenderer,
    backup_dir: Path,
) -> GenerationOrchestrator:
    """Orchestrator over the built-in pack and the real file system."""
    return GenerationOrchestrator(
        metadata=builtin_metadata,
        renderer=builtin_renderer,
        files=LocalFileStore(),
        backups=BackupCoordinator(backup_dir),
        verbose=False,
    )


def _build_request(
    root: Path,
    project: ProjectConfig,
    kind: ComponentKind = ComponentKind.PROJECT,
    force: bool = False,
    **component,
) -> GenerationRequest:
    """Build a ``GenerationRequest``; project requests default their name to the project's."""
    if kind is ComponentKind.PROJECT:
        component.setdefault("name", project.name)
    return GenerationRequest(
        root=root,
        project=project,
        component=ComponentConfig(kind=kind, **component),
        force=force,
    )


@pytest.fixture
def make_request():
    """Factory fixture: ``make_request(root, project, kind, force=False, **component)``."""
    return _build_request


@pytest.fixture
def initialized_project(
    tmp_project_dir: Path,
    project_config: ProjectConfig,
    orchestrator: GenerationOrchestrator,
) -> Path:
    """A project root on which ``init`` has already succeeded."""
    result = orchestrator.generate(_build_request(tmp_project_dir, project_config))
    assert result.success, result.errors
    return tmp_project_dir
