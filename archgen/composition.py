"""Composition root: wires concrete collaborators for one CLI invocation."""

from __future__ import annotations

from pathlib import Path

import httpx

from archgen.backup import BackupCoordinator
from archgen.config import ProjectConfig, Settings
from archgen.filestore import LocalFileStore
from archgen.interfaces import TemplateSource
from archgen.orchestrator import GenerationOrchestrator
from archgen.scaffolder.metadata import TemplateMetadataSource
from archgen.scaffolder.sources import resolve_template_source
from archgen.scaffolder.templates import TemplateRenderer
from archgen.utils import print_info


def build_template_source(
    settings: Settings,
    project: ProjectConfig | None = None,
    root: str | Path = ".",
    transport: httpx.BaseTransport | None = None,
) -> TemplateSource:
    """Template source for *root*, with the project's own template settings applied."""
    return resolve_template_source(settings.with_project(project), Path(root), transport=transport)


def build_orchestrator(
    settings: Settings,
    project: ProjectConfig | None = None,
    root: str | Path = ".",
    transport: httpx.BaseTransport | None = None,
    verbose: bool = True,
) -> GenerationOrchestrator:
    """Build a ``GenerationOrchestrator`` backed by the local file system.

    Raises:
        ConfigurationError: The configured template source is unusable.
    """
    effective = settings.with_project(project)
    source = resolve_template_source(effective, Path(root), transport=transport)
    if verbose:
        print_info(f"Templates: {source.describe()}")

    return GenerationOrchestrator(
        metadata=TemplateMetadataSource(source),
        renderer=TemplateRenderer(source),
        files=LocalFileStore(),
        backups=BackupCoordinator(effective.backup_dir),
        verbose=verbose,
    )
