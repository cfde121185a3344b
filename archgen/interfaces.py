"""Collaborator interfaces injected into the generation engine.

The orchestrator only talks to these protocols, so tests can hand it
in-memory fakes instead of the Jinja2 renderer, the local file system or a
remote template repository.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from archgen.scaffolder.metadata import AdapterDescriptor
    from archgen.structure.descriptor import ArchitectureDescriptor


@runtime_checkable
class Renderer(Protocol):
    def render(self, template_id: str, context: dict[str, Any]) -> str:
        """Render *template_id*; raise ``TemplateNotFound`` / ``TemplateInvalid``."""
        ...


@runtime_checkable
class FileStore(Protocol):
    def read(self, path: Path) -> str: ...

    def write(self, path: Path, text: str) -> None:
        """Atomically replace *path* with *text*."""
        ...

    def exists(self, path: Path) -> bool: ...

    def list(self, path: Path) -> list[Path]: ...

    def mkdir(self, path: Path) -> None: ...

    def remove(self, path: Path) -> None: ...


@runtime_checkable
class TemplateSource(Protocol):
    """Read-only access to a template pack, addressed by ``/``-separated ids."""

    def read(self, path: str) -> str: ...

    def exists(self, path: str) -> bool: ...

    def list(self, prefix: str = "") -> list[str]: ...

    def describe(self) -> str: ...


@runtime_checkable
class MetadataSource(Protocol):
    def load_architecture(self, architecture_id: str) -> "ArchitectureDescriptor": ...

    def load_adapter(
        self,
        adapter_id: str,
        framework: str | None = None,
        paradigm: str | None = None,
        category: str | None = None,
    ) -> "AdapterDescriptor": ...
