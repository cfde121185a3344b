"""Exception hierarchy for archgen.

Every failure raised by the generation engine derives from ``ArchgenError``
and falls into one of five categories:

* ``ConfigurationError`` -- malformed or missing metadata / project config.
* ``ValidationError`` -- bad user input, duplicate artifacts, forbidden
  layer dependencies.
* ``PathResolutionError`` -- unknown adapter kind, missing module selection,
  undetermined or unknown layer.
* ``RenderError`` -- template missing or broken.
* ``StorageError`` -- read / write / backup / template-fetch failures.

Merge conflicts are *not* exceptions: they are recorded as
``archgen.merge.MergeConflict`` entries and reported, never raised.
"""

from __future__ import annotations

from collections.abc import Sequence


class ArchgenError(Exception):
    """Base class for every error raised by archgen."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(ArchgenError):
    """Raised when architecture metadata or project configuration is unusable."""


class MetadataInvalid(ConfigurationError):
    """Raised when an architecture descriptor violates its invariants."""

    def __init__(self, architecture_id: str, violations: Sequence[str]) -> None:
        self.architecture_id = architecture_id
        self.violations = list(violations)
        detail = "; ".join(self.violations)
        super().__init__(
            f"Invalid structure metadata for architecture '{architecture_id}': {detail}"
        )


class ProjectNotInitialized(ConfigurationError):
    """Raised when a command needs ``.archgen.yml`` and it does not exist."""

    def __init__(self, root: object) -> None:
        self.root = root
        super().__init__(
            f"Project at {root} is not initialized. Run 'archgen init' first."
        )


class AdapterMetadataNotFound(ConfigurationError):
    """Raised when no lookup strategy finds an adapter's ``metadata.yml``."""

    def __init__(self, adapter_id: str, tried: Sequence[str]) -> None:
        self.adapter_id = adapter_id
        self.tried = list(tried)
        super().__init__(
            f"Failed to load adapter metadata for '{adapter_id}'. "
            f"Tried: {', '.join(self.tried) or '(no applicable lookup)'}"
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ArchgenError):
    """Raised with the full, aggregated list of validation errors."""

    def __init__(self, errors: Sequence[str] | str) -> None:
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


class LayerDependencyViolation(ValidationError):
    """Raised when a layer is not allowed to depend on another layer."""

    def __init__(self, from_layer: str, to_layer: str, allowed: Sequence[str]) -> None:
        self.from_layer = from_layer
        self.to_layer = to_layer
        self.allowed = list(allowed)
        super().__init__(
            f"Layer '{from_layer}' cannot depend on layer '{to_layer}'. "
            f"Allowed dependencies: [{', '.join(self.allowed)}]"
        )


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------


class PathResolutionError(ArchgenError):
    """Raised when a target path cannot be computed or classified."""


class UnknownAdapterKind(PathResolutionError):
    def __init__(self, adapter_kind: str, known: Sequence[str]) -> None:
        self.adapter_kind = adapter_kind
        self.known = list(known)
        super().__init__(
            f"Unknown adapter kind '{adapter_kind}'. "
            f"Available kinds: {', '.join(self.known) or '(none)'}"
        )


class UnknownComponentPath(PathResolutionError):
    def __init__(self, role: str, known: Sequence[str]) -> None:
        self.role = role
        self.known = list(known)
        super().__init__(
            f"No component path declared for '{role}'. "
            f"Declared roles: {', '.join(self.known) or '(none)'}"
        )


class MissingModuleSelection(PathResolutionError):
    def __init__(self, template: str, modules: Sequence[str]) -> None:
        self.template = template
        self.modules = list(modules)
        available = ", ".join(self.modules) if self.modules else "(no modules declared)"
        super().__init__(
            f"Path template '{template}' requires a module selection. "
            f"Available modules: {available}"
        )


class UndeterminedLayer(PathResolutionError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Cannot determine the architectural layer of path '{path}'")


class UnknownLayer(PathResolutionError):
    def __init__(self, layer: str, path: str, declared: Sequence[str]) -> None:
        self.layer = layer
        self.path = path
        self.declared = list(declared)
        super().__init__(
            f"Layer '{layer}' of path '{path}' is not declared. "
            f"Declared layers: {', '.join(self.declared)}"
        )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class RenderError(ArchgenError):
    """Raised when a template cannot be rendered."""

    def __init__(self, template_id: str, message: str) -> None:
        self.template_id = template_id
        super().__init__(message)


class TemplateNotFound(RenderError):
    def __init__(self, template_id: str) -> None:
        super().__init__(template_id, f"Template not found: {template_id}")


class TemplateInvalid(RenderError):
    def __init__(self, template_id: str, reason: str, lineno: int | None = None) -> None:
        self.reason = reason
        self.lineno = lineno
        where = f" (line {lineno})" if lineno else ""
        super().__init__(template_id, f"Invalid template {template_id}{where}: {reason}")


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(ArchgenError):
    """Raised when reading or writing files fails."""

    def __init__(self, message: str, path: object = None) -> None:
        self.path = path
        super().__init__(message)


class BackupFailed(StorageError):
    def __init__(self, message: str, backup_id: str = "", location: object = None) -> None:
        self.backup_id = backup_id
        self.location = location
        super().__init__(message, path=location)


class BackupNotFound(StorageError):
    def __init__(self, backup_id: str, location: object = None) -> None:
        self.backup_id = backup_id
        super().__init__(f"Backup not found: {backup_id}", path=location)


class TemplateFetchError(StorageError):
    """Raised when a remote template cannot be downloaded."""

    def __init__(self, message: str, url: str = "") -> None:
        self.url = url
        super().__init__(message, path=url)
