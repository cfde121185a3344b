"""Loading and validation of ``architectures/<id>/structure.yml``."""

from __future__ import annotations

import yaml
from pydantic import ValidationError as PydanticValidationError

from archgen.errors import ConfigurationError, MetadataInvalid
from archgen.interfaces import TemplateSource
from archgen.utils import load_yaml_text

from .descriptor import ArchitectureDescriptor

STRUCTURE_FILE = "structure.yml"


def structure_path(architecture_id: str) -> str:
    return f"architectures/{architecture_id}/{STRUCTURE_FILE}"


class StructureMetadataResolver:
    """Reads an architecture descriptor from a template source.

    Holds no state besides the source; callers are free to cache the
    (immutable) descriptors it returns.
    """

    def __init__(self, source: TemplateSource) -> None:
        self.source = source

    def load(self, architecture_id: str) -> ArchitectureDescriptor:
        """Load and validate the descriptor for *architecture_id*.

        Raises:
            ConfigurationError: The file is missing or is not valid YAML.
            MetadataInvalid: The document breaks one or more invariants; the
                exception lists all of them.
        """
        path = structure_path(architecture_id)
        if not self.source.exists(path):
            raise ConfigurationError(
                f"Unknown architecture '{architecture_id}': {path} not found"
            )

        try:
            raw = load_yaml_text(self.source.read(path))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
        except TypeError as exc:
            raise MetadataInvalid(architecture_id, [str(exc)]) from exc

        return self.parse(architecture_id, raw)

    @staticmethod
    def parse(architecture_id: str, raw: dict) -> ArchitectureDescriptor:
        """Validate an already-parsed mapping into a descriptor."""
        try:
            descriptor = ArchitectureDescriptor.model_validate(raw)
        except PydanticValidationError as exc:
            violations = [
                f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise MetadataInvalid(architecture_id, violations) from exc

        violations = descriptor.violations()
        if violations:
            raise MetadataInvalid(architecture_id, violations)
        return descriptor
