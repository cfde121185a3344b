"""Adapter and architecture metadata read from a template pack.

Adapter metadata (``metadata.yml``) is located through an ordered tuple of
``MetadataLookup`` strategies: the first strategy whose file exists wins,
and when none match the error lists every path that was tried. The default
order is the framework-aware layout
``frameworks/{framework}/{paradigm}/adapters/{category}/{adapter}/`` followed
by the legacy flat ``adapters/{adapter}/`` layout.
"""

from __future__ import annotations

import re

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from archgen.errors import AdapterMetadataNotFound, ConfigurationError
from archgen.interfaces import TemplateSource
from archgen.models import Dependency
from archgen.structure import ADAPTER_KINDS, ArchitectureDescriptor, StructureMetadataResolver
from archgen.utils import load_yaml_text

METADATA_FILE = "metadata.yml"

_ADAPTER_NAME_RE = re.compile(r"^[a-z][a-z0-9-]*$")
_CLASS_NAME_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")


# ---------------------------------------------------------------------------
# Adapter metadata model
# ---------------------------------------------------------------------------


class AdapterFile(BaseModel):
    """One rendered file: template reference and output path.

    ``output`` is relative to the adapter directory and may use
    ``{class_name}``, ``{entity_name}`` and ``{adapter_name}`` placeholders.
    """

    model_config = ConfigDict(frozen=True)

    template: str
    output: str


class ConfigurationClass(BaseModel):
    """A configuration class generated once per project (if absent)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    package_path: str = Field(default="", alias="packagePath")
    template_path: str = Field(default="", alias="templatePath")


def _test_scope(items: list[dict]) -> list[dict]:
    return [{"scope": "testImplementation", **item} if isinstance(item, dict) else item for item in items]


class AdapterDescriptor(BaseModel):
    """Parsed ``metadata.yml`` of one adapter."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: str = Field(..., description="'driven' or 'driving'")
    description: str = ""
    files: list[AdapterFile] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    test_dependencies: list[Dependency] = Field(default_factory=list, alias="testDependencies")
    application_properties_template: str | None = Field(
        default=None, alias="applicationPropertiesTemplate"
    )
    configuration_classes: list[ConfigurationClass] = Field(
        default_factory=list, alias="configurationClasses"
    )
    metadata_path: str = Field(default="", description="Pack path the descriptor was loaded from")

    @property
    def base_dir(self) -> str:
        return self.metadata_path.rsplit("/", 1)[0] if "/" in self.metadata_path else ""

    def template_ref(self, reference: str) -> str:
        """Resolve a template reference from this metadata file.

        References are relative to the metadata directory; a leading ``/``
        makes them relative to the pack root.
        """
        if reference.startswith("/"):
            return reference.lstrip("/")
        return f"{self.base_dir}/{reference}" if self.base_dir else reference

    def referenced_templates(self) -> list[str]:
        refs = [self.template_ref(f.template) for f in self.files]
        if self.application_properties_template:
            refs.append(self.template_ref(self.application_properties_template))
        refs += [self.template_ref(c.template_path) for c in self.configuration_classes if c.template_path]
        return refs

    def violations(self) -> list[str]:
        problems: list[str] = []
        if not _ADAPTER_NAME_RE.match(self.name):
            problems.append(
                f"Invalid adapter name: {self.name}. "
                "Adapter name must contain only lowercase letters, numbers, and hyphens"
            )
        if self.type not in ADAPTER_KINDS:
            problems.append(f"Invalid adapter type: {self.type}. Valid types: {', '.join(ADAPTER_KINDS)}")
        if not self.files:
            problems.append("Adapter metadata must declare at least one file")
        for config_class in self.configuration_classes:
            if not _CLASS_NAME_RE.match(config_class.name):
                problems.append(f"Invalid configuration class name: {config_class.name}")
            if not config_class.package_path:
                problems.append(f"Configuration class '{config_class.name}' is missing 'packagePath' field")
            if not config_class.template_path:
                problems.append(f"Configuration class '{config_class.name}' is missing 'templatePath' field")
        return problems


# ---------------------------------------------------------------------------
# Lookup strategies
# ---------------------------------------------------------------------------


class MetadataLookup(BaseModel):
    """One way of locating an adapter's ``metadata.yml`` in a pack."""

    model_config = ConfigDict(frozen=True)

    label: str
    pattern: str
    requires: tuple[str, ...] = ()

    def path_for(
        self,
        adapter_id: str,
        framework: str | None = None,
        paradigm: str | None = None,
        category: str | None = None,
    ) -> str | None:
        """The candidate path, or ``None`` when a required value is missing."""
        values = {
            "adapter": adapter_id.lower(),
            "framework": (framework or "").lower(),
            "paradigm": (paradigm or "").lower(),
            "category": (category or "").lower(),
        }
        if any(not values[key] for key in self.requires):
            return None
        return self.pattern.format(**values)


DEFAULT_LOOKUPS: tuple[MetadataLookup, ...] = (
    MetadataLookup(
        label="framework-aware",
        pattern="frameworks/{framework}/{paradigm}/adapters/{category}/{adapter}/" + METADATA_FILE,
        requires=("framework", "paradigm", "category"),
    ),
    MetadataLookup(label="legacy", pattern="adapters/{adapter}/" + METADATA_FILE),
)


# ---------------------------------------------------------------------------
# MetadataSource implementation
# ---------------------------------------------------------------------------


class TemplateMetadataSource:
    """``MetadataSource`` backed by a template pack.

    Descriptors are immutable, so each one is parsed once per instance and
    then served from memory.
    """

    def __init__(
        self,
        source: TemplateSource,
        lookups: tuple[MetadataLookup, ...] = DEFAULT_LOOKUPS,
    ) -> None:
        self.source = source
        self.lookups = lookups
        self.structures = StructureMetadataResolver(source)
        self._architectures: dict[str, ArchitectureDescriptor] = {}
        self._adapters: dict[tuple[str, ...], AdapterDescriptor] = {}

    def load_architecture(self, architecture_id: str) -> ArchitectureDescriptor:
        if architecture_id not in self._architectures:
            self._architectures[architecture_id] = self.structures.load(architecture_id)
        return self._architectures[architecture_id]

    def candidate_paths(
        self,
        adapter_id: str,
        framework: str | None = None,
        paradigm: str | None = None,
        category: str | None = None,
    ) -> list[str]:
        paths = [
            lookup.path_for(adapter_id, framework, paradigm, category) for lookup in self.lookups
        ]
        return [path for path in paths if path]

    def load_adapter(
        self,
        adapter_id: str,
        framework: str | None = None,
        paradigm: str | None = None,
        category: str | None = None,
    ) -> AdapterDescriptor:
        """Load the first matching ``metadata.yml`` for *adapter_id*.

        Raises:
            AdapterMetadataNotFound: No lookup strategy found a file.
            ConfigurationError: The file found is unparsable or invalid, or
                references templates that do not exist.
            TemplateFetchError: A remote template source could not be reached.
        """
        key = (adapter_id, framework or "", paradigm or "", category or "")
        if key in self._adapters:
            return self._adapters[key]

        tried = self.candidate_paths(adapter_id, framework, paradigm, category)
        for path in tried:
            if self.source.exists(path):
                descriptor = self.parse_adapter(path)
                self._adapters[key] = descriptor
                return descriptor
        raise AdapterMetadataNotFound(adapter_id, tried)

    def parse_adapter(self, path: str) -> AdapterDescriptor:
        try:
            raw = load_yaml_text(self.source.read(path))
        except (yaml.YAMLError, TypeError) as exc:
            raise ConfigurationError(f"Cannot parse adapter metadata {path}: {exc}") from exc
        if not raw:
            raise ConfigurationError(f"Adapter metadata {path} is empty")

        raw = dict(raw)
        raw["testDependencies"] = _test_scope(list(raw.get("testDependencies") or []))
        raw["metadata_path"] = path
        try:
            descriptor = AdapterDescriptor.model_validate(raw)
        except PydanticValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigurationError(f"Invalid adapter metadata {path}: {details}") from exc

        problems = descriptor.violations()
        missing = [ref for ref in descriptor.referenced_templates() if not self.source.exists(ref)]
        problems += [f"Referenced template not found: {ref}" for ref in missing]
        if problems:
            raise ConfigurationError(f"Invalid adapter metadata {path}: {'; '.join(problems)}")
        return descriptor

    def list_adapter_metadata(self) -> list[str]:
        """Every ``metadata.yml`` the source can enumerate."""
        return [
            path
            for path in self.source.list()
            if path.endswith(f"/{METADATA_FILE}")
            and (path.startswith("adapters/") or path.startswith("frameworks/"))
        ]
