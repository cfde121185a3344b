"""Architecture descriptor model.

An ``ArchitectureDescriptor`` is the parsed form of one
``architectures/<id>/structure.yml`` file: where adapters and components
live, how classes are named, which layers may depend on which, and (for
multi-module variants) which Gradle modules exist.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

ADAPTER_KINDS: tuple[str, ...] = ("driven", "driving")


class NamingConventions(BaseModel):
    """Per-component-type class name prefixes and suffixes."""

    model_config = ConfigDict(frozen=True)

    prefixes: dict[str, str] = Field(default_factory=dict)
    suffixes: dict[str, str] = Field(default_factory=dict)

    def apply(self, component_type: str, base_name: str) -> str:
        """Return ``prefix + base_name + suffix`` for *component_type*."""
        prefix = self.prefixes.get(component_type, "")
        suffix = self.suffixes.get(component_type, "")
        return f"{prefix}{base_name}{suffix}"


class LayerDependencies(BaseModel):
    """Declared layer graph: layer -> layers it may depend on directly."""

    model_config = ConfigDict(frozen=True)

    allowed: dict[str, list[str]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_mapping(cls, data: Any) -> Any:
        # structure.yml writes the graph directly: {domain: [], application: [domain]}
        if isinstance(data, dict) and set(data) != {"allowed"}:
            return {"allowed": {str(k): list(v or []) for k, v in data.items()}}
        return data

    @property
    def layers(self) -> list[str]:
        return list(self.allowed)

    def allowed_for(self, layer: str) -> list[str]:
        return list(self.allowed.get(layer, []))

    def can_depend_on(self, from_layer: str, to_layer: str) -> bool:
        return to_layer in self.allowed.get(from_layer, [])

    def undeclared_references(self) -> list[tuple[str, str]]:
        """``(from, to)`` edges whose target is not itself a declared layer."""
        return [
            (source, target)
            for source, targets in self.allowed.items()
            for target in targets
            if target not in self.allowed
        ]


class ArchitectureDescriptor(BaseModel):
    """Immutable declarative definition of one architecture variant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    architecture: str = Field(default="", description="Architecture id, e.g. hexagonal-single")
    adapter_paths: dict[str, str] = Field(default_factory=dict, alias="adapterPaths")
    component_paths: dict[str, str] = Field(default_factory=dict, alias="componentPaths")
    naming_conventions: NamingConventions = Field(
        default_factory=NamingConventions, alias="namingConventions"
    )
    layer_dependencies: LayerDependencies | None = Field(default=None, alias="layerDependencies")
    packages: list[str] = Field(default_factory=list)
    modules: list[str] = Field(default_factory=list)
    application_module: str = Field(default="", alias="applicationModule")
    strict_modules: bool = Field(default=False, alias="strictModules")
    adapters_as_modules: bool = Field(
        default=False,
        alias="adaptersAsModules",
        description="Every adapter becomes its own Gradle module",
    )

    @property
    def is_multi_module(self) -> bool:
        return bool(self.modules)

    @property
    def declared_layers(self) -> list[str]:
        return self.layer_dependencies.layers if self.layer_dependencies else []

    def violations(self) -> list[str]:
        """Every broken invariant, in a stable order. Empty when valid."""
        problems: list[str] = []

        if not self.architecture.strip():
            problems.append("architecture: must not be blank")

        if not self.adapter_paths:
            problems.append("adapterPaths: must not be empty")
        elif not any(kind in self.adapter_paths for kind in ADAPTER_KINDS):
            problems.append("adapterPaths: must declare at least one of 'driven' or 'driving'")

        for kind, template in self.adapter_paths.items():
            if "{name}" not in template:
                problems.append(
                    f"adapterPaths.{kind}: template '{template}' is missing the {{name}} placeholder"
                )

        if self.layer_dependencies is not None:
            for source, target in self.layer_dependencies.undeclared_references():
                problems.append(
                    f"layerDependencies.{source}: references undeclared layer '{target}'"
                )

        if self.application_module and self.modules and self.application_module not in self.modules:
            problems.append(
                f"applicationModule: '{self.application_module}' is not a declared module"
            )

        if self.adapters_as_modules and not self.modules:
            problems.append("adaptersAsModules: requires at least one declared module")

        return problems
