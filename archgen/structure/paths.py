"""Placeholder-based path resolution against an architecture descriptor."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from archgen.errors import (
    MissingModuleSelection,
    UndeterminedLayer,
    UnknownAdapterKind,
    UnknownComponentPath,
    UnknownLayer,
)

from .descriptor import ArchitectureDescriptor

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+)\}")

# Scan order matters: on a tie the earlier entry wins.
KNOWN_LAYERS: tuple[str, ...] = ("core", "domain", "application", "infrastructure")

_MODULE_TOKEN = "{module}"


class ResolvedPath(BaseModel):
    """A concrete descriptor-relative path and the layer it belongs to."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Logical path relative to the base package root")
    layer: str | None = Field(default=None, description="Layer the path resolved into")


def substitute_placeholders(template: str, context: Mapping[str, Any]) -> str:
    """Replace every ``{key}`` whose key is in *context*, left to right.

    Substituted values are not scanned again, and tokens with no matching key
    are kept verbatim::

        substitute_placeholders("{a}/{b}", {"a": "x"}) -> "x/{b}"
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in context and context[key] is not None:
            return str(context[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


class PathResolver:
    """Resolves adapter and component paths and classifies them into layers.

    Stateless; one instance can be shared by every request.
    """

    # -- Resolution --------------------------------------------------------

    def resolve_adapter_path(
        self,
        descriptor: ArchitectureDescriptor,
        adapter_kind: str,
        name: str,
        context: Mapping[str, Any] | None = None,
    ) -> str:
        """Resolve the directory of an adapter of *adapter_kind* named *name*.

        Raises:
            UnknownAdapterKind: The descriptor has no template for the kind.
            MissingModuleSelection: The template needs ``{module}`` and none
                was given on a multi-module (or strict) descriptor.
        """
        template = descriptor.adapter_paths.get(adapter_kind)
        if template is None:
            raise UnknownAdapterKind(adapter_kind, list(descriptor.adapter_paths))

        full_context = {**(context or {}), "name": name, "type": adapter_kind}
        return self._expand(descriptor, template, full_context)

    def resolve_component_path(
        self,
        descriptor: ArchitectureDescriptor,
        role: str,
        context: Mapping[str, Any] | None = None,
    ) -> str:
        """Resolve the directory of a non-adapter component (entity, use case...)."""
        template = descriptor.component_paths.get(role)
        if template is None:
            raise UnknownComponentPath(role, list(descriptor.component_paths))
        return self._expand(descriptor, template, dict(context or {}))

    def resolve(
        self,
        descriptor: ArchitectureDescriptor,
        adapter_kind: str,
        name: str,
        context: Mapping[str, Any] | None = None,
    ) -> ResolvedPath:
        """Resolve an adapter path and validate its layer in one step."""
        path = self.resolve_adapter_path(descriptor, adapter_kind, name, context)
        return ResolvedPath(path=path, layer=self.validate_path(path, descriptor))

    def _expand(
        self,
        descriptor: ArchitectureDescriptor,
        template: str,
        context: Mapping[str, Any],
    ) -> str:
        if _MODULE_TOKEN in template and not context.get("module"):
            if descriptor.is_multi_module or descriptor.strict_modules:
                raise MissingModuleSelection(template, descriptor.modules)
            template = _strip_module_segment(template)
        return substitute_placeholders(template, context)

    # -- Layer classification ----------------------------------------------

    @staticmethod
    def extract_layer(path: str) -> str | None:
        """Return the left-most known layer appearing as a full path segment."""
        normalized = path.replace("\\", "/").lower()
        best_layer: str | None = None
        best_index = -1

        for layer in KNOWN_LAYERS:
            index = _segment_index(normalized, layer)
            if index < 0:
                continue
            if best_layer is None or index < best_index:
                best_layer = layer
                best_index = index

        return best_layer

    def validate_path(self, path: str, descriptor: ArchitectureDescriptor) -> str:
        """Return the layer of *path*, checked against the descriptor's graph.

        Raises:
            UndeterminedLayer: No known layer segment appears in the path.
            UnknownLayer: The layer found is not declared by the descriptor.
        """
        layer = self.extract_layer(path)
        if layer is None:
            raise UndeterminedLayer(path)

        declared = descriptor.declared_layers
        if descriptor.layer_dependencies is not None and layer not in declared:
            raise UnknownLayer(layer, path, declared)
        return layer


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _strip_module_segment(template: str) -> str:
    stripped = template.replace("{module}/", "").replace("/{module}", "")
    return stripped.replace(_MODULE_TOKEN, "")


def _segment_index(path: str, layer: str) -> int:
    """Index where *layer* occurs as a whole segment of *path*, or -1."""
    if path == layer or path.startswith(f"{layer}/"):
        return 0
    interior = path.find(f"/{layer}/")
    if interior >= 0:
        return interior
    if path.endswith(f"/{layer}"):
        return len(path) - len(layer) - 1
    return -1
