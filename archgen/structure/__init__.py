"""Architecture structure model.

Everything that depends only on an architecture descriptor: loading it,
resolving placeholder paths against it, and checking layer dependencies.

Quick usage::

    from archgen.structure import PathResolver, StructureMetadataResolver

    descriptor = StructureMetadataResolver(source).load("hexagonal-single")
    path = PathResolver().resolve_adapter_path(descriptor, "driven", "redis", {})
"""

from archgen.structure.descriptor import (
    ADAPTER_KINDS,
    ArchitectureDescriptor,
    LayerDependencies,
    NamingConventions,
)
from archgen.structure.layers import LayerDependencyValidator
from archgen.structure.paths import (
    KNOWN_LAYERS,
    PathResolver,
    ResolvedPath,
    substitute_placeholders,
)
from archgen.structure.resolver import StructureMetadataResolver, structure_path

__all__ = [
    "ADAPTER_KINDS",
    "ArchitectureDescriptor",
    "KNOWN_LAYERS",
    "LayerDependencies",
    "LayerDependencyValidator",
    "NamingConventions",
    "PathResolver",
    "ResolvedPath",
    "StructureMetadataResolver",
    "structure_path",
    "substitute_placeholders",
]
