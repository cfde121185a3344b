"""Layer dependency checks against a descriptor's declared graph.

Only the declared, direct edges are honoured: if ``infrastructure`` may
depend on ``application`` and ``application`` on ``domain``, that says
nothing about ``infrastructure -> domain``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from archgen.errors import LayerDependencyViolation

from .descriptor import ArchitectureDescriptor, LayerDependencies


class LayerDependencyValidator:
    """Membership tests for ``from -> to`` layer edges."""

    def __init__(
        self,
        dependencies: LayerDependencies | Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        if dependencies is None:
            dependencies = LayerDependencies()
        elif not isinstance(dependencies, LayerDependencies):
            dependencies = LayerDependencies(
                allowed={layer: list(targets) for layer, targets in dependencies.items()}
            )
        self.dependencies = dependencies

    @classmethod
    def for_descriptor(cls, descriptor: ArchitectureDescriptor) -> "LayerDependencyValidator":
        return cls(descriptor.layer_dependencies)

    @property
    def enforced(self) -> bool:
        """``False`` when the descriptor declares no graph at all."""
        return bool(self.dependencies.allowed)

    def allowed_for(self, layer: str) -> list[str]:
        return self.dependencies.allowed_for(layer)

    def can_depend_on(self, from_layer: str, to_layer: str) -> bool:
        """``True`` iff *to_layer* is listed for *from_layer*.

        An undeclared *from_layer* simply yields ``False``.
        """
        return self.dependencies.can_depend_on(from_layer, to_layer)

    def validate_dependency(self, from_layer: str, to_layer: str) -> None:
        """Raise ``LayerDependencyViolation`` unless the edge is declared.

        A layer may always use itself.
        """
        if from_layer == to_layer:
            return
        if not self.can_depend_on(from_layer, to_layer):
            raise LayerDependencyViolation(from_layer, to_layer, self.allowed_for(from_layer))

    def check(self, edges: Sequence[tuple[str, str]]) -> list[str]:
        """Validate many edges and return every violation message."""
        errors: list[str] = []
        for from_layer, to_layer in edges:
            try:
                self.validate_dependency(from_layer, to_layer)
            except LayerDependencyViolation as exc:
                message = str(exc)
                if message not in errors:
                    errors.append(message)
        return errors
