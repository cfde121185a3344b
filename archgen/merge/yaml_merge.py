"""Conflict-aware merging of YAML documents.

The merge is additive and *base-wins*: keys missing from the base document
are copied in from the overlay, nested mappings are merged recursively, and
whenever both sides hold different values the base value is kept and the
disagreement is recorded as a ``MergeConflict``. Lists are compared as
opaque values, never merged element by element.

Running the same overlay twice never changes the document again: the second
pass adds nothing and reports the same conflicts.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from archgen.utils import print_info, print_warning


class MergeConflict(BaseModel):
    """A key present on both sides with differing values (base kept)."""

    model_config = ConfigDict(frozen=True)

    key_path: str
    base_value: Any = None
    candidate_value: Any = None

    def describe(self) -> str:
        return (
            f"Property '{self.key_path}' already exists with value '{self.base_value}', "
            f"keeping existing value (new value: '{self.candidate_value}')"
        )


class MergeResult(BaseModel):
    """Outcome of ``YamlMergeEngine.merge``."""

    model_config = ConfigDict(frozen=True)

    merged: dict[str, Any] = Field(default_factory=dict)
    added_keys: list[str] = Field(default_factory=list)
    conflicts: list[MergeConflict] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def changed(self) -> bool:
        return bool(self.added_keys)

    def conflict_paths(self) -> list[str]:
        return [conflict.key_path for conflict in self.conflicts]

    def describe_conflicts(self) -> list[str]:
        return [conflict.describe() for conflict in self.conflicts]


class YamlMergeEngine:
    """Recursive, base-wins merge of mapping documents."""

    def __init__(self, report: bool = False) -> None:
        self.report = report

    def merge(self, base: Mapping[str, Any], overlay: Mapping[str, Any]) -> MergeResult:
        """Merge *overlay* into a copy of *base*.

        Neither input is mutated. Added key paths and conflicts are listed in
        the order the overlay declares them.

        Raises:
            TypeError: If either argument is not a mapping.
        """
        _require_mapping(base, "base")
        _require_mapping(overlay, "overlay")

        merged = copy.deepcopy(dict(base))
        added: list[str] = []
        conflicts: list[MergeConflict] = []
        self._merge_into(merged, overlay, "", added, conflicts)

        result = MergeResult(merged=merged, added_keys=added, conflicts=conflicts)
        if self.report:
            for line in result.describe_conflicts():
                print_warning(f"  {line}")
            print_info(f"  YAML merge: {len(added)} key(s) added, {len(conflicts)} conflict(s)")
        return result

    def deep_merge(self, base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
        """Same algorithm as :meth:`merge`, returning only the merged mapping."""
        _require_mapping(base, "base")
        _require_mapping(overlay, "overlay")

        merged = copy.deepcopy(dict(base))
        self._merge_into(merged, overlay, "", None, None)
        return merged

    def has_conflict(self, base: Mapping[str, Any], overlay: Mapping[str, Any], key: str) -> bool:
        """Would merging *key* keep a base value that differs from the overlay?

        Nested mappings are inspected recursively.
        """
        if key not in base or key not in overlay:
            return False
        base_value = base[key]
        overlay_value = overlay[key]
        if isinstance(base_value, Mapping) and isinstance(overlay_value, Mapping):
            return any(self.has_conflict(base_value, overlay_value, k) for k in overlay_value)
        return not values_equal(base_value, overlay_value)

    # -- Internals ---------------------------------------------------------

    def _merge_into(
        self,
        target: dict[str, Any],
        overlay: Mapping[str, Any],
        prefix: str,
        added: list[str] | None,
        conflicts: list[MergeConflict] | None,
    ) -> None:
        for key, overlay_value in overlay.items():
            path = f"{prefix}.{key}" if prefix else str(key)

            if key not in target:
                target[key] = copy.deepcopy(overlay_value)
                if added is not None:
                    added.append(path)
                continue

            base_value = target[key]
            if isinstance(base_value, Mapping) and isinstance(overlay_value, Mapping):
                nested = base_value if isinstance(base_value, dict) else dict(base_value)
                target[key] = nested
                self._merge_into(nested, overlay_value, path, added, conflicts)
            elif not values_equal(base_value, overlay_value) and conflicts is not None:
                conflicts.append(
                    MergeConflict(
                        key_path=path,
                        base_value=copy.deepcopy(base_value),
                        candidate_value=copy.deepcopy(overlay_value),
                    )
                )


def values_equal(left: Any, right: Any) -> bool:
    """Structural equality that does not treat ``True`` as ``1``."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(values_equal(left[k], right[k]) for k in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(values_equal(a, b) for a, b in zip(left, right))
    return left == right


def _require_mapping(value: Any, label: str) -> None:
    if not isinstance(value, Mapping):
        raise TypeError(f"{label} document must be a mapping, got {type(value).__name__}")
