"""Incremental edits to files shared by every generation run.

Quick usage::

    from archgen.merge import ModuleInclude, YamlMergeEngine

    outcome = ModuleInclude("settings.gradle.kts", "infrastructure/redis").apply(text)
    result = YamlMergeEngine().merge(existing, overlay)
"""

from archgen.merge.shared_files import (
    SECURITY_WARNING_COMMENT,
    DependencyLine,
    EditOutcome,
    ModuleInclude,
    SharedFileEdit,
    YamlOverlay,
    apply_edits,
    block_statements,
    contains_sensitive_keys,
    find_block,
    leading_comments,
    split_first_document,
)
from archgen.merge.yaml_merge import (
    MergeConflict,
    MergeResult,
    YamlMergeEngine,
    values_equal,
)

__all__ = [
    "DependencyLine",
    "EditOutcome",
    "MergeConflict",
    "MergeResult",
    "ModuleInclude",
    "SECURITY_WARNING_COMMENT",
    "SharedFileEdit",
    "YamlMergeEngine",
    "YamlOverlay",
    "apply_edits",
    "block_statements",
    "contains_sensitive_keys",
    "find_block",
    "leading_comments",
    "split_first_document",
    "values_equal",
]
