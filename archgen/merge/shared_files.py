"""Append-only, check-before-write edits to shared project files.

Shared files (``settings.gradle.kts``, ``build.gradle.kts``,
``application.yml``) are edited incrementally across many generation runs
instead of being re-rendered. Every edit here is a pure ``text -> text``
transformation that first checks whether its change is already present, so
applying the same edit twice leaves the file exactly as the first run did.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from archgen.utils import dump_yaml, load_yaml_text

from .yaml_merge import MergeConflict, YamlMergeEngine

SECURITY_WARNING_COMMENT = (
    "# WARNING: Do not store credentials in source control\n"
    "# Use environment variables or secret management in production\n"
)

_SENSITIVE_KEY_RE = re.compile(r"password|secret|credential|token|key|uri|url", re.IGNORECASE)
_INCLUDE_CALL_RE = re.compile(r"\binclude\(([^)]*)\)")
_STRING_LITERAL_RE = re.compile(r'"(?:\\.|[^"\\])*"')
_DOCUMENT_START_RE = re.compile(r"(?m)^---(?=[ \t]|$)")

_merge_engine = YamlMergeEngine()


@dataclass(frozen=True)
class EditOutcome:
    """Result of applying one or more edits to a shared file's text."""

    text: str
    changed: bool
    conflicts: tuple[MergeConflict, ...] = ()
    warnings: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# settings.gradle.kts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleInclude:
    """Add ``include("a:b:c")`` to a settings script unless already listed."""

    path: str
    module: str

    @property
    def gradle_path(self) -> str:
        return self.module.strip("/").replace("/", ":")

    @property
    def statement(self) -> str:
        return f'include("{self.gradle_path}")'

    def describe(self) -> str:
        return f"{self.path}: {self.statement}"

    def is_included(self, text: str) -> bool:
        """True when any ``include(...)`` call lists this module, alone or among others."""
        for call in _INCLUDE_CALL_RE.finditer(text):
            names = re.findall(r'"([^"]*)"', call.group(1))
            if any(name.lstrip(":") == self.gradle_path for name in names):
                return True
        return False

    def apply(self, text: str) -> EditOutcome:
        if self.is_included(text):
            return EditOutcome(text, False)

        prefix = text if not text or text.endswith("\n") else text + "\n"
        return EditOutcome(f"{prefix}{self.statement}\n", True)


# ---------------------------------------------------------------------------
# build.gradle.kts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DependencyLine:
    """Insert ``configuration(notation)`` into the ``dependencies { }`` block.

    The line goes right after the last single-line statement of the same
    configuration directly inside the block, or before the block's closing
    brace. A coordinate that is already declared (in any version) is left
    alone.
    """

    path: str
    configuration: str
    notation: str

    @classmethod
    def coordinate(cls, path: str, configuration: str, coordinate: str) -> "DependencyLine":
        return cls(path=path, configuration=configuration, notation=f'"{coordinate}"')

    @classmethod
    def project(cls, path: str, configuration: str, module: str) -> "DependencyLine":
        gradle_path = ":" + module.strip("/").replace("/", ":")
        return cls(path=path, configuration=configuration, notation=f'project("{gradle_path}")')

    @property
    def statement(self) -> str:
        return f"{self.configuration}({self.notation})"

    def describe(self) -> str:
        return f"{self.path}: {self.statement}"

    def _declaration(self) -> re.Pattern[str]:
        config = re.escape(self.configuration)
        if self.notation.startswith('"'):
            parts = self.notation.strip('"').split(":")
            group_artifact = re.escape(":".join(parts[:2]))
            return re.compile(rf'\b{config}\(\s*"{group_artifact}(:[^"]*)?"\s*\)')
        return re.compile(rf"\b{config}\(\s*{re.escape(self.notation)}\s*\)")

    def is_declared(self, text: str) -> bool:
        """True when a statement directly inside ``dependencies { }`` declares this dependency.

        Declarations nested in ``constraints { }`` or other closures only
        pin versions and do not count.
        """
        block = find_block(text, "dependencies")
        if block is None:
            return False
        pattern = self._declaration()
        body = text[block[0] + 1 : block[1]]
        return any(pattern.search(line.text) for line in block_statements(body))

    def apply(self, text: str) -> EditOutcome:
        block = find_block(text, "dependencies")
        if block is None:
            return EditOutcome(
                text,
                False,
                warnings=(
                    f"No dependencies block found in {self.path}; add manually: {self.statement}",
                ),
            )

        if self.is_declared(text):
            return EditOutcome(text, False)

        open_index, close_index = block
        body_start = open_index + 1
        body = text[body_start:close_index]

        starts_with_configuration = re.compile(rf"[ \t]*{re.escape(self.configuration)}\(")
        anchor = None
        for line in block_statements(body):
            if line.balanced and starts_with_configuration.match(line.text):
                anchor = line
        if anchor is not None:
            insert_at = body_start + anchor.end
            indent = anchor.text[: len(anchor.text) - len(anchor.text.lstrip())]
            return EditOutcome(f"{text[:insert_at]}\n{indent}{self.statement}{text[insert_at:]}", True)

        indent = _body_indent(body)
        line_start = text.rfind("\n", 0, close_index) + 1
        if text[line_start:close_index].strip():
            # closing brace shares its line with other content: "dependencies { }"
            updated = text[:close_index].rstrip(" ") + f"\n{indent}{self.statement}\n" + text[close_index:]
        else:
            updated = text[:line_start] + f"{indent}{self.statement}\n" + text[line_start:]
        return EditOutcome(updated, True)


def find_block(text: str, name: str) -> tuple[int, int] | None:
    """Return ``(open_brace, close_brace)`` indices of a ``name { ... }`` block.

    A block starting at column zero wins over nested ones (so the root
    ``dependencies`` block is preferred over ``subprojects { dependencies }``).
    """
    candidates = list(re.finditer(rf"(?m)^([ \t]*){re.escape(name)}\s*\{{", text))
    if not candidates:
        return None
    top_level = [m for m in candidates if not m.group(1)]
    match = (top_level or candidates)[0]
    open_index = match.end() - 1

    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return open_index, index
    return None


@dataclass(frozen=True)
class BlockLine:
    """One line of a block body; ``start``/``end`` are offsets into the body."""

    start: int
    end: int
    text: str
    balanced: bool


def block_statements(body: str) -> list[BlockLine]:
    """Lines of a block body that sit at the block's own nesting level.

    Lines inside nested closures (``constraints { }``, exclusion closures)
    and continuation lines of multi-line calls are left out. ``balanced`` is
    false for a line that opens a closure or call it does not also close.
    """
    lines: list[BlockLine] = []
    depth = 0
    offset = 0
    for raw in body.splitlines(keepends=True):
        code = _STRING_LITERAL_RE.sub('""', raw).split("//", 1)[0]
        opened = code.count("{") + code.count("(")
        closed = code.count("}") + code.count(")")
        if depth == 0:
            content = raw.rstrip("\r\n")
            lines.append(BlockLine(offset, offset + len(content), content, opened == closed))
        depth = max(depth + opened - closed, 0)
        offset += len(raw)
    return lines


def _body_indent(body: str) -> str:
    for line in body.splitlines():
        if line.strip():
            return line[: len(line) - len(line.lstrip())]
    return "    "


# ---------------------------------------------------------------------------
# application.yml
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class YamlOverlay:
    """Merge an overlay document into a YAML file, base values winning.

    Only the first document of a multi-document file receives the overlay;
    the documents after it (profile sections) are kept verbatim. A file that
    cannot be parsed as a mapping is left untouched and reported as a
    warning.
    """

    path: str
    overlay: Mapping[str, Any] = field(default_factory=dict, hash=False)
    source: str = ""

    def describe(self) -> str:
        origin = f" (from {self.source})" if self.source else ""
        return f"{self.path}: merge {len(self.overlay)} top-level key(s){origin}"

    def apply(self, text: str) -> EditOutcome:
        head, rest = split_first_document(text)
        try:
            base = load_yaml_text(head)
        except (yaml.YAMLError, TypeError) as exc:
            keys = ", ".join(str(key) for key in self.overlay)
            return EditOutcome(
                text,
                False,
                warnings=(f"Cannot merge into {self.path} ({exc}); add manually: {keys}",),
            )

        result = _merge_engine.merge(base, self.overlay)
        conflicts = tuple(result.conflicts)
        if not result.changed:
            return EditOutcome(text, False, conflicts=conflicts)

        header = leading_comments(head)
        if contains_sensitive_keys(self.overlay) and "Do not store credentials" not in text:
            header = SECURITY_WARNING_COMMENT + header
        return EditOutcome(header + dump_yaml(result.merged) + rest, True, conflicts=conflicts)


def split_first_document(text: str) -> tuple[str, str]:
    """Split a YAML stream into its first document and the verbatim remainder.

    A ``---`` marker that only has comments before it opens the first
    document rather than ending it.
    """
    for match in _DOCUMENT_START_RE.finditer(text):
        if _has_yaml_content(text[: match.start()]):
            return text[: match.start()], text[match.start():]
    return text, ""


def _has_yaml_content(text: str) -> bool:
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#") and not _DOCUMENT_START_RE.match(line):
            return True
    return False


def is_sensitive_key(key: Any) -> bool:
    return key is not None and _SENSITIVE_KEY_RE.search(str(key)) is not None


def contains_sensitive_keys(document: Mapping[str, Any]) -> bool:
    for key, value in document.items():
        if is_sensitive_key(key):
            return True
        if isinstance(value, Mapping) and contains_sensitive_keys(value):
            return True
    return False


def leading_comments(text: str) -> str:
    """The comment/blank-line block at the top of a YAML file, kept on rewrite."""
    kept: list[str] = []
    for line in text.splitlines(keepends=True):
        if line.strip() and not line.lstrip().startswith("#"):
            break
        kept.append(line if line.endswith("\n") else line + "\n")
    return "".join(kept)


# ---------------------------------------------------------------------------
# Batch application
# ---------------------------------------------------------------------------

SharedFileEdit = ModuleInclude | DependencyLine | YamlOverlay


def apply_edits(text: str, edits: Iterable[SharedFileEdit]) -> EditOutcome:
    """Apply *edits* in order to *text* and fold their outcomes together."""
    changed = False
    conflicts: list[MergeConflict] = []
    warnings: list[str] = []
    for edit in edits:
        outcome = edit.apply(text)
        text = outcome.text
        changed = changed or outcome.changed
        conflicts.extend(outcome.conflicts)
        warnings.extend(outcome.warnings)
    return EditOutcome(text, changed, tuple(conflicts), tuple(warnings))
