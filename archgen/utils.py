"""Shared utility functions for archgen.

Provides Rich-based console reporting, atomic text writes, YAML I/O, and the
name/package helpers used when mapping component names to Java sources.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def package_segment(name: str) -> str:
    """Collapse a name into a single valid Java package segment.

    ``"UserRepository"`` -> ``"userrepository"``, ``"driven-adapters"`` ->
    ``"drivenadapters"``.
    """
    return re.sub(r"[^a-z0-9_]", "", name.lower())


def to_pascal(value: str) -> str:
    """Convert ``some-thing``, ``some_thing`` or ``someThing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s.]+", value.strip())
    return "".join(part[:1].upper() + part[1:] for part in parts if part)


def to_camel(value: str) -> str:
    """Convert a name to ``camelCase``."""
    pascal = to_pascal(value)
    return pascal[:1].lower() + pascal[1:] if pascal else ""


def to_kebab(value: str) -> str:
    """Convert ``SomeThing`` or ``some_thing`` to ``some-thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1-\2", value.strip())
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", s1)
    return re.sub(r"[_\s]+", "-", s2).lower()


def package_to_path(package: str) -> str:
    """``com.acme.shop`` -> ``com/acme/shop``."""
    return package.replace(".", "/")


def path_to_package(path: str) -> str:
    """Turn a logical path into dotted package segments.

    Hyphens and other characters that are illegal in Java package names are
    dropped from each segment: ``infrastructure/driven-adapters/redis`` ->
    ``infrastructure.drivenadapters.redis``.
    """
    segments = [package_segment(seg) for seg in path.replace("\\", "/").split("/")]
    return ".".join(seg for seg in segments if seg)


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def atomic_write_text(path: str | Path, content: str) -> Path:
    """Write *content* to *path* through a sibling temp file and ``os.replace``.

    Parent directories are created automatically. Readers never observe a
    half-written file: either the old content or the new one.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return target


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist."""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


# ---------------------------------------------------------------------------
# YAML I/O
# ---------------------------------------------------------------------------


def load_yaml_text(text: str) -> dict[str, Any]:
    """Parse a YAML document that must be a mapping (empty text -> ``{}``).

    Raises:
        yaml.YAMLError: If the text is not valid YAML.
        TypeError: If the top-level node is not a mapping.
    """
    data = yaml.safe_load(text) if text.strip() else None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TypeError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def dump_yaml(data: dict[str, Any]) -> str:
    """Serialise a mapping as block-style YAML with insertion order kept."""
    return yaml.safe_dump(
        data,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        indent=2,
    )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(0.42)  -> "0.4s"
        format_duration(65.2)  -> "1m 5s"
    """
    if seconds < 0:
        return "0.0s"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


STATE_COLORS: dict[str, str] = {
    "VALIDATING": "bright_cyan",
    "RESOLVING": "cyan",
    "RENDERING": "bright_green",
    "BACKING_UP": "bright_yellow",
    "WRITING": "bright_magenta",
    "MERGING_SHARED_FILES": "bright_blue",
    "COMMITTED": "bold green",
    "FAILED": "bold red",
}


def print_header(title: str, color: str = "bright_cyan") -> None:
    """Print a full-width rule with *title*."""
    console.print()
    console.print(Rule(f"[bold {color}] {title} [/bold {color}]", style=color))
    console.print()


def print_step(state: str, detail: str = "") -> None:
    """Print one orchestration state transition."""
    color = STATE_COLORS.get(state, "white")
    suffix = f" [dim]{escape(detail)}[/dim]" if detail else ""
    console.print(f"  [{color}]>[/{color}] {state.lower().replace('_', ' ')}{suffix}")


def print_summary_table(data: dict[str, Any], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(escape(key), escape(str(value)))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")


def print_info(message: str) -> None:
    """Print a dimmed informational message."""
    console.print(f"[dim]{escape(message)}[/dim]")
