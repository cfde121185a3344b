"""archgen command line interface.

Usage::

    archgen init --name shop --package com.acme.shop --architecture hexagonal-multi
    archgen entity --name User --fields "name:String,email:String,age:Integer?"
    archgen use-case --name CreateUser --methods "execute:User:user:User"
    archgen output-adapter --name UserRepository --entity User --type redis
    archgen input-adapter --name User --use-case CreateUser --endpoints "/users:POST:execute:User:user:BODY:User"
    archgen backups
    archgen restore --backup-id backup_20250101_120000_000000001
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from rich.panel import Panel

from archgen.backup import BackupCoordinator
from archgen.composition import build_orchestrator, build_template_source
from archgen.config import Framework, Paradigm, ProjectConfig, Settings
from archgen.errors import ArchgenError
from archgen.models import (
    ID_TYPES,
    ComponentConfig,
    ComponentKind,
    Endpoint,
    EntityField,
    GenerationRequest,
    GenerationResult,
    MethodSignature,
)
from archgen.scaffolder.metadata import TemplateMetadataSource
from archgen.scaffolder.sources import RemoteTemplateSource, TemplateCache
from archgen.scaffolder.template_check import (
    KNOWN_ARCHITECTURES,
    REQUIRED_TEMPLATES,
    pack_entry_points,
    validate_template_pack,
)
from archgen.utils import (
    console,
    format_duration,
    print_error,
    print_header,
    print_info,
    print_success,
    print_summary_table,
    print_warning,
)

EXIT_OK = 0
EXIT_FAILURE = 1


# ---------------------------------------------------------------------------
# Result reporting
# ---------------------------------------------------------------------------


def print_result(result: GenerationResult, title: str) -> None:
    """Print the outcome of one generation request."""
    print_summary_table(result.summary(), title=title)

    for path in result.artifacts:
        console.print(f"  [green]+[/green] {path}")
    for path in result.shared_files:
        console.print(f"  [blue]~[/blue] {path}")
    for path in result.skipped:
        console.print(f"  [dim]= {path} (kept)[/dim]")
    if result.artifacts or result.shared_files or result.skipped:
        console.print()

    for warning in result.warnings:
        print_warning(f"  {warning}")
    for error in result.errors:
        print_error(f"  {error}")

    if result.success:
        print_success(f"{title} completed.")
    else:
        print_error(f"{title} failed.")


# ---------------------------------------------------------------------------
# Generation commands
# ---------------------------------------------------------------------------


def _run_request(
    args: argparse.Namespace,
    settings: Settings,
    project: ProjectConfig,
    component: ComponentConfig,
    title: str,
) -> int:
    root = Path(args.project_dir)
    print_header(title)
    try:
        orchestrator = build_orchestrator(settings, project, root)
    except ArchgenError as exc:
        print_error(str(exc))
        return EXIT_FAILURE

    request = GenerationRequest(root=root, project=project, component=component, force=args.force)
    started = time.monotonic()
    result = orchestrator.generate(request)
    print_result(result, title)
    print_info(f"Finished in {format_duration(time.monotonic() - started)}")
    return EXIT_OK if result.success else EXIT_FAILURE


def _load_project(args: argparse.Namespace) -> ProjectConfig | None:
    try:
        return ProjectConfig.load(Path(args.project_dir))
    except ArchgenError as exc:
        print_error(str(exc))
        return None


def cmd_init(args: argparse.Namespace, settings: Settings) -> int:
    try:
        project = ProjectConfig(
            name=args.name,
            base_package=args.package,
            architecture=args.architecture,
            paradigm=Paradigm(args.paradigm),
            framework=Framework(args.framework),
            adapters_as_modules=args.adapters_as_modules,
        )
    except PydanticValidationError as exc:
        for err in exc.errors():
            print_error(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
        return EXIT_FAILURE

    component = ComponentConfig(kind=ComponentKind.PROJECT, name=project.name)
    return _run_request(args, settings, project, component, f"Initialize project '{project.name}'")


def _component_command(build: Callable[[argparse.Namespace], ComponentConfig]):
    """Wrap a component builder into a command: load the project, parse, generate."""

    def command(args: argparse.Namespace, settings: Settings) -> int:
        project = _load_project(args)
        if project is None:
            return EXIT_FAILURE
        try:
            component = build(args)
        except ValueError as exc:
            print_error(str(exc))
            return EXIT_FAILURE
        title = f"Generate {component.kind.value} '{component.name}'"
        return _run_request(args, settings, project, component, title)

    return command


def _entity(args: argparse.Namespace) -> ComponentConfig:
    return ComponentConfig(
        kind=ComponentKind.ENTITY,
        name=args.name,
        fields=EntityField.parse_list(args.fields or ""),
        has_id=not args.no_id,
        id_type=args.id_type,
    )


def _use_case(args: argparse.Namespace) -> ComponentConfig:
    return ComponentConfig(
        kind=ComponentKind.USE_CASE,
        name=args.name,
        methods=MethodSignature.parse_list(args.methods or ""),
        generate_port=not args.no_port,
        generate_impl=not args.no_impl,
    )


def _output_adapter(args: argparse.Namespace) -> ComponentConfig:
    return ComponentConfig(
        kind=ComponentKind.OUTPUT_ADAPTER,
        name=args.name,
        entity=args.entity,
        adapter_type=args.type,
        methods=MethodSignature.parse_list(args.methods or ""),
        module=args.module,
    )


def _input_adapter(args: argparse.Namespace) -> ComponentConfig:
    return ComponentConfig(
        kind=ComponentKind.INPUT_ADAPTER,
        name=args.name,
        use_case=args.use_case,
        adapter_type=args.type,
        endpoints=Endpoint.parse_list(args.endpoints or ""),
        module=args.module,
    )


cmd_entity = _component_command(_entity)
cmd_use_case = _component_command(_use_case)
cmd_output_adapter = _component_command(_output_adapter)
cmd_input_adapter = _component_command(_input_adapter)


# ---------------------------------------------------------------------------
# Template commands
# ---------------------------------------------------------------------------


def _optional_project(args: argparse.Namespace) -> ProjectConfig | None:
    root = Path(args.project_dir)
    if not ProjectConfig.exists(root):
        return None
    return ProjectConfig.load(root)


def cmd_validate_templates(args: argparse.Namespace, settings: Settings) -> int:
    try:
        source = build_template_source(settings, _optional_project(args), args.project_dir)
    except ArchgenError as exc:
        print_error(str(exc))
        return EXIT_FAILURE

    print_header("Validate templates")
    print_info(f"Checking {source.describe()}")
    report = validate_template_pack(source)
    print_summary_table(
        {"Checked": report.checked, "Errors": len(report.errors), "Warnings": len(report.warnings)},
        title="Template validation",
    )
    for warning in report.warnings:
        print_warning(f"  {warning}")
    for error in report.errors:
        print_error(f"  {error}")

    if not report.ok:
        print_error("Template validation failed.")
        return EXIT_FAILURE
    print_success("All templates are valid.")
    return EXIT_OK


def cmd_clear_cache(args: argparse.Namespace, settings: Settings) -> int:
    cache = TemplateCache(settings.cache_dir)
    try:
        removed = cache.clear()
    except OSError as exc:
        print_error(f"Cannot clear template cache {settings.cache_dir}: {exc}")
        return EXIT_FAILURE
    print_success(f"Removed {removed} cached template(s) from {settings.cache_dir}")
    return EXIT_OK


def cmd_update_templates(args: argparse.Namespace, settings: Settings) -> int:
    try:
        source = build_template_source(settings, _optional_project(args), args.project_dir)
    except ArchgenError as exc:
        print_error(str(exc))
        return EXIT_FAILURE

    if not isinstance(source, RemoteTemplateSource):
        print_info(f"Using {source.describe()}; nothing to download.")
        return EXIT_OK

    print_header("Update templates")
    if source.cache is not None:
        print_info(f"Cleared {source.cache.clear()} cached template(s)")

    metadata = TemplateMetadataSource(source)
    entry_points = pack_entry_points(metadata)
    outcomes = asyncio.run(source.prefetch(entry_points))
    fetched = [path for path, error in outcomes.items() if error is None]

    referenced: list[str] = []
    for path in fetched:
        if not path.endswith("/metadata.yml"):
            continue
        try:
            descriptor = metadata.parse_adapter(path)
        except ArchgenError as exc:
            print_warning(f"  {exc}")
            continue
        referenced += [ref for ref in descriptor.referenced_templates() if ref not in outcomes]
    if referenced:
        outcomes.update(asyncio.run(source.prefetch(sorted(set(referenced)))))

    downloaded = sum(1 for error in outcomes.values() if error is None)
    print_summary_table(
        {"Requested": len(outcomes), "Downloaded": downloaded, "Unavailable": len(outcomes) - downloaded},
        title="Template update",
    )
    missing_required = [path for path in REQUIRED_TEMPLATES if outcomes.get(path)]
    for path in missing_required:
        print_error(f"  {path}: {outcomes[path]}")
    if missing_required:
        return EXIT_FAILURE
    print_success(f"Templates updated from {source.describe()}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Backup commands
# ---------------------------------------------------------------------------


def cmd_backups(args: argparse.Namespace, settings: Settings) -> int:
    root = Path(args.project_dir)
    coordinator = BackupCoordinator(settings.backup_dir)
    backup_ids = coordinator.list_backups(root)
    if not backup_ids:
        print_info(f"No backups under {coordinator.backup_root(root)}")
        return EXIT_OK

    rows = {}
    for backup_id in backup_ids:
        try:
            manifest = coordinator.load_manifest(root, backup_id)
        except ArchgenError as exc:
            rows[backup_id] = f"unreadable: {exc}"
            continue
        rows[backup_id] = f"{len(manifest.entries)} file(s), {manifest.created_at:%Y-%m-%d %H:%M:%S}"
    print_summary_table(rows, title="Backups")
    return EXIT_OK


def cmd_restore(args: argparse.Namespace, settings: Settings) -> int:
    root = Path(args.project_dir)
    coordinator = BackupCoordinator(settings.backup_dir)
    try:
        restored = coordinator.restore_backup(root, args.backup_id)
    except ArchgenError as exc:
        print_error(str(exc))
        return EXIT_FAILURE

    for path in restored:
        console.print(f"  [green]<[/green] {path}")
    print_success(f"Restored {len(restored)} file(s) from {args.backup_id}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

COMMANDS: dict[str, Callable[[argparse.Namespace, Settings], int]] = {
    "init": cmd_init,
    "entity": cmd_entity,
    "use-case": cmd_use_case,
    "output-adapter": cmd_output_adapter,
    "input-adapter": cmd_input_adapter,
    "validate-templates": cmd_validate_templates,
    "clear-cache": cmd_clear_cache,
    "update-templates": cmd_update_templates,
    "backups": cmd_backups,
    "restore": cmd_restore,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archgen",
        description="archgen -- architecture-driven scaffolding for Gradle/Spring projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  archgen init --name shop --package com.acme.shop\n"
            "  archgen entity --name User --fields name:String,email:String\n"
            "  archgen output-adapter --name UserRepository --entity User --type redis\n"
        ),
    )
    parser.add_argument(
        "--project-dir", "-C",
        default=".",
        help="Project root directory (default: current directory)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Initialize a new project")
    init.add_argument("--name", required=True, help="Project name")
    init.add_argument("--package", required=True, help="Base Java package, e.g. com.acme.shop")
    init.add_argument(
        "--architecture",
        default="hexagonal-single",
        help=f"Architecture variant ({', '.join(KNOWN_ARCHITECTURES)})",
    )
    init.add_argument("--paradigm", choices=[p.value for p in Paradigm], default=Paradigm.REACTIVE.value)
    init.add_argument("--framework", choices=[f.value for f in Framework], default=Framework.SPRING.value)
    init.add_argument(
        "--adapters-as-modules",
        action="store_true",
        help="Generate every adapter as its own Gradle module",
    )

    entity = sub.add_parser("entity", help="Generate a domain entity")
    entity.add_argument("--name", required=True)
    entity.add_argument("--fields", default="", help="name:Type,... (append ? for nullable)")
    entity.add_argument("--id-type", choices=list(ID_TYPES), default="String")
    entity.add_argument("--no-id", action="store_true", help="Generate the entity without an id field")

    use_case = sub.add_parser("use-case", help="Generate an input port and its implementation")
    use_case.add_argument("--name", required=True)
    use_case.add_argument("--methods", default="", help="name:Return:p1:T1,p2:T2|...")
    use_case.add_argument("--no-port", action="store_true", help="Skip the input port interface")
    use_case.add_argument("--no-impl", action="store_true", help="Skip the implementation")

    output_adapter = sub.add_parser("output-adapter", help="Generate a driven adapter")
    output_adapter.add_argument("--name", required=True)
    output_adapter.add_argument("--entity", required=True)
    output_adapter.add_argument("--type", required=True, help="redis, mongodb, postgresql, rest-client, kafka")
    output_adapter.add_argument("--methods", default="", help="name:Return:p1:T1,...|...")
    output_adapter.add_argument("--module", default=None, help="Target module for {module} paths")

    input_adapter = sub.add_parser("input-adapter", help="Generate a driving adapter")
    input_adapter.add_argument("--name", required=True)
    input_adapter.add_argument("--use-case", required=True)
    input_adapter.add_argument("--type", default="rest", help="rest or graphql")
    input_adapter.add_argument("--endpoints", default="", help="/path:METHOD:method:Return|...")
    input_adapter.add_argument("--module", default=None, help="Target module for {module} paths")

    for command in (init, entity, use_case, output_adapter, input_adapter):
        command.add_argument("--force", action="store_true", help="Back up and overwrite existing files")

    sub.add_parser("validate-templates", help="Validate the active template pack")
    sub.add_parser("clear-cache", help="Delete downloaded templates")
    sub.add_parser("update-templates", help="Re-download the remote template pack")
    sub.add_parser("backups", help="List backups of this project")
    restore = sub.add_parser("restore", help="Restore files from a backup")
    restore.add_argument("--backup-id", required=True)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the ``archgen`` console script."""
    args = build_parser().parse_args(argv)
    try:
        settings = Settings.from_env()
    except (PydanticValidationError, ValueError) as exc:
        console.print(Panel(str(exc), title="Invalid archgen environment", style="red"))
        return EXIT_FAILURE
    return COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
