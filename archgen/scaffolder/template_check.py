"""Whole-pack validation behind ``archgen validate-templates``."""

from __future__ import annotations

from dataclasses import dataclass, field

from archgen.errors import ArchgenError
from archgen.interfaces import TemplateSource
from archgen.structure import StructureMetadataResolver
from archgen.structure.resolver import STRUCTURE_FILE

from .metadata import TemplateMetadataSource
from .templates import TemplateRenderer

REQUIRED_TEMPLATES: tuple[str, ...] = (
    "project/settings.gradle.kts.j2",
    "project/build.gradle.kts.j2",
    "project/module.build.gradle.kts.j2",
    "project/gitignore.j2",
    "project/README.md.j2",
    "project/application.yml.j2",
    "project/Application.java.j2",
    "components/entity/Entity.java.j2",
    "components/usecase/InputPort.java.j2",
    "components/usecase/UseCase.java.j2",
    "adapters/module.build.gradle.kts.j2",
)


@dataclass
class TemplateCheckReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checked: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_template_pack(source: TemplateSource) -> TemplateCheckReport:
    """Check every descriptor, adapter metadata file and template of *source*.

    Problems are collected rather than raised so one run reports all of them.
    """
    report = TemplateCheckReport()
    renderer = TemplateRenderer(source)
    structures = StructureMetadataResolver(source)
    metadata = TemplateMetadataSource(source)
    files = source.list()

    if not files:
        report.warnings.append(
            f"{source.describe()} lists no files; only cached or local packs can be checked"
        )
        return report

    for template_id in REQUIRED_TEMPLATES:
        if not source.exists(template_id):
            report.errors.append(f"Required template missing: {template_id}")

    architectures = [
        path.split("/")[1]
        for path in files
        if path.startswith("architectures/") and path.endswith(f"/{STRUCTURE_FILE}")
    ]
    if not architectures:
        report.errors.append("No architecture descriptors found under architectures/")
    for architecture_id in architectures:
        report.checked += 1
        try:
            structures.load(architecture_id)
        except ArchgenError as exc:
            report.errors.append(str(exc))

    for path in metadata.list_adapter_metadata():
        report.checked += 1
        try:
            metadata.parse_adapter(path)
        except ArchgenError as exc:
            report.errors.append(str(exc))

    for template_id in renderer.list_templates():
        report.checked += 1
        report.errors.extend(renderer.validate_template(template_id))

    return report


# ---------------------------------------------------------------------------
# Remote pack refresh
# ---------------------------------------------------------------------------

KNOWN_ARCHITECTURES: tuple[str, ...] = (
    "hexagonal-single",
    "hexagonal-multi",
    "hexagonal-multi-granular",
    "onion-single",
    "onion-multi",
)
KNOWN_ADAPTERS: dict[str, tuple[str, ...]] = {
    "driven": ("redis", "mongodb", "postgresql", "rest-client", "kafka"),
    "driving": ("rest", "graphql"),
}
KNOWN_FRAMEWORKS: tuple[str, ...] = ("spring", "quarkus")
KNOWN_PARADIGMS: tuple[str, ...] = ("reactive", "imperative")


def pack_entry_points(metadata: TemplateMetadataSource) -> list[str]:
    """Pack paths worth downloading before anything is known about a project.

    Remote sources cannot list directories, so ``update-templates`` fetches
    these first and then every template the metadata files found reference.
    """
    paths = list(REQUIRED_TEMPLATES)
    paths += [f"architectures/{arch}/{STRUCTURE_FILE}" for arch in KNOWN_ARCHITECTURES]
    for category, adapters in KNOWN_ADAPTERS.items():
        for adapter_id in adapters:
            for framework in KNOWN_FRAMEWORKS:
                for paradigm in KNOWN_PARADIGMS:
                    for path in metadata.candidate_paths(adapter_id, framework, paradigm, category):
                        if path not in paths:
                            paths.append(path)
    return paths
