"""archgen scaffolder -- template packs, adapter metadata and artifact planning.

Everything between an architecture descriptor and rendered text lives here:
where templates come from (built-in, local directory, remote repository),
how adapter ``metadata.yml`` files are located, how a request becomes a
plan of files and shared-file edits, and how templates are rendered.

Quick usage::

    from archgen.scaffolder import BUILTIN_TEMPLATE_DIR, LocalTemplateSource, TemplateMetadataSource, TemplateRenderer

    source = LocalTemplateSource(BUILTIN_TEMPLATE_DIR)
    renderer = TemplateRenderer(source)
    adapter = TemplateMetadataSource(source).load_adapter("redis", "spring", "reactive", "driven")
"""

from archgen.scaffolder.generator import (
    ArtifactPlanner,
    GenerationPlan,
    ProjectLayout,
    PropertiesOverlay,
    describe_component,
    java_return_type,
)
from archgen.scaffolder.metadata import (
    DEFAULT_LOOKUPS,
    AdapterDescriptor,
    MetadataLookup,
    TemplateMetadataSource,
)
from archgen.scaffolder.sources import (
    BUILTIN_TEMPLATE_DIR,
    LocalTemplateSource,
    RemoteTemplateSource,
    TemplateCache,
    build_raw_url,
    resolve_template_source,
)
from archgen.scaffolder.template_check import TemplateCheckReport, validate_template_pack
from archgen.scaffolder.templates import TemplateRenderer

__all__ = [
    "AdapterDescriptor",
    "ArtifactPlanner",
    "BUILTIN_TEMPLATE_DIR",
    "DEFAULT_LOOKUPS",
    "GenerationPlan",
    "LocalTemplateSource",
    "MetadataLookup",
    "ProjectLayout",
    "PropertiesOverlay",
    "RemoteTemplateSource",
    "TemplateCache",
    "TemplateCheckReport",
    "TemplateMetadataSource",
    "TemplateRenderer",
    "build_raw_url",
    "describe_component",
    "java_return_type",
    "resolve_template_source",
    "validate_template_pack",
]
