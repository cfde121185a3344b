"""Artifact planning for every component kind.

Turns a ``GenerationRequest`` and its architecture descriptor into a
``GenerationPlan``: the files to render (with template id and context), the
append-only edits to shared files, and the application-properties overlays.
Nothing is rendered or written here; the orchestrator does that once the
whole plan is known to be valid.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from archgen.config import CONFIG_FILE_NAME, ProjectConfig
from archgen.dependencies import DependencyConflictDetector, parse_declared_dependencies
from archgen.errors import ArchgenError, UnknownComponentPath, ValidationError
from archgen.interfaces import FileStore
from archgen.merge import DependencyLine, ModuleInclude, SharedFileEdit
from archgen.models import (
    ComponentConfig,
    ComponentKind,
    Dependency,
    Endpoint,
    GenerationRequest,
    MethodParameter,
    MethodSignature,
    PlannedArtifact,
)
from archgen.structure import ArchitectureDescriptor, LayerDependencyValidator, PathResolver, substitute_placeholders
from archgen.utils import package_segment, package_to_path, path_to_package, to_camel

from .metadata import AdapterDescriptor

SETTINGS_FILE = "settings.gradle.kts"
BUILD_FILE = "build.gradle.kts"
JAVA_SOURCE_ROOT = "src/main/java"
APPLICATION_YML = "src/main/resources/application.yml"

ADAPTER_CATEGORIES: dict[ComponentKind, str] = {
    ComponentKind.OUTPUT_ADAPTER: "driven",
    ComponentKind.INPUT_ADAPTER: "driving",
}
ADAPTER_NAMING: dict[str, str] = {"driven": "drivenAdapter", "driving": "drivingAdapter"}

JAVA_IMPORTS: dict[str, str] = {
    "UUID": "java.util.UUID",
    "List": "java.util.List",
    "Set": "java.util.Set",
    "Map": "java.util.Map",
    "LocalDate": "java.time.LocalDate",
    "LocalDateTime": "java.time.LocalDateTime",
    "Instant": "java.time.Instant",
    "BigDecimal": "java.math.BigDecimal",
}

_BOXED: dict[str, str] = {
    "int": "Integer",
    "long": "Long",
    "boolean": "Boolean",
    "double": "Double",
    "float": "Float",
    "short": "Short",
    "byte": "Byte",
    "char": "Character",
}

SPRING_MAPPINGS: dict[str, str] = {
    "GET": "GetMapping",
    "POST": "PostMapping",
    "PUT": "PutMapping",
    "PATCH": "PatchMapping",
    "DELETE": "DeleteMapping",
}
PARAMETER_ANNOTATIONS: dict[str, str] = {
    "PATH": "PathVariable",
    "QUERY": "RequestParam",
    "BODY": "RequestBody",
}


# ---------------------------------------------------------------------------
# Java helpers
# ---------------------------------------------------------------------------


def java_return_type(type_name: str, reactive: bool) -> str:
    """Wrap a return type in ``Mono``/``Flux`` for reactive projects.

    Examples::

        java_return_type("User", True)        -> "Mono<User>"
        java_return_type("List<User>", True)  -> "Flux<User>"
        java_return_type("void", True)        -> "Mono<Void>"
    """
    value = type_name.strip() or "void"
    if not reactive or value.startswith(("Mono<", "Flux<")):
        return value
    if value == "void":
        return "Mono<Void>"
    collection = re.fullmatch(r"(?:List|Set|Collection)<(.+)>", value)
    if collection:
        return f"Flux<{collection.group(1)}>"
    return f"Mono<{_BOXED.get(value, value)}>"


def java_imports(type_names: Iterable[str]) -> list[str]:
    """``java.*`` imports needed by the given type names."""
    imports: set[str] = set()
    for type_name in type_names:
        for token in re.findall(r"[A-Za-z_][A-Za-z0-9_]*", type_name):
            if token in JAVA_IMPORTS:
                imports.add(JAVA_IMPORTS[token])
    return sorted(imports)


def method_context(methods: Sequence[MethodSignature], reactive: bool) -> list[dict[str, Any]]:
    return [
        {
            "name": method.name,
            "return_type": java_return_type(method.return_type, reactive),
            "raw_return_type": method.return_type,
            "parameter_list": method.parameter_list,
            "argument_list": method.argument_list,
            "parameters": [p.model_dump() for p in method.parameters],
        }
        for method in methods
    ]


def endpoint_context(endpoints: Sequence[Endpoint], reactive: bool) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for endpoint in endpoints:
        items.append(
            {
                "path": endpoint.path,
                "http_method": endpoint.method,
                "annotation": SPRING_MAPPINGS.get(endpoint.method, "RequestMapping"),
                "is_query": endpoint.method == "GET",
                "use_case_method": endpoint.use_case_method,
                "return_type": java_return_type(endpoint.return_type, reactive),
                "parameter_list": ", ".join(
                    f"@{PARAMETER_ANNOTATIONS.get(p.kind, 'RequestParam')} {p.type} {p.name}"
                    for p in endpoint.parameters
                ),
                "graphql_parameter_list": ", ".join(
                    f"@Argument {p.type} {p.name}" for p in endpoint.parameters
                ),
                "argument_list": ", ".join(p.name for p in endpoint.parameters),
            }
        )
    return items


def default_adapter_methods(entity: str) -> list[MethodSignature]:
    """CRUD methods used when an output adapter is requested without any."""
    return [
        MethodSignature(
            name="save",
            return_type=entity,
            parameters=[MethodParameter(name=to_camel(entity), type=entity)],
        ),
        MethodSignature(
            name="findById",
            return_type=entity,
            parameters=[MethodParameter(name="id", type="String")],
        ),
        MethodSignature(
            name="deleteById",
            return_type="void",
            parameters=[MethodParameter(name="id", type="String")],
        ),
    ]


def _join(*parts: str) -> str:
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


# ---------------------------------------------------------------------------
# Project layout
# ---------------------------------------------------------------------------


class ProjectLayout:
    """Maps descriptor-relative logical paths onto modules, packages and files."""

    def __init__(self, project: ProjectConfig, descriptor: ArchitectureDescriptor) -> None:
        self.project = project
        self.descriptor = descriptor

    @property
    def adapters_as_modules(self) -> bool:
        return self.project.adapters_as_modules or self.descriptor.adapters_as_modules

    @property
    def application_module(self) -> str:
        """Module holding the application class and ``application.yml``."""
        if self.descriptor.application_module:
            return self.descriptor.application_module
        return self.descriptor.modules[-1] if self.descriptor.modules else ""

    @property
    def application_yml(self) -> str:
        return _join(self.application_module, APPLICATION_YML)

    def module_of(self, logical: str) -> str:
        """Longest declared module that is a segment prefix of *logical*."""
        best = ""
        for module in self.descriptor.modules:
            if (logical == module or logical.startswith(f"{module}/")) and len(module) > len(best):
                best = module
        return best

    def package_of(self, logical: str) -> str:
        suffix = path_to_package(logical)
        return f"{self.project.base_package}.{suffix}" if suffix else self.project.base_package

    def java_file(self, module_dir: str, logical: str, file_name: str) -> str:
        return _join(module_dir, JAVA_SOURCE_ROOT, package_to_path(self.package_of(logical)), file_name)

    @staticmethod
    def build_file(module_dir: str) -> str:
        return _join(module_dir, BUILD_FILE)

    @staticmethod
    def gradle_path(module: str) -> str:
        return ":" + module.strip("/").replace("/", ":")

    def modules_in_layers(self, layers: Iterable[str]) -> list[str]:
        wanted = set(layers)
        return [m for m in self.descriptor.modules if PathResolver.extract_layer(m) in wanted]

    def module_dependencies(self, module: str) -> list[str]:
        """Modules *module* may use: allowed layers, plus earlier modules of its own layer."""
        layer = PathResolver.extract_layer(module)
        if layer is None:
            return []
        graph = self.descriptor.layer_dependencies
        allowed = set(graph.allowed_for(layer)) if graph else set()
        position = self.descriptor.modules.index(module)

        dependencies: list[str] = []
        for index, other in enumerate(self.descriptor.modules):
            if other == module:
                continue
            other_layer = PathResolver.extract_layer(other)
            if other_layer in allowed or (other_layer == layer and index < position):
                dependencies.append(other)
        return dependencies


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


@dataclass
class PropertiesOverlay:
    """An ``application.yml`` fragment rendered from a template, then merged."""

    path: str
    template_id: str
    context: dict[str, Any]
    source: str = ""


@dataclass
class GenerationPlan:
    label: str
    artifacts: list[PlannedArtifact] = field(default_factory=list)
    edits: list[SharedFileEdit] = field(default_factory=list)
    overlays: list[PropertiesOverlay] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    project: ProjectConfig | None = None

    def add(self, artifact: PlannedArtifact) -> None:
        """Add *artifact* unless another one already targets the same path."""
        if all(existing.path != artifact.path for existing in self.artifacts):
            self.artifacts.append(artifact)

    def shared_paths(self) -> list[str]:
        paths: list[str] = []
        for path in [edit.path for edit in self.edits] + [overlay.path for overlay in self.overlays]:
            if path not in paths:
                paths.append(path)
        return paths


def describe_component(component: ComponentConfig) -> str:
    return f"{component.kind.value} '{component.name}'"


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------


class ArtifactPlanner:
    """Computes every target path and template id of a request up front.

    Path-resolution and layer errors are collected into ``plan.errors``
    rather than raised, so the caller can report them together.
    """

    def __init__(
        self,
        files: FileStore,
        resolver: PathResolver | None = None,
        detector: DependencyConflictDetector | None = None,
    ) -> None:
        self.files = files
        self.resolver = resolver or PathResolver()
        self.detector = detector or DependencyConflictDetector()

    def plan(
        self,
        request: GenerationRequest,
        descriptor: ArchitectureDescriptor,
        adapter: AdapterDescriptor | None = None,
    ) -> GenerationPlan:
        plan = GenerationPlan(label=describe_component(request.component))
        layout = ProjectLayout(request.project, descriptor)
        kind = request.component.kind
        try:
            if kind is ComponentKind.PROJECT:
                self._plan_project(request, descriptor, layout, plan)
            elif kind is ComponentKind.ENTITY:
                self._plan_entity(request, descriptor, layout, plan)
            elif kind is ComponentKind.USE_CASE:
                self._plan_use_case(request, descriptor, layout, plan)
            else:
                if adapter is None:
                    raise ValidationError(f"No adapter metadata supplied for {plan.label}")
                self._plan_adapter(request, descriptor, layout, plan, adapter, ADAPTER_CATEGORIES[kind])
        except ValidationError as exc:
            plan.errors.extend(exc.errors)
        except ArchgenError as exc:
            plan.errors.append(str(exc))
        return plan

    # -- Shared context ----------------------------------------------------

    @staticmethod
    def base_context(project: ProjectConfig, descriptor: ArchitectureDescriptor) -> dict[str, Any]:
        return {
            "project_name": project.name,
            "project_name_pascal": project.name_pascal,
            "base_package": project.base_package,
            "paradigm": project.paradigm.value,
            "framework": project.framework.value,
            "is_reactive": project.is_reactive,
            "architecture": descriptor.architecture,
        }

    def _component_path(
        self,
        descriptor: ArchitectureDescriptor,
        role: str,
        component: ComponentConfig,
    ) -> str | None:
        try:
            return self.resolver.resolve_component_path(descriptor, role, {"module": component.module})
        except UnknownComponentPath:
            return None

    def _require_component_path(
        self,
        descriptor: ArchitectureDescriptor,
        role: str,
        component: ComponentConfig,
    ) -> str:
        return self.resolver.resolve_component_path(descriptor, role, {"module": component.module})

    @staticmethod
    def _check_layers(descriptor: ArchitectureDescriptor, edges: list[tuple[str | None, str | None]]) -> list[str]:
        validator = LayerDependencyValidator.for_descriptor(descriptor)
        if not validator.enforced:
            return []
        return validator.check([(src, dst) for src, dst in edges if src and dst])

    # -- Project -----------------------------------------------------------

    def _plan_project(
        self,
        request: GenerationRequest,
        descriptor: ArchitectureDescriptor,
        layout: ProjectLayout,
        plan: GenerationPlan,
    ) -> None:
        project = request.project
        if descriptor.adapters_as_modules and not project.adapters_as_modules:
            project = project.model_copy(update={"adapters_as_modules": True})
            plan.warnings.append(
                f"Architecture '{descriptor.architecture}' generates every adapter as its own module"
            )
        if layout.adapters_as_modules and not descriptor.is_multi_module:
            raise ValidationError(
                f"Adapters as modules requires a multi-module architecture; "
                f"'{descriptor.architecture}' declares no modules"
            )
        plan.project = project
        layout = ProjectLayout(project, descriptor)

        app_module = layout.application_module
        context = {
            **self.base_context(project, descriptor),
            "tool_version": project.tool_version,
            "is_multi_module": descriptor.is_multi_module,
            "modules": [
                {"path": module, "gradle_path": layout.gradle_path(module)} for module in descriptor.modules
            ],
            "application_module": app_module,
            "adapters_as_modules": layout.adapters_as_modules,
            "application_class": f"{project.name_pascal}Application",
            "package": project.base_package,
        }

        plan.add(PlannedArtifact(path=CONFIG_FILE_NAME, content=project.to_yaml(), kind="config"))
        for path, template_id, kind in (
            (SETTINGS_FILE, "project/settings.gradle.kts.j2", "build"),
            (BUILD_FILE, "project/build.gradle.kts.j2", "build"),
            (".gitignore", "project/gitignore.j2", "doc"),
            ("README.md", "project/README.md.j2", "doc"),
            (layout.application_yml, "project/application.yml.j2", "config"),
            (
                layout.java_file(app_module, "", f"{project.name_pascal}Application.java"),
                "project/Application.java.j2",
                "source",
            ),
        ):
            plan.add(
                PlannedArtifact(
                    path=path, template_id=template_id, context=context, kind=kind, skip_if_exists=True
                )
            )

        for module in descriptor.modules:
            module_context = {
                **context,
                "module": module,
                "module_dependencies": [layout.gradle_path(m) for m in layout.module_dependencies(module)],
                "is_application_module": module == app_module,
            }
            plan.add(
                PlannedArtifact(
                    path=layout.build_file(module),
                    template_id="project/module.build.gradle.kts.j2",
                    context=module_context,
                    kind="build",
                    layer=PathResolver.extract_layer(module),
                    skip_if_exists=True,
                )
            )
            plan.edits.append(ModuleInclude(SETTINGS_FILE, module))

        for logical in self._scaffold_dirs(descriptor):
            module = layout.module_of(logical)
            if descriptor.is_multi_module and not module:
                continue
            plan.add(
                PlannedArtifact(
                    path=layout.java_file(module, logical, ".gitkeep"),
                    kind="placeholder",
                    skip_if_exists=True,
                )
            )

    @staticmethod
    def _scaffold_dirs(descriptor: ArchitectureDescriptor) -> list[str]:
        dirs: list[str] = []
        for logical in [*descriptor.packages, *descriptor.component_paths.values()]:
            logical = logical.strip("/")
            if logical and "{" not in logical and logical not in dirs:
                dirs.append(logical)
        return dirs

    # -- Entity ------------------------------------------------------------

    def _plan_entity(
        self,
        request: GenerationRequest,
        descriptor: ArchitectureDescriptor,
        layout: ProjectLayout,
        plan: GenerationPlan,
    ) -> None:
        component = request.component
        logical = self._require_component_path(descriptor, "entity", component)
        layer = self.resolver.validate_path(logical, descriptor)
        class_name = descriptor.naming_conventions.apply("entity", component.name)

        types = [f.type for f in component.fields]
        if component.has_id:
            types.append(component.id_type)
        context = {
            **self.base_context(request.project, descriptor),
            "package": layout.package_of(logical),
            "class_name": class_name,
            "fields": [f.model_dump() for f in component.fields],
            "has_id": component.has_id,
            "id_type": component.id_type,
            "imports": java_imports(types),
        }
        plan.add(
            PlannedArtifact(
                path=layout.java_file(layout.module_of(logical), logical, f"{class_name}.java"),
                template_id="components/entity/Entity.java.j2",
                context=context,
                kind="entity",
                layer=layer,
            )
        )

    # -- Use case ----------------------------------------------------------

    def _plan_use_case(
        self,
        request: GenerationRequest,
        descriptor: ArchitectureDescriptor,
        layout: ProjectLayout,
        plan: GenerationPlan,
    ) -> None:
        component = request.component
        naming = descriptor.naming_conventions
        port_logical = self._require_component_path(descriptor, "inputPort", component)
        impl_logical = self._require_component_path(descriptor, "useCase", component)
        entity_logical = self._component_path(descriptor, "entity", component)

        port_layer = self.resolver.validate_path(port_logical, descriptor)
        impl_layer = self.resolver.validate_path(impl_logical, descriptor)
        entity_layer = PathResolver.extract_layer(entity_logical) if entity_logical else None
        errors = self._check_layers(
            descriptor, [(impl_layer, port_layer), (port_layer, entity_layer), (impl_layer, entity_layer)]
        )
        if errors:
            raise ValidationError(errors)

        port_name = naming.apply("inputPort", component.name)
        impl_name = naming.apply("useCase", component.name)
        context = {
            **self.base_context(request.project, descriptor),
            "port_name": port_name,
            "port_package": layout.package_of(port_logical),
            "entity_package": layout.package_of(entity_logical) if entity_logical else "",
            "methods": method_context(component.methods, request.project.is_reactive),
            "imports": java_imports(
                [m.return_type for m in component.methods]
                + [p.type for m in component.methods for p in m.parameters]
            ),
        }

        if component.generate_port:
            plan.add(
                PlannedArtifact(
                    path=layout.java_file(layout.module_of(port_logical), port_logical, f"{port_name}.java"),
                    template_id="components/usecase/InputPort.java.j2",
                    context={**context, "package": layout.package_of(port_logical), "class_name": port_name},
                    kind="input-port",
                    layer=port_layer,
                )
            )
        if component.generate_impl:
            plan.add(
                PlannedArtifact(
                    path=layout.java_file(layout.module_of(impl_logical), impl_logical, f"{impl_name}.java"),
                    template_id="components/usecase/UseCase.java.j2",
                    context={**context, "package": layout.package_of(impl_logical), "class_name": impl_name},
                    kind="use-case",
                    layer=impl_layer,
                )
            )

    # -- Adapters ----------------------------------------------------------

    def _plan_adapter(
        self,
        request: GenerationRequest,
        descriptor: ArchitectureDescriptor,
        layout: ProjectLayout,
        plan: GenerationPlan,
        adapter: AdapterDescriptor,
        category: str,
    ) -> None:
        component = request.component
        project = request.project
        naming = descriptor.naming_conventions

        segment = package_segment(component.name)
        logical = self.resolver.resolve_adapter_path(
            descriptor, category, segment, {"module": component.module}
        )
        layer = self.resolver.validate_path(logical, descriptor)

        as_module = layout.adapters_as_modules
        if as_module and not descriptor.is_multi_module:
            raise ValidationError(
                f"Adapters as modules requires a multi-module architecture; "
                f"'{descriptor.architecture}' declares no modules"
            )
        module_dir = logical if as_module else layout.module_of(logical)
        app_module = layout.application_module

        entity_logical = self._component_path(descriptor, "entity", component)
        port_logical = (
            self._require_component_path(descriptor, "inputPort", component) if category == "driving" else None
        )
        edges: list[tuple[str | None, str | None]] = []
        if entity_logical:
            edges.append((layer, PathResolver.extract_layer(entity_logical)))
        if port_logical:
            edges.append((layer, PathResolver.extract_layer(port_logical)))
        if as_module and app_module:
            edges.append((PathResolver.extract_layer(app_module), layer))
        errors = self._check_layers(descriptor, edges)
        if errors:
            raise ValidationError(errors)

        class_name = naming.apply(ADAPTER_NAMING[category], component.name)
        entity_name = component.entity or ""
        methods = component.methods
        if category == "driven" and not methods and entity_name:
            methods = default_adapter_methods(entity_name)
        port_name = naming.apply("inputPort", component.use_case) if component.use_case else ""

        context = {
            **self.base_context(project, descriptor),
            "name": component.name,
            "adapter_name": segment,
            "adapter_type": adapter.name,
            "adapter_package": layout.package_of(logical),
            "class_name": class_name,
            "entity_name": entity_name,
            "entity_variable": to_camel(entity_name),
            "entity_package": layout.package_of(entity_logical) if entity_logical else project.base_package,
            "methods": method_context(methods, project.is_reactive),
            "endpoints": endpoint_context(component.endpoints, project.is_reactive),
            "port_name": port_name,
            "port_variable": to_camel(port_name),
            "port_package": layout.package_of(port_logical) if port_logical else "",
        }

        placeholders = {
            "class_name": class_name,
            "entity_name": entity_name,
            "adapter_name": segment,
            "name": component.name,
        }
        for adapter_file in adapter.files:
            relative = substitute_placeholders(adapter_file.output, placeholders)
            sub_dir, file_name = posixpath.split(relative)
            file_logical = _join(logical, sub_dir)
            plan.add(
                PlannedArtifact(
                    path=layout.java_file(module_dir, file_logical, file_name),
                    template_id=adapter.template_ref(adapter_file.template),
                    context={**context, "package": layout.package_of(file_logical)},
                    kind=f"{category}-adapter",
                    layer=layer,
                )
            )

        dependencies = self.detector.apply_version_overrides(
            [*adapter.dependencies, *adapter.test_dependencies], project.dependency_overrides
        )
        if as_module:
            # Configuration classes live in the application module and compile
            # against the adapter's libraries.
            dependencies = [
                dep.model_copy(update={"scope": "api"}) if dep.scope == "implementation" else dep
                for dep in dependencies
            ]
            build_target = layout.build_file(module_dir)
            graph = descriptor.layer_dependencies
            visible_layers = graph.allowed_for(layer) if graph else []
            plan.add(
                PlannedArtifact(
                    path=build_target,
                    template_id="adapters/module.build.gradle.kts.j2",
                    context={
                        **context,
                        "dependencies": [dep.to_line() for dep in dependencies],
                        "project_dependencies": [
                            layout.gradle_path(m) for m in layout.modules_in_layers(visible_layers)
                        ],
                    },
                    kind="build",
                    layer=layer,
                )
            )
            plan.edits.append(ModuleInclude(SETTINGS_FILE, module_dir))
            plan.edits.append(
                DependencyLine.project(layout.build_file(app_module), "implementation", module_dir)
            )
        else:
            build_target = layout.build_file(module_dir)
            for dep in dependencies:
                plan.edits.append(DependencyLine.coordinate(build_target, dep.scope, dep.coordinate))
            self._check_dependency_conflicts(request.root, build_target, dependencies, project, plan)

        if adapter.application_properties_template:
            plan.overlays.append(
                PropertiesOverlay(
                    path=layout.application_yml,
                    template_id=adapter.template_ref(adapter.application_properties_template),
                    context=context,
                    source=adapter.name,
                )
            )

        for config_class in adapter.configuration_classes:
            config_logical = config_class.package_path.replace(".", "/").strip("/")
            config_module = layout.module_of(config_logical) or app_module
            plan.add(
                PlannedArtifact(
                    path=layout.java_file(config_module, config_logical, f"{config_class.name}.java"),
                    template_id=adapter.template_ref(config_class.template_path),
                    context={
                        **context,
                        "package": layout.package_of(config_logical),
                        "class_name": config_class.name,
                    },
                    kind="config",
                    skip_if_exists=True,
                )
            )

    def _check_dependency_conflicts(
        self,
        root: Path,
        build_file: str,
        dependencies: list[Dependency],
        project: ProjectConfig,
        plan: GenerationPlan,
    ) -> None:
        target = Path(root) / build_file
        existing = parse_declared_dependencies(self.files.read(target)) if self.files.exists(target) else []
        conflicts = self.detector.detect_version_conflicts(existing, dependencies)
        conflicts += self.detector.detect_framework_conflicts(project.framework.value, dependencies)
        if conflicts:
            plan.warnings.extend(conflicts)
            plan.warnings.extend(self.detector.suggest_resolution(conflicts))
