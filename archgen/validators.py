"""Input validators for every component kind.

Each validator returns the complete list of problems it found (empty when
the input is acceptable) instead of stopping at the first one, so a request
can report everything that is wrong in a single pass.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from archgen.models import ID_TYPES, HTTP_METHODS, PARAMETER_KINDS, ComponentConfig, ComponentKind, MethodSignature

_CLASS_NAME_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_MEMBER_NAME_RE = re.compile(r"^[a-z][a-zA-Z0-9]*$")
_PACKAGE_SEGMENT_RE = re.compile(r"^[a-z][a-z0-9_]*$")

JAVA_RESERVED_WORDS = frozenset(
    """
    abstract assert boolean break byte case catch char class const continue
    default do double else enum extends final finally float for goto if
    implements import instanceof int interface long native new package private
    protected public return short static strictfp super switch synchronized
    this throw throws transient try void volatile while true false null
    """.split()
)

ADAPTER_TYPE_ALIASES: dict[str, str] = {
    "mongo": "mongodb",
    "postgres": "postgresql",
}


def normalize_adapter_type(adapter_type: str) -> str:
    value = adapter_type.strip().lower()
    return ADAPTER_TYPE_ALIASES.get(value, value)


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------


def validate_class_name(name: str, label: str) -> list[str]:
    if not name or not name.strip():
        return [f"{label} name is required"]
    if not _CLASS_NAME_RE.match(name):
        return [
            f"{label} name must be a valid Java class name "
            f"(PascalCase, no spaces or special characters): {name}"
        ]
    return []


def validate_package_name(package: str) -> list[str]:
    """Check a dotted Java package name segment by segment."""
    if not package or not package.strip():
        return ["Package name cannot be null or empty"]
    if package.startswith(".") or package.endswith("."):
        return [f"Package name cannot start or end with a dot: {package}"]

    errors: list[str] = []
    segments = package.split(".")
    if len(segments) < 2:
        errors.append(f"Package name must contain at least two segments: {package}")
    for position, segment in enumerate(segments, start=1):
        if not segment:
            errors.append(f"Package name contains empty segment at position {position}: {package}")
        elif not _PACKAGE_SEGMENT_RE.match(segment):
            errors.append(f"Package segment contains invalid characters: '{segment}' in {package}")
        elif segment in JAVA_RESERVED_WORDS:
            errors.append(f"Package segment cannot be a Java reserved keyword: '{segment}' in {package}")
    return errors


def _validate_methods(methods: Sequence[MethodSignature], errors: list[str]) -> None:
    for method in methods:
        if not method.name:
            errors.append("Method name is required")
        elif not _MEMBER_NAME_RE.match(method.name):
            errors.append(f"Invalid method name: {method.name}")
        if not method.return_type:
            errors.append(f"Method return type is required for method: {method.name}")
        for param in method.parameters:
            if not param.name:
                errors.append(f"Parameter name is required in method: {method.name}")
            elif not _MEMBER_NAME_RE.match(param.name):
                errors.append(f"Invalid parameter name: {param.name} in method: {method.name}")
            if not param.type:
                errors.append(f"Parameter type is required for parameter: {param.name}")


# ---------------------------------------------------------------------------
# Per-kind validators
# ---------------------------------------------------------------------------


def validate_entity(component: ComponentConfig) -> list[str]:
    errors = validate_class_name(component.name, "Entity")

    if not component.fields:
        errors.append("Entity must have at least one field")
    for field in component.fields:
        if not field.name:
            errors.append("Field name cannot be empty")
        elif not _MEMBER_NAME_RE.match(field.name):
            errors.append(f"Invalid field name: {field.name}. Must be camelCase")
        if not field.type:
            errors.append(f"Field type cannot be empty for field: {field.name}")

    if component.has_id and component.id_type not in ID_TYPES:
        errors.append(f"Invalid ID type: {component.id_type}. Valid types: {', '.join(ID_TYPES)}")
    return errors


def validate_use_case(component: ComponentConfig) -> list[str]:
    errors = validate_class_name(component.name, "Use case")
    if not component.methods:
        errors.append("At least one method is required")
    if not component.generate_port and not component.generate_impl:
        errors.append("At least one of generate_port or generate_impl must be true")
    _validate_methods(component.methods, errors)
    return errors


def validate_output_adapter(component: ComponentConfig) -> list[str]:
    errors = validate_class_name(component.name, "Adapter")
    if not component.adapter_type:
        errors.append("Adapter type is required")
    if not component.entity:
        errors.append("Entity name is required")
    elif not _CLASS_NAME_RE.match(component.entity):
        errors.append(f"Entity name must be a valid Java class name: {component.entity}")
    _validate_methods(component.methods, errors)
    return errors


def validate_input_adapter(component: ComponentConfig) -> list[str]:
    errors = validate_class_name(component.name, "Adapter")
    if not component.adapter_type:
        errors.append("Adapter type is required")
    if not component.use_case:
        errors.append("Use case name is required")
    elif not _CLASS_NAME_RE.match(component.use_case):
        errors.append(f"Use case name must be a valid Java class name: {component.use_case}")
    if not component.endpoints:
        errors.append("At least one endpoint is required")

    for endpoint in component.endpoints:
        if not endpoint.path:
            errors.append("Endpoint path is required")
        elif not endpoint.path.startswith("/"):
            errors.append(f"Endpoint path must start with '/': {endpoint.path}")
        if endpoint.method not in HTTP_METHODS:
            errors.append(
                f"Invalid HTTP method '{endpoint.method}' for endpoint: {endpoint.path}. "
                f"Valid methods: {', '.join(HTTP_METHODS)}"
            )
        if not endpoint.use_case_method:
            errors.append(f"Use case method is required for endpoint: {endpoint.path}")
        if not endpoint.return_type:
            errors.append(f"Return type is required for endpoint: {endpoint.path}")
        for param in endpoint.parameters:
            if not param.name:
                errors.append(f"Parameter name is required in endpoint: {endpoint.path}")
            if param.kind not in PARAMETER_KINDS:
                errors.append(
                    f"Parameter type (PATH/BODY/QUERY) is required for parameter: {param.name}"
                )
    return errors


VALIDATORS = {
    ComponentKind.ENTITY: validate_entity,
    ComponentKind.USE_CASE: validate_use_case,
    ComponentKind.OUTPUT_ADAPTER: validate_output_adapter,
    ComponentKind.INPUT_ADAPTER: validate_input_adapter,
}


def validate_component(component: ComponentConfig) -> list[str]:
    """Run the validator registered for ``component.kind``.

    Project initialisation has no component-level checks of its own; its
    inputs are validated by ``ProjectConfig`` and ``validate_package_name``.
    """
    validator = VALIDATORS.get(component.kind)
    return validator(component) if validator else []
