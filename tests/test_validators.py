"""Unit tests for archgen.validators.

Tests cover:
- Class and package name checks
- Entity, use case, output adapter and input adapter validators
- All problems reported together rather than the first one only
- validate_component dispatch and adapter type aliases
"""

from __future__ import annotations

import pytest

from archgen.models import ComponentConfig, ComponentKind, Endpoint, EntityField, MethodSignature
from archgen.validators import (
    normalize_adapter_type,
    validate_class_name,
    validate_component,
    validate_entity,
    validate_input_adapter,
    validate_output_adapter,
    validate_package_name,
    validate_use_case,
)

pytestmark = pytest.mark.unit


def _component(kind: ComponentKind, **values) -> ComponentConfig:
    return ComponentConfig(kind=kind, **values)


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------


class TestNames:
    def test_class_name(self):
        assert validate_class_name("UserRepository", "Adapter") == []
        assert validate_class_name("", "Entity") == ["Entity name is required"]
        assert "PascalCase" in validate_class_name("user", "Entity")[0]
        assert validate_class_name("User Name", "Entity") != []

    def test_package_name_valid(self):
        assert validate_package_name("com.acme.shop") == []

    @pytest.mark.parametrize(
        "package,fragment",
        [
            ("", "cannot be null or empty"),
            (".com.acme", "cannot start or end with a dot"),
            ("shop", "at least two segments"),
            ("com..acme", "empty segment at position 2"),
            ("com.Acme", "invalid characters: 'Acme'"),
            ("com.acme.class", "reserved keyword: 'class'"),
        ],
    )
    def test_package_name_errors(self, package, fragment):
        errors = validate_package_name(package)
        assert any(fragment in error for error in errors), errors

    def test_adapter_type_aliases(self):
        assert normalize_adapter_type(" Mongo ") == "mongodb"
        assert normalize_adapter_type("postgres") == "postgresql"
        assert normalize_adapter_type("Redis") == "redis"


# ---------------------------------------------------------------------------
# Entity
# ---------------------------------------------------------------------------


class TestValidateEntity:
    def test_valid(self):
        component = _component(ComponentKind.ENTITY, name="User", fields=EntityField.parse_list("name:String"))
        assert validate_entity(component) == []

    def test_collects_every_problem(self):
        component = _component(ComponentKind.ENTITY, name="user", fields=[], id_type="Integer")
        errors = validate_entity(component)
        assert len(errors) == 3
        assert "Entity must have at least one field" in errors
        assert "Invalid ID type: Integer. Valid types: String, Long, UUID" in errors

    def test_field_names_camel_case(self):
        component = _component(
            ComponentKind.ENTITY, name="User", fields=[EntityField(name="First_Name", type="String")]
        )
        assert validate_entity(component) == ["Invalid field name: First_Name. Must be camelCase"]

    def test_id_type_ignored_without_id(self):
        component = _component(
            ComponentKind.ENTITY,
            name="Money",
            fields=EntityField.parse_list("amount:BigDecimal"),
            has_id=False,
            id_type="Whatever",
        )
        assert validate_entity(component) == []


# ---------------------------------------------------------------------------
# Use case
# ---------------------------------------------------------------------------


class TestValidateUseCase:
    def test_valid(self):
        component = _component(
            ComponentKind.USE_CASE, name="CreateUser", methods=MethodSignature.parse_list("execute:User:user:User")
        )
        assert validate_use_case(component) == []

    def test_requires_methods(self):
        errors = validate_use_case(_component(ComponentKind.USE_CASE, name="CreateUser"))
        assert errors == ["At least one method is required"]

    def test_port_or_impl_required(self):
        component = _component(
            ComponentKind.USE_CASE,
            name="CreateUser",
            methods=MethodSignature.parse_list("execute:User"),
            generate_port=False,
            generate_impl=False,
        )
        assert validate_use_case(component) == ["At least one of generate_port or generate_impl must be true"]

    def test_method_and_parameter_names(self):
        component = _component(
            ComponentKind.USE_CASE, name="CreateUser", methods=MethodSignature.parse_list("Execute:User:User:User")
        )
        assert validate_use_case(component) == [
            "Invalid method name: Execute",
            "Invalid parameter name: User in method: Execute",
        ]


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class TestValidateOutputAdapter:
    def test_valid(self):
        component = _component(
            ComponentKind.OUTPUT_ADAPTER, name="UserRepository", entity="User", adapter_type="redis"
        )
        assert validate_output_adapter(component) == []

    def test_missing_type_and_entity(self):
        errors = validate_output_adapter(_component(ComponentKind.OUTPUT_ADAPTER, name="UserRepository"))
        assert errors == ["Adapter type is required", "Entity name is required"]

    def test_entity_must_be_class_name(self):
        component = _component(
            ComponentKind.OUTPUT_ADAPTER, name="UserRepository", entity="user", adapter_type="redis"
        )
        assert validate_output_adapter(component) == ["Entity name must be a valid Java class name: user"]


class TestValidateInputAdapter:
    def test_valid(self):
        component = _component(
            ComponentKind.INPUT_ADAPTER,
            name="User",
            adapter_type="rest",
            use_case="CreateUser",
            endpoints=Endpoint.parse_list("/users:POST:execute:User:user:BODY:User"),
        )
        assert validate_input_adapter(component) == []

    def test_endpoint_problems(self):
        component = _component(
            ComponentKind.INPUT_ADAPTER,
            name="User",
            adapter_type="rest",
            use_case="CreateUser",
            endpoints=Endpoint.parse_list("users:FETCH:execute:User:user:HEADER:User"),
        )
        assert validate_input_adapter(component) == [
            "Endpoint path must start with '/': users",
            "Invalid HTTP method 'FETCH' for endpoint: users. Valid methods: GET, POST, PUT, PATCH, DELETE",
            "Parameter type (PATH/BODY/QUERY) is required for parameter: user",
        ]

    def test_requires_use_case_and_endpoints(self):
        errors = validate_input_adapter(_component(ComponentKind.INPUT_ADAPTER, name="User", adapter_type="rest"))
        assert errors == ["Use case name is required", "At least one endpoint is required"]


class TestValidateComponent:
    def test_dispatches_on_kind(self):
        assert validate_component(_component(ComponentKind.ENTITY, name="User")) == [
            "Entity must have at least one field"
        ]

    def test_project_has_no_component_checks(self):
        assert validate_component(_component(ComponentKind.PROJECT, name="anything goes")) == []
