"""Request, plan and result models for one generation run.

A ``GenerationRequest`` names a target root, the project it belongs to and
the component to produce. The planner turns it into ``PlannedArtifact``s,
the renderer into ``GeneratedArtifact``s, and the orchestrator reports the
outcome as a ``GenerationResult``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from archgen.config import ProjectConfig
from archgen.merge import MergeConflict

ID_TYPES: tuple[str, ...] = ("String", "Long", "UUID")
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")
PARAMETER_KINDS: tuple[str, ...] = ("PATH", "QUERY", "BODY")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ComponentKind(str, Enum):
    """What a generation request produces."""

    PROJECT = "project"
    ENTITY = "entity"
    USE_CASE = "use-case"
    INPUT_ADAPTER = "input-adapter"
    OUTPUT_ADAPTER = "output-adapter"


class GenerationState(str, Enum):
    """Orchestrator states, in the order a successful run visits them."""

    VALIDATING = "VALIDATING"
    RESOLVING = "RESOLVING"
    RENDERING = "RENDERING"
    BACKING_UP = "BACKING_UP"
    WRITING = "WRITING"
    MERGING_SHARED_FILES = "MERGING_SHARED_FILES"
    COMMITTED = "COMMITTED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationState.COMMITTED, GenerationState.FAILED)


# ---------------------------------------------------------------------------
# Component inputs
# ---------------------------------------------------------------------------


class EntityField(BaseModel):
    name: str
    type: str
    nullable: bool = False

    @classmethod
    def parse_list(cls, value: str) -> list["EntityField"]:
        """Parse ``"name:String,email:String,age:Integer?"``.

        A trailing ``?`` on the type marks the field nullable.

        Raises:
            ValueError: An entry is not ``name:Type``.
        """
        fields: list[EntityField] = []
        for pair in value.split(","):
            if not pair.strip():
                continue
            parts = [part.strip() for part in pair.split(":")]
            if len(parts) != 2:
                raise ValueError(f"Invalid field format: {pair.strip()}. Expected format: name:type")
            name, type_name = parts
            nullable = type_name.endswith("?")
            fields.append(cls(name=name, type=type_name.rstrip("?"), nullable=nullable))
        return fields


class MethodParameter(BaseModel):
    name: str
    type: str


class MethodSignature(BaseModel):
    """A use-case or adapter method: ``name(parameters) -> return_type``."""

    name: str
    return_type: str = "void"
    parameters: list[MethodParameter] = Field(default_factory=list)

    @property
    def parameter_list(self) -> str:
        """Java parameter list, e.g. ``String id, User user``."""
        return ", ".join(f"{p.type} {p.name}" for p in self.parameters)

    @property
    def argument_list(self) -> str:
        return ", ".join(p.name for p in self.parameters)

    @classmethod
    def parse_list(cls, value: str) -> list["MethodSignature"]:
        """Parse ``"save:User:user:User|findById:User:id:String,tenant:String"``.

        Methods are separated by ``|``; each is ``name:ReturnType`` followed
        by optional ``param:Type`` pairs separated by ``,`` or ``:``.

        Raises:
            ValueError: A method lacks a return type or a parameter lacks a type.
        """
        methods: list[MethodSignature] = []
        for definition in value.split("|"):
            definition = definition.strip()
            if not definition:
                continue
            head = [part.strip() for part in definition.split(":", 2)]
            if len(head) < 2:
                raise ValueError(
                    f"Invalid method format: {definition}. "
                    "Expected format: methodName:ReturnType[:param1:Type1,param2:Type2]"
                )
            tokens: list[str] = []
            if len(head) == 3:
                for chunk in head[2].split(","):
                    tokens.extend(token.strip() for token in chunk.split(":") if token.strip())
            if len(tokens) % 2:
                raise ValueError(f"Invalid parameters in method {head[0]}: expected name:Type pairs")
            parameters = [
                MethodParameter(name=tokens[i], type=tokens[i + 1]) for i in range(0, len(tokens), 2)
            ]
            methods.append(cls(name=head[0], return_type=head[1], parameters=parameters))
        return methods


class EndpointParameter(BaseModel):
    name: str
    kind: str = Field(default="PATH", description="PATH, QUERY or BODY")
    type: str = "String"


class Endpoint(BaseModel):
    """One inbound endpoint mapped to a use-case method."""

    path: str
    method: str = "GET"
    use_case_method: str
    return_type: str = "void"
    parameters: list[EndpointParameter] = Field(default_factory=list)

    @classmethod
    def parse_list(cls, value: str) -> list["Endpoint"]:
        """Parse ``"/users:POST:create:User:user:BODY:User|/users/{id}:GET:findById:User:id:PATH:String"``.

        Raises:
            ValueError: Fewer than four parts, or a malformed parameter triple.
        """
        endpoints: list[Endpoint] = []
        for definition in value.split("|"):
            definition = definition.strip()
            if not definition:
                continue
            parts = [part.strip() for part in definition.split(":")]
            if len(parts) < 4:
                raise ValueError(
                    f"Invalid endpoint format: {definition}. "
                    "Expected format: /path:METHOD:useCaseMethod:ReturnType[:param:PARAMTYPE:Type]"
                )
            extra = parts[4:]
            if len(extra) % 3:
                raise ValueError(
                    f"Invalid parameters in endpoint {parts[0]}: expected name:PARAMTYPE:Type triples"
                )
            parameters = [
                EndpointParameter(name=extra[i], kind=extra[i + 1].upper(), type=extra[i + 2])
                for i in range(0, len(extra), 3)
            ]
            endpoints.append(
                cls(
                    path=parts[0],
                    method=parts[1].upper(),
                    use_case_method=parts[2],
                    return_type=parts[3],
                    parameters=parameters,
                )
            )
        return endpoints


class ComponentConfig(BaseModel):
    """The component half of a generation request.

    Which fields matter depends on ``kind``; the validators report the ones
    that are required but missing.
    """

    kind: ComponentKind
    name: str = Field(default="", description="Component name (PascalCase for classes)")
    entity: str | None = Field(default=None, description="Owning entity of an adapter")
    fields: list[EntityField] = Field(default_factory=list)
    has_id: bool = Field(default=True)
    id_type: str = Field(default="String")
    methods: list[MethodSignature] = Field(default_factory=list)
    endpoints: list[Endpoint] = Field(default_factory=list)
    adapter_type: str | None = Field(default=None, description="redis, mongodb, rest, graphql...")
    module: str | None = Field(default=None, description="Explicit module for multi-module layouts")
    use_case: str | None = Field(default=None, description="Use case an input adapter calls")
    generate_port: bool = Field(default=True)
    generate_impl: bool = Field(default=True)


class Dependency(BaseModel):
    """A Gradle dependency declaration."""

    group: str
    artifact: str
    version: str = ""
    scope: str = "implementation"

    @property
    def key(self) -> str:
        return f"{self.group}:{self.artifact}"

    @property
    def coordinate(self) -> str:
        return f"{self.key}:{self.version}" if self.version else self.key

    def to_line(self) -> str:
        return f'{self.scope}("{self.coordinate}")'


class GenerationRequest(BaseModel):
    root: Path
    project: ProjectConfig
    component: ComponentConfig
    force: bool = Field(default=False, description="Back up and overwrite existing artifacts")


# ---------------------------------------------------------------------------
# Plan and result
# ---------------------------------------------------------------------------


class PlannedArtifact(BaseModel):
    """A file to create, known before anything is rendered.

    ``template_id`` is ``None`` for files with fixed ``content`` (such as
    ``.gitkeep`` placeholders).
    """

    path: str = Field(..., description="Project-relative target path (POSIX separators)")
    template_id: str | None = None
    content: str = ""
    context: dict[str, Any] = Field(default_factory=dict)
    kind: str = Field(default="source", description="Logical grouping only")
    layer: str | None = None
    skip_if_exists: bool = Field(default=False, description="Keep an existing file untouched")


class GeneratedArtifact(BaseModel):
    path: str
    text: str
    kind: str = "source"


class GenerationResult(BaseModel):
    success: bool = False
    state: GenerationState = GenerationState.VALIDATING
    transitions: list[GenerationState] = Field(default_factory=list)
    artifacts: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    shared_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    conflicts: list[MergeConflict] = Field(default_factory=list)
    backup_id: str | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "State": self.state.value,
            "Files created": len(self.artifacts),
            "Files kept": len(self.skipped),
            "Shared files updated": len(self.shared_files),
            "Merge conflicts": len(self.conflicts),
            "Warnings": len(self.warnings),
        }
