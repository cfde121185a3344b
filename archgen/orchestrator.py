"""Generation orchestrator.

Drives one ``GenerationRequest`` through a fixed state machine::

    VALIDATING -> RESOLVING -> RENDERING -> BACKING_UP -> WRITING
        -> MERGING_SHARED_FILES -> COMMITTED

Any failure moves the run to ``FAILED``. Nothing touches the target tree
before ``BACKING_UP``; a failure from that point on restores the snapshot,
removes the files and directories the run created, and reports the original
cause followed by a rollback notice.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import yaml

from archgen.backup import BackupCoordinator
from archgen.config import CONFIG_FILE_NAME
from archgen.errors import (
    ArchgenError,
    BackupFailed,
    ProjectNotInitialized,
    TemplateInvalid,
    ValidationError,
)
from archgen.interfaces import FileStore, MetadataSource, Renderer
from archgen.merge import SharedFileEdit, YamlOverlay, apply_edits
from archgen.models import (
    ComponentKind,
    GeneratedArtifact,
    GenerationRequest,
    GenerationResult,
    GenerationState,
    PlannedArtifact,
)
from archgen.scaffolder.generator import ADAPTER_CATEGORIES, ArtifactPlanner, GenerationPlan
from archgen.scaffolder.metadata import AdapterDescriptor
from archgen.structure import ArchitectureDescriptor
from archgen.utils import load_yaml_text, print_step, print_warning
from archgen.validators import normalize_adapter_type, validate_component, validate_package_name

ROLLBACK_NOTICE = "All changes have been rolled back."


class GenerationOrchestrator:
    """Runs generation requests against injected collaborators.

    Holds no per-request state: every call to ``generate`` builds its own
    result, so one instance can serve many requests.
    """

    def __init__(
        self,
        metadata: MetadataSource,
        renderer: Renderer,
        files: FileStore,
        backups: BackupCoordinator,
        planner: ArtifactPlanner | None = None,
        verbose: bool = True,
    ) -> None:
        self.metadata = metadata
        self.renderer = renderer
        self.files = files
        self.backups = backups
        self.planner = planner or ArtifactPlanner(files)
        self.verbose = verbose

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def generate(self, request: GenerationRequest) -> GenerationResult:
        """Run *request* to ``COMMITTED`` or ``FAILED``.

        Expected failures (validation, missing metadata, template and
        storage errors) are reported on the result. Anything else is
        re-raised after the target tree has been rolled back.
        """
        result = GenerationResult()
        root = Path(request.root)
        created: list[str] = []

        try:
            self._enter(result, GenerationState.VALIDATING)
            descriptor, adapter = self._validate(request)

            self._enter(result, GenerationState.RESOLVING)
            plan = self._resolve(request, descriptor, adapter, result)

            self._enter(result, GenerationState.RENDERING)
            rendered, overlays = self._render(plan)

            self._enter(result, GenerationState.BACKING_UP)
            snapshot = self._backup_targets(root, plan, rendered)
            if snapshot:
                result.backup_id = self.backups.create_backup(root, snapshot)

            self._enter(result, GenerationState.WRITING)
            for artifact in rendered:
                target = root / artifact.path
                if not self.files.exists(target):
                    self._record_created(root, artifact.path, created)
                self.files.write(target, artifact.text)
                result.artifacts.append(artifact.path)

            self._enter(result, GenerationState.MERGING_SHARED_FILES)
            self._merge_shared_files(root, [*plan.edits, *overlays], result, created)

            self._enter(result, GenerationState.COMMITTED)
        except ArchgenError as exc:
            self._fail(request, result, exc, created)
            return result
        except Exception:
            if result.state in _WRITE_STATES:
                self._rollback(root, result, created)
            raise

        if result.backup_id:
            self.backups.delete_backup(root, result.backup_id)
        result.success = True
        return result

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _enter(self, result: GenerationResult, state: GenerationState, detail: str = "") -> None:
        result.state = state
        result.transitions.append(state)
        if self.verbose:
            print_step(state.value, detail)

    def _validate(
        self,
        request: GenerationRequest,
    ) -> tuple[ArchitectureDescriptor, AdapterDescriptor | None]:
        component = request.component
        project = request.project
        root = Path(request.root)
        errors: list[str] = []

        config_present = self.files.exists(root / CONFIG_FILE_NAME)
        if component.kind is ComponentKind.PROJECT:
            if config_present:
                errors.append(f"Project is already initialized. Found {CONFIG_FILE_NAME} file.")
            errors.extend(validate_package_name(project.base_package))
        elif not config_present:
            errors.append(str(ProjectNotInitialized(root)))

        errors.extend(validate_component(component))

        descriptor: ArchitectureDescriptor | None = None
        try:
            descriptor = self.metadata.load_architecture(project.architecture)
        except ArchgenError as exc:
            errors.append(str(exc))

        adapter: AdapterDescriptor | None = None
        category = ADAPTER_CATEGORIES.get(component.kind)
        if category and component.adapter_type:
            adapter_id = normalize_adapter_type(component.adapter_type)
            try:
                adapter = self.metadata.load_adapter(
                    adapter_id, project.framework.value, project.paradigm.value, category
                )
            except ArchgenError as exc:
                errors.append(str(exc))
            else:
                if adapter.type != category:
                    errors.append(
                        f"Adapter '{adapter_id}' is a {adapter.type} adapter; "
                        f"{component.kind.value} needs a {category} adapter"
                    )

        if errors or descriptor is None:
            raise ValidationError(errors)
        return descriptor, adapter

    def _resolve(
        self,
        request: GenerationRequest,
        descriptor: ArchitectureDescriptor,
        adapter: AdapterDescriptor | None,
        result: GenerationResult,
    ) -> GenerationPlan:
        plan = self.planner.plan(request, descriptor, adapter)
        errors = list(plan.errors)
        result.warnings.extend(plan.warnings)

        kept: list[PlannedArtifact] = []
        root = Path(request.root)
        for artifact in plan.artifacts:
            if not self.files.exists(root / artifact.path):
                kept.append(artifact)
            elif artifact.skip_if_exists:
                result.skipped.append(artifact.path)
            elif request.force:
                kept.append(artifact)
            else:
                errors.append(f"File already exists: {artifact.path}")

        if errors:
            raise ValidationError(errors)
        plan.artifacts = kept
        return plan

    def _render(
        self,
        plan: GenerationPlan,
    ) -> tuple[list[GeneratedArtifact], list[YamlOverlay]]:
        rendered: list[GeneratedArtifact] = []
        for artifact in plan.artifacts:
            if artifact.template_id is None:
                text = artifact.content
            else:
                text = self.renderer.render(artifact.template_id, artifact.context)
            rendered.append(GeneratedArtifact(path=artifact.path, text=text, kind=artifact.kind))

        overlays: list[YamlOverlay] = []
        for overlay in plan.overlays:
            text = self.renderer.render(overlay.template_id, overlay.context)
            try:
                document = load_yaml_text(text)
            except (yaml.YAMLError, TypeError) as exc:
                raise TemplateInvalid(
                    overlay.template_id, f"rendered properties are not a YAML mapping: {exc}"
                ) from exc
            overlays.append(YamlOverlay(overlay.path, document, source=overlay.source))
        return rendered, overlays

    def _backup_targets(
        self,
        root: Path,
        plan: GenerationPlan,
        rendered: list[GeneratedArtifact],
    ) -> list[str]:
        """Existing files this run will modify: force-overwritten artifacts and shared files."""
        targets: list[str] = []
        for path in [a.path for a in rendered] + plan.shared_paths():
            if path not in targets and self.files.exists(root / path):
                targets.append(path)
        return targets

    def _merge_shared_files(
        self,
        root: Path,
        edits: Iterable[SharedFileEdit],
        result: GenerationResult,
        created: list[str],
    ) -> None:
        grouped: dict[str, list[SharedFileEdit]] = {}
        for edit in edits:
            grouped.setdefault(edit.path, []).append(edit)

        for path, file_edits in grouped.items():
            target = root / path
            existed = self.files.exists(target)
            text = self.files.read(target) if existed else ""
            outcome = apply_edits(text, file_edits)
            result.conflicts.extend(outcome.conflicts)
            result.warnings.extend(outcome.warnings)
            if not outcome.changed:
                continue
            if not existed and path not in created:
                self._record_created(root, path, created)
            self.files.write(target, outcome.text)
            if path not in result.shared_files:
                result.shared_files.append(path)

        result.warnings.extend(conflict.describe() for conflict in result.conflicts)

    def _record_created(self, root: Path, path: str, created: list[str]) -> None:
        """Record a new file and, outermost first, the parent directories it will create."""
        missing: list[str] = []
        for parent in Path(path).parents:
            if parent == Path(".") or self.files.exists(root / parent):
                break
            missing.append(parent.as_posix())
        created.extend(directory for directory in reversed(missing) if directory not in created)
        created.append(path)

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    def _fail(
        self,
        request: GenerationRequest,
        result: GenerationResult,
        exc: ArchgenError,
        created: list[str],
    ) -> None:
        failed_in = result.state
        component = request.component
        causes = exc.errors if isinstance(exc, ValidationError) else [str(exc)]
        result.errors.append(
            f"Failed to generate {component.kind.value} '{component.name}': {'; '.join(causes)}"
        )
        if len(causes) > 1:
            result.errors.extend(causes)

        if failed_in in _WRITE_STATES:
            self._rollback(Path(request.root), result, created)
        self._enter(result, GenerationState.FAILED)

    def _rollback(self, root: Path, result: GenerationResult, created: list[str]) -> None:
        restored = True
        if result.backup_id:
            try:
                self.backups.restore_backup(root, result.backup_id)
            except BackupFailed as exc:
                restored = False
                result.errors.append(str(exc))

        for path in reversed(created):
            try:
                self.files.remove(root / path)
            except ArchgenError as exc:
                restored = False
                result.errors.append(f"Could not remove {path}: {exc}")

        result.artifacts.clear()
        result.shared_files.clear()
        if not restored:
            if self.verbose:
                print_warning("Rollback was incomplete; see the errors above.")
            return

        if result.backup_id:
            self.backups.delete_backup(root, result.backup_id)
            result.backup_id = None
        result.errors.append(ROLLBACK_NOTICE)


_WRITE_STATES = frozenset(
    {
        GenerationState.BACKING_UP,
        GenerationState.WRITING,
        GenerationState.MERGING_SHARED_FILES,
        GenerationState.COMMITTED,
    }
)
