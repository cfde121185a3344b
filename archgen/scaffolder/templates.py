"""Jinja2 template rendering for generated projects.

Provides ``TemplateRenderer``, the ``Renderer`` implementation used by the
orchestrator. Templates are loaded from a ``TemplateSource``: local packs go
through Jinja2's ``FileSystemLoader``, any other source through a small
``BaseLoader`` adapter. Jinja2 failures are translated into
``TemplateNotFound`` / ``TemplateInvalid`` so callers only deal with
archgen's own error types.
"""

from __future__ import annotations

import re
from typing import Any

from jinja2 import (
    BaseLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateSyntaxError,
    UndefinedError,
    meta,
    select_autoescape,
)
from jinja2 import TemplateNotFound as JinjaTemplateNotFound

from archgen.errors import StorageError, TemplateInvalid, TemplateNotFound
from archgen.interfaces import TemplateSource
from archgen.utils import package_to_path, path_to_package, to_camel, to_kebab, to_pascal

from .sources import LocalTemplateSource

TEMPLATE_SUFFIX = ".j2"


class SourceLoader(BaseLoader):
    """Jinja2 loader reading through any ``TemplateSource``."""

    def __init__(self, source: TemplateSource) -> None:
        self.source = source

    def get_source(self, environment: Environment, template: str):
        if not self.source.exists(template):
            raise JinjaTemplateNotFound(template)
        # Remote templates never change within one invocation.
        return self.source.read(template), None, lambda: True

    def list_templates(self) -> list[str]:
        return self.source.list()


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders ``.j2`` templates of a template pack.

    Undefined variables are errors (``StrictUndefined``): a template that
    references something the planner did not provide fails to render instead
    of silently producing broken Java.
    """

    def __init__(self, source: TemplateSource) -> None:
        self.source = source
        if isinstance(source, LocalTemplateSource):
            loader: BaseLoader = FileSystemLoader(str(source.root))
        else:
            loader = SourceLoader(source)
        self.env = Environment(
            loader=loader,
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = to_pascal
        self.env.filters["camel_case"] = to_camel
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["kebab_case"] = to_kebab
        self.env.filters["package_path"] = package_to_path
        self.env.filters["as_package"] = path_to_package

    # -- Rendering ---------------------------------------------------------

    def render(self, template_id: str, context: dict[str, Any]) -> str:
        """Render *template_id* with *context*.

        Raises:
            TemplateNotFound: The pack has no such template.
            TemplateInvalid: The template has a syntax error or uses an
                undefined variable.
        """
        try:
            template = self.env.get_template(template_id)
            return template.render(**context)
        except JinjaTemplateNotFound as exc:
            raise TemplateNotFound(exc.name or template_id) from exc
        except TemplateSyntaxError as exc:
            raise TemplateInvalid(template_id, exc.message or str(exc), exc.lineno) from exc
        except UndefinedError as exc:
            raise TemplateInvalid(template_id, str(exc)) from exc
        except TemplateError as exc:
            raise TemplateInvalid(template_id, str(exc)) from exc

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context."""
        try:
            return self.env.from_string(template_string).render(**context)
        except TemplateSyntaxError as exc:
            raise TemplateInvalid("<string>", exc.message or str(exc), exc.lineno) from exc
        except TemplateError as exc:
            raise TemplateInvalid("<string>", str(exc)) from exc

    # -- Introspection -----------------------------------------------------

    def exists(self, template_id: str) -> bool:
        return self.source.exists(template_id)

    def required_variables(self, template_id: str) -> set[str]:
        """Top-level variables *template_id* reads from its context.

        Variables provided by ``{% set %}`` or loops are excluded; included
        templates are not followed.
        """
        text = self.source.read(template_id)
        try:
            ast = self.env.parse(text)
        except TemplateSyntaxError as exc:
            raise TemplateInvalid(template_id, exc.message or str(exc), exc.lineno) from exc
        return meta.find_undeclared_variables(ast)

    def validate_template(self, template_id: str) -> list[str]:
        """Existence and syntax check; returns error strings (empty when valid)."""
        if not self.source.exists(template_id):
            return [f"Template not found: {template_id}"]
        try:
            self.env.parse(self.source.read(template_id))
        except TemplateSyntaxError as exc:
            where = f" (line {exc.lineno})" if exc.lineno else ""
            return [f"Invalid template {template_id}{where}: {exc.message}"]
        except (TemplateNotFound, StorageError) as exc:
            return [str(exc)]
        return []

    def list_templates(self, prefix: str = "") -> list[str]:
        """Sorted ``.j2`` template ids under *prefix*."""
        return [path for path in self.source.list(prefix) if path.endswith(TEMPLATE_SUFFIX)]


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()
