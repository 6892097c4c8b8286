"""
HTML rendering of poster layouts with Jinja2.

Layouts are ordinary Jinja2 templates stored under the templates root.
Auto-escaping is always on; trusted markup (asset SVGs) reaches the page
either as ``markupsafe.Markup`` values from the context builder or through
the ``safe_html`` filter/global.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
)
from markupsafe import Markup

from .errors import ConfigurationError, RenderError

logger = logging.getLogger(__name__)


def safe_html(value: Any) -> Markup:
    return Markup("" if value is None else str(value))


class TemplateRenderer:
    def __init__(self, templates_dir: Path) -> None:
        self.templates_dir = Path(templates_dir).resolve()
        self.environment = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.environment.filters["safe_html"] = safe_html
        self.environment.globals["safe_html"] = safe_html

    def resolve_layout(self, layout_ref: str) -> Path:
        """
        Resolve a layout reference to a readable file inside the templates root.

        Raises:
            ConfigurationError: If the reference is empty, escapes the root or is not a file
        """
        if not layout_ref or not layout_ref.strip():
            raise ConfigurationError("template configuration incomplete: layout file path missing")
        path = (self.templates_dir / layout_ref).resolve()
        if not path.is_relative_to(self.templates_dir):
            raise ConfigurationError("template configuration error: layout path outside templates directory")
        if not path.is_file():
            logger.error(f"Layout file not found: {path}")
            raise ConfigurationError("template configuration error: layout file not readable")
        return path

    def render(self, context: Mapping[str, Any], layout_ref: str) -> str:
        """
        Render a layout against a context.

        Args:
            context: Flat rendering context
            layout_ref: Layout path relative to the templates root

        Returns:
            The rendered HTML document

        Raises:
            ConfigurationError: If the layout file cannot be found or read
            RenderError: If the layout fails to compile or execute, including
                references to variables missing from the context
        """
        path = self.resolve_layout(layout_ref)
        template_name = path.relative_to(self.templates_dir).as_posix()

        try:
            template = self.environment.get_template(template_name)
        except TemplateNotFound as exc:
            raise ConfigurationError("template configuration error: layout file not readable") from exc
        except TemplateSyntaxError as exc:
            logger.error(f"Failed to parse layout {template_name} (line {exc.lineno}): {exc.message}")
            raise RenderError(f"failed to parse template {layout_ref}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(f"Failed to read layout {path}: {exc}")
            raise ConfigurationError("template configuration error: layout file not readable") from exc

        try:
            return template.render(dict(context))
        except (TemplateError, TypeError, ValueError, AttributeError) as exc:
            logger.error(f"Failed to execute layout {template_name}: {exc}")
            raise RenderError(f"failed to render template {layout_ref}") from exc
