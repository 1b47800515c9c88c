"""Template renderer interface and a Jinja2-backed implementation."""

import dataclasses
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Optional

import jinja2

from .cancellation import CancellationToken
from .exceptions import TemplateError
from .models import RenderedContent

logger = logging.getLogger(__name__)


class TemplateRenderer(ABC):
    """Resolves a template id and data into HTML and text bodies."""

    @abstractmethod
    def render_template(
        self,
        template_id: Optional[str],
        data: Any,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> RenderedContent:
        """Render a template.

        Args:
            template_id: Identifier of the template
            data: Opaque data blob for variable substitution
            cancellation_token: Optional cancellation token

        Returns:
            Rendered HTML and/or text content

        Raises:
            TemplateError: If the template cannot be found or rendered
        """
        pass


def template_context(data: Any) -> Dict[str, Any]:
    """Turn an opaque data blob into template variables.

    Mappings, dataclasses and pydantic models are expanded; anything else is
    exposed as ``data``.
    """
    if isinstance(data, Mapping):
        return dict(data)
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return dataclasses.asdict(data)
    if hasattr(data, "model_dump"):
        return data.model_dump()
    return {"data": data}


def _autoescape(template_name: Optional[str]) -> bool:
    # HTML templates are escaped, text variants are not
    return template_name is None or not template_name.endswith(".text.jinja2")


class Jinja2TemplateRenderer(TemplateRenderer):
    """Renders ``<id>.jinja2`` (HTML) and ``<id>.text.jinja2`` (text) templates."""

    def __init__(self, template_dir: str):
        """Initialize the renderer.

        Args:
            template_dir: Path to the directory containing templates
        """
        self.template_dir = Path(template_dir)
        if not self.template_dir.exists():
            raise TemplateError(f"Template directory does not exist: {template_dir}")

        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.template_dir)),
            autoescape=_autoescape,
            undefined=jinja2.StrictUndefined,
        )

    def _get_template(self, name: str) -> Optional[jinja2.Template]:
        try:
            return self.env.get_template(name)
        except jinja2.TemplateNotFound:
            return None
        except jinja2.TemplateError as e:
            raise TemplateError(f"Error loading template {name}: {e}") from e

    def render_template(
        self,
        template_id: Optional[str],
        data: Any,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> RenderedContent:
        """Render the HTML and text variants of a template.

        At least one of ``<id>.jinja2`` and ``<id>.text.jinja2`` must exist.
        """
        if not template_id:
            raise TemplateError("Template id is required.")
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()

        html_template = self._get_template(f"{template_id}.jinja2")
        text_template = self._get_template(f"{template_id}.text.jinja2")
        if html_template is None and text_template is None:
            raise TemplateError(f"Template not found: {template_id}")

        context = template_context(data)
        try:
            html_content = html_template.render(**context) if html_template else None
            text_content = text_template.render(**context) if text_template else None
        except jinja2.UndefinedError as e:
            raise TemplateError(f"Missing variable in template {template_id}: {e}") from e
        except jinja2.TemplateError as e:
            raise TemplateError(f"Error rendering template {template_id}: {e}") from e

        logger.debug(f"Rendered template {template_id}")
        return RenderedContent(html_content=html_content, text_content=text_content)

    def list_templates(self) -> List[str]:
        """List all available templates.

        Returns:
            List of template names
        """
        templates = set()
        for file in self.template_dir.glob("*.jinja2"):
            name = file.stem
            if name.endswith(".text"):
                name = name[: -len(".text")]
            templates.add(name)
        return sorted(templates)
