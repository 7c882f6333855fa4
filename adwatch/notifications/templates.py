"""Jinja2 rendering of watchdog alert emails."""

import logging
from typing import Dict, Mapping, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)

# Rendered part -> template file in adwatch/notifications/email_templates
DEFAULT_TEMPLATES = {
    "subject": "watchdog_alert_subject.j2",
    "html_body": "watchdog_alert_body.html.j2",
    "text_body": "watchdog_alert_body.txt.j2",
}


class TemplateRenderer:
    """Renders the subject, HTML body and plain-text body of an alert.

    Undefined variables raise instead of rendering as blanks, and only the
    ``*.html.j2`` template is autoescaped: ad titles reach the subject and
    text body verbatim.
    """

    def __init__(
        self,
        template_dir: str = "email_templates",
        templates: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            template_dir: Directory inside the adwatch.notifications package
            templates: Overrides for entries of DEFAULT_TEMPLATES
        """
        self.templates = {**DEFAULT_TEMPLATES, **(templates or {})}
        self.env = Environment(
            loader=PackageLoader("adwatch.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, context: Dict) -> Dict[str, str]:
        """Render every part of the alert.

        Returns:
            Dict with ``subject`` (collapsed to one line), ``html_body`` and
            ``text_body``

        Raises:
            NotificationTemplateError: If a template is missing or fails to render
        """
        rendered = {}
        for part, template_name in self.templates.items():
            try:
                rendered[part] = self.env.get_template(template_name).render(context)
            except TemplateError as e:
                logger.error(f"Rendering {template_name} failed: {e}", exc_info=True)
                raise NotificationTemplateError(
                    f"Template rendering failed ({template_name}): {e}"
                ) from e

        rendered["subject"] = " ".join(rendered["subject"].split())
        return rendered
