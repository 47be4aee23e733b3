# backend/tutorslots/services/template_service.py
"""
Template rendering service.

Provides centralized template rendering using Jinja2 for booking
notification emails.
"""

from datetime import datetime
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService, Clock

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


class TemplateService(BaseService):
    """
    Centralized template rendering service using Jinja2.

    Provides a consistent interface and common context variables for all
    rendered templates.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._register_custom_filters()

    def _register_custom_filters(self):
        def currency(value: float) -> str:
            """Format a number as currency."""
            return f"${value:,.2f}"

        def format_datetime(value: datetime, format_str: str = "%A %B %d, %Y at %H:%M") -> str:
            if isinstance(value, str):
                return value  # Already formatted
            return value.strftime(format_str)

        self.env.filters["currency"] = currency
        self.env.filters["format_datetime"] = format_datetime

    def get_common_context(self) -> Dict[str, Any]:
        return {
            "brand_name": settings.brand_name,
            "frontend_url": settings.frontend_url,
            "current_year": self.now().year,
        }

    @BaseService.measure_operation("render_template")
    def render_template(self, template_name: str, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Render a template with the common context merged in.

        Raises:
            ServiceException: If the template does not exist or fails to render
        """
        full_context = {**self.get_common_context(), **(context or {})}
        try:
            template = self.env.get_template(template_name)
            return template.render(**full_context)
        except TemplateNotFound as exc:
            self.logger.error(f"Template not found: {template_name}")
            raise ServiceException(f"Template not found: {template_name}") from exc
        except Exception as exc:
            self.logger.error(f"Error rendering template {template_name}: {str(exc)}")
            raise ServiceException(f"Template rendering failed: {str(exc)}") from exc
