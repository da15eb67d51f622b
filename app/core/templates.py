"""
Template configuration for Jinja2 (transactional email bodies)
"""
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.utils.price_utils import format_amount

# app/core/templates.py -> app/templates
templates_dir = Path(__file__).resolve().parent.parent / "templates"

email_templates = Environment(
    loader=FileSystemLoader(str(templates_dir / "email")),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
email_templates.filters["money"] = format_amount


def render_email(template_name: str, **context) -> str:
    """Render an email template from app/templates/email"""
    return email_templates.get_template(template_name).render(**context)
