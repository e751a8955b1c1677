"""
Render EcoRoute transactional emails and send them over SMTP.
Set SMTP_USER, SMTP_PASSWORD (and optionally SMTP_HOST/SMTP_PORT/EMAIL_FROM) in .env.
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from ecoroute.core.errors import EmailDeliveryError
from ecoroute.core.settings import settings
from ecoroute.db.time import utcnow

logger = logging.getLogger(__name__)

VERIFICATION_CODE_TTL_MINUTES = 10

_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: 'Segoe UI', Arial, sans-serif; color: #333;">
  <div style="max-width: 600px; margin: 20px auto;">
    <div style="background: #4CAF50; color: white; padding: 24px; text-align: center;">
      <h1 style="margin: 0;">🌱 EcoRoute</h1>
      <p>Sustainable reverse logistics</p>
    </div>
    <div style="padding: 24px;">
      <h2>Hello {{ name }}!</h2>
      {% block body %}{% endblock %}
    </div>
    <div style="text-align: center; color: #999; font-size: 12px;">
      <p>&copy; {{ year }} EcoRoute. This is an automated email, please do not reply.</p>
    </div>
  </div>
</body>
</html>"""

_TEMPLATES = {
    "layout.html": _LAYOUT,
    "welcome.html": """{% extends "layout.html" %}{% block body %}
      <p>Welcome to EcoRoute! Your account was created successfully.</p>
      <p><a href="{{ frontend_url }}/dashboard">Open your dashboard</a></p>{% endblock %}""",
    "verification.html": """{% extends "layout.html" %}{% block body %}
      <p>Your verification code is:</p>
      <h2 style="color: #4CAF50; font-size: 32px;">{{ code }}</h2>
      <p>This code is valid for {{ ttl_minutes }} minutes.</p>{% endblock %}""",
    "collection.html": """{% extends "layout.html" %}{% block body %}
      <p>A new collection was registered:</p>
      <ul><li>Point: {{ point_name }}</li><li>Volume: {{ volume }}kg</li></ul>{% endblock %}""",
    "route.html": """{% extends "layout.html" %}{% block body %}
      <p>The route "{{ route_name }}" was created successfully.</p>{% endblock %}""",
    "welcome.txt": (
        "Hello {{ name }}! Welcome to EcoRoute. Open your dashboard: {{ frontend_url }}/dashboard"
    ),
    "verification.txt": (
        "Hello {{ name }}! Your EcoRoute verification code is {{ code }}. "
        "It is valid for {{ ttl_minutes }} minutes."
    ),
    "collection.txt": (
        "Hello {{ name }}! A new collection was registered at {{ point_name }} ({{ volume }}kg)."
    ),
    "route.txt": 'Hello {{ name }}! The route "{{ route_name }}" was created successfully.',
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    undefined=StrictUndefined,
)

_SUBJECTS = {
    "welcome": "Welcome to EcoRoute! 🌱",
    "verification": "Verification code - EcoRoute",
    "collection": "New collection registered 📦",
    "route": "New route created 🗺️",
}


@dataclass(frozen=True)
class RenderedEmail:
    """Subject and bodies of an email ready to send."""

    subject: str
    html: str
    text: str


def render_template(kind: str, name: str, data: dict[str, Any] | None = None) -> RenderedEmail:
    """Render the fixed template for ``kind``.

    Raises:
        KeyError: If ``kind`` has no template.
    """
    if kind not in _SUBJECTS:
        raise KeyError(kind)
    data = data or {}
    context = {
        "name": name,
        "year": utcnow().year,
        "frontend_url": settings.frontend_url.rstrip("/"),
        "ttl_minutes": VERIFICATION_CODE_TTL_MINUTES,
        "code": data.get("code", ""),
        "point_name": data.get("pointName", ""),
        "volume": data.get("volume", ""),
        "route_name": data.get("routeName", ""),
    }
    return RenderedEmail(
        subject=_SUBJECTS[kind],
        html=_env.get_template(f"{kind}.html").render(**context),
        text=_env.get_template(f"{kind}.txt").render(**context),
    )


def _build_message(to: str, email: RenderedEmail) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = email.subject
    msg["From"] = settings.email_from
    msg["To"] = to
    msg.attach(MIMEText(email.text, "plain", "utf-8"))
    msg.attach(MIMEText(email.html, "html", "utf-8"))
    return msg


def send_email_sync(to: str, email: RenderedEmail) -> None:
    """Deliver one email through the configured SMTP server.

    Raises:
        EmailDeliveryError: If the address is invalid, SMTP is not configured
            or the server rejects the message. The caller's job is retried.
    """
    to = (to or "").strip()
    if "@" not in to:
        raise EmailDeliveryError(f"Invalid recipient address: {to!r}")
    if not settings.smtp_configured:
        raise EmailDeliveryError("SMTP_USER or SMTP_PASSWORD not set")

    msg = _build_message(to, email)
    try:
        with smtplib.SMTP(
            settings.smtp_host,
            settings.smtp_port,
            timeout=settings.smtp_timeout_seconds,
        ) as server:
            server.starttls()
            server.login(settings.smtp_user or "", settings.smtp_password or "")
            server.sendmail(settings.email_from, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as err:
        raise EmailDeliveryError(f"SMTP delivery to {to} failed: {err}") from err
    logger.info("Email %r sent to %s", email.subject, to)


async def send_email(to: str, email: RenderedEmail) -> None:
    """Send without blocking the event loop."""
    await asyncio.to_thread(send_email_sync, to, email)
