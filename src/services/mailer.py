from __future__ import annotations

import logging
import os
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage

from jinja2 import Environment, select_autoescape

logger = logging.getLogger(__name__)

_env = Environment(autoescape=select_autoescape(default_for_string=True))

_HTML_TEMPLATE = _env.from_string(
    """<!DOCTYPE html>
<html lang="fr">
  <body style="font-family: Arial, sans-serif; color: #1f2937;">
    <h2 style="color: #1e40af;">GOPAC</h2>
    {% for ligne in lignes %}<p>{{ ligne }}</p>{% endfor %}
    <p style="font-size: 12px; color: #6b7280;">Centre Informatique - message automatique, merci de ne pas répondre.</p>
  </body>
</html>"""
)


@dataclass
class EnvoiResultat:
    success: bool
    error: str | None = None


def _str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def render_html(text: str) -> str:
    """Version HTML d'un message texte (un paragraphe par ligne)."""
    lignes = [ligne for ligne in (text or "").splitlines() if ligne.strip()]
    return _HTML_TEMPLATE.render(lignes=lignes)


def send_email(to_email: str, subject: str, text: str, html: str | None = None) -> EnvoiResultat:
    """Envoi SMTP basé sur variables d'environnement (texte + HTML optionnel)."""
    host = os.getenv("SMTP_HOST")
    if not host:
        logger.warning("SMTP désactivé : variable SMTP_HOST absente.")
        return EnvoiResultat(success=False, error="smtp_non_configure")

    sender = os.getenv("SMTP_FROM", os.getenv("SMTP_USERNAME"))
    if not sender:
        logger.warning("SMTP désactivé : aucun expéditeur défini (SMTP_FROM ou SMTP_USERNAME).")
        return EnvoiResultat(success=False, error="expediteur_absent")

    port = int(os.getenv("SMTP_PORT", "587"))
    username = os.getenv("SMTP_USERNAME")
    password = os.getenv("SMTP_PASSWORD")
    use_ssl = _str_to_bool(os.getenv("SMTP_USE_SSL"), default=False)
    use_tls = _str_to_bool(os.getenv("SMTP_USE_TLS"), default=not use_ssl)

    message = EmailMessage()
    message["From"] = sender
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text)
    message.add_alternative(html or render_html(text), subtype="html")

    try:
        if use_ssl:
            with smtplib.SMTP_SSL(host, port, timeout=15) as server:
                if username and password:
                    server.login(username, password)
                server.send_message(message)
        else:
            with smtplib.SMTP(host, port, timeout=15) as server:
                if use_tls:
                    server.starttls(context=ssl.create_default_context())
                if username and password:
                    server.login(username, password)
                server.send_message(message)
    except Exception as exc:
        logger.exception("Échec de l'envoi de l'email à %s", to_email)
        return EnvoiResultat(success=False, error=str(exc) or exc.__class__.__name__)

    return EnvoiResultat(success=True)
