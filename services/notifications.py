"""
Outbound email notifications.

Sending happens after the database transaction has committed (FastAPI
background task), so a mail failure never affects the enrollment itself.
"""
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from app_config import settings
from utils.formatting import format_datetime_es, format_duration
from utils.html_sanitizer import escape_html

logger = logging.getLogger(__name__)

ENROLLMENT_CONFIRMATION_SUBJECT = "✅ Confirmación de inscripción a tutoría"

_MODALITY_ICONS = {
    "presencial": "🏫",
    "virtual": "💻",
    "hibrida": "🔄",
}


@dataclass
class EnrollmentConfirmation:
    """Template fields for the enrollment confirmation email."""
    to: str
    student_name: str
    subject: str
    topic: str
    starts_at: datetime
    duration_minutes: int
    modality: str
    max_seats: int
    seats_available: int
    description: Optional[str] = None
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    tutor_name: Optional[str] = None


def _detail_row(label: str, value: str) -> str:
    return (
        f'<tr><td style="color:#666;font-weight:600;width:140px;">{label}</td>'
        f'<td style="color:#333;">{value}</td></tr>'
    )


def build_enrollment_confirmation(payload: EnrollmentConfirmation) -> tuple[str, str, str]:
    """Return (subject, html, text) for an enrollment confirmation."""
    icon = _MODALITY_ICONS.get(payload.modality, "📍")
    when = format_datetime_es(payload.starts_at)
    duration = format_duration(payload.duration_minutes)
    seats = f"{payload.seats_available} disponibles de {payload.max_seats}"

    rows = [
        _detail_row("📚 Materia:", escape_html(payload.subject)),
        _detail_row("📖 Tema:", escape_html(payload.topic)),
        _detail_row("👨‍🏫 Tutor:", escape_html(payload.tutor_name or "Por confirmar")),
        _detail_row("📅 Fecha y hora:", escape_html(when)),
        _detail_row("⏱️ Duración:", escape_html(duration)),
        _detail_row(f"{icon} Modalidad:", escape_html(payload.modality)),
    ]
    if payload.location:
        rows.append(_detail_row("📍 Ubicación:", escape_html(payload.location)))
    if payload.meeting_link:
        link = escape_html(payload.meeting_link)
        rows.append(_detail_row("🔗 Enlace:", f'<a href="{link}">{link}</a>'))
    rows.append(_detail_row("👥 Cupos:", escape_html(seats)))

    description = ""
    if payload.description:
        description = f'<p style="color:#555;"><strong>📝 Descripción:</strong><br>{escape_html(payload.description)}</p>'

    html = f"""<!DOCTYPE html>
<html lang="es">
<head><meta charset="UTF-8"></head>
<body style="font-family:'Segoe UI',Tahoma,sans-serif;background:#f4f7fa;">
  <div style="max-width:600px;margin:0 auto;background:#fff;border-radius:10px;">
    <h1 style="background:#1A2CA3;color:#fff;padding:24px;margin:0;text-align:center;">📚 {escape_html(settings.APP_NAME)}</h1>
    <div style="padding:30px;">
      <h2>¡Hola {escape_html(payload.student_name)}! 👋</h2>
      <p>Tu inscripción a la tutoría ha sido <strong>registrada exitosamente</strong>.</p>
      <table width="100%" cellpadding="6">{''.join(rows)}</table>
      {description}
    </div>
  </div>
</body>
</html>"""

    text_lines = [
        f"Hola {payload.student_name},",
        "",
        "Tu inscripción a la tutoría ha sido registrada exitosamente.",
        "",
        f"Materia: {payload.subject}",
        f"Tema: {payload.topic}",
        f"Tutor: {payload.tutor_name or 'Por confirmar'}",
        f"Fecha y hora: {when}",
        f"Duración: {duration}",
        f"Modalidad: {payload.modality}",
    ]
    if payload.location:
        text_lines.append(f"Ubicación: {payload.location}")
    if payload.meeting_link:
        text_lines.append(f"Enlace: {payload.meeting_link}")
    text_lines.append(f"Cupos: {seats}")

    return ENROLLMENT_CONFIRMATION_SUBJECT, html, "\n".join(text_lines)


def send_email(to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> bool:
    """
    Send one email over SMTP.

    Returns False without sending when SMTP_HOST is not configured.
    Transport errors propagate to the caller.
    """
    if not settings.SMTP_HOST:
        logger.warning("SMTP_HOST not configured; skipping email to %s (%s)", to_email, subject)
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM or ""
    msg["To"] = to_email
    if text_content:
        msg.attach(MIMEText(text_content, "plain", "utf-8"))
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    # Port 465 is implicit TLS; anything else upgrades with STARTTLS
    implicit_tls = settings.SMTP_PORT == 465
    smtp_class = smtplib.SMTP_SSL if implicit_tls else smtplib.SMTP
    server = smtp_class(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS)
    try:
        if not implicit_tls:
            server.starttls()
        if settings.SMTP_USER:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
        server.send_message(msg)
    finally:
        server.quit()

    logger.info("Email sent to %s: %s", to_email, subject)
    return True


def dispatch_enrollment_confirmation(payload: EnrollmentConfirmation) -> bool:
    """
    Best-effort confirmation email, run as a background task after commit.

    Never raises: failures are logged and reported as False.
    """
    try:
        subject, html, text = build_enrollment_confirmation(payload)
        return send_email(payload.to, subject, html, text)
    except Exception:
        logger.error("Failed to send enrollment confirmation to %s", payload.to, exc_info=True)
        return False
