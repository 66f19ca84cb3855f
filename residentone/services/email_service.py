"""
ResidentOne
Email Service.

Provides email sending capabilities with template support.
When SMTP is not configured, emails are logged but not sent (dev/test mode).

Uses:
    - Flask-Mail compatible config (MAIL_SERVER, MAIL_PORT, etc.)
    - Falls back to logging-only mode when SMTP is not configured
    - All emails are recorded in EmailLog for audit

Configuration (env vars):
    MAIL_SERVER     SMTP host (default: None → log-only mode)
    MAIL_PORT       SMTP port (default: 587)
    MAIL_USE_TLS    Use TLS (default: true)
    MAIL_USERNAME   SMTP username
    MAIL_PASSWORD   SMTP password
    MAIL_DEFAULT_SENDER  Default from address
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from flask import current_app

from residentone.models import db
from residentone.models.notification import EmailLog

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_TEMPLATES: dict[str, dict[str, str]] = {
    "phase_ready": {
        "subject": "{next_phase} Phase Ready to Start - {project_name}",
        "html": """
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #333;">
            <div style="background: #28a745; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
                <h1 style="margin: 0; font-size: 22px;">Your Phase is Ready!</h1>
                <span style="background: #17a2b8; padding: 4px 12px; border-radius: 20px; font-size: 13px;">
                    Ready to Start
                </span>
            </div>
            <div style="background: #f8f9fa; padding: 20px; border-radius: 0 0 8px 8px;">
                <p>Hi {assignee_name},</p>
                <p><strong>{next_phase}</strong> phase is now ready to start!</p>
                <div style="background: white; padding: 15px; border-radius: 6px; margin: 15px 0;">
                    <h3 style="margin-top: 0;">Project Details:</h3>
                    <ul>
                        <li><strong>Project:</strong> {project_name}</li>
                        <li><strong>Room:</strong> {room_name}</li>
                        {client_line}
                        <li><strong>Previous Phase:</strong> {completed_phase} (Completed)</li>
                        <li><strong>Your Phase:</strong> {next_phase}</li>
                    </ul>
                </div>
                {custom_message}
                <p>The previous phase has been completed, and you can now start working on your assigned phase.</p>
                <p style="margin-top: 30px;">
                    <a href="{phase_url}" style="display: inline-block; background: #28a745; color: white;
                       padding: 12px 24px; text-decoration: none; border-radius: 4px; font-weight: bold;">
                        Start Working on {next_phase}
                    </a>
                </p>
            </div>
        </div>
        """,
    },
    "phase_completed": {
        "subject": "{completed_phase} Phase Completed - {project_name}",
        "html": """
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #333;">
            <div style="background: #667eea; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
                <h1 style="margin: 0; font-size: 22px;">Phase Completed</h1>
            </div>
            <div style="background: #f8f9fa; padding: 20px; border-radius: 0 0 8px 8px;">
                <p><strong>{completed_phase}</strong> phase has been completed!</p>
                <div style="background: white; padding: 15px; border-radius: 6px; margin: 15px 0;">
                    <ul>
                        <li><strong>Project:</strong> {project_name}</li>
                        <li><strong>Room:</strong> {room_name}</li>
                        <li><strong>Completed by:</strong> {completed_by}</li>
                        <li><strong>Completed on:</strong> {completed_at}</li>
                    </ul>
                </div>
                <p>{summary}</p>
                <p style="margin-top: 30px;">
                    <a href="{phase_url}" style="display: inline-block; background: #007bff; color: white;
                       padding: 10px 20px; text-decoration: none; border-radius: 4px;">View Phase</a>
                </p>
            </div>
        </div>
        """,
    },
}


class EmailService:
    """
    Email sending service with template support.

    In development/test mode (no MAIL_SERVER configured), emails are
    logged to the database but not actually sent via SMTP.
    """

    @staticmethod
    def is_configured() -> bool:
        """Check if SMTP is configured."""
        return bool(current_app.config.get("MAIL_SERVER"))

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        """Get an email template by name."""
        return _TEMPLATES.get(template_name)

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        template_name: str | None = None,
        recipient_id: int | None = None,
        stage_id: int | None = None,
        notification_id: int | None = None,
    ) -> EmailLog:
        """
        Send an email and log it.

        If SMTP is not configured, the email is logged with status='sent'
        (in dev mode) to simulate sending without actual delivery.

        Returns:
            The EmailLog record for this email (flushed, not committed).
        """
        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            recipient_id=recipient_id,
            subject=subject,
            template_name=template_name,
            status="queued",
            stage_id=stage_id,
            notification_id=notification_id,
        )
        db.session.add(log)
        db.session.flush()

        if not cls.is_configured():
            # Dev/test mode: log only
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info(
                "Email (dev mode): to=%s subject='%s' template=%s",
                to_email, subject, template_name,
            )
            return log

        try:
            cls._send_smtp(to_email=to_email, to_name=to_name,
                           subject=subject, html_body=html_body)
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info("Email sent: to=%s subject='%s'", to_email, subject)
        except (smtplib.SMTPException, OSError) as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error("Email failed: to=%s error=%s", to_email, exc)

        return log

    @classmethod
    def send_from_template(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        template_name: str,
        context: dict[str, Any],
        recipient_id: int | None = None,
        stage_id: int | None = None,
        notification_id: int | None = None,
    ) -> EmailLog | None:
        """
        Send an email using a named template.

        Template variables are interpolated from the context dict.
        """
        template = cls.get_template(template_name)
        if not template:
            logger.warning("Email template not found: %s", template_name)
            return None

        subject = template["subject"].format_map(_SafeDict(context))
        html_body = template["html"].format_map(_SafeDict(context))

        return cls.send(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            html_body=html_body,
            template_name=template_name,
            recipient_id=recipient_id,
            stage_id=stage_id,
            notification_id=notification_id,
        )

    @staticmethod
    def _send_smtp(*, to_email: str, to_name: str | None,
                   subject: str, html_body: str) -> None:
        """Actually send via SMTP."""
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER", f"noreply@{server}")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"
