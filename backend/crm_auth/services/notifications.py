"""Outbound account emails."""
from datetime import datetime
import html
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from crm_auth.config import Settings
from crm_auth.errors import NotificationFailure
from crm_auth.logging_config import redact_email

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


def _wrap(title: str, body: str) -> str:
    return f"""
    <html>
    <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #1e40af;">{title}</h1>
        {body}
        <p style="margin-top: 24px; padding-top: 16px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 12px;">
            This is an automated message from your CRM account service.
        </p>
    </body>
    </html>
    """


class Notifier:
    """Sends transactional email over SMTP.

    Each ``send_*`` method returns True when a message was handed to the
    relay and False when SMTP is not configured. Relay errors and timeouts
    raise ``NotificationFailure``.
    """

    def __init__(
        self,
        *,
        smtp_host: str | None = None,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        from_email: str = "noreply@crm.local",
        base_url: str = "http://localhost:5173",
        app_name: str = "CRM",
        timeout: float = 10.0,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")
        self.app_name = app_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Notifier":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            from_email=settings.smtp_from_email,
            base_url=settings.frontend_url,
            app_name=settings.app_name,
            timeout=settings.smtp_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host)

    def send_welcome(self, to_email: str, display_name: str, verification_token: str) -> bool:
        link = f"{self.base_url}/verify-email?token={verification_token}"
        body = f"""
        <p>Hi {html.escape(display_name)},</p>
        <p>Your {html.escape(self.app_name)} account has been created. Please confirm your email address:</p>
        <p><a href="{link}">{link}</a></p>
        <p>This link expires in 24 hours.</p>
        """
        return self._send(to_email, f"Welcome to {self.app_name} - Verify Your Email", _wrap("Welcome!", body))

    def send_login_alert(
        self,
        to_email: str,
        display_name: str,
        ip_address: str | None,
        user_agent: str | None,
        when: datetime,
    ) -> bool:
        body = f"""
        <p>Hi {html.escape(display_name)},</p>
        <p>Your account was just signed in to.</p>
        <p>
            <strong>Time:</strong> {when.strftime("%Y-%m-%d %H:%M:%S UTC")}<br>
            <strong>IP address:</strong> {html.escape(ip_address or "unknown")}<br>
            <strong>Device:</strong> {html.escape(user_agent or "unknown")}
        </p>
        <p>If this wasn't you, reset your password immediately.</p>
        """
        return self._send(to_email, f"Login Alert - {self.app_name} Account Access", _wrap("New sign-in", body))

    def send_password_reset(self, to_email: str, display_name: str, reset_token: str) -> bool:
        link = f"{self.base_url}/reset-password?token={reset_token}"
        body = f"""
        <p>Hi {html.escape(display_name)},</p>
        <p>We received a request to reset your password. Use the link below to choose a new one:</p>
        <p><a href="{link}">{link}</a></p>
        <p>This link expires in 1 hour. If you didn't ask for a reset, you can ignore this email.</p>
        """
        return self._send(to_email, f"Password Reset - {self.app_name}", _wrap("Password reset", body))

    def send_employee_welcome(self, to_email: str, display_name: str, temporary_password: str, role: str) -> bool:
        body = f"""
        <p>Hi {html.escape(display_name)},</p>
        <p>An administrator created a {html.escape(role.lower())} account for you.</p>
        <p>
            <strong>Email:</strong> {html.escape(to_email)}<br>
            <strong>Temporary password:</strong> <code>{html.escape(temporary_password)}</code>
        </p>
        <p>Sign in at <a href="{self.base_url}/login">{self.base_url}/login</a> and change your password.</p>
        """
        return self._send(to_email, f"Welcome to {self.app_name} - Your Account Details", _wrap("Your new account", body))

    def send_test_email(self, to_email: str) -> bool:
        body = "<p>SMTP is configured correctly.</p>"
        return self._send(to_email, f"{self.app_name} - SMTP Configuration Test", _wrap("Test email", body))

    def _send(self, to_email: str, subject: str, html_content: str) -> bool:
        if not self.is_configured:
            logger.info("SMTP not configured, skipping email to %s", redact_email(to_email))
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email

        # Plain text fallback
        plain_text = html_content.replace("<br>", "\n").replace("</p>", "\n\n")
        plain_text = _TAG_RE.sub("", plain_text)

        msg.attach(MIMEText(plain_text, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            self._deliver(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Failed to send email to %s: %s", redact_email(to_email), exc)
            raise NotificationFailure() from exc

        logger.info("Sent '%s' to %s", subject, redact_email(to_email))
        return True

    def _deliver(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            server.starttls()
            if self.smtp_user and self.smtp_password:
                server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)
