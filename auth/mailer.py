"""
auth/mailer.py -- Outbound transactional email over SMTP.

The auth service treats mail as fire-and-forget: both send methods return
True/False and never raise, and the service logs and moves on when delivery
fails. When mail_host is empty the mailer runs in dev mode and logs the
message instead of sending it, so local registration still works end to end.

Recipient addresses are redacted in log lines.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

logger = logging.getLogger("astralx.auth.mail")


class Notifier(Protocol):
    def send_verification_email(self, email: str, token: str) -> bool: ...

    def send_password_reset_email(self, email: str, token: str) -> bool: ...


def _hours(n: int) -> str:
    return "1 hour" if n == 1 else f"{n} hours"


def redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class Mailer:
    """SMTP notifier for verification and password reset links."""

    def __init__(
        self,
        *,
        host: str = "",
        port: int = 587,
        user: str = "",
        password: str = "",
        use_ssl: bool = False,
        from_email: str = "noreply@astralx.com",
        frontend_url: str = "http://localhost:3000",
        verification_ttl_hours: int = 24,
        reset_ttl_hours: int = 1,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_ssl = use_ssl
        self.from_email = from_email
        self.frontend_url = frontend_url.rstrip("/")
        self.verification_ttl_hours = verification_ttl_hours
        self.reset_ttl_hours = reset_ttl_hours
        self.timeout = timeout
        if not self.is_configured:
            logger.warning("Mail configuration not found. Emails will be logged instead of sent.")

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def send_verification_email(self, email: str, token: str) -> bool:
        url = f"{self.frontend_url}/verify-email?token={token}"
        html = (
            "<h1>Welcome to Astralx!</h1>"
            "<p>Please verify your email address by clicking the link below:</p>"
            f'<a href="{url}">{url}</a>'
            f"<p>This link will expire in {_hours(self.verification_ttl_hours)}.</p>"
            "<p>If you didn't create an account, please ignore this email.</p>"
        )
        text = f"Verify your Astralx account: {url}\nThis link will expire in {_hours(self.verification_ttl_hours)}."
        return self._send(email, "Verify your Astralx account", html, text)

    def send_password_reset_email(self, email: str, token: str) -> bool:
        url = f"{self.frontend_url}/reset-password?token={token}"
        html = (
            "<h1>Password Reset Request</h1>"
            "<p>You requested to reset your password. Click the link below to proceed:</p>"
            f'<a href="{url}">{url}</a>'
            f"<p>This link will expire in {_hours(self.reset_ttl_hours)}.</p>"
            "<p>If you didn't request this, please ignore this email and your password will remain unchanged.</p>"
        )
        text = f"Reset your Astralx password: {url}\nThis link will expire in {_hours(self.reset_ttl_hours)}."
        return self._send(email, "Reset your Astralx password", html, text)

    def _send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.is_configured:
            logger.info("[DEV MODE] Email to %s, subject=%r: %s", redact_email(to_email), subject, text_body)
            return True

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            with server:
                if not self.use_ssl:
                    server.starttls(context=context)
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, ssl.SSLError, OSError) as exc:
            logger.error(
                "Failed to send email to %s (%s): %s",
                redact_email(to_email),
                type(exc).__name__,
                exc,
            )
            return False

        logger.info("Email sent to %s: %s", redact_email(to_email), subject)
        return True
