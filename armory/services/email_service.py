"""Email notifications for verification, email change and password recovery."""

import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from armory.config import Settings, get_settings
from armory.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


class EmailService:
    """Sends account emails over SMTP.

    When no SMTP host is configured the service logs the message instead of
    sending it, so development setups work without a mail server. Delivery
    failures raise ``EmailDeliveryError``.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        if self.settings.smtp_host:
            logger.info(f"SMTP email enabled via {self.settings.smtp_host}:{self.settings.smtp_port}")
        else:
            logger.info("SMTP host not configured, emails will be logged only")

    @property
    def enabled(self) -> bool:
        return bool(self.settings.smtp_host)

    def _link(self, path: str, token: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}{path}?{urlencode({'token': token})}"

    def send_verification(self, email: str, token: str) -> None:
        link = self._link("/api/v1/auth/verify-email", token)
        self._send(
            email,
            "Verify your email address",
            f"Welcome to The Armory!\n\nConfirm your email address within 60 minutes:\n{link}\n",
        )

    def send_email_change_verification(self, email: str, token: str) -> None:
        link = self._link("/api/v1/auth/verify-email", token)
        self._send(
            email,
            "Confirm your new email address",
            f"You asked to change the email on your account.\n\nConfirm the new address:\n{link}\n",
        )

    def send_password_reset(self, email: str, token: str) -> None:
        link = self._link("/api/v1/auth/reset-password", token)
        self._send(
            email,
            "Reset your password",
            "Someone requested a password reset for your account.\n\n"
            f"The link below is valid for 60 minutes:\n{link}\n\n"
            "If this wasn't you, ignore this email.\n",
        )

    def _send(self, to_email: str, subject: str, body: str) -> None:
        if not self.enabled:
            logger.info(f"Email to {to_email} not sent (SMTP disabled): {subject}")
            return

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.mail_from
        msg["To"] = to_email
        msg.set_content(body)

        try:
            with smtplib.SMTP_SSL(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
                if self.settings.smtp_user:
                    smtp.login(self.settings.smtp_user, self.settings.smtp_password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"Failed to send '{subject}' to {to_email}: {e}") from e

        logger.info(f"Email sent to {to_email}: {subject}")
