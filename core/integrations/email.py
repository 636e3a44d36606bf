"""Email delivery over SMTP."""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional
import logging

from core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Sends plain or HTML email through the configured SMTP relay."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        use_tls: Optional[bool] = None,
        enabled: Optional[bool] = None,
    ):
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user or settings.smtp_user
        self.smtp_password = smtp_password or settings.smtp_password
        self.from_email = from_email or settings.from_email
        self.from_name = from_name or settings.from_name
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.enabled = settings.email_enabled if enabled is None else enabled

    def build_message(
        self,
        to_email: str | List[str],
        subject: str,
        body: str,
        html: bool = False,
        reply_to: Optional[str] = None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = ", ".join(to_email) if isinstance(to_email, list) else to_email
        msg["Subject"] = subject
        if reply_to:
            msg["Reply-To"] = reply_to
        msg.attach(MIMEText(body, "html" if html else "plain"))
        return msg

    def send_email(
        self,
        to_email: str | List[str],
        subject: str,
        body: str,
        html: bool = False,
        reply_to: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Delivery problems are logged and reported through the return value,
        never raised: callers treat email as a side effect.

        Returns:
            True if the relay accepted the message
        """
        if not self.enabled:
            logger.info(f"Email disabled, skipping '{subject}'")
            return False

        recipients = to_email if isinstance(to_email, list) else [to_email]
        try:
            msg = self.build_message(to_email, subject, body, html=html, reply_to=reply_to)
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, from_addr=self.from_email, to_addrs=recipients)

            logger.info(f"Email '{subject}' sent to {len(recipients)} recipient(s)")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email '{subject}': {e}")
            return False


# Global email service instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create global email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
