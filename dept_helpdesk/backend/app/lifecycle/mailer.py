# dept_helpdesk/backend/app/lifecycle/mailer.py
"""SMTP transport used by the notification dispatcher."""
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when a message could not be handed to the mail server."""


class EmailSender(ABC):
    """Deliver one HTML message to a list of recipients or raise."""

    @abstractmethod
    def send(self, recipients: Sequence[str], subject: str, html_body: str) -> None:
        ...


class SmtpEmailSender(EmailSender):
    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_address: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 20.0,
    ):
        self.host = host
        self.port = port
        self.username = (username or "").strip()
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_address)

    def send(self, recipients: Sequence[str], subject: str, html_body: str) -> None:
        if not self.is_configured:
            raise EmailDeliveryError("SMTP is not configured")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.from_address
        message["To"] = ", ".join(recipients)
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(str(exc)) from exc
