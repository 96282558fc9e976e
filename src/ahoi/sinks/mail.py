"""Outbound email over SMTP."""

from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage

from ahoi.exceptions import DeliveryError, ValidationError
from ahoi.identity.store import EMAIL_RE

logger = logging.getLogger(__name__)

_UNSAFE_HTML_RE = re.compile(r"<(script|style|iframe)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)


class Mailer:
    """Sends HTML email through one SMTP server."""

    def __init__(
        self,
        host: str | None,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        from_email: str | None = None,
        starttls: bool = True,
        timeout: float = 30,
    ) -> None:
        self._host = (host or "").strip()
        self._port = port
        self._username = (username or "").strip()
        self._password = password or ""
        self._from_email = from_email
        self._starttls = starttls
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self._host and self._from_email)

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        """Validate the parameters and build the message.

        Raises:
            ValidationError: If ``to`` is not an address or subject/body are empty
        """
        to = (to or "").strip()
        subject = " ".join(str(subject or "").split())
        body = _UNSAFE_HTML_RE.sub("", str(body or "")).strip()
        if not to or not EMAIL_RE.match(to) or not subject or not body:
            raise ValidationError('Required parameters are missing or invalid: "to", "subject", "body".')

        msg = EmailMessage()
        msg["From"] = self._from_email or ""
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body, subtype="html")
        return msg

    def send(self, to: str, subject: str, body: str) -> None:
        """Send one email.

        Raises:
            ValidationError: If the parameters are invalid
            DeliveryError: If SMTP is not configured or the server refuses the message
        """
        msg = self.build_message(to, subject, body)
        if not self.is_configured:
            raise DeliveryError("The email could not be sent. SMTP is not configured.")
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._starttls:
                    server.starttls()
                if self._username:
                    server.login(self._username, self._password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Sending email to {msg['To']} failed: {e}")
            raise DeliveryError("The email could not be sent. Check the SMTP settings.") from e
        logger.info(f"Sent email to {msg['To']}")
