"""SMTP implementation of the Notifier protocol."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import TYPE_CHECKING

from courier.scheduler.errors import DeliveryFailed

if TYPE_CHECKING:
    from courier.config import Settings
    from courier.scheduler.models import Attachment

logger = logging.getLogger(__name__)

_IMPLICIT_TLS_PORT = 465


def build_message(
    sender: str,
    recipient: str,
    subject: str,
    body: str,
    attachment: Attachment | None = None,
) -> MIMEBase:
    """Build a plain text email, multipart when an attachment is present."""
    if attachment is None:
        message: MIMEBase = MIMEText(body, "plain", "utf-8")
    else:
        message = MIMEMultipart()
        message.attach(MIMEText(body, "plain", "utf-8"))
        maintype, _, subtype = attachment.mime_type.partition("/")
        part = MIMEBase(maintype or "application", subtype or "octet-stream")
        part.set_payload(attachment.content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        message.attach(part)

    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = subject
    message["Date"] = formatdate(localtime=False)
    message["Message-ID"] = make_msgid()
    return message


class SmtpNotifier:
    """Sends email through an SMTP relay.

    Port 465 uses implicit TLS; any other port uses plain SMTP upgraded with
    STARTTLS when *starttls* is set. The blocking ``smtplib`` session runs in
    a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str = "",
        password: str = "",
        sender: str = "",
        starttls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender or username
        self._starttls = starttls
        self._timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings) -> SmtpNotifier:
        return cls(
            config.smtp_host,
            config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_password,
            sender=config.smtp_sender,
            starttls=config.smtp_starttls,
            timeout=config.smtp_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self._host)

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        *,
        attachment: Attachment | None = None,
    ) -> bool:
        """Send one email. Raises DeliveryFailed on any transport error."""
        if not self._host:
            msg = "SMTP_HOST is not configured"
            raise DeliveryFailed(msg)

        message = build_message(self._sender, recipient, subject, body, attachment)
        try:
            response = await asyncio.to_thread(self._deliver, recipient, message)
        except (smtplib.SMTPException, OSError) as exc:
            msg = f"SMTP delivery to {recipient} failed: {exc}"
            raise DeliveryFailed(msg) from exc

        logger.info("Sent email to %s: %s", recipient, message["Message-ID"])
        logger.debug("SMTP response for %s: %s", recipient, response)
        return True

    @property
    def implicit_tls(self) -> bool:
        return self._port == _IMPLICIT_TLS_PORT

    def _connect(self) -> smtplib.SMTP:
        if self.implicit_tls:
            return smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout)
        return smtplib.SMTP(self._host, self._port, timeout=self._timeout)

    def _deliver(self, recipient: str, message: MIMEBase) -> dict:
        """Blocking SMTP session. Returns the refused-recipients dict."""
        with self._connect() as smtp:
            if self._starttls and not self.implicit_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            return smtp.send_message(message, from_addr=self._sender or None, to_addrs=[recipient])
