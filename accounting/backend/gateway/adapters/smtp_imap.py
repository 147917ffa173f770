"""
SMTP/IMAP Mail Transport.

smtplib and imaplib are blocking, so every call runs in the shared IO
thread pool.
"""

import imaplib
import smtplib
from dataclasses import dataclass
from email.header import decode_header, make_header
from email.message import EmailMessage
from email.parser import BytesHeaderParser
from email.utils import formataddr

from accounting.backend.core.concurrency import get_semaphore, run_blocking
from accounting.backend.core.config import get_app_config
from accounting.backend.core.exceptions import ExternalServiceError
from accounting.backend.core.logging import get_logger
from accounting.backend.gateway.adapters.base import InboxMessage, MailTransport, OutgoingEmail

logger = get_logger(__name__)


@dataclass
class MailAccount:
    """Decrypted connection settings of one mailbox."""

    smtp_host: str
    smtp_port: int
    smtp_secure: bool
    smtp_user: str
    smtp_password: str
    imap_host: str
    imap_port: int
    imap_tls: bool
    imap_user: str
    imap_password: str


def _decode(value: str | None) -> str:
    if not value:
        return ""
    return str(make_header(decode_header(value)))


class SmtpImapTransport(MailTransport):
    """Mail transport for a single account."""

    def __init__(self, account: MailAccount) -> None:
        self._account = account
        self._config = get_app_config().integrations.email

    async def send(self, message: OutgoingEmail) -> None:
        try:
            async with get_semaphore("smtp"):
                await run_blocking(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "SMTP send failed",
                extra={"host": self._account.smtp_host, "error": str(exc)},
            )
            raise ExternalServiceError("Failed to send email", service="smtp")

        logger.info(
            "Email sent",
            extra={"recipients": len(message.to) + len(message.cc)},
        )

    def _send_sync(self, message: OutgoingEmail) -> None:
        account = self._account
        mail = EmailMessage()
        mail["From"] = formataddr((message.sender_name or "", message.sender))
        mail["To"] = ", ".join(message.to)
        if message.cc:
            mail["Cc"] = ", ".join(message.cc)
        mail["Subject"] = message.subject
        mail.set_content(message.body)

        timeout = self._config.smtp_timeout
        if account.smtp_secure and account.smtp_port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(account.smtp_host, account.smtp_port, timeout=timeout)
        else:
            server = smtplib.SMTP(account.smtp_host, account.smtp_port, timeout=timeout)

        with server:
            if account.smtp_secure and account.smtp_port != 465:
                server.starttls()
            server.login(account.smtp_user, account.smtp_password)
            server.send_message(mail)

    async def fetch_headers(self, limit: int) -> list[InboxMessage]:
        try:
            return await run_blocking(self._fetch_headers_sync, limit)
        except (imaplib.IMAP4.error, OSError) as exc:
            logger.error(
                "IMAP fetch failed",
                extra={"host": self._account.imap_host, "error": str(exc)},
            )
            raise ExternalServiceError("Failed to read mailbox", service="imap")

    def _fetch_headers_sync(self, limit: int) -> list[InboxMessage]:
        account = self._account
        timeout = self._config.imap_timeout
        if account.imap_tls:
            client: imaplib.IMAP4 = imaplib.IMAP4_SSL(account.imap_host, account.imap_port, timeout=timeout)
        else:
            client = imaplib.IMAP4(account.imap_host, account.imap_port, timeout=timeout)

        parser = BytesHeaderParser()
        messages: list[InboxMessage] = []
        try:
            client.login(account.imap_user, account.imap_password)
            client.select("INBOX", readonly=True)
            _, data = client.uid("search", None, "ALL")
            uids = data[0].split() if data and data[0] else []
            for uid in reversed(uids[-limit:]):
                _, fetched = client.uid(
                    "fetch", uid, "(BODY.PEEK[HEADER.FIELDS (FROM SUBJECT DATE)])",
                )
                raw = next((part[1] for part in fetched if isinstance(part, tuple)), b"")
                headers = parser.parsebytes(raw)
                messages.append(
                    InboxMessage(
                        uid=uid.decode(),
                        sender=_decode(headers.get("From")),
                        subject=_decode(headers.get("Subject")),
                        date=headers.get("Date"),
                    )
                )
        finally:
            try:
                client.logout()
            except (imaplib.IMAP4.error, OSError):
                logger.debug("IMAP logout failed", extra={"host": account.imap_host})
        return messages
