"""SMTP email gateway with a shared, lazily connected transport."""
import logging
import smtplib
import ssl
import threading
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Optional, Dict, Any, List

from .config import Settings

logger = logging.getLogger(__name__)


def is_connection_fault(error: BaseException) -> bool:
    """True when the transport itself is broken and must be recreated."""
    if isinstance(error, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError)):
        return True
    # SMTPException subclasses OSError; protocol-level replies are not connection faults
    return isinstance(error, OSError) and not isinstance(error, smtplib.SMTPException)


class EmailClient:
    """
    Sends HTML email over one SMTP connection reused across sends.

    The connection is opened on first use and recreated by ``reset()``.
    """

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.use_ssl = settings.smtp_use_ssl
        self.timeout = settings.smtp_timeout_seconds
        self.from_address = settings.email_from_address
        self.from_name = settings.email_from_name
        self._smtp: Optional[smtplib.SMTP] = None
        self._lock = threading.Lock()

    def _connect(self) -> smtplib.SMTP:
        logger.info(f"Connecting to SMTP server {self.host}:{self.port}")
        if self.use_ssl:
            server = smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=ssl.create_default_context()
            )
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

        try:
            if not self.use_ssl:
                server.starttls(context=ssl.create_default_context())
            if self.user and self.password:
                server.login(self.user, self.password)
        except Exception:
            server.close()
            raise
        return server

    def _transport(self) -> smtplib.SMTP:
        if self._smtp is None:
            self._smtp = self._connect()
        return self._smtp

    def build_message(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: Optional[List[Dict[str, Any]]] = None,
    ) -> EmailMessage:
        """
        Build a MIME message.

        Attachments are dicts with ``filename``, ``content`` (bytes) and
        optionally ``maintype``/``subtype`` and ``cid`` for inline images.
        """
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to
        msg["Message-ID"] = make_msgid(domain=self.from_address.split("@")[-1])
        msg.set_content("This report is best viewed in an HTML-capable email client.")
        msg.add_alternative(html, subtype="html")

        for attachment in attachments or []:
            maintype = attachment.get("maintype", "application")
            subtype = attachment.get("subtype", "octet-stream")
            if attachment.get("cid"):
                html_part = msg.get_payload()[-1]
                html_part.add_related(
                    attachment["content"],
                    maintype=maintype,
                    subtype=subtype,
                    cid=f"<{attachment['cid']}>",
                    filename=attachment.get("filename"),
                )
            else:
                msg.add_attachment(
                    attachment["content"],
                    maintype=maintype,
                    subtype=subtype,
                    filename=attachment.get("filename"),
                )
        return msg

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Send one message. Raises the transport's exception on failure."""
        msg = self.build_message(to, subject, html, attachments)
        with self._lock:
            self._transport().send_message(msg)
        logger.info(f"Email sent to {to}: {msg['Message-ID']}")
        return {"message_id": msg["Message-ID"]}

    def verify(self) -> bool:
        """Check the SMTP server is reachable and accepts our credentials."""
        with self._lock:
            try:
                status, _ = self._transport().noop()
                return status == 250
            except (smtplib.SMTPException, OSError) as e:
                logger.error(f"Email transport check failed: {e}")
                self._close()
                return False

    def reset(self):
        """Drop the current connection so the next send reconnects."""
        with self._lock:
            self._close()

    def _close(self):
        if self._smtp is None:
            return
        try:
            self._smtp.quit()
        except (smtplib.SMTPException, OSError):
            pass  # Connection already gone
        self._smtp = None

    def close(self):
        self.reset()
