"""Email senders used to tell each giver who they drew."""
import logging
import smtplib
import ssl
from collections.abc import Iterator
from contextlib import contextmanager
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Protocol

from pydantic import BaseModel

from secret_santa.core.config import Settings
from secret_santa.notify.messages import html_to_text

logger = logging.getLogger(__name__)


class SendResult(BaseModel):
    """Outcome of one send call."""
    success: bool
    external_id: str | None = None
    error: str | None = None


class Notifier(Protocol):
    """Anything that can deliver one message and report how it went.

    Implementations must not raise for delivery problems; they return a
    failed SendResult instead.
    """

    def send(self, to: str, subject: str, body: str) -> SendResult: ...


class SmtpConfig(BaseModel):
    """Connection settings for SmtpNotifier."""
    host: str = ""
    port: int = 587
    user: str = ""
    password: str = ""
    secure: bool = False
    starttls: bool = True
    from_email: str = ""
    from_name: str = "Secret Santa"
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpConfig":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            secure=settings.smtp_secure,
            starttls=settings.smtp_starttls,
            from_email=settings.smtp_from_email,
            from_name=settings.smtp_from_name,
            timeout=settings.notification_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_email)


class SmtpNotifier:
    """Sends HTML emails over SMTP, one connection per message."""

    def __init__(self, config: SmtpConfig):
        self.config = config

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        """Build a multipart message with a plain-text and an HTML part."""
        message = EmailMessage()
        message["From"] = formataddr((self.config.from_name, self.config.from_email))
        message["To"] = to
        message["Subject"] = subject
        domain = self.config.from_email.rpartition("@")[2] or None
        message["Message-ID"] = make_msgid(domain=domain)
        message.set_content(html_to_text(body))
        message.add_alternative(body, subtype="html")
        return message

    @contextmanager
    def _connect(self) -> Iterator[smtplib.SMTP]:
        cfg = self.config
        context = ssl.create_default_context()
        if cfg.secure:
            server = smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=cfg.timeout, context=context)
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)
        try:
            if not cfg.secure and cfg.starttls:
                server.starttls(context=context)
            if cfg.user:
                server.login(cfg.user, cfg.password)
            yield server
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                server.close()

    def send(self, to: str, subject: str, body: str) -> SendResult:
        if not self.config.is_configured:
            return SendResult(
                success=False,
                error="SMTP is not configured (SMTP_HOST and SMTP_FROM_EMAIL are required)",
            )

        message = self.build_message(to, subject, body)
        try:
            with self._connect() as server:
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            # OSError covers refused connections and socket timeouts
            logger.error(f"Failed to send email to {to}: {e}")
            return SendResult(success=False, error=str(e) or e.__class__.__name__)

        message_id = message["Message-ID"]
        logger.info(f"Email sent to {to} ({message_id})")
        return SendResult(success=True, external_id=message_id)


class DryRunNotifier:
    """Logs messages instead of sending them."""

    def send(self, to: str, subject: str, body: str) -> SendResult:
        message_id = make_msgid(domain="dry-run.invalid")
        logger.info(f"[dry run] Email to {to}: {subject} ({message_id})")
        logger.debug(html_to_text(body))
        return SendResult(success=True, external_id=message_id)


def build_notifier(settings: Settings) -> Notifier:
    """Create the notifier described by the settings."""
    if settings.email_dry_run:
        logger.info("Email dry run enabled, assignment emails will only be logged")
        return DryRunNotifier()
    config = SmtpConfig.from_settings(settings)
    if not config.is_configured:
        logger.warning("No SMTP_HOST / SMTP_FROM_EMAIL configured, emails will fail")
    return SmtpNotifier(config)
