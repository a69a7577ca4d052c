"""Best-effort login notification e-mail.

Sending happens in background tasks owned by NotificationDispatcher; the
login path only schedules them and never waits for SMTP.
"""

from __future__ import annotations

import asyncio
import smtplib
from datetime import UTC, datetime
from email.message import EmailMessage
from typing import TYPE_CHECKING

import structlog
from anyio import to_thread
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from shared.auth.models import ClientInfo

logger = structlog.get_logger()

SMTP_SSL_PORT = 465
SMTP_TIMEOUT_SECONDS = 15.0


class NotifySettings(BaseSettings):
    model_config = {"env_prefix": "NOTIFY_"}

    smtp_host: str = ""
    smtp_port: int | None = None
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_secure: bool | None = None
    smtp_from: str = ""
    to: str = ""

    @field_validator("smtp_password", mode="before")
    @classmethod
    def strip_password_whitespace(cls, v: object) -> object:
        # App passwords are often pasted with the provider's grouping spaces.
        if isinstance(v, str):
            return "".join(v.split())
        return v

    @model_validator(mode="after")
    def default_secure_from_port(self) -> NotifySettings:
        if self.smtp_secure is None:
            self.smtp_secure = self.smtp_port == SMTP_SSL_PORT
        return self

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_port and self.smtp_user and self.smtp_password)

    @property
    def sender(self) -> str:
        return self.smtp_from or self.smtp_user

    @property
    def recipient(self) -> str:
        return self.to or self.smtp_user


def login_source(host: str) -> str:
    return "localhost" if "localhost" in host else "server"


def build_login_message(
    username: str,
    client: ClientInfo,
    *,
    sender: str,
    recipient: str,
    now: datetime | None = None,
) -> EmailMessage:
    when = (now or datetime.now(UTC)).isoformat()
    source = login_source(client.host)
    message = EmailMessage()
    message["Subject"] = f"Login: {username} ({source}) {when}"
    message["From"] = sender
    message["To"] = recipient
    message.set_content(
        "\n".join(
            [
                f"Username: {username}",
                f"Source: {source}",
                f"Host: {client.host}",
                f"Time: {when}",
                f"IP: {client.ip}",
                f"User-Agent: {client.user_agent}",
            ],
        ),
    )
    return message


class SmtpLoginNotifier:
    """Deliver login messages over SMTP, or SMTP over TLS when ``secure``."""

    def __init__(self, settings: NotifySettings) -> None:
        self._settings = settings

    def _send_blocking(self, message: EmailMessage) -> None:
        s = self._settings
        smtp_cls = smtplib.SMTP_SSL if s.smtp_secure else smtplib.SMTP
        with smtp_cls(s.smtp_host, s.smtp_port or 0, timeout=SMTP_TIMEOUT_SECONDS) as conn:
            conn.login(s.smtp_user, s.smtp_password)
            conn.send_message(message)

    async def send(self, username: str, client: ClientInfo) -> None:
        message = build_login_message(
            username,
            client,
            sender=self._settings.sender,
            recipient=self._settings.recipient,
        )
        await to_thread.run_sync(self._send_blocking, message)
        logger.info("login notification sent", username=username)


class NotificationDispatcher:
    """Run notifier sends as tracked background tasks.

    notify_login() returns immediately. Failures are logged when the task
    finishes; aclose() cancels whatever is still pending at shutdown.
    """

    def __init__(self, notifier: SmtpLoginNotifier) -> None:
        self._notifier = notifier
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def notify_login(self, username: str, client: ClientInfo) -> bool:
        task = asyncio.get_running_loop().create_task(
            self._notifier.send(username, client),
            name=f"login-notification-{username}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return True

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("login notification failed", error=str(exc), error_type=type(exc).__name__)

    async def aclose(self) -> None:
        if self.pending:
            logger.info("cancelling pending login notifications", count=self.pending)
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


def build_notifier(settings: NotifySettings) -> NotificationDispatcher | None:
    if not settings.enabled:
        logger.info("smtp not configured, login notifications disabled")
        return None
    return NotificationDispatcher(SmtpLoginNotifier(settings))
