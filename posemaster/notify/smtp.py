"""SMTP delivery using the standard library's ``smtplib``."""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential_jitter,
)

from posemaster.errors import UpstreamUnavailable
from posemaster.notify.base import Notification, Notifier

logger = logging.getLogger(__name__)

# Connection-level failures worth another attempt; auth and recipient
# refusals are not.
_TRANSIENT_SMTP_ERRORS = (
    smtplib.SMTPConnectError,
    smtplib.SMTPServerDisconnected,
    ConnectionError,
    TimeoutError,
)

# No new attempt starts after this many seconds.  Budget plus one socket
# timeout stays below the default notify timeout.
RETRY_BUDGET = 30.0


def build_message(notification: Notification) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = notification.sender
    msg["To"] = notification.recipient
    msg["Subject"] = notification.subject
    msg.set_content(notification.body)
    if notification.attachment is not None:
        maintype, _, subtype = notification.attachment_mime.partition("/")
        msg.add_attachment(
            notification.attachment,
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=notification.attachment_name or "attachment",
        )
    return msg


class SmtpNotifier(Notifier):
    """Sends notifications through an SMTP relay.

    The blocking ``smtplib`` session runs in a worker thread so the event
    loop keeps serving other requests while the relay responds.
    A thread cannot be cancelled: if the caller times out, an attempt
    already in flight may still deliver the message.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str | None = None,
        password: str | None = None,
        starttls: bool = True,
        timeout: float = 15.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._starttls = starttls
        self._timeout = timeout

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_SMTP_ERRORS),
        stop=stop_after_attempt(3) | stop_after_delay(RETRY_BUDGET),
        wait=wait_exponential_jitter(initial=1, max=10, jitter=2),
        reraise=True,
    )
    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._starttls:
                smtp.starttls(context=ssl.create_default_context())
            if self._username:
                smtp.login(self._username, self._password or "")
            smtp.send_message(msg)

    async def send(self, notification: Notification) -> None:
        msg = build_message(notification)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "SMTP delivery to %s via %s:%d failed: %s",
                notification.recipient,
                self._host,
                self._port,
                exc,
            )
            raise UpstreamUnavailable(f"SMTP delivery failed: {exc}") from exc
        logger.info("Sent %r to %s", notification.subject, notification.recipient)
