from __future__ import annotations

import logging

from posemaster.notify.base import Notification, Notifier

logger = logging.getLogger(__name__)


class OutboxNotifier(Notifier):
    """Keeps notifications in memory instead of sending them.

    Used for local development and tests.
    """

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)
        logger.info(
            "Queued notification %r for %s",
            notification.subject,
            notification.recipient,
        )
