from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Notification:
    recipient: str
    sender: str
    subject: str
    body: str
    attachment_name: str | None = None
    attachment: bytes | None = field(default=None, repr=False)
    attachment_mime: str = "application/zip"


class Notifier(ABC):
    """Delivers one message and reports the result before returning.

    Implementations raise :class:`~posemaster.errors.UpstreamUnavailable`
    when delivery fails.
    """

    @abstractmethod
    async def send(self, notification: Notification) -> None: ...
