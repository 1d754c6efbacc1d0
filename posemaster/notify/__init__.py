from posemaster.notify.base import Notification, Notifier
from posemaster.notify.outbox import OutboxNotifier
from posemaster.notify.smtp import SmtpNotifier

__all__ = [
    "Notification",
    "Notifier",
    "OutboxNotifier",
    "SmtpNotifier",
]
