"""Statement delivery."""

from fundledger.notification.email_notifier import EmailNotifier, NotificationSink

__all__ = ["EmailNotifier", "NotificationSink"]
