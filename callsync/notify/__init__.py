"""Remote delivery of detected changes."""

from callsync.notify.webhook import Notifier, WebhookNotifier

__all__ = ["Notifier", "WebhookNotifier"]
