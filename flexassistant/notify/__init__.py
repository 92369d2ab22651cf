from flexassistant.notify.base import NotificationError, Notifier

__all__ = ["NotificationError", "Notifier"]
