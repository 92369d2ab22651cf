"""Notifier abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod


class NotificationError(Exception):
    """A notification could not be rendered or delivered."""


class Notifier(ABC):
    """Interface for every notification channel."""

    name: str = "base"

    @abstractmethod
    def notify(self, kind: str, payload: dict) -> None:
        """Render and deliver one notification.

        Raises NotificationError when the message cannot be rendered or sent.
        """
        ...
