"""User-facing notification surfaces for record gateway failures."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """A message shown to the user."""
    level: str
    message: str
    created_at: datetime = field(default_factory=datetime.utcnow)


class BaseNotifier(ABC):
    """Abstract base class for notification surfaces."""

    @abstractmethod
    def error(self, message: str) -> None:
        """Show an error message to the user."""
        pass


class LoggingNotifier(BaseNotifier):
    """Notifier for headless use: messages go to the log."""

    def __init__(self, logger_name: str = "classbook.notifications"):
        self._logger = logging.getLogger(logger_name)

    def error(self, message: str) -> None:
        self._logger.error(message)


class CollectingNotifier(BaseNotifier):
    """Keeps notifications in memory so a presentation layer can drain them."""

    def __init__(self, max_messages: int = 500):
        self.notifications: List[Notification] = []
        self._max_messages = max_messages

    def error(self, message: str) -> None:
        self.notifications.append(Notification(level="error", message=message))
        if len(self.notifications) > self._max_messages:
            dropped = self.notifications.pop(0)
            logger.debug(f"Notification buffer full, dropped: {dropped.message}")

    @property
    def messages(self) -> List[str]:
        return [n.message for n in self.notifications]

    def drain(self) -> List[Notification]:
        """Return and forget all pending notifications."""
        pending = self.notifications
        self.notifications = []
        return pending
