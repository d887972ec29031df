"""Notifier Interface"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class NotificationTopic(str, Enum):
    """Notification topics"""

    TASK = "Task"
    CONTRACT_ADDRESS = "ContractAddress"


class INotifier(ABC):
    """
    Fire-and-forget event sink.

    Delivery is best-effort: a dropped notification never rolls back state.
    """

    @abstractmethod
    async def emit(self, topic: NotificationTopic, payload: dict[str, Any]) -> None:
        """Publish an event"""
        pass
