"""Structured-log notifier, used when no webhook is configured"""

from typing import Any

import structlog

from ...core.interfaces import INotifier, NotificationTopic

logger = structlog.get_logger()


class LogNotifier(INotifier):
    """Writes every event to the structured log"""

    async def emit(self, topic: NotificationTopic, payload: dict[str, Any]) -> None:
        logger.info("ledger_event", topic=topic.value, payload=payload)
