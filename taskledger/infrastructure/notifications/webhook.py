"""
Webhook Notifier

Sends ledger events to an external backend.

Topics:
- Task: a task was created or changed ({"id", "task"})
- ContractAddress: the contract was configured ({"contract_address"})
"""

import asyncio
import hashlib
import hmac
import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import BaseModel, Field

from ...core.interfaces import INotifier, NotificationTopic

logger = logging.getLogger(__name__)


class WebhookPayload(BaseModel):
    """Webhook payload structure"""

    topic: NotificationTopic
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    payload: dict[str, Any]


class WebhookConfig(BaseModel):
    """Webhook configuration"""

    url: str
    secret: str | None = None
    timeout: int = 30
    retry_count: int = 3
    retry_delay: float = 5
    enabled: bool = True


class WebhookNotifier(INotifier):
    """
    Delivers notifications over HTTP.

    Features:
    - HMAC signature for security
    - Retries with exponential backoff
    - Background delivery: ``emit`` only enqueues, a single worker posts
      events in emission order
    - Never raises: delivery failures are logged and dropped
    """

    def __init__(self, config: WebhookConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None
        self._queue: asyncio.Queue[WebhookPayload] = asyncio.Queue()
        self._worker_task: asyncio.Task | None = None

    async def start(self):
        """Open the HTTP client and start the delivery worker"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.config.timeout, transport=self._transport
            )
        if self._worker_task is None:
            self._worker_task = asyncio.create_task(self._deliver_loop())
            logger.info("WebhookNotifier started")

    async def drain(self):
        """Wait until every queued event has been delivered or dropped"""
        await self._queue.join()

    async def stop(self):
        """Deliver queued events, then stop the worker and close the HTTP client"""
        if self._worker_task:
            await self.drain()
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("WebhookNotifier stopped")

    def _sign_payload(self, payload: str, secret: str) -> str:
        """Create HMAC-SHA256 signature for payload"""
        return hmac.new(
            secret.encode("utf-8"),
            payload.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    async def emit(self, topic: NotificationTopic, payload: dict[str, Any]) -> None:
        if not self.config.enabled:
            logger.debug(f"Webhook disabled, skipping event: {topic.value}")
            return

        if self._worker_task is None:
            await self.start()
        self._queue.put_nowait(WebhookPayload(topic=topic, payload=payload))

    async def _deliver_loop(self):
        """Background worker posting queued events one at a time"""
        while True:
            payload = await self._queue.get()
            try:
                await self._deliver(payload)
            except Exception as e:
                logger.error(f"Webhook delivery error: {payload.topic.value}: {e}")
            finally:
                self._queue.task_done()

    async def _deliver(self, payload: WebhookPayload) -> bool:
        """Deliver webhook with retries"""
        if not self._http_client:
            await self.start()

        payload_json = payload.model_dump_json()
        headers = {
            "Content-Type": "application/json",
            "X-Ledger-Event": payload.topic.value,
            "X-Ledger-Timestamp": payload.timestamp,
        }
        if self.config.secret:
            signature = self._sign_payload(payload_json, self.config.secret)
            headers["X-Ledger-Signature"] = f"sha256={signature}"

        for attempt in range(self.config.retry_count):
            try:
                response = await self._http_client.post(
                    self.config.url,
                    content=payload_json,
                    headers=headers,
                    timeout=self.config.timeout,
                )
                if response.is_success:
                    logger.info(f"Webhook delivered: {payload.topic.value} -> {self.config.url}")
                    return True

                logger.warning(
                    f"Webhook failed (attempt {attempt + 1}): HTTP {response.status_code}"
                )

            except httpx.TimeoutException:
                logger.warning(f"Webhook timeout (attempt {attempt + 1}): {self.config.url}")

            except httpx.RequestError as e:
                logger.warning(f"Webhook error (attempt {attempt + 1}): {e}")

            if attempt < self.config.retry_count - 1:
                await asyncio.sleep(self.config.retry_delay * (2**attempt))

        logger.error(f"Webhook dropped after {self.config.retry_count} attempts: {payload.topic.value}")
        return False


def create_webhook_config_from_settings(settings) -> WebhookConfig | None:
    """Create WebhookConfig from Settings"""
    if not settings.webhook_url:
        return None

    return WebhookConfig(
        url=settings.webhook_url,
        secret=settings.webhook_secret,
        timeout=settings.webhook_timeout,
        retry_count=settings.webhook_retry_count,
        retry_delay=settings.webhook_retry_delay,
    )
