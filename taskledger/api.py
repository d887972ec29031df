"""
Task Ledger FastAPI Application

REST API over the task ledger. Caller identity is resolved from bearer
tokens; all ledger rules live in TaskLedgerService.
"""

from contextlib import asynccontextmanager

import redis.asyncio as redis  # type: ignore[import-untyped]
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .core.interfaces import IBalanceOracle, ILedgerStore, INotifier
from .infrastructure.notifications import (
    LogNotifier,
    WebhookNotifier,
    create_webhook_config_from_settings,
)
from .infrastructure.persistence import InMemoryLedgerStore, RedisLedgerStore
from .routes import contract_router, reservations_router, tasks_router
from .routes.dependencies import init_services
from .services import HttpBalanceOracle, TaskLedgerService

logger = structlog.get_logger()


def build_oracle_resolver(settings: Settings):
    """One HttpBalanceOracle per ledger address"""
    oracles: dict[str, IBalanceOracle] = {}

    def resolve(address: str) -> IBalanceOracle:
        if address not in oracles:
            oracles[address] = HttpBalanceOracle(
                ledger_url=address,
                timeout=settings.oracle_timeout,
                internal_token=settings.oracle_internal_token,
            )
        return oracles[address]

    return resolve


def build_store(settings: Settings) -> tuple[ILedgerStore, redis.Redis | None]:
    """Ledger store for the configured backend"""
    if settings.storage_backend == "redis":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return RedisLedgerStore(client, key_prefix=settings.redis_key_prefix), client
    if settings.storage_backend == "memory":
        return InMemoryLedgerStore(), None
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager"""
    settings = get_settings()

    # Startup
    store, redis_client = build_store(settings)

    notifier: INotifier
    webhook_config = create_webhook_config_from_settings(settings)
    if webhook_config:
        notifier = WebhookNotifier(webhook_config)
        await notifier.start()
    else:
        notifier = LogNotifier()

    init_services(
        TaskLedgerService(
            store=store,
            oracle_resolver=build_oracle_resolver(settings),
            notifier=notifier,
        )
    )
    logger.info(
        "service_started",
        storage=settings.storage_backend,
        webhook=webhook_config.url if webhook_config else None,
    )

    yield

    # Shutdown
    if isinstance(notifier, WebhookNotifier):
        await notifier.stop()
    if redis_client is not None:
        await redis_client.aclose()
    logger.info("service_stopped")


def create_app() -> FastAPI:
    """Create FastAPI app"""
    settings = get_settings()
    app = FastAPI(
        title="Task Ledger",
        description="Task tracking with escrowed token reservations",
        version=settings.service_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        """Health check"""
        return {"status": "healthy"}

    app.include_router(contract_router)
    app.include_router(tasks_router)
    app.include_router(reservations_router)
    return app


app = create_app()


def main() -> None:
    """Run the API server"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
