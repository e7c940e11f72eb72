"""Autopay API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map AutopayError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, key vault, chain client and Ticker are created in the lifespan and torn
      down in reverse order

Design Decisions:
    - Lifespan over @app.on_event: one place for startup and shutdown
    - Ticker lives on app.state so the manual tick route and the background loops
      share one in-flight set
    - scheduler_enabled=False keeps the API up without background ticks (manual
      trigger still works)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autopay.api.error_handlers import register_error_handlers
from autopay.api.routes import auto_pay, health, scheduled_payments, scheduler
from autopay.config import get_settings
from autopay.infrastructure.blockchain_client import Web3BlockchainClient
from autopay.infrastructure.database import init_db
from autopay.infrastructure.key_vault import KeyVault
from autopay.infrastructure.observability import setup_logging
from autopay.services.mailer import LoggingReceiptMailer
from autopay.services.ticker import Ticker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.key_vault = KeyVault(settings.encryption_key)
    app.state.ticker = Ticker(
        manager.session_factory,
        Web3BlockchainClient(
            settings.rpc_url,
            timeout_seconds=settings.rpc_timeout_seconds,
            confirmation_timeout_seconds=settings.rpc_confirmation_timeout_seconds,
            max_retries=settings.rpc_max_retries,
            base_delay_ms=settings.rpc_base_delay_ms,
            max_delay_ms=settings.rpc_max_delay_ms,
        ),
        app.state.key_vault,
        mailer=LoggingReceiptMailer(),
        general_interval=settings.general_tick_seconds,
        conditional_interval=settings.conditional_tick_seconds,
        decimals=settings.chain_native_decimals,
        currency_symbol=settings.chain_native_symbol,
    )
    if settings.scheduler_enabled:
        app.state.ticker.start()
    logger.info("Autopay API started")
    yield
    await app.state.ticker.stop()
    await manager.dispose()
    logger.info("Autopay API shut down")


def create_app() -> FastAPI:
    settings = get_settings()
    application = FastAPI(title="Autopay Engine", version="1.0.0", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(health.router)
    application.include_router(scheduled_payments.router)
    application.include_router(scheduler.router)
    application.include_router(auto_pay.router)
    register_error_handlers(application)
    return application


app = create_app()
