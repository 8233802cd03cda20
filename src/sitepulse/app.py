"""
FastAPI application factory.
"""
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import AnalyticsConfig
from .errors import AnalyticsError
from .ingestion import IngestionService
from .mailer import Mailer
from .milestones import MilestoneChecker
from .models import utcnow
from .rate_limit import RateLimiter
from .reporting import AnalyticsReader, WebhookRelay
from .routes import create_api_router, create_dashboard_router, create_tracking_router
from .routes.common import error_response, internal_error_response
from .sites import SiteService
from .store import EventStore

logger = logging.getLogger(__name__)


def create_app(
    config: AnalyticsConfig,
    store: EventStore,
    mailer: Mailer | None = None,
    clock: Callable[[], datetime] = utcnow,
    webhook_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the SitePulse app.

    Rate limiters are created here, one per call site, and live as long as
    the app does.

    Args:
        config: Analytics configuration
        store: Event store
        mailer: Milestone mailer; milestone emails are disabled when None
        clock: Source of "now" for timestamps and windows
        webhook_transport: Optional httpx transport for webhook delivery
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Preparing event store...")
        await store.create_schema()
        yield

    app = FastAPI(title="SitePulse Analytics", lifespan=lifespan)

    window = config.rate_limit_window_seconds
    ingest_limiter = RateLimiter(config.ingest_rate_limit, window)
    api_limiter = RateLimiter(config.api_rate_limit, window)

    sites = SiteService(store)
    reader = AnalyticsReader(store, config, clock=clock)
    ingestion = IngestionService(store, ingest_limiter, clock=clock)
    relay = WebhookRelay(transport=webhook_transport)
    checker = MilestoneChecker(store, mailer, config.milestones) if mailer else None

    app.state.ingest_limiter = ingest_limiter
    app.state.api_limiter = api_limiter

    @app.exception_handler(AnalyticsError)
    async def analytics_error_handler(request: Request, exc: AnalyticsError):
        return error_response(exc)

    @app.middleware("http")
    async def hide_internal_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            return internal_error_response(e, request.url.path)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "content-type", "x-api-key", "x-user-id"],
    )

    app.include_router(create_tracking_router(ingestion))
    app.include_router(create_api_router(config, sites, reader, relay, api_limiter))
    app.include_router(create_dashboard_router(config, sites, reader, checker))

    return app
