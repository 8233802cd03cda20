"""
Pageview ingestion.

IngestionService runs the intake pipeline for one tracking request:

1. Rate-limit by client IP
2. Parse the JSON body
3. Validate the payload (all violations reported)
4. Classify device and browser from the User-Agent
5. Resolve the site by hostname, registering it anonymously if unknown
6. Append the event, with every string field truncated to its limit

Any hostname can register itself by sending an event; no ownership check is
made here. Owners claim sites separately through registration.
"""
import json
import logging
from collections.abc import Callable
from datetime import datetime

from .errors import InvalidJSON, PayloadValidationError, RateLimitExceeded
from .models import PageViewEvent, TrackedSite, utcnow
from .rate_limit import RateLimiter
from .store import EventStore
from .user_agent import classify_user_agent
from .validation import (
    MAX_HOSTNAME_LENGTH,
    MAX_PATH_LENGTH,
    MAX_REFERRER_LENGTH,
    MAX_TITLE_LENGTH,
    MAX_USER_AGENT_LENGTH,
    validate_tracking_payload,
)

logger = logging.getLogger(__name__)


def _truncate(value: str | None, limit: int) -> str | None:
    return value[:limit] if value is not None else None


class IngestionService:
    """Accepts tracking payloads and appends pageview events."""

    def __init__(
        self,
        store: EventStore,
        limiter: RateLimiter,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.limiter = limiter
        self.clock = clock

    async def ingest(self, body: bytes | str, client_ip: str, user_agent: str | None) -> PageViewEvent:
        """
        Record one pageview.

        Args:
            body: Raw request body
            client_ip: Rate-limit key for the caller
            user_agent: The request's User-Agent header

        Returns:
            The stored PageViewEvent

        Raises:
            RateLimitExceeded: Too many requests from this IP in the window
            InvalidJSON: The body is not JSON
            PayloadValidationError: The payload broke validation rules
        """
        if not self.limiter.allow(client_ip):
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            raise RateLimitExceeded()

        try:
            data = json.loads(body)
        except (ValueError, TypeError):
            raise InvalidJSON() from None

        result = validate_tracking_payload(data)
        if not result.valid:
            raise PayloadValidationError(result.errors)
        payload = result.payload

        user_agent = user_agent or ""
        ua_info = classify_user_agent(user_agent)
        if ua_info.is_bot_like:
            logger.warning(f"Bot detected: {user_agent[:100]}")

        logger.info(f"Tracking page view: {payload.hostname} {(payload.path or '/')[:50]}")

        site = await self._resolve_site(payload.hostname)

        event = PageViewEvent(
            site_id=site.id,
            hostname=payload.hostname[:MAX_HOSTNAME_LENGTH],
            path=(payload.path or "/")[:MAX_PATH_LENGTH],
            page_title=_truncate(payload.page_title, MAX_TITLE_LENGTH),
            referrer=_truncate(payload.referrer, MAX_REFERRER_LENGTH),
            user_agent=user_agent[:MAX_USER_AGENT_LENGTH],
            device_type=ua_info.device_type.value,
            browser=ua_info.browser,
            visitor_id=payload.visitor_id,
            session_id=payload.session_id,
            timestamp=self.clock(),
        )
        await self.store.append_event(event)
        return event

    async def _resolve_site(self, hostname: str) -> TrackedSite:
        site = await self.store.find_site_by_hostname(hostname)
        if site:
            return site

        site = TrackedSite(hostname=hostname, name=hostname, created_at=self.clock())
        await self.store.create_site(site)
        logger.info(f"Auto-registered website: {hostname}")
        return site
