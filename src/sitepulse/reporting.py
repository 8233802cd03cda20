"""
Read paths: fetch a window of events and aggregate it, or relay the result
to a webhook.
"""
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlparse

import httpx

from .aggregation import build_snapshot
from .config import AnalyticsConfig
from .errors import DeliveryFailed
from .models import AnalyticsPeriod, AnalyticsSnapshot, TrackedSite, WebhookPayload, utcnow
from .store import EventStore

logger = logging.getLogger(__name__)


def parse_days(raw, default: int = 7, maximum: int = 30) -> int:
    """Parse a ``days`` parameter. Falls back to the default, clamped to [1, maximum].

    Booleans and fractional numbers are treated as unparsable.
    """
    if raw is None or raw == "" or isinstance(raw, bool):
        days = default
    elif isinstance(raw, float) and not raw.is_integer():
        days = default
    else:
        try:
            days = int(raw)
        except (TypeError, ValueError):
            days = default
    return max(1, min(days, maximum))


def is_http_url(url) -> bool:
    """Check for an absolute http(s) URL with a host."""
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class AnalyticsReader:
    """Fetches a site's events for a window and builds the snapshot."""

    def __init__(
        self,
        store: EventStore,
        config: AnalyticsConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.config = config
        self.clock = clock

    async def snapshot_for_site(
        self,
        site: TrackedSite,
        days: int,
        top_pages: int,
    ) -> tuple[AnalyticsPeriod, AnalyticsSnapshot]:
        """
        Aggregate the last ``days`` days of a site's traffic.

        Returns:
            (period, snapshot)
        """
        now = self.clock()
        start = now - timedelta(days=days)
        events = await self.store.list_events(site.id, start, now)

        snapshot = build_snapshot(
            events,
            now=now,
            top_pages_limit=top_pages,
            realtime_window=timedelta(minutes=self.config.realtime_window_minutes),
            social_platforms=self.config.social_platforms,
        )
        period = AnalyticsPeriod(days=days, start_date=start, end_date=now)
        return period, snapshot


class WebhookRelay:
    """Posts snapshots to caller-supplied webhook URLs."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport

    async def deliver(self, url: str, payload: WebhookPayload) -> int:
        """
        POST the payload to ``url``.

        Returns:
            The upstream status code

        Raises:
            DeliveryFailed: Non-2xx response (carries its status) or no
                response at all (status None)
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload.to_wire())
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery to {url} failed: {e}")
            raise DeliveryFailed(status=None) from e

        if not response.is_success:
            logger.error(f"Webhook delivery failed: {response.status_code}")
            raise DeliveryFailed(status=response.status_code)

        return response.status_code
