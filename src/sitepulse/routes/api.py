"""
Token-authenticated read API and webhook relay.

Both endpoints authenticate with a site's share token and only serve sites
that have public sharing enabled.
"""
import logging

from fastapi import APIRouter, Request

from ..config import AnalyticsConfig
from ..errors import InvalidRequest, RateLimitExceeded, TokenRequired
from ..models import AnalyticsResponse, WebhookPayload
from ..rate_limit import RateLimiter, client_ip
from ..reporting import AnalyticsReader, WebhookRelay, is_http_url, parse_days
from ..sites import SiteService
from .common import json_object

logger = logging.getLogger(__name__)


def create_api_router(
    config: AnalyticsConfig,
    sites: SiteService,
    reader: AnalyticsReader,
    relay: WebhookRelay,
    limiter: RateLimiter,
) -> APIRouter:
    """Create the read API router.

    Args:
        config: Analytics configuration
        sites: Resolves share tokens to sites
        reader: Builds snapshots
        relay: Delivers webhook payloads
        limiter: Per-IP limiter for API calls
    """
    router = APIRouter(prefix="/api", tags=["api"])

    def _check_rate_limit(request: Request) -> None:
        ip = client_ip(request.headers)
        if not limiter.allow(ip):
            logger.warning(f"API rate limit exceeded for IP: {ip}")
            raise RateLimitExceeded("Rate limit exceeded")

    @router.get("/analytics")
    async def analytics_api(
        request: Request,
        token: str | None = None,
        hostname: str | None = None,
        days: str | None = None,
    ):
        """Analytics snapshot for a shared site.

        The token may be passed as ?token= or in the X-API-Key header.
        """
        _check_rate_limit(request)

        share_token = token or request.headers.get("x-api-key")
        if not share_token:
            raise TokenRequired()

        site = await sites.resolve_shared(share_token, hostname)
        window = parse_days(days, config.default_days, config.max_days)
        period, snapshot = await reader.snapshot_for_site(site, window, config.api_top_pages)

        return AnalyticsResponse(hostname=site.hostname, period=period, data=snapshot).to_wire()

    @router.post("/webhook")
    async def analytics_webhook(request: Request):
        """Push a shared site's snapshot to an external URL.

        Body: {"token": ..., "webhookUrl": ..., "days": 7}
        """
        _check_rate_limit(request)

        body = await json_object(request, "Invalid JSON body")
        token = body.get("token")
        webhook_url = body.get("webhookUrl")

        if not token or not webhook_url:
            raise InvalidRequest("token and webhookUrl are required")
        if not is_http_url(webhook_url):
            raise InvalidRequest("Invalid webhookUrl")

        site = await sites.resolve_shared(str(token))
        window = parse_days(body.get("days"), config.default_days, config.max_days)
        period, snapshot = await reader.snapshot_for_site(site, window, config.api_top_pages)

        payload = WebhookPayload(
            hostname=site.hostname,
            timestamp=reader.clock(),
            period=period,
            data=snapshot,
        )
        await relay.deliver(webhook_url, payload)
        logger.info(f"Analytics for {site.hostname} sent to webhook")

        return {"success": True, "message": "Analytics sent to webhook"}

    return router
