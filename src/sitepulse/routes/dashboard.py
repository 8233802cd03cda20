"""
Dashboard routes for SitePulse.

Owner endpoints identify the owner by the X-User-Id header, which the
identity provider in front of this service sets. The public dashboard is
served to anyone holding a valid share token.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Header, Request
from fastapi.responses import JSONResponse

from ..config import AnalyticsConfig
from ..errors import InvalidRequest
from ..milestones import MilestoneChecker
from ..models import TrackedSite
from ..reporting import AnalyticsReader
from ..sites import SiteService, validate_owner_id
from .common import json_object

logger = logging.getLogger(__name__)


def create_dashboard_router(
    config: AnalyticsConfig,
    sites: SiteService,
    reader: AnalyticsReader,
    milestones: MilestoneChecker | None = None,
) -> APIRouter:
    """Create dashboard and site management routes.

    Args:
        config: Analytics configuration
        sites: Owner-facing site operations
        reader: Builds snapshots
        milestones: Milestone checker; milestone emails are off when None
    """
    router = APIRouter(tags=["dashboard"])

    async def _check_milestones(site: TrackedSite, unique_visitors: int) -> None:
        """Run after the dashboard response; failures are logged, never raised."""
        try:
            result = await milestones.check(
                site.id, site.hostname, unique_visitors, site.notification_email
            )
        except Exception as e:
            logger.error(f"Milestone check failed for {site.hostname}: {e}", exc_info=e)
            return
        if result.notified:
            logger.info(f"Milestone {result.milestone} notified for {site.hostname}")

    # =========================================================================
    # DASHBOARDS
    # =========================================================================

    @router.get("/dashboard/{site_id}")
    async def dashboard(
        site_id: str,
        background_tasks: BackgroundTasks,
        x_user_id: str | None = Header(None),
    ):
        """Owner dashboard data for the last ``dashboard_days`` days."""
        owner_id = validate_owner_id(x_user_id)
        site = await sites.get_owned(owner_id, site_id)

        period, snapshot = await reader.snapshot_for_site(
            site, config.dashboard_days, config.dashboard_top_pages
        )

        if milestones and site.notification_email:
            background_tasks.add_task(_check_milestones, site, snapshot.metrics.unique_visitors)

        return {
            "success": True,
            "site": site.public_view(),
            "period": period.to_wire(),
            "data": snapshot.to_wire(),
        }

    @router.get("/public/{token}")
    async def public_dashboard(token: str):
        """Read-only dashboard for a shared site."""
        site = await sites.resolve_shared(token)
        period, snapshot = await reader.snapshot_for_site(
            site, config.dashboard_days, config.dashboard_top_pages
        )
        return {
            "success": True,
            "hostname": site.hostname,
            "period": period.to_wire(),
            "data": snapshot.to_wire(),
        }

    # =========================================================================
    # SITE MANAGEMENT
    # =========================================================================

    @router.get("/sites")
    async def list_sites(x_user_id: str | None = Header(None)):
        owner_id = validate_owner_id(x_user_id)
        owned = await sites.list_sites(owner_id)
        return {"data": [site.public_view() for site in owned]}

    @router.post("/sites")
    async def register_site(request: Request, x_user_id: str | None = Header(None)):
        """Register a hostname for the owner. Idempotent per owner."""
        owner_id = validate_owner_id(x_user_id)
        body = await json_object(request)

        site, created = await sites.register(owner_id, body.get("hostname"))
        if not created:
            return {"data": site.public_view(), "message": "Website already tracked"}
        return JSONResponse(status_code=201, content={"data": site.public_view()})

    @router.delete("/sites/{site_id}")
    async def remove_site(site_id: str, x_user_id: str | None = Header(None)):
        owner_id = validate_owner_id(x_user_id)
        await sites.remove(owner_id, site_id)
        return {"success": True}

    @router.put("/sites/{site_id}/sharing")
    async def update_sharing(site_id: str, request: Request, x_user_id: str | None = Header(None)):
        """Body: {"isPublic": true|false}"""
        owner_id = validate_owner_id(x_user_id)
        body = await json_object(request)

        is_public = body.get("isPublic")
        if not isinstance(is_public, bool):
            raise InvalidRequest("isPublic must be a boolean")

        site = await sites.set_sharing(owner_id, site_id, is_public)
        return {"data": site.public_view()}

    @router.post("/sites/{site_id}/sharing/regenerate")
    async def regenerate_share_token(site_id: str, x_user_id: str | None = Header(None)):
        owner_id = validate_owner_id(x_user_id)
        site = await sites.regenerate_token(owner_id, site_id)
        return {"data": site.public_view()}

    @router.put("/sites/{site_id}/notifications")
    async def update_notifications(site_id: str, request: Request, x_user_id: str | None = Header(None)):
        """Body: {"email": "owner@example.com"} or {"email": null} to disable."""
        owner_id = validate_owner_id(x_user_id)
        body = await json_object(request)

        email = body.get("email")
        if email is not None and not isinstance(email, str):
            raise InvalidRequest("email must be a string or null")

        site = await sites.set_notification_email(owner_id, site_id, email)
        return {"data": site.public_view()}

    @router.get("/sites/{site_id}/milestones")
    async def list_milestones(site_id: str, x_user_id: str | None = Header(None)):
        owner_id = validate_owner_id(x_user_id)
        notified = await sites.list_milestones(owner_id, site_id)
        return {"data": {"milestones": list(config.milestones), "notified": notified}}

    return router
