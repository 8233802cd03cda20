"""
Ingestion route for the tracking snippet.
"""
from fastapi import APIRouter, Request

from ..ingestion import IngestionService
from ..rate_limit import client_ip


def create_tracking_router(ingestion: IngestionService) -> APIRouter:
    """Create the router that accepts pageviews.

    Args:
        ingestion: Service that validates and stores events
    """
    router = APIRouter(tags=["tracking"])

    @router.post("/track")
    async def track_pageview(request: Request):
        """Record one pageview posted by the tracking snippet."""
        body = await request.body()
        await ingestion.ingest(
            body,
            client_ip=client_ip(request.headers),
            user_agent=request.headers.get("user-agent"),
        )
        return {"success": True}

    return router
