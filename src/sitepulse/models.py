"""
Pydantic models for analytics data.
"""
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for models serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Stored Records
# =============================================================================

class TrackedSite(WireModel):
    """A website that events are recorded for."""
    id: str = Field(default_factory=_new_id)
    hostname: str
    name: str | None = None
    owner_id: str | None = None  # None for sites auto-registered by tracking
    is_public: bool = False
    share_token: str | None = None
    notification_email: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def public_view(self) -> dict:
        """Settings view for the owner; the token is hidden while sharing is off."""
        data = self.to_wire()
        if not self.is_public:
            data["shareToken"] = None
        return data


class PageViewEvent(BaseModel):
    """A single pageview event. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    site_id: str
    hostname: str
    path: str = "/"
    page_title: str | None = None
    referrer: str | None = None
    user_agent: str = ""
    device_type: str | None = None
    browser: str | None = None
    visitor_id: str | None = None
    session_id: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class MilestoneRecord(BaseModel):
    """Marks a milestone as already notified for a site."""
    site_id: str
    milestone: int
    created_at: datetime = Field(default_factory=utcnow)


class TrackingPayload(BaseModel):
    """Normalized tracking request, produced by the validator."""
    hostname: str
    path: str | None = None
    page_title: str | None = None
    referrer: str | None = None
    visitor_id: str | None = None
    session_id: str | None = None


# =============================================================================
# Aggregated Stats Models
# =============================================================================

class SnapshotMetrics(WireModel):
    """Headline numbers."""
    total_visitors: int = 0
    page_views: int = 0
    unique_visitors: int = 0


class TrafficPoint(WireModel):
    """Traffic for one calendar day."""
    date: str  # YYYY-MM-DD (UTC)
    visitors: int
    page_views: int


class PageStats(WireModel):
    """Stats for a single page."""
    page: str
    title: str
    views: int
    unique_visitors: int


class DeviceStats(WireModel):
    device: str
    count: int


class BrowserStats(WireModel):
    name: str
    count: int
    percentage: int


class SourceStats(WireModel):
    """Stats for a traffic source bucket."""
    name: str  # Direct, Organic Search, Social Media, Referral
    count: int
    percentage: int


class AnalyticsSnapshot(WireModel):
    """Everything a dashboard needs, derived from one window of events."""
    metrics: SnapshotMetrics = Field(default_factory=SnapshotMetrics)
    traffic_by_date: list[TrafficPoint] = Field(default_factory=list)
    top_pages: list[PageStats] = Field(default_factory=list)
    devices: list[DeviceStats] = Field(default_factory=list)
    browsers: list[BrowserStats] = Field(default_factory=list)
    traffic_sources: list[SourceStats] = Field(default_factory=list)
    realtime_visitors: int = 0


# =============================================================================
# Response Models
# =============================================================================

class AnalyticsPeriod(WireModel):
    days: int
    start_date: datetime
    end_date: datetime


class AnalyticsResponse(WireModel):
    """Envelope returned by the read API."""
    success: bool = True
    hostname: str
    period: AnalyticsPeriod
    data: AnalyticsSnapshot


class WebhookPayload(WireModel):
    """Body posted to a webhook target."""
    source: str = "sitepulse"
    hostname: str
    timestamp: datetime
    period: AnalyticsPeriod
    data: AnalyticsSnapshot
