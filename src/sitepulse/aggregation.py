"""
Aggregation engine: turns a window of pageview events into a snapshot.

Every function here is pure and synchronous. Callers fetch the events (one
site, one time window) and pass them in together with ``now``; nothing is
read from the clock or the store, so the same input always gives the same
snapshot.

Conventions shared by all breakdowns:
- Events are ordered by timestamp (stable) before grouping, and groups keep
  first-seen order. Sorted outputs break ties by that order.
- Visitor ids that are None count as one shared "unknown" visitor.
- Calendar days are UTC dates. Naive timestamps are taken to be UTC.
- Percentages are rounded half-up per bucket and are not adjusted to sum to
  100.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .config import DEFAULT_SOCIAL_PLATFORMS
from .models import (
    AnalyticsSnapshot,
    BrowserStats,
    DeviceStats,
    PageStats,
    PageViewEvent,
    SnapshotMetrics,
    SourceStats,
    TrafficPoint,
)
from .referrer import classify_referrer
from .user_agent import DEFAULT_BROWSER, DeviceType

DEFAULT_TOP_PAGES = 10
DEFAULT_REALTIME_WINDOW = timedelta(minutes=5)


@dataclass
class _DayBucket:
    visitors: set = field(default_factory=set)
    page_views: int = 0


@dataclass
class _PageBucket:
    title: str | None = None
    views: int = 0
    visitors: set = field(default_factory=set)


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _ordered(events: Iterable[PageViewEvent]) -> list[PageViewEvent]:
    return sorted(events, key=lambda e: _as_utc(e.timestamp))


def percentage(count: int, total: int) -> int:
    """Integer percentage, rounded half-up."""
    if total <= 0:
        return 0
    return (count * 200 + total) // (2 * total)


def _count_by(keys: Iterable[str]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for key in keys:
        counts[key] = counts.get(key, 0) + 1
    return counts


# =============================================================================
# Individual computations
# =============================================================================

def unique_visitors(events: Iterable[PageViewEvent]) -> int:
    """Number of distinct visitor ids."""
    return len({e.visitor_id for e in events})


def traffic_by_day(events: Iterable[PageViewEvent]) -> list[TrafficPoint]:
    """Visitors and pageviews per UTC day, oldest first. Empty days are omitted."""
    buckets: dict[str, _DayBucket] = {}
    for event in _ordered(events):
        day = _as_utc(event.timestamp).date().isoformat()
        bucket = buckets.setdefault(day, _DayBucket())
        bucket.visitors.add(event.visitor_id)
        bucket.page_views += 1

    return [
        TrafficPoint(date=day, visitors=len(bucket.visitors), page_views=bucket.page_views)
        for day, bucket in sorted(buckets.items())
    ]


def top_pages(events: Iterable[PageViewEvent], limit: int = DEFAULT_TOP_PAGES) -> list[PageStats]:
    """Most viewed paths, with the first non-empty title seen for each."""
    buckets: dict[str, _PageBucket] = {}
    for event in _ordered(events):
        path = event.path or "/"
        bucket = buckets.setdefault(path, _PageBucket())
        if not bucket.title and event.page_title:
            bucket.title = event.page_title
        bucket.views += 1
        bucket.visitors.add(event.visitor_id)

    pages = [
        PageStats(
            page=path,
            title=bucket.title or path,
            views=bucket.views,
            unique_visitors=len(bucket.visitors),
        )
        for path, bucket in buckets.items()
    ]
    # sorted() is stable, so equal view counts keep first-seen order
    pages.sort(key=lambda p: p.views, reverse=True)
    return pages[:limit]


def device_breakdown(events: Iterable[PageViewEvent]) -> list[DeviceStats]:
    """Events per device class, in first-seen order."""
    counts = _count_by(e.device_type or DeviceType.DESKTOP.value for e in _ordered(events))
    return [DeviceStats(device=device, count=count) for device, count in counts.items()]


def browser_breakdown(events: Iterable[PageViewEvent]) -> list[BrowserStats]:
    """Events per browser family with share of total, most used first."""
    counts = _count_by(e.browser or DEFAULT_BROWSER for e in _ordered(events))
    total = sum(counts.values())
    browsers = [
        BrowserStats(name=name, count=count, percentage=percentage(count, total))
        for name, count in counts.items()
    ]
    browsers.sort(key=lambda b: b.count, reverse=True)
    return browsers


def traffic_sources(
    events: Iterable[PageViewEvent],
    social_platforms: tuple[str, ...] = DEFAULT_SOCIAL_PLATFORMS,
) -> list[SourceStats]:
    """Events per referrer class with share of total, in first-seen order."""
    counts = _count_by(
        classify_referrer(e.referrer, social_platforms).value for e in _ordered(events)
    )
    total = sum(counts.values())
    return [
        SourceStats(name=name, count=count, percentage=percentage(count, total))
        for name, count in counts.items()
    ]


def realtime_visitors(
    events: Iterable[PageViewEvent],
    now: datetime,
    window: timedelta = DEFAULT_REALTIME_WINDOW,
) -> int:
    """Distinct visitors seen strictly within ``window`` before ``now``.

    An event exactly ``window`` old is not counted.
    """
    cutoff = _as_utc(now) - window
    return len({e.visitor_id for e in events if _as_utc(e.timestamp) > cutoff})


# =============================================================================
# Snapshot
# =============================================================================

def build_snapshot(
    events: Iterable[PageViewEvent],
    now: datetime,
    top_pages_limit: int = DEFAULT_TOP_PAGES,
    realtime_window: timedelta = DEFAULT_REALTIME_WINDOW,
    social_platforms: tuple[str, ...] = DEFAULT_SOCIAL_PLATFORMS,
) -> AnalyticsSnapshot:
    """
    Compute the full analytics snapshot for one site and window.

    Args:
        events: Pageviews already filtered to one site and time window
        now: Reference instant for the realtime count
        top_pages_limit: How many pages to rank (5 on dashboards, 10 in the API)
        realtime_window: Trailing window for the realtime count
        social_platforms: Hostname substrings counted as social media

    Returns:
        AnalyticsSnapshot; zeros and empty lists when there are no events
    """
    events = _ordered(events)
    visitors = unique_visitors(events)

    return AnalyticsSnapshot(
        metrics=SnapshotMetrics(
            total_visitors=visitors,
            page_views=len(events),
            unique_visitors=visitors,
        ),
        traffic_by_date=traffic_by_day(events),
        top_pages=top_pages(events, top_pages_limit),
        devices=device_breakdown(events),
        browsers=browser_breakdown(events),
        traffic_sources=traffic_sources(events, social_platforms),
        realtime_visitors=realtime_visitors(events, now, realtime_window),
    )
