"""
Event store adapters.

The rest of the package talks to storage only through EventStore. Two
implementations ship here: an in-memory store for tests and local runs, and
a Cloudflare D1 store that speaks the D1 HTTP query API.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .errors import StoreError
from .models import MilestoneRecord, PageViewEvent, TrackedSite

logger = logging.getLogger(__name__)


class EventStore(ABC):
    """Queryable storage for sites, pageview events and milestone records."""

    async def create_schema(self) -> None:
        """Prepare backing storage. Called once at app startup."""
        return None

    # -- Sites ---------------------------------------------------------------

    @abstractmethod
    async def get_site(self, site_id: str) -> TrackedSite | None: ...

    @abstractmethod
    async def find_site_by_hostname(
        self, hostname: str, owner_id: str | None = None
    ) -> TrackedSite | None:
        """First site with this hostname; restricted to ``owner_id`` when given."""

    @abstractmethod
    async def find_site_by_share_token(self, token: str) -> TrackedSite | None: ...

    @abstractmethod
    async def list_sites(self, owner_id: str) -> list[TrackedSite]:
        """An owner's sites, newest first."""

    @abstractmethod
    async def create_site(self, site: TrackedSite) -> TrackedSite: ...

    @abstractmethod
    async def update_site(self, site: TrackedSite) -> TrackedSite: ...

    @abstractmethod
    async def delete_site(self, site_id: str) -> None: ...

    # -- Events --------------------------------------------------------------

    @abstractmethod
    async def append_event(self, event: PageViewEvent) -> None: ...

    @abstractmethod
    async def list_events(
        self, site_id: str, start: datetime, end: datetime | None = None
    ) -> list[PageViewEvent]:
        """Events for a site with ``start <= timestamp`` (and ``<= end``), oldest first."""

    # -- Milestones ----------------------------------------------------------

    @abstractmethod
    async def list_notified_milestones(self, site_id: str) -> set[int]: ...

    @abstractmethod
    async def add_milestone(self, record: MilestoneRecord) -> None: ...


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class InMemoryEventStore(EventStore):
    """Process-local store. Safe for concurrent use within one event loop."""

    def __init__(self):
        self._sites: dict[str, TrackedSite] = {}
        self._events: list[PageViewEvent] = []
        self._milestones: dict[str, dict[int, MilestoneRecord]] = {}
        self._lock = asyncio.Lock()

    async def get_site(self, site_id: str) -> TrackedSite | None:
        site = self._sites.get(site_id)
        return site.model_copy() if site else None

    async def find_site_by_hostname(
        self, hostname: str, owner_id: str | None = None
    ) -> TrackedSite | None:
        for site in self._sites.values():
            if site.hostname != hostname:
                continue
            if owner_id is not None and site.owner_id != owner_id:
                continue
            return site.model_copy()
        return None

    async def find_site_by_share_token(self, token: str) -> TrackedSite | None:
        for site in self._sites.values():
            if site.share_token and site.share_token == token:
                return site.model_copy()
        return None

    async def list_sites(self, owner_id: str) -> list[TrackedSite]:
        sites = [s.model_copy() for s in self._sites.values() if s.owner_id == owner_id]
        sites.sort(key=lambda s: s.created_at, reverse=True)
        return sites

    async def create_site(self, site: TrackedSite) -> TrackedSite:
        async with self._lock:
            self._sites[site.id] = site.model_copy()
        return site

    async def update_site(self, site: TrackedSite) -> TrackedSite:
        async with self._lock:
            if site.id not in self._sites:
                raise StoreError(f"Site {site.id} does not exist")
            self._sites[site.id] = site.model_copy()
        return site

    async def delete_site(self, site_id: str) -> None:
        async with self._lock:
            self._sites.pop(site_id, None)
            self._events = [e for e in self._events if e.site_id != site_id]
            self._milestones.pop(site_id, None)

    async def append_event(self, event: PageViewEvent) -> None:
        async with self._lock:
            self._events.append(event)

    async def list_events(
        self, site_id: str, start: datetime, end: datetime | None = None
    ) -> list[PageViewEvent]:
        start = _as_utc(start)
        end = _as_utc(end) if end else None
        events = [
            e for e in self._events
            if e.site_id == site_id
            and _as_utc(e.timestamp) >= start
            and (end is None or _as_utc(e.timestamp) <= end)
        ]
        return sorted(events, key=lambda e: _as_utc(e.timestamp))

    async def list_notified_milestones(self, site_id: str) -> set[int]:
        return set(self._milestones.get(site_id, {}))

    async def add_milestone(self, record: MilestoneRecord) -> None:
        async with self._lock:
            # Insert-if-absent: a repeated milestone keeps its first record
            self._milestones.setdefault(record.site_id, {}).setdefault(record.milestone, record)


# =============================================================================
# Cloudflare D1
# =============================================================================

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS tracked_websites (
        id TEXT PRIMARY KEY,
        hostname TEXT NOT NULL,
        name TEXT,
        user_id TEXT,
        is_public INTEGER NOT NULL DEFAULT 0,
        share_token TEXT,
        notification_email TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tracked_websites_hostname ON tracked_websites (hostname)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_tracked_websites_token ON tracked_websites (share_token)",
    """
    CREATE TABLE IF NOT EXISTS page_views (
        id TEXT PRIMARY KEY,
        website_id TEXT NOT NULL,
        hostname TEXT NOT NULL,
        path TEXT NOT NULL,
        page_title TEXT,
        referrer TEXT,
        user_agent TEXT,
        device_type TEXT,
        browser TEXT,
        visitor_id TEXT,
        session_id TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_page_views_site_time ON page_views (website_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS milestone_notifications (
        website_id TEXT NOT NULL,
        milestone INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (website_id, milestone)
    )
    """,
]

SITE_COLUMNS = "id, hostname, name, user_id, is_public, share_token, notification_email, created_at"


def _ts(value: datetime) -> str:
    """Timestamps are stored as ISO-8601 UTC strings so they sort lexically."""
    return _as_utc(value).isoformat(timespec="microseconds")


def _site_from_row(row: dict) -> TrackedSite:
    return TrackedSite(
        id=row["id"],
        hostname=row["hostname"],
        name=row.get("name"),
        owner_id=row.get("user_id"),
        is_public=bool(row.get("is_public")),
        share_token=row.get("share_token"),
        notification_email=row.get("notification_email"),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _event_from_row(row: dict) -> PageViewEvent:
    return PageViewEvent(
        id=row["id"],
        site_id=row["website_id"],
        hostname=row["hostname"],
        path=row.get("path") or "/",
        page_title=row.get("page_title"),
        referrer=row.get("referrer"),
        user_agent=row.get("user_agent") or "",
        device_type=row.get("device_type"),
        browser=row.get("browser"),
        visitor_id=row.get("visitor_id"),
        session_id=row.get("session_id"),
        timestamp=datetime.fromisoformat(row["created_at"]),
    )


class D1EventStore(EventStore):
    """Store backed by a Cloudflare D1 database, queried over HTTP."""

    def __init__(
        self,
        d1_database_id: str,
        cf_account_id: str,
        cf_api_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.database_id = d1_database_id
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.timeout = timeout
        self._transport = transport
        self.base_url = f"https://api.cloudflare.com/client/v4/accounts/{cf_account_id}/d1/database/{d1_database_id}"

    async def _query(self, sql: str, params: Optional[list] = None) -> list[dict]:
        """Execute a SQL query against D1."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/query",
                    headers={
                        "Authorization": f"Bearer {self.api_token}",
                        "Content-Type": "application/json",
                    },
                    json={"sql": sql, "params": params or []},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise StoreError(f"D1 request failed: {e}") from e

        if not data.get("success"):
            raise StoreError(f"D1 query failed: {data.get('errors')}")

        results = data.get("result", [])
        if results and len(results) > 0:
            return results[0].get("results", [])
        return []

    async def _execute(self, sql: str, params: Optional[list] = None) -> None:
        """Execute a SQL statement without returning results."""
        await self._query(sql, params)

    async def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        for statement in SCHEMA:
            await self._execute(statement)
        logger.info("D1 schema ensured")

    # =========================================================================
    # SITES
    # =========================================================================

    async def _one_site(self, sql: str, params: list) -> TrackedSite | None:
        rows = await self._query(sql, params)
        return _site_from_row(rows[0]) if rows else None

    async def get_site(self, site_id: str) -> TrackedSite | None:
        return await self._one_site(
            f"SELECT {SITE_COLUMNS} FROM tracked_websites WHERE id = ?", [site_id]
        )

    async def find_site_by_hostname(
        self, hostname: str, owner_id: str | None = None
    ) -> TrackedSite | None:
        if owner_id is None:
            return await self._one_site(
                f"SELECT {SITE_COLUMNS} FROM tracked_websites WHERE hostname = ? "
                "ORDER BY created_at LIMIT 1",
                [hostname],
            )
        return await self._one_site(
            f"SELECT {SITE_COLUMNS} FROM tracked_websites WHERE hostname = ? AND user_id = ? LIMIT 1",
            [hostname, owner_id],
        )

    async def find_site_by_share_token(self, token: str) -> TrackedSite | None:
        return await self._one_site(
            f"SELECT {SITE_COLUMNS} FROM tracked_websites WHERE share_token = ? LIMIT 1",
            [token],
        )

    async def list_sites(self, owner_id: str) -> list[TrackedSite]:
        rows = await self._query(
            f"SELECT {SITE_COLUMNS} FROM tracked_websites WHERE user_id = ? ORDER BY created_at DESC",
            [owner_id],
        )
        return [_site_from_row(row) for row in rows]

    async def create_site(self, site: TrackedSite) -> TrackedSite:
        await self._execute(
            f"INSERT INTO tracked_websites ({SITE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                site.id, site.hostname, site.name, site.owner_id,
                1 if site.is_public else 0, site.share_token,
                site.notification_email, _ts(site.created_at),
            ],
        )
        return site

    async def update_site(self, site: TrackedSite) -> TrackedSite:
        await self._execute(
            """
            UPDATE tracked_websites
            SET name = ?, user_id = ?, is_public = ?, share_token = ?, notification_email = ?
            WHERE id = ?
            """,
            [site.name, site.owner_id, 1 if site.is_public else 0, site.share_token, site.notification_email, site.id],
        )
        return site

    async def delete_site(self, site_id: str) -> None:
        await self._execute("DELETE FROM milestone_notifications WHERE website_id = ?", [site_id])
        await self._execute("DELETE FROM page_views WHERE website_id = ?", [site_id])
        await self._execute("DELETE FROM tracked_websites WHERE id = ?", [site_id])

    # =========================================================================
    # EVENTS
    # =========================================================================

    async def append_event(self, event: PageViewEvent) -> None:
        await self._execute(
            """
            INSERT INTO page_views (
                id, website_id, hostname, path, page_title, referrer, user_agent,
                device_type, browser, visitor_id, session_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                event.id, event.site_id, event.hostname, event.path, event.page_title,
                event.referrer, event.user_agent, event.device_type, event.browser,
                event.visitor_id, event.session_id, _ts(event.timestamp),
            ],
        )

    async def list_events(
        self, site_id: str, start: datetime, end: datetime | None = None
    ) -> list[PageViewEvent]:
        sql = "SELECT * FROM page_views WHERE website_id = ? AND created_at >= ?"
        params: list[Any] = [site_id, _ts(start)]
        if end is not None:
            sql += " AND created_at <= ?"
            params.append(_ts(end))
        sql += " ORDER BY created_at ASC"

        rows = await self._query(sql, params)
        return [_event_from_row(row) for row in rows]

    # =========================================================================
    # MILESTONES
    # =========================================================================

    async def list_notified_milestones(self, site_id: str) -> set[int]:
        rows = await self._query(
            "SELECT milestone FROM milestone_notifications WHERE website_id = ?", [site_id]
        )
        return {int(row["milestone"]) for row in rows}

    async def add_milestone(self, record: MilestoneRecord) -> None:
        await self._execute(
            "INSERT OR IGNORE INTO milestone_notifications (website_id, milestone, created_at) VALUES (?, ?, ?)",
            [record.site_id, record.milestone, _ts(record.created_at)],
        )
