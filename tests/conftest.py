"""Shared fixtures for SitePulse tests."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from sitepulse.app import create_app
from sitepulse.config import AnalyticsConfig
from sitepulse.mailer import Mailer
from sitepulse.models import PageViewEvent
from sitepulse.store import InMemoryEventStore

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

VISITOR_A = "11111111-1111-4111-8111-111111111111"
VISITOR_B = "22222222-2222-4222-8222-222222222222"
VISITOR_C = "33333333-3333-4333-8333-333333333333"
SESSION_A = "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa"

CHROME_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)

OWNER = "user_abc123"


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMailer(Mailer):
    """Records sent messages instead of delivering them."""

    def __init__(self, fail_with: Exception | None = None):
        self.sent: list[dict] = []
        self.fail_with = fail_with

    async def send(self, to: str, subject: str, html: str) -> dict:
        if self.fail_with:
            raise self.fail_with
        self.sent.append({"to": to, "subject": subject, "html": html})
        return {"id": f"email_{len(self.sent)}"}


def make_event(site_id: str = "site-1", minutes_ago: float = 0, **overrides) -> PageViewEvent:
    """Build a PageViewEvent relative to NOW."""
    fields = {
        "site_id": site_id,
        "hostname": "example.com",
        "path": "/",
        "visitor_id": VISITOR_A,
        "device_type": "Desktop",
        "browser": "Chrome",
        "timestamp": NOW - timedelta(minutes=minutes_ago),
    }
    fields.update(overrides)
    return PageViewEvent(**fields)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def config():
    return AnalyticsConfig(resend_api_key="re_test")


@pytest.fixture
def client(config, store, mailer, clock):
    """TestClient over an app wired to in-memory services."""
    app = create_app(config, store, mailer=mailer, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
