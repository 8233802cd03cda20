"""Tests for owner site management and the owner dashboard."""

import asyncio
import re

import pytest

from sitepulse.errors import AccessDenied, AuthenticationRequired, InvalidRequest, SiteNotFound
from sitepulse.sites import SiteService, clean_hostname, generate_share_token, validate_owner_id
from sitepulse.store import InMemoryEventStore

from conftest import OWNER, make_event

AUTH = {"x-user-id": OWNER}


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestOwnerId:
    def test_valid(self):
        assert validate_owner_id("user_2abcXYZ") == "user_2abcXYZ"

    def test_trimmed(self):
        assert validate_owner_id("  user_abc  ") == "user_abc"

    @pytest.mark.parametrize("owner_id", [None, "", "admin", "user_", "user_abc-def", "user_" + "a" * 251])
    def test_rejected(self, owner_id):
        with pytest.raises(AuthenticationRequired):
            validate_owner_id(owner_id)


class TestCleanHostname:
    def test_trims(self):
        assert clean_hostname("  example.com ") == "example.com"

    @pytest.mark.parametrize("hostname", [None, 42, "", "   ", "bad host", "a" * 254])
    def test_rejected(self, hostname):
        with pytest.raises(InvalidRequest):
            clean_hostname(hostname)


class TestShareToken:
    def test_format(self):
        assert re.fullmatch(r"[0-9a-f]{16}", generate_share_token())

    def test_unique(self):
        assert len({generate_share_token() for _ in range(50)}) == 50


class TestSiteService:
    """Test SiteService."""

    def _get_service(self):
        return SiteService(InMemoryEventStore())

    def test_register_is_idempotent_per_owner(self):
        service = self._get_service()

        site, created = run_async(service.register(OWNER, "example.com"))
        again, created_again = run_async(service.register(OWNER, "example.com"))

        assert created is True
        assert created_again is False
        assert again.id == site.id

    def test_same_hostname_for_different_owners(self):
        service = self._get_service()
        first, _ = run_async(service.register(OWNER, "example.com"))
        second, created = run_async(service.register("user_other", "example.com"))
        assert created is True
        assert second.id != first.id

    def test_get_owned_hides_other_owners_sites(self):
        service = self._get_service()
        site, _ = run_async(service.register(OWNER, "example.com"))
        with pytest.raises(SiteNotFound):
            run_async(service.get_owned("user_other", site.id))

    def test_enable_sharing_creates_token_once(self):
        service = self._get_service()
        site, _ = run_async(service.register(OWNER, "example.com"))

        shared = run_async(service.set_sharing(OWNER, site.id, True))
        token = shared.share_token
        run_async(service.set_sharing(OWNER, site.id, False))
        reshared = run_async(service.set_sharing(OWNER, site.id, True))

        assert token is not None
        assert reshared.share_token == token

    def test_regenerate_invalidates_old_token(self):
        service = self._get_service()
        site, _ = run_async(service.register(OWNER, "example.com"))
        old = run_async(service.set_sharing(OWNER, site.id, True)).share_token

        new = run_async(service.regenerate_token(OWNER, site.id)).share_token

        assert new != old
        assert run_async(service.resolve_shared(new)).id == site.id
        with pytest.raises(AccessDenied):
            run_async(service.resolve_shared(old))

    def test_resolve_shared_requires_public(self):
        service = self._get_service()
        site, _ = run_async(service.register(OWNER, "example.com"))
        token = run_async(service.set_sharing(OWNER, site.id, True)).share_token
        run_async(service.set_sharing(OWNER, site.id, False))

        with pytest.raises(AccessDenied):
            run_async(service.resolve_shared(token))

    def test_notification_email(self):
        service = self._get_service()
        site, _ = run_async(service.register(OWNER, "example.com"))

        updated = run_async(service.set_notification_email(OWNER, site.id, " owner@example.com "))
        assert updated.notification_email == "owner@example.com"

        cleared = run_async(service.set_notification_email(OWNER, site.id, ""))
        assert cleared.notification_email is None

        with pytest.raises(InvalidRequest):
            run_async(service.set_notification_email(OWNER, site.id, "not-an-email"))


class TestSiteRoutes:
    """Test the /sites endpoints."""

    def _register(self, client, hostname="example.com"):
        return client.post("/sites", json={"hostname": hostname}, headers=AUTH)

    def test_requires_owner(self, client):
        assert client.get("/sites").status_code == 401
        response = client.get("/sites", headers={"x-user-id": "admin"})
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}

    def test_register_and_list(self, client):
        response = self._register(client)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["hostname"] == "example.com"
        assert data["ownerId"] == OWNER
        assert data["isPublic"] is False
        assert data["shareToken"] is None

        listed = client.get("/sites", headers=AUTH).json()["data"]
        assert [s["id"] for s in listed] == [data["id"]]

    def test_register_existing(self, client):
        first = self._register(client).json()["data"]
        response = self._register(client)
        assert response.status_code == 200
        assert response.json()["message"] == "Website already tracked"
        assert response.json()["data"]["id"] == first["id"]

    def test_register_invalid_hostname(self, client):
        response = self._register(client, "not a host")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid hostname format"}

    def test_sharing_toggle(self, client):
        site_id = self._register(client).json()["data"]["id"]

        on = client.put(f"/sites/{site_id}/sharing", json={"isPublic": True}, headers=AUTH)
        assert on.status_code == 200
        assert re.fullmatch(r"[0-9a-f]{16}", on.json()["data"]["shareToken"])

        off = client.put(f"/sites/{site_id}/sharing", json={"isPublic": False}, headers=AUTH)
        assert off.json()["data"]["isPublic"] is False
        assert off.json()["data"]["shareToken"] is None

    def test_sharing_requires_boolean(self, client):
        site_id = self._register(client).json()["data"]["id"]
        response = client.put(f"/sites/{site_id}/sharing", json={"isPublic": "yes"}, headers=AUTH)
        assert response.status_code == 400
        assert response.json() == {"error": "isPublic must be a boolean"}

    def test_regenerate_token(self, client):
        site_id = self._register(client).json()["data"]["id"]
        old = client.put(f"/sites/{site_id}/sharing", json={"isPublic": True}, headers=AUTH).json()["data"]["shareToken"]

        new = client.post(f"/sites/{site_id}/sharing/regenerate", headers=AUTH).json()["data"]["shareToken"]

        assert new != old
        assert client.get(f"/public/{old}").status_code == 403
        assert client.get(f"/public/{new}").status_code == 200

    def test_notifications(self, client):
        site_id = self._register(client).json()["data"]["id"]

        response = client.put(f"/sites/{site_id}/notifications", json={"email": "owner@example.com"}, headers=AUTH)
        assert response.json()["data"]["notificationEmail"] == "owner@example.com"

        bad = client.put(f"/sites/{site_id}/notifications", json={"email": 5}, headers=AUTH)
        assert bad.status_code == 400

    def test_other_owner_gets_not_found(self, client):
        site_id = self._register(client).json()["data"]["id"]
        other = {"x-user-id": "user_other"}

        assert client.delete(f"/sites/{site_id}", headers=other).status_code == 404
        response = client.get(f"/dashboard/{site_id}", headers=other)
        assert response.status_code == 404
        assert response.json() == {"error": "Website not found"}

    def test_delete(self, client):
        site_id = self._register(client).json()["data"]["id"]

        assert client.delete(f"/sites/{site_id}", headers=AUTH).json() == {"success": True}
        assert client.get(f"/dashboard/{site_id}", headers=AUTH).status_code == 404
        assert client.get("/sites", headers=AUTH).json()["data"] == []


class TestOwnerDashboard:
    """Test GET /dashboard/{site_id} and milestone follow-up."""

    def _site_with_visitors(self, client, store, visitors):
        site_id = client.post("/sites", json={"hostname": "example.com"}, headers=AUTH).json()["data"]["id"]
        for i in range(visitors):
            visitor = f"{i:08x}-0000-4000-8000-000000000000"
            run_async(store.append_event(make_event(site_id=site_id, visitor_id=visitor, minutes_ago=i + 10)))
        return site_id

    def test_dashboard_snapshot(self, client, store):
        site_id = self._site_with_visitors(client, store, 3)

        response = client.get(f"/dashboard/{site_id}", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["site"]["id"] == site_id
        assert body["period"]["days"] == 7
        assert body["data"]["metrics"]["uniqueVisitors"] == 3

    def test_milestone_email_after_dashboard(self, client, store, mailer):
        site_id = self._site_with_visitors(client, store, 120)
        client.put(f"/sites/{site_id}/notifications", json={"email": "owner@example.com"}, headers=AUTH)

        client.get(f"/dashboard/{site_id}", headers=AUTH)
        client.get(f"/dashboard/{site_id}", headers=AUTH)

        assert len(mailer.sent) == 1
        assert mailer.sent[0]["subject"] == "🎉 example.com reached 100 visitors!"

        milestones = client.get(f"/sites/{site_id}/milestones", headers=AUTH).json()["data"]
        assert milestones["notified"] == [100]
        assert milestones["milestones"] == [100, 500, 1000, 5000, 10000, 50000, 100000]

    def test_no_email_without_address(self, client, store, mailer):
        site_id = self._site_with_visitors(client, store, 120)
        client.get(f"/dashboard/{site_id}", headers=AUTH)
        assert mailer.sent == []

    def test_mail_failure_does_not_break_dashboard(self, client, store, mailer):
        mailer.fail_with = RuntimeError("provider down")
        site_id = self._site_with_visitors(client, store, 120)
        client.put(f"/sites/{site_id}/notifications", json={"email": "owner@example.com"}, headers=AUTH)

        response = client.get(f"/dashboard/{site_id}", headers=AUTH)

        assert response.status_code == 200
        notified = client.get(f"/sites/{site_id}/milestones", headers=AUTH).json()["data"]["notified"]
        assert notified == []
