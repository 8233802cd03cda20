"""
Site management: owned registration, sharing and notification settings.

Owner identity comes from an external identity provider; this module only
checks that the owner id it is handed looks like one.
"""
import logging
import re
import uuid

from .errors import AccessDenied, AuthenticationRequired, InvalidRequest, SiteNotFound
from .models import TrackedSite
from .store import EventStore
from .validation import MAX_HOSTNAME_LENGTH, is_valid_hostname

logger = logging.getLogger(__name__)

MAX_OWNER_ID_LENGTH = 255
OWNER_ID_PATTERN = re.compile(r"^user_[a-zA-Z0-9]+$")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def generate_share_token() -> str:
    """16 hex characters from a fresh uuid4."""
    return uuid.uuid4().hex[:16]


def validate_owner_id(owner_id: str | None) -> str:
    """Return the trimmed owner id, or raise AuthenticationRequired."""
    if not owner_id or not isinstance(owner_id, str):
        raise AuthenticationRequired()

    owner_id = owner_id.strip()
    if not owner_id or len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise AuthenticationRequired()
    if not OWNER_ID_PATTERN.fullmatch(owner_id):
        raise AuthenticationRequired()
    return owner_id


def clean_hostname(hostname) -> str:
    """Trim and validate a hostname supplied by an owner."""
    if not isinstance(hostname, str):
        raise InvalidRequest("Hostname must be a string")

    hostname = hostname.strip()
    if not hostname:
        raise InvalidRequest("Hostname is required")
    if len(hostname) > MAX_HOSTNAME_LENGTH:
        raise InvalidRequest(f"Hostname must be at most {MAX_HOSTNAME_LENGTH} characters")
    if not is_valid_hostname(hostname):
        raise InvalidRequest("Invalid hostname format")
    return hostname


class SiteService:
    """Owner-facing operations on tracked sites."""

    def __init__(self, store: EventStore):
        self.store = store

    async def list_sites(self, owner_id: str) -> list[TrackedSite]:
        return await self.store.list_sites(owner_id)

    async def register(self, owner_id: str, hostname) -> tuple[TrackedSite, bool]:
        """
        Register a hostname for an owner.

        A hostname that tracking auto-registered without an owner is claimed
        rather than duplicated, so its past and future events belong to the
        owner.

        Returns:
            (site, created); registering a hostname the owner already tracks
            returns the existing site with created=False
        """
        hostname = clean_hostname(hostname)

        existing = await self.store.find_site_by_hostname(hostname, owner_id=owner_id)
        if existing:
            logger.info(f"Website {hostname} already tracked for {owner_id}")
            return existing, False

        tracked = await self.store.find_site_by_hostname(hostname)
        if tracked and tracked.owner_id is None:
            tracked.owner_id = owner_id
            site = await self.store.update_site(tracked)
            logger.info(f"Claimed auto-registered website {hostname} for {owner_id}")
            return site, True

        site = TrackedSite(hostname=hostname, name=hostname, owner_id=owner_id)
        await self.store.create_site(site)
        logger.info(f"Registered website {hostname} for {owner_id}")
        return site, True

    async def get_owned(self, owner_id: str, site_id: str) -> TrackedSite:
        site = await self.store.get_site(site_id)
        if not site or site.owner_id != owner_id:
            raise SiteNotFound()
        return site

    async def remove(self, owner_id: str, site_id: str) -> None:
        site = await self.get_owned(owner_id, site_id)
        await self.store.delete_site(site.id)
        logger.info(f"Removed website {site.hostname} for {owner_id}")

    async def set_sharing(self, owner_id: str, site_id: str, is_public: bool) -> TrackedSite:
        """Turn public sharing on or off. A token is created the first time it is enabled."""
        site = await self.get_owned(owner_id, site_id)
        site.is_public = bool(is_public)
        if site.is_public and not site.share_token:
            site.share_token = generate_share_token()
        return await self.store.update_site(site)

    async def regenerate_token(self, owner_id: str, site_id: str) -> TrackedSite:
        """Replace the share token; the old link stops working immediately."""
        site = await self.get_owned(owner_id, site_id)
        site.share_token = generate_share_token()
        return await self.store.update_site(site)

    async def set_notification_email(self, owner_id: str, site_id: str, email: str | None) -> TrackedSite:
        """Set the milestone email address, or clear it with None/empty."""
        site = await self.get_owned(owner_id, site_id)
        email = (email or "").strip() or None
        if email is not None and not EMAIL_PATTERN.fullmatch(email):
            raise InvalidRequest("Invalid email address")
        site.notification_email = email
        return await self.store.update_site(site)

    async def list_milestones(self, owner_id: str, site_id: str) -> list[int]:
        site = await self.get_owned(owner_id, site_id)
        return sorted(await self.store.list_notified_milestones(site.id))

    async def resolve_shared(self, token: str, hostname: str | None = None) -> TrackedSite:
        """
        Find the public site a share token grants access to.

        Raises:
            AccessDenied: Unknown token, hostname mismatch, or sharing disabled.
                All three look the same to the caller.
        """
        site = await self.store.find_site_by_share_token(token)
        if not site or (hostname and site.hostname != hostname) or not site.is_public:
            raise AccessDenied()
        return site
