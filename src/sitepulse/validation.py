"""
Validation for incoming tracking payloads.

Every rule is checked and every violation reported, so a client sees the
full list of problems in one response rather than fixing them one at a time.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from .models import TrackingPayload

# Field limits (characters)
MAX_HOSTNAME_LENGTH = 253
MAX_PATH_LENGTH = 2048
MAX_TITLE_LENGTH = 500
MAX_REFERRER_LENGTH = 2048
MAX_USER_AGENT_LENGTH = 500

HOSTNAME_PATTERN = re.compile(
    r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)*$",
    re.IGNORECASE,
)
IPV4_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# (payload key, limit)
LENGTH_LIMITS = [
    ("path", MAX_PATH_LENGTH),
    ("pageTitle", MAX_TITLE_LENGTH),
    ("referrer", MAX_REFERRER_LENGTH),
]

UUID_FIELDS = ["visitorId", "sessionId"]


@dataclass
class ValidationResult:
    """Outcome of validating a tracking payload."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    payload: TrackingPayload | None = None


def is_valid_hostname(hostname: str) -> bool:
    """Check a hostname against the DNS name and IPv4 literal patterns."""
    if not hostname or len(hostname) > MAX_HOSTNAME_LENGTH:
        return False
    return bool(HOSTNAME_PATTERN.fullmatch(hostname) or IPV4_PATTERN.fullmatch(hostname))


def _check_hostname(data: dict, errors: list[str]) -> None:
    hostname = data.get("hostname")
    if not hostname or not isinstance(hostname, str):
        errors.append("hostname required")
        return

    if len(hostname) > MAX_HOSTNAME_LENGTH:
        errors.append(f"hostname too long (max {MAX_HOSTNAME_LENGTH})")
    elif not is_valid_hostname(hostname):
        errors.append("invalid hostname format")


def _check_lengths(data: dict, errors: list[str]) -> None:
    for key, limit in LENGTH_LIMITS:
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            errors.append(f"{key} must be a string")
        elif len(value) > limit:
            errors.append(f"{key} too long (max {limit})")


def _check_uuids(data: dict, errors: list[str]) -> None:
    for key in UUID_FIELDS:
        value = data.get(key)
        if value is None or value == "":
            continue
        if not isinstance(value, str) or not UUID_PATTERN.fullmatch(value):
            errors.append(f"invalid {key} format")


def validate_tracking_payload(body: Any) -> ValidationResult:
    """
    Validate a decoded tracking request body.

    Args:
        body: Whatever the request's JSON decoded to

    Returns:
        ValidationResult with the normalized payload when valid, or every
        violated rule when not
    """
    if not isinstance(body, dict):
        return ValidationResult(valid=False, errors=["Invalid request body"])

    errors: list[str] = []
    _check_hostname(body, errors)
    _check_lengths(body, errors)
    _check_uuids(body, errors)

    if errors:
        return ValidationResult(valid=False, errors=errors)

    payload = TrackingPayload(
        hostname=body["hostname"],
        path=body.get("path") or None,
        page_title=body.get("pageTitle") or None,
        referrer=body.get("referrer") or None,
        visitor_id=body.get("visitorId") or None,
        session_id=body.get("sessionId") or None,
    )
    return ValidationResult(valid=True, payload=payload)
