"""
Referrer classification for traffic source analysis.

Incoming traffic is bucketed into four sources:
- Direct: No referrer, or one that does not parse as a URL
- Organic Search: Google
- Social Media: A configured set of social platforms
- Referral: Any other website

Matching is a substring test on the referrer's hostname, not an exact
domain match, so "notgoogle.example" counts as search.
"""

from enum import Enum
from urllib.parse import urlparse

from .config import DEFAULT_SOCIAL_PLATFORMS

SEARCH_ENGINE_MARKER = "google"


class ReferrerType(str, Enum):
    """Traffic source classification."""

    DIRECT = "Direct"
    ORGANIC = "Organic Search"
    SOCIAL = "Social Media"
    REFERRAL = "Referral"


def _extract_hostname(referrer: str) -> str | None:
    """
    Extract the lowercased hostname from an absolute URL.

    Returns None if the referrer is not an absolute URL with a host.
    """
    try:
        parsed = urlparse(referrer.strip())
        hostname = parsed.hostname
    except ValueError:
        return None

    if not parsed.scheme or not hostname:
        return None
    return hostname


def classify_referrer(
    referrer: str | None,
    social_platforms: tuple[str, ...] = DEFAULT_SOCIAL_PLATFORMS,
) -> ReferrerType:
    """
    Classify a referrer URL into a traffic source.

    Args:
        referrer: The raw referrer (can be empty or None)
        social_platforms: Hostname substrings counted as social media

    Examples:
        >>> classify_referrer("https://www.google.com/search?q=test")
        <ReferrerType.ORGANIC: 'Organic Search'>

        >>> classify_referrer("")
        <ReferrerType.DIRECT: 'Direct'>
    """
    if not referrer or not referrer.strip():
        return ReferrerType.DIRECT

    hostname = _extract_hostname(referrer)
    if not hostname:
        return ReferrerType.DIRECT

    if SEARCH_ENGINE_MARKER in hostname:
        return ReferrerType.ORGANIC

    if any(platform in hostname for platform in social_platforms):
        return ReferrerType.SOCIAL

    return ReferrerType.REFERRAL
