"""
User-Agent classification for device and browser breakdowns.

User-Agents are notoriously messy (Chrome claims to be Mozilla, Safari, and
Chrome all at once), so the rules below stay coarse: a device
class and a browser family, nothing more.

Key Design Decisions:
- Mobile is checked before tablet. A UA matching both (some Android tablets
  and iPads say "Mobile") is classified as Mobile.
- Browsers are checked in a fixed order and the first match wins.
- Bot-like agents are flagged, never rejected. Bot traffic is recorded like
  any other visit.

Privacy Note:
We extract only the device class and browser family, not versions or device
identifiers.
"""

import re
from dataclasses import dataclass
from enum import Enum


class DeviceType(str, Enum):
    """Device category."""
    DESKTOP = "Desktop"
    MOBILE = "Mobile"
    TABLET = "Tablet"


DEFAULT_BROWSER = "Other"

# =============================================================================
# DETECTION PATTERNS
# =============================================================================
# Order matters! Each tuple: (must_match, must_not_match, browser_name)

BROWSER_PATTERNS = [
    (r"chrome", r"edge", "Chrome"),
    (r"safari", r"chrome", "Safari"),
    (r"firefox", None, "Firefox"),
    (r"edge", None, "Edge"),
]

MOBILE_PATTERN = re.compile(r"mobile", re.IGNORECASE)
TABLET_PATTERN = re.compile(r"tablet|ipad", re.IGNORECASE)

BOT_INDICATORS = ("bot", "crawler", "spider", "scraper")


@dataclass(frozen=True)
class UserAgentInfo:
    """
    Classified user-agent information.

    Attributes:
        device_type: Mobile, Tablet or Desktop
        browser: Chrome, Safari, Firefox, Edge or Other
        is_bot_like: The UA contains a bot-like substring
    """
    device_type: DeviceType = DeviceType.DESKTOP
    browser: str = DEFAULT_BROWSER
    is_bot_like: bool = False


def _detect_device_type(ua: str) -> DeviceType:
    if MOBILE_PATTERN.search(ua):
        return DeviceType.MOBILE
    if TABLET_PATTERN.search(ua):
        return DeviceType.TABLET
    return DeviceType.DESKTOP


def _detect_browser(ua: str) -> str:
    for pattern, exclude, browser_name in BROWSER_PATTERNS:
        if not re.search(pattern, ua, re.IGNORECASE):
            continue
        if exclude and re.search(exclude, ua, re.IGNORECASE):
            continue
        return browser_name
    return DEFAULT_BROWSER


def is_bot_like(user_agent: str | None) -> bool:
    """Check for crawler-style substrings in a user-agent."""
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(indicator in ua for indicator in BOT_INDICATORS)


def classify_user_agent(user_agent: str | None) -> UserAgentInfo:
    """
    Classify a user-agent string into device class and browser family.

    Args:
        user_agent: The User-Agent header value (may be empty or None)

    Returns:
        UserAgentInfo; an empty UA yields Desktop / Other

    Examples:
        >>> classify_user_agent("Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36")
        UserAgentInfo(device_type=<DeviceType.DESKTOP: 'Desktop'>, browser='Chrome', is_bot_like=False)
    """
    if not user_agent or not user_agent.strip():
        return UserAgentInfo()

    return UserAgentInfo(
        device_type=_detect_device_type(user_agent),
        browser=_detect_browser(user_agent),
        is_bot_like=is_bot_like(user_agent),
    )
