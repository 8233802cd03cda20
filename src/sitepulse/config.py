"""
Configuration for SitePulse.
"""
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Milestone ladder (unique visitors)
DEFAULT_MILESTONES = (100, 500, 1000, 5000, 10000, 50000, 100000)

# Hostname substrings counted as social traffic
DEFAULT_SOCIAL_PLATFORMS = ("facebook", "twitter", "instagram", "linkedin")


class ConfigError(ValueError):
    """Raised when an AnalyticsConfig value is out of range."""
    pass


@dataclass
class AnalyticsConfig:
    """Configuration for a SitePulse deployment."""

    # Cloudflare D1 storage (optional; an in-memory store is used without it)
    d1_database_id: str | None = None
    cf_account_id: str | None = None
    cf_api_token: str | None = None

    # Milestone email delivery (Resend)
    resend_api_key: str | None = None
    email_from: str = "Analytics <onboarding@resend.dev>"

    # Public URL of the ingestion endpoint, used by the tracking snippet
    collect_url: str = "/track"

    # Rate limiting (requests per window, per client IP)
    ingest_rate_limit: int = 30
    api_rate_limit: int = 60
    rate_limit_window_seconds: int = 60

    # Read API window
    default_days: int = 7
    max_days: int = 30

    # Dashboard views
    dashboard_days: int = 7
    dashboard_top_pages: int = 5
    api_top_pages: int = 10
    realtime_window_minutes: int = 5

    social_platforms: tuple[str, ...] = DEFAULT_SOCIAL_PLATFORMS
    milestones: tuple[int, ...] = DEFAULT_MILESTONES

    cors_origins: tuple[str, ...] = ("*",)

    @property
    def has_d1(self) -> bool:
        """Check if D1 storage credentials are configured."""
        return bool(self.d1_database_id and self.cf_account_id and self.cf_api_token)

    @property
    def has_mailer(self) -> bool:
        """Check if milestone emails can be delivered."""
        return bool(self.resend_api_key)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_limits()
        self._validate_milestones()

        if not self.has_mailer:
            logger.warning(
                "No resend_api_key configured: milestone emails will not be delivered"
            )

    def _validate_limits(self) -> None:
        positive = {
            "ingest_rate_limit": self.ingest_rate_limit,
            "api_rate_limit": self.api_rate_limit,
            "rate_limit_window_seconds": self.rate_limit_window_seconds,
            "default_days": self.default_days,
            "max_days": self.max_days,
            "dashboard_days": self.dashboard_days,
            "dashboard_top_pages": self.dashboard_top_pages,
            "api_top_pages": self.api_top_pages,
            "realtime_window_minutes": self.realtime_window_minutes,
        }
        for name, value in positive.items():
            if value < 1:
                raise ConfigError(f"{name} must be at least 1, got {value}")

        if self.default_days > self.max_days:
            raise ConfigError(
                f"default_days ({self.default_days}) cannot exceed max_days ({self.max_days})"
            )

    def _validate_milestones(self) -> None:
        if not self.milestones:
            raise ConfigError("milestones must not be empty")
        if list(self.milestones) != sorted(set(self.milestones)):
            raise ConfigError("milestones must be strictly ascending")
        if self.milestones[0] < 1:
            raise ConfigError("milestones must be positive")
