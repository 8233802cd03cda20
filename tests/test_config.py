"""Tests for configuration and the top-level setup helpers."""

import pytest

from sitepulse import Analytics, setup_analytics
from sitepulse.config import AnalyticsConfig, ConfigError
from sitepulse.mailer import ResendMailer
from sitepulse.store import D1EventStore, InMemoryEventStore


class TestAnalyticsConfig:
    """Test AnalyticsConfig validation."""

    def test_defaults(self):
        config = AnalyticsConfig()
        assert config.ingest_rate_limit == 30
        assert config.api_rate_limit == 60
        assert config.default_days == 7
        assert config.max_days == 30
        assert config.milestones == (100, 500, 1000, 5000, 10000, 50000, 100000)
        assert config.has_d1 is False
        assert config.has_mailer is False

    def test_has_d1_needs_all_credentials(self):
        assert AnalyticsConfig(d1_database_id="db", cf_account_id="acct").has_d1 is False
        assert AnalyticsConfig(d1_database_id="db", cf_account_id="acct", cf_api_token="tok").has_d1 is True

    def test_non_positive_limit_rejected(self):
        with pytest.raises(ConfigError, match="ingest_rate_limit"):
            AnalyticsConfig(ingest_rate_limit=0)

    def test_default_days_above_max_rejected(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig(default_days=40, max_days=30)

    def test_milestones_must_ascend(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig(milestones=(500, 100))

    def test_empty_milestones_rejected(self):
        with pytest.raises(ConfigError):
            AnalyticsConfig(milestones=())

    def test_warns_without_mailer(self, caplog):
        with caplog.at_level("WARNING", logger="sitepulse.config"):
            AnalyticsConfig()
        assert "milestone emails will not be delivered" in caplog.text


class TestSetupAnalytics:
    """Test setup_analytics and Analytics wiring."""

    def test_in_memory_without_d1(self):
        analytics = setup_analytics()
        assert isinstance(analytics.store, InMemoryEventStore)
        assert analytics.mailer is None

    def test_d1_and_resend_when_configured(self):
        analytics = setup_analytics(
            d1_database_id="db",
            cf_account_id="acct",
            cf_api_token="tok",
            resend_api_key="re_test",
        )
        assert isinstance(analytics.store, D1EventStore)
        assert isinstance(analytics.mailer, ResendMailer)

    def test_extra_options_reach_config(self):
        analytics = setup_analytics(api_rate_limit=5)
        assert analytics.config.api_rate_limit == 5

    def test_explicit_store_wins(self):
        store = InMemoryEventStore()
        analytics = Analytics(AnalyticsConfig(d1_database_id="db", cf_account_id="a", cf_api_token="t"), store=store)
        assert analytics.store is store

    def test_tracking_script(self):
        analytics = setup_analytics(collect_url="https://analytics.example.com/track")
        script = analytics.tracking_script()

        assert script.startswith("<script>")
        assert '"https://analytics.example.com/track"' in script
        assert "localStorage" in script
        assert "sessionStorage" in script
        assert "keepalive:true" in script
        assert "pushState" in script
        assert "popstate" in script
