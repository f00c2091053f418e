"""
Unit Tests - Configuration
"""
import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

from budget_reports.config import ReportingSettings, get_settings
from budget_reports.config.settings import DatabaseSettings
from budget_reports.config.logging import configure_logging


class TestReportingSettings:
    """Tests for ReportingSettings"""

    def test_defaults(self):
        settings = ReportingSettings()

        assert settings.lookup_timeout_seconds == 10.0
        assert settings.census_missing_policy == "sentinel"
        assert settings.census_sentinel_value == Decimal("1")
        assert settings.census_budgets_enabled is True
        assert settings.uncategorized_label == "Uncategorized"

    def test_policy_normalized(self):
        assert ReportingSettings(census_missing_policy="SKIP").census_missing_policy == "skip"

    def test_invalid_policy(self):
        with pytest.raises(ValidationError):
            ReportingSettings(census_missing_policy="zero")

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            ReportingSettings(lookup_timeout_seconds=0)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("REPORT_CENSUS_MISSING_POLICY", "skip")
        monkeypatch.setenv("REPORT_LOOKUP_TIMEOUT_SECONDS", "2.5")

        settings = ReportingSettings()

        assert settings.census_missing_policy == "skip"
        assert settings.lookup_timeout_seconds == 2.5


class TestDatabaseSettings:
    """Tests for DatabaseSettings"""

    def test_async_url(self):
        settings = DatabaseSettings(host="db", port=6543, user="reports", password="s3cret")

        assert settings.async_url == "postgresql+asyncpg://reports:s3cret@db:6543/budget_reports"

    def test_no_pool_tuning_under_null_pool(self):
        """Test only settings the engine actually uses are exposed"""
        assert {"pool_size", "max_overflow", "pool_timeout"}.isdisjoint(DatabaseSettings.model_fields)


class TestLogging:
    """Tests for configure_logging"""

    def test_configure_logging(self):
        configure_logging("WARNING", "text")

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").propagate is False

    def test_settings_cached(self):
        assert get_settings() is get_settings()
