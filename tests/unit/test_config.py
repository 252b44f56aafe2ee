"""
Site Publisher - Configuration Unit Tests

Tests for settings validation, credential censoring and log context.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from config.logging import (
    ConsoleFormatter,
    ContextFilter,
    JSONFormatter,
    LogContext,
    censor_sensitive_data,
)
from config.settings import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="publishing.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


# =============================================================================
# Test Settings
# =============================================================================

class TestSettings:
    """Tests for Settings validation."""

    def test_defaults(self):
        settings = _settings()

        assert settings.hosting_api_base_url == "https://firebasehosting.googleapis.com/v1beta1"
        assert settings.hosting_upload_concurrency == 8
        assert settings.preview_channel_id == "preview"
        assert settings.preview_channel_ttl_seconds == 604_800

    def test_fallback_url_templates_end_at_root(self):
        settings = _settings()

        live = settings.live_url_template.format(site_id="s", channel_id="live")
        preview = settings.channel_url_template.format(site_id="s", channel_id="preview")

        assert live == "https://s.web.app/"
        assert preview == "https://s--preview.web.app/"

    def test_log_level_is_uppercased(self):
        assert _settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            _settings(log_level="chatty")

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            _settings(environment="qa")

    @pytest.mark.parametrize("level", [0, 10])
    def test_compression_level_bounds(self, level):
        with pytest.raises(ValidationError):
            _settings(hosting_compression_level=level)

    def test_upload_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            _settings(hosting_upload_concurrency=0)

    def test_preview_channel_cannot_be_live(self):
        with pytest.raises(ValidationError):
            _settings(preview_channel_id="live")

    def test_preview_channel_id_format(self):
        with pytest.raises(ValidationError):
            _settings(preview_channel_id="has spaces")
        assert _settings(preview_channel_id="Staging-1").preview_channel_id == "staging-1"

    def test_base_url_trailing_slash_stripped(self):
        settings = _settings(hosting_api_base_url="https://hosting.test/v1beta1/")
        assert settings.hosting_api_base_url == "https://hosting.test/v1beta1"

    def test_is_hosting_configured(self):
        assert _settings(
            hosting_site_id=None, hosting_access_token=None
        ).is_hosting_configured is False
        assert _settings(
            hosting_site_id="site", hosting_access_token="tok"
        ).is_hosting_configured is True

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("HOSTING_SITE_ID", "from-env")
        assert _settings().hosting_site_id == "from-env"

    def test_relative_output_path_resolves_to_project_root(self):
        settings = _settings(output_directory="public_html")
        assert settings.get_output_path() == settings.project_root / "public_html"

    def test_no_log_file(self):
        assert _settings(log_file="").get_log_file_path() is None


# =============================================================================
# Test Censoring
# =============================================================================

class TestCensoring:
    """Tests for censor_sensitive_data()."""

    def test_bearer_token(self):
        result = censor_sensitive_data("Authorization: Bearer abc.def-123")
        assert "abc.def-123" not in result
        assert "Bearer [REDACTED]" in result

    def test_oauth_access_token(self):
        result = censor_sensitive_data("using ya29.a0AfH6SMBx-secret for call")
        assert "ya29" not in result

    def test_token_assignment(self):
        result = censor_sensitive_data('{"access_token": "s3cr3t"}')
        assert "s3cr3t" not in result

    def test_plain_text_unchanged(self):
        text = "Uploaded 3 of 3 required files"
        assert censor_sensitive_data(text) == text

    def test_non_string_passthrough(self):
        assert censor_sensitive_data(42) == 42


# =============================================================================
# Test Log Context
# =============================================================================

class TestLogContext:
    """Tests for LogContext and ContextFilter."""

    def test_context_fields_added_to_record(self):
        record = _record()
        with LogContext(site_id="test-site", channel="live"):
            ContextFilter().filter(record)

        assert record.site_id == "test-site"
        assert record.channel == "live"

    def test_context_restored_on_exit(self):
        with LogContext(site_id="outer"):
            with LogContext(channel="preview"):
                assert LogContext.get_context() == {"site_id": "outer", "channel": "preview"}
            assert LogContext.get_context() == {"site_id": "outer"}
        assert LogContext.get_context() == {}

    def test_bind_adds_to_active_context(self):
        with LogContext(site_id="s"):
            LogContext.bind(version_id="sites/s/versions/v1")
            assert LogContext.get_context()["version_id"] == "sites/s/versions/v1"
        assert "version_id" not in LogContext.get_context()

    def test_explicit_extra_wins(self):
        record = _record()
        record.channel = "explicit"
        with LogContext(channel="context"):
            ContextFilter().filter(record)

        assert record.channel == "explicit"

    def test_json_formatter_includes_context_and_censors(self):
        record = _record("calling with Bearer abc123")
        with LogContext(site_id="test-site"):
            ContextFilter().filter(record)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["extra"]["site_id"] == "test-site"
        assert "abc123" not in entry["message"]
        assert entry["level"] == "INFO"

    def test_console_formatter_lists_extras(self):
        record = _record("Released to live")
        record.version_id = "sites/s/versions/v1"

        line = ConsoleFormatter().format(record)

        assert "| INFO" in line
        assert line.endswith("Released to live [version_id=sites/s/versions/v1]")
