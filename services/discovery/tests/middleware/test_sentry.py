"""Tests for Sentry setup and header scrubbing."""
from unittest.mock import patch

from services.discovery.middleware import sentry


class TestStripSensitiveData:
    def test_request_headers_filtered(self):
        event = {"request": {"headers": {"Authorization": "Bearer x", "X-Admin-User-Id": "7", "Accept": "*/*"}}}
        out = sentry._strip_sensitive_data(event, {})
        headers = out["request"]["headers"]
        assert headers["Authorization"] == "[FILTERED]"
        assert headers["X-Admin-User-Id"] == "[FILTERED]"
        assert headers["Accept"] == "*/*"

    def test_breadcrumb_headers_filtered(self):
        event = {"breadcrumbs": {"values": [{"data": {"headers": {"x-api-key": "sk-1"}}}]}}
        out = sentry._strip_sensitive_data(event, {})
        assert out["breadcrumbs"]["values"][0]["data"]["headers"]["x-api-key"] == "[FILTERED]"

    def test_event_without_request_passes_through(self):
        event = {"message": "boom"}
        assert sentry._strip_sensitive_data(event, {}) == {"message": "boom"}


class TestSetupSentry:
    def test_disabled_without_dsn(self):
        with patch.object(sentry.settings, "sentry_dsn", ""), patch("sentry_sdk.init") as init:
            assert sentry.setup_sentry() is False
        init.assert_not_called()

    def test_enabled_with_dsn(self):
        with patch.object(sentry.settings, "sentry_dsn", "https://key@example.ingest.sentry.io/1"), \
                patch("sentry_sdk.init") as init:
            assert sentry.setup_sentry() is True
        kwargs = init.call_args.kwargs
        assert kwargs["before_send"] is sentry._strip_sensitive_data
        assert kwargs["send_default_pii"] is False
