"""Tests for package defaults."""

from ravenview.config.defaults import (
    DEFAULT_LOG_LEVEL,
    DEFAULT_MEDIA_CONCURRENCY,
    DEFAULT_NHTSA_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SINGLE_FLIGHT_REFRESH,
    get_defaults,
)


class TestDefaults:
    def test_default_concurrency(self):
        assert DEFAULT_MEDIA_CONCURRENCY == 5

    def test_single_flight_off_by_default(self):
        assert DEFAULT_SINGLE_FLIGHT_REFRESH is False

    def test_default_timeout(self):
        assert DEFAULT_REQUEST_TIMEOUT == 30.0

    def test_default_log_level(self):
        assert DEFAULT_LOG_LEVEL == "WARNING"

    def test_get_defaults_returns_dict(self):
        d = get_defaults()
        assert isinstance(d, dict)
        assert d["nhtsa_url"] == DEFAULT_NHTSA_URL
        assert d["details_concurrency"] == 5

    def test_get_defaults_has_all_keys(self):
        d = get_defaults()
        expected_keys = {
            "api_url", "request_timeout", "nhtsa_url",
            "media_concurrency", "geofence_concurrency",
            "message_concurrency", "details_concurrency",
            "single_flight_refresh", "log_level",
        }
        assert expected_keys == set(d.keys())

    def test_credentials_have_no_default(self):
        d = get_defaults()
        assert "api_key" not in d
        assert "api_secret" not in d
