"""Package-level default configuration values."""

from __future__ import annotations

from typing import Any

# Default API settings
DEFAULT_API_URL = ""
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_NHTSA_URL = "https://vpic.nhtsa.dot.gov/api/vehicles"

# Default concurrency settings
DEFAULT_MEDIA_CONCURRENCY = 5
DEFAULT_GEOFENCE_CONCURRENCY = 5
DEFAULT_MESSAGE_CONCURRENCY = 5
DEFAULT_DETAILS_CONCURRENCY = 5

# Default auth settings
DEFAULT_SINGLE_FLIGHT_REFRESH = False

# Log level
DEFAULT_LOG_LEVEL = "WARNING"


def get_defaults() -> dict[str, Any]:
    """Return all defaults as a flat dictionary for merging."""
    return {
        "api_url": DEFAULT_API_URL,
        "request_timeout": DEFAULT_REQUEST_TIMEOUT,
        "nhtsa_url": DEFAULT_NHTSA_URL,
        "media_concurrency": DEFAULT_MEDIA_CONCURRENCY,
        "geofence_concurrency": DEFAULT_GEOFENCE_CONCURRENCY,
        "message_concurrency": DEFAULT_MESSAGE_CONCURRENCY,
        "details_concurrency": DEFAULT_DETAILS_CONCURRENCY,
        "single_flight_refresh": DEFAULT_SINGLE_FLIGHT_REFRESH,
        "log_level": DEFAULT_LOG_LEVEL,
    }
