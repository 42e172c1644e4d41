"""Layered configuration for ravenview.

Layers, lowest to highest priority: package defaults, the global file
``~/.ravenview/config.yaml``, the nearest ``ravenview.yaml`` at or above
the working directory, ``RAVEN_API_*`` / ``RAVENVIEW_*`` environment
variables, and keyword overrides passed by the caller.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from ravenview.config.defaults import get_defaults

logger = logging.getLogger(__name__)

_GLOBAL_CONFIG_PATH = Path.home() / ".ravenview" / "config.yaml"
_PROJECT_CONFIG_NAME = "ravenview.yaml"

_CREDENTIAL_KEYS = frozenset({"api_key", "api_secret"})

_ENV_MAP: dict[str, str] = {
    "RAVEN_API_URL": "api_url",
    "RAVEN_API_KEY": "api_key",
    "RAVEN_API_SECRET": "api_secret",
    "RAVENVIEW_REQUEST_TIMEOUT": "request_timeout",
    "RAVENVIEW_NHTSA_URL": "nhtsa_url",
    "RAVENVIEW_MEDIA_CONCURRENCY": "media_concurrency",
    "RAVENVIEW_GEOFENCE_CONCURRENCY": "geofence_concurrency",
    "RAVENVIEW_MESSAGE_CONCURRENCY": "message_concurrency",
    "RAVENVIEW_DETAILS_CONCURRENCY": "details_concurrency",
    "RAVENVIEW_SINGLE_FLIGHT_REFRESH": "single_flight_refresh",
    "RAVENVIEW_LOG_LEVEL": "log_level",
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Env values arrive as strings; keys not listed here stay strings
_CONVERTERS: dict[str, Callable[[str], Any]] = {
    "request_timeout": float,
    "media_concurrency": int,
    "geofence_concurrency": int,
    "message_concurrency": int,
    "details_concurrency": int,
    "single_flight_refresh": _parse_bool,
}


def load_config_hierarchy(**runtime_overrides: Any) -> dict[str, Any]:
    """Resolve the effective configuration.

    Overrides whose value is None are treated as not given, so CLI options
    left unset do not mask lower layers.
    """
    config = get_defaults()
    known = set(config) | _CREDENTIAL_KEYS

    project_path = _find_project_config()
    layers: list[tuple[str, dict[str, Any]]] = [
        (str(_GLOBAL_CONFIG_PATH), _load_yaml_config(_GLOBAL_CONFIG_PATH) or {}),
        (str(project_path), (project_path and _load_yaml_config(project_path)) or {}),
        ("environment", _load_env_vars()),
        ("runtime", {k: v for k, v in runtime_overrides.items() if v is not None}),
    ]

    for source, values in layers:
        if not values:
            continue
        unknown = sorted(set(values) - known)
        if unknown:
            logger.warning("Unknown config keys in %s: %s", source, ", ".join(unknown))
        logger.debug("Config from %s sets %s", source, ", ".join(sorted(values)))
        config.update(values)

    return config


def _load_yaml_config(path: Path) -> dict[str, Any] | None:
    """Mapping stored in *path*, or None if absent, unreadable or not a mapping."""
    if not path.is_file():
        return None
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, ignoring", path)
        return None
    return data


def _find_project_config() -> Path | None:
    cwd = Path.cwd()
    for directory in (cwd, *cwd.parents):
        candidate = directory / _PROJECT_CONFIG_NAME
        if candidate.is_file():
            return candidate
    return None


def _load_env_vars() -> dict[str, Any]:
    return {
        key: _coerce_env_value(key, os.environ[env_key])
        for env_key, key in _ENV_MAP.items()
        if env_key in os.environ
    }


def _coerce_env_value(key: str, value: str) -> Any:
    """Convert one env string for *key*; unconvertible numbers stay strings."""
    convert = _CONVERTERS.get(key)
    if convert is None:
        return value
    try:
        return convert(value)
    except ValueError:
        logger.warning("Cannot convert env var for '%s': %r", key, value)
        return value
