"""Configuration — package defaults merged with YAML files and environment."""

from ravenview.config.defaults import get_defaults
from ravenview.config.hierarchy import load_config_hierarchy

__all__ = ["get_defaults", "load_config_hierarchy"]
