"""Two-tier configuration (static + dynamic) for Dota Stalker."""

from .manager import ConfigManager, initialize_config
from .registry import REGISTRY, ConfigKey

__all__ = ["ConfigKey", "ConfigManager", "REGISTRY", "initialize_config"]
