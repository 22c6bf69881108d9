"""Configuration system for the whitelist gateway."""

from .manager import ConfigManager
from .models import DatabaseConfig, GatewayConfig, MessagesConfig, TimeoutConfig

__all__ = [
    "GatewayConfig",
    "DatabaseConfig",
    "TimeoutConfig",
    "MessagesConfig",
    "ConfigManager",
]
