"""Core gateway application."""

from .events import ConnectionEvent, LoginEventSource
from .manager import GatewayService

__all__ = ["GatewayService", "LoginEventSource", "ConnectionEvent"]
