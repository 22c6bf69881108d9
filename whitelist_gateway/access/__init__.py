"""Access control for incoming connections."""

from .gateway import AuthorizationGateway
from .identity import IdentityResolver
from .scheduler import TimeoutScheduler

__all__ = [
    "AuthorizationGateway",
    "IdentityResolver",
    "TimeoutScheduler",
]
