"""Whitelist and temporary access request models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class GatewayError(Exception):
    """Base class for gateway errors."""


class RequestStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    TIMED_OUT = "timeout"

    def can_transition_to(self, other: "RequestStatus") -> bool:
        """Check whether a request in this status may move to ``other``."""
        return other in _TRANSITIONS[self]


# Timed-out rows leave the machine by deletion, never by a status change
_TRANSITIONS = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.TIMED_OUT}
    ),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.TIMED_OUT: frozenset(),
}


class DenyReason(Enum):
    PENDING_REVIEW = "pending review"
    REJECTED = "rejected"
    INTERNAL_ERROR = "internal error"


@dataclass(frozen=True)
class WhitelistEntry:
    username: str
    stable_id: Optional[str] = None


@dataclass(frozen=True)
class AccessRequest:
    username: str
    requested_at: datetime
    status: RequestStatus = RequestStatus.PENDING
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Verdict:
    """Outcome of a connection attempt."""

    allowed: bool
    reason: Optional[DenyReason] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, message: Optional[str] = None) -> "Verdict":
        return cls(allowed=False, reason=reason, message=message)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }
