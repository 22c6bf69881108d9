"""Base repository interface."""

from abc import ABC, abstractmethod
from datetime import timedelta
from enum import Enum
from typing import List, Optional

from ..models import AccessRequest, GatewayError, RequestStatus, WhitelistEntry


class StorageUnavailable(GatewayError):
    """Raised when the backing store cannot complete an operation."""


class CreateResult(Enum):
    CREATED = "created"
    CONFLICT = "conflict"


class UpdateResult(Enum):
    UPDATED = "updated"
    NO_MATCH = "no_match"


class RenameResult(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"


class AccessRequestRepository(ABC):
    """Store of whitelist entries and temporary access requests.

    Every operation is atomic with respect to concurrent callers. At most one
    access request exists per username; ``create_access_request`` reports
    ``CONFLICT`` instead of raising when that row is already present.
    """

    async def initialize(self) -> None:
        """Prepare the store (create tables and the like)."""

    async def close(self) -> None:
        """Release any resources held by the store."""

    @abstractmethod
    async def find_whitelist_entry(self, username: str) -> Optional[WhitelistEntry]:
        pass

    @abstractmethod
    async def find_whitelist_entry_by_stable_id(
        self, stable_id: str
    ) -> Optional[WhitelistEntry]:
        pass

    @abstractmethod
    async def rename_whitelist_entry(
        self, stable_id: str, new_username: str
    ) -> RenameResult:
        pass

    @abstractmethod
    async def find_access_request(self, username: str) -> Optional[AccessRequest]:
        pass

    @abstractmethod
    async def create_access_request(self, username: str) -> CreateResult:
        pass

    @abstractmethod
    async def set_access_request_status(
        self, username: str, expected: RequestStatus, new: RequestStatus
    ) -> UpdateResult:
        """Move a request from ``expected`` to ``new``.

        ``NO_MATCH`` means the row is gone or its status is no longer
        ``expected``.
        """

    @abstractmethod
    async def delete_access_request(
        self, username: str, status: Optional[RequestStatus] = None
    ) -> None:
        """Delete the request of ``username``, only if it has ``status`` when given."""

    @abstractmethod
    async def delete_requests_older_than(self, max_age: timedelta) -> int:
        """Delete requests created more than ``max_age`` ago, whatever their status."""

    @abstractmethod
    async def add_whitelist_entry(
        self, username: str, stable_id: Optional[str] = None
    ) -> WhitelistEntry:
        pass

    @abstractmethod
    async def list_whitelist_entries(self) -> List[WhitelistEntry]:
        pass

    @abstractmethod
    async def list_access_requests(self) -> List[AccessRequest]:
        pass

    def _check_transition(self, expected: RequestStatus, new: RequestStatus) -> None:
        if not expected.can_transition_to(new):
            raise ValueError(
                f"Illegal request status transition: {expected.value} -> {new.value}"
            )
