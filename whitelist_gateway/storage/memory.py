"""In-memory repository."""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from ..models import AccessRequest, RequestStatus, WhitelistEntry
from .base import (
    AccessRequestRepository,
    CreateResult,
    RenameResult,
    StorageUnavailable,
    UpdateResult,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRepository(AccessRequestRepository):
    """Repository kept in process memory, for tests and single-node setups."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.whitelist: Dict[str, WhitelistEntry] = {}
        self.requests: Dict[str, AccessRequest] = {}
        self._lock = asyncio.Lock()

    async def find_whitelist_entry(self, username: str) -> Optional[WhitelistEntry]:
        async with self._lock:
            return self.whitelist.get(username)

    async def find_whitelist_entry_by_stable_id(
        self, stable_id: str
    ) -> Optional[WhitelistEntry]:
        async with self._lock:
            return self._by_stable_id(stable_id)

    async def rename_whitelist_entry(
        self, stable_id: str, new_username: str
    ) -> RenameResult:
        async with self._lock:
            entry = self._by_stable_id(stable_id)
            if entry is None:
                return RenameResult.NOT_FOUND

            holder = self.whitelist.get(new_username)
            if holder is not None and holder.stable_id != stable_id:
                raise StorageUnavailable(
                    f"Username {new_username} is already whitelisted for another identity"
                )

            del self.whitelist[entry.username]
            self.whitelist[new_username] = replace(entry, username=new_username)
            return RenameResult.OK

    async def find_access_request(self, username: str) -> Optional[AccessRequest]:
        async with self._lock:
            return self.requests.get(username)

    async def create_access_request(self, username: str) -> CreateResult:
        async with self._lock:
            if username in self.requests:
                return CreateResult.CONFLICT

            self.requests[username] = AccessRequest(
                username=username, requested_at=self.clock()
            )
            return CreateResult.CREATED

    async def set_access_request_status(
        self, username: str, expected: RequestStatus, new: RequestStatus
    ) -> UpdateResult:
        self._check_transition(expected, new)

        async with self._lock:
            request = self.requests.get(username)
            if request is None or request.status != expected:
                return UpdateResult.NO_MATCH

            self.requests[username] = replace(
                request, status=new, updated_at=self.clock()
            )
            return UpdateResult.UPDATED

    async def delete_access_request(
        self, username: str, status: Optional[RequestStatus] = None
    ) -> None:
        async with self._lock:
            request = self.requests.get(username)
            if request is not None and status in (None, request.status):
                del self.requests[username]

    async def delete_requests_older_than(self, max_age: timedelta) -> int:
        async with self._lock:
            cutoff = self.clock() - max_age
            stale = [
                username
                for username, request in self.requests.items()
                if request.requested_at < cutoff
            ]

            for username in stale:
                del self.requests[username]

            return len(stale)

    async def add_whitelist_entry(
        self, username: str, stable_id: Optional[str] = None
    ) -> WhitelistEntry:
        async with self._lock:
            if username in self.whitelist:
                raise ValueError(f"Username already whitelisted: {username}")
            if stable_id is not None and self._by_stable_id(stable_id) is not None:
                raise ValueError(f"Stable id already whitelisted: {stable_id}")

            entry = WhitelistEntry(username=username, stable_id=stable_id)
            self.whitelist[username] = entry
            return entry

    async def list_whitelist_entries(self) -> List[WhitelistEntry]:
        async with self._lock:
            return sorted(self.whitelist.values(), key=lambda e: e.username)

    async def list_access_requests(self) -> List[AccessRequest]:
        async with self._lock:
            return sorted(self.requests.values(), key=lambda r: r.requested_at)

    def _by_stable_id(self, stable_id: str) -> Optional[WhitelistEntry]:
        for entry in self.whitelist.values():
            if entry.stable_id == stable_id:
                return entry
        return None
