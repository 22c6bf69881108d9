"""Authorization decision for incoming connections."""

import logging
from typing import Optional

from ..config.models import MessagesConfig
from ..models import DenyReason, RequestStatus, Verdict
from ..storage.base import AccessRequestRepository, CreateResult
from .identity import IdentityResolver
from .scheduler import TimeoutScheduler

logger = logging.getLogger(__name__)


class AuthorizationGateway:
    """Decides whether a connecting user may join.

    Whitelisted users are let in. Everyone else goes through a temporary
    access request that an administrator approves or rejects out of band:

        (absent) -> pending -> approved | rejected | timeout
        timeout  -> deleted on the next attempt -> pending

    Nothing is cached between calls; every decision re-reads the repository.
    Storage failures deny the connection.
    """

    def __init__(
        self,
        repository: AccessRequestRepository,
        scheduler: TimeoutScheduler,
        messages: Optional[MessagesConfig] = None,
        resolver: Optional[IdentityResolver] = None,
    ):
        self.repository = repository
        self.scheduler = scheduler
        self.messages = messages or MessagesConfig()
        self.resolver = resolver or IdentityResolver(repository)

    async def authorize(self, username: str, stable_id: Optional[str] = None) -> Verdict:
        """Return the verdict for a connection attempt by ``username``."""
        try:
            return await self._authorize(username, stable_id)
        except Exception as e:
            logger.error(f"Failed to check whitelist for {username}: {e}", exc_info=True)
            return Verdict.deny(DenyReason.INTERNAL_ERROR, self.messages.internal_error)

    async def _authorize(self, username: str, stable_id: Optional[str]) -> Verdict:
        if await self.repository.find_whitelist_entry(username) is not None:
            logger.info(f"{username} was granted access (username match)")
            return Verdict.allow()

        if await self.resolver.resolve(username, stable_id) is not None:
            logger.info(f"{username} was granted access (stable id match)")
            return Verdict.allow()

        return await self._check_access_request(username)

    async def _check_access_request(self, username: str) -> Verdict:
        request = await self.repository.find_access_request(username)

        if request is None:
            return await self._open_request(username)

        if request.status is RequestStatus.PENDING:
            return self._pending()

        if request.status is RequestStatus.REJECTED:
            return Verdict.deny(DenyReason.REJECTED, self.messages.rejected)

        if request.status is RequestStatus.APPROVED:
            logger.info(f"{username} logged in with approved temporary access")
            return Verdict.allow()

        # Timed out: start a new cycle. The status guard keeps a concurrent
        # caller's fresh request alive.
        await self.repository.delete_access_request(username, RequestStatus.TIMED_OUT)
        logger.info(f"Removed timed out request of {username}")
        return await self._open_request(username)

    async def _open_request(self, username: str) -> Verdict:
        result = await self.repository.create_access_request(username)
        if result is CreateResult.CONFLICT:
            logger.debug(f"Request of {username} was created concurrently")
            return self._pending()

        self.scheduler.schedule_expiry(username)
        logger.info(f"{username} requested temporary login")

        message = self.messages.request_created.format(
            timeout=f"{self.scheduler.request_timeout:g}"
        )
        return Verdict.deny(DenyReason.PENDING_REVIEW, message)

    def _pending(self) -> Verdict:
        return Verdict.deny(DenyReason.PENDING_REVIEW, self.messages.pending)
