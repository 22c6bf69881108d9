"""Expiry timers and the stale request sweep."""

import asyncio
import logging
from datetime import timedelta
from typing import Optional, Set

from ..config.models import TimeoutConfig
from ..models import RequestStatus
from ..storage.base import AccessRequestRepository, UpdateResult

logger = logging.getLogger(__name__)


class TimeoutScheduler:
    """Runs per-request expiry timers and the periodic sweep.

    Timers are never cancelled on the request path. Expiry is a conditional
    ``pending -> timeout`` update, so a late or duplicated timer cannot
    overwrite an administrator's decision or a newer request.
    """

    def __init__(
        self,
        repository: AccessRequestRepository,
        request_timeout: float = 60,
        sweep_interval: float = 30,
        sweep_max_age: float = 90,
    ):
        self.repository = repository
        self.request_timeout = request_timeout
        self.sweep_interval = sweep_interval
        self.sweep_max_age = timedelta(seconds=sweep_max_age)
        self.sweep_task: Optional[asyncio.Task] = None
        self._expiry_tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls, repository: AccessRequestRepository, config: TimeoutConfig
    ) -> "TimeoutScheduler":
        return cls(
            repository,
            request_timeout=config.request_timeout,
            sweep_interval=config.sweep_interval,
            sweep_max_age=config.sweep_max_age,
        )

    @property
    def pending_timers(self) -> int:
        return len(self._expiry_tasks)

    def schedule_expiry(self, username: str) -> asyncio.Task:
        """Expire the pending request of ``username`` after the request timeout."""
        task = asyncio.create_task(
            self._expire_later(username), name=f"expire_{username}"
        )
        self._expiry_tasks.add(task)
        task.add_done_callback(self._expiry_tasks.discard)
        return task

    async def _expire_later(self, username: str) -> None:
        await asyncio.sleep(self.request_timeout)
        await self.expire(username)

    async def expire(self, username: str) -> bool:
        """Mark the request timed out if it is still pending."""
        try:
            result = await self.repository.set_access_request_status(
                username, RequestStatus.PENDING, RequestStatus.TIMED_OUT
            )
        except Exception as e:
            logger.error(f"Failed to update timeout status for {username}: {e}")
            return False

        if result is UpdateResult.UPDATED:
            logger.info(f"Temporary login request of {username} timed out")
            return True

        logger.debug(f"Request of {username} no longer pending, expiry skipped")
        return False

    async def wait_for_expiry(self) -> None:
        """Wait until every outstanding expiry timer has fired."""
        if self._expiry_tasks:
            await asyncio.gather(*self._expiry_tasks, return_exceptions=True)

    def start_sweep(self) -> asyncio.Task:
        """Start the periodic sweep in the background."""
        if self.sweep_task is None or self.sweep_task.done():
            self.sweep_task = asyncio.create_task(self._sweep_loop(), name="sweep")
            logger.info(
                f"Sweeping requests older than {self.sweep_max_age.total_seconds():g}s "
                f"every {self.sweep_interval:g}s"
            )
        return self.sweep_task

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.sweep_interval)
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Failed to clean up old temporary login requests: {e}")

    async def sweep_once(self) -> int:
        """Delete requests older than the sweep age. Returns the number removed."""
        deleted = await self.repository.delete_requests_older_than(self.sweep_max_age)
        if deleted > 0:
            logger.info(f"Cleaned up {deleted} old temporary login requests")
        return deleted

    async def stop(self) -> None:
        """Cancel the sweep and any outstanding expiry timers."""
        tasks = list(self._expiry_tasks)
        if self.sweep_task:
            tasks.append(self.sweep_task)
            self.sweep_task = None

        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
