"""Stable identifier reconciliation."""

import logging
from dataclasses import replace
from typing import Optional

from ..models import WhitelistEntry
from ..storage.base import AccessRequestRepository, RenameResult

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Detects renamed users by their stable identifier."""

    def __init__(self, repository: AccessRequestRepository):
        self.repository = repository

    async def resolve(
        self, username: str, stable_id: Optional[str]
    ) -> Optional[WhitelistEntry]:
        """
        Return the whitelist entry for ``stable_id`` under ``username``.

        A hit recorded under another name is renamed to ``username`` first.
        Returns None when the identifier is unknown, or when the entry
        disappeared between lookup and rename.
        """
        if not stable_id:
            return None

        entry = await self.repository.find_whitelist_entry_by_stable_id(stable_id)
        if entry is None:
            return None

        if entry.username == username:
            return entry

        result = await self.repository.rename_whitelist_entry(stable_id, username)
        if result is RenameResult.NOT_FOUND:
            logger.info(
                f"Whitelist entry for stable id {stable_id} vanished during rename "
                f"to {username}"
            )
            return None

        logger.info(
            f"Updated username for stable id {stable_id} from {entry.username} to {username}"
        )
        return replace(entry, username=username)
