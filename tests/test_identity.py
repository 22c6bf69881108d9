"""Tests for whitelist_gateway.access.identity: IdentityResolver."""

import pytest

from whitelist_gateway.access.identity import IdentityResolver
from whitelist_gateway.models import DenyReason, WhitelistEntry
from whitelist_gateway.storage.base import RenameResult, StorageUnavailable


@pytest.fixture()
def resolver(repository) -> IdentityResolver:
    return IdentityResolver(repository)


class TestIdentityResolver:
    @pytest.mark.asyncio
    async def test_no_stable_id_resolves_nothing(self, resolver, repository) -> None:
        await repository.add_whitelist_entry("Alice", stable_id="uuid-1")

        assert await resolver.resolve("Alice2", None) is None
        assert await resolver.resolve("Alice2", "") is None

    @pytest.mark.asyncio
    async def test_same_name_is_returned_unchanged(self, resolver, repository) -> None:
        await repository.add_whitelist_entry("Alice", stable_id="uuid-1")

        entry = await resolver.resolve("Alice", "uuid-1")

        assert entry == WhitelistEntry("Alice", "uuid-1")

    @pytest.mark.asyncio
    async def test_rename_updates_whitelist(self, resolver, repository) -> None:
        await repository.add_whitelist_entry("Alice", stable_id="uuid-1")

        entry = await resolver.resolve("Alicia", "uuid-1")

        assert entry == WhitelistEntry("Alicia", "uuid-1")
        assert list(repository.whitelist) == ["Alicia"]

    @pytest.mark.asyncio
    async def test_lost_rename_race_resolves_nothing(self, resolver, repository, monkeypatch) -> None:
        await repository.add_whitelist_entry("Alice", stable_id="uuid-1")

        async def not_found(stable_id: str, new_username: str) -> RenameResult:
            return RenameResult.NOT_FOUND

        monkeypatch.setattr(repository, "rename_whitelist_entry", not_found)

        assert await resolver.resolve("Alicia", "uuid-1") is None


class TestRenameCollision:
    @pytest.mark.asyncio
    async def test_name_held_by_other_identity_raises(self, resolver, repository) -> None:
        await repository.add_whitelist_entry("Alice", stable_id="uuid-1")
        await repository.add_whitelist_entry("Bob", stable_id="uuid-2")

        with pytest.raises(StorageUnavailable):
            await resolver.resolve("Bob", "uuid-1")

        assert repository.whitelist["Alice"] == WhitelistEntry("Alice", "uuid-1")
        assert repository.whitelist["Bob"] == WhitelistEntry("Bob", "uuid-2")

    @pytest.mark.asyncio
    async def test_collision_denies_with_internal_error(self, gateway, repository, monkeypatch) -> None:
        await repository.add_whitelist_entry("Alice", stable_id="uuid-1")
        await repository.add_whitelist_entry("Bob", stable_id="uuid-2")

        # Bob's entry shows up between the username lookup and the rename
        async def miss(username: str) -> None:
            return None

        monkeypatch.setattr(repository, "find_whitelist_entry", miss)

        verdict = await gateway.authorize("Bob", "uuid-1")

        assert verdict.allowed is False
        assert verdict.reason is DenyReason.INTERNAL_ERROR
        assert repository.requests == {}
