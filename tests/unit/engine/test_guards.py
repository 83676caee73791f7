"""Tests for keyed operation guards."""

from __future__ import annotations

import asyncio

import pytest

from archetype_manager.core.exceptions import ConcurrencyRejection
from archetype_manager.engine.guards import OperationGuard


class TestOperationGuard:
    """Tests for OperationGuard."""

    async def test_hold_and_release(self) -> None:
        """Test that a key is held only inside the block."""
        guard = OperationGuard("apply")

        async with guard.hold("class-1"):
            assert guard.is_held("class-1")
            assert guard.held_keys == frozenset({"class-1"})

        assert not guard.is_held("class-1")

    async def test_second_caller_rejected(self) -> None:
        """Test that a busy key rejects instead of queueing."""
        guard = OperationGuard("remove")

        async with guard.hold("class-1"):
            with pytest.raises(ConcurrencyRejection) as exc_info:
                async with guard.hold("class-1"):
                    pass

        assert exc_info.value.details == {"operation": "remove", "key": "class-1"}

    async def test_other_keys_not_blocked(self) -> None:
        """Test that unrelated keys proceed concurrently."""
        guard = OperationGuard("apply")

        async with guard.hold("class-1"):
            async with guard.hold("class-2"):
                assert guard.held_keys == frozenset({"class-1", "class-2"})

    async def test_process_scope_shares_key(self) -> None:
        """Test that process scope blocks every key."""
        guard = OperationGuard("apply", scope="process")

        async with guard.hold("class-1"):
            assert guard.is_held("class-2")
            with pytest.raises(ConcurrencyRejection):
                async with guard.hold("class-2"):
                    pass

    async def test_released_on_error(self) -> None:
        """Test that the key is released when the block raises."""
        guard = OperationGuard("apply")

        with pytest.raises(RuntimeError):
            async with guard.hold("class-1"):
                raise RuntimeError("boom")

        assert not guard.is_held("class-1")

    async def test_concurrent_tasks(self) -> None:
        """Test that exactly one of two overlapping tasks gets the guard."""
        guard = OperationGuard("remove")

        async def attempt() -> bool:
            try:
                async with guard.hold("class-1"):
                    await asyncio.sleep(0.01)
                    return True
            except ConcurrencyRejection:
                return False

        results = await asyncio.gather(attempt(), attempt())

        assert sorted(results) == [False, True]
        assert guard.held_keys == frozenset()
