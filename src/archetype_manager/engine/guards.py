"""Non-blocking operation guards.

A guard lets one operation of a given kind run per key and rejects (does
not queue) any second caller while the first is in flight. Keys default to
the class instance identifier so that unrelated characters never block each
other; ``scope="process"`` collapses every key onto one, reproducing a
single process-wide flag.

Execution is single-threaded asyncio, so the check-and-mark in ``hold`` has
no await between them and cannot interleave.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Literal

from archetype_manager.core.exceptions import ConcurrencyRejection
from archetype_manager.core.logging import get_logger

logger = get_logger(__name__)

GuardScope = Literal["instance", "process"]

_PROCESS_KEY = "*"


class OperationGuard:
    """Keyed try-acquire guard for one kind of operation.

    Example:
        >>> guard = OperationGuard("apply")
        >>> async with guard.hold(class_instance.id):
        ...     await do_apply()
    """

    def __init__(self, operation: str, *, scope: GuardScope = "instance") -> None:
        """Initialize the guard.

        Args:
            operation: Name of the guarded operation, used in logs and errors.
            scope: ``instance`` to key by the given key, ``process`` to share
                one key across all callers.
        """
        self.operation = operation
        self.scope = scope
        self._held: set[str] = set()

    def _key(self, key: str) -> str:
        return _PROCESS_KEY if self.scope == "process" else key

    def is_held(self, key: str) -> bool:
        return self._key(key) in self._held

    @property
    def held_keys(self) -> frozenset[str]:
        return frozenset(self._held)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the guard for ``key`` for the duration of the block.

        Raises:
            ConcurrencyRejection: If the key is already held.
        """
        resolved = self._key(key)
        if resolved in self._held:
            logger.warning("Guard busy", operation=self.operation, key=resolved)
            raise ConcurrencyRejection(
                f"{self.operation.capitalize()} already in progress",
                operation=self.operation,
                key=resolved,
            )
        self._held.add(resolved)
        try:
            yield
        finally:
            self._held.discard(resolved)


__all__ = [
    "GuardScope",
    "OperationGuard",
]
