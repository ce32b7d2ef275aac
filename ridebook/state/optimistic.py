"""
Optimistic update as a three-step transaction.

1. snapshot the current state,
2. apply the expected result locally,
3. call the remote; on failure restore the snapshot and re-raise.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Generic, TypeVar

S = TypeVar("S")
T = TypeVar("T")


class OptimisticUpdate(Generic[S]):
    def __init__(self, get_state: Callable[[], S], set_state: Callable[[S], None]):
        self._get = get_state
        self._set = set_state

    async def run(
        self,
        apply: Callable[[S], S],
        remote: Callable[[], Awaitable[T]],
    ) -> T:
        snapshot = self._get()
        self._set(apply(snapshot))
        try:
            return await remote()
        except Exception:
            self._set(snapshot)
            raise
