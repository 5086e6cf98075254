"""Per-key asyncio locks for single-writer access to store rows."""

import asyncio


class KeyedLocks:
    """Hands out one ``asyncio.Lock`` per key.

    Idle locks are pruned once the table grows past *maxsize*, so the
    table stays bounded however many channels pass through.
    """

    def __init__(self, maxsize: int = 1024):
        self._maxsize = maxsize
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            if len(self._locks) >= self._maxsize:
                self._prune()
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _prune(self) -> None:
        for k in [k for k, v in self._locks.items() if not v.locked()]:
            del self._locks[k]

    def __len__(self) -> int:
        return len(self._locks)
