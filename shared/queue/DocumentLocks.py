import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class DocumentLocks:
    """Keyed registry of asyncio locks, one per document id.

    Held by the indexing worker for a whole run, and by re-index and delete
    while they discard a document's vector entries. Entries are dropped once
    nobody holds or waits for them.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, document_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(document_id, asyncio.Lock())
        self._refs[document_id] = self._refs.get(document_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refs[document_id] -= 1
            if self._refs[document_id] == 0:
                del self._refs[document_id]
                del self._locks[document_id]

    def is_locked(self, document_id: str) -> bool:
        lock = self._locks.get(document_id)
        return bool(lock and lock.locked())
