"""
De-duplication Index
====================

Maps content hashes to the asset holding those bytes and serializes the
"check, then insert" sequence so two concurrent uploads of identical bytes
cannot both win.

Claim Protocol:
--------------
```
existing = await index.claim(digest)   # asset -> duplicate, None -> reserved
try:
    asset = ...upload...
    await index.commit(digest, asset)  # waiters now see a duplicate
except Exception:
    await index.release(digest)        # waiters retry the claim
    raise
...persist the record...
await index.settle(digest)             # the database answers from now on
```

Waiters on a reserved hash block until the owner commits or releases.
The lock only guards the in-memory maps; a persistent lookup runs while
the hash is reserved, so it never blocks claims on other hashes.

The index is per process; across processes the ``content_hash`` unique
constraint on ``media_assets`` catches the remaining race.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.media import MediaAsset
from app.services.media_repository import MediaRepository

logger = logging.getLogger(__name__)


class DedupIndex:
    """In-memory content-hash index with per-hash reservations.

    Committed assets stay in memory until ``settle`` or ``forget``. With no
    persistent store behind it, ``settle`` keeps them.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._assets: Dict[str, MediaAsset] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    async def lookup(self, content_hash: str) -> Optional[MediaAsset]:
        """Return the asset stored for ``content_hash``, if known."""
        cached = self._assets.get(content_hash)
        if cached is not None:
            return cached
        return await self.lookup_persisted(content_hash)

    async def lookup_persisted(self, content_hash: str) -> Optional[MediaAsset]:
        return None

    async def claim(self, content_hash: str) -> Optional[MediaAsset]:
        """Return the existing asset, or reserve the hash and return ``None``."""
        while True:
            async with self._lock:
                existing = self._assets.get(content_hash)
                if existing is not None:
                    return existing

                waiter = self._pending.get(content_hash)
                if waiter is None:
                    self._pending[content_hash] = asyncio.get_running_loop().create_future()
                    break

            logger.debug(f"Waiting on in-flight upload of {content_hash[:12]}")
            await asyncio.shield(waiter)

        # Reserved: no other claimer of this hash can get past this point
        try:
            existing = await self.lookup_persisted(content_hash)
        except BaseException:
            await self.release(content_hash)
            raise

        if existing is not None:
            await self.release(content_hash)
        return existing

    async def commit(self, content_hash: str, asset: MediaAsset) -> None:
        async with self._lock:
            self._assets[content_hash] = asset
            self._wake(content_hash)

    async def release(self, content_hash: str) -> None:
        """Drop a reservation after a failed ingestion."""
        async with self._lock:
            self._wake(content_hash)

    async def settle(self, content_hash: str) -> None:
        """Called once the asset's record is committed."""
        return None

    async def forget(self, content_hash: str) -> None:
        """Remove a hash after its asset was deleted or never persisted."""
        async with self._lock:
            self._assets.pop(content_hash, None)

    def _wake(self, content_hash: str) -> None:
        waiter = self._pending.pop(content_hash, None)
        if waiter is not None and not waiter.done():
            waiter.set_result(None)


class RepositoryDedupIndex(DedupIndex):
    """Index backed by persisted assets.

    Memory only covers the window between upload and commit of the
    record; once settled, lookups go to the database, so deletes made by
    other workers are seen.

    Args:
        session_factory: Callable returning an ``AsyncSession`` context
            manager, e.g. ``AsyncSessionLocal``.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        super().__init__()
        self.session_factory = session_factory

    async def lookup_persisted(self, content_hash: str) -> Optional[MediaAsset]:
        async with self.session_factory() as session:
            record = await MediaRepository(session).get_by_hash(content_hash)
        return record.to_asset() if record is not None else None

    async def settle(self, content_hash: str) -> None:
        await self.forget(content_hash)
