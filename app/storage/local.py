"""Local filesystem storage.

Objects are written under ``MEDIA_LOCAL_DIR`` using the object key as a
relative path and are served by the web server from ``MEDIA_LOCAL_PUBLIC_URL``.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

from app.core.config import Settings
from app.core.exceptions import InvalidObjectKey, UploadFailure
from app.storage.base import StorageProvider, StorageProviderName, join_url

logger = logging.getLogger(__name__)


class LocalStorage(StorageProvider):
    """Stores objects on the local disk.

    Attributes:
        base_path: Absolute root directory; no object may resolve outside it.
    """

    name = StorageProviderName.LOCAL
    label = "Local (Disk)"
    required_settings = ["MEDIA_LOCAL_DIR"]

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.base_path = os.path.abspath(settings.MEDIA_LOCAL_DIR)

    def resolve(self, key: str) -> Path:
        """Map a key to an absolute path inside the storage root.

        The check is pure string normalization, so a rejected key never
        causes a filesystem call.

        Raises:
            InvalidObjectKey: If the key is empty or escapes the root.
        """
        if not key or "\x00" in key:
            raise InvalidObjectKey(key)

        target = os.path.normpath(os.path.join(self.base_path, key))
        if target == self.base_path or not target.startswith(self.base_path + os.sep):
            logger.warning(f"Rejected object key outside storage root: {key!r}")
            raise InvalidObjectKey(key)
        return Path(target)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        target = self.resolve(key)
        try:
            await asyncio.to_thread(_write_file, target, data)
        except OSError as exc:
            raise UploadFailure(self.name.value, f"Failed to write {key}: {exc}") from exc
        logger.info(f"Stored {len(data)} bytes at {target}")

    async def delete(self, key: str) -> None:
        target = self.resolve(key)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as exc:
            raise UploadFailure(self.name.value, f"Failed to delete {key}: {exc}") from exc
        logger.info(f"Deleted {target}")

    def public_url(self, key: str, request_origin: Optional[str] = None) -> str:
        base = self.settings.MEDIA_LOCAL_PUBLIC_URL.strip() or "/uploads"
        if base.startswith("/"):
            # Same-origin path; prefix the origin when one is known
            origin = request_origin or self.settings.PUBLIC_BASE_URL or ""
            base = f"{origin.rstrip('/')}{base}"
        return join_url(base, key)


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
