"""Bearer-token bucket store.

Plain authenticated HTTP: the pre-shared token is the only credential and
requests are not otherwise signed.
"""

from typing import Optional
from urllib.parse import quote

from app.storage.base import HttpStorageProvider, StorageProviderName, join_url


class BearerBucketStorage(HttpStorageProvider):
    """``PUT``/``DELETE {endpoint}/{bucket}/{key}`` with ``Authorization: Bearer``."""

    name = StorageProviderName.BUCKET_BEARER
    label = "Bearer bucket"
    required_settings = ["BEARER_ENDPOINT", "BEARER_BUCKET", "BEARER_TOKEN"]

    def object_url(self, key: str) -> str:
        return join_url(
            f"{self.settings.BEARER_ENDPOINT.rstrip('/')}/{self.settings.BEARER_BUCKET}",
            quote(key, safe="/"),
        )

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.settings.BEARER_TOKEN}"}

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        headers = self._auth_headers()
        headers["Content-Type"] = content_type or "application/octet-stream"
        await self._send("PUT", self.object_url(key), headers, content=data)

    async def delete(self, key: str) -> None:
        await self._send("DELETE", self.object_url(key), self._auth_headers(), allow_missing=True)

    def public_url(self, key: str, request_origin: Optional[str] = None) -> str:
        return self._domain_url(self.settings.BEARER_DOMAIN, key) or self.object_url(key)
