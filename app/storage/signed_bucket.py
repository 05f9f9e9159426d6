"""Canonical-request signed bucket store (COS XML API).

The signature covers the method, the object path and every header that is
sent (lowercased and sorted), inside a short validity window.
"""

from typing import Dict, Optional
from urllib.parse import quote

from app.storage.base import HttpStorageProvider, StorageProviderName, join_url
from app.storage.signing import sendable_headers, signed_bucket_authorization


class SignedBucketStorage(HttpStorageProvider):
    """Bucket store authenticated with time-windowed ``q-sign`` signatures."""

    name = StorageProviderName.BUCKET_SIGNATURE
    label = "Tencent COS"
    required_settings = ["SIGNED_SECRET_ID", "SIGNED_SECRET_KEY", "SIGNED_BUCKET", "SIGNED_REGION"]

    # Sent with uploads, not signed
    CACHE_CONTROL = "public, max-age=31536000, immutable"

    @property
    def host(self) -> str:
        return f"{self.settings.SIGNED_BUCKET}.cos.{self.settings.SIGNED_REGION}.myqcloud.com"

    def object_path(self, key: str) -> str:
        return f"/{quote(key.lstrip('/'), safe='/')}"

    def signed_headers(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        start: Optional[int] = None,
    ) -> Dict[str, str]:
        """Normalize ``headers``, sign them and return what goes on the wire."""
        wire = sendable_headers(headers)
        wire["authorization"] = signed_bucket_authorization(
            self.settings.SIGNED_SECRET_ID,
            self.settings.SIGNED_SECRET_KEY,
            method,
            path,
            headers,
            start=start,
            expires_seconds=self.settings.SIGNED_SIGN_EXPIRES,
        )
        return wire

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self.object_path(key)
        headers = self.signed_headers(
            "PUT",
            path,
            {"host": self.host, "content-type": content_type or "application/octet-stream"},
        )
        headers["cache-control"] = self.CACHE_CONTROL
        await self._send("PUT", f"https://{self.host}{path}", headers, content=data)

    async def delete(self, key: str) -> None:
        path = self.object_path(key)
        headers = self.signed_headers("DELETE", path, {"host": self.host})
        await self._send("DELETE", f"https://{self.host}{path}", headers, allow_missing=True)

    def public_url(self, key: str, request_origin: Optional[str] = None) -> str:
        url = self._domain_url(self.settings.SIGNED_DOMAIN, key)
        if url:
            return url
        return join_url(f"https://{self.host}", key)
