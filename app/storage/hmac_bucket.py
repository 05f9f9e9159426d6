"""HMAC-signed bucket store (UpYun REST API).

Each request is signed over ``METHOD&/bucket/key&Date`` and carries the
same ``Date`` value it was signed with.
"""

from typing import Dict, Optional
from urllib.parse import quote

from app.storage.base import HttpStorageProvider, StorageProviderName, join_url
from app.storage.signing import hmac_bucket_authorization, http_date


class HmacBucketStorage(HttpStorageProvider):
    """Bucket store authenticated with operator/password HMAC signatures."""

    name = StorageProviderName.BUCKET_HMAC
    label = "UpYun"
    required_settings = ["HMAC_ENDPOINT", "HMAC_BUCKET", "HMAC_OPERATOR", "HMAC_PASSWORD"]

    def object_uri(self, key: str) -> str:
        return f"/{self.settings.HMAC_BUCKET}/{quote(key.lstrip('/'), safe='/')}"

    def signed_headers(self, method: str, uri: str, date: Optional[str] = None) -> Dict[str, str]:
        """Headers for one request; a new date is taken for every call."""
        date = date or http_date()
        return {
            "Authorization": hmac_bucket_authorization(
                self.settings.HMAC_OPERATOR,
                self.settings.HMAC_PASSWORD,
                method,
                uri,
                date,
            ),
            "Date": date,
        }

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        uri = self.object_uri(key)
        headers = self.signed_headers("PUT", uri)
        headers["Content-Type"] = content_type or "application/octet-stream"
        await self._send("PUT", join_url(self.settings.HMAC_ENDPOINT, uri), headers, content=data)

    async def delete(self, key: str) -> None:
        uri = self.object_uri(key)
        await self._send(
            "DELETE",
            join_url(self.settings.HMAC_ENDPOINT, uri),
            self.signed_headers("DELETE", uri),
            allow_missing=True,
        )

    def public_url(self, key: str, request_origin: Optional[str] = None) -> str:
        url = self._domain_url(self.settings.HMAC_DOMAIN, key)
        if url:
            return url
        return f"https://{self.settings.HMAC_BUCKET}.test.upcdn.net/{key.lstrip('/')}"
