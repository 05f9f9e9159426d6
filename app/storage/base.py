"""Storage provider interface.

Every backend (local disk or a remote bucket) implements the same three
operations so the ingestion pipeline never needs to know which protocol
an object lives behind.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar, Dict, List, Optional

import httpx

from app.core.config import Settings
from app.core.exceptions import MissingCredentials, UploadFailure

logger = logging.getLogger(__name__)


class StorageProviderName(str, Enum):
    """Provider tags stored alongside every asset."""

    LOCAL = "local"
    BUCKET_BEARER = "bucket-bearer"
    BUCKET_HMAC = "bucket-hmac"
    BUCKET_SIGNATURE = "bucket-signature"


def join_url(base: str, key: str) -> str:
    """Join a base URL and an object key with exactly one slash."""
    return f"{base.rstrip('/')}/{key.lstrip('/')}"


class StorageProvider(ABC):
    """Capability interface shared by all storage backends.

    Attributes:
        name: Provider tag recorded on assets stored through this backend.
        required_settings: Settings that must be non-empty for the backend
            to be usable.
    """

    name: ClassVar[StorageProviderName]
    label: ClassVar[str] = ""
    required_settings: ClassVar[List[str]] = []

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.ensure_configured(settings)

    @classmethod
    def missing_settings(cls, settings: Settings) -> List[str]:
        """List the required settings that are absent or blank."""
        return [
            field
            for field in cls.required_settings
            if not str(getattr(settings, field, "") or "").strip()
        ]

    @classmethod
    def is_configured(cls, settings: Settings) -> bool:
        return not cls.missing_settings(settings)

    @classmethod
    def ensure_configured(cls, settings: Settings) -> None:
        """Raise ``MissingCredentials`` unless every required setting is present."""
        missing = cls.missing_settings(settings)
        if missing:
            raise MissingCredentials(cls.name.value, missing)

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Store ``data`` under ``key``.

        Raises:
            UploadFailure: If the backend rejects the write.
            InvalidObjectKey: If the key is not acceptable to the backend.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key succeeds."""

    @abstractmethod
    def public_url(self, key: str, request_origin: Optional[str] = None) -> str:
        """Build the URL the object is served from."""


class HttpStorageProvider(StorageProvider):
    """Base for bucket stores reached over raw HTTP.

    Subclasses build the URL and signed headers; this class sends the
    request and maps transport errors and status codes onto
    ``UploadFailure``. No retries are attempted.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        super().__init__(settings)
        self.client = client

    def _domain_url(self, domain: Optional[str], key: str) -> Optional[str]:
        base = self.settings.MEDIA_DOMAIN or domain
        if base:
            return join_url(base, key)
        return None

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes] = None,
        allow_missing: bool = False,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as exc:
            logger.error(f"{self.name.value} {method} {url} failed: {exc}")
            raise UploadFailure(
                self.name.value,
                f"{self.label or self.name.value} {method} failed: {exc}",
            ) from exc

        if response.is_success or (allow_missing and response.status_code == 404):
            logger.debug(f"{self.name.value} {method} {url} -> {response.status_code}")
            return response

        body = response.text[:500]
        logger.warning(f"{self.name.value} {method} {url} rejected with {response.status_code}")
        raise UploadFailure(
            self.name.value,
            f"{self.label or self.name.value} {method} failed ({response.status_code}): {body}",
            status=response.status_code,
            body=body,
        )
