"""Provider registry.

Maps provider tags to backend classes and builds one adapter instance per
tag on first use. Remote adapters share a single ``httpx.AsyncClient``.
"""

import logging
from typing import Dict, List, Optional, Type

import httpx

from app.core.config import Settings
from app.core.exceptions import UnknownProvider
from app.storage.base import HttpStorageProvider, StorageProvider, StorageProviderName
from app.storage.bearer import BearerBucketStorage
from app.storage.hmac_bucket import HmacBucketStorage
from app.storage.local import LocalStorage
from app.storage.signed_bucket import SignedBucketStorage

logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS: List[Type[StorageProvider]] = [
    LocalStorage,
    BearerBucketStorage,
    HmacBucketStorage,
    SignedBucketStorage,
]


class ProviderRegistry:
    """Lookup of storage backends by provider tag.

    Attributes:
        settings: Settings handed to every adapter.
        client: HTTP client shared by remote adapters.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        providers: Optional[List[Type[StorageProvider]]] = None,
    ) -> None:
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.STORAGE_TIMEOUT)
        self._classes: Dict[str, Type[StorageProvider]] = {}
        self._instances: Dict[str, StorageProvider] = {}
        for provider_cls in providers if providers is not None else DEFAULT_PROVIDERS:
            self.register(provider_cls)

    def register(self, provider_cls: Type[StorageProvider]) -> None:
        """Register a backend class under its ``name`` tag."""
        tag = provider_cls.name.value
        self._classes[tag] = provider_cls
        self._instances.pop(tag, None)

    def names(self) -> List[str]:
        return list(self._classes)

    def get(self, name) -> StorageProvider:
        """Return the adapter for ``name``.

        Raises:
            UnknownProvider: If no backend is registered under ``name``.
            MissingCredentials: If the backend lacks required settings.
        """
        tag = name.value if isinstance(name, StorageProviderName) else str(name or "").strip()
        if tag in self._instances:
            return self._instances[tag]

        provider_cls = self._classes.get(tag)
        if provider_cls is None:
            raise UnknownProvider(tag)

        if issubclass(provider_cls, HttpStorageProvider):
            instance: StorageProvider = provider_cls(self.settings, self.client)
        else:
            instance = provider_cls(self.settings)
        self._instances[tag] = instance
        logger.debug(f"Initialized storage provider {tag}")
        return instance

    def available(self) -> List[Dict[str, object]]:
        """Availability of every registered backend, in registration order."""
        return [
            {
                "name": tag,
                "label": provider_cls.label or tag,
                "available": provider_cls.is_configured(self.settings),
            }
            for tag, provider_cls in self._classes.items()
        ]

    def default_provider(self) -> str:
        """Tag used when an upload names no provider.

        ``MEDIA_DEFAULT_PROVIDER`` wins when it names a registered backend,
        then the first configured backend, then the local store.
        """
        configured = (self.settings.MEDIA_DEFAULT_PROVIDER or "").strip()
        if configured in self._classes:
            return configured
        if configured:
            logger.warning(f"Ignoring unknown MEDIA_DEFAULT_PROVIDER={configured!r}")

        for tag, provider_cls in self._classes.items():
            if provider_cls.is_configured(self.settings):
                return tag
        return StorageProviderName.LOCAL.value

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
