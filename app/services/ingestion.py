"""
Ingestion Orchestrator
======================

Turns uploaded bytes into a stored, metadata-enriched ``MediaAsset``.

Pipeline:
--------
```
bytes -> hash -> dedup claim -> resolve provider -> extract metadata
      -> generate key -> put -> reverse geocode (GPS only) -> MediaAsset
```

- A duplicate stops the pipeline before any upload: ``DuplicateContent``
  carries the existing asset.
- A failed ``put`` aborts the ingestion and nothing is returned, so the
  caller never persists a record pointing at a missing object.
- Metadata and geocoding failures are absorbed by their components.

The orchestrator does not touch the database; ``MediaService`` persists
the returned asset.

Example:
-------
```python
orchestrator = IngestionOrchestrator(registry, build_geocoder(settings))
asset = await orchestrator.ingest(data, "IMG_0042.jpg", "image/jpeg", provider="local")
```
"""

import asyncio
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from app.core.config import Settings
from app.core.exceptions import AppException, DuplicateContent
from app.schemas.media import MediaAsset
from app.services.dedup import DedupIndex
from app.services.geocoder import Geocoder, NullGeocoder, format_coordinates
from app.services.hashing import content_hash
from app.services.metadata import ImageMetadata, MetadataExtractor
from app.services.object_keys import generate_object_key
from app.storage.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IngestRequest:
    """One file of a batch upload."""

    data: bytes
    filename: str
    content_type: Optional[str] = None
    provider: Optional[str] = None
    folder: Optional[str] = None
    request_origin: Optional[str] = None


@dataclass
class IngestOutcome:
    """Result of one file of a batch: exactly one of the three is set."""

    filename: str
    asset: Optional[MediaAsset] = None
    duplicate_of: Optional[MediaAsset] = None
    error: Optional[AppException] = None


class IngestionOrchestrator:
    """Sequences hashing, dedup, extraction, key generation and upload.

    Attributes:
        registry: Provider adapters by tag.
        geocoder: Reverse geocoding strategy.
        dedup: Content-hash index shared by all ingestions.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        geocoder: Optional[Geocoder] = None,
        dedup: Optional[DedupIndex] = None,
        extractor: Optional[MetadataExtractor] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.registry = registry
        self.geocoder = geocoder or NullGeocoder()
        self.dedup = dedup or DedupIndex()
        self.extractor = extractor or MetadataExtractor()
        self.settings = settings or registry.settings
        self.clock = clock

    async def ingest(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        provider: Optional[str] = None,
        folder: Optional[str] = None,
        request_origin: Optional[str] = None,
    ) -> MediaAsset:
        """Ingest one file.

        Args:
            data: Raw uploaded bytes, hashed exactly as received.
            filename: Declared filename.
            content_type: Declared MIME type; guessed from the name if empty.
            provider: Provider tag; the registry default when omitted.
            folder: Optional key prefix.
            request_origin: Origin used for same-origin local URLs.

        Returns:
            The stored asset.

        Raises:
            DuplicateContent: The bytes are already stored.
            UnknownProvider: ``provider`` is not registered.
            MissingCredentials: The provider is not configured.
            InvalidObjectKey: The key was rejected by the provider.
            UploadFailure: The provider write failed.
        """
        digest = content_hash(data)
        existing = await self.dedup.claim(digest)
        if existing is not None:
            logger.info(f"Duplicate upload of {filename!r} matches asset {existing.id}")
            raise DuplicateContent(existing)

        committed = False
        try:
            asset = await self._store(data, digest, filename, content_type, provider, folder, request_origin)
            await self.dedup.commit(digest, asset)
            committed = True
        finally:
            if not committed:
                await self.dedup.release(digest)

        logger.info(f"Ingested {filename!r} as {asset.provider}:{asset.object_key}")
        return asset

    async def ingest_many(self, requests: Sequence[IngestRequest]) -> List[IngestOutcome]:
        """Ingest independent files concurrently, one outcome per file.

        If the batch is cancelled, files already stored are discarded.
        """
        tasks = [asyncio.ensure_future(self._ingest_one(request)) for request in requests]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if task.done() and not task.cancelled() and task.exception() is None:
                    outcome = task.result()
                    if outcome.asset is not None:
                        await self.discard(outcome.asset)
            raise

    async def discard(self, asset: MediaAsset) -> None:
        """Undo a stored but unpersisted asset: forget its hash, delete its object."""
        await self.dedup.forget(asset.content_hash)
        try:
            await self.registry.get(asset.provider).delete(asset.object_key)
        except AppException as exc:
            logger.error(f"Could not remove orphaned object {asset.provider}:{asset.object_key}: {exc.message}")

    async def _ingest_one(self, request: IngestRequest) -> IngestOutcome:
        try:
            asset = await self.ingest(
                request.data,
                request.filename,
                request.content_type,
                provider=request.provider,
                folder=request.folder,
                request_origin=request.request_origin,
            )
        except DuplicateContent as exc:
            return IngestOutcome(request.filename, duplicate_of=exc.existing)
        except AppException as exc:
            logger.warning(f"Ingestion of {request.filename!r} failed: {exc.message}")
            return IngestOutcome(request.filename, error=exc)
        except Exception as exc:
            logger.exception(f"Unexpected error ingesting {request.filename!r}")
            return IngestOutcome(request.filename, error=AppException(f"Ingestion failed: {exc}"))
        return IngestOutcome(request.filename, asset=asset)

    async def _store(
        self,
        data: bytes,
        digest: str,
        filename: str,
        content_type: Optional[str],
        provider: Optional[str],
        folder: Optional[str],
        request_origin: Optional[str],
    ) -> MediaAsset:
        adapter = self.registry.get(provider or self.registry.default_provider())
        mime_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        metadata = await asyncio.to_thread(self.extractor.extract, data)

        now = self.clock()
        key = generate_object_key(filename, self._key_date(metadata, now), folder)
        await adapter.put(key, data, mime_type)

        location_name = None
        if metadata.has_gps:
            location_name = await self.geocoder.resolve_place(metadata.gps_lat, metadata.gps_lon)
            if not location_name:
                location_name = format_coordinates(metadata.gps_lat, metadata.gps_lon)

        return MediaAsset(
            id=str(uuid.uuid4()),
            provider=adapter.name.value,
            object_key=key,
            content_hash=digest,
            size_bytes=len(data),
            mime_type=mime_type,
            filename=filename,
            url=adapter.public_url(key, request_origin),
            width=metadata.width,
            height=metadata.height,
            camera_make=metadata.camera_make,
            camera_model=metadata.camera_model,
            lens_model=metadata.lens_model,
            aperture=metadata.aperture,
            shutter_speed=metadata.shutter_speed,
            iso=metadata.iso,
            focal_length=metadata.focal_length,
            datetime_original=metadata.datetime_original,
            gps_lat=metadata.gps_lat,
            gps_lon=metadata.gps_lon,
            location_name=location_name,
            raw_metadata=metadata.raw_json(),
            created_at=now,
        )

    def _key_date(self, metadata: ImageMetadata, now: datetime) -> datetime:
        if self.settings.MEDIA_KEY_DATE_SOURCE == "capture" and metadata.captured_at:
            return metadata.captured_at
        return now
