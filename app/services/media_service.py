"""Media service: ingestion plus persistence.

The orchestrator stores bytes and returns a ``MediaAsset``; this service
records it in ``media_assets`` and owns the delete ordering: the storage
object is removed first and the record second, so a failed provider
delete never leaves an object without a catalog entry.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppException, DuplicateContent, NotFoundException
from app.models.media import MediaRecord
from app.schemas.media import (
    DuplicateItem,
    FailureItem,
    MediaAsset,
    MediaAssetResponse,
    UploadReport,
)
from app.services.ingestion import IngestionOrchestrator, IngestRequest
from app.services.media_repository import MediaRepository

logger = logging.getLogger(__name__)


class MediaService:
    """Upload, fetch and delete media records.

    Args:
        session: Request-scoped database session.
        orchestrator: Shared ingestion orchestrator.
    """

    def __init__(self, session: AsyncSession, orchestrator: IngestionOrchestrator) -> None:
        self.session = session
        self.orchestrator = orchestrator
        self.repository = MediaRepository(session)

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        provider: Optional[str] = None,
        folder: Optional[str] = None,
        title: Optional[str] = None,
        alt: Optional[str] = None,
        visibility: str = "public",
        request_origin: Optional[str] = None,
    ) -> MediaRecord:
        """Ingest one file and persist its record.

        Raises:
            DuplicateContent: The bytes are already stored.
            AppException: Any ingestion error; nothing is persisted.
        """
        asset = await self.orchestrator.ingest(
            data,
            filename,
            content_type,
            provider=provider,
            folder=folder,
            request_origin=request_origin,
        )
        return await self.persist(asset, title=title, alt=alt, visibility=visibility)

    async def upload_many(
        self,
        requests: Sequence[IngestRequest],
        title: Optional[str] = None,
        alt: Optional[str] = None,
        visibility: str = "public",
    ) -> UploadReport:
        """Ingest a batch concurrently, then persist sequentially.

        Returns:
            Report splitting the batch into created, duplicate and failed files.
        """
        report = UploadReport()
        outcomes = await self.orchestrator.ingest_many(requests)
        unpersisted = [outcome.asset for outcome in outcomes if outcome.asset is not None]

        try:
            for outcome in outcomes:
                if outcome.duplicate_of is not None:
                    report.duplicates.append(_duplicate_item(outcome.filename, outcome.duplicate_of))
                    continue
                if outcome.error is not None:
                    report.failures.append(_failure_item(outcome.filename, outcome.error))
                    continue

                # persist() discards the asset itself on failure
                unpersisted.remove(outcome.asset)
                try:
                    record = await self.persist(outcome.asset, title=title, alt=alt, visibility=visibility)
                except DuplicateContent as exc:
                    report.duplicates.append(_duplicate_item(outcome.filename, exc.existing))
                except AppException as exc:
                    report.failures.append(_failure_item(outcome.filename, exc))
                else:
                    report.created.append(MediaAssetResponse.model_validate(record))
        finally:
            for asset in unpersisted:
                await self.orchestrator.discard(asset)

        logger.info(
            f"Batch upload: {len(report.created)} created, "
            f"{len(report.duplicates)} duplicates, {len(report.failures)} failed"
        )
        return report

    async def persist(
        self,
        asset: MediaAsset,
        title: Optional[str] = None,
        alt: Optional[str] = None,
        visibility: str = "public",
    ) -> MediaRecord:
        """Insert and commit the record for a freshly ingested asset.

        When another process inserted the same content hash first, the
        object just uploaded is deleted again and the winner is reported
        as a duplicate.
        """
        try:
            record = await self.repository.add(asset, title=title, alt=alt, visibility=visibility)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            await self.orchestrator.discard(asset)

            winner = await self.repository.get_by_hash(asset.content_hash)
            if winner is not None:
                raise DuplicateContent(winner.to_asset()) from exc
            raise
        except Exception:
            await self.session.rollback()
            await self.orchestrator.discard(asset)
            raise

        await self.orchestrator.dedup.settle(asset.content_hash)
        return record

    async def get(self, media_id: str) -> MediaRecord:
        """Fetch a record.

        Raises:
            NotFoundException: If no record has this id.
        """
        record = await self.repository.get(media_id)
        if record is None:
            raise NotFoundException(f"Media {media_id} not found", details={"id": media_id})
        return record

    async def delete(self, media_id: str) -> None:
        """Delete the storage object, then the record.

        Raises:
            NotFoundException: If no record has this id.
            MissingCredentials: The record's provider is no longer configured.
            UploadFailure: The provider refused the delete; the record is kept.
        """
        record = await self.get(media_id)
        adapter = self.orchestrator.registry.get(record.provider)
        await adapter.delete(record.object_key)

        content_hash, location = record.content_hash, f"{record.provider}:{record.object_key}"
        await self.repository.delete(record)
        await self.session.commit()
        await self.orchestrator.dedup.forget(content_hash)
        logger.info(f"Deleted media {media_id} ({location})")


def _duplicate_item(filename: str, existing: MediaAsset) -> DuplicateItem:
    return DuplicateItem(filename=filename, existing_id=existing.id, existing_url=existing.url)


def _failure_item(filename: str, exc: AppException) -> FailureItem:
    return FailureItem(filename=filename, error=exc.message, status_code=exc.status_code)
