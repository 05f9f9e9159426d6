"""Media upload, lookup and deletion endpoints.

Uploads are multipart: one or more files under ``file`` or ``files`` plus
optional ``provider``, ``folder``, ``title``, ``alt`` and ``visibility``
form fields. The response splits the batch into created assets, duplicates
(soft warnings, nothing uploaded) and failures.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status

from app.api.deps import MediaServiceDep, Orchestrator
from app.core.config import settings
from app.core.exceptions import ValidationException
from app.schemas.media import (
    FailureItem,
    MediaAssetResponse,
    ProviderList,
    ProviderStatus,
    UploadReport,
)
from app.services.ingestion import IngestRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["Media"])


def _request_origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


@router.post(
    "/upload",
    response_model=UploadReport,
    summary="Upload Media",
    description="Hash, de-duplicate, store and record one or more files.",
)
async def upload_media(
    request: Request,
    service: MediaServiceDep,
    file: Optional[UploadFile] = File(None, description="Single file to upload"),
    files: Optional[List[UploadFile]] = File(None, description="Files to upload"),
    provider: Optional[str] = Form(None),
    folder: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    alt: Optional[str] = Form(None),
    visibility: str = Form("public"),
) -> UploadReport:
    """Upload files to the selected storage provider.

    Args:
        request: Incoming HTTP request, used for same-origin URLs.
        service: Media service.
        file: Single uploaded file.
        files: Batch of uploaded files.
        provider: Provider tag; the configured default when omitted.
        folder: Optional key prefix.
        title: Title for every created record.
        alt: Alt text for every created record.
        visibility: ``public`` or ``private``.

    Returns:
        Report of created, duplicate and failed files.

    Raises:
        ValidationException: If no file was sent.
    """
    uploads = [upload for upload in [file, *(files or [])] if upload is not None]
    if not uploads:
        raise ValidationException("No file uploaded")

    origin = _request_origin(request)
    requests: List[IngestRequest] = []
    oversized: List[FailureItem] = []

    for upload in uploads:
        data = await upload.read()
        filename = upload.filename or "upload"
        if len(data) > settings.MEDIA_MAX_UPLOAD_BYTES:
            oversized.append(
                FailureItem(
                    filename=filename,
                    error=f"File exceeds {settings.MEDIA_MAX_UPLOAD_BYTES} bytes",
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                )
            )
            continue
        requests.append(
            IngestRequest(
                data=data,
                filename=filename,
                content_type=upload.content_type,
                provider=provider or None,
                folder=folder or None,
                request_origin=origin,
            )
        )

    report = await service.upload_many(requests, title=title, alt=alt, visibility=visibility)
    report.failures.extend(oversized)
    return report


@router.get(
    "/providers",
    response_model=ProviderList,
    summary="List Storage Providers",
    description="Every registered provider with its availability and the default.",
)
async def list_providers(orchestrator: Orchestrator) -> ProviderList:
    registry = orchestrator.registry
    return ProviderList(
        default=registry.default_provider(),
        providers=[ProviderStatus(**entry) for entry in registry.available()],
    )


@router.get(
    "/{media_id}",
    response_model=MediaAssetResponse,
    summary="Get Media",
)
async def get_media(media_id: str, service: MediaServiceDep) -> MediaAssetResponse:
    record = await service.get(media_id)
    return MediaAssetResponse.model_validate(record)


@router.delete(
    "/{media_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Media",
    description="Delete the stored object first, then the record.",
)
async def delete_media(media_id: str, service: MediaServiceDep) -> None:
    await service.delete(media_id)
