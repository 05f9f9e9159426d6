"""Media asset shapes.

``MediaAsset`` is what the ingestion pipeline produces and what the
repository persists. The Pydantic models are the HTTP response shapes.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MediaAsset:
    """A stored, metadata-enriched media object.

    ``id``, ``provider``, ``object_key`` and ``content_hash`` never change
    after ingestion.

    Attributes:
        id: Opaque identifier assigned at ingestion.
        provider: Provider tag the object was stored through.
        object_key: Provider-relative storage path.
        content_hash: SHA-256 hex digest of the uploaded bytes.
        url: Public URL computed at ingestion time.
        raw_metadata: JSON serialization of every extracted tag.
    """

    id: str
    provider: str
    object_key: str
    content_hash: str
    size_bytes: int
    mime_type: str
    filename: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    lens_model: Optional[str] = None
    aperture: Optional[str] = None
    shutter_speed: Optional[str] = None
    iso: Optional[str] = None
    focal_length: Optional[str] = None
    datetime_original: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lon: Optional[float] = None
    location_name: Optional[str] = None
    raw_metadata: str = "{}"
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        # Either both dimensions are positive or neither is kept
        if not (
            isinstance(self.width, int)
            and isinstance(self.height, int)
            and self.width > 0
            and self.height > 0
        ):
            self.width = None
            self.height = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class MediaAssetResponse(BaseModel):
    """Media asset as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: str
    object_key: str
    content_hash: str
    size_bytes: int
    mime_type: str
    filename: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    lens_model: Optional[str] = None
    aperture: Optional[str] = None
    shutter_speed: Optional[str] = None
    iso: Optional[str] = None
    focal_length: Optional[str] = None
    datetime_original: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lon: Optional[float] = None
    location_name: Optional[str] = None
    title: Optional[str] = None
    alt: Optional[str] = None
    visibility: str = "public"
    created_at: datetime


class DuplicateItem(BaseModel):
    filename: str
    existing_id: str
    existing_url: str


class FailureItem(BaseModel):
    filename: str
    error: str
    status_code: int


class UploadReport(BaseModel):
    """Outcome of a batch upload; duplicates are not failures."""

    created: List[MediaAssetResponse] = []
    duplicates: List[DuplicateItem] = []
    failures: List[FailureItem] = []


class ProviderStatus(BaseModel):
    name: str
    label: str
    available: bool


class ProviderList(BaseModel):
    default: str
    providers: List[ProviderStatus]
