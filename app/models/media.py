"""Media record model.

This module defines the MediaRecord model which persists ingested
assets: where the bytes live, their content hash and the capture
metadata read from the file.
"""

from typing import Optional

from sqlalchemy import BigInteger, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin
from app.schemas.media import MediaAsset


class MediaRecord(Base, TimestampMixin):
    """Represents a stored media object.

    ``provider``, ``object_key`` and ``content_hash`` are written once at
    ingestion; only ``title``, ``alt`` and ``visibility`` are edited later.

    Attributes:
        id: Opaque identifier assigned at ingestion.
        provider: Storage provider tag.
        object_key: Provider-relative storage path.
        content_hash: SHA-256 hex digest, unique across all records.
        raw_metadata: JSON of every extracted tag.
    """

    __tablename__ = "media_assets"
    __table_args__ = (
        UniqueConstraint("provider", "object_key", name="uq_media_assets_provider_object_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    object_key: Mapped[str] = mapped_column(String(512), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(127), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Capture metadata
    camera_make: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    camera_model: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    lens_model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    aperture: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    shutter_speed: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    iso: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    focal_length: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    datetime_original: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    gps_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    gps_lon: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    raw_metadata: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    # Editable presentation fields
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    alt: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="public")

    @classmethod
    def from_asset(
        cls,
        asset: MediaAsset,
        title: Optional[str] = None,
        alt: Optional[str] = None,
        visibility: str = "public",
    ) -> "MediaRecord":
        """Build a record from an ingested asset.

        Title defaults to the filename and alt text to the title.
        """
        fields = asset.to_dict()
        title = title or asset.filename
        return cls(**fields, title=title, alt=alt or title, visibility=visibility)

    def to_asset(self) -> MediaAsset:
        return MediaAsset(
            id=self.id,
            provider=self.provider,
            object_key=self.object_key,
            content_hash=self.content_hash,
            size_bytes=self.size_bytes,
            mime_type=self.mime_type,
            filename=self.filename,
            url=self.url,
            width=self.width,
            height=self.height,
            camera_make=self.camera_make,
            camera_model=self.camera_model,
            lens_model=self.lens_model,
            aperture=self.aperture,
            shutter_speed=self.shutter_speed,
            iso=self.iso,
            focal_length=self.focal_length,
            datetime_original=self.datetime_original,
            gps_lat=self.gps_lat,
            gps_lon=self.gps_lon,
            location_name=self.location_name,
            raw_metadata=self.raw_metadata,
            created_at=self.created_at,
        )
