"""
Metadata Extractor
==================

Reads embedded image metadata (camera, lens, exposure, GPS, capture time,
pixel dimensions) from an uploaded byte stream.

Tag Groups:
----------
Pillow exposes the EXIF structure as Image File Directories. They are read
into four named groups:

- ``ifd0``: primary IFD (Make, Model, DateTime, Orientation)
- ``file``: values the container itself reports (ImageWidth, ImageHeight,
  Format, Mode and textual ``info`` entries)
- ``exif``: Exif sub-IFD (FNumber, ExposureTime, ISOSpeedRatings, ...)
- ``gps``: GPS sub-IFD (GPSLatitude, GPSLatitudeRef, ...)

Vendors record the same fact under different tags, so every logical field
has an alias list. Aliases are tried in order and, for each alias, the
groups ``ifd0``, ``file``, ``exif``; the first non-empty value wins.

Value Reduction:
---------------
- Rationals (``IFDRational`` or ``"1/160"`` strings) reduce to their quotient
- Arrays reduce to their first parseable element
- Byte strings decode as UTF-8 with NUL padding stripped

How GPS is Stored in EXIF:
-------------------------
```
GPSLatitude: (37, 48, 0)    # degrees, minutes, seconds as rationals
GPSLatitudeRef: 'S'
```
Converted as ``deg + min/60 + sec/3600`` and negated for ``S``/``W``:
37° 48' 0" S = -37.8

Failure Policy:
--------------
Extraction is best effort. Non-image bytes or corrupt tags produce an empty
``ImageMetadata`` and a warning; ``extract`` never raises.
"""

import io
import json
import logging
import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from PIL import ExifTags, Image

from app.core.exceptions import MetadataExtractionFailure

logger = logging.getLogger(__name__)

GROUP_ORDER: Tuple[str, ...] = ("ifd0", "file", "exif")

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "camera_make": ("Make",),
    "camera_model": ("Model",),
    "lens_model": ("LensModel", "LensSpecification", "LensMake"),
    "aperture": ("FNumber", "ApertureValue"),
    "shutter_speed": ("ExposureTime", "ShutterSpeedValue"),
    "iso": ("ISOSpeedRatings", "PhotographicSensitivity", "ISO"),
    "focal_length": ("FocalLength",),
    "datetime_original": ("DateTimeOriginal", "DateTimeDigitized", "DateTime"),
}

# (group, width tag, height tag), first fully valid pair wins
DIMENSION_SOURCES: Tuple[Tuple[str, str, str], ...] = (
    ("file", "ImageWidth", "ImageHeight"),
    ("exif", "ImageWidth", "ImageLength"),
    ("ifd0", "ImageWidth", "ImageLength"),
    ("exif", "PixelXDimension", "PixelYDimension"),
    ("ifd0", "PixelXDimension", "PixelYDimension"),
)

EXIF_DATETIME_FORMATS = (
    "%Y:%m:%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y:%m:%d %H:%M",
)

# Container info entries that are binary blobs rather than tags
_SKIPPED_INFO_KEYS = {"exif", "icc_profile", "xmp", "photoshop", "adobe", "mp"}


@dataclass
class ImageMetadata:
    """Structured fields plus the flattened raw tag set.

    Every field is optional; a file without tags yields all ``None`` and
    an empty ``raw``.
    """

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
    captured_at: Optional[datetime] = None
    gps_lat: Optional[float] = None
    gps_lon: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_gps(self) -> bool:
        return self.gps_lat is not None and self.gps_lon is not None

    def raw_json(self) -> str:
        return json.dumps(self.raw, ensure_ascii=False, sort_keys=True)


# =============================================================================
# VALUE REDUCTION
# =============================================================================


def to_scalar(value: Any) -> Any:
    """Reduce a tag value to a single non-empty scalar, or ``None``."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        text = value.strip("\x00").strip()
        return text or None
    if isinstance(value, (list, tuple)):
        for item in value:
            scalar = to_scalar(item)
            if scalar is not None:
                return scalar
        return None
    if isinstance(value, numbers.Rational) and not isinstance(value, int):
        if value.denominator == 0:
            return None
        return value.numerator / value.denominator
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def to_number(value: Any) -> Optional[float]:
    """Parse a tag value as a float; ``"a/b"`` strings are rationals."""
    scalar = to_scalar(value)
    if scalar is None or isinstance(scalar, bool):
        return None
    if isinstance(scalar, numbers.Number):
        number = float(scalar)
        return number if math.isfinite(number) else None
    text = str(scalar)
    try:
        if "/" in text:
            numerator, denominator = text.split("/", 1)
            denominator_value = float(denominator)
            if denominator_value == 0:
                return None
            return float(numerator) / denominator_value
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_positive_int(value: Any) -> Optional[int]:
    number = to_number(value)
    if number is None or number <= 0 or number != int(number):
        return None
    return int(number)


def _format_number(number: float) -> str:
    return f"{number:g}"


def apex_power(exponent: float) -> Optional[float]:
    """``2 ** exponent`` for APEX values, ``None`` outside the float range."""
    try:
        result = 2.0 ** exponent
    except OverflowError:
        return None
    return result if math.isfinite(result) else None


def dms_to_decimal(value: Any) -> Optional[float]:
    """Convert degree/minute/second components to decimal degrees.

    Fewer components degrade gracefully: two give ``deg + min/60`` and one
    gives ``deg``.
    """
    if isinstance(value, (list, tuple)):
        parts = [p for p in (to_number(item) for item in value) if p is not None]
        if len(parts) >= 3:
            return parts[0] + parts[1] / 60 + parts[2] / 3600
        if len(parts) == 2:
            return parts[0] + parts[1] / 60
        if len(parts) == 1:
            return parts[0]
        return None
    return to_number(value)


def signed_coordinate(value: Any, ref: Any, negative_ref: str) -> Optional[float]:
    decimal = dms_to_decimal(value)
    if decimal is None:
        return None
    ref_text = to_scalar(ref)
    if isinstance(ref_text, str) and ref_text.upper().startswith(negative_ref):
        return -abs(decimal)
    return decimal


def parse_exif_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse ``YYYY:MM:DD HH:MM:SS`` or ISO-like variants."""
    if not value:
        return None
    text = value.strip()
    for fmt in EXIF_DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def json_safe(value: Any) -> Any:
    """Convert a tag value into something ``json.dumps`` accepts."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore").strip("\x00")
    if isinstance(value, numbers.Rational):
        if value.denominator == 0:
            return None
        return value.numerator / value.denominator
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    return str(value)


# =============================================================================
# EXTRACTOR
# =============================================================================


class MetadataExtractor:
    """Pillow-backed metadata extractor.

    Example:
        ```python
        metadata = MetadataExtractor().extract(data)
        print(metadata.camera_make, metadata.gps_lat, metadata.gps_lon)
        ```
    """

    def extract(self, data: bytes) -> ImageMetadata:
        try:
            groups = self.read_groups(data)
            return self.build(groups)
        except MetadataExtractionFailure as exc:
            logger.warning(f"Metadata extraction failed, continuing without it: {exc}")
        except Exception as exc:
            logger.warning(f"Unusable metadata tags, continuing without them: {exc!r}")
        return ImageMetadata()

    def read_groups(self, data: bytes) -> Dict[str, Dict[str, Any]]:
        """Read every tag group from ``data``.

        Raises:
            MetadataExtractionFailure: If the bytes cannot be parsed.
        """
        if not data:
            raise MetadataExtractionFailure("empty input")
        try:
            with Image.open(io.BytesIO(data)) as image:
                file_group: Dict[str, Any] = {
                    "ImageWidth": image.width,
                    "ImageHeight": image.height,
                    "Format": image.format,
                    "Mode": image.mode,
                }
                for key, value in image.info.items():
                    if key not in _SKIPPED_INFO_KEYS and not isinstance(value, bytes):
                        file_group.setdefault(str(key), value)

                exif = image.getexif()
                ifd0 = {
                    ExifTags.TAGS.get(tag, f"Tag{tag}"): value
                    for tag, value in exif.items()
                    if tag not in (ExifTags.Base.ExifOffset, ExifTags.Base.GPSInfo)
                }
                exif_group = {
                    ExifTags.TAGS.get(tag, f"Tag{tag}"): value
                    for tag, value in exif.get_ifd(ExifTags.IFD.Exif).items()
                }
                gps_group = {
                    ExifTags.GPSTAGS.get(tag, f"GPSTag{tag}"): value
                    for tag, value in exif.get_ifd(ExifTags.IFD.GPSInfo).items()
                }
        except Exception as exc:
            raise MetadataExtractionFailure(str(exc) or exc.__class__.__name__) from exc

        return {"ifd0": ifd0, "file": file_group, "exif": exif_group, "gps": gps_group}

    def build(self, groups: Dict[str, Dict[str, Any]]) -> ImageMetadata:
        """Resolve structured fields from already-read tag groups."""
        width, height = self.resolve_dimensions(groups)
        datetime_original = self._text(self.resolve(groups, "datetime_original"))

        gps = groups.get("gps", {})
        gps_lat = signed_coordinate(gps.get("GPSLatitude"), gps.get("GPSLatitudeRef"), "S")
        gps_lon = signed_coordinate(gps.get("GPSLongitude"), gps.get("GPSLongitudeRef"), "W")

        return ImageMetadata(
            width=width,
            height=height,
            camera_make=self._text(self.resolve(groups, "camera_make")),
            camera_model=self._text(self.resolve(groups, "camera_model")),
            lens_model=self._text(self.resolve(groups, "lens_model")),
            aperture=self._aperture(self.resolve(groups, "aperture")),
            shutter_speed=self._shutter(self.resolve(groups, "shutter_speed")),
            iso=self._iso(self.resolve(groups, "iso")),
            focal_length=self._focal_length(self.resolve(groups, "focal_length")),
            datetime_original=datetime_original,
            captured_at=parse_exif_datetime(datetime_original),
            gps_lat=gps_lat,
            gps_lon=gps_lon,
            raw=self.flatten(groups),
        )

    def resolve(
        self,
        groups: Dict[str, Dict[str, Any]],
        field_name: str,
        group_order: Sequence[str] = GROUP_ORDER,
    ) -> Optional[Tuple[str, Any]]:
        """Return ``(alias, scalar)`` for the first alias with a value."""
        for alias in FIELD_ALIASES[field_name]:
            for group in group_order:
                scalar = to_scalar(groups.get(group, {}).get(alias))
                if scalar is not None:
                    return alias, scalar
        return None

    def resolve_dimensions(
        self, groups: Dict[str, Dict[str, Any]]
    ) -> Tuple[Optional[int], Optional[int]]:
        for group, width_tag, height_tag in DIMENSION_SOURCES:
            tags = groups.get(group, {})
            width = to_positive_int(tags.get(width_tag))
            height = to_positive_int(tags.get(height_tag))
            if width and height:
                return width, height
        return None, None

    def flatten(self, groups: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        flat: Dict[str, Any] = {}
        for group in ("ifd0", "file", "exif", "gps"):
            for name, value in groups.get(group, {}).items():
                flat[name] = json_safe(value)
        return flat

    # -------------------------------------------------------------------------
    # Presentation
    # -------------------------------------------------------------------------

    @staticmethod
    def _text(hit: Optional[Tuple[str, Any]]) -> Optional[str]:
        if hit is None:
            return None
        _, value = hit
        if isinstance(value, float):
            return _format_number(value)
        return str(value)

    @staticmethod
    def _aperture(hit: Optional[Tuple[str, Any]]) -> Optional[str]:
        if hit is None:
            return None
        alias, value = hit
        number = to_number(value)
        if number is None or number <= 0:
            return str(value)
        if alias == "ApertureValue":
            # APEX aperture value: N = 2 ** (Av / 2)
            number = apex_power(number / 2)
            if number is None:
                return None
        return f"f/{round(number, 1):g}"

    @staticmethod
    def _shutter(hit: Optional[Tuple[str, Any]]) -> Optional[str]:
        if hit is None:
            return None
        alias, value = hit
        seconds = to_number(value)
        if seconds is None:
            return str(value)
        if alias == "ShutterSpeedValue":
            # APEX time value: t = 2 ** -Tv
            seconds = apex_power(-seconds)
        if seconds is None or seconds <= 0:
            return None
        if seconds < 1:
            denominator = 1 / seconds
            return f"1/{round(denominator)}" if math.isfinite(denominator) else None
        return _format_number(round(seconds, 1))

    @staticmethod
    def _iso(hit: Optional[Tuple[str, Any]]) -> Optional[str]:
        if hit is None:
            return None
        number = to_number(hit[1])
        if number is None:
            return str(hit[1])
        return str(int(round(number)))

    @staticmethod
    def _focal_length(hit: Optional[Tuple[str, Any]]) -> Optional[str]:
        if hit is None:
            return None
        number = to_number(hit[1])
        if number is None:
            return str(hit[1])
        return f"{round(number, 1):g} mm"


def extract_metadata(data: bytes) -> ImageMetadata:
    """Module-level shortcut for ``MetadataExtractor().extract``."""
    return MetadataExtractor().extract(data)


def describe(metadata: ImageMetadata) -> List[Tuple[str, Any]]:
    """Structured fields as ``(name, value)`` pairs, for display."""
    names: Iterable[str] = (
        "width",
        "height",
        "camera_make",
        "camera_model",
        "lens_model",
        "aperture",
        "shutter_speed",
        "iso",
        "focal_length",
        "datetime_original",
        "gps_lat",
        "gps_lon",
    )
    return [(name, getattr(metadata, name)) for name in names]
