"""Test data builders and recording doubles shared across test modules."""

import io
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import piexif
from PIL import Image

from app.core.config import Settings
from app.storage.local import LocalStorage

TWO_MB = 2 * 1024 * 1024


def build_jpeg(
    size: Tuple[int, int] = (64, 48),
    exif: Optional[Dict[str, Any]] = None,
    pad_to: Optional[int] = None,
    color: str = "blue",
) -> bytes:
    """Encode a JPEG, optionally with piexif-built EXIF and trailing padding.

    JPEG readers stop at the end-of-image marker, so padding grows the
    byte count without changing the decoded image or its tags.
    """
    image = Image.new("RGB", size, color=color)
    buffer = io.BytesIO()
    if exif is not None:
        image.save(buffer, format="JPEG", exif=piexif.dump(exif))
    else:
        image.save(buffer, format="JPEG")
    data = buffer.getvalue()
    if pad_to is not None and len(data) < pad_to:
        data += b"\x00" * (pad_to - len(data))
    return data


def canon_exif(lat_ref: str = "S", lon_ref: str = "E") -> Dict[str, Any]:
    """EXIF of a Canon shot at 37°48'0" S, 144°57'36" E."""
    return {
        "0th": {
            piexif.ImageIFD.Make: "Canon",
            piexif.ImageIFD.Model: "Canon EOS R5",
            piexif.ImageIFD.DateTime: "2024:05:02 08:00:00",
        },
        "Exif": {
            piexif.ExifIFD.DateTimeOriginal: "2024:05:01 10:20:30",
            piexif.ExifIFD.FNumber: (28, 10),
            piexif.ExifIFD.ExposureTime: (1, 160),
            piexif.ExifIFD.ISOSpeedRatings: 400,
            piexif.ExifIFD.FocalLength: (50, 1),
            piexif.ExifIFD.LensModel: "RF24-70mm F2.8 L IS USM",
        },
        "GPS": {
            piexif.GPSIFD.GPSLatitudeRef: lat_ref,
            piexif.GPSIFD.GPSLatitude: ((37, 1), (48, 1), (0, 1)),
            piexif.GPSIFD.GPSLongitudeRef: lon_ref,
            piexif.GPSIFD.GPSLongitude: ((144, 1), (57, 1), (36, 1)),
        },
        "1st": {},
        "thumbnail": None,
    }


class RecordingLocalStorage(LocalStorage):
    """Local storage that records every put and delete."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.puts: List[str] = []
        self.deletes: List[str] = []

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        self.puts.append(key)
        await super().put(key, data, content_type)

    async def delete(self, key: str) -> None:
        self.deletes.append(key)
        await super().delete(key)


class RecordingTransport:
    """``httpx.MockTransport`` handler that records requests.

    Args:
        responder: Returns the response for a request; 200 when omitted.
    """

    def __init__(self, responder: Optional[Callable[[httpx.Request], httpx.Response]] = None) -> None:
        self.requests: List[httpx.Request] = []
        self.responder = responder or (lambda request: httpx.Response(200))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def nominatim_stub(address: Optional[Dict[str, str]] = None, status_code: int = 200) -> RecordingTransport:
    payload = {"address": address if address is not None else {"city": "Melbourne", "country": "Australia"}}
    return RecordingTransport(lambda request: httpx.Response(status_code, json=payload))
