"""
Object Key Generation
=====================

Storage keys look like::

    [folder/]YYYY/MM/<random token>-<sanitized filename>
    # e.g. travel/2026/10/9f1c2e4b8a7d4c0e9b3a6d5f2e1c0b9a-IMG_0042.jpg

- **Chronological prefix** keeps directory listings small and browsable.
- **Random token** comes from ``uuid.uuid4()`` (the OS CSPRNG). Filename and
  date alone never form a key, so two uploads with the same name in the same
  month cannot collide.
- **Sanitized filename** keeps keys traceable back to the upload.
"""

import re
import uuid
from datetime import datetime
from typing import Optional

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")

FALLBACK_NAME = "upload"


def sanitize_filename(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``."""
    cleaned = _UNSAFE_CHARS.sub("_", name or "")
    return cleaned or FALLBACK_NAME


def sanitize_folder(folder: Optional[str]) -> str:
    """Sanitize each folder segment and drop empty, ``.`` and ``..`` ones."""
    if not folder:
        return ""
    segments = []
    for segment in folder.replace("\\", "/").split("/"):
        if segment in ("", ".", ".."):
            continue
        cleaned = _UNSAFE_CHARS.sub("_", segment)
        if cleaned.strip("."):
            segments.append(cleaned)
    return "/".join(segments)


def generate_object_key(filename: str, when: datetime, folder: Optional[str] = None) -> str:
    """Build a fresh, never-reused object key.

    Args:
        filename: Declared name of the upload.
        when: Capture or upload time; only year and month are used.
        folder: Optional prefix, e.g. ``"travel/japan"``.

    Returns:
        Provider-relative key such as ``"2026/10/<hex>-photo.jpg"``.
    """
    token = uuid.uuid4().hex
    prefix = sanitize_folder(folder)
    key = f"{when.year:04d}/{when.month:02d}/{token}-{sanitize_filename(filename)}"
    return f"{prefix}/{key}" if prefix else key
