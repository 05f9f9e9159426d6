"""Content hashing for de-duplication."""

import hashlib

HASH_ALGORITHM = "sha256"


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest of ``data``.

    The digest is taken over the exact bytes received, before any
    transformation, and doubles as the de-duplication key.
    """
    return hashlib.new(HASH_ALGORITHM, data).hexdigest()
