"""
Request Signing for Bucket Stores
=================================

Pure functions that build the ``Authorization`` values for the two signed
bucket protocols. Nothing here touches the network or the clock unless a
timestamp is not supplied, so every byte of the construction can be checked
against fixed vectors.

HMAC bucket (UpYun REST API):
----------------------------
```
signature     = base64(HMAC-SHA1(key=md5hex(password), msg="METHOD&URI&DATE"))
Authorization = "UPYUN operator:signature"
```
``DATE`` is the RFC 1123 string sent in the ``Date`` header. A fresh date
means a fresh signature, so nothing is cached.

Canonical-request bucket (COS XML API):
--------------------------------------
```
key_time       = "start;end"
sign_key       = hex(HMAC-SHA1(secret_key, key_time))
canonical      = "method\\npath\\n\\nk1=v1&k2=v2\\n"     # lowercased, sorted headers
string_to_sign = "sha1\\nkey_time\\nsha1hex(canonical)\\n"
signature      = hex(HMAC-SHA1(sign_key, string_to_sign))
```
The header normalization used for signing is also what gets sent.
"""

import base64
import hashlib
import hmac
import time
from email.utils import formatdate
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

HMAC_AUTH_SCHEME = "UPYUN"
SIGN_ALGORITHM = "sha1"

# encodeURIComponent leaves these unescaped in addition to quote()'s defaults
_URI_COMPONENT_SAFE = "!*'()"


def http_date(timestamp: Optional[float] = None) -> str:
    """RFC 1123 date, e.g. ``Mon, 19 Oct 2026 08:00:00 GMT``."""
    return formatdate(timestamp, usegmt=True)


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def hmac_bucket_signature(password: str, method: str, uri: str, date: str) -> str:
    """Base64 HMAC-SHA1 over ``METHOD&URI&DATE`` keyed by the password's MD5 hex."""
    password_md5 = hashlib.md5(password.encode("utf-8")).hexdigest()
    message = f"{method.upper()}&{uri}&{date}"
    digest = hmac.new(password_md5.encode("utf-8"), message.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def hmac_bucket_authorization(operator: str, password: str, method: str, uri: str, date: str) -> str:
    signature = hmac_bucket_signature(password, method, uri, date)
    return f"{HMAC_AUTH_SCHEME} {operator}:{signature}"


def normalize_headers(headers: Mapping[str, str]) -> List[Tuple[str, str]]:
    """Lowercase header names and sort them lexicographically."""
    lowered = {name.lower(): str(value) for name, value in headers.items()}
    return sorted(lowered.items())


def key_time(start: int, expires_seconds: int) -> str:
    return f"{start};{start + expires_seconds}"


def canonical_request(method: str, path: str, headers: Mapping[str, str]) -> str:
    """Canonical request string; PUT and DELETE carry no query parameters."""
    header_string = "&".join(
        f"{encode_uri_component(name)}={encode_uri_component(value)}"
        for name, value in normalize_headers(headers)
    )
    return f"{method.lower()}\n{path}\n\n{header_string}\n"


def string_to_sign(window: str, canonical: str) -> str:
    canonical_hash = hashlib.sha1(canonical.encode("utf-8")).hexdigest()
    return f"{SIGN_ALGORITHM}\n{window}\n{canonical_hash}\n"


def signed_bucket_signature(secret_key: str, window: str, to_sign: str) -> str:
    sign_key = hmac.new(secret_key.encode("utf-8"), window.encode("utf-8"), hashlib.sha1).hexdigest()
    return hmac.new(sign_key.encode("utf-8"), to_sign.encode("utf-8"), hashlib.sha1).hexdigest()


def signed_bucket_authorization(
    secret_id: str,
    secret_key: str,
    method: str,
    path: str,
    headers: Mapping[str, str],
    start: Optional[int] = None,
    expires_seconds: int = 600,
) -> str:
    """Build the ``q-sign-algorithm=...`` authorization value.

    Args:
        secret_id: Access key id (``q-ak``).
        secret_key: Secret key used to derive the signing key.
        method: HTTP method.
        path: URI path of the object, starting with ``/``.
        headers: Headers that will be signed and sent.
        start: Window start as a Unix timestamp; defaults to now.
        expires_seconds: Length of the signature window.

    Returns:
        The complete ``Authorization`` header value.
    """
    if start is None:
        start = int(time.time())
    window = key_time(start, expires_seconds)
    to_sign = string_to_sign(window, canonical_request(method, path, headers))
    signature = signed_bucket_signature(secret_key, window, to_sign)
    header_list = ";".join(name for name, _ in normalize_headers(headers))

    return "&".join(
        [
            f"q-sign-algorithm={SIGN_ALGORITHM}",
            f"q-ak={secret_id}",
            f"q-sign-time={window}",
            f"q-key-time={window}",
            f"q-header-list={header_list}",
            "q-url-param-list=",
            f"q-signature={signature}",
        ]
    )


def sendable_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """The normalized header set, in signing order, as it goes on the wire."""
    return dict(normalize_headers(headers))
