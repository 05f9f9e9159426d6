"""Custom exception classes for the application.

This module defines application-specific exceptions that map
to appropriate HTTP status codes and error responses, including
the ingestion and storage error taxonomy.
"""

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

if TYPE_CHECKING:
    from app.schemas.media import MediaAsset


class AppException(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            details: Additional error context.
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=404, details=details)


class ValidationException(AppException):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=422, details=details)


# =============================================================================
# INGESTION / STORAGE ERRORS
# =============================================================================


class DuplicateContent(AppException):
    """Raised when the uploaded bytes are already stored as an asset.

    This is an expected outcome rather than a failure: the caller gets
    the existing asset back and no upload takes place.

    Attributes:
        existing: The asset already holding this content hash.
    """

    def __init__(self, existing: "MediaAsset") -> None:
        """Initialize duplicate signal.

        Args:
            existing: The asset already holding this content hash.
        """
        self.existing = existing
        super().__init__(
            message="Duplicate file detected",
            status_code=409,
            details={
                "existing_id": existing.id,
                "existing_url": existing.url,
                "content_hash": existing.content_hash,
            },
        )


class MissingCredentials(AppException):
    """Raised when a storage provider is selected but not configured.

    Always raised before any network or filesystem call, and never
    answered by silently switching to another provider.
    """

    def __init__(self, provider: str, missing: Iterable[str]) -> None:
        """Initialize missing credentials exception.

        Args:
            provider: Provider tag that was selected.
            missing: Names of the absent settings.
        """
        self.provider = provider
        self.missing = sorted(missing)
        super().__init__(
            message=f"Storage provider '{provider}' is not configured",
            status_code=503,
            details={"provider": provider, "missing": self.missing},
        )


class UploadFailure(AppException):
    """Raised when a provider rejects or cannot complete a request."""

    def __init__(
        self,
        provider: str,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        """Initialize upload failure.

        Args:
            provider: Provider tag the request was sent to.
            message: Human-readable error message.
            status: HTTP status returned by the provider, if any.
            body: Truncated response body, if any.
        """
        self.provider = provider
        self.status = status
        super().__init__(
            message=message,
            status_code=502,
            details={"provider": provider, "status": status, "body": body},
        )


class InvalidObjectKey(AppException):
    """Raised when an object key would resolve outside the storage root."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(
            message="Invalid media key",
            status_code=400,
            details={"key": key},
        )


class UnknownProvider(AppException):
    """Raised when a provider tag does not name a registered provider."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            message=f"Unsupported media provider: {name}",
            status_code=400,
            details={"provider": name},
        )


class MetadataExtractionFailure(Exception):
    """Raised inside the metadata extractor when tags cannot be parsed.

    Never leaves the extractor: it is converted into an empty result.
    """


class GeocodeFailure(Exception):
    """Raised inside the geocoder on timeouts or bad responses.

    Never leaves the geocoder: it is converted into ``None``.
    """
