"""
Tests for the Ingestion Orchestrator
====================================

Runs the full pipeline against a recording local store and a stubbed
geocoder: hashing, dedup, extraction, key generation, upload and
place lookup.
"""

import hashlib
from datetime import datetime, timezone

import pytest

from app.core.exceptions import (
    DuplicateContent,
    MissingCredentials,
    UnknownProvider,
    UploadFailure,
)
from app.services.dedup import DedupIndex
from app.services.geocoder import NominatimGeocoder
from app.services.ingestion import IngestionOrchestrator, IngestRequest
from tests.factories import TWO_MB, RecordingLocalStorage, nominatim_stub

NOW = datetime(2026, 3, 9, 12, 0, tzinfo=timezone.utc)


class FlakyLocalStorage(RecordingLocalStorage):
    """Rejects the first write, accepts the rest."""

    failures_left = 1

    async def put(self, key, data, content_type):
        if self.failures_left:
            self.failures_left -= 1
            self.puts.append(key)
            raise UploadFailure("local", "disk full")
        await super().put(key, data, content_type)


@pytest.fixture
def local(registry):
    return registry.get("local")


# =============================================================================
# HAPPY PATH
# =============================================================================


@pytest.mark.asyncio
async def test_two_megabyte_canon_jpeg(orchestrator, local, canon_jpeg_2mb):
    asset = await orchestrator.ingest(canon_jpeg_2mb, "IMG_0042.jpg", "image/jpeg", provider="local")

    assert asset.provider == "local"
    assert asset.content_hash == hashlib.sha256(canon_jpeg_2mb).hexdigest()
    assert asset.size_bytes == TWO_MB
    assert asset.mime_type == "image/jpeg"
    assert asset.filename == "IMG_0042.jpg"
    assert (asset.width, asset.height) == (640, 480)
    assert asset.camera_make == "Canon"
    assert asset.camera_model == "Canon EOS R5"
    assert asset.aperture == "f/2.8"
    assert asset.gps_lat == pytest.approx(-37.8, abs=1e-6)
    assert asset.gps_lon == pytest.approx(144.96, abs=1e-6)
    assert asset.location_name == "Melbourne, Australia"
    assert asset.url == "https://media.example.com/uploads/" + asset.object_key
    assert asset.object_key.endswith("-IMG_0042.jpg")

    assert local.puts == [asset.object_key]
    assert local.resolve(asset.object_key).read_bytes() == canon_jpeg_2mb


@pytest.mark.asyncio
async def test_default_provider_and_key_date(registry, geocoder, canon_jpeg):
    orchestrator = IngestionOrchestrator(registry, geocoder, clock=lambda: NOW)
    asset = await orchestrator.ingest(canon_jpeg, "a.jpg")

    assert asset.provider == "local"
    assert asset.object_key.startswith("2026/03/")
    assert asset.created_at == NOW


@pytest.mark.asyncio
async def test_capture_date_keys(registry, geocoder, make_settings, canon_jpeg):
    orchestrator = IngestionOrchestrator(
        registry,
        geocoder,
        settings=make_settings(MEDIA_KEY_DATE_SOURCE="capture"),
        clock=lambda: NOW,
    )
    asset = await orchestrator.ingest(canon_jpeg, "a.jpg", folder="trips")

    assert asset.object_key.startswith("trips/2024/05/")


@pytest.mark.asyncio
async def test_capture_date_falls_back_to_upload_time(registry, make_settings, plain_jpeg):
    orchestrator = IngestionOrchestrator(
        registry, settings=make_settings(MEDIA_KEY_DATE_SOURCE="capture"), clock=lambda: NOW
    )
    asset = await orchestrator.ingest(plain_jpeg, "a.jpg")

    assert asset.object_key.startswith("2026/03/")


@pytest.mark.asyncio
async def test_mime_type_is_guessed_from_filename(orchestrator, plain_jpeg):
    asset = await orchestrator.ingest(plain_jpeg, "holiday.png")
    assert asset.mime_type == "image/png"


@pytest.mark.asyncio
async def test_non_image_is_stored_without_metadata(orchestrator, local):
    asset = await orchestrator.ingest(b"just some notes", "notes.txt")

    assert asset.mime_type == "text/plain"
    assert asset.camera_make is None
    assert asset.width is None
    assert asset.raw_metadata == "{}"
    assert local.puts == [asset.object_key]


# =============================================================================
# GEOCODING
# =============================================================================


@pytest.mark.asyncio
async def test_no_gps_skips_geocoder(orchestrator, geocoder, plain_jpeg):
    asset = await orchestrator.ingest(plain_jpeg, "a.jpg")

    assert asset.location_name is None
    assert geocoder.transport.requests == []


@pytest.mark.asyncio
async def test_failed_geocode_falls_back_to_coordinates(registry, canon_jpeg):
    transport = nominatim_stub(status_code=503)
    geocoder = NominatimGeocoder("gallery-tests/1.0", "en", client=transport.client())
    orchestrator = IngestionOrchestrator(registry, geocoder)
    try:
        asset = await orchestrator.ingest(canon_jpeg, "a.jpg")
    finally:
        await geocoder.client.aclose()

    assert asset.location_name == "37.80000°S, 144.96000°E"


# =============================================================================
# DUPLICATES AND FAILURES
# =============================================================================


@pytest.mark.asyncio
async def test_duplicate_stops_before_upload(orchestrator, local, canon_jpeg):
    first = await orchestrator.ingest(canon_jpeg, "a.jpg")

    with pytest.raises(DuplicateContent) as exc_info:
        await orchestrator.ingest(canon_jpeg, "renamed.jpg")

    assert exc_info.value.existing.id == first.id
    assert exc_info.value.status_code == 409
    assert local.puts == [first.object_key]


@pytest.mark.asyncio
async def test_failed_put_releases_the_claim(registry, settings, canon_jpeg):
    registry.register(FlakyLocalStorage)
    orchestrator = IngestionOrchestrator(registry, dedup=DedupIndex())

    with pytest.raises(UploadFailure):
        await orchestrator.ingest(canon_jpeg, "a.jpg")

    asset = await orchestrator.ingest(canon_jpeg, "a.jpg")
    assert asset.content_hash == hashlib.sha256(canon_jpeg).hexdigest()
    assert len(registry.get("local").puts) == 2


@pytest.mark.asyncio
async def test_missing_credentials_before_any_upload(orchestrator, local, canon_jpeg):
    with pytest.raises(MissingCredentials) as exc_info:
        await orchestrator.ingest(canon_jpeg, "a.jpg", provider="bucket-bearer")

    assert exc_info.value.provider == "bucket-bearer"
    assert local.puts == []

    # Claim was released; the same bytes can go elsewhere
    asset = await orchestrator.ingest(canon_jpeg, "a.jpg", provider="local")
    assert asset.provider == "local"


@pytest.mark.asyncio
async def test_unknown_provider(orchestrator, plain_jpeg):
    with pytest.raises(UnknownProvider):
        await orchestrator.ingest(plain_jpeg, "a.jpg", provider="ftp")


# =============================================================================
# BATCHES
# =============================================================================


@pytest.mark.asyncio
async def test_ingest_many(orchestrator, local, canon_jpeg, plain_jpeg):
    outcomes = await orchestrator.ingest_many(
        [
            IngestRequest(canon_jpeg, "one.jpg"),
            IngestRequest(plain_jpeg, "two.jpg", "image/jpeg"),
            IngestRequest(canon_jpeg, "one-again.jpg"),
            IngestRequest(b"other bytes", "three.jpg", provider="ftp"),
        ]
    )

    assert [outcome.filename for outcome in outcomes] == ["one.jpg", "two.jpg", "one-again.jpg", "three.jpg"]
    assert outcomes[0].asset is not None
    assert outcomes[1].asset is not None
    assert outcomes[2].duplicate_of.id == outcomes[0].asset.id
    assert isinstance(outcomes[3].error, UnknownProvider)
    assert len(local.puts) == 2


class BrokenLocalStorage(RecordingLocalStorage):
    """Raises an unexpected error for one filename."""

    async def put(self, key, data, content_type):
        if key.endswith("-b.jpg"):
            raise RuntimeError("driver crashed")
        await super().put(key, data, content_type)


@pytest.mark.asyncio
async def test_unexpected_error_is_reported_per_file(registry, settings, canon_jpeg, plain_jpeg):
    registry.register(BrokenLocalStorage)
    orchestrator = IngestionOrchestrator(registry, dedup=DedupIndex(), settings=settings)

    outcomes = await orchestrator.ingest_many([IngestRequest(canon_jpeg, "a.jpg"), IngestRequest(plain_jpeg, "b.jpg")])

    assert outcomes[0].asset is not None
    assert outcomes[1].asset is None
    assert outcomes[1].error.status_code == 500
    assert "driver crashed" in outcomes[1].error.message

    # The failed file's claim was released
    registry.register(RecordingLocalStorage)
    retried = await orchestrator.ingest(plain_jpeg, "b.jpg")
    assert retried.filename == "b.jpg"


@pytest.mark.asyncio
async def test_discard_forgets_hash_and_deletes_object(orchestrator, local, canon_jpeg):
    asset = await orchestrator.ingest(canon_jpeg, "a.jpg")

    await orchestrator.discard(asset)

    assert local.deletes == [asset.object_key]
    assert not local.resolve(asset.object_key).exists()
    again = await orchestrator.ingest(canon_jpeg, "a.jpg")
    assert again.id != asset.id
