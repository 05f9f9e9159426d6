"""
Pytest conftest.py - Shared fixtures and configuration

Fixtures for isolated settings, EXIF-bearing JPEG bytes, a registry with a
recording local backend, a stubbed geocoder and a throwaway SQLite database.
Builders and doubles live in ``tests/factories.py``.
"""

import os

# Set environment for testing before any app module reads settings
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_media.sqlite")

from typing import Any, Callable, Dict  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from app.core.config import Settings  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models.media import MediaRecord  # noqa: E402,F401
from app.services.dedup import RepositoryDedupIndex  # noqa: E402
from app.services.geocoder import NominatimGeocoder  # noqa: E402
from app.services.ingestion import IngestionOrchestrator  # noqa: E402
from app.storage.registry import ProviderRegistry  # noqa: E402
from tests.factories import (  # noqa: E402
    TWO_MB,
    RecordingLocalStorage,
    RecordingTransport,
    build_jpeg,
    canon_exif,
    nominatim_stub,
)


# =============================================================================
# PYTEST HOOKS
# =============================================================================


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# =============================================================================
# SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Factory for isolated settings; local storage lives under ``tmp_path``."""

    def factory(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "APP_ENV": "test",
            "MEDIA_LOCAL_DIR": str(tmp_path / "uploads"),
            "MEDIA_LOCAL_PUBLIC_URL": "https://media.example.com/uploads",
            "GEOCODE_PROVIDER": "none",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


# =============================================================================
# IMAGE FIXTURES
# =============================================================================


@pytest.fixture
def plain_jpeg() -> bytes:
    return build_jpeg()


@pytest.fixture
def canon_jpeg() -> bytes:
    return build_jpeg(size=(120, 80), exif=canon_exif())


@pytest.fixture
def canon_jpeg_2mb() -> bytes:
    return build_jpeg(size=(640, 480), exif=canon_exif(), pad_to=TWO_MB)


# =============================================================================
# INGESTION FIXTURES
# =============================================================================


@pytest_asyncio.fixture
async def registry(settings):
    """Registry whose local backend is a ``RecordingLocalStorage``."""
    registry = ProviderRegistry(settings, client=RecordingTransport().client())
    registry.register(RecordingLocalStorage)
    yield registry
    await registry.client.aclose()


@pytest_asyncio.fixture
async def geocoder():
    """Nominatim geocoder answering "Melbourne, Australia" for every lookup."""
    transport = nominatim_stub()
    client = transport.client()
    geocoder = NominatimGeocoder("gallery-tests/1.0", "en", timeout=1.0, client=client)
    geocoder.transport = transport
    yield geocoder
    await client.aclose()


@pytest.fixture
def orchestrator(registry, geocoder, settings, session_factory) -> IngestionOrchestrator:
    return IngestionOrchestrator(registry, geocoder, RepositoryDedupIndex(session_factory), settings=settings)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'media.sqlite'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
