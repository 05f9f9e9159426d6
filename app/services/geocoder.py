"""
Reverse Geocoder
================

Best-effort coordinate to place-name lookup, used to label photos that
carry GPS tags.

The strategy is chosen once at startup by ``build_geocoder(settings)``:

- ``nominatim`` (default): OpenStreetMap Nominatim, no key required
- ``locationiq``: Nominatim-compatible hosted API, needs ``GEOCODE_API_KEY``
- ``none``: lookups disabled

Every lookup is a single GET bounded by ``asyncio.wait_for``, which cancels
the request when ``GEOCODE_TIMEOUT`` elapses. Failures of any kind
(timeout, non-2xx, malformed body) return ``None``; the ingestion pipeline
then falls back to ``format_coordinates``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings
from app.core.exceptions import GeocodeFailure

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"
LOCATIONIQ_URL = "https://us1.locationiq.com/v1/reverse"

# Address components tried in order for the place name
PLACE_FIELDS = ("city", "town", "village", "municipality", "county", "state")


def format_coordinate(value: float, positive: str, negative: str) -> str:
    direction = positive if value >= 0 else negative
    return f"{abs(value):.5f}°{direction}"


def format_coordinates(lat: float, lon: float) -> str:
    """Fallback place name, e.g. ``"37.80000°S, 144.96000°E"``."""
    return f"{format_coordinate(lat, 'N', 'S')}, {format_coordinate(lon, 'E', 'W')}"


def place_from_address(address: Dict[str, Any]) -> Optional[str]:
    """Pick the most specific locality and append the country."""
    place = next((address[name] for name in PLACE_FIELDS if address.get(name)), None)
    if not place:
        return None
    country = address.get("country")
    return f"{place}, {country}" if country else str(place)


class Geocoder(ABC):
    """Reverse geocoding strategy."""

    name: str = "none"

    @abstractmethod
    async def resolve_place(self, lat: float, lon: float) -> Optional[str]:
        """Return a place name for the coordinates, or ``None``. Never raises."""

    async def aclose(self) -> None:
        return None


class NullGeocoder(Geocoder):
    """Disabled lookups."""

    async def resolve_place(self, lat: float, lon: float) -> Optional[str]:
        return None


class NominatimGeocoder(Geocoder):
    """Nominatim ``/reverse`` lookup at city zoom level.

    Attributes:
        url: Reverse endpoint.
        timeout: Seconds before the request is cancelled.
    """

    name = "nominatim"

    def __init__(
        self,
        user_agent: str,
        language: str,
        timeout: float = 3.0,
        url: str = NOMINATIM_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent, "Accept-Language": language}
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()

    def query_params(self, lat: float, lon: float) -> Dict[str, str]:
        return {
            "format": "jsonv2",
            "lat": str(lat),
            "lon": str(lon),
            "zoom": "10",
            "addressdetails": "1",
        }

    async def resolve_place(self, lat: float, lon: float) -> Optional[str]:
        try:
            return await asyncio.wait_for(self._lookup(lat, lon), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.info(f"Reverse geocode timed out after {self.timeout}s")
        except GeocodeFailure as exc:
            logger.warning(f"Reverse geocode failed: {exc}")
        return None

    async def _lookup(self, lat: float, lon: float) -> Optional[str]:
        try:
            response = await self.client.get(
                self.url,
                params=self.query_params(lat, lon),
                headers=self.headers,
            )
        except httpx.HTTPError as exc:
            raise GeocodeFailure(f"request error: {exc}") from exc

        if not response.is_success:
            raise GeocodeFailure(f"{self.name} returned {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocodeFailure("malformed response body") from exc

        address = payload.get("address") if isinstance(payload, dict) else None
        if not isinstance(address, dict):
            return None
        return place_from_address(address)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class LocationIQGeocoder(NominatimGeocoder):
    """LocationIQ reverse lookup; same query and response shape as Nominatim."""

    name = "locationiq"

    def __init__(self, api_key: str, *args: Any, url: str = LOCATIONIQ_URL, **kwargs: Any) -> None:
        super().__init__(*args, url=url, **kwargs)
        self.api_key = api_key

    def query_params(self, lat: float, lon: float) -> Dict[str, str]:
        params = super().query_params(lat, lon)
        params["key"] = self.api_key
        return params


def build_geocoder(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> Geocoder:
    """Choose the geocoding strategy from configuration.

    Unknown providers and a ``locationiq`` selection without an API key
    disable lookups instead of failing startup.
    """
    provider = (settings.GEOCODE_PROVIDER or "").strip().lower()
    common = {
        "user_agent": settings.GEOCODE_USER_AGENT,
        "language": settings.GEOCODE_LANGUAGE,
        "timeout": settings.GEOCODE_TIMEOUT,
        "client": client,
    }

    if provider == "nominatim":
        return NominatimGeocoder(**common)
    if provider == "locationiq":
        if settings.GEOCODE_API_KEY:
            return LocationIQGeocoder(settings.GEOCODE_API_KEY, **common)
        logger.warning("GEOCODE_PROVIDER=locationiq but GEOCODE_API_KEY is not set; geocoding disabled")
        return NullGeocoder()
    if provider and provider != "none":
        logger.warning(f"Unknown GEOCODE_PROVIDER={provider!r}; geocoding disabled")
    return NullGeocoder()
