"""Place search via OpenStreetMap Nominatim.

Free-text query in, best match out. Only the first hit is used; the map is
moved there by the controller.

Reference: https://nominatim.org/release-docs/latest/api/Search/
"""

import logging
from dataclasses import dataclass

import httpx

from waypoint_survey.constants import GeocodingConfig
from waypoint_survey.core.geo_calculator import GeoCalculator
from waypoint_survey.errors import LocationNotFound, TransportFailure, ValidationRejected

logger = logging.getLogger(__name__)

SEARCH_FAILED = "Search failed. Please try again."


@dataclass(frozen=True)
class GeocodeResult:
    """Best match for a search query."""

    lat: float
    lon: float
    display_name: str


class GeocodingClient:
    """Nominatim search client.

    Example:
        geocoder = GeocodingClient()
        place = await geocoder.search("Kanpur")
        print(place.display_name, place.lat, place.lon)
    """

    def __init__(self, client: httpx.AsyncClient | None = None, url: str = GeocodingConfig.SEARCH_URL) -> None:
        self.url = url
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=GeocodingConfig.TIMEOUT_S,
                headers={"User-Agent": GeocodingConfig.USER_AGENT},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def search(self, query: str) -> GeocodeResult:
        """Find the best match for query.

        Raises:
            ValidationRejected: Blank query (no request sent)
            LocationNotFound: No match
            TransportFailure: Network failure, server error or unreadable answer
        """
        query = query.strip()
        if not query:
            raise ValidationRejected(message="Enter a location to search for", field="query")

        params = {"format": "json", "q": query, "limit": 1}
        try:
            response = await self.client.get(self.url, params=params)
        except httpx.TransportError as e:
            logger.warning(f"[SEARCH] Request failed: {e}")
            raise TransportFailure(message=SEARCH_FAILED) from e

        if response.status_code >= 400:
            logger.warning(f"[SEARCH] HTTP {response.status_code} for {query!r}")
            raise TransportFailure(message=SEARCH_FAILED, status_code=response.status_code)

        try:
            hits = response.json()
        except ValueError as e:
            raise TransportFailure(message=SEARCH_FAILED) from e

        if not isinstance(hits, list) or not hits:
            raise LocationNotFound(query=query)

        first = hits[0]
        try:
            lat, lon = float(first["lat"]), float(first["lon"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportFailure(message=SEARCH_FAILED, context={"hit": first}) from e
        if not GeoCalculator.is_valid_coordinate(lat=lat, lon=lon):
            raise LocationNotFound(query=query)

        result = GeocodeResult(lat=lat, lon=lon, display_name=str(first.get("display_name") or query))
        logger.info(f"[SEARCH] {query!r} -> {result.display_name} ({lat}, {lon})")
        return result
