"""Google Maps web-services client — place text search, distance matrix, geocoding."""

import asyncio
import hashlib
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from meetpoint.config import settings
from meetpoint.exceptions import ProviderError
from meetpoint.services.cache_service import CacheService, cache_service
from meetpoint.services.recommendation.geo import great_circle_distance_km
from meetpoint.services.recommendation.types import Coordinate

logger = logging.getLogger(__name__)

# Statuses that carry a usable (possibly empty) payload
SUCCESS_STATUSES = {"OK", "ZERO_RESULTS"}

DRIVING_SPEED_KMH = 30.0    # mock-mode urban average
ROAD_FACTOR = 1.3           # mock-mode road distance over straight line


@dataclass
class TextSearchPage:
    results: list[dict] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass(frozen=True)
class MatrixCell:
    distance_meters: int
    duration_seconds: int


@dataclass(frozen=True)
class GeocodeResult:
    location: Coordinate
    formatted_address: str


class MapsProvider(Protocol):
    """What the recommendation pipeline needs from a maps provider."""

    async def text_search(
        self,
        query: str,
        center: Coordinate,
        radius_meters: int,
        page_token: str | None = None,
        place_type: str | None = None,
    ) -> TextSearchPage: ...

    async def distance_matrix(
        self,
        origins: list[Coordinate],
        destinations: list[Coordinate],
        mode: str = "driving",
    ) -> list[list[MatrixCell | None]]: ...

    async def geocode(self, address: str) -> GeocodeResult | None: ...


class GoogleMapsClient:
    """Adapter for the Google Maps Places, Distance Matrix and Geocoding APIs."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        concurrency: int | None = None,
        cache: CacheService | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = settings.google_maps_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.google_maps_base_url).rstrip("/")
        self.timeout = timeout or settings.provider_timeout_seconds
        self._semaphore = asyncio.Semaphore(concurrency or settings.provider_concurrency)
        self._cache = cache
        self._client = http_client
        self._use_mock = not self.api_key

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def _request(self, path: str, params: dict) -> dict:
        """GET a Maps endpoint; raise ProviderError on any non-success outcome."""
        client = await self._get_client()
        async with self._semaphore:
            try:
                resp = await client.get(path, params={**params, "key": self.api_key})
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPStatusError as e:
                logger.error(f"Google Maps {path} HTTP error: {e.response.status_code}")
                raise ProviderError(f"Maps provider returned HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                logger.error(f"Google Maps {path} request error: {e}")
                raise ProviderError(f"Maps provider unreachable: {e}") from e
            except ValueError as e:
                raise ProviderError("Maps provider returned invalid JSON") from e

        status = data.get("status", "UNKNOWN_ERROR")
        if status not in SUCCESS_STATUSES:
            detail = data.get("error_message", "")
            logger.warning(f"Google Maps {path} status {status}: {detail}")
            raise ProviderError(f"Maps provider status {status}", provider_status=status)
        return data

    # ─── Places ───

    async def text_search(
        self,
        query: str,
        center: Coordinate,
        radius_meters: int,
        page_token: str | None = None,
        place_type: str | None = None,
    ) -> TextSearchPage:
        """One page of Places text search results around `center`."""
        if self._use_mock:
            return self._generate_mock_places(query, center, radius_meters, page_token, place_type)

        cache_key = None
        if self._cache is not None:
            cache_key = self._cache.place_search_key(
                query, f"{center.latitude:.5f},{center.longitude:.5f}",
                radius_meters, place_type, page_token,
            )
            cached = await self._cache.get_place_search(cache_key)
            if cached is not None:
                return TextSearchPage(cached.get("results", []), cached.get("next_page_token"))

        params: dict = {
            "query": query,
            "location": center.as_param(),
            "radius": radius_meters,
        }
        if place_type:
            params["type"] = place_type
        if page_token:
            params["pagetoken"] = page_token

        data = await self._request("/place/textsearch/json", params)
        page = TextSearchPage(
            results=data.get("results", []),
            next_page_token=data.get("next_page_token"),
        )

        if cache_key is not None:
            await self._cache.set_place_search(
                cache_key, {"results": page.results, "next_page_token": page.next_page_token}
            )
        return page

    # ─── Distance Matrix ───

    async def distance_matrix(
        self,
        origins: list[Coordinate],
        destinations: list[Coordinate],
        mode: str = "driving",
    ) -> list[list[MatrixCell | None]]:
        """Rows = origins, columns = destinations; None marks a failed cell."""
        if not origins or not destinations:
            return [[None] * len(destinations) for _ in origins]

        if self._use_mock:
            return self._generate_mock_matrix(origins, destinations)

        data = await self._request(
            "/distancematrix/json",
            {
                "origins": "|".join(o.as_param() for o in origins),
                "destinations": "|".join(d.as_param() for d in destinations),
                "mode": mode,
            },
        )

        rows = data.get("rows", [])
        matrix: list[list[MatrixCell | None]] = []
        for i in range(len(origins)):
            elements = rows[i].get("elements", []) if i < len(rows) else []
            row: list[MatrixCell | None] = []
            for j in range(len(destinations)):
                el = elements[j] if j < len(elements) else {}
                row.append(self._parse_cell(el))
            matrix.append(row)
        return matrix

    @staticmethod
    def _parse_cell(element: dict) -> MatrixCell | None:
        if not element or element.get("status") != "OK":
            return None
        distance = element.get("distance", {}).get("value")
        duration = element.get("duration", {}).get("value")
        if distance is None or duration is None:
            return None
        try:
            distance = float(distance)
            duration = float(duration)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(distance) and math.isfinite(duration)):
            return None
        return MatrixCell(distance_meters=int(distance), duration_seconds=int(duration))

    # ─── Geocoding ───

    async def geocode(self, address: str) -> GeocodeResult | None:
        """Resolve a free-text address; None when nothing matches."""
        if self._use_mock:
            return self._generate_mock_geocode(address)

        if self._cache is not None:
            cached = await self._cache.get_geocode(address)
            if cached is not None:
                return GeocodeResult(
                    location=Coordinate(cached["lat"], cached["lng"]),
                    formatted_address=cached["formatted_address"],
                )

        data = await self._request("/geocode/json", {"address": address})
        results = data.get("results", [])
        if data.get("status") == "ZERO_RESULTS" or not results:
            return None

        first = results[0]
        loc = first.get("geometry", {}).get("location", {})
        if loc.get("lat") is None or loc.get("lng") is None:
            raise ProviderError("Geocoding result has no location")
        result = GeocodeResult(
            location=Coordinate(loc.get("lat"), loc.get("lng")),
            formatted_address=first.get("formatted_address", address),
        )

        if self._cache is not None:
            await self._cache.set_geocode(address, {
                **result.location.to_dict(),
                "formatted_address": result.formatted_address,
            })
        return result

    # --- Mock data generation for demo mode ---

    def _generate_mock_places(
        self,
        query: str,
        center: Coordinate,
        radius_meters: int,
        page_token: str | None,
        place_type: str | None,
    ) -> TextSearchPage:
        """Deterministic fake places scattered within the search radius."""
        seed_str = f"{query}{center.latitude:.4f}{center.longitude:.4f}{page_token or ''}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        # Qualifier queries ("best cafe") reuse the base term in names
        term = query.split()[-1] if query else "place"
        suffixes = ["Corner", "House", "Central", "Garden", "Hub", "Lounge", "Square", "Point"]
        streets = ["Main St", "Park Ave", "High St", "Market Rd", "Station Rd", "Lake View"]

        results = []
        for _ in range(rng.randint(4, 9)):
            # Uniform in a disc; 1 deg latitude ~ 111 km
            r_km = (radius_meters / 1000.0) * math.sqrt(rng.random())
            theta = rng.uniform(0, 2 * math.pi)
            d_lat = (r_km / 111.0) * math.cos(theta)
            d_lng = (r_km / (111.0 * max(0.1, math.cos(math.radians(center.latitude))))) * math.sin(theta)
            lat = max(-90.0, min(90.0, center.latitude + d_lat))
            lng = max(-180.0, min(180.0, center.longitude + d_lng))

            name = f"{term.title()} {rng.choice(suffixes)}"
            place_id = "mock_" + hashlib.md5(f"{name}{lat:.5f}{lng:.5f}".encode()).hexdigest()[:16]
            results.append({
                "place_id": place_id,
                "name": name,
                "formatted_address": f"{rng.randint(1, 250)} {rng.choice(streets)}",
                "geometry": {"location": {"lat": lat, "lng": lng}},
                "types": [place_type or term, "point_of_interest", "establishment"],
                "rating": round(rng.uniform(3.2, 4.9), 1),
                "user_ratings_total": rng.randint(0, 800),
            })

        next_token = None if page_token else f"mock-next-{seed:x}"
        return TextSearchPage(results=results, next_page_token=next_token)

    def _generate_mock_matrix(
        self, origins: list[Coordinate], destinations: list[Coordinate]
    ) -> list[list[MatrixCell | None]]:
        """Straight-line distance inflated by a road factor, at city driving speed."""
        matrix = []
        for o in origins:
            row = []
            for d in destinations:
                km = great_circle_distance_km(o, d) * ROAD_FACTOR
                row.append(MatrixCell(
                    distance_meters=int(km * 1000),
                    duration_seconds=int(km / DRIVING_SPEED_KMH * 3600),
                ))
            matrix.append(row)
        return matrix

    def _generate_mock_geocode(self, address: str) -> GeocodeResult | None:
        if not address.strip():
            return None
        seed = int(hashlib.md5(address.lower().encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)
        # Demo addresses land around a fixed city center (Nagpur)
        return GeocodeResult(
            location=Coordinate(21.1458 + rng.uniform(-0.05, 0.05), 79.0882 + rng.uniform(-0.05, 0.05)),
            formatted_address=address.strip(),
        )

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


google_maps_client = GoogleMapsClient(cache=cache_service if settings.cache_enabled else None)
