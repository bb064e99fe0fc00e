"""
Location service — OSRM routing and Nominatim geocoding over httpx.

All three lookups are enrichments. Failures are logged and degrade quietly:
reverse geocoding returns None, search returns [], and routing falls back
to a straight line with haversine distance.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from config import Settings
from services.store_service import haversine_km

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5
# Rough urban driving speed for the straight-line fallback (m/s, ~25 km/h)
FALLBACK_SPEED_MPS = 25_000 / 3600

# Nominatim address parts, most specific first, joined with ", "
_ADDRESS_PARTS = (
    ("house_number",),
    ("building", "flat"),
    ("road", "pedestrian", "street"),
    ("suburb", "neighbourhood", "residential", "village"),
    ("city", "town"),
)


@dataclass
class Route:
    path: list[list[float]]          # [[lat, lng], ...]
    distance_m: float
    duration_s: float
    fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "distance": round(self.distance_m, 1),
            "duration": round(self.duration_s, 1),
            "fallback": self.fallback,
        }


@dataclass
class AddressCandidate:
    display_name: str
    lat: float
    lng: float
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"displayName": self.display_name, "lat": self.lat, "lng": self.lng}


def short_address(payload: dict) -> Optional[str]:
    """Compose a short address from a Nominatim reverse result."""
    address = payload.get("address") or {}
    parts = []
    for keys in _ADDRESS_PARTS:
        for key in keys:
            if address.get(key):
                parts.append(str(address[key]))
                break
    if parts:
        return ", ".join(parts)
    return payload.get("display_name") or None


def straight_line(start_lat: float, start_lng: float, end_lat: float, end_lng: float) -> Route:
    distance_m = haversine_km(start_lat, start_lng, end_lat, end_lng) * 1000
    return Route(
        path=[[start_lat, start_lng], [end_lat, end_lng]],
        distance_m=distance_m,
        duration_s=distance_m / FALLBACK_SPEED_MPS,
        fallback=True,
    )


class LocationClient:
    """Thin async client for the routing and geocoding collaborators."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self._client = client
        self._osrm = settings.osrm_base_url.rstrip("/")
        self._nominatim = settings.nominatim_base_url.rstrip("/")
        self._headers = {"User-Agent": settings.geocoder_user_agent}
        self._timeout = settings.http_timeout_seconds

    async def get_route(self, start_lat: float, start_lng: float, end_lat: float, end_lng: float) -> Route:
        """Driving route between two points; straight line if OSRM fails."""
        url = f"{self._osrm}/route/v1/driving/{start_lng},{start_lat};{end_lng},{end_lat}"
        try:
            response = await self._client.get(
                url,
                params={"overview": "full", "geometries": "geojson"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
            routes = data.get("routes") or []
            if data.get("code", "Ok") != "Ok" or not routes:
                raise ValueError(f"no route ({data.get('code')})")
            best = routes[0]
            # GeoJSON is [lng, lat]
            path = [[lat, lng] for lng, lat in best["geometry"]["coordinates"]]
            return Route(path=path, distance_m=float(best["distance"]), duration_s=float(best["duration"]))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Routing failed, using straight line: {e}")
            return straight_line(start_lat, start_lng, end_lat, end_lng)

    async def reverse_geocode(self, lat: float, lng: float) -> Optional[str]:
        """Short address for a point, or None."""
        try:
            response = await self._client.get(
                f"{self._nominatim}/reverse",
                params={"format": "json", "lat": lat, "lon": lng},
                headers=self._headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            return short_address(response.json())
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Reverse geocoding failed for ({lat}, {lng}): {e}")
            return None

    async def search_address(self, query: str) -> list[AddressCandidate]:
        """Up to five address matches for free text, or []."""
        if not query or not query.strip():
            return []
        try:
            response = await self._client.get(
                f"{self._nominatim}/search",
                params={"format": "json", "q": query.strip(), "limit": SEARCH_LIMIT},
                headers=self._headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            return [
                AddressCandidate(
                    display_name=hit["display_name"],
                    lat=float(hit["lat"]),
                    lng=float(hit["lon"]),
                    extra=hit,
                )
                for hit in response.json()[:SEARCH_LIMIT]
            ]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Address search failed for {query!r}: {e}")
            return []
