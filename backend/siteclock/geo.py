"""Location capture for shift transitions.

A missing fix must never hold up a transition, so :func:`capture` turns every
failure (no provider, denied, bad payload, timeout) into ``None``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .errors import GeoUnavailable
from .models import GeoPoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class GeoProvider:
    """Source of a single location fix."""

    async def locate(self) -> Optional[GeoPoint]:
        raise NotImplementedError


class NullGeoProvider(GeoProvider):
    """Location services are not available."""

    async def locate(self) -> Optional[GeoPoint]:
        return None


class ClientGeoProvider(GeoProvider):
    """Returns the fix the device reported together with the UI event."""

    def __init__(self, point: Optional[GeoPoint]) -> None:
        self.point = point

    async def locate(self) -> Optional[GeoPoint]:
        return self.point


class HttpGeoProvider(GeoProvider):
    """Asks a JSON location endpoint for the current position."""

    def __init__(self, url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.url = url
        self.transport = transport

    async def locate(self) -> Optional[GeoPoint]:
        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.get(self.url, params={"enableHighAccuracy": "true"})
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                raise GeoUnavailable(f"Location lookup failed: {exc}") from exc
        return parse_geo_payload(data)


def parse_geo_payload(data: Any) -> GeoPoint:
    if not isinstance(data, dict):
        raise GeoUnavailable("Location payload is not an object")
    coords: Dict[str, Any] = data.get("coords") if isinstance(data.get("coords"), dict) else data
    lat = _first_present(coords, "lat", "latitude")
    lng = _first_present(coords, "lng", "lon", "longitude")
    if lat is None or lng is None:
        raise GeoUnavailable("Location payload has no coordinates")
    try:
        return GeoPoint(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError) as exc:
        raise GeoUnavailable(f"Invalid coordinates: {lat!r}, {lng!r}") from exc


def _first_present(values: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if values.get(key) is not None:
            return values[key]
    return None


async def capture(provider: Optional[GeoProvider], timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Optional[GeoPoint]:
    """Take one fix from ``provider`` within ``timeout`` seconds, or ``None``."""
    if provider is None:
        return None
    try:
        return await asyncio.wait_for(provider.locate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.info("Location capture timed out after %.1fs", timeout)
    except GeoUnavailable as exc:
        logger.info("Location unavailable: %s", exc)
    except Exception:  # pragma: no cover - provider bugs must not block a transition
        logger.debug("Location provider %r failed", provider, exc_info=True)
    return None


def build_geo_provider(config: Settings) -> GeoProvider:
    if config.geo_source == "http":
        if not config.geo_lookup_url:
            logger.warning("geo_source is 'http' but no geo_lookup_url is configured")
            return NullGeoProvider()
        return HttpGeoProvider(config.geo_lookup_url)
    # "client" fixes arrive with each request; without one there is nothing to ask.
    return NullGeoProvider()


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "GeoProvider",
    "NullGeoProvider",
    "ClientGeoProvider",
    "HttpGeoProvider",
    "parse_geo_payload",
    "capture",
    "build_geo_provider",
]
