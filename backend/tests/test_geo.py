from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import pytest

from siteclock.config import Settings
from siteclock.errors import GeoUnavailable
from siteclock.geo import (
    ClientGeoProvider,
    GeoProvider,
    HttpGeoProvider,
    NullGeoProvider,
    build_geo_provider,
    capture,
    parse_geo_payload,
)
from siteclock.models import GeoPoint


class HangingProvider(GeoProvider):
    async def locate(self) -> Optional[GeoPoint]:
        await asyncio.sleep(5)
        return GeoPoint(lat=1.0, lng=1.0)


class DeniedProvider(GeoProvider):
    async def locate(self) -> Optional[GeoPoint]:
        raise GeoUnavailable("User denied Geolocation")


def test_capture_returns_client_fix():
    point = GeoPoint(lat=53.48, lng=-2.24)
    assert asyncio.run(capture(ClientGeoProvider(point))) == point


def test_capture_without_provider_or_fix_is_none():
    assert asyncio.run(capture(None)) is None
    assert asyncio.run(capture(NullGeoProvider())) is None
    assert asyncio.run(capture(ClientGeoProvider(None))) is None


def test_capture_times_out_to_none():
    assert asyncio.run(capture(HangingProvider(), timeout=0.05)) is None


def test_capture_absorbs_denied_permission():
    assert asyncio.run(capture(DeniedProvider())) is None


def test_http_provider_reads_coordinates():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"latitude": 55.95, "longitude": -3.19, "accuracy": 12})

    provider = HttpGeoProvider("http://geo.test/locate", transport=httpx.MockTransport(handler))

    assert asyncio.run(capture(provider)) == GeoPoint(lat=55.95, lng=-3.19)
    assert seen["url"].startswith("http://geo.test/locate")


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, text="unavailable"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"status": "fail"}),
    ],
)
def test_http_provider_failures_yield_none(response: httpx.Response):
    provider = HttpGeoProvider("http://geo.test/locate", transport=httpx.MockTransport(lambda request: response))
    assert asyncio.run(capture(provider)) is None


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"lat": 1.5, "lng": 2.5}, GeoPoint(lat=1.5, lng=2.5)),
        ({"lat": "1.5", "lon": "2.5"}, GeoPoint(lat=1.5, lng=2.5)),
        ({"coords": {"latitude": 1.5, "longitude": 2.5}}, GeoPoint(lat=1.5, lng=2.5)),
    ],
)
def test_parse_geo_payload_variants(payload, expected):
    assert parse_geo_payload(payload) == expected


def test_parse_geo_payload_rejects_garbage():
    with pytest.raises(GeoUnavailable):
        parse_geo_payload({"lat": "north", "lng": 2})
    with pytest.raises(GeoUnavailable):
        parse_geo_payload(["1", "2"])


def test_build_geo_provider_follows_settings():
    assert isinstance(build_geo_provider(Settings(geo_source="none")), NullGeoProvider)
    assert isinstance(build_geo_provider(Settings(geo_source="client")), NullGeoProvider)
    assert isinstance(build_geo_provider(Settings(geo_source="http", geo_lookup_url=None)), NullGeoProvider)
    provider = build_geo_provider(Settings(geo_source="http", geo_lookup_url="http://geo.test/locate"))
    assert isinstance(provider, HttpGeoProvider)
    assert provider.url == "http://geo.test/locate"
