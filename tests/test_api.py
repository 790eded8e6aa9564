from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from pyaeris._api import adsbfi as adsbfi_api
from pyaeris._api import states as states_api
from pyaeris._api import tracks as tracks_api
from pyaeris._transport import HttpTransport, JsonResponse, parse_rate_limit_info
from pyaeris.client import AerisClient
from pyaeris.config import AerisConfig
from pyaeris.exceptions import (
    AerisEndpointNotSupportedError,
    AerisError,
    AerisRateLimitError,
    AerisTransportError,
)
from pyaeris.models.region import BoundingBox
from pyaeris.models.results import RateLimitInfo

BBOX = BoundingBox(lamin=47.0, lamax=48.0, lomin=8.0, lomax=9.0)

_STATE_ROW = [
    "abc123", "SWR123", "Switzerland", 1, 1, 8.5, 47.5, 10_000.0, False,
    230.0, 90.0, 0.0, None, 10_100.0, None, False, 0,
]  # fmt: skip

_TRACK = {
    "icao24": "abc123",
    "path": [
        [1_700_000_000, 47.0, 8.0, 9_000.0, 90.0, False],
        [1_700_000_060, 47.1, 8.1, 9_100.0, 90.0, False],
    ],
}


class _FakeTransport:
    """Replays queued answers per endpoint; an exception instance is raised."""

    def __init__(self, answers: Mapping[str, list[Any]]) -> None:
        self._answers = {endpoint: list(queue) for endpoint, queue in answers.items()}
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> JsonResponse:
        self.calls.append((endpoint, dict(params)))
        answer = self._answers[endpoint].pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _ok(data: Any, credits: int | None = None) -> JsonResponse:
    return JsonResponse(data=data, rate_limit=RateLimitInfo(credits_remaining=credits))


def _status(code: int, endpoint: str) -> AerisTransportError:
    return AerisTransportError(f"HTTP {code}", status_code=code, endpoint=endpoint)


def test_parse_rate_limit_info_reads_headers() -> None:
    info = parse_rate_limit_info({"x-rate-limit-remaining": "3996", "x-rate-limit-retry-after-seconds": "42"})

    assert info.credits_remaining == 3996
    assert info.retry_after_seconds == 42
    assert parse_rate_limit_info({}).credits_remaining is None


class _BadBodyResponse:
    status = 200
    headers: dict[str, str] = {}

    async def __aenter__(self) -> _BadBodyResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def text(self) -> str:
        raise UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")


class _BadBodySession:
    def get(self, url: str, **kwargs: Any) -> _BadBodyResponse:
        return _BadBodyResponse()


@pytest.mark.asyncio
async def test_undecodable_body_is_a_transport_error() -> None:
    transport = HttpTransport(AerisConfig(), _BadBodySession())  # type: ignore[arg-type]

    with pytest.raises(AerisTransportError, match="Undecodable"):
        await transport.get_json("/states/all", {})


@pytest.mark.asyncio
async def test_states_bbox_query_parses_flights_and_credits() -> None:
    transport = _FakeTransport({"/states/all": [_ok({"time": 1, "states": [_STATE_ROW]}, credits=3_996)]})

    result = await states_api.fetch_flights_by_bbox(AerisConfig(), transport, BBOX)

    assert [f.icao24 for f in result.flights] == ["abc123"]
    assert result.credits_remaining == 3_996
    assert not result.rate_limited
    endpoint, params = transport.calls[0]
    assert endpoint == "/states/all"
    assert params == {"lamin": "47.0", "lamax": "48.0", "lomin": "8.0", "lomax": "9.0", "extended": "1"}


@pytest.mark.asyncio
async def test_states_bbox_query_normalizes_inverted_box() -> None:
    transport = _FakeTransport({"/states/all": [_ok({"states": []})]})

    await states_api.fetch_flights_by_bbox(
        AerisConfig(), transport, BoundingBox(lamin=95.0, lamax=80.0, lomin=170.0, lomax=190.0)
    )

    params = transport.calls[0][1]
    assert (params["lamin"], params["lamax"]) == ("80.0", "90.0")
    assert (params["lomin"], params["lomax"]) == ("170.0", "180.0")


@pytest.mark.asyncio
async def test_states_rate_limit_is_a_result_not_an_error() -> None:
    limited = AerisRateLimitError("HTTP 429", retry_after_seconds=120, credits_remaining=0)
    transport = _FakeTransport({"/states/all": [limited]})

    result = await states_api.fetch_flights_by_bbox(AerisConfig(), transport, BBOX)

    assert result.rate_limited
    assert result.flights == ()
    assert result.retry_after_seconds == 120
    assert result.credits_remaining == 0


@pytest.mark.asyncio
async def test_states_other_failures_propagate() -> None:
    transport = _FakeTransport({"/states/all": [_status(500, "/states/all")]})

    with pytest.raises(AerisTransportError):
        await states_api.fetch_flights_by_bbox(AerisConfig(), transport, BBOX)


@pytest.mark.asyncio
async def test_single_aircraft_lookup() -> None:
    ground_row = list(_STATE_ROW)
    ground_row[8] = True
    transport = _FakeTransport({"/states/all": [_ok({"states": [ground_row]}, credits=3_990)]})

    result = await states_api.fetch_flight_by_icao24(AerisConfig(), transport, " ABC123 ")

    assert result.flight is not None
    assert result.flight.on_ground
    assert transport.calls[0][1] == {"icao24": "abc123", "extended": "1"}
    assert (await states_api.fetch_flight_by_icao24(AerisConfig(), transport, "nope")).flight is None


@pytest.mark.asyncio
async def test_track_primary_endpoint() -> None:
    transport = _FakeTransport({"/tracks/all": [_ok(_TRACK, credits=3_900)]})

    result = await tracks_api.fetch_track_by_icao24(transport, "ABC123", now_s=1_700_000_100)

    assert result.track is not None
    assert len(result.track.path) == 2
    assert result.credits_remaining == 3_900
    assert transport.calls == [("/tracks/all", {"icao24": "abc123", "time": "0"})]


@pytest.mark.asyncio
async def test_track_falls_back_to_secondary_endpoint_on_404() -> None:
    transport = _FakeTransport(
        {
            "/tracks/all": [_status(404, "/tracks/all")],
            "/tracks": [_ok(_TRACK)],
        }
    )

    result = await tracks_api.fetch_track_by_icao24(transport, "abc123", now_s=1_700_000_100)

    assert result.track is not None
    assert [c[0] for c in transport.calls] == ["/tracks/all", "/tracks"]


@pytest.mark.asyncio
async def test_track_does_not_fall_back_on_auth_failure() -> None:
    transport = _FakeTransport({"/tracks/all": [_status(403, "/tracks/all")]})

    result = await tracks_api.fetch_track_by_icao24(transport, "abc123", now_s=1_700_000_100)

    assert result.track is None
    assert not result.not_found
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_track_not_found_retries_with_current_time() -> None:
    transport = _FakeTransport(
        {
            "/tracks/all": [_status(404, "/tracks/all"), _ok(_TRACK)],
            "/tracks": [_status(404, "/tracks")],
        }
    )

    result = await tracks_api.fetch_track_by_icao24(transport, "abc123", now_s=1_700_000_100.7)

    assert result.track is not None
    assert transport.calls[-1] == ("/tracks/all", {"icao24": "abc123", "time": "1700000100"})


@pytest.mark.asyncio
async def test_track_not_found_everywhere() -> None:
    transport = _FakeTransport(
        {
            "/tracks/all": [_status(404, "/tracks/all"), _status(404, "/tracks/all")],
            "/tracks": [_status(404, "/tracks"), _status(404, "/tracks")],
        }
    )

    result = await tracks_api.fetch_track_by_icao24(transport, "abc123", now_s=1_700_000_100)

    assert result.not_found
    assert result.track is None
    assert len(transport.calls) == 4


@pytest.mark.asyncio
async def test_track_at_explicit_time_is_not_retried() -> None:
    transport = _FakeTransport(
        {
            "/tracks/all": [_status(404, "/tracks/all")],
            "/tracks": [_status(404, "/tracks")],
        }
    )

    result = await tracks_api.fetch_track_by_icao24(transport, "abc123", 1_699_999_000.9, now_s=1_700_000_100)

    assert result.not_found
    assert transport.calls[0][1]["time"] == "1699999000"
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_track_rate_limit() -> None:
    limited = AerisRateLimitError("HTTP 429", retry_after_seconds=600, credits_remaining=0)
    transport = _FakeTransport({"/tracks/all": [limited]})

    result = await tracks_api.fetch_track_by_icao24(transport, "abc123", now_s=1_700_000_100)

    assert result.rate_limited
    assert result.retry_after_seconds == 600
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_adsbfi_radial_query_and_rate_limit() -> None:
    payload = {"ac": [{"hex": "4b1805", "lat": 47.5, "lon": 8.5, "alt_baro": 30_000}]}
    transport = _FakeTransport(
        {
            "/lat/47.50000/lon/8.50000/dist/32": [_ok(payload), AerisRateLimitError("HTTP 429")],
        }
    )
    config = AerisConfig(provider="adsbfi")

    result = await adsbfi_api.fetch_flights_by_bbox(config, transport, BBOX)
    limited = await adsbfi_api.fetch_flights_by_bbox(config, transport, BBOX)

    assert [f.icao24 for f in result.flights] == ["4b1805"]
    assert result.credits_remaining is None
    assert limited.rate_limited
    assert limited.retry_after_seconds == 10


@pytest.mark.asyncio
async def test_client_dispatches_by_provider() -> None:
    transport = _FakeTransport({"/states/all": [_ok({"states": [_STATE_ROW]})]})

    async with AerisClient(AerisConfig(), transport=transport) as client:
        result = await client.fetch_flights(BBOX)

    assert client.supports_tracks
    assert [f.icao24 for f in result.flights] == ["abc123"]


@pytest.mark.asyncio
async def test_adsbfi_client_has_no_track_endpoint() -> None:
    transport = _FakeTransport({})

    async with AerisClient(AerisConfig(provider="adsbfi"), transport=transport) as client:
        assert not client.supports_tracks
        with pytest.raises(AerisEndpointNotSupportedError):
            await client.fetch_track("abc123")
        with pytest.raises(AerisEndpointNotSupportedError):
            await client.fetch_flight("abc123")

    assert transport.calls == []


@pytest.mark.asyncio
async def test_client_requires_context_manager() -> None:
    client = AerisClient(AerisConfig())

    with pytest.raises(AerisError, match="not initialized"):
        await client.fetch_flights(BBOX)
