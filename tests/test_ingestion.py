from __future__ import annotations

import math

import pytest

from pyaeris.ingestion.adsbfi import MAX_RADIUS_NM, bbox_to_radial_query, parse_aircraft, parse_aircraft_list
from pyaeris.ingestion.normalize import finite_number, normalize_icao24, parse_int_header, safe_str
from pyaeris.ingestion.opensky import parse_flight_track, parse_state_row, parse_states
from pyaeris.models.region import BoundingBox


def _state_row(
    icao24: str = "ABC123",
    *,
    lng: float | None = 8.5,
    lat: float | None = 47.4,
    baro: float | None = 10_000.0,
    on_ground: bool = False,
    category: int | None = None,
) -> list[object]:
    row: list[object] = [
        icao24,
        "SWR123  ",
        "Switzerland",
        1_700_000_000,
        1_700_000_001,
        lng,
        lat,
        baro,
        on_ground,
        230.5,
        92.0,
        -1.5,
        None,
        10_150.0,
        "1000",
        False,
        0,
    ]
    if category is not None:
        row.append(category)
    return row


def test_normalize_helpers() -> None:
    assert normalize_icao24(" 4B1805 ") == "4b1805"
    assert normalize_icao24("4b18") is None
    assert normalize_icao24(0x4B1805) is None
    assert finite_number(True) is None
    assert finite_number(float("nan")) is None
    assert finite_number("12") is None
    assert finite_number(12) == 12.0
    assert safe_str("   ") is None
    assert parse_int_header("399 ") == 399
    assert parse_int_header("abc") is None


def test_parse_state_row_maps_positional_fields() -> None:
    flight = parse_state_row(_state_row(category=4))

    assert flight is not None
    assert flight.icao24 == "abc123"
    assert flight.callsign == "SWR123"
    assert flight.origin_country == "Switzerland"
    assert flight.position == (8.5, 47.4)
    assert flight.baro_altitude == 10_000.0
    assert flight.velocity == 230.5
    assert flight.true_track == 92.0
    assert flight.category == 4


def test_parse_state_row_rejects_short_rows_and_bad_addresses() -> None:
    assert parse_state_row(_state_row()[:10]) is None
    assert parse_state_row(_state_row("zzzzzz")) is None
    assert parse_state_row("not a row") is None


def test_parse_states_filters_unusable_rows() -> None:
    payload = {
        "time": 1_700_000_000,
        "states": [
            _state_row("aaaaaa"),
            _state_row("bbbbbb", lng=None),
            _state_row("cccccc", on_ground=True),
            _state_row("dddddd", baro=None),
            _state_row("eeeeee", lat=float("nan")),
        ],
    }

    assert [f.icao24 for f in parse_states(payload)] == ["aaaaaa"]
    with_ground = parse_states(payload, include_ground=True, require_baro_altitude=False)
    assert [f.icao24 for f in with_ground] == ["aaaaaa", "cccccc", "dddddd"]


def test_parse_states_handles_empty_payloads() -> None:
    assert parse_states({"time": 1, "states": None}) == []
    assert parse_states(None) == []


def test_parse_flight_track_sorts_dedupes_and_reads_misspelled_callsign() -> None:
    payload = {
        "icao24": "abc123",
        "startTime": 1_700_000_000,
        "endTime": 1_700_000_300,
        "calllsign": "SWR123 ",
        "path": [
            [1_700_000_200, 47.2, 8.2, 9_000.0, 90.0, False],
            [1_700_000_000, 47.0, 8.0, 8_000.0, 90.0, False],
            [1_700_000_100, 47.1, 8.1, 8_500.0, 90.0, False],
            [1_700_000_150, 47.1, 8.1, 8_600.0, 90.0, False],
            [1_700_000_250, None, None, 9_100.0, 90.0, False],
            [1_700_000_260],
        ],
    }

    track = parse_flight_track("abc123", payload)

    assert track is not None
    assert track.callsign == "SWR123"
    assert [wp.time for wp in track.path] == [1_700_000_000, 1_700_000_100, 1_700_000_200]
    assert [(wp.longitude, wp.latitude) for wp in track.path] == [(8.0, 47.0), (8.1, 47.1), (8.2, 47.2)]
    assert track.last_time == 1_700_000_200


def test_parse_flight_track_needs_two_points() -> None:
    payload = {"path": [[1_700_000_000, 47.0, 8.0, 8_000.0, 90.0, False]]}

    assert parse_flight_track("abc123", payload) is None
    assert parse_flight_track("abc123", []) is None


def test_parse_aircraft_converts_units() -> None:
    flight = parse_aircraft(
        {
            "hex": "4B1805",
            "flight": "SWR8 ",
            "r": "HB-JCA",
            "lat": 47.45,
            "lon": 8.55,
            "alt_baro": 35_000,
            "alt_geom": 35_500,
            "gs": 450,
            "track": 271.5,
            "baro_rate": -1_000,
            "squawk": "1000",
            "category": "A3",
        }
    )

    assert flight is not None
    assert flight.icao24 == "4b1805"
    assert flight.callsign == "SWR8"
    assert flight.origin_country == "HB"
    assert flight.baro_altitude == pytest.approx(10_668.0)
    assert flight.geo_altitude == pytest.approx(10_820.4)
    assert flight.velocity == pytest.approx(231.498)
    assert flight.vertical_rate == pytest.approx(-5.08, abs=1e-3)
    assert flight.true_track == 271.5
    assert flight.category == 3
    assert not flight.on_ground


def test_parse_aircraft_ground_marker() -> None:
    flight = parse_aircraft({"hex": "4b1805", "lat": 47.45, "lon": 8.55, "alt_baro": "ground"})

    assert flight is not None
    assert flight.on_ground
    assert flight.baro_altitude is None


def test_parse_aircraft_requires_address_and_position() -> None:
    assert parse_aircraft({"hex": "~4b18", "lat": 1.0, "lon": 1.0}) is None
    assert parse_aircraft({"hex": "4b1805", "lat": 1.0}) is None
    assert parse_aircraft("4b1805") is None


def test_parse_aircraft_list_clips_to_bbox() -> None:
    bbox = BoundingBox(lamin=47.0, lamax=48.0, lomin=8.0, lomax=9.0)
    payload = {
        "ac": [
            {"hex": "aaaaaa", "lat": 47.5, "lon": 8.5, "alt_baro": 20_000},
            {"hex": "bbbbbb", "lat": 48.5, "lon": 8.5, "alt_baro": 20_000},
            {"hex": "cccccc", "lat": 47.5, "lon": 8.6, "alt_baro": "ground"},
            {"hex": "dddddd", "lat": 47.5, "lon": 8.7},
        ]
    }

    assert [f.icao24 for f in parse_aircraft_list(payload, bbox)] == ["aaaaaa"]
    assert [f.icao24 for f in parse_aircraft_list(payload, bbox, include_ground=True)] == ["aaaaaa", "cccccc"]
    assert parse_aircraft_list({"ac": None}, bbox) == []


def test_bbox_to_radial_query() -> None:
    lat, lon, radius = bbox_to_radial_query(BoundingBox(lamin=47.0, lamax=48.0, lomin=8.0, lomax=9.0))

    assert (lat, lon) == (47.5, 8.5)
    assert radius == math.ceil(30 * 1.05)

    _, _, capped = bbox_to_radial_query(BoundingBox(lamin=30.0, lamax=60.0, lomin=0.0, lomax=30.0))
    assert capped == MAX_RADIUS_NM
