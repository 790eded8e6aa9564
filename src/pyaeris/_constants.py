"""Internal constants shared across the library."""

OPENSKY_BASE_URL = "https://opensky-network.org/api"
ADSBFI_BASE_URL = "https://opendata.adsb.fi/api/v3"
USER_AGENT = "pyaeris/1 (+aiohttp)"

RATE_LIMIT_REMAINING_HEADER = "x-rate-limit-remaining"
RATE_LIMIT_RETRY_AFTER_HEADER = "x-rate-limit-retry-after-seconds"

#: Metres per degree of latitude, used for every degree <-> distance conversion.
METERS_PER_DEGREE = 111_320.0

# ------------------------------------------------------------------
# Unit conversions (ADS-B.fi reports imperial units)
# ------------------------------------------------------------------

FEET_TO_METERS = 0.3048
KNOTS_TO_MPS = 0.51444
FPM_PER_MPS = 196.85
NM_PER_DEGREE_LAT = 60.0

#: ADS-B emitter category letter codes -> OpenSky integer encoding.
CATEGORY_CODES: dict[str, int] = {
    "A0": 1,
    "A1": 1,
    "A2": 2,
    "A3": 3,
    "A4": 4,
    "A5": 5,
    "A6": 6,
    "A7": 7,
    "B0": 8,
    "B1": 9,
    "B2": 10,
    "B3": 11,
    "B4": 12,
    "B5": 13,
    "B6": 14,
    "B7": 15,
    "C0": 16,
    "C1": 17,
    "C2": 18,
    "C3": 19,
    "D0": 24,
}
