"""High-level async client for live aircraft data."""

from __future__ import annotations

import logging
import time
from typing import Any

import aiohttp

from pyaeris._api import adsbfi as _adsbfi_api
from pyaeris._api import states as _states_api
from pyaeris._api import tracks as _tracks_api
from pyaeris._transport import HttpTransport, Transport
from pyaeris.config import AerisConfig
from pyaeris.exceptions import AerisEndpointNotSupportedError, AerisError
from pyaeris.models.region import BoundingBox
from pyaeris.models.results import FetchResult, FlightLookupResult, TrackFetchResult

_logger = logging.getLogger(__name__)


class AerisClient:
    """Async client for the configured live-traffic provider.

    Usage::

        async with AerisClient(AerisConfig.from_env()) as client:
            result = await client.fetch_flights(bbox)

    Parameters
    ----------
    config : AerisConfig or None
        Client configuration; defaults to ``AerisConfig.from_env()``.
    session : aiohttp.ClientSession or None
        External HTTP session.  It is left open on exit.
    transport : Transport or None
        Replaces the HTTP transport entirely (used by tests).
    """

    def __init__(
        self,
        config: AerisConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or AerisConfig.from_env()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    @property
    def config(self) -> AerisConfig:
        return self._config

    @property
    def supports_tracks(self) -> bool:
        return self._config.provider == "opensky"

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> AerisClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        _logger.debug("Using provider %s at %s", self._config.provider, self._config.resolved_base_url)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise AerisError("Client not initialized. Use 'async with AerisClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def fetch_flights(self, bbox: BoundingBox) -> FetchResult:
        """Every aircraft inside *bbox* (one poll)."""
        transport = self._require_transport()
        if self._config.provider == "adsbfi":
            return await _adsbfi_api.fetch_flights_by_bbox(self._config, transport, bbox)
        return await _states_api.fetch_flights_by_bbox(self._config, transport, bbox)

    async def fetch_flight(self, icao24: str) -> FlightLookupResult:
        """Current state of one aircraft, wherever it is."""
        transport = self._require_transport()
        if self._config.provider != "opensky":
            raise AerisEndpointNotSupportedError(f"{self._config.provider} has no per-aircraft lookup")
        return await _states_api.fetch_flight_by_icao24(self._config, transport, icao24)

    async def fetch_track(self, icao24: str, at: float = 0) -> TrackFetchResult:
        """Historical track of *icao24*; ``at=0`` asks for the ongoing flight."""
        transport = self._require_transport()
        if not self.supports_tracks:
            raise AerisEndpointNotSupportedError(f"{self._config.provider} has no track endpoint")
        return await _tracks_api.fetch_track_by_icao24(transport, icao24, at, now_s=time.time())
