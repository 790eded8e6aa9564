"""HTTP transport with rate-limit header extraction and hard timeouts."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from pyaeris._constants import RATE_LIMIT_REMAINING_HEADER, RATE_LIMIT_RETRY_AFTER_HEADER, USER_AGENT
from pyaeris.config import AerisConfig
from pyaeris.exceptions import AerisRateLimitError, AerisTimeoutError, AerisTransportError
from pyaeris.ingestion.normalize import parse_int_header
from pyaeris.models.results import RateLimitInfo

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JsonResponse:
    """Decoded 200 response plus the quota headers that came with it."""

    data: Any
    rate_limit: RateLimitInfo


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> JsonResponse: ...


def parse_rate_limit_info(headers: Mapping[str, str]) -> RateLimitInfo:
    return RateLimitInfo(
        credits_remaining=parse_int_header(headers.get(RATE_LIMIT_REMAINING_HEADER)),
        retry_after_seconds=parse_int_header(headers.get(RATE_LIMIT_RETRY_AFTER_HEADER)),
    )


class HttpTransport:
    """aiohttp transport bound to one base URL.

    Every request carries its own hard timeout, independent of any
    cancellation the caller applies to the surrounding task.
    """

    def __init__(self, config: AerisConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.poll.request_timeout_s)

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> JsonResponse:
        """GET *endpoint* and decode the JSON body.

        Raises
        ------
        AerisRateLimitError
            On HTTP 429; carries the retry hint and remaining credits.
        AerisTimeoutError
            When the hard timeout elapses.
        AerisTransportError
            On any other network failure, non-200 status or invalid JSON.
        """
        url = f"{self._config.resolved_base_url}{endpoint}"
        headers = {"accept": "application/json", "user-agent": USER_AGENT, "cache-control": "no-store"}

        _logger.debug("GET %s %s", url, dict(params))

        try:
            async with self._http.get(url, params=dict(params), headers=headers, timeout=self._timeout) as resp:
                info = parse_rate_limit_info(resp.headers)
                text = await resp.text()
                if resp.status == 429:
                    raise AerisRateLimitError(
                        f"HTTP 429 from {endpoint}",
                        endpoint=endpoint,
                        retry_after_seconds=info.retry_after_seconds,
                        credits_remaining=info.credits_remaining,
                    )
                if resp.status != 200:
                    raise AerisTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except AerisTransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise AerisTimeoutError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc
        except aiohttp.ClientError as exc:
            raise AerisTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc
        except UnicodeDecodeError as exc:
            raise AerisTransportError(f"Undecodable body from {endpoint}: {exc}", endpoint=endpoint) from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise AerisTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=200,
                endpoint=endpoint,
            ) from exc

        return JsonResponse(data=data, rate_limit=info)
