from __future__ import annotations

import pytest

from pyaeris._constants import ADSBFI_BASE_URL, OPENSKY_BASE_URL
from pyaeris.config import AerisConfig, PollTuning
from pyaeris.exceptions import AerisConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AERIS_PROVIDER", "AERIS_BASE_URL", "AERIS_INCLUDE_GROUND", "AERIS_REQUEST_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = AerisConfig.from_env()

    assert config.provider == "opensky"
    assert config.resolved_base_url == OPENSKY_BASE_URL
    assert not config.include_ground
    assert config.poll.max_region_radius_deg == 2.49


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AERIS_PROVIDER", " ADSBFI ")
    monkeypatch.setenv("AERIS_INCLUDE_GROUND", "yes")
    monkeypatch.setenv("AERIS_REQUEST_TIMEOUT", "7.5")

    config = AerisConfig.from_env()

    assert config.provider == "adsbfi"
    assert config.resolved_base_url == ADSBFI_BASE_URL
    assert config.include_ground
    assert config.poll.request_timeout_s == 7.5


def test_overrides_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AERIS_PROVIDER", "adsbfi")
    monkeypatch.setenv("AERIS_REQUEST_TIMEOUT", "7.5")

    config = AerisConfig.from_env(provider="opensky", poll=PollTuning(request_timeout_s=3.0))

    assert config.provider == "opensky"
    assert config.poll.request_timeout_s == 3.0


def test_base_url_proxy_strips_trailing_slash(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AERIS_BASE_URL", "https://proxy.example/opensky/")

    assert AerisConfig.from_env().resolved_base_url == "https://proxy.example/opensky"


def test_invalid_provider() -> None:
    with pytest.raises(AerisConfigError, match="provider"):
        AerisConfig(provider="flightradar")


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AERIS_REQUEST_TIMEOUT", "soon")

    with pytest.raises(AerisConfigError, match="AERIS_REQUEST_TIMEOUT"):
        AerisConfig.from_env()
