"""Client and engine configuration for pyaeris.

Every empirically tuned threshold of the synchronization engine lives in
one of the tuning dataclasses below so callers can override it without
touching the algorithms.  The defaults were tuned against live OpenSky
traffic and should be recalibrated before being relied on elsewhere.
"""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyaeris._constants import ADSBFI_BASE_URL, OPENSKY_BASE_URL
from pyaeris.exceptions import AerisConfigError

PROVIDERS: frozenset[str] = frozenset({"opensky", "adsbfi"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class PollTuning:
    """Timing of the bbox poll loop (all durations in milliseconds)."""

    rate_limit_fallback_ms: int = 30_000
    error_retry_ms: int = 30_000
    stale_resume_ms: int = 60_000
    min_resume_delay_ms: int = 1_000
    chase_radius_deg: float = 0.6
    max_region_radius_deg: float = 2.49
    request_timeout_s: float = 15.0


@dataclasses.dataclass(frozen=True)
class MotionTuning:
    """Interpolation / extrapolation parameters of the object state store."""

    teleport_threshold_deg: float = 0.3
    default_anim_duration_ms: float = 30_000.0
    min_anim_duration_ms: float = 8_000.0
    max_anim_duration_ms: float = 45_000.0
    cadence_scale: float = 0.9
    heading_damping: float = 0.6
    max_extrapolation_deg: float = 0.03
    virtual_prev_max_deg: float = 0.015
    default_speed_mps: float = 200.0


@dataclasses.dataclass(frozen=True)
class TrailTuning:
    """Trail capacity, jump detection, bootstrap and altitude filtering."""

    max_points: int = 100
    jump_threshold_deg: float = 0.3
    bootstrap_updates: int = 3
    bootstrap_polls: int = 3
    bootstrap_step_s: float = 12.0
    bootstrap_decay: float = 0.08
    bootstrap_max_deg: float = 0.06
    default_speed_mps: float = 200.0
    altitude_window: int = 6
    altitude_soft_step_m: float = 500.0
    altitude_hard_step_m: float = 12_000.0
    altitude_outlier_base_m: float = 1_200.0
    altitude_outlier_scale: float = 3.0
    altitude_mad_floor_m: float = 120.0
    altitude_alpha_trusted: float = 0.9
    altitude_alpha_guarded: float = 0.5
    altitude_trusted_streak: int = 2


@dataclasses.dataclass(frozen=True)
class ReconcileTuning:
    """Thresholds used when splicing a historical track onto the live trail.

    Distances are in degrees, ages in seconds.
    """

    search_window: int = 70
    tail_points: int = 18
    merge_snap_deg: float = 0.06
    connect_bridge_deg: float = 0.07
    max_connect_gap_deg: float = 3.5
    max_connect_gap_low_deg: float = 1.25
    low_altitude_m: float = 6_000.0
    disconnect_gap_deg: float = 0.25
    stale_age_s: float = 300.0
    stale_gap_deg: float = 0.1
    very_stale_age_s: float = 900.0
    very_stale_gap_deg: float = 0.06
    bridge_step_deg: float = 0.15
    bridge_min_steps: int = 6
    bridge_max_steps: int = 24
    guard_min_speed_mps: float = 30.0
    guard_fallback_speed_mps: float = 140.0
    guard_scale: float = 1.35
    guard_margin_deg: float = 0.22
    guard_floor_deg: float = 0.9
    guard_floor_low_deg: float = 0.75
    guard_cap_deg: float = 6.0
    guard_cap_low_deg: float = 2.8
    smoothing_enabled: bool = True
    smooth_min_turn_deg: float = 35.0
    smooth_max_passes: int = 8
    smooth_min_segment_deg: float = 0.0005


@dataclasses.dataclass(frozen=True)
class TrackCacheTuning:
    """Historical-track cache lifetimes and global backoff."""

    positive_ttl_ms: int = 10 * 60_000
    negative_ttl_ms: int = 60_000
    backoff_initial_ms: int = 5 * 60_000
    backoff_multiplier: float = 1.6
    backoff_min_ms: int = 60_000
    backoff_max_ms: int = 24 * 60 * 60_000
    selection_debounce_ms: int = 350


@dataclasses.dataclass(frozen=True)
class AerisConfig:
    """Client configuration.

    Parameters
    ----------
    provider : str
        Upstream data source, ``"opensky"`` or ``"adsbfi"``.
    base_url : str or None
        API base URL.  Defaults to the public endpoint of *provider*; point
        it at a proxy when the upstream needs credentials.
    include_ground : bool
        Keep on-ground aircraft in bbox batches.
    selection_missing_timeout_ms : int
        Drop the selection after the selected aircraft has been absent
        from every batch for this long.
    chase_max_misses : int
        Leave chase mode after this many consecutive batches without the
        chased aircraft.
    poll, motion, trail, reconcile, track_cache
        Tuning groups, see the individual dataclasses.
    """

    provider: str = "opensky"
    base_url: str | None = None
    include_ground: bool = False
    selection_missing_timeout_ms: int = 60_000
    chase_max_misses: int = 3
    poll: PollTuning = dataclasses.field(default_factory=PollTuning)
    motion: MotionTuning = dataclasses.field(default_factory=MotionTuning)
    trail: TrailTuning = dataclasses.field(default_factory=TrailTuning)
    reconcile: ReconcileTuning = dataclasses.field(default_factory=ReconcileTuning)
    track_cache: TrackCacheTuning = dataclasses.field(default_factory=TrackCacheTuning)

    def __post_init__(self) -> None:
        if self.provider not in PROVIDERS:
            raise AerisConfigError(f"provider must be one of {sorted(PROVIDERS)}, got {self.provider!r}")

    @property
    def resolved_base_url(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return ADSBFI_BASE_URL if self.provider == "adsbfi" else OPENSKY_BASE_URL

    @classmethod
    def from_env(cls, **overrides: Any) -> AerisConfig:
        """Create configuration from ``AERIS_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        AerisConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        provider = env.get("AERIS_PROVIDER")
        if provider is not None:
            config_kwargs["provider"] = provider.strip().lower()

        base_url = env.get("AERIS_BASE_URL")
        if base_url:
            config_kwargs["base_url"] = base_url

        if "include_ground" not in overrides:
            config_kwargs["include_ground"] = _env_bool(env.get("AERIS_INCLUDE_GROUND"), False)

        timeout_env = env.get("AERIS_REQUEST_TIMEOUT")
        if timeout_env is not None and "poll" not in overrides:
            try:
                config_kwargs["poll"] = PollTuning(request_timeout_s=float(timeout_env))
            except ValueError as exc:
                raise AerisConfigError(f"AERIS_REQUEST_TIMEOUT is not a number: {timeout_env!r}") from exc

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
