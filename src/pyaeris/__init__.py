"""pyaeris - Async live aircraft tracking with smooth, self-correcting motion."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyaeris")
except PackageNotFoundError:
    __version__ = "0+local"
from pyaeris._clock import AsyncioScheduler, Scheduler, VirtualScheduler
from pyaeris.client import AerisClient
from pyaeris.config import (
    AerisConfig,
    MotionTuning,
    PollTuning,
    ReconcileTuning,
    TrackCacheTuning,
    TrailTuning,
)
from pyaeris.exceptions import (
    AerisConfigError,
    AerisEndpointNotSupportedError,
    AerisError,
    AerisRateLimitError,
    AerisTimeoutError,
    AerisTransportError,
)
from pyaeris.models import (
    BoundingBox,
    FetchResult,
    FlightLookupResult,
    FlightState,
    FlightTrack,
    Region,
    TrackFetchResult,
    TrackWaypoint,
)
from pyaeris.poller import PollBatch, PollerStatus, PollScheduler, adaptive_interval
from pyaeris.session import SessionContext, SessionSnapshot
from pyaeris.state.animation import AnimatedPosition, MotionKind, ObjectStateStore
from pyaeris.state.reconcile import TrackReconciler
from pyaeris.state.track_cache import SelectedTrackLoader, TrackCache
from pyaeris.state.trails import TrailEntry, TrailStore
from pyaeris.tracker import Frame, LiveTracker, TrackerStatus

__all__ = [
    "__version__",
    "AerisClient",
    "AerisConfig",
    "AerisConfigError",
    "AerisEndpointNotSupportedError",
    "AerisError",
    "AerisRateLimitError",
    "AerisTimeoutError",
    "AerisTransportError",
    "AnimatedPosition",
    "AsyncioScheduler",
    "BoundingBox",
    "FetchResult",
    "FlightLookupResult",
    "FlightState",
    "FlightTrack",
    "Frame",
    "LiveTracker",
    "MotionKind",
    "MotionTuning",
    "ObjectStateStore",
    "PollBatch",
    "PollScheduler",
    "PollTuning",
    "PollerStatus",
    "ReconcileTuning",
    "Region",
    "Scheduler",
    "SelectedTrackLoader",
    "SessionContext",
    "SessionSnapshot",
    "TrackCache",
    "TrackCacheTuning",
    "TrackFetchResult",
    "TrackReconciler",
    "TrackWaypoint",
    "TrackerStatus",
    "TrailEntry",
    "TrailStore",
    "TrailTuning",
    "VirtualScheduler",
    "adaptive_interval",
]
