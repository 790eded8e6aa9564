#!/usr/bin/env python3
"""Watch live traffic around a point and print interpolated frames.

Example:
    python scripts/watch_region.py --lat 47.45 --lng 8.55 --radius 1.5 --select 4b1805

Configuration comes from ``AERIS_*`` environment variables (see
``AerisConfig.from_env``); ``--provider`` overrides ``AERIS_PROVIDER``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyaeris import AerisClient, AerisConfig, Frame, LiveTracker, Region  # noqa: E402


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--lat", type=float, required=True, help="Region centre latitude")
    parser.add_argument("--lng", type=float, required=True, help="Region centre longitude")
    parser.add_argument("--radius", type=float, default=2.0, help="Region radius in degrees (capped at 2.49)")
    parser.add_argument("--provider", choices=["opensky", "adsbfi"], default=None)
    parser.add_argument("--select", default=None, help="icao24 to select (merges its historical track)")
    parser.add_argument("--chase", default=None, help="icao24 to chase with a narrow query box")
    parser.add_argument("--fps", type=float, default=1.0, help="Frames printed per second")
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after this many seconds (0 = forever)")
    parser.add_argument("--limit", type=int, default=10, help="Aircraft printed per frame")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _print_frame(frame: Frame, limit: int) -> None:
    status = frame.status
    header = f"[{status.poller}] aircraft={len(frame.flights)} trails={len(frame.trails)}"
    if status.retry_in:
        header += f" retry_in={status.retry_in}s"
    if status.credits_remaining is not None:
        header += f" credits={status.credits_remaining}"
    if status.last_error:
        header += f" error={status.last_error!r}"
    print(header)

    trails = {t.icao24: t for t in frame.trails}
    for pos in frame.flights[:limit]:
        trail = trails.get(pos.icao24)
        points = len(trail.path) if trail is not None else 0
        marker = "*" if pos.icao24 == status.selected else " "
        callsign = pos.flight.callsign or "-"
        print(
            f" {marker}{pos.icao24} {callsign:<8} {pos.lat:9.4f} {pos.lng:10.4f} "
            f"alt={pos.alt:7.0f}m hdg={pos.track:5.1f} {pos.motion:<11} trail={points}"
        )


async def _run(args: argparse.Namespace) -> int:
    overrides = {"provider": args.provider} if args.provider else {}
    config = AerisConfig.from_env(**overrides)
    region = Region(name="cli", longitude=args.lng, latitude=args.lat, radius_deg=args.radius)

    async with AerisClient(config) as client:
        tracker = LiveTracker(
            client.fetch_flights,
            client.fetch_track if client.supports_tracks else None,
            config=config,
        )
        tracker.set_region(region)
        if args.select:
            tracker.select(args.select)
        if args.chase:
            tracker.chase(args.chase)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + args.duration if args.duration > 0 else None
        interval = 1.0 / args.fps if args.fps > 0 else 1.0
        try:
            while deadline is None or loop.time() < deadline:
                await asyncio.sleep(interval)
                _print_frame(tracker.frame(), args.limit)
        finally:
            tracker.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
