"""Ingestion layer.

This package turns raw upstream payloads (OpenSky state vectors and tracks,
ADS-B.fi aircraft lists) into normalized :mod:`pyaeris.models` objects.
Anything lacking the fields the engine needs is dropped here, before it can
reach the state stores.
"""

__all__: list[str] = []
