"""State/store layer.

Per-object motion, trails and the historical-track merge all live here.
Every store is keyed by icao24 and evicts an aircraft as soon as it
leaves a poll batch.
"""
