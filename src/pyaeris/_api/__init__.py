"""Upstream endpoint modules (internal)."""
