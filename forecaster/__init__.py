"""Forecast retrieval with resilient geocoding, timezone and weather lookups."""

__version__ = "0.1.0"
