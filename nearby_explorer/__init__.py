"""Nearby Explorer: POI aggregation and resilient caching."""

__version__ = "1.0.0"
