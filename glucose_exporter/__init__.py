"""
Glucose Exporter - LibreLinkUp CGM readings as Prometheus metrics.

This package polls the LibreLinkUp follower API for every connection of a
single account and exposes current and historic glucose readings, each
timestamped with the time it was measured.
"""

__version__ = "1.0.0"
__author__ = "Glucose Exporter Contributors"

from .client import ClientConfig, LibreLinkClient
from .collector import GlucoseCollector, Observation
from .config import Settings, get_settings

__all__ = [
    "ClientConfig",
    "GlucoseCollector",
    "LibreLinkClient",
    "Observation",
    "Settings",
    "get_settings",
]
