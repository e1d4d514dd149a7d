"""
NameGuard Core Processors

Name normalization and login-attempt enrichment.
"""

from core.processors.normalizer import NameNormalizer
from core.processors.signals import NetworkSignalProvider, NetworkSignals
from core.processors.geo import GeoData, GeoResolver
from core.processors.context import FingerprintContextProcessor

__all__ = [
    "NameNormalizer",
    "NetworkSignalProvider",
    "NetworkSignals",
    "GeoData",
    "GeoResolver",
    "FingerprintContextProcessor",
]
