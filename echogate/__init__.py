"""Echogate package."""

from .constants import NO_LAG
from .lag_search import LagMetric
from .suppressor import BlockResult, EchoSuppressor, SuppressorConfig

__all__ = [
    "NO_LAG",
    "LagMetric",
    "BlockResult",
    "EchoSuppressor",
    "SuppressorConfig",
]
