"""Bounded-history learning accumulators."""

from .preferences import PreferenceAccumulator
from .style import StyleAccumulator

__all__ = ["PreferenceAccumulator", "StyleAccumulator"]
