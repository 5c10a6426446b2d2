"""Analysis of recorded disturbance offsets."""

from .offset_analyzer import OffsetTraceMetrics, analyze_offset_trace

__all__ = [
    'OffsetTraceMetrics',
    'analyze_offset_trace',
]
