"""
Visualization Module for Avatar Position Disturbances

- offset_plots: offset timelines with grounded intervals and offset PSD
"""

from .offset_plots import OffsetPlotter

__all__ = [
    'OffsetPlotter',
]
