"""
Multisine noise package for positional disturbance injection.

Provides a seeded bank of sinusoids (WaveBank) and a pure evaluator
(SignalGenerator) producing a bounded, reproducible 1D signal.
"""

from .multisine import (
    MAX_WAVES,
    WaveBank,
    SignalGenerator,
    create_signal_generator,
)

__all__ = [
    'MAX_WAVES',
    'WaveBank',
    'SignalGenerator',
    'create_signal_generator',
]
