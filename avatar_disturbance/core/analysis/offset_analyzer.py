"""
Offset Trace Analyzer

Summary metrics for recorded disturbance offsets, used to check that an
injected disturbance has the intended magnitude and spectral content before
it is used in a robustness experiment.

Metrics:
-------
1. RMS and peak offset per axis [m]
2. Peak offset norm [m]
3. Envelope compliance: fraction of samples with every axis inside
   max_distance · intensity · |noise_scale|
4. Welch PSD per axis and its dominant frequency [Hz]
"""

import warnings
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import numpy as np
from scipy import signal


@dataclass
class OffsetTraceMetrics:
    """Container for offset trace metrics (distances in m, freqs in Hz)."""
    rms_offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    peak_offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    peak_norm: float = 0.0
    mean_offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    envelope_fraction: float = 1.0
    dominant_frequency: np.ndarray = field(default_factory=lambda: np.zeros(3))
    psd_frequencies: Optional[np.ndarray] = None
    psd: Optional[np.ndarray] = None         # (3, n_freqs)
    sample_count: int = 0
    duration: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'rms_offset': self.rms_offset.tolist(),
            'peak_offset': self.peak_offset.tolist(),
            'peak_norm': self.peak_norm,
            'mean_offset': self.mean_offset.tolist(),
            'envelope_fraction': self.envelope_fraction,
            'dominant_frequency': self.dominant_frequency.tolist(),
            'sample_count': self.sample_count,
            'duration': self.duration,
        }


def analyze_offset_trace(
    offsets: np.ndarray,
    dt: float,
    max_distance: float = 1.0,
    intensity: float = 1.0,
    noise_scale: Sequence[float] = (1.0, 1.0, 1.0),
    nperseg: int = 256
) -> OffsetTraceMetrics:
    """
    Compute magnitude and spectral metrics for an offset trace.

    Parameters
    ----------
    offsets : np.ndarray
        Offsets [m], shape (n_samples, 3)
    dt : float
        Sample period [s]
    max_distance : float
        Configured maximum distance [m]
    intensity : float
        Configured intensity
    noise_scale : Sequence[float]
        Configured per-axis scale
    nperseg : int
        Welch segment length (shortened for short traces)

    Returns
    -------
    OffsetTraceMetrics
        Computed metrics
    """
    offsets = np.asarray(offsets, dtype=float).reshape(-1, 3)
    n = offsets.shape[0]
    metrics = OffsetTraceMetrics(sample_count=n, duration=n * dt)

    if n == 0:
        warnings.warn("Empty offset trace, returning zero metrics")
        return metrics

    metrics.rms_offset = np.sqrt(np.mean(offsets ** 2, axis=0))
    metrics.peak_offset = np.max(np.abs(offsets), axis=0)
    metrics.mean_offset = np.mean(offsets, axis=0)
    metrics.peak_norm = float(np.max(np.linalg.norm(offsets, axis=1)))

    envelope = max_distance * intensity * np.abs(np.asarray(noise_scale, dtype=float))
    # Small tolerance for float round-off at the clip boundary
    inside = np.all(np.abs(offsets) <= envelope + 1e-12, axis=1)
    metrics.envelope_fraction = float(np.mean(inside))

    if n >= 2:
        fs = 1.0 / dt
        freqs, psd = signal.welch(offsets.T, fs=fs, nperseg=min(nperseg, n), axis=-1)
        metrics.psd_frequencies = freqs
        metrics.psd = psd
        # Skip the DC bin when picking the dominant frequency
        if len(freqs) > 1:
            metrics.dominant_frequency = freqs[1:][np.argmax(psd[:, 1:], axis=1)]

    return metrics
