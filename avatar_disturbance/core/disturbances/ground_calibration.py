"""
Ground Level Calibration

Estimates the resting height of a tracked foot by averaging its vertical
position over a calibration window. The estimate feeds the ground-contact
gate: a point counts as grounded when y <= ground_level + ground_margin.

The calibration spans many frames. It is a resumable state object advanced
by explicit sample() calls from the per-frame update, and it can be
abandoned at any time with cancel() without touching anything else.
"""

import warnings
from enum import Enum
from typing import List, Optional

import numpy as np


class CalibrationStatus(Enum):
    """Lifecycle of a single calibration run."""
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class GroundLevelCalibration:
    """
    Windowed average of the leader's vertical position.

    A sample is taken on every call while the elapsed time is below the
    requested duration; the first call samples at elapsed time 0. Once the
    window has elapsed the mean is computed and the calibration completes.

    Usage:
    ------
    >>> calibration = GroundLevelCalibration(duration=1.0)
    >>> while calibration.is_running:
    ...     calibration.sample(leader.position[1], dt)
    >>> ground_level = calibration.ground_level
    """

    def __init__(self, duration: float = 1.0):
        """
        Parameters
        ----------
        duration : float
            Length of the sampling window [s]
        """
        self.duration = duration
        self.elapsed = 0.0
        self.samples: List[float] = []
        self.status = CalibrationStatus.RUNNING
        self.ground_level: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self.status == CalibrationStatus.RUNNING

    def sample(self, height: float, dt: float) -> bool:
        """
        Record one vertical position sample and advance the window.

        Parameters
        ----------
        height : float
            Current leader height [m]
        dt : float
            Time since the previous sample [s]

        Returns
        -------
        bool
            True once the calibration has completed
        """
        if not self.is_running:
            return self.status == CalibrationStatus.COMPLETE

        if self.elapsed < self.duration:
            self.samples.append(float(height))
        self.elapsed += dt

        if self.elapsed >= self.duration:
            self.finalize()
        return self.status == CalibrationStatus.COMPLETE

    def finalize(self) -> Optional[float]:
        """
        Close the window and compute the mean height.

        Returns
        -------
        float or None
            Mean sampled height, or None if nothing was sampled
        """
        if self.status == CalibrationStatus.CANCELLED:
            return None

        self.status = CalibrationStatus.COMPLETE
        if not self.samples:
            warnings.warn("Ground calibration finished without samples, "
                          "keeping previous ground level")
            self.ground_level = None
        else:
            self.ground_level = float(np.mean(self.samples))
        return self.ground_level

    def cancel(self) -> None:
        """Abandon the calibration; no ground level will be produced."""
        if self.is_running:
            self.status = CalibrationStatus.CANCELLED

    @property
    def max_height(self) -> Optional[float]:
        """Highest sampled height [m] (None if no samples)."""
        return max(self.samples) if self.samples else None
