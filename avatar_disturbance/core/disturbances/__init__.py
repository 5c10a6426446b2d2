"""
Disturbance package for tracked avatar points.

Disturbances follow a leader transform and perturb a follower copy of it:
- DisturbanceBase: activation state machine, intensity, ground-contact gate,
  leader mirroring and ground level calibration
- DisturbanceOffsetController: multisine position noise (one generator per
  axis) with pause-on-ground

All disturbances are seeded for reproducible robustness experiments.
"""

from .disturbance_base import DisturbanceBase
from .ground_calibration import CalibrationStatus, GroundLevelCalibration
from .position_noise import (
    # Main classes
    DisturbanceOffsetController,
    PositionNoiseConfig,
    # Factory functions
    create_position_noise_disturbance,
)

__all__ = [
    'DisturbanceBase',
    'CalibrationStatus',
    'GroundLevelCalibration',
    'DisturbanceOffsetController',
    'PositionNoiseConfig',
    'create_position_noise_disturbance',
]
