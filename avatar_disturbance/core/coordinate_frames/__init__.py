"""Leader/follower transform containers."""

from .transforms import (
    Transform,
    TrajectoryLeader,
    IDENTITY_QUATERNION,
    quaternion_from_yaw,
    make_stepping_foot,
)

__all__ = [
    'Transform',
    'TrajectoryLeader',
    'IDENTITY_QUATERNION',
    'quaternion_from_yaw',
    'make_stepping_foot',
]
