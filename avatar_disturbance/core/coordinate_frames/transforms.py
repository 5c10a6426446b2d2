"""
Transforms for Tracked Avatar Points

Minimal rigid-body transform containers used at the boundary between the
disturbance core and the tracking system:

- Transform: position + orientation of a tracked point (leader) or of the
  disturbed copy that follows it (follower)
- TrajectoryLeader: scripted leader whose pose is a function of time, used
  for offline runs and tests

Frame convention: y-up, right-handed. Orientation is a unit quaternion
stored as [w, x, y, z].
"""

import numpy as np
from typing import Callable, Optional
from dataclasses import dataclass, field


IDENTITY_QUATERNION = np.array([1.0, 0.0, 0.0, 0.0])


@dataclass
class Transform:
    """Position [m] and orientation quaternion [w, x, y, z] of a point."""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(
        default_factory=lambda: IDENTITY_QUATERNION.copy()
    )

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=float).reshape(4)

    def copy(self) -> 'Transform':
        return Transform(self.position.copy(), self.rotation.copy())


def quaternion_from_yaw(yaw_rad: float) -> np.ndarray:
    """
    Quaternion for a rotation about the vertical (y) axis.

    Parameters
    ----------
    yaw_rad : float
        Heading angle [rad]

    Returns
    -------
    np.ndarray
        Unit quaternion [w, x, y, z]
    """
    half = 0.5 * yaw_rad
    return np.array([np.cos(half), 0.0, np.sin(half), 0.0])


class TrajectoryLeader(Transform):
    """
    Leader whose pose follows a scripted trajectory.

    The pose is refreshed by calling step(dt) from the driver loop before
    the disturbances that follow it are ticked.
    """

    def __init__(
        self,
        position_fn: Callable[[float], np.ndarray],
        rotation_fn: Optional[Callable[[float], np.ndarray]] = None
    ):
        """
        Parameters
        ----------
        position_fn : Callable[[float], np.ndarray]
            Maps time [s] to a 3D position [m]
        rotation_fn : Callable[[float], np.ndarray], optional
            Maps time [s] to a quaternion [w, x, y, z] (identity if omitted)
        """
        self.position_fn = position_fn
        self.rotation_fn = rotation_fn
        self.time = 0.0
        super().__init__(position_fn(0.0), self._rotation_at(0.0))

    def _rotation_at(self, t: float) -> np.ndarray:
        if self.rotation_fn is None:
            return IDENTITY_QUATERNION.copy()
        return self.rotation_fn(t)

    def step(self, dt: float) -> None:
        """Advance the trajectory by dt seconds and refresh the pose."""
        self.time += dt
        self.position = np.asarray(self.position_fn(self.time), dtype=float)
        self.rotation = np.asarray(self._rotation_at(self.time), dtype=float)


def make_stepping_foot(
    step_height: float = 0.1,
    step_period: float = 1.0,
    stance_fraction: float = 0.5,
    walk_speed: float = 0.5,
    floor_height: float = 0.05
) -> TrajectoryLeader:
    """
    Scripted foot tracker alternating stance (on the floor) and swing.

    During stance the foot rests at floor_height; during swing it follows a
    half-sine arc of step_height while moving forward along z.

    Parameters
    ----------
    step_height : float
        Peak swing height above the floor [m]
    step_period : float
        Duration of one stance + swing cycle [s]
    stance_fraction : float
        Fraction of the cycle spent on the ground (0-1)
    walk_speed : float
        Forward speed [m/s]
    floor_height : float
        Tracker height when the foot is planted [m]

    Returns
    -------
    TrajectoryLeader
        Foot leader starting in stance at the origin
    """
    def position_fn(t: float) -> np.ndarray:
        phase = (t % step_period) / step_period
        if phase < stance_fraction:
            y = floor_height
        else:
            swing = (phase - stance_fraction) / (1.0 - stance_fraction)
            y = floor_height + step_height * np.sin(np.pi * swing)
        return np.array([0.0, y, walk_speed * t])

    return TrajectoryLeader(position_fn)
