"""
Disturbance Base Class

Common machinery for disturbances applied to a tracked avatar point. A
disturbance owns a follower transform that mirrors a leader transform and
perturbs it while active.

State Machine:
-------------
    Inactive --activate()--> Active --deactivate()--> Inactive

- tick(dt): fixed-step update, advances a running ground calibration and
  runs fixed_update_transform() only while active and a leader is assigned
- frame_update(dt): per-frame update, mirrors the leader rotation, advances a
  running ground calibration not already driven by tick() and runs
  update_transform() while active

Both are driven explicitly by the owner (no implicit scheduler). A missing
leader turns every update into a silent no-op; during startup the leader may
not be assigned yet.

Ground Contact:
--------------
is_grounded() compares the leader height with ground_level + ground_margin.
ground_level can be estimated with calibrate_ground_level(), which averages
the leader height over a window of steps.
"""

import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

import numpy as np

from avatar_disturbance.core.coordinate_frames.transforms import Transform
from avatar_disturbance.core.disturbances.ground_calibration import (
    GroundLevelCalibration
)


class DisturbanceBase(ABC):
    """
    Base class for disturbances managed by a DisturbanceRegistry.

    Subclasses implement fixed_update_transform() and may override the hooks
    on_initialize(), on_activate(), on_deactivate() and update_transform().
    """

    def __init__(
        self,
        leader: Optional[Transform] = None,
        intensity: float = 1.0,
        seed: Optional[int] = None,
        ground_level: float = 0.05,
        ground_margin: float = 0.01,
        verbose: bool = False
    ):
        """
        Parameters
        ----------
        leader : Transform, optional
            Pose source the disturbance is applied relative to
        intensity : float
            Global disturbance magnitude, clamped to [0, 1]
        seed : int, optional
            Top-level seed; a time-derived seed is drawn if None
        ground_level : float
            Leader height when resting on the ground [m]
        ground_margin : float
            Tolerance above ground_level still counted as grounded [m]
        verbose : bool
            Print INFO messages
        """
        self.leader = leader
        self.transform = leader.copy() if leader is not None else Transform()

        self._intensity = 1.0
        self.intensity = intensity

        self.configured_seed = seed
        self._seed = 0
        self.rng = np.random.default_rng(0)

        self.ground_level = ground_level
        self.ground_margin = ground_margin
        self.calibration: Optional[GroundLevelCalibration] = None
        self._tick_drives_calibration = False
        self.registry = None

        self.verbose = verbose

        self._initialized = False
        self._active = False
        self._destroyed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def intensity(self) -> float:
        return self._intensity

    @intensity.setter
    def intensity(self, value: float) -> None:
        value = float(value)
        if not np.isfinite(value):
            value = 0.0
        self._intensity = float(np.clip(value, 0.0, 1.0))

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def seed(self) -> int:
        """Seed used by the last initialization."""
        return self._seed

    def is_grounded(self) -> bool:
        """True when the leader is at or below ground_level + ground_margin."""
        if self.leader is None:
            return False
        return self.leader.position[1] <= self.ground_level + self.ground_margin

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init_seed(self) -> None:
        """Reseed the disturbance RNG from the configured (or a fresh) seed."""
        if self.configured_seed is None:
            self._seed = int(time.time_ns() % (2 ** 31))
        else:
            self._seed = int(self.configured_seed)
        self.rng = np.random.default_rng(self._seed)

    def initialize(self, force: bool = False) -> None:
        """
        Initialize the disturbance once.

        Parameters
        ----------
        force : bool
            Re-run initialization even if already initialized
        """
        if self._initialized and not force:
            return

        self.init_seed()
        self.on_initialize()
        self._initialized = True

    def activate(self) -> None:
        self.on_activate()
        self._active = True

    def deactivate(self) -> None:
        self._active = False
        self.on_deactivate()
        self.match_position()

    def destroy(self) -> None:
        """Stop all updates, abandon any running calibration and unregister."""
        self.cancel_calibration()
        self._active = False
        self._destroyed = True
        if self.registry is not None:
            self.registry.unregister(self)

    # ------------------------------------------------------------------
    # Update loop
    # ------------------------------------------------------------------

    def tick(self, dt: float) -> None:
        """
        Fixed-step update.

        Parameters
        ----------
        dt : float
            Fixed simulation step [s]
        """
        if self._destroyed or self.leader is None:
            return

        self._advance_calibration(dt, from_tick=True)

        if not self._active:
            return

        self.fixed_update_transform(dt)

    def frame_update(self, dt: float) -> None:
        """
        Per-frame update.

        Parameters
        ----------
        dt : float
            Time since the previous frame [s]
        """
        if self._destroyed or self.leader is None:
            return

        self._advance_calibration(dt, from_tick=False)
        self.match_rotation()

        if not self._active:
            return

        self.update_transform(dt)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def on_initialize(self) -> None:
        pass

    def on_activate(self) -> None:
        pass

    def on_deactivate(self) -> None:
        pass

    @abstractmethod
    def fixed_update_transform(self, dt: float) -> None:
        """Apply the disturbance for one fixed step."""

    def update_transform(self, dt: float) -> None:
        pass

    # ------------------------------------------------------------------
    # Leader mirroring
    # ------------------------------------------------------------------

    def match_position(self) -> None:
        if self.leader is not None:
            self.transform.position = np.array(self.leader.position, dtype=float)

    def match_rotation(self) -> None:
        if self.leader is not None:
            self.transform.rotation = np.array(self.leader.rotation, dtype=float)

    # ------------------------------------------------------------------
    # Ground calibration
    # ------------------------------------------------------------------

    def calibrate_ground_level(self, duration: float = 1.0) -> GroundLevelCalibration:
        """
        Start estimating ground_level from the leader height.

        Samples are taken on each tick() (or on each frame_update() when the
        owner never calls tick()) until duration has elapsed;
        ground_margin is left untouched. A calibration already in progress
        is cancelled and replaced.

        Parameters
        ----------
        duration : float
            Sampling window [s]

        Returns
        -------
        GroundLevelCalibration
            The running calibration
        """
        self.cancel_calibration()
        if self.verbose:
            print("INFO: Starting ground level calibration")
        self.calibration = GroundLevelCalibration(duration)
        self._tick_drives_calibration = False
        return self.calibration

    def cancel_calibration(self) -> None:
        if self.calibration is not None:
            self.calibration.cancel()
            self.calibration = None

    @property
    def is_calibrating(self) -> bool:
        return self.calibration is not None and self.calibration.is_running

    def _advance_calibration(self, dt: float, from_tick: bool) -> None:
        if not self.is_calibrating:
            return
        # Once tick() samples a calibration, frame_update() stops sampling it
        if from_tick:
            self._tick_drives_calibration = True
        elif self._tick_drives_calibration:
            return

        done = self.calibration.sample(self.leader.position[1], dt)
        if not done:
            return

        level = self.calibration.ground_level
        if level is not None:
            self.ground_level = level
        self.calibration = None
        if self.verbose:
            print(f"INFO: End ground level calibration, ground level: "
                  f"{self.ground_level:.4f}, ground margin: {self.ground_margin:.4f}")

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_diagnostics(self) -> Dict:
        """
        Get diagnostic information about the disturbance.

        Returns
        -------
        Dict
            State flags, intensity, seed and ground gate parameters
        """
        return {
            'type': type(self).__name__,
            'initialized': self._initialized,
            'active': self._active,
            'intensity': self._intensity,
            'seed': self._seed,
            'ground_level': self.ground_level,
            'ground_margin': self.ground_margin,
            'calibrating': self.is_calibrating,
            'has_leader': self.leader is not None,
        }
