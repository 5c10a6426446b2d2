"""
Position Noise Disturbance

Adds a multisine noise offset to a tracked avatar point. Three independent
SignalGenerators (x, y, z) are evaluated at the accumulated disturbance
time, scaled per axis, by the maximum distance and by the global intensity:

    offset = [s_x(t + t0), s_y(t + t0), s_z(t + t0)] ⊙ noise_scale
             · max_distance · intensity

    follower.position = leader.position + offset

Ground Gate:
-----------
With pause_noise_on_ground enabled, the disturbance time stops advancing
while the leader (typically a foot tracker) is grounded, so a planted foot
keeps a frozen offset instead of sliding. The offset is still recomputed and
applied on every active tick BEFORE the gate is checked, so the tick on which
the foot lands writes one more offset at the pre-freeze time.

Reproducibility:
---------------
The three wave banks are seeded with sub-seeds drawn from an RNG reseeded
from the top-level seed on every (forced) initialization, so the same seed
always reproduces the same disturbance.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from avatar_disturbance.core.coordinate_frames.transforms import Transform
from avatar_disturbance.core.disturbances.disturbance_base import DisturbanceBase
from avatar_disturbance.core.noise.multisine import (
    DEFAULT_AMP_RANGE,
    DEFAULT_FREQ_RANGE,
    DEFAULT_PHASE_RANGE,
    SignalGenerator,
    WaveBank,
)


AXES = ('x', 'y', 'z')


def _check_range(name: str, value: Tuple[float, float]) -> Tuple[float, float]:
    if len(value) != 2:
        raise ValueError(f"{name} must be a (min, max) pair, got {value!r}")
    low, high = float(value[0]), float(value[1])
    if low > high:
        raise ValueError(f"{name} min ({low}) exceeds max ({high})")
    return low, high


@dataclass
class PositionNoiseConfig:
    """
    Configuration for the position noise disturbance.

    Attributes
    ----------
    num_waves : int
        Sinusoids per axis (truncated to the wave bank capacity)
    freq_range : Tuple[float, float]
        Wave frequency range [Hz]
    amp_range : Tuple[float, float]
        Wave amplitude range
    phase_range : Tuple[float, float]
        Wave phase range [rad]
    randomize_frequency : bool
        Draw frequencies randomly instead of spacing them evenly
    gain : float
        Generator output gain
    noise_scale : Tuple[float, float, float]
        Per-axis scale in the global frame; 0 disables an axis
    max_distance : float
        Maximum offset from the leader [m]
    intensity : float
        Global magnitude in [0, 1] (clamped)
    pause_noise_on_ground : bool
        Freeze the disturbance time while the leader is grounded
    ground_level : float
        Initial ground level [m]
    ground_margin : float
        Grounded tolerance above ground_level [m]
    calibration_time : float
        Ground calibration window started on initialization [s]
    seed : int, optional
        Top-level seed; None draws a time-derived seed
    randomize_time_offset : bool
        Start the noise at a random point in time
    max_time_offset : float
        Upper bound of the random time offset [s]
    verbose : bool
        Print INFO messages
    """
    num_waves: int = 100
    freq_range: Tuple[float, float] = DEFAULT_FREQ_RANGE
    amp_range: Tuple[float, float] = DEFAULT_AMP_RANGE
    phase_range: Tuple[float, float] = DEFAULT_PHASE_RANGE
    randomize_frequency: bool = False
    gain: float = 1.0

    noise_scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    max_distance: float = 1.0
    intensity: float = 1.0

    pause_noise_on_ground: bool = True
    ground_level: float = 0.05
    ground_margin: float = 0.01
    calibration_time: float = 1.0

    seed: Optional[int] = None
    randomize_time_offset: bool = False
    max_time_offset: float = 1000.0

    verbose: bool = False

    def __post_init__(self):
        self.freq_range = _check_range('freq_range', self.freq_range)
        self.amp_range = _check_range('amp_range', self.amp_range)
        self.phase_range = _check_range('phase_range', self.phase_range)

        if len(self.noise_scale) != 3:
            raise ValueError(
                f"noise_scale must have 3 components, got {self.noise_scale!r}"
            )
        self.noise_scale = tuple(float(s) for s in self.noise_scale)

        if self.max_distance < 0:
            raise ValueError(f"max_distance must be >= 0, got {self.max_distance}")
        if self.max_time_offset < 0:
            raise ValueError(
                f"max_time_offset must be >= 0, got {self.max_time_offset}"
            )
        if self.calibration_time < 0:
            raise ValueError(
                f"calibration_time must be >= 0, got {self.calibration_time}"
            )

        self.intensity = float(np.clip(self.intensity, 0.0, 1.0))


class DisturbanceOffsetController(DisturbanceBase):
    """
    Multisine position noise applied to a follower of a leader transform.

    Usage:
    ------
    >>> controller = DisturbanceOffsetController(leader, PositionNoiseConfig(seed=7))
    >>> controller.initialize()
    >>> controller.activate()
    >>> for _ in range(n_steps):
    ...     controller.tick(dt)
    >>> controller.offset            # last computed offset [m]
    >>> controller.transform.position  # leader.position + offset
    """

    def __init__(
        self,
        leader: Optional[Transform] = None,
        config: Optional[PositionNoiseConfig] = None
    ):
        self.config = config if config is not None else PositionNoiseConfig()

        super().__init__(
            leader=leader,
            intensity=self.config.intensity,
            seed=self.config.seed,
            ground_level=self.config.ground_level,
            ground_margin=self.config.ground_margin,
            verbose=self.config.verbose
        )

        self.pause_noise_on_ground = self.config.pause_noise_on_ground
        self.noise_scale = np.array(self.config.noise_scale, dtype=float)
        self.max_distance = self.config.max_distance

        self.time = 0.0
        self.time_offset = 0.0
        self._offset = np.zeros(3)

        self.generators: Dict[str, SignalGenerator] = {}
        self.sub_seeds: Dict[str, int] = {}

    @property
    def offset(self) -> np.ndarray:
        """Last computed offset [m] (read-only; assignments are ignored)."""
        return self._offset.copy()

    @offset.setter
    def offset(self, value) -> None:
        pass

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def on_initialize(self) -> None:
        if self.pause_noise_on_ground:
            self.calibrate_ground_level(self.config.calibration_time)

        self.init_noise()
        if self.config.randomize_time_offset:
            self.randomize_time_offset()
        else:
            self.time_offset = 0.0
        self.compute_offset()

    def on_activate(self) -> None:
        self.initialize()

    def on_deactivate(self) -> None:
        self._offset = np.zeros(3)

    def init_noise(self) -> None:
        """Build one generator per axis from sub-seeds of the disturbance RNG."""
        cfg = self.config
        for axis in AXES:
            sub_seed = math.ceil(self.rng.random() * 1000)
            bank = WaveBank(
                num_waves=cfg.num_waves,
                seed=sub_seed,
                freq_range=cfg.freq_range,
                amp_range=cfg.amp_range,
                phase_range=cfg.phase_range,
                randomize_frequency=cfg.randomize_frequency
            )
            self.sub_seeds[axis] = sub_seed
            self.generators[axis] = SignalGenerator(bank, gain=cfg.gain)

        if self.verbose:
            print(f"INFO: Noise waves initialized (seed={self.seed}, "
                  f"sub-seeds={self.sub_seeds})")

    def randomize_time_offset(self) -> float:
        """Draw a new uniform time offset in [0, max_time_offset)."""
        self.time_offset = float(
            self.rng.uniform(0.0, self.config.max_time_offset)
        )
        return self.time_offset

    # ------------------------------------------------------------------
    # Offset computation
    # ------------------------------------------------------------------

    def compute_offset(self) -> np.ndarray:
        """
        Recompute the offset at the current disturbance time.

        Returns
        -------
        np.ndarray
            New offset [m]
        """
        t = self.time + self.time_offset
        noise = np.array([
            self.generators[axis].evaluate(t, normalize=True) for axis in AXES
        ])
        self._offset = noise * self.noise_scale * self.max_distance * self.intensity
        return self._offset.copy()

    def apply_offset(self) -> None:
        """Recompute the offset and place the follower at leader + offset."""
        self.compute_offset()
        self.transform.position = (
            np.asarray(self.leader.position, dtype=float) + self._offset
        )

    def zero_offset(self) -> None:
        """Clear the offset and snap the follower onto the leader."""
        self._offset = np.zeros(3)
        self.match_position()

    def fixed_update_transform(self, dt: float) -> None:
        self.apply_offset()

        if self.pause_noise_on_ground and self.is_grounded():
            return

        self.time += dt

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_diagnostics(self) -> Dict:
        diagnostics = super().get_diagnostics()
        diagnostics.update({
            'time': self.time,
            'time_offset': self.time_offset,
            'offset': self._offset.copy(),
            'max_distance': self.max_distance,
            'noise_scale': self.noise_scale.copy(),
            'pause_noise_on_ground': self.pause_noise_on_ground,
            'sub_seeds': dict(self.sub_seeds),
            'norm_factors': {
                axis: gen.bank.norm_factor
                for axis, gen in self.generators.items()
            },
        })
        return diagnostics


def create_position_noise_disturbance(
    config: Dict,
    leader: Optional[Transform] = None
) -> DisturbanceOffsetController:
    """
    Factory function to create a position noise disturbance from a dict.

    Parameters
    ----------
    config : Dict
        Keys matching PositionNoiseConfig fields; missing keys use defaults
    leader : Transform, optional
        Pose source to follow

    Returns
    -------
    DisturbanceOffsetController
        Configured (not yet initialized) disturbance
    """
    defaults = PositionNoiseConfig.__dataclass_fields__
    kwargs = {name: config[name] for name in defaults if name in config}
    return DisturbanceOffsetController(leader, PositionNoiseConfig(**kwargs))
