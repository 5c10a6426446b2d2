"""
Disturbance Session Runner

Fixed-step driver loop for offline disturbance runs. It replaces the engine
scheduler: a scripted leader is advanced every fixed step, every registered
disturbance is ticked, the per-frame update runs every `frame_divider`
steps, and telemetry is recorded for later analysis.

Execution order per step:
------------------------
1. Apply the activation schedule (activate_at / deactivate_at)
2. tick(dt) on every disturbance (fixed update)
3. Log leader, follower, offset and ground gate state as seen by the tick
4. frame_update(frame_dt) on every disturbance, once per frame
5. Advance the leader trajectory

The session owns its DisturbanceRegistry; run() tears it down only when the
runner is used as a context manager or close() is called.
"""

import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from avatar_disturbance.core.coordinate_frames.transforms import Transform
from avatar_disturbance.core.disturbances.disturbance_base import DisturbanceBase
from avatar_disturbance.core.disturbances.position_noise import (
    DisturbanceOffsetController,
    PositionNoiseConfig,
)
from avatar_disturbance.core.simulation.disturbance_registry import (
    DisturbanceRegistry
)


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy arrays."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, (np.bool_,)):
            return bool(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


@dataclass
class SessionConfig:
    """Configuration for a disturbance session."""

    # Timing
    dt: float = 0.02               # Fixed step [s] (50 Hz)
    duration: float = 10.0         # Session length [s]
    frame_divider: int = 1         # Fixed steps per frame update

    # Activation schedule
    activate_at: float = 0.0                 # [s]
    deactivate_at: Optional[float] = None    # [s], None = stay active

    verbose: bool = False

    def __post_init__(self):
        if self.dt <= 0:
            raise ValueError(f"dt must be > 0, got {self.dt}")
        if self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")
        if self.frame_divider < 1:
            raise ValueError(
                f"frame_divider must be >= 1, got {self.frame_divider}"
            )

    @property
    def n_steps(self) -> int:
        return int(round(self.duration / self.dt))


@dataclass
class SessionLog:
    """
    Recorded telemetry of one session.

    Per-disturbance arrays are indexed [disturbance, step, ...].
    """
    time: np.ndarray
    leader_position: np.ndarray        # (n_steps, 3) [m]
    offsets: np.ndarray                # (n_dist, n_steps, 3) [m]
    follower_positions: np.ndarray     # (n_dist, n_steps, 3) [m]
    noise_time: np.ndarray             # (n_dist, n_steps) [s]
    grounded: np.ndarray               # (n_dist, n_steps) bool
    active: np.ndarray                 # (n_dist, n_steps) bool
    metadata: Dict = field(default_factory=dict)

    @property
    def n_disturbances(self) -> int:
        return self.offsets.shape[0]

    def to_dataframe(self, index: int = 0) -> pd.DataFrame:
        """
        Flatten one disturbance's telemetry into a DataFrame.

        Parameters
        ----------
        index : int
            Disturbance index (registration order)

        Returns
        -------
        pd.DataFrame
            Columns: time, leader_*, offset_*, follower_*, noise_time,
            grounded, active
        """
        data = {'time': self.time}
        for k, axis in enumerate('xyz'):
            data[f'leader_{axis}'] = self.leader_position[:, k]
            data[f'offset_{axis}'] = self.offsets[index, :, k]
            data[f'follower_{axis}'] = self.follower_positions[index, :, k]
        data['noise_time'] = self.noise_time[index]
        data['grounded'] = self.grounded[index]
        data['active'] = self.active[index]
        return pd.DataFrame(data)

    def save_json(self, path: Union[str, Path], pretty_print: bool = True) -> Path:
        """
        Write the telemetry to a JSON file.

        Parameters
        ----------
        path : str or Path
            Output file
        pretty_print : bool
            Indent the JSON output

        Returns
        -------
        Path
            Written file path
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            'metadata': self.metadata,
            'time': self.time,
            'leader_position': self.leader_position,
            'offsets': self.offsets,
            'follower_positions': self.follower_positions,
            'noise_time': self.noise_time,
            'grounded': self.grounded,
            'active': self.active,
        }
        with open(path, 'w') as f:
            json.dump(payload, f, cls=NumpyEncoder,
                      indent=2 if pretty_print else None)
        return path


class DisturbanceSessionRunner:
    """
    Drives disturbances following one leader over a fixed-step session.

    Usage:
    ------
    >>> leader = make_stepping_foot()
    >>> with DisturbanceSessionRunner(leader, SessionConfig(duration=5.0)) as runner:
    ...     runner.add_position_noise(PositionNoiseConfig(seed=3))
    ...     log = runner.run()
    >>> df = log.to_dataframe()
    """

    def __init__(
        self,
        leader: Optional[Transform],
        config: Optional[SessionConfig] = None,
        registry: Optional[DisturbanceRegistry] = None
    ):
        self.leader = leader
        self.config = config if config is not None else SessionConfig()
        self.registry = registry if registry is not None else DisturbanceRegistry(
            verbose=self.config.verbose
        )
        self.time = 0.0
        self.iteration = 0

    def __enter__(self) -> 'DisturbanceSessionRunner':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def add_disturbance(self, disturbance: DisturbanceBase) -> DisturbanceBase:
        self.registry.register(disturbance)
        return disturbance

    def add_position_noise(
        self,
        config: Optional[PositionNoiseConfig] = None
    ) -> DisturbanceOffsetController:
        """Create a position noise disturbance on the session leader."""
        return self.add_disturbance(DisturbanceOffsetController(self.leader, config))

    def _apply_schedule(self, t: float) -> None:
        cfg = self.config
        deactivate = cfg.deactivate_at is not None and t >= cfg.deactivate_at
        for disturbance in self.registry:
            if deactivate:
                if disturbance.is_active:
                    disturbance.deactivate()
            elif t >= cfg.activate_at and not disturbance.is_active:
                disturbance.activate()

    def _init_logging(self) -> None:
        self.log_data: Dict[str, List] = defaultdict(list)

    def _log_step(self, disturbances: List[DisturbanceBase]) -> None:
        log = self.log_data
        log['time'].append(self.time)
        log['leader_position'].append(
            np.array(self.leader.position, dtype=float)
            if self.leader is not None else np.full(3, np.nan)
        )
        log['offsets'].append([
            getattr(d, 'offset', np.zeros(3)) for d in disturbances
        ])
        log['follower_positions'].append([
            d.transform.position.copy() for d in disturbances
        ])
        log['noise_time'].append([getattr(d, 'time', 0.0) for d in disturbances])
        log['grounded'].append([
            self.leader is not None and d.is_grounded() for d in disturbances
        ])
        log['active'].append([d.is_active for d in disturbances])

    def run(self) -> SessionLog:
        """
        Execute the session.

        Returns
        -------
        SessionLog
            Telemetry of every registered disturbance
        """
        cfg = self.config
        disturbances = self.registry.disturbances
        n_steps = cfg.n_steps
        frame_dt = cfg.dt * cfg.frame_divider

        if cfg.verbose:
            print(f"Starting disturbance session for {cfg.duration:.2f} seconds...")
            print(f"  dt: {cfg.dt*1e3:.2f} ms, frame every {cfg.frame_divider} step(s)")
            print(f"  Disturbances: {len(disturbances)}")

        self._init_logging()
        self.time = 0.0
        self.iteration = 0
        self.registry.initialize_all()

        for _ in range(n_steps):
            self._apply_schedule(self.time)
            self.registry.tick_all(cfg.dt)
            self._log_step(disturbances)

            if self.iteration % cfg.frame_divider == 0:
                self.registry.frame_update_all(frame_dt)

            if hasattr(self.leader, 'step'):
                self.leader.step(cfg.dt)
            self.iteration += 1
            self.time = self.iteration * cfg.dt

        log = self._build_log(len(disturbances))

        if cfg.verbose:
            grounded_pct = 100.0 * np.mean(log.grounded) if log.grounded.size else 0.0
            print(f"Session complete: {n_steps} steps, "
                  f"grounded {grounded_pct:.1f}% of samples")
        return log

    def _build_log(self, n_dist: int) -> SessionLog:
        data = self.log_data
        n = len(data['time'])
        return SessionLog(
            time=np.array(data['time'], dtype=float),
            leader_position=np.array(data['leader_position'], dtype=float).reshape(n, 3),
            offsets=np.array(data['offsets'], dtype=float).reshape(n, n_dist, 3).transpose(1, 0, 2),
            follower_positions=np.array(
                data['follower_positions'], dtype=float
            ).reshape(n, n_dist, 3).transpose(1, 0, 2),
            noise_time=np.array(data['noise_time'], dtype=float).reshape(n, n_dist).T,
            grounded=np.array(data['grounded'], dtype=bool).reshape(n, n_dist).T,
            active=np.array(data['active'], dtype=bool).reshape(n, n_dist).T,
            metadata={
                'dt': self.config.dt,
                'duration': self.config.duration,
                'frame_divider': self.config.frame_divider,
                'disturbances': self.registry.get_diagnostics(),
            }
        )

    def close(self) -> None:
        self.registry.close()
