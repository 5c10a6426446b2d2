"""
Disturbance Registry

Bookkeeping for the disturbances active in one session. The registry is an
explicit lifecycle object owned by the driver (there is no process-wide
singleton): disturbances are registered by their owner after construction
and unregistered on teardown. Leaving a `with` block destroys and
unregisters everything still registered.

Example:
--------
>>> with DisturbanceRegistry() as registry:
...     registry.register(DisturbanceOffsetController(leader, config))
...     registry.initialize_all()
...     registry.activate_all()
...     for _ in range(n_steps):
...         registry.tick_all(dt)
"""

from typing import Dict, List

from avatar_disturbance.core.disturbances.disturbance_base import DisturbanceBase


class DisturbanceRegistry:
    """Ordered collection of disturbances with collective controls."""

    def __init__(self, verbose: bool = False):
        self._disturbances: List[DisturbanceBase] = []
        self.verbose = verbose
        self.closed = False

    def __enter__(self) -> 'DisturbanceRegistry':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._disturbances)

    def __contains__(self, disturbance: DisturbanceBase) -> bool:
        return any(d is disturbance for d in self._disturbances)

    def __iter__(self):
        return iter(list(self._disturbances))

    @property
    def disturbances(self) -> List[DisturbanceBase]:
        return list(self._disturbances)

    def register(self, disturbance: DisturbanceBase) -> None:
        """Add a disturbance; registering it twice has no effect."""
        if disturbance in self:
            return
        self._disturbances.append(disturbance)
        disturbance.registry = self
        if self.verbose:
            print(f"INFO: Registered {type(disturbance).__name__} "
                  f"({len(self._disturbances)} total)")

    def unregister(self, disturbance: DisturbanceBase) -> None:
        """Remove a disturbance; unknown disturbances are ignored."""
        if disturbance not in self:
            return
        self._disturbances = [
            d for d in self._disturbances if d is not disturbance
        ]
        if disturbance.registry is self:
            disturbance.registry = None

    def initialize_all(self, force: bool = False) -> None:
        for disturbance in self._disturbances:
            disturbance.initialize(force)

    def activate_all(self) -> None:
        for disturbance in self._disturbances:
            disturbance.activate()

    def deactivate_all(self) -> None:
        for disturbance in self._disturbances:
            disturbance.deactivate()

    def set_intensity(self, intensity: float) -> None:
        """Set the same (clamped) intensity on every disturbance."""
        for disturbance in self._disturbances:
            disturbance.intensity = intensity

    def tick_all(self, dt: float) -> None:
        for disturbance in self._disturbances:
            disturbance.tick(dt)

    def frame_update_all(self, dt: float) -> None:
        for disturbance in self._disturbances:
            disturbance.frame_update(dt)

    def get_diagnostics(self) -> List[Dict]:
        return [d.get_diagnostics() for d in self._disturbances]

    def clear(self) -> None:
        """Unregister everything without destroying it."""
        for disturbance in list(self._disturbances):
            self.unregister(disturbance)

    def close(self, destroy: bool = True) -> None:
        """
        Tear down the registry.

        Parameters
        ----------
        destroy : bool
            Call destroy() on each disturbance before unregistering it
        """
        if destroy:
            for disturbance in list(self._disturbances):
                disturbance.destroy()
        self.clear()
        self.closed = True
