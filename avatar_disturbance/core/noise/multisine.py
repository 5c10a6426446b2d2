"""
Multisine Noise Generator for Positional Disturbance Injection

This module implements a deterministic, bounded pseudo-random signal built
from a bank of sinusoids:

    s(t) = Σ_i A_i · sin(2π f_i t + φ_i)

Frequencies, amplitudes and phases are drawn from configurable ranges with a
seeded RNG, so the same seed always reproduces the same signal. More waves
spread over broader ranges give a less predictable signal.

Normalization:
-------------
For independent phases, each sinusoid contributes variance A_i²/2, so the
estimated standard deviation of the sum is:

    σ = sqrt(Σ_i A_i² / 2)

Dividing by 2σ maps most of the signal into [-1, 1]. This is NOT a hard
bound (peaks of the sum can exceed 2σ), so the normalized output is clipped
to [-1, 1] afterwards. The gain is applied last.

Usage:
------
>>> generator = SignalGenerator(WaveBank(num_waves=100, seed=2023))
>>> generator.evaluate(0.5)
>>> generator.evaluate(np.linspace(0.0, 10.0, 1000))
"""

import warnings
from typing import Dict, Iterable, Iterator, Optional, Tuple, Union

import numpy as np


# Fixed capacity of a single wave bank
MAX_WAVES = 200

DEFAULT_FREQ_RANGE = (0.1, 10.0)    # [Hz]
DEFAULT_AMP_RANGE = (0.5, 1.0)
DEFAULT_PHASE_RANGE = (0.0, 2.0 * np.pi)  # [rad]


class WaveBank:
    """
    Parameters of N sinusoids defining one noise channel.

    All arrays are computed in initialize() and left untouched until the
    next explicit initialize() call.

    Attributes
    ----------
    num_waves : int
        Number of active waves (<= MAX_WAVES)
    seed : int
        Seed used for the last initialization
    frequencies : np.ndarray
        Wave frequencies [Hz], shape (num_waves,)
    amplitudes : np.ndarray
        Wave amplitudes, shape (num_waves,)
    phases : np.ndarray
        Wave phases [rad], shape (num_waves,)
    norm_factor : float
        Estimated standard deviation of the summed signal
    """

    def __init__(
        self,
        num_waves: int = 1,
        seed: int = 2023,
        freq_range: Tuple[float, float] = DEFAULT_FREQ_RANGE,
        amp_range: Tuple[float, float] = DEFAULT_AMP_RANGE,
        phase_range: Tuple[float, float] = DEFAULT_PHASE_RANGE,
        randomize_frequency: bool = False
    ):
        self.capacity = MAX_WAVES
        self.initialize(
            num_waves, seed, freq_range, amp_range, phase_range,
            randomize_frequency
        )

    def initialize(
        self,
        num_waves: int,
        seed: int,
        freq_range: Tuple[float, float] = DEFAULT_FREQ_RANGE,
        amp_range: Tuple[float, float] = DEFAULT_AMP_RANGE,
        phase_range: Tuple[float, float] = DEFAULT_PHASE_RANGE,
        randomize_frequency: bool = False
    ) -> None:
        """
        (Re)compute every wave parameter from a seed and range configuration.

        Parameters
        ----------
        num_waves : int
            Requested number of waves. Truncated to MAX_WAVES, floored at 0.
        seed : int
            RNG seed; the same seed always reproduces the same bank
        freq_range : Tuple[float, float]
            (min, max) frequency [Hz]
        amp_range : Tuple[float, float]
            (min, max) amplitude
        phase_range : Tuple[float, float]
            (min, max) phase [rad]
        randomize_frequency : bool
            Draw frequencies uniformly instead of spacing them evenly
        """
        if num_waves > self.capacity:
            warnings.warn(
                f"Requested {num_waves} waves, truncating to capacity "
                f"{self.capacity}"
            )
        n = int(min(max(num_waves, 0), self.capacity))

        self.num_waves = n
        self.seed = seed
        self.freq_range = (float(freq_range[0]), float(freq_range[1]))
        self.amp_range = (float(amp_range[0]), float(amp_range[1]))
        self.phase_range = (float(phase_range[0]), float(phase_range[1]))
        self.randomize_frequency = randomize_frequency

        rng = np.random.default_rng(seed)
        f_min, f_max = self.freq_range

        if randomize_frequency:
            self.frequencies = rng.uniform(f_min, f_max, n)
        else:
            # A single wave sits at f_min
            if n > 1:
                self.frequencies = np.linspace(f_min, f_max, n)
            else:
                self.frequencies = np.full(n, f_min)

        self.amplitudes = rng.uniform(self.amp_range[0], self.amp_range[1], n)
        self.phases = rng.uniform(self.phase_range[0], self.phase_range[1], n)

        # Each sinusoid contributes variance A²/2
        total_variance = np.sum(self.amplitudes ** 2 / 2.0)
        self.norm_factor = float(np.sqrt(total_variance))

    def get_parameters(self) -> Dict:
        """Snapshot of the bank for diagnostics and comparison."""
        return {
            'num_waves': self.num_waves,
            'seed': self.seed,
            'frequencies': self.frequencies.copy(),
            'amplitudes': self.amplitudes.copy(),
            'phases': self.phases.copy(),
            'norm_factor': self.norm_factor,
            'randomize_frequency': self.randomize_frequency,
        }


class SignalGenerator:
    """
    Evaluates a WaveBank at one or more time values.

    Evaluation is a pure function of time for a fixed bank; the generator
    holds no runtime state besides the bank and the gain.
    """

    def __init__(self, bank: Optional[WaveBank] = None, gain: float = 1.0):
        """
        Parameters
        ----------
        bank : WaveBank, optional
            Owned wave bank (a default single-wave bank if omitted)
        gain : float
            Output multiplier applied after normalization and clipping
        """
        self.bank = bank if bank is not None else WaveBank()
        self.gain = gain

    def reinitialize(self, bank: WaveBank) -> None:
        """Replace the owned wave bank."""
        self.bank = bank

    def evaluate(
        self,
        time: Union[float, Iterable[float], np.ndarray],
        normalize: bool = True
    ) -> Union[float, np.ndarray]:
        """
        Evaluate the multisine signal.

        Parameters
        ----------
        time : float, array-like or iterator
            Time value(s) [s]; iterators are consumed once
        normalize : bool
            Divide by 2σ and clip to [-1, 1] before applying gain

        Returns
        -------
        float or np.ndarray
            Scalar for scalar input, array of the same length otherwise
        """
        if isinstance(time, Iterator):
            time = np.fromiter(time, dtype=float)
        t = np.asarray(time, dtype=float)
        scalar_input = t.ndim == 0
        t = np.atleast_1d(t).ravel()

        bank = self.bank
        # (num_waves, num_samples) phase matrix
        arg = (2.0 * np.pi * np.outer(bank.frequencies, t)
               + bank.phases[:, np.newaxis])
        signal = bank.amplitudes @ np.sin(arg)

        if normalize and bank.norm_factor != 0:
            signal = signal / (2.0 * bank.norm_factor)
            signal = np.clip(signal, -1.0, 1.0)

        signal = signal * self.gain

        if scalar_input:
            return float(signal[0])
        return signal

    def iter_signal(
        self,
        times: Iterable[float],
        normalize: bool = True
    ) -> Iterator[float]:
        """Lazily evaluate a sequence of time values one at a time."""
        for t in times:
            yield self.evaluate(t, normalize)


def create_signal_generator(config: Dict) -> SignalGenerator:
    """
    Factory function to create a signal generator from a config dict.

    Parameters
    ----------
    config : Dict
        Configuration dictionary:
        - 'num_waves': Number of sinusoids (default 100)
        - 'seed': RNG seed (default 2023)
        - 'freq_range': (min, max) frequency [Hz]
        - 'amp_range': (min, max) amplitude
        - 'phase_range': (min, max) phase [rad]
        - 'randomize_frequency': Random instead of evenly spaced frequencies
        - 'gain': Output gain

    Returns
    -------
    SignalGenerator
        Configured generator
    """
    bank = WaveBank(
        num_waves=config.get('num_waves', 100),
        seed=config.get('seed', 2023),
        freq_range=config.get('freq_range', DEFAULT_FREQ_RANGE),
        amp_range=config.get('amp_range', DEFAULT_AMP_RANGE),
        phase_range=config.get('phase_range', DEFAULT_PHASE_RANGE),
        randomize_frequency=config.get('randomize_frequency', False)
    )
    return SignalGenerator(bank, gain=config.get('gain', 1.0))
