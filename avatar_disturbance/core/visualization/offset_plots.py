"""
Offset Plots for Disturbance Sessions

Time-series and spectral views of an injected position disturbance:

- Per-axis offset timeline with grounded intervals shaded (shows the noise
  freezing while the tracked foot is planted)
- Leader vs follower height (shows the gate threshold in context)
- Welch PSD per axis from OffsetTraceMetrics
"""

from typing import Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from avatar_disturbance.core.analysis.offset_analyzer import OffsetTraceMetrics


AXIS_COLORS = {'x': 'tab:red', 'y': 'tab:green', 'z': 'tab:blue'}


class OffsetPlotter:
    """
    Plotter for disturbance session telemetry.

    Usage:
    ------
    >>> plotter = OffsetPlotter()
    >>> fig, axes = plotter.plot_offsets(log.to_dataframe())
    >>> fig, ax = plotter.plot_psd(analyze_offset_trace(log.offsets[0], dt))
    """

    def __init__(self, figure_size: Tuple[int, int] = (12, 8)):
        self.figure_size = figure_size

    @staticmethod
    def _to_dataframe(
        telemetry: Union[Dict[str, List[float]], pd.DataFrame]
    ) -> pd.DataFrame:
        if isinstance(telemetry, pd.DataFrame):
            return telemetry
        return pd.DataFrame(telemetry)

    @staticmethod
    def _shade_grounded(ax: plt.Axes, time: np.ndarray, grounded: np.ndarray) -> None:
        if not np.any(grounded):
            return
        edges = np.diff(grounded.astype(int), prepend=0, append=0)
        starts = np.where(edges == 1)[0]
        ends = np.where(edges == -1)[0]
        dt = time[1] - time[0] if len(time) > 1 else 0.0
        for start, end in zip(starts, ends):
            ax.axvspan(time[start], time[end - 1] + dt, color='0.85', zorder=0)

    def plot_offsets(
        self,
        telemetry: Union[Dict[str, List[float]], pd.DataFrame],
        title: Optional[str] = None
    ) -> Tuple[plt.Figure, np.ndarray]:
        """
        Plot per-axis offsets and leader/follower height.

        Parameters
        ----------
        telemetry : dict or DataFrame
            Columns from SessionLog.to_dataframe()
        title : str, optional
            Figure title

        Returns
        -------
        fig : plt.Figure
        axes : np.ndarray of plt.Axes
        """
        df = self._to_dataframe(telemetry)
        time = df['time'].values
        grounded = df['grounded'].values.astype(bool) if 'grounded' in df else \
            np.zeros(len(df), dtype=bool)

        fig, axes = plt.subplots(4, 1, figsize=self.figure_size, sharex=True)

        for ax, axis in zip(axes[:3], 'xyz'):
            self._shade_grounded(ax, time, grounded)
            ax.plot(time, df[f'offset_{axis}'].values * 1e3,
                    color=AXIS_COLORS[axis], linewidth=1.0)
            ax.set_ylabel(f'Offset {axis} (mm)')
            ax.grid(True, alpha=0.3)

        ax = axes[3]
        self._shade_grounded(ax, time, grounded)
        ax.plot(time, df['leader_y'].values, 'k-', linewidth=1.0, label='Leader')
        ax.plot(time, df['follower_y'].values, color=AXIS_COLORS['y'],
                linewidth=1.0, alpha=0.8, label='Follower')
        ax.set_ylabel('Height (m)')
        ax.set_xlabel('Time (s)')
        ax.legend(loc='upper right')
        ax.grid(True, alpha=0.3)

        fig.suptitle(title or 'Position Noise Disturbance')
        fig.tight_layout()
        return fig, axes

    def plot_psd(
        self,
        metrics: OffsetTraceMetrics,
        title: Optional[str] = None,
        ax: Optional[plt.Axes] = None
    ) -> Tuple[plt.Figure, plt.Axes]:
        """
        Plot the Welch PSD of each offset axis.

        Parameters
        ----------
        metrics : OffsetTraceMetrics
            Metrics with psd_frequencies and psd populated
        title : str, optional
            Axes title
        ax : plt.Axes, optional
            Existing axes

        Returns
        -------
        fig : plt.Figure
        ax : plt.Axes
        """
        if ax is None:
            fig, ax = plt.subplots(figsize=(self.figure_size[0], self.figure_size[1] / 2))
        else:
            fig = ax.figure

        if metrics.psd is None:
            ax.text(0.5, 0.5, 'No spectral data', ha='center', va='center',
                    transform=ax.transAxes)
            return fig, ax

        for k, axis in enumerate('xyz'):
            # Floor avoids log(0) on disabled axes
            ax.semilogy(metrics.psd_frequencies, np.maximum(metrics.psd[k], 1e-20),
                        color=AXIS_COLORS[axis], label=axis)
        ax.set_xlabel('Frequency (Hz)')
        ax.set_ylabel('PSD (m²/Hz)')
        ax.set_title(title or 'Offset PSD')
        ax.legend()
        ax.grid(True, which='both', alpha=0.3)
        return fig, ax
