"""
Demo: Avatar Position Noise Disturbance

This script demonstrates the multisine signal generator and the position
noise disturbance applied to a stepping foot tracker.
"""

import numpy as np
import matplotlib.pyplot as plt
from avatar_disturbance.core.analysis.offset_analyzer import analyze_offset_trace
from avatar_disturbance.core.coordinate_frames.transforms import make_stepping_foot
from avatar_disturbance.core.disturbances.position_noise import PositionNoiseConfig
from avatar_disturbance.core.noise.multisine import create_signal_generator
from avatar_disturbance.core.simulation.session_runner import (
    DisturbanceSessionRunner,
    SessionConfig
)
from avatar_disturbance.core.visualization.offset_plots import OffsetPlotter


def demo_multisine():
    """Demonstrate a single-axis multisine signal."""
    print("=" * 70)
    print("DEMO 1: Multisine Signal Generator")
    print("=" * 70)

    config = {
        'num_waves': 50,
        'freq_range': (0.1, 5.0),    # Hz
        'amp_range': (0.5, 1.0),
        'seed': 42,
    }
    generator = create_signal_generator(config)

    t = np.arange(0.0, 10.0, 0.01)
    raw = generator.evaluate(t, normalize=False)
    normalized = generator.evaluate(t)

    print(f"\n  Waves:           {generator.bank.num_waves}")
    print(f"  Norm factor:     {generator.bank.norm_factor:.4f}")
    print(f"  Raw std:         {np.std(raw):.4f}")
    print(f"  Normalized std:  {np.std(normalized):.4f}")
    print(f"  Normalized peak: {np.max(np.abs(normalized)):.4f}")

    fig, axes = plt.subplots(2, 1, figsize=(12, 6), sharex=True)
    axes[0].plot(t, raw, linewidth=0.8)
    axes[0].set_ylabel('Raw')
    axes[0].grid(True, alpha=0.3)
    axes[1].plot(t, normalized, linewidth=0.8, color='tab:orange')
    axes[1].axhline(1.0, color='k', linestyle='--', linewidth=0.8)
    axes[1].axhline(-1.0, color='k', linestyle='--', linewidth=0.8)
    axes[1].set_ylabel('Normalized')
    axes[1].set_xlabel('Time (s)')
    axes[1].grid(True, alpha=0.3)
    fig.suptitle('Multisine Signal', fontweight='bold')
    fig.tight_layout()
    return fig


def demo_position_noise():
    """Demonstrate position noise on a stepping foot."""
    print("\n" + "=" * 70)
    print("DEMO 2: Position Noise on a Stepping Foot")
    print("=" * 70)

    noise_config = PositionNoiseConfig(
        seed=7,
        max_distance=0.05,           # m
        intensity=0.8,
        noise_scale=(1.0, 0.5, 1.0),
        verbose=True,
    )
    session_config = SessionConfig(dt=0.02, duration=10.0, deactivate_at=8.0)

    with DisturbanceSessionRunner(make_stepping_foot(), session_config) as runner:
        runner.add_position_noise(noise_config)
        log = runner.run()

    metrics = analyze_offset_trace(
        log.offsets[0], dt=session_config.dt,
        max_distance=noise_config.max_distance,
        intensity=noise_config.intensity,
        noise_scale=noise_config.noise_scale
    )

    print(f"\nOffset Statistics:")
    for k, axis in enumerate('xyz'):
        print(f"  {axis}: rms={metrics.rms_offset[k]*1e3:.2f} mm, "
              f"peak={metrics.peak_offset[k]*1e3:.2f} mm, "
              f"dominant={metrics.dominant_frequency[k]:.2f} Hz")
    print(f"  Inside envelope: {metrics.envelope_fraction*100:.1f}%")
    print(f"  Grounded:        {log.grounded[0].mean()*100:.1f}% of samples")

    plotter = OffsetPlotter()
    fig_offsets, _ = plotter.plot_offsets(log.to_dataframe(),
                                          title='Position Noise on Stepping Foot')
    fig_psd, _ = plotter.plot_psd(metrics)
    return fig_offsets, fig_psd


if __name__ == "__main__":
    demo_multisine()
    demo_position_noise()
    plt.show()
