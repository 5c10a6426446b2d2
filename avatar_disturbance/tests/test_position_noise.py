"""
Unit tests for the position noise disturbance.

Tests verify:
1. Offset computation (per-axis scale, max distance, intensity)
2. Activation state machine and zero offset on deactivation
3. Idempotent and forced initialization reproducibility
4. Ground gate time freeze and pre-gate offset write
5. Leader mirroring and ground calibration through tick and frame updates
"""

import pytest
import numpy as np
from avatar_disturbance.core.coordinate_frames.transforms import (
    Transform,
    quaternion_from_yaw
)
from avatar_disturbance.core.disturbances.disturbance_base import DisturbanceBase
from avatar_disturbance.core.disturbances.position_noise import (
    AXES,
    DisturbanceOffsetController,
    PositionNoiseConfig,
    create_position_noise_disturbance
)


DT = 0.02


def bank_snapshot(controller):
    return {axis: gen.bank.get_parameters() for axis, gen in controller.generators.items()}


def assert_same_banks(snap1, snap2):
    for axis in AXES:
        for key in ('frequencies', 'amplitudes', 'phases'):
            np.testing.assert_array_equal(snap1[axis][key], snap2[axis][key])
        assert snap1[axis]['norm_factor'] == snap2[axis]['norm_factor']


class TestPositionNoiseConfig:
    """Test configuration validation."""

    def test_defaults(self):
        config = PositionNoiseConfig()

        assert config.num_waves == 100
        assert config.freq_range == (0.1, 10.0)
        assert config.amp_range == (0.5, 1.0)
        assert config.phase_range == pytest.approx((0.0, 2 * np.pi))
        assert config.max_distance == 1.0
        assert config.pause_noise_on_ground is True
        assert config.ground_level == 0.05
        assert config.ground_margin == 0.01

    @pytest.mark.parametrize("value,expected", [(-0.5, 0.0), (1.7, 1.0), (0.3, 0.3)])
    def test_intensity_clamped(self, value, expected):
        assert PositionNoiseConfig(intensity=value).intensity == expected

    def test_reversed_range_rejected(self):
        with pytest.raises(ValueError, match="freq_range"):
            PositionNoiseConfig(freq_range=(5.0, 1.0))

    def test_noise_scale_length(self):
        with pytest.raises(ValueError, match="noise_scale"):
            PositionNoiseConfig(noise_scale=(1.0, 1.0))

    def test_negative_max_distance(self):
        with pytest.raises(ValueError, match="max_distance"):
            PositionNoiseConfig(max_distance=-0.1)

    def test_zero_length_range_accepted(self):
        config = PositionNoiseConfig(freq_range=(2.0, 2.0))

        assert config.freq_range == (2.0, 2.0)


class TestDisturbanceOffsetController:
    """Test the position noise controller."""

    @pytest.fixture
    def leader(self):
        """Leader well above the ground."""
        return Transform(position=[0.2, 1.0, -0.4])

    @pytest.fixture
    def config(self):
        return PositionNoiseConfig(num_waves=50, seed=42, max_distance=0.1)

    @pytest.fixture
    def controller(self, leader, config):
        controller = DisturbanceOffsetController(leader, config)
        controller.initialize()
        return controller

    def test_initial_state(self, leader, config):
        controller = DisturbanceOffsetController(leader, config)

        assert not controller.initialized
        assert not controller.is_active
        assert controller.time == 0.0
        np.testing.assert_array_equal(controller.offset, np.zeros(3))

    def test_initialize_builds_three_generators(self, controller):
        assert controller.initialized
        assert set(controller.generators) == set(AXES)
        for axis in AXES:
            assert controller.generators[axis].bank.num_waves == 50
            assert 0 <= controller.sub_seeds[axis] <= 1000

    @pytest.mark.parametrize("value,expected", [(-0.5, 0.0), (1.7, 1.0), (0.25, 0.25)])
    def test_intensity_clamp(self, controller, value, expected):
        controller.intensity = value

        assert controller.intensity == expected

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_intensity_disables(self, controller, value):
        controller.intensity = value
        controller.activate()
        controller.tick(DT)

        assert controller.intensity == 0.0
        np.testing.assert_array_equal(controller.offset, np.zeros(3))
        assert np.all(np.isfinite(controller.transform.position))

    def test_offset_formula(self, leader):
        config = PositionNoiseConfig(num_waves=20, seed=5, noise_scale=(1.0, 0.5, 2.0),
                                     max_distance=0.3, intensity=0.8)
        controller = DisturbanceOffsetController(leader, config)
        controller.activate()
        controller.tick(DT)

        # Offset was computed at time 0 before time advanced
        noise = np.array([controller.generators[a].evaluate(0.0) for a in AXES])
        expected = noise * np.array([1.0, 0.5, 2.0]) * 0.3 * 0.8
        np.testing.assert_allclose(controller.offset, expected, atol=1e-15)
        np.testing.assert_allclose(controller.transform.position,
                                   leader.position + expected, atol=1e-15)
        assert controller.time == pytest.approx(DT)

    def test_offset_bounded_by_max_distance(self, controller):
        controller.activate()
        for _ in range(500):
            controller.tick(DT)
            assert np.all(np.abs(controller.offset) <= 0.1 + 1e-12)

    def test_disabled_axis(self, leader):
        config = PositionNoiseConfig(seed=5, noise_scale=(1.0, 0.0, 1.0))
        controller = DisturbanceOffsetController(leader, config)
        controller.activate()

        for _ in range(10):
            controller.tick(DT)
            assert controller.offset[1] == 0.0

    def test_zero_intensity_gives_zero_offset(self, controller):
        controller.intensity = 0.0
        controller.activate()
        controller.tick(DT)

        np.testing.assert_array_equal(controller.offset, np.zeros(3))

    def test_offset_is_read_only(self, controller):
        controller.activate()
        controller.tick(DT)
        before = controller.offset

        controller.offset = np.array([9.0, 9.0, 9.0])
        returned = controller.offset
        returned[:] = 5.0

        np.testing.assert_array_equal(controller.offset, before)

    def test_inactive_tick_is_noop(self, controller):
        position = controller.transform.position.copy()
        for _ in range(5):
            controller.tick(DT)

        assert controller.time == 0.0
        np.testing.assert_array_equal(controller.transform.position, position)

    def test_missing_leader_skips_updates(self, config):
        controller = DisturbanceOffsetController(None, config)
        controller.activate()

        for _ in range(5):
            controller.tick(DT)
            controller.frame_update(DT)

        assert controller.time == 0.0

    def test_time_advances_while_active(self, controller):
        controller.activate()
        for _ in range(10):
            controller.tick(DT)

        assert controller.time == pytest.approx(10 * DT)

    def test_time_frozen_while_inactive(self, controller):
        controller.activate()
        for _ in range(5):
            controller.tick(DT)
        controller.deactivate()
        frozen = controller.time
        for _ in range(5):
            controller.tick(DT)

        assert controller.time == frozen

    def test_zero_on_deactivate(self, controller, leader):
        controller.activate()
        for _ in range(25):
            controller.tick(DT)
        assert np.any(controller.offset != 0.0)

        controller.deactivate()

        assert not controller.is_active
        np.testing.assert_array_equal(controller.offset, np.zeros(3))
        np.testing.assert_array_equal(controller.transform.position, leader.position)

    def test_reactivation_resumes_time(self, controller):
        controller.activate()
        for _ in range(5):
            controller.tick(DT)
        controller.deactivate()
        controller.activate()
        controller.tick(DT)

        assert controller.time == pytest.approx(6 * DT)

    def test_idempotent_initialize(self, controller):
        generators = dict(controller.generators)
        snap = bank_snapshot(controller)

        controller.initialize()

        for axis in AXES:
            assert controller.generators[axis] is generators[axis]
        assert_same_banks(snap, bank_snapshot(controller))

    def test_forced_initialize_reproducible(self, controller):
        snap = bank_snapshot(controller)

        controller.initialize(force=True)
        assert_same_banks(snap, bank_snapshot(controller))

        controller.initialize(force=True)
        assert_same_banks(snap, bank_snapshot(controller))

    def test_same_seed_same_disturbance(self, leader, config):
        c1 = DisturbanceOffsetController(leader, config)
        c2 = DisturbanceOffsetController(leader, config)
        c1.activate()
        c2.activate()

        for _ in range(50):
            c1.tick(DT)
            c2.tick(DT)
            np.testing.assert_array_equal(c1.offset, c2.offset)

    def test_unseeded_controller_records_seed(self, leader):
        controller = DisturbanceOffsetController(leader, PositionNoiseConfig())
        controller.initialize()
        seed = controller.seed

        reproduced = DisturbanceOffsetController(leader, PositionNoiseConfig(seed=seed))
        reproduced.initialize()

        assert_same_banks(bank_snapshot(controller), bank_snapshot(reproduced))

    def test_time_offset(self, leader):
        config = PositionNoiseConfig(seed=3, randomize_time_offset=True,
                                     max_time_offset=50.0)
        c1 = DisturbanceOffsetController(leader, config)
        c2 = DisturbanceOffsetController(leader, config)
        c1.initialize()
        c2.initialize()

        assert 0.0 <= c1.time_offset < 50.0
        assert c1.time_offset == c2.time_offset

        c1.activate()
        c1.tick(DT)
        expected = c1.generators['x'].evaluate(c1.time_offset) * c1.max_distance
        assert c1.offset[0] == pytest.approx(expected)

    def test_time_offset_disabled_by_default(self, controller):
        assert controller.time_offset == 0.0

    def test_factory(self, leader):
        controller = create_position_noise_disturbance(
            {'seed': 9, 'num_waves': 10, 'max_distance': 0.05, 'unknown_key': 1},
            leader
        )

        assert isinstance(controller, DisturbanceOffsetController)
        assert controller.config.seed == 9
        assert controller.max_distance == 0.05
        assert controller.leader is leader

    def test_diagnostics(self, controller):
        diagnostics = controller.get_diagnostics()

        assert diagnostics['type'] == 'DisturbanceOffsetController'
        assert diagnostics['initialized']
        assert diagnostics['seed'] == 42
        assert set(diagnostics['norm_factors']) == set(AXES)


class TestGroundGate:
    """Test pause-on-ground behavior."""

    @pytest.fixture
    def leader(self):
        return Transform(position=[0.0, 1.0, 0.0])

    @pytest.fixture
    def controller(self, leader):
        controller = DisturbanceOffsetController(
            leader, PositionNoiseConfig(seed=11, max_distance=0.1)
        )
        controller.activate()
        return controller

    def test_is_grounded(self, controller, leader):
        assert not controller.is_grounded()

        leader.position[1] = 0.06
        assert controller.is_grounded()

        leader.position[1] = 0.0601
        assert not controller.is_grounded()

    def test_not_grounded_without_leader(self):
        controller = DisturbanceOffsetController(None, PositionNoiseConfig(seed=11))

        assert not controller.is_grounded()

    def test_time_frozen_when_grounded(self, controller, leader):
        leader.position[1] = 0.0
        calls = []
        compute = controller.compute_offset

        def counting_compute():
            calls.append(controller.time)
            return compute()

        controller.compute_offset = counting_compute

        for _ in range(10):
            controller.tick(DT)

        assert controller.time == 0.0
        assert len(calls) == 10

    def test_offset_written_before_gate(self, controller, leader):
        """The landing tick still writes the offset at the pre-freeze time."""
        controller.tick(DT)
        controller.tick(DT)
        assert controller.time == pytest.approx(2 * DT)

        leader.position[1] = 0.0
        leader.position[0] = 0.5
        controller.tick(DT)

        expected = np.array([
            controller.generators[a].evaluate(2 * DT) for a in AXES
        ]) * 0.1
        np.testing.assert_allclose(controller.offset, expected, atol=1e-15)
        np.testing.assert_allclose(controller.transform.position,
                                   leader.position + expected, atol=1e-15)
        assert controller.time == pytest.approx(2 * DT)

    def test_follower_tracks_leader_while_frozen(self, controller, leader):
        leader.position[1] = 0.0
        controller.tick(DT)
        frozen = controller.offset

        leader.position[2] = 0.7
        controller.tick(DT)

        np.testing.assert_array_equal(controller.offset, frozen)
        np.testing.assert_allclose(controller.transform.position, leader.position + frozen)

    def test_gate_disabled(self, leader):
        controller = DisturbanceOffsetController(
            leader, PositionNoiseConfig(seed=11, pause_noise_on_ground=False)
        )
        controller.activate()
        leader.position[1] = 0.0

        for _ in range(4):
            controller.tick(DT)

        assert controller.time == pytest.approx(4 * DT)
        assert controller.calibration is None


class TestFrameUpdate:
    """Test per-frame leader mirroring and calibration."""

    @pytest.fixture
    def leader(self):
        return Transform(position=[0.0, 0.02, 0.0])

    def test_rotation_mirrored_even_when_inactive(self, leader):
        controller = DisturbanceOffsetController(leader, PositionNoiseConfig(seed=1))
        leader.rotation = quaternion_from_yaw(0.3)

        controller.frame_update(DT)

        np.testing.assert_array_equal(controller.transform.rotation, leader.rotation)

    def test_calibration_on_initialize(self, leader):
        config = PositionNoiseConfig(seed=1, calibration_time=0.09, ground_margin=0.02)
        controller = DisturbanceOffsetController(leader, config)
        controller.initialize()
        assert controller.is_calibrating

        heights = [0.02, 0.03, 0.01, 0.02, 0.02]
        for h in heights:
            leader.position[1] = h
            controller.frame_update(DT)

        assert not controller.is_calibrating
        assert controller.ground_level == pytest.approx(np.mean(heights))
        assert controller.ground_margin == 0.02

    def test_calibration_cancelled_on_destroy(self, leader):
        config = PositionNoiseConfig(seed=1, calibration_time=1.0)
        controller = DisturbanceOffsetController(leader, config)
        controller.initialize()
        calibration = controller.calibration

        controller.frame_update(DT)
        controller.destroy()

        assert not calibration.is_running
        assert controller.ground_level == 0.05
        controller.activate()
        controller.tick(DT)
        assert controller.time == 0.0

    def test_deactivate_mid_calibration(self, leader):
        config = PositionNoiseConfig(seed=1, calibration_time=1.0)
        controller = DisturbanceOffsetController(leader, config)
        controller.activate()
        snap = bank_snapshot(controller)

        controller.frame_update(DT)
        controller.deactivate()
        controller.cancel_calibration()

        assert not controller.is_calibrating
        assert_same_banks(snap, bank_snapshot(controller))
        np.testing.assert_array_equal(controller.offset, np.zeros(3))

    def test_calibration_driven_by_tick_only(self, leader):
        config = PositionNoiseConfig(seed=1, calibration_time=0.1)
        controller = DisturbanceOffsetController(leader, config)
        controller.activate()

        for _ in range(100):
            controller.tick(DT)

        assert not controller.is_calibrating
        assert controller.ground_level == pytest.approx(0.02)
        assert controller.ground_margin == 0.01

    def test_tick_and_frame_sample_once_per_step(self, leader):
        config = PositionNoiseConfig(seed=1, calibration_time=0.09)
        controller = DisturbanceOffsetController(leader, config)
        controller.activate()

        heights = [0.02, 0.03, 0.01, 0.02, 0.04]
        for i, h in enumerate(heights):
            assert controller.is_calibrating, f"finished early at step {i}"
            leader.position[1] = h
            controller.tick(DT)
            controller.frame_update(DT)

        assert not controller.is_calibrating
        assert controller.ground_level == pytest.approx(np.mean(heights))


class TestDisturbanceBase:
    """Test the abstract disturbance base."""

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            DisturbanceBase()

    def test_subclass_must_implement_fixed_update(self):
        class NoUpdate(DisturbanceBase):
            pass

        class Minimal(DisturbanceBase):
            def fixed_update_transform(self, dt):
                self.ticks = getattr(self, 'ticks', 0) + 1

        with pytest.raises(TypeError):
            NoUpdate()

        disturbance = Minimal(Transform(position=[0.0, 1.0, 0.0]))
        disturbance.activate()
        disturbance.tick(DT)
        assert disturbance.ticks == 1
