"""Unicycle 엔진 (footstep 탐색, DCM, CoM 높이, generator) 테스트"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from unicycle_planner import config
from unicycle_planner.unicycle_generator import (
    CoMHeightTrajectoryGenerator,
    DCMInitialState,
    DCMTrajectoryGenerator,
    FootPrint,
    StepPhase,
    Step,
    UnicycleController,
    UnicycleGenerator,
    UnicycleGeneratorSettings,
    UnicyclePlanner,
)

DT = 0.01
HORIZON = 5.0
OMEGA = np.sqrt(config.GRAVITY / config.COM_HEIGHT)


def make_settings(**overrides):
    values = dict(
        reference_point_distance=np.array([0.1, 0.0]),
        unicycle_gain=config.UNICYCLE_GAIN,
        slow_when_turning_gain=config.SLOW_WHEN_TURNING_GAIN,
        slow_when_backward_factor=config.SLOW_WHEN_BACKWARD_FACTOR,
        slow_when_sideways_factor=config.SLOW_WHEN_SIDEWAYS_FACTOR,
        max_step_length=config.MAX_STEP_LENGTH,
        max_length_backward_factor=config.MAX_LENGTH_BACKWARD_FACTOR,
        dt=DT,
        min_width=config.MIN_WIDTH,
        nominal_width=config.NOMINAL_WIDTH,
        max_angle_variation=config.MAX_ANGLE_VARIATION,
        min_angle_variation=config.MIN_ANGLE_VARIATION,
        position_weight=config.POSITION_WEIGHT,
        time_weight=config.TIME_WEIGHT,
        min_step_duration=config.MIN_STEP_DURATION,
        max_step_duration=config.MAX_STEP_DURATION,
        nominal_duration=config.NOMINAL_DURATION,
        min_step_length=config.MIN_STEP_LENGTH,
        saturation_factors=np.array([0.7, 0.7]),
        left_yaw_delta_in_rad=0.0,
        right_yaw_delta_in_rad=0.0,
        terminal_step=config.TERMINAL_STEP,
        start_with_left=config.SWING_LEFT,
        start_with_same_foot=config.START_ALWAYS_SAME_FOOT,
        controller=UnicycleController.DIRECT,
        switch_over_swing_ratio=config.SWITCH_OVER_SWING_RATIO,
        last_step_switch_time=config.LAST_STEP_SWITCH_TIME,
        merge_point_ratios=np.array([0.4, 0.4]),
        is_pause_active=config.IS_PAUSE_ACTIVE,
        com_height=config.COM_HEIGHT,
        com_height_delta=config.COM_HEIGHT_DELTA,
        left_zmp_delta=np.zeros(2),
        right_zmp_delta=np.zeros(2),
        omega=OMEGA,
        last_step_dcm_offset=config.LAST_STEP_DCM_OFFSET,
    )
    values.update(overrides)
    return UnicycleGeneratorSettings(**values)


@pytest.fixture
def generator():
    g = UnicycleGenerator()
    assert g.apply_settings(make_settings())
    return g


@pytest.fixture
def seeded(generator):
    assert generator.seed_first_trajectory(0.0, DT, HORIZON)
    return generator


def walk_forward(generator, init_time=0.0, forward=1.0, angular=0.0):
    """왼발 지지 상태에서 direct 명령으로 재계획."""
    planner = generator.unicycle_planner
    planner.set_desired_direct_control(forward, 0.0, angular)
    half_width = 0.5 * config.NOMINAL_WIDTH
    return generator.regenerate(init_time, DT, init_time + HORIZON, True,
                                np.array([0.0, half_width]), 0.0)


def all_new_steps(generator):
    left = [(s, True) for s in generator.left_foot_print.get_steps()[1:]]
    right = [(s, False) for s in generator.right_foot_print.get_steps()[1:]]
    return sorted(left + right, key=lambda item: item[0].impact_time)


def swing_run_lengths(in_contact):
    runs, length = [], 0
    for value in in_contact:
        if not value:
            length += 1
        elif length:
            runs.append(length)
            length = 0
    if length:
        runs.append(length)
    return runs


class TestFootPrint:
    def test_rejects_decreasing_impact_time(self):
        fp = FootPrint()
        assert fp.add_step(Step(np.zeros(2), 0.0, 1.0))
        assert not fp.add_step(Step(np.zeros(2), 0.0, 0.5))
        assert len(fp.get_steps()) == 1

    def test_get_steps_returns_copies(self):
        fp = FootPrint()
        fp.add_step(Step(np.zeros(2), 0.0, 0.0))
        fp.get_steps()[0].position[0] = 5.0
        assert fp.get_steps()[0].position[0] == 0.0

    def test_last_step_before(self):
        fp = FootPrint()
        fp.add_step(Step(np.array([0.0, 0.0]), 0.0, 0.0))
        fp.add_step(Step(np.array([0.2, 0.0]), 0.0, 1.0))
        assert fp.last_step_before(0.5).impact_time == 0.0
        assert fp.last_step_before(1.0).impact_time == 1.0
        assert FootPrint().last_step_before(1.0) is None


class TestPlannerSettings:
    def test_person_distance_requires_positive_x(self):
        assert not UnicyclePlanner().set_desired_person_distance(0.0, 0.0)

    def test_width_smaller_than_step(self):
        planner = UnicyclePlanner()
        assert planner.set_max_step_length(0.3, 0.8)
        assert not planner.set_width_setting(0.14, 0.35)
        assert planner.set_width_setting(0.14, 0.2)

    def test_step_timings_order(self):
        planner = UnicyclePlanner()
        assert not planner.set_step_timings(1.0, 1.5, 0.8)
        assert planner.set_step_timings(0.65, 1.5, 0.8)

    def test_saturation_factors_range(self):
        planner = UnicyclePlanner()
        assert not planner.set_saturations_conservative_factors(1.2, 0.5)
        assert not planner.set_saturations_conservative_factors(0.0, 0.5)

    def test_direct_control_rejects_nan(self):
        assert not UnicyclePlanner().set_desired_direct_control(np.nan, 0.0, 0.0)


class TestApplySettings:
    def test_valid_settings(self, generator):
        assert generator.unicycle_planner.controller == UnicycleController.DIRECT
        assert generator.dcm_generator.omega == pytest.approx(OMEGA)

    def test_short_circuit_keeps_earlier_settings(self):
        g = UnicycleGenerator()
        ok = g.apply_settings(make_settings(unicycle_gain=-1.0, com_height=1.0))
        assert not ok
        # 실패 이전 설정은 유지, 이후 fallible 설정은 건너뜀
        np.testing.assert_allclose(g.unicycle_planner.reference_distance, [0.1, 0.0])
        assert g.com_height_generator.com_height is None
        # 실패 불가 설정은 계속 적용
        assert g.unicycle_planner.is_starting_with_left == config.SWING_LEFT

    def test_invalid_com_height(self):
        assert not UnicycleGenerator().apply_settings(make_settings(com_height_delta=1.0))


class TestUnicycleIntegration:
    def test_still_when_command_is_zero(self, generator):
        planner = generator.unicycle_planner
        planner.set_desired_direct_control(0.0, 0.0, 0.0)
        times = np.arange(0.0, 2.0, DT)
        poses = planner.integrate(times, np.zeros(3))
        np.testing.assert_allclose(poses, np.zeros((len(times), 3)), atol=1e-12)

    def test_forward_motion(self, generator):
        planner = generator.unicycle_planner
        planner.set_desired_direct_control(1.0, 0.0, 0.0)
        times = np.arange(0.0, 2.0, DT)
        poses = planner.integrate(times, np.zeros(3))
        assert poses[-1, 0] > 0.1
        assert np.all(np.diff(poses[:, 0]) >= 0)
        np.testing.assert_allclose(poses[:, 1:], 0.0, atol=1e-12)

    def test_backward_slower_than_forward(self, generator):
        planner = generator.unicycle_planner
        times = np.arange(0.0, 1.0, DT)
        planner.set_desired_direct_control(1.0, 0.0, 0.0)
        forward = planner.integrate(times, np.zeros(3))[-1, 0]
        planner.set_desired_direct_control(-1.0, 0.0, 0.0)
        backward = planner.integrate(times, np.zeros(3))[-1, 0]
        assert backward < 0
        assert abs(backward) == pytest.approx(config.SLOW_WHEN_BACKWARD_FACTOR * forward)

    def test_turning(self, generator):
        planner = generator.unicycle_planner
        planner.set_desired_direct_control(0.0, 0.0, 1.0)
        times = np.arange(0.0, 1.0, DT)
        poses = planner.integrate(times, np.zeros(3))
        assert poses[-1, 2] > 0

    def test_person_following_reaches_target(self):
        planner = UnicyclePlanner()
        planner.set_max_step_length(0.32, 0.8)
        planner.set_width_setting(0.14, 0.2)
        planner.set_step_timings(0.65, 1.5, 0.8)
        planner.set_unicycle_controller(UnicycleController.PERSON_FOLLOWING)
        planner.add_person_following_desired_trajectory_point(0.0, [0.4, 0.0])
        planner.add_person_following_desired_trajectory_point(10.0, [0.4, 0.0])
        times = np.arange(0.0, 10.0, 0.01)
        poses = planner.integrate(times, np.zeros(3))
        reference = poses[-1, :2] + np.array([np.cos(poses[-1, 2]), np.sin(poses[-1, 2])]) * 0.1
        np.testing.assert_allclose(reference, [0.4, 0.0], atol=1e-2)


class TestSeed:
    def test_standing_seed_has_no_new_steps(self, seeded):
        assert len(seeded.left_foot_print.get_steps()) == 1
        assert len(seeded.right_foot_print.get_steps()) == 1
        left = seeded.left_foot_print.get_steps()[0]
        right = seeded.right_foot_print.get_steps()[0]
        np.testing.assert_allclose(left.position, [0.0, config.NOMINAL_WIDTH / 2])
        np.testing.assert_allclose(right.position, [0.0, -config.NOMINAL_WIDTH / 2])

    def test_standing_seed_timelines(self, seeded):
        n = int(round(HORIZON / DT))
        left_in_contact, right_in_contact = seeded.get_feet_standing_periods()
        assert len(left_in_contact) == n
        assert all(left_in_contact) and all(right_in_contact)
        left_phases, right_phases = seeded.get_step_phases()
        assert set(left_phases) == {StepPhase.STANCE}
        assert seeded.get_merge_points() == []

    def test_standing_seed_dcm_between_feet(self, seeded):
        position = seeded.dcm_generator.get_dcm_position()
        assert position.shape == (int(round(HORIZON / DT)), 2)
        np.testing.assert_allclose(position, 0.0, atol=1e-12)

    def test_regenerate_requires_generate(self):
        g = UnicycleGenerator()
        g.apply_settings(make_settings())
        assert not g.regenerate(0.0, DT, HORIZON, True, np.zeros(2), 0.0)

    def test_generate_rejects_short_horizon(self, generator):
        assert not generator.generate(0.0, DT, DT)


class TestWalking:
    def test_steps_alternate_and_advance(self, seeded):
        assert walk_forward(seeded)
        steps = all_new_steps(seeded)
        assert len(steps) >= 3
        sides = [is_left for _, is_left in steps]
        assert all(a != b for a, b in zip(sides[:-1], sides[1:]))
        # 오른발부터 출발
        assert sides[0] is False
        impacts = [s.impact_time for s, _ in steps]
        assert all(a < b for a, b in zip(impacts[:-1], impacts[1:]))
        assert steps[-1][0].position[0] > 0.2

    def test_step_durations_within_limits(self, seeded):
        walk_forward(seeded)
        impacts = [0.0] + [s.impact_time for s, _ in all_new_steps(seeded)]
        durations = np.diff(impacts)
        assert np.all(durations >= config.MIN_STEP_DURATION - 1e-9)
        assert np.all(durations <= config.MAX_STEP_DURATION + 1e-9)

    def test_steps_feasible(self, seeded):
        walk_forward(seeded)
        left = seeded.left_foot_print.get_steps()
        right = seeded.right_foot_print.get_steps()
        for a, b in zip(left, right):
            assert np.linalg.norm(a.position - b.position) >= config.MIN_WIDTH - 1e-9

    def test_swing_phase_matches_contact(self, seeded):
        walk_forward(seeded)
        left_in_contact, right_in_contact = seeded.get_feet_standing_periods()
        left_phases, right_phases = seeded.get_step_phases()
        for in_contact, phase in zip(left_in_contact, left_phases):
            assert in_contact == (phase != StepPhase.SWING)
        # 두 발이 동시에 swing 하지 않음
        assert not any(not l and not r for l, r in zip(left_in_contact, right_in_contact))

    def test_fixed_foot_is_in_contact(self, seeded):
        walk_forward(seeded)
        left_in_contact, right_in_contact = seeded.get_feet_standing_periods()
        for used_left, l, r in zip(seeded.get_when_use_left_as_fixed(),
                                   left_in_contact, right_in_contact):
            assert (l if used_left else r)

    def test_merge_points_increasing(self, seeded):
        walk_forward(seeded)
        merge_points = seeded.get_merge_points()
        assert len(merge_points) > 0
        assert all(a < b for a, b in zip(merge_points[:-1], merge_points[1:]))
        assert 0 <= merge_points[0] and merge_points[-1] < int(round(HORIZON / DT))

    def test_com_height_raised_during_swing(self, seeded):
        walk_forward(seeded)
        height = seeded.com_height_generator.get_com_height_trajectory()
        assert height.max() == pytest.approx(config.COM_HEIGHT + config.COM_HEIGHT_DELTA,
                                             abs=1e-3)
        assert height.min() == pytest.approx(config.COM_HEIGHT)

    def test_regenerate_uses_measured_stance(self, seeded):
        measured = np.array([0.05, 0.12])
        planner = seeded.unicycle_planner
        planner.set_desired_direct_control(1.0, 0.0, 0.0)
        assert seeded.regenerate(0.0, DT, HORIZON, True, measured, 0.0)
        np.testing.assert_allclose(seeded.left_foot_print.get_steps()[0].position, measured)

    def test_dcm_initial_state_joined(self, seeded):
        state = DCMInitialState(np.array([0.01, 0.02]), np.array([0.0, 0.05]))
        assert seeded.dcm_generator.set_dcm_initial_state(state)
        walk_forward(seeded)
        np.testing.assert_allclose(seeded.dcm_generator.get_dcm_position()[0], [0.01, 0.02])
        np.testing.assert_allclose(seeded.dcm_generator.get_dcm_velocity()[0], [0.0, 0.05])

    def test_swing_bounded_after_pause(self, seeded):
        """느린 명령: 착지 간격이 길어도 swing은 max step duration 이내."""
        seeded.unicycle_planner.set_desired_direct_control(0.01, 0.0, 0.0)
        half_width = 0.5 * config.NOMINAL_WIDTH
        assert seeded.regenerate(0.0, DT, 12.0, True, np.array([0.0, half_width]), 0.0)

        impacts = [0.0] + [s.impact_time for s, _ in all_new_steps(seeded)]
        assert np.max(np.diff(impacts)) > config.MAX_STEP_DURATION

        for in_contact in seeded.get_feet_standing_periods():
            swing_runs = swing_run_lengths(in_contact)
            assert len(swing_runs) > 0
            for run in swing_runs:
                assert run * DT <= config.MAX_STEP_DURATION

        # 정지 구간의 높이는 명목값
        height = seeded.com_height_generator.get_com_height_trajectory()
        left_in_contact, right_in_contact = seeded.get_feet_standing_periods()
        both = np.array(left_in_contact) & np.array(right_in_contact)
        np.testing.assert_allclose(height[both], config.COM_HEIGHT)

    def test_pause_when_command_stops(self, seeded):
        walk_forward(seeded, forward=0.0)
        assert all_new_steps(seeded) == []


class TestDCMGenerator:
    def test_requires_omega(self):
        assert not DCMTrajectoryGenerator().generate(DT, [(0, 10, np.zeros(2))], 0.0)

    def test_single_segment_constant(self):
        dcm = DCMTrajectoryGenerator()
        dcm.set_omega(OMEGA)
        assert dcm.generate(DT, [(0, 50, np.array([0.1, -0.1]))], 0.0)
        np.testing.assert_allclose(dcm.get_dcm_position(), np.tile([0.1, -0.1], (50, 1)))
        np.testing.assert_allclose(dcm.get_dcm_velocity(), 0.0)

    def test_continuous_at_segment_boundaries(self):
        dcm = DCMTrajectoryGenerator()
        dcm.set_omega(OMEGA)
        segments = [(0, 80, np.array([0.0, 0.1])),
                    (80, 160, np.array([0.2, -0.1])),
                    (160, 300, np.array([0.3, 0.0]))]
        dcm.generate(DT, segments, 0.0)
        position = dcm.get_dcm_position()
        steps = np.linalg.norm(np.diff(position, axis=0), axis=1)
        assert steps.max() < 0.05
        np.testing.assert_allclose(position[-1], [0.3, 0.0])

    def test_velocity_is_omega_times_offset(self):
        dcm = DCMTrajectoryGenerator()
        dcm.set_omega(OMEGA)
        zmp = np.array([0.0, 0.1])
        dcm.generate(DT, [(0, 80, zmp), (80, 200, np.array([0.2, 0.0]))], 0.0)
        np.testing.assert_allclose(dcm.get_dcm_velocity()[:80],
                                   OMEGA * (dcm.get_dcm_position()[:80] - zmp))

    def test_final_point_between_feet(self):
        dcm = DCMTrajectoryGenerator()
        dcm.set_last_step_dcm_offset_percentage(0.5)
        final = dcm.final_dcm_point(Step(np.array([0.0, 0.1]), 0.0, 1.0), True,
                                    Step(np.array([0.0, -0.1]), 0.0, 0.5))
        np.testing.assert_allclose(final, [0.0, 0.0])

    def test_offset_range(self):
        assert not DCMTrajectoryGenerator().set_last_step_dcm_offset_percentage(1.5)


class TestCoMHeight:
    def test_settings_validation(self):
        g = CoMHeightTrajectoryGenerator()
        assert not g.set_com_height_settings(0.0, 0.0)
        assert not g.set_com_height_settings(0.7, 0.8)
        assert g.set_com_height_settings(0.7, 0.01)

    def test_profile(self):
        g = CoMHeightTrajectoryGenerator()
        g.set_com_height_settings(0.7, 0.02)
        times = np.arange(0.0, 2.0, DT)
        assert g.generate(times, [(0.5, 1.3)])
        height = g.get_com_height_trajectory()
        np.testing.assert_allclose(height[times < 0.5], 0.7)
        np.testing.assert_allclose(height[times >= 1.3], 0.7)
        assert height[np.argmin(np.abs(times - 0.9))] == pytest.approx(0.72)
        assert g.get_com_height_velocity()[np.argmin(np.abs(times - 0.5))] == \
            pytest.approx(0.0, abs=1e-9)
