"""Unicycle 기반 footstep + DCM + CoM 높이 궤적 생성 엔진

구성:
  - UnicyclePlanner: unicycle 모델 (x, y, θ) 적분 + footstep 탐색
      * PERSON_FOLLOWING: 기준점 p = (x, y) + R(θ)·d 가 목표 궤적을 추종
      * DIRECT: (전진, 횡, 회전) 명령을 최대 속도로 스케일
  - DCMTrajectoryGenerator: 고정발 위의 계단형 ZMP → 역방향 재귀 DCM
  - CoMHeightTrajectoryGenerator: swing 동안 CubicSpline(clamped)으로 높이 변화
  - UnicycleGenerator: 위 셋을 묶어 generate / regenerate 순서를 관리

시간은 초 단위 float, 샘플 그리드는 init_time + k·dt.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional, Tuple

import numpy as np
from scipy.integrate import solve_ivp
from scipy.interpolate import CubicSpline

logger = logging.getLogger(__name__)

_TIME_EPS = 1e-9


class ReplanError(Exception):
    """계획을 만들 수 없을 때 엔진 내부에서 발생."""


class UnicycleController(Enum):
    PERSON_FOLLOWING = "personFollowing"
    DIRECT = "direct"


class StepPhase(IntEnum):
    STANCE = 0
    SWING = 1
    SWITCH_IN = 2
    SWITCH_OUT = 3


class FirstDCMTrajectoryMode(Enum):
    FIFTH_ORDER_POLY = "FifthOrderPoly"


@dataclass
class Step:
    position: np.ndarray    # (2,)
    angle: float            # yaw (rad)
    impact_time: float      # 착지 시각 (s)

    def copy(self) -> "Step":
        return Step(np.array(self.position, dtype=float), float(self.angle),
                    float(self.impact_time))


class FootPrint:
    """한 발의 footstep 목록 (착지 시각 순)."""

    def __init__(self):
        self._steps: List[Step] = []

    def add_step(self, step: Step) -> bool:
        if self._steps and step.impact_time < self._steps[-1].impact_time:
            logger.error("[FootPrint.add_step] The impact time of the new step is "
                         "smaller than the last one.")
            return False
        self._steps.append(step.copy())
        return True

    def clear_steps(self):
        self._steps = []

    def get_steps(self) -> List[Step]:
        return [s.copy() for s in self._steps]

    def last_step_before(self, time: float) -> Optional[Step]:
        """time 이전(포함)에 착지한 마지막 step. 없으면 첫 step."""
        candidate = None
        for step in self._steps:
            if step.impact_time <= time + _TIME_EPS:
                candidate = step
        if candidate is None and self._steps:
            candidate = self._steps[0]
        return None if candidate is None else candidate.copy()


def _wrap_angle(a):
    return (np.asarray(a) + np.pi) % (2 * np.pi) - np.pi


def _rotation(theta: float) -> np.ndarray:
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s],
                     [s, c]])


# ====================================================================== #
# Unicycle planner
# ====================================================================== #
class UnicyclePlanner:
    """Unicycle 적분 + footstep 탐색."""

    def __init__(self):
        self._reference_distance = np.array([0.1, 0.0])
        self._gain = 10.0
        self._slow_when_turn_gain = 0.0
        self._slow_when_backward_factor = 1.0
        self._slow_when_sideways_factor = 1.0
        self._max_step_length = 0.05
        self._max_length_backward_factor = 1.0
        self._max_integrator_step = 0.01
        self._min_width = 0.03
        self._nominal_width = 0.04
        self._max_angle_variation = np.deg2rad(45.0)
        self._min_angle_variation = np.deg2rad(5.0)
        self._position_weight = 1.0
        self._time_weight = 2.5
        self._min_step_duration = 2.0
        self._max_step_duration = 8.0
        self._nominal_duration = 4.0
        self._planner_period = 0.01
        self._min_step_length = 0.005
        self._saturation_linear = 0.7
        self._saturation_angular = 0.7
        self._left_yaw_offset = 0.0
        self._right_yaw_offset = 0.0
        self._terminal_step = True
        self._start_with_left = False
        self._reset_starting_foot_if_still = False
        self._controller = UnicycleController.PERSON_FOLLOWING

        self._desired_trajectory: List[Tuple[float, np.ndarray]] = []
        self._direct_control = np.zeros(3)

    # ---------------------------------------------------------------- #
    # 설정
    # ---------------------------------------------------------------- #
    def set_desired_person_distance(self, x_offset: float, y_offset: float) -> bool:
        if x_offset <= 0:
            logger.error("[UnicyclePlanner.set_desired_person_distance] The x offset "
                         "must be strictly positive.")
            return False
        self._reference_distance = np.array([x_offset, y_offset], dtype=float)
        return True

    def set_person_following_controller_gain(self, gain: float) -> bool:
        if gain <= 0:
            logger.error("[UnicyclePlanner.set_person_following_controller_gain] "
                         "The gain must be strictly positive.")
            return False
        self._gain = gain
        return True

    def set_slow_when_turn_gain(self, gain: float) -> bool:
        if gain < 0:
            logger.error("[UnicyclePlanner.set_slow_when_turn_gain] The gain must be "
                         "non-negative.")
            return False
        self._slow_when_turn_gain = gain
        return True

    def set_slow_when_backward_factor(self, factor: float) -> bool:
        if factor < 0:
            logger.error("[UnicyclePlanner.set_slow_when_backward_factor] The factor "
                         "must be non-negative.")
            return False
        self._slow_when_backward_factor = factor
        return True

    def set_slow_when_sideways_factor(self, factor: float) -> bool:
        if factor < 0:
            logger.error("[UnicyclePlanner.set_slow_when_sideways_factor] The factor "
                         "must be non-negative.")
            return False
        self._slow_when_sideways_factor = factor
        return True

    def set_max_step_length(self, max_length: float, backward_multiplier: float) -> bool:
        if max_length <= 0 or backward_multiplier <= 0:
            logger.error("[UnicyclePlanner.set_max_step_length] The max step length "
                         "and the backward multiplier must be strictly positive.")
            return False
        self._max_step_length = max_length
        self._max_length_backward_factor = backward_multiplier
        return True

    def set_maximum_integrator_step_size(self, dt: float) -> bool:
        if dt <= 0:
            logger.error("[UnicyclePlanner.set_maximum_integrator_step_size] The "
                         "step size must be strictly positive.")
            return False
        self._max_integrator_step = dt
        return True

    def set_width_setting(self, min_width: float, nominal_width: float) -> bool:
        if min_width <= 0 or nominal_width < min_width:
            logger.error("[UnicyclePlanner.set_width_setting] Expected "
                         "0 < min width <= nominal width.")
            return False
        if nominal_width >= self._max_step_length:
            logger.error("[UnicyclePlanner.set_width_setting] The nominal width must "
                         "be smaller than the max step length.")
            return False
        self._min_width = min_width
        self._nominal_width = nominal_width
        return True

    def set_max_angle_variation(self, max_angle_deg: float) -> bool:
        if max_angle_deg <= 0:
            logger.error("[UnicyclePlanner.set_max_angle_variation] The max angle "
                         "variation must be strictly positive.")
            return False
        self._max_angle_variation = np.deg2rad(max_angle_deg)
        return True

    def set_minimum_angle_for_new_steps(self, min_angle_deg: float) -> bool:
        if min_angle_deg < 0:
            logger.error("[UnicyclePlanner.set_minimum_angle_for_new_steps] The "
                         "minimum angle must be non-negative.")
            return False
        self._min_angle_variation = np.deg2rad(min_angle_deg)
        return True

    def set_cost_weights(self, position_weight: float, time_weight: float) -> bool:
        if position_weight < 0 or time_weight < 0:
            logger.error("[UnicyclePlanner.set_cost_weights] The weights must be "
                         "non-negative.")
            return False
        self._position_weight = position_weight
        self._time_weight = time_weight
        return True

    def set_step_timings(self, min_duration: float, max_duration: float,
                         nominal_duration: float) -> bool:
        if not (0 < min_duration <= nominal_duration <= max_duration):
            logger.error("[UnicyclePlanner.set_step_timings] Expected "
                         "0 < min duration <= nominal duration <= max duration.")
            return False
        self._min_step_duration = min_duration
        self._max_step_duration = max_duration
        self._nominal_duration = nominal_duration
        return True

    def set_planner_period(self, period: float) -> bool:
        if period <= 0:
            logger.error("[UnicyclePlanner.set_planner_period] The period must be "
                         "strictly positive.")
            return False
        self._planner_period = period
        return True

    def set_minimum_step_length(self, min_length: float) -> bool:
        if min_length < 0 or min_length >= self._max_step_length:
            logger.error("[UnicyclePlanner.set_minimum_step_length] Expected "
                         "0 <= min step length < max step length.")
            return False
        self._min_step_length = min_length
        return True

    def set_saturations_conservative_factors(self, linear: float, angular: float) -> bool:
        if not (0 < linear <= 1 and 0 < angular <= 1):
            logger.error("[UnicyclePlanner.set_saturations_conservative_factors] The "
                         "factors must be in (0, 1].")
            return False
        self._saturation_linear = linear
        self._saturation_angular = angular
        return True

    def set_left_foot_yaw_offset_in_radians(self, offset: float):
        self._left_yaw_offset = offset

    def set_right_foot_yaw_offset_in_radians(self, offset: float):
        self._right_yaw_offset = offset

    def add_terminal_step(self, add: bool):
        self._terminal_step = add

    def start_with_left(self, start_with_left: bool):
        self._start_with_left = start_with_left

    def reset_starting_foot_if_still(self, reset: bool):
        self._reset_starting_foot_if_still = reset

    def set_unicycle_controller(self, controller) -> bool:
        if not isinstance(controller, UnicycleController):
            logger.error("[UnicyclePlanner.set_unicycle_controller] Unknown controller.")
            return False
        self._controller = controller
        return True

    @property
    def controller(self) -> UnicycleController:
        return self._controller

    @property
    def reference_distance(self) -> np.ndarray:
        return self._reference_distance

    @property
    def nominal_width(self) -> float:
        return self._nominal_width

    @property
    def nominal_duration(self) -> float:
        return self._nominal_duration

    @property
    def is_starting_with_left(self) -> bool:
        return self._start_with_left

    @property
    def resets_starting_foot_if_still(self) -> bool:
        return self._reset_starting_foot_if_still

    def yaw_offset(self, left: bool) -> float:
        return self._left_yaw_offset if left else self._right_yaw_offset

    # ---------------------------------------------------------------- #
    # 목표 입력
    # ---------------------------------------------------------------- #
    def clear_person_following_desired_trajectory(self):
        self._desired_trajectory = []

    def add_person_following_desired_trajectory_point(self, time: float, point) -> bool:
        point = np.asarray(point, dtype=float).reshape(-1)
        if time < 0 or point.shape[0] != 2 or not np.all(np.isfinite(point)):
            logger.error("[UnicyclePlanner.add_person_following_desired_trajectory_point] "
                         "Invalid desired point.")
            return False
        self._desired_trajectory.append((float(time), point.copy()))
        self._desired_trajectory.sort(key=lambda tp: tp[0])
        return True

    def set_desired_direct_control(self, forward: float, lateral: float,
                                   angular: float) -> bool:
        command = np.array([forward, lateral, angular], dtype=float)
        if not np.all(np.isfinite(command)):
            logger.error("[UnicyclePlanner.set_desired_direct_control] Invalid command.")
            return False
        self._direct_control = command
        return True

    # ---------------------------------------------------------------- #
    # Unicycle 적분
    # ---------------------------------------------------------------- #
    def _max_velocities(self) -> Tuple[float, float]:
        forward_reach = np.sqrt(max(self._max_step_length ** 2 - self._nominal_width ** 2, 0.0))
        if forward_reach <= 0:
            forward_reach = self._max_step_length
        v_max = self._saturation_linear * forward_reach / self._nominal_duration
        w_max = self._saturation_angular * self._max_angle_variation / self._nominal_duration
        return v_max, w_max

    def _desired_point(self, t: float, current: np.ndarray):
        """구간 선형 목표점과 그 속도. 범위 밖에서는 끝점 유지."""
        if not self._desired_trajectory:
            return current, np.zeros(2)
        times = np.array([tp[0] for tp in self._desired_trajectory])
        points = np.array([tp[1] for tp in self._desired_trajectory])
        desired = np.array([np.interp(t, times, points[:, 0]),
                            np.interp(t, times, points[:, 1])])
        velocity = np.zeros(2)
        if len(times) > 1 and times[0] <= t < times[-1]:
            i = np.searchsorted(times, t, side="right") - 1
            span = times[i + 1] - times[i]
            if span > 0:
                velocity = (points[i + 1] - points[i]) / span
        return desired, velocity

    def _control(self, t: float, state: np.ndarray) -> Tuple[float, float, float]:
        """(전진 속도, 횡 속도, 각속도)"""
        theta = state[2]
        R = _rotation(theta)
        v_max, w_max = self._max_velocities()

        if self._controller == UnicycleController.PERSON_FOLLOWING:
            d = self._reference_distance
            p = state[:2] + R @ d
            desired, desired_velocity = self._desired_point(t, p)
            error = p - desired
            r = R.T @ (desired_velocity - self._gain * error)
            # M = [[1, -dy], [0, dx]] 의 역행렬
            v = r[0] + d[1] / d[0] * r[1]
            w = r[1] / d[0]
            v_lat = 0.0
        else:
            forward, lateral, angular = np.clip(self._direct_control, -1.0, 1.0)
            v = forward * v_max
            v_lat = lateral * v_max * self._slow_when_sideways_factor
            w = angular * w_max

        v = float(np.clip(v, -v_max, v_max))
        w = float(np.clip(w, -w_max, w_max))
        if v < 0:
            v *= self._slow_when_backward_factor
        v /= 1.0 + self._slow_when_turn_gain * abs(w)
        return v, v_lat, w

    def integrate(self, times: np.ndarray, initial_pose) -> np.ndarray:
        """샘플 그리드 위 unicycle pose (N, 3) = [x, y, θ]."""

        def rhs(t, state):
            v, v_lat, w = self._control(t, state)
            c, s = np.cos(state[2]), np.sin(state[2])
            return [c * v - s * v_lat, s * v + c * v_lat, w]

        initial_pose = np.asarray(initial_pose, dtype=float)
        if len(times) < 2:
            return initial_pose.reshape(1, 3)

        sol = solve_ivp(rhs, (times[0], times[-1]), initial_pose, method="RK45",
                        t_eval=times, max_step=self._max_integrator_step,
                        rtol=1e-6, atol=1e-9)
        if not sol.success:
            raise ReplanError(f"Unicycle integration failed: {sol.message}")
        return sol.y.T

    # ---------------------------------------------------------------- #
    # Footstep 탐색
    # ---------------------------------------------------------------- #
    def _nominal_feet(self, poses: np.ndarray, left: bool):
        """unicycle pose → 해당 발의 명목 위치 (N, 2), yaw (N,)."""
        side = 0.5 * self._nominal_width if left else -0.5 * self._nominal_width
        theta = poses[:, 2]
        position = poses[:, :2] + np.stack([-np.sin(theta) * side,
                                            np.cos(theta) * side], axis=1)
        return position, theta + self.yaw_offset(left)

    def _needs_step(self, positions, yaws, current: Step) -> np.ndarray:
        displacement = np.linalg.norm(positions - current.position, axis=1)
        rotation = np.abs(_wrap_angle(yaws - current.angle))
        return (displacement >= self._min_step_length) | (rotation >= self._min_angle_variation)

    def _feasibility(self, positions, yaws, stance: Step, left: bool) -> np.ndarray:
        rel = (positions - stance.position) @ _rotation(stance.angle)
        side = 1.0 if left else -1.0
        max_length = np.where(rel[:, 0] < 0,
                              self._max_step_length * self._max_length_backward_factor,
                              self._max_step_length)
        length_ok = np.linalg.norm(rel, axis=1) <= max_length + 1e-12
        width_ok = side * rel[:, 1] >= self._min_width - 1e-12
        angle_ok = np.abs(_wrap_angle(yaws - stance.angle)) <= self._max_angle_variation + 1e-12
        return length_ok & width_ok & angle_ok

    def _saturate_step(self, position, yaw, stance: Step, left: bool) -> Tuple[np.ndarray, float]:
        """실행 불가능한 후보를 제약 경계로 투영."""
        R = _rotation(stance.angle)
        rel = R.T @ (position - stance.position)
        side = 1.0 if left else -1.0
        max_length = self._max_step_length * (
            self._max_length_backward_factor if rel[0] < 0 else 1.0)
        rel[1] = side * max(side * rel[1], self._min_width)
        if np.linalg.norm(rel) > max_length:
            lateral = side * min(abs(rel[1]), max_length)
            forward = np.sqrt(max(max_length ** 2 - lateral ** 2, 0.0))
            rel = np.array([np.copysign(forward, rel[0]), lateral])
        delta = float(np.clip(_wrap_angle(yaw - stance.angle),
                              -self._max_angle_variation, self._max_angle_variation))
        return stance.position + R @ rel, stance.angle + delta

    def compute_footsteps(self, times: np.ndarray, poses: np.ndarray,
                          left_anchor: Step, right_anchor: Step,
                          swing_left: bool, pause_active: bool):
        """unicycle 궤적 → 좌우 교대 footstep.

        후보 착지 시각은 이전 착지로부터 [min, max] step duration 범위의 샘플.
        비용 = position_weight·(최종 목표까지 거리)² + time_weight·(duration 편차)².

        Args:
            times: (N,) 샘플 시각
            poses: (N, 3) unicycle pose
            left_anchor / right_anchor: 현재 발 위치 (계획 시작 시점)
            swing_left: 첫 swing 발이 왼발인지
            pause_active: 정지 상태에서 제자리 걸음 대신 멈출지

        Returns:
            (left_steps, right_steps), 각각 anchor로 시작
        """
        n = len(times)
        t0 = times[0]
        dt = times[1] - times[0] if n > 1 else self._planner_period
        steps = {True: [left_anchor.copy()], False: [right_anchor.copy()]}

        nominal = {True: self._nominal_feet(poses, True),
                   False: self._nominal_feet(poses, False)}

        t_ref = max(t0, left_anchor.impact_time, right_anchor.impact_time)
        left = swing_left
        added = 0

        while True:
            k_min = int(np.ceil((t_ref + self._min_step_duration - t0) / dt - _TIME_EPS))
            k_max = int(np.floor((t_ref + self._max_step_duration - t0) / dt + _TIME_EPS))
            if k_min > n - 1:
                break
            k_max = min(k_max, n - 1)

            swing_current = steps[left][-1]
            stance = steps[not left][-1]
            positions, yaws = nominal[left]

            candidates = np.arange(k_min, k_max + 1)
            needed = self._needs_step(positions[candidates], yaws[candidates], swing_current)

            if not needed.any():
                later = np.arange(k_max + 1, n)
                later_needed = later[self._needs_step(positions[later], yaws[later],
                                                      swing_current)]
                if pause_active:
                    if len(later_needed) == 0:
                        if self._terminal_step and added > 0:
                            k = self._closest_candidate(times, t_ref + self._nominal_duration,
                                                        k_min, k_max)
                            if self._misaligned(positions[k], yaws[k], swing_current):
                                steps[left].append(Step(positions[k].copy(), float(yaws[k]),
                                                        float(times[k])))
                        break
                    t_ref = max(t_ref, times[later_needed[0]] - self._nominal_duration)
                    continue
                # 제자리 걸음
                k = self._closest_candidate(times, t_ref + self._nominal_duration,
                                            k_min, k_max)
                new_position, new_yaw = positions[k].copy(), float(yaws[k])
            else:
                candidates = candidates[needed]
                feasible = self._feasibility(positions[candidates], yaws[candidates],
                                             stance, left)
                if feasible.any():
                    candidates = candidates[feasible]
                    target = positions[-1]
                    durations = times[candidates] - t_ref
                    cost = (self._position_weight
                            * np.sum((positions[candidates] - target) ** 2, axis=1)
                            + self._time_weight
                            * (durations - self._nominal_duration) ** 2)
                    k = int(candidates[np.argmin(cost)])
                    new_position, new_yaw = positions[k].copy(), float(yaws[k])
                else:
                    k = int(candidates[0])
                    new_position, new_yaw = self._saturate_step(positions[k], yaws[k],
                                                                stance, left)

            steps[left].append(Step(new_position, new_yaw, float(times[k])))
            added += 1
            t_ref = float(times[k])
            left = not left

        return steps[True], steps[False]

    @staticmethod
    def _closest_candidate(times, t, k_min, k_max) -> int:
        k = int(np.argmin(np.abs(times[k_min:k_max + 1] - t)))
        return k_min + k

    @staticmethod
    def _misaligned(position, yaw, current: Step) -> bool:
        return (np.linalg.norm(position - current.position) > 1e-4
                or abs(float(_wrap_angle(yaw - current.angle))) > 1e-4)


# ====================================================================== #
# DCM trajectory
# ====================================================================== #
@dataclass
class DCMInitialState:
    initial_position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    initial_velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))


class DCMTrajectoryGenerator:
    """계단형 ZMP 위의 DCM 궤적.

    각 ZMP 구간 j에서 xi(t) = r_j + (xi_end_j - r_j)·exp(ω(t - t_end_j)).
    xi_end_j는 마지막 구간부터 역방향으로 계산.
    """

    def __init__(self):
        self.omega = None
        self.left_zmp_delta = np.zeros(2)
        self.right_zmp_delta = np.zeros(2)
        self.first_trajectory_mode = FirstDCMTrajectoryMode.FIFTH_ORDER_POLY
        self.last_step_dcm_offset = 0.5
        self._initial_state: Optional[DCMInitialState] = None
        self._position = np.zeros((0, 2))
        self._velocity = np.zeros((0, 2))

    def set_omega(self, omega: float) -> bool:
        if not omega > 0:
            logger.error("[DCMTrajectoryGenerator.set_omega] Omega must be strictly "
                         "positive.")
            return False
        self.omega = omega
        return True

    def set_foot_origin_offset(self, left_delta, right_delta):
        self.left_zmp_delta = np.asarray(left_delta, dtype=float).reshape(2)
        self.right_zmp_delta = np.asarray(right_delta, dtype=float).reshape(2)

    def set_first_dcm_trajectory_mode(self, mode: FirstDCMTrajectoryMode):
        self.first_trajectory_mode = mode

    def set_last_step_dcm_offset_percentage(self, offset: float) -> bool:
        if not 0 <= offset <= 1:
            logger.error("[DCMTrajectoryGenerator.set_last_step_dcm_offset_percentage] "
                         "The offset must be in [0, 1].")
            return False
        self.last_step_dcm_offset = offset
        return True

    def set_dcm_initial_state(self, state: DCMInitialState) -> bool:
        position = np.asarray(state.initial_position, dtype=float).reshape(-1)
        velocity = np.asarray(state.initial_velocity, dtype=float).reshape(-1)
        if position.shape[0] != 2 or velocity.shape[0] != 2 \
                or not np.all(np.isfinite(position)) or not np.all(np.isfinite(velocity)):
            logger.error("[DCMTrajectoryGenerator.set_dcm_initial_state] Invalid initial "
                         "state.")
            return False
        self._initial_state = DCMInitialState(position.copy(), velocity.copy())
        return True

    def clear_initial_state(self):
        self._initial_state = None

    def zmp_point(self, step: Step, left: bool) -> np.ndarray:
        delta = self.left_zmp_delta if left else self.right_zmp_delta
        return step.position + _rotation(step.angle) @ delta

    def final_dcm_point(self, last_step: Step, last_left: bool, other_step: Step) -> np.ndarray:
        last = self.zmp_point(last_step, last_left)
        other = self.zmp_point(other_step, not last_left)
        return last + self.last_step_dcm_offset * (other - last)

    def generate(self, dt: float, segments, blend_time: float) -> bool:
        """segments: [(k_begin, k_end, zmp (2,)), ...] 연속 구간.

        Args:
            dt: 샘플 주기 (s)
            segments: 마지막 구간의 zmp가 최종 DCM 위치
            blend_time: 초기 상태를 계획에 잇는 5차 다항식의 최대 길이 (s)
        """
        if self.omega is None:
            logger.error("[DCMTrajectoryGenerator.generate] Omega is not set.")
            return False
        if not segments:
            logger.error("[DCMTrajectoryGenerator.generate] Empty ZMP reference.")
            return False

        n = segments[-1][1]
        omega = self.omega
        position = np.zeros((n, 2))
        velocity = np.zeros((n, 2))

        # DCM end-of-segment (역방향 계산)
        xi_end = np.zeros((len(segments), 2))
        xi_end[-1] = segments[-1][2]
        for j in range(len(segments) - 2, -1, -1):
            k_begin, k_end, zmp = segments[j + 1]
            exp_neg = np.exp(-omega * (k_end - k_begin) * dt)
            xi_end[j] = zmp + (xi_end[j + 1] - zmp) * exp_neg

        # DCM 순방향 생성
        for j, (k_begin, k_end, zmp) in enumerate(segments):
            t_remaining = (k_end - np.arange(k_begin, k_end)) * dt
            xi = zmp + np.outer(np.exp(-omega * t_remaining), xi_end[j] - zmp)
            position[k_begin:k_end] = xi
            velocity[k_begin:k_end] = omega * (xi - zmp)

        if self._initial_state is not None:
            k_blend = min(segments[0][1] - segments[0][0], int(round(blend_time / dt)), n - 1)
            if k_blend > 0:
                self._blend_initial_state(position, velocity, k_blend, dt)

        self._position = position
        self._velocity = velocity
        return True

    def _blend_initial_state(self, position, velocity, k_blend: int, dt: float):
        """초기 상태 (p0, v0, a0=0) → 계획 (p1, v1, a1=ω·v1) 5차 다항식."""
        T = k_blend * dt
        p1, v1 = position[k_blend], velocity[k_blend]
        a1 = self.omega * v1
        M = np.array([
            [1, 0, 0, 0, 0, 0],
            [0, 1, 0, 0, 0, 0],
            [0, 0, 2, 0, 0, 0],
            [1, T, T ** 2, T ** 3, T ** 4, T ** 5],
            [0, 1, 2 * T, 3 * T ** 2, 4 * T ** 3, 5 * T ** 4],
            [0, 0, 2, 6 * T, 12 * T ** 2, 20 * T ** 3],
        ])
        rhs = np.vstack([self._initial_state.initial_position,
                         self._initial_state.initial_velocity,
                         np.zeros(2), p1, v1, a1])
        c = np.linalg.solve(M, rhs)

        s = np.arange(k_blend) * dt
        powers = np.vander(s, 6, increasing=True)
        d_powers = np.zeros_like(powers)
        d_powers[:, 1:] = powers[:, :-1] * np.arange(1, 6)
        position[:k_blend] = powers @ c
        velocity[:k_blend] = d_powers @ c
        # s=0 은 초기 상태와 정확히 일치
        position[0] = self._initial_state.initial_position
        velocity[0] = self._initial_state.initial_velocity

    def get_dcm_position(self) -> np.ndarray:
        return self._position

    def get_dcm_velocity(self) -> np.ndarray:
        return self._velocity


# ====================================================================== #
# CoM height trajectory
# ====================================================================== #
class CoMHeightTrajectoryGenerator:
    """명목 높이 + swing 중 delta만큼 상승 (CubicSpline, clamped)."""

    def __init__(self):
        self.com_height = None
        self.com_height_delta = 0.0
        self._position = np.zeros(0)
        self._velocity = np.zeros(0)
        self._acceleration = np.zeros(0)

    def set_com_height_settings(self, com_height: float, com_height_delta: float) -> bool:
        if com_height <= 0:
            logger.error("[CoMHeightTrajectoryGenerator.set_com_height_settings] The CoM "
                         "height must be strictly positive.")
            return False
        if com_height_delta < 0 or com_height_delta >= com_height:
            logger.error("[CoMHeightTrajectoryGenerator.set_com_height_settings] Expected "
                         "0 <= delta < CoM height.")
            return False
        self.com_height = com_height
        self.com_height_delta = com_height_delta
        return True

    def generate(self, times: np.ndarray, swings) -> bool:
        """swings: [(start, end), ...] 초 단위 swing 구간."""
        if self.com_height is None:
            logger.error("[CoMHeightTrajectoryGenerator.generate] Height not set.")
            return False

        h, dh = self.com_height, self.com_height_delta
        self._position = np.full(len(times), h)
        self._velocity = np.zeros(len(times))
        self._acceleration = np.zeros(len(times))

        for start, end in swings:
            if end - start <= _TIME_EPS:
                continue
            mask = (times >= start) & (times < end)
            if not mask.any():
                continue
            spline = CubicSpline([start, 0.5 * (start + end), end], [h, h + dh, h],
                                 bc_type="clamped")
            t = times[mask]
            self._position[mask] = spline(t)
            self._velocity[mask] = spline(t, 1)
            self._acceleration[mask] = spline(t, 2)
        return True

    def get_com_height_trajectory(self) -> np.ndarray:
        return self._position

    def get_com_height_velocity(self) -> np.ndarray:
        return self._velocity

    def get_com_height_acceleration_profile(self) -> np.ndarray:
        return self._acceleration


# ====================================================================== #
# Generator (adapter)
# ====================================================================== #
@dataclass
class UnicycleGeneratorSettings:
    """apply_settings()로 한 번에 적용되는 엔진 설정."""
    reference_point_distance: np.ndarray
    unicycle_gain: float
    slow_when_turning_gain: float
    slow_when_backward_factor: float
    slow_when_sideways_factor: float
    max_step_length: float
    max_length_backward_factor: float
    dt: float
    min_width: float
    nominal_width: float
    max_angle_variation: float
    min_angle_variation: float
    position_weight: float
    time_weight: float
    min_step_duration: float
    max_step_duration: float
    nominal_duration: float
    min_step_length: float
    saturation_factors: np.ndarray
    left_yaw_delta_in_rad: float
    right_yaw_delta_in_rad: float
    terminal_step: bool
    start_with_left: bool
    start_with_same_foot: bool
    controller: UnicycleController
    switch_over_swing_ratio: float
    last_step_switch_time: float
    merge_point_ratios: np.ndarray
    is_pause_active: bool
    com_height: float
    com_height_delta: float
    left_zmp_delta: np.ndarray
    right_zmp_delta: np.ndarray
    omega: float
    last_step_dcm_offset: float


class UnicycleGenerator:
    """unicycle planner + DCM/CoM 높이 생성기 순서 관리.

    regenerate()는 generate()가 한 번 성공한 뒤에만 호출할 수 있다.
    """

    def __init__(self):
        self._unicycle_planner = UnicyclePlanner()
        self._dcm_generator = DCMTrajectoryGenerator()
        self._com_height_generator = CoMHeightTrajectoryGenerator()
        self._left_foot_print = FootPrint()
        self._right_foot_print = FootPrint()

        self._switch_over_swing_ratio = 1.0
        self._terminal_half_switch_time = 0.5
        self._pause_max_step_duration = 8.0
        self._pause_nominal_duration = 4.0
        self._merge_point_ratios = np.array([0.5, 0.5])
        self._pause_active = True

        self._generated = False
        self._still = True
        self._init_time = 0.0
        self._dt = 0.0
        self._left_phases: List[StepPhase] = []
        self._right_phases: List[StepPhase] = []
        self._left_in_contact: List[bool] = []
        self._right_in_contact: List[bool] = []
        self._used_left_as_fixed: List[bool] = []
        self._merge_points: List[int] = []

    # ---------------------------------------------------------------- #
    # 하위 객체
    # ---------------------------------------------------------------- #
    @property
    def unicycle_planner(self) -> UnicyclePlanner:
        return self._unicycle_planner

    @property
    def dcm_generator(self) -> DCMTrajectoryGenerator:
        return self._dcm_generator

    @property
    def com_height_generator(self) -> CoMHeightTrajectoryGenerator:
        return self._com_height_generator

    @property
    def left_foot_print(self) -> FootPrint:
        return self._left_foot_print

    @property
    def right_foot_print(self) -> FootPrint:
        return self._right_foot_print

    # ---------------------------------------------------------------- #
    # 설정
    # ---------------------------------------------------------------- #
    def set_switch_over_swing_ratio(self, ratio: float) -> bool:
        if ratio <= 0:
            logger.error("[UnicycleGenerator.set_switch_over_swing_ratio] The ratio must "
                         "be strictly positive.")
            return False
        self._switch_over_swing_ratio = ratio
        return True

    def set_terminal_half_switch_time(self, time: float) -> bool:
        if time <= 0:
            logger.error("[UnicycleGenerator.set_terminal_half_switch_time] The time must "
                         "be strictly positive.")
            return False
        self._terminal_half_switch_time = time
        return True

    def set_pause_conditions(self, max_step_duration: float, nominal_duration: float) -> bool:
        if not 0 < nominal_duration <= max_step_duration:
            logger.error("[UnicycleGenerator.set_pause_conditions] Expected "
                         "0 < nominal duration <= max step duration.")
            return False
        self._pause_max_step_duration = max_step_duration
        self._pause_nominal_duration = nominal_duration
        return True

    def set_merge_point_ratio(self, initial_ratio: float, final_ratio: float) -> bool:
        if not (0 <= initial_ratio <= 1 and 0 <= final_ratio <= 1):
            logger.error("[UnicycleGenerator.set_merge_point_ratio] The ratios must be in "
                         "[0, 1].")
            return False
        self._merge_point_ratios = np.array([initial_ratio, final_ratio])
        return True

    def set_pause_active(self, active: bool):
        self._pause_active = active

    def apply_settings(self, s: UnicycleGeneratorSettings) -> bool:
        """설정을 순서대로 적용. 첫 실패에서 멈추고 이미 적용된 값은 유지.

        반환값이 없는 설정(yaw offset 등)은 실패 여부와 관계없이 적용된다.
        """
        planner = self._unicycle_planner
        dcm = self._dcm_generator

        # (이름, 호출, 실패 가능 여부)
        calls = [
            ("setDesiredPersonDistance",
             lambda: planner.set_desired_person_distance(*s.reference_point_distance), True),
            ("setPersonFollowingControllerGain",
             lambda: planner.set_person_following_controller_gain(s.unicycle_gain), True),
            ("setSlowWhenTurnGain",
             lambda: planner.set_slow_when_turn_gain(s.slow_when_turning_gain), True),
            ("setSlowWhenBackwardFactor",
             lambda: planner.set_slow_when_backward_factor(s.slow_when_backward_factor), True),
            ("setSlowWhenSidewaysFactor",
             lambda: planner.set_slow_when_sideways_factor(s.slow_when_sideways_factor), True),
            ("setMaxStepLength",
             lambda: planner.set_max_step_length(s.max_step_length,
                                                 s.max_length_backward_factor), True),
            ("setMaximumIntegratorStepSize",
             lambda: planner.set_maximum_integrator_step_size(s.dt), True),
            ("setWidthSetting",
             lambda: planner.set_width_setting(s.min_width, s.nominal_width), True),
            ("setMaxAngleVariation",
             lambda: planner.set_max_angle_variation(s.max_angle_variation), True),
            ("setMinimumAngleForNewSteps",
             lambda: planner.set_minimum_angle_for_new_steps(s.min_angle_variation), True),
            ("setCostWeights",
             lambda: planner.set_cost_weights(s.position_weight, s.time_weight), True),
            ("setStepTimings",
             lambda: planner.set_step_timings(s.min_step_duration, s.max_step_duration,
                                              s.nominal_duration), True),
            ("setPlannerPeriod",
             lambda: planner.set_planner_period(s.dt), True),
            ("setMinimumStepLength",
             lambda: planner.set_minimum_step_length(s.min_step_length), True),
            ("setSaturationsConservativeFactors",
             lambda: planner.set_saturations_conservative_factors(*s.saturation_factors), True),
            ("setLeftFootYawOffsetInRadians",
             lambda: planner.set_left_foot_yaw_offset_in_radians(s.left_yaw_delta_in_rad), False),
            ("setRightFootYawOffsetInRadians",
             lambda: planner.set_right_foot_yaw_offset_in_radians(s.right_yaw_delta_in_rad), False),
            ("addTerminalStep",
             lambda: planner.add_terminal_step(s.terminal_step), False),
            ("startWithLeft",
             lambda: planner.start_with_left(s.start_with_left), False),
            ("resetStartingFootIfStill",
             lambda: planner.reset_starting_foot_if_still(s.start_with_same_foot), False),
            ("setUnicycleController",
             lambda: planner.set_unicycle_controller(s.controller), True),
            ("setSwitchOverSwingRatio",
             lambda: self.set_switch_over_swing_ratio(s.switch_over_swing_ratio), True),
            ("setTerminalHalfSwitchTime",
             lambda: self.set_terminal_half_switch_time(s.last_step_switch_time), True),
            ("setPauseConditions",
             lambda: self.set_pause_conditions(s.max_step_duration, s.nominal_duration), True),
            ("setMergePointRatio",
             lambda: self.set_merge_point_ratio(*s.merge_point_ratios), True),
            ("setPauseActive",
             lambda: self.set_pause_active(s.is_pause_active), False),
            ("setCoMHeightSettings",
             lambda: self._com_height_generator.set_com_height_settings(
                 s.com_height, s.com_height_delta), True),
            ("setFootOriginOffset",
             lambda: dcm.set_foot_origin_offset(s.left_zmp_delta, s.right_zmp_delta), False),
            ("setOmega",
             lambda: dcm.set_omega(s.omega), True),
            ("setFirstDCMTrajectoryMode",
             lambda: dcm.set_first_dcm_trajectory_mode(
                 FirstDCMTrajectoryMode.FIFTH_ORDER_POLY), False),
            ("setLastStepDCMOffsetPercentage",
             lambda: dcm.set_last_step_dcm_offset_percentage(s.last_step_dcm_offset), True),
        ]

        ok = True
        for name, call, fallible in calls:
            if not fallible:
                call()
            elif ok:
                ok = call()
                if not ok:
                    logger.error(f"[UnicycleGenerator.apply_settings] Failed to apply "
                                 f"'{name}'.")
        return ok

    # ---------------------------------------------------------------- #
    # 생성
    # ---------------------------------------------------------------- #
    def seed_first_trajectory(self, init_time: float, dt: float, end_time: float) -> bool:
        """정지 목표점으로 첫 궤적 생성 (처음에는 로봇이 서 있어야 함)."""
        planner = self._unicycle_planner
        planner.clear_person_following_desired_trajectory()
        planner.set_desired_direct_control(0.0, 0.0, 0.0)
        self._left_foot_print.clear_steps()
        self._right_foot_print.clear_steps()

        point = planner.reference_distance.copy()
        if not planner.add_person_following_desired_trajectory_point(init_time, point):
            logger.error("[UnicycleGenerator.seed_first_trajectory] Error while setting "
                         "the initial point.")
            return False
        if not planner.add_person_following_desired_trajectory_point(end_time, point):
            logger.error("[UnicycleGenerator.seed_first_trajectory] Error while setting "
                         "the final point.")
            return False

        if not self.generate(init_time, dt, end_time):
            logger.error("[UnicycleGenerator.seed_first_trajectory] Error while computing "
                         "the first trajectories.")
            return False
        return True

    def generate(self, init_time: float, dt: float, end_time: float) -> bool:
        """원점에서 시작하는 첫 계획. 양발은 명목 폭으로 나란히 선다."""
        planner = self._unicycle_planner
        half_width = 0.5 * planner.nominal_width
        left_anchor = Step(np.array([0.0, half_width]), planner.yaw_offset(True), init_time)
        right_anchor = Step(np.array([0.0, -half_width]), planner.yaw_offset(False), init_time)

        self._dcm_generator.clear_initial_state()
        try:
            self._compute(init_time, dt, end_time, left_anchor, right_anchor,
                          swing_left=planner.is_starting_with_left,
                          initial_pose=np.zeros(3))
        except ReplanError as e:
            logger.error(f"[UnicycleGenerator.generate] {e}")
            return False

        self._generated = True
        return True

    def regenerate(self, init_time: float, dt: float, end_time: float, correct_left: bool,
                   measured_position, measured_angle: float) -> bool:
        """지지발 측정값으로 보정한 뒤 init_time부터 다시 계획."""
        if not self._generated:
            logger.error("[UnicycleGenerator.regenerate] The first trajectory has not been "
                         "generated yet.")
            return False

        planner = self._unicycle_planner
        measured_position = np.asarray(measured_position, dtype=float).reshape(2)

        left_anchor = self._left_foot_print.last_step_before(init_time)
        right_anchor = self._right_foot_print.last_step_before(init_time)
        corrected = left_anchor if correct_left else right_anchor
        corrected.position = measured_position.copy()
        corrected.angle = float(measured_angle)

        # 측정된 지지발 → unicycle pose
        theta = measured_angle - planner.yaw_offset(correct_left)
        offset = np.array([0.0, -0.5 * planner.nominal_width if correct_left
                           else 0.5 * planner.nominal_width])
        initial_position = _rotation(theta) @ offset + measured_position
        initial_pose = np.array([initial_position[0], initial_position[1], theta])

        swing_left = not correct_left
        if planner.resets_starting_foot_if_still and self._still:
            swing_left = planner.is_starting_with_left

        try:
            self._compute(init_time, dt, end_time, left_anchor, right_anchor,
                          swing_left=swing_left, initial_pose=initial_pose)
        except ReplanError as e:
            logger.error(f"[UnicycleGenerator.regenerate] {e}")
            return False
        finally:
            self._dcm_generator.clear_initial_state()
        return True

    def _compute(self, init_time, dt, end_time, left_anchor: Step, right_anchor: Step,
                 swing_left: bool, initial_pose: np.ndarray):
        if dt <= 0:
            raise ReplanError(f"Invalid sampling time {dt}.")
        n = int(round((end_time - init_time) / dt))
        if n < 2:
            raise ReplanError(f"The end time ({end_time}) must be greater than the "
                              f"init time ({init_time}) by at least two samples.")

        times = init_time + dt * np.arange(n)
        poses = self._unicycle_planner.integrate(times, initial_pose)
        left_steps, right_steps = self._unicycle_planner.compute_footsteps(
            times, poses, left_anchor, right_anchor, swing_left, self._pause_active)

        swings = self._swing_intervals(init_time, left_steps, right_steps)
        owner, next_owner = self._swing_owners(times, swings)

        left_phases, right_phases = [], []
        used_left_as_fixed = []
        last_owner = swings[-1][2] if swings else None
        for k in range(n):
            left_phases.append(self._phase(owner[k], next_owner[k], left=True))
            right_phases.append(self._phase(owner[k], next_owner[k], left=False))
            if owner[k] != -1:
                used_left_as_fixed.append(owner[k] == 1)
            elif next_owner[k] != -1:
                used_left_as_fixed.append(next_owner[k] == 1)
            elif last_owner is not None:
                used_left_as_fixed.append(last_owner)
            else:
                used_left_as_fixed.append(not swing_left)

        segments = self._zmp_segments(times, owner, next_owner, used_left_as_fixed,
                                      left_steps, right_steps)
        if not self._dcm_generator.generate(dt, segments, self._pause_nominal_duration):
            raise ReplanError("Failed to generate the DCM trajectory.")
        if not self._com_height_generator.generate(times, [(s, e) for s, e, _ in swings]):
            raise ReplanError("Failed to generate the CoM height trajectory.")

        self._left_foot_print.clear_steps()
        self._right_foot_print.clear_steps()
        for step in left_steps:
            self._left_foot_print.add_step(step)
        for step in right_steps:
            self._right_foot_print.add_step(step)

        self._init_time = init_time
        self._dt = dt
        self._left_phases = left_phases
        self._right_phases = right_phases
        self._left_in_contact = [p != StepPhase.SWING for p in left_phases]
        self._right_in_contact = [p != StepPhase.SWING for p in right_phases]
        self._used_left_as_fixed = used_left_as_fixed
        self._merge_points = self._compute_merge_points(times, swings, owner, next_owner)
        self._still = len(swings) == 0

    def _swing_intervals(self, init_time, left_steps, right_steps):
        """새 step 마다 (swing 시작, 착지, 왼발 여부). 착지 시각 순.

        이전 착지와의 간격이 pause 최대 duration보다 길면 그 사이는 double
        support 정지이고, swing은 명목 duration 기준으로 착지 직전에 둔다.
        """
        new_steps = [(s, True) for s in left_steps[1:]] + [(s, False) for s in right_steps[1:]]
        new_steps.sort(key=lambda item: item[0].impact_time)
        t_ref = max(init_time, left_steps[0].impact_time, right_steps[0].impact_time)
        swings = []
        for step, is_left in new_steps:
            duration = step.impact_time - t_ref
            if duration > self._pause_max_step_duration + _TIME_EPS:
                duration = self._pause_nominal_duration
            swing_duration = duration / (1.0 + self._switch_over_swing_ratio)
            swings.append((step.impact_time - swing_duration, step.impact_time, is_left))
            t_ref = step.impact_time
        return swings

    @staticmethod
    def _swing_owners(times, swings):
        """샘플별 swing 중인 발 (0: 왼발, 1: 오른발, -1: 없음)과 다음 swing 발."""
        n = len(times)
        t0 = times[0]
        dt = times[1] - times[0]
        owner = np.full(n, -1, dtype=int)
        next_owner = np.full(n, -1, dtype=int)
        previous_end = 0
        for start, end, is_left in swings:
            k_start = int(np.ceil((start - t0) / dt - _TIME_EPS))
            k_end = int(np.ceil((end - t0) / dt - _TIME_EPS))
            who = 0 if is_left else 1
            owner[k_start:k_end] = who
            next_owner[previous_end:k_start] = who
            previous_end = k_end
        return owner, next_owner

    @staticmethod
    def _phase(owner: int, next_owner: int, left: bool) -> StepPhase:
        me, other = (0, 1) if left else (1, 0)
        if owner == me:
            return StepPhase.SWING
        if owner == other:
            return StepPhase.STANCE
        if next_owner == me:
            return StepPhase.SWITCH_OUT
        if next_owner == other:
            return StepPhase.SWITCH_IN
        return StepPhase.STANCE

    def _zmp_segments(self, times, owner, next_owner, used_left_as_fixed,
                      left_steps, right_steps):
        """고정발이 바뀔 때마다 끊기는 ZMP 구간. 마지막 정지 구간은 최종 DCM 위치."""
        dcm = self._dcm_generator
        last_left = left_steps[-1].impact_time >= right_steps[-1].impact_time
        final = (dcm.final_dcm_point(left_steps[-1], True, right_steps[-1]) if last_left
                 else dcm.final_dcm_point(right_steps[-1], False, left_steps[-1]))

        impacts = {True: np.array([s.impact_time for s in left_steps]),
                   False: np.array([s.impact_time for s in right_steps])}
        steps = {True: left_steps, False: right_steps}

        segments = []
        current_key = None
        for k, t in enumerate(times):
            if owner[k] == -1 and next_owner[k] == -1:
                key = ("final",)
            else:
                side = bool(used_left_as_fixed[k])
                i = max(int(np.searchsorted(impacts[side], t + _TIME_EPS, side="right")) - 1, 0)
                key = (side, i)
            if key != current_key:
                if key == ("final",):
                    zmp = final
                else:
                    zmp = dcm.zmp_point(steps[key[0]][key[1]], key[0])
                segments.append([k, k + 1, zmp])
                current_key = key
            else:
                segments[-1][1] = k + 1
        return [tuple(s) for s in segments]

    def _compute_merge_points(self, times, swings, owner, next_owner) -> List[int]:
        """double support 마다 merge point 하나, 마지막 착지 후 하나."""
        n = len(times)
        t0 = times[0]
        dt = times[1] - times[0]
        merge_points = []
        for i, (_, end, _) in enumerate(swings):
            k_land = int(np.ceil((end - t0) / dt - _TIME_EPS))
            if i + 1 < len(swings):
                k_next = int(np.ceil((swings[i + 1][0] - t0) / dt - _TIME_EPS))
                k = k_land + int(round(self._merge_point_ratios[0] * (k_next - k_land)))
            else:
                k = k_land + int(round(self._merge_point_ratios[1]
                                       * self._terminal_half_switch_time / dt))
            if 0 <= k < n and (not merge_points or k > merge_points[-1]):
                merge_points.append(k)
        return merge_points

    # ---------------------------------------------------------------- #
    # 결과 조회
    # ---------------------------------------------------------------- #
    def get_feet_standing_periods(self) -> Tuple[List[bool], List[bool]]:
        return list(self._left_in_contact), list(self._right_in_contact)

    def get_when_use_left_as_fixed(self) -> List[bool]:
        return list(self._used_left_as_fixed)

    def get_step_phases(self) -> Tuple[List[StepPhase], List[StepPhase]]:
        return list(self._left_phases), list(self._right_phases)

    def get_merge_points(self) -> List[int]:
        return list(self._merge_points)
