"""UnicycleTrajectoryPlanner: footstep / DCM / CoM 기준 궤적 플래너

상태 머신:
    NOT_INITIALIZED → INITIALIZED → RUNNING (RUNNING은 매 advance마다 재진입)

매 제어 주기:
    set_input() → advance() → get_output() / get_contact_phase_list()

advance()는 출력을 락 밖에서 계산한 뒤 락 안에서 교체한다. 공개 메서드는
예외를 밖으로 던지지 않고 bool로 성공 여부를 돌려준다.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional

import mujoco
import numpy as np
from scipy.spatial.transform import Rotation

from unicycle_planner import config
from unicycle_planner.com_dynamics import (
    LinearTimeInvariantSystem,
    RK4,
    lipm_system_matrices,
)
from unicycle_planner.contact_list import ContactPhaseList, get_contact_list
from unicycle_planner.unicycle_generator import (
    DCMInitialState,
    Step,
    UnicycleController,
    UnicycleGenerator,
    UnicycleGeneratorSettings,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """필수 파라미터 누락, 잘못된 값, 알 수 없는 컨트롤러 이름."""


def unicycle_controller_from_string(name: str) -> UnicycleController:
    if name == "personFollowing":
        return UnicycleController.PERSON_FOLLOWING
    if name == "direct":
        return UnicycleController.DIRECT
    raise ConfigurationError(f"Invalid controller type '{name}'.")


# ====================================================================== #
# 입력 / 출력
# ====================================================================== #
@dataclass
class COMInitialState:
    initial_planar_position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    initial_planar_velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))


@dataclass
class FootTransform:
    """측정된 지지발 pose."""
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: Rotation = field(default_factory=Rotation.identity)

    def yaw(self) -> float:
        # R = Rz(yaw)·Ry(pitch)·Rx(roll)
        return float(self.rotation.as_euler("ZYX")[0])


@dataclass
class Input:
    planner_input: np.ndarray = field(default_factory=lambda: np.zeros(3))
    is_left_last_swinging: bool = False
    dcm_initial_state: DCMInitialState = field(default_factory=DCMInitialState)
    com_initial_state: COMInitialState = field(default_factory=COMInitialState)
    measured_transform: FootTransform = field(default_factory=FootTransform)
    init_time: int = 0      # ns

    @staticmethod
    def generate_dummy_input() -> "Input":
        """정지 명령, 오른발 지지 (0, -0.1, 0)."""
        return Input(measured_transform=FootTransform(translation=np.array([0.0, -0.1, 0.0])))


@dataclass
class Footsteps:
    left_steps: List[Step] = field(default_factory=list)
    right_steps: List[Step] = field(default_factory=list)


@dataclass
class ContactStatus:
    left_foot_in_contact: List[bool] = field(default_factory=list)
    right_foot_in_contact: List[bool] = field(default_factory=list)
    used_left_as_fixed: List[bool] = field(default_factory=list)


@dataclass
class DCMTrajectory:
    position: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))


@dataclass
class CoMTrajectory:
    position: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    acceleration: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))


@dataclass
class Output:
    steps: Footsteps = field(default_factory=Footsteps)
    contact_status: ContactStatus = field(default_factory=ContactStatus)
    dcm_trajectory: DCMTrajectory = field(default_factory=DCMTrajectory)
    com_trajectory: CoMTrajectory = field(default_factory=CoMTrajectory)
    merge_points: List[int] = field(default_factory=list)   # 샘플 인덱스


@dataclass
class Parameters:
    reference_point_distance: np.ndarray = field(default_factory=lambda: np.zeros(2))
    nominal_width: float = config.NOMINAL_WIDTH
    left_yaw_delta_in_rad: float = 0.0
    right_yaw_delta_in_rad: float = 0.0
    dt: int = round(config.DT * 1e9)                        # ns
    planner_horizon: int = round(config.PLANNER_HORIZON * 1e9)  # ns
    left_contact_frame_name: str = ""
    right_contact_frame_name: str = ""
    left_contact_frame_index: int = -1
    right_contact_frame_index: int = -1


class FSM(Enum):
    NOT_INITIALIZED = 0
    INITIALIZED = 1
    RUNNING = 2


# ====================================================================== #
# 파라미터 파싱
# ====================================================================== #
_MISSING = object()


def _convert(name: str, value, kind):
    if kind is bool:
        if not isinstance(value, (bool, np.bool_)):
            raise ConfigurationError(f"The parameter named '{name}' must be a boolean.")
        return bool(value)
    if kind is str:
        if not isinstance(value, str):
            raise ConfigurationError(f"The parameter named '{name}' must be a string.")
        return value
    if kind is float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"The parameter named '{name}' must be a number.")
    # 2차원 벡터
    try:
        vector = np.asarray(value, dtype=float).reshape(-1)
    except (TypeError, ValueError):
        raise ConfigurationError(f"The parameter named '{name}' must be a vector.")
    if vector.shape[0] != 2:
        raise ConfigurationError(f"The parameter named '{name}' must have two elements. "
                                 f"Provided: {vector.shape[0]}.")
    return vector


def _load_param(handler: Mapping, name: str, kind=float):
    value = handler.get(name, _MISSING)
    if value is _MISSING:
        raise ConfigurationError(f"Unable to get the parameter named '{name}'.")
    return _convert(name, value, kind)


def _load_param_with_fallback(handler: Mapping, name: str, fallback, kind=float):
    value = handler.get(name, _MISSING)
    if value is _MISSING:
        logger.info(f"[UnicycleTrajectoryPlanner.initialize] Unable to find the parameter "
                    f"named '{name}'. The default one with value [{fallback}] will be used.")
        return fallback
    return _convert(name, value, kind)


# ====================================================================== #
# Planner
# ====================================================================== #
class UnicycleTrajectoryPlanner:
    """unicycle footstep 계획 + DCM/CoM 기준 궤적.

    set_input()/advance()는 하나의 제어 루프 스레드에서, get_output()/
    get_contact_phase_list()는 여러 스레드에서 호출할 수 있다.
    """

    def __init__(self):
        self._state = FSM.NOT_INITIALIZED
        self._parameters = Parameters()
        self._input = Input.generate_dummy_input()
        self._output = Output()
        self._output_init_time = 0     # 게시된 출력의 시작 시각 (ns)
        self._generator = UnicycleGenerator()
        self._mutex = threading.Lock()

        # CoM LIPM 시스템
        self._com_dynamics = LinearTimeInvariantSystem()
        self._com_integrator = RK4()

    # ---------------------------------------------------------------- #
    # 초기화
    # ---------------------------------------------------------------- #
    def initialize(self, handler: Optional[Mapping]) -> bool:
        """파라미터 파싱 → 엔진 설정 → CoM 모델 구성 → 첫 궤적 생성.

        실패하면 이전 상태와 관계없이 NOT_INITIALIZED로 남는다.
        """
        log_prefix = "[UnicycleTrajectoryPlanner.initialize]"
        self._state = FSM.NOT_INITIALIZED

        if handler is None:
            logger.error(f"{log_prefix} Invalid parameter handler.")
            return False

        try:
            parameters, settings = self._parse_parameters(handler)
        except ConfigurationError as e:
            logger.error(f"{log_prefix} {e}")
            return False

        generator = UnicycleGenerator()
        if not generator.apply_settings(settings):
            logger.error(f"{log_prefix} Unable to configure the trajectory generator.")
            return False

        dt = parameters.dt * 1e-9
        horizon = parameters.planner_horizon * 1e-9

        com_dynamics = LinearTimeInvariantSystem()
        com_integrator = RK4()
        A, B = lipm_system_matrices(settings.omega)
        ok = com_dynamics.set_system_matrices(A, B)
        ok = ok and com_dynamics.set_state(np.zeros(4))
        ok = ok and com_integrator.set_dynamical_system(com_dynamics)
        ok = ok and com_integrator.set_integration_step(dt)
        if not ok:
            logger.error(f"{log_prefix} Unable to initialize the CoM system.")
            return False

        if not generator.seed_first_trajectory(0.0, dt, horizon):
            logger.error(f"{log_prefix} Unable to generate the first trajectory.")
            return False

        for step in generator.left_foot_print.get_steps():
            logger.debug(f"Left step at initialization: position: {step.position}, "
                         f"angle: {step.angle}, impact time: {step.impact_time}")
        for step in generator.right_foot_print.get_steps():
            logger.debug(f"Right step at initialization: position: {step.position}, "
                         f"angle: {step.angle}, impact time: {step.impact_time}")
        left_phases, right_phases = generator.get_step_phases()
        logger.debug(f"Left phases at initialization: {[int(p) for p in left_phases]}")
        logger.debug(f"Right phases at initialization: {[int(p) for p in right_phases]}")

        self._parameters = parameters
        self._generator = generator
        self._com_dynamics = com_dynamics
        self._com_integrator = com_integrator
        self._input = Input.generate_dummy_input()
        self._state = FSM.INITIALIZED
        return True

    def _parse_parameters(self, handler: Mapping):
        p = Parameters()

        p.reference_point_distance = _load_param(handler, "referencePosition", "vector")
        control_type = _load_param_with_fallback(handler, "controlType",
                                                 config.CONTROL_TYPE, str)
        unicycle_gain = _load_param_with_fallback(handler, "unicycleGain",
                                                  config.UNICYCLE_GAIN)
        slow_when_turning_gain = _load_param_with_fallback(
            handler, "slowWhenTurningGain", config.SLOW_WHEN_TURNING_GAIN)
        slow_when_backward_factor = _load_param_with_fallback(
            handler, "slowWhenBackwardFactor", config.SLOW_WHEN_BACKWARD_FACTOR)
        slow_when_sideways_factor = _load_param_with_fallback(
            handler, "slowWhenSidewaysFactor", config.SLOW_WHEN_SIDEWAYS_FACTOR)
        dt = _load_param_with_fallback(handler, "dt", config.DT)
        planner_horizon = _load_param_with_fallback(handler, "plannerHorizon",
                                                    config.PLANNER_HORIZON)
        position_weight = _load_param_with_fallback(handler, "positionWeight",
                                                    config.POSITION_WEIGHT)
        time_weight = _load_param_with_fallback(handler, "timeWeight", config.TIME_WEIGHT)
        max_step_length = _load_param_with_fallback(handler, "maxStepLength",
                                                    config.MAX_STEP_LENGTH)
        min_step_length = _load_param_with_fallback(handler, "minStepLength",
                                                    config.MIN_STEP_LENGTH)
        max_length_backward_factor = _load_param_with_fallback(
            handler, "maxLengthBackwardFactor", config.MAX_LENGTH_BACKWARD_FACTOR)
        p.nominal_width = _load_param_with_fallback(handler, "nominalWidth",
                                                    config.NOMINAL_WIDTH)
        min_width = _load_param_with_fallback(handler, "minWidth", config.MIN_WIDTH)
        min_step_duration = _load_param_with_fallback(handler, "minStepDuration",
                                                      config.MIN_STEP_DURATION)
        max_step_duration = _load_param_with_fallback(handler, "maxStepDuration",
                                                      config.MAX_STEP_DURATION)
        nominal_duration = _load_param_with_fallback(handler, "nominalDuration",
                                                     config.NOMINAL_DURATION)
        max_angle_variation = _load_param_with_fallback(handler, "maxAngleVariation",
                                                        config.MAX_ANGLE_VARIATION)
        min_angle_variation = _load_param_with_fallback(handler, "minAngleVariation",
                                                        config.MIN_ANGLE_VARIATION)
        saturation_factors = _load_param(handler, "saturationFactors", "vector")
        p.left_yaw_delta_in_rad = np.deg2rad(_load_param_with_fallback(
            handler, "leftYawDeltaInDeg", config.LEFT_YAW_DELTA_IN_DEG))
        p.right_yaw_delta_in_rad = np.deg2rad(_load_param_with_fallback(
            handler, "rightYawDeltaInDeg", config.RIGHT_YAW_DELTA_IN_DEG))
        start_with_left = _load_param_with_fallback(handler, "swingLeft",
                                                    config.SWING_LEFT, bool)
        start_with_same_foot = _load_param_with_fallback(
            handler, "startAlwaysSameFoot", config.START_ALWAYS_SAME_FOOT, bool)
        terminal_step = _load_param_with_fallback(handler, "terminalStep",
                                                  config.TERMINAL_STEP, bool)
        merge_point_ratios = _load_param(handler, "mergePointRatios", "vector")
        switch_over_swing_ratio = _load_param_with_fallback(
            handler, "switchOverSwingRatio", config.SWITCH_OVER_SWING_RATIO)
        last_step_switch_time = _load_param_with_fallback(
            handler, "lastStepSwitchTime", config.LAST_STEP_SWITCH_TIME)
        is_pause_active = _load_param_with_fallback(handler, "isPauseActive",
                                                    config.IS_PAUSE_ACTIVE, bool)
        com_height = _load_param_with_fallback(handler, "comHeight", config.COM_HEIGHT)
        com_height_delta = _load_param_with_fallback(handler, "comHeightDelta",
                                                     config.COM_HEIGHT_DELTA)
        left_zmp_delta = _load_param(handler, "leftZMPDelta", "vector")
        right_zmp_delta = _load_param(handler, "rightZMPDelta", "vector")
        last_step_dcm_offset = _load_param_with_fallback(handler, "lastStepDCMOffset",
                                                         config.LAST_STEP_DCM_OFFSET)
        p.left_contact_frame_name = _load_param(handler, "leftContactFrameName", str)
        p.right_contact_frame_name = _load_param(handler, "rightContactFrameName", str)

        if dt <= 0:
            raise ConfigurationError(f"The parameter named 'dt' must be strictly positive. "
                                     f"Provided: {dt}.")
        if planner_horizon <= dt:
            raise ConfigurationError(f"The parameter named 'plannerHorizon' must be greater "
                                     f"than 'dt'. Provided: {planner_horizon}.")
        if com_height <= 0:
            raise ConfigurationError(f"The parameter named 'comHeight' must be strictly "
                                     f"positive. Provided: {com_height}.")

        p.dt = round(dt * 1e9)
        p.planner_horizon = round(planner_horizon * 1e9)
        controller = unicycle_controller_from_string(control_type)
        omega = np.sqrt(config.GRAVITY / com_height)

        settings = UnicycleGeneratorSettings(
            reference_point_distance=p.reference_point_distance,
            unicycle_gain=unicycle_gain,
            slow_when_turning_gain=slow_when_turning_gain,
            slow_when_backward_factor=slow_when_backward_factor,
            # 횡방향 감속에도 후진 계수를 사용
            slow_when_sideways_factor=slow_when_backward_factor,
            max_step_length=max_step_length,
            max_length_backward_factor=max_length_backward_factor,
            dt=p.dt * 1e-9,
            min_width=min_width,
            nominal_width=p.nominal_width,
            max_angle_variation=max_angle_variation,
            min_angle_variation=min_angle_variation,
            position_weight=position_weight,
            time_weight=time_weight,
            min_step_duration=min_step_duration,
            max_step_duration=max_step_duration,
            nominal_duration=nominal_duration,
            min_step_length=min_step_length,
            saturation_factors=saturation_factors,
            left_yaw_delta_in_rad=p.left_yaw_delta_in_rad,
            right_yaw_delta_in_rad=p.right_yaw_delta_in_rad,
            terminal_step=terminal_step,
            start_with_left=start_with_left,
            start_with_same_foot=start_with_same_foot,
            controller=controller,
            switch_over_swing_ratio=switch_over_swing_ratio,
            last_step_switch_time=last_step_switch_time,
            merge_point_ratios=merge_point_ratios,
            is_pause_active=is_pause_active,
            com_height=com_height,
            com_height_delta=com_height_delta,
            left_zmp_delta=left_zmp_delta,
            right_zmp_delta=right_zmp_delta,
            omega=omega,
            last_step_dcm_offset=last_step_dcm_offset,
        )
        logger.debug(f"[UnicycleTrajectoryPlanner.initialize] slowWhenSidewaysFactor "
                     f"{slow_when_sideways_factor} parsed, backward factor used instead.")
        return p, settings

    def set_robot_contact_frames(self, model: mujoco.MjModel) -> bool:
        """좌/우 contact frame 이름을 MuJoCo site 인덱스로 변환."""
        log_prefix = "[UnicycleTrajectoryPlanner.set_robot_contact_frames]"

        if self._state == FSM.NOT_INITIALIZED:
            logger.error(f"{log_prefix} The Unicycle planner has not been initialized. "
                         f"Initialize it first.")
            return False

        if model is None:
            logger.error(f"{log_prefix} Unable to load the robot model.")
            self._state = FSM.NOT_INITIALIZED
            return False

        for side in ("left", "right"):
            name = getattr(self._parameters, f"{side}_contact_frame_name")
            index = mujoco.mj_name2id(model, mujoco.mjtObj.mjOBJ_SITE, name)
            if index < 0:
                logger.error(f"{log_prefix} Unable to find the frame named {name}.")
                self._state = FSM.NOT_INITIALIZED
                return False
            setattr(self._parameters, f"{side}_contact_frame_index", index)

        return True

    # ---------------------------------------------------------------- #
    # 제어 주기
    # ---------------------------------------------------------------- #
    def set_input(self, planner_input: Input) -> bool:
        if self._state == FSM.NOT_INITIALIZED:
            logger.error("[UnicycleTrajectoryPlanner.set_input] The Unicycle planner has "
                         "never been initialized.")
            return False
        self._input = copy.deepcopy(planner_input)
        return True

    def advance(self) -> bool:
        log_prefix = "[UnicycleTrajectoryPlanner.advance]"

        if self._state == FSM.NOT_INITIALIZED:
            logger.error(f"{log_prefix} The Unicycle planner has never been initialized.")
            return False

        init_time = self._input.init_time * 1e-9
        dt = self._parameters.dt * 1e-9

        # 첫 호출은 initialize()의 궤적만 게시
        if self._state == FSM.RUNNING:
            if not self._replan(init_time, dt):
                return False

        output = self._collect_output(dt)

        with self._mutex:
            self._output = output
            self._output_init_time = self._input.init_time

        self._state = FSM.RUNNING
        return True

    def _replan(self, init_time: float, dt: float) -> bool:
        log_prefix = "[UnicycleTrajectoryPlanner.advance]"
        planner = self._generator.unicycle_planner
        dcm_generator = self._generator.dcm_generator
        planner_input = np.asarray(self._input.planner_input, dtype=float).reshape(-1)
        params = self._parameters

        correct_left = not self._input.is_left_last_swinging
        end_time = init_time + params.planner_horizon * 1e-9

        # x에는 planner_input[1], y는 항상 0
        desired_point_in_relative_frame = np.array([planner_input[1], 0.0])

        measured_position = np.asarray(self._input.measured_transform.translation,
                                       dtype=float)[:2]
        measured_angle = self._input.measured_transform.yaw()

        # 지지발 → unicycle pose
        if correct_left:
            unicycle_position_from_stance_foot = np.array([0.0, -params.nominal_width / 2])
            unicycle_angle = measured_angle - params.left_yaw_delta_in_rad
        else:
            unicycle_position_from_stance_foot = np.array([0.0, params.nominal_width / 2])
            unicycle_angle = measured_angle - params.right_yaw_delta_in_rad

        c, s = np.cos(unicycle_angle), np.sin(unicycle_angle)
        unicycle_rotation = np.array([[c, -s],
                                      [s, c]])
        unicycle_position = unicycle_rotation @ unicycle_position_from_stance_foot \
            + measured_position

        # w_H_unicycle
        desired_point_in_absolute_frame = unicycle_rotation @ (
            params.reference_point_distance + desired_point_in_relative_frame) \
            + unicycle_position

        planner.clear_person_following_desired_trajectory()
        if not planner.add_person_following_desired_trajectory_point(
                end_time, desired_point_in_absolute_frame):
            logger.error(f"{log_prefix} Error while setting the new reference.")
            return False

        if not planner.set_desired_direct_control(planner_input[0], planner_input[1],
                                                  planner_input[2]):
            logger.error(f"{log_prefix} Error while setting the direct control.")
            return False

        if not dcm_generator.set_dcm_initial_state(self._input.dcm_initial_state):
            logger.error(f"{log_prefix} Failed to set the initial state.")
            return False

        if not self._generator.regenerate(init_time, dt, end_time, correct_left,
                                          measured_position, measured_angle):
            logger.error(f"{log_prefix} Failed in computing new trajectory.")
            return False

        return True

    def _collect_output(self, dt: float) -> Output:
        """엔진 결과 → Output. CoM은 DCM 샘플마다 RK4로 한 스텝씩 적분."""
        generator = self._generator
        output = Output()

        left_in_contact, right_in_contact = generator.get_feet_standing_periods()
        output.contact_status = ContactStatus(left_in_contact, right_in_contact,
                                              generator.get_when_use_left_as_fixed())
        output.steps = Footsteps(generator.left_foot_print.get_steps(),
                                 generator.right_foot_print.get_steps())

        dcm_position = generator.dcm_generator.get_dcm_position().copy()
        dcm_velocity = generator.dcm_generator.get_dcm_velocity().copy()
        output.dcm_trajectory = DCMTrajectory(dcm_position, dcm_velocity)

        # CoM 평면 궤적
        n = len(dcm_position)
        com_position = np.zeros((n, 3))
        com_velocity = np.zeros((n, 3))
        com_acceleration = np.zeros((n, 3))

        com_initial_state = self._input.com_initial_state
        state = np.concatenate([
            np.asarray(com_initial_state.initial_planar_position, dtype=float).reshape(2),
            np.asarray(com_initial_state.initial_planar_velocity, dtype=float).reshape(2),
        ])
        self._com_dynamics.set_state(state)
        time = self._input.init_time * 1e-9

        for i in range(n):
            com_position[i, :2] = state[:2]

            self._com_dynamics.set_control_input(
                np.concatenate([dcm_position[i], dcm_velocity[i]]))

            # xd = A x + B u
            state_derivative = self._com_dynamics.dynamics(time)
            com_velocity[i, :2] = state_derivative[:2]
            com_acceleration[i, :2] = state_derivative[2:]

            self._com_integrator.one_step_integration(time, dt)
            state = self._com_integrator.get_solution()
            self._com_dynamics.set_state(state)
            time += dt

        # CoM 높이 궤적
        height_generator = generator.com_height_generator
        com_position[:, 2] = height_generator.get_com_height_trajectory()[:n]
        com_velocity[:, 2] = height_generator.get_com_height_velocity()[:n]
        com_acceleration[:, 2] = height_generator.get_com_height_acceleration_profile()[:n]

        output.com_trajectory = CoMTrajectory(com_position, com_velocity, com_acceleration)
        output.merge_points = generator.get_merge_points()
        return output

    # ---------------------------------------------------------------- #
    # 출력
    # ---------------------------------------------------------------- #
    def get_output(self) -> Output:
        with self._mutex:
            return copy.deepcopy(self._output)

    def is_output_valid(self) -> bool:
        return self._state == FSM.RUNNING

    @property
    def state(self) -> FSM:
        return self._state

    @property
    def parameters(self) -> Parameters:
        return self._parameters

    def get_contact_phase_list(self) -> ContactPhaseList:
        """발별 ContactList ("left_foot" / "right_foot"). 실패 시 빈 목록."""
        log_prefix = "[UnicycleTrajectoryPlanner.get_contact_phase_list]"
        contact_phase_list = ContactPhaseList()

        if not self.is_output_valid():
            logger.error(f"{log_prefix} The output is not valid. Returning an empty Contact "
                         f"Phase List.")
            return contact_phase_list

        params = self._parameters
        if params.left_contact_frame_index < 0 or params.right_contact_frame_index < 0:
            logger.error(f"{log_prefix} The contact frames have not been set. Returning an "
                         f"empty Contact Phase List.")
            return contact_phase_list

        # 게시된 출력은 교체만 되고 수정되지 않는다
        with self._mutex:
            output = self._output
            init_time = self._output_init_time

        lists = {}
        for label, in_contact, steps, index in (
                ("left_foot", output.contact_status.left_foot_in_contact,
                 output.steps.left_steps, params.left_contact_frame_index),
                ("right_foot", output.contact_status.right_foot_in_contact,
                 output.steps.right_steps, params.right_contact_frame_index)):
            ok, contact_list = get_contact_list(init_time, params.dt, in_contact, steps,
                                                index, label)
            if not ok:
                logger.error(f"{log_prefix} Error while getting the {label} contact list. "
                             f"Returning an empty Contact Phase List.")
                return contact_phase_list
            lists[label] = contact_list

        contact_phase_list.set_lists(lists)
        return contact_phase_list
