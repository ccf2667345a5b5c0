"""Unicycle 보행 플래너 기본 파라미터

initialize()에 전달된 파라미터 맵에 값이 없으면 여기 값이 사용된다.
"""

GRAVITY: float = 9.80665

# ============================================
# 시간
# ============================================
DT: float = 0.002               # 샘플 주기 (s)
PLANNER_HORIZON: float = 20.0   # 계획 구간 (s)

# ============================================
# Unicycle 컨트롤러
# ============================================
CONTROL_TYPE: str = "direct"    # "personFollowing" | "direct"
UNICYCLE_GAIN: float = 10.0
SLOW_WHEN_TURNING_GAIN: float = 2.0
SLOW_WHEN_BACKWARD_FACTOR: float = 0.4
SLOW_WHEN_SIDEWAYS_FACTOR: float = 0.2

# ============================================
# Footstep 비용 / 제약
# ============================================
POSITION_WEIGHT: float = 1.0
TIME_WEIGHT: float = 2.5
MAX_STEP_LENGTH: float = 0.32
MIN_STEP_LENGTH: float = 0.01
MAX_LENGTH_BACKWARD_FACTOR: float = 0.8
NOMINAL_WIDTH: float = 0.20
MIN_WIDTH: float = 0.14
MIN_STEP_DURATION: float = 0.65
MAX_STEP_DURATION: float = 1.5
NOMINAL_DURATION: float = 0.8
MAX_ANGLE_VARIATION: float = 18.0   # deg
MIN_ANGLE_VARIATION: float = 5.0    # deg
LEFT_YAW_DELTA_IN_DEG: float = 0.0
RIGHT_YAW_DELTA_IN_DEG: float = 0.0

# ============================================
# 보행 시퀀스
# ============================================
SWING_LEFT: bool = False
START_ALWAYS_SAME_FOOT: bool = True
TERMINAL_STEP: bool = True
SWITCH_OVER_SWING_RATIO: float = 0.2
LAST_STEP_SWITCH_TIME: float = 0.3
IS_PAUSE_ACTIVE: bool = True

# ============================================
# CoM / DCM
# ============================================
COM_HEIGHT: float = 0.70
COM_HEIGHT_DELTA: float = 0.01
LAST_STEP_DCM_OFFSET: float = 0.5
