"""CoM 평면 동역학: 선형 시불변(LTI) 시스템 + 고정 스텝 RK4 적분기

LIPM에서 CoM은 DCM을 따라간다:

    | xd  |   | -w  0  0  0 |   | x  |   | +w  0  0  0 |   | Xdcm  |
    | yd  | = |  0 -w  0  0 | * | y  | + |  0 +w  0  0 | * | Ydcm  |
    | xdd |   |  0  0 -w  0 |   | xd |   |  0  0 +w  0 |   | Xdcmd |
    | ydd |   |  0  0  0 -w |   | yd |   |  0  0  0 +w |   | Ydcmd |

w = sqrt(g / z_c).
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)


def lipm_system_matrices(omega: float):
    """A = -wI, B = -A (4x4)."""
    A = -omega * np.eye(4)
    B = -A
    return A, B


class LinearTimeInvariantSystem:
    """xd = A x + B u"""

    def __init__(self):
        self._A = None
        self._B = None
        self._state = None
        self._control_input = None

    def set_system_matrices(self, A, B) -> bool:
        A = np.asarray(A, dtype=float)
        B = np.asarray(B, dtype=float)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            logger.error("[LinearTimeInvariantSystem.set_system_matrices] "
                         "The matrix A must be a square matrix.")
            return False
        if B.ndim != 2 or B.shape[0] != A.shape[0]:
            logger.error("[LinearTimeInvariantSystem.set_system_matrices] "
                         "The number of rows of A and B must be the same.")
            return False
        self._A = A
        self._B = B
        self._state = np.zeros(A.shape[0])
        self._control_input = np.zeros(B.shape[1])
        return True

    @property
    def state_size(self) -> int:
        return 0 if self._A is None else self._A.shape[0]

    @property
    def state(self) -> np.ndarray:
        return self._state

    @property
    def control_input(self) -> np.ndarray:
        return self._control_input

    def set_state(self, state) -> bool:
        state = np.asarray(state, dtype=float).reshape(-1)
        if self._A is None or state.shape[0] != self._A.shape[0]:
            logger.error("[LinearTimeInvariantSystem.set_state] "
                         "Wrong state size or system matrices not set.")
            return False
        self._state = state.copy()
        return True

    def set_control_input(self, control_input) -> bool:
        control_input = np.asarray(control_input, dtype=float).reshape(-1)
        if self._B is None or control_input.shape[0] != self._B.shape[1]:
            logger.error("[LinearTimeInvariantSystem.set_control_input] "
                         "Wrong control input size or system matrices not set.")
            return False
        self._control_input = control_input.copy()
        return True

    def dynamics(self, t: float, state=None) -> np.ndarray:
        """상태 미분 A x + B u. state가 None이면 현재 상태 사용.

        t는 시불변 시스템이라 사용하지 않지만 적분기 인터페이스를 위해 받는다.
        """
        x = self._state if state is None else state
        return self._A @ x + self._B @ self._control_input


class RK4:
    """고정 스텝 4차 Runge-Kutta. 적응 스텝 없음."""

    def __init__(self):
        self._system = None
        self._dt = None
        self._solution = None

    def set_dynamical_system(self, system) -> bool:
        if system is None:
            logger.error("[RK4.set_dynamical_system] Invalid dynamical system.")
            return False
        self._system = system
        self._solution = np.array(system.state, dtype=float)
        return True

    def set_integration_step(self, dt: float) -> bool:
        if dt <= 0:
            logger.error(f"[RK4.set_integration_step] The integration step must be "
                         f"strictly positive. Provided: {dt}.")
            return False
        self._dt = dt
        return True

    @property
    def integration_step(self):
        return self._dt

    def one_step_integration(self, t0: float, dt: float) -> bool:
        """t0에서 dt만큼 한 스텝 적분. 결과는 get_solution()으로 조회."""
        if self._system is None:
            logger.error("[RK4.one_step_integration] The dynamical system is not set.")
            return False

        f = self._system.dynamics
        x = self._system.state

        k1 = f(t0, x)
        k2 = f(t0 + dt / 2, x + dt / 2 * k1)
        k3 = f(t0 + dt / 2, x + dt / 2 * k2)
        k4 = f(t0 + dt, x + dt * k3)

        self._solution = x + dt / 6 * (k1 + 2 * k2 + 2 * k3 + k4)
        return True

    def get_solution(self) -> np.ndarray:
        return self._solution
