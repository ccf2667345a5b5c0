"""CoM LTI 시스템 + RK4 적분기 테스트"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from unicycle_planner.com_dynamics import LinearTimeInvariantSystem, RK4, lipm_system_matrices


OMEGA = np.sqrt(9.80665 / 0.7)


@pytest.fixture
def system():
    A, B = lipm_system_matrices(OMEGA)
    s = LinearTimeInvariantSystem()
    assert s.set_system_matrices(A, B)
    return s


class TestSystemMatrices:
    def test_lipm_matrices(self):
        A, B = lipm_system_matrices(2.0)
        np.testing.assert_allclose(A, -2.0 * np.eye(4))
        np.testing.assert_allclose(B, 2.0 * np.eye(4))

    def test_rejects_non_square_A(self):
        s = LinearTimeInvariantSystem()
        assert not s.set_system_matrices(np.zeros((4, 3)), np.zeros((4, 4)))

    def test_rejects_row_mismatch(self):
        s = LinearTimeInvariantSystem()
        assert not s.set_system_matrices(np.eye(4), np.zeros((3, 4)))

    def test_state_size(self, system):
        assert system.state_size == 4
        np.testing.assert_allclose(system.state, np.zeros(4))


class TestDynamics:
    def test_wrong_state_size(self, system):
        assert not system.set_state(np.zeros(3))

    def test_wrong_control_size(self, system):
        assert not system.set_control_input(np.zeros(2))

    def test_set_state_before_matrices(self):
        assert not LinearTimeInvariantSystem().set_state(np.zeros(4))

    def test_derivative(self, system):
        x = np.array([0.1, -0.2, 0.0, 0.3])
        u = np.array([0.2, 0.1, 0.0, 0.0])
        system.set_state(x)
        system.set_control_input(u)
        expected = -OMEGA * x + OMEGA * u
        np.testing.assert_allclose(system.dynamics(0.0), expected)

    def test_explicit_state_argument(self, system):
        system.set_control_input(np.zeros(4))
        x = np.ones(4)
        np.testing.assert_allclose(system.dynamics(0.0, x), -OMEGA * x)


class TestRK4:
    def test_requires_positive_step(self):
        assert not RK4().set_integration_step(0.0)
        assert not RK4().set_integration_step(-0.01)

    def test_requires_system(self):
        assert not RK4().set_dynamical_system(None)
        assert not RK4().one_step_integration(0.0, 0.01)

    def test_equilibrium(self, system):
        """CoM == DCM, 속도 일치 → 상태 유지."""
        x = np.array([0.3, -0.1, 0.05, 0.02])
        system.set_state(x)
        system.set_control_input(x)
        rk4 = RK4()
        rk4.set_dynamical_system(system)
        rk4.set_integration_step(0.01)
        assert rk4.one_step_integration(0.0, 0.01)
        np.testing.assert_allclose(rk4.get_solution(), x, atol=1e-12)

    def test_matches_exponential_solution(self, system):
        """일정 입력 u에서 x(t) = u + (x0 - u)·exp(-ωt)."""
        x0 = np.array([0.0, 0.0, 0.0, 0.0])
        u = np.array([0.1, 0.05, 0.0, 0.0])
        system.set_state(x0)
        system.set_control_input(u)
        rk4 = RK4()
        rk4.set_dynamical_system(system)
        dt = 0.002
        rk4.set_integration_step(dt)
        t = 0.0
        for _ in range(500):
            rk4.one_step_integration(t, dt)
            system.set_state(rk4.get_solution())
            t += dt
        expected = u + (x0 - u) * np.exp(-OMEGA * t)
        np.testing.assert_allclose(system.state, expected, atol=1e-9)
