"""Tests for integration methods in transient analysis.

This module tests the integration coefficients and formulas for:
- Backward Euler (BE)
- Trapezoidal (Trap)
- Gear2/BDF2
"""

import numpy as np
import pytest

from mnajax.analysis.integration import (
    IntegrationMethod,
    IntegrationState,
    apply_integration,
    compute_coefficients,
)


class TestIntegrationCoefficients:
    """Tests for compute_coefficients() function."""

    def test_backward_euler_coefficients(self):
        """Test Backward Euler: dQ/dt = (Q - Q_prev) / dt."""
        dt = 1e-12
        coeffs = compute_coefficients(IntegrationMethod.BACKWARD_EULER, dt)

        inv_dt = 1.0 / dt
        assert coeffs.c0 == pytest.approx(inv_dt)
        assert coeffs.c1 == pytest.approx(-inv_dt)
        assert coeffs.c2 == 0.0
        assert coeffs.d1 == 0.0
        assert coeffs.order == 1
        assert coeffs.error_coeff == 0.5

    def test_trapezoidal_coefficients(self):
        """Test Trapezoidal: dQ/dt = 2/dt * (Q - Q_prev) - dQdt_prev."""
        dt = 1e-9
        coeffs = compute_coefficients(IntegrationMethod.TRAPEZOIDAL, dt)

        assert coeffs.c0 == pytest.approx(2.0 / dt)
        assert coeffs.c1 == pytest.approx(-2.0 / dt)
        assert coeffs.d1 == -1.0
        assert coeffs.order == 2
        assert coeffs.error_coeff == pytest.approx(1.0 / 12.0)

    def test_gear2_uniform_coefficients(self):
        """Test Gear2 with equal steps: dQ/dt = (3Q - 4Q_prev + Q_prev2) / (2dt)."""
        dt = 1e-6
        coeffs = compute_coefficients(IntegrationMethod.GEAR2, dt)

        assert coeffs.c0 == pytest.approx(1.5 / dt)
        assert coeffs.c1 == pytest.approx(-2.0 / dt)
        assert coeffs.c2 == pytest.approx(0.5 / dt)
        assert coeffs.d1 == 0.0
        assert coeffs.error_coeff == pytest.approx(2.0 / 9.0)

    def test_gear2_coefficients_sum_to_zero(self):
        """A constant charge has zero derivative for any step ratio."""
        coeffs = compute_coefficients(IntegrationMethod.GEAR2, 1e-6, 3e-6)
        assert coeffs.c0 + coeffs.c1 + coeffs.c2 == pytest.approx(0.0, abs=1e-6)


class TestMethodParsing:
    @pytest.mark.parametrize(
        "text, method",
        [
            ("be", IntegrationMethod.BACKWARD_EULER),
            ("Euler", IntegrationMethod.BACKWARD_EULER),
            ("trap", IntegrationMethod.TRAPEZOIDAL),
            ("'am2'", IntegrationMethod.TRAPEZOIDAL),
            ("BDF2", IntegrationMethod.GEAR2),
            (" gear ", IntegrationMethod.GEAR2),
        ],
    )
    def test_aliases(self, text, method):
        assert IntegrationMethod.from_string(text) == method

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown integration method"):
            IntegrationMethod.from_string("rk4")

    def test_order(self):
        assert IntegrationMethod.BACKWARD_EULER.order == 1
        assert IntegrationMethod.TRAPEZOIDAL.order == 2
        assert IntegrationMethod.GEAR2.order == 2


class TestApplyIntegration:
    """Exactness of each formula on low-order charge histories."""

    def test_backward_euler_exact_on_linear_charge(self):
        coeffs = compute_coefficients(IntegrationMethod.BACKWARD_EULER, 0.5)
        dqdt = apply_integration(np.array([3.0]), np.array([2.0]), coeffs)
        np.testing.assert_allclose(dqdt, [2.0])

    def test_trapezoidal_uses_previous_derivative(self):
        # Q = t^2: Q(1) = 1, Q(2) = 4, dQ/dt(1) = 2, dQ/dt(2) = 4
        coeffs = compute_coefficients(IntegrationMethod.TRAPEZOIDAL, 1.0)
        dqdt = apply_integration(np.array([4.0]), np.array([1.0]), coeffs, dQdt_prev=np.array([2.0]))
        np.testing.assert_allclose(dqdt, [4.0])

    def test_gear2_exact_on_quadratic_charge_uniform(self):
        coeffs = compute_coefficients(IntegrationMethod.GEAR2, 1.0)
        dqdt = apply_integration(np.array([4.0]), np.array([1.0]), coeffs, Q_prev2=np.array([0.0]))
        np.testing.assert_allclose(dqdt, [4.0])

    def test_gear2_exact_on_quadratic_charge_variable_step(self):
        # Points at t = 0, 0.5, 1.5 of Q = t^2
        coeffs = compute_coefficients(IntegrationMethod.GEAR2, 1.0, 0.5)
        dqdt = apply_integration(np.array([2.25]), np.array([0.25]), coeffs, Q_prev2=np.array([0.0]))
        np.testing.assert_allclose(dqdt, [3.0])


class TestIntegrationState:
    """History bookkeeping between accepted steps."""

    def test_update_shifts_history(self):
        state = IntegrationState(Q_prev=np.array([1.0]), dQdt_prev=np.array([0.0]))
        new = state.update(np.array([2.0]), np.array([5.0]))
        np.testing.assert_allclose(new.Q_prev, [2.0])
        np.testing.assert_allclose(new.Q_prev2, [1.0])
        np.testing.assert_allclose(new.dQdt_prev, [5.0])

    def test_history_term_is_formula_without_new_charge(self):
        state = IntegrationState(Q_prev=np.array([2.0]), Q_prev2=np.array([1.0]), dQdt_prev=np.array([3.0]))
        for method in IntegrationMethod:
            coeffs = compute_coefficients(method, 0.25)
            full = apply_integration(np.array([1.5]), state.Q_prev, coeffs, state.Q_prev2, state.dQdt_prev)
            np.testing.assert_allclose(state.history_term(coeffs) + coeffs.c0 * 1.5, full)

    def test_history_term_without_derivative(self):
        state = IntegrationState(Q_prev=np.array([1.0]))
        coeffs = compute_coefficients(IntegrationMethod.TRAPEZOIDAL, 1.0)
        np.testing.assert_allclose(state.history_term(coeffs), [-2.0])
