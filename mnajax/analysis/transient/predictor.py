"""Polynomial extrapolation predictor for adaptive timestep control.

This module implements the predictor half of a predictor-corrector scheme.
The predictor extrapolates the reactive state (capacitor voltages,
inductor currents) from past accepted points to the next timepoint; the
difference from the Newton (corrector) solution gives the local truncation
error estimate that drives step acceptance and the next step size.
"""

from typing import List, NamedTuple, Tuple

import numpy as np
from jaxtyping import Float


class PredictorCoeffs(NamedTuple):
    """Coefficients for polynomial extrapolation predictor.

    The predicted solution is: x_{n+1,pred} = sum_i a[i] * x_{n-i}

    Attributes:
        a: Coefficients for past solutions [a_0, a_1, ..., a_order]
        error_coeff: Error constant C_p, x_pred - x = C_p h^(p+1) x^(p+1)
        order: Order of polynomial extrapolation (1=linear, 2=quadratic)
    """

    a: np.ndarray
    error_coeff: float
    order: int


def compute_predictor_coeffs(past_dt: List[float], new_dt: float, order: int) -> PredictorCoeffs:
    """Compute polynomial extrapolation coefficients for given timestep history.

    The polynomial of order p through the p+1 most recent points is
    evaluated at t_{n+1} = t_n + new_dt.

    Args:
        past_dt: Past timesteps [h_{n-1}, h_{n-2}, ...], most recent first
        new_dt: Proposed timestep h_n
        order: Order of polynomial extrapolation

    Returns:
        PredictorCoeffs with coefficients and error coefficient
    """
    if order < 1:
        raise ValueError(f"Order must be >= 1, got {order}")
    if len(past_dt) < order:
        raise ValueError(f"Order {order} extrapolation needs {order} past steps, got {len(past_dt)}")

    tau = _compute_normalized_timepoints(past_dt, new_dt, order)
    a = _solve_predictor_system(tau, order)
    return PredictorCoeffs(a=a, error_coeff=_compute_error_coeff(a, tau, order), order=order)


def _compute_normalized_timepoints(past_dt: List[float], new_dt: float, order: int) -> np.ndarray:
    """Past timepoints relative to t_{n+1}, in units of new_dt.

    tau_0 = (t_n - t_{n+1}) / h_n = -1
    tau_1 = (t_{n-1} - t_{n+1}) / h_n = -(1 + h_{n-1}/h_n)
    ...
    """
    tau = np.zeros(order + 1)
    cumsum = 0.0
    for i in range(order + 1):
        tau[i] = -(1.0 + cumsum / new_dt)
        if i < len(past_dt):
            cumsum += past_dt[i]
    return tau


def _solve_predictor_system(tau: np.ndarray, order: int) -> np.ndarray:
    """Lagrange extrapolation weights at tau=0.

    sum_i a_i * tau_i^j = delta_{j,0} for j = 0..order
    """
    n = order + 1
    A = np.vander(tau, n, increasing=True).T
    b = np.zeros(n)
    b[0] = 1.0
    return np.linalg.solve(A, b)


def _compute_error_coeff(a: np.ndarray, tau: np.ndarray, order: int) -> float:
    """Error constant of the extrapolation.

    Expanding every past point around t_{n+1}:
        x_pred - x = h^(p+1) x^(p+1) / (p+1)! * sum_i a_i tau_i^(p+1)
    """
    power = order + 1
    return float(np.sum(a * tau**power) / np.prod(np.arange(1, power + 1)))


def predict(coeffs: PredictorCoeffs, history: List[np.ndarray]) -> np.ndarray:
    """Predict the state at t_{n+1}.

    Args:
        coeffs: Predictor coefficients from compute_predictor_coeffs()
        history: Past states [x_n, x_{n-1}, ...], most recent first

    Returns:
        Predicted state x_{n+1,pred}
    """
    if len(history) < len(coeffs.a):
        raise ValueError(f"Need {len(coeffs.a)} past solutions, got {len(history)}")
    pred = coeffs.a[0] * history[0]
    for i in range(1, len(coeffs.a)):
        pred = pred + coeffs.a[i] * history[i]
    return pred


def estimate_lte(
    predicted: Float[np.ndarray, "r"],
    corrected: Float[np.ndarray, "r"],
    predictor_error_coeff: float,
    integrator_error_coeff: float,
) -> Float[np.ndarray, "r"]:
    """Estimate Local Truncation Error from predictor-corrector difference.

    With x_corr - x = C_i h^(p+1) x^(p+1) and x_pred - x = C_p h^(p+1) x^(p+1)
    (Milne's device):
        LTE = C_i / (C_i - C_p) * (x_corr - x_pred)

    Args:
        predicted: Predicted state from polynomial extrapolation
        corrected: Corrected state from Newton-Raphson
        predictor_error_coeff: Error coefficient C_p from predictor
        integrator_error_coeff: Error coefficient C_i from integration method

    Returns:
        Estimated LTE vector
    """
    denom = integrator_error_coeff - predictor_error_coeff
    if abs(denom) < 1e-15:
        return corrected - predicted
    return (integrator_error_coeff / denom) * (corrected - predicted)


def lte_error_ratio(
    lte: Float[np.ndarray, "r"],
    new: Float[np.ndarray, "r"],
    prev: Float[np.ndarray, "r"],
    abstol: Float[np.ndarray, "r"],
    reltol: float,
    lte_ratio: float,
) -> float:
    """Weighted RMS of the LTE divided by the LTE ratio (<= 1 accepts).

    Each component is scaled by abstol_i + reltol * max(|new_i|, |prev_i|).
    """
    if lte.size == 0:
        return 0.0
    tol = abstol + reltol * np.maximum(np.abs(new), np.abs(prev))
    rms = float(np.sqrt(np.mean((lte / tol) ** 2)))
    return rms / lte_ratio


def compute_new_timestep(
    ratio: float,
    current_dt: float,
    order: int,
    safety: float = 0.9,
    grow_factor: float = 2.0,
    min_dt: float = 1e-18,
    max_dt: float = float("inf"),
) -> float:
    """Next timestep from the error ratio.

        h_new = h * safety * ratio^(-1/(order+1))

    growing by at most grow_factor and clipped to [min_dt, max_dt].
    """
    if ratio > 0.0:
        dt_new = current_dt * safety * ratio ** (-1.0 / (order + 1))
    else:
        dt_new = current_dt * grow_factor
    dt_new = min(dt_new, current_dt * grow_factor)
    return max(min_dt, min(max_dt, dt_new))


def propose_first_steps(
    t_stop: float,
    t_step: float = 0.0,
    h_max: float = 0.0,
) -> Tuple[float, float]:
    """Default (h_init, h_max) for a run to t_stop."""
    if h_max <= 0.0:
        h_max = t_stop / 50.0
        if t_step > 0.0:
            h_max = min(h_max, t_step)
    h_init = min(h_max, t_stop / 1000.0)
    if t_step > 0.0:
        h_init = min(h_init, t_step / 10.0)
    return h_init, h_max
