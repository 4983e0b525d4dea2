"""Integration methods for transient analysis.

Supports multiple numerical integration methods for computing the time
derivative of reactive state (capacitor charge, inductor flux):
- Backward Euler (be): First-order implicit, unconditionally stable
- Trapezoidal (trap): Second-order A-stable, good for oscillatory circuits
- Gear2/BDF2: Second-order L-stable, good for stiff problems

The integration formula computes dQ/dt from charge history:
    dQ/dt = c0 * Q + c1 * Q_prev + c2 * Q_prev2 + d1 * dQdt_prev

Where:
    c0: Leading coefficient for current charge
    c1, c2: Coefficients for past charges
    d1: Coefficient for the past derivative (only for trap)

For a capacitor Q = C*v and dQ/dt is its current; for an inductor Q = L*i
is the flux and dQ/dt is its voltage.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

import numpy as np


class IntegrationMethod(Enum):
    """Supported integration methods for transient analysis."""

    BACKWARD_EULER = "be"
    TRAPEZOIDAL = "trap"
    GEAR2 = "gear2"

    @classmethod
    def from_string(cls, s: str) -> "IntegrationMethod":
        """Parse integration method from string.

        Handles various aliases used in SPICE simulators.
        """
        s_lower = s.lower().strip().strip("\"'")
        aliases = {
            "be": cls.BACKWARD_EULER,
            "euler": cls.BACKWARD_EULER,
            "backward_euler": cls.BACKWARD_EULER,
            "trap": cls.TRAPEZOIDAL,
            "trapezoidal": cls.TRAPEZOIDAL,
            "am2": cls.TRAPEZOIDAL,  # Adams-Moulton order 2
            "gear2": cls.GEAR2,
            "gear": cls.GEAR2,
            "bdf2": cls.GEAR2,
            "bdf": cls.GEAR2,
        }
        if s_lower in aliases:
            return aliases[s_lower]
        raise ValueError(f"Unknown integration method: {s}. Supported: be, trap, gear2")

    @property
    def order(self) -> int:
        return 1 if self == IntegrationMethod.BACKWARD_EULER else 2


class IntegrationCoeffs(NamedTuple):
    """Integration coefficients for a specific method and timestep.

    Where coefficients depend on the method:
        BE:    dQ/dt = (Q_new - Q_prev) / dt
               c0 = 1/dt, c1 = -1/dt, c2 = 0, d1 = 0
               error_coeff = 1/2

        Trap:  dQ/dt = 2/dt * (Q_new - Q_prev) - dQdt_prev
               c0 = 2/dt, c1 = -2/dt, c2 = 0, d1 = -1
               error_coeff = 1/12

        Gear2: variable-step BDF2 with w = dt / dt_prev
               c0 = (1 + 2w) / (dt (1 + w)), c1 = -(1 + w) / dt,
               c2 = w^2 / (dt (1 + w)), d1 = 0
               error_coeff = 2/9 (uniform step)

    The error_coeff is the magnitude of the leading local truncation error
    term, in units of dt^(order+1) * Q^(order+1), used for LTE estimation.
    """

    c0: float
    c1: float
    c2: float
    d1: float
    order: int
    error_coeff: float = 0.5


def compute_coefficients(
    method: IntegrationMethod, dt: float, dt_prev: Optional[float] = None
) -> IntegrationCoeffs:
    """Compute integration coefficients for a given method and timestep.

    Args:
        method: Integration method to use
        dt: Timestep size
        dt_prev: Previous timestep (Gear2 only; defaults to dt)

    Returns:
        IntegrationCoeffs with all coefficients
    """
    inv_dt = 1.0 / dt

    if method == IntegrationMethod.BACKWARD_EULER:
        return IntegrationCoeffs(c0=inv_dt, c1=-inv_dt, c2=0.0, d1=0.0, order=1, error_coeff=0.5)
    elif method == IntegrationMethod.TRAPEZOIDAL:
        return IntegrationCoeffs(
            c0=2.0 * inv_dt,
            c1=-2.0 * inv_dt,
            c2=0.0,
            d1=-1.0,
            order=2,
            error_coeff=1.0 / 12.0,
        )
    elif method == IntegrationMethod.GEAR2:
        w = 1.0 if dt_prev is None else dt / dt_prev
        return IntegrationCoeffs(
            c0=(1.0 + 2.0 * w) / (1.0 + w) * inv_dt,
            c1=-(1.0 + w) * inv_dt,
            c2=w * w / (1.0 + w) * inv_dt,
            d1=0.0,
            order=2,
            error_coeff=2.0 / 9.0,
        )
    else:
        raise ValueError(f"Unknown integration method: {method}")


def apply_integration(
    Q_new: np.ndarray,
    Q_prev: np.ndarray,
    coeffs: IntegrationCoeffs,
    Q_prev2: Optional[np.ndarray] = None,
    dQdt_prev: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Apply integration formula to compute dQ/dt.

    With Q_new = 0 this gives the history term that companion models
    stamp as an equivalent source.
    """
    dQdt = coeffs.c0 * Q_new + coeffs.c1 * Q_prev

    if coeffs.c2 != 0.0 and Q_prev2 is not None:
        dQdt = dQdt + coeffs.c2 * Q_prev2

    if coeffs.d1 != 0.0 and dQdt_prev is not None:
        dQdt = dQdt + coeffs.d1 * dQdt_prev

    return dQdt


@dataclass
class IntegrationState:
    """Charge and derivative history of every reactive state.

    All three histories are kept regardless of method so a step taken with
    one method can be followed by a step with another.
    """

    Q_prev: np.ndarray
    Q_prev2: Optional[np.ndarray] = None
    dQdt_prev: Optional[np.ndarray] = None

    def update(self, Q_new: np.ndarray, dQdt_new: np.ndarray) -> "IntegrationState":
        """State after a successful timestep."""
        return IntegrationState(Q_prev=Q_new, Q_prev2=self.Q_prev, dQdt_prev=dQdt_new)

    def history_term(self, coeffs: IntegrationCoeffs) -> np.ndarray:
        """dQ/dt contribution of past states for the given coefficients."""
        dqdt_prev = self.dQdt_prev if self.dQdt_prev is not None else np.zeros_like(self.Q_prev)
        return apply_integration(np.zeros_like(self.Q_prev), self.Q_prev, coeffs, self.Q_prev2, dqdt_prev)
