"""Newton-Raphson solver for mnajax.

This module provides the NR iteration loop used by the DC, DC sweep and
transient engines. Assembly happens on the host (device stamps write into
an MNABuilder), so the loop is a plain Python loop around the linear
solver backend.

Each iteration solves the linearized MNA system directly for the next
iterate: stamps already place the companion current ieq = I(v) - G*v on
the right-hand side, so

    A(x_k) x_lin = b(x_k),    delta = x_lin - x_k
    x_{k+1} = x_k + step_scale * delta

Convergence is tested per component:

    |x_{k+1,i} - x_{k,i}| <= abstol_i + reltol * |x_{k+1,i}|

with abstol_i = vntol for node voltages and abstol for branch currents.
"""

import logging
from typing import Callable, NamedTuple, Optional

import numpy as np
from jaxtyping import Float

from mnajax.analysis.linear_solver import DenseSolver, LinearSolver
from mnajax.analysis.mna_builder import MNABuilder
from mnajax.errors import LinearSolverError

logger = logging.getLogger(__name__)


class NRConfig(NamedTuple):
    """Configuration for Newton-Raphson solver.

    Attributes:
        max_iterations: Maximum number of NR iterations
        vntol: Absolute tolerance for node-voltage updates (V)
        abstol: Absolute tolerance for branch-current updates (A)
        reltol: Relative tolerance for all updates
        damping: Damping factor for updates (1.0 = no damping)
        max_step: Maximum allowed change of any unknown per iteration
    """

    max_iterations: int = 100
    vntol: float = 1e-6
    abstol: float = 1e-12
    reltol: float = 1e-3
    damping: float = 1.0
    max_step: float = 2.0


class NRResult(NamedTuple):
    """Result from Newton-Raphson solver.

    Attributes:
        x: Final solution estimate
        iterations: Number of iterations performed
        converged: Whether the solver converged
        residual_norm: Max |A x - b| at the last linearization point
        error: Linear-solve failure that stopped the iteration, if any
    """

    x: Float[np.ndarray, "n"]
    iterations: int
    converged: bool
    residual_norm: float
    error: Optional[LinearSolverError] = None


def newton_solve(
    build_system_fn: Callable[[np.ndarray], MNABuilder],
    x_init: Float[np.ndarray, "n"],
    config: Optional[NRConfig] = None,
    solver: Optional[LinearSolver] = None,
    abstol_vec: Optional[Float[np.ndarray, "n"]] = None,
    linear: bool = False,
) -> NRResult:
    """Solve the circuit equations by Newton-Raphson iteration.

    Args:
        build_system_fn: Function x -> builder holding (A, b) linearized at x
        x_init: Initial guess (zero, or a previous converged point)
        config: Solver configuration (uses defaults if None)
        solver: Linear solver backend (dense if None)
        abstol_vec: Absolute tolerance per unknown (config.vntol everywhere if None)
        linear: The system does not depend on x; the first solve is exact

    Returns:
        NRResult. A linear-solve failure is reported as a non-converged
        result with ``error`` set, never raised.
    """
    if config is None:
        config = NRConfig()
    if solver is None:
        solver = DenseSolver()
    if abstol_vec is None:
        abstol_vec = np.full(x_init.shape, config.vntol)

    x = np.array(x_init, dtype=np.float64)
    residual_norm = float("inf")

    for iteration in range(1, config.max_iterations + 1):
        builder = build_system_fn(x)
        residual_norm = float(np.max(np.abs(builder.residual(x)), initial=0.0))

        try:
            x_lin = solver.solve_system(builder)
        except LinearSolverError as e:
            logger.debug(f"NR iter {iteration}: linear solve failed: {e}")
            return NRResult(x=x, iterations=iteration, converged=False, residual_norm=residual_norm, error=e)

        if linear:
            residual_norm = float(np.max(np.abs(builder.residual(x_lin)), initial=0.0))
            logger.debug(f"NR iter {iteration}: linear system solved, residual={residual_norm:.3e}")
            return NRResult(x=x_lin, iterations=iteration, converged=True, residual_norm=residual_norm)

        delta = x_lin - x

        # Apply damping and step limiting
        delta_norm = float(np.max(np.abs(delta), initial=0.0))
        step_scale = min(config.damping, config.max_step / (delta_norm + 1e-15))
        step = step_scale * delta
        x = x + step

        tol = abstol_vec + config.reltol * np.abs(x)
        converged = bool(np.all(np.abs(step) <= tol))

        logger.debug(
            f"NR iter {iteration}: max|dx|={float(np.max(np.abs(step), initial=0.0)):.3e}, "
            f"residual={residual_norm:.3e}, scale={step_scale:.3f}"
        )

        if converged:
            return NRResult(x=x, iterations=iteration, converged=True, residual_norm=residual_norm)

    return NRResult(x=x, iterations=config.max_iterations, converged=False, residual_norm=residual_norm)
