"""DC operating point and DC sweep analysis

The operating point is a Newton solve from a zero (or caller-supplied)
initial guess. When plain Newton fails the homotopy chain (gmin stepping,
source stepping) takes over; if the chain is exhausted the run fails with
ConvergenceFailure carrying the last iterate.

A DC sweep forces the value of one independent source at each point and
re-solves, seeding every point from the previous converged solution and
the first point from the operating point. Sweep values are computed as
start + i*step, never by repeated addition.
"""

import logging
import math
from typing import Mapping, NamedTuple, Optional

import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.homotopy import run_homotopy_chain
from mnajax.analysis.linear_solver import LinearSolver, make_solver
from mnajax.analysis.mna_builder import MNABuilder
from mnajax.analysis.options import SimulationOptions
from mnajax.analysis.solver import NRResult, newton_solve
from mnajax.analysis.system import MNASystem
from mnajax.circuit import CurrentSource, DCSweepCommand, VoltageSource
from mnajax.errors import ConvergenceFailure, InvalidAnalysisCommand, InvalidDeviceParameter
from mnajax.results import AnalysisKind, RunResult

logger = logging.getLogger(__name__)


class DCSolution(NamedTuple):
    """Converged solution of one (possibly continued) Newton solve.

    Attributes:
        x: Solution vector
        iterations: Newton iterations, including every continuation level
        residual_norm: Final residual norm
        continuation: Homotopy method that converged (None for plain Newton)
        final_gmin: Conductance left in the solution by gmin stepping
    """

    x: np.ndarray
    iterations: int
    residual_norm: float
    continuation: Optional[str] = None
    final_gmin: float = 0.0


def converge(
    system: MNASystem,
    ctx: AnalysisContext,
    x_init: np.ndarray,
    options: SimulationOptions,
    solver: LinearSolver,
    builder: Optional[MNABuilder] = None,
) -> DCSolution:
    """Newton solve at ctx with homotopy fallback.

    Raises:
        ConvergenceFailure: plain Newton and every homotopy method failed
    """
    if builder is None:
        builder = system.new_builder()
    nr_config = options.nr_config()
    abstol_vec = system.layout.abstol_vector(options.vntol, options.abstol)

    def solve_in(solve_ctx: AnalysisContext, x0: np.ndarray) -> NRResult:
        return newton_solve(
            lambda x: system.assemble(builder, x, solve_ctx),
            x0,
            config=nr_config,
            solver=solver,
            abstol_vec=abstol_vec,
            linear=system.is_linear,
        )

    result = solve_in(ctx, x_init)
    if result.converged:
        return DCSolution(x=result.x, iterations=result.iterations, residual_norm=result.residual_norm)

    reason = f"linear solve failed ({result.error})" if result.error is not None else "iteration limit"
    logger.info(f"Newton failed after {result.iterations} iterations: {reason}; trying homotopy")

    def nr_solve(x0: np.ndarray, source_scale: float, gshunt: float, gdev: float) -> NRResult:
        level_ctx = ctx.with_continuation(
            source_scale=ctx.source_scale * source_scale,
            gshunt=gshunt,
            gmin=ctx.gmin + gdev,
        )
        return solve_in(level_ctx, x0)

    homotopy = run_homotopy_chain(nr_solve, x_init, options.homotopy_config())
    total_iterations = result.iterations + homotopy.iterations
    if not homotopy.converged:
        raise ConvergenceFailure(
            f"Newton and homotopy chain {tuple(options.homotopy_chain)} failed to converge",
            last_iterate=homotopy.x,
            residual=homotopy.residual_norm,
            iterations=total_iterations,
        )

    logger.info(f"Converged with {homotopy.method} after {total_iterations} total iterations")
    return DCSolution(
        x=homotopy.x,
        iterations=total_iterations,
        residual_norm=homotopy.residual_norm,
        continuation=homotopy.method,
        final_gmin=homotopy.final_gmin,
    )


def solve_dc(
    system: MNASystem,
    options: SimulationOptions,
    solver: Optional[LinearSolver] = None,
    x_init: Optional[np.ndarray] = None,
    source_values: Optional[Mapping[str, float]] = None,
    time: Optional[float] = None,
) -> DCSolution:
    """DC solution with optional source overrides or waveform time."""
    if solver is None:
        solver = make_solver(options.solver, options.min_pivot_ratio)
    if x_init is None:
        x_init = np.zeros(system.size, dtype=np.float64)
    ctx = AnalysisContext.dc(
        temperature=options.temperature,
        gmin=options.gmin,
        source_values=source_values,
        time=time,
    )
    return converge(system, ctx, x_init, options, solver)


def operating_point(
    system: MNASystem,
    options: Optional[SimulationOptions] = None,
    solver: Optional[LinearSolver] = None,
    x_init: Optional[np.ndarray] = None,
) -> RunResult:
    """DC operating point as a single-point RunResult.

    Raises:
        ConvergenceFailure: no continuation strategy converged
    """
    if options is None:
        options = SimulationOptions()
    logger.info(f"OP: {system.size} unknowns")
    sol = solve_dc(system, options, solver, x_init)

    if sol.final_gmin > 0.0:
        logger.warning(f"OP: solution keeps gmin={sol.final_gmin:.2e} from continuation")

    return RunResult(
        analysis=AnalysisKind.OP,
        unknowns=system.layout.unknown_names(),
        node_names=system.circuit.nodes,
        values=sol.x[None, :],
        axis=np.zeros(1),
        iterations=[sol.iterations],
        residual=sol.residual_norm,
        continuation=[sol.continuation],
        final_gmin=sol.final_gmin,
    )


def sweep_points(start: float, stop: float, step: float) -> np.ndarray:
    """Sweep values start + i*step from start towards stop (inclusive).

    The step's sign is taken from the sweep direction. The point count is
    floor(|stop - start| / |step| + 1e-9) + 1; start == stop gives one point.
    """
    if start == stop:
        return np.array([start], dtype=np.float64)
    if step == 0.0 or not math.isfinite(step):
        raise InvalidAnalysisCommand(f"DC sweep step must be non-zero and finite, got {step}")

    direction = 1.0 if stop > start else -1.0
    if step * direction < 0.0:
        logger.warning(f"DC sweep step {step} points away from stop; using {-step}")
    step = direction * abs(step)

    count = int(math.floor(abs(stop - start) / abs(step) + 1e-9)) + 1
    return start + np.arange(count, dtype=np.float64) * step


def dc_sweep(
    system: MNASystem,
    command: DCSweepCommand,
    options: Optional[SimulationOptions] = None,
    solver: Optional[LinearSolver] = None,
) -> RunResult:
    """Sweep the DC value of one independent source.

    Raises:
        InvalidDeviceParameter: the swept source is not an independent source
        InvalidAnalysisCommand: the sweep step is zero or not finite
        ConvergenceFailure: a sweep point failed every continuation strategy
    """
    if options is None:
        options = SimulationOptions()
    if solver is None:
        solver = make_solver(options.solver, options.min_pivot_ratio)

    try:
        swept = system.circuit.device(command.source)
    except KeyError:
        raise InvalidDeviceParameter(command.source, "source", command.source, "no such device") from None
    if not isinstance(swept, (VoltageSource, CurrentSource)):
        raise InvalidDeviceParameter(command.source, "source", type(swept).__name__, "not an independent source")

    points = sweep_points(command.start, command.stop, command.step)
    logger.info(f"DC sweep of {command.source}: {len(points)} points from {points[0]:g} to {points[-1]:g}")

    try:
        x = solve_dc(system, options, solver).x
    except ConvergenceFailure as e:
        logger.warning(f"DC sweep: operating point failed ({e}); seeding first point from zero")
        x = np.zeros(system.size, dtype=np.float64)

    builder = system.new_builder()
    values = np.zeros((len(points), system.size), dtype=np.float64)
    iterations = []
    continuation = []
    residual = 0.0
    final_gmin = 0.0

    for i, value in enumerate(points):
        ctx = AnalysisContext.dc(
            temperature=options.temperature,
            gmin=options.gmin,
            source_values={command.source: float(value)},
        )
        sol = converge(system, ctx, x, options, solver, builder)
        x = sol.x
        values[i] = x
        iterations.append(sol.iterations)
        continuation.append(sol.continuation)
        residual = max(residual, sol.residual_norm)
        final_gmin = max(final_gmin, sol.final_gmin)
        logger.debug(f"DC sweep point {i}: {command.source}={value:g}, {sol.iterations} iterations")

    return RunResult(
        analysis=AnalysisKind.DC,
        unknowns=system.layout.unknown_names(),
        node_names=system.circuit.nodes,
        values=values,
        axis=points,
        iterations=iterations,
        residual=residual,
        continuation=continuation,
        final_gmin=final_gmin,
    )
