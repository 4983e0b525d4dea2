"""AC (small-signal) analysis for mnajax

1. Compute DC operating point x0
2. Linearize at x0 once: G = resistive matrix, C = reactive matrix
   (nonlinear devices stamp their conductances at x0, with no ieq)
3. For each frequency f:
   - omega = 2*pi*f
   - A(omega) = G + j*omega*C on the fixed slot pattern
   - U = AC phasors of the independent sources (DC-only sources are zero)
   - Solve A(omega) X = U for the complex unknowns

The system is linear at a fixed frequency, so there is no Newton
iteration and no continuation: a singular or ill-conditioned matrix
fails the run.

Frequency sweep modes:
- 'lin': exactly ``points`` frequencies evenly spaced over [start, stop]
- 'dec': ``points`` frequencies per decade, start * 10**(i/points)
- 'oct': ``points`` frequencies per octave, start * 2**(i/points)
- 'list': explicit frequency values
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.dc import solve_dc
from mnajax.analysis.linear_solver import LinearSolver, make_solver
from mnajax.analysis.mna_builder import MNABuilder
from mnajax.analysis.options import SimulationOptions
from mnajax.analysis.system import MNASystem
from mnajax.circuit import ACCommand
from mnajax.errors import InvalidAnalysisCommand
from mnajax.results import AnalysisKind, RunResult

logger = logging.getLogger(__name__)


@dataclass
class ACConfig:
    """AC analysis configuration.

    Attributes:
        freq_start: Starting frequency in Hz
        freq_stop: Ending frequency in Hz
        mode: Sweep mode - 'lin', 'dec', 'oct', or 'list'
        points: Points per decade/octave, or total points for 'lin'
        values: Explicit frequency list (for 'list' mode)
    """

    freq_start: float = 1.0
    freq_stop: float = 1e6
    mode: str = "dec"
    points: int = 10
    values: Optional[List[float]] = None

    @classmethod
    def from_command(cls, command: ACCommand) -> "ACConfig":
        return cls(
            freq_start=command.freq_start,
            freq_stop=command.freq_stop,
            mode=command.mode.lower(),
            points=command.points,
        )


def generate_frequencies(config: ACConfig) -> np.ndarray:
    """Generate frequency sweep array based on configuration.

    Args:
        config: AC analysis configuration

    Returns:
        Array of frequencies in Hz
    """
    if config.mode == "list":
        if not config.values:
            raise InvalidAnalysisCommand("'values' must be provided for 'list' mode")
        return np.array(config.values, dtype=np.float64)

    if config.points < 1:
        raise InvalidAnalysisCommand(f"AC sweep needs at least one point, got {config.points}")
    if config.freq_stop < config.freq_start:
        raise InvalidAnalysisCommand(f"AC sweep stop {config.freq_stop} is below start {config.freq_start}")

    if config.mode == "lin":
        if config.freq_start < 0.0:
            raise InvalidAnalysisCommand(f"Linear AC sweep needs a non-negative start, got {config.freq_start}")
        return np.linspace(config.freq_start, config.freq_stop, config.points)

    if config.mode in ("dec", "oct"):
        if config.freq_start <= 0.0:
            raise InvalidAnalysisCommand(f"Logarithmic AC sweep needs a positive start, got {config.freq_start}")
        base = 10.0 if config.mode == "dec" else 2.0
        span = math.log(config.freq_stop / config.freq_start, base)
        n_points = int(math.floor(span * config.points + 1e-9)) + 1
        exponents = np.arange(n_points, dtype=np.float64) / config.points
        return config.freq_start * np.power(base, exponents)

    raise InvalidAnalysisCommand(f"Unknown sweep mode: {config.mode}")


def solve_ac_single_frequency(solver: LinearSolver, builder: MNABuilder, freq: float) -> np.ndarray:
    """Solve the linearized complex system at one frequency.

    Raises:
        SingularMatrix, IllConditioned: the system cannot be solved
    """
    return solver.solve_system(builder, omega=2.0 * math.pi * freq)


def run_ac(
    system: MNASystem,
    config: ACConfig,
    options: Optional[SimulationOptions] = None,
    solver: Optional[LinearSolver] = None,
    x_op: Optional[np.ndarray] = None,
) -> RunResult:
    """Run AC frequency sweep analysis.

    Args:
        system: Validated MNA system
        config: Frequency sweep
        options: Simulation options
        solver: Linear solver backend
        x_op: Operating point to linearize at (computed if None)

    Returns:
        RunResult with complex values, mag_db and phase_deg

    Raises:
        ConvergenceFailure: the operating point could not be found
        LinearSolverError: the AC system is singular at some frequency
    """
    if options is None:
        options = SimulationOptions()
    if solver is None:
        solver = make_solver(options.solver, options.min_pivot_ratio)

    freqs = generate_frequencies(config)
    logger.info(f"AC: {len(freqs)} frequencies from {freqs[0]:.3g} Hz to {freqs[-1]:.3g} Hz")

    iterations = []
    continuation = []
    final_gmin = 0.0
    if x_op is None:
        op = solve_dc(system, options, solver)
        x_op = op.x
        iterations.append(op.iterations)
        continuation.append(op.continuation)
        final_gmin = op.final_gmin

    # Linearize once at the operating point
    builder = system.new_builder(complex_rhs=True)
    ctx = AnalysisContext.ac(temperature=options.temperature, gmin=options.gmin)
    system.assemble(builder, x_op, ctx)

    values = np.zeros((len(freqs), system.size), dtype=np.complex128)
    for i, freq in enumerate(freqs):
        values[i] = solve_ac_single_frequency(solver, builder, float(freq))

    magnitude = np.abs(values)
    with np.errstate(divide="ignore"):
        mag_db = 20.0 * np.log10(magnitude)
    phase_deg = np.degrees(np.angle(values))

    logger.info("AC: complete")
    return RunResult(
        analysis=AnalysisKind.AC,
        unknowns=system.layout.unknown_names(),
        node_names=system.circuit.nodes,
        values=values,
        axis=freqs,
        iterations=iterations,
        continuation=continuation,
        final_gmin=final_gmin,
        mag_db=mag_db,
        phase_deg=phase_deg,
        stats={"operating_point": x_op.tolist()},
    )
