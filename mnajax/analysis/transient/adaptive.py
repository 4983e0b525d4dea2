"""Adaptive timestep transient analysis.

LTE-based adaptive timestep control with a predictor-corrector scheme:

1. Propose a step h (clipped to the next source breakpoint)
2. Stamp companion models for the chosen integration method and solve
   with Newton-Raphson, with homotopy fallback (corrector step)
3. Estimate the Local Truncation Error of the reactive state from the
   predictor-corrector difference
4. Accept (advance time, record, update history) or reject, and size the
   next step from the error ratio

The first step after the initial point and after every breakpoint uses
backward Euler, and the predictor history restarts there. LTE control is
skipped until the history holds enough points for the method's order.

A Newton failure cuts h by the redo factor. A step that must go below
h_min fails the run with TimeStepFailure carrying the recorded waveform.
"""

import logging
import time as time_module
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.dc import converge, solve_dc
from mnajax.analysis.integration import (
    IntegrationMethod,
    IntegrationState,
    apply_integration,
    compute_coefficients,
)
from mnajax.analysis.linear_solver import LinearSolver, make_solver
from mnajax.analysis.options import SimulationOptions
from mnajax.analysis.system import MNASystem
from mnajax.circuit import CurrentSource, TranCommand, VoltageSource
from mnajax.errors import ConvergenceFailure, InvalidAnalysisCommand, TimeStepFailure
from mnajax.results import AnalysisKind, RunResult, RunStatus

from .predictor import (
    compute_new_timestep,
    compute_predictor_coeffs,
    estimate_lte,
    lte_error_ratio,
    predict,
    propose_first_steps,
)

logger = logging.getLogger(__name__)


@dataclass
class AdaptiveConfig:
    """Configuration for adaptive timestep control.

    Attributes:
        method: Integration method after the first step of each segment
        lte_ratio: LTE tolerance multiplier (tran_lteratio). Higher values
            allow larger LTE before reducing timestep. Default 3.5.
        safety: Step safety factor applied to every LTE-based proposal
        redo_factor: Step cut after a failed Newton solve
        grow_factor: Maximum factor by which timestep can grow per step
        reltol: Relative tolerance for LTE comparison
        vntol: Absolute LTE tolerance for capacitor voltages
        abstol: Absolute LTE tolerance for inductor currents
        min_dt: Minimum allowed timestep
        max_dt: Maximum allowed timestep
        init_dt: Initial timestep, also used after every breakpoint
        warmup_steps: Accepted steps after a restart before LTE control
        max_steps: Guard on the number of attempted steps
    """

    method: IntegrationMethod = IntegrationMethod.TRAPEZOIDAL
    lte_ratio: float = 3.5
    safety: float = 0.9
    redo_factor: float = 8.0
    grow_factor: float = 2.0
    reltol: float = 1e-3
    vntol: float = 1e-6
    abstol: float = 1e-12
    min_dt: float = 1e-18
    max_dt: float = float("inf")
    init_dt: float = 1e-9
    warmup_steps: int = 2
    max_steps: int = 200000

    @classmethod
    def from_options(cls, options: SimulationOptions, command: TranCommand) -> "AdaptiveConfig":
        """Step bounds from the command and options, derived from t_stop when unset."""
        h_max_cmd = command.h_max if command.h_max is not None else options.get("tran_hmax", 0.0)
        h_init, h_max = propose_first_steps(command.t_stop, command.t_step or 0.0, h_max_cmd)
        if options.tran_hinit is not None:
            h_init = min(options.tran_hinit, h_max)
        h_min = options.get("tran_hmin", command.t_stop * 1e-9)
        return cls(
            method=options.tran_method,
            lte_ratio=options.tran_lteratio,
            safety=options.tran_fs,
            redo_factor=options.tran_redofactor,
            grow_factor=options.tran_grow_factor,
            reltol=options.get("tran_reltol", options.reltol),
            vntol=options.vntol,
            abstol=options.get("tran_abstol", options.abstol),
            min_dt=h_min,
            max_dt=h_max,
            init_dt=max(h_init, h_min),
            warmup_steps=options.tran_warmup_steps,
            max_steps=options.tran_max_steps,
        )


@dataclass
class TransientHistory:
    """Recent accepted reactive states for the predictor, most recent first."""

    times: List[float] = field(default_factory=list)
    states: List[np.ndarray] = field(default_factory=list)
    max_depth: int = 3

    def push(self, t: float, state: np.ndarray):
        self.times.insert(0, t)
        self.states.insert(0, state)
        del self.times[self.max_depth :]
        del self.states[self.max_depth :]

    def restart(self, t: float, state: np.ndarray):
        self.times = [t]
        self.states = [state]

    @property
    def count(self) -> int:
        return len(self.times)

    def past_dt(self) -> List[float]:
        return [self.times[i] - self.times[i + 1] for i in range(len(self.times) - 1)]


def collect_breakpoints(system: MNASystem, t_stop: float) -> List[float]:
    """Sorted source-waveform breakpoints in (0, t_stop], always ending at t_stop."""
    points = set()
    for dev in system.circuit.devices:
        if isinstance(dev, (VoltageSource, CurrentSource)) and dev.waveform is not None:
            points.update(t for t in dev.waveform.breakpoints(t_stop) if 0.0 < t < t_stop)
    return sorted(points) + [t_stop]


def run_transient(
    system: MNASystem,
    command: TranCommand,
    options: Optional[SimulationOptions] = None,
    solver: Optional[LinearSolver] = None,
) -> RunResult:
    """Run adaptive-timestep transient analysis from 0 to command.t_stop.

    Args:
        system: Validated MNA system
        command: Transient command (stop time, step hints, uic)
        options: Simulation options
        solver: Linear solver backend

    Returns:
        RunResult with the waveform at every accepted point with t >= t_start

    Raises:
        ConvergenceFailure: the initial operating point could not be found
        TimeStepFailure: the step fell below h_min; ``partial`` holds the
            waveform recorded so far
    """
    if options is None:
        options = SimulationOptions()
    if solver is None:
        solver = make_solver(options.solver, options.min_pivot_ratio)
    if not command.t_stop > 0.0:
        raise InvalidAnalysisCommand(f"Transient t_stop must be positive, got {command.t_stop}")

    config = AdaptiveConfig.from_options(options, command)
    t_stop = command.t_stop
    breakpoints = collect_breakpoints(system, t_stop)
    scales = system.reactive_scales()
    lte_abstol = system.reactive_abstol(config.vntol, config.abstol)
    builder = system.new_builder()
    wall_start = time_module.perf_counter()

    logger.info(
        f"Transient: t_stop={t_stop:.3e}, method={config.method.value}, "
        f"h_init={config.init_dt:.3e}, h_max={config.max_dt:.3e}, {len(breakpoints)} breakpoints"
    )

    # Init: operating point, or zero state with device ic values
    if command.uic:
        x, states = system.initial_state()
        op_iterations = 0
        charges = scales * states
    else:
        op = solve_dc(system, options, solver, time=0.0)
        x = op.x
        states = system.reactive_states(x)
        op_iterations = op.iterations
        charges = system.charges(x)

    istate = IntegrationState(Q_prev=charges, dQdt_prev=np.zeros_like(states))
    history = TransientHistory()
    history.restart(0.0, states)

    times: List[float] = []
    values: List[np.ndarray] = []
    iterations: List[int] = []
    continuation: List[Optional[str]] = []
    step_sizes: List[float] = []
    stats: Dict[str, Any] = {"accepted_steps": 0, "rejected_steps": 0, "newton_failures": 0}

    def record(t: float, x_t: np.ndarray, iters: int, method: Optional[str]):
        if t >= command.t_start - 1e-12 * t_stop:
            times.append(t)
            values.append(x_t.copy())
            iterations.append(iters)
            continuation.append(method)

    def build_result(status: RunStatus) -> RunResult:
        stats["step_sizes"] = list(step_sizes)
        stats["min_step"] = min(step_sizes) if step_sizes else 0.0
        stats["max_step"] = max(step_sizes) if step_sizes else 0.0
        stats["wall_time"] = time_module.perf_counter() - wall_start
        return RunResult(
            analysis=AnalysisKind.TRAN,
            unknowns=system.layout.unknown_names(),
            node_names=system.circuit.nodes,
            values=np.array(values).reshape(len(values), system.size),
            axis=np.array(times, dtype=np.float64),
            status=status,
            iterations=list(iterations),
            continuation=list(continuation),
            stats=dict(stats),
        )

    def fail(message: str, t: float, h: float):
        logger.info(f"Transient: {message}")
        raise TimeStepFailure(message, time=t, step=h, partial=build_result(RunStatus.FAILED))

    record(0.0, x, op_iterations, None)

    t = 0.0
    h = config.init_dt
    h_prev: Optional[float] = None
    restart = True
    steps_since_restart = 0
    bp_index = 0
    attempts = 0
    span_eps = 1e-12 * t_stop

    while t < t_stop - span_eps:
        attempts += 1
        if attempts > config.max_steps:
            fail(f"exceeded {config.max_steps} attempted steps at t={t:.6e}", t, h)

        # Propose
        while breakpoints[bp_index] <= t + span_eps:
            bp_index += 1
        next_bp = breakpoints[bp_index]
        h = min(h, config.max_dt)
        remaining = next_bp - t
        hit_breakpoint = h >= remaining - config.min_dt
        if hit_breakpoint:
            h = remaining

        method = IntegrationMethod.BACKWARD_EULER if restart else config.method
        coeffs = compute_coefficients(method, h, h_prev)
        ctx = AnalysisContext.transient(
            time=t + h,
            time_step=h,
            coeffs=coeffs,
            history=istate.history_term(coeffs),
            reactive_index=system.reactive_index,
            temperature=options.temperature,
            gmin=options.gmin,
        )

        # Solve
        try:
            sol = converge(system, ctx, x, options, solver, builder)
        except ConvergenceFailure as e:
            stats["newton_failures"] += 1
            if h <= config.min_dt * (1.0 + 1e-9):
                fail(f"Newton failed at t={t + h:.6e} with h at h_min ({e})", t, h)
            h = max(h / config.redo_factor, config.min_dt)
            logger.debug(f"Transient: Newton failed at t={t + h:.6e}, retrying with h={h:.3e}")
            continue

        # Evaluate
        new_states = system.reactive_states(sol.x)
        order = coeffs.order
        h_next = h
        if steps_since_restart >= config.warmup_steps and history.count >= order + 1 and new_states.size:
            pc = compute_predictor_coeffs(history.past_dt(), h, order)
            predicted = predict(pc, history.states)
            lte = estimate_lte(predicted, new_states, pc.error_coeff, coeffs.error_coeff)
            ratio = lte_error_ratio(lte, new_states, history.states[0], lte_abstol, config.reltol, config.lte_ratio)
            h_next = compute_new_timestep(
                ratio, h, order, config.safety, config.grow_factor, config.min_dt, config.max_dt
            )
            if ratio > 1.0:
                stats["rejected_steps"] += 1
                if h <= config.min_dt * (1.0 + 1e-9):
                    fail(f"LTE ratio {ratio:.3g} at t={t + h:.6e} with h at h_min", t, h)
                logger.debug(f"Transient: reject t={t + h:.6e} h={h:.3e} ratio={ratio:.3g}")
                h = h_next
                continue
        elif not new_states.size:
            h_next = min(h * config.grow_factor, config.max_dt)

        # Accept
        Q_new = scales * new_states
        dQdt_new = apply_integration(Q_new, istate.Q_prev, coeffs, istate.Q_prev2, istate.dQdt_prev)
        istate = istate.update(Q_new, dQdt_new)
        t = next_bp if hit_breakpoint else t + h
        x = sol.x
        h_prev = h
        step_sizes.append(h)
        stats["accepted_steps"] += 1
        record(t, x, sol.iterations, sol.continuation)
        logger.debug(f"Transient: accept t={t:.6e} h={h:.3e} ({method.value}, {sol.iterations} iters)")

        if hit_breakpoint:
            history.restart(t, new_states)
            restart = True
            steps_since_restart = 0
            h = min(h_next, config.init_dt)
        else:
            history.push(t, new_states)
            restart = False
            steps_since_restart += 1
            h = h_next

    logger.info(
        f"Transient: complete, {stats['accepted_steps']} accepted, "
        f"{stats['rejected_steps']} rejected, {stats['newton_failures']} Newton failures"
    )
    return build_result(RunStatus.CONVERGED)
