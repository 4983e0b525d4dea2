"""Homotopy algorithms for DC operating point convergence.

Continuation methods that help Newton-Raphson converge for difficult
circuits (floating nodes, strongly nonlinear feedback). Each method solves
a sequence of easier problems, warm-starting every level from the last
converged solution.

The default homotopy chain is: gshunt -> src
- gshunt: Shunt conductance from every node to ground, stepped down
- gdev: Extra gmin in parallel with every nonlinear junction, stepped down
- src: Source stepping from 0 to 100% (with gmin fallback at factor 0)

All methods call ``nr_solve(x_init, source_scale, gshunt, gdev)`` and keep
their level and best solution in explicit loop state.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from mnajax.analysis.solver import NRResult

logger = logging.getLogger(__name__)

HOMOTOPY_METHODS = ("gshunt", "gdev", "src")

NRSolveFn = Callable[[np.ndarray, float, float, float], NRResult]


@dataclass
class HomotopyConfig:
    """Configuration for homotopy algorithms.

    The gmin schedule starts at gmin_start and divides by gmin_factor
    until gmin_start / gmin_factor**gmin_steps, adapting the factor when
    Newton struggles.
    """

    # GMIN stepping parameters (gdev/gshunt modes)
    gmin_start: float = 1e-3
    gmin_factor: float = 10.0
    gmin_steps: int = 9
    gmin_factor_min: float = 1.1
    gmin_max: float = 1.0
    gmin_max_steps: int = 100

    # Source stepping parameters
    source_steps: int = 10
    source_step_min: float = 1e-3
    source_scale: float = 2.0
    source_max_steps: int = 100

    chain: Tuple[str, ...] = ("gshunt", "src")

    # Used to judge how hard a level was
    max_iterations: int = 100

    # Debug level (0=silent, 1=progress, 2=verbose)
    debug: int = 0

    @property
    def gmin_target(self) -> float:
        return self.gmin_start / self.gmin_factor**self.gmin_steps


@dataclass
class HomotopyResult:
    """Result from a homotopy algorithm."""

    converged: bool
    x: np.ndarray
    method: str = ""
    iterations: int = 0
    homotopy_steps: int = 0
    final_gmin: float = 0.0
    final_source_scale: float = 1.0
    residual_norm: float = float("inf")


def _log(config: HomotopyConfig, level: int, msg: str):
    """Log at INFO for progress (level 1) and DEBUG for detail (level 2)."""
    if config.debug >= level:
        logger.info(msg)
    else:
        logger.debug(msg)


def _solve_at(nr_solve: NRSolveFn, x: np.ndarray, source_scale: float, level: float, mode: str) -> NRResult:
    if mode == "gdev":
        return nr_solve(x, source_scale, 0.0, level)
    return nr_solve(x, source_scale, level, 0.0)


def gmin_stepping(
    nr_solve: NRSolveFn,
    x_init: np.ndarray,
    config: HomotopyConfig,
    source_scale: float = 1.0,
    mode: str = "gshunt",
) -> HomotopyResult:
    """Adaptive gmin stepping.

    Gradually reduces the extra conductance from gmin_start to the target,
    with adaptive factor adjustment based on convergence behavior, then
    removes it with a final solve. If that final solve fails the solution
    at the smallest level reached is returned as converged and its
    conductance is reported in ``final_gmin``.

    Args:
        nr_solve: Newton solve at (x_init, source_scale, gshunt, gdev)
        x_init: Initial guess
        config: Homotopy configuration
        source_scale: Fixed source scaling factor for this stepping
        mode: "gshunt" (node shunt to ground) or "gdev" (junction gmin)

    Returns:
        HomotopyResult with final solution and convergence info
    """
    at_gmin = config.gmin_start
    target_gmin = config.gmin_target
    factor = config.gmin_factor

    x = x_init
    x_good = x_init
    good_gmin = at_gmin
    good_residual = float("inf")
    continuation = False
    total_iterations = 0
    homotopy_steps = 0

    _log(config, 1, f"Homotopy: Starting {mode} stepping from {at_gmin:.2e}")

    for step in range(config.gmin_max_steps):
        homotopy_steps += 1
        result = _solve_at(nr_solve, x, source_scale, at_gmin, mode)
        total_iterations += result.iterations

        if result.converged:
            continuation = True
            x_good = result.x
            good_gmin = at_gmin
            good_residual = result.residual_norm

            _log(
                config,
                2,
                f"Homotopy: {mode}={at_gmin:.2e}, step {homotopy_steps} converged in {result.iterations} iterations",
            )

            if at_gmin <= target_gmin * (1.0 + 1e-9):
                break

            # Adaptive factor adjustment
            if result.iterations > config.max_iterations * 3 // 4:
                factor = max(factor**0.5, config.gmin_factor_min)

            if at_gmin / factor < target_gmin:
                at_gmin = target_gmin
            else:
                at_gmin = at_gmin / factor

            x = result.x
        else:
            _log(
                config,
                2,
                f"Homotopy: {mode}={at_gmin:.2e}, step {homotopy_steps} failed after {result.iterations} iterations",
            )

            if not continuation:
                # No good solution yet, increase gmin
                at_gmin = at_gmin * factor
                if at_gmin > config.gmin_max:
                    _log(config, 1, f"Homotopy: {mode} stepping failed (gmin too large)")
                    return HomotopyResult(
                        converged=False,
                        x=x_init,
                        method=f"{mode}_stepping",
                        iterations=total_iterations,
                        homotopy_steps=homotopy_steps,
                        final_gmin=at_gmin,
                        final_source_scale=source_scale,
                    )
            else:
                # Have a good solution, decrease factor and backtrack
                factor = factor**0.25
                if factor < config.gmin_factor_min:
                    _log(config, 1, f"Homotopy: {mode} stepping failed (factor exhausted)")
                    break
                x = x_good
                at_gmin = good_gmin / factor

    if not continuation or good_gmin > target_gmin * (1.0 + 1e-9):
        return HomotopyResult(
            converged=False,
            x=x_good,
            method=f"{mode}_stepping",
            iterations=total_iterations,
            homotopy_steps=homotopy_steps,
            final_gmin=good_gmin,
            final_source_scale=source_scale,
            residual_norm=good_residual,
        )

    # Final solve without the extra conductance
    final = _solve_at(nr_solve, x_good, source_scale, 0.0, mode)
    total_iterations += final.iterations
    homotopy_steps += 1
    _log(
        config,
        1,
        f"Homotopy: {mode} final step {'converged' if final.converged else 'failed'} in {final.iterations} iterations",
    )

    if final.converged:
        return HomotopyResult(
            converged=True,
            x=final.x,
            method=f"{mode}_stepping",
            iterations=total_iterations,
            homotopy_steps=homotopy_steps,
            final_gmin=0.0,
            final_source_scale=source_scale,
            residual_norm=final.residual_norm,
        )

    logger.warning(f"Homotopy: {mode} could not be removed; solution keeps {mode}={good_gmin:.2e}")
    return HomotopyResult(
        converged=True,
        x=x_good,
        method=f"{mode}_stepping",
        iterations=total_iterations,
        homotopy_steps=homotopy_steps,
        final_gmin=good_gmin,
        final_source_scale=source_scale,
        residual_norm=good_residual,
    )


def source_stepping(
    nr_solve: NRSolveFn,
    x_init: np.ndarray,
    config: HomotopyConfig,
) -> HomotopyResult:
    """Adaptive source stepping with gmin fallback.

    Ramps every independent source from 0 to 100%. If the initial solve
    at factor 0 fails, gdev and then gshunt stepping are tried there first.

    Args:
        nr_solve: Newton solve at (x_init, source_scale, gshunt, gdev)
        x_init: Initial guess
        config: Homotopy configuration

    Returns:
        HomotopyResult with final solution and convergence info
    """
    raise_step = 1.0 / config.source_steps
    good_factor = 0.0
    total_iterations = 0
    homotopy_steps = 0
    residual = float("inf")

    _log(config, 1, "Homotopy: Starting source stepping")

    # Initial solve at source_factor=0
    initial = nr_solve(x_init, 0.0, 0.0, 0.0)
    total_iterations += initial.iterations
    homotopy_steps += 1

    _log(
        config,
        2,
        f"Homotopy: srcfact=0.00, initial solve {'converged' if initial.converged else 'failed'} "
        f"in {initial.iterations} iterations",
    )

    if initial.converged:
        x_good = initial.x
    else:
        fallback = None
        for mode in ("gdev", "gshunt"):
            _log(config, 1, f"Homotopy: Trying {mode} stepping at source_factor=0")
            fallback = gmin_stepping(nr_solve, x_init, config, source_scale=0.0, mode=mode)
            total_iterations += fallback.iterations
            homotopy_steps += fallback.homotopy_steps
            if fallback.converged:
                break

        if not fallback.converged:
            _log(config, 1, "Homotopy: Source stepping failed (could not solve at source=0)")
            return HomotopyResult(
                converged=False,
                x=x_init,
                method="source_stepping",
                iterations=total_iterations,
                homotopy_steps=homotopy_steps,
                final_source_scale=0.0,
                residual_norm=fallback.residual_norm,
            )
        x_good = fallback.x

    for step in range(config.source_max_steps):
        new_factor = min(good_factor + raise_step, 1.0)
        result = nr_solve(x_good, new_factor, 0.0, 0.0)
        total_iterations += result.iterations
        homotopy_steps += 1
        residual = result.residual_norm

        if result.converged:
            x_good = result.x
            good_factor = new_factor

            _log(
                config,
                2,
                f"Homotopy: srcfact={new_factor:.3f}, step {homotopy_steps} "
                f"converged in {result.iterations} iterations",
            )

            if good_factor >= 1.0:
                _log(config, 1, "Homotopy: Source stepping succeeded")
                break

            # Adaptive step adjustment
            if result.iterations <= config.max_iterations // 4:
                raise_step *= config.source_scale
            elif result.iterations > config.max_iterations * 3 // 4:
                raise_step = max(raise_step / config.source_scale, config.source_step_min)
        else:
            _log(
                config,
                2,
                f"Homotopy: srcfact={new_factor:.3f}, step {homotopy_steps} "
                f"failed after {result.iterations} iterations",
            )

            # Not converged, reduce step and retry
            raise_step *= 0.5
            if raise_step < config.source_step_min:
                _log(config, 1, "Homotopy: Source stepping failed (step too small)")
                break

    return HomotopyResult(
        converged=good_factor >= 1.0,
        x=x_good,
        method="source_stepping",
        iterations=total_iterations,
        homotopy_steps=homotopy_steps,
        final_source_scale=good_factor,
        residual_norm=residual,
    )


def run_homotopy_chain(
    nr_solve: NRSolveFn,
    x_init: np.ndarray,
    config: HomotopyConfig,
) -> HomotopyResult:
    """Run the homotopy chain, trying each algorithm in turn until one succeeds.

    Args:
        nr_solve: Newton solve at (x_init, source_scale, gshunt, gdev)
        x_init: Initial guess
        config: Homotopy configuration

    Returns:
        HomotopyResult with final solution and convergence info
    """
    x = x_init
    total_iterations = 0
    total_steps = 0
    last: Optional[HomotopyResult] = None

    _log(config, 1, f"Homotopy: Running chain {config.chain}")

    for algorithm in config.chain:
        if algorithm in ("gshunt", "gdev"):
            result = gmin_stepping(nr_solve, x, config, source_scale=1.0, mode=algorithm)
        elif algorithm == "src":
            result = source_stepping(nr_solve, x, config)
        else:
            raise ValueError(f"Unknown homotopy algorithm '{algorithm}'. Supported: {HOMOTOPY_METHODS}")

        total_iterations += result.iterations
        total_steps += result.homotopy_steps
        last = result

        if result.converged:
            _log(config, 1, f"Homotopy: Chain succeeded with {algorithm}")
            return HomotopyResult(
                converged=True,
                x=result.x,
                method=algorithm,
                iterations=total_iterations,
                homotopy_steps=total_steps,
                final_gmin=result.final_gmin,
                final_source_scale=result.final_source_scale,
                residual_norm=result.residual_norm,
            )

        # Use best solution from failed attempt as next starting point
        x = result.x

    _log(config, 1, "Homotopy: Chain exhausted, all algorithms failed")
    return HomotopyResult(
        converged=False,
        x=x,
        method="chain_failed",
        iterations=total_iterations,
        homotopy_steps=total_steps,
        residual_norm=last.residual_norm if last is not None else float("inf"),
    )
