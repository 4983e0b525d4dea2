"""Exception taxonomy for mnajax.

Every failure of an analysis run is raised as a subclass of
SimulationError, scoped to the run that produced it:

- InvalidDeviceParameter: malformed or missing device parameter, detected
  before any solve attempt
- InvalidAnalysisCommand: malformed analysis command (sweep range, step,
  frequency grid or stop time)
- SingularMatrix / IllConditioned: linear-solve failure
- ConvergenceFailure: Newton and every continuation strategy exhausted
- TimeStepFailure: adaptive step fell below h_min; carries the partial
  waveform recorded so far
"""

from typing import Any, Optional

import numpy as np


class SimulationError(Exception):
    """Base class for all analysis failures."""


class InvalidDeviceParameter(SimulationError):
    """A device instance carries an invalid or missing parameter."""

    def __init__(self, device: str, parameter: str, value: Any = None, reason: str = "invalid"):
        self.device = device
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"{device}: parameter '{parameter}'={value!r} is {reason}")


class InvalidAnalysisCommand(SimulationError, ValueError):
    """An analysis command cannot be run as given."""


class LinearSolverError(SimulationError):
    """Base class for linear-solve failures."""


class SingularMatrix(LinearSolverError):
    """The system matrix is (numerically) singular."""

    def __init__(self, message: str, pivot_index: Optional[int] = None):
        self.pivot_index = pivot_index
        super().__init__(message)


class IllConditioned(LinearSolverError):
    """The factorization succeeded but the solution cannot be trusted."""

    def __init__(self, message: str, pivot_ratio: float = 0.0):
        self.pivot_ratio = pivot_ratio
        super().__init__(message)


class ConvergenceFailure(SimulationError):
    """Newton iteration cap exceeded and every continuation strategy failed."""

    def __init__(
        self,
        message: str,
        last_iterate: Optional[np.ndarray] = None,
        residual: float = float("inf"),
        iterations: int = 0,
    ):
        self.last_iterate = last_iterate
        self.residual = residual
        self.iterations = iterations
        super().__init__(f"{message} (residual={residual:.3e}, iterations={iterations})")


class TimeStepFailure(SimulationError):
    """Time step fell below h_min without an accepted step.

    Attributes:
        time: Last accepted simulation time
        step: Step size of the final failed attempt
        partial: RunResult holding the waveform accepted before the failure
    """

    def __init__(self, message: str, time: float, step: float, partial: Any = None):
        self.time = time
        self.step = step
        self.partial = partial
        super().__init__(f"{message} at t={time:.6e} (h={step:.3e})")
