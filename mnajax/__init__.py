"""mnajax: modified-nodal-analysis circuit simulation engine on JAX"""

from typing import Optional

import jax

__version__ = "0.1.0"


def _backend_supports_x64() -> bool:
    """Check if the current JAX backend supports 64-bit floats.

    Returns:
        True if backend supports float64, False otherwise.

    Note:
        - Metal (Apple Silicon) does not support float64
        - TPU does not natively support float64
        - CPU and CUDA support float64
    """
    backend = jax.default_backend().lower()
    if backend in ("metal", "tpu", "iree_metal"):
        return False
    for d in jax.devices():
        platform = getattr(d, "platform", "").lower()
        if "metal" in platform:
            return False
    return True


def configure_precision(force_x64: Optional[bool] = None) -> bool:
    """Configure JAX precision based on backend capabilities.

    Args:
        force_x64: If True, force x64 even on unsupported backends (may fail).
                   If False, force x32. If None (default), auto-detect.

    Returns:
        True if x64 is enabled, False otherwise.

    This function is called automatically on import. Circuit tolerances
    (vntol 1e-6 against supply-scale voltages, abstol 1e-12 A) need float64.
    """
    enable_x64 = _backend_supports_x64() if force_x64 is None else force_x64
    jax.config.update("jax_enable_x64", enable_x64)
    return enable_x64


def get_precision_info() -> dict:
    """Get information about the current precision configuration.

    Returns:
        Dict with precision settings and backend info.
    """
    return {
        "x64_enabled": jax.config.jax_enable_x64,
        "backend": jax.default_backend(),
        "backend_supports_x64": _backend_supports_x64(),
    }


# Auto-configure precision on import
_x64_enabled = configure_precision()

from mnajax.logging import enable_performance_logging, logger, set_log_level  # noqa: E402

# Core simulation API
from mnajax.analysis import CircuitEngine, SimulationOptions  # noqa: E402
from mnajax.circuit import (  # noqa: E402
    CCCS,
    CCVS,
    VCCS,
    VCVS,
    ACCommand,
    Capacitor,
    Circuit,
    CurrentSource,
    DCSweepCommand,
    Diode,
    Inductor,
    Mosfet,
    OpCommand,
    Resistor,
    TranCommand,
    VoltageSource,
)
from mnajax.errors import (  # noqa: E402
    ConvergenceFailure,
    IllConditioned,
    InvalidAnalysisCommand,
    InvalidDeviceParameter,
    LinearSolverError,
    SimulationError,
    SingularMatrix,
    TimeStepFailure,
)
from mnajax.results import AnalysisKind, RunResult, RunStatus  # noqa: E402
from mnajax.sources import PWL, Exp, Pulse, Sine  # noqa: E402

__all__ = [
    # Core API
    "CircuitEngine",
    "SimulationOptions",
    "Circuit",
    "RunResult",
    "RunStatus",
    "AnalysisKind",
    # Devices
    "Resistor",
    "Capacitor",
    "Inductor",
    "VoltageSource",
    "CurrentSource",
    "Diode",
    "Mosfet",
    "VCVS",
    "VCCS",
    "CCCS",
    "CCVS",
    # Commands
    "OpCommand",
    "DCSweepCommand",
    "ACCommand",
    "TranCommand",
    # Waveforms
    "Pulse",
    "Sine",
    "PWL",
    "Exp",
    # Errors
    "SimulationError",
    "InvalidDeviceParameter",
    "InvalidAnalysisCommand",
    "LinearSolverError",
    "SingularMatrix",
    "IllConditioned",
    "ConvergenceFailure",
    "TimeStepFailure",
    # Precision configuration
    "configure_precision",
    "get_precision_info",
    # Logging
    "logger",
    "enable_performance_logging",
    "set_log_level",
]
