"""Simulation options with validation and per-component configs.

This module provides a centralized definition of all simulation options with:
- Default values
- Validation on construction and on every assignment
- String coercion through ``set`` for values coming from text
- Builders for the Newton and homotopy configs

Example usage:
    options = SimulationOptions(reltol=1e-4)
    options.nr_damping = 0.5
    options.set("tran_method", "gear2")
    engine = CircuitEngine(circuit, options)
"""

import copy as _copy
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple

from mnajax.analysis.homotopy import HOMOTOPY_METHODS, HomotopyConfig
from mnajax.analysis.integration import IntegrationMethod
from mnajax.analysis.solver import NRConfig
from mnajax.config import DEFAULT_TEMPERATURE_K

SOLVER_BACKENDS = ("dense", "sparse")


def _check_option(name: str, value: Any):
    """Raise ValueError if value is not valid for option name."""
    positive = (
        "reltol",
        "vntol",
        "abstol",
        "nr_max_step",
        "gmin_start",
        "source_step_min",
        "tran_lteratio",
        "min_pivot_ratio",
        "temperature",
    )
    positive_or_none = ("tran_reltol", "tran_abstol", "tran_hmin", "tran_hmax", "tran_hinit")
    at_least_one = ("nr_max_iterations", "gmin_steps", "source_steps", "tran_max_steps")

    if name in positive and not value > 0:
        raise ValueError(f"{name} must be positive, got {value}")
    if name in positive_or_none and value is not None and not value > 0:
        raise ValueError(f"{name} must be positive or None, got {value}")
    if name in at_least_one and value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    if name == "nr_damping" and not (0 < value <= 1.0):
        raise ValueError(f"nr_damping must be in (0, 1], got {value}")
    if name == "gmin" and value < 0:
        raise ValueError(f"gmin must be non-negative, got {value}")
    if name == "gmin_factor" and not value > 1:
        raise ValueError(f"gmin_factor must be > 1, got {value}")
    if name == "tran_fs" and not (0 < value <= 1.0):
        raise ValueError(f"tran_fs must be in (0, 1], got {value}")
    if name == "tran_redofactor" and not value > 1:
        raise ValueError(f"tran_redofactor must be > 1, got {value}")
    if name == "tran_grow_factor" and not value >= 1:
        raise ValueError(f"tran_grow_factor must be >= 1, got {value}")
    if name == "tran_warmup_steps" and value < 0:
        raise ValueError(f"tran_warmup_steps must be non-negative, got {value}")
    if name == "homotopy_chain":
        unknown = [m for m in value if m not in HOMOTOPY_METHODS]
        if unknown:
            raise ValueError(f"homotopy_chain has unknown methods {unknown}; supported: {HOMOTOPY_METHODS}")
    if name == "solver" and value not in SOLVER_BACKENDS:
        raise ValueError(f"solver must be one of {SOLVER_BACKENDS}, got {value}")


@dataclass
class SimulationOptions:
    """Centralized simulation options.

    Options are validated on assignment. Invalid values raise ValueError.
    """

    # Newton-Raphson solver options
    reltol: float = 1e-3
    """Relative tolerance for convergence checks."""

    vntol: float = 1e-6
    """Absolute tolerance for node voltages (V)."""

    abstol: float = 1e-12
    """Absolute tolerance for branch currents (A)."""

    nr_max_iterations: int = 100
    """Newton iteration cap before continuation takes over."""

    nr_damping: float = 1.0
    """NR step damping factor. 1.0 = full steps, 0.5 = half steps. Must be in (0, 1]."""

    nr_max_step: float = 2.0
    """Largest change of any unknown per Newton iteration (nonlinear circuits only)."""

    gmin: float = 1e-12
    """Conductance in parallel with every nonlinear junction."""

    # Homotopy
    homotopy_chain: Tuple[str, ...] = ("gshunt", "src")
    """Continuation methods tried in order when plain Newton fails.

    When Newton fails with every source at zero, source stepping falls back
    to device and then node gmin stepping there, so ("src",) can still shunt
    nodes to ground. Use () to run plain Newton only.
    """

    gmin_start: float = 1e-3
    """First gmin stepping level."""

    gmin_factor: float = 10.0
    """Divisor between gmin stepping levels."""

    gmin_steps: int = 9
    """Number of divisions from gmin_start to the last level."""

    source_steps: int = 10
    """Source stepping starts by raising sources 1/source_steps at a time."""

    source_step_min: float = 1e-3
    """Smallest source stepping increment before giving up."""

    homotopy_debug: int = 0
    """Homotopy progress logging (0=debug records only, 1=progress at INFO, 2=every level)."""

    # Transient
    tran_method: IntegrationMethod = IntegrationMethod.TRAPEZOIDAL
    """Transient integration method (be, trap, gear2)."""

    tran_reltol: Optional[float] = None
    """Relative LTE tolerance. None = reltol."""

    tran_abstol: Optional[float] = None
    """Absolute LTE tolerance for currents. None = abstol."""

    tran_lteratio: float = 3.5
    """LTE ratio for adaptive timestep. Higher = larger steps allowed."""

    tran_fs: float = 0.9
    """Timestep safety factor. Lower = more conservative steps."""

    tran_redofactor: float = 8.0
    """Factor to reduce timestep after a failed Newton solve."""

    tran_grow_factor: float = 2.0
    """Largest growth of the timestep between accepted steps."""

    tran_warmup_steps: int = 2
    """Accepted steps before LTE control starts."""

    tran_hmin: Optional[float] = None
    """Minimum timestep. None = derived from t_stop."""

    tran_hmax: Optional[float] = None
    """Maximum timestep. None = derived from t_stop."""

    tran_hinit: Optional[float] = None
    """Initial timestep. None = derived from t_stop and t_step."""

    tran_max_steps: int = 200000
    """Guard on the number of attempted timesteps."""

    # Linear solver
    solver: str = "dense"
    """Linear solver backend: 'dense' or 'sparse'."""

    min_pivot_ratio: float = 1e-15
    """Smallest pivot ratio before a matrix is reported ill-conditioned."""

    temperature: float = DEFAULT_TEMPERATURE_K
    """Circuit temperature (K)."""

    def __post_init__(self):
        """Validate all options after initialization."""
        self._validate_all()

    def __setattr__(self, name: str, value: Any) -> None:
        """Set attribute with validation."""
        # Validate before setting to avoid partial state
        _check_option(name, value)
        object.__setattr__(self, name, value)

    def _validate_all(self):
        """Validate all option values."""
        for f in fields(self):
            _check_option(f.name, getattr(self, f.name))

    def set(self, name: str, value: Any) -> None:
        """Set an option by name with validation.

        Args:
            name: Option name (e.g., 'nr_damping')
            value: Option value (will be converted to appropriate type)

        Raises:
            ValueError: If option name is unknown or value is invalid
        """
        field_type = None
        for f in fields(self):
            if f.name == name:
                field_type = f.type
                break
        if field_type is None:
            raise ValueError(f"Unknown option: {name}")

        # Convert value to appropriate type
        if field_type == float or field_type == Optional[float]:
            value = float(value) if value is not None else None
        elif field_type == int:
            value = int(value)
        elif field_type == str:
            value = str(value).strip("\"'")
        elif field_type == IntegrationMethod:
            if isinstance(value, str):
                value = IntegrationMethod.from_string(value)
        elif field_type == Tuple[str, ...]:
            if isinstance(value, str):
                value = tuple(v.strip() for v in value.strip("\"'").split(",") if v.strip())
            else:
                value = tuple(value)

        setattr(self, name, value)

    def get(self, name: str, default: Any = None) -> Any:
        """Get an option value by name.

        Args:
            name: Option name
            default: Default value if option is None

        Returns:
            Option value or default
        """
        value = getattr(self, name, default)
        return default if value is None else value

    def to_dict(self) -> Dict[str, Any]:
        """Convert options to dictionary."""
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["tran_method"] = self.tran_method.value
        return out

    def copy(self) -> "SimulationOptions":
        """Create a copy of these options."""
        return _copy.copy(self)

    def nr_config(self) -> NRConfig:
        return NRConfig(
            max_iterations=self.nr_max_iterations,
            vntol=self.vntol,
            abstol=self.abstol,
            reltol=self.reltol,
            damping=self.nr_damping,
            max_step=self.nr_max_step,
        )

    def homotopy_config(self) -> HomotopyConfig:
        return HomotopyConfig(
            gmin_start=self.gmin_start,
            gmin_factor=self.gmin_factor,
            gmin_steps=self.gmin_steps,
            source_steps=self.source_steps,
            source_step_min=self.source_step_min,
            chain=tuple(self.homotopy_chain),
            max_iterations=self.nr_max_iterations,
            debug=self.homotopy_debug,
        )

    def __repr__(self) -> str:
        """String representation showing non-default values."""
        non_default = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value != f.default:
                non_default.append(f"{f.name}={value!r}")
        return f"SimulationOptions({', '.join(non_default)})"
