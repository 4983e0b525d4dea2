"""Numeric record produced by each analysis run.

A RunResult holds the raw arrays and convergence metadata of one analysis;
serialization is left to the caller (see ``to_dict``).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class AnalysisKind(Enum):
    """Kind of analysis that produced a RunResult."""

    OP = "op"
    DC = "dc"
    AC = "ac"
    TRAN = "tran"


class RunStatus(Enum):
    """Terminal status of a run."""

    CONVERGED = "converged"
    FAILED = "failed"


@dataclass
class RunResult:
    """Per-analysis numeric record.

    Attributes:
        analysis: Kind of analysis
        status: CONVERGED, or FAILED with ``error`` set
        unknowns: Unknown labels in solution order, e.g. ``V(out)``, ``I(V1)``
        node_names: Node names (index 0 is ground)
        values: Solution arrays, shape (n_points, n_unknowns). Complex for AC.
        axis: Sweep values (DC), frequencies in Hz (AC) or times (TRAN);
            a single zero for OP
        iterations: Newton iterations per point
        residual: Largest final residual over all points
        continuation: Continuation strategy used, per point (None if plain Newton)
        final_gmin: Residual shunt conductance left in an OP solution (0 if none)
        mag_db: AC magnitude in dB, same shape as values
        phase_deg: AC phase in degrees, same shape as values
        stats: Analysis-specific statistics (transient step counts and sizes)
        error: The SimulationError that ended a FAILED run
    """

    analysis: AnalysisKind
    unknowns: Tuple[str, ...]
    node_names: Tuple[str, ...]
    values: np.ndarray
    axis: np.ndarray
    status: RunStatus = RunStatus.CONVERGED
    iterations: List[int] = field(default_factory=list)
    residual: float = 0.0
    continuation: List[Optional[str]] = field(default_factory=list)
    final_gmin: float = 0.0
    mag_db: Optional[np.ndarray] = None
    phase_deg: Optional[np.ndarray] = None
    stats: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None

    @property
    def converged(self) -> bool:
        return self.status == RunStatus.CONVERGED

    @property
    def num_points(self) -> int:
        return int(self.values.shape[0])

    def _column(self, label: str) -> int:
        try:
            return self.unknowns.index(label)
        except ValueError:
            raise KeyError(f"No unknown named {label}") from None

    def voltage(self, node: str) -> np.ndarray:
        """Node voltage over the analysis axis (zeros for ground)."""
        if self.node_names and node == self.node_names[0]:
            return np.zeros(self.num_points, dtype=self.values.dtype)
        return self.values[:, self._column(f"V({node})")]

    def current(self, device: str) -> np.ndarray:
        """Branch current of a device that owns a branch unknown."""
        return self.values[:, self._column(f"I({device})")]

    def magnitude_db(self, node: str) -> np.ndarray:
        """AC magnitude in dB at a node."""
        if self.mag_db is None:
            raise ValueError("magnitude_db is only available for AC results")
        return self.mag_db[:, self._column(f"V({node})")]

    def phase(self, node: str) -> np.ndarray:
        """AC phase in degrees at a node."""
        if self.phase_deg is None:
            raise ValueError("phase is only available for AC results")
        return self.phase_deg[:, self._column(f"V({node})")]

    def to_dict(self) -> Dict[str, Any]:
        """Plain-Python view for result formatters."""
        out: Dict[str, Any] = {
            "analysis": self.analysis.value,
            "status": self.status.value,
            "axis": self.axis.tolist(),
            "iterations": list(self.iterations),
            "residual": self.residual,
            "continuation": list(self.continuation),
            "stats": dict(self.stats),
        }
        if np.iscomplexobj(self.values):
            out["signals"] = {
                label: {"real": self.values[:, i].real.tolist(), "imag": self.values[:, i].imag.tolist()}
                for i, label in enumerate(self.unknowns)
            }
        else:
            out["signals"] = {label: self.values[:, i].tolist() for i, label in enumerate(self.unknowns)}
        if self.error is not None:
            out["error"] = str(self.error)
        return out
