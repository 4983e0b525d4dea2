"""Analysis engines for mnajax: DC, DC sweep, AC and transient."""

from mnajax.analysis.ac import ACConfig, generate_frequencies, run_ac, solve_ac_single_frequency
from mnajax.analysis.context import AnalysisContext, AnalysisType
from mnajax.analysis.dc import DCSolution, converge, dc_sweep, operating_point, solve_dc, sweep_points
from mnajax.analysis.engine import CircuitEngine
from mnajax.analysis.homotopy import (
    HomotopyConfig,
    HomotopyResult,
    gmin_stepping,
    run_homotopy_chain,
    source_stepping,
)
from mnajax.analysis.integration import (
    IntegrationCoeffs,
    IntegrationMethod,
    IntegrationState,
    apply_integration,
    compute_coefficients,
)
from mnajax.analysis.linear_solver import DenseSolver, LinearSolver, make_solver
from mnajax.analysis.mna_builder import AuxVarTable, MNABuilder, MNALayout
from mnajax.analysis.options import SimulationOptions
from mnajax.analysis.solver import NRConfig, NRResult, newton_solve
from mnajax.analysis.sparse import SparseSolver
from mnajax.analysis.system import MNASystem
from mnajax.analysis.transient import AdaptiveConfig, run_transient

__all__ = [
    "ACConfig",
    "AdaptiveConfig",
    "AnalysisContext",
    "AnalysisType",
    "AuxVarTable",
    "CircuitEngine",
    "DCSolution",
    "DenseSolver",
    "HomotopyConfig",
    "HomotopyResult",
    "IntegrationCoeffs",
    "IntegrationMethod",
    "IntegrationState",
    "LinearSolver",
    "MNABuilder",
    "MNALayout",
    "MNASystem",
    "NRConfig",
    "NRResult",
    "SimulationOptions",
    "SparseSolver",
    "apply_integration",
    "compute_coefficients",
    "converge",
    "dc_sweep",
    "generate_frequencies",
    "gmin_stepping",
    "make_solver",
    "newton_solve",
    "operating_point",
    "run_ac",
    "run_homotopy_chain",
    "run_transient",
    "solve_ac_single_frequency",
    "solve_dc",
    "source_stepping",
    "sweep_points",
]
