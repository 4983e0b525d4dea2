"""Circuit simulation engine for mnajax.

CircuitEngine runs the analysis commands of one Circuit. Each run gets
its own linear solver and MNA builder, so no mutable solver state is
shared between runs, and the same engine can be re-run to get identical
results.

Example:
    engine = CircuitEngine(circuit)
    op = engine.run_op()
    results = engine.run_all()   # one RunResult per command, FAILED ones included
"""

import logging
from typing import List, Optional

import numpy as np

from mnajax.analysis.ac import ACConfig, run_ac
from mnajax.analysis.dc import dc_sweep, operating_point
from mnajax.analysis.linear_solver import LinearSolver, make_solver
from mnajax.analysis.options import SimulationOptions
from mnajax.analysis.system import MNASystem
from mnajax.analysis.transient import run_transient
from mnajax.circuit import ACCommand, AnalysisCommand, Circuit, DCSweepCommand, OpCommand, TranCommand
from mnajax.errors import SimulationError, TimeStepFailure
from mnajax.results import AnalysisKind, RunResult, RunStatus

logger = logging.getLogger(__name__)

_COMMAND_KINDS = {
    OpCommand: AnalysisKind.OP,
    DCSweepCommand: AnalysisKind.DC,
    ACCommand: AnalysisKind.AC,
    TranCommand: AnalysisKind.TRAN,
}


class CircuitEngine:
    """Runs analyses on one immutable Circuit.

    Attributes:
        circuit: The circuit being simulated
        options: Simulation options shared by every run
    """

    def __init__(self, circuit: Circuit, options: Optional[SimulationOptions] = None):
        self.circuit = circuit
        self.options = options if options is not None else SimulationOptions()
        self._system: Optional[MNASystem] = None

    @property
    def system(self) -> MNASystem:
        """Validated MNA system, built on first use.

        Raises:
            InvalidDeviceParameter: a device failed validation
        """
        if self._system is None:
            self._system = MNASystem(self.circuit)
        return self._system

    def _solver(self) -> LinearSolver:
        return make_solver(self.options.solver, self.options.min_pivot_ratio)

    def run_op(self) -> RunResult:
        return operating_point(self.system, self.options, self._solver())

    def run_dc_sweep(self, command: DCSweepCommand) -> RunResult:
        return dc_sweep(self.system, command, self.options, self._solver())

    def run_ac(self, command: ACCommand) -> RunResult:
        return run_ac(self.system, ACConfig.from_command(command), self.options, self._solver())

    def run_transient(self, command: TranCommand) -> RunResult:
        return run_transient(self.system, command, self.options, self._solver())

    def run(self, command: AnalysisCommand) -> RunResult:
        """Run one analysis command; failures raise SimulationError subclasses."""
        if isinstance(command, OpCommand):
            return self.run_op()
        if isinstance(command, DCSweepCommand):
            return self.run_dc_sweep(command)
        if isinstance(command, ACCommand):
            return self.run_ac(command)
        if isinstance(command, TranCommand):
            return self.run_transient(command)
        raise TypeError(f"Unsupported analysis command: {type(command).__name__}")

    def run_all(self) -> List[RunResult]:
        """Run every command of the circuit in order.

        A failing run is recorded as a FAILED RunResult carrying the error
        (and the partial waveform for a transient); later commands still run.
        """
        results = []
        for i, command in enumerate(self.circuit.analyses):
            logger.info(f"Analysis {i}: {type(command).__name__}")
            try:
                results.append(self.run(command))
            except SimulationError as e:
                logger.warning(f"Analysis {i} ({type(command).__name__}) failed: {e}")
                results.append(self._failed_result(command, e))
        return results

    def _failed_result(self, command: AnalysisCommand, error: SimulationError) -> RunResult:
        if isinstance(error, TimeStepFailure) and isinstance(error.partial, RunResult):
            partial = error.partial
            partial.status = RunStatus.FAILED
            partial.error = error
            return partial

        unknowns = self._system.layout.unknown_names() if self._system is not None else ()
        return RunResult(
            analysis=_COMMAND_KINDS[type(command)],
            unknowns=unknowns,
            node_names=self.circuit.nodes,
            values=np.zeros((0, len(unknowns))),
            axis=np.zeros(0),
            status=RunStatus.FAILED,
            error=error,
        )
