"""Tests for the Newton-Raphson loop."""

import numpy as np
import pytest

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.solver import NRConfig, NRResult, newton_solve
from mnajax.analysis.system import MNASystem
from mnajax.circuit import Capacitor, Circuit, Diode, Resistor, VoltageSource
from mnajax.errors import SingularMatrix


def _diode_system():
    circuit = Circuit(
        nodes=("0", "in", "d"),
        devices=(
            VoltageSource("V1", 1, 0, dc=5.0),
            Resistor("R1", 1, 2, 1e3),
            Diode("D1", 2, 0),
        ),
    )
    return MNASystem(circuit)


def _solve(system, ctx=None, **kwargs):
    ctx = ctx or AnalysisContext.dc()
    builder = system.new_builder()
    return newton_solve(
        lambda x: system.assemble(builder, x, ctx),
        np.zeros(system.size),
        abstol_vec=system.layout.abstol_vector(1e-6, 1e-12),
        linear=system.is_linear,
        **kwargs,
    )


class TestNRConfig:
    def test_defaults(self):
        config = NRConfig()
        assert config.max_iterations == 100
        assert config.reltol == 1e-3
        assert config.damping == 1.0
        assert config.max_step == 2.0


class TestNewtonSolve:
    """Convergence behaviour of newton_solve."""

    def test_linear_single_iteration(self, divider_circuit):
        result = _solve(MNASystem(divider_circuit))
        assert isinstance(result, NRResult)
        assert result.converged
        assert result.iterations == 1
        assert result.x[1] == pytest.approx(2.0 / 3.0)
        assert result.residual_norm < 1e-12

    def test_diode_converges(self):
        system = _diode_system()
        assert not system.is_linear
        result = _solve(system)
        assert result.converged
        assert 1 < result.iterations < 100
        assert 0.6 < result.x[1] < 0.8

    def test_step_is_limited(self):
        """The first update from zero moves no unknown by more than max_step."""
        system = _diode_system()
        result = _solve(system, config=NRConfig(max_iterations=1))
        assert not result.converged
        assert result.iterations == 1
        assert np.max(np.abs(result.x)) <= 2.0 + 1e-12

    def test_damping_slows_convergence(self):
        system = _diode_system()
        full = _solve(system)
        damped = _solve(system, config=NRConfig(damping=0.5, max_iterations=200))
        assert damped.converged
        assert damped.iterations > full.iterations

    def test_singular_reported_not_raised(self):
        # Node b only connects through a capacitor: open in DC
        circuit = Circuit(
            nodes=("0", "a", "b"),
            devices=(VoltageSource("V1", 1, 0, dc=1.0), Capacitor("C1", 1, 2, 1e-9)),
        )
        result = _solve(MNASystem(circuit))
        assert not result.converged
        assert isinstance(result.error, SingularMatrix)

    def test_gshunt_makes_floating_node_solvable(self):
        circuit = Circuit(
            nodes=("0", "a", "b"),
            devices=(VoltageSource("V1", 1, 0, dc=1.0), Capacitor("C1", 1, 2, 1e-9)),
        )
        ctx = AnalysisContext.dc().with_continuation(gshunt=1e-6)
        result = _solve(MNASystem(circuit), ctx)
        assert result.converged
        assert result.x[1] == pytest.approx(0.0, abs=1e-12)
