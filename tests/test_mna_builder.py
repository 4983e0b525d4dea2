"""Tests for the MNA layout and slot-indexed stamp accumulator."""

import numpy as np
import pytest

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import AuxVarTable, MNABuilder, MNALayout
from mnajax.analysis.system import MNASystem
from mnajax.circuit import (
    CCCS,
    Capacitor,
    Circuit,
    Inductor,
    Resistor,
    VoltageSource,
)
from mnajax.errors import InvalidDeviceParameter


class TestAuxVarTable:
    """Branch-current unknowns are assigned first-seen and never move."""

    def test_first_seen_order(self):
        table = AuxVarTable()
        assert table.allocate("V1") == 0
        assert table.allocate("L1") == 1
        assert table.allocate("V1") == 0
        assert table.names == ["V1", "L1"]
        assert len(table) == 2

    def test_lookup_unknown(self):
        assert AuxVarTable().lookup("nope") is None


class TestMNALayout:
    """Node voltages first, then branch currents in device order."""

    def _circuit(self):
        return Circuit(
            nodes=("0", "a", "b"),
            devices=(
                Resistor("R1", 1, 2, 1e3),
                Inductor("L1", 2, 0, 1e-3),
                VoltageSource("V1", 1, 0, dc=1.0),
            ),
        )

    def test_size_and_branch_rows(self):
        layout = MNALayout.from_circuit(self._circuit())
        assert layout.num_node_unknowns == 2
        assert layout.size == 4
        # Inductor is declared before the source, so it gets the first branch
        assert layout.branch_row("L1") == 3
        assert layout.branch_row("V1") == 4

    def test_unknown_names(self):
        layout = MNALayout.from_circuit(self._circuit())
        assert layout.unknown_names() == ("V(a)", "V(b)", "I(L1)", "I(V1)")

    def test_branch_row_of_non_branch_device(self):
        layout = MNALayout.from_circuit(self._circuit())
        with pytest.raises(InvalidDeviceParameter):
            layout.branch_row("R1")

    def test_abstol_vector(self):
        layout = MNALayout.from_circuit(self._circuit())
        tol = layout.abstol_vector(1e-6, 1e-12)
        np.testing.assert_allclose(tol, [1e-6, 1e-6, 1e-12, 1e-12])

    def test_ground_reads_zero(self):
        x = np.array([1.5, 2.5])
        assert MNALayout.voltage(x, 0) == 0.0
        assert MNALayout.voltage(x, 2) == 2.5


class TestMNABuilder:
    """Stamps are additive; reset keeps the slot structure."""

    def _builder(self):
        circuit = Circuit(nodes=("0", "a", "b"), devices=(Resistor("R1", 1, 2, 1e3),))
        return MNABuilder(MNALayout.from_circuit(circuit))

    def test_ground_contributions_dropped(self):
        builder = self._builder()
        builder.add(0, 1, 5.0)
        builder.add(1, 0, 5.0)
        builder.add_rhs(0, 3.0)
        assert builder.nnz == 0
        assert np.all(builder.rhs == 0.0)

    def test_additive(self):
        builder = self._builder()
        builder.add(1, 1, 1.0)
        builder.add(1, 1, 2.0)
        assert builder.nnz == 1
        assert builder.to_dense()[0, 0] == pytest.approx(3.0)

    def test_reset_keeps_structure(self):
        builder = self._builder()
        builder.add(1, 2, 1.0)
        builder.add(2, 2, 4.0)
        version = builder.pattern_version
        builder.reset()
        assert builder.nnz == 2
        assert builder.pattern_version == version
        assert np.all(builder.values() == 0.0)

        # Re-stamping existing entries does not create slots
        builder.add(1, 2, 1.0)
        assert builder.pattern_version == version

    def test_slot_storage_grows(self):
        circuit = Circuit(nodes=tuple(str(i) for i in range(12)), devices=())
        builder = MNABuilder(MNALayout.from_circuit(circuit))
        for i in range(1, 12):
            for j in range(1, 12):
                builder.add(i, j, float(i * 100 + j))
        dense = builder.to_dense()
        assert dense[3, 4] == pytest.approx(405.0)
        assert builder.nnz == 121

    def test_reactive_values_form_complex_matrix(self):
        builder = self._builder()
        builder.add(1, 1, 2.0)
        builder.add_reactive(1, 1, 3.0)
        A = builder.to_dense(omega=10.0)
        assert A[0, 0] == pytest.approx(2.0 + 30.0j)

    def test_residual(self):
        builder = self._builder()
        builder.add(1, 1, 2.0)
        builder.add(2, 2, 1.0)
        builder.add_rhs(1, 4.0)
        r = builder.residual(np.array([2.0, 0.5]))
        np.testing.assert_allclose(r, [0.0, 0.5])


class TestMNASystem:
    """Validation happens before any solve."""

    def test_invalid_resistance(self):
        circuit = Circuit(nodes=("0", "a"), devices=(Resistor("R1", 1, 0, 0.0),))
        with pytest.raises(InvalidDeviceParameter) as exc:
            MNASystem(circuit)
        assert exc.value.device == "R1"

    def test_node_out_of_range(self):
        circuit = Circuit(nodes=("0", "a"), devices=(Resistor("R1", 1, 5, 1e3),))
        with pytest.raises(InvalidDeviceParameter):
            MNASystem(circuit)

    def test_duplicate_names(self):
        circuit = Circuit(
            nodes=("0", "a"),
            devices=(Resistor("R1", 1, 0, 1e3), Resistor("R1", 1, 0, 2e3)),
        )
        with pytest.raises(InvalidDeviceParameter):
            MNASystem(circuit)

    def test_cccs_control_must_own_branch(self):
        circuit = Circuit(
            nodes=("0", "a"),
            devices=(Resistor("R1", 1, 0, 1e3), CCCS("F1", 1, 0, "R1", 2.0)),
        )
        with pytest.raises(InvalidDeviceParameter):
            MNASystem(circuit)

    def test_pattern_fixed_across_assemblies(self):
        circuit = Circuit(
            nodes=("0", "a"),
            devices=(VoltageSource("V1", 1, 0, dc=1.0), Capacitor("C1", 1, 0, 1e-9)),
        )
        system = MNASystem(circuit)
        builder = system.new_builder()
        x = np.zeros(system.size)
        system.assemble(builder, x, AnalysisContext.dc())
        version = builder.pattern_version
        system.assemble(builder, x, AnalysisContext.dc().with_continuation(gshunt=1e-3))
        assert builder.pattern_version == version
        assert builder.to_dense()[0, 0] == pytest.approx(1e-3)

    def test_reactive_state(self):
        circuit = Circuit(
            nodes=("0", "a", "b"),
            devices=(
                Capacitor("C1", 1, 2, 2e-6, ic=0.5),
                Inductor("L1", 2, 0, 1e-3, ic=1e-3),
            ),
        )
        system = MNASystem(circuit)
        x = np.array([3.0, 1.0, 0.25])
        np.testing.assert_allclose(system.reactive_states(x), [2.0, 0.25])
        np.testing.assert_allclose(system.charges(x), [4e-6, 2.5e-4])

        x0, states = system.initial_state()
        np.testing.assert_allclose(states, [0.5, 1e-3])
        assert x0[2] == pytest.approx(1e-3)
