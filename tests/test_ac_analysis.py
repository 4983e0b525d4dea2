"""Tests for AC small-signal analysis."""

import math

import numpy as np
import pytest
from conftest import rc_lowpass

from mnajax.analysis.ac import ACConfig, generate_frequencies, run_ac
from mnajax.analysis.system import MNASystem
from mnajax.circuit import ACCommand, Circuit, CurrentSource, Diode, Resistor, VoltageSource
from mnajax.devices.diode import evaluate_diode
from mnajax.errors import InvalidAnalysisCommand, LinearSolverError
from mnajax.results import AnalysisKind

F_CUTOFF = 1.0 / (2.0 * math.pi * 1e3 * 1e-6)


class TestFrequencyGeneration:
    """Sweep grids for each mode."""

    def test_decade(self):
        freqs = generate_frequencies(ACConfig(freq_start=1.0, freq_stop=1e3, mode="dec", points=10))
        assert len(freqs) == 31
        assert freqs[0] == pytest.approx(1.0)
        assert freqs[10] == pytest.approx(10.0)
        assert freqs[-1] == pytest.approx(1e3)

    def test_decade_partial_span(self):
        freqs = generate_frequencies(ACConfig(freq_start=1.0, freq_stop=50.0, mode="dec", points=5))
        # 10**(8/5) = 39.8 is inside, 10**(9/5) = 63.1 is past stop
        assert len(freqs) == 9
        assert freqs[-1] < 50.0

    def test_octave(self):
        freqs = generate_frequencies(ACConfig(freq_start=100.0, freq_stop=800.0, mode="oct", points=2))
        np.testing.assert_allclose(freqs[::2], [100.0, 200.0, 400.0, 800.0])
        assert len(freqs) == 7

    def test_linear(self):
        freqs = generate_frequencies(ACConfig(freq_start=0.0, freq_stop=100.0, mode="lin", points=5))
        np.testing.assert_allclose(freqs, [0.0, 25.0, 50.0, 75.0, 100.0])

    def test_list(self):
        freqs = generate_frequencies(ACConfig(mode="list", values=[5.0, 50.0]))
        np.testing.assert_allclose(freqs, [5.0, 50.0])

    @pytest.mark.parametrize(
        "config",
        [
            ACConfig(freq_start=0.0, freq_stop=10.0, mode="dec", points=10),
            ACConfig(freq_start=10.0, freq_stop=1.0, mode="dec", points=10),
            ACConfig(freq_start=1.0, freq_stop=10.0, mode="dec", points=0),
            ACConfig(freq_start=1.0, freq_stop=10.0, mode="log", points=10),
            ACConfig(mode="list", values=[]),
        ],
    )
    def test_invalid(self, config):
        with pytest.raises(InvalidAnalysisCommand):
            generate_frequencies(config)

    def test_from_command(self):
        config = ACConfig.from_command(ACCommand("DEC", 20, 1.0, 1e6))
        assert config.mode == "dec"
        assert config.points == 20
        assert config.freq_stop == 1e6


class TestRCLowpass:
    """First-order RC response: -3 dB and -45 degrees at the cutoff."""

    def test_cutoff(self):
        result = run_ac(MNASystem(rc_lowpass()), ACConfig(mode="list", values=[F_CUTOFF]))
        assert result.analysis == AnalysisKind.AC
        assert result.magnitude_db("out")[0] == pytest.approx(-3.0103, abs=1e-3)
        assert result.phase("out")[0] == pytest.approx(-45.0, abs=1e-6)
        assert result.phase("in")[0] == pytest.approx(0.0, abs=1e-9)

    def test_rolloff(self):
        result = run_ac(
            MNASystem(rc_lowpass()),
            ACConfig(mode="list", values=[F_CUTOFF / 100.0, 10.0 * F_CUTOFF, 100.0 * F_CUTOFF]),
        )
        mag = result.magnitude_db("out")
        assert mag[0] == pytest.approx(0.0, abs=1e-3)
        assert mag[1] == pytest.approx(-20.0 * math.log10(math.sqrt(101.0)), abs=1e-6)
        # One decade higher costs another ~20 dB
        assert mag[1] - mag[2] == pytest.approx(20.0, abs=0.1)

    def test_complex_values(self):
        result = run_ac(MNASystem(rc_lowpass()), ACConfig(freq_start=10.0, freq_stop=1e4, points=5))
        omega = 2.0 * math.pi * result.axis
        expected = 1.0 / (1.0 + 1j * omega * 1e-3)
        np.testing.assert_allclose(result.voltage("out"), expected, rtol=1e-10)
        assert np.iscomplexobj(result.values)

    def test_phasor_phase_and_magnitude(self):
        result = run_ac(MNASystem(rc_lowpass(ac_mag=2.0)), ACConfig(mode="list", values=[1e-3]))
        assert result.magnitude_db("in")[0] == pytest.approx(20.0 * math.log10(2.0))

    def test_sparse_matches_dense(self):
        from mnajax.analysis.options import SimulationOptions

        config = ACConfig(freq_start=1.0, freq_stop=1e5, points=3)
        dense = run_ac(MNASystem(rc_lowpass()), config)
        sparse = run_ac(MNASystem(rc_lowpass()), config, SimulationOptions(solver="sparse"))
        np.testing.assert_allclose(sparse.values, dense.values, rtol=1e-10)

    def test_ground_reads_zero(self):
        result = run_ac(MNASystem(rc_lowpass()), ACConfig(mode="list", values=[100.0]))
        assert result.voltage("0")[0] == 0.0


class TestLinearization:
    """Nonlinear devices contribute their conductance at the operating point."""

    def test_diode_small_signal_divider(self):
        circuit = Circuit(
            nodes=("0", "in", "d"),
            devices=(
                VoltageSource("V1", 1, 0, dc=5.0, ac_mag=1.0),
                Resistor("R1", 1, 2, 1e3),
                Diode("D1", 2, 0),
            ),
        )
        result = run_ac(MNASystem(circuit), ACConfig(mode="list", values=[1e3]))

        vd = result.stats["operating_point"][1]
        _, gd = evaluate_diode(circuit.device("D1"), float(vd), 300.15)
        rd = 1.0 / (gd + 1e-12)
        expected = rd / (1e3 + rd)
        assert abs(result.voltage("d")[0]) == pytest.approx(expected, rel=1e-6)
        assert result.iterations and result.iterations[0] > 1

    def test_dc_only_source_is_zeroed(self):
        circuit = Circuit(
            nodes=("0", "a", "b"),
            devices=(
                VoltageSource("V1", 1, 0, dc=3.0),
                VoltageSource("V2", 2, 0, dc=0.0, ac_mag=1.0),
                Resistor("R1", 1, 2, 1e3),
            ),
        )
        result = run_ac(MNASystem(circuit), ACConfig(mode="list", values=[10.0]))
        assert abs(result.voltage("a")[0]) < 1e-15
        assert result.current("V1")[0] == pytest.approx(1e-3)


class TestSolverFailure:
    """A linear solve failure is not retried with continuation in AC."""

    def test_singular_system_raises(self):
        # Node b is reached only through a current source
        circuit = Circuit(
            nodes=("0", "a", "b"),
            devices=(
                VoltageSource("V1", 1, 0, dc=1.0, ac_mag=1.0),
                Resistor("R1", 1, 0, 1e3),
                CurrentSource("I1", 2, 0, dc=0.0, ac_mag=1.0),
            ),
        )
        with pytest.raises(LinearSolverError):
            run_ac(MNASystem(circuit), ACConfig(mode="list", values=[1e3]))
