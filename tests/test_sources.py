"""Unit tests for transient source waveforms (PULSE, SINE, PWL, EXP)."""

import math

import pytest

from mnajax.sources import PWL, Exp, Pulse, Sine


class TestPulse:
    """Trapezoidal pulse train."""

    PULSE = Pulse(0.0, 1.0, delay=1e-3, rise=1e-4, fall=1e-4, width=5e-4, period=2e-3)

    @pytest.mark.parametrize(
        "t, expected",
        [
            (0.0, 0.0),
            (0.5e-3, 0.0),
            (1.05e-3, 0.5),
            (1.3e-3, 1.0),
            (1.65e-3, 0.5),
            (1.8e-3, 0.0),
            (3.05e-3, 0.5),
        ],
    )
    def test_values(self, t, expected):
        assert self.PULSE.value(t) == pytest.approx(expected, abs=1e-9)

    def test_breakpoints(self):
        points = self.PULSE.breakpoints(3.5e-3)
        assert points == pytest.approx([1e-3, 1.1e-3, 1.6e-3, 1.7e-3, 3e-3, 3.1e-3])

    def test_ideal_step(self):
        step = Pulse(0.0, 2.0)
        assert step.value(0.0) == 2.0
        assert step.value(1.0) == 2.0
        assert step.breakpoints(1.0) == [0.0, 0.0]

    def test_finite_rise_starts_at_v1(self):
        assert Pulse(0.0, 1.0, rise=1e-6).value(0.0) == 0.0


class TestSine:
    def test_delay_holds_offset(self):
        sine = Sine(1.0, 2.0, 50.0, delay=0.01)
        assert sine.value(0.005) == pytest.approx(1.0)
        assert sine.value(0.015) == pytest.approx(3.0)
        assert sine.breakpoints(1.0) == [0.01]

    def test_damping(self):
        sine = Sine(0.0, 1.0, 1.0, damping=1.0)
        assert sine.value(0.25) == pytest.approx(math.exp(-0.25))

    def test_phase_in_degrees(self):
        assert Sine(0.0, 1.0, 1e3, phase=90.0).value(0.0) == pytest.approx(1.0)

    def test_no_breakpoints_without_delay(self):
        assert Sine(0.0, 1.0, 1e3).breakpoints(1.0) == []


class TestPWL:
    WAVE = PWL(((0.0, 0.0), (1.0, 2.0), (2.0, 2.0), (3.0, -1.0)))

    def test_interpolates(self):
        assert self.WAVE.value(0.5) == pytest.approx(1.0)
        assert self.WAVE.value(2.5) == pytest.approx(0.5)

    def test_holds_outside(self):
        assert self.WAVE.value(-1.0) == 0.0
        assert self.WAVE.value(10.0) == -1.0

    def test_breakpoints(self):
        assert self.WAVE.breakpoints(2.5) == [0.0, 1.0, 2.0]


class TestExp:
    EXP = Exp(0.0, 1.0, td1=1.0, tau1=1.0, td2=2.0, tau2=1.0)

    def test_before_rise(self):
        assert self.EXP.value(0.5) == 0.0

    def test_rise(self):
        assert self.EXP.value(2.0) == pytest.approx(1.0 - math.exp(-1.0))

    def test_fall(self):
        at_fall = 1.0 - math.exp(-1.0)
        assert self.EXP.value(3.0) == pytest.approx(at_fall * math.exp(-1.0))

    def test_breakpoints(self):
        assert self.EXP.breakpoints(10.0) == [1.0, 2.0]
        assert Exp(0.0, 1.0, td1=0.5).breakpoints(10.0) == [0.5]
