"""Time-varying source waveforms for transient analysis.

Each waveform maps a time to a source value and reports its breakpoints
(times where the waveform or its slope changes abruptly) so the time-step
controller can land on them:
- Pulse: trapezoidal pulse train
- Sine: damped sine with delay
- PWL: piecewise linear (time, value) pairs
- Exp: exponential rise then fall
"""

import math
from dataclasses import dataclass
from typing import List, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class Pulse:
    """PULSE(v1 v2 delay rise fall width period)

    Zero rise/fall times produce ideal edges.
    """

    v1: float
    v2: float
    delay: float = 0.0
    rise: float = 0.0
    fall: float = 0.0
    width: float = float("inf")
    period: float = float("inf")

    def value(self, t: float) -> float:
        if t < self.delay:
            return self.v1
        t_in = t - self.delay
        if math.isfinite(self.period) and self.period > 0:
            t_in = math.fmod(t_in, self.period)
        if t_in < self.rise:
            return self.v1 + (self.v2 - self.v1) * t_in / self.rise
        if t_in < self.rise + self.width:
            return self.v2
        if t_in < self.rise + self.width + self.fall:
            return self.v2 - (self.v2 - self.v1) * (t_in - self.rise - self.width) / self.fall
        return self.v1

    def breakpoints(self, t_stop: float) -> List[float]:
        edges = [0.0, self.rise, self.rise + self.width, self.rise + self.width + self.fall]
        points = []
        start = self.delay
        while start <= t_stop:
            points.extend(start + e for e in edges if math.isfinite(e) and start + e <= t_stop)
            if not (math.isfinite(self.period) and self.period > 0):
                break
            start += self.period
        return points


@dataclass(frozen=True)
class Sine:
    """SIN(offset amplitude frequency delay damping phase)

    Phase is in degrees.
    """

    offset: float
    amplitude: float
    frequency: float
    delay: float = 0.0
    damping: float = 0.0
    phase: float = 0.0

    def value(self, t: float) -> float:
        ph = math.radians(self.phase)
        if t < self.delay:
            return self.offset + self.amplitude * math.sin(ph)
        td = t - self.delay
        return self.offset + self.amplitude * math.exp(-self.damping * td) * math.sin(
            2.0 * math.pi * self.frequency * td + ph
        )

    def breakpoints(self, t_stop: float) -> List[float]:
        return [self.delay] if 0.0 < self.delay <= t_stop else []


@dataclass(frozen=True)
class PWL:
    """Piecewise-linear waveform from (time, value) pairs; held constant outside."""

    points: Tuple[Tuple[float, float], ...]

    def value(self, t: float) -> float:
        times = np.array([p[0] for p in self.points])
        values = np.array([p[1] for p in self.points])
        return float(np.interp(t, times, values))

    def breakpoints(self, t_stop: float) -> List[float]:
        return [p[0] for p in self.points if p[0] <= t_stop]


@dataclass(frozen=True)
class Exp:
    """EXP(v1 v2 td1 tau1 td2 tau2): rise toward v2 from td1, fall back from td2."""

    v1: float
    v2: float
    td1: float = 0.0
    tau1: float = 1.0
    td2: float = float("inf")
    tau2: float = 1.0

    def value(self, t: float) -> float:
        if t < self.td1:
            return self.v1
        rising = self.v1 + (self.v2 - self.v1) * (1.0 - math.exp(-(t - self.td1) / self.tau1))
        if t < self.td2:
            return rising
        at_fall = self.v1 + (self.v2 - self.v1) * (1.0 - math.exp(-(self.td2 - self.td1) / self.tau1))
        return at_fall + (self.v1 - at_fall) * (1.0 - math.exp(-(t - self.td2) / self.tau2))

    def breakpoints(self, t_stop: float) -> List[float]:
        return [t for t in (self.td1, self.td2) if t <= t_stop]


Waveform = Union[Pulse, Sine, PWL, Exp]
