"""Independent voltage and current source stamps.

Source value by analysis:
    DC:   swept override, else the waveform at ctx.time when one is given,
          else the DC value; scaled by ctx.source_scale
    TRAN: waveform at ctx.time (DC value without a waveform), scaled
    AC:   phasor ac_mag * exp(j * ac_phase); DC-only sources are zeroed
"""

import cmath
import math
from typing import Union

import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import MNABuilder, MNALayout
from mnajax.circuit import CurrentSource, VoltageSource
from mnajax.devices.base import require_finite, stamp_branch_incidence, stamp_current
from mnajax.errors import InvalidDeviceParameter


def source_value(dev: Union[VoltageSource, CurrentSource], ctx: AnalysisContext):
    """Excitation of an independent source in the given context."""
    if ctx.is_ac:
        return dev.ac_mag * cmath.exp(1j * math.radians(dev.ac_phase))
    if dev.name in ctx.source_values:
        value = ctx.source_values[dev.name]
    elif dev.waveform is not None and ctx.time is not None:
        value = dev.waveform.value(ctx.time)
    else:
        value = dev.dc
    return value * ctx.source_scale


def stamp_voltage_source(dev: VoltageSource, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    k = builder.layout.branch_row(dev.name)
    stamp_branch_incidence(builder, dev.p, dev.n, k)
    builder.add_rhs(k, source_value(dev, ctx))


def stamp_current_source(dev: CurrentSource, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    stamp_current(builder, dev.p, dev.n, source_value(dev, ctx))


def validate_source(dev: Union[VoltageSource, CurrentSource], layout: MNALayout):
    require_finite(dev.name, "dc", dev.dc)
    require_finite(dev.name, "ac_mag", dev.ac_mag)
    require_finite(dev.name, "ac_phase", dev.ac_phase)
    if isinstance(dev, VoltageSource) and dev.p == dev.n:
        raise InvalidDeviceParameter(dev.name, "nodes", (dev.p, dev.n), "a shorted voltage source")
