"""Junction diode with automatic differentiation

Shockley equation I = Is * (exp(Vd / (n*Vt)) - 1). Past MAX_EXP_ARG the
exponential is continued linearly so large Newton excursions stay finite.

The conductance gd = dI/dVd is computed by JAX; gmin is added in parallel.
Linearized companion for Newton:
    I(v) ~ gd * v + (I(vd) - gd * vd)
"""

import jax
import jax.numpy as jnp
import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import MNABuilder, MNALayout
from mnajax.circuit import Diode
from mnajax.config import MAX_EXP_ARG, thermal_voltage
from mnajax.devices.base import require_positive, stamp_conductance, stamp_current


def diode_current(vd, saturation_current, n_vt):
    """Diode current at junction voltage vd (differentiable)."""
    arg = vd / n_vt
    e = jnp.exp(jnp.minimum(arg, MAX_EXP_ARG))
    e_lin = jnp.where(arg > MAX_EXP_ARG, e * (1.0 + arg - MAX_EXP_ARG), e)
    return saturation_current * (e_lin - 1.0)


_diode_eval = jax.jit(jax.value_and_grad(diode_current))


def evaluate_diode(dev: Diode, vd: float, temperature: float):
    """Return (current, conductance) at junction voltage vd."""
    n_vt = dev.emission_coefficient * thermal_voltage(temperature)
    i, g = _diode_eval(vd, dev.saturation_current, n_vt)
    return float(i), float(g)


def stamp_diode(dev: Diode, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    vd = MNALayout.voltage(x, dev.anode) - MNALayout.voltage(x, dev.cathode)
    i_d, g_d = evaluate_diode(dev, vd, ctx.temperature)
    stamp_conductance(builder, dev.anode, dev.cathode, g_d + ctx.gmin)
    if not ctx.is_ac:
        stamp_current(builder, dev.anode, dev.cathode, i_d - g_d * vd)


def validate_diode(dev: Diode, layout: MNALayout):
    require_positive(dev.name, "saturation_current", dev.saturation_current)
    require_positive(dev.name, "emission_coefficient", dev.emission_coefficient)
