"""Resistor, capacitor and inductor stamps.

Resistor: G = 1/R between its nodes in every analysis.

Capacitor:
    DC:   open (no stamp)
    AC:   admittance j*omega*C
    TRAN: companion model i = c0*C*v + hist, i.e. conductance c0*C in
          parallel with a history current source

Inductor (always owns branch current k):
    DC:   short, V(p) - V(n) = 0
    AC:   V(p) - V(n) - j*omega*L*i = 0
    TRAN: V(p) - V(n) - c0*L*i = hist
"""

import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import MNABuilder, MNALayout
from mnajax.circuit import Capacitor, Inductor, Resistor
from mnajax.devices.base import (
    require_finite,
    require_positive,
    stamp_branch_incidence,
    stamp_capacitance,
    stamp_conductance,
    stamp_current,
)


def stamp_resistor(dev: Resistor, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    stamp_conductance(builder, dev.p, dev.n, 1.0 / dev.resistance)


def stamp_capacitor(dev: Capacitor, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    if ctx.is_ac:
        stamp_capacitance(builder, dev.p, dev.n, dev.capacitance)
    elif ctx.is_transient:
        geq = ctx.coeffs.c0 * dev.capacitance
        stamp_conductance(builder, dev.p, dev.n, geq)
        stamp_current(builder, dev.p, dev.n, ctx.history_term(dev.name))
    else:
        # Keep the slots so the sparsity pattern matches the transient one
        stamp_conductance(builder, dev.p, dev.n, 0.0)


def stamp_inductor(dev: Inductor, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    k = builder.layout.branch_row(dev.name)
    stamp_branch_incidence(builder, dev.p, dev.n, k)
    if ctx.is_ac:
        builder.add_reactive(k, k, -dev.inductance)
    elif ctx.is_transient:
        builder.add(k, k, -ctx.coeffs.c0 * dev.inductance)
        builder.add_rhs(k, ctx.history_term(dev.name))
    else:
        builder.add(k, k, 0.0)


def validate_resistor(dev: Resistor, layout: MNALayout):
    require_positive(dev.name, "resistance", dev.resistance)


def validate_capacitor(dev: Capacitor, layout: MNALayout):
    require_positive(dev.name, "capacitance", dev.capacitance)
    if dev.ic is not None:
        require_finite(dev.name, "ic", dev.ic)


def validate_inductor(dev: Inductor, layout: MNALayout):
    require_positive(dev.name, "inductance", dev.inductance)
    if dev.ic is not None:
        require_finite(dev.name, "ic", dev.ic)
