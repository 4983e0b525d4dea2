"""Linear controlled sources.

VCVS: branch k; V(p) - V(n) - E*(V(cp) - V(cn)) = 0
VCCS: current gm*(V(cp) - V(cn)) from p through the source to n
CCCS: current F*I(control) from p through the source to n
CCVS: branch k; V(p) - V(n) - H*I(control) = 0

Current-controlled sources read the branch-current unknown of the device
named by ``control``; the stamps are identical in every analysis.
"""

import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import MNABuilder, MNALayout
from mnajax.circuit import CCCS, CCVS, VCCS, VCVS
from mnajax.devices.base import require_finite, stamp_branch_incidence, stamp_transconductance
from mnajax.errors import InvalidDeviceParameter


def stamp_vcvs(dev: VCVS, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    k = builder.layout.branch_row(dev.name)
    stamp_branch_incidence(builder, dev.p, dev.n, k)
    builder.add(k, dev.cp, -dev.gain)
    builder.add(k, dev.cn, dev.gain)


def stamp_vccs(dev: VCCS, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    stamp_transconductance(builder, dev.p, dev.n, dev.cp, dev.cn, dev.transconductance)


def stamp_cccs(dev: CCCS, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    kc = builder.layout.branch_row(dev.control)
    builder.add(dev.p, kc, dev.gain)
    builder.add(dev.n, kc, -dev.gain)


def stamp_ccvs(dev: CCVS, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    k = builder.layout.branch_row(dev.name)
    kc = builder.layout.branch_row(dev.control)
    stamp_branch_incidence(builder, dev.p, dev.n, k)
    builder.add(k, kc, -dev.transresistance)


def validate_vcvs(dev: VCVS, layout: MNALayout):
    require_finite(dev.name, "gain", dev.gain)


def validate_vccs(dev: VCCS, layout: MNALayout):
    require_finite(dev.name, "transconductance", dev.transconductance)


def _require_control(dev, layout: MNALayout):
    if layout.aux.lookup(dev.control) is None:
        raise InvalidDeviceParameter(dev.name, "control", dev.control, "not a branch-current device")


def validate_cccs(dev: CCCS, layout: MNALayout):
    require_finite(dev.name, "gain", dev.gain)
    _require_control(dev, layout)


def validate_ccvs(dev: CCVS, layout: MNALayout):
    require_finite(dev.name, "transresistance", dev.transresistance)
    _require_control(dev, layout)
