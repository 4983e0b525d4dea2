"""Shared stamp helpers and parameter checks for device stamps.

Stamps follow the KCL convention "sum of currents leaving a node equals
the right-hand side": a conductance G between nodes a and b adds +G on the
diagonal and -G off the diagonal, and a current I flowing from a through
the device to b adds -I to rhs[a] and +I to rhs[b].
"""

import math
import numbers

from mnajax.analysis.mna_builder import MNABuilder
from mnajax.errors import InvalidDeviceParameter


def stamp_conductance(builder: MNABuilder, a: int, b: int, g: float):
    """Two-terminal conductance between MNA indices a and b."""
    builder.add(a, a, g)
    builder.add(b, b, g)
    builder.add(a, b, -g)
    builder.add(b, a, -g)


def stamp_capacitance(builder: MNABuilder, a: int, b: int, c: float):
    """Two-terminal reactive entry (AC only)."""
    builder.add_reactive(a, a, c)
    builder.add_reactive(b, b, c)
    builder.add_reactive(a, b, -c)
    builder.add_reactive(b, a, -c)


def stamp_current(builder: MNABuilder, a: int, b: int, current):
    """Current flowing from a through the device to b."""
    builder.add_rhs(a, -current)
    builder.add_rhs(b, current)


def stamp_transconductance(builder: MNABuilder, p: int, n: int, cp: int, cn: int, gm: float):
    """Current gm * (V(cp) - V(cn)) flowing from p through the device to n."""
    builder.add(p, cp, gm)
    builder.add(p, cn, -gm)
    builder.add(n, cp, -gm)
    builder.add(n, cn, gm)


def stamp_branch_incidence(builder: MNABuilder, p: int, n: int, k: int):
    """Branch current k leaves p and enters n; row k reads V(p) - V(n)."""
    builder.add(p, k, 1.0)
    builder.add(n, k, -1.0)
    builder.add(k, p, 1.0)
    builder.add(k, n, -1.0)


def _require_number(device: str, parameter: str, value):
    if value is None or isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidDeviceParameter(device, parameter, value, "missing")


def require_positive(device: str, parameter: str, value: float):
    _require_number(device, parameter, value)
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidDeviceParameter(device, parameter, value, "not a positive finite number")


def require_finite(device: str, parameter: str, value: float):
    _require_number(device, parameter, value)
    if not math.isfinite(value):
        raise InvalidDeviceParameter(device, parameter, value, "not finite")
