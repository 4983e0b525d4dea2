"""Level-1 (Shichman-Hodges) MOSFET with automatic differentiation

Square-law drain current with body effect and channel-length modulation:

    vth = vto + gamma * (sqrt(phi - vbs) - sqrt(phi))
    cutoff     vgs <= vth:          ids = 0
    linear     vds <  vgs - vth:    ids = beta * (vgst - vds/2) * vds * (1 + lambda*vds)
    saturation otherwise:           ids = beta/2 * vgst^2 * (1 + lambda*vds)

with beta = kp * w / l. gm, gds and gmbs are computed by JAX.

PMOS devices are evaluated in the mirrored frame (all terminal voltages
negated, vto taken as polarity * vto as in SPICE). When the mirrored
vds is negative the drain and source roles are swapped, so the model
function itself only sees vds >= 0.
"""

from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import MNABuilder, MNALayout
from mnajax.circuit import Mosfet
from mnajax.devices.base import (
    require_finite,
    require_positive,
    stamp_conductance,
    stamp_current,
    stamp_transconductance,
)
from mnajax.errors import InvalidDeviceParameter


class Level1Params(NamedTuple):
    """Model parameters in the mirrored (NMOS) frame"""

    beta: float
    vto: float
    lambda_: float
    gamma: float
    phi: float


def level1_ids(vgs, vds, vbs, params: Level1Params):
    """Drain current for vds >= 0

    Pure and differentiable in (vgs, vds, vbs):
    - gm = dIds/dVgs (transconductance)
    - gds = dIds/dVds (output conductance)
    - gmbs = dIds/dVbs (body transconductance)
    """
    sarg = jnp.sqrt(jnp.maximum(params.phi - vbs, 1e-6))
    vth = params.vto + params.gamma * (sarg - jnp.sqrt(params.phi))
    vgst = vgs - vth
    clm = 1.0 + params.lambda_ * vds

    i_lin = params.beta * (vgst - 0.5 * vds) * vds * clm
    i_sat = 0.5 * params.beta * vgst * vgst * clm
    i_on = jnp.where(vds < vgst, i_lin, i_sat)
    return jnp.where(vgst > 0.0, i_on, 0.0)


_level1_eval = jax.jit(jax.value_and_grad(level1_ids, argnums=(0, 1, 2)))


def model_params(dev: Mosfet) -> Level1Params:
    sign = 1.0 if dev.polarity == "n" else -1.0
    return Level1Params(
        beta=dev.kp * dev.w / dev.l,
        vto=sign * dev.vto,
        lambda_=dev.lambda_,
        gamma=dev.gamma,
        phi=dev.phi,
    )


def stamp_mosfet(dev: Mosfet, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    sign = 1.0 if dev.polarity == "n" else -1.0
    v = {node: sign * MNALayout.voltage(x, node) for node in dev.nodes}

    # Reverse mode: the lower mirrored terminal acts as the source
    if v[dev.drain] >= v[dev.source]:
        d, s = dev.drain, dev.source
    else:
        d, s = dev.source, dev.drain
    g, b = dev.gate, dev.bulk

    vgs = v[g] - v[s]
    vds = v[d] - v[s]
    vbs = v[b] - v[s]
    ids, (gm, gds, gmbs) = _level1_eval(vgs, vds, vbs, model_params(dev))
    ids, gm, gds, gmbs = float(ids), float(gm), float(gds), float(gmbs)

    # Current flows from d through the channel to s
    stamp_transconductance(builder, d, s, g, s, gm)
    stamp_conductance(builder, d, s, gds + ctx.gmin)
    stamp_transconductance(builder, d, s, b, s, gmbs)
    if not ctx.is_ac:
        stamp_current(builder, d, s, sign * (ids - gm * vgs - gds * vds - gmbs * vbs))


def validate_mosfet(dev: Mosfet, layout: MNALayout):
    if dev.polarity not in ("n", "p"):
        raise InvalidDeviceParameter(dev.name, "polarity", dev.polarity, "must be 'n' or 'p'")
    require_positive(dev.name, "w", dev.w)
    require_positive(dev.name, "l", dev.l)
    require_positive(dev.name, "kp", dev.kp)
    require_positive(dev.name, "phi", dev.phi)
    require_finite(dev.name, "vto", dev.vto)
    require_finite(dev.name, "lambda_", dev.lambda_)
    require_finite(dev.name, "gamma", dev.gamma)
