"""Device stamps for mnajax

Every device kind maps to a stamp function and a parameter validator:

    stamp(dev, builder, x, ctx)   adds the device's linearized contribution
    validate(dev, layout)         raises InvalidDeviceParameter on bad input

Stamps only ever add to the shared builder; they never reset it.
"""

from typing import Callable, Dict, Tuple

import numpy as np

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import MNABuilder, MNALayout
from mnajax.circuit import (
    CCCS,
    CCVS,
    VCCS,
    VCVS,
    Capacitor,
    CurrentSource,
    Device,
    Diode,
    Inductor,
    Mosfet,
    Resistor,
    VoltageSource,
)
from mnajax.devices.controlled import (
    stamp_cccs,
    stamp_ccvs,
    stamp_vccs,
    stamp_vcvs,
    validate_cccs,
    validate_ccvs,
    validate_vccs,
    validate_vcvs,
)
from mnajax.devices.diode import stamp_diode, validate_diode
from mnajax.devices.mosfet import stamp_mosfet, validate_mosfet
from mnajax.devices.passive import (
    stamp_capacitor,
    stamp_inductor,
    stamp_resistor,
    validate_capacitor,
    validate_inductor,
    validate_resistor,
)
from mnajax.devices.sources import stamp_current_source, stamp_voltage_source, validate_source

DEVICE_HANDLERS: Dict[type, Tuple[Callable, Callable]] = {
    Resistor: (stamp_resistor, validate_resistor),
    Capacitor: (stamp_capacitor, validate_capacitor),
    Inductor: (stamp_inductor, validate_inductor),
    VoltageSource: (stamp_voltage_source, validate_source),
    CurrentSource: (stamp_current_source, validate_source),
    Diode: (stamp_diode, validate_diode),
    Mosfet: (stamp_mosfet, validate_mosfet),
    VCVS: (stamp_vcvs, validate_vcvs),
    VCCS: (stamp_vccs, validate_vccs),
    CCCS: (stamp_cccs, validate_cccs),
    CCVS: (stamp_ccvs, validate_ccvs),
}


def _handlers(dev: Device) -> Tuple[Callable, Callable]:
    try:
        return DEVICE_HANDLERS[type(dev)]
    except KeyError:
        raise TypeError(f"Unsupported device type: {type(dev).__name__}") from None


def stamp_device(dev: Device, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext):
    """Add one device's contribution to the builder."""
    _handlers(dev)[0](dev, builder, x, ctx)


def validate_device(dev: Device, layout: MNALayout):
    """Check one device's parameters against the layout."""
    _handlers(dev)[1](dev, layout)


__all__ = [
    "DEVICE_HANDLERS",
    "stamp_device",
    "validate_device",
]
