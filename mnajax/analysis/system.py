"""Per-circuit MNA system: validation, layout and assembly.

An MNASystem is built once per Circuit. Construction validates every
device before any solve; ``assemble`` then refreshes (A, b) from the
current solution estimate by resetting the builder and letting every
device add its stamp. A node-to-ground shunt conductance (gshunt) is
stamped on every node diagonal, so the sparsity pattern is the same
with or without gmin stepping.

The reactive state of the circuit (capacitor charge and inductor flux)
is what the transient engine integrates; it is exposed here as vectors
ordered like ``reactive_devices``.
"""

import logging
from typing import Dict, Tuple

import numpy as np
from jaxtyping import Float

from mnajax.analysis.context import AnalysisContext
from mnajax.analysis.mna_builder import MNABuilder, MNALayout
from mnajax.circuit import Capacitor, Circuit, Device, Inductor
from mnajax.devices import stamp_device, validate_device
from mnajax.errors import InvalidDeviceParameter

logger = logging.getLogger(__name__)


class MNASystem:
    """Validated layout and assembly routine for one Circuit

    Attributes:
        circuit: The circuit (read-only)
        layout: Unknown-vector layout
        reactive_devices: Capacitors and inductors in declaration order
        reactive_index: Position of each reactive device by name
        is_linear: True if no device depends on the solution estimate
    """

    def __init__(self, circuit: Circuit):
        self.circuit = circuit
        self.layout = MNALayout.from_circuit(circuit)
        self._validate()

        self.reactive_devices: Tuple[Device, ...] = tuple(d for d in circuit.devices if d.reactive)
        self.reactive_index: Dict[str, int] = {d.name: i for i, d in enumerate(self.reactive_devices)}
        self.is_linear = not any(d.nonlinear for d in circuit.devices)

    @property
    def size(self) -> int:
        return self.layout.size

    def _validate(self):
        num_nodes = self.circuit.num_nodes
        seen = set()
        for dev in self.circuit.devices:
            if dev.name in seen:
                raise InvalidDeviceParameter(dev.name, "name", dev.name, "duplicate device name")
            seen.add(dev.name)
            for node in dev.nodes:
                if not 0 <= node < num_nodes:
                    raise InvalidDeviceParameter(dev.name, "node", node, f"outside 0..{num_nodes - 1}")
            validate_device(dev, self.layout)

    def new_builder(self, complex_rhs: bool = False) -> MNABuilder:
        """Fresh accumulator for one analysis run."""
        return MNABuilder(self.layout, rhs_dtype=np.complex128 if complex_rhs else np.float64)

    def assemble(self, builder: MNABuilder, x: np.ndarray, ctx: AnalysisContext) -> MNABuilder:
        """Rebuild (A, b) in ``builder`` at solution estimate x."""
        builder.reset()
        for dev in self.circuit.devices:
            stamp_device(dev, builder, x, ctx)
        for node in range(1, self.layout.num_nodes):
            builder.add(node, node, ctx.gshunt)
        return builder

    # -------------------------------------------------------------------------
    # Reactive state
    # -------------------------------------------------------------------------

    def reactive_states(self, x: Float[np.ndarray, "n"]) -> Float[np.ndarray, "r"]:
        """Capacitor voltages and inductor currents at solution x."""
        out = np.zeros(len(self.reactive_devices), dtype=np.float64)
        for i, dev in enumerate(self.reactive_devices):
            if isinstance(dev, Inductor):
                out[i] = MNALayout.value(x, self.layout.branch_row(dev.name))
            else:
                out[i] = MNALayout.voltage(x, dev.p) - MNALayout.voltage(x, dev.n)
        return out

    def reactive_scales(self) -> Float[np.ndarray, "r"]:
        """Capacitance or inductance of every reactive device."""
        return np.array(
            [d.capacitance if isinstance(d, Capacitor) else d.inductance for d in self.reactive_devices],
            dtype=np.float64,
        )

    def charges(self, x: Float[np.ndarray, "n"]) -> Float[np.ndarray, "r"]:
        """Charge (capacitors) and flux (inductors) at solution x."""
        return self.reactive_scales() * self.reactive_states(x)

    def reactive_abstol(self, vntol: float, abstol: float) -> Float[np.ndarray, "r"]:
        """Absolute tolerance per reactive state: vntol for voltages, abstol for currents."""
        return np.array(
            [abstol if isinstance(d, Inductor) else vntol for d in self.reactive_devices],
            dtype=np.float64,
        )

    def initial_state(self) -> Tuple[np.ndarray, np.ndarray]:
        """Zero solution seeded with device ic values, and the matching reactive states.

        Inductor ic values set their branch currents. A capacitor ic sets the
        voltage of one terminal when the other terminal is ground or already
        fixed by another capacitor ic; chains of capacitors are followed from
        ground outwards. Any other capacitor ic seeds the reactive state only.
        """
        x = np.zeros(self.size, dtype=np.float64)
        states = np.zeros(len(self.reactive_devices), dtype=np.float64)
        pending = []
        for i, dev in enumerate(self.reactive_devices):
            if dev.ic is None:
                continue
            states[i] = dev.ic
            if isinstance(dev, Inductor):
                x[self.layout.branch_row(dev.name) - 1] = dev.ic
            else:
                pending.append(dev)

        known = {0}
        progress = True
        while pending and progress:
            progress = False
            for dev in list(pending):
                if dev.n in known and dev.p not in known:
                    x[dev.p - 1] = MNALayout.voltage(x, dev.n) + dev.ic
                    known.add(dev.p)
                elif dev.p in known and dev.n not in known:
                    x[dev.n - 1] = MNALayout.voltage(x, dev.p) - dev.ic
                    known.add(dev.n)
                elif dev.p not in known:
                    continue
                pending.remove(dev)
                progress = True
        return x, states
