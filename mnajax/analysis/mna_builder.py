"""MNA layout and stamp accumulator for mnajax.

The unknown vector holds node voltages for nodes 1..N-1 followed by one
branch current per device that needs one. Stamps address rows and columns
by *MNA index*:

    0               ground (contributions are dropped)
    1 .. N-1        node voltages
    N .. N+K-1      auxiliary branch currents, in AuxVarTable order

MNA index i lives at position i-1 of the unknown vector.

The accumulator stores matrix entries in a fixed slot per (row, col) pair.
Slots are assigned on first touch and never move, so the COO structure
found by the first assembly pass is reused by every later Newton
iteration and time step; only slot values are refreshed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from mnajax.circuit import Circuit
from mnajax.errors import InvalidDeviceParameter

logger = logging.getLogger(__name__)


@dataclass
class AuxVarTable:
    """First-seen assignment of branch-current unknowns to devices."""

    name_to_id: Dict[str, int] = field(default_factory=dict)
    names: List[str] = field(default_factory=list)

    def allocate(self, name: str) -> int:
        """Return the aux id of a device, assigning the next id on first reference."""
        aux_id = self.name_to_id.get(name)
        if aux_id is None:
            aux_id = len(self.names)
            self.name_to_id[name] = aux_id
            self.names.append(name)
        return aux_id

    def lookup(self, name: str) -> Optional[int]:
        return self.name_to_id.get(name)

    def __len__(self) -> int:
        return len(self.names)


@dataclass
class MNALayout:
    """Unknown-vector layout for one Circuit, fixed for its lifetime."""

    num_nodes: int
    node_names: Tuple[str, ...]
    aux: AuxVarTable

    @classmethod
    def from_circuit(cls, circuit: Circuit) -> "MNALayout":
        aux = AuxVarTable()
        for dev in circuit.devices:
            if dev.needs_branch:
                aux.allocate(dev.name)
        layout = cls(num_nodes=circuit.num_nodes, node_names=circuit.nodes, aux=aux)
        logger.debug(f"MNA layout: {layout.num_nodes - 1} node unknowns, {len(aux)} branch unknowns")
        return layout

    @property
    def num_node_unknowns(self) -> int:
        return self.num_nodes - 1

    @property
    def size(self) -> int:
        return self.num_nodes - 1 + len(self.aux)

    def branch_row(self, name: str) -> int:
        """MNA index of a device's branch-current unknown."""
        aux_id = self.aux.lookup(name)
        if aux_id is None:
            raise InvalidDeviceParameter(name, "branch", None, "not a branch-current device")
        return self.num_nodes + aux_id

    def unknown_names(self) -> Tuple[str, ...]:
        return tuple(f"V({n})" for n in self.node_names[1:]) + tuple(f"I({n})" for n in self.aux.names)

    def abstol_vector(self, vntol: float, abstol: float) -> np.ndarray:
        """Per-unknown absolute tolerance: vntol for voltages, abstol for currents."""
        tol = np.full(self.size, abstol, dtype=np.float64)
        tol[: self.num_node_unknowns] = vntol
        return tol

    @staticmethod
    def voltage(x: np.ndarray, node: int) -> float:
        """Voltage of a node in solution x (ground reads 0)."""
        return 0.0 if node == 0 else float(x[node - 1])

    @staticmethod
    def value(x: np.ndarray, index: int) -> float:
        """Value of any MNA index in solution x."""
        return 0.0 if index == 0 else float(x[index - 1])


class MNABuilder:
    """Additive accumulator for (A, b) with slot-indexed matrix storage.

    Resistive entries go to ``add``; reactive entries (AC only) go to
    ``add_reactive`` on the same slots, so A(omega) = G + j*omega*C shares
    one sparsity pattern.
    """

    def __init__(self, layout: MNALayout, rhs_dtype=np.float64):
        self.layout = layout
        self.size = layout.size
        self._slots: Dict[Tuple[int, int], int] = {}
        self._rows: List[int] = []
        self._cols: List[int] = []
        self._values = np.zeros(16, dtype=np.float64)
        self._reactive = np.zeros(16, dtype=np.float64)
        self.rhs = np.zeros(self.size, dtype=rhs_dtype)
        self.pattern_version = 0

    def reset(self):
        """Zero all values while keeping the slot structure."""
        self._values.fill(0.0)
        self._reactive.fill(0.0)
        self.rhs.fill(0)

    def _slot(self, row: int, col: int) -> int:
        key = (row, col)
        slot = self._slots.get(key)
        if slot is None:
            slot = len(self._rows)
            if slot == len(self._values):
                self._values = np.concatenate([self._values, np.zeros_like(self._values)])
                self._reactive = np.concatenate([self._reactive, np.zeros_like(self._reactive)])
            self._slots[key] = slot
            self._rows.append(row)
            self._cols.append(col)
            self.pattern_version += 1
        return slot

    def add(self, row: int, col: int, value: float):
        if row == 0 or col == 0:
            return
        self._values[self._slot(row - 1, col - 1)] += value

    def add_reactive(self, row: int, col: int, value: float):
        if row == 0 or col == 0:
            return
        self._reactive[self._slot(row - 1, col - 1)] += value

    def add_rhs(self, row: int, value):
        if row == 0:
            return
        self.rhs[row - 1] += value

    @property
    def nnz(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> np.ndarray:
        return np.asarray(self._rows, dtype=np.int64)

    @property
    def cols(self) -> np.ndarray:
        return np.asarray(self._cols, dtype=np.int64)

    def values(self, omega: Optional[float] = None) -> np.ndarray:
        """Slot values; with omega, the complex values of G + j*omega*C."""
        n = self.nnz
        if omega is None:
            return self._values[:n].copy()
        return self._values[:n] + 1j * omega * self._reactive[:n]

    def reactive_values(self) -> np.ndarray:
        return self._reactive[: self.nnz].copy()

    def to_dense(self, omega: Optional[float] = None) -> np.ndarray:
        vals = self.values(omega)
        A = np.zeros((self.size, self.size), dtype=vals.dtype)
        if self.nnz:
            A[self.rows, self.cols] = vals
        return A

    def residual(self, x: np.ndarray) -> np.ndarray:
        """A @ x - b using the slot storage."""
        r = np.zeros(self.size, dtype=np.result_type(self._values, x, self.rhs))
        if self.nnz:
            np.add.at(r, self.rows, self._values[: self.nnz] * x[self.cols])
        return r - self.rhs
