"""Elaborated circuit representation consumed by the analysis engines.

A Circuit is immutable: node names (index 0 is ground), a tuple of device
instances with resolved numeric parameters, and a tuple of analysis
commands. Devices are a closed set of frozen dataclasses; each kind carries
class-level flags the MNA layout uses:

    needs_branch: the device owns a branch-current unknown
    nonlinear:    stamps depend on the current solution estimate
    reactive:     stamps depend on the integration state in transient

Example:
    circuit = Circuit(
        nodes=("0", "in", "out"),
        devices=(
            VoltageSource("V1", 1, 0, dc=1.0),
            Resistor("R1", 1, 2, 1e3),
            Resistor("R2", 2, 0, 2e3),
        ),
        analyses=(OpCommand(),),
    )
"""

from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple, Union

from mnajax.sources import Waveform


# =============================================================================
# Device variants
# =============================================================================


@dataclass(frozen=True)
class Resistor:
    name: str
    p: int
    n: int
    resistance: float

    needs_branch: ClassVar[bool] = False
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n)


@dataclass(frozen=True)
class Capacitor:
    name: str
    p: int
    n: int
    capacitance: float
    ic: Optional[float] = None

    needs_branch: ClassVar[bool] = False
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = True

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n)


@dataclass(frozen=True)
class Inductor:
    name: str
    p: int
    n: int
    inductance: float
    ic: Optional[float] = None

    needs_branch: ClassVar[bool] = True
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = True

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n)


@dataclass(frozen=True)
class VoltageSource:
    """Independent voltage source; V(p) - V(n) = value.

    The branch current is positive flowing from p through the source to n.
    """

    name: str
    p: int
    n: int
    dc: float = 0.0
    ac_mag: float = 0.0
    ac_phase: float = 0.0
    waveform: Optional[Waveform] = None

    needs_branch: ClassVar[bool] = True
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n)


@dataclass(frozen=True)
class CurrentSource:
    """Independent current source; current flows from p through the source to n."""

    name: str
    p: int
    n: int
    dc: float = 0.0
    ac_mag: float = 0.0
    ac_phase: float = 0.0
    waveform: Optional[Waveform] = None

    needs_branch: ClassVar[bool] = False
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n)


@dataclass(frozen=True)
class Diode:
    name: str
    anode: int
    cathode: int
    saturation_current: float = 1e-14
    emission_coefficient: float = 1.0

    needs_branch: ClassVar[bool] = False
    nonlinear: ClassVar[bool] = True
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.anode, self.cathode)


@dataclass(frozen=True)
class Mosfet:
    """Level-1 (Shichman-Hodges) MOSFET.

    polarity is "n" or "p". kp is the process transconductance (A/V^2);
    beta = kp * w / l.
    """

    name: str
    drain: int
    gate: int
    source: int
    bulk: int
    polarity: str = "n"
    w: float = 1e-6
    l: float = 1e-6
    vto: float = 0.7
    kp: float = 2e-5
    lambda_: float = 0.0
    gamma: float = 0.0
    phi: float = 0.6

    needs_branch: ClassVar[bool] = False
    nonlinear: ClassVar[bool] = True
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.drain, self.gate, self.source, self.bulk)


@dataclass(frozen=True)
class VCVS:
    """V(p) - V(n) = gain * (V(cp) - V(cn))"""

    name: str
    p: int
    n: int
    cp: int
    cn: int
    gain: float

    needs_branch: ClassVar[bool] = True
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n, self.cp, self.cn)


@dataclass(frozen=True)
class VCCS:
    """Current gm * (V(cp) - V(cn)) flows from p through the source to n."""

    name: str
    p: int
    n: int
    cp: int
    cn: int
    transconductance: float

    needs_branch: ClassVar[bool] = False
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n, self.cp, self.cn)


@dataclass(frozen=True)
class CCCS:
    """Current gain * I(control) flows from p through the source to n.

    control names a device owning a branch current (voltage source,
    inductor, VCVS or CCVS).
    """

    name: str
    p: int
    n: int
    control: str
    gain: float

    needs_branch: ClassVar[bool] = False
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n)


@dataclass(frozen=True)
class CCVS:
    """V(p) - V(n) = transresistance * I(control)"""

    name: str
    p: int
    n: int
    control: str
    transresistance: float

    needs_branch: ClassVar[bool] = True
    nonlinear: ClassVar[bool] = False
    reactive: ClassVar[bool] = False

    @property
    def nodes(self) -> Tuple[int, ...]:
        return (self.p, self.n)


Device = Union[
    Resistor,
    Capacitor,
    Inductor,
    VoltageSource,
    CurrentSource,
    Diode,
    Mosfet,
    VCVS,
    VCCS,
    CCCS,
    CCVS,
]


# =============================================================================
# Analysis commands
# =============================================================================


@dataclass(frozen=True)
class OpCommand:
    """DC operating point."""


@dataclass(frozen=True)
class DCSweepCommand:
    """Sweep the DC value of an independent source from start to stop."""

    source: str
    start: float
    stop: float
    step: float


@dataclass(frozen=True)
class ACCommand:
    """Small-signal frequency sweep; mode is 'dec', 'oct' or 'lin'."""

    mode: str
    points: int
    freq_start: float
    freq_stop: float


@dataclass(frozen=True)
class TranCommand:
    """Transient analysis from 0 to t_stop.

    Attributes:
        t_stop: Final simulation time
        t_step: Suggested output step, used to derive the initial step
        t_start: Points before t_start are simulated but not recorded
        h_max: Upper bound on the internal step
        uic: Start from zero state (plus device ic values) instead of the
            operating point
    """

    t_stop: float
    t_step: Optional[float] = None
    t_start: float = 0.0
    h_max: Optional[float] = None
    uic: bool = False


AnalysisCommand = Union[OpCommand, DCSweepCommand, ACCommand, TranCommand]


# =============================================================================
# Circuit
# =============================================================================


@dataclass(frozen=True)
class Circuit:
    """Immutable elaborated circuit.

    Attributes:
        nodes: Node names; index 0 is the ground reference
        devices: Device instances in declaration order
        analyses: Analysis commands to run, in order
    """

    nodes: Tuple[str, ...]
    devices: Tuple[Device, ...]
    analyses: Tuple[AnalysisCommand, ...] = ()

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    def device(self, name: str) -> Device:
        """Device instance by name; raises KeyError for unknown devices."""
        for dev in self.devices:
            if dev.name == name:
                return dev
        raise KeyError(f"Unknown device: {name}")
