"""Analysis context for mnajax

Provides context information to device stamps during assembly, allowing
them to modify behavior based on the type of analysis being performed:
reactive devices stamp open/short in DC, admittances in AC and companion
models in transient; independent sources pick their DC value, AC phasor or
waveform value at the current time.

The context also carries the continuation knobs (source scale, device
gmin, node shunt) so a homotopy level is just a different context.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Mapping, Optional

import numpy as np

from mnajax.analysis.integration import IntegrationCoeffs
from mnajax.config import DEFAULT_TEMPERATURE_K


class AnalysisType(Enum):
    """Type of circuit analysis being performed"""

    DC = auto()  # DC operating point or DC sweep
    AC = auto()  # Small-signal AC analysis
    TRANSIENT = auto()  # Time-domain transient analysis


@dataclass(frozen=True)
class AnalysisContext:
    """Context information passed to devices during stamping

    Attributes:
        analysis_type: The type of analysis being performed
        time: Time at which waveform sources are evaluated (None: DC values)
        time_step: Current time step h (transient only)
        temperature: Circuit temperature in Kelvin
        source_scale: Factor applied to every independent source (source stepping)
        gmin: Conductance in parallel with every nonlinear junction
        gshunt: Conductance from every node to ground (gmin stepping)
        source_values: DC value overrides by source name (DC sweep)
        coeffs: Integration coefficients for this step (transient only)
        history: dQ/dt history term per reactive device (transient only)
        reactive_index: Position of each reactive device in ``history``
    """

    analysis_type: AnalysisType
    time: Optional[float] = None
    time_step: Optional[float] = None
    temperature: float = DEFAULT_TEMPERATURE_K
    source_scale: float = 1.0
    gmin: float = 1e-12
    gshunt: float = 0.0
    source_values: Mapping[str, float] = field(default_factory=dict)
    coeffs: Optional[IntegrationCoeffs] = None
    history: Optional[np.ndarray] = None
    reactive_index: Mapping[str, int] = field(default_factory=dict)

    @property
    def is_transient(self) -> bool:
        """True if this is transient analysis (companion models)"""
        return self.analysis_type == AnalysisType.TRANSIENT

    @property
    def is_ac(self) -> bool:
        """True if this is AC small-signal analysis"""
        return self.analysis_type == AnalysisType.AC

    def history_term(self, name: str) -> float:
        """History contribution of a reactive device for the current step."""
        return float(self.history[self.reactive_index[name]])

    def with_continuation(
        self,
        source_scale: Optional[float] = None,
        gshunt: Optional[float] = None,
        gmin: Optional[float] = None,
    ) -> "AnalysisContext":
        """Copy with continuation parameters replaced."""
        return replace(
            self,
            source_scale=self.source_scale if source_scale is None else source_scale,
            gshunt=self.gshunt if gshunt is None else gshunt,
            gmin=self.gmin if gmin is None else gmin,
        )

    @classmethod
    def dc(
        cls,
        temperature: float = DEFAULT_TEMPERATURE_K,
        gmin: float = 1e-12,
        source_values: Optional[Mapping[str, float]] = None,
        time: Optional[float] = None,
    ) -> "AnalysisContext":
        """Create a DC analysis context

        Args:
            temperature: Circuit temperature in Kelvin
            gmin: Junction gmin for nonlinear devices
            source_values: DC value overrides by source name
            time: Time at which waveform sources are evaluated; None uses
                each source's DC value

        Returns:
            AnalysisContext configured for DC analysis
        """
        return cls(
            analysis_type=AnalysisType.DC,
            time=time,
            temperature=temperature,
            gmin=gmin,
            source_values=dict(source_values or {}),
        )

    @classmethod
    def transient(
        cls,
        time: float,
        time_step: float,
        coeffs: IntegrationCoeffs,
        history: np.ndarray,
        reactive_index: Mapping[str, int],
        temperature: float = DEFAULT_TEMPERATURE_K,
        gmin: float = 1e-12,
    ) -> "AnalysisContext":
        """Create a transient analysis context

        Args:
            time: Time of the point being solved
            time_step: Step h from the last accepted point
            coeffs: Integration coefficients for this step
            history: History term per reactive device
            reactive_index: Position of each reactive device in history
            temperature: Circuit temperature in Kelvin
            gmin: Junction gmin for nonlinear devices

        Returns:
            AnalysisContext configured for transient analysis
        """
        return cls(
            analysis_type=AnalysisType.TRANSIENT,
            time=time,
            time_step=time_step,
            temperature=temperature,
            gmin=gmin,
            coeffs=coeffs,
            history=history,
            reactive_index=dict(reactive_index),
        )

    @classmethod
    def ac(cls, temperature: float = DEFAULT_TEMPERATURE_K, gmin: float = 1e-12) -> "AnalysisContext":
        """Create an AC analysis context

        The AC system is assembled once as G + j*omega*C, so no frequency
        is carried here.
        """
        return cls(analysis_type=AnalysisType.AC, temperature=temperature, gmin=gmin)
