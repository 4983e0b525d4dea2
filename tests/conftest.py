"""Pytest configuration for mnajax tests

Handles platform-specific JAX configuration:
- macOS: Forces CPU backend since Metal doesn't support float64 or triangular_solve

Enables jaxtyping runtime checks with beartype for array annotations.

Uses pytest_configure hook to ensure configuration happens before any test imports.

Also provides shared circuit builders used across test modules.
"""

import os
import sys

import pytest


def _setup_jaxtyping():
    """Enable jaxtyping runtime checking with beartype for mnajax modules."""
    from jaxtyping import install_import_hook

    install_import_hook("mnajax", "beartype.beartype")


def pytest_configure(config):
    """
    Pytest hook that runs before test collection.

    This ensures JAX is configured BEFORE any test modules are imported.
    """
    if sys.platform == "darwin":
        # macOS: Force CPU backend - Metal doesn't support float64
        os.environ["JAX_PLATFORMS"] = "cpu"

    # Enable jaxtyping runtime checking (must be before mnajax imports)
    _setup_jaxtyping()

    # Import mnajax to configure float64 precision
    import mnajax  # noqa: F401


# =============================================================================
# Shared circuit builders
# =============================================================================


@pytest.fixture
def divider_circuit():
    """V1=1V, R1=1k from in to out, R2=2k from out to ground."""
    from mnajax.circuit import Circuit, OpCommand, Resistor, VoltageSource

    return Circuit(
        nodes=("0", "in", "out"),
        devices=(
            VoltageSource("V1", 1, 0, dc=1.0),
            Resistor("R1", 1, 2, 1e3),
            Resistor("R2", 2, 0, 2e3),
        ),
        analyses=(OpCommand(),),
    )


def rc_lowpass(waveform=None, ac_mag=1.0):
    """R=1k from in to out, C=1uF from out to ground (cutoff 159.15 Hz)."""
    from mnajax.circuit import Capacitor, Circuit, Resistor, VoltageSource

    return Circuit(
        nodes=("0", "in", "out"),
        devices=(
            VoltageSource("V1", 1, 0, dc=0.0, ac_mag=ac_mag, waveform=waveform),
            Resistor("R1", 1, 2, 1e3),
            Capacitor("C1", 2, 0, 1e-6),
        ),
    )


@pytest.fixture
def rc_circuit():
    return rc_lowpass()
