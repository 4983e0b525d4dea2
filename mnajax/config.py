"""Default configuration values for mnajax simulations.

This module centralizes configuration constants used throughout the simulator.
"""

# Physical constants (CODATA 2018 exact values)
K_BOLTZMANN = 1.380649e-23  # Boltzmann constant (J/K)
Q_ELECTRON = 1.602176634e-19  # Elementary charge (C)

# Temperature in Kelvin (27C = 300.15K)
# Standard SPICE simulation temperature - used as default for all analyses
DEFAULT_TEMPERATURE_K = 300.15

# Largest exponent argument evaluated exactly in junction models; beyond it
# the exponential is continued linearly.
MAX_EXP_ARG = 40.0


def thermal_voltage(temperature: float = DEFAULT_TEMPERATURE_K) -> float:
    """Thermal voltage kT/q in volts."""
    return K_BOLTZMANN * temperature / Q_ELECTRON
