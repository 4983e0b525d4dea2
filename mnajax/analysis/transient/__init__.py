"""Transient analysis with LTE-controlled adaptive timestep."""

from .adaptive import AdaptiveConfig, TransientHistory, collect_breakpoints, run_transient
from .predictor import (
    PredictorCoeffs,
    compute_new_timestep,
    compute_predictor_coeffs,
    estimate_lte,
    lte_error_ratio,
    predict,
)

__all__ = [
    "AdaptiveConfig",
    "TransientHistory",
    "collect_breakpoints",
    "run_transient",
    "PredictorCoeffs",
    "compute_new_timestep",
    "compute_predictor_coeffs",
    "estimate_lte",
    "lte_error_ratio",
    "predict",
]
