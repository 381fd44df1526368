"""Steady-state analysis of detector responses.

Example:
    >>> from emdforge.analysis import fit_sweep
    >>> fits = fit_sweep(result)  # result: SweepResult
    >>> fits.peak((0, 0))
"""

from emdforge.analysis.steady_state import (
    DEFAULT_R2_THRESHOLD,
    DEFAULT_TRANSIENT_SAMPLES,
    DEFAULT_TRANSIENT_SECONDS,
    FitResult,
    SteadyStateFit,
    SweepFits,
    fit_sweep,
    wrap_phase,
)

__all__ = [
    "DEFAULT_R2_THRESHOLD",
    "DEFAULT_TRANSIENT_SAMPLES",
    "DEFAULT_TRANSIENT_SECONDS",
    "FitResult",
    "SteadyStateFit",
    "SweepFits",
    "fit_sweep",
    "wrap_phase",
]
