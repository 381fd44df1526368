"""EMDForge: frequency-response sweeps of elementary motion detector arrays.

EMDForge simulates a circular array of correlation-type elementary motion
detectors (Hassenstein-Reichardt correlators) sampling a rotating,
high-pass filtered sinusoidal grating, optionally counter-rotated by a head
motion signal. Sweeping the oscillation frequency, oscillation amplitude or
spatial period of the grating and fitting a sinusoid to each steady-state
response yields gain, phase and fit-quality curves.

Key Components:
    - stimuli: Full-circle gratings and oscillation trajectories
    - filters: Spatial high-pass, acceptance blur, temporal low-pass
    - solvers: ODE integration (Euler)
    - core: Detector array, sweep harness, batch executor
    - analysis: Steady-state sinusoid fits
    - config: YAML experiment configuration
    - cli: Command-line interface

Example:
    >>> from emdforge import EMDArray, SweepHarness, fit_sweep
    >>> harness = SweepHarness(EMDArray())
    >>> result = harness.run_sweep("frequency", [0.5, 1.0, 2.0, 4.0])
    >>> fits = fit_sweep(result)
"""

__version__ = "0.1.0"
__author__ = "EMDForge Contributors"
__license__ = "MIT"

# The core package must be imported before filters and stimuli.
from emdforge.core import (
    ConditionFailure,
    EMDArray,
    EMDArrayConfig,
    FitQualityWarning,
    InvalidParameterError,
    SimulationConfig,
    SimulationFailure,
    SimulationOutput,
    StimulusCondition,
    StimulusDefaults,
    SweepHarness,
    SweepResult,
    SweepVariable,
)
from emdforge.stimuli.grating import GratingGenerator
from emdforge.filters.highpass import EdgeSafeFilter
from emdforge.analysis.steady_state import FitResult, SteadyStateFit, SweepFits, fit_sweep
from emdforge.config.schema import ExperimentConfig
from emdforge.core.batch_executor import BatchExecutor, run_experiments

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "ConditionFailure",
    "EMDArray",
    "EMDArrayConfig",
    "FitQualityWarning",
    "InvalidParameterError",
    "SimulationConfig",
    "SimulationFailure",
    "SimulationOutput",
    "StimulusCondition",
    "StimulusDefaults",
    "SweepHarness",
    "SweepResult",
    "SweepVariable",
    "GratingGenerator",
    "EdgeSafeFilter",
    "FitResult",
    "SteadyStateFit",
    "SweepFits",
    "fit_sweep",
    "ExperimentConfig",
    "BatchExecutor",
    "run_experiments",
]
