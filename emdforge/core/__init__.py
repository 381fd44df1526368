"""Core of the motion detector simulation.

Modules:
    errors: Parameter and simulation exceptions, fit-quality warning
    conditions: Stimulus conditions, simulation outputs, failure markers
    emd_array: Circular array of correlation-type motion detectors
    sweep: Frequency/amplitude/spatial-period sweep harness

The array integrates the stimulus filters (spatial high-pass, acceptance
blur) and the low-pass delay stages from :mod:`emdforge.filters`.
"""

from .errors import (
    FitQualityWarning,
    InvalidParameterError,
    SimulationFailure,
    check_parameter,
)
from .conditions import (
    CHANNEL_NAMES,
    RESPONSE_CHANNEL,
    ConditionFailure,
    SimulationOutput,
    StimulusCondition,
    StimulusDefaults,
    SweepVariable,
    is_failure,
)
from .emd_array import EMDArray, EMDArrayConfig, SimulationConfig
from .sweep import SweepEntry, SweepHarness, SweepResult

__all__ = [
    # Errors
    "FitQualityWarning",
    "InvalidParameterError",
    "SimulationFailure",
    "check_parameter",
    # Conditions and outputs
    "CHANNEL_NAMES",
    "RESPONSE_CHANNEL",
    "ConditionFailure",
    "SimulationOutput",
    "StimulusCondition",
    "StimulusDefaults",
    "SweepVariable",
    "is_failure",
    # Detector array
    "EMDArray",
    "EMDArrayConfig",
    "SimulationConfig",
    # Sweeps
    "SweepEntry",
    "SweepHarness",
    "SweepResult",
]
