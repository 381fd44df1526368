"""Stimulus conditions, simulation outputs and failure markers.

A :class:`StimulusCondition` is the immutable parameter record for one
simulated trial. Running it through the detector array yields a
:class:`SimulationOutput`; a condition that cannot be simulated yields a
:class:`ConditionFailure` instead, so a sweep always has something explicit
in every slot.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Union

import numpy as np
import torch

from emdforge.core.errors import InvalidParameterError, check_parameter

#: Output channels recorded by the detector array, in logging order.
CHANNEL_NAMES = ("stimulus", "head", "response", "relative", "preferred", "null")

#: Channel the steady-state fit is applied to.
RESPONSE_CHANNEL = "response"


def _fmt(value: Any) -> str:
    if isinstance(value, (int, float)):
        return f"{value:g}"
    return repr(value)


class SweepVariable(str, Enum):
    """Stimulus dimension varied by an experiment."""

    FREQUENCY = "frequency"
    AMPLITUDE = "amplitude"
    SPATIAL_PERIOD = "spatial_period"

    @classmethod
    def parse(cls, value: Union[str, "SweepVariable"]) -> "SweepVariable":
        """Resolve a variable from its name or a common alias.

        Raises:
            ValueError: If ``value`` names no known variable.
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        aliases = {
            "freq": cls.FREQUENCY,
            "amp": cls.AMPLITUDE,
            "wave": cls.SPATIAL_PERIOD,
            "wavelength": cls.SPATIAL_PERIOD,
            "period": cls.SPATIAL_PERIOD,
        }
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(v.value for v in cls)
            raise ValueError(f"Unknown sweep variable '{value}'. Valid: {valid}") from None


@dataclass(frozen=True)
class StimulusCondition:
    """Parameters of one simulated trial.

    Attributes:
        oscillation_frequency: Grating oscillation frequency (Hz).
        oscillation_amplitude: Grating oscillation amplitude (deg).
        spatial_period: Grating spatial period (deg per cycle).
        head_gain: Head counter-rotation gain relative to the grating.
        head_phase: Head counter-rotation phase lead (deg).
    """

    oscillation_frequency: float
    oscillation_amplitude: float
    spatial_period: float
    head_gain: float = 0.0
    head_phase: float = 0.0

    def validate(self) -> "StimulusCondition":
        """Check every field, returning ``self`` when valid.

        Zero frequency or amplitude is a valid stationary stimulus.

        Raises:
            InvalidParameterError: Labelled with this condition.
        """
        try:
            check_parameter("oscillation_frequency", self.oscillation_frequency, non_negative=True)
            check_parameter("oscillation_amplitude", self.oscillation_amplitude, non_negative=True)
            check_parameter("spatial_period", self.spatial_period, positive=True)
            check_parameter("head_gain", self.head_gain)
            check_parameter("head_phase", self.head_phase)
        except InvalidParameterError as exc:
            raise exc.with_condition(self) from None
        return self

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def __str__(self) -> str:
        return (
            f"freq={_fmt(self.oscillation_frequency)}Hz amp={_fmt(self.oscillation_amplitude)}deg "
            f"period={_fmt(self.spatial_period)}deg head_gain={_fmt(self.head_gain)} "
            f"head_phase={_fmt(self.head_phase)}deg"
        )


@dataclass(frozen=True)
class StimulusDefaults:
    """Values held fixed for the stimulus dimensions not being swept."""

    frequency: float = 2.0
    amplitude: float = 5.0
    spatial_period: float = 20.0

    def condition_for(
        self,
        variable: SweepVariable,
        value: float,
        head_gain: float = 0.0,
        head_phase: float = 0.0,
    ) -> StimulusCondition:
        """Condition with ``variable`` set to ``value`` and the rest defaulted."""
        fields = {
            SweepVariable.FREQUENCY: self.frequency,
            SweepVariable.AMPLITUDE: self.amplitude,
            SweepVariable.SPATIAL_PERIOD: self.spatial_period,
        }
        fields[SweepVariable.parse(variable)] = value
        return StimulusCondition(
            oscillation_frequency=fields[SweepVariable.FREQUENCY],
            oscillation_amplitude=fields[SweepVariable.AMPLITUDE],
            spatial_period=fields[SweepVariable.SPATIAL_PERIOD],
            head_gain=head_gain,
            head_phase=head_phase,
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True, eq=False)
class SimulationOutput:
    """Time series produced by one condition; read-only after creation.

    Attributes:
        condition: The simulated condition.
        time: Sample times in seconds, shape ``[n_samples]``.
        channels: Read-only mapping of channel name to series, each of shape
            ``[n_samples]``, ordered as :data:`CHANNEL_NAMES`.
    """

    condition: StimulusCondition
    time: torch.Tensor
    channels: Mapping[str, torch.Tensor]

    def __post_init__(self) -> None:
        object.__setattr__(self, "channels", MappingProxyType(dict(self.channels)))

    @property
    def n_samples(self) -> int:
        return int(self.time.shape[0])

    @property
    def response(self) -> torch.Tensor:
        """Population motion signal used for the steady-state fit."""
        return self.channels[RESPONSE_CHANNEL]

    def series(self, channel: str = RESPONSE_CHANNEL) -> np.ndarray:
        """Channel as a NumPy array on the CPU."""
        return self.channels[channel].detach().cpu().numpy()

    def time_array(self) -> np.ndarray:
        return self.time.detach().cpu().numpy()


@dataclass(frozen=True)
class ConditionFailure:
    """Explicit marker stored in a sweep slot whose condition did not run.

    Attributes:
        condition: The condition that failed.
        kind: ``"invalid_parameter"``, ``"simulation_failure"`` or
            ``"cancelled"``.
        message: Human-readable reason.
    """

    condition: StimulusCondition
    kind: str
    message: str

    INVALID_PARAMETER = "invalid_parameter"
    SIMULATION_FAILURE = "simulation_failure"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


SlotResult = Union[SimulationOutput, ConditionFailure]


def is_failure(slot: Any) -> bool:
    """True if a sweep slot holds a :class:`ConditionFailure`."""
    return isinstance(slot, ConditionFailure)

