"""Experiment configuration schema for EMDForge.

One YAML file describes a complete run: the detector array, the simulation
constants, the grating, the default stimulus, the head-motion conditions,
which of the three sweeps to run with which values, and how to fit the
results. Every section is optional and falls back to documented defaults.

Swept value lists may be written out explicitly or generated::

    sweep:
      test_frequency: true
      frequencies: {logspace: [-1, 2, 100]}      # Hz
      amplitudes: [1, 2, 5, 10]                  # deg
      spatial_frequencies: {logspace: [-2, 0, 100]}  # cycles/deg

Spatial frequencies are snapped to whole cycles on the circle and stored as
the equivalent spatial periods. Unknown keys raise ``ValueError`` so that a
misspelt option is never silently ignored.

Example:
    >>> from emdforge.config.schema import ExperimentConfig
    >>> config = ExperimentConfig.from_yaml("sweep: {test_amplitude: false}")
    >>> config.enabled_experiments()
    [<SweepVariable.FREQUENCY: 'frequency'>, <SweepVariable.SPATIAL_PERIOD: 'spatial_period'>]
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import torch

from emdforge.analysis.steady_state import (
    DEFAULT_R2_THRESHOLD,
    DEFAULT_TRANSIENT_SAMPLES,
    DEFAULT_TRANSIENT_SECONDS,
    SteadyStateFit,
)
from emdforge.config.yaml_utils import dump_yaml, load_yaml, load_yaml_file
from emdforge.core.conditions import StimulusDefaults, SweepVariable
from emdforge.core.emd_array import EMDArrayConfig, SimulationConfig
from emdforge.filters.highpass import DEFAULT_CUTOFF, EdgeSafeFilter
from emdforge.stimuli.grating import (
    N_SAMPLES,
    GratingGenerator,
    snap_spatial_frequencies,
)

_GENERATORS = {
    "logspace": np.logspace,
    "linspace": np.linspace,
}


def expand_values(spec: Any, name: str) -> List[float]:
    """Expand a value-list specification into a list of floats.

    Args:
        spec: A number, a list of numbers, or a one-key mapping
            ``{logspace: [start, stop, num]}`` / ``{linspace: [start, stop, num]}``
            (``logspace`` exponents are base 10).
        name: Option name used in error messages.

    Raises:
        ValueError: If ``spec`` has none of these forms.
    """
    if isinstance(spec, dict):
        if len(spec) != 1 or next(iter(spec)) not in _GENERATORS:
            raise ValueError(
                f"'{name}' must be a list or one of {sorted(_GENERATORS)}, got {spec!r}"
            )
        kind, args = next(iter(spec.items()))
        if not isinstance(args, (list, tuple)) or len(args) != 3:
            raise ValueError(f"'{name}.{kind}' expects [start, stop, num], got {args!r}")
        start, stop, num = args
        if int(num) < 1:
            raise ValueError(f"'{name}.{kind}' needs at least one value, got num={num}")
        return [float(v) for v in _GENERATORS[kind](float(start), float(stop), int(num))]
    if isinstance(spec, (int, float)) and not isinstance(spec, bool):
        return [float(spec)]
    if isinstance(spec, (list, tuple)):
        try:
            values = [float(v) for v in spec]
        except (TypeError, ValueError):
            raise ValueError(f"'{name}' must contain numbers, got {spec!r}") from None
        if not values:
            raise ValueError(f"'{name}' must not be empty")
        return values
    raise ValueError(f"'{name}' must be a list or a generator mapping, got {spec!r}")


def _build(cls: type, data: Optional[Dict[str, Any]], section: str) -> Any:
    """Instantiate dataclass ``cls`` from ``data``, rejecting unknown keys."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"Section '{section}' must be a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(
            f"Unknown key(s) in '{section}': {', '.join(map(str, unknown))}. "
            f"Valid keys: {', '.join(sorted(known))}"
        )
    return cls(**data)


def _default_frequencies() -> List[float]:
    return expand_values({"logspace": [-1, 2, 100]}, "frequencies")


def _default_amplitudes() -> List[float]:
    return expand_values({"logspace": [-1, 3, 200]}, "amplitudes")


def _default_spatial_periods() -> List[float]:
    spatial_freqs = expand_values({"logspace": [-2, 0, 100]}, "spatial_frequencies")
    return [float(1.0 / f) for f in snap_spatial_frequencies(spatial_freqs)]


@dataclass
class GratingConfig:
    """Grating sampling and spatial high-pass filtering.

    Attributes:
        n_samples: Samples spanning 0–360° inclusive.
        mean: Mean luminance.
        contrast: Sinusoidal modulation amplitude about the mean.
        highpass_cutoff: Cut-off of the spatial high-pass (rad/sample).
    """
    n_samples: int = N_SAMPLES
    mean: float = 0.5
    contrast: float = 0.5
    highpass_cutoff: float = DEFAULT_CUTOFF

    def build_generator(self, dtype: torch.dtype = torch.float64) -> GratingGenerator:
        return GratingGenerator(
            n_samples=self.n_samples, mean=self.mean, contrast=self.contrast, dtype=dtype
        )

    def build_highpass(self) -> EdgeSafeFilter:
        return EdgeSafeFilter(cutoff=self.highpass_cutoff)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GratingConfig:
        return _build(cls, data, "grating")


@dataclass
class HeadMotionConfig:
    """Head counter-rotation conditions crossed with every swept value.

    Attributes:
        gains: Head gains relative to the grating oscillation.
        phases: Head phase leads in degrees.
    """
    gains: List[float] = field(default_factory=lambda: [0.0])
    phases: List[float] = field(default_factory=lambda: [0.0])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HeadMotionConfig:
        config = _build(cls, data, "head_motion")
        config.gains = expand_values(config.gains, "head_motion.gains")
        config.phases = expand_values(config.phases, "head_motion.phases")
        return config


@dataclass
class SweepConfig:
    """Which experiments run, and the values each one sweeps.

    Attributes:
        test_frequency: Run the oscillation frequency sweep.
        test_amplitude: Run the oscillation amplitude sweep.
        test_spatial_period: Run the spatial period sweep.
        frequencies: Oscillation frequencies in Hz.
        amplitudes: Oscillation amplitudes in degrees.
        spatial_periods: Grating spatial periods in degrees.
    """
    test_frequency: bool = True
    test_amplitude: bool = True
    test_spatial_period: bool = True
    frequencies: List[float] = field(default_factory=_default_frequencies)
    amplitudes: List[float] = field(default_factory=_default_amplitudes)
    spatial_periods: List[float] = field(default_factory=_default_spatial_periods)

    def is_enabled(self, variable: SweepVariable) -> bool:
        return {
            SweepVariable.FREQUENCY: self.test_frequency,
            SweepVariable.AMPLITUDE: self.test_amplitude,
            SweepVariable.SPATIAL_PERIOD: self.test_spatial_period,
        }[variable]

    def values_for(self, variable: SweepVariable) -> List[float]:
        return {
            SweepVariable.FREQUENCY: self.frequencies,
            SweepVariable.AMPLITUDE: self.amplitudes,
            SweepVariable.SPATIAL_PERIOD: self.spatial_periods,
        }[variable]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SweepConfig:
        data = dict(data or {})
        spatial_freqs = data.pop("spatial_frequencies", None)
        if spatial_freqs is not None:
            if "spatial_periods" in data:
                raise ValueError(
                    "Give either 'sweep.spatial_frequencies' or 'sweep.spatial_periods', not both"
                )
            snapped = snap_spatial_frequencies(
                expand_values(spatial_freqs, "sweep.spatial_frequencies")
            )
            data["spatial_periods"] = [float(1.0 / f) for f in snapped]
        config = _build(cls, data, "sweep")
        for name in ("frequencies", "amplitudes", "spatial_periods"):
            setattr(config, name, expand_values(getattr(config, name), f"sweep.{name}"))
        return config


@dataclass
class FitConfig:
    """Steady-state fit settings.

    Attributes:
        transient_samples: Leading samples discarded before fitting.
        transient_seconds: Leading simulated time discarded before fitting;
            the longer of the two trims applies.
        r2_threshold: Fits below this r² are reported as low quality.
        use_known_frequency: Fix the fit frequency to the stimulus frequency.
        maxfev: Maximum optimizer function evaluations.
    """
    transient_samples: int = DEFAULT_TRANSIENT_SAMPLES
    transient_seconds: float = DEFAULT_TRANSIENT_SECONDS
    r2_threshold: float = DEFAULT_R2_THRESHOLD
    use_known_frequency: bool = True
    maxfev: int = 2000

    def build_fitter(self) -> SteadyStateFit:
        return SteadyStateFit(r2_threshold=self.r2_threshold, maxfev=self.maxfev)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FitConfig:
        return _build(cls, data, "fit")


@dataclass
class ExecutionConfig:
    """How the sweeps are executed.

    Attributes:
        workers: Thread-pool size; ``None`` or 1 runs conditions serially.
        verbose: Print progress lines and a progress bar.
    """
    workers: Optional[int] = None
    verbose: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExecutionConfig:
        return _build(cls, data, "execution")


@dataclass
class ExperimentConfig:
    """Complete configuration of an EMDForge run.

    Attributes:
        array: Detector array geometry and dynamics.
        simulation: Time-stepping constants.
        grating: Grating sampling and high-pass settings.
        defaults: Values of the stimulus dimensions not being swept.
        head_motion: Head counter-rotation conditions.
        sweep: Experiment selection and swept values.
        fit: Steady-state fit settings.
        execution: Worker and progress settings.
        metadata: Free-form metadata (name, notes, ...).
    """
    array: EMDArrayConfig = field(default_factory=EMDArrayConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    grating: GratingConfig = field(default_factory=GratingConfig)
    defaults: StimulusDefaults = field(default_factory=StimulusDefaults)
    head_motion: HeadMotionConfig = field(default_factory=HeadMotionConfig)
    sweep: SweepConfig = field(default_factory=SweepConfig)
    fit: FitConfig = field(default_factory=FitConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> ExperimentConfig:
        """Check values that would make every condition fail.

        Raises:
            ValueError: On invalid array, simulation or fit settings.
        """
        self.array.validate()
        self.simulation.validate()
        if self.fit.transient_samples < 0:
            raise ValueError(
                f"fit.transient_samples must be non-negative, got {self.fit.transient_samples}"
            )
        if self.fit.transient_samples + 4 > self.simulation.n_output_samples:
            raise ValueError(
                f"fit.transient_samples ({self.fit.transient_samples}) leaves fewer than 4 of "
                f"{self.simulation.n_output_samples} output samples to fit"
            )
        sim = self.simulation
        latest = sim.duration - 4 * sim.dt * int(sim.output_stride)
        if not 0.0 <= self.fit.transient_seconds <= latest:
            raise ValueError(
                f"fit.transient_seconds ({self.fit.transient_seconds}) must be non-negative and "
                f"leave at least 4 output samples of the {sim.duration} s run"
            )
        if self.execution.workers is not None and self.execution.workers < 1:
            raise ValueError(f"execution.workers must be at least 1, got {self.execution.workers}")
        # Builders validate grating and fit settings on construction.
        self.grating.build_generator()
        self.grating.build_highpass()
        self.fit.build_fitter()
        return self

    def enabled_experiments(self) -> List[SweepVariable]:
        """Enabled sweeps, in frequency, amplitude, spatial period order."""
        return [v for v in SweepVariable if self.sweep.is_enabled(v)]

    def select_experiments(
        self, names: Optional[Sequence[Union[str, SweepVariable]]] = None
    ) -> List[SweepVariable]:
        """Resolve experiment names, or the enabled experiments if none given.

        Raises:
            ValueError: For an unknown experiment name.
        """
        if not names:
            return self.enabled_experiments()
        selected = []
        for name in names:
            variable = SweepVariable.parse(name)
            if variable not in selected:
                selected.append(variable)
        return selected

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dict for YAML serialization."""
        return {
            "metadata": self.metadata,
            "array": self.array.to_dict(),
            "simulation": self.simulation.to_dict(),
            "grating": self.grating.to_dict(),
            "defaults": self.defaults.to_dict(),
            "head_motion": self.head_motion.to_dict(),
            "sweep": self.sweep.to_dict(),
            "fit": self.fit.to_dict(),
            "execution": self.execution.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> ExperimentConfig:
        """Create from dict (e.g., from YAML).

        Raises:
            ValueError: For unknown sections or keys, or malformed value lists.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")
        sections = {
            "metadata", "array", "simulation", "grating", "defaults",
            "head_motion", "sweep", "fit", "execution",
        }
        unknown = sorted(set(data) - sections)
        if unknown:
            raise ValueError(
                f"Unknown configuration section(s): {', '.join(map(str, unknown))}. "
                f"Valid sections: {', '.join(sorted(sections))}"
            )
        return cls(
            array=_build(EMDArrayConfig, data.get("array"), "array"),
            simulation=_build(SimulationConfig, data.get("simulation"), "simulation"),
            grating=GratingConfig.from_dict(data.get("grating")),
            defaults=_build(StimulusDefaults, data.get("defaults"), "defaults"),
            head_motion=HeadMotionConfig.from_dict(data.get("head_motion")),
            sweep=SweepConfig.from_dict(data.get("sweep")),
            fit=FitConfig.from_dict(data.get("fit")),
            execution=ExecutionConfig.from_dict(data.get("execution")),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_yaml(self) -> str:
        """Serialize to YAML string."""
        return dump_yaml(self.to_dict())

    @classmethod
    def from_yaml(cls, yaml_str: str) -> ExperimentConfig:
        """Load from YAML string, rejecting duplicate keys."""
        return cls.from_dict(load_yaml(yaml_str))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> ExperimentConfig:
        """Load from a YAML file, rejecting duplicate keys."""
        return cls.from_dict(load_yaml_file(path))
