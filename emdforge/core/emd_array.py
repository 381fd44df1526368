"""Circular array of correlation-type elementary motion detectors.

The array models a ring of Hassenstein–Reichardt correlators looking out at
a cylinder lined with a (high-pass filtered) sinusoidal grating. Each
detector has two inputs ``A`` and ``B`` separated by ``baseline_deg``; the
detectors are evenly spaced around the full circle. At every step

* the grating is displaced by the relative position
  ``r(t) = A·sin(2πft) − g·A·sin(2πft + φ)`` (stimulus minus head motion),
* each input samples the luminance ``L(θ − r(t))``,
* each input is passed through a first-order low-pass (the delay arm),
* each detector outputs ``Ã·B − B̃·A``, positive for motion from A to B.

The population ``response`` channel is the mean detector output. The
``preferred`` and ``null`` channels are the means of the two mirror
products, so ``response == preferred − null``.

The integration step is fixed and independent of the stimulus frequency:
frequencies approaching the Nyquist limit of ``dt`` alias, and avoiding them
is the caller's responsibility.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import torch
import torch.nn as nn

from emdforge.core.conditions import CHANNEL_NAMES, SimulationOutput, StimulusCondition
from emdforge.core.errors import SimulationFailure
from emdforge.filters.acceptance import apply_acceptance
from emdforge.filters.highpass import FilteredGrating
from emdforge.filters.lowpass import FirstOrderLowPass
from emdforge.solvers import BaseSolver, get_solver
from emdforge.stimuli.grating import FULL_CIRCLE_DEG
from emdforge.stimuli.motion import head_motion, oscillation, time_axis

_DTYPES = {
    "float32": torch.float32,
    "float64": torch.float64,
}


@dataclass
class EMDArrayConfig:
    """Geometry and dynamics of the detector array.

    Attributes:
        n_detectors: Number of detectors evenly spaced around 360°.
        baseline_deg: Angular separation of the two inputs of a detector.
        tau: Time constant of the low-pass delay arm in seconds.
        acceptance_angle_deg: FWHM of the Gaussian photoreceptor acceptance
            in degrees; 0 samples the pattern at single points.
    """

    n_detectors: int = 360
    baseline_deg: float = 1.0
    tau: float = 0.05
    acceptance_angle_deg: float = 0.0

    def validate(self) -> "EMDArrayConfig":
        if int(self.n_detectors) < 1:
            raise ValueError(f"n_detectors must be at least 1, got {self.n_detectors}")
        if not 0 < self.baseline_deg < FULL_CIRCLE_DEG:
            raise ValueError(f"baseline_deg must be in (0, 360), got {self.baseline_deg}")
        if self.tau <= 0:
            raise ValueError(f"tau must be positive, got {self.tau}")
        if self.acceptance_angle_deg < 0:
            raise ValueError(
                f"acceptance_angle_deg must be non-negative, got {self.acceptance_angle_deg}"
            )
        return self

    @property
    def spacing_deg(self) -> float:
        return FULL_CIRCLE_DEG / int(self.n_detectors)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SimulationConfig:
    """Fixed time-stepping constants shared by every condition.

    Attributes:
        duration: Simulated time in seconds.
        dt: Integration step in seconds.
        output_stride: Record every ``output_stride``-th step.
        device: Torch device for the detector state.
        dtype: ``"float64"`` or ``"float32"``.
        chunk_steps: Number of steps whose inputs are sampled at once.
        solver: Solver configuration passed to :func:`get_solver`.
    """

    duration: float = 10.0
    dt: float = 0.001
    output_stride: int = 1
    device: str = "cpu"
    dtype: str = "float64"
    chunk_steps: int = 1024
    solver: Dict[str, Any] = field(default_factory=lambda: {"type": "euler"})

    def validate(self) -> "SimulationConfig":
        if self.duration <= 0:
            raise ValueError(f"duration must be positive, got {self.duration}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.dt > self.duration:
            raise ValueError(f"dt ({self.dt}) must not exceed duration ({self.duration})")
        if int(self.output_stride) < 1:
            raise ValueError(f"output_stride must be at least 1, got {self.output_stride}")
        if int(self.chunk_steps) < 1:
            raise ValueError(f"chunk_steps must be at least 1, got {self.chunk_steps}")
        if self.dtype not in _DTYPES:
            raise ValueError(f"dtype must be one of {sorted(_DTYPES)}, got {self.dtype!r}")
        return self

    @property
    def num_steps(self) -> int:
        return int(round(self.duration / self.dt))

    @property
    def n_output_samples(self) -> int:
        return self.num_steps // int(self.output_stride) + 1

    @property
    def torch_dtype(self) -> torch.dtype:
        return _DTYPES[self.dtype]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EMDArray(nn.Module):
    """Ring of correlation-type motion detectors driven by a rotating grating.

    Each call to :meth:`run` is independent: the delay-arm state is created
    fresh, so the array can be shared between threads.

    Attributes:
        config: Detector geometry and dynamics.
        simulation: Time-stepping constants.
        solver: Integrator used for the delay arms.

    Example:
        >>> from emdforge.stimuli import GratingGenerator
        >>> from emdforge.filters import EdgeSafeFilter
        >>> grating = EdgeSafeFilter().apply(GratingGenerator().generate(20.0))
        >>> array = EMDArray(simulation=SimulationConfig(duration=1.0))
        >>> output = array.run(grating, 2.0, 5.0)
        >>> output.response.shape
        torch.Size([1001])
    """

    def __init__(
        self,
        config: Optional[EMDArrayConfig] = None,
        simulation: Optional[SimulationConfig] = None,
        solver: Optional[BaseSolver] = None,
    ) -> None:
        super().__init__()
        self.config = (config or EMDArrayConfig()).validate()
        self.simulation = (simulation or SimulationConfig()).validate()
        if solver is None:
            solver = get_solver({**self.simulation.solver, "dt": self.simulation.dt})
        self.solver = solver

        dtype = self.simulation.torch_dtype
        n = int(self.config.n_detectors)
        positions = torch.arange(n, dtype=dtype) * self.config.spacing_deg
        # Row 0: input A of every detector, row 1: input B.
        self.register_buffer(
            "input_angles",
            torch.stack([positions, positions + self.config.baseline_deg]),
        )
        self.to(self.simulation.device)

    @property
    def device(self) -> torch.device:
        return self.input_angles.device

    def prepare(self, grating: FilteredGrating) -> FilteredGrating:
        """Apply the acceptance blur and move ``grating`` to the array device.

        Callers simulating many conditions on one grating should prepare it
        once; :meth:`run` skips work already done.
        """
        fwhm = float(self.config.acceptance_angle_deg)
        if grating.acceptance_fwhm != fwhm:
            if grating.acceptance_fwhm != 0.0:
                raise ValueError(
                    f"grating already blurred with {grating.acceptance_fwhm} deg acceptance, "
                    f"array expects {fwhm} deg"
                )
            grating = apply_acceptance(grating, fwhm)
        lum = grating.luminance
        if lum.device != self.device or lum.dtype != self.simulation.torch_dtype:
            grating = FilteredGrating(
                luminance=lum.to(device=self.device, dtype=self.simulation.torch_dtype),
                source=grating.source,
                cutoff=grating.cutoff,
                acceptance_fwhm=grating.acceptance_fwhm,
            )
        return grating

    def forward(
        self,
        grating: FilteredGrating,
        condition: StimulusCondition,
    ) -> SimulationOutput:
        """Simulate ``condition`` on ``grating``; see :meth:`run`."""
        condition = condition.validate()
        grating = self.prepare(grating)
        sim = self.simulation
        stride = int(sim.output_stride)
        chunk = int(sim.chunk_steps)

        t = time_axis(sim.duration, sim.dt, device=self.device, dtype=sim.torch_dtype)
        freq = float(condition.oscillation_frequency)
        amp = float(condition.oscillation_amplitude)
        stimulus = oscillation(t, freq, amp)
        head = head_motion(t, freq, amp, condition.head_gain, condition.head_phase)
        relative = stimulus - head

        delay = FirstOrderLowPass(tau=self.config.tau, dt=sim.dt, solver=self.solver)
        delay.reset_state()

        preferred = torch.empty_like(t)
        null = torch.empty_like(t)
        with torch.no_grad():
            for start in range(0, t.shape[0], chunk):
                stop = min(start + chunk, t.shape[0])
                # [steps, 2, n_detectors] luminance seen by inputs A and B.
                angles = self.input_angles.unsqueeze(0) - relative[start:stop, None, None]
                inputs = grating.sample(angles)
                for offset in range(stop - start):
                    k = start + offset
                    x = inputs[offset]
                    delayed = delay(x, t=float(t[k]))
                    preferred[k] = torch.mean(delayed[0] * x[1])
                    null[k] = torch.mean(delayed[1] * x[0])

        response = preferred - null
        if not bool(torch.isfinite(response).all()):
            raise SimulationFailure("detector output contains non-finite values", condition)

        series = {
            "stimulus": stimulus,
            "head": head,
            "response": response,
            "relative": relative,
            "preferred": preferred,
            "null": null,
        }
        channels = {name: series[name][::stride].clone() for name in CHANNEL_NAMES}
        time = t[::stride].clone()
        if time.shape[0] != sim.n_output_samples:
            raise SimulationFailure(
                f"expected {sim.n_output_samples} samples, got {time.shape[0]}", condition
            )
        return SimulationOutput(condition=condition, time=time, channels=channels)

    def run(
        self,
        grating: FilteredGrating,
        oscillation_frequency: float,
        oscillation_amplitude: float,
        head_gain: float = 0.0,
        head_phase: float = 0.0,
    ) -> SimulationOutput:
        """Simulate the array for one stimulus condition.

        Args:
            grating: High-pass filtered grating; its snapped period is
                recorded as the condition's spatial period.
            oscillation_frequency: Grating oscillation frequency (Hz, >= 0).
            oscillation_amplitude: Grating oscillation amplitude (deg, >= 0).
            head_gain: Head counter-rotation gain.
            head_phase: Head counter-rotation phase lead (deg).

        Returns:
            Time series of every channel in :data:`CHANNEL_NAMES`.

        Raises:
            InvalidParameterError: For negative or non-finite parameters.
            SimulationFailure: If the simulated output is not finite.
        """
        condition = StimulusCondition(
            oscillation_frequency=oscillation_frequency,
            oscillation_amplitude=oscillation_amplitude,
            spatial_period=grating.period,
            head_gain=head_gain,
            head_phase=head_phase,
        )
        return self(grating, condition)
