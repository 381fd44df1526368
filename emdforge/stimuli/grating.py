"""Full-circle sinusoidal grating generation.

The motion detector array sits at the centre of a cylinder lined with a
sinusoidal luminance pattern. The pattern is sampled over the whole
0–360° azimuth at a fixed angular resolution, independent of the spatial
period, so every condition shares the same sample grid.

Spatial periods are snapped to the nearest value that fits a whole number
of cycles around the circle. Without the snap the pattern would have a
discontinuity at the 0°/360° seam that the detectors would see as an edge.

Example:
    >>> from emdforge.stimuli.grating import GratingGenerator
    >>> grating = GratingGenerator().generate(20.0)
    >>> grating.cycles
    18
    >>> grating.luminance.shape
    torch.Size([3600])
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import torch

from emdforge.core.errors import InvalidParameterError, check_parameter

#: Number of luminance samples spanning the full circle (0.1° resolution).
N_SAMPLES = 3600

#: Angular extent of the pattern in degrees.
FULL_CIRCLE_DEG = 360.0


def snap_spatial_period(period_deg: float) -> tuple[float, int]:
    """Snap a spatial period to a whole number of cycles on the circle.

    Args:
        period_deg: Requested spatial period in degrees per cycle.

    Returns:
        Tuple ``(snapped_period_deg, cycles)`` with
        ``snapped_period_deg * cycles == 360``.

    Raises:
        InvalidParameterError: If ``period_deg`` is non-positive or non-finite.
    """
    period = check_parameter("spatial_period", period_deg, positive=True)
    cycles = max(1, int(round(FULL_CIRCLE_DEG / period)))
    return FULL_CIRCLE_DEG / cycles, cycles


def snap_spatial_frequencies(spatial_freqs: Sequence[float]) -> np.ndarray:
    """Round spatial frequencies (cycles/deg) to whole cycles on the circle.

    Args:
        spatial_freqs: Spatial frequencies in cycles per degree.

    Returns:
        Snapped spatial frequencies, same length and order as the input.

    Raises:
        InvalidParameterError: If a frequency is non-positive, non-finite or
            rounds to zero cycles.
    """
    snapped = []
    for freq in spatial_freqs:
        value = check_parameter("spatial_frequency", freq, positive=True)
        cycles = int(round(FULL_CIRCLE_DEG * value))
        if cycles < 1:
            raise InvalidParameterError(
                "spatial_frequency", freq, "is below one cycle per circle"
            )
        snapped.append(cycles / FULL_CIRCLE_DEG)
    return np.asarray(snapped, dtype=np.float64)


def sample_circular(values: torch.Tensor, angles_deg: torch.Tensor) -> torch.Tensor:
    """Linearly interpolate a full-circle pattern at arbitrary angles.

    ``values`` holds samples at ``linspace(0, 360, len(values))``; the first
    and last samples are the same point on the circle. Angles are wrapped
    modulo 360°.

    Args:
        values: Pattern samples, shape ``[n_samples]``.
        angles_deg: Query angles in degrees, any shape.

    Returns:
        Interpolated values with the shape of ``angles_deg``.
    """
    n = values.shape[0]
    wrapped = torch.remainder(angles_deg, FULL_CIRCLE_DEG)
    position = wrapped * ((n - 1) / FULL_CIRCLE_DEG)
    lower = torch.clamp(torch.floor(position).long(), 0, n - 2)
    frac = (position - lower.to(position.dtype)).to(values.dtype)
    return values[lower] * (1.0 - frac) + values[lower + 1] * frac


@dataclass(frozen=True, eq=False)
class Grating:
    """Sinusoidal luminance pattern sampled around the full circle.

    Attributes:
        luminance: Samples at ``linspace(0, 360, n_samples)`` degrees.
        requested_period: Spatial period asked for, degrees per cycle.
        period: Snapped spatial period, degrees per cycle.
        cycles: Whole number of cycles around the circle.
    """

    luminance: torch.Tensor
    requested_period: float
    period: float
    cycles: int

    @property
    def n_samples(self) -> int:
        return int(self.luminance.shape[0])

    @property
    def angles(self) -> torch.Tensor:
        """Sample angles in degrees."""
        return torch.linspace(
            0.0, FULL_CIRCLE_DEG, self.n_samples, dtype=self.luminance.dtype
        )

    @property
    def spatial_frequency(self) -> float:
        """Snapped spatial frequency in cycles per degree."""
        return 1.0 / self.period

    def sample(self, angles_deg: torch.Tensor | float) -> torch.Tensor:
        """Luminance at ``angles_deg`` (wrapped modulo 360°)."""
        angles = torch.as_tensor(angles_deg, dtype=self.luminance.dtype)
        return sample_circular(self.luminance, angles.to(self.luminance.device))


class GratingGenerator:
    """Generate sinusoidal gratings on a fixed full-circle sample grid.

    All gratings share the same mean luminance and contrast so that
    responses across spatial periods are directly comparable.

    Args:
        n_samples: Number of samples spanning 0–360° inclusive.
        mean: Mean luminance of the pattern.
        contrast: Amplitude of the sinusoidal modulation about ``mean``.
        dtype: Tensor dtype of the generated samples.
    """

    def __init__(
        self,
        n_samples: int = N_SAMPLES,
        mean: float = 0.5,
        contrast: float = 0.5,
        dtype: torch.dtype = torch.float64,
    ) -> None:
        if n_samples < 2:
            raise ValueError(f"n_samples must be at least 2, got {n_samples}")
        self.n_samples = int(n_samples)
        self.mean = check_parameter("mean", mean)
        self.contrast = check_parameter("contrast", contrast, non_negative=True)
        self.dtype = dtype

    def generate(self, period_deg: float) -> Grating:
        """Create a grating with (snapped) spatial period ``period_deg``.

        Raises:
            InvalidParameterError: If ``period_deg`` is non-positive or
                non-finite.
        """
        period, cycles = snap_spatial_period(period_deg)
        theta = torch.linspace(0.0, FULL_CIRCLE_DEG, self.n_samples, dtype=self.dtype)
        luminance = self.mean + self.contrast * torch.sin(
            2.0 * math.pi * cycles * theta / FULL_CIRCLE_DEG
        )
        return Grating(
            luminance=luminance,
            requested_period=float(period_deg),
            period=period,
            cycles=cycles,
        )


def make_sine_grating(period_deg: float) -> Grating:
    """Generate a grating with the default sample grid and luminance."""
    return GratingGenerator().generate(period_deg)
