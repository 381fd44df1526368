"""Zero-phase spatial high-pass filtering of periodic gratings.

The luminance pattern is high-pass filtered along azimuth before the
detectors sample it, removing the mean luminance and any slow spatial
bias. The filter is a one-pole analogue high-pass ``H(s) = s / (s + wc)``
discretised with the bilinear transform at unit sample rate and applied
forward and backward (zero net phase).

An IIR filter run over a single period starts from the wrong state at the
0°/360° seam. The pattern is therefore tiled three times end to end, the
whole tiling is filtered, and only the middle copy is kept, so both ends of
the returned segment were filtered with real periodic context on each side.
Grating samples include both 0° and 360°; only the open period is tiled, and
the result is closed again with its first sample.

Example:
    >>> from emdforge.stimuli import GratingGenerator
    >>> from emdforge.filters.highpass import EdgeSafeFilter
    >>> grating = GratingGenerator().generate(20.0)
    >>> filtered = EdgeSafeFilter(cutoff=0.0075).apply(grating)
    >>> filtered.luminance.shape == grating.luminance.shape
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
import torch
from scipy import signal

from emdforge.core.errors import check_parameter
from emdforge.stimuli.grating import Grating, sample_circular

#: Cut-off (rad/sample) of the analogue prototype used by default.
DEFAULT_CUTOFF = 0.0075


@dataclass(frozen=True, eq=False)
class FilteredGrating:
    """High-pass filtered grating, read-only once constructed.

    Attributes:
        luminance: Filtered samples on the source grating's angle grid.
        source: The unfiltered grating.
        cutoff: High-pass cut-off used (rad/sample).
        acceptance_fwhm: Gaussian acceptance blur applied afterwards, in
            degrees (0 when no blur was applied).
    """

    luminance: torch.Tensor
    source: Grating
    cutoff: float
    acceptance_fwhm: float = 0.0

    @property
    def period(self) -> float:
        return self.source.period

    @property
    def n_samples(self) -> int:
        return int(self.luminance.shape[0])

    def sample(self, angles_deg: torch.Tensor | float) -> torch.Tensor:
        """Filtered luminance at ``angles_deg`` (wrapped modulo 360°)."""
        angles = torch.as_tensor(angles_deg, dtype=self.luminance.dtype)
        return sample_circular(self.luminance, angles.to(self.luminance.device))

    def to(self, device: torch.device | str) -> "FilteredGrating":
        """Copy of this grating with samples moved to ``device``."""
        return FilteredGrating(
            luminance=self.luminance.to(device),
            source=self.source,
            cutoff=self.cutoff,
            acceptance_fwhm=self.acceptance_fwhm,
        )


class EdgeSafeFilter:
    """Zero-phase first-order high-pass without wrap-around artefacts.

    Coefficients are derived once per instance from the cut-off, so a single
    filter can be reused for every grating of a sweep.

    Attributes:
        cutoff: Analogue cut-off frequency (rad/sample).
        b: Digital numerator coefficients.
        a: Digital denominator coefficients.
    """

    def __init__(self, cutoff: float = DEFAULT_CUTOFF) -> None:
        self.cutoff = check_parameter("cutoff", cutoff, positive=True)
        self.b, self.a = signal.bilinear([1.0, 0.0], [1.0, self.cutoff], fs=1.0)

    def filter_periodic(self, values: np.ndarray) -> np.ndarray:
        """Filter one period of a periodic signal via the tripling scheme.

        Args:
            values: One open period of the signal, shape ``[n]``; the sample
                following the last one is ``values[0]``.

        Returns:
            Filtered period, shape ``[n]``.
        """
        values = np.asarray(values, dtype=np.float64)
        n = values.shape[-1]
        tiled = np.tile(values, 3)
        filtered = signal.filtfilt(self.b, self.a, tiled)
        return filtered[n:2 * n]

    def apply(self, grating: Grating) -> FilteredGrating:
        """High-pass filter ``grating`` and return an immutable result."""
        source = grating.luminance.detach().cpu().numpy()
        # The last sample duplicates the first.
        period = self.filter_periodic(source[:-1])
        filtered = np.concatenate([period, period[:1]])
        luminance = torch.as_tensor(
            np.ascontiguousarray(filtered), dtype=grating.luminance.dtype
        )
        return FilteredGrating(luminance=luminance, source=grating, cutoff=self.cutoff)

    def to_dict(self) -> Dict[str, Any]:
        return {"cutoff": self.cutoff}

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "EdgeSafeFilter":
        config = config or {}
        return cls(cutoff=config.get("cutoff", DEFAULT_CUTOFF))
