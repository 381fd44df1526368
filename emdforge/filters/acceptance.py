"""Photoreceptor acceptance blur for filtered gratings.

Each detector input integrates light over a small Gaussian acceptance
window rather than a single direction. Blurring the pattern once, with
circular boundary handling, is equivalent to blurring every sample taken
from it.
"""

from __future__ import annotations

import math

import numpy as np
import torch
from scipy.ndimage import gaussian_filter1d

from emdforge.core.errors import check_parameter
from emdforge.filters.highpass import FilteredGrating
from emdforge.stimuli.grating import FULL_CIRCLE_DEG

_FWHM_TO_SIGMA = 1.0 / (2.0 * math.sqrt(2.0 * math.log(2.0)))


def apply_acceptance(grating: FilteredGrating, fwhm_deg: float) -> FilteredGrating:
    """Blur ``grating`` with a Gaussian acceptance function.

    Args:
        grating: Filtered grating to blur.
        fwhm_deg: Full width at half maximum of the acceptance function in
            degrees. ``0`` returns ``grating`` unchanged.

    Returns:
        A new :class:`FilteredGrating` carrying the blurred samples.
    """
    fwhm = check_parameter("acceptance_angle_deg", fwhm_deg, non_negative=True)
    if fwhm == 0.0:
        return grating

    values = grating.luminance.detach().cpu().numpy()
    # The last sample duplicates the first; blur one open period and re-close it.
    period = values[:-1]
    step_deg = FULL_CIRCLE_DEG / period.shape[0]
    sigma = fwhm * _FWHM_TO_SIGMA / step_deg
    blurred = gaussian_filter1d(period, sigma, mode="wrap")
    closed = np.concatenate([blurred, blurred[:1]])
    return FilteredGrating(
        luminance=torch.as_tensor(closed, dtype=grating.luminance.dtype),
        source=grating.source,
        cutoff=grating.cutoff,
        acceptance_fwhm=fwhm,
    )
