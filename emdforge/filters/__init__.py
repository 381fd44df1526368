"""Spatial and temporal filtering for the motion detector array.

Filters:
    EdgeSafeFilter: Zero-phase spatial high-pass for periodic gratings
    apply_acceptance: Gaussian photoreceptor acceptance blur
    FirstOrderLowPass: Temporal delay stage of each correlator arm

Example:
    >>> from emdforge.filters import EdgeSafeFilter
    >>> hp = EdgeSafeFilter(cutoff=0.0075)
"""

from emdforge.filters.base import BaseFilter
from emdforge.filters.highpass import DEFAULT_CUTOFF, EdgeSafeFilter, FilteredGrating
from emdforge.filters.acceptance import apply_acceptance
from emdforge.filters.lowpass import FirstOrderLowPass

__all__ = [
    "BaseFilter",
    "DEFAULT_CUTOFF",
    "EdgeSafeFilter",
    "FilteredGrating",
    "apply_acceptance",
    "FirstOrderLowPass",
]
