"""Stimulus generation: full-circle gratings and their angular motion.

Components:
    GratingGenerator: Sinusoidal luminance pattern snapped to whole cycles
    motion: Oscillation, head counter-rotation and relative motion traces

Example:
    >>> from emdforge.stimuli import GratingGenerator
    >>> grating = GratingGenerator().generate(20.0)
"""

from emdforge.stimuli.grating import (
    FULL_CIRCLE_DEG,
    N_SAMPLES,
    Grating,
    GratingGenerator,
    make_sine_grating,
    sample_circular,
    snap_spatial_frequencies,
    snap_spatial_period,
)
from emdforge.stimuli.motion import (
    head_motion,
    oscillation,
    relative_motion,
    time_axis,
)

__all__ = [
    "FULL_CIRCLE_DEG",
    "N_SAMPLES",
    "Grating",
    "GratingGenerator",
    "make_sine_grating",
    "sample_circular",
    "snap_spatial_frequencies",
    "snap_spatial_period",
    "head_motion",
    "oscillation",
    "relative_motion",
    "time_axis",
]
