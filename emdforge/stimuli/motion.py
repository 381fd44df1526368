"""Angular motion trajectories for the rotating grating.

The grating oscillates sinusoidally about the detector array. A head
counter-rotation of the same frequency, scaled by a gain and shifted by a
phase, is subtracted from the grating motion to give the relative (retinal)
position that the detectors actually see.

Example:
    >>> import torch
    >>> from emdforge.stimuli.motion import oscillation, relative_motion
    >>> t = torch.linspace(0.0, 1.0, 101, dtype=torch.float64)
    >>> stim = oscillation(t, frequency=2.0, amplitude=5.0)
    >>> rel = relative_motion(t, 2.0, 5.0, head_gain=1.0, head_phase=0.0)
    >>> bool(rel.abs().max() == 0)
    True
"""

from __future__ import annotations

import math

import torch


def time_axis(
    duration: float,
    dt: float,
    device: torch.device | str = "cpu",
    dtype: torch.dtype = torch.float64,
) -> torch.Tensor:
    """Fixed-step time samples ``0, dt, ..., n*dt`` covering ``duration``.

    Args:
        duration: Simulated duration in seconds.
        dt: Integration step in seconds.
        device: Device to create the samples on.
        dtype: Tensor dtype.

    Returns:
        Time samples, shape ``[num_steps + 1]``. Units: s.

    Raises:
        ValueError: If ``duration`` or ``dt`` is non-positive.
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    num_steps = int(round(duration / dt))
    return torch.arange(num_steps + 1, device=device, dtype=dtype) * dt


def oscillation(
    t: torch.Tensor,
    frequency: float,
    amplitude: float,
    phase_deg: float = 0.0,
) -> torch.Tensor:
    """Sinusoidal angular position ``amplitude * sin(2π f t + phase)``.

    Args:
        t: Time samples in seconds.
        frequency: Oscillation frequency in Hz.
        amplitude: Peak angular displacement in degrees.
        phase_deg: Phase offset in degrees.

    Returns:
        Angular position in degrees, same shape as ``t``.
    """
    phase = math.radians(phase_deg)
    return amplitude * torch.sin(2.0 * math.pi * frequency * t + phase)


def head_motion(
    t: torch.Tensor,
    frequency: float,
    amplitude: float,
    head_gain: float,
    head_phase: float,
) -> torch.Tensor:
    """Head counter-rotation tracking the grating oscillation.

    The head oscillates at the stimulus frequency with amplitude
    ``head_gain * amplitude`` and a lead of ``head_phase`` degrees.
    """
    return oscillation(t, frequency, head_gain * amplitude, head_phase)


def relative_motion(
    t: torch.Tensor,
    frequency: float,
    amplitude: float,
    head_gain: float = 0.0,
    head_phase: float = 0.0,
) -> torch.Tensor:
    """Grating position relative to the head (stimulus minus head motion)."""
    stimulus = oscillation(t, frequency, amplitude)
    return stimulus - head_motion(t, frequency, amplitude, head_gain, head_phase)

