"""Steady-state sinusoid fits of detector responses.

A sinusoidal stimulus drives the detector population into a periodic steady
state. Fitting ``a · sin(2π f t + c) + d`` to the population response gives
the system-identification quantities plotted against the swept stimulus
parameter: gain ``|a|``, phase ``c`` and the goodness of fit ``r²``.

Fits never raise numerical-library exceptions. Series that cannot be fitted
(too short, flat, non-finite, optimizer failure) produce an *unfit* result
whose numeric fields are NaN and whose ``message`` says why.

Example:
    >>> import numpy as np
    >>> t = np.linspace(0.0, 2.0, 2001)
    >>> fit = SteadyStateFit().fit(3.0 * np.sin(2 * np.pi * 2.0 * t + 0.5), t,
    ...                            known_frequency=2.0)
    >>> round(fit.gain, 6), round(fit.r_squared, 6)
    (3.0, 1.0)
"""

from __future__ import annotations

import math
import warnings
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import torch
from scipy.optimize import OptimizeWarning, curve_fit

from emdforge.core.conditions import (
    RESPONSE_CHANNEL,
    SimulationOutput,
    SweepVariable,
    is_failure,
)
from emdforge.core.errors import FitQualityWarning
from emdforge.core.sweep import SweepResult

#: Minimum r² for a fit to be considered reliable.
DEFAULT_R2_THRESHOLD = 0.9

#: Leading samples discarded before fitting sweep outputs.
DEFAULT_TRANSIENT_SAMPLES = 2

#: Leading simulated time (s) discarded before fitting sweep outputs; three
#: delay-arm time constants at the default tau.
DEFAULT_TRANSIENT_SECONDS = 0.15

EntryKey = Tuple[int, int]


def wrap_phase(phase_deg: float) -> float:
    """Wrap an angle in degrees to the interval (-180, 180]."""
    return 180.0 - ((180.0 - phase_deg) % 360.0)


def _sinusoid(t: np.ndarray, a: float, f: float, c: float, d: float) -> np.ndarray:
    return a * np.sin(2.0 * np.pi * f * t + c) + d


def _as_numpy(values: Any) -> np.ndarray:
    if isinstance(values, torch.Tensor):
        values = values.detach().cpu().numpy()
    return np.asarray(values, dtype=np.float64).ravel()


@dataclass(frozen=True)
class FitResult:
    """Sinusoid parameters of one steady-state fit.

    Attributes:
        gain: Fitted amplitude, non-negative.
        phase: Fitted phase in degrees, wrapped to (-180, 180].
        r_squared: Coefficient of determination on the fitted samples.
        offset: Fitted constant offset.
        frequency: Fitted (or fixed) frequency in Hz.
        converged: Whether the optimizer produced usable parameters.
        message: Reason the fit is missing or suspect; empty otherwise.
    """

    gain: float
    phase: float
    r_squared: float
    offset: float
    frequency: float
    converged: bool = True
    message: str = ""

    @classmethod
    def unfit(cls, message: str, frequency: float = math.nan) -> "FitResult":
        """Result for a series that could not be fitted."""
        return cls(
            gain=math.nan,
            phase=math.nan,
            r_squared=math.nan,
            offset=math.nan,
            frequency=frequency,
            converged=False,
            message=message,
        )

    def is_reliable(self, threshold: float = DEFAULT_R2_THRESHOLD) -> bool:
        """True for a converged fit with ``r_squared >= threshold``."""
        return self.converged and math.isfinite(self.r_squared) and self.r_squared >= threshold

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SteadyStateFit:
    """Least-squares sinusoid fit with ``scipy.optimize.curve_fit``.

    Args:
        r2_threshold: Fits below this r² are reported as low quality.
        maxfev: Maximum function evaluations passed to ``curve_fit``.
        min_samples: Shortest series (after the transient) that is fitted.
    """

    def __init__(
        self,
        r2_threshold: float = DEFAULT_R2_THRESHOLD,
        maxfev: int = 2000,
        min_samples: int = 4,
    ) -> None:
        if not 0.0 <= r2_threshold <= 1.0:
            raise ValueError(f"r2_threshold must be in [0, 1], got {r2_threshold}")
        if maxfev < 1:
            raise ValueError(f"maxfev must be positive, got {maxfev}")
        self.r2_threshold = r2_threshold
        self.maxfev = int(maxfev)
        self.min_samples = max(4, int(min_samples))

    @staticmethod
    def _linear_guess(t: np.ndarray, y: np.ndarray, frequency: float) -> Tuple[float, float, float]:
        # a·sin(x + c) = a·cos(c)·sin(x) + a·sin(c)·cos(x)
        omega_t = 2.0 * np.pi * frequency * t
        design = np.column_stack([np.sin(omega_t), np.cos(omega_t), np.ones_like(t)])
        (p, q, d), *_ = np.linalg.lstsq(design, y, rcond=None)
        return float(np.hypot(p, q)), float(np.arctan2(q, p)), float(d)

    @staticmethod
    def _fft_peak(t: np.ndarray, y: np.ndarray) -> float:
        step = float(np.median(np.diff(t)))
        spectrum = np.abs(np.fft.rfft(y - y.mean()))
        freqs = np.fft.rfftfreq(y.shape[0], d=step)
        return float(freqs[1 + int(np.argmax(spectrum[1:]))])

    def fit(
        self,
        series: Any,
        time: Optional[Any] = None,
        known_frequency: Optional[float] = None,
        transient_samples: int = 0,
    ) -> FitResult:
        """Fit a sinusoid to ``series``.

        Args:
            series: Samples to fit (NumPy array, tensor or sequence).
            time: Sample times in seconds; sample indices when omitted, in
                which case frequencies are in cycles per sample.
            known_frequency: Fix the frequency to this value (Hz). When
                ``None`` the frequency is free, starting from the FFT peak.
            transient_samples: Leading samples to discard.

        Returns:
            A :class:`FitResult`; unfit when the series cannot be fitted.
        """
        y = _as_numpy(series)
        t = np.arange(y.shape[0], dtype=np.float64) if time is None else _as_numpy(time)
        fixed = math.nan if known_frequency is None else float(known_frequency)
        if t.shape != y.shape:
            return FitResult.unfit(
                f"time has {t.shape[0]} samples, series has {y.shape[0]}", fixed
            )

        skip = max(0, int(transient_samples))
        t, y = t[skip:], y[skip:]
        if y.shape[0] < self.min_samples:
            return FitResult.unfit(f"only {y.shape[0]} samples after transient", fixed)
        if not (np.all(np.isfinite(y)) and np.all(np.isfinite(t))):
            return FitResult.unfit("series contains non-finite values", fixed)
        ss_tot = float(np.sum((y - y.mean()) ** 2))
        if ss_tot == 0.0:
            return FitResult.unfit("flat series", fixed)
        if known_frequency is not None and not (math.isfinite(fixed) and fixed > 0):
            return FitResult.unfit(f"cannot fit at frequency {known_frequency!r}", fixed)

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", OptimizeWarning)
            try:
                if known_frequency is not None:
                    a0, c0, d0 = self._linear_guess(t, y, fixed)
                    popt, _ = curve_fit(
                        lambda tt, a, c, d: _sinusoid(tt, a, fixed, c, d),
                        t, y, p0=[a0, c0, d0], maxfev=self.maxfev,
                    )
                    a, c, d = popt
                    f = fixed
                else:
                    f0 = self._fft_peak(t, y)
                    a0, c0, d0 = self._linear_guess(t, y, f0)
                    popt, _ = curve_fit(
                        _sinusoid, t, y, p0=[a0, f0, c0, d0], maxfev=self.maxfev
                    )
                    a, f, c, d = popt
            except (RuntimeError, ValueError, TypeError, np.linalg.LinAlgError) as exc:
                return FitResult.unfit(f"optimizer failed: {exc}", fixed)

        if not np.all(np.isfinite(popt)):
            return FitResult.unfit("optimizer returned non-finite parameters", fixed)
        if f < 0:
            # a·sin(-x + c) == -a·sin(x - c)
            f, a, c = -f, -a, -c
        if a < 0:
            a, c = -a, c + np.pi

        residuals = y - _sinusoid(t, a, f, c, d)
        r_squared = 1.0 - float(np.sum(residuals ** 2)) / ss_tot
        result = FitResult(
            gain=float(a),
            phase=wrap_phase(math.degrees(float(c))),
            r_squared=r_squared,
            offset=float(d),
            frequency=float(f),
        )
        if not result.is_reliable(self.r2_threshold):
            result = FitResult(
                **{**result.to_dict(), "message": f"r_squared {r_squared:.3f} below "
                                                  f"{self.r2_threshold:g}"}
            )
        return result

    def fit_output(
        self,
        output: SimulationOutput,
        transient_samples: int = DEFAULT_TRANSIENT_SAMPLES,
        use_known_frequency: bool = True,
        channel: str = RESPONSE_CHANNEL,
        transient_seconds: float = 0.0,
    ) -> FitResult:
        """Fit one channel of a simulation output (``response`` by default).

        The leading transient is whichever is longer of ``transient_samples``
        samples and ``transient_seconds`` of simulated time, so the trim does
        not depend on ``dt`` or the output stride. With
        ``use_known_frequency`` the frequency is fixed to the condition's
        oscillation frequency.
        """
        known = output.condition.oscillation_frequency if use_known_frequency else None
        time = output.time_array()
        skip = max(0, int(transient_samples))
        if transient_seconds > 0 and time.shape[0]:
            skip = max(skip, int(np.searchsorted(time, time[0] + transient_seconds)))
        return self.fit(
            output.series(channel),
            time,
            known_frequency=known,
            transient_samples=skip,
        )


class SweepFits(Mapping[EntryKey, Tuple[FitResult, ...]]):
    """Fit results of a sweep, keyed like the :class:`SweepResult` they came from."""

    def __init__(
        self,
        variable: SweepVariable,
        swept_values: Sequence[float],
        fits: Dict[EntryKey, Tuple[FitResult, ...]],
        r2_threshold: float = DEFAULT_R2_THRESHOLD,
    ) -> None:
        self.variable = variable
        self.swept_values = tuple(swept_values)
        self._fits = dict(fits)
        self.r2_threshold = r2_threshold

    def __getitem__(self, key: EntryKey) -> Tuple[FitResult, ...]:
        return self._fits[key]

    def __iter__(self) -> Iterator[EntryKey]:
        return iter(self._fits)

    def __len__(self) -> int:
        return len(self._fits)

    def low_quality(
        self, threshold: Optional[float] = None
    ) -> List[Tuple[EntryKey, int, FitResult]]:
        """Every ``(key, swept_index, fit)`` that is not reliable."""
        threshold = self.r2_threshold if threshold is None else threshold
        return [
            (key, index, fit)
            for key, fits in self._fits.items()
            for index, fit in enumerate(fits)
            if not fit.is_reliable(threshold)
        ]

    def peak(self, key: EntryKey = (0, 0)) -> Optional[float]:
        """Swept value with the largest fitted gain, ``None`` if nothing fitted."""
        gains = np.array([fit.gain for fit in self._fits[key]], dtype=np.float64)
        if not np.any(np.isfinite(gains)):
            return None
        return float(self.swept_values[int(np.nanargmax(gains))])

    def as_arrays(
        self, key: EntryKey = (0, 0)
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Swept values, gain, phase and r² as NumPy arrays for plotting."""
        fits = self._fits[key]
        return (
            np.asarray(self.swept_values, dtype=np.float64),
            np.array([fit.gain for fit in fits], dtype=np.float64),
            np.array([fit.phase for fit in fits], dtype=np.float64),
            np.array([fit.r_squared for fit in fits], dtype=np.float64),
        )

    def __repr__(self) -> str:
        return (
            f"SweepFits(variable={self.variable.value!r}, entries={len(self)}, "
            f"low_quality={len(self.low_quality())})"
        )


def fit_sweep(
    result: SweepResult,
    fitter: Optional[SteadyStateFit] = None,
    transient_samples: int = DEFAULT_TRANSIENT_SAMPLES,
    use_known_frequency: bool = True,
    warn: bool = True,
    transient_seconds: float = DEFAULT_TRANSIENT_SECONDS,
) -> SweepFits:
    """Fit every slot of ``result``.

    The leading ``transient_samples`` samples or ``transient_seconds`` of
    each output, whichever is longer, are discarded. Failure markers become
    unfit results naming the failure. When ``warn`` is
    set a single :class:`FitQualityWarning` reports the number of fits below
    the fitter's r² threshold.
    """
    fitter = fitter or SteadyStateFit()
    fits: Dict[EntryKey, Tuple[FitResult, ...]] = {}
    for key, entry in result.items():
        row = []
        for slot in entry.outputs:
            if is_failure(slot):
                row.append(FitResult.unfit(f"{slot.kind}: {slot.message}"))
            else:
                row.append(
                    fitter.fit_output(
                        slot,
                        transient_samples=transient_samples,
                        use_known_frequency=use_known_frequency,
                        transient_seconds=transient_seconds,
                    )
                )
        fits[key] = tuple(row)

    sweep_fits = SweepFits(result.variable, result.swept_values, fits, fitter.r2_threshold)
    suspect = sweep_fits.low_quality()
    if warn and suspect:
        total = sum(len(row) for row in fits.values())
        warnings.warn(
            f"{len(suspect)} of {total} fits in the {result.variable.value} sweep "
            f"have r_squared below {fitter.r2_threshold:g} or did not converge",
            FitQualityWarning,
            stacklevel=2,
        )
    return sweep_fits
