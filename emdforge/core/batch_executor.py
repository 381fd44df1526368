"""Batch execution of the configured sweep experiments.

The executor turns an :class:`ExperimentConfig` into a detector array and a
sweep harness, runs every enabled experiment (oscillation frequency,
oscillation amplitude, spatial period) and fits the steady-state response of
each condition. Results are kept strictly per experiment: the fits of the
amplitude sweep are computed from the amplitude sweep's outputs and nothing
else.

Nothing is written to disk; callers receive the in-memory results.

Example:
    >>> config = ExperimentConfig.from_file("examples/configs/frequency_sweep.yml")
    >>> executor = BatchExecutor(config)
    >>> summary = executor.execute()
    >>> print(format_summary(summary["results"], summary["fits"]))
"""

from __future__ import annotations

import dataclasses
import math
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from emdforge.analysis.steady_state import SweepFits, fit_sweep
from emdforge.config.schema import ExperimentConfig
from emdforge.core.conditions import SweepVariable
from emdforge.core.emd_array import EMDArray
from emdforge.core.sweep import SweepHarness, SweepResult

#: Display units of each swept variable.
UNITS = {
    SweepVariable.FREQUENCY: "Hz",
    SweepVariable.AMPLITUDE: "deg",
    SweepVariable.SPATIAL_PERIOD: "deg",
}

ExperimentNames = Optional[Sequence[Union[str, SweepVariable]]]


class BatchExecutor:
    """Runs the experiments of one configuration.

    Attributes:
        config: Validated experiment configuration.
        array: Detector array shared by every experiment.
        harness: Sweep harness driving the array.
        fitter: Steady-state fitter.
    """

    def __init__(
        self,
        config: ExperimentConfig,
        device: Optional[str] = None,
        max_workers: Optional[int] = None,
        verbose: Optional[bool] = None,
    ):
        """Build the array and harness from ``config``.

        Args:
            config: Experiment configuration.
            device: Override the configured torch device.
            max_workers: Override the configured thread-pool size.
            verbose: Override the configured progress output.

        Raises:
            ValueError: If the configuration is invalid.
        """
        if device:
            config = dataclasses.replace(
                config, simulation=dataclasses.replace(config.simulation, device=device)
            )
        self.config = config.validate()
        self.verbose = config.execution.verbose if verbose is None else verbose
        workers = config.execution.workers if max_workers is None else max_workers

        self.array = EMDArray(config.array, config.simulation)
        self.harness = SweepHarness(
            self.array,
            generator=config.grating.build_generator(config.simulation.torch_dtype),
            highpass=config.grating.build_highpass(),
            verbose=self.verbose,
            max_workers=workers,
        )
        self.fitter = config.fit.build_fitter()
        self._stop_requested = False
        self.cancelled = False

    def request_stop(self) -> None:
        """Cancel the running sweep and skip the experiments after it.

        Safe to call from another thread or a signal handler; a request made
        before :meth:`run` starts cancels that run.
        """
        self._stop_requested = True
        self.harness.request_stop()

    def plan(self, experiments: ExperimentNames = None) -> List[Dict[str, Any]]:
        """Describe what :meth:`run` would simulate, without simulating.

        Returns:
            One dict per experiment with its value count and range, the
            number of head conditions, conditions, gratings and steps.
        """
        sim = self.config.simulation
        head = self.config.head_motion
        n_head = len(head.gains) * len(head.phases)
        plan = []
        for variable in self.config.select_experiments(experiments):
            values = self.config.sweep.values_for(variable)
            plan.append({
                "experiment": variable.value,
                "units": UNITS[variable],
                "n_values": len(values),
                "value_range": (min(values), max(values)),
                "head_conditions": n_head,
                "n_conditions": n_head * len(values),
                "n_gratings": len(values) if variable is SweepVariable.SPATIAL_PERIOD else 1,
                "steps_per_condition": sim.num_steps,
                "samples_per_condition": sim.n_output_samples,
            })
        return plan

    def run(self, experiments: ExperimentNames = None) -> Dict[SweepVariable, SweepResult]:
        """Run the selected (default: enabled) experiments.

        Sets :attr:`cancelled` when a stop request cut the run short.

        Returns:
            Mapping of swept variable to the sweep that varied it, in
            frequency, amplitude, spatial period order. Sweeps completed
            before a stop request are kept.
        """
        head = self.config.head_motion
        results: Dict[SweepVariable, SweepResult] = {}
        cancelled = False
        for variable in self.config.select_experiments(experiments):
            if self._stop_requested:
                cancelled = True
                break
            results[variable] = self.harness.run_sweep(
                variable,
                self.config.sweep.values_for(variable),
                head_gains=head.gains,
                head_phases=head.phases,
                defaults=self.config.defaults,
            )
            if results[variable].cancelled:
                cancelled = True
                break
        self.cancelled = cancelled
        self._stop_requested = False
        self.harness.clear_stop()
        return results

    def fit(
        self,
        results: Dict[SweepVariable, SweepResult],
        warn: bool = True,
    ) -> Dict[SweepVariable, SweepFits]:
        """Fit every sweep in ``results`` with the configured settings."""
        fit_cfg = self.config.fit
        return {
            variable: fit_sweep(
                result,
                fitter=self.fitter,
                transient_samples=fit_cfg.transient_samples,
                transient_seconds=fit_cfg.transient_seconds,
                use_known_frequency=fit_cfg.use_known_frequency,
                warn=warn,
            )
            for variable, result in results.items()
        }

    def execute(self, experiments: ExperimentNames = None) -> Dict[str, Any]:
        """Run and fit the selected experiments.

        Returns:
            Dictionary with keys:
                - 'results': variable → SweepResult
                - 'fits': variable → SweepFits
                - 'duration_seconds': total wall-clock time
                - 'failed_conditions': variable → number of failure markers
                - 'cancelled': whether a stop was requested
        """
        start_time = time.time()
        if self.verbose:
            selected = self.config.select_experiments(experiments)
            print(f"Starting experiments: {', '.join(v.value for v in selected) or 'none'}")
            print(f"Device: {self.array.device}")

        results = self.run(experiments)
        fits = self.fit(results)
        duration = time.time() - start_time

        failed = {variable: len(result.failures()) for variable, result in results.items()}
        if self.verbose:
            print(f"\nExperiments completed in {duration:.2f} seconds")
            for variable, count in failed.items():
                print(f"  {variable.value}: {count} failed condition(s)")

        return {
            "results": results,
            "fits": fits,
            "duration_seconds": duration,
            "failed_conditions": failed,
            "cancelled": self.cancelled,
        }


def run_experiments(
    config: ExperimentConfig,
    experiments: ExperimentNames = None,
    **kwargs: Any,
) -> Dict[SweepVariable, SweepResult]:
    """Run the experiments of ``config``; keyword arguments go to :class:`BatchExecutor`."""
    return BatchExecutor(config, **kwargs).run(experiments)


def format_summary(
    results: Dict[SweepVariable, SweepResult],
    fits: Dict[SweepVariable, SweepFits],
) -> str:
    """Plain-text summary: one line per experiment and head condition."""
    lines = []
    for variable, result in results.items():
        units = UNITS[variable]
        sweep_fits = fits[variable]
        lines.append(f"{variable.value} sweep ({len(result.swept_values)} values"
                     + (", cancelled" if result.cancelled else "") + ")")
        for key, entry in result.items():
            row = sweep_fits[key]
            reliable = sum(fit.is_reliable(sweep_fits.r2_threshold) for fit in row)
            peak = sweep_fits.peak(key)
            if peak is None:
                peak_text = "no fitted response"
            else:
                best = max((fit for fit in row if math.isfinite(fit.gain)), key=lambda f: f.gain)
                peak_text = f"peak at {peak:.4g} {units} (gain {best.gain:.4g})"
            lines.append(
                f"  head phase {entry.head_phase:g} deg, gain {entry.head_gain:g}: "
                f"{peak_text}; {reliable}/{len(row)} reliable fits, "
                f"{len(entry.failures())} failed"
            )
    return "\n".join(lines)
