"""Frequency-response sweeps over the detector array.

The harness enumerates head phase × head gain × swept values for exactly
one stimulus dimension (oscillation frequency, oscillation amplitude or
grating spatial period), holding the other two at their defaults, and runs
the detector array once per combination.

Every slot of the returned :class:`SweepResult` is filled: a simulation
output when the condition ran, a :class:`ConditionFailure` otherwise. A
failing condition never aborts the sweep.

Example:
    >>> harness = SweepHarness(EMDArray(simulation=SimulationConfig(duration=2.0)))
    >>> result = harness.run_sweep("frequency", [0.5, 1.0, 2.0])
    >>> len(result[0, 0].outputs)
    3
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from emdforge.core.conditions import (
    ConditionFailure,
    SlotResult,
    StimulusCondition,
    StimulusDefaults,
    SweepVariable,
    is_failure,
)
from emdforge.core.emd_array import EMDArray
from emdforge.core.errors import InvalidParameterError, SimulationFailure
from emdforge.filters.highpass import EdgeSafeFilter, FilteredGrating
from emdforge.stimuli.grating import GratingGenerator

EntryKey = Tuple[int, int]
SlotKey = Tuple[int, int, int]


@dataclass(frozen=True)
class SweepEntry:
    """Inputs and ordered outputs for one (head phase, head gain) pair.

    The three parameter lists mirror the experiment: the swept dimension
    holds the full swept list, the other two hold their single default.
    """

    head_phase: float
    head_gain: float
    variable: SweepVariable
    frequencies: Tuple[float, ...]
    amplitudes: Tuple[float, ...]
    spatial_periods: Tuple[float, ...]
    outputs: Tuple[SlotResult, ...]

    @property
    def swept_values(self) -> Tuple[float, ...]:
        return {
            SweepVariable.FREQUENCY: self.frequencies,
            SweepVariable.AMPLITUDE: self.amplitudes,
            SweepVariable.SPATIAL_PERIOD: self.spatial_periods,
        }[self.variable]

    def failures(self) -> List[Tuple[int, ConditionFailure]]:
        return [(i, slot) for i, slot in enumerate(self.outputs) if is_failure(slot)]


class SweepResult(Mapping[EntryKey, SweepEntry]):
    """Read-only sweep results keyed by ``(head_phase_index, head_gain_index)``.

    Indexing with a 3-tuple ``(phase_index, gain_index, swept_index)`` returns
    the slot for a single condition.
    """

    def __init__(
        self,
        variable: SweepVariable,
        swept_values: Sequence[float],
        head_gains: Sequence[float],
        head_phases: Sequence[float],
        entries: Dict[EntryKey, SweepEntry],
        cancelled: bool = False,
        duration_seconds: float = 0.0,
    ) -> None:
        self.variable = variable
        self.swept_values = tuple(swept_values)
        self.head_gains = tuple(head_gains)
        self.head_phases = tuple(head_phases)
        self._entries = dict(entries)
        self.cancelled = cancelled
        self.duration_seconds = duration_seconds

    def __getitem__(self, key: Union[EntryKey, SlotKey]) -> Union[SweepEntry, SlotResult]:
        if len(key) == 3:
            phase_idx, gain_idx, swept_idx = key
            return self._entries[(phase_idx, gain_idx)].outputs[swept_idx]
        return self._entries[key]

    def __iter__(self) -> Iterator[EntryKey]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return len(self.head_phases), len(self.head_gains), len(self.swept_values)

    @property
    def n_conditions(self) -> int:
        n_phase, n_gain, n_swept = self.shape
        return n_phase * n_gain * n_swept

    def slots(self) -> Iterator[Tuple[SlotKey, SlotResult]]:
        """Iterate over every ``((phase, gain, swept), slot)`` in index order."""
        for (phase_idx, gain_idx), entry in self._entries.items():
            for swept_idx, slot in enumerate(entry.outputs):
                yield (phase_idx, gain_idx, swept_idx), slot

    def failures(self) -> List[Tuple[SlotKey, ConditionFailure]]:
        """All failure markers, in index order."""
        return [(key, slot) for key, slot in self.slots() if is_failure(slot)]

    def __repr__(self) -> str:
        return (
            f"SweepResult(variable={self.variable.value!r}, shape={self.shape}, "
            f"failures={len(self.failures())}, cancelled={self.cancelled})"
        )


@dataclass(frozen=True)
class _Task:
    key: SlotKey
    condition: StimulusCondition
    grating: Union[FilteredGrating, InvalidParameterError]


class SweepHarness:
    """Run parameter sweeps through an :class:`EMDArray`.

    Attributes:
        array: Detector array simulated for every condition.
        generator: Grating generator.
        highpass: Spatial high-pass applied to every grating.
        verbose: Print progress and show a progress bar.
        max_workers: Run conditions on a thread pool when greater than 1.
    """

    def __init__(
        self,
        array: EMDArray,
        generator: Optional[GratingGenerator] = None,
        highpass: Optional[EdgeSafeFilter] = None,
        verbose: bool = False,
        max_workers: Optional[int] = None,
    ) -> None:
        self.array = array
        self.generator = generator or GratingGenerator(dtype=array.simulation.torch_dtype)
        self.highpass = highpass or EdgeSafeFilter()
        self.verbose = verbose
        self.max_workers = max_workers
        self._stop_requested = False

    def request_stop(self) -> None:
        """Ask the running sweep to stop before its next condition.

        A request made between sweeps cancels the next sweep. The flag is
        cleared when a sweep finishes.
        """
        self._stop_requested = True

    def clear_stop(self) -> None:
        """Withdraw a pending stop request."""
        self._stop_requested = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def build_grating(self, period_deg: float) -> FilteredGrating:
        """Generate, high-pass filter and prepare the grating for ``period_deg``."""
        grating = self.generator.generate(period_deg)
        return self.array.prepare(self.highpass.apply(grating))

    def _try_grating(self, period: float) -> Union[FilteredGrating, InvalidParameterError]:
        try:
            return self.build_grating(period)
        except InvalidParameterError as exc:
            return exc

    def _plan(
        self,
        variable: SweepVariable,
        swept_values: Sequence[float],
        head_gains: Sequence[float],
        head_phases: Sequence[float],
        defaults: StimulusDefaults,
    ) -> List[_Task]:
        if variable is SweepVariable.SPATIAL_PERIOD:
            gratings = [self._try_grating(value) for value in swept_values]
        else:
            gratings = [self._try_grating(defaults.spatial_period)] * len(swept_values)

        tasks = []
        for phase_idx, phase in enumerate(head_phases):
            for gain_idx, gain in enumerate(head_gains):
                for swept_idx, value in enumerate(swept_values):
                    grating = gratings[swept_idx]
                    condition = defaults.condition_for(variable, value, gain, phase)
                    if isinstance(grating, FilteredGrating):
                        condition = StimulusCondition(
                            oscillation_frequency=condition.oscillation_frequency,
                            oscillation_amplitude=condition.oscillation_amplitude,
                            spatial_period=grating.period,
                            head_gain=gain,
                            head_phase=phase,
                        )
                    tasks.append(_Task((phase_idx, gain_idx, swept_idx), condition, grating))
        return tasks

    def _execute(self, task: _Task) -> SlotResult:
        if self._stop_requested:
            return ConditionFailure(
                task.condition, ConditionFailure.CANCELLED, "sweep stopped before this condition"
            )
        if isinstance(task.grating, InvalidParameterError):
            error = task.grating.with_condition(task.condition)
            return ConditionFailure(task.condition, ConditionFailure.INVALID_PARAMETER, str(error))
        try:
            return self.array(task.grating, task.condition)
        except InvalidParameterError as exc:
            return ConditionFailure(task.condition, ConditionFailure.INVALID_PARAMETER, str(exc))
        except SimulationFailure as exc:
            return ConditionFailure(task.condition, ConditionFailure.SIMULATION_FAILURE, str(exc))
        except Exception as exc:
            return ConditionFailure(
                task.condition,
                ConditionFailure.SIMULATION_FAILURE,
                f"{type(exc).__name__}: {exc}",
            )

    def run_sweep(
        self,
        variable: Union[str, SweepVariable],
        swept_values: Sequence[float],
        head_gains: Sequence[float] = (0.0,),
        head_phases: Sequence[float] = (0.0,),
        defaults: Optional[StimulusDefaults] = None,
    ) -> SweepResult:
        """Simulate every (head phase, head gain, swept value) combination.

        Args:
            variable: Swept dimension: ``"frequency"``, ``"amplitude"`` or
                ``"spatial_period"``.
            swept_values: Values of the swept dimension, in output order.
            head_gains: Head counter-rotation gains.
            head_phases: Head counter-rotation phases (deg).
            defaults: Values of the non-swept dimensions.

        Returns:
            A :class:`SweepResult` with one slot per combination, ordered as
            the inputs regardless of execution order.
        """
        variable = SweepVariable.parse(variable)
        defaults = defaults or StimulusDefaults()
        swept_values = list(swept_values)
        head_gains = list(head_gains)
        head_phases = list(head_phases)

        tasks = self._plan(variable, swept_values, head_gains, head_phases, defaults)
        if self.verbose:
            print(f"Testing {variable.value} effects")
            print(f"Conditions: {len(tasks)} "
                  f"({len(head_phases)} phases x {len(head_gains)} gains x "
                  f"{len(swept_values)} values)")

        start_time = time.time()
        slots: Dict[SlotKey, SlotResult] = {}
        progress = tqdm(total=len(tasks), desc=variable.value, disable=not self.verbose)
        try:
            if self.max_workers and self.max_workers > 1:
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    futures = {executor.submit(self._execute, task): task.key for task in tasks}
                    for future in as_completed(futures):
                        slots[futures[future]] = future.result()
                        progress.update(1)
            else:
                for task in tasks:
                    slots[task.key] = self._execute(task)
                    progress.update(1)
        finally:
            progress.close()
        duration = time.time() - start_time

        cancelled = self._stop_requested
        self.clear_stop()
        result = self._assemble(
            variable, swept_values, head_gains, head_phases, defaults, slots, cancelled, duration
        )
        if self.verbose:
            print(f"Completed {variable.value} sweep in {duration:.2f} seconds; "
                  f"failures: {len(result.failures())}"
                  + (" (cancelled)" if cancelled else ""))
        return result

    def _assemble(
        self,
        variable: SweepVariable,
        swept_values: List[float],
        head_gains: List[float],
        head_phases: List[float],
        defaults: StimulusDefaults,
        slots: Dict[SlotKey, SlotResult],
        cancelled: bool,
        duration: float,
    ) -> SweepResult:
        lists = {
            SweepVariable.FREQUENCY: (defaults.frequency,),
            SweepVariable.AMPLITUDE: (defaults.amplitude,),
            SweepVariable.SPATIAL_PERIOD: (defaults.spatial_period,),
        }
        lists[variable] = tuple(swept_values)
        entries = {}
        for phase_idx, phase in enumerate(head_phases):
            for gain_idx, gain in enumerate(head_gains):
                outputs = tuple(
                    slots[(phase_idx, gain_idx, swept_idx)]
                    for swept_idx in range(len(swept_values))
                )
                entries[(phase_idx, gain_idx)] = SweepEntry(
                    head_phase=phase,
                    head_gain=gain,
                    variable=variable,
                    frequencies=lists[SweepVariable.FREQUENCY],
                    amplitudes=lists[SweepVariable.AMPLITUDE],
                    spatial_periods=lists[SweepVariable.SPATIAL_PERIOD],
                    outputs=outputs,
                )
        return SweepResult(
            variable,
            swept_values,
            head_gains,
            head_phases,
            entries,
            cancelled=cancelled,
            duration_seconds=duration,
        )


__all__ = [
    "SweepEntry",
    "SweepHarness",
    "SweepResult",
]
