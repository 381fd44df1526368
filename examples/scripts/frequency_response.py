"""Frequency response of the motion detector array with and without head motion.

Runs a short frequency sweep for two head gains and prints gain, phase and
fit quality per frequency.
"""
import numpy as np

from emdforge import EMDArray, SimulationConfig, SweepHarness, fit_sweep


def main():
    array = EMDArray(simulation=SimulationConfig(duration=5.0, dt=0.001))
    harness = SweepHarness(array, verbose=True, max_workers=4)

    frequencies = np.logspace(-1, 1.5, 20)
    result = harness.run_sweep(
        "frequency",
        frequencies,
        head_gains=[0.0, 0.5],
        head_phases=[0.0],
    )
    fits = fit_sweep(result)

    for key, entry in result.items():
        swept, gain, phase, r_squared = fits.as_arrays(key)
        print(f"\nHead gain {entry.head_gain:g}, phase {entry.head_phase:g} deg")
        print(f"{'freq (Hz)':>10} {'gain':>12} {'phase':>8} {'r2':>6}")
        for f, g, p, r2 in zip(swept, gain, phase, r_squared):
            print(f"{f:10.3f} {g:12.4g} {p:8.1f} {r2:6.3f}")
        peak = fits.peak(key)
        if peak is not None:
            print(f"Peak response at {peak:.3g} Hz")


if __name__ == "__main__":
    main()
