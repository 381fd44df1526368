"""Integration tests for the sweep-and-fit pipeline.

Runs a short oscillation frequency sweep through the batch executor and checks
the band-pass character of the correlator array's steady-state response.
"""

import numpy as np
import pytest

from emdforge.config.schema import ExperimentConfig
from emdforge.core.batch_executor import BatchExecutor
from emdforge.core.conditions import SweepVariable

pytestmark = pytest.mark.filterwarnings("ignore::emdforge.core.errors.FitQualityWarning")


@pytest.fixture(scope="module")
def frequency_fits():
    config = ExperimentConfig.from_dict({
        "array": {"n_detectors": 60, "baseline_deg": 1.0, "tau": 0.05},
        "simulation": {"duration": 4.0, "dt": 0.002},
        "defaults": {"amplitude": 5.0, "spatial_period": 20.0},
        "sweep": {
            "test_frequency": True,
            "test_amplitude": False,
            "test_spatial_period": False,
            "frequencies": {"logspace": [-0.5, 1.5, 8]},
        },
        "execution": {"verbose": False, "workers": 2},
    })
    return BatchExecutor(config).execute()


class TestFrequencySweep:
    """Steady-state response of the array across oscillation frequency."""

    def test_every_condition_simulated(self, frequency_fits):
        result = frequency_fits["results"][SweepVariable.FREQUENCY]
        assert result.shape == (1, 1, 8)
        assert not result.failures()
        assert frequency_fits["failed_conditions"] == {SweepVariable.FREQUENCY: 0}

    def test_band_pass_peak(self, frequency_fits):
        fits = frequency_fits["fits"][SweepVariable.FREQUENCY]
        freqs, gain, _, _ = fits.as_arrays((0, 0))
        assert gain.shape == (8,)
        assert np.all(np.isfinite(gain))
        peak_index = int(np.argmax(gain))
        assert 0 < peak_index < len(freqs) - 1
        assert fits.peak((0, 0)) == pytest.approx(freqs[peak_index])
        assert gain[1] > gain[0]

    def test_low_frequencies_fit_well(self, frequency_fits):
        fits = frequency_fits["fits"][SweepVariable.FREQUENCY][0, 0]
        assert fits[0].r_squared > 0.9
        assert fits[1].r_squared > 0.9
        assert sum(fit.is_reliable() for fit in fits) >= 3

    def test_low_frequency_response_leads_position(self, frequency_fits):
        # Slow oscillation: the response follows grating velocity.
        fit = frequency_fits["fits"][SweepVariable.FREQUENCY][0, 0][0]
        assert 60.0 < fit.phase < 100.0

    def test_response_oscillates_about_zero(self, frequency_fits):
        output = frequency_fits["results"][SweepVariable.FREQUENCY][0, 0].outputs[3]
        assert output.condition.spatial_period == pytest.approx(20.0)
        assert output.condition.oscillation_amplitude == 5.0
        response = output.series("response")
        assert response.shape == (2001,)
        assert np.max(response) > 0 > np.min(response)


@pytest.mark.slow
def test_full_default_frequency_sweep():
    """Default array and simulation over 100 frequencies from 0.1 to 100 Hz."""
    config = ExperimentConfig.from_dict({
        "defaults": {"amplitude": 5.0, "spatial_period": 20.0},
        "head_motion": {"gains": [0.0], "phases": [0.0]},
        "sweep": {
            "test_frequency": True,
            "test_amplitude": False,
            "test_spatial_period": False,
            "frequencies": {"logspace": [-1, 2, 100]},
        },
        "execution": {"verbose": False, "workers": 4},
    })
    summary = BatchExecutor(config).execute()
    fits = summary["fits"][SweepVariable.FREQUENCY]
    row = fits[0, 0]
    assert len(row) == 100
    assert summary["failed_conditions"] == {SweepVariable.FREQUENCY: 0}

    freqs, gain, _, r2 = fits.as_arrays((0, 0))
    peak_index = int(np.nanargmax(gain))
    assert 1.0 < freqs[peak_index] < 10.0
    assert gain[0] < 0.5 * gain[peak_index]
    assert gain[-1] < 0.5 * gain[peak_index]
    interior = r2[10:90]
    assert np.mean(interior > 0.9) > 0.5
