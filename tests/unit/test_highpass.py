"""Unit tests for the edge-safe spatial high-pass and acceptance blur."""

import math

import numpy as np
import pytest
import torch
from scipy import signal

from emdforge.core.errors import InvalidParameterError
from emdforge.filters import DEFAULT_CUTOFF, EdgeSafeFilter, FilteredGrating, apply_acceptance
from emdforge.stimuli.grating import GratingGenerator


class TestEdgeSafeFilter:
    """Zero-phase high-pass over a tripled periodic pattern."""

    def test_coefficients_from_bilinear_transform(self):
        hp = EdgeSafeFilter(cutoff=0.0075)
        k = 2.0 / (2.0 + 0.0075)
        np.testing.assert_allclose(hp.b, [k, -k])
        np.testing.assert_allclose(hp.a, [1.0, -(2.0 - 0.0075) / (2.0 + 0.0075)])

    def test_default_cutoff(self):
        assert EdgeSafeFilter().cutoff == DEFAULT_CUTOFF == 0.0075

    def test_output_length_matches_input(self):
        hp = EdgeSafeFilter()
        values = np.random.default_rng(0).normal(size=257)
        assert hp.filter_periodic(values).shape == (257,)

    def test_constant_input_is_removed(self):
        out = EdgeSafeFilter().filter_periodic(np.full(3600, 0.5))
        assert np.max(np.abs(out)) < 1e-9

    def test_filtered_grating_matches_zero_phase_response(self):
        grating = GratingGenerator().generate(20.0)
        hp = EdgeSafeFilter()
        filtered = hp.apply(grating).luminance.numpy()

        n = grating.n_samples
        omega = 2 * math.pi * grating.cycles / (n - 1)
        _, h = signal.freqz(hp.b, hp.a, worN=[omega])
        gain = abs(h[0]) ** 2
        theta = grating.angles.numpy()
        expected = 0.5 * gain * np.sin(2 * math.pi * grating.cycles * theta / 360.0)

        np.testing.assert_allclose(filtered, expected, atol=1e-6)

    @pytest.mark.parametrize("period", [20.0, 360.0])
    def test_seam_is_continuous(self, period):
        filtered = EdgeSafeFilter().apply(GratingGenerator().generate(period)).luminance.numpy()
        assert filtered[0] == filtered[-1]
        # Curvature across the seam matches curvature just inside it.
        seam = filtered[1] - 2 * filtered[0] + filtered[-2]
        inside = filtered[2] - 2 * filtered[1] + filtered[0]
        assert seam == pytest.approx(inside, abs=1e-4)

    def test_periodic_signal_matches_steady_state(self):
        n = 360
        x = np.sin(2 * math.pi * 3 * np.arange(n) / n)
        hp = EdgeSafeFilter(cutoff=0.05)
        _, h = signal.freqz(hp.b, hp.a, worN=[2 * math.pi * 3 / n])
        np.testing.assert_allclose(hp.filter_periodic(x), abs(h[0]) ** 2 * x, atol=1e-6)

    def test_apply_returns_immutable_record(self):
        grating = GratingGenerator().generate(7.0)
        filtered = EdgeSafeFilter(cutoff=0.01).apply(grating)
        assert isinstance(filtered, FilteredGrating)
        assert filtered.source is grating
        assert filtered.cutoff == 0.01
        assert filtered.period == grating.period
        assert filtered.luminance.dtype == grating.luminance.dtype
        with pytest.raises(AttributeError):
            filtered.cutoff = 0.5

    def test_sample_wraps(self, filtered_grating):
        values = filtered_grating.sample(torch.tensor([-5.0, 355.0], dtype=torch.float64))
        assert float(values[0]) == pytest.approx(float(values[1]), abs=1e-12)

    @pytest.mark.parametrize("bad", [0.0, -0.1, math.nan, math.inf])
    def test_invalid_cutoff_raises(self, bad):
        with pytest.raises(InvalidParameterError, match="cutoff"):
            EdgeSafeFilter(cutoff=bad)

    def test_config_round_trip(self):
        hp = EdgeSafeFilter.from_config(EdgeSafeFilter(cutoff=0.02).to_dict())
        assert hp.cutoff == 0.02


class TestAcceptance:
    """Gaussian photoreceptor acceptance blur."""

    def test_zero_width_returns_same_grating(self, filtered_grating):
        assert apply_acceptance(filtered_grating, 0.0) is filtered_grating

    def test_blur_attenuates_fine_gratings_more(self):
        hp = EdgeSafeFilter()
        fine = hp.apply(GratingGenerator().generate(5.0))
        coarse = hp.apply(GratingGenerator().generate(90.0))

        def attenuation(grating):
            blurred = apply_acceptance(grating, 2.0)
            return float(blurred.luminance.std() / grating.luminance.std())

        assert attenuation(fine) < 0.7
        assert attenuation(coarse) > 0.95

    def test_blurred_grating_stays_closed(self, filtered_grating):
        blurred = apply_acceptance(filtered_grating, 1.5)
        assert blurred.luminance.shape == filtered_grating.luminance.shape
        assert float(blurred.luminance[0]) == float(blurred.luminance[-1])
        assert blurred.acceptance_fwhm == 1.5
        assert blurred.source is filtered_grating.source

    def test_negative_width_raises(self, filtered_grating):
        with pytest.raises(InvalidParameterError):
            apply_acceptance(filtered_grating, -1.0)
