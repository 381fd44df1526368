"""Unit tests for oscillation, head motion and relative motion traces."""

import math

import pytest
import torch

from emdforge.stimuli.motion import head_motion, oscillation, relative_motion, time_axis


class TestTimeAxis:

    def test_length_and_endpoints(self):
        t = time_axis(1.0, 0.001)
        assert t.shape == (1001,)
        assert float(t[0]) == 0.0
        assert float(t[-1]) == pytest.approx(1.0)

    def test_dtype(self):
        assert time_axis(0.1, 0.01, dtype=torch.float32).dtype == torch.float32

    @pytest.mark.parametrize("duration,dt", [(0.0, 0.001), (1.0, 0.0), (-1.0, 0.1)])
    def test_non_positive_arguments_raise(self, duration, dt):
        with pytest.raises(ValueError):
            time_axis(duration, dt)


class TestOscillation:

    def test_amplitude_and_start(self):
        t = time_axis(1.0, 0.001)
        x = oscillation(t, frequency=2.0, amplitude=5.0)
        assert float(x[0]) == 0.0
        assert float(x.max()) == pytest.approx(5.0, abs=1e-4)
        assert float(x.min()) == pytest.approx(-5.0, abs=1e-4)

    def test_phase_offset_in_degrees(self):
        t = torch.tensor([0.0], dtype=torch.float64)
        x = oscillation(t, frequency=1.0, amplitude=2.0, phase_deg=90.0)
        assert float(x[0]) == pytest.approx(2.0)


class TestHeadAndRelativeMotion:

    def test_head_scaled_by_gain(self):
        t = time_axis(1.0, 0.001)
        head = head_motion(t, 2.0, 5.0, head_gain=0.5, head_phase=0.0)
        torch.testing.assert_close(head, oscillation(t, 2.0, 2.5))

    def test_zero_gain_leaves_stimulus(self):
        t = time_axis(1.0, 0.001)
        torch.testing.assert_close(relative_motion(t, 2.0, 5.0), oscillation(t, 2.0, 5.0))

    def test_full_compensation_cancels_motion(self):
        t = time_axis(1.0, 0.001)
        rel = relative_motion(t, 2.0, 5.0, head_gain=1.0, head_phase=0.0)
        assert bool(torch.all(rel == 0))

    def test_anti_phase_head_doubles_motion(self):
        t = time_axis(1.0, 0.001)
        rel = relative_motion(t, 2.0, 5.0, head_gain=1.0, head_phase=180.0)
        torch.testing.assert_close(rel, 2 * oscillation(t, 2.0, 5.0), atol=1e-9, rtol=0)

    def test_phase_lag_reduces_compensation(self):
        t = time_axis(2.0, 0.001)
        lagged = relative_motion(t, 1.0, 5.0, head_gain=1.0, head_phase=30.0)
        # |1 - e^{i30deg}| = 2 sin(15deg)
        expected = 5.0 * 2 * math.sin(math.radians(15.0))
        assert float(lagged.abs().max()) == pytest.approx(expected, rel=1e-3)
