"""Unit tests for the first-order low-pass delay stage."""

import pytest
import torch

from emdforge.filters import BaseFilter, FirstOrderLowPass
from emdforge.solvers import EulerSolver


class TestFirstOrderLowPass:

    def test_is_base_filter(self):
        assert isinstance(FirstOrderLowPass(), BaseFilter)

    def test_constant_input_passes_unchanged(self):
        lp = FirstOrderLowPass(tau=0.05, dt=0.001)
        x = torch.tensor([0.3, -1.2, 4.0], dtype=torch.float64)
        for _ in range(20):
            assert torch.equal(lp(x), x)

    def test_step_response_follows_euler_recursion(self):
        tau, dt = 0.05, 0.001
        lp = FirstOrderLowPass(tau=tau, dt=dt)
        lp(torch.zeros(1, dtype=torch.float64))
        ratio = dt / tau
        ones = torch.ones(1, dtype=torch.float64)
        for k in range(1, 200):
            out = lp(ones)
            expected = 1.0 - (1.0 - ratio) ** (k - 1)
            assert float(out) == pytest.approx(expected, abs=1e-12)

    def test_output_is_delayed_state(self):
        lp = FirstOrderLowPass(tau=0.01, dt=0.001)
        first = lp(torch.tensor([1.0]))
        second = lp(torch.tensor([5.0]))
        # The second call reports the state before integrating the new input.
        assert float(first) == 1.0
        assert float(second) == 1.0
        assert float(lp.state) == pytest.approx(1.0 + 0.1 * 4.0)

    def test_reset_state_clears_and_seeds(self):
        lp = FirstOrderLowPass()
        lp(torch.tensor([2.0]))
        lp.reset_state()
        assert lp.state is None
        lp.reset_state(torch.tensor([0.5]))
        assert float(lp(torch.tensor([1.0]))) == 0.5

    def test_uses_supplied_solver(self):
        solver = EulerSolver(dt=0.002)
        lp = FirstOrderLowPass(tau=0.05, dt=0.002, solver=solver)
        assert lp.solver is solver

    @pytest.mark.parametrize("tau", [0.0, -0.1])
    def test_invalid_tau_raises(self, tau):
        with pytest.raises(ValueError, match="tau"):
            FirstOrderLowPass(tau=tau)

    def test_invalid_dt_raises(self):
        with pytest.raises(ValueError, match="dt"):
            FirstOrderLowPass(dt=0.0)

    def test_config_round_trip(self):
        lp = FirstOrderLowPass.from_config(FirstOrderLowPass(tau=0.02, dt=0.0005).to_dict())
        assert lp.tau == 0.02
        assert lp.dt == 0.0005
