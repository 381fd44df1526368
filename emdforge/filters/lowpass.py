"""First-order low-pass filter used as the correlator delay stage.

Continuous-time dynamics (time in seconds):

* τ · dy/dt = u − y

The filter is stepped once per simulation step. Its output at step ``t`` is
the state *before* the input of step ``t`` is integrated, so the filter acts
as a delay line: the correlator multiplies this delayed value with the
undelayed input of the neighbouring arm.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import torch

from emdforge.filters.base import BaseFilter
from emdforge.solvers import BaseSolver, EulerSolver


class FirstOrderLowPass(BaseFilter):
    """Stateful first-order low-pass filter advanced by a pluggable solver.

    The state is lazily initialised to the first input it sees, i.e. to the
    steady state of a constant input, so a stationary stimulus produces no
    start-up transient.

    Example:
        >>> lp = FirstOrderLowPass(tau=0.05, dt=0.001)
        >>> lp.reset_state()
        >>> out = lp(torch.ones(4))
        >>> bool(torch.all(out == 1.0))
        True
    """

    def __init__(
        self,
        tau: float = 0.05,
        dt: float = 0.001,
        solver: Optional[BaseSolver] = None,
    ) -> None:
        """Initialise the low-pass filter.

        Args:
            tau: Time constant in seconds.
            dt: Integration step in seconds.
            solver: Integrator; defaults to :class:`EulerSolver` with ``dt``.
        """
        super().__init__(dt=dt)
        if tau <= 0:
            raise ValueError(f"tau must be positive, got {tau}")
        self.tau = tau
        self.solver = solver if solver is not None else EulerSolver(dt=dt)
        self.state: Optional[torch.Tensor] = None
        self._input: Optional[torch.Tensor] = None

    def _derivative(self, state: torch.Tensor, t: float) -> torch.Tensor:
        return (self._input - state) / self.tau

    def reset_state(self, initial: Optional[torch.Tensor] = None) -> None:
        """Clear the state, optionally seeding it with ``initial``."""
        self.state = None if initial is None else initial.clone()
        self._input = None

    def forward(
        self,
        x: torch.Tensor,
        t: float = 0.0,
        dt: Optional[float] = None,
    ) -> torch.Tensor:
        """Return the delayed output for this step, then integrate ``x``."""
        step = self.dt if dt is None else dt
        if self.state is None:
            self.state = x.clone()
        output = self.state
        self._input = x
        self.state = self.solver.step(self._derivative, self.state, t, step)
        return output

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FirstOrderLowPass":
        return cls(tau=config.get("tau", 0.05), dt=config.get("dt", 0.001))

    def to_dict(self) -> Dict[str, Any]:
        return {"tau": self.tau, "dt": self.dt}
