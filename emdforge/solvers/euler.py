"""Forward Euler ODE solver implementation.

This module provides the EulerSolver class, the default integrator for the
low-pass delay stages of the detector array.
"""

from typing import Any, Callable, Dict

import torch

from .base import BaseSolver


class EulerSolver(BaseSolver):
    """Forward Euler method for ODE integration.

    The integration scheme is:
        state_{t+1} = state_t + dt * f(state_t, t)

    For the first-order low-pass ``dx/dt = (u - x) / tau`` the update is
    stable for ``dt < 2 * tau`` and tracks the continuous solution closely
    for ``dt << tau``.

    Attributes:
        dt: Default time step size in seconds.

    Example:
        >>> solver = EulerSolver(dt=0.001)
        >>> def decay(state, t):
        ...     return -10.0 * state
        >>> v = torch.tensor([1.0])
        >>> solver.step(decay, v, t=0.0, dt=0.001)
        tensor([0.9900])
    """

    def __init__(self, dt: float = 0.001):
        """Initialize the Forward Euler solver.

        Args:
            dt: Time step size in seconds. Defaults to 1 ms.
        """
        super().__init__(dt=dt)

    def step(
        self,
        ode_func: Callable[[torch.Tensor, float], torch.Tensor],
        state: torch.Tensor,
        t: float,
        dt: float
    ) -> torch.Tensor:
        """Perform a single Forward Euler integration step.

        Args:
            ode_func: Function computing the time derivative of the state.
            state: Current state tensor.
            t: Current time in seconds.
            dt: Time step size in seconds for this step.

        Returns:
            Updated state tensor, same shape, device and dtype as ``state``.
        """
        dstate_dt = ode_func(state, t)
        return state + dt * dstate_dt

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'EulerSolver':
        """Create an EulerSolver from a configuration dictionary.

        Args:
            config: Dictionary with optional key 'dt' (seconds, default 1 ms).

        Returns:
            Configured EulerSolver instance.

        Example:
            >>> EulerSolver.from_config({'dt': 0.002}).dt
            0.002
        """
        return cls(dt=config.get('dt', 0.001))

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'euler', 'dt': self.dt}
