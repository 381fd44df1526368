"""Base solver interface for ODE integration in EMDForge.

This module defines the abstract base class for the integrators that advance
the detector array's internal state. The array only ever asks a solver for
one fixed step at a time, so the interface is a single ``step`` method plus
configuration round-tripping.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict

import torch


class BaseSolver(ABC):
    """Abstract base class for ODE solvers.

    Solvers operate on PyTorch tensors of any shape and preserve the device
    and dtype of the state they are given.

    Attributes:
        dt: Default time step size in seconds.
    """

    def __init__(self, dt: float = 0.001):
        """Initialize the base solver.

        Args:
            dt: Default time step size in seconds.
        """
        if dt <= 0:
            raise ValueError(f"Time step dt must be positive, got {dt}")
        self.dt = dt

    @abstractmethod
    def step(
        self,
        ode_func: Callable[[torch.Tensor, float], torch.Tensor],
        state: torch.Tensor,
        t: float,
        dt: float
    ) -> torch.Tensor:
        """Perform a single integration step.

        Args:
            ode_func: Function computing the time derivative of the state.
                      Signature: f(state, t) -> dstate_dt, same shape as state.
            state: Current state tensor.
            t: Current time in seconds.
            dt: Time step size in seconds for this step.

        Returns:
            Updated state tensor with the same shape as ``state``.

        Example:
            >>> def ode_func(state, t):
            ...     return -state
            >>> solver = EulerSolver(dt=0.1)
            >>> state = torch.tensor([[1.0, 2.0]])
            >>> new_state = solver.step(ode_func, state, t=0.0, dt=0.1)
        """
        pass

    @classmethod
    @abstractmethod
    def from_config(cls, config: Dict[str, Any]) -> 'BaseSolver':
        """Create a solver instance from a configuration dictionary.

        Args:
            config: Dictionary containing solver configuration. The 'type'
                    key is used by :func:`emdforge.solvers.get_solver`; other
                    keys are solver-specific parameters.

        Returns:
            Configured solver instance.
        """
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Serialise solver parameters to a dictionary."""
        return {'dt': self.dt}
