"""Abstract base class for temporal filters in EMDForge.

The delay arm of every correlator is a temporal filter that is stepped once
per simulation step. All such filters inherit from :class:`BaseFilter` so
the detector array can swap them without changing its update loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import torch
import torch.nn as nn


class BaseFilter(nn.Module, ABC):
    """Abstract base class for stateful temporal filters.

    All filters must:
    1. Inherit from ``nn.Module``
    2. Implement ``forward()`` advancing the filter by one time step
    3. Implement ``reset_state()`` to clear internal temporal state
    4. Provide ``from_config()`` and ``to_dict()`` for configuration

    Attributes:
        dt: Time step in seconds used by the filter.
    """

    def __init__(self, dt: float = 0.001) -> None:
        """Initialise the filter.

        Args:
            dt: Integration time step in seconds.
        """
        super().__init__()
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        self.dt = dt

    @abstractmethod
    def forward(
        self,
        x: torch.Tensor,
        t: float = 0.0,
        dt: Optional[float] = None,
    ) -> torch.Tensor:
        """Advance the filter by one step with input ``x``.

        Args:
            x: Input sample for the current step, any shape.
            t: Current simulation time in seconds.
            dt: Optional override for the time step (seconds).

        Returns:
            Filter output for the current step, same shape as ``x``.
        """
        ...

    @abstractmethod
    def reset_state(self, initial: Optional[torch.Tensor] = None) -> None:
        """Reset internal temporal state.

        Must be called between independent simulations so no state carries
        over from one stimulus condition to the next.
        """
        ...

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "BaseFilter":
        """Construct a filter instance from a configuration dictionary."""
        return cls(**config)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise filter parameters to a dictionary."""
        return {"dt": self.dt}
