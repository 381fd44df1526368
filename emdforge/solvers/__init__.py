"""ODE solver infrastructure for EMDForge.

The detector array treats its integrator as an opaque collaborator: every
low-pass delay stage is advanced through a :class:`BaseSolver`. Forward
Euler is the default and only built-in scheme.

Example:
    >>> from emdforge.solvers import get_solver
    >>> solver = get_solver({'type': 'euler', 'dt': 0.001})
"""

from typing import Any, Dict

from .base import BaseSolver
from .euler import EulerSolver


__all__ = [
    'BaseSolver',
    'EulerSolver',
    'get_solver',
]

_SOLVERS = {
    'euler': EulerSolver,
}


def get_solver(config: Dict[str, Any]) -> BaseSolver:
    """Create a solver from a configuration dictionary.

    Args:
        config: Dictionary with a 'type' field (e.g. 'euler') plus
                solver-specific parameters.

    Returns:
        Configured solver instance.

    Raises:
        ValueError: If the solver type is missing or unknown.

    Example:
        >>> isinstance(get_solver({'type': 'Euler'}), EulerSolver)
        True
    """
    solver_type = config.get('type')

    if solver_type is None:
        raise ValueError(
            "Solver configuration must include a 'type' field. "
            f"Valid types are: {', '.join(sorted(_SOLVERS))}"
        )

    solver_cls = _SOLVERS.get(str(solver_type).lower())
    if solver_cls is None:
        raise ValueError(
            f"Unknown solver type: {solver_type}. "
            f"Valid types are: {', '.join(sorted(_SOLVERS))}"
        )
    return solver_cls.from_config(config)
