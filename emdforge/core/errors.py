"""Exception and warning types raised across EMDForge.

Parameter errors fail fast at the point where an invalid stimulus value is
first seen; simulation errors are raised by :class:`EMDArray` when the
integrated output is malformed. The sweep harness turns both into explicit
per-condition failure markers instead of letting them abort a sweep.
"""

from __future__ import annotations

import math
from typing import Any, Optional


class InvalidParameterError(ValueError):
    """A stimulus or filter parameter is non-finite or out of range.

    Attributes:
        parameter: Name of the offending parameter.
        value: The rejected value.
        condition: Full stimulus condition the value belonged to, if known.
    """

    def __init__(
        self,
        parameter: str,
        value: Any,
        reason: str,
        condition: Optional[Any] = None,
    ) -> None:
        self.parameter = parameter
        self.value = value
        self.reason = reason
        self.condition = condition
        message = f"{parameter}={value!r} {reason}"
        if condition is not None:
            message += f" (condition: {condition})"
        super().__init__(message)

    def with_condition(self, condition: Any) -> "InvalidParameterError":
        """Return a copy of this error labelled with ``condition``."""
        return InvalidParameterError(
            self.parameter, self.value, self.reason, condition=condition
        )


class SimulationFailure(RuntimeError):
    """The detector simulation produced unusable output for a condition."""

    def __init__(self, message: str, condition: Optional[Any] = None) -> None:
        self.condition = condition
        if condition is not None:
            message = f"{message} (condition: {condition})"
        super().__init__(message)


class FitQualityWarning(UserWarning):
    """Emitted when steady-state fits fall below the reliability threshold."""


def check_parameter(
    name: str,
    value: float,
    *,
    positive: bool = False,
    non_negative: bool = False,
) -> float:
    """Validate a scalar parameter and return it as ``float``.

    Args:
        name: Parameter name used in the error message.
        value: Value to check.
        positive: Require ``value > 0``.
        non_negative: Require ``value >= 0``.

    Raises:
        InvalidParameterError: If the value is not a finite real number or
            violates the requested sign constraint.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(name, value, "is not a real number") from None
    if not math.isfinite(number):
        raise InvalidParameterError(name, value, "must be finite")
    if positive and number <= 0:
        raise InvalidParameterError(name, value, "must be positive")
    if non_negative and number < 0:
        raise InvalidParameterError(name, value, "must be non-negative")
    return number
