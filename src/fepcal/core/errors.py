"""Error taxonomy for efficiency calibration.

All errors are recoverable at the call site. ``InvalidInput`` and
``InsufficientData`` also derive from ``ValueError`` so callers that already
guard numerical code with ``except ValueError`` keep working.
"""

from __future__ import annotations


class FepcalError(Exception):
    """Base class for all calibration errors."""


class InvalidInput(FepcalError, ValueError):
    """Non-positive physical quantity, malformed date or inconsistent arrays."""


class InsufficientData(FepcalError, ValueError):
    """Fewer data points than free parameters."""

    def __init__(self, n_points: int, n_parameters: int):
        self.n_points = n_points
        self.n_parameters = n_parameters
        super().__init__(
            f"At least {n_parameters} points are required, got {n_points}"
        )


class NonConverged(FepcalError):
    """Evaluation budget exhausted before the fit converged.

    Never raised by the fitter itself; the best-effort result is returned with
    ``FitStatus.NON_CONVERGED``. ``FitResult.require_converged`` raises it.
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class BandUnavailable(FepcalError, ArithmeticError):
    """Covariance is singular or has negative variances."""


class NumericOverflow(FepcalError, OverflowError):
    """Exponential or ratio evaluated outside the representable range."""


__all__ = [
    "FepcalError",
    "InvalidInput",
    "InsufficientData",
    "NonConverged",
    "BandUnavailable",
    "NumericOverflow",
]
