"""Explicit configuration values for fitting and band estimation.

Nothing here is global state: every fit or band call receives the config it
should use, defaulting to a fresh instance.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from fepcal.core.errors import InvalidInput


# Two-sided probability of a 1-sigma normal interval (erf(1/sqrt(2)))
ONE_SIGMA_PROBABILITY = 0.6826894921370859

BAND_DISTRIBUTIONS = ("normal", "student_t")


@dataclass(frozen=True)
class FitConfig:
    """
    Configuration for the Levenberg-Marquardt efficiency fit.

    The tolerances are the MINPACK stopping tests used by
    ``scipy.optimize.least_squares(method="lm")``.

    Attributes:
        tolerance: Relative reduction of the weighted residual sum of squares
            below which the fit stops (ftol).
        xtol: Relative change of the parameters below which the fit stops.
        gtol: Orthogonality of residuals and Jacobian columns below which
            the fit stops.
        max_evaluations: Budget of model evaluations (maxfev). Exhausting it
            yields a non-converged (best-so-far) result.
        scale_covariance: Scale (J^T W J)^-1 by the reduced chi-square.
    """

    tolerance: float = 1e-10
    xtol: float = 1e-10
    gtol: float = 1e-10
    max_evaluations: int = 5000
    scale_covariance: bool = True

    def __post_init__(self):
        # least_squares rejects tolerances at or below machine epsilon
        for name in ("tolerance", "xtol", "gtol"):
            value = getattr(self, name)
            if not value > np.finfo(float).eps:
                raise InvalidInput(f"{name} must exceed machine epsilon, got {value}")
        if self.max_evaluations < 1:
            raise InvalidInput("max_evaluations must be at least 1")


@dataclass(frozen=True)
class BandConfig:
    """
    Configuration for uncertainty band sampling.

    Attributes:
        confidence_level: Two-sided coverage probability in (0, 1).
        n_points: Number of energy samples across the requested range.
        distribution: 'normal' (z quantile) or 'student_t' (t quantile with
            the fit's degrees of freedom).
        log_spacing: Sample energies logarithmically instead of linearly.
    """

    confidence_level: float = ONE_SIGMA_PROBABILITY
    n_points: int = 1000
    distribution: str = "normal"
    log_spacing: bool = False

    def __post_init__(self):
        if not 0.0 < self.confidence_level < 1.0:
            raise InvalidInput(
                f"confidence_level must lie in (0, 1), got {self.confidence_level}"
            )
        if self.n_points < 2:
            raise InvalidInput("n_points must be at least 2")
        if self.distribution not in BAND_DISTRIBUTIONS:
            raise InvalidInput(
                f"Unknown distribution: {self.distribution}. Use one of {BAND_DISTRIBUTIONS}"
            )
