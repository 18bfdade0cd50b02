"""
Confidence bands for fitted efficiency curves.

The band follows the delta-method convention used by lmfit's
``eval_uncertainty``: at each energy the prediction variance is

    var(E) = ∇f(E)ᵀ · C · ∇f(E)

with ∇f the model gradient with respect to the parameters and C the fit
covariance. The half-width is q · sqrt(var), q the two-sided quantile of the
standard normal (or Student-t) distribution for the requested confidence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from fepcal.core.config import BandConfig
from fepcal.core.errors import BandUnavailable, InvalidInput
from fepcal.data.efficiency_models import evaluate, jacobian
from fepcal.solvers.levmar import FitResult


@dataclass(frozen=True)
class BandSample:
    """Fitted efficiency and its confidence interval at one energy."""

    energy: float
    efficiency: float
    lower: float
    upper: float

    @property
    def half_width(self) -> float:
        return 0.5 * (self.upper - self.lower)


def coverage_quantile(
    confidence_level: float,
    distribution: str = "normal",
    dof: Optional[int] = None,
) -> float:
    """
    Two-sided quantile for a confidence level.

    Parameters
    ----------
    confidence_level : float
        Coverage probability in (0, 1); 0.6827 gives 1.0 for the normal case.
    distribution : str
        'normal' or 'student_t'
    dof : int, optional
        Degrees of freedom, required for 'student_t'
    """
    if not 0.0 < confidence_level < 1.0:
        raise InvalidInput(f"confidence_level must lie in (0, 1), got {confidence_level}")
    p = 0.5 * (1.0 + confidence_level)
    if distribution == "normal":
        return float(stats.norm.ppf(p))
    if distribution == "student_t":
        if dof is None or dof < 1:
            raise BandUnavailable("Student-t quantile needs at least one degree of freedom")
        return float(stats.t.ppf(p, dof))
    raise InvalidInput(f"Unknown distribution: {distribution}")


def default_energy_range(energies: Sequence[float], padding_keV: float = 1000.0) -> Tuple[float, float]:
    """Plot range from 1 keV to ``padding_keV`` above the highest point."""
    energies = np.asarray(energies, dtype=float)
    if energies.size == 0:
        raise InvalidInput("Cannot derive an energy range from no points")
    return 1.0, float(energies.max()) + padding_keV


def _check_covariance(covariance: np.ndarray, n_params: int) -> np.ndarray:
    cov = np.asarray(covariance, dtype=float)
    if cov.shape != (n_params, n_params):
        raise BandUnavailable(f"Covariance has shape {cov.shape}, expected {(n_params, n_params)}")
    if not np.all(np.isfinite(cov)):
        raise BandUnavailable("Covariance is singular or not finite")
    if np.any(np.diag(cov) < 0):
        raise BandUnavailable("Covariance has negative variances")
    return cov


class UncertaintyBand:
    """
    Lazily sampled confidence band over an energy range.

    Iterating yields ``BandSample`` objects in increasing energy. The band
    can be iterated any number of times; samples are recomputed on each pass.
    """

    def __init__(
        self,
        fit_result: FitResult,
        energy_range: Tuple[float, float],
        config: BandConfig,
    ):
        start, stop = (float(e) for e in energy_range)
        if not (math.isfinite(start) and math.isfinite(stop)) or not 0 < start < stop:
            raise InvalidInput(f"Energy range must satisfy 0 < start < stop, got {energy_range}")

        self.fit_result = fit_result
        self.energy_range = (start, stop)
        self.config = config
        self.covariance = _check_covariance(
            fit_result.covariance, fit_result.variant.parameter_count
        )
        self.quantile = coverage_quantile(
            config.confidence_level, config.distribution, fit_result.dof
        )

    def __len__(self) -> int:
        return self.config.n_points

    def energies(self) -> np.ndarray:
        start, stop = self.energy_range
        if self.config.log_spacing:
            return np.geomspace(start, stop, self.config.n_points)
        return np.linspace(start, stop, self.config.n_points)

    def sample(self, energy: float) -> BandSample:
        """Band at a single energy."""
        variant = self.fit_result.variant
        params = self.fit_result.parameters
        value = evaluate(variant, params, energy)
        grad = jacobian(variant, params, energy)[0]
        variance = float(grad @ self.covariance @ grad)
        if not math.isfinite(variance) or variance < 0:
            raise BandUnavailable(f"Prediction variance at {energy} keV is {variance}")
        half_width = self.quantile * math.sqrt(variance)
        return BandSample(
            energy=float(energy),
            efficiency=value,
            lower=value - half_width,
            upper=value + half_width,
        )

    def __iter__(self) -> Iterator[BandSample]:
        for energy in self.energies():
            yield self.sample(energy)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """(energies, efficiencies, lower, upper) arrays of one full pass."""
        samples = list(self)
        return (
            np.array([s.energy for s in samples]),
            np.array([s.efficiency for s in samples]),
            np.array([s.lower for s in samples]),
            np.array([s.upper for s in samples]),
        )


def band(
    fit_result: FitResult,
    energy_range: Tuple[float, float],
    confidence_level: Optional[float] = None,
    config: Optional[BandConfig] = None,
) -> UncertaintyBand:
    """
    Confidence band of a fitted efficiency curve.

    Args:
        fit_result: Fit providing variant, parameters and covariance.
        energy_range: (start, stop) energies in keV, start > 0.
        confidence_level: Overrides ``config.confidence_level`` when given.
        config: Sampling resolution, spacing and quantile distribution.

    Raises:
        BandUnavailable: Singular or non-finite covariance, or negative
            variances. Checked before any sample is produced.
        InvalidInput: Bad energy range or confidence level.
    """
    config = config or BandConfig()
    if confidence_level is not None:
        config = BandConfig(
            confidence_level=confidence_level,
            n_points=config.n_points,
            distribution=config.distribution,
            log_spacing=config.log_spacing,
        )
    return UncertaintyBand(fit_result, energy_range, config)
