"""Weighted Levenberg-Marquardt fit of efficiency curve models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import numpy as np
from scipy import optimize

from fepcal.core.config import FitConfig
from fepcal.core.errors import InsufficientData, InvalidInput, NonConverged, NumericOverflow
from fepcal.data.efficiency import EfficiencyPoint, points_to_arrays
from fepcal.data.efficiency_models import CurveVariant, evaluate, initial_guess, jacobian

logger = logging.getLogger(__name__)

_REJECTED_RESIDUAL = 1e100


class FitStatus(Enum):
    """Outcome of an iterative fit."""

    CONVERGED = "converged"
    NON_CONVERGED = "non_converged"


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class FitResult:
    """
    Result of an efficiency curve fit.

    Attributes:
        variant: Model form that was fitted.
        parameters: Best-fit parameters in ``variant.parameter_names`` order.
        covariance: Parameter covariance matrix (NaN-filled when the weighted
            Jacobian is rank deficient).
        chi_squared: Weighted residual sum of squares at the optimum.
        dof: Degrees of freedom (points minus parameters).
        status: Whether the fit converged within its evaluation budget.
        evaluations: Model evaluations performed.
        message: Human-readable termination reason.
    """

    variant: CurveVariant
    parameters: np.ndarray
    covariance: np.ndarray
    chi_squared: float
    dof: int
    status: FitStatus
    evaluations: int
    message: str = ""

    @property
    def converged(self) -> bool:
        return self.status is FitStatus.CONVERGED

    @property
    def residual_sum_of_squares(self) -> float:
        return self.chi_squared

    @property
    def reduced_chi_squared(self) -> float:
        if self.dof <= 0:
            return float('nan')
        return self.chi_squared / self.dof

    @property
    def parameter_uncertainties(self) -> np.ndarray:
        diag = np.diag(self.covariance)
        return np.sqrt(np.where(diag >= 0, diag, np.nan))

    @property
    def parameter_dict(self) -> Dict[str, float]:
        return dict(zip(self.variant.parameter_names, (float(p) for p in self.parameters)))

    def evaluate(self, energy):
        """Fitted efficiency at ``energy`` (keV)."""
        return evaluate(self.variant, self.parameters, energy)

    def require_converged(self) -> 'FitResult':
        """Return self, or raise NonConverged for a best-effort result."""
        if not self.converged:
            raise NonConverged(
                f"{self.variant.value} fit did not converge after {self.evaluations} evaluations",
                result=self,
            )
        return self

    def describe(self) -> str:
        """One-line summary with parameter uncertainties."""
        terms = ", ".join(
            f"{name} = {value:.5g} ± {sigma:.2g}"
            for name, value, sigma in zip(
                self.variant.parameter_names, self.parameters, self.parameter_uncertainties
            )
        )
        return f"{self.variant.formula}: {terms}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'model': self.variant.value,
            'parameter_names': list(self.variant.parameter_names),
            'parameters': [float(p) for p in self.parameters],
            'uncertainties': [float(s) for s in self.parameter_uncertainties],
            'covariance': self.covariance.tolist(),
            'chi_squared': self.chi_squared,
            'dof': self.dof,
            'reduced_chi_squared': self.reduced_chi_squared,
            'status': self.status.value,
            'evaluations': self.evaluations,
            'message': self.message,
        }


def _as_arrays(energies, efficiencies, uncertainties):
    x = np.asarray(energies, dtype=float).ravel()
    y = np.asarray(efficiencies, dtype=float).ravel()
    sigma = np.asarray(uncertainties, dtype=float).ravel()
    if not (x.size == y.size == sigma.size):
        raise InvalidInput(
            f"energies, efficiencies and uncertainties differ in length "
            f"({x.size}, {y.size}, {sigma.size})"
        )
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y)) and np.all(np.isfinite(sigma))):
        raise InvalidInput("Fit data must be finite")
    if not np.all(x > 0):
        raise InvalidInput("Energies must be positive")
    if not np.all(sigma > 0):
        raise InvalidInput("Every point used in a fit needs a positive uncertainty")
    return x, y, sigma


def _covariance(J: np.ndarray) -> np.ndarray:
    """(J^T W J)^-1 from the SVD of the weighted Jacobian, NaN-filled when singular."""
    n = J.shape[1]
    if not np.all(np.isfinite(J)):
        return np.full((n, n), np.nan)
    try:
        _, s, VT = np.linalg.svd(J, full_matrices=False)
    except np.linalg.LinAlgError:
        return np.full((n, n), np.nan)
    threshold = np.finfo(float).eps * max(J.shape) * s[0]
    if s.size < n or np.any(s <= threshold):
        return np.full((n, n), np.nan)
    cov = (VT.T / s**2) @ VT
    return 0.5 * (cov + cov.T)


def fit_curve(
    variant: Union[CurveVariant, str],
    initial_params: Optional[Sequence[float]],
    energies: Sequence[float],
    efficiencies: Sequence[float],
    uncertainties: Sequence[float],
    config: Optional[FitConfig] = None,
) -> FitResult:
    """
    Fit an efficiency curve by weighted nonlinear least squares.

    Minimizes χ² = Σ ((y_i - f(E_i; p)) / σ_i)² with the MINPACK
    Levenberg-Marquardt driver of ``scipy.optimize.least_squares``, using the
    analytic model Jacobian. The fit stops on the ftol, xtol or gtol test of
    ``config``; exhausting ``config.max_evaluations`` returns the best
    parameters found with ``FitStatus.NON_CONVERGED``.

    Args:
        variant: Model form (or its name).
        initial_params: Starting parameters. None derives them from
            log-log polynomial fits of the data.
        energies: Point energies in keV.
        efficiencies: Measured efficiencies.
        uncertainties: 1-sigma efficiency uncertainties, all positive.
        config: Stopping tolerances and evaluation budget.

    Returns:
        FitResult with covariance s² (JᵀWJ)⁻¹, s² the reduced chi-square.

    Raises:
        InsufficientData: Fewer points than parameters (checked first).
        InvalidInput: Malformed data, non-positive uncertainties or wrong
            parameter count.
        NumericOverflow: The model cannot be evaluated at the start point.
    """
    config = config or FitConfig()
    variant = CurveVariant.parse(variant)
    n_params = variant.parameter_count

    n_points = len(energies)
    if n_points < n_params:
        raise InsufficientData(n_points, n_params)

    x, y, sigma = _as_arrays(energies, efficiencies, uncertainties)

    if initial_params is None:
        initial_params = initial_guess(variant, x, y, sigma)
    p0 = np.asarray(initial_params, dtype=float).ravel()
    if p0.size != n_params:
        raise InvalidInput(f"{variant.value} model takes {n_params} parameters, got {p0.size}")

    def residuals(params: np.ndarray) -> np.ndarray:
        return (evaluate(variant, params, x) - y) / sigma

    def weighted_jacobian(params: np.ndarray) -> np.ndarray:
        return jacobian(variant, params, x) / sigma[:, None]

    # Raises at the start point; trial points use the guarded versions below
    residuals(p0)

    def trial_residuals(params: np.ndarray) -> np.ndarray:
        try:
            return residuals(params)
        except (NumericOverflow, InvalidInput):
            # Finite but huge: the trial step is rejected
            return np.full(n_points, _REJECTED_RESIDUAL)

    def trial_jacobian(params: np.ndarray) -> np.ndarray:
        try:
            return weighted_jacobian(params)
        except (NumericOverflow, InvalidInput):
            return np.zeros((n_points, n_params))

    solution = optimize.least_squares(
        trial_residuals,
        p0,
        jac=trial_jacobian,
        method="lm",
        x_scale="jac",
        ftol=config.tolerance,
        xtol=config.xtol,
        gtol=config.gtol,
        max_nfev=config.max_evaluations,
    )

    p = solution.x
    r = residuals(p)
    chi2 = float(r @ r)
    if solution.status > 0:
        status, message = FitStatus.CONVERGED, solution.message
    elif solution.status == 0:
        status = FitStatus.NON_CONVERGED
        message = f"Evaluation budget of {config.max_evaluations} exhausted"
    else:
        status, message = FitStatus.NON_CONVERGED, solution.message

    dof = n_points - n_params
    covariance = _covariance(weighted_jacobian(p))
    if config.scale_covariance and dof > 0:
        covariance = covariance * (chi2 / dof)

    logger.debug(
        f"{variant.value} fit: {status.value} after {solution.nfev} evaluations, "
        f"chi2={chi2:.4g}, dof={dof} ({message})"
    )

    return FitResult(
        variant=variant,
        parameters=_frozen(p),
        covariance=_frozen(covariance),
        chi_squared=chi2,
        dof=dof,
        status=status,
        evaluations=int(solution.nfev),
        message=message,
    )


def fit_points(
    variant: Union[CurveVariant, str],
    initial_params: Optional[Sequence[float]],
    points: Iterable[EfficiencyPoint],
    config: Optional[FitConfig] = None,
) -> FitResult:
    """Fit an efficiency curve to EfficiencyPoints (weights 1/σ²)."""
    points = list(points)
    variant = CurveVariant.parse(variant)
    if len(points) < variant.parameter_count:
        raise InsufficientData(len(points), variant.parameter_count)
    energies, efficiencies, uncertainties = points_to_arrays(points)
    return fit_curve(variant, initial_params, energies, efficiencies, uncertainties, config)
