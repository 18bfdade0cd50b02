"""
Efficiency Curve Models

Functional forms for full-energy-peak efficiency versus energy, written in
log-energy space (x = ln(E / keV)):

1. **single**: ε(E) = exp(a + b·x + c·x²)

2. **double**: ε(E) = exp(c·x²) · [exp(a1 + b1·x) + exp(a2 + b2·x)]

   Two exponential branches (low- and high-energy response) are summed
   outside the logarithm and share one curvature term. With one branch
   switched off (a2 → -∞) it reduces to the single form.

Variants are a tagged enum; evaluation and derivatives dispatch on the tag.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from fepcal.core.errors import InvalidInput, NumericOverflow


class CurveVariant(Enum):
    """Efficiency curve model variants."""

    SINGLE = "single"
    DOUBLE = "double"

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return PARAMETER_NAMES[self]

    @property
    def parameter_count(self) -> int:
        return len(PARAMETER_NAMES[self])

    @property
    def formula(self) -> str:
        return FORMULAS[self]

    def evaluate(self, params: Sequence[float], energy):
        return evaluate(self, params, energy)

    def jacobian(self, params: Sequence[float], energy) -> np.ndarray:
        return jacobian(self, params, energy)

    @classmethod
    def parse(cls, value: Union[str, 'CurveVariant']) -> 'CurveVariant':
        """Accept a variant or its name ('single', 'double')."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidInput(
                f"Unknown curve model: {value}. Use one of {[v.value for v in cls]}"
            ) from None


PARAMETER_NAMES = {
    CurveVariant.SINGLE: ('a', 'b', 'c'),
    CurveVariant.DOUBLE: ('a1', 'b1', 'a2', 'b2', 'c'),
}

FORMULAS = {
    CurveVariant.SINGLE: "eff = exp(a + b*ln(E) + c*ln(E)^2)",
    CurveVariant.DOUBLE: "eff = exp(c*ln(E)^2) * [exp(a1 + b1*ln(E)) + exp(a2 + b2*ln(E))]",
}


def _log_energy(energy) -> np.ndarray:
    E = np.atleast_1d(np.asarray(energy, dtype=float))
    if E.size and not np.all(np.isfinite(E) & (E > 0)):
        raise InvalidInput("Energies must be positive and finite")
    return np.log(E)


def _check_params(variant: CurveVariant, params: Sequence[float]) -> np.ndarray:
    p = np.asarray(params, dtype=float).ravel()
    if p.size != variant.parameter_count:
        raise InvalidInput(
            f"{variant.value} model takes {variant.parameter_count} parameters, got {p.size}"
        )
    if not np.all(np.isfinite(p)):
        raise InvalidInput("Model parameters must be finite")
    return p


def _checked_exp(exponent: np.ndarray) -> np.ndarray:
    with np.errstate(over='ignore'):
        result = np.exp(exponent)
    if not np.all(np.isfinite(result)):
        raise NumericOverflow("Efficiency model exponential overflowed")
    return result


def _branches(variant: CurveVariant, p: np.ndarray, x: np.ndarray) -> Tuple[np.ndarray, ...]:
    if variant is CurveVariant.SINGLE:
        a, b, c = p
        return (_checked_exp(a + b * x + c * x**2),)
    elif variant is CurveVariant.DOUBLE:
        a1, b1, a2, b2, c = p
        curvature = c * x**2
        return (
            _checked_exp(a1 + b1 * x + curvature),
            _checked_exp(a2 + b2 * x + curvature),
        )
    else:
        raise InvalidInput(f"Unknown curve model: {variant}")


def evaluate(variant: CurveVariant, params: Sequence[float], energy):
    """
    Efficiency predicted by ``variant`` with ``params`` at ``energy``.

    Parameters
    ----------
    variant : CurveVariant
        Model form
    params : sequence of float
        Parameters in ``variant.parameter_names`` order
    energy : float or ndarray
        Energies in keV

    Returns
    -------
    float or ndarray
        Same units as the data the parameters were fitted to (percent for
        fitted efficiency curves). A float for scalar input.
    """
    scalar = np.ndim(energy) == 0
    p = _check_params(variant, params)
    x = _log_energy(energy)

    result = sum(_branches(variant, p, x))
    if not np.all(np.isfinite(result)):
        raise NumericOverflow("Efficiency model evaluation is not finite")

    if scalar:
        return float(result[0])
    return result.reshape(np.shape(energy))


def jacobian(variant: CurveVariant, params: Sequence[float], energy) -> np.ndarray:
    """
    Partial derivatives of the efficiency with respect to each parameter.

    Returns
    -------
    ndarray
        Shape (n_energies, parameter_count).
    """
    p = _check_params(variant, params)
    x = _log_energy(energy)
    branches = _branches(variant, p, x)

    if variant is CurveVariant.SINGLE:
        (f,) = branches
        jac = np.column_stack([f, f * x, f * x**2])
    else:
        e1, e2 = branches
        jac = np.column_stack([e1, e1 * x, e2, e2 * x, (e1 + e2) * x**2])

    if not np.all(np.isfinite(jac)):
        raise NumericOverflow("Efficiency model derivatives are not finite")
    return jac


def initial_guess(
    variant: CurveVariant,
    energies: Sequence[float],
    efficiencies: Sequence[float],
    uncertainties: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """
    Starting parameters from polynomial fits in log-log space.

    The single form is a quadratic in ln(E) for ln(ε). For the double form,
    the lower and upper halves of the energy range are each fitted with a
    straight line (one branch each) and the shared curvature starts at zero.

    Parameters
    ----------
    variant : CurveVariant
        Model form
    energies, efficiencies : sequence of float
        Calibration points (efficiencies must be positive)
    uncertainties : sequence of float, optional
        Efficiency uncertainties (for weighted polynomial fits)

    Returns
    -------
    ndarray
        Parameters in ``variant.parameter_names`` order
    """
    energies = np.asarray(energies, dtype=float)
    efficiencies = np.asarray(efficiencies, dtype=float)
    if energies.shape != efficiencies.shape:
        raise InvalidInput("energies and efficiencies must have the same length")
    if not np.all(efficiencies > 0):
        raise InvalidInput("Initial guesses need positive efficiencies")

    order = np.argsort(energies)
    log_e = _log_energy(energies)[order]
    log_eff = np.log(efficiencies)[order]

    if uncertainties is not None:
        # Weighted fit
        rel = np.asarray(uncertainties, dtype=float)[order] / efficiencies[order]
        weights = np.divide(1.0, rel, out=np.ones_like(rel), where=rel > 0)
    else:
        weights = np.ones_like(log_e)

    if variant is CurveVariant.SINGLE:
        if log_e.size < 3:
            raise InvalidInput("At least 3 points are needed for a single-model guess")
        coefficients = np.polyfit(log_e, log_eff, 2, w=weights)
        # Reverse to match convention (lowest order first)
        return coefficients[::-1].copy()

    if log_e.size < 4:
        raise InvalidInput("At least 4 points are needed for a double-model guess")
    half = log_e.size // 2
    b1, a1 = np.polyfit(log_e[:half], log_eff[:half], 1, w=weights[:half])
    b2, a2 = np.polyfit(log_e[half:], log_eff[half:], 1, w=weights[half:])
    # Each branch carries about half the efficiency where they overlap
    return np.array([a1 - np.log(2.0), b1, a2 - np.log(2.0), b2, 0.0])
