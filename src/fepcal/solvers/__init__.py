"""Nonlinear least-squares solvers for efficiency curves."""

from fepcal.solvers.levmar import FitResult, FitStatus, fit_curve, fit_points

__all__ = [
    "FitResult",
    "FitStatus",
    "fit_curve",
    "fit_points",
]
