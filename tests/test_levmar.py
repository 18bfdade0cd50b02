import math

import numpy as np
import pytest

from fepcal.core.config import FitConfig
from fepcal.core.errors import InsufficientData, InvalidInput, NonConverged
from fepcal.data.efficiency import EfficiencyPoint, points_by_detector
from fepcal.data.efficiency_models import CurveVariant, evaluate
from fepcal.solvers.levmar import FitStatus, fit_curve, fit_points


EU152_ENERGIES = np.array([
    121.7817, 244.6974, 344.2785, 411.1164, 443.9650, 778.9045,
    867.3800, 964.0570, 1085.837, 1112.076, 1408.0130,
])
SINGLE_TRUE = np.array([2.0, -0.5, -0.05])
DOUBLE_TRUE = np.array([10.0, -2.0, 1.0, -0.5, -0.01])


class TestNoiseFreeRecovery:
    def test_single_from_derived_start(self):
        y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
        result = fit_curve(CurveVariant.SINGLE, None, EU152_ENERGIES, y, 0.01 * y)
        assert result.converged
        assert np.allclose(result.parameters, SINGLE_TRUE, rtol=1e-6)
        assert result.residual_sum_of_squares < 1e-12

    def test_single_from_perturbed_start(self):
        y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
        start = SINGLE_TRUE * np.array([1.1, 0.9, 1.1])
        result = fit_curve("single", start, EU152_ENERGIES, y, 0.01 * y)
        assert result.status is FitStatus.CONVERGED
        assert np.allclose(result.parameters, SINGLE_TRUE, rtol=1e-6)

    def test_double_from_perturbed_start(self):
        energies = np.geomspace(50.0, 4000.0, 30)
        y = evaluate(CurveVariant.DOUBLE, DOUBLE_TRUE, energies)
        start = DOUBLE_TRUE * 1.01
        result = fit_curve(CurveVariant.DOUBLE, start, energies, y, 0.01 * y)
        assert result.converged
        assert np.allclose(result.parameters, DOUBLE_TRUE, rtol=1e-4)
        assert result.residual_sum_of_squares < 1e-12
        assert result.dof == 25


def test_noisy_fit_statistics():
    rng = np.random.default_rng(42)
    y_true = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
    sigma = 0.02 * y_true
    y = y_true + sigma * rng.standard_normal(y_true.size)

    result = fit_curve(CurveVariant.SINGLE, None, EU152_ENERGIES, y, sigma)
    assert result.converged
    assert result.dof == 8
    assert math.isclose(result.reduced_chi_squared, result.chi_squared / 8)
    assert result.covariance.shape == (3, 3)
    assert np.allclose(result.covariance, result.covariance.T)
    assert np.all(result.parameter_uncertainties > 0)
    assert set(result.parameter_dict) == {'a', 'b', 'c'}


def test_insufficient_data_checked_first():
    with pytest.raises(InsufficientData) as excinfo:
        fit_curve(CurveVariant.SINGLE, None, [100.0, 200.0], [1.0, 0.5], [0.0, 0.0])
    assert excinfo.value.n_points == 2
    assert excinfo.value.n_parameters == 3

    points = [EfficiencyPoint(100.0 * k, 1.0 / k, 0.01) for k in range(1, 5)]
    with pytest.raises(InsufficientData):
        fit_points(CurveVariant.DOUBLE, None, points)


def test_zero_uncertainty_rejected():
    y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
    sigma = 0.01 * y
    sigma[3] = 0.0
    with pytest.raises(InvalidInput):
        fit_curve(CurveVariant.SINGLE, None, EU152_ENERGIES, y, sigma)


def test_mismatched_lengths_rejected():
    with pytest.raises(InvalidInput):
        fit_curve(CurveVariant.SINGLE, None, EU152_ENERGIES, [1.0] * 5, [0.1] * 11)


def test_wrong_initial_parameter_count_rejected():
    y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
    with pytest.raises(InvalidInput):
        fit_curve(CurveVariant.SINGLE, [1.0, 2.0], EU152_ENERGIES, y, 0.01 * y)


def test_exhausted_budget_returns_best_effort():
    y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
    start = SINGLE_TRUE * np.array([1.5, 0.5, 1.5])
    result = fit_curve(
        CurveVariant.SINGLE, start, EU152_ENERGIES, y, 0.01 * y,
        config=FitConfig(max_evaluations=1),
    )
    assert result.status is FitStatus.NON_CONVERGED
    assert "exhausted" in result.message
    assert result.evaluations >= 1
    with pytest.raises(NonConverged) as excinfo:
        result.require_converged()
    assert excinfo.value.result is result


def test_singular_problem_has_nan_covariance():
    energies = [500.0, 500.0, 500.0]
    y = [2.0, 2.0, 2.0]
    result = fit_curve(CurveVariant.SINGLE, [0.0, 0.0, 0.0], energies, y, [0.1, 0.1, 0.1])
    assert np.all(np.isnan(result.covariance))
    assert math.isnan(result.reduced_chi_squared)


def test_result_is_immutable():
    y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
    result = fit_curve(CurveVariant.SINGLE, None, EU152_ENERGIES, y, 0.01 * y)
    with pytest.raises(ValueError):
        result.parameters[0] = 0.0
    data = result.to_dict()
    assert data['model'] == 'single'
    assert data['status'] == 'converged'
    assert len(data['covariance']) == 3


def test_start_at_optimum_converges():
    y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
    result = fit_curve(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES, y, 0.01 * y)
    assert result.converged
    assert np.allclose(result.parameters, SINGLE_TRUE, rtol=1e-9)


def test_double_fit_of_single_shaped_data_stops(calibration_session):
    points = points_by_detector(calibration_session.measurements)["A"]
    result = fit_points(CurveVariant.DOUBLE, None, points)
    assert result.converged
    assert result.chi_squared < 1e-6
    assert result.evaluations < FitConfig().max_evaluations


def test_results_compare_by_identity():
    y = evaluate(CurveVariant.SINGLE, SINGLE_TRUE, EU152_ENERGIES)
    first = fit_curve(CurveVariant.SINGLE, None, EU152_ENERGIES, y, 0.01 * y)
    second = fit_curve(CurveVariant.SINGLE, None, EU152_ENERGIES, y, 0.01 * y)
    assert first == first
    assert first != second
    assert len({first, second}) == 2
