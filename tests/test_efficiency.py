import math

import pytest

from fepcal.core.errors import InvalidInput
from fepcal.data.efficiency import (
    build_efficiency_point,
    emitted_gammas,
    points_by_detector,
    points_for_measurement,
    points_to_arrays,
)
from fepcal.data.measurements import Measurement
from fepcal.data.sources import GammaLine, Source, builtin_source


def test_co60_point():
    point = build_efficiency_point(
        source_activity_kBq=100.0,
        intensity_fraction=0.9985,
        live_time_hours=1.0,
        peak_area=359.0,
        peak_area_uncertainty=19.0,
        energy=1173.23,
    )
    assert math.isclose(emitted_gammas(100.0, 0.9985, 1.0), 359_460_000.0)
    assert math.isclose(point.efficiency_percent, 100.0 * 359.0 / 359_460_000.0)
    assert math.isclose(point.efficiency_percent, 9.987e-5, rel_tol=1e-3)
    assert math.isclose(point.relative_uncertainty, 19.0 / 359.0)
    assert point.energy == 1173.23


def test_doubling_area_doubles_efficiency():
    single = build_efficiency_point(50.0, 0.5, 2.0, 1000.0, 30.0)
    double = build_efficiency_point(50.0, 0.5, 2.0, 2000.0, 30.0)
    assert math.isclose(double.efficiency_percent, 2.0 * single.efficiency_percent)


def test_zero_area_keeps_finite_uncertainty():
    point = build_efficiency_point(50.0, 0.5, 2.0, 0.0, 3.0)
    assert point.efficiency_percent == 0.0
    n_total = emitted_gammas(50.0, 0.5, 2.0)
    assert math.isclose(point.efficiency_uncertainty_percent, 100.0 * 3.0 / n_total)


def test_activity_and_intensity_terms_in_quadrature():
    point = build_efficiency_point(
        50.0, 0.5, 2.0, 1000.0, 0.0,
        activity_relative_uncertainty=0.03,
        intensity_uncertainty=0.02,
    )
    assert math.isclose(point.relative_uncertainty, math.hypot(0.03, 0.04))


@pytest.mark.parametrize(
    "activity, intensity, live_time, area",
    [
        (0.0, 0.5, 1.0, 10.0),
        (50.0, 0.0, 1.0, 10.0),
        (50.0, 0.5, 0.0, 10.0),
        (50.0, 0.5, 1.0, -10.0),
    ],
)
def test_invalid_inputs_rejected(activity, intensity, live_time, area):
    with pytest.raises(InvalidInput):
        build_efficiency_point(activity, intensity, live_time, area, 1.0)


def test_points_for_measurement_at_reference_date():
    source = builtin_source('Eu-152')
    measurement = Measurement(source, "2017-03-17", 1.0)
    measurement.add_peak(344.3, 5000.0, 80.0, "HPGe")
    measurement.add_peak(121.8, 9000.0, 100.0, "HPGe")

    points = points_for_measurement(measurement)
    assert [p.energy for p in points] == [121.7817, 344.2785]

    line = source.line_for(344.3)
    expected = build_efficiency_point(
        74.370, line.intensity, 1.0, 5000.0, 80.0,
        energy=line.energy,
        intensity_uncertainty=line.intensity_uncertainty,
        source='Eu-152',
        detector="HPGe",
    )
    assert math.isclose(points[1].efficiency_percent, expected.efficiency_percent)
    assert math.isclose(points[1].efficiency_uncertainty_percent, expected.efficiency_uncertainty_percent)
    assert points[1].counts == 5000.0
    assert points[1].counts_uncertainty == 80.0
    assert points[1].intensity == line.intensity
    assert points[1].intensity_uncertainty == line.intensity_uncertainty


def test_unmatched_peak_rejected():
    measurement = Measurement(builtin_source('Eu-152'), "2020-01-01", 1.0)
    measurement.add_peak(500.0, 1000.0, 30.0)
    with pytest.raises(InvalidInput):
        points_for_measurement(measurement)


def test_points_pooled_per_detector(calibration_session):
    pooled = points_by_detector(calibration_session.measurements)
    assert list(pooled) == ["A", "B"]
    assert len(pooled["A"]) == 16
    assert len(pooled["B"]) == 2

    energies = [p.energy for p in pooled["A"]]
    assert energies == sorted(energies)
    assert {p.source for p in pooled["A"]} == {'Eu-152', 'Co-56'}
    assert all(p.detector == "A" for p in pooled["A"])


def test_points_to_arrays(calibration_session):
    points = points_by_detector(calibration_session.measurements)["B"]
    energies, efficiencies, uncertainties = points_to_arrays(points)
    assert energies.shape == efficiencies.shape == uncertainties.shape == (2,)
    assert (uncertainties > 0).all()


def test_fully_decayed_source_rejected():
    source = Source(
        name="Short",
        reference_activity=100.0,
        reference_date="2020-01-01",
        half_life=1.0,
        half_life_unit='h',
        gamma_lines=[GammaLine(500.0, 0.5)],
    )
    measurement = Measurement(source, "2020-03-01", 1.0)
    measurement.add_peak(500.0, 10.0, 3.0)
    assert source.activity_at("2020-03-01") == 0.0
    with pytest.raises(InvalidInput):
        points_for_measurement(measurement)
