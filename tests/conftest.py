import math

import pytest

from fepcal.data.efficiency import emitted_gammas
from fepcal.data.measurements import Measurement
from fepcal.data.sources import builtin_source
from fepcal.io.session import Session
from fepcal.physics.decay import activity_at


TRUE_PARAMS = (2.0, -0.5, -0.05)


def true_efficiency(energy):
    """Efficiency in percent of the synthetic detector."""
    x = math.log(energy)
    a, b, c = TRUE_PARAMS
    return math.exp(a + b * x + c * x**2)


def synthetic_measurement(source, detector, measurement_date, live_time_hours=2.0, n_lines=None):
    """Measurement whose peak areas follow ``true_efficiency`` exactly."""
    measurement = Measurement(source, measurement_date, live_time_hours)
    activity = activity_at(source, measurement_date)
    for line in source.gamma_lines[:n_lines]:
        n_emitted = emitted_gammas(activity, line.intensity, live_time_hours)
        area = true_efficiency(line.energy) / 100.0 * n_emitted
        measurement.add_peak(line.energy, area, 0.01 * area, detector)
    return measurement


@pytest.fixture
def calibration_session():
    """Detector A counted with Eu-152 and Co-56, detector B with two Eu-152 peaks."""
    eu = builtin_source('Eu-152')
    co = builtin_source('Co-56')
    eu_run = synthetic_measurement(eu, "A", "2020-06-01")
    for peak in synthetic_measurement(eu, "B", "2020-06-01", n_lines=2).peaks:
        eu_run.peaks.append(peak)
    co_run = synthetic_measurement(co, "A", "2022-05-02", live_time_hours=1.5)
    return Session(measurements=[eu_run, co_run], name="synthetic")
