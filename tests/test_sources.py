import math

import pytest

from fepcal.core.errors import InvalidInput
from fepcal.data.measurements import Measurement, PeakFit
from fepcal.data.sources import BUILTIN_SOURCES, GammaLine, Source, builtin_source


class TestGammaLine:
    def test_from_percent(self):
        line = GammaLine.from_percent(661.66, 85.1, 0.2)
        assert math.isclose(line.intensity, 0.851)
        assert math.isclose(line.intensity_uncertainty, 0.002)
        assert math.isclose(line.relative_uncertainty, 0.002 / 0.851)

    def test_intensity_must_be_fraction(self):
        with pytest.raises(InvalidInput):
            GammaLine(100.0, 1.5)
        with pytest.raises(InvalidInput):
            GammaLine(-5.0, 0.5)


class TestBuiltinSources:
    def test_eu152_line_lookup(self):
        source = builtin_source('Eu-152')
        assert source.line_for(344.3).energy == 344.2785
        assert source.reference_activity == 74.370
        assert len(source.gamma_lines) == 11

    def test_co56_half_life_in_days(self):
        source = builtin_source('Co-56')
        assert source.half_life_unit == 'd'
        assert math.isclose(source.half_life, 77.236)

    def test_source_without_certificate_needs_reference(self):
        with pytest.raises(InvalidInput):
            builtin_source('Co-60')
        source = builtin_source('Co-60', reference_activity=100.0, reference_date="2021-01-01")
        assert math.isclose(source.line_for(1173.0).intensity, 0.9985)

    def test_unknown_source(self):
        with pytest.raises(InvalidInput):
            builtin_source('Am-241')

    def test_every_entry_builds(self):
        for name in BUILTIN_SOURCES:
            source = builtin_source(name, reference_activity=1.0, reference_date="2020-01-01")
            assert source.gamma_lines


def test_line_outside_tolerance_rejected():
    source = builtin_source('Eu-152')
    with pytest.raises(InvalidInput):
        source.line_for(500.0)
    assert source.line_for(500.0, tolerance=60.0).energy == 443.9650


def test_source_dict_round_trip():
    source = builtin_source('Co-56', reference_activity_uncertainty=1.2)
    restored = Source.from_dict(source.to_dict())
    assert restored == source


def test_source_from_dict_missing_field():
    with pytest.raises(InvalidInput):
        Source.from_dict({'name': 'X', 'half_life': 1.0})


def test_source_activity_method():
    source = builtin_source('Eu-152')
    assert source.activity_at("2017-03-17") == source.reference_activity


class TestMeasurement:
    def test_detectors_in_order_of_appearance(self):
        measurement = Measurement(builtin_source('Eu-152'), "2020-06-01", 1.0)
        measurement.add_peak(344.28, 1000.0, 30.0, "B")
        measurement.add_peak(121.78, 2000.0, 45.0, "A")
        measurement.add_peak(778.90, 500.0, 22.0, "B")
        assert measurement.detectors == ["B", "A"]
        assert len(measurement.peaks_for("B")) == 2
        assert len(measurement.peaks_for()) == 3

    def test_live_time_must_be_positive(self):
        with pytest.raises(InvalidInput):
            Measurement(builtin_source('Eu-152'), "2020-06-01", 0.0)

    def test_negative_peak_area_rejected(self):
        with pytest.raises(InvalidInput):
            PeakFit(344.28, -1.0, 1.0)

    def test_dict_round_trip(self):
        measurement = Measurement(builtin_source('Eu-152'), "2020-06-01T08:30:00", 2.5)
        measurement.add_peak(344.28, 1000.0, 30.0, "HPGe")
        restored = Measurement.from_dict(measurement.to_dict())
        assert restored.measurement_date == measurement.measurement_date
        assert restored.peaks == measurement.peaks
        assert restored.source == measurement.source

    def test_from_dict_missing_field(self):
        with pytest.raises(InvalidInput):
            Measurement.from_dict({'measurement_date': '2020-01-01'})
