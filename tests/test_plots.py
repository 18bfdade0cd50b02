"""Tests for efficiency calibration plots."""

import pytest

matplotlib = pytest.importorskip("matplotlib")
matplotlib.use('Agg')

from fepcal.core.config import BandConfig
from fepcal.plots.efficiency import plot_detector_overlay, plot_efficiency_calibration
from fepcal.workflows.calibration import calibrate_detectors


@pytest.fixture
def calibrations(calibration_session):
    return calibrate_detectors(calibration_session.measurements, band_config=BandConfig(n_points=50))


class TestPlotEfficiencyCalibration:
    def test_plot_creates_figure(self, calibrations, tmp_path):
        fig, ax = plot_efficiency_calibration(
            calibrations["A"],
            log_y=True,
            save_path=tmp_path / 'efficiency.png',
        )
        assert fig is not None
        assert ax.get_title() == "A"
        assert (tmp_path / 'efficiency.png').exists()

    def test_points_only_detector(self, calibrations):
        fig, ax = plot_efficiency_calibration(calibrations["B"], title="Points only")
        assert ax.get_title() == "Points only"


def test_overlay(calibrations, tmp_path):
    fig, ax = plot_detector_overlay(calibrations, save_path=tmp_path / 'overlay.png')
    assert (tmp_path / 'overlay.png').exists()
