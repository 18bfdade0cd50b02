"""End-to-end calibration workflows."""

from fepcal.workflows.calibration import DetectorCalibration, calibrate_detectors

__all__ = ["DetectorCalibration", "calibrate_detectors"]
