"""Efficiency calibration workflow for a detector array.

Pipeline Stages:
1. Decay-correct every source to its measurement date
2. Build efficiency points per detector, pooled across measurements
3. Fit the efficiency curve of each detector
4. Sample the confidence band of each fitted curve

Failures of one detector (too few points, singular covariance) are recorded
on its result and do not stop the other detectors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from fepcal.core.config import BandConfig, FitConfig
from fepcal.core.errors import BandUnavailable, InsufficientData, InvalidInput, NumericOverflow
from fepcal.data.efficiency import EfficiencyPoint, points_by_detector
from fepcal.data.efficiency_models import CurveVariant
from fepcal.data.measurements import Measurement
from fepcal.solvers.levmar import FitResult, fit_points
from fepcal.uncertainty.band import UncertaintyBand, band, default_energy_range


@dataclass
class DetectorCalibration:
    """Efficiency points, fitted curve and band of one detector.

    Attributes
    ----------
    detector : str
        Detector name
    points : list of EfficiencyPoint
        Pooled, energy-ordered points
    fit : FitResult, optional
        Fitted curve (None when the fit could not be attempted)
    band : UncertaintyBand, optional
        Confidence band (None when unavailable)
    errors : list of str
        Reasons a stage was skipped
    """

    detector: str
    points: List[EfficiencyPoint]
    fit: Optional[FitResult] = None
    band: Optional[UncertaintyBand] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.fit is not None and self.fit.converged and self.band is not None

    def to_dict(self, include_band: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'detector': self.detector,
            'points': [
                {
                    'energy': p.energy,
                    'source': p.source,
                    'counts': p.counts,
                    'counts_uncertainty': p.counts_uncertainty,
                    'intensity': p.intensity,
                    'intensity_uncertainty': p.intensity_uncertainty,
                    'efficiency_percent': p.efficiency_percent,
                    'efficiency_uncertainty_percent': p.efficiency_uncertainty_percent,
                }
                for p in self.points
            ],
            'fit': self.fit.to_dict() if self.fit is not None else None,
            'errors': list(self.errors),
        }
        if include_band and self.band is not None:
            data['band'] = {
                'confidence_level': self.band.config.confidence_level,
                'distribution': self.band.config.distribution,
                'samples': [
                    [s.energy, s.efficiency, s.lower, s.upper] for s in self.band
                ],
            }
        return data


def calibrate_detectors(
    measurements: Iterable[Measurement],
    variant: Union[CurveVariant, str] = CurveVariant.SINGLE,
    initial_params: Optional[Sequence[float]] = None,
    fit_config: Optional[FitConfig] = None,
    band_config: Optional[BandConfig] = None,
    energy_range: Optional[Tuple[float, float]] = None,
    tolerance: float = 1.0,
) -> Dict[str, DetectorCalibration]:
    """
    Fit the efficiency curve of every detector found in ``measurements``.

    Parameters
    ----------
    measurements : iterable of Measurement
        Calibration runs, possibly with several sources and detectors
    variant : CurveVariant or str
        Curve model for every detector
    initial_params : sequence of float, optional
        Starting parameters; derived from the data when omitted
    fit_config, band_config : optional
        Fit and band settings
    energy_range : tuple, optional
        Band range in keV; defaults to 1 keV up to 1000 keV past the highest
        point of each detector
    tolerance : float
        Peak-to-line matching tolerance in keV

    Returns
    -------
    dict
        DetectorCalibration per detector name
    """
    variant = CurveVariant.parse(variant)
    results: Dict[str, DetectorCalibration] = {}

    for detector, points in points_by_detector(measurements, tolerance).items():
        calibration = DetectorCalibration(detector=detector, points=points)
        results[detector] = calibration

        try:
            calibration.fit = fit_points(variant, initial_params, points, fit_config)
        except (InsufficientData, NumericOverflow, InvalidInput) as exc:
            calibration.errors.append(f"fit: {exc}")
            continue

        if not calibration.fit.converged:
            calibration.errors.append(f"fit: {calibration.fit.message}")

        band_range = energy_range or default_energy_range([p.energy for p in points])
        try:
            calibration.band = band(calibration.fit, band_range, config=band_config)
        except BandUnavailable as exc:
            calibration.errors.append(f"band: {exc}")

    return results
