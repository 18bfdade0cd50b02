"""
Full-Energy-Peak Efficiency Points

Turns a calibration measurement (decay-corrected source activity, gamma-line
intensity, live time and net peak area) into efficiency points with
propagated uncertainty. These points are the input of the efficiency-curve
fit.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np

from fepcal.core.errors import InvalidInput, NumericOverflow
from fepcal.data.measurements import Measurement
from fepcal.physics.decay import activity_uncertainty_at


SECONDS_PER_HOUR = 3600.0
BQ_PER_KBQ = 1000.0


@dataclass(frozen=True)
class EfficiencyPoint:
    """
    One measured full-energy-peak efficiency.

    Attributes
    ----------
    energy : float
        Gamma-line energy in keV
    efficiency_percent : float
        Efficiency in percent
    efficiency_uncertainty_percent : float
        Absolute 1-sigma uncertainty of the efficiency in percent
    source : str
        Name of the source the point was measured with
    detector : str
        Name of the detector the peak was fitted on
    counts, counts_uncertainty : float
        Net peak area and its 1-sigma uncertainty
    intensity, intensity_uncertainty : float
        Emission probability of the line (fraction) and its uncertainty
    """

    energy: float
    efficiency_percent: float
    efficiency_uncertainty_percent: float
    source: str = ""
    detector: str = ""
    counts: float = 0.0
    counts_uncertainty: float = 0.0
    intensity: float = 0.0
    intensity_uncertainty: float = 0.0

    @property
    def lower(self) -> float:
        return self.efficiency_percent - self.efficiency_uncertainty_percent

    @property
    def upper(self) -> float:
        return self.efficiency_percent + self.efficiency_uncertainty_percent

    @property
    def relative_uncertainty(self) -> float:
        if self.efficiency_percent == 0:
            return math.inf
        return self.efficiency_uncertainty_percent / self.efficiency_percent


def emitted_gammas(
    source_activity_kBq: float,
    intensity_fraction: float,
    live_time_hours: float,
) -> float:
    """Number of gammas of one line emitted during the live time."""
    return (
        intensity_fraction
        * live_time_hours * SECONDS_PER_HOUR
        * source_activity_kBq * BQ_PER_KBQ
    )


def build_efficiency_point(
    source_activity_kBq: float,
    intensity_fraction: float,
    live_time_hours: float,
    peak_area: float,
    peak_area_uncertainty: float,
    energy: float = 0.0,
    activity_relative_uncertainty: float = 0.0,
    intensity_uncertainty: float = 0.0,
    source: str = "",
    detector: str = "",
) -> EfficiencyPoint:
    """
    Calculate full-energy-peak efficiency from a calibration measurement.

    ε[%] = 100 × N_peak / (I_γ × t_live × A)

    Relative uncertainties of the peak area, source activity and line
    intensity are independent and added in quadrature. The area term is
    propagated in absolute form so an empty peak keeps a finite uncertainty.

    Parameters
    ----------
    source_activity_kBq : float
        Source activity during the measurement in kBq
    intensity_fraction : float
        Gamma emission probability (fraction)
    live_time_hours : float
        Measurement live time in hours
    peak_area : float
        Net counts in the peak (background subtracted)
    peak_area_uncertainty : float
        1-sigma uncertainty of the net counts
    energy : float
        Line energy in keV, carried into the point
    activity_relative_uncertainty : float
        Relative uncertainty of the source activity (decay-corrected,
        including the half-life contribution)
    intensity_uncertainty : float
        Absolute uncertainty of the emission probability (fraction)

    Returns
    -------
    EfficiencyPoint

    Raises
    ------
    InvalidInput
        If the emitted number of gammas is not positive or the peak area or
        any uncertainty is negative.
    """
    if peak_area < 0:
        raise InvalidInput(f"Peak area cannot be negative, got {peak_area}")
    if peak_area_uncertainty < 0 or activity_relative_uncertainty < 0 or intensity_uncertainty < 0:
        raise InvalidInput("Uncertainties cannot be negative")

    n_total = emitted_gammas(source_activity_kBq, intensity_fraction, live_time_hours)
    if not n_total > 0:
        raise InvalidInput(
            f"Number of emitted gammas must be positive, got {n_total} "
            f"(activity={source_activity_kBq} kBq, intensity={intensity_fraction}, "
            f"live time={live_time_hours} h)"
        )
    if not math.isfinite(n_total):
        raise NumericOverflow("Number of emitted gammas is not finite")

    efficiency = 100.0 * peak_area / n_total

    # Uncertainty propagation
    area_term = 100.0 * peak_area_uncertainty / n_total
    activity_term = efficiency * activity_relative_uncertainty
    intensity_term = efficiency * intensity_uncertainty / intensity_fraction
    uncertainty = math.sqrt(area_term**2 + activity_term**2 + intensity_term**2)

    if not (math.isfinite(efficiency) and math.isfinite(uncertainty)):
        raise NumericOverflow(f"Efficiency at {energy} keV is not finite")

    return EfficiencyPoint(
        energy=energy,
        efficiency_percent=efficiency,
        efficiency_uncertainty_percent=uncertainty,
        source=source,
        detector=detector,
        counts=peak_area,
        counts_uncertainty=peak_area_uncertainty,
        intensity=intensity_fraction,
        intensity_uncertainty=intensity_uncertainty,
    )


def points_for_measurement(
    measurement: Measurement,
    detector: Optional[str] = None,
    tolerance: float = 1.0,
) -> List[EfficiencyPoint]:
    """
    Efficiency points of one measurement, ordered by energy.

    Each peak is associated with the nearest gamma line of the measured
    source within ``tolerance`` keV. The source activity on the measurement
    date carries both reference-activity and half-life uncertainty.

    Parameters
    ----------
    measurement : Measurement
        Counting run with fitted peaks
    detector : str, optional
        Restrict to peaks of one detector
    tolerance : float
        Peak-to-line matching tolerance in keV
    """
    source = measurement.source
    activity, activity_sigma = activity_uncertainty_at(source, measurement.measurement_date)
    if not activity > 0:
        raise InvalidInput(
            f"Activity of {source.name} on {measurement.measurement_date} decayed to {activity} kBq"
        )
    activity_rel = activity_sigma / activity

    points = []
    for peak in measurement.peaks_for(detector):
        line = source.line_for(peak.energy, tolerance=tolerance)
        points.append(
            build_efficiency_point(
                source_activity_kBq=activity,
                intensity_fraction=line.intensity,
                live_time_hours=measurement.live_time_hours,
                peak_area=peak.net_area,
                peak_area_uncertainty=peak.net_area_uncertainty,
                energy=line.energy,
                activity_relative_uncertainty=activity_rel,
                intensity_uncertainty=line.intensity_uncertainty,
                source=source.name,
                detector=peak.detector,
            )
        )

    return sorted(points, key=lambda point: point.energy)


def points_by_detector(
    measurements: Iterable[Measurement],
    tolerance: float = 1.0,
) -> Dict[str, List[EfficiencyPoint]]:
    """
    Pool efficiency points of every detector across measurements.

    A detector counted with several sources contributes one combined, energy
    ordered point set, which is what its efficiency curve is fitted to.
    """
    pooled: Dict[str, List[EfficiencyPoint]] = {}
    for measurement in measurements:
        for detector in measurement.detectors:
            pooled.setdefault(detector, []).extend(
                points_for_measurement(measurement, detector, tolerance)
            )

    return {
        name: sorted(points, key=lambda point: point.energy)
        for name, points in pooled.items()
    }


def points_to_arrays(points: Iterable[EfficiencyPoint]) -> tuple:
    """Split points into (energies, efficiencies, uncertainties) arrays."""
    points = list(points)
    energies = np.array([p.energy for p in points], dtype=float)
    efficiencies = np.array([p.efficiency_percent for p in points], dtype=float)
    uncertainties = np.array([p.efficiency_uncertainty_percent for p in points], dtype=float)
    return energies, efficiencies, uncertainties
