"""Calibration measurements and fitted peak inputs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from fepcal.core.errors import InvalidInput
from fepcal.data.sources import Source
from fepcal.physics.decay import coerce_date


@dataclass(frozen=True)
class PeakFit:
    """Net area of one full-energy peak, as fitted upstream."""

    energy: float
    net_area: float
    net_area_uncertainty: float
    detector: str = ""

    def __post_init__(self):
        if not self.energy > 0 or not math.isfinite(self.energy):
            raise InvalidInput(f"Peak energy must be positive, got {self.energy}")
        if not self.net_area >= 0:
            raise InvalidInput(f"Net peak area cannot be negative, got {self.net_area}")
        if not self.net_area_uncertainty >= 0:
            raise InvalidInput("Net peak area uncertainty cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'energy': self.energy,
            'net_area': self.net_area,
            'net_area_uncertainty': self.net_area_uncertainty,
            'detector': self.detector,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PeakFit':
        try:
            return cls(
                energy=float(data['energy']),
                net_area=float(data['net_area']),
                net_area_uncertainty=float(data.get('net_area_uncertainty', 0.0)),
                detector=data.get('detector', ''),
            )
        except InvalidInput:
            raise
        except KeyError as exc:
            raise InvalidInput(f"Peak record is missing field {exc}") from None
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Malformed peak record: {exc}") from exc


@dataclass
class Measurement:
    """
    One counting run of a calibration source.

    A run may record peaks from several detectors of the array; each PeakFit
    carries the name of the detector it was fitted on.

    Attributes:
        source: Calibration source that was counted.
        measurement_date: Date of the run (before or after the reference date).
        live_time_hours: Live time of the run in hours.
        peaks: Fitted full-energy peaks.
    """

    source: Source
    measurement_date: Union[date, datetime]
    live_time_hours: float
    peaks: List[PeakFit] = field(default_factory=list)

    def __post_init__(self):
        self.measurement_date = coerce_date(self.measurement_date)
        if not self.live_time_hours > 0 or not math.isfinite(self.live_time_hours):
            raise InvalidInput(f"Live time must be positive, got {self.live_time_hours}")

    def add_peak(
        self,
        energy: float,
        net_area: float,
        net_area_uncertainty: float,
        detector: str = "",
    ) -> PeakFit:
        peak = PeakFit(energy, net_area, net_area_uncertainty, detector)
        self.peaks.append(peak)
        return peak

    @property
    def detectors(self) -> List[str]:
        """Detector names in order of first appearance."""
        names: List[str] = []
        for peak in self.peaks:
            if peak.detector not in names:
                names.append(peak.detector)
        return names

    def peaks_for(self, detector: Optional[str] = None) -> List[PeakFit]:
        """Peaks of one detector, or all peaks when ``detector`` is None."""
        if detector is None:
            return list(self.peaks)
        return [peak for peak in self.peaks if peak.detector == detector]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source.to_dict(),
            'measurement_date': self.measurement_date.isoformat(),
            'live_time_hours': self.live_time_hours,
            'peaks': [peak.to_dict() for peak in self.peaks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Measurement':
        try:
            return cls(
                source=Source.from_dict(data['source']),
                measurement_date=data['measurement_date'],
                live_time_hours=float(data['live_time_hours']),
                peaks=[PeakFit.from_dict(peak) for peak in data.get('peaks', [])],
            )
        except InvalidInput:
            raise
        except KeyError as exc:
            raise InvalidInput(f"Measurement record is missing field {exc}") from None
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Malformed measurement record: {exc}") from exc
