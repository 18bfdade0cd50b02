"""
Calibration Sources

Gamma lines and certified calibration sources used for full-energy-peak
efficiency measurements, plus a handful of built-in sources.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from fepcal.core.errors import InvalidInput
from fepcal.physics.decay import DateLike, coerce_date, unit_seconds


@dataclass(frozen=True)
class GammaLine:
    """
    A gamma-ray emission line of a calibration nuclide.

    Attributes
    ----------
    energy : float
        Line energy in keV
    intensity : float
        Emission probability per decay (fraction, 0-1)
    intensity_uncertainty : float
        Absolute uncertainty of the emission probability (fraction)
    """

    energy: float
    intensity: float
    intensity_uncertainty: float = 0.0

    def __post_init__(self):
        if not self.energy > 0 or not math.isfinite(self.energy):
            raise InvalidInput(f"Gamma-line energy must be positive, got {self.energy}")
        if not 0.0 <= self.intensity <= 1.0:
            raise InvalidInput(
                f"Intensity must be a fraction in [0, 1], got {self.intensity}"
            )
        if not self.intensity_uncertainty >= 0:
            raise InvalidInput("Intensity uncertainty cannot be negative")

    @classmethod
    def from_percent(
        cls,
        energy: float,
        intensity_percent: float,
        uncertainty_percent: float = 0.0,
    ) -> 'GammaLine':
        """Create a line from intensities given in percent."""
        return cls(
            energy=energy,
            intensity=intensity_percent / 100.0,
            intensity_uncertainty=uncertainty_percent / 100.0,
        )

    @property
    def relative_uncertainty(self) -> float:
        if self.intensity == 0:
            return 0.0
        return self.intensity_uncertainty / self.intensity

    def to_dict(self) -> Dict[str, float]:
        return {
            'energy': self.energy,
            'intensity': self.intensity,
            'intensity_uncertainty': self.intensity_uncertainty,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GammaLine':
        try:
            return cls(
                energy=float(data['energy']),
                intensity=float(data['intensity']),
                intensity_uncertainty=float(data.get('intensity_uncertainty', 0.0)),
            )
        except InvalidInput:
            raise
        except KeyError as exc:
            raise InvalidInput(f"Gamma-line record is missing field {exc}") from None
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Malformed gamma-line record: {exc}") from exc


@dataclass
class Source:
    """
    Certified calibration source.

    Attributes
    ----------
    name : str
        Source name (e.g. 'Eu-152')
    reference_activity : float
        Certified activity in kBq on ``reference_date``
    reference_date : date or datetime
        Certification date
    half_life : float
        Half-life in ``half_life_unit``
    half_life_unit : str
        Unit of the half-life and its uncertainty ('y', 'd', 'h', ...)
    reference_activity_uncertainty : float
        1-sigma uncertainty of the reference activity in kBq
    half_life_uncertainty : float
        1-sigma uncertainty of the half-life in ``half_life_unit``
    gamma_lines : list of GammaLine
        Lines available for efficiency measurements

    Examples
    --------
    >>> src = builtin_source('Eu-152')
    >>> src.line_for(344.3).energy
    344.2785
    """

    name: str
    reference_activity: float
    reference_date: Union[date, datetime]
    half_life: float
    half_life_unit: str = 'y'
    reference_activity_uncertainty: float = 0.0
    half_life_uncertainty: float = 0.0
    gamma_lines: List[GammaLine] = field(default_factory=list)

    def __post_init__(self):
        self.reference_date = coerce_date(self.reference_date)
        unit_seconds(self.half_life_unit)
        if not self.reference_activity > 0 or not math.isfinite(self.reference_activity):
            raise InvalidInput(
                f"{self.name}: reference activity must be positive, got {self.reference_activity}"
            )
        if not self.half_life > 0 or not math.isfinite(self.half_life):
            raise InvalidInput(f"{self.name}: half-life must be positive, got {self.half_life}")
        if self.reference_activity_uncertainty < 0 or self.half_life_uncertainty < 0:
            raise InvalidInput(f"{self.name}: uncertainties cannot be negative")

    def add_gamma_line(
        self,
        energy: float,
        intensity: float,
        intensity_uncertainty: float = 0.0,
    ) -> GammaLine:
        """Append a line (intensity as a fraction) and return it."""
        line = GammaLine(energy, intensity, intensity_uncertainty)
        self.gamma_lines.append(line)
        return line

    def line_for(self, energy: float, tolerance: float = 1.0) -> GammaLine:
        """
        Gamma line associated with a peak at ``energy``.

        The nearest line within ``tolerance`` keV is returned.

        Raises
        ------
        InvalidInput
            If no line lies within the tolerance.
        """
        if not self.gamma_lines:
            raise InvalidInput(f"{self.name} has no gamma lines")
        nearest = min(self.gamma_lines, key=lambda line: abs(line.energy - energy))
        if abs(nearest.energy - energy) > tolerance:
            raise InvalidInput(
                f"No {self.name} gamma line within {tolerance} keV of {energy} keV"
            )
        return nearest

    def activity_at(self, target_date: DateLike) -> float:
        """Decay-corrected activity in kBq on ``target_date``."""
        from fepcal.physics.decay import activity_at
        return activity_at(self, target_date)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'name': self.name,
            'reference_activity': self.reference_activity,
            'reference_activity_uncertainty': self.reference_activity_uncertainty,
            'reference_date': self.reference_date.isoformat(),
            'half_life': self.half_life,
            'half_life_unit': self.half_life_unit,
            'half_life_uncertainty': self.half_life_uncertainty,
            'gamma_lines': [line.to_dict() for line in self.gamma_lines],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Source':
        """Create Source from dictionary."""
        try:
            return cls(
                name=data['name'],
                reference_activity=float(data['reference_activity']),
                reference_activity_uncertainty=float(data.get('reference_activity_uncertainty', 0.0)),
                reference_date=data['reference_date'],
                half_life=float(data['half_life']),
                half_life_unit=data.get('half_life_unit', 'y'),
                half_life_uncertainty=float(data.get('half_life_uncertainty', 0.0)),
                gamma_lines=[GammaLine.from_dict(line) for line in data.get('gamma_lines', [])],
            )
        except InvalidInput:
            raise
        except KeyError as exc:
            raise InvalidInput(f"Source record is missing field {exc}") from None
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Malformed source record: {exc}") from exc


# ============================================================================
# Built-in Calibration Sources
# ============================================================================

# Half-lives, gamma energies (keV) and emission probabilities (percent).
# Entries with a 'reference' carry the certificate of a specific lab source.
BUILTIN_SOURCES: Dict[str, Dict[str, Any]] = {
    'Eu-152': {
        'half_life': 13.517,
        'half_life_uncertainty': 0.014,
        'half_life_unit': 'y',
        'reference': {'activity': 74.370, 'date': '2017-03-17'},
        'lines': [
            (121.7817, 28.53, 0.16),
            (244.6974, 7.55, 0.04),
            (344.2785, 26.59, 0.20),
            (411.1164, 2.237, 0.013),
            (443.9650, 2.827, 0.014),
            (778.9045, 12.93, 0.08),
            (867.3800, 4.23, 0.03),
            (964.0570, 14.51, 0.07),
            (1085.837, 10.11, 0.05),
            (1112.076, 13.67, 0.08),
            (1408.0130, 20.87, 0.09),
        ],
    },
    'Co-56': {
        'half_life': 77.236,
        'half_life_uncertainty': 0.026,
        'half_life_unit': 'd',
        'reference': {'activity': 108.0, 'date': '2022-04-18'},
        'lines': [
            (846.7638, 99.9399, 0.0023),
            (1037.8333, 14.03, 0.05),
            (1360.196, 4.283, 0.013),
            (2598.438, 16.96, 0.04),
            (3451.119, 0.942, 0.006),
        ],
    },
    'Co-60': {
        'half_life': 5.2711,
        'half_life_uncertainty': 0.0008,
        'half_life_unit': 'y',
        'lines': [
            (1173.23, 99.85, 0.03),
            (1332.49, 99.98, 0.01),
        ],
    },
    'Cs-137': {
        'half_life': 30.08,
        'half_life_uncertainty': 0.09,
        'half_life_unit': 'y',
        'lines': [
            (661.66, 85.1, 0.2),
        ],
    },
    'Ba-133': {
        'half_life': 10.551,
        'half_life_uncertainty': 0.011,
        'half_life_unit': 'y',
        'lines': [
            (80.99, 32.9, 0.3),
            (276.40, 7.16, 0.05),
            (302.85, 18.34, 0.13),
            (356.01, 62.05, 0.19),
            (383.85, 8.94, 0.06),
        ],
    },
}


def builtin_source(
    name: str,
    reference_activity: Optional[float] = None,
    reference_date: Optional[DateLike] = None,
    reference_activity_uncertainty: float = 0.0,
) -> Source:
    """
    Build a Source from the built-in table.

    Parameters
    ----------
    name : str
        Key of ``BUILTIN_SOURCES``
    reference_activity : float, optional
        Certified activity in kBq. Required for entries without a stored
        reference certificate.
    reference_date : date or str, optional
        Certification date. Required with ``reference_activity`` for entries
        without a stored certificate.
    reference_activity_uncertainty : float
        1-sigma uncertainty of the activity in kBq

    Returns
    -------
    Source
    """
    try:
        entry = BUILTIN_SOURCES[name]
    except KeyError:
        raise InvalidInput(
            f"Unknown source: {name}. Available: {list(BUILTIN_SOURCES.keys())}"
        ) from None

    stored = entry.get('reference', {})
    activity = reference_activity if reference_activity is not None else stored.get('activity')
    ref_date = reference_date if reference_date is not None else stored.get('date')
    if activity is None or ref_date is None:
        raise InvalidInput(f"{name} needs a reference activity and date")

    return Source(
        name=name,
        reference_activity=activity,
        reference_activity_uncertainty=reference_activity_uncertainty,
        reference_date=ref_date,
        half_life=entry['half_life'],
        half_life_unit=entry['half_life_unit'],
        half_life_uncertainty=entry['half_life_uncertainty'],
        gamma_lines=[GammaLine.from_percent(*line) for line in entry['lines']],
    )
