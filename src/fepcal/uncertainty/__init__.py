"""Uncertainty bands for fitted efficiency curves."""

from fepcal.uncertainty.band import (
    BandSample,
    UncertaintyBand,
    band,
    coverage_quantile,
    default_energy_range,
)

__all__ = [
    "BandSample",
    "UncertaintyBand",
    "band",
    "coverage_quantile",
    "default_energy_range",
]
