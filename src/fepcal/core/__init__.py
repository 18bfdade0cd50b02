"""Core errors and configuration."""

from fepcal.core.config import BandConfig, FitConfig, ONE_SIGMA_PROBABILITY
from fepcal.core.errors import (
	BandUnavailable,
	FepcalError,
	InsufficientData,
	InvalidInput,
	NonConverged,
	NumericOverflow,
)

__all__ = [
	"BandConfig",
	"FitConfig",
	"ONE_SIGMA_PROBABILITY",
	"FepcalError",
	"InvalidInput",
	"InsufficientData",
	"NonConverged",
	"BandUnavailable",
	"NumericOverflow",
]
