"""Decay physics for calibration sources."""

from fepcal.physics.decay import (
    TIME_UNITS,
    activity_at,
    activity_uncertainty_at,
    coerce_date,
    decay_constant,
    decay_factor,
    elapsed_time,
)

__all__ = [
    "TIME_UNITS",
    "activity_at",
    "activity_uncertainty_at",
    "coerce_date",
    "decay_constant",
    "decay_factor",
    "elapsed_time",
]
