"""
Radioactive decay of calibration sources.

Converts a source's certified reference activity to its activity on the
measurement date:

    A(t) = A_0 exp(-λ Δt),   λ = ln(2) / T_1/2

Δt is signed: measurements before the reference date are back-corrected to a
higher activity. Half-life and reference-activity uncertainties are
propagated as independent contributions.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import TYPE_CHECKING, Tuple, Union

from fepcal.core.errors import InvalidInput, NumericOverflow

if TYPE_CHECKING:
    from fepcal.data.sources import Source


# Time unit conversions to seconds
TIME_UNITS = {
    's': 1.0,
    'min': 60.0,
    'm': 60.0,
    'h': 3600.0,
    'hr': 3600.0,
    'd': 86400.0,
    'day': 86400.0,
    'y': 365.25 * 86400.0,
    'yr': 365.25 * 86400.0,
}

DateLike = Union[date, datetime, str]


def coerce_date(value: DateLike) -> Union[date, datetime]:
    """Return a date/datetime, parsing ISO-8601 strings."""
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if 'T' in text or ' ' in text:
                return datetime.fromisoformat(text)
            return date.fromisoformat(text)
        except ValueError as exc:
            raise InvalidInput(f"Malformed date: {value!r}") from exc
    raise InvalidInput(f"Expected a date, got {type(value).__name__}")


def unit_seconds(unit: str) -> float:
    """Length of one ``unit`` in seconds."""
    try:
        return TIME_UNITS[unit]
    except KeyError:
        raise InvalidInput(
            f"Unknown time unit: {unit}. Available: {list(TIME_UNITS.keys())}"
        ) from None


def decay_constant(half_life: float) -> float:
    """Decay constant λ = ln(2) / T_1/2, per unit of the half-life."""
    if not half_life > 0 or not math.isfinite(half_life):
        raise InvalidInput(f"Half-life must be positive, got {half_life}")
    return math.log(2.0) / half_life


def elapsed_time(reference_date: DateLike, target_date: DateLike, unit: str = 'y') -> float:
    """
    Signed time from ``reference_date`` to ``target_date``.

    Parameters
    ----------
    reference_date, target_date : date, datetime or ISO string
        Mixed date/datetime inputs are compared at midnight of the date.
    unit : str
        Unit of the result (key of ``TIME_UNITS``).

    Returns
    -------
    float
        Positive when the target follows the reference.
    """
    ref = coerce_date(reference_date)
    target = coerce_date(target_date)

    if isinstance(ref, datetime) != isinstance(target, datetime):
        if not isinstance(ref, datetime):
            ref = datetime(ref.year, ref.month, ref.day)
        if not isinstance(target, datetime):
            target = datetime(target.year, target.month, target.day)

    try:
        delta = target - ref
    except TypeError as exc:
        # offset-naive vs offset-aware datetimes
        raise InvalidInput(f"Cannot compare dates {ref!r} and {target!r}") from exc

    return delta.total_seconds() / unit_seconds(unit)


def decay_factor(half_life: float, elapsed: float) -> float:
    """exp(-λ Δt) for a half-life and elapsed time in the same unit."""
    lam = decay_constant(half_life)
    exponent = -lam * elapsed
    try:
        factor = math.exp(exponent)
    except OverflowError as exc:
        raise NumericOverflow(
            f"Decay correction exp({exponent:.3g}) is out of range"
        ) from exc
    return factor


def _validate_source(source: "Source") -> None:
    if not source.reference_activity > 0:
        raise InvalidInput(
            f"Reference activity must be positive, got {source.reference_activity}"
        )
    if not source.half_life > 0:
        raise InvalidInput(f"Half-life must be positive, got {source.half_life}")


def activity_at(source: "Source", target_date: DateLike) -> float:
    """
    Activity of ``source`` on ``target_date``, in the unit of its reference
    activity (kBq).

    Raises
    ------
    InvalidInput
        Non-positive half-life or reference activity, or malformed dates.
    NumericOverflow
        Back-correction so far that the activity is not representable.
    """
    _validate_source(source)
    dt = elapsed_time(source.reference_date, target_date, source.half_life_unit)
    activity = source.reference_activity * decay_factor(source.half_life, dt)
    if not math.isfinite(activity):
        raise NumericOverflow(f"Activity of {source.name} on {target_date} is not finite")
    return activity


def activity_uncertainty_at(source: "Source", target_date: DateLike) -> Tuple[float, float]:
    """
    Activity on ``target_date`` and its 1-sigma uncertainty.

    The reference-activity and half-life contributions are independent:

        (σ_A/A)² = (σ_A0/A0)² + (ln2 · Δt · σ_T / T²)²

    Returns
    -------
    activity, uncertainty : float
        Both in the unit of the reference activity.
    """
    activity = activity_at(source, target_date)
    dt = elapsed_time(source.reference_date, target_date, source.half_life_unit)

    rel_ref = source.reference_activity_uncertainty / source.reference_activity
    rel_half_life = math.log(2.0) * dt * source.half_life_uncertainty / source.half_life**2

    uncertainty = activity * math.hypot(rel_ref, rel_half_life)
    if not math.isfinite(uncertainty):
        raise NumericOverflow(f"Activity uncertainty of {source.name} is not finite")
    return activity, uncertainty
