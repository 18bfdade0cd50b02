"""CSV export of efficiency points and confidence bands."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, Optional, Union

from fepcal.data.efficiency import EfficiencyPoint
from fepcal.uncertainty.band import BandSample


POINT_COLUMNS = [
    "Detector", "Source", "Energy",
    "Counts", "Counts Uncertainty",
    "Intensity", "Intensity Uncertainty",
    "Efficiency", "Efficiency Uncertainty",
]
BAND_COLUMNS = ["Energy", "Efficiency", "Lower", "Upper"]


def _write(rows, header, path: Optional[Union[str, Path]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    text = buffer.getvalue()
    if path is not None:
        Path(path).write_text(text, encoding="utf-8")
    return text


def points_to_csv(
    points: Iterable[EfficiencyPoint],
    path: Optional[Union[str, Path]] = None,
) -> str:
    """
    Efficiency points as CSV text, optionally written to ``path``.

    Efficiencies are in percent, intensities are emission probabilities.
    """
    rows = (
        [p.detector, p.source] + [
            repr(float(value)) for value in (
                p.energy,
                p.counts, p.counts_uncertainty,
                p.intensity, p.intensity_uncertainty,
                p.efficiency_percent, p.efficiency_uncertainty_percent,
            )
        ]
        for p in points
    )
    return _write(rows, POINT_COLUMNS, path)


def band_to_csv(
    samples: Iterable[BandSample],
    path: Optional[Union[str, Path]] = None,
) -> str:
    """Band samples as CSV text, optionally written to ``path``."""
    rows = (
        [repr(float(s.energy)), repr(float(s.efficiency)), repr(float(s.lower)), repr(float(s.upper))]
        for s in samples
    )
    return _write(rows, BAND_COLUMNS, path)
