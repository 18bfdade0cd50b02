"""Command-line interface for fepcal using argparse."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from fepcal.core.config import BandConfig, FitConfig, ONE_SIGMA_PROBABILITY
from fepcal.core.errors import BandUnavailable, FepcalError
from fepcal.data.efficiency import points_by_detector
from fepcal.data.efficiency_models import CurveVariant
from fepcal.data.sources import BUILTIN_SOURCES, builtin_source
from fepcal.io.export import band_to_csv, points_to_csv
from fepcal.io.session import Session
from fepcal.workflows.calibration import calibrate_detectors

logger = logging.getLogger("fepcal")


def cmd_sources(args: argparse.Namespace) -> None:
    for name, entry in BUILTIN_SOURCES.items():
        reference = entry.get('reference')
        if reference:
            ref_text = f"{reference['activity']} kBq on {reference['date']}"
        else:
            ref_text = "no stored reference"
        print(f"{name}: T1/2 = {entry['half_life']} {entry['half_life_unit']} ({ref_text})")
        if args.lines:
            source = builtin_source(name, reference_activity=1.0, reference_date="2000-01-01")
            for line in source.gamma_lines:
                print(
                    f"    {line.energy:10.4f} keV  I = {100 * line.intensity:.4g}"
                    f" ± {100 * line.intensity_uncertainty:.2g} %"
                )


def cmd_points(args: argparse.Namespace) -> None:
    session = Session.load(args.session)
    pooled = points_by_detector(session.measurements, tolerance=args.tolerance)
    if args.detector is not None:
        pooled = {args.detector: pooled.get(args.detector, [])}

    points = [point for detector_points in pooled.values() for point in detector_points]
    if args.output:
        points_to_csv(points, args.output)
        logger.info(f"Saved {len(points)} efficiency points to {args.output}")
    else:
        print(points_to_csv(points), end="")


def cmd_fit(args: argparse.Namespace) -> None:
    session = Session.load(args.session)
    fit_config = FitConfig(tolerance=args.tolerance_fit, xtol=args.xtol, max_evaluations=args.max_evaluations)
    band_config = BandConfig(
        confidence_level=args.confidence,
        n_points=args.band_points,
        distribution="student_t" if args.student_t else "normal",
        log_spacing=args.log_spacing,
    )
    energy_range = tuple(args.energy_range) if args.energy_range else None

    calibrations = calibrate_detectors(
        session.measurements,
        variant=args.model,
        initial_params=args.initial,
        fit_config=fit_config,
        band_config=band_config,
        energy_range=energy_range,
        tolerance=args.tolerance,
    )

    output = {}
    for detector, calibration in calibrations.items():
        label = detector or "<unnamed>"
        for error in calibration.errors:
            logger.warning(f"{label}: {error}")
        if calibration.fit is not None:
            print(f"{label}: {calibration.fit.describe()}")
            print(f"    chi2/dof = {calibration.fit.reduced_chi_squared:.4g} ({calibration.fit.status.value})")
        try:
            output[detector] = calibration.to_dict()
        except BandUnavailable as exc:
            logger.warning(f"{label}: band: {exc}")
            output[detector] = calibration.to_dict(include_band=False)

        if args.band_dir and calibration.band is not None:
            args.band_dir.mkdir(parents=True, exist_ok=True)
            band_to_csv(calibration.band, args.band_dir / f"{label}_band.csv")

    if args.plot_dir:
        _save_plots(calibrations, args.plot_dir)

    Path(args.output).write_text(json.dumps(output, indent=2))
    logger.info(f"Saved efficiency fits to {args.output}")


def _save_plots(calibrations, plot_dir: Path) -> None:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    from fepcal.plots.efficiency import plot_detector_overlay, plot_efficiency_calibration

    plot_dir.mkdir(parents=True, exist_ok=True)
    for detector, calibration in calibrations.items():
        if not calibration.points:
            continue
        fig, _ = plot_efficiency_calibration(
            calibration, save_path=plot_dir / f"{detector or 'unnamed'}_efficiency.png"
        )
        plt.close(fig)
    fig, _ = plot_detector_overlay(calibrations, save_path=plot_dir / "efficiency_overlay.png")
    plt.close(fig)
    logger.info(f"Saved efficiency plots to {plot_dir}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Full-energy-peak efficiency calibration of gamma-ray detectors")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log fit diagnostics")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sources = subparsers.add_parser("sources", help="List built-in calibration sources")
    sources.add_argument("--lines", action="store_true", help="Show gamma lines")
    sources.set_defaults(func=cmd_sources)

    points = subparsers.add_parser("points", help="Compute efficiency points from a session file")
    points.add_argument("--session", type=Path, required=True)
    points.add_argument("--detector", type=str)
    points.add_argument("--tolerance", type=float, default=1.0, help="Peak-to-line matching tolerance (keV)")
    points.add_argument("--output", type=Path)
    points.set_defaults(func=cmd_points)

    fit = subparsers.add_parser("fit", help="Fit efficiency curves for every detector")
    fit.add_argument("--session", type=Path, required=True)
    fit.add_argument("--model", choices=[v.value for v in CurveVariant], default=CurveVariant.SINGLE.value)
    fit.add_argument("--initial", type=float, nargs="+", help="Initial parameters")
    fit.add_argument("--tolerance", type=float, default=1.0, help="Peak-to-line matching tolerance (keV)")
    fit.add_argument("--tolerance-fit", type=float, default=FitConfig.tolerance)
    fit.add_argument("--max-evaluations", type=int, default=FitConfig.max_evaluations)
    fit.add_argument("--xtol", type=float, default=FitConfig.xtol)
    fit.add_argument("--confidence", type=float, default=ONE_SIGMA_PROBABILITY)
    fit.add_argument("--student-t", action="store_true", help="Use Student-t quantiles for the band")
    fit.add_argument("--band-points", type=int, default=BandConfig.n_points)
    fit.add_argument("--log-spacing", action="store_true")
    fit.add_argument("--energy-range", type=float, nargs=2, metavar=("START", "STOP"))
    fit.add_argument("--band-dir", type=Path, help="Directory for per-detector band CSV files")
    fit.add_argument("--plot-dir", type=Path, help="Directory for efficiency plots (PNG)")
    fit.add_argument("--output", type=Path, default=Path("efficiency_fit.json"))
    fit.set_defaults(func=cmd_fit)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        args.func(args)
    except (FepcalError, OSError) as exc:
        logger.error(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
