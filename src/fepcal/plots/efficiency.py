"""
Efficiency Calibration Plotting Module

Plots of measured efficiency points with the fitted curve and its
confidence band, one detector per axes or several detectors overlaid.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

try:
    import matplotlib.pyplot as plt
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

from fepcal.workflows.calibration import DetectorCalibration


PLOT_STYLE = {
    "figure.figsize": (10, 7),
    "font.size": 12,
    "axes.labelsize": 14,
    "axes.titlesize": 14,
    "legend.fontsize": 11,
    "lines.linewidth": 1.5,
    "axes.grid": True,
    "grid.alpha": 0.3,
    "grid.linestyle": "--",
}

# Marker colors per calibration source
SOURCE_COLORS = {
    'Eu-152': '#1f77b4',
    'Co-56': '#ff7f0e',
    'Co-60': '#2ca02c',
    'Cs-137': '#d62728',
    'Ba-133': '#9467bd',
}

FILL_ALPHA = 0.25


def apply_plot_style():
    """Apply the plot style used for calibration figures."""
    if HAS_MATPLOTLIB:
        plt.rcParams.update(PLOT_STYLE)


def plot_efficiency_calibration(
    calibration: DetectorCalibration,
    title: Optional[str] = None,
    xlabel: str = "Energy (keV)",
    ylabel: str = "Efficiency (%)",
    log_x: bool = False,
    log_y: bool = False,
    figsize: Tuple[float, float] = (10, 7),
    save_path: Optional[Union[str, Path]] = None,
    ax: Optional[Any] = None,
) -> Any:
    """
    Plot measured efficiencies with the fitted curve and confidence band.

    Parameters
    ----------
    calibration : DetectorCalibration
        Points, fit and band of one detector. Missing fit or band are skipped.
    title : str, optional
        Plot title (defaults to the detector name)
    xlabel, ylabel : str
        Axis labels
    log_x, log_y : bool
        Use logarithmic axes
    figsize : tuple
        Figure size
    save_path : str or Path, optional
        Save figure to path
    ax : matplotlib.axes.Axes, optional
        Existing axes to plot on

    Returns
    -------
    fig, ax
    """
    if not HAS_MATPLOTLIB:
        raise ImportError("matplotlib required for plotting")

    apply_plot_style()

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.get_figure()

    if calibration.band is not None:
        energies, efficiencies, lower, upper = calibration.band.as_arrays()
        level = calibration.band.config.confidence_level
        ax.fill_between(
            energies, lower, upper,
            color="#d62728",
            alpha=FILL_ALPHA,
            label=f"{level * 100:.1f}% confidence",
            edgecolor="none",
        )
        ax.plot(energies, efficiencies, color="#d62728", label=f"{calibration.fit.variant.value} fit")
    elif calibration.fit is not None:
        energies = np.linspace(
            min(p.energy for p in calibration.points),
            max(p.energy for p in calibration.points),
            500,
        )
        ax.plot(energies, calibration.fit.evaluate(energies), color="#d62728",
                label=f"{calibration.fit.variant.value} fit")

    sources = sorted({p.source for p in calibration.points})
    for i, source in enumerate(sources):
        points = [p for p in calibration.points if p.source == source]
        color = SOURCE_COLORS.get(source, plt.cm.tab10(i % 10))
        ax.errorbar(
            [p.energy for p in points],
            [p.efficiency_percent for p in points],
            yerr=[p.efficiency_uncertainty_percent for p in points],
            fmt='o', color=color, label=source or "points",
            capsize=3, markersize=5,
        )

    if log_x:
        ax.set_xscale("log")
    if log_y:
        ax.set_yscale("log")

    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title if title is not None else (calibration.detector or "Efficiency"))
    ax.legend(loc="best")

    if save_path:
        fig.savefig(save_path)

    return fig, ax


def plot_detector_overlay(
    calibrations: Dict[str, DetectorCalibration],
    title: str = "Detector Efficiencies",
    log_x: bool = True,
    log_y: bool = True,
    figsize: Tuple[float, float] = (10, 7),
    save_path: Optional[Union[str, Path]] = None,
) -> Any:
    """Overlay the fitted curves and points of several detectors."""
    if not HAS_MATPLOTLIB:
        raise ImportError("matplotlib required for plotting")

    apply_plot_style()
    fig, ax = plt.subplots(figsize=figsize)
    colors = plt.cm.tab10(np.linspace(0, 1, max(len(calibrations), 1)))

    for color, (detector, calibration) in zip(colors, calibrations.items()):
        ax.errorbar(
            [p.energy for p in calibration.points],
            [p.efficiency_percent for p in calibration.points],
            yerr=[p.efficiency_uncertainty_percent for p in calibration.points],
            fmt='o', color=color, capsize=2, markersize=4,
        )
        if calibration.band is not None:
            energies, efficiencies, lower, upper = calibration.band.as_arrays()
            ax.fill_between(energies, lower, upper, color=color, alpha=FILL_ALPHA, edgecolor="none")
            ax.plot(energies, efficiencies, color=color, label=detector or "<unnamed>")

    if log_x:
        ax.set_xscale("log")
    if log_y:
        ax.set_yscale("log")
    ax.set_xlabel("Energy (keV)")
    ax.set_ylabel("Efficiency (%)")
    ax.set_title(title)
    ax.legend(loc="best")

    if save_path:
        fig.savefig(save_path)

    return fig, ax
