"""fepcal plotting module for efficiency calibrations."""

from fepcal.plots.efficiency import (
    SOURCE_COLORS,
    apply_plot_style,
    plot_detector_overlay,
    plot_efficiency_calibration,
)

__all__ = [
    "SOURCE_COLORS",
    "apply_plot_style",
    "plot_detector_overlay",
    "plot_efficiency_calibration",
]
