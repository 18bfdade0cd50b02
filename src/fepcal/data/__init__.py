"""fepcal data module for calibration sources, measurements and efficiency models."""

from fepcal.data.sources import (
    GammaLine,
    Source,
    BUILTIN_SOURCES,
    builtin_source,
)

from fepcal.data.measurements import (
    Measurement,
    PeakFit,
)

from fepcal.data.efficiency import (
    EfficiencyPoint,
    build_efficiency_point,
    emitted_gammas,
    points_by_detector,
    points_for_measurement,
    points_to_arrays,
)

from fepcal.data.efficiency_models import (
    CurveVariant,
    evaluate,
    jacobian,
    initial_guess,
)

__all__ = [
    # Sources
    'GammaLine',
    'Source',
    'BUILTIN_SOURCES',
    'builtin_source',
    # Measurements
    'Measurement',
    'PeakFit',
    # Efficiency points
    'EfficiencyPoint',
    'build_efficiency_point',
    'emitted_gammas',
    'points_by_detector',
    'points_for_measurement',
    'points_to_arrays',
    # Curve models
    'CurveVariant',
    'evaluate',
    'jacobian',
    'initial_guess',
]
