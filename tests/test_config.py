import pytest

from fepcal.core.config import BandConfig, FitConfig
from fepcal.core.errors import (
    BandUnavailable,
    FepcalError,
    InsufficientData,
    InvalidInput,
    NumericOverflow,
)


def test_defaults():
    fit = FitConfig()
    assert fit.max_evaluations == 5000
    assert fit.scale_covariance
    assert BandConfig().distribution == "normal"


@pytest.mark.parametrize(
    "kwargs",
    [{'tolerance': 0.0}, {'xtol': 1e-20}, {'gtol': -1.0}, {'max_evaluations': 0}],
)
def test_invalid_fit_config(kwargs):
    with pytest.raises(InvalidInput):
        FitConfig(**kwargs)


@pytest.mark.parametrize(
    "kwargs",
    [{'confidence_level': 0.0}, {'n_points': 1}, {'distribution': 'cauchy'}],
)
def test_invalid_band_config(kwargs):
    with pytest.raises(InvalidInput):
        BandConfig(**kwargs)


def test_error_hierarchy():
    assert issubclass(InvalidInput, ValueError)
    assert issubclass(NumericOverflow, OverflowError)
    assert issubclass(BandUnavailable, FepcalError)
    error = InsufficientData(2, 5)
    assert isinstance(error, ValueError)
    assert "5" in str(error)
