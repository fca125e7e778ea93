import numpy as np
import pytest

from occupancy_forecast import (
    fit_errors,
    holt_winters_additive,
    mae,
    mape,
    rmse,
    train_test_split_chronological,
)


def test_basic_errors():
    y = [0.2, 0.4, 0.6]
    p = [0.3, 0.4, 0.3]
    assert mae(y, p) == pytest.approx((0.1 + 0.0 + 0.3) / 3)
    assert rmse(y, p) == pytest.approx(np.sqrt((0.01 + 0.09) / 3))
    assert mape(y, p) == pytest.approx((0.5 + 0.0 + 0.5) / 3)


def test_mape_with_empty_lot_hours_is_finite():
    assert np.isfinite(mape([0.0, 0.5], [0.1, 0.5]))


def test_size_mismatch():
    with pytest.raises(ValueError):
        mae([1, 2], [1])
    with pytest.raises(ValueError):
        rmse([], [])


def test_fit_errors_skips_warmup():
    y = [0.0, 0.0, 1.0, 1.0]
    fitted = [1.0, 1.0, 1.0, 1.0]
    assert fit_errors(y, fitted)["mae"] == pytest.approx(0.5)
    assert fit_errors(y, fitted, warmup=2) == {"mae": 0.0, "rmse": 0.0}
    with pytest.raises(ValueError):
        fit_errors(y, fitted, warmup=4)


def test_holdout_evaluation():
    t = np.arange(24 * 6)
    y = 0.5 + 0.2 * np.sin(2 * np.pi * t / 24)
    train, test = train_test_split_chronological(y, test_size=24)
    assert train.size == 120 and test.size == 24
    res = holt_winters_additive(train, season_length=24, horizon=24)
    assert mae(test, res.forecast) < 1e-9


def test_split_bounds():
    with pytest.raises(ValueError):
        train_test_split_chronological([1, 2, 3], test_size=0)
    with pytest.raises(ValueError):
        train_test_split_chronological([1, 2, 3], test_size=3)
