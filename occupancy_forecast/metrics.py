from __future__ import annotations
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

ArrayLike = Sequence[float]

__all__ = ["mae", "mape", "rmse", "fit_errors", "train_test_split_chronological"]


def _as_float_array(y: ArrayLike) -> np.ndarray:
    if isinstance(y, (pd.Series, pd.Index)):
        return y.to_numpy(dtype=float)
    arr = np.asarray(y, dtype=float)
    if arr.ndim != 1:
        raise ValueError("Expected 1-D array")
    return arr


def _paired(y_true: ArrayLike, y_pred: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    a = _as_float_array(y_true)
    b = _as_float_array(y_pred)
    if a.size != b.size:
        raise ValueError(f"Size mismatch: {a.size} observed vs {b.size} predicted")
    if a.size == 0:
        raise ValueError("Cannot score empty sequences")
    return a, b


def mae(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    a, b = _paired(y_true, y_pred)
    return float(np.mean(np.abs(a - b)))


def rmse(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    a, b = _paired(y_true, y_pred)
    return float(np.sqrt(np.mean((a - b) ** 2)))


def mape(y_true: ArrayLike, y_pred: ArrayLike, epsilon: float = 1e-8) -> float:
    # empty-lot hours have a rate of 0; epsilon keeps them finite
    a, b = _paired(y_true, y_pred)
    denom = np.clip(np.abs(a), epsilon, None)
    return float(np.mean(np.abs((a - b) / denom)))


def fit_errors(y_true: ArrayLike, fitted: ArrayLike, warmup: int = 0) -> Dict[str, float]:
    """MAE and RMSE of one-step-ahead fitted values against the history.

    The first ``warmup`` points (typically one season, while the model is still
    settling from its initial state) are left out of the score.
    """
    a, b = _paired(y_true, fitted)
    if warmup < 0 or warmup >= a.size:
        raise ValueError("warmup must be >=0 and < len(y_true)")
    a, b = a[warmup:], b[warmup:]
    return {"mae": mae(a, b), "rmse": rmse(a, b)}


def train_test_split_chronological(y: ArrayLike, test_size: int) -> Tuple[np.ndarray, np.ndarray]:
    arr = _as_float_array(y)
    if test_size <= 0 or test_size >= arr.size:
        raise ValueError("test_size must be >0 and < len(y)")
    return arr[:-test_size], arr[-test_size:]
