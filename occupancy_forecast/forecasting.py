from __future__ import annotations
import logging
from dataclasses import dataclass, field
from numbers import Integral, Real
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .data_loader import clamp_rates, forecast_index
from .errors import InvalidParameterError, PreconditionError

ArrayLike = Sequence[float]

logger = logging.getLogger(__name__)

__all__ = [
    "HoltWintersState",
    "HoltWintersResult",
    "HoltWintersForecaster",
    "OccupancyForecast",
    "holt_winters_additive",
    "initial_state",
    "step",
    "smooth",
    "forecast_series",
]

# Constants the dashboard forecasts with (hourly data, diurnal season, next 24h)
DEFAULT_SEASON_LENGTH = 24
DEFAULT_ALPHA = 0.3
DEFAULT_BETA = 0.1
DEFAULT_GAMMA = 0.3
DEFAULT_HORIZON = 24


@dataclass(frozen=True)
class HoltWintersState:
    """Level, trend and seasonal offsets of the additive model at one step.

    ``season[i]`` is the offset for every step ``t`` with ``t % len(season) == i``.
    """
    level: float
    trend: float
    season: Tuple[float, ...]

    @property
    def season_length(self) -> int:
        return len(self.season)

    def extrapolate(self, n_seen: int, horizon: int) -> np.ndarray:
        """Project ``horizon`` steps past the last of ``n_seen`` observations.

        No smoothing happens here: the trend accumulates linearly and the
        seasonal vector keeps cycling from position ``n_seen % season_length``.
        """
        k = np.arange(1, horizon + 1, dtype=float)
        idx = (n_seen + np.arange(horizon)) % self.season_length
        season = np.asarray(self.season, dtype=float)
        return self.level + k * self.trend + season[idx]


class HoltWintersResult(NamedTuple):
    """``(fitted, forecast)`` pair; unpacks like a 2-tuple."""
    fitted: np.ndarray
    forecast: np.ndarray


def initial_state(y: ArrayLike, season_length: int) -> HoltWintersState:
    """Bootstrap the model from the first two seasonal cycles.

    - level is the first observation of the second cycle, not its mean
    - trend is the difference of the two cycle means. It is a per-cycle delta
      applied as a per-step trend and is NOT divided by ``season_length``;
      forecasts produced by existing consumers depend on that shape.
    - season[i] is y[i] minus the mean of the first cycle
    """
    _check_season_length(season_length)
    arr = _to_1d_array(y)
    _check_history(arr, season_length)
    first = arr[:season_length]
    second = arr[season_length:2 * season_length]
    mean_first = float(first.mean())
    mean_second = float(second.mean())
    return HoltWintersState(
        level=float(arr[season_length]),
        trend=mean_second - mean_first,
        season=tuple(float(v) - mean_first for v in first),
    )


def _update(prev_level: float, prev_trend: float, prev_season: float, value: float,
            alpha: float, beta: float, gamma: float) -> Tuple[float, float, float, float]:
    fitted = prev_level + prev_trend + prev_season
    level = alpha * (value - prev_season) + (1 - alpha) * (prev_level + prev_trend)
    # trend and season are driven by the new level
    trend = beta * (level - prev_level) + (1 - beta) * prev_trend
    season_s = gamma * (value - level) + (1 - gamma) * prev_season
    return fitted, level, trend, season_s


def step(state: HoltWintersState, value: float, t: int,
         alpha: float, beta: float, gamma: float) -> Tuple[float, HoltWintersState]:
    """Consume observation ``value`` at time ``t``.

    Returns the one-step-ahead fitted value (computed from ``state`` before the
    update) and the updated state. ``state`` itself is left untouched.
    Copies the seasonal vector; :func:`smooth` is the pass to use over a history.
    """
    s = t % state.season_length
    fitted, level, trend, season_s = _update(state.level, state.trend, state.season[s],
                                             value, alpha, beta, gamma)
    season = state.season[:s] + (season_s,) + state.season[s + 1:]
    return fitted, HoltWintersState(level=level, trend=trend, season=season)


def smooth(y: ArrayLike,
           season_length: int = DEFAULT_SEASON_LENGTH,
           alpha: float = DEFAULT_ALPHA,
           beta: float = DEFAULT_BETA,
           gamma: float = DEFAULT_GAMMA) -> Tuple[np.ndarray, HoltWintersState]:
    """Run the recursive pass over ``y``; return fitted values and the final state.

    The seasonal vector is a list owned by this call and updated in place, so
    the pass is linear in ``len(y)``; it is frozen into the returned state.
    """
    _check_params(season_length, alpha, beta, gamma, horizon=0)
    arr = _to_1d_array(y)
    start = initial_state(arr, season_length)
    level, trend, season = start.level, start.trend, list(start.season)

    fitted = np.empty(arr.size, dtype=float)
    for t, value in enumerate(arr.tolist()):
        s = t % season_length
        fitted[t], level, trend, season[s] = _update(level, trend, season[s], value, alpha, beta, gamma)
    return fitted, HoltWintersState(level=level, trend=trend, season=tuple(season))


def holt_winters_additive(y: ArrayLike,
                          season_length: int = DEFAULT_SEASON_LENGTH,
                          alpha: float = DEFAULT_ALPHA,
                          beta: float = DEFAULT_BETA,
                          gamma: float = DEFAULT_GAMMA,
                          horizon: int = DEFAULT_HORIZON) -> HoltWintersResult:
    """Additive Holt-Winters (triple exponential smoothing).

    Parameters
    ----------
    y : array-like
        Observations in time order, at least ``2 * season_length`` of them.
    season_length : int
        Steps per seasonal cycle (24 for hourly data with a daily pattern).
    alpha, beta, gamma : float
        Level, trend and seasonal smoothing constants, each in (0, 1).
    horizon : int
        Number of steps to forecast past the last observation; 0 gives an
        empty forecast.

    Returns
    -------
    HoltWintersResult
        ``(fitted, forecast)``: one fitted value per observation, each computed
        from the state known strictly before it, and ``horizon`` forecast
        values. Values are not clamped. Use :func:`smooth` or
        :class:`HoltWintersForecaster` to get at the final model state.

    Raises
    ------
    InvalidParameterError
        Bad ``season_length``, ``horizon`` or smoothing constant.
    PreconditionError
        Fewer than two full seasonal cycles of history.
    """
    _check_params(season_length, alpha, beta, gamma, horizon)
    arr = _to_1d_array(y)
    logger.debug("holt-winters: n=%d season_length=%d horizon=%d", arr.size, season_length, horizon)
    fitted, state = smooth(arr, season_length, alpha, beta, gamma)
    return HoltWintersResult(fitted=fitted, forecast=state.extrapolate(arr.size, horizon))


@dataclass
class HoltWintersForecaster:
    """Estimator wrapper around :func:`smooth`.

    ``fit`` runs the smoothing pass over the whole history and keeps the final
    state; ``predict`` extrapolates from it. Refitting starts from scratch.
    """
    season_length: int = DEFAULT_SEASON_LENGTH
    alpha: float = DEFAULT_ALPHA
    beta: float = DEFAULT_BETA
    gamma: float = DEFAULT_GAMMA

    state_: Optional[HoltWintersState] = field(init=False, default=None, repr=False)

    def fit(self, y: ArrayLike):
        fitted, state = smooth(y, self.season_length, self.alpha, self.beta, self.gamma)
        self.state_ = state
        self.fitted_ = fitted
        self.n_obs_ = fitted.size
        return self

    def predict(self, horizon: int):
        if self.state_ is None:
            raise RuntimeError("Call fit first")
        _check_horizon(horizon)
        return self.state_.extrapolate(self.n_obs_, horizon)

    def fitted_values(self) -> np.ndarray:
        if self.state_ is None:
            raise RuntimeError("Call fit first")
        return self.fitted_.copy()


class OccupancyForecast(NamedTuple):
    history: pd.DataFrame   # index timestamp; columns rate, model_input, fitted
    forecast: pd.DataFrame  # index timestamp; column prediction


def forecast_series(series: pd.Series,
                    season_length: int = DEFAULT_SEASON_LENGTH,
                    alpha: float = DEFAULT_ALPHA,
                    beta: float = DEFAULT_BETA,
                    gamma: float = DEFAULT_GAMMA,
                    horizon: int = DEFAULT_HORIZON) -> OccupancyForecast:
    """Forecast an hourly occupancy-rate series the way the dashboard displays it.

    Rates are clamped to [0, 1] before smoothing, fitted and forecast values
    are clamped again afterwards, and forecast timestamps step forward one
    hour at a time from the last observation. ``history`` keeps the rate as
    observed in ``rate`` and the clamped model input in ``model_input``.
    """
    if not isinstance(series.index, pd.DatetimeIndex):
        raise ValueError("series index must be a DatetimeIndex")
    if series.isna().any():
        raise ValueError("series contains missing values; fill or drop them first")
    observed = series.sort_index().astype(float)
    model_input = clamp_rates(observed)
    result = holt_winters_additive(model_input.to_numpy(dtype=float), season_length, alpha, beta, gamma, horizon)

    history = pd.DataFrame(
        {
            "rate": observed.to_numpy(),
            "model_input": model_input.to_numpy(dtype=float),
            "fitted": clamp_rates(result.fitted),
        },
        index=observed.index,
    )
    history.index.name = "timestamp"
    forecast = pd.DataFrame(
        {"prediction": clamp_rates(result.forecast)},
        index=forecast_index(observed.index[-1], horizon),
    )
    return OccupancyForecast(history=history, forecast=forecast)


def _check_params(season_length, alpha, beta, gamma, horizon) -> None:
    _check_season_length(season_length)
    for name, value in (("alpha", alpha), ("beta", beta), ("gamma", gamma)):
        if isinstance(value, bool) or not isinstance(value, Real) or not (0 < value < 1):
            raise InvalidParameterError(f"{name} must be in (0,1), got {value!r}")
    _check_horizon(horizon)


def _check_season_length(season_length) -> None:
    if isinstance(season_length, bool) or not isinstance(season_length, Integral) or season_length <= 0:
        raise InvalidParameterError(f"season_length must be a positive integer, got {season_length!r}")


def _check_horizon(horizon) -> None:
    if isinstance(horizon, bool) or not isinstance(horizon, Integral) or horizon < 0:
        raise InvalidParameterError(f"horizon must be a non-negative integer, got {horizon!r}")


def _check_history(arr: np.ndarray, season_length: int) -> None:
    needed = 2 * season_length
    if arr.size < needed:
        raise PreconditionError(
            f"Need at least 2 seasons of history: got {arr.size} observations, "
            f"need {needed} for season_length={season_length}"
        )


def _to_1d_array(y: ArrayLike) -> np.ndarray:
    if isinstance(y, (pd.Series, pd.Index)):
        return y.to_numpy(dtype=float)
    arr = np.asarray(y, dtype=float)
    if arr.ndim != 1:
        raise ValueError("Input series must be 1-D")
    return arr
