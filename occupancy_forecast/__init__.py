"""occupancy_forecast: hourly parking occupancy forecasting.

Additive Holt-Winters smoothing over an hourly occupancy-rate history,
plus the loader for the upstream hourly series and fit-quality metrics.
"""
from .errors import ForecastError, PreconditionError, InvalidParameterError
from .forecasting import (
    HoltWintersState,
    HoltWintersResult,
    HoltWintersForecaster,
    OccupancyForecast,
    holt_winters_additive,
    smooth,
    forecast_series,
)
from .metrics import mae, mape, rmse, fit_errors, train_test_split_chronological
from .data_loader import HourlySeriesLoader, clamp_rates, forecast_index

__all__ = [
    "ForecastError",
    "PreconditionError",
    "InvalidParameterError",
    "HoltWintersState",
    "HoltWintersResult",
    "HoltWintersForecaster",
    "OccupancyForecast",
    "holt_winters_additive",
    "smooth",
    "forecast_series",
    "mae",
    "mape",
    "rmse",
    "fit_errors",
    "train_test_split_chronological",
    "HourlySeriesLoader",
    "clamp_rates",
    "forecast_index",
]
