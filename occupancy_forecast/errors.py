from __future__ import annotations

__all__ = ["ForecastError", "PreconditionError", "InvalidParameterError"]


class ForecastError(ValueError):
    """Base class for forecaster input errors."""


class PreconditionError(ForecastError):
    """History is too short for the model to be initialised."""


class InvalidParameterError(ForecastError):
    """A configuration value (season length, horizon, smoothing constant) is out of range."""
