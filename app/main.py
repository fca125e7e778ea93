# app/main.py
from __future__ import annotations
import logging
import os
from typing import Optional, Union

import requests
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from occupancy_forecast import (
    HourlySeriesLoader,
    InvalidParameterError,
    PreconditionError,
    fit_errors,
    forecast_series,
)

logger = logging.getLogger(__name__)

APP_TZ = os.getenv("APP_TZ", "UTC")
SEASON_LENGTH = int(os.getenv("SEASON_LENGTH", "24"))
FORECAST_HORIZON = int(os.getenv("FORECAST_HORIZON", "24"))
HW_ALPHA = float(os.getenv("HW_ALPHA", "0.3"))
HW_BETA = float(os.getenv("HW_BETA", "0.1"))
HW_GAMMA = float(os.getenv("HW_GAMMA", "0.3"))
HOURLY_API = os.getenv("HOURLY_API")  # upstream hourly series endpoint, optional
MAX_HORIZON = 24 * 14  # hours a request may ask for

app = FastAPI(title="Parking Occupancy Forecast", version="1.0")


# ---------- Schemas ----------
class SamplePoint(BaseModel):
    t: Union[int, float, str] = Field(..., description="Epoch milliseconds or ISO-8601 timestamp")
    occupancyRate: float = Field(..., description="Occupied share of slots, nominally in [0,1]")


class ForecastIn(BaseModel):
    series: list[SamplePoint] = Field(..., description="Hourly samples, oldest first")
    season_length: Optional[int] = Field(None, ge=1, description="Steps per season; defaults to SEASON_LENGTH")
    alpha: Optional[float] = None
    beta: Optional[float] = None
    gamma: Optional[float] = None
    horizon: Optional[int] = Field(None, ge=0, le=MAX_HORIZON,
                                   description="Hours to forecast ahead; defaults to FORECAST_HORIZON")


class ForecastOut(BaseModel):
    season_length: int
    horizon: int
    timestamps: list[str]
    forecast: list[float]
    fitted: list[float]
    mae: float
    rmse: float


# ---------- Helpers ----------
def _run_forecast(loader: HourlySeriesLoader, season_length: int, alpha: float,
                  beta: float, gamma: float, horizon: int) -> ForecastOut:
    if not loader.is_regular():
        logger.warning("Hourly series has gaps; forecasting over the samples as given")
    try:
        result = forecast_series(
            loader.rates(clamp=False),
            season_length=season_length,
            alpha=alpha,
            beta=beta,
            gamma=gamma,
            horizon=horizon,
        )
    except PreconditionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidParameterError as e:
        raise HTTPException(status_code=400, detail=str(e))

    history = result.history
    errors = fit_errors(history["model_input"], history["fitted"], warmup=season_length)
    return ForecastOut(
        season_length=season_length,
        horizon=horizon,
        timestamps=[ts.isoformat() for ts in result.forecast.index],
        forecast=[float(x) for x in result.forecast["prediction"].round(4).tolist()],
        fitted=[float(x) for x in history["fitted"].round(4).tolist()],
        mae=round(errors["mae"], 4),
        rmse=round(errors["rmse"], 4),
    )


def _or_default(value, default):
    return default if value is None else value


# ---------- Routes ----------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/forecast", response_model=ForecastOut)
def forecast(body: ForecastIn):
    try:
        loader = HourlySeriesLoader(tz=APP_TZ).from_payload(
            {"series": [p.model_dump() for p in body.series]}
        )
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid series: {e}")

    return _run_forecast(
        loader,
        season_length=_or_default(body.season_length, SEASON_LENGTH),
        alpha=_or_default(body.alpha, HW_ALPHA),
        beta=_or_default(body.beta, HW_BETA),
        gamma=_or_default(body.gamma, HW_GAMMA),
        horizon=_or_default(body.horizon, FORECAST_HORIZON),
    )


@app.get("/forecast", response_model=ForecastOut)
def forecast_upstream():
    if not HOURLY_API:
        raise HTTPException(status_code=503, detail="HOURLY_API is not configured")
    try:
        loader = HourlySeriesLoader(HOURLY_API, tz=APP_TZ).load()
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch hourly series: {e}")
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=502, detail=f"Upstream returned an invalid series: {e}")
    return _run_forecast(
        loader,
        season_length=SEASON_LENGTH,
        alpha=HW_ALPHA,
        beta=HW_BETA,
        gamma=HW_GAMMA,
        horizon=FORECAST_HORIZON,
    )
