from __future__ import annotations
import json
import logging
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd
import requests

logger = logging.getLogger(__name__)

# Field names of the hourly occupancy endpoint payload
TIME_FIELD = 't'
RATE_FIELD = 'occupancyRate'
HOURLY_FREQ = 'h'


def clamp_rates(values):
    """Clip occupancy rates into [0, 1]; keeps Series/ndarray type."""
    if isinstance(values, pd.Series):
        return values.clip(lower=0.0, upper=1.0)
    return np.clip(np.asarray(values, dtype=float), 0.0, 1.0)


def forecast_index(last_timestamp, horizon: int) -> pd.DatetimeIndex:
    """Timestamps of the forecast steps: ``last_timestamp`` + k hours, k = 1..horizon."""
    start = pd.Timestamp(last_timestamp) + pd.Timedelta(hours=1)
    return pd.date_range(start=start, periods=horizon, freq=HOURLY_FREQ, name='timestamp')


def parse_timestamps(values: pd.Series) -> pd.Series:
    """Parse each value on its own: numbers as epoch milliseconds, strings as ISO-8601.

    A payload may mix the two forms. Anything unparseable becomes NaT.
    """
    is_text = values.map(lambda v: isinstance(v, str)).astype(bool)
    numeric = pd.to_numeric(values.where(~is_text), errors='coerce')
    ts = pd.to_datetime(numeric, unit='ms', utc=True, errors='coerce')
    if is_text.any():
        ts.loc[is_text] = pd.to_datetime(values[is_text], utc=True, errors='coerce', format='ISO8601')
    return ts


@dataclass
class HourlySeriesLoader:
    """Loader for the hourly occupancy-rate series served to the dashboard.

    Responsibilities:
    - Fetch the payload from an http(s) endpoint, or read a local JSON/CSV export
    - Parse ``t`` (epoch milliseconds or ISO strings) into tz-aware timestamps
    - Drop rows with a missing/non-numeric rate, average duplicate timestamps, sort
    - Report gaps in the hourly grid so callers can decide whether to forecast

    Parameters
    ----------
    source : str or path-like
        URL of the hourly endpoint, or path to a ``.json`` / ``.csv`` file.
    timeout : float
        Seconds to wait for the HTTP endpoint.
    tz : str
        Timezone the timestamps are converted to.
    verbose : bool
        If True, progress messages are logged at INFO instead of DEBUG.
    """
    source: Optional[Union[str, os.PathLike]] = None
    timeout: float = 30
    tz: str = 'UTC'
    verbose: bool = False

    _df: Optional[pd.DataFrame] = field(init=False, default=None, repr=False)

    # ------------------------ Public API ------------------------
    def load(self) -> 'HourlySeriesLoader':
        if self.source is None:
            raise ValueError("No source configured")
        src = str(self.source)
        if src.startswith(('http://', 'https://')):
            self._log("Fetching hourly series from %s", src)
            r = requests.get(src, timeout=self.timeout)
            r.raise_for_status()
            return self.from_payload(r.json())

        path = pathlib.Path(src)
        if not path.exists():
            raise FileNotFoundError(f"Series file not found: {path}")
        if path.suffix.lower() == '.csv':
            frame = pd.read_csv(path)
            return self._set_frame(frame)
        with path.open(encoding='utf-8') as fh:
            return self.from_payload(json.load(fh))

    def from_payload(self, payload: Dict[str, Any]) -> 'HourlySeriesLoader':
        """Use an already decoded ``{"series": [{"t": ..., "occupancyRate": ...}]}`` payload."""
        if not isinstance(payload, dict) or 'series' not in payload:
            raise ValueError("Payload must be an object with a 'series' list")
        frame = pd.DataFrame(list(payload['series']), columns=[TIME_FIELD, RATE_FIELD])
        return self._set_frame(frame)

    def get_raw(self) -> pd.DataFrame:
        self._ensure_loaded()
        return self._df.copy()

    def rates(self, clamp: bool = True) -> pd.Series:
        """Occupancy rate indexed by timestamp, optionally clipped to [0, 1]."""
        self._ensure_loaded()
        s = self._df.set_index('timestamp')['rate']
        return clamp_rates(s) if clamp else s.copy()

    def last_timestamp(self) -> pd.Timestamp:
        self._ensure_loaded()
        if self._df.empty:
            raise ValueError("Series is empty")
        return self._df['timestamp'].iloc[-1]

    def gap_report(self) -> pd.DataFrame:
        """Return DataFrame of missing hourly slots (start, end, length in hours)."""
        self._ensure_loaded()
        if self._df.empty:
            return pd.DataFrame(columns=['start', 'end', 'length'])
        s = self._df.set_index('timestamp')['rate']
        full_index = pd.date_range(s.index.min(), s.index.max(), freq=HOURLY_FREQ)
        na_mask = s.reindex(full_index).isna().astype(int)
        if na_mask.sum() == 0:
            return pd.DataFrame(columns=['start', 'end', 'length'])
        seg_id = (na_mask.diff().fillna(0) != 0).cumsum()
        gaps = []
        for _, grp in na_mask.to_frame('_na').assign(_seg=seg_id).groupby('_seg'):
            if grp['_na'].iloc[0] == 1:
                gaps.append({
                    'start': grp.index.min(),
                    'end': grp.index.max(),
                    'length': len(grp)
                })
        return pd.DataFrame(gaps).sort_values('length', ascending=False).reset_index(drop=True)

    def is_regular(self) -> bool:
        """True when samples sit exactly on a gap-free hourly grid."""
        self._ensure_loaded()
        ts = self._df['timestamp']
        if len(ts) < 2:
            return True
        return bool((ts.diff().dropna() == pd.Timedelta(hours=1)).all())

    # ------------------------ Internal ------------------------
    def _set_frame(self, frame: pd.DataFrame) -> 'HourlySeriesLoader':
        missing = {TIME_FIELD, RATE_FIELD} - set(frame.columns)
        if missing:
            raise KeyError(f"Columns missing from series: {sorted(missing)}")
        n_in = len(frame)
        ts = parse_timestamps(frame[TIME_FIELD])
        df = pd.DataFrame({
            'timestamp': ts.dt.tz_convert(self.tz),
            'rate': pd.to_numeric(frame[RATE_FIELD], errors='coerce'),
        })
        df = df.dropna(subset=['timestamp', 'rate'])
        df = df[np.isfinite(df['rate'])]
        if n_in != len(df):
            logger.warning("Dropped %d of %d samples with missing or non-numeric values", n_in - len(df), n_in)
        if df['timestamp'].duplicated().any():
            df = df.groupby('timestamp', as_index=False)['rate'].mean()
        df = df.sort_values('timestamp').reset_index(drop=True)
        self._log("Loaded %d hourly samples", len(df))
        self._df = df
        return self

    def _log(self, msg: str, *args) -> None:
        logger.log(logging.INFO if self.verbose else logging.DEBUG, msg, *args)

    def _ensure_loaded(self):
        if self._df is None:
            raise RuntimeError("Data not loaded. Call load() first.")
