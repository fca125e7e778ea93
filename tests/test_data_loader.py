import json
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import requests

from occupancy_forecast import HourlySeriesLoader, clamp_rates, forecast_index

HOUR_MS = 3_600_000
T0 = 1_714_521_600_000  # 2024-05-01T00:00:00Z


def _payload(rates, start=T0, step=HOUR_MS):
    return {"series": [{"t": start + i * step, "occupancyRate": r} for i, r in enumerate(rates)]}


def test_loader_from_payload():
    loader = HourlySeriesLoader().from_payload(_payload([0.1, 0.2, 0.3]))
    s = loader.rates()
    assert list(s) == [0.1, 0.2, 0.3]
    assert s.index[0] == pd.Timestamp("2024-05-01T00:00:00Z")
    assert loader.last_timestamp() == pd.Timestamp("2024-05-01T02:00:00Z")
    assert loader.is_regular()
    assert loader.gap_report().empty


def test_loader_json_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        p = Path(tmpdir) / "hourly.json"
        p.write_text(json.dumps(_payload([0.4, 0.5])), encoding="utf-8")
        loader = HourlySeriesLoader(p).load()
        assert list(loader.rates()) == [0.4, 0.5]


def test_loader_csv_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        p = Path(tmpdir) / "hourly.csv"
        pd.DataFrame({
            "t": ["2024-05-01T00:00:00Z", "2024-05-01T01:00:00Z"],
            "occupancyRate": [0.25, 0.75],
        }).to_csv(p, index=False)
        loader = HourlySeriesLoader(p, tz="Europe/Berlin").load()
        s = loader.rates()
        assert list(s) == [0.25, 0.75]
        assert str(s.index.tz) == "Europe/Berlin"


def test_loader_missing_file():
    with pytest.raises(FileNotFoundError):
        HourlySeriesLoader("/nonexistent/hourly.json").load()


def test_loader_url(monkeypatch):
    calls = {}

    class _Resp:
        def raise_for_status(self):
            pass

        def json(self):
            return _payload([0.6, 0.7])

    def fake_get(url, timeout):
        calls["url"] = url
        calls["timeout"] = timeout
        return _Resp()

    monkeypatch.setattr(requests, "get", fake_get)
    loader = HourlySeriesLoader("https://example.test/hourly", timeout=5).load()
    assert calls == {"url": "https://example.test/hourly", "timeout": 5}
    assert list(loader.rates()) == [0.6, 0.7]


def test_clamping_is_optional():
    loader = HourlySeriesLoader().from_payload(_payload([-0.2, 0.5, 1.3]))
    assert list(loader.rates()) == [0.0, 0.5, 1.0]
    assert list(loader.rates(clamp=False)) == [-0.2, 0.5, 1.3]


def test_bad_rows_dropped_and_duplicates_averaged():
    series = [
        {"t": T0 + HOUR_MS, "occupancyRate": 0.4},
        {"t": T0, "occupancyRate": 0.2},
        {"t": T0, "occupancyRate": 0.4},
        {"t": T0 + 2 * HOUR_MS, "occupancyRate": None},
        {"t": T0 + 3 * HOUR_MS, "occupancyRate": "n/a"},
        {"occupancyRate": 0.9},
    ]
    loader = HourlySeriesLoader().from_payload({"series": series})
    raw = loader.get_raw()
    assert len(raw) == 2
    assert raw["rate"].tolist() == pytest.approx([0.3, 0.4])
    assert raw["timestamp"].is_monotonic_increasing


def test_gap_report():
    rates = [0.1, 0.2, np.nan, np.nan, 0.5, np.nan, 0.7]
    series = [{"t": T0 + i * HOUR_MS, "occupancyRate": r} for i, r in enumerate(rates) if not np.isnan(r)]
    loader = HourlySeriesLoader().from_payload({"series": series})
    assert not loader.is_regular()
    gaps = loader.gap_report()
    assert gaps["length"].tolist() == [2, 1]
    assert gaps["start"].iloc[0] == pd.Timestamp(T0 + 2 * HOUR_MS, unit="ms", tz="UTC")


def test_payload_validation():
    with pytest.raises(ValueError):
        HourlySeriesLoader().from_payload({"points": []})
    with pytest.raises(RuntimeError):
        HourlySeriesLoader().rates()
    with pytest.raises(ValueError):
        HourlySeriesLoader().load()


def test_clamp_rates_keeps_type():
    arr = clamp_rates([-1.0, 0.5, 2.0])
    assert isinstance(arr, np.ndarray)
    assert arr.tolist() == [0.0, 0.5, 1.0]
    s = clamp_rates(pd.Series([1.5], index=["a"]))
    assert isinstance(s, pd.Series)
    assert s["a"] == 1.0


def test_forecast_index():
    last = pd.Timestamp("2024-05-01T23:00:00Z")
    idx = forecast_index(last, 3)
    assert list(idx) == [last + pd.Timedelta(hours=k) for k in (1, 2, 3)]
    assert len(forecast_index(last, 0)) == 0


def test_mixed_epoch_and_iso_timestamps():
    series = [
        {"t": T0, "occupancyRate": 0.1},
        {"t": "2024-05-01T01:00:00Z", "occupancyRate": 0.2},
        {"t": T0 + 2 * HOUR_MS, "occupancyRate": 0.3},
        {"t": "not a time", "occupancyRate": 0.4},
    ]
    loader = HourlySeriesLoader().from_payload({"series": series})
    raw = loader.get_raw()
    assert raw["timestamp"].tolist() == [
        pd.Timestamp("2024-05-01T00:00:00Z"),
        pd.Timestamp("2024-05-01T01:00:00Z"),
        pd.Timestamp("2024-05-01T02:00:00Z"),
    ]
    assert raw["rate"].tolist() == [0.1, 0.2, 0.3]
    assert loader.is_regular()
