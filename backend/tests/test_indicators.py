"""Unit tests for technical indicators."""

import numpy as np
import pandas as pd
import pytest

from stocksage.compute.indicators import (
    compute_all_indicators,
    compute_moving_average,
    flag_volume_spikes,
    frame_to_bars,
)
from stocksage.data.csv_parser import parse_csv

from conftest import SAMPLE_CSV


def _sample_df(n_rows: int = 40, volumes=None) -> pd.DataFrame:
    """Bars with closes 1, 2, ..., n_rows on consecutive days."""
    dates = pd.date_range(start="2025-01-01", periods=n_rows, freq="D", name="date")
    closes = [float(i + 1) for i in range(n_rows)]
    df = pd.DataFrame(
        {
            "open": closes,
            "high": [c + 1 for c in closes],
            "low": [c - 1 for c in closes],
            "close": closes,
            "volume": volumes if volumes is not None else [1000.0] * n_rows,
        },
        index=dates,
    )
    return df


def _random_df(n_rows: int = 100) -> pd.DataFrame:
    np.random.seed(42)  # Reproducible
    prices = [100.0]
    for _ in range(n_rows - 1):
        prices.append(max(prices[-1] + np.random.normal(0, 2), 1.0))
    df = _sample_df(n_rows)
    df["close"] = prices
    df["volume"] = np.random.randint(1_000, 10_000, size=n_rows).astype(float)
    return df


@pytest.mark.parametrize("window", [7, 14, 30])
def test_moving_average_defined_only_with_full_window(window):
    df = _sample_df(40)
    ma = compute_moving_average(df, window=window)

    assert ma.iloc[: window - 1].isna().all()
    assert ma.iloc[window - 1 :].notna().all()


def test_moving_average_values_are_exact_trailing_means():
    df = _random_df(100)
    result = compute_all_indicators(df)

    for window in (7, 14, 30):
        column = result[f"ma_{window}"]
        for i in range(window - 1, len(df)):
            expected = df["close"].iloc[i - window + 1 : i + 1].mean()
            assert column.iloc[i] == pytest.approx(expected, rel=1e-12)


def test_known_moving_average_values():
    result = compute_all_indicators(_sample_df(40))

    # mean(1..7) = 4, mean(24..30) = 27, mean(1..30) = 15.5
    assert result["ma_7"].iloc[6] == pytest.approx(4.0)
    assert result["ma_7"].iloc[29] == pytest.approx(27.0)
    assert result["ma_30"].iloc[29] == pytest.approx(15.5)
    assert result["ma_14"].iloc[13] == pytest.approx(7.5)


def test_volume_moving_average_window():
    volumes = [float(v) for v in range(100, 140)]
    result = compute_all_indicators(_sample_df(40, volumes=volumes))

    assert result["volume_ma_20"].iloc[:19].isna().all()
    assert result["volume_ma_20"].iloc[19] == pytest.approx(np.mean(volumes[:20]))


def test_compute_all_indicators_is_idempotent():
    once = compute_all_indicators(_random_df(60))
    twice = compute_all_indicators(once)

    pd.testing.assert_frame_equal(once, twice)


def test_compute_all_indicators_does_not_mutate_input():
    df = _sample_df(40)
    compute_all_indicators(df)

    assert "ma_7" not in df.columns


def test_short_series_has_no_averages():
    df = compute_all_indicators(parse_csv(SAMPLE_CSV))

    assert len(df) == 2
    for column in ("ma_7", "ma_14", "ma_30", "volume_ma_20"):
        assert df[column].isna().all()


def test_volume_spike_requires_average_and_double_volume():
    volumes = [100.0] * 19 + [1000.0, 100.0, 250.0]
    df = compute_all_indicators(_sample_df(22, volumes=volumes))
    spikes = flag_volume_spikes(df)

    # Index 19: average (19 * 100 + 1000) / 20 = 145, 1000 > 290
    assert spikes.iloc[19]
    assert not spikes.iloc[20]
    assert not spikes.iloc[:19].any()


def test_volume_spike_without_average_column():
    volumes = [100.0] * 19 + [1000.0]
    spikes = flag_volume_spikes(_sample_df(20, volumes=volumes))

    assert spikes.iloc[19]


def test_frame_to_bars_marks_absent_averages_as_none():
    df = compute_all_indicators(_sample_df(10))
    bars = frame_to_bars(df)

    assert len(bars) == 10
    assert bars[0].date.isoformat() == "2025-01-01"
    assert bars[5].ma7 is None
    assert bars[6].ma7 == pytest.approx(4.0)
    assert bars[9].ma14 is None
    assert bars[9].volume_ma20 is None
    assert bars[9].volume_spike is False


def test_frame_to_bars_empty():
    assert frame_to_bars(parse_csv("")) == []
