"""Unit tests for cross-series date alignment."""

import pandas as pd

from stocksage.compute.comparison import build_comparison_frame
from stocksage.compute.indicators import compute_all_indicators


def _frame(start: str, closes) -> pd.DataFrame:
    dates = pd.date_range(start=start, periods=len(closes), freq="D", name="date")
    df = pd.DataFrame(
        {"open": closes, "high": closes, "low": closes, "close": closes, "volume": [1.0] * len(closes)},
        index=dates,
    )
    return compute_all_indicators(df)


def test_outer_join_on_dates():
    combined = build_comparison_frame(
        {
            "AAA": _frame("2024-01-01", [1.0, 2.0, 3.0]),
            "BBB": _frame("2024-01-02", [10.0, 20.0, 30.0]),
        }
    )

    assert list(combined.columns) == ["AAA_close", "BBB_close"]
    assert len(combined) == 4
    assert combined.index.is_monotonic_increasing
    assert pd.isna(combined.loc["2024-01-01", "BBB_close"])
    assert pd.isna(combined.loc["2024-01-04", "AAA_close"])
    assert combined.loc["2024-01-02", "AAA_close"] == 2.0
    assert combined.loc["2024-01-02", "BBB_close"] == 10.0


def test_requested_moving_averages_only():
    combined = build_comparison_frame(
        {"AAA": _frame("2024-01-01", [float(i) for i in range(10)])},
        moving_averages=["ma7", "bogus"],
    )

    assert list(combined.columns) == ["AAA_close", "AAA_ma7"]
    assert combined["AAA_ma7"].iloc[:6].isna().all()
    assert combined["AAA_ma7"].iloc[6] == 3.0


def test_empty_input():
    assert build_comparison_frame({}).empty
