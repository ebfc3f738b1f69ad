"""Technical indicators for uploaded price series.

All computations are deterministic - these functions never call LLMs.
"""

from __future__ import annotations

from typing import List

import pandas as pd

from stocksage.models.schemas import Bar

CLOSE_MA_WINDOWS = (7, 14, 30)
VOLUME_MA_WINDOW = 20
VOLUME_SPIKE_MULTIPLIER = 2.0


def compute_moving_average(
    df: pd.DataFrame, window: int, column: str = "close"
) -> pd.Series:
    """Trailing simple moving average over ``window`` rows.

    NaN until a full window exists; no partial-window averages.
    """
    return df[column].rolling(window=window, min_periods=window).mean()


def flag_volume_spikes(df: pd.DataFrame) -> pd.Series:
    """True where volume exceeds twice its 20-day average.

    Rows without a volume average yet are never spikes.
    """
    if "volume_ma_20" in df.columns:
        volume_ma = df["volume_ma_20"]
    else:
        volume_ma = compute_moving_average(df, VOLUME_MA_WINDOW, column="volume")
    return volume_ma.notna() & (df["volume"] > VOLUME_SPIKE_MULTIPLIER * volume_ma)


def compute_all_indicators(df: pd.DataFrame) -> pd.DataFrame:
    """Add all indicator columns to dataframe.

    Returns a copy with new columns: ma_7, ma_14, ma_30, volume_ma_20.
    Recomputes from close/volume only, so applying it twice is a no-op.
    """
    df = df.copy()
    for window in CLOSE_MA_WINDOWS:
        df[f"ma_{window}"] = compute_moving_average(df, window)
    df["volume_ma_20"] = compute_moving_average(df, VOLUME_MA_WINDOW, column="volume")
    return df


def _optional(value) -> float | None:
    if value is None or pd.isna(value):
        return None
    return float(value)


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """Convert an (optionally augmented) bar frame to typed records."""
    if df.empty:
        return []

    spikes = flag_volume_spikes(df)
    bars = []
    for (ts, row), spike in zip(df.iterrows(), spikes):
        bars.append(
            Bar(
                date=ts.date(),
                open=_optional(row.get("open")),
                high=_optional(row.get("high")),
                low=_optional(row.get("low")),
                close=_optional(row.get("close")),
                volume=_optional(row.get("volume")),
                ma7=_optional(row.get("ma_7")),
                ma14=_optional(row.get("ma_14")),
                ma30=_optional(row.get("ma_30")),
                volume_ma20=_optional(row.get("volume_ma_20")),
                volume_spike=bool(spike),
            )
        )
    return bars
