"""Date alignment of several series for comparison charts."""

from __future__ import annotations

from typing import Dict, Iterable

import pandas as pd

MA_COLUMNS = {"ma7": "ma_7", "ma14": "ma_14", "ma30": "ma_30"}


def build_comparison_frame(
    frames: Dict[str, pd.DataFrame],
    moving_averages: Iterable[str] = (),
) -> pd.DataFrame:
    """Outer-join series on date into one wide frame.

    Columns are ``<name>_close`` plus ``<name>_<ma>`` for each requested
    average ("ma7", "ma14", "ma30"). Dates missing from a series are NaN.
    """
    wanted = [ma for ma in moving_averages if ma in MA_COLUMNS]
    columns = []
    for name, df in frames.items():
        if df.empty:
            continue
        part = pd.DataFrame(index=df.index.normalize())
        part[f"{name}_close"] = df["close"].to_numpy()
        for ma in wanted:
            source = MA_COLUMNS[ma]
            if source in df.columns:
                part[f"{name}_{ma}"] = df[source].to_numpy()
        # Later duplicates of a date win, as when building a dict keyed by date
        part = part[~part.index.duplicated(keep="last")]
        columns.append(part)

    if not columns:
        return pd.DataFrame(index=pd.DatetimeIndex([], name="date"))

    combined = pd.concat(columns, axis=1, join="outer").sort_index()
    combined.index.name = "date"
    return combined
