"""Scalar summary metrics for a bar series.

All computations are deterministic - these functions never call LLMs.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

from stocksage.models.schemas import MetricsSummary

TRADING_DAYS_PER_YEAR = 252
HIGH_VOLATILITY_THRESHOLD = 0.30
MEDIUM_VOLATILITY_THRESHOLD = 0.15


def compute_trend(df: pd.DataFrame) -> str:
    """Uptrend if the last close is strictly above the first, else Downtrend."""
    if df.empty:
        return "N/A"
    if len(df) > 1 and df["close"].iloc[-1] > df["close"].iloc[0]:
        return "Uptrend"
    return "Downtrend"


def compute_annualized_volatility(df: pd.DataFrame) -> Optional[float]:
    """Population std-dev of daily simple returns, scaled by sqrt(252).

    Returns None with fewer than two bars, where no return exists.
    """
    if len(df) < 2:
        return None

    close = df["close"]
    returns = (close.diff() / close.shift(1)).iloc[1:]
    std_dev = float(np.sqrt(((returns - returns.mean()) ** 2).mean()))
    if np.isnan(std_dev):
        return None
    return float(std_dev * np.sqrt(TRADING_DAYS_PER_YEAR))


def classify_volatility(volatility: Optional[float]) -> str:
    """Label annualized volatility: > 30% High, > 15% Medium, else Low."""
    if volatility is None:
        return "N/A"
    if volatility > HIGH_VOLATILITY_THRESHOLD:
        return "High"
    if volatility > MEDIUM_VOLATILITY_THRESHOLD:
        return "Medium"
    return "Low"


def summarize(df: pd.DataFrame) -> MetricsSummary:
    """Derive trend, volatility and latest values from a bar frame.

    An empty frame yields the all-N/A summary.
    """
    if df.empty:
        return MetricsSummary()

    volatility = compute_annualized_volatility(df)
    last = df.iloc[-1]
    return MetricsSummary(
        trend=compute_trend(df),
        volatility_label=classify_volatility(volatility),
        volatility=volatility,
        latest_volume=None if pd.isna(last["volume"]) else float(last["volume"]),
        latest_close=None if pd.isna(last["close"]) else float(last["close"]),
    )
