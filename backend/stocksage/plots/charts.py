"""Chart generation for uploaded series.

All charts are returned as base64-encoded PNG strings.
"""

from __future__ import annotations

import base64
from io import BytesIO
from typing import Dict, Iterable, Optional

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use

import matplotlib.pyplot as plt
import matplotlib.dates as mdates
import pandas as pd

from stocksage.compute.comparison import build_comparison_frame
from stocksage.compute.indicators import flag_volume_spikes

UP_COLOR = "#16a34a"
DOWN_COLOR = "#dc2626"
VOLUME_COLOR = "#2563eb"

MA_STYLES = {
    "ma7": ("7-Day MA", (0, (3, 3))),
    "ma14": ("14-Day MA", (0, (5, 5))),
    "ma30": ("30-Day MA", (0, (7, 7))),
}


def _fig_to_base64(fig: plt.Figure) -> str:
    """Convert matplotlib figure to base64 PNG string."""
    buf = BytesIO()
    fig.savefig(buf, format="png", dpi=100, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    buf.seek(0)
    return base64.b64encode(buf.read()).decode("utf-8")


def _format_date_axis(ax, fig) -> None:
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%b %d"))
    ax.xaxis.set_major_locator(mdates.AutoDateLocator())
    fig.autofmt_xdate()


def plot_close_comparison(
    frames: Dict[str, pd.DataFrame],
    colors: Optional[Dict[str, str]] = None,
    moving_averages: Iterable[str] = ("ma7", "ma14"),
) -> str:
    """Plot closing prices of several series on a shared date axis.

    Args:
        frames: Series name -> augmented bar frame (datetime index)
        colors: Series name -> line color
        moving_averages: Which of "ma7", "ma14", "ma30" to overlay as dashed lines

    Returns:
        Base64-encoded PNG string
    """
    colors = colors or {}
    moving_averages = list(moving_averages)
    combined = build_comparison_frame(frames, moving_averages)

    fig, ax = plt.subplots(figsize=(10, 6))

    if combined.empty:
        ax.text(0.5, 0.5, "No data in selected range", ha="center", va="center", transform=ax.transAxes)
        return _fig_to_base64(fig)

    for name in frames:
        close_col = f"{name}_close"
        if close_col not in combined.columns:
            continue
        color = colors.get(name)
        # Gaps from other series' dates are bridged, as a continuous line
        ax.plot(combined.index, combined[close_col].interpolate(limit_area="inside"),
                label=name, linewidth=2, color=color)
        for ma in moving_averages:
            ma_col = f"{name}_{ma}"
            if ma_col not in combined.columns or ma not in MA_STYLES:
                continue
            label, dashes = MA_STYLES[ma]
            ax.plot(combined.index, combined[ma_col], label=f"{name} {label}",
                    linewidth=1, linestyle=dashes, color=color)

    ax.set_xlabel("Date")
    ax.set_ylabel("Price ($)")
    ax.set_title("Close Price Comparison")
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.3)
    _format_date_axis(ax, fig)

    return _fig_to_base64(fig)


def plot_candlestick(
    df: pd.DataFrame,
    name: str = "",
    predicted_price: Optional[float] = None,
) -> str:
    """Plot daily OHLC candles, with an optional predicted-close reference line."""
    fig, ax = plt.subplots(figsize=(10, 6))

    if df.empty:
        ax.text(0.5, 0.5, "No data in selected range", ha="center", va="center", transform=ax.transAxes)
        return _fig_to_base64(fig)

    dates = mdates.date2num(df.index.to_pydatetime())
    width = 0.6
    for x, (_, row) in zip(dates, df.iterrows()):
        color = UP_COLOR if row["close"] >= row["open"] else DOWN_COLOR
        ax.vlines(x, row["low"], row["high"], color=color, linewidth=1)
        body_low = min(row["open"], row["close"])
        body_height = max(abs(row["close"] - row["open"]), 1e-6)
        ax.bar(x, body_height, width=width, bottom=body_low, color=color)

    if predicted_price is not None:
        ax.axhline(y=predicted_price, color="#f97316", linestyle="--", linewidth=1.5,
                   label=f"Prediction: ${predicted_price:.2f}")
        ax.legend(loc="upper left")

    ax.xaxis_date()
    ax.set_xlabel("Date")
    ax.set_ylabel("Price ($)")
    ax.set_title(f"Candlestick Chart: {name}" if name else "Candlestick Chart")
    ax.grid(True, alpha=0.3)
    _format_date_axis(ax, fig)

    return _fig_to_base64(fig)


def plot_volume(df: pd.DataFrame, name: str = "") -> str:
    """Plot daily volume with spikes (> 2x the 20-day average) highlighted."""
    fig, ax = plt.subplots(figsize=(10, 4))

    if df.empty:
        ax.text(0.5, 0.5, "No data in selected range", ha="center", va="center", transform=ax.transAxes)
        return _fig_to_base64(fig)

    spikes = flag_volume_spikes(df)
    colors = [VOLUME_COLOR if spike else "#93c5fd" for spike in spikes]
    ax.bar(df.index, df["volume"], color=colors, width=0.8)

    if "volume_ma_20" in df.columns:
        ax.plot(df.index, df["volume_ma_20"], color="#f97316", linewidth=1, label="20-Day Avg Volume")
        ax.legend(loc="upper left")

    ax.set_xlabel("Date")
    ax.set_ylabel("Volume")
    ax.set_title(f"{name} Volume" if name else "Volume")
    ax.grid(True, alpha=0.3)
    _format_date_axis(ax, fig)

    return _fig_to_base64(fig)
