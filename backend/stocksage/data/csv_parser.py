"""CSV ingestion for uploaded OHLCV files.

Expected layout: a header row naming Date, Open, High, Low, Close, Volume in
any order (extra columns are ignored), followed by one row per trading day.
"""

from __future__ import annotations

import io
import logging
import re

import pandas as pd

logger = logging.getLogger(__name__)

DATE_COLUMN = "Date"
NUMERIC_COLUMNS = ["Open", "High", "Low", "Close", "Volume"]
RECOGNIZED_COLUMNS = [DATE_COLUMN] + NUMERIC_COLUMNS

BAR_COLUMNS = ["open", "high", "low", "close", "volume"]

LINE_BREAK = re.compile(r"\r\n|\n")


class CsvParseError(Exception):
    """Raised when uploaded CSV text cannot be turned into bars."""


def empty_bar_frame() -> pd.DataFrame:
    """Frame with the bar columns and a date index, but no rows."""
    df = pd.DataFrame(columns=BAR_COLUMNS, dtype=float)
    df.index = pd.DatetimeIndex([], name="date")
    return df


def _to_wall_clock(value: str) -> pd.Timestamp:
    """Parse one Date cell into a naive timestamp.

    An explicit UTC offset is dropped, keeping the local wall-clock time, so
    ``2024-01-02 00:00:00+09:00`` stays on 2 January.
    """
    ts = pd.to_datetime(value, errors="coerce", format="mixed")
    if pd.isna(ts) or ts.tzinfo is None:
        return ts
    return ts.tz_localize(None)


def _fit_to_header(lines: list[str]) -> list[str]:
    """Drop trailing fields of data rows that are wider than the header."""
    width = len(lines[0].split(","))
    return [lines[0]] + [",".join(line.split(",")[:width]) for line in lines[1:]]


def parse_csv_or_raise(text: str) -> pd.DataFrame:
    """Parse CSV text into a date-indexed bar frame, sorted ascending.

    Rows whose Date cannot be parsed are dropped. Numeric cells that cannot
    be parsed become NaN. The index is always tz-naive, and fields beyond the
    header width are ignored.

    Raises:
        CsvParseError: fewer than two lines, missing columns, or a
            structurally broken file.
    """
    lines = LINE_BREAK.split((text or "").strip())
    if len(lines) < 2:
        raise CsvParseError("CSV must contain a header and at least one data row")

    try:
        raw = pd.read_csv(
            io.StringIO("\n".join(_fit_to_header(lines))),
            dtype=str,
            skipinitialspace=True,
            keep_default_na=False,
            index_col=False,
            lineterminator="\n",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise CsvParseError(f"Could not parse CSV file: {exc}") from exc

    raw.columns = [str(col).strip() for col in raw.columns]
    missing = [col for col in RECOGNIZED_COLUMNS if col not in raw.columns]
    if missing:
        raise CsvParseError(f"Missing required columns: {', '.join(missing)}")

    try:
        dates = pd.to_datetime(raw[DATE_COLUMN].str.strip().map(_to_wall_clock))
    except (TypeError, ValueError) as exc:
        raise CsvParseError(f"Could not parse Date column: {exc}") from exc

    df = pd.DataFrame({"date": dates})
    for col in NUMERIC_COLUMNS:
        df[col.lower()] = pd.to_numeric(raw[col].str.strip(), errors="coerce").astype(float)

    dropped = int(df["date"].isna().sum())
    if dropped:
        logger.info("Dropped %d row(s) with unparseable dates", dropped)

    df = df.dropna(subset=["date"])
    df = df.sort_values("date", kind="stable")
    df.set_index("date", inplace=True)
    return df[BAR_COLUMNS]


def parse_csv(text: str) -> pd.DataFrame:
    """Lenient variant of ``parse_csv_or_raise``: never raises.

    Any failure is logged and an empty frame is returned; callers treat an
    empty result as a non-fatal input error.
    """
    try:
        return parse_csv_or_raise(text)
    except CsvParseError as exc:
        logger.warning("CSV parsing failed: %s", exc)
        return empty_bar_frame()
