"""In-memory session state: uploaded series, selection, and the shared date range.

The Workspace is a plain state container. Transitions (add, remove, select,
set date range) are synchronous; only the AI advisory pipeline awaits. All
mutations are expected to run on a single event loop, so a check made before
the first ``await`` cannot be interleaved with another trigger.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

import pandas as pd

from stocksage.compute.indicators import compute_all_indicators
from stocksage.compute.metrics import summarize
from stocksage.config import settings
from stocksage.data.csv_parser import CsvParseError, parse_csv_or_raise
from stocksage.llm.advisor import (
    NO_DATA_SUMMARY,
    AdvisorError,
    answer_stock_question,
    build_stock_data_summary,
    get_stock_recommendation,
    predict_next_day_price,
)
from stocksage.models.schemas import (
    DateRange,
    MetricsSummary,
    Notification,
    Prediction,
    Recommendation,
    RecommendationRequest,
)

logger = logging.getLogger(__name__)

SERIES_PALETTE = ["#2563eb", "#f97316", "#16a34a", "#dc2626", "#8b5cf6"]

# Placeholder sent as the recommendation request's volume signal
VOLUME_SIGNAL_PLACEHOLDER = "Stable"

CHAT_ERROR_ANSWER = "Sorry, I encountered an error. Please try again."

PredictFn = Callable[[str], Prediction]
RecommendFn = Callable[[RecommendationRequest], Recommendation]
AnswerFn = Callable[[str, str], str]


@dataclass
class Series:
    id: str
    name: str
    raw_text: str
    full_frame: pd.DataFrame
    color: str
    visible_frame: Optional[pd.DataFrame] = None
    summary: MetricsSummary = field(default_factory=MetricsSummary)
    prediction: Optional[Prediction] = None
    recommendation: Optional[Recommendation] = None

    def __post_init__(self):
        if self.visible_frame is None:
            self.visible_frame = self.full_frame


def display_name(filename: str) -> str:
    """Strip directories and a trailing .csv from an uploaded filename."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name.lower().endswith(".csv"):
        name = name[:-4]
    return name or "untitled"


def filter_by_date_range(df: pd.DataFrame, date_range: Optional[DateRange]) -> pd.DataFrame:
    """Rows whose calendar date falls in [start, end], or all rows without a range."""
    if date_range is None:
        return df
    days = df.index.normalize()
    mask = (days >= pd.Timestamp(date_range.start)) & (days <= pd.Timestamp(date_range.end))
    return df[mask]


class Workspace:
    def __init__(
        self,
        predict: PredictFn = predict_next_day_price,
        recommend: RecommendFn = get_stock_recommendation,
        answer: AnswerFn = answer_stock_question,
        max_notifications: Optional[int] = None,
    ):
        self._predict = predict
        self._recommend = recommend
        self._answer = answer
        self._series: Dict[str, Series] = {}
        self._ids = itertools.count(1)
        self._colors = itertools.cycle(SERIES_PALETTE)
        self.selected_ids: Set[str] = set()
        self.primary_id: Optional[str] = None
        self.date_range: Optional[DateRange] = None
        self.notifications: Deque[Notification] = deque(
            maxlen=max_notifications or settings.MAX_NOTIFICATIONS
        )

    # State transitions

    def add_series(self, raw_text: str, name: str) -> Optional[Series]:
        """Parse an upload and add it as a new, selected series.

        Returns None (and posts an error notification) when the text yields
        no bars; the Workspace is left untouched in that case.
        """
        try:
            bars = parse_csv_or_raise(raw_text)
        except CsvParseError as exc:
            self.notify("error", "Parsing Error", str(exc))
            return None
        if bars.empty:
            self.notify("error", "Parsing Error", "No rows with a valid Date were found.")
            return None

        series = Series(
            id=f"s{next(self._ids)}",
            name=display_name(name),
            raw_text=raw_text,
            full_frame=compute_all_indicators(bars),
            color=next(self._colors),
        )
        series.visible_frame = filter_by_date_range(series.full_frame, self.date_range)
        self._series[series.id] = series
        self.selected_ids.add(series.id)
        if self.primary_id is None:
            self.primary_id = series.id

        logger.info("Added series %s (%s) with %d bars", series.id, series.name, len(bars))
        self.notify("info", "Success", f"Loaded {name}", series_id=series.id)
        return series

    def remove_series(self, series_id: str) -> bool:
        series = self._series.pop(series_id, None)
        if series is None:
            return False

        self.selected_ids.discard(series_id)
        if self.primary_id == series_id:
            self.primary_id = next(iter(self._series), None)
        logger.info("Removed series %s (%s)", series_id, series.name)
        return True

    def set_date_range(self, date_range: Optional[DateRange]) -> None:
        """Store the shared range and re-project every series onto it.

        Summaries, predictions and recommendations are computed once per
        series and are not refreshed here.
        """
        self.date_range = date_range
        for series in self._series.values():
            series.visible_frame = filter_by_date_range(series.full_frame, date_range)

    def set_selected(self, series_id: str, selected: bool) -> bool:
        if series_id not in self._series:
            return False
        if selected:
            self.selected_ids.add(series_id)
        else:
            self.selected_ids.discard(series_id)
        return True

    def set_primary(self, series_id: str) -> bool:
        if series_id not in self._series:
            return False
        self.primary_id = series_id
        return True

    def notify(
        self,
        level: str,
        title: str,
        description: str,
        series_id: Optional[str] = None,
    ) -> None:
        if level == "error":
            logger.warning("%s: %s", title, description)
        self.notifications.append(
            Notification(level=level, title=title, description=description, series_id=series_id)
        )

    # Read views

    def get(self, series_id: str) -> Optional[Series]:
        return self._series.get(series_id)

    def series(self) -> List[Series]:
        return list(self._series.values())

    def displayed_series(self) -> List[Series]:
        return [s for s in self._series.values() if s.id in self.selected_ids]

    def primary_series(self) -> Optional[Series]:
        if self.primary_id is None:
            return None
        return self._series.get(self.primary_id)

    def all_dates_span(self) -> Tuple[Optional[date], Optional[date]]:
        """Earliest and latest date across every series' full history."""
        frames = [s.full_frame for s in self._series.values() if not s.full_frame.empty]
        if not frames:
            return None, None
        start = min(df.index.min() for df in frames)
        end = max(df.index.max() for df in frames)
        return start.date(), end.date()

    def stock_data_summary(self) -> str:
        """Chat digest for the primary series, rebuilt from current state."""
        series = self.primary_series()
        if series is None:
            return NO_DATA_SUMMARY
        return build_stock_data_summary(
            series.name,
            series.visible_frame,
            series.summary,
            series.prediction,
            series.recommendation,
        )

    # AI pipeline

    async def compute_if_needed(self, series_id: str) -> None:
        """Summarize a series and run prediction then recommendation, once.

        The summary is stored before the first await, so a second trigger for
        the same series sees a computed trend and returns immediately.
        """
        series = self._series.get(series_id)
        if series is None or series.summary.is_computed:
            return
        if series.visible_frame.empty:
            logger.info("Series %s has no visible bars; skipping metrics", series_id)
            return

        series.summary = summarize(series.visible_frame)
        summary = series.summary
        raw_text = series.raw_text

        try:
            prediction = await asyncio.to_thread(self._predict, raw_text)
        except AdvisorError as exc:
            self._advisory_failed(series_id, exc)
            return
        if not self._merge(series_id, prediction=prediction):
            return

        latest_close = summary.latest_close
        direction = "Up" if latest_close is not None and prediction.predicted_price > latest_close else "Down"
        request = RecommendationRequest(
            trend=summary.trend,
            volatility=summary.volatility_label,
            volume=VOLUME_SIGNAL_PLACEHOLDER,
            prediction=direction,
        )
        try:
            recommendation = await asyncio.to_thread(self._recommend, request)
        except AdvisorError as exc:
            self._advisory_failed(series_id, exc)
            return
        self._merge(series_id, recommendation=recommendation)

    async def ask(self, question: str) -> str:
        """Answer a chat question about the primary series."""
        digest = self.stock_data_summary()
        try:
            return await asyncio.to_thread(self._answer, question, digest)
        except AdvisorError as exc:
            self.notify("error", "AI Error", f"Chat request failed: {exc}")
            return CHAT_ERROR_ANSWER

    def _merge(self, series_id: str, **fields) -> bool:
        """Apply AI results to a series; drop them if it was removed meanwhile."""
        series = self._series.get(series_id)
        if series is None:
            logger.info("Discarding AI result for removed series %s", series_id)
            return False
        for key, value in fields.items():
            setattr(series, key, value)
        return True

    def _advisory_failed(self, series_id: str, exc: Exception) -> None:
        if series_id not in self._series:
            logger.info("AI call for removed series %s failed: %s", series_id, exc)
            return
        self.notify("error", "AI Error", "Failed to get AI insights.", series_id=series_id)
