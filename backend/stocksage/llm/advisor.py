"""AI advisory calls: next-day prediction, recommendation, and chat answers.

Each call sends a prompt through the LLM client, asks for a JSON object and
validates it against the response model. Any failure is raised as
``AdvisorError`` so callers can degrade gracefully.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Optional, Type, TypeVar

import pandas as pd
from pydantic import BaseModel, ValidationError

from stocksage.llm.client import call_llm_with_fallback
from stocksage.models.schemas import (
    ChatAnswer,
    MetricsSummary,
    Prediction,
    Recommendation,
    RecommendationRequest,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

NO_DATA_SUMMARY = "No stock data is loaded."

PREDICTION_PROMPT = (
    "You are an AI stock market analyst. Analyze the historical stock data "
    "provided and predict the next day's closing price.\n"
    "\n"
    "Consider trends, volume, and volatility.\n"
    "Return ONLY valid JSON with these fields:\n"
    '- predictedPrice: number (the predicted closing price for the next day)\n'
    "- analysis: string (a brief analysis of the factors influencing the prediction)\n"
)

RECOMMENDATION_PROMPT = (
    "Based on the stock data provided by the user, provide a recommendation "
    "(Buy, Hold, or Sell) and explain your reasoning.\n"
    "\n"
    "Return ONLY valid JSON with these fields:\n"
    '- recommendation: one of "Buy", "Hold", "Sell"\n'
    "- reasoning: string (the detailed reasoning behind the recommendation)\n"
)

CHAT_PROMPT = (
    "You are a chatbot assistant helping users understand stock data.\n"
    "\n"
    "You have access to a summary of the stock data, including trends, volume, "
    "price predictions, and recommendations. Use this information to answer the "
    "user's question as accurately and informatively as possible. If the question "
    "cannot be answered using the provided stock data summary, respond politely "
    "that you are unable to answer the question.\n"
    "\n"
    "Return ONLY valid JSON with one field:\n"
    "- answer: string\n"
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class AdvisorError(Exception):
    """Raised when an AI advisory call fails or returns an unusable response."""


def predict_next_day_price(historical_csv: str) -> Prediction:
    """Ask the LLM for tomorrow's close from the raw uploaded CSV."""
    messages = [
        {"role": "system", "content": PREDICTION_PROMPT},
        {"role": "user", "content": f"Historical Data (CSV):\n{historical_csv}"},
    ]
    return _ask(messages, Prediction)


def get_stock_recommendation(request: RecommendationRequest) -> Recommendation:
    """Ask the LLM for Buy/Hold/Sell given summarized signals."""
    user_prompt = "\n".join(
        [
            f"Trend: {request.trend}",
            f"Volatility: {request.volatility}",
            f"Volume: {request.volume}",
            f"Next Day Prediction: {request.prediction}",
        ]
    )
    messages = [
        {"role": "system", "content": RECOMMENDATION_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
    return _ask(messages, Recommendation)


def answer_stock_question(question: str, stock_data_summary: str) -> str:
    messages = [
        {"role": "system", "content": CHAT_PROMPT},
        {
            "role": "user",
            "content": f"Stock Data Summary:\n{stock_data_summary}\n\nQuestion: {question}",
        },
    ]
    return _ask(messages, ChatAnswer).answer


def _ask(messages, response_model: Type[ModelT]) -> ModelT:
    try:
        content = call_llm_with_fallback(messages, json_mode=True)
    except Exception as exc:  # noqa: BLE001 - surfaced as AdvisorError
        raise AdvisorError(f"LLM call failed: {exc}") from exc
    return _parse_response(content, response_model)


def _parse_response(content: str, response_model: Type[ModelT]) -> ModelT:
    """Validate an LLM JSON reply, tolerating a surrounding code fence."""
    cleaned = _CODE_FENCE.sub("", content.strip())
    try:
        return response_model.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error("Malformed %s response from LLM: %s", response_model.__name__, exc)
        raise AdvisorError(f"Malformed {response_model.__name__} response") from exc


def build_stock_data_summary(
    name: str,
    df: pd.DataFrame,
    summary: MetricsSummary,
    prediction: Optional[Prediction] = None,
    recommendation: Optional[Recommendation] = None,
) -> str:
    """Plain-text digest of one series, sent along with every chat question."""
    if df.empty:
        return NO_DATA_SUMMARY

    first_date = df.index[0]
    last_date = df.index[-1]
    latest_close = df["close"].iloc[-1]

    if prediction is not None:
        prediction_text = f"{prediction.predicted_price:.2f} ({prediction.analysis})"
    else:
        prediction_text = "Not available"
    if recommendation is not None:
        recommendation_text = f"{recommendation.recommendation} ({recommendation.reasoning})"
    else:
        recommendation_text = "Not available"

    lines = [
        f"Data for: {name}.",
        f"Date Range: {_format_date(first_date)} to {_format_date(last_date)}.",
        f"Latest Close Price: {_format_number(latest_close)}.",
        f"Overall Trend: {summary.trend}.",
        f"Volatility: {summary.volatility_display}.",
        f"Next-Day Price Prediction: {prediction_text}.",
        f"AI Recommendation: {recommendation_text}.",
    ]
    return "\n".join(lines)


def _format_date(value) -> str:
    ts = pd.Timestamp(value)
    return f"{ts:%b} {ts.day}, {ts.year}"


def _format_number(value) -> str:
    if value is None or pd.isna(value):
        return "n/a"
    return f"{float(value):.2f}"
