"""Unit tests for the AI advisory calls (LLM mocked)."""

import json

import pytest

from stocksage.compute.indicators import compute_all_indicators
from stocksage.compute.metrics import summarize
from stocksage.data.csv_parser import parse_csv
from stocksage.llm import advisor
from stocksage.llm.advisor import (
    NO_DATA_SUMMARY,
    AdvisorError,
    answer_stock_question,
    build_stock_data_summary,
    get_stock_recommendation,
    predict_next_day_price,
)
from stocksage.models.schemas import Prediction, Recommendation, RecommendationRequest

from conftest import SAMPLE_CSV


def _mock_llm(monkeypatch, reply):
    calls = []

    def fake_call(messages, max_tokens=None, json_mode=False):
        calls.append({"messages": messages, "json_mode": json_mode})
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(advisor, "call_llm_with_fallback", fake_call)
    return calls


def test_predict_sends_raw_csv_and_parses_reply(monkeypatch):
    calls = _mock_llm(monkeypatch, json.dumps({"predictedPrice": 101.25, "analysis": "Steady."}))

    prediction = predict_next_day_price(SAMPLE_CSV)

    assert prediction.predicted_price == 101.25
    assert prediction.analysis == "Steady."
    assert calls[0]["json_mode"] is True
    assert SAMPLE_CSV in calls[0]["messages"][1]["content"]


def test_predict_accepts_fenced_json(monkeypatch):
    _mock_llm(monkeypatch, '```json\n{"predictedPrice": 5, "analysis": "ok"}\n```')

    assert predict_next_day_price(SAMPLE_CSV).predicted_price == 5.0


def test_predict_malformed_reply_raises(monkeypatch):
    _mock_llm(monkeypatch, "The price will go up.")

    with pytest.raises(AdvisorError):
        predict_next_day_price(SAMPLE_CSV)


def test_predict_missing_field_raises(monkeypatch):
    _mock_llm(monkeypatch, json.dumps({"analysis": "no number"}))

    with pytest.raises(AdvisorError):
        predict_next_day_price(SAMPLE_CSV)


def test_transport_failure_raises_advisor_error(monkeypatch):
    _mock_llm(monkeypatch, ValueError("GROQ_API_KEY not set"))

    with pytest.raises(AdvisorError):
        predict_next_day_price(SAMPLE_CSV)


def test_recommendation_prompt_and_reply(monkeypatch):
    calls = _mock_llm(monkeypatch, json.dumps({"recommendation": "Hold", "reasoning": "Mixed."}))
    request = RecommendationRequest(trend="Uptrend", volatility="High", prediction="Down")

    result = get_stock_recommendation(request)

    assert result.recommendation == "Hold"
    prompt = calls[0]["messages"][1]["content"]
    assert "Trend: Uptrend" in prompt
    assert "Volatility: High" in prompt
    assert "Volume: Stable" in prompt
    assert "Next Day Prediction: Down" in prompt


def test_recommendation_outside_vocabulary_raises(monkeypatch):
    _mock_llm(monkeypatch, json.dumps({"recommendation": "Strong Buy", "reasoning": "!"}))
    request = RecommendationRequest(trend="Uptrend", volatility="Low", prediction="Up")

    with pytest.raises(AdvisorError):
        get_stock_recommendation(request)


def test_answer_includes_summary_and_question(monkeypatch):
    calls = _mock_llm(monkeypatch, json.dumps({"answer": "It is rising."}))

    answer = answer_stock_question("Is it rising?", "Overall Trend: Uptrend.")

    assert answer == "It is rising."
    content = calls[0]["messages"][1]["content"]
    assert "Overall Trend: Uptrend." in content
    assert "Question: Is it rising?" in content


def test_build_summary_without_data():
    summary = summarize(parse_csv(""))
    assert build_stock_data_summary("x", parse_csv(""), summary) == NO_DATA_SUMMARY


def test_build_summary_with_insights():
    df = compute_all_indicators(parse_csv(SAMPLE_CSV))
    digest = build_stock_data_summary(
        "ACME",
        df,
        summarize(df),
        Prediction(predicted_price=12.346, analysis="Up move"),
        Recommendation(recommendation="Sell", reasoning="Overbought"),
    )

    assert digest.splitlines() == [
        "Data for: ACME.",
        "Date Range: Jan 1, 2024 to Jan 2, 2024.",
        "Latest Close Price: 11.50.",
        "Overall Trend: Uptrend.",
        "Volatility: Low (0.00%).",
        "Next-Day Price Prediction: 12.35 (Up move).",
        "AI Recommendation: Sell (Overbought).",
    ]
