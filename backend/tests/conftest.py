"""Shared test fixtures."""

import pandas as pd
import pytest

from stocksage.api import insights as insights_api
from stocksage.api import series as series_api
from stocksage.api.dependencies import get_workspace
from stocksage.main import app
from stocksage.models.schemas import Prediction, Recommendation
from stocksage.workspace import Workspace


SAMPLE_CSV = (
    "Date,Open,High,Low,Close,Volume\n"
    "2024-01-01,10,11,9,10.5,1000\n"
    "2024-01-02,10.5,12,10,11.5,1200"
)


def make_csv(closes, start="2024-01-01", volumes=None) -> str:
    """Build CSV text with one row per close, on consecutive days."""
    dates = pd.date_range(start=start, periods=len(closes), freq="D")
    volumes = volumes or [1000] * len(closes)
    rows = ["Date,Open,High,Low,Close,Volume"]
    for day, close, volume in zip(dates, closes, volumes):
        rows.append(f"{day:%Y-%m-%d},{close},{close + 1},{close - 1},{close},{volume}")
    return "\n".join(rows)


class FakeAdvisor:
    """Records AI calls and returns canned responses."""

    def __init__(self, predicted_price=12.0, recommendation="Buy"):
        self.predicted_price = predicted_price
        self.recommendation = recommendation
        self.predict_calls = []
        self.recommend_calls = []
        self.chat_calls = []

    def predict(self, csv_text):
        self.predict_calls.append(csv_text)
        return Prediction(predicted_price=self.predicted_price, analysis="Momentum continues.")

    def recommend(self, request):
        self.recommend_calls.append(request)
        return Recommendation(recommendation=self.recommendation, reasoning="Trend is up.")

    def answer(self, question, summary):
        self.chat_calls.append((question, summary))
        return f"Answer to: {question}"


@pytest.fixture(autouse=True)
def _disable_rate_limit():
    """Disable rate limiting for all tests."""
    limiters = [app.state.limiter, series_api.limiter, insights_api.limiter]
    for limiter in limiters:
        limiter.enabled = False
    yield
    for limiter in limiters:
        limiter.enabled = True


@pytest.fixture
def advisor():
    return FakeAdvisor()


@pytest.fixture
def workspace(advisor):
    """Fresh Workspace wired to the fake advisor and to the API."""
    ws = Workspace(
        predict=advisor.predict,
        recommend=advisor.recommend,
        answer=advisor.answer,
    )
    app.dependency_overrides[get_workspace] = lambda: ws
    yield ws
    app.dependency_overrides.clear()
