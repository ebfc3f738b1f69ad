from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Bar(BaseModel):
    date: date
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[float] = None
    # Trailing averages are None until a full window exists
    ma7: Optional[float] = None
    ma14: Optional[float] = None
    ma30: Optional[float] = None
    volume_ma20: Optional[float] = None
    volume_spike: bool = False


class MetricsSummary(BaseModel):
    trend: str = "N/A"  # "Uptrend", "Downtrend", or "N/A"
    volatility_label: str = "N/A"  # "High", "Medium", "Low", or "N/A"
    volatility: Optional[float] = None  # annualized, as a fraction
    latest_volume: Optional[float] = None
    latest_close: Optional[float] = None

    @property
    def is_computed(self) -> bool:
        return self.trend != "N/A"

    @property
    def volatility_display(self) -> str:
        if self.volatility is None:
            return "N/A"
        return f"{self.volatility_label} ({self.volatility * 100:.2f}%)"


# AI collaborator contract. Field aliases match the wire names.

class Prediction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    predicted_price: float = Field(..., alias="predictedPrice")
    analysis: str


class RecommendationRequest(BaseModel):
    trend: str
    volatility: str
    volume: str = "Stable"
    prediction: Literal["Up", "Down", "Stable"]


class Recommendation(BaseModel):
    recommendation: Literal["Buy", "Hold", "Sell"]
    reasoning: str


class ChatAnswer(BaseModel):
    answer: str


class Notification(BaseModel):
    level: Literal["info", "error"] = "info"
    title: str
    description: str
    series_id: Optional[str] = None


class DateRange(BaseModel):
    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self):
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class DateSpan(BaseModel):
    min_date: Optional[date] = None
    max_date: Optional[date] = None


class SeriesOut(BaseModel):
    id: str
    name: str
    color: str
    selected: bool
    is_primary: bool
    bar_count: int
    visible_bar_count: int
    min_date: Optional[date] = None
    max_date: Optional[date] = None
    summary: MetricsSummary
    volatility_display: str
    prediction: Optional[Prediction] = None
    recommendation: Optional[Recommendation] = None


class UploadRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    csv: str


class SelectionRequest(BaseModel):
    selected: bool


class PrimaryRequest(BaseModel):
    series_id: str


class DateRangeRequest(BaseModel):
    date_range: Optional[DateRange] = None


class ChatRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=1000)


class Plots(BaseModel):
    close_comparison: Optional[str] = None  # base64 PNG
    candlestick: Optional[str] = None  # base64 PNG, primary series only
    volume: Optional[str] = None  # base64 PNG, primary series only


class BarsResponse(BaseModel):
    series_id: str
    visible: bool
    bars: List[Bar]
