"""Charts, chat digest and chat endpoints."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from stocksage.api.dependencies import get_workspace
from stocksage.models.schemas import ChatAnswer, ChatRequest, Plots
from stocksage.plots.charts import plot_candlestick, plot_close_comparison, plot_volume
from stocksage.workspace import Workspace

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


@router.get("/charts", response_model=Plots)
async def get_charts(
    moving_averages: List[str] = Query(default=["ma7", "ma14"]),
    show_prediction: bool = True,
    workspace: Workspace = Depends(get_workspace),
) -> Plots:
    """Render comparison chart for displayed series and detail charts for the primary."""
    displayed = workspace.displayed_series()
    primary = workspace.primary_series()

    close_comparison = None
    if displayed:
        # Disambiguate duplicate names so aligned columns stay distinct
        names = {}
        for series in displayed:
            key = series.name if series.name not in names else f"{series.name} ({series.id})"
            names[key] = series
        close_comparison = plot_close_comparison(
            {key: s.visible_frame for key, s in names.items()},
            colors={key: s.color for key, s in names.items()},
            moving_averages=moving_averages,
        )

    candlestick = None
    volume = None
    if primary is not None:
        predicted_price = None
        if show_prediction and primary.prediction is not None:
            predicted_price = primary.prediction.predicted_price
        candlestick = plot_candlestick(primary.visible_frame, name=primary.name, predicted_price=predicted_price)
        volume = plot_volume(primary.visible_frame, name=primary.name)

    return Plots(close_comparison=close_comparison, candlestick=candlestick, volume=volume)


@router.get("/summary")
async def get_summary(workspace: Workspace = Depends(get_workspace)) -> dict:
    """Return the chat digest for the primary series."""
    return {"stockDataSummary": workspace.stock_data_summary()}


@router.post("/chat", response_model=ChatAnswer)
@limiter.limit("20/minute")
async def chat(
    request: Request,
    body: ChatRequest,
    workspace: Workspace = Depends(get_workspace),
) -> ChatAnswer:
    """Answer a question about the primary series.

    Example request:
    {
        "question": "Is the trend up or down?"
    }
    """
    question = body.question.strip()
    if not question:
        raise HTTPException(status_code=400, detail="Question field required")
    if workspace.primary_series() is None:
        raise HTTPException(status_code=400, detail="Please upload a CSV first")

    answer = await workspace.ask(question)
    return ChatAnswer(answer=answer)
