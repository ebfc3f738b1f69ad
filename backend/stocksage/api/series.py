"""Series upload, removal, selection and date-range endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from stocksage.api.dependencies import get_workspace
from stocksage.compute.indicators import frame_to_bars
from stocksage.config import settings
from stocksage.models.schemas import (
    BarsResponse,
    DateRangeRequest,
    DateSpan,
    Notification,
    PrimaryRequest,
    SelectionRequest,
    SeriesOut,
    UploadRequest,
)
from stocksage.workspace import Series, Workspace

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()
logger = logging.getLogger(__name__)


def _series_out(series: Series, workspace: Workspace) -> SeriesOut:
    full = series.full_frame
    return SeriesOut(
        id=series.id,
        name=series.name,
        color=series.color,
        selected=series.id in workspace.selected_ids,
        is_primary=series.id == workspace.primary_id,
        bar_count=len(full),
        visible_bar_count=len(series.visible_frame),
        min_date=full.index.min().date() if not full.empty else None,
        max_date=full.index.max().date() if not full.empty else None,
        summary=series.summary,
        volatility_display=series.summary.volatility_display,
        prediction=series.prediction,
        recommendation=series.recommendation,
    )


def _require_series(workspace: Workspace, series_id: str) -> Series:
    series = workspace.get(series_id)
    if series is None:
        raise HTTPException(status_code=404, detail=f"Unknown series: {series_id}")
    return series


@router.get("/series", response_model=list[SeriesOut])
async def list_series(workspace: Workspace = Depends(get_workspace)):
    return [_series_out(s, workspace) for s in workspace.series()]


@router.post("/series", response_model=SeriesOut, status_code=201)
@limiter.limit("10/minute")
async def upload_series(
    request: Request,
    body: UploadRequest,
    background_tasks: BackgroundTasks,
    workspace: Workspace = Depends(get_workspace),
):
    """Add an uploaded CSV as a new series.

    Metrics and AI insights are computed in the background after the
    response is sent.
    """
    if not body.name.lower().endswith(".csv"):
        logger.info("Rejected upload %r: not a CSV file", body.name)
        workspace.notify("error", "Invalid File Type", "Please upload a CSV file.")
        raise HTTPException(status_code=400, detail="Please upload a CSV file.")
    if len(body.csv.encode("utf-8")) > settings.MAX_CSV_BYTES:
        raise HTTPException(status_code=400, detail="CSV file too large")

    series = workspace.add_series(body.csv, body.name)
    if series is None:
        raise HTTPException(status_code=400, detail="Could not parse CSV file.")

    background_tasks.add_task(workspace.compute_if_needed, series.id)
    return _series_out(series, workspace)


@router.delete("/series/{series_id}", status_code=204)
async def remove_series(series_id: str, workspace: Workspace = Depends(get_workspace)):
    if not workspace.remove_series(series_id):
        raise HTTPException(status_code=404, detail=f"Unknown series: {series_id}")


@router.get("/series/{series_id}/bars", response_model=BarsResponse)
async def get_bars(
    series_id: str,
    visible: bool = True,
    workspace: Workspace = Depends(get_workspace),
):
    series = _require_series(workspace, series_id)
    frame = series.visible_frame if visible else series.full_frame
    return BarsResponse(series_id=series.id, visible=visible, bars=frame_to_bars(frame))


@router.put("/series/{series_id}/selected", response_model=SeriesOut)
async def set_selected(
    series_id: str,
    body: SelectionRequest,
    workspace: Workspace = Depends(get_workspace),
):
    series = _require_series(workspace, series_id)
    workspace.set_selected(series_id, body.selected)
    return _series_out(series, workspace)


@router.put("/primary", response_model=SeriesOut)
async def set_primary(body: PrimaryRequest, workspace: Workspace = Depends(get_workspace)):
    series = _require_series(workspace, body.series_id)
    workspace.set_primary(series.id)
    return _series_out(series, workspace)


@router.get("/date_range", response_model=DateRangeRequest)
async def get_date_range(workspace: Workspace = Depends(get_workspace)):
    return DateRangeRequest(date_range=workspace.date_range)


@router.put("/date_range", response_model=DateRangeRequest)
async def set_date_range(body: DateRangeRequest, workspace: Workspace = Depends(get_workspace)):
    """Set the shared date range; ``null`` restores the full span."""
    workspace.set_date_range(body.date_range)
    return DateRangeRequest(date_range=workspace.date_range)


@router.get("/date_span", response_model=DateSpan)
async def get_date_span(workspace: Workspace = Depends(get_workspace)):
    min_date, max_date = workspace.all_dates_span()
    return DateSpan(min_date=min_date, max_date=max_date)


@router.get("/notifications", response_model=list[Notification])
async def get_notifications(workspace: Workspace = Depends(get_workspace)):
    return list(workspace.notifications)
