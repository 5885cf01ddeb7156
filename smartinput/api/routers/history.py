"""
/history — query and clear the switch decision history.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...api.schemas import HistorySummaryOut, SwitchRecordOut

router = APIRouter(prefix="/history", tags=["history"])


def _get_history(request: Request):
    return request.app.state.history


@router.get("", response_model=List[SwitchRecordOut])
def query_history(
    since: Optional[float] = Query(default=None, description="Unix timestamp lower bound"),
    surface_id: Optional[str] = Query(default=None),
    decision: Optional[str] = Query(
        default=None, description="execute | suppress_redundant | suppress_disabled | …"
    ),
    limit: int = Query(default=200, le=1000),
    history=Depends(_get_history),
):
    records = history.query(since=since, surface_id=surface_id, decision=decision, limit=limit)
    return [SwitchRecordOut(**r.__dict__) for r in records]


@router.get("/summary", response_model=HistorySummaryOut)
def history_summary(
    since: Optional[float] = Query(default=None, description="Unix timestamp lower bound"),
    history=Depends(_get_history),
):
    return HistorySummaryOut(
        decision_counts=history.decision_counts(since),
        failures=history.failure_count(since),
        last_mode_by_context=history.last_mode_by_context(),
    )


@router.delete("")
def clear_history(history=Depends(_get_history)):
    return {"deleted": history.clear()}
