"""
/surfaces — editor surface lifecycle and caret / document / focus events.

Event endpoints answer 202 even for unknown surfaces: a late event from a
tab the host already closed is not an error. Handlers run on the event
loop because they schedule and cancel debounce tasks.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import CaretIn, CycleResultOut, DocumentIn, FocusIn, SurfaceOpenIn, SurfaceOut
from ...errors import SessionLifecycleError
from ...inference.syntax import SourceDocument

router = APIRouter(prefix="/surfaces", tags=["surfaces"])


def _get_registry(request: Request):
    return request.app.state.registry


def _get_debouncer(request: Request):
    return request.app.state.debouncer


# ── Lifecycle ──────────────────────────────────────────────────────────────

@router.post("", response_model=SurfaceOut, status_code=201)
async def open_surface(body: SurfaceOpenIn, registry=Depends(_get_registry)):
    """Open a surface; re-opening an existing id returns it unchanged."""
    document = SourceDocument(body.text, body.language) if body.text is not None else None
    session = registry.open(body.surface_id, document, language=body.language)
    return SurfaceOut(**session.snapshot())


@router.get("", response_model=List[SurfaceOut])
async def list_surfaces(registry=Depends(_get_registry)):
    return [SurfaceOut(**registry.get(sid).snapshot()) for sid in registry.surface_ids()]


@router.get("/{surface_id}", response_model=SurfaceOut)
async def get_surface(surface_id: str, registry=Depends(_get_registry)):
    try:
        session = registry.require(surface_id)
    except SessionLifecycleError:
        raise HTTPException(status_code=404, detail="Surface not found")
    return SurfaceOut(**session.snapshot())


@router.delete("/{surface_id}")
async def close_surface(surface_id: str, registry=Depends(_get_registry)):
    return {"closed": registry.close(surface_id)}


# ── Events ─────────────────────────────────────────────────────────────────

@router.post("/{surface_id}/caret", status_code=202)
async def caret_moved(
    surface_id: str,
    body: CaretIn,
    registry=Depends(_get_registry),
    debouncer=Depends(_get_debouncer),
):
    """Report a caret move; the decision cycle runs after the debounce window."""
    session = registry.get(surface_id)
    if session is None:
        return {"accepted": False}

    offset = body.offset
    if offset is None:
        document = session.document
        offset = document.logical_offset_of(body.line, body.column) if isinstance(document, SourceDocument) else 0

    now = debouncer.from_wall_clock_ms(body.timestamp_ms) if body.timestamp_ms is not None else None
    task = debouncer.on_cursor_moved(surface_id, offset, now)
    return {"accepted": True, "offset": offset, "scheduled": task is not None}


@router.post("/{surface_id}/document", status_code=202)
async def document_changed(
    surface_id: str,
    body: DocumentIn,
    debouncer=Depends(_get_debouncer),
):
    accepted = debouncer.on_document_changed(surface_id, SourceDocument(body.text, body.language))
    return {"accepted": accepted}


@router.post("/{surface_id}/focus", status_code=202)
async def focus_changed(
    surface_id: str,
    body: FocusIn,
    debouncer=Depends(_get_debouncer),
):
    """Focus gained runs a cycle immediately; focus lost only cancels and hides."""
    if not body.has_focus:
        return {"accepted": debouncer.on_focus_lost(surface_id), "cycle": None}

    result = await debouncer.on_focus_gained(surface_id, body.offset)
    return {
        "accepted": True,
        "cycle": CycleResultOut(**result.to_dict()) if result is not None else None,
    }
