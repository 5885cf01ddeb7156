"""
/actions — manual switching, enable toggle and dry classification.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import ClassificationOut, ClassifyIn, CycleResultOut, ManualSwitchIn
from ...inference.context_classifier import ContextClassifier, InputMode
from ...inference.syntax import SourceDocument
from ...router.policy_engine import ModePolicy
from ...settings import SwitchConfig, get_settings, update_settings

router = APIRouter(prefix="/actions", tags=["actions"])

_classifier = ContextClassifier()
_policy = ModePolicy()


def _get_debouncer(request: Request):
    return request.app.state.debouncer


@router.post("/switch", response_model=CycleResultOut)
async def manual_switch(body: ManualSwitchIn, debouncer=Depends(_get_debouncer)):
    """Switch a surface to the given mode, or toggle it when no mode is given."""
    mode = None
    if body.mode is not None:
        mode = InputMode.parse(body.mode)
        if mode == InputMode.UNDETERMINED:
            raise HTTPException(status_code=422, detail="mode must be latin or native")

    result = await debouncer.switch_manually(body.surface_id, mode)
    if result is None:
        raise HTTPException(status_code=404, detail="Surface not found")
    return CycleResultOut(**result.to_dict())


@router.post("/toggle-enabled")
def toggle_enabled():
    """Flip the global enabled flag and persist it."""
    enabled = not get_settings()["enabled"]
    update_settings({"enabled": enabled})
    return {"enabled": enabled}


@router.post("/classify", response_model=ClassificationOut)
def classify(body: ClassifyIn):
    """Classify an offset in a throwaway document; never switches."""
    document = SourceDocument(body.text, body.language)
    config = SwitchConfig.from_settings()
    c = _classifier.classify(document, body.offset)
    return ClassificationOut(
        region=c.kind.value,
        confidence=c.confidence,
        suggested_mode=c.suggested_mode.value,
        target_mode=_policy.resolve_target_mode(c, config).value,
        description=c.description,
        reason=_policy.describe(c, config),
    )
