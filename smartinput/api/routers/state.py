"""
/platform and /state — platform capabilities + WebSocket event stream.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect

from ...actions.platform import platform_info
from ...api.schemas import PlatformOut
from ...settings import input_method_ids

router = APIRouter(tags=["state"])


def _get_switcher(request: Request):
    return request.app.state.switcher


@router.get("/platform", response_model=PlatformOut)
def get_platform(switcher=Depends(_get_switcher)):
    """Detected platform, active switcher and the input method ids it uses."""
    info = platform_info()
    return PlatformOut(
        **info,
        switcher=switcher.name,
        switcher_available=switcher.is_available(),
        supported_modes=sorted(m.value for m in switcher.supported_modes()),
        input_methods=input_method_ids(info["platform"]),
    )


@router.websocket("/state/ws")
async def state_websocket(websocket: WebSocket):
    """
    WebSocket stream — pushes mode_changed, switch_failed and focus_changed
    events as they happen. Editor status bars subscribe to this.
    """
    broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    queue = broadcaster.subscribe()
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unsubscribe(queue)
