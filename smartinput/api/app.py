"""
FastAPI application — local Smart Input router API.
Runs on http://127.0.0.1:8766 by default.

Singletons (session registry, switcher, history, debouncer) live on
app.state so that each call to create_app() produces a fully independent
instance with no shared module-level globals. This makes test isolation
straightforward.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Set

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..actions.platform import PlatformSwitcher, create_switcher, detect_platform
from ..config import config
from ..events.debouncer import EventDebouncer
from ..events.history import SwitchHistory
from ..events.indicator import ModeListener
from ..events.sessions import SessionRegistry
from ..settings import SwitchConfig, get_settings, input_method_ids

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Event broadcaster — fans pipeline notifications out to WebSocket clients
# ---------------------------------------------------------------------------

class EventBroadcaster(ModeListener):

    def __init__(self, max_queue: int = 100):
        self._max_queue = max_queue
        self._subscribers: Set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event: dict) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("Dropping event for slow subscriber")

    def on_mode_changed(self, surface_id, mode, classification):
        self.publish({
            "event": "mode_changed",
            "surface_id": surface_id,
            "mode": mode.value,
            "region": classification.kind.value if classification else None,
            "confidence": classification.confidence if classification else None,
        })

    def on_switch_failed(self, surface_id, target_mode, cause):
        self.publish({
            "event": "switch_failed",
            "surface_id": surface_id,
            "target_mode": target_mode.value,
            "error": str(cause),
        })

    def on_surface_focus_changed(self, surface_id, has_focus):
        self.publish({"event": "focus_changed", "surface_id": surface_id, "has_focus": has_focus})


# ---------------------------------------------------------------------------
# Lifespan — initialises and tears down all per-app state
# ---------------------------------------------------------------------------

def _build_switcher() -> PlatformSwitcher:
    kind = config.switcher
    platform = detect_platform() if kind == "auto" else kind
    return create_switcher(
        kind,
        input_method_ids=input_method_ids(platform),
        timeout_s=config.switch_timeout_s,
        toggle_guard_ms=get_settings()["toggle_guard_ms"],
    )


def _make_lifespan(switcher: Optional[PlatformSwitcher]):

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.switcher = switcher if switcher is not None else _build_switcher()
        app.state.history = SwitchHistory(config.data_dir / config.history_db)
        app.state.registry = SessionRegistry(SwitchConfig.from_settings)
        app.state.debouncer = EventDebouncer(
            app.state.registry,
            app.state.switcher,
            history=app.state.history,
            switch_timeout_s=config.switch_timeout_s,
        )
        app.state.broadcaster = EventBroadcaster()
        app.state.debouncer.register_listener(app.state.broadcaster)

        logger.info(
            "Smart Input router ready (switcher=%s, available=%s)",
            app.state.switcher.name, app.state.switcher.is_available(),
        )

        yield

        app.state.registry.dispose_all()

    return lifespan


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(switcher: Optional[PlatformSwitcher] = None) -> FastAPI:
    app = FastAPI(
        title="Smart Input Router",
        description="Local context-aware input method switching API for editors",
        version=VERSION,
        lifespan=_make_lifespan(switcher),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "null"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routers import actions, history, settings, state, surfaces

    app.include_router(surfaces.router)
    app.include_router(actions.router)
    app.include_router(settings.router)
    app.include_router(history.router)
    app.include_router(state.router)

    @app.get("/health")
    def health(request: Request):
        switcher = getattr(request.app.state, "switcher", None)
        return {
            "status": "ok",
            "version": VERSION,
            "switcher": switcher.name if switcher else "unknown",
            "switcher_available": switcher.is_available() if switcher else False,
            "enabled": get_settings()["enabled"],
        }

    return app


app = create_app()
