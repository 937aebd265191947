"""FastAPI app — health check, REST answers and the interview WebSocket.

Data flow (buffered mode):
  1. Client streams base64 audio in ``audio-chunk`` messages → session buffer.
  2. ``transcribe`` → silence heuristics → STT provider → ``transcription``.
  3. Question text (+ resume context) → text-generation provider with
     bounded retry → ``qa-response``.

In realtime mode step 1-2 become a live proxy to Deepgram's streaming
endpoint, emitting ``transcription-delta`` and ``transcription`` events.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from krackai.answer.generators import build_generator
from krackai.audio.realtime import build_realtime_transcriber
from krackai.audio.stt import build_transcriber
from krackai.config import EngineSettings, load_settings
from krackai.debug import event_log
from krackai.pipeline.manager import SessionManager
from krackai.routes import router as interview_router
from krackai.telemetry import init_telemetry

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_manager(settings: EngineSettings) -> SessionManager:
    """Wire the configured adapters into a session manager.

    Raises ``ConfigurationError`` when a selected provider has no credentials.
    """
    settings.require_credentials()
    if settings.session_mode == "realtime":
        return SessionManager(
            settings,
            generator=build_generator(settings),
            realtime=build_realtime_transcriber(settings),
        )
    return SessionManager(
        settings,
        generator=build_generator(settings),
        transcriber=build_transcriber(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise tracing and, unless one was injected, build the session manager."""
    init_telemetry()
    if getattr(app.state, "manager", None) is None:
        app.state.manager = build_manager(load_settings())
    logger.info("Interview engine ready (mode=%s).", app.state.manager.mode)
    yield
    logger.info("Interview engine shutting down. Active sessions: %d", app.state.manager.active_count())


def create_app(manager: SessionManager | None = None) -> FastAPI:
    """Build the app. Tests pass a *manager* with fake adapters."""
    app = FastAPI(title="KrackAI Interview Engine", version="0.1.0", lifespan=lifespan)
    app.state.manager = manager

    origins = list(manager.settings.cors_origins) if manager else list(
        EngineSettings.from_env().cors_origins
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.include_router(interview_router)

    @app.get("/health")
    async def health() -> dict:
        current: SessionManager | None = app.state.manager
        return {
            "status": "ok",
            "mode": current.mode if current else None,
            "active_sessions": current.active_count() if current else 0,
        }

    @app.get("/debug/events")
    async def debug_events(limit: int = 100) -> dict:
        return {"events": event_log.get_recent_events(limit)}

    @app.websocket("/")
    @app.websocket("/ws")
    async def interview_stream(websocket: WebSocket) -> None:
        await websocket.accept()
        current: SessionManager = websocket.app.state.manager

        async with current.open(websocket.send_json) as session:
            try:
                while True:
                    try:
                        message = await websocket.receive()
                    except RuntimeError:
                        # "Cannot call receive once a disconnect message has been received"
                        logger.info("[WS] Client disconnected (runtime): %s", session.session_id)
                        break

                    if message["type"] == "websocket.disconnect":
                        logger.info("[WS] Client disconnected: %s", session.session_id)
                        break
                    if message.get("text") is not None:
                        await session.handle_text(message["text"])
                    elif message.get("bytes") is not None:
                        await session.reject_binary()
            except WebSocketDisconnect:
                logger.info("[WS] Client disconnected: %s", session.session_id)

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "krackai.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )
