"""FastAPI web server for the raffle drawing display."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from backend.client import DrawingBackendClient
from drawing.engine import DrawingEngine
from drawing.gateway import CommandResult

from utils.logger import get_logger

logger = get_logger(__name__)

# Store events relayed to display clients; the timeline is served on demand only
BROADCAST_EVENTS = (
    "snapshot_update",
    "panel_update",
    "panels_reset",
    "stages_update",
    "counters_update",
    "glow_update",
    "winner_update",
    "gateway_update",
    "error_update",
    "log_update",
)


class RevealDigitRequest(BaseModel):
    digit: int = Field(..., ge=0, le=9)


class DrawingWebServer:
    """HTTP and WebSocket surface for the drawing display and its operator controls."""

    def __init__(
        self,
        config: Dict[str, Any],
        engine: DrawingEngine,
        backend_client: Optional[DrawingBackendClient] = None,
    ) -> None:
        self.config = config
        self.engine = engine
        self.backend_client = backend_client
        self._store = engine.store

        self.app = FastAPI(
            title="Raffle Drawing Display API",
            description="View state and operator commands for the live raffle drawing",
            version="1.0.0",
        )

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._broadcast_queue: Optional[asyncio.Queue[Tuple[str, Dict[str, Any] | None]]] = None
        self._broadcast_task: Optional[asyncio.Task[None]] = None
        self._ws_lock: Optional[asyncio.Lock] = None
        self._listeners_registered = False
        self._websockets: Set[WebSocket] = set()

        self._setup_middleware()
        self._setup_routes()

    # ------------------------------------------------------------------
    # FastAPI scaffolding
    # ------------------------------------------------------------------
    def _setup_middleware(self) -> None:
        origins = self.config.get("server", {}).get("cors_origins") or ["*"]
        if isinstance(origins, str):
            origins = [item.strip() for item in origins.split(",") if item.strip()]
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routes(self) -> None:
        # ------------------------------------------------------------------
        # Health & state
        # ------------------------------------------------------------------
        @self.app.get("/api/health")
        async def health_check() -> Dict[str, Any]:
            backend_health: Dict[str, Any] | None = None
            if self.backend_client:
                try:
                    backend_health = await self.backend_client.health_check(self.engine.raffle_id)
                except Exception as exc:
                    logger.warning("Backend health probe failed: %s", exc)
                    backend_health = {"status": "error", "detail": str(exc)}
            return {
                "status": "ok",
                "timestamp": datetime.utcnow().isoformat(),
                "components": {
                    "web": True,
                    "engine": self.engine.get_status(),
                    "backend": backend_health or {"status": "unavailable"},
                    "websocket_connections": len(self._websockets),
                },
            }

        @self.app.get("/api/drawing")
        async def get_drawing() -> Dict[str, Any]:
            return self.engine.view()

        @self.app.get("/api/drawing/timeline")
        async def get_timeline(limit: int = 100, kind: Optional[str] = None) -> Dict[str, Any]:
            limit = max(1, min(limit, 500))
            events = self._store.serialize_timeline(limit=limit, kind=kind)
            return {"events": events, "returned": len(events)}

        @self.app.get("/api/drawing/log")
        async def get_elimination_log(limit: int = 50) -> Dict[str, Any]:
            limit = max(1, min(limit, 50))
            entries = self._store.serialize_log(limit=limit)
            return {"entries": entries, "returned": len(entries)}

        # ------------------------------------------------------------------
        # Operator commands
        # ------------------------------------------------------------------
        @self.app.post("/api/drawing/start")
        async def start_drawing() -> Dict[str, Any]:
            return self._command_response(await self.engine.start_drawing())

        @self.app.post("/api/drawing/reveal-next")
        async def reveal_next() -> Dict[str, Any]:
            return self._command_response(await self.engine.reveal_next())

        @self.app.post("/api/drawing/reveal-digit")
        async def reveal_digit(request: RevealDigitRequest) -> Dict[str, Any]:
            return self._command_response(await self.engine.reveal_digit(request.digit))

        @self.app.post("/api/drawing/reset")
        async def reset_drawing() -> Dict[str, Any]:
            return self._command_response(await self.engine.reset())

        @self.app.post("/api/drawing/winner/replay")
        async def replay_winner() -> Dict[str, Any]:
            if not self.engine.replay_winner():
                raise HTTPException(status_code=404, detail="No winner to present")
            return {"status": "replaying", "stage": self.engine.winner.stage.value}

        @self.app.post("/api/drawing/winner/dismiss")
        async def dismiss_winner() -> Dict[str, Any]:
            self.engine.dismiss_winner()
            return {"status": "dismissed"}

        @self.app.post("/api/drawing/errors/dismiss")
        async def dismiss_errors() -> Dict[str, Any]:
            self._store.dismiss_errors()
            return {"status": "dismissed"}

        # ------------------------------------------------------------------
        # WebSocket endpoint
        # ------------------------------------------------------------------
        @self.app.websocket("/ws/drawing")
        async def websocket_endpoint(websocket: WebSocket) -> None:
            await websocket.accept()
            if self._ws_lock is None:
                self._ws_lock = asyncio.Lock()
            async with self._ws_lock:
                self._websockets.add(websocket)
            logger.info("WebSocket client connected (%s total)", len(self._websockets))
            try:
                await websocket.send_json({"type": "snapshot", "payload": self.engine.view()})
                while True:
                    try:
                        await websocket.receive_text()
                    except WebSocketDisconnect:
                        break
                    except Exception as exc:
                        logger.debug("WebSocket receive error: %s", exc)
                        break
            finally:
                async with self._ws_lock:
                    self._websockets.discard(websocket)
                logger.info("WebSocket client disconnected (%s remaining)", len(self._websockets))

    def _command_response(self, result: CommandResult) -> Dict[str, Any]:
        if result.rejected:
            raise HTTPException(status_code=409, detail=result.error)
        if not result.success:
            raise HTTPException(status_code=502, detail=result.error)
        response = result.to_dict()
        response["view"] = self.engine.view()
        return response

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    async def start(self, host: str = "0.0.0.0", port: int = 8080) -> None:
        import uvicorn

        logger.info("Starting drawing display web server on %s:%s", host, port)
        self._loop = asyncio.get_running_loop()
        if self._broadcast_queue is None:
            self._broadcast_queue = asyncio.Queue()
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        self._register_store_listeners()
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._broadcast_loop(), name="drawing-web-broadcast")

        config = uvicorn.Config(self.app, host=host, port=port, log_level="info", access_log=True)
        server = uvicorn.Server(config)
        try:
            await server.serve()
        finally:
            logger.info("Drawing display web server stopped")

    async def stop(self) -> None:
        logger.info("Stopping drawing display web server")
        if self._broadcast_task:
            self._broadcast_task.cancel()
            try:
                await self._broadcast_task
            except asyncio.CancelledError:
                pass
            self._broadcast_task = None
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        async with self._ws_lock:
            for websocket in list(self._websockets):
                try:
                    await websocket.close(code=1001, reason="Server shutdown")
                except Exception as exc:
                    logger.debug("Error closing websocket: %s", exc)
            self._websockets.clear()

    # ------------------------------------------------------------------
    # Store listeners & broadcasting
    # ------------------------------------------------------------------
    def _register_store_listeners(self) -> None:
        if self._listeners_registered:
            return
        for event in BROADCAST_EVENTS:
            self._store.add_listener(event, lambda payload, evt=event: self._enqueue_broadcast(evt, payload))
        self._listeners_registered = True

    def _enqueue_broadcast(self, event_type: str, payload: Dict[str, Any] | None) -> None:
        if not self._broadcast_queue or not self._loop:
            return
        try:
            self._loop.call_soon_threadsafe(self._broadcast_queue.put_nowait, (event_type, payload))
            logger.debug("Enqueued broadcast for %s", event_type)
        except RuntimeError:
            logger.debug("Failed to enqueue broadcast for %s", event_type)

    async def _broadcast_loop(self) -> None:
        assert self._broadcast_queue is not None
        while True:
            try:
                event_type, payload = await self._broadcast_queue.get()
                await self._broadcast_to_clients(event_type, payload)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("Broadcast loop error: %s", exc)

    async def _broadcast_to_clients(self, event_type: str, payload: Dict[str, Any] | None) -> None:
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        message = {"type": event_type, "payload": payload, "timestamp": datetime.utcnow().isoformat()}
        async with self._ws_lock:
            if not self._websockets:
                return
            to_remove: List[WebSocket] = []
            for websocket in self._websockets:
                try:
                    await websocket.send_json(message)
                except Exception as exc:
                    logger.debug("WebSocket send failed: %s", exc)
                    to_remove.append(websocket)
            for websocket in to_remove:
                self._websockets.discard(websocket)
