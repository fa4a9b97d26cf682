"""HTTP/WebSocket service around a live capture session.

Runs the detection loop on the server's camera and pushes gesture,
capture and session events to connected WebSocket clients.

Endpoints:
- GET  /api/status            session status, checklist and loop stats
- GET  /api/checklist         checklist entries
- POST /api/session/restart   clear the checklist and start again
- POST /api/session/stop      cancel the running session
- POST /api/quality           sharpness verdict for an uploaded image
- GET  /api/captures          stored captures, oldest first
- GET  /captures/{filename}   a stored capture
- GET  /metrics               Prometheus metrics
- WS   /ws                    event stream

Usage:
    palm-capture serve
    # or
    uvicorn palm_capture.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from palm_capture.camera import CameraSource
from palm_capture.config import SessionConfig
from palm_capture.detector import HandDetector
from palm_capture.errors import InitializationError
from palm_capture.gestures import Gesture
from palm_capture.loop import CaptureLoop
from palm_capture.metrics import MetricsCollector
from palm_capture.session import CaptureController, FrameResult
from palm_capture.store import CaptureStore, decode_image

logger = logging.getLogger("palm_capture.server")


# --- State ---

class ServerState:
    def __init__(self, config: Optional[SessionConfig] = None):
        self.clients: set[WebSocket] = set()
        self.metrics = MetricsCollector()
        self.autostart = True
        self.task: Optional[asyncio.Task] = None
        self.loop: Optional[CaptureLoop] = None
        self.configure(config or SessionConfig())

    def configure(self, config: SessionConfig):
        """Build a fresh controller and store for ``config``."""
        self.config = config
        self.controller = CaptureController(config)
        self.store = CaptureStore(
            config.output_dir,
            max_width=config.max_width,
            max_height=config.max_height,
            jpeg_quality=config.jpeg_quality,
            enhance=config.enhance,
        )
        self.store.attach(self.controller)
        self.last_event: Optional[dict] = None

    @property
    def running(self) -> bool:
        return self.loop is not None and self.loop.running


state = ServerState()


async def broadcast(message: dict):
    """Send message to all connected clients."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in state.clients:
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients -= dead


def _session_message() -> dict:
    return {"type": "session", "timestamp": time.time(), **state.controller.state.to_dict()}


async def _publish(result: FrameResult, last_gesture: Gesture):
    if result.gesture != last_gesture:
        await broadcast({
            "type": "gesture",
            "gesture": result.gesture.value,
            "confirmed": result.confirmed,
            "timestamp": time.time(),
        })

    if result.rejected is not None:
        await broadcast({
            "type": "rejected",
            "gesture": result.gesture.value,
            "reason": result.rejected,
            "timestamp": time.time(),
        })

    if result.capture is not None:
        entry = next(e for e in state.controller.state.checklist if e.label == result.capture.label)
        event = {
            "type": "capture",
            "gesture": result.capture.label.value,
            "variance": round(result.capture.variance, 2),
            "filename": Path(entry.path).name if entry.path else None,
            "timestamp": time.time(),
        }
        state.last_event = event
        await broadcast(event)
        await broadcast(_session_message())


# --- Capture loop ---

async def capture_loop():
    """Open camera and detector, then run detection cycles until the session ends."""
    config = state.config
    controller = state.controller

    try:
        camera = CameraSource(config.camera_index, config.camera_width, config.camera_height)
        camera.open()
        try:
            detector = HandDetector(max_hands=2)
        except InitializationError:
            camera.release()
            raise
    except InitializationError as e:
        controller.fail(str(e))
        await broadcast(_session_message())
        return

    loop = CaptureLoop(camera, detector, controller, metrics=state.metrics)
    state.loop = loop
    loop.start()
    await broadcast(_session_message())

    last_gesture = Gesture.NONE
    try:
        while loop.running and controller.state.is_active:
            try:
                result = loop.step()
            except InitializationError:
                break
            if result is None:
                await asyncio.sleep(0.01)
                continue

            await _publish(result, last_gesture)
            last_gesture = result.gesture

            if loop.profiler.frames % 30 == 0:
                await broadcast({
                    "type": "stats",
                    "fps": round(loop.profiler.fps, 1),
                    "latency_ms": round(loop.profiler.avg_frame_ms, 1),
                    "over_budget": loop.profiler.over_budget,
                })

            await asyncio.sleep(0.001)
    finally:
        loop.stop("capture loop ended")
        loop.close()
        await broadcast(_session_message())


def _start_loop():
    if state.running:
        return
    state.task = asyncio.create_task(capture_loop())


@asynccontextmanager
async def lifespan(app: FastAPI):
    if state.autostart:
        _start_loop()
    yield
    if state.loop is not None:
        state.loop.stop("server shutdown")
    if state.task is not None:
        await asyncio.gather(state.task, return_exceptions=True)


app = FastAPI(title="palm-capture", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    profiler = state.loop.profiler if state.loop else None
    return {
        "running": state.running,
        "clients": len(state.clients),
        "fps": round(profiler.fps, 1) if profiler else 0.0,
        "latency_ms": round(profiler.avg_frame_ms, 1) if profiler else 0.0,
        "facing_mode": state.config.facing_mode.value,
        "last_capture": state.last_event,
        "session": state.controller.state.to_dict(),
    }


@app.get("/api/checklist")
async def api_checklist():
    return {"checklist": state.controller.state.checklist.to_list()}


@app.post("/api/session/restart")
async def restart_session():
    state.store.clear()
    state.last_event = None
    state.controller.restart()
    if state.autostart:
        _start_loop()
    await broadcast(_session_message())
    return state.controller.state.to_dict()


@app.post("/api/session/stop")
async def stop_session():
    if state.loop is not None:
        state.loop.stop("stopped via API")
    else:
        state.controller.cancel("stopped via API")
    await broadcast(_session_message())
    return state.controller.state.to_dict()


@app.post("/api/quality")
async def check_quality(request: Request):
    """Sharpness verdict for an encoded still image sent as the request body."""
    image = decode_image(await request.body())
    if image is None:
        return JSONResponse({"error": "Could not decode image"}, status_code=400)
    verdict = state.controller.quality_gate.assess(image)
    return {"acceptable": verdict.acceptable, "variance": round(verdict.variance, 2)}


@app.get("/api/captures")
async def api_captures():
    return {"captures": [r.to_dict() for r in state.store.records]}


@app.get("/captures/{filename}")
async def get_capture(filename: str):
    record = state.store.get(filename)
    if record is None or not Path(record.path).is_file():
        return JSONResponse({"error": "Not found"}, status_code=404)
    return FileResponse(record.path, media_type="image/jpeg")


@app.get("/metrics")
async def metrics():
    state.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        state.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        await ws.send_json({
            "type": "connected",
            "required_gestures": [g.value for g in state.config.required_gestures],
            "session": state.controller.state.to_dict(),
            "captures": [r.to_dict() for r in state.store.records],
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
                data = json.loads(msg)
                if data.get("type") == "ping":
                    await ws.send_json({"type": "pong", "server_time": time.time()})
                elif data.get("type") == "get_session":
                    await ws.send_json(_session_message())
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))
