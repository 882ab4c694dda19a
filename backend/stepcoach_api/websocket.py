"""
WebSocket Handler

Live practice via WebSocket connection.
The frontend streams landmark frames from its detector and drives the
recording lifecycle; every event bus event is pushed back to it.
"""

import json
import asyncio
import logging
from typing import Iterable, Optional
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .schemas import WebSocketMessageType, SetupMessage
from .serializers import event_to_message, now_ms
from stepcoach.domain import Event, InvalidTransition
from stepcoach.services import PracticeEngine, SessionStore, Verifier

# Configure logging
logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages WebSocket connections.

    Each connection gets its own PracticeEngine (and so its own event bus and
    session machine); the session store and verifier are shared.
    """

    def __init__(self, store: SessionStore, verifier: Optional[Verifier] = None):
        self.store = store
        self.verifier = verifier
        self.active_connections: list[WebSocket] = []
        self.engines: dict[WebSocket, PracticeEngine] = {}

    async def connect(self, websocket: WebSocket) -> PracticeEngine:
        """Accept new WebSocket connection."""
        await websocket.accept()
        self.active_connections.append(websocket)

        # Create dedicated engine for this connection
        engine = PracticeEngine(self.store, verifier=self.verifier)
        self.engines[websocket] = engine

        logger.info(f"New WebSocket connection. Total: {len(self.active_connections)}")
        return engine

    def disconnect(self, websocket: WebSocket) -> None:
        """Handle WebSocket disconnection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

        # Drop any unfinished session
        engine = self.engines.pop(websocket, None)
        if engine is not None:
            engine.close()

        logger.info(f"WebSocket disconnected. Remaining: {len(self.active_connections)}")

    async def send_json(self, websocket: WebSocket, data: dict) -> None:
        """Send JSON data to a specific connection."""
        try:
            await websocket.send_json(data)
        except Exception as e:
            logger.error(f"Failed to send WebSocket message: {e}")


def error_message(error: str) -> dict:
    return {
        "type": WebSocketMessageType.ERROR.value,
        "data": {"error": error},
        "timestamp": now_ms(),
    }


async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint for live practice.

    Protocol:
    1. Client connects
    2. Client sends ``setup`` with dance_id / lecture_id, then ``start``
    3. Client streams ``frame`` messages with landmark data
    4. Client sends ``stop`` (save) or ``cancel`` (discard)
    5. Server pushes frame_scored, session_state_changed, session_persisted,
       session_failed and session_verified events throughout

    Message format (client -> server):
    {
        "type": "frame",
        "data": {
            "body": [{"x": 0.5, "y": 0.2, "z": 0.0, "visibility": 0.99}, ...],
            "face": [...],
            "timestamp_ms": 1500,
            "frame_number": 45
        },
        "timestamp": 1704067200000
    }

    Message format (server -> client):
    {
        "type": "frame_scored",
        "data": {
            "posture": {"overall": 86, ...},
            "expression": {"label": "Joy", ...},
            "recorded": true,
            "running_average": 82.4,
            "peak": 93
        },
        "timestamp": 1704067200025
    }
    """
    manager: ConnectionManager = websocket.app.state.connection_manager
    engine = await manager.connect(websocket)

    outbox: asyncio.Queue = asyncio.Queue()
    finalizers: set[asyncio.Task] = set()

    def forward(event: Event) -> None:
        outbox.put_nowait(event_to_message(event))

    unsubscribe = engine.bus.subscribe_all(forward)
    sender = asyncio.create_task(_drain(manager, websocket, outbox))
    client_gone = False

    try:
        await manager.send_json(websocket, {
            "type": WebSocketMessageType.CONNECTED.value,
            "data": {"message": "Connected to StepCoach practice", "state": engine.state.value},
            "timestamp": now_ms()
        })

        # Main message loop
        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                outbox.put_nowait(error_message("Invalid JSON"))
                continue

            if not isinstance(data, dict):
                outbox.put_nowait(error_message("Message must be a JSON object"))
                continue

            msg_type = data.get("type")
            payload = data.get("data") or {}

            if msg_type == WebSocketMessageType.END_SESSION.value:
                break

            if msg_type == WebSocketMessageType.STOP.value:
                # Finalize in the background so frames keep flowing
                track_finalizer(finalizers, asyncio.create_task(_stop(engine, outbox)))
                continue

            handle_message(engine, outbox, msg_type, payload)

    except WebSocketDisconnect:
        client_gone = True
        logger.info("Client disconnected")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        # Let in-flight saves finish before tearing the engine down
        await wait_for_finalizers(finalizers)
        unsubscribe()
        manager.disconnect(websocket)
        await _flush(manager, websocket, outbox, sender, send_remaining=not client_gone)


def handle_message(engine: PracticeEngine, outbox: asyncio.Queue, msg_type: Optional[str], payload: dict) -> None:
    """
    Apply one synchronous client command to the engine.

    Results reach the client through the event bus; only command errors are
    answered directly.
    """
    try:
        if msg_type == WebSocketMessageType.FRAME.value:
            outcome = engine.ingest(payload)
            if "frame" in outcome.errors:
                outbox.put_nowait(error_message(outcome.errors["frame"]))

        elif msg_type == WebSocketMessageType.SETUP.value:
            setup = SetupMessage.model_validate(payload)
            engine.setup(setup.dance_id, setup.lecture_id)

        elif msg_type == WebSocketMessageType.START.value:
            engine.start()

        elif msg_type == WebSocketMessageType.CANCEL.value:
            engine.cancel()

        else:
            outbox.put_nowait(error_message(f"Unknown message type: {msg_type}"))

    except ValidationError as e:
        outbox.put_nowait(error_message(f"Invalid {msg_type} payload: {e.errors()}"))
    except InvalidTransition as e:
        outbox.put_nowait(error_message(str(e)))


async def _stop(engine: PracticeEngine, outbox: asyncio.Queue) -> None:
    try:
        await engine.stop()
    except InvalidTransition as e:
        outbox.put_nowait(error_message(str(e)))


def track_finalizer(finalizers: set, task: asyncio.Task) -> None:
    """Keep a background stop task until it finishes and log it if it failed."""
    finalizers.add(task)

    def done(finished: asyncio.Task) -> None:
        finalizers.discard(finished)
        if not finished.cancelled() and finished.exception() is not None:
            logger.error("Session finalization failed", exc_info=finished.exception())

    task.add_done_callback(done)


async def wait_for_finalizers(finalizers: Iterable[asyncio.Task]) -> None:
    """Wait for background stop tasks; failures are logged by track_finalizer."""
    tasks = list(finalizers)
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


async def _drain(manager: ConnectionManager, websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """Send queued messages in order until cancelled."""
    while True:
        message = await outbox.get()
        await manager.send_json(websocket, message)
        outbox.task_done()


async def _flush(
    manager: ConnectionManager,
    websocket: WebSocket,
    outbox: asyncio.Queue,
    sender: asyncio.Task,
    send_remaining: bool = True,
) -> None:
    """Stop the sender, then push whatever is still queued if the client is listening."""
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    while send_remaining and not outbox.empty():
        await manager.send_json(websocket, outbox.get_nowait())
