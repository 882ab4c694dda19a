"""
API tests.

Exercises the REST routes and the practice WebSocket through FastAPI's
TestClient, with an in-memory session store swapped in after startup.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import time
import unittest
from datetime import datetime

import httpx
from fastapi.testclient import TestClient

from main import app
from stepcoach.domain import SessionSummary, Trend
from stepcoach.services import SessionStore, MemoryStorage, MockVerifier, collection_key
from stepcoach_api.websocket import ConnectionManager, track_finalizer, wait_for_finalizers
from tests.fixtures.storage import BlockingStorage
from tests.fixtures.synthetic_landmarks import make_body, make_face, make_frame


def make_summary(session_id: str, dance_id: str = "salsa", minute: int = 0) -> SessionSummary:
    return SessionSummary(
        session_id=session_id,
        dance_id=dance_id,
        lecture_id="basic-step",
        duration_ms=42000,
        average_score=78,
        peak_score=94,
        verified=False,
        created_at=datetime(2024, 1, 15, 10, minute, 0),
        frame_count=1260,
        trend=Trend.IMPROVING,
    )


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(app)
        self.client.__enter__()
        self.store = SessionStore(MemoryStorage())
        app.state.session_store = self.store
        app.state.connection_manager = ConnectionManager(self.store, MockVerifier(delay_seconds=0))

    def tearDown(self):
        self.client.__exit__(None, None, None)


class TestRestApi(ApiTestCase):
    """Validate the REST endpoints."""

    def test_root(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "StepCoach API")

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "healthy")
        self.assertTrue(body["storage_ok"])
        self.assertEqual(body["storage_backend"], "MemoryStorage")

    def test_health_reports_corrupted_storage(self):
        self.store.storage.set_item(collection_key("salsa"), "not json")
        body = self.client.get("/api/health").json()
        self.assertEqual(body["status"], "degraded")
        self.assertFalse(body["storage_ok"])

    def test_score_frame(self):
        response = self.client.post("/api/frames/score", json=make_frame(timestamp_ms=1500))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["posture"]["timestamp_ms"], 1500)
        self.assertTrue(0 <= body["posture"]["overall"] <= 100)
        self.assertEqual(body["expression"]["label"], "Neutral")
        self.assertEqual(body["errors"], {})

    def test_score_frame_reports_expression(self):
        frame = make_frame(face=make_face(mouth_open=0.10, smile=0.6))
        body = self.client.post("/api/frames/score", json=frame).json()
        self.assertEqual(body["expression"]["label"], "Surprise")
        self.assertAlmostEqual(body["expression"]["intensity"], 0.10, places=6)

    def test_score_frame_without_face_is_partial(self):
        body = self.client.post("/api/frames/score", json=make_frame(with_face=False)).json()
        self.assertIsNotNone(body["posture"])
        self.assertIsNone(body["expression"])
        self.assertIn("expression", body["errors"])

    def test_score_frame_with_wrong_body_count(self):
        response = self.client.post("/api/frames/score", json=make_frame(body=make_body()[:20]))
        self.assertEqual(response.status_code, 422)

    def test_score_empty_frame(self):
        response = self.client.post("/api/frames/score", json={"timestamp_ms": 0})
        self.assertEqual(response.status_code, 422)

    def test_list_sessions_newest_first(self):
        self.store.save(make_summary("old", minute=0))
        self.store.save(make_summary("new", minute=5))
        self.store.save(make_summary("tango-1", dance_id="tango", minute=3))

        body = self.client.get("/api/sessions").json()
        self.assertEqual(body["count"], 3)
        self.assertEqual([s["session_id"] for s in body["sessions"]], ["new", "tango-1", "old"])

        body = self.client.get("/api/sessions", params={"dance_id": "salsa"}).json()
        self.assertEqual([s["session_id"] for s in body["sessions"]], ["new", "old"])

    def test_get_session(self):
        self.store.save(make_summary("abc"))
        response = self.client.get("/api/sessions/abc")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["average_score"], 78)
        self.assertEqual(response.json()["trend"], "improving")

    def test_get_unknown_session(self):
        response = self.client.get("/api/sessions/missing")
        self.assertEqual(response.status_code, 404)

    def test_list_sessions_with_corrupted_storage(self):
        self.store.storage.set_item(collection_key("salsa"), "not json")
        response = self.client.get("/api/sessions")
        self.assertEqual(response.status_code, 503)

    def test_mark_verified(self):
        self.store.save(make_summary("abc"))
        response = self.client.post("/api/sessions/abc/verification", json={"verified": True})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["verified"])
        self.assertTrue(self.store.get("abc").verified)

    def test_mark_verified_unknown_session(self):
        response = self.client.post("/api/sessions/missing/verification", json={"verified": True})
        self.assertEqual(response.status_code, 404)


class TestPracticeWebSocket(ApiTestCase):
    """Validate the live practice protocol."""

    def receive_until(self, websocket, message_type, limit=50):
        """Read messages until one of ``message_type`` arrives; return it and those before it."""
        seen = []
        for _ in range(limit):
            message = websocket.receive_json()
            seen.append(message)
            if message["type"] == message_type:
                return message, seen
        self.fail(f"No {message_type} message within {limit} messages")

    def send(self, websocket, message_type, data=None):
        websocket.send_json({"type": message_type, "data": data or {}, "timestamp": 0})

    def test_full_practice_session(self):
        with self.client.websocket_connect("/ws/practice") as ws:
            connected = ws.receive_json()
            self.assertEqual(connected["type"], "connected")
            self.assertEqual(connected["data"]["state"], "idle")

            self.send(ws, "setup", {"dance_id": "salsa", "lecture_id": "basic-step"})
            message, _ = self.receive_until(ws, "session_state_changed")
            self.assertEqual(message["data"]["to"], "armed")

            self.send(ws, "start")
            message, _ = self.receive_until(ws, "session_state_changed")
            self.assertEqual(message["data"]["to"], "recording")
            session_id = message["data"]["session_id"]

            for i in range(3):
                self.send(ws, "frame", make_frame(timestamp_ms=i * 33, frame_number=i))
                scored, _ = self.receive_until(ws, "frame_scored")
                self.assertTrue(scored["data"]["recorded"])
                self.assertIsNotNone(scored["data"]["posture"])

            self.send(ws, "stop")
            persisted, _ = self.receive_until(ws, "session_persisted")
            summary = persisted["data"]["summary"]
            self.assertEqual(summary["session_id"], session_id)
            self.assertEqual(summary["frame_count"], 3)

            verified, _ = self.receive_until(ws, "session_verified")
            self.assertTrue(verified["data"]["verified"])

            self.send(ws, "end_session")

        self.assertTrue(self.store.get(session_id).verified)

    def test_stop_empty_session_fails(self):
        with self.client.websocket_connect("/ws/practice") as ws:
            ws.receive_json()
            self.send(ws, "setup", {"dance_id": "salsa", "lecture_id": "basic-step"})
            self.send(ws, "start")
            self.send(ws, "stop")

            failed, _ = self.receive_until(ws, "session_failed")
            self.assertEqual(failed["data"]["reason"], "empty_session")
            self.send(ws, "end_session")

        self.assertEqual(self.store.list(), [])

    def test_cancel_discards_session(self):
        with self.client.websocket_connect("/ws/practice") as ws:
            ws.receive_json()
            self.send(ws, "setup", {"dance_id": "salsa", "lecture_id": "basic-step"})
            self.send(ws, "start")
            self.send(ws, "frame", make_frame())
            self.receive_until(ws, "frame_scored")
            self.send(ws, "cancel")

            message, _ = self.receive_until(ws, "session_state_changed")
            while message["data"]["to"] != "aborted":
                message, _ = self.receive_until(ws, "session_state_changed")
            self.send(ws, "end_session")

        self.assertEqual(self.store.list(), [])

    def test_invalid_commands_return_errors(self):
        with self.client.websocket_connect("/ws/practice") as ws:
            ws.receive_json()

            self.send(ws, "start")
            error, _ = self.receive_until(ws, "error")
            self.assertIn("start", error["data"]["error"])

            self.send(ws, "setup", {"dance_id": "salsa"})
            error, _ = self.receive_until(ws, "error")
            self.assertIn("setup", error["data"]["error"])

            self.send(ws, "dance")
            error, _ = self.receive_until(ws, "error")
            self.assertIn("Unknown message type", error["data"]["error"])

            self.send(ws, "frame", {"body": [{"x": 0.5, "y": 0.5}] * 5})
            error, _ = self.receive_until(ws, "error")
            self.assertIn("33", error["data"]["error"])

            self.send(ws, "end_session")


class TestStoreOffEventLoop(unittest.IsolatedAsyncioTestCase):
    """Store-backed routes must not stall the event loop while storage is busy."""

    async def asyncSetUp(self):
        self.storage = BlockingStorage()
        self.store = SessionStore(self.storage)
        app.state.session_store = self.store
        app.state.connection_manager = ConnectionManager(self.store)
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        self.storage.release.set()
        await self.client.aclose()

    async def test_loop_keeps_serving_while_save_is_held(self):
        saving = asyncio.create_task(asyncio.to_thread(self.store.save, make_summary("a")))
        while not self.storage.entered.is_set():
            await asyncio.sleep(0.01)

        listing = asyncio.create_task(self.client.get("/api/sessions"))

        started = time.monotonic()
        await asyncio.sleep(0.1)
        self.assertLess(time.monotonic() - started, 1.0)
        self.assertFalse(listing.done())

        # Routes that do not touch the store answer right away
        response = await asyncio.wait_for(
            self.client.post("/api/frames/score", json=make_frame()),
            timeout=2,
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(listing.done())

        self.storage.release.set()
        await saving
        response = await asyncio.wait_for(listing, timeout=5)

        self.assertEqual(response.status_code, 200)
        self.assertEqual([s["session_id"] for s in response.json()["sessions"]], ["a"])


class TestFinalizerTracking(unittest.IsolatedAsyncioTestCase):
    """Validate bookkeeping of background stop tasks."""

    async def test_failed_finalizer_is_logged(self):
        async def failing_stop():
            raise RuntimeError("storage went away")

        finalizers = set()
        with self.assertLogs("stepcoach_api.websocket", level="ERROR") as logs:
            track_finalizer(finalizers, asyncio.create_task(failing_stop()))
            await wait_for_finalizers(finalizers)
            await asyncio.sleep(0)

        self.assertEqual(finalizers, set())
        self.assertIn("Session finalization failed", logs.output[0])
        self.assertIn("storage went away", "\n".join(logs.output))

    async def test_finished_finalizer_is_dropped_quietly(self):
        async def clean_stop():
            return None

        finalizers = set()
        with self.assertNoLogs("stepcoach_api.websocket", level="ERROR"):
            track_finalizer(finalizers, asyncio.create_task(clean_stop()))
            await wait_for_finalizers(finalizers)
            await asyncio.sleep(0)

        self.assertEqual(finalizers, set())

    async def test_wait_without_finalizers(self):
        await wait_for_finalizers(set())


if __name__ == "__main__":
    unittest.main()
