import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from starlette.websockets import WebSocketDisconnect

from backend.controllers.scheduled import build_page_state
from backend.database import get_db
from backend.dependencies import get_offline_cache, get_settings_store
from backend.main import app
from backend.services.offline_cache import CacheStorage, OfflineCache
from backend.settings_store import SettingsStore

from factories import AUDIO_URL, FakeNetwork, at, make_class_type, make_scheduled_class, reset_db


class UnavailableSession:
    """Session double whose every query fails like a dropped connection."""

    def query(self, *args, **kwargs):
        raise OperationalError("SELECT yoga_scheduled_classes", {}, Exception("could not connect to server"))

    def get(self, *args, **kwargs):
        raise OperationalError("SELECT yoga_scheduled_classes", {}, Exception("could not connect to server"))

    def close(self):
        pass


def _unavailable_db():
    db = UnavailableSession()
    try:
        yield db
    finally:
        db.close()


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = reset_db()
        self.class_type = make_class_type(self.db, description="Hot yoga, 26 postures")
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self) -> None:
        self.client.__exit__(None, None, None)
        app.dependency_overrides.clear()
        self.db.close()


class ScheduledClassApiTests(ApiTestCase):
    def test_schedule_then_fetch_page(self) -> None:
        resp = self.client.post("/scheduled-classes", json={
            "class_type_id": self.class_type.id,
            "scheduled_start_time": at(minutes=120).isoformat(),
        })
        self.assertEqual(resp.status_code, 201, resp.text)
        class_id = resp.json()["id"]

        page = self.client.get("/yoga/scheduled", params={"classId": class_id}).json()
        self.assertEqual(page["state"], "waiting")
        self.assertEqual(page["audio_url"], AUDIO_URL)
        self.assertEqual(page["calendar_url"], f"/scheduled-classes/{class_id}/calendar.ics")
        self.assertEqual(page["time_remaining"]["hours"], 1)
        self.assertGreater(page["time_remaining"]["total_seconds"], 7100)

    def test_schedule_in_past_is_rejected(self) -> None:
        resp = self.client.post("/scheduled-classes", json={
            "class_type_id": self.class_type.id,
            "scheduled_start_time": at(minutes=-5).isoformat(),
        })
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Please schedule a time in the future")

    def test_schedule_unknown_class_type(self) -> None:
        resp = self.client.post("/scheduled-classes", json={
            "class_type_id": "missing",
            "scheduled_start_time": at(minutes=5).isoformat(),
        })
        self.assertEqual(resp.status_code, 404)

    def test_started_class_renders_started_immediately(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(seconds=-1))
        page = self.client.get("/yoga/scheduled", params={"classId": sched.id}).json()
        self.assertEqual(page["state"], "started")
        self.assertEqual(page["time_remaining"]["total_seconds"], 0)

    def test_sub_second_remainder_is_still_waiting(self) -> None:
        start = at(minutes=10)
        sched = make_scheduled_class(self.db, self.class_type, start)
        now = start - timedelta(milliseconds=600)

        page = build_page_state(sched, now)

        self.assertEqual(page.state, "waiting")
        self.assertEqual(page.time_remaining.total_seconds, 0)
        self.assertEqual(build_page_state(sched, now + timedelta(milliseconds=600)).state, "started")

    def test_load_failure_asks_for_retry(self) -> None:
        app.dependency_overrides[get_db] = _unavailable_db
        for path, params in (("/yoga/scheduled", {"classId": "abc"}), ("/yoga/scheduled", {}), ("/yoga/scheduled/next", {})):
            resp = self.client.get(path, params=params)
            self.assertEqual(resp.status_code, 503, path)
            self.assertEqual(resp.json()["detail"], {"message": "Failed to load scheduled class", "retry": True})

    def test_next_class_is_used_without_id(self) -> None:
        make_scheduled_class(self.db, self.class_type, at(minutes=300))
        sooner = make_scheduled_class(self.db, self.class_type, at(minutes=30))
        page = self.client.get("/yoga/scheduled").json()
        self.assertEqual(page["scheduled_class"]["id"], sooner.id)
        banner = self.client.get("/yoga/scheduled/next").json()
        self.assertEqual(banner["scheduled_class"]["id"], sooner.id)

    def test_no_class_state_links_to_setup(self) -> None:
        page = self.client.get("/yoga/scheduled", params={"classId": "missing"}).json()
        self.assertEqual(page["state"], "no_class")
        self.assertIsNone(page["scheduled_class"])
        self.assertEqual(page["setup_url"], "/yoga/scheduled/setup")

    def test_upcoming_list_has_time_until_label(self) -> None:
        make_scheduled_class(self.db, self.class_type, at(minutes=3 * 24 * 60 + 90))
        items = self.client.get("/scheduled-classes").json()
        self.assertEqual(len(items), 1)
        self.assertTrue(items[0]["time_until"].startswith("3 days"))
        self.assertEqual(items[0]["yoga_class_type"]["duration_minutes"], 90)

    def test_history_and_status(self) -> None:
        past = make_scheduled_class(self.db, self.class_type, at(minutes=-60))
        resp = self.client.patch(f"/scheduled-classes/{past.id}/status", json={"status": "completed"})
        self.assertEqual(resp.json()["status"], "completed")

        history = self.client.get("/scheduled-classes/history").json()
        self.assertEqual([c["id"] for c in history], [past.id])

        resp = self.client.patch(f"/scheduled-classes/{past.id}/status", json={"status": "postponed"})
        self.assertEqual(resp.status_code, 422)

    def test_calendar_download(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(minutes=90))
        resp = self.client.get(f"/scheduled-classes/{sched.id}/calendar.ics")

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/calendar"))
        self.assertIn('filename="Yoga_Class_90Minute_Bikram_Yoga.ics"', resp.headers["content-disposition"])
        self.assertIn("TRIGGER:-PT15M", resp.text)
        self.assertIn(f"URL:https://stevenzeiler.com/yoga/scheduled?classId={sched.id}", resp.text)

    def test_class_types(self) -> None:
        types = self.client.get("/class-types").json()
        self.assertEqual([t["id"] for t in types], [self.class_type.id])
        self.assertEqual(self.client.get("/class-types/missing").status_code, 404)


class RegistrationApiTests(ApiTestCase):
    def test_register_until_full(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(minutes=60), max_participants=1)
        url = f"/scheduled-classes/{sched.id}/participants/"

        resp = self.client.post(url, json={"user_email": "ada@example.com", "user_name": "Ada"})
        self.assertEqual(resp.status_code, 201, resp.text)
        self.assertEqual(resp.json()["attendance_status"], "registered")

        resp = self.client.post(url, json={"user_email": "bob@example.com"})
        self.assertEqual(resp.status_code, 409)

    def test_invalid_email_rejected(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(minutes=60))
        resp = self.client.post(f"/scheduled-classes/{sched.id}/participants/", json={"user_email": "nope"})
        self.assertEqual(resp.status_code, 422)

    def test_register_unknown_class(self) -> None:
        resp = self.client.post("/scheduled-classes/missing/participants/", json={})
        self.assertEqual(resp.status_code, 404)


class RelayApiTests(ApiTestCase):
    def test_started_class_gets_audio_start(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(seconds=-2))
        with self.client.websocket_connect(f"/ws/yoga/scheduled/{sched.id}") as ws:
            message = ws.receive_json()
        self.assertEqual(message, {"type": "AUDIO_START", "url": AUDIO_URL})

    def test_client_frames_do_not_end_the_wait(self) -> None:
        sched = make_scheduled_class(self.db, self.class_type, at(seconds=1))
        with self.client.websocket_connect(f"/ws/yoga/scheduled/{sched.id}") as ws:
            ws.send_text("ping")
            ws.send_json({"type": "SKIP_WAITING"})
            message = ws.receive_json()
        self.assertEqual(message, {"type": "AUDIO_START", "url": AUDIO_URL})
        self.assertEqual(app.state.relay.workers, {})

    def test_unknown_class_is_refused(self) -> None:
        with self.assertRaises(WebSocketDisconnect):
            with self.client.websocket_connect("/ws/yoga/scheduled/missing") as ws:
                ws.receive_json()


class OfflineApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.network = FakeNetwork({AUDIO_URL: (200, b"ID3-audio-bytes", "audio/mpeg")})
        cache = OfflineCache(CacheStorage(Path(self._tmp.name)), "https://stevenzeiler.com", fetch=self.network)
        app.dependency_overrides[get_offline_cache] = lambda: cache

    def tearDown(self) -> None:
        super().tearDown()
        self._tmp.cleanup()

    def test_audio_served_offline_from_cache(self) -> None:
        first = self.client.get("/offline/fetch", params={"url": AUDIO_URL})
        self.assertEqual(first.headers["x-cache-source"], "network")

        self.network.online = False
        second = self.client.get("/offline/fetch", params={"url": AUDIO_URL})
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.content, b"ID3-audio-bytes")
        self.assertEqual(second.headers["x-cache-source"], "cache")

    def test_foreign_url_is_rejected(self) -> None:
        resp = self.client.get("/offline/fetch", params={"url": "http://169.254.169.254/latest/meta-data/iam"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.network.requests, [])

    def test_navigation_offline_page(self) -> None:
        self.network.online = False
        resp = self.client.get("/offline/fetch", params={"url": "/journal", "mode": "navigate"})
        self.assertEqual(resp.status_code, 503)
        self.assertIn("You are offline", resp.text)

    def test_install_and_activate(self) -> None:
        resp = self.client.post("/offline/install")
        self.assertEqual(resp.status_code, 200)
        self.assertIn(AUDIO_URL, resp.json()["cached_urls"])
        resp = self.client.post("/offline/activate")
        self.assertEqual(resp.json()["removed"], [])


class SettingsApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "settings.json"
        store = SettingsStore(self.path)
        app.dependency_overrides[get_settings_store] = lambda: store

    def tearDown(self) -> None:
        super().tearDown()
        self._tmp.cleanup()

    def test_defaults_then_update_persists(self) -> None:
        self.assertEqual(self.client.get("/settings").json()["language"], "en")

        resp = self.client.put("/settings", json={"language": "es", "audio": {"enabled": False, "volume": 0.5, "language": "es"}})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["audio"]["volume"], 0.5)

        reloaded = SettingsStore(self.path).get()
        self.assertEqual(reloaded.language, "es")
        self.assertFalse(reloaded.audio.enabled)

    def test_volume_out_of_range_rejected(self) -> None:
        resp = self.client.put("/settings", json={"audio": {"volume": 3}})
        self.assertEqual(resp.status_code, 422)


if __name__ == "__main__":
    unittest.main()
