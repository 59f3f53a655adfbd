import tempfile
import unittest
from datetime import timedelta
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from helpers import ASKER, PASSWORDS, RESPONDER, make_settings
from questionair.main import create_app
from questionair.models import utcnow


class ApiTestCase(unittest.TestCase):
    settings_overrides = {}
    client_options = {}

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        app = create_app(make_settings(self.root, **self.settings_overrides))
        self.client = TestClient(app, **self.client_options)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        self.temp_dir.cleanup()

    def login(self, username):
        self.client.cookies.clear()
        r = self.client.post("/api/auth/login", data={"username": username, "password": PASSWORDS[username]})
        self.assertIn(r.status_code, (200, 204), r.text)

    def ask(self, **body):
        body.setdefault("body", "How are you?")
        self.login(ASKER)
        r = self.client.post("/api/questions", json=body)
        self.assertEqual(r.status_code, 201, r.text)
        return r.json()["id"]


class AuthApiTests(ApiTestCase):
    def test_health_is_public(self):
        r = self.client.get("/api/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "ok")

    def test_requires_session(self):
        r = self.client.get("/api/questions")
        self.assertEqual(r.status_code, 401)
        self.assertIn("error", r.json())

    def test_bad_credentials(self):
        r = self.client.post("/api/auth/login", data={"username": ASKER, "password": "nope"})
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.json(), {"error": "Invalid credentials"})

    def test_me_lists_partner_and_settings(self):
        self.login(RESPONDER)
        body = self.client.get("/api/auth/me").json()
        self.assertEqual(body["user"]["username"], RESPONDER)
        self.assertEqual(body["partner"]["displayName"], ASKER)
        self.assertTrue(body["settings"]["notificationsEnabled"])

    def test_change_password(self):
        self.login(ASKER)
        r = self.client.post(
            "/api/auth/change-password", json={"currentPassword": PASSWORDS[ASKER], "newPassword": "short"}
        )
        self.assertEqual(r.status_code, 400)
        r = self.client.post(
            "/api/auth/change-password", json={"currentPassword": "wrong-one", "newPassword": "long enough"}
        )
        self.assertEqual(r.status_code, 401)
        r = self.client.post(
            "/api/auth/change-password", json={"currentPassword": PASSWORDS[ASKER], "newPassword": "long enough"}
        )
        self.assertEqual(r.json(), {"success": True})

        self.client.cookies.clear()
        r = self.client.post("/api/auth/login", data={"username": ASKER, "password": "long enough"})
        self.assertIn(r.status_code, (200, 204))


class QuestionFlowApiTests(ApiTestCase):
    def test_ask_then_answer_then_notify(self):
        qid = self.ask(title="Check-in")

        self.login(RESPONDER)
        detail = self.client.get(f"/api/questions/{qid}").json()
        self.assertEqual(detail["question"]["status"], "new")
        self.assertEqual(detail["question"]["responseCount"], 0)
        self.assertTrue(detail["question"]["isTarget"])

        r = self.client.post("/api/responses", json={"questionId": qid, "type": "text_short", "bodyText": "Good!"})
        self.assertEqual(r.status_code, 201, r.text)
        detail = self.client.get(f"/api/questions/{qid}").json()
        self.assertEqual(detail["question"]["status"], "active")
        self.assertEqual([resp["bodyText"] for resp in detail["responses"]], ["Good!"])

        self.login(ASKER)
        events = self.client.get("/api/push/events").json()["events"]
        self.assertIn("new_response", [e["type"] for e in events])
        r = self.client.post("/api/push/events/seen", json={"eventIds": [e["id"] for e in events]})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(self.client.get("/api/push/events").json()["events"], [])

    def test_asker_cannot_set_status(self):
        qid = self.ask()
        r = self.client.patch(f"/api/questions/{qid}", json={"status": "declined"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json(), {"error": "No valid updates provided"})

    def test_unknown_question(self):
        self.login(RESPONDER)
        r = self.client.get("/api/questions/does-not-exist")
        self.assertEqual(r.status_code, 404)
        self.assertIn("error", r.json())

    def test_cooled_down_question_returns_to_swipe(self):
        qid = self.ask(cooldownHours=24)

        self.login(RESPONDER)
        r = self.client.post("/api/swipe/add", json={"questionId": qid})
        self.assertEqual(r.status_code, 201, r.text)
        self.assertEqual(r.json(), {"position": 1})
        self.assertEqual(self.client.get("/api/swipe").json()["queue"], [])

        later = utcnow() + timedelta(hours=25)
        with mock.patch("questionair.services.swipe.utcnow", return_value=later):
            queue = self.client.get("/api/swipe").json()["queue"]
        self.assertEqual([item["question"]["id"] for item in queue], [qid])


class SettingsApiTests(ApiTestCase):
    def test_quiet_hours_validation(self):
        self.login(RESPONDER)
        r = self.client.patch("/api/settings", json={"quietHoursStart": "25:00"})
        self.assertEqual(r.status_code, 400)
        self.assertIn("quietHoursStart", r.json()["error"])

        r = self.client.patch("/api/settings", json={"quietHoursStart": "22:00", "quietHoursEnd": "08:00"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["quietHoursStart"], "22:00")

        r = self.client.patch("/api/settings", json={"quietHoursStart": None, "quietHoursEnd": None})
        self.assertIsNone(r.json()["quietHoursStart"])

    def test_toggle_heavy(self):
        self.login(RESPONDER)
        self.assertEqual(self.client.post("/api/settings/toggle-heavy").json(), {"heavyModeEnabled": True})
        self.assertTrue(self.client.get("/api/settings").json()["heavyModeEnabled"])


class RecommendationApiTests(ApiTestCase):
    def test_mismatched_upload_is_rejected_without_side_effects(self):
        self.login(ASKER)
        r = self.client.post(
            "/api/recommendations/upload",
            files={"file": ("invoice.exe", b"%PDF-1.4 fake", "application/pdf")},
            data={"title": "Invoice"},
        )
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json(), {"error": "File extension does not match content type"})
        self.assertEqual(self.client.get("/api/recommendations/sent").json()["recommendations"], [])
        self.assertEqual(list((self.root / "data" / "uploads").iterdir()), [])

    def test_upload_view_and_download(self):
        self.login(ASKER)
        r = self.client.post(
            "/api/recommendations/upload",
            files={"file": ("notes.pdf", b"%PDF-1.4 fake", "application/pdf")},
        )
        self.assertEqual(r.status_code, 201, r.text)
        rec_id = r.json()["id"]

        self.login(RESPONDER)
        self.assertEqual(self.client.get("/api/recommendations/stats/summary").json(), {"total": 1, "new": 1})
        detail = self.client.get(f"/api/recommendations/{rec_id}").json()["recommendation"]
        self.assertEqual(detail["status"], "viewed")
        self.assertEqual(detail["fileName"], "notes.pdf")

        r = self.client.get(f"/api/recommendations/download/{rec_id}")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.content, b"%PDF-1.4 fake")
        self.assertIn("notes.pdf", r.headers["content-disposition"])

        r = self.client.delete(f"/api/recommendations/{rec_id}")
        self.assertEqual(r.status_code, 404)

    def test_upload_with_charset_parameter(self):
        self.login(ASKER)
        r = self.client.post(
            "/api/recommendations/upload",
            files={"file": ("notes.txt", b"hello", "text/plain; charset=utf-8")},
        )
        self.assertEqual(r.status_code, 201, r.text)

        sent = self.client.get("/api/recommendations/sent").json()["recommendations"]
        self.assertEqual([(s["fileName"], s["fileType"]) for s in sent], [("notes.txt", "text/plain")])
        self.assertNotIn("filePath", sent[0])

    def test_detect_video(self):
        self.login(ASKER)
        r = self.client.post("/api/recommendations/detect-video", json={"url": "https://youtu.be/dQw4w9WgXcQ"})
        self.assertEqual(r.json(), {"type": "youtube", "videoId": "dQw4w9WgXcQ"})
        r = self.client.post("/api/recommendations/detect-video", json={"url": ""})
        self.assertEqual(r.status_code, 400)


class FailingInboxCase(ApiTestCase):
    client_options = {"raise_server_exceptions": False}

    def failing_inbox(self):
        self.login(RESPONDER)
        with mock.patch(
            "questionair.services.questions.list_inbox", side_effect=RuntimeError("secret detail")
        ):
            with self.assertLogs("questionair.main", level="ERROR") as logs:
                r = self.client.get("/api/questions")
        self.assertIn("secret detail", "\n".join(logs.output))
        self.assertEqual(r.status_code, 500)
        return r


class InternalErrorApiTests(FailingInboxCase):
    def test_generic_message_without_detail(self):
        r = self.failing_inbox()
        self.assertEqual(r.json(), {"error": "Something went wrong"})
        self.assertNotIn("secret detail", r.text)


class DebugInternalErrorApiTests(FailingInboxCase):
    settings_overrides = {"DEBUG": True}

    def test_debug_adds_exception_text(self):
        r = self.failing_inbox()
        self.assertEqual(r.json(), {"error": "Something went wrong: secret detail"})


if __name__ == "__main__":
    unittest.main()
