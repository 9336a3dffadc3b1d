"""End-to-end tests for the developer directory HTTP API."""

from __future__ import annotations

import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fastapi.testclient import TestClient

from devdirectory.config import Settings
from devdirectory.service import build_store, create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


class DirectoryServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.settings = Settings(
            data_path=Path(self._tempdir.name) / "developers.json",
            token_secret="service-test-secret",
            admin_email=ADMIN_EMAIL,
            admin_password=ADMIN_PASSWORD,
        )
        self.store = build_store(self.settings)
        self.app = create_app(settings=self.settings, store=self.store)
        self.client = TestClient(self.app)
        self.client.__enter__()

    def tearDown(self) -> None:
        self.client.__exit__(None, None, None)
        self._tempdir.cleanup()

    def _login(self) -> dict:
        response = self.client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        self.assertEqual(response.status_code, 200, response.text)
        return {"Authorization": f"Bearer {response.json()['token']}"}

    def _create(self, headers: dict, **overrides) -> dict:
        payload = {
            "name": "Grace Hopper",
            "role": "Backend",
            "techStack": ["COBOL", "Fortran"],
            "experience": 12,
            "about": "Compiler pioneer",
            "joiningDate": "2024-03-01",
        }
        payload.update(overrides)
        response = self.client.post("/developers", json=payload, headers=headers)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_health_does_not_require_credentials(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_signup_then_list_developers(self) -> None:
        signup = self.client.post(
            "/auth/signup",
            json={"name": "Alice", "email": "alice@example.com", "password": "hunter22"},
        )
        self.assertEqual(signup.status_code, 201, signup.text)
        payload = signup.json()
        self.assertEqual(payload["user"]["email"], "alice@example.com")
        self.assertNotIn("passwordHash", payload["user"])
        self.assertIn("expiresAt", payload)

        headers = {"Authorization": f"Bearer {payload['token']}"}
        me = self.client.get("/auth/me", headers=headers)
        self.assertEqual(me.json()["id"], payload["user"]["id"])

        listing = self.client.get("/developers", headers=headers)
        self.assertEqual(listing.status_code, 200, listing.text)
        body = listing.json()
        self.assertEqual(body["total"], 11)
        self.assertEqual(body["page"], 1)
        self.assertEqual(body["totalPages"], 2)
        self.assertEqual(len(body["data"]), 9)

    def test_duplicate_signup_is_conflict(self) -> None:
        response = self.client.post(
            "/auth/signup",
            json={"name": "Imposter", "email": "ADMIN@example.com", "password": "whatever1"},
        )
        self.assertEqual(response.status_code, 409, response.text)
        self.assertEqual(response.json()["error"]["code"], "CONFLICT")

    def test_signup_validation(self) -> None:
        response = self.client.post(
            "/auth/signup",
            json={"name": "Alice", "email": "alice@example.com", "password": "123"},
        )
        self.assertEqual(response.status_code, 422, response.text)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_login_with_wrong_password(self) -> None:
        response = self.client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
        self.assertEqual(response.status_code, 401)
        body = response.json()
        self.assertEqual(body["error"]["code"], "INVALID_CREDENTIALS")
        self.assertNotIn("token", body)

    def test_developer_endpoints_require_credentials(self) -> None:
        for method, url in (
            ("GET", "/developers"),
            ("GET", "/developers/some-id"),
            ("POST", "/developers"),
            ("PUT", "/developers/some-id"),
            ("PATCH", "/developers/some-id"),
            ("DELETE", "/developers/some-id"),
        ):
            with self.subTest(method=method, url=url):
                kwargs = {"json": {}} if method in {"POST", "PUT", "PATCH"} else {}
                response = self.client.request(method, url, **kwargs)
                self.assertEqual(response.status_code, 401, response.text)
                self.assertEqual(response.json()["error"]["code"], "UNAUTHENTICATED")
                self.assertEqual(response.headers.get("www-authenticate"), "Bearer")

        garbage = self.client.get("/developers", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(garbage.status_code, 401)

    def test_expired_credential_is_rejected(self) -> None:
        gate = self.app.state.auth_gate
        admin = self.store.get_user_by_email(ADMIN_EMAIL)
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        with mock.patch.object(gate, "_now", return_value=past):
            credential = gate.issue(admin)

        response = self.client.get("/developers", headers={"Authorization": f"Bearer {credential.token}"})
        self.assertEqual(response.status_code, 403, response.text)
        body = response.json()
        self.assertEqual(body["error"]["code"], "UNAUTHORIZED")
        self.assertNotIn("data", body)

    def test_filters_sort_and_pagination(self) -> None:
        headers = self._login()

        backend = self.client.get("/developers", params={"role": "backend", "pageSize": 20}, headers=headers)
        self.assertEqual(backend.json()["total"], 4)

        second = self.client.get("/developers", params={"page": 2, "pageSize": 9}, headers=headers)
        body = second.json()
        self.assertEqual(len(body["data"]), 2)
        self.assertEqual(body["totalPages"], 2)

        ordered = self.client.get(
            "/developers",
            params={"sort": "experience_desc", "tech": "react"},
            headers=headers,
        )
        names = [item["name"] for item in ordered.json()["data"]]
        self.assertEqual(names, ["Aman Roy", "Priya Singh", "James Lee"])

        beyond = self.client.get("/developers", params={"page": 9}, headers=headers)
        self.assertEqual(beyond.status_code, 200)
        self.assertEqual(beyond.json()["data"], [])

    def test_invalid_query_parameters(self) -> None:
        headers = self._login()
        for params in ({"page": 0}, {"pageSize": 0}, {"sort": "oldest"}, {"page": "abc"}):
            with self.subTest(params=params):
                response = self.client.get("/developers", params=params, headers=headers)
                self.assertEqual(response.status_code, 400, response.text)
                self.assertEqual(response.json()["error"]["code"], "INVALID_PARAMETER")

    def test_create_get_update_delete_lifecycle(self) -> None:
        headers = self._login()
        admin = self.store.get_user_by_email(ADMIN_EMAIL)

        created = self._create(headers)
        self.assertEqual(created["createdBy"], admin.id)
        self.assertEqual(created["techStack"], ["COBOL", "Fortran"])
        self.assertEqual(created["joiningDate"], "2024-03-01")
        self.assertIn("createdAt", created)
        self.assertIn("updatedAt", created)

        fetched = self.client.get(f"/developers/{created['id']}", headers=headers)
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json(), created)

        newest = self.client.get("/developers", headers=headers).json()["data"][0]
        self.assertEqual(newest["id"], created["id"])

        patched = self.client.patch(
            f"/developers/{created['id']}",
            json={"experience": 13, "about": None},
            headers=headers,
        )
        self.assertEqual(patched.status_code, 200, patched.text)
        body = patched.json()
        self.assertEqual(body["experience"], 13)
        self.assertIsNone(body["about"])
        self.assertEqual(body["name"], "Grace Hopper")
        self.assertEqual(body["techStack"], ["COBOL", "Fortran"])

        replaced = self.client.put(
            f"/developers/{created['id']}",
            json={"name": "Grace B. Hopper", "role": "Full-Stack"},
            headers=headers,
        )
        self.assertEqual(replaced.status_code, 200, replaced.text)
        self.assertEqual(replaced.json()["role"], "Full-Stack")
        self.assertEqual(replaced.json()["experience"], 13)

        deleted = self.client.delete(f"/developers/{created['id']}", headers=headers)
        self.assertEqual(deleted.status_code, 204)

        missing = self.client.get(f"/developers/{created['id']}", headers=headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "NOT_FOUND")

        again = self.client.delete(f"/developers/{created['id']}", headers=headers)
        self.assertEqual(again.status_code, 404)

    def test_create_validation_errors(self) -> None:
        headers = self._login()
        for overrides in (
            {"techStack": []},
            {"techStack": ["React", ""]},
            {"name": "A"},
            {"role": "Designer"},
            {"experience": -2},
            {"experience": True},
            {"experience": "5"},
            {"experience": 3.0},
        ):
            with self.subTest(overrides=overrides):
                payload = {"name": "Grace Hopper", "role": "Backend", "techStack": ["COBOL"], "experience": 1}
                payload.update(overrides)
                response = self.client.post("/developers", json=payload, headers=headers)
                self.assertEqual(response.status_code, 422, response.text)
                self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(len(self.store.list_developers()), 11)

    def test_update_validation_and_missing_id(self) -> None:
        headers = self._login()
        created = self._create(headers)

        invalid = self.client.patch(f"/developers/{created['id']}", json={"techStack": []}, headers=headers)
        self.assertEqual(invalid.status_code, 422)

        cleared = self.client.patch(f"/developers/{created['id']}", json={"name": None}, headers=headers)
        self.assertEqual(cleared.status_code, 422)

        for experience in (True, "5", 3.0):
            with self.subTest(experience=experience):
                coerced = self.client.patch(
                    f"/developers/{created['id']}", json={"experience": experience}, headers=headers
                )
                self.assertEqual(coerced.status_code, 422, coerced.text)
                self.assertEqual(coerced.json()["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(self.store.get_developer(created["id"]).experience, created["experience"])

        missing = self.client.put("/developers/does-not-exist", json={"experience": 3}, headers=headers)
        self.assertEqual(missing.status_code, 404)

    def test_state_survives_restart(self) -> None:
        headers = self._login()
        created = self._create(headers)

        restarted = create_app(settings=self.settings, store=build_store(self.settings))
        with TestClient(restarted) as client:
            response = client.get(f"/developers/{created['id']}", headers=headers)
            self.assertEqual(response.status_code, 200, response.text)
            self.assertEqual(response.json()["name"], "Grace Hopper")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
