import unittest

from fastapi.testclient import TestClient

from grove.app import create_app
from grove.db import InMemoryDbClient
from grove.dependencies import get_db_client, get_queue_client, get_storage_client
from grove.queue import InMemoryJobQueue
from grove.storage import InMemoryStorageClient
from grove.types import HeirStatus


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.queue = InMemoryJobQueue()
        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_queue_client] = lambda: self.queue
        self.client = TestClient(app)

        self.owner = self.db.create_user("owner@example.com", name="Owner")
        self.other = self.db.create_user("other@example.com")
        self.admin = self.db.create_user("admin@example.com", is_admin=True)

    def _headers(self, user) -> dict:
        session = self.db.create_session(user.user_id, ttl_seconds=3600)
        return {"Authorization": f"Bearer {session.token}"}

    def _create_branch(self, title="Grandma Rose") -> str:
        response = self.client.post(
            "/api/branches", json={"title": title}, headers=self._headers(self.owner)
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["id"]

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_missing_session_is_unauthorized(self):
        response = self.client.post("/api/branches", json={"title": "x"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "UNAUTHORIZED")

        response = self.client.get(
            "/api/branches", headers={"Authorization": "Bearer not-a-token"}
        )
        self.assertEqual(response.status_code, 401)

    def test_non_bearer_scheme_is_unauthorized(self):
        session = self.db.create_session(self.owner.user_id, ttl_seconds=3600)
        for scheme in ("Basic", "Token"):
            response = self.client.get(
                "/api/branches", headers={"Authorization": f"{scheme} {session.token}"}
            )
            self.assertEqual(response.status_code, 401)
            self.assertEqual(response.json()["code"], "UNAUTHORIZED")

        response = self.client.get(
            "/api/branches", headers={"Authorization": f"Bearer {session.token}"}
        )
        self.assertEqual(response.status_code, 200)

    def test_create_memory_and_duplicate_guard(self):
        branch_id = self._create_branch()
        headers = self._headers(self.owner)
        body = {"branchId": branch_id, "text": "Grandma loved her garden."}

        created = self.client.post("/api/memories", json=body, headers=headers)
        self.assertEqual(created.status_code, 201)
        entry = created.json()
        self.assertEqual(entry["branchId"], branch_id)
        self.assertEqual(entry["status"], "ACTIVE")
        self.assertEqual(len(entry["contentHash"]), 64)

        again = self.client.post(
            "/api/memories",
            json={"branchId": branch_id, "text": "grandma loved her garden.  "},
            headers=headers,
        )
        self.assertEqual(again.status_code, 409)
        payload = again.json()
        self.assertTrue(payload["isDuplicate"])
        self.assertEqual(payload["existingEntry"]["id"], entry["id"])

        forced = self.client.post(
            "/api/memories", json={**body, "allowDuplicate": True}, headers=headers
        )
        self.assertEqual(forced.status_code, 201)

        listed = self.client.get(f"/api/branches/{branch_id}/memories", headers=headers)
        self.assertEqual(len(listed.json()["memories"]), 2)

    def test_memory_with_media_is_not_a_duplicate(self):
        branch_id = self._create_branch()
        headers = self._headers(self.owner)
        self.client.post(
            "/api/memories",
            json={"branchId": branch_id, "text": "Grandma loved her garden."},
            headers=headers,
        )
        response = self.client.post(
            "/api/memories",
            json={
                "branchId": branch_id,
                "text": "Grandma loved her garden.",
                "mediaUrl": "https://cdn.example/roses.jpg",
            },
            headers=headers,
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["mediaUrl"], "https://cdn.example/roses.jpg")

    def test_request_validation_uses_error_envelope(self):
        response = self.client.post(
            "/api/memories", json={"text": "no branch"}, headers=self._headers(self.owner)
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

    def test_withdraw_memory_by_other_user_is_forbidden(self):
        branch_id = self._create_branch()
        created = self.client.post(
            "/api/memories",
            json={"branchId": branch_id, "text": "A summer day."},
            headers=self._headers(self.owner),
        ).json()
        response = self.client.post(
            f"/api/memories/{created['id']}/withdraw", headers=self._headers(self.other)
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "FORBIDDEN")

        response = self.client.post(
            f"/api/memories/{created['id']}/withdraw", headers=self._headers(self.owner)
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "WITHDRAWN")

    def test_add_heir_rules(self):
        branch_id = self._create_branch()
        body = {
            "heirEmail": "heir@example.com",
            "releaseCondition": "date",
            "releaseDate": "2025-01-01",
        }

        created = self.client.post(
            f"/api/branches/{branch_id}/heirs", json=body, headers=self._headers(self.owner)
        )
        self.assertEqual(created.status_code, 201)
        heir = created.json()
        self.assertEqual(heir["status"], "PENDING")
        self.assertEqual(heir["releaseCondition"], "AFTER_DATE")
        self.assertIsNone(heir["downloadToken"])

        forbidden = self.client.post(
            f"/api/branches/{branch_id}/heirs", json=body, headers=self._headers(self.other)
        )
        self.assertEqual(forbidden.status_code, 403)

        missing = self.client.post(
            f"/api/branches/{branch_id}/heirs",
            json={"releaseCondition": "date"},
            headers=self._headers(self.owner),
        )
        self.assertEqual(missing.status_code, 400)

        unknown = self.client.post(
            "/api/branches/nope/heirs", json=body, headers=self._headers(self.owner)
        )
        self.assertEqual(unknown.status_code, 404)

        listed = self.client.get(
            f"/api/branches/{branch_id}/heirs", headers=self._headers(self.owner)
        )
        self.assertEqual(len(listed.json()["heirs"]), 1)

    def test_sweep_and_legacy_download(self):
        branch_id = self._create_branch()
        owner_headers = self._headers(self.owner)
        self.client.post(
            "/api/memories",
            json={"branchId": branch_id, "text": "Grandma loved her garden."},
            headers=owner_headers,
        )
        heir = self.client.post(
            f"/api/branches/{branch_id}/heirs",
            json={
                "heirEmail": "heir@example.com",
                "releaseCondition": "AFTER_DATE",
                "releaseDate": "2000-01-01T00:00:00Z",
            },
            headers=owner_headers,
        ).json()

        denied = self.client.post("/api/admin/legacy/sweep", headers=owner_headers)
        self.assertEqual(denied.status_code, 403)

        sweep = self.client.post("/api/admin/legacy/sweep", headers=self._headers(self.admin))
        self.assertEqual(sweep.status_code, 200)
        results = sweep.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["heirId"], heir["id"])
        self.assertEqual(results[0]["status"], "RELEASED")

        record = self.db.get_heir(heir["id"])
        self.assertEqual(record.status, HeirStatus.RELEASED)
        download = self.client.get(
            "/api/legacy/download", params={"token": record.download_token}
        )
        self.assertEqual(download.status_code, 200)
        bundle = download.json()
        self.assertEqual(bundle["branch"]["id"], branch_id)
        self.assertEqual(len(bundle["memories"]), 1)

        unknown = self.client.get("/api/legacy/download", params={"token": "bogus"})
        self.assertEqual(unknown.status_code, 404)

        deleted = self.client.delete(f"/api/branches/{branch_id}", headers=owner_headers)
        self.assertEqual(deleted.status_code, 200)
        expired = self.client.get(
            "/api/legacy/download", params={"token": record.download_token}
        )
        self.assertEqual(expired.status_code, 410)
        self.assertEqual(expired.json()["code"], "EXPIRED")

    def test_manual_release_returns_token(self):
        branch_id = self._create_branch()
        owner_headers = self._headers(self.owner)
        heir = self.client.post(
            f"/api/branches/{branch_id}/heirs",
            json={"heirEmail": "heir@example.com", "releaseCondition": "MANUAL"},
            headers=owner_headers,
        ).json()

        released = self.client.post(f"/api/heirs/{heir['id']}/release", headers=owner_headers)
        self.assertEqual(released.status_code, 200)
        self.assertEqual(released.json()["status"], "RELEASED")
        self.assertTrue(released.json()["downloadToken"])
        self.assertEqual([n.heir_id for n in self.queue.items], [heir["id"]])
        self.assertEqual(len(self.storage.stored_objects), 1)

        revoked = self.client.delete(f"/api/heirs/{heir['id']}", headers=owner_headers)
        self.assertEqual(revoked.status_code, 200)
        self.assertIsNotNone(revoked.json()["revokedAt"])
        self.assertEqual(self.storage.stored_objects, {})
        self.assertEqual([n.kind for n in self.queue.items], ["RELEASED", "REVOKED"])

    def test_branch_archive_restore_and_legacy(self):
        branch_id = self._create_branch()
        headers = self._headers(self.owner)

        archived = self.client.post(f"/api/branches/{branch_id}/archive", headers=headers)
        self.assertEqual(archived.json()["status"], "ARCHIVED")
        again = self.client.post(f"/api/branches/{branch_id}/archive", headers=headers)
        self.assertEqual(again.status_code, 400)
        restored = self.client.post(f"/api/branches/{branch_id}/restore", headers=headers)
        self.assertEqual(restored.json()["status"], "ACTIVE")

        missing_proof = self.client.patch(
            f"/api/branches/{branch_id}/legacy", json={}, headers=headers
        )
        self.assertEqual(missing_proof.status_code, 400)
        legacy = self.client.patch(
            f"/api/branches/{branch_id}/legacy",
            json={"affirmation": True, "deathDate": "2020-06-01"},
            headers=headers,
        )
        self.assertEqual(legacy.status_code, 200)
        self.assertEqual(legacy.json()["personStatus"], "LEGACY")
        self.assertEqual(legacy.json()["deathDate"], "2020-06-01")

    def test_members_can_post_memories(self):
        branch_id = self._create_branch()
        added = self.client.post(
            f"/api/branches/{branch_id}/members",
            json={"email": "other@example.com"},
            headers=self._headers(self.owner),
        )
        self.assertEqual(added.status_code, 201)
        response = self.client.post(
            "/api/memories",
            json={"branchId": branch_id, "text": "I remember the lake house."},
            headers=self._headers(self.other),
        )
        self.assertEqual(response.status_code, 201)

    def test_sign_url_is_scoped_to_user(self):
        response = self.client.get(
            "/api/uploads/sign-url",
            params={"path": "photos/rose.jpg"},
            headers=self._headers(self.owner),
        )
        self.assertEqual(response.status_code, 200)
        url = response.json()["url"]
        self.assertIn(f"uploads/{self.owner.user_id}/photos/rose.jpg", url)
        self.assertIn("op=put", url)

        escape = self.client.get(
            "/api/uploads/sign-url",
            params={"path": "../other/rose.jpg"},
            headers=self._headers(self.owner),
        )
        self.assertEqual(escape.status_code, 403)


if __name__ == "__main__":
    unittest.main()
