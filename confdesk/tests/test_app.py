import os
import re
import unittest
from unittest import mock

from fastapi.testclient import TestClient

from confdesk.app import create_app
from confdesk.config import get_settings
from confdesk.dependencies import (
    get_auth_provider,
    get_payment_gateway,
    get_record_store,
    get_storage_client,
    reset_backends,
)
from confdesk.errors import UpstreamFailure

PASSWORD = "secret123"


class ConferenceApiTests(unittest.TestCase):
    def setUp(self):
        env = mock.patch.dict(os.environ, {"USE_IN_MEMORY_BACKENDS": "true"})
        env.start()
        self.addCleanup(env.stop)
        get_settings.cache_clear()
        self.addCleanup(get_settings.cache_clear)
        reset_backends()
        self.addCleanup(reset_backends)
        self.client = TestClient(create_app())

    def auth_header(self, token):
        return {"Authorization": f"Bearer {token}"}

    def register(self, email="author@example.com", category="scholar"):
        response = self.client.post(
            "/api/registrations",
            json={
                "full_name": "Asha Rao",
                "email": email,
                "phone": "+91 9876543210",
                "category": category,
                "password": PASSWORD,
                "confirm_password": PASSWORD,
                "amount": 2500,
                "currency": "INR",
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def login(self, email):
        response = self.client.post(
            "/api/auth/login", json={"email": email, "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]["access_token"]

    def make_admin(self, email="admin@example.com"):
        auth_user = get_auth_provider().sign_up(email, PASSWORD)
        get_record_store().insert(
            "admins",
            {"auth_id": auth_user.id, "full_name": "Conference Chair", "email": email},
        )
        return self.login(email)

    def upload(self, token, name="paper.pdf", data=b"%PDF-1.7", title="X"):
        return self.client.post(
            "/api/papers",
            headers=self.auth_header(token),
            files={"file": (name, data, "application/pdf")},
            data={"title": title, "abstract": "About X", "keywords": "x, y"},
        )

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_registration_normalizes_category(self):
        user = self.register(category="listener_onsite")
        self.assertEqual(user["category"], "listener")
        self.assertFalse(user["payment_completed"])

    def test_invalid_registration_is_422(self):
        response = self.client.post(
            "/api/registrations",
            json={"full_name": "A", "email": "bad", "phone": "+91 9876543210", "category": "expert"},
        )
        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["code"], "validation_error")

    def test_login_failure_envelope(self):
        self.register()
        response = self.client.post(
            "/api/auth/login", json={"email": "author@example.com", "password": "nope-nope"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "invalid_credential")

    def test_me_requires_session_and_schedules_redirect(self):
        response = self.client.get("/api/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.headers["refresh"], "1.5; url=/login.html")

        self.register()
        token = self.login("author@example.com")
        me = self.client.get("/api/auth/me", headers=self.auth_header(token))
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["data"]["kind"], "user")

    def test_upload_list_and_delete_own_paper(self):
        user = self.register()
        token = self.login("author@example.com")

        response = self.upload(token, data=b"a" * 2097152)

        self.assertEqual(response.status_code, 201, response.text)
        paper = response.json()["data"]
        self.assertEqual(paper["status"], "pending")
        self.assertEqual(paper["file_size_bytes"], 2097152)
        self.assertEqual(paper["keywords"], ["x", "y"])
        self.assertRegex(paper["file_url"], rf"^{re.escape(user['id'])}/\d+_paper\.pdf$")

        listed = self.client.get("/api/papers", headers=self.auth_header(token)).json()
        self.assertEqual([item["id"] for item in listed["data"]], [paper["id"]])

        url = self.client.get(
            f"/api/papers/{paper['id']}/download-url", headers=self.auth_header(token)
        )
        self.assertEqual(url.status_code, 200)
        self.assertIn("url", url.json()["data"])

        deleted = self.client.delete(
            f"/api/papers/{paper['id']}", headers=self.auth_header(token)
        )
        self.assertEqual(deleted.status_code, 200)
        self.assertFalse(get_storage_client().exists(paper["file_url"]))

    def test_upload_rejections(self):
        self.register()
        token = self.login("author@example.com")

        wrong_type = self.upload(token, name="notes.txt")
        self.assertEqual(wrong_type.status_code, 422)
        self.assertEqual(wrong_type.json()["code"], "validation_error")

        anonymous = self.client.post(
            "/api/papers",
            files={"file": ("paper.pdf", b"x", "application/pdf")},
            data={"title": "X"},
        )
        self.assertEqual(anonymous.status_code, 401)

        self.assertEqual(self.upload(token).status_code, 201)
        duplicate = self.upload(token, name="again.pdf")
        self.assertEqual(duplicate.status_code, 409)

    def test_oversized_upload_is_rejected(self):
        self.register()
        token = self.login("author@example.com")

        response = self.upload(token, data=b"a" * (10 * 1024 * 1024 + 5))

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["code"], "validation_error")
        self.assertEqual(get_record_store().select("papers"), [])

    def test_admin_review_flow(self):
        self.register()
        user_token = self.login("author@example.com")
        admin_token = self.make_admin()
        paper = self.upload(user_token).json()["data"]

        forbidden = self.client.get("/api/admin/papers", headers=self.auth_header(user_token))
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.headers["refresh"], "1.5; url=/index.html")

        response = self.client.patch(
            f"/api/admin/papers/{paper['id']}/status",
            headers=self.auth_header(admin_token),
            json={"status": "accepted", "comments": "Great work"},
        )
        self.assertEqual(response.status_code, 200, response.text)
        reviewed = response.json()["data"]
        self.assertEqual(reviewed["status"], "accepted")
        self.assertEqual(reviewed["reviewer_name"], "Conference Chair")

        bad = self.client.patch(
            f"/api/admin/papers/{paper['id']}/status",
            headers=self.auth_header(admin_token),
            json={"status": "approved"},
        )
        self.assertEqual(bad.status_code, 422)

        owner_delete = self.client.delete(
            f"/api/papers/{paper['id']}", headers=self.auth_header(user_token)
        )
        self.assertEqual(owner_delete.status_code, 409)
        self.assertEqual(owner_delete.json()["code"], "invalid_state")

        listing = self.client.get(
            "/api/admin/papers",
            headers=self.auth_header(admin_token),
            params={"status": "accepted"},
        ).json()["data"]
        self.assertEqual(listing[0]["owner"]["email"], "author@example.com")

        stats = self.client.get(
            "/api/admin/statistics", headers=self.auth_header(admin_token)
        ).json()["data"]
        self.assertEqual(stats["accepted_papers"], 1)

        cleared = self.client.delete("/api/admin/papers", headers=self.auth_header(admin_token))
        self.assertEqual(cleared.json()["data"], {"count": 1})

    def test_guard_failure_returns_envelope(self):
        admin_token = self.make_admin()

        with mock.patch.object(
            get_record_store(), "select", side_effect=UpstreamFailure("db down")
        ):
            response = self.client.get(
                "/api/admin/papers", headers=self.auth_header(admin_token)
            )
            papers = self.client.get("/api/papers", headers=self.auth_header(admin_token))

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "unauthorized")
        self.assertEqual(papers.status_code, 200)
        self.assertEqual(papers.json()["data"], [])

    def test_admin_user_management(self):
        user = self.register()
        admin_token = self.make_admin()

        override = self.client.patch(
            f"/api/admin/users/{user['id']}/payment",
            headers=self.auth_header(admin_token),
            json={"payment_completed": True},
        )
        self.assertTrue(override.json()["data"]["payment_completed"])

        removed = self.client.delete(
            f"/api/admin/users/{user['id']}", headers=self.auth_header(admin_token)
        )
        self.assertTrue(removed.json()["data"]["is_deleted"])
        users = self.client.get("/api/admin/users", headers=self.auth_header(admin_token))
        self.assertEqual(users.json()["data"], [])

    def test_payment_flow(self):
        self.register()
        token = self.login("author@example.com")

        checkout = self.client.post(
            "/api/payments/checkout",
            headers=self.auth_header(token),
            json={"amount": 2500, "currency": "INR"},
        )
        self.assertEqual(checkout.status_code, 200, checkout.text)
        session = checkout.json()["data"]
        self.assertEqual(session["amount"], 250000)

        signature = get_payment_gateway().sign(session["order_id"], "pay_123")
        confirmed = self.client.post(
            "/api/payments/confirm",
            json={"order_id": session["order_id"], "payment_id": "pay_123", "signature": signature},
        )
        self.assertEqual(confirmed.status_code, 200, confirmed.text)
        self.assertEqual(confirmed.json()["data"]["status"], "completed")

        forged = self.client.post(
            "/api/payments/confirm",
            json={"order_id": session["order_id"], "payment_id": "pay_124", "signature": "x"},
        )
        self.assertEqual(forged.status_code, 422)

    def test_checkout_below_fee_is_422(self):
        self.register()
        token = self.login("author@example.com")

        response = self.client.post(
            "/api/payments/checkout",
            headers=self.auth_header(token),
            json={"amount": 1, "currency": "INR"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_cancelled_checkout_is_402(self):
        self.register()
        token = self.login("author@example.com")
        session = self.client.post(
            "/api/payments/checkout",
            headers=self.auth_header(token),
            json={"amount": 2500},
        ).json()["data"]

        response = self.client.post(
            "/api/payments/cancel",
            headers=self.auth_header(token),
            json={"order_id": session["order_id"]},
        )

        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.json()["code"], "payment_cancelled")

    def test_logout(self):
        self.register()
        token = self.login("author@example.com")

        response = self.client.post("/api/auth/logout", headers=self.auth_header(token))

        self.assertEqual(response.json()["data"], {"redirect_to": "/login.html"})
        self.assertEqual(
            self.client.get("/api/auth/me", headers=self.auth_header(token)).status_code, 401
        )


if __name__ == "__main__":
    unittest.main()
