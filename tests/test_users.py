from tests.helpers import ApiTestCase


class UserRouteTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.worker = self.create_user("worker", department="Production", email="worker@example.com")

    def test_plain_users_do_not_see_other_badges(self):
        other = self.create_user("other")

        response = self.client.get("/api/users/", headers=self.auth(self.worker))

        self.assertEqual(response.status_code, 200)
        by_id = {user["id"]: user for user in response.json()}
        self.assertIsNone(by_id[other.id]["qrCode"])
        self.assertEqual(by_id[self.worker.id]["qrCode"], self.worker.qr_code)

    def test_filter_by_department(self):
        self.create_user("qa", department="Quality")

        response = self.client.get("/api/users/?department=Production", headers=self.auth(self.admin))

        self.assertEqual([user["username"] for user in response.json()], ["worker"])

    def test_admin_updates_user_and_rehashes_password(self):
        response = self.client.patch(
            f"/api/users/{self.worker.id}",
            json={"department": "Assembly", "password": "changed123"},
            headers=self.auth(self.admin),
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["department"], "Assembly")
        login = self.client.post("/api/auth/login", json={"username": "worker", "password": "changed123"})
        self.assertEqual(login.status_code, 200)

    def test_update_rejects_email_taken_by_someone_else(self):
        self.create_user("other", email="other@example.com")

        response = self.client.patch(
            f"/api/users/{self.worker.id}", json={"email": "other@example.com"}, headers=self.auth(self.admin)
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Email already registered")

    def test_operator_cannot_update_users(self):
        response = self.client.patch(
            f"/api/users/{self.worker.id}", json={"department": "X"}, headers=self.auth(self.operator)
        )

        self.assertEqual(response.status_code, 403)

    def test_regenerate_qr_code_invalidates_old_one(self):
        old_code = self.worker.qr_code

        response = self.client.post(f"/api/users/{self.worker.id}/qrcode", headers=self.auth(self.admin))

        self.assertEqual(response.status_code, 200)
        self.assertNotEqual(response.json()["qrCode"], old_code)
        lookup = self.client.post(
            "/api/auth/validate-qrcode", json={"qrCode": old_code}, headers=self.auth(self.operator)
        )
        self.assertEqual(lookup.status_code, 404)

    def test_admin_cannot_delete_self(self):
        response = self.client.delete(f"/api/users/{self.admin.id}", headers=self.auth(self.admin))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "You cannot delete your own account")

    def test_delete_user(self):
        response = self.client.delete(f"/api/users/{self.worker.id}", headers=self.auth(self.admin))

        self.assertEqual(response.status_code, 204)
        missing = self.client.get(f"/api/users/{self.worker.id}", headers=self.auth(self.admin))
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["message"], "User not found")
