from tests.helpers import ApiTestCase


class AuditRouteTests(ApiTestCase):
    def test_tool_history_is_newest_first(self):
        headers = self.auth(self.admin)
        tool_id = self.client.post("/api/tools/", json={"name": "Wrench", "code": "TW-1"}, headers=headers).json()["id"]
        self.client.patch(f"/api/tools/{tool_id}", json={"name": "Torque wrench"}, headers=headers)

        response = self.client.get(f"/api/audit/logs?targetType=tool&targetId={tool_id}", headers=headers)

        self.assertEqual(response.status_code, 200)
        entries = response.json()
        self.assertEqual([entry["action"] for entry in entries], ["update", "create"])
        self.assertEqual(entries[0]["beforeData"]["name"], "Wrench")
        self.assertEqual(entries[0]["afterData"]["name"], "Torque wrench")
        self.assertEqual(entries[0]["actor"]["username"], "admin")

    def test_metadata_key_on_the_wire(self):
        headers = self.auth(self.admin)
        worker = self.create_user("worker")
        self.client.patch(f"/api/users/{worker.id}", json={"password": "another123"}, headers=headers)

        entries = self.client.get(f"/api/audit/logs?targetType=user&targetId={worker.id}", headers=headers).json()

        self.assertEqual(entries[0]["metadata"], {"passwordChanged": True})

    def test_only_admins_read_audit_logs(self):
        response = self.client.get("/api/audit/logs", headers=self.auth(self.operator))

        self.assertEqual(response.status_code, 403)
