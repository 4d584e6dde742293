from unittest.mock import patch

from sqlalchemy import update

from toolroom.errors import BusinessRuleError
from toolroom.models.audit_log import AuditLog
from toolroom.models.loan import Loan
from toolroom.models.tool import Tool
from toolroom.services import loans as loan_service

from tests.helpers import ApiTestCase


class LoanFlowTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.alice = self.create_user("alice", password="alice123", email="alice@example.com")
        self.bob = self.create_user("bob", password="bob12345")
        self.wrench = self.create_tool("TW-1", quantity=5, name="Torque wrench")
        self.caliper = self.create_tool("DC-1", quantity=1, name="Digital caliper")

    def lend(self, lines, user=None, confirmation=None, headers=None, **extra):
        user = user or self.alice
        payload = {
            "userId": user.id,
            "tools": [{"toolId": tool.id, "quantityLoaned": quantity} for tool, quantity in lines],
            "confirmation": confirmation or {"method": "manual", "identifier": "alice", "password": "alice123"},
        }
        payload.update(extra)
        return self.client.post("/api/loans/", json=payload, headers=headers or self.auth(self.operator))

    def test_lend_then_return_restores_availability(self):
        response = self.lend([(self.wrench, 2)])

        self.assertEqual(response.status_code, 201)
        batch = response.json()
        self.assertEqual(len(batch["loans"]), 1)
        loan = batch["loans"][0]
        self.assertEqual(loan["batchId"], batch["batchId"])
        self.assertEqual(loan["status"], "active")
        self.assertTrue(loan["userConfirmation"])
        self.assertEqual(loan["operatorId"], self.operator.id)
        wrench = self.reload(self.wrench)
        self.assertEqual(wrench.available_quantity, 3)
        self.assertEqual(wrench.status, "available")

        returned = self.client.patch(f"/api/loans/{loan['id']}/return", headers=self.auth(self.operator))

        self.assertEqual(returned.status_code, 200)
        self.assertEqual(returned.json()["status"], "returned")
        self.assertIsNotNone(returned.json()["returnDate"])
        wrench = self.reload(self.wrench)
        self.assertEqual(wrench.available_quantity, 5)
        self.assertEqual(wrench.status, "available")

    def test_lending_last_units_marks_tool_loaned(self):
        response = self.lend([(self.wrench, 5)])

        self.assertEqual(response.status_code, 201)
        wrench = self.reload(self.wrench)
        self.assertEqual(wrench.available_quantity, 0)
        self.assertEqual(wrench.status, "loaned")

    def test_over_request_is_refused_and_changes_nothing(self):
        response = self.lend([(self.wrench, 6)])

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.reload(self.wrench).available_quantity, 5)
        self.assertEqual(self.db.query(Loan).count(), 0)

    def test_batch_is_all_or_nothing(self):
        response = self.lend([(self.wrench, 2), (self.caliper, 2)])

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.reload(self.wrench).available_quantity, 5)
        self.assertEqual(self.reload(self.caliper).available_quantity, 1)
        self.assertEqual(self.db.query(Loan).count(), 0)
        self.assertEqual(self.db.query(AuditLog).filter(AuditLog.action == "move").count(), 0)

    def test_duplicate_lines_are_checked_together(self):
        response = self.lend([(self.wrench, 3), (self.wrench, 3)])

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.reload(self.wrench).available_quantity, 5)

    def test_batch_lines_share_one_batch_id(self):
        response = self.lend([(self.wrench, 1), (self.caliper, 1)], notes="Line 3 maintenance")

        self.assertEqual(response.status_code, 201)
        batch_id = response.json()["batchId"]
        self.assertEqual({loan["batchId"] for loan in response.json()["loans"]}, {batch_id})

        fetched = self.client.get(f"/api/loans/batch/{batch_id}", headers=self.auth(self.operator))
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(len(fetched.json()["loans"]), 2)
        self.assertEqual(fetched.json()["loans"][0]["notes"], "Line 3 maintenance")

    def test_manual_confirmation_accepts_email(self):
        response = self.lend(
            [(self.wrench, 1)],
            confirmation={"method": "manual", "identifier": "alice@example.com", "password": "alice123"},
        )

        self.assertEqual(response.status_code, 201)

    def test_manual_confirmation_failure_is_generic(self):
        wrong_password = self.lend(
            [(self.wrench, 1)], confirmation={"method": "manual", "identifier": "alice", "password": "bad"}
        )
        wrong_identifier = self.lend(
            [(self.wrench, 1)], confirmation={"method": "manual", "identifier": "bob", "password": "bob12345"}
        )

        self.assertEqual(wrong_password.status_code, 400)
        self.assertEqual(wrong_password.json()["message"], "User confirmation failed")
        self.assertEqual(wrong_identifier.json()["message"], "User confirmation failed")
        self.assertEqual(self.reload(self.wrench).available_quantity, 5)

    def test_qr_code_of_another_user_cannot_confirm(self):
        response = self.lend(
            [(self.wrench, 1)], user=self.bob, confirmation={"method": "qrcode", "qrCode": self.alice.qr_code}
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "QR code does not belong to the selected user")
        self.assertEqual(self.db.query(Loan).count(), 0)

    def test_qr_code_of_recipient_confirms(self):
        response = self.lend(
            [(self.wrench, 1)], user=self.bob, confirmation={"method": "qrcode", "qrCode": self.bob.qr_code}
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["loans"][0]["userId"], self.bob.id)

    def test_unknown_confirmation_method_is_invalid(self):
        response = self.lend([(self.wrench, 1)], confirmation={"method": "fingerprint"})

        self.assertEqual(response.status_code, 400)

    def test_plain_user_cannot_lend(self):
        response = self.lend([(self.wrench, 1)], headers=self.auth(self.alice))

        self.assertEqual(response.status_code, 403)

    def test_unknown_tool_is_not_found(self):
        response = self.client.post(
            "/api/loans/",
            json={
                "userId": self.alice.id,
                "tools": [{"toolId": 9999, "quantityLoaned": 1}],
                "confirmation": {"method": "manual", "identifier": "alice", "password": "alice123"},
            },
            headers=self.auth(self.operator),
        )

        self.assertEqual(response.status_code, 404)

    def test_second_return_is_rejected(self):
        loan_id = self.lend([(self.wrench, 2)]).json()["loans"][0]["id"]
        self.client.patch(f"/api/loans/{loan_id}/return", headers=self.auth(self.operator))

        again = self.client.patch(f"/api/loans/{loan_id}/return", headers=self.auth(self.operator))

        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.json()["message"], "Loan already returned")
        self.assertEqual(self.reload(self.wrench).available_quantity, 5)

    def test_loan_and_return_are_audited_as_moves(self):
        loan_id = self.lend([(self.wrench, 2)]).json()["loans"][0]["id"]
        self.client.patch(f"/api/loans/{loan_id}/return", headers=self.auth(self.operator))

        moves = (
            self.db.query(AuditLog)
            .filter(AuditLog.action == "move", AuditLog.target_id == self.wrench.id)
            .order_by(AuditLog.id.asc())
            .all()
        )
        self.assertEqual([entry.details["movement"] for entry in moves], ["loan", "return"])
        self.assertEqual(moves[0].details["confirmationMethod"], "manual")

    def test_users_only_see_their_own_active_loans(self):
        self.lend([(self.wrench, 1)])
        self.lend([(self.caliper, 1)], user=self.bob, confirmation={"method": "qrcode", "qrCode": self.bob.qr_code})

        alice_view = self.client.get("/api/loans/", headers=self.auth(self.alice))
        staff_view = self.client.get("/api/loans/", headers=self.auth(self.operator))

        self.assertEqual([loan["userId"] for loan in alice_view.json()], [self.alice.id])
        self.assertEqual(len(staff_view.json()), 2)

    def test_user_cannot_read_someone_elses_loan(self):
        loan_id = self.lend(
            [(self.caliper, 1)], user=self.bob, confirmation={"method": "qrcode", "qrCode": self.bob.qr_code}
        ).json()["loans"][0]["id"]

        response = self.client.get(f"/api/loans/{loan_id}", headers=self.auth(self.alice))

        self.assertEqual(response.status_code, 404)

    def test_filter_by_status(self):
        first = self.lend([(self.wrench, 1)]).json()["loans"][0]["id"]
        self.lend([(self.wrench, 1)])
        self.client.patch(f"/api/loans/{first}/return", headers=self.auth(self.operator))

        returned = self.client.get("/api/loans/?status=returned", headers=self.auth(self.operator))
        active = self.client.get("/api/loans/?status=active", headers=self.auth(self.operator))

        self.assertEqual([loan["id"] for loan in returned.json()], [first])
        self.assertEqual(len(active.json()), 1)

    def test_overdue_filter(self):
        self.lend([(self.wrench, 1)], expectedReturnDate=self.days_from_now(-1).isoformat())
        self.lend([(self.wrench, 1)], expectedReturnDate=self.days_from_now(3).isoformat())

        response = self.client.get("/api/loans/?status=overdue", headers=self.auth(self.operator))

        self.assertEqual(len(response.json()), 1)
        self.assertTrue(response.json()[0]["overdue"])

    def test_batch_rolls_back_when_a_tool_is_drained_during_the_write(self):
        check_availability = loan_service._check_availability

        def check_then_drain(db, lines):
            tools = check_availability(db, lines)
            other = self.Session()
            try:
                other.execute(update(Tool).where(Tool.id == self.caliper.id).values(available_quantity=0))
                other.commit()
            finally:
                other.close()
            return tools

        with patch("toolroom.services.loans._check_availability", side_effect=check_then_drain):
            response = self.lend([(self.wrench, 2), (self.caliper, 1)])

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["message"], "Tool DC-1 is no longer available in the requested quantity"
        )
        self.assertEqual(self.reload(self.wrench).available_quantity, 5)
        self.assertEqual(self.db.query(Loan).count(), 0)
        self.assertEqual(self.db.query(AuditLog).filter(AuditLog.action == "move").count(), 0)

    def test_return_adds_to_current_availability(self):
        loan_id = self.lend([(self.wrench, 2)]).json()["loans"][0]["id"]
        returning = self.Session()
        try:
            # Loads the tool while 3 units are still free
            loan_service.get_loan(returning, loan_id)
            self.lend([(self.wrench, 3)])
            loan_service.return_loan(returning, loan_id, self.operator)
        finally:
            returning.close()

        wrench = self.reload(self.wrench)
        on_loan = sum(loan.quantity_loaned for loan in self.db.query(Loan).filter(Loan.status == "active"))
        self.assertEqual(wrench.available_quantity, 2)
        self.assertEqual(wrench.available_quantity + on_loan, wrench.quantity)
        self.assertEqual(wrench.status, "available")

    def test_only_one_of_two_concurrent_returns_restores_units(self):
        loan_id = self.lend([(self.wrench, 2)]).json()["loans"][0]["id"]
        first, second = self.Session(), self.Session()
        try:
            loan_service.get_loan(first, loan_id)
            loan_service.get_loan(second, loan_id)

            loan_service.return_loan(first, loan_id, self.operator)
            with self.assertRaises(BusinessRuleError):
                loan_service.return_loan(second, loan_id, self.operator)
        finally:
            first.close()
            second.close()

        self.assertEqual(self.reload(self.wrench).available_quantity, 5)
        moves = self.db.query(AuditLog).filter(AuditLog.action == "move").count()
        self.assertEqual(moves, 2)

    def test_deleting_a_recipient_keeps_their_loans(self):
        loan_id = self.lend([(self.wrench, 2)]).json()["loans"][0]["id"]

        deleted = self.client.delete(f"/api/users/{self.alice.id}", headers=self.auth(self.admin))

        self.assertEqual(deleted.status_code, 204)
        loan = self.client.get(f"/api/loans/{loan_id}", headers=self.auth(self.operator))
        self.assertEqual(loan.status_code, 200)
        self.assertIsNone(loan.json()["userId"])
        self.assertEqual(loan.json()["status"], "active")

        stats = self.client.get("/api/dashboard/stats", headers=self.auth(self.operator))
        self.assertEqual(stats.status_code, 200)
        self.assertEqual(stats.json()["loanedTools"], 2)
        self.assertEqual(stats.json()["recentLoans"][0]["userName"], "")
