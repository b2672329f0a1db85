"""API endpoint integration tests.

Drives the FastAPI app end to end: identity header, report lifecycle,
approval decisions, settlement and the register.
"""

import csv
import io
from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient

API = "/api/v1"


def as_(account) -> dict[str, str]:
    return {"X-Account-ID": str(account.account_id)}


async def create_report(client: AsyncClient, owner, amounts=("500.00",), **fields) -> dict:
    response = await client.post(
        f"{API}/reports", headers=as_(owner), json={"title": "Client visit", **fields}
    )
    assert response.status_code == 201, response.text
    report = response.json()
    for amount in amounts:
        response = await client.post(
            f"{API}/reports/{report['report_id']}/expenses",
            headers=as_(owner),
            json={"category": "meals", "amount": amount, "expense_date": "2026-03-02"},
        )
        assert response.status_code == 201, response.text
    return report


async def submitted_report(client: AsyncClient, owner, **kwargs) -> dict:
    report = await create_report(client, owner, **kwargs)
    response = await client.post(
        f"{API}/reports/{report['report_id']}/submit", headers=as_(owner)
    )
    assert response.status_code == 200, response.text
    return response.json()


async def decide(client: AsyncClient, report_id, actor, decision, expected_status, **extra):
    return await client.post(
        f"{API}/reports/{report_id}/decisions",
        headers=as_(actor),
        json={"decision": decision, "expected_status": expected_status, **extra},
    )


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "test"

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestIdentity:
    async def test_missing_header(self, client: AsyncClient):
        response = await client.get(f"{API}/reports")
        assert response.status_code == 401

    async def test_malformed_header(self, client: AsyncClient):
        response = await client.get(f"{API}/reports", headers={"X-Account-ID": "not-a-uuid"})
        assert response.status_code == 401

    async def test_unknown_account(self, client: AsyncClient, accounts):
        response = await client.get(f"{API}/reports", headers={"X-Account-ID": str(uuid4())})
        assert response.status_code == 401

    async def test_me(self, client: AsyncClient, accounts):
        response = await client.get(f"{API}/accounts/me", headers=as_(accounts["manager"]))

        assert response.status_code == 200
        assert response.json()["role"] == "manager"
        assert response.json()["department"] == "Sales"


class TestReportFlow:
    async def test_create_add_submit(self, client: AsyncClient, accounts):
        employee = accounts["employee"]
        report = await create_report(client, employee, amounts=("120.50", "79.50"))
        assert report["status"] == "draft"

        response = await client.post(
            f"{API}/reports/{report['report_id']}/submit", headers=as_(employee)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "submitted"
        assert Decimal(data["total_amount"]) == Decimal("200.00")

        detail = await client.get(f"{API}/reports/{report['report_id']}", headers=as_(employee))
        assert len(detail.json()["line_items"]) == 2

    async def test_submit_empty_report(self, client: AsyncClient, accounts):
        employee = accounts["employee"]
        report = await create_report(client, employee, amounts=())

        response = await client.post(
            f"{API}/reports/{report['report_id']}/submit", headers=as_(employee)
        )

        assert response.status_code == 409
        assert response.json()["code"] == "EMPTY_REPORT"

    async def test_unknown_category(self, client: AsyncClient, accounts):
        employee = accounts["employee"]
        report = await create_report(client, employee, amounts=())

        response = await client.post(
            f"{API}/reports/{report['report_id']}/expenses",
            headers=as_(employee),
            json={"category": "spaceship", "amount": "10", "expense_date": "2026-03-02"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["context"]["field"] == "category"

    async def test_edit_after_submit_conflicts(self, client: AsyncClient, accounts):
        employee = accounts["employee"]
        report = await submitted_report(client, employee)

        response = await client.patch(
            f"{API}/reports/{report['report_id']}",
            headers=as_(employee),
            json={"title": "Renamed"},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE"

    async def test_withdraw(self, client: AsyncClient, accounts):
        employee = accounts["employee"]
        report = await submitted_report(client, employee)

        response = await client.post(
            f"{API}/reports/{report['report_id']}/withdraw", headers=as_(employee)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "draft"
        assert response.json()["submitted_at"] is None

    async def test_summary(self, client: AsyncClient, accounts):
        employee = accounts["employee"]
        report = await create_report(client, employee, amounts=("30.00", "20.00"))

        response = await client.get(
            f"{API}/reports/{report['report_id']}/summary", headers=as_(employee)
        )

        data = response.json()
        assert data["item_count"] == 2
        assert Decimal(data["total"]) == Decimal("50.00")
        assert data["by_category"][0]["label"] == "Meals"

    async def test_other_employee_cannot_view(self, client: AsyncClient, accounts):
        report = await create_report(client, accounts["employee"])
        response = await client.post(
            f"{API}/accounts",
            headers=as_(accounts["admin"]),
            json={"display_name": "Cody Colleague", "department": "Sales"},
        )
        colleague = response.json()

        response = await client.get(
            f"{API}/reports/{report['report_id']}",
            headers={"X-Account-ID": colleague["account_id"]},
        )

        assert response.status_code == 403
        assert response.json()["code"] == "UNAUTHORIZED"


class TestReceipts:
    async def test_upload_target(self, client: AsyncClient, accounts):
        employee = accounts["employee"]

        response = await client.post(
            f"{API}/receipts/upload-target",
            headers=as_(employee),
            json={"content_type": "image/png"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["public_reference"].startswith(f"https://files.test/{employee.account_id}/")
        assert data["expires_in_seconds"] == 600

    async def test_bad_content_type(self, client: AsyncClient, accounts):
        response = await client.post(
            f"{API}/receipts/upload-target",
            headers=as_(accounts["employee"]),
            json={"content_type": "png"},
        )
        assert response.status_code == 422

    async def test_delete_report_purges_receipts(self, client: AsyncClient, accounts, storage):
        employee = accounts["employee"]
        target = storage.issue_upload_target("image/jpeg", employee.account_id)
        report = await create_report(client, employee, amounts=())
        response = await client.post(
            f"{API}/reports/{report['report_id']}/expenses",
            headers=as_(employee),
            json={
                "category": "taxi",
                "amount": "45.00",
                "expense_date": "2026-03-02",
                "receipt_refs": [target.public_reference],
            },
        )
        assert response.status_code == 201

        response = await client.delete(
            f"{API}/reports/{report['report_id']}", headers=as_(employee)
        )

        assert response.status_code == 204
        assert storage.deleted == [target.public_reference]
        missing = await client.get(f"{API}/reports/{report['report_id']}", headers=as_(employee))
        assert missing.status_code == 404

    async def test_delete_survives_storage_outage(self, client: AsyncClient, accounts, storage):
        employee = accounts["employee"]
        storage.fail_deletes = True
        report = await create_report(client, employee, amounts=())
        await client.post(
            f"{API}/reports/{report['report_id']}/expenses",
            headers=as_(employee),
            json={
                "category": "taxi",
                "amount": "45.00",
                "expense_date": "2026-03-02",
                "receipt_refs": ["https://files.test/x/y.jpg"],
            },
        )

        response = await client.delete(
            f"{API}/reports/{report['report_id']}", headers=as_(employee)
        )

        assert response.status_code == 204

    async def test_attach_and_detach(self, client: AsyncClient, accounts, storage):
        employee = accounts["employee"]
        report = await create_report(client, employee)
        detail = await client.get(f"{API}/reports/{report['report_id']}", headers=as_(employee))
        item_id = detail.json()["line_items"][0]["line_item_id"]
        ref = storage.issue_upload_target("image/png", employee.account_id).public_reference

        response = await client.post(
            f"{API}/expenses/{item_id}/receipts",
            headers=as_(employee),
            json={"reference": ref},
        )
        assert response.json()["receipt_refs"] == [ref]

        response = await client.delete(
            f"{API}/expenses/{item_id}/receipts",
            headers=as_(employee),
            params={"reference": ref},
        )
        assert response.status_code == 204
        assert storage.deleted == [ref]

    async def test_prefill(self, client: AsyncClient, accounts):
        response = await client.post(
            f"{API}/receipts/prefill",
            headers=as_(accounts["employee"]),
            json={"payload": {"amount": "545", "date": "2026-02-14", "seller": "中国东方航空"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["category"] == "airfare"
        assert data["is_vat_invoice"] is True
        assert Decimal(data["tax_rate"]) == Decimal("9")


class TestDecisions:
    async def test_manager_then_partner(self, client: AsyncClient, accounts):
        report = await submitted_report(client, accounts["employee"])
        report_id = report["report_id"]

        first = await decide(client, report_id, accounts["manager"], "approved", "submitted")
        assert first.status_code == 201, first.text
        assert first.json()["report"]["status"] == "pending_partner_approval"

        second = await decide(
            client, report_id, accounts["partner"], "approved", "pending_partner_approval"
        )
        assert second.status_code == 201
        data = second.json()["report"]
        assert data["status"] == "approved"
        assert data["primary_approver_id"] == str(accounts["manager"].account_id)
        assert data["final_approver_id"] == str(accounts["partner"].account_id)

        history = await client.get(
            f"{API}/reports/{report_id}/decisions", headers=as_(accounts["employee"])
        )
        assert [r["decision"] for r in history.json()] == ["approved", "approved"]

    async def test_stale_decision(self, client: AsyncClient, accounts):
        report = await submitted_report(client, accounts["employee"])
        report_id = report["report_id"]

        await decide(client, report_id, accounts["manager"], "approved", "submitted")
        response = await decide(client, report_id, accounts["partner"], "approved", "submitted")

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "STALE_STATE"
        assert body["context"]["expected_status"] == "submitted"

        history = await client.get(
            f"{API}/reports/{report_id}/decisions", headers=as_(accounts["employee"])
        )
        assert len(history.json()) == 1

    async def test_late_approver_gets_stale_state(self, client: AsyncClient, accounts, app):
        report = await submitted_report(client, accounts["employee"])
        report_id = report["report_id"]
        deputy = accounts["deputy_manager"]

        await decide(client, report_id, accounts["manager"], "approved", "submitted")
        response = await decide(client, report_id, deputy, "approved", "submitted")

        assert response.status_code == 409
        assert response.json()["code"] == "STALE_STATE"
        assert app.state.monitor.attempts(deputy.account_id) == 0

    async def test_expected_status_is_required(self, client: AsyncClient, accounts):
        report = await submitted_report(client, accounts["employee"])
        report_id = report["report_id"]

        response = await client.post(
            f"{API}/reports/{report_id}/decisions",
            headers=as_(accounts["manager"]),
            json={"decision": "approved"},
        )

        assert response.status_code == 422
        history = await client.get(
            f"{API}/reports/{report_id}/decisions", headers=as_(accounts["employee"])
        )
        assert history.json() == []

    async def test_self_approval_forbidden(self, client: AsyncClient, accounts, app):
        partner = accounts["partner"]
        report = await submitted_report(client, partner)

        response = await decide(client, report["report_id"], partner, "approved", "submitted")

        assert response.status_code == 403
        assert response.json()["code"] == "UNAUTHORIZED"
        assert app.state.monitor.attempts(partner.account_id) == 1

    async def test_unknown_decision(self, client: AsyncClient, accounts):
        report = await submitted_report(client, accounts["employee"])

        response = await decide(
            client, report["report_id"], accounts["manager"], "reject", "submitted"
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_queues(self, client: AsyncClient, accounts):
        report = await submitted_report(client, accounts["employee"])
        manager = accounts["manager"]

        pending = await client.get(f"{API}/approvals/pending", headers=as_(manager))
        assert [r["report_id"] for r in pending.json()["items"]] == [report["report_id"]]

        options = await client.get(
            f"{API}/reports/{report['report_id']}/available-decisions", headers=as_(manager)
        )
        assert options.json()["decisions"] == ["approved", "forward_to_partner", "send_back"]

        await decide(client, report["report_id"], manager, "forward_to_partner", "submitted")
        processed = await client.get(f"{API}/approvals/processed", headers=as_(manager))
        assert processed.json()["total"] == 1
        pending = await client.get(f"{API}/approvals/pending", headers=as_(manager))
        assert pending.json()["total"] == 0


class TestSettlement:
    async def approved(self, client, accounts) -> str:
        report = await submitted_report(client, accounts["employee"])
        await decide(client, report["report_id"], accounts["partner"], "approved", "submitted")
        return report["report_id"]

    async def test_paid_requires_invoice(self, client: AsyncClient, accounts):
        report_id = await self.approved(client, accounts)

        response = await client.put(
            f"{API}/reports/{report_id}/paid",
            headers=as_(accounts["admin"]),
            json={"value": True},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVOICE_REQUIRED"

    async def test_invoice_then_paid(self, client: AsyncClient, accounts):
        report_id = await self.approved(client, accounts)
        admin = as_(accounts["admin"])

        response = await client.put(
            f"{API}/reports/{report_id}/invoice-received", headers=admin, json={"value": True}
        )
        assert response.json()["invoice_received"] is True

        response = await client.put(f"{API}/reports/{report_id}/paid", headers=admin, json={"value": True})
        assert response.status_code == 200
        assert response.json()["paid"] is True

        payable = await client.get(f"{API}/settlement/payable", headers=admin)
        assert payable.json()["total"] == 1

    async def test_admin_only(self, client: AsyncClient, accounts):
        report_id = await self.approved(client, accounts)

        response = await client.put(
            f"{API}/reports/{report_id}/invoice-received",
            headers=as_(accounts["partner"]),
            json={"value": True},
        )

        assert response.status_code == 403


class TestRegister:
    async def test_json_and_csv(self, client: AsyncClient, accounts):
        await submitted_report(client, accounts["employee"], amounts=("80.00", "20.00"), customer_name="Acme Corp")
        await create_report(client, accounts["employee"], amounts=("999.00",))
        manager = as_(accounts["manager"])

        response = await client.get(f"{API}/register", headers=manager, params={"customer": "acme"})
        data = response.json()
        assert data["total"] == 2
        assert Decimal(data["total_amount"]) == Decimal("100.00")

        response = await client.get(f"{API}/register", headers=manager, params={"format": "csv"})
        assert response.headers["content-type"].startswith("text/csv")
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][:3] == ["Date", "Category", "Amount"]
        assert len(rows) == 3

    async def test_employees_denied(self, client: AsyncClient, accounts):
        response = await client.get(f"{API}/register", headers=as_(accounts["employee"]))
        assert response.status_code == 403

    async def test_inverted_range(self, client: AsyncClient, accounts):
        response = await client.get(
            f"{API}/register",
            headers=as_(accounts["manager"]),
            params={"start": "2026-05-01", "end": "2026-04-01"},
        )
        assert response.status_code == 422


class TestDirectory:
    async def test_categories(self, client: AsyncClient):
        response = await client.get(f"{API}/categories")

        codes = [c["code"] for c in response.json()]
        assert codes[0] == "airfare"
        assert "office_supplies" in codes

    async def test_customers(self, client: AsyncClient, accounts):
        admin = as_(accounts["admin"])

        created = await client.post(f"{API}/customers", headers=admin, json={"name": "Acme Corp"})
        assert created.status_code == 201
        duplicate = await client.post(f"{API}/customers", headers=admin, json={"name": "acme corp"})
        assert duplicate.status_code == 422

        listed = await client.get(f"{API}/customers", headers=as_(accounts["employee"]))
        assert [c["name"] for c in listed.json()] == ["Acme Corp"]

    async def test_role_assignment(self, client: AsyncClient, accounts):
        employee = accounts["employee"]

        denied = await client.put(
            f"{API}/accounts/{employee.account_id}/role",
            headers=as_(employee),
            json={"role": "admin"},
        )
        assert denied.status_code == 403

        granted = await client.put(
            f"{API}/accounts/{employee.account_id}/role",
            headers=as_(accounts["admin"]),
            json={"role": "manager", "department": "Legal"},
        )
        assert granted.json()["role"] == "manager"
        assert granted.json()["department"] == "Legal"

    async def test_create_account_admin_only(self, client: AsyncClient, accounts):
        response = await client.post(
            f"{API}/accounts",
            headers=as_(accounts["employee"]),
            json={"display_name": "Mallory"},
        )
        assert response.status_code == 403
