"""API tests for report filing, partner routing and the status lifecycle."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from onetouch.categories import Category
from onetouch.config import settings
from onetouch.models import AuditLog, Report


async def _audit_rows(session_factory, action: str) -> list[AuditLog]:
    async with session_factory() as session:
        result = await session.execute(
            select(AuditLog).where(AuditLog.action == action).order_by(AuditLog.target_id)
        )
        return list(result.scalars().all())


@pytest.mark.api
@pytest.mark.asyncio
class TestReportRouting:

    async def test_office_contract_beats_company_wide(
        self, client: AsyncClient, headers, o1_staff, make_contract, session_factory,
    ):
        await make_contract("PN002", office_code=None)
        office_contract = await make_contract("PN001", office_code="O1")

        response = await client.post(
            "/api/reports",
            json={"title": "Leaking pipe", "category": "建物インフラ"},
            headers=headers(o1_staff),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["id"].startswith("RPT-")
        assert data["status"] == "pending"
        assert data["office_code"] == "O1"
        assert data["assigned_partner_id"] == "PN001"
        assert data["assigned_partner_name"] == "Tokyo Facilities"
        assert data["reporter_id"] == "o1-staff"

        [row] = await _audit_rows(session_factory, "report_create")
        assert row.details["assignmentSource"] == "contract"
        assert row.details["contractId"] == office_contract.id

    async def test_oldest_contract_wins_within_tier(
        self, client: AsyncClient, headers, o1_staff, make_contract,
    ):
        await make_contract("PN002")
        await make_contract("PN001")

        response = await client.post(
            "/api/reports",
            json={"title": "Broken door", "category": "建物インフラ"},
            headers=headers(o1_staff),
        )

        assert response.json()["assigned_partner_id"] == "PN002"

    async def test_other_office_contract_ignored(
        self, client: AsyncClient, headers, o1_staff, make_contract,
    ):
        await make_contract("PN001", office_code="O2")

        response = await client.post(
            "/api/reports",
            json={"title": "Broken door", "category": "建物インフラ"},
            headers=headers(o1_staff),
        )

        assert response.json()["assigned_partner_id"] is None

    async def test_inactive_and_other_category_contracts_ignored(
        self, client: AsyncClient, headers, o1_staff, make_contract,
    ):
        await make_contract("PN001", status="inactive")
        await make_contract("PN002", categories=(Category.KITCHEN_MEALS,))

        response = await client.post(
            "/api/reports",
            json={"title": "Broken door", "category": "建物インフラ"},
            headers=headers(o1_staff),
        )

        assert response.status_code == 201
        assert response.json()["assigned_partner_id"] is None
        assert response.json()["assigned_partner_name"] == ""

    async def test_deactivated_partner_not_routed(
        self, client: AsyncClient, headers, o1_staff, system_admin, make_contract,
    ):
        await make_contract("PN001", office_code="O1")
        await make_contract("PN002")
        deleted = await client.delete("/api/partners/PN001", headers=headers(system_admin))
        assert deleted.status_code == 200

        response = await client.post(
            "/api/reports",
            json={"title": "Broken door", "category": "建物インフラ"},
            headers=headers(o1_staff),
        )

        assert response.status_code == 201
        assert response.json()["assigned_partner_id"] == "PN002"

    async def test_item_pin_overrides_contracts(
        self, client: AsyncClient, headers, o1_staff, make_contract, make_item, session_factory,
    ):
        await make_contract("PN001", office_code="O1")
        item = await make_item(partner_id="PN003", partner_name="Net Safety")

        response = await client.post(
            "/api/reports",
            json={"title": "Noisy AC", "item_id": item.item_id},
            headers=headers(o1_staff),
        )

        data = response.json()
        assert data["assigned_partner_id"] == "PN003"
        assert data["category"] == "建物インフラ"
        assert data["item_id"] == item.item_id

        [row] = await _audit_rows(session_factory, "report_create")
        assert row.details["assignmentSource"] == "item"
        assert row.details["contractId"] is None

    async def test_item_category_used_for_contract_match(
        self, client: AsyncClient, headers, o1_staff, make_contract, make_item,
    ):
        await make_contract("PN002", categories=(Category.KITCHEN_MEALS,))
        item = await make_item(category=Category.KITCHEN_MEALS, name="Dishwasher")

        response = await client.post(
            "/api/reports",
            json={"title": "Not draining", "item_id": item.item_id},
            headers=headers(o1_staff),
        )

        assert response.json()["assigned_partner_id"] == "PN002"

    async def test_staff_cannot_report_other_office_item(
        self, client: AsyncClient, headers, o2_staff, make_item,
    ):
        item = await make_item("O1")

        response = await client.post(
            "/api/reports",
            json={"title": "Noisy AC", "item_id": item.item_id},
            headers=headers(o2_staff),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "WRONG_OFFICE"

    async def test_contractor_cannot_file(self, client: AsyncClient, seed, headers, contractor):
        response = await client.post(
            "/api/reports", json={"title": "Anything"}, headers=headers(contractor),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ROLE_NOT_ALLOWED"


@pytest.mark.api
@pytest.mark.asyncio
class TestReportVisibility:

    async def test_contractor_lists_only_assigned_reports(
        self, client: AsyncClient, headers, contractor, make_report,
    ):
        await make_report(partner_id="PN001")
        await make_report("O3", "C2", partner_id="PN001")
        await make_report(partner_id="PN002")
        await make_report()

        response = await client.get("/api/reports", headers=headers(contractor))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert {r["company_code"] for r in body["items"]} == {"C1", "C2"}

    async def test_status_filter(self, client: AsyncClient, headers, o1_staff, make_report):
        await make_report(status="pending")
        await make_report(status="completed")

        response = await client.get(
            "/api/reports", params={"status": "completed"}, headers=headers(o1_staff),
        )

        assert [r["status"] for r in response.json()["items"]] == ["completed"]

    async def test_search_matches_title_and_description(
        self, client: AsyncClient, headers, o1_staff, make_report, db_session,
    ):
        leak = await make_report()
        door = await make_report()
        door.title = "Broken door"
        door.description = "Hinge came off"
        await make_report(office_code="O2")
        await db_session.commit()

        by_title = await client.get(
            "/api/reports", params={"search": "PIPE"}, headers=headers(o1_staff),
        )
        by_description = await client.get(
            "/api/reports", params={"search": "hinge"}, headers=headers(o1_staff),
        )

        assert [r["id"] for r in by_title.json()["items"]] == [leak.id]
        assert by_title.json()["total"] == 1
        assert [r["id"] for r in by_description.json()["items"]] == [door.id]

    async def test_other_company_detail_denied(
        self, client: AsyncClient, headers, c2_admin, make_report,
    ):
        report = await make_report()

        response = await client.get(f"/api/reports/{report.id}", headers=headers(c2_admin))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "WRONG_COMPANY"

    async def test_missing_report(self, client: AsyncClient, seed, headers, system_admin):
        response = await client.get("/api/reports/RPT-NOPE", headers=headers(system_admin))

        assert response.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestReportStatus:

    async def test_contractor_completes_assigned_report(
        self, client: AsyncClient, headers, contractor, make_report, fetch, session_factory,
    ):
        report = await make_report(partner_id="PN001", status="in_progress")

        response = await client.put(
            f"/api/reports/{report.id}/status",
            json={"status": "completed", "contractor_memo": "Replaced valve"},
            headers=headers(contractor),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["contractor_memo"] == "Replaced valve"
        assert data["completed_at"] is not None

        stored = await fetch(Report, report.id)
        assert stored.status == "completed"
        assert stored.completed_at is not None

        [row] = await _audit_rows(session_factory, "report_status_update")
        assert row.actor_id == "pn1-worker"
        assert row.details == {"oldStatus": "in_progress", "newStatus": "completed"}

    async def test_terminal_report_cannot_change(
        self, client: AsyncClient, headers, o1_staff, make_report,
    ):
        report = await make_report(status="completed")

        response = await client.put(
            f"/api/reports/{report.id}/status",
            json={"status": "pending"},
            headers=headers(o1_staff),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ILLEGAL_TRANSITION"

    async def test_unknown_status_value(
        self, client: AsyncClient, headers, o1_staff, make_report,
    ):
        report = await make_report()

        response = await client.put(
            f"/api/reports/{report.id}/status",
            json={"status": "done"},
            headers=headers(o1_staff),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_STATUS_VALUE"
        assert "pending" in error["details"]["allowed"]

    async def test_other_partner_cannot_update(
        self, client: AsyncClient, headers, other_contractor, make_report, fetch,
    ):
        report = await make_report(partner_id="PN001")

        response = await client.put(
            f"/api/reports/{report.id}/status",
            json={"status": "in_progress"},
            headers=headers(other_contractor),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_ASSIGNED_PARTNER"
        assert (await fetch(Report, report.id)).status == "pending"

    async def test_staff_of_other_office_cannot_update(
        self, client: AsyncClient, headers, o2_staff, make_report,
    ):
        report = await make_report("O1")

        response = await client.put(
            f"/api/reports/{report.id}/status",
            json={"status": "cancelled"},
            headers=headers(o2_staff),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "WRONG_OFFICE"

    async def test_reverting_clears_completed_at(
        self, client: AsyncClient, headers, o1_staff, make_report,
    ):
        report = await make_report(status="in_progress")

        response = await client.put(
            f"/api/reports/{report.id}/status",
            json={"status": "pending"},
            headers=headers(o1_staff),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["completed_at"] is None


@pytest.mark.api
@pytest.mark.asyncio
class TestPartnerBackfill:

    async def test_assigns_open_unassigned_reports(
        self, client: AsyncClient, headers, c1_admin, make_contract, make_report, fetch,
        session_factory,
    ):
        await make_contract("PN001")
        open_o1 = await make_report("O1")
        open_o2 = await make_report("O2", status="in_progress")
        done = await make_report("O1", status="completed")
        other_category = await make_report("O1", category=Category.IT_SAFETY)
        foreign = await make_report("O3", "C2")

        response = await client.post("/api/reports/backfill-partners", headers=headers(c1_admin))

        assert response.status_code == 200
        body = response.json()
        assert body["scanned"] == 3
        assert body["assigned"] == 2
        assert sorted(body["ids"]) == sorted([open_o1.id, open_o2.id])

        assert (await fetch(Report, open_o1.id)).assigned_partner_id == "PN001"
        assert (await fetch(Report, done.id)).assigned_partner_id is None
        assert (await fetch(Report, other_category.id)).assigned_partner_id is None
        assert (await fetch(Report, foreign.id)).assigned_partner_id is None

        rows = await _audit_rows(session_factory, "report_partner_backfill")
        assert len(rows) == 2

    async def test_office_filter(
        self, client: AsyncClient, headers, c1_admin, make_contract, make_report,
    ):
        await make_contract("PN001")
        await make_report("O1")
        await make_report("O2")

        response = await client.post(
            "/api/reports/backfill-partners",
            params={"office_code": "O2"},
            headers=headers(c1_admin),
        )

        assert response.json()["scanned"] == 1

    async def test_office_admin_not_allowed(self, client: AsyncClient, seed, headers, o1_admin):
        response = await client.post("/api/reports/backfill-partners", headers=headers(o1_admin))

        assert response.status_code == 403

    async def test_batch_cap(
        self, client: AsyncClient, headers, c1_admin, make_report, monkeypatch,
    ):
        monkeypatch.setattr(settings, "import_max_rows", 1)
        await make_report("O1")
        await make_report("O2")

        response = await client.post("/api/reports/backfill-partners", headers=headers(c1_admin))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BACKFILL_TOO_LARGE"
