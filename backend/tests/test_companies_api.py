"""API tests for company and office management."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from onetouch.models import AuditLog, Office


@pytest.mark.api
@pytest.mark.asyncio
class TestCompanies:

    async def test_system_admin_sees_every_company(
        self, client: AsyncClient, seed, headers, system_admin,
    ):
        response = await client.get("/api/companies", headers=headers(system_admin))

        assert [c["code"] for c in response.json()] == ["C1", "C2"]

    async def test_staff_sees_own_company_only(self, client: AsyncClient, seed, headers, o2_staff):
        response = await client.get("/api/companies", headers=headers(o2_staff))

        assert [c["code"] for c in response.json()] == ["C1"]

    async def test_contractor_cannot_list(self, client: AsyncClient, seed, headers, contractor):
        response = await client.get("/api/companies", headers=headers(contractor))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ROLE_NOT_ALLOWED"

    async def test_other_company_detail_denied(
        self, client: AsyncClient, seed, headers, c1_admin,
    ):
        response = await client.get("/api/companies/C2", headers=headers(c1_admin))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "WRONG_COMPANY"

    async def test_only_system_admin_creates(
        self, client: AsyncClient, seed, headers, system_admin, c1_admin,
    ):
        body = {"code": "C3", "name": "Company Three", "prefecture": "大阪府"}

        denied = await client.post("/api/companies", json=body, headers=headers(c1_admin))
        created = await client.post("/api/companies", json=body, headers=headers(system_admin))
        duplicate = await client.post("/api/companies", json=body, headers=headers(system_admin))

        assert denied.status_code == 403
        assert created.status_code == 201
        assert created.json()["prefecture"] == "大阪府"
        assert duplicate.status_code == 422
        assert duplicate.json()["error"]["code"] == "DUPLICATE_RECORD"

    async def test_company_admin_updates_own_company(
        self, client: AsyncClient, seed, headers, c1_admin,
    ):
        own = await client.put(
            "/api/companies/C1", json={"phone": "03-0000-0000"}, headers=headers(c1_admin),
        )
        other = await client.put(
            "/api/companies/C2", json={"phone": "03-0000-0000"}, headers=headers(c1_admin),
        )

        assert own.status_code == 200
        assert own.json()["phone"] == "03-0000-0000"
        assert other.status_code == 403


@pytest.mark.api
@pytest.mark.asyncio
class TestOffices:

    async def test_staff_lists_every_office_of_company(
        self, client: AsyncClient, seed, headers, o1_staff,
    ):
        response = await client.get("/api/offices", headers=headers(o1_staff))

        assert [o["code"] for o in response.json()] == ["O1", "O2"]

    async def test_company_admin_creates_in_own_company(
        self, client: AsyncClient, seed, headers, c1_admin, fetch,
    ):
        response = await client.post(
            "/api/offices",
            json={"code": "O9", "name": "Office Nine", "company_code": "C2"},
            headers=headers(c1_admin),
        )

        assert response.status_code == 201
        assert (await fetch(Office, "O9")).company_code == "C1"

    async def test_system_admin_must_name_company(
        self, client: AsyncClient, seed, headers, system_admin,
    ):
        response = await client.post(
            "/api/offices", json={"code": "O9", "name": "Office Nine"}, headers=headers(system_admin),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "COMPANY_REQUIRED"

    async def test_office_admin_cannot_create(self, client: AsyncClient, seed, headers, o1_admin):
        response = await client.post(
            "/api/offices", json={"code": "O9", "name": "Office Nine"}, headers=headers(o1_admin),
        )

        assert response.status_code == 403

    async def test_deactivated_office_hidden_from_list(
        self, client: AsyncClient, seed, headers, c1_admin,
    ):
        update = await client.put(
            "/api/offices/O2", json={"status": "inactive"}, headers=headers(c1_admin),
        )
        listing = await client.get("/api/offices", headers=headers(c1_admin))

        assert update.status_code == 200
        assert [o["code"] for o in listing.json()] == ["O1"]

    async def test_cannot_update_other_company_office(
        self, client: AsyncClient, seed, headers, c1_admin,
    ):
        response = await client.put(
            "/api/offices/O3", json={"name": "Mine now"}, headers=headers(c1_admin),
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "WRONG_COMPANY"

    async def test_staff_reads_sibling_office(self, client: AsyncClient, seed, headers, o1_staff):
        response = await client.get("/api/offices/O2", headers=headers(o1_staff))

        assert response.status_code == 200
        assert response.json()["company_code"] == "C1"

    async def test_other_company_office_detail_denied(
        self, client: AsyncClient, seed, headers, o1_staff,
    ):
        response = await client.get("/api/offices/O3", headers=headers(o1_staff))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "WRONG_COMPANY"

    async def test_unknown_office_detail(self, client: AsyncClient, seed, headers, c1_admin):
        response = await client.get("/api/offices/O404", headers=headers(c1_admin))

        assert response.status_code == 404

    async def test_company_admin_deactivates_office(
        self, client: AsyncClient, seed, headers, c1_admin, fetch, session_factory,
    ):
        response = await client.delete("/api/offices/O2", headers=headers(c1_admin))

        assert response.status_code == 200
        assert response.json()["status"] == "inactive"
        assert (await fetch(Office, "O2")).status == "inactive"

        async with session_factory() as session:
            [row] = (await session.execute(
                select(AuditLog).where(AuditLog.action == "office_delete")
            )).scalars().all()
        assert row.target_id == "O2"
        assert row.company_code == "C1"

    async def test_office_admin_cannot_deactivate(
        self, client: AsyncClient, seed, headers, o1_admin, fetch,
    ):
        response = await client.delete("/api/offices/O1", headers=headers(o1_admin))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ROLE_NOT_ALLOWED"
        assert (await fetch(Office, "O1")).status == "active"

    async def test_cannot_deactivate_other_company_office(
        self, client: AsyncClient, seed, headers, c1_admin,
    ):
        response = await client.delete("/api/offices/O3", headers=headers(c1_admin))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "WRONG_COMPANY"
