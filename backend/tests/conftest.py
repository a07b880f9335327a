"""Pytest configuration and fixtures for OneTouch tests.

API tests run against an in-memory SQLite database (aiosqlite). Every
request gets its own session and transaction, like `get_db` in
production, so rollback behaviour is exercised for real.
"""

import os

# Must be set before onetouch.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from onetouch.auth.jwt import create_access_token
from onetouch.auth.principal import Principal
from onetouch.auth.roles import Role
from onetouch.categories import Category
from onetouch.database import Base, get_db
from onetouch.main import app
from onetouch.models import Account, Company, Contract, Item, Office, Partner, Report


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """One in-memory database per test, shared by every session."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and inspecting data outside of requests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose requests each run in their own transaction."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Principals ───────────────────────────────────────────────────

@pytest.fixture
def system_admin() -> Principal:
    return Principal(id="sys-admin", role=Role.SYSTEM_ADMIN, name="System Admin")


@pytest.fixture
def c1_admin() -> Principal:
    return Principal(id="c1-admin", role=Role.COMPANY_ADMIN, company_code="C1", name="C1 Admin")


@pytest.fixture
def c2_admin() -> Principal:
    return Principal(id="c2-admin", role=Role.COMPANY_ADMIN, company_code="C2", name="C2 Admin")


@pytest.fixture
def o1_admin() -> Principal:
    return Principal(
        id="o1-admin", role=Role.OFFICE_ADMIN, company_code="C1", office_code="O1",
        name="O1 Admin",
    )


@pytest.fixture
def o1_staff() -> Principal:
    return Principal(
        id="o1-staff", role=Role.STAFF, company_code="C1", office_code="O1", name="O1 Staff",
    )


@pytest.fixture
def o2_staff() -> Principal:
    return Principal(
        id="o2-staff", role=Role.STAFF, company_code="C1", office_code="O2", name="O2 Staff",
    )


@pytest.fixture
def contractor() -> Principal:
    return Principal(id="pn1-worker", role=Role.CONTRACTOR, partner_id="PN001", name="PN1 Worker")


@pytest.fixture
def other_contractor() -> Principal:
    return Principal(id="pn2-worker", role=Role.CONTRACTOR, partner_id="PN002", name="PN2 Worker")


@pytest.fixture
def headers():
    """Build an Authorization header carrying a token for a principal."""

    def _headers(principal: Principal) -> dict:
        return {"Authorization": f"Bearer {create_access_token(principal)}"}

    return _headers


@pytest_asyncio.fixture
async def fetch(session_factory):
    """Load a row in a fresh session, seeing only committed state."""

    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)

    return _fetch


# ── Test Data Fixtures ───────────────────────────────────────────

CONTRACT_EPOCH = datetime(2026, 1, 1, 9, 0, 0)


@pytest_asyncio.fixture
async def seed(
    db_session: AsyncSession,
    system_admin, c1_admin, c2_admin, o1_admin, o1_staff, o2_staff,
    contractor, other_contractor,
) -> dict:
    """Two companies, three offices, three partners and one account per principal."""
    db_session.add_all([
        Company(code="C1", name="Company One"),
        Company(code="C2", name="Company Two"),
    ])
    db_session.add_all([
        Partner(id="PN001", partner_code="PN001", name="Tokyo Facilities"),
        Partner(id="PN002", partner_code="PN002", name="Kanto Care Service"),
        Partner(id="PN003", partner_code="PN003", name="Net Safety"),
    ])
    await db_session.flush()
    db_session.add_all([
        Office(code="O1", company_code="C1", name="Office One"),
        Office(code="O2", company_code="C1", name="Office Two"),
        Office(code="O3", company_code="C2", name="Office Three"),
    ])
    await db_session.flush()

    for principal in (
        system_admin, c1_admin, c2_admin, o1_admin, o1_staff, o2_staff,
        contractor, other_contractor,
    ):
        db_session.add(Account(
            id=principal.id,
            name=principal.name,
            role=principal.role,
            company_code=principal.company_code,
            office_code=principal.office_code,
            partner_id=principal.partner_id,
        ))
    await db_session.commit()
    return {"companies": ["C1", "C2"], "offices": ["O1", "O2", "O3"]}


@pytest_asyncio.fixture
async def make_item(db_session: AsyncSession, seed):
    """Factory inserting an active item."""
    counter = {"n": 0}

    async def _make(office_code="O1", company_code="C1", *, category=Category.BUILDING_INFRA,
                    partner_id=None, partner_name="", name="Air conditioner"):
        counter["n"] += 1
        item = Item(
            item_id=f"ITEM-TEST-{counter['n']:04d}",
            company_code=company_code,
            office_code=office_code,
            name=name,
            category=category.value if category else None,
            assigned_partner_id=partner_id,
            assigned_partner_name=partner_name,
        )
        db_session.add(item)
        await db_session.commit()
        return item

    return _make


@pytest_asyncio.fixture
async def make_contract(db_session: AsyncSession, seed):
    """Factory inserting a contract; later calls get later created_at values."""
    counter = {"n": 0}

    async def _make(partner_id="PN001", company_code="C1", office_code=None, *,
                    categories=(Category.BUILDING_INFRA,), status="active"):
        counter["n"] += 1
        contract = Contract(
            id=f"CNT-TEST-{counter['n']:04d}",
            partner_id=partner_id,
            company_code=company_code,
            office_code=office_code,
            categories=[c.value for c in categories],
            status=status,
            created_at=CONTRACT_EPOCH + timedelta(minutes=counter["n"]),
        )
        db_session.add(contract)
        await db_session.commit()
        return contract

    return _make


@pytest_asyncio.fixture
async def make_report(db_session: AsyncSession, seed):
    """Factory inserting a report directly (bypassing routing)."""
    counter = {"n": 0}

    async def _make(office_code="O1", company_code="C1", *, status="pending",
                    partner_id=None, category=Category.BUILDING_INFRA, item_id=None):
        counter["n"] += 1
        report = Report(
            id=f"RPT-TEST-{counter['n']:04d}",
            company_code=company_code,
            office_code=office_code,
            item_id=item_id,
            title="Leaking pipe",
            category=category.value if category else None,
            status=status,
            assigned_partner_id=partner_id,
            reporter_id="o1-staff",
        )
        db_session.add(report)
        await db_session.commit()
        return report

    return _make


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Pure engine tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
