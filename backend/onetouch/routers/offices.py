"""Office management router.

Endpoints:
    GET    /api/offices            List offices of the caller's company
    GET    /api/offices/{code}     Office detail
    POST   /api/offices            Create office (company_admin+)
    PUT    /api/offices/{code}     Update office (company_admin+)
    DELETE /api/offices/{code}     Deactivate office (company_admin+)
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.guard import authorize, ensure_allowed
from onetouch.auth.principal import Principal
from onetouch.auth.roles import COMPANY_ADMIN_AND_ABOVE, STAFF_AND_ABOVE
from onetouch.auth.scope import Action, Resource, ResourceType, ScopeLevel
from onetouch.database import get_db
from onetouch.middleware.exceptions import (
    BadRequestError,
    BusinessLogicError,
    ResourceNotFoundError,
)
from onetouch.models.company import Company
from onetouch.models.office import Office
from onetouch.schemas.company import OfficeCreate, OfficeOut, OfficeUpdate
from onetouch.services.audit import audit_event
from onetouch.utils.audit_log import record_audit
from onetouch.utils.scoped_queries import apply_scope

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_office(db: AsyncSession, code: str) -> Office:
    office = await db.get(Office, code)
    if office is None:
        raise ResourceNotFoundError("Office", code)
    return office


@router.get("", response_model=list[OfficeOut])
async def list_offices(
    company_code: str | None = Query(None),
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(STAFF_AND_ABOVE)),
):
    """List offices company-wide; staff see every office of their company."""
    scope = ensure_allowed(authorize(principal, STAFF_AND_ABOVE, level=ScopeLevel.COMPANY))

    stmt = apply_scope(select(Office), Office, scope)
    if company_code:
        stmt = stmt.where(Office.company_code == company_code)
    if not include_inactive:
        stmt = stmt.where(Office.status == "active")

    result = await db.execute(stmt.order_by(Office.company_code, Office.code))
    return [OfficeOut.model_validate(o) for o in result.scalars().all()]


@router.get("/{code}", response_model=OfficeOut)
async def get_office(
    code: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(STAFF_AND_ABOVE)),
):
    office = await _get_office(db, code)
    ensure_allowed(authorize(
        principal, STAFF_AND_ABOVE, office.as_resource(),
        action=Action.READ, level=ScopeLevel.COMPANY,
    ))
    return OfficeOut.model_validate(office)


@router.post("", response_model=OfficeOut, status_code=201)
async def create_office(
    body: OfficeCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    company_code = principal.company_code or body.company_code
    if not company_code:
        raise BadRequestError("company_code is required", error_code="COMPANY_REQUIRED")

    ensure_allowed(authorize(
        principal, COMPANY_ADMIN_AND_ABOVE,
        Resource(ResourceType.OFFICE, body.code, company_code=company_code, office_code=body.code),
        action=Action.CREATE, level=ScopeLevel.COMPANY,
    ))

    if await db.get(Company, company_code) is None:
        raise ResourceNotFoundError("Company", company_code)
    if await db.get(Office, body.code) is not None:
        raise BusinessLogicError(
            f"Office '{body.code}' already exists", error_code="DUPLICATE_RECORD",
        )

    office = Office(
        code=body.code,
        company_code=company_code,
        name=body.name,
        address=body.address,
        phone=body.phone,
    )
    db.add(office)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "office_create", "office", office.code,
            company_code=company_code, office_code=office.code,
            details={"name": office.name},
        ),
        actor_name=principal.name,
    )
    logger.info(f"Office {office.code} created in {company_code} by {principal.id}")
    return OfficeOut.model_validate(office)


@router.put("/{code}", response_model=OfficeOut)
async def update_office(
    code: str,
    body: OfficeUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    office = await _get_office(db, code)
    ensure_allowed(authorize(
        principal, COMPANY_ADMIN_AND_ABOVE, office.as_resource(),
        action=Action.UPDATE, level=ScopeLevel.COMPANY,
    ))

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(office, key, value)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "office_update", "office", office.code,
            company_code=office.company_code, office_code=office.code,
            details={"changes": sorted(updates)},
        ),
        actor_name=principal.name,
    )
    return OfficeOut.model_validate(office)


@router.delete("/{code}", response_model=OfficeOut)
async def deactivate_office(
    code: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    """Logical delete; accounts, items and reports of the office are kept."""
    office = await _get_office(db, code)
    ensure_allowed(authorize(
        principal, COMPANY_ADMIN_AND_ABOVE, office.as_resource(),
        action=Action.DELETE, level=ScopeLevel.COMPANY,
    ))

    office.status = "inactive"
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "office_delete", "office", office.code,
            company_code=office.company_code, office_code=office.code,
            details={"name": office.name},
        ),
        actor_name=principal.name,
    )
    logger.info(f"Office {office.code} deactivated by {principal.id}")
    return OfficeOut.model_validate(office)
