"""Service partner router.

Endpoints:
    GET    /api/partners           List partners
    GET    /api/partners/{id}      Partner detail
    POST   /api/partners           Register partner (company_admin+)
    PUT    /api/partners/{id}      Update partner (company_admin+)
    DELETE /api/partners/{id}      Deactivate partner (system_admin)

Partners are shared across companies; which company a partner serves is
expressed only through contracts.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.principal import Principal
from onetouch.auth.roles import ALL_ROLES, COMPANY_ADMIN_AND_ABOVE, Role
from onetouch.database import get_db
from onetouch.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from onetouch.models.partner import Partner
from onetouch.schemas.partner import PartnerCreate, PartnerOut, PartnerUpdate
from onetouch.services.audit import audit_event
from onetouch.utils.audit_log import record_audit
from onetouch.utils.cache import commit_and_invalidate
from onetouch.utils.numbering import generate_partner_code

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[PartnerOut])
async def list_partners(
    include_inactive: bool = False,
    search: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    stmt = select(Partner)
    if not include_inactive:
        stmt = stmt.where(Partner.status == "active")
    if search:
        stmt = stmt.where(or_(
            Partner.name.ilike(f"%{search}%"),
            Partner.partner_code.ilike(f"%{search}%"),
        ))
    result = await db.execute(stmt.order_by(Partner.partner_code))
    return [PartnerOut.model_validate(p) for p in result.scalars().all()]


@router.get("/{partner_id}", response_model=PartnerOut)
async def get_partner(
    partner_id: str,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    partner = await db.get(Partner, partner_id)
    if partner is None:
        raise ResourceNotFoundError("Partner", partner_id)
    return PartnerOut.model_validate(partner)


@router.post("", response_model=PartnerOut, status_code=201)
async def create_partner(
    body: PartnerCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    code = body.partner_code or await generate_partner_code(db)
    existing = await db.execute(select(Partner).where(Partner.partner_code == code))
    if existing.scalar_one_or_none():
        raise BusinessLogicError(
            f"Partner '{code}' already exists", error_code="DUPLICATE_RECORD",
        )

    data = body.model_dump(exclude={"partner_code", "categories"})
    partner = Partner(
        id=code,
        partner_code=code,
        categories=[c.value for c in body.categories],
        **data,
    )
    db.add(partner)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "partner_create", "partner", partner.id,
            details={"name": partner.name},
        ),
        actor_name=principal.name,
    )
    logger.info(f"Partner {partner.id} registered by {principal.id}")
    return PartnerOut.model_validate(partner)


@router.put("/{partner_id}", response_model=PartnerOut)
async def update_partner(
    partner_id: str,
    body: PartnerUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    partner = await db.get(Partner, partner_id)
    if partner is None:
        raise ResourceNotFoundError("Partner", partner_id)

    updates = body.model_dump(exclude_unset=True)
    if updates.get("categories") is not None:
        updates["categories"] = [c.value for c in body.categories]
    for key, value in updates.items():
        setattr(partner, key, value)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "partner_update", "partner", partner.id,
            details={"changes": sorted(updates)},
        ),
        actor_name=principal.name,
    )
    # Cached resolutions embed the partner name
    await commit_and_invalidate(db, "contracts:*")
    return PartnerOut.model_validate(partner)


@router.delete("/{partner_id}", response_model=PartnerOut)
async def deactivate_partner(
    partner_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles({Role.SYSTEM_ADMIN})),
):
    """Logical delete. Partners are shared by every company, so only the
    system admin may retire one; its contracts stop routing immediately."""
    partner = await db.get(Partner, partner_id)
    if partner is None:
        raise ResourceNotFoundError("Partner", partner_id)

    partner.status = "inactive"
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "partner_delete", "partner", partner.id,
            details={"name": partner.name},
        ),
        actor_name=principal.name,
    )
    logger.info(f"Partner {partner.id} deactivated by {principal.id}")
    await commit_and_invalidate(db, "contracts:*")
    return PartnerOut.model_validate(partner)
