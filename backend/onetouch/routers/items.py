"""Inventory item router.

Endpoints:
    GET    /api/items              List items in scope
    GET    /api/items/stats        Counts by category / office / partner pin
    GET    /api/items/{id}         Item detail
    POST   /api/items              Create item (office_admin+)
    POST   /api/items/import       Bulk create, all-or-nothing (office_admin+)
    PUT    /api/items/{id}         Update item (office_admin+)
    DELETE /api/items/{id}         Soft-delete item (office_admin+)

Contractors see only items pinned to their partner; everyone else sees
their office (company_admin: company, system_admin: everything).
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.guard import authorize, ensure_allowed
from onetouch.auth.principal import Principal
from onetouch.auth.roles import ALL_ROLES, OFFICE_ADMIN_AND_ABOVE
from onetouch.auth.scope import Action, Resource, ResourceType
from onetouch.categories import Category
from onetouch.config import settings
from onetouch.database import get_db
from onetouch.middleware.exceptions import (
    BadRequestError,
    OneTouchException,
    ResourceNotFoundError,
)
from onetouch.models.item import Item
from onetouch.models.partner import Partner
from onetouch.schemas.common import PaginatedResponse
from onetouch.schemas.item import (
    ImportResult,
    ItemCreate,
    ItemImportRequest,
    ItemOut,
    ItemStats,
    ItemUpdate,
)
from onetouch.services.audit import audit_event
from onetouch.utils.audit_log import record_audit
from onetouch.utils.numbering import generate_id
from onetouch.utils.pagination import paginate
from onetouch.utils.scoped_queries import apply_scope, load_target_office

logger = logging.getLogger(__name__)

router = APIRouter()

ITEM_ACTIVE = "active"
ITEM_DELETED = "deleted"


async def _get_item(db: AsyncSession, item_id: str) -> Item:
    item = await db.get(Item, item_id)
    if item is None or item.status == ITEM_DELETED:
        raise ResourceNotFoundError("Item", item_id)
    return item


async def _partner_name(db: AsyncSession, partner_id: str | None) -> str:
    if not partner_id:
        return ""
    partner = await db.get(Partner, partner_id)
    if partner is None:
        raise ResourceNotFoundError("Partner", partner_id)
    return partner.name


def _scoped_items(scope):
    return apply_scope(select(Item).where(Item.status == ITEM_ACTIVE), Item, scope)


async def _build_item(db: AsyncSession, principal: Principal, body: ItemCreate) -> Item:
    """Validate one create request and return the unsaved Item."""
    office = await load_target_office(db, principal, body.office_code)
    item_id = generate_id("item")
    ensure_allowed(authorize(
        principal, OFFICE_ADMIN_AND_ABOVE,
        Resource(
            ResourceType.ITEM, item_id,
            company_code=office.company_code, office_code=office.code,
        ),
        action=Action.CREATE,
    ))

    return Item(
        item_id=item_id,
        company_code=office.company_code,
        office_code=office.code,
        name=body.name,
        category=body.category.value if body.category else None,
        maker=body.maker,
        model=body.model,
        floor=body.floor,
        location=body.location,
        description=body.description,
        assigned_partner_id=body.assigned_partner_id,
        assigned_partner_name=await _partner_name(db, body.assigned_partner_id),
    )


# ── Read ────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[ItemOut])
async def list_items(
    category: Category | None = Query(None),
    office_code: str | None = Query(None),
    assigned_partner_id: str | None = Query(None),
    search: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    scope = ensure_allowed(authorize(principal, ALL_ROLES))

    stmt = _scoped_items(scope)
    if category is not None:
        stmt = stmt.where(Item.category == category.value)
    if office_code:
        stmt = stmt.where(Item.office_code == office_code)
    if assigned_partner_id:
        stmt = stmt.where(Item.assigned_partner_id == assigned_partner_id)
    if search:
        stmt = stmt.where(Item.name.ilike(f"%{search}%"))

    rows, total, limit = await paginate(
        db, stmt, limit=limit, offset=offset,
        order_by=(Item.created_at.desc(), Item.item_id),
    )
    return PaginatedResponse[ItemOut](
        items=[ItemOut.model_validate(i) for i in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=ItemStats)
async def item_stats(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    scope = ensure_allowed(authorize(principal, ALL_ROLES))
    scoped = _scoped_items(scope).subquery()

    async def _grouped(column) -> dict[str, int]:
        result = await db.execute(
            select(column, func.count()).group_by(column)
        )
        return {str(key) if key is not None else "": count for key, count in result.all()}

    by_category = await _grouped(scoped.c.category)
    by_office = await _grouped(scoped.c.office_code)
    with_partner = (await db.execute(
        select(func.count()).select_from(scoped).where(scoped.c.assigned_partner_id.is_not(None))
    )).scalar() or 0
    total = sum(by_office.values())

    return ItemStats(
        total=total,
        by_category=by_category,
        by_office=by_office,
        with_partner=with_partner,
        without_partner=total - with_partner,
    )


@router.get("/{item_id}", response_model=ItemOut)
async def get_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    item = await _get_item(db, item_id)
    ensure_allowed(authorize(principal, ALL_ROLES, item.as_resource(), action=Action.READ))
    return ItemOut.model_validate(item)


# ── Write ───────────────────────────────────────────────────

@router.post("", response_model=ItemOut, status_code=201)
async def create_item(
    body: ItemCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    item = await _build_item(db, principal, body)
    db.add(item)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "item_create", "item", item.item_id,
            company_code=item.company_code, office_code=item.office_code,
            details={"name": item.name, "category": item.category},
        ),
        actor_name=principal.name,
    )
    return ItemOut.model_validate(item)


@router.post("/import", response_model=ImportResult, status_code=201)
async def import_items(
    body: ItemImportRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    """Create many items in one transaction.

    Every row goes through the same checks as a single create. Any failing
    row aborts the request and the session rollback discards the whole batch.
    """
    if len(body.items) > settings.import_max_rows:
        raise BadRequestError(
            f"Import is limited to {settings.import_max_rows} rows per request",
            error_code="IMPORT_TOO_LARGE",
            details={"rows": len(body.items), "max_rows": settings.import_max_rows},
        )

    ids: list[str] = []
    for row_number, row in enumerate(body.items, start=1):
        try:
            item = await _build_item(db, principal, row)
        except OneTouchException as e:
            e.details = {**(e.details or {}), "row": row_number}
            raise
        db.add(item)
        ids.append(item.item_id)
    await db.flush()

    await record_audit(
        db,
        audit_event(principal, "item_import", "item", None, details={"count": len(ids)}),
        actor_name=principal.name,
    )
    logger.info(f"Imported {len(ids)} items for {principal.id}")
    return ImportResult(imported=len(ids), ids=ids)


@router.put("/{item_id}", response_model=ItemOut)
async def update_item(
    item_id: str,
    body: ItemUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    item = await _get_item(db, item_id)
    ensure_allowed(authorize(
        principal, OFFICE_ADMIN_AND_ABOVE, item.as_resource(), action=Action.UPDATE,
    ))

    updates = body.model_dump(exclude_unset=True)
    if "assigned_partner_id" in updates:
        item.assigned_partner_name = await _partner_name(db, updates["assigned_partner_id"])
    if updates.get("category") is not None:
        updates["category"] = Category(updates["category"]).value
    for key, value in updates.items():
        setattr(item, key, value)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "item_update", "item", item.item_id,
            company_code=item.company_code, office_code=item.office_code,
            details={"changes": sorted(updates)},
        ),
        actor_name=principal.name,
    )
    return ItemOut.model_validate(item)


@router.delete("/{item_id}", response_model=ItemOut)
async def delete_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    """Soft-delete: the row stays for report history."""
    item = await _get_item(db, item_id)
    ensure_allowed(authorize(
        principal, OFFICE_ADMIN_AND_ABOVE, item.as_resource(), action=Action.DELETE,
    ))

    item.status = ITEM_DELETED
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "item_delete", "item", item.item_id,
            company_code=item.company_code, office_code=item.office_code,
            details={"name": item.name},
        ),
        actor_name=principal.name,
    )
    return ItemOut.model_validate(item)
