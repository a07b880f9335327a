"""Incident report router.

Endpoints:
    GET  /api/reports                       List reports in scope
    GET  /api/reports/{id}                  Report detail
    POST /api/reports                       File a report; partner routed by contract
    PUT  /api/reports/{id}/status           Lifecycle transition
    POST /api/reports/backfill-partners     Route still-unassigned open reports

Status changes lock the report row (SELECT ... FOR UPDATE) so the
transition check always runs against the latest persisted status.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.guard import authorize, ensure_allowed
from onetouch.auth.principal import Principal
from onetouch.auth.roles import ALL_ROLES, COMPANY_ADMIN_AND_ABOVE, STAFF_AND_ABOVE
from onetouch.auth.scope import Action, Resource, ResourceType, ScopeLevel
from onetouch.categories import Category
from onetouch.config import settings
from onetouch.database import get_db
from onetouch.middleware.exceptions import BadRequestError, ResourceNotFoundError
from onetouch.models.item import Item
from onetouch.models.report import Report
from onetouch.schemas.common import PaginatedResponse
from onetouch.schemas.report import (
    BackfillResult,
    ReportCreate,
    ReportOut,
    ReportStatusUpdate,
)
from onetouch.services.audit import audit_event
from onetouch.services.partner_resolution import (
    ResolutionQuery,
    load_candidate_contracts,
    resolve_partner,
    resolve_partner_for,
)
from onetouch.services.report_lifecycle import (
    ReportStatus,
    apply_transition,
    can_transition,
)
from onetouch.utils.audit_log import record_audit
from onetouch.utils.numbering import generate_id
from onetouch.utils.pagination import paginate
from onetouch.utils.scoped_queries import apply_scope, load_target_office

logger = logging.getLogger(__name__)

router = APIRouter()

OPEN_STATUSES = (ReportStatus.PENDING.value, ReportStatus.IN_PROGRESS.value)


async def _get_report(db: AsyncSession, report_id: str, *, for_update: bool = False) -> Report:
    stmt = select(Report).where(Report.id == report_id)
    if for_update:
        stmt = stmt.with_for_update()
    report = (await db.execute(stmt)).scalar_one_or_none()
    if report is None:
        raise ResourceNotFoundError("Report", report_id)
    return report


async def _get_item(db: AsyncSession, item_id: str) -> Item:
    item = await db.get(Item, item_id)
    if item is None or item.status == "deleted":
        raise ResourceNotFoundError("Item", item_id)
    return item


# ── Read ────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[ReportOut])
async def list_reports(
    report_status: str | None = Query(None, alias="status"),
    category: Category | None = Query(None),
    office_code: str | None = Query(None),
    item_id: str | None = Query(None),
    search: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    """Contractors see reports routed to their partner; others their office.

    `search` matches title or description, case-insensitively.
    """
    scope = ensure_allowed(authorize(principal, ALL_ROLES))

    stmt = apply_scope(select(Report), Report, scope)
    if report_status:
        stmt = stmt.where(Report.status == report_status)
    if category is not None:
        stmt = stmt.where(Report.category == category.value)
    if office_code:
        stmt = stmt.where(Report.office_code == office_code)
    if item_id:
        stmt = stmt.where(Report.item_id == item_id)
    if search:
        stmt = stmt.where(or_(
            Report.title.ilike(f"%{search}%"),
            Report.description.ilike(f"%{search}%"),
        ))

    rows, total, limit = await paginate(
        db, stmt, limit=limit, offset=offset,
        order_by=(Report.created_at.desc(), Report.id),
    )
    return PaginatedResponse[ReportOut](
        items=[ReportOut.model_validate(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    report = await _get_report(db, report_id)
    ensure_allowed(authorize(
        principal, ALL_ROLES, report.state().as_resource(), action=Action.READ,
    ))
    return ReportOut.model_validate(report)


# ── Create ──────────────────────────────────────────────────

@router.post("", response_model=ReportOut, status_code=201)
async def create_report(
    body: ReportCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(STAFF_AND_ABOVE)),
):
    """File a report and route it to a partner.

    Routing: the item's manual partner pin, else the best matching active
    contract, else left unassigned for manual triage.
    """
    category = body.category.value if body.category else None
    pinned_id, pinned_name = None, ""

    if body.item_id:
        item = await _get_item(db, body.item_id)
        ensure_allowed(authorize(principal, STAFF_AND_ABOVE, item.as_resource(), action=Action.READ))
        company_code, office_code = item.company_code, item.office_code
        category = category or item.category
        pinned_id, pinned_name = item.assigned_partner_id, item.assigned_partner_name
    else:
        office = await load_target_office(db, principal, body.office_code)
        company_code, office_code = office.company_code, office.code

    report_id = generate_id("report")
    ensure_allowed(authorize(
        principal, STAFF_AND_ABOVE,
        Resource(ResourceType.REPORT, report_id, company_code=company_code, office_code=office_code),
        action=Action.CREATE,
    ))

    assignment = await resolve_partner_for(db, ResolutionQuery(
        category=category,
        company_code=company_code,
        office_code=office_code,
        assigned_partner_id=pinned_id,
        assigned_partner_name=pinned_name,
    ))

    report = Report(
        id=report_id,
        company_code=company_code,
        office_code=office_code,
        item_id=body.item_id,
        type=body.type,
        title=body.title,
        category=category,
        description=body.description,
        location=body.location,
        status=ReportStatus.PENDING.value,
        assigned_partner_id=assignment.partner_id,
        assigned_partner_name=assignment.partner_name,
        reporter_id=principal.id,
        reporter_name=principal.name,
    )
    db.add(report)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "report_create", "report", report.id,
            company_code=company_code, office_code=office_code,
            details={
                "title": report.title,
                "category": category,
                "partnerId": assignment.partner_id,
                "assignmentSource": assignment.source.value,
                "contractId": assignment.contract_id,
            },
        ),
        actor_name=principal.name,
    )
    if not assignment.is_assigned:
        logger.info(f"Report {report.id} has no matching partner and needs manual triage")
    return ReportOut.model_validate(report)


# ── Lifecycle ───────────────────────────────────────────────

@router.put("/{report_id}/status", response_model=ReportOut)
async def update_report_status(
    report_id: str,
    body: ReportStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    """Move a report through its lifecycle.

    Read (locked), check, and write all happen in the request transaction.
    """
    report = await _get_report(db, report_id, for_update=True)
    current = report.state()

    ensure_allowed(can_transition(principal, current, body.status))
    result = apply_transition(current, body.status, body.contractor_memo, actor=principal)

    report.apply_state(result.report)
    await db.flush()
    await record_audit(db, result.event, actor_name=principal.name)

    logger.info(
        f"Report {report.id} {current.status.value} → {result.report.status.value} "
        f"by {principal.id}"
    )
    return ReportOut.model_validate(report)


# ── Bulk partner backfill ───────────────────────────────────

@router.post("/backfill-partners", response_model=BackfillResult)
async def backfill_report_partners(
    office_code: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    """Route open, unassigned reports using the current contracts.

    Runs row by row inside the request transaction; the batch is capped
    and any failure rolls every assignment back.
    """
    scope = ensure_allowed(
        authorize(principal, COMPANY_ADMIN_AND_ABOVE, level=ScopeLevel.COMPANY)
    )

    stmt = apply_scope(
        select(Report).where(
            Report.assigned_partner_id.is_(None),
            Report.status.in_(OPEN_STATUSES),
        ),
        Report,
        scope,
    )
    if office_code:
        stmt = stmt.where(Report.office_code == office_code)

    # One row past the cap is enough to know the batch is too large
    reports = list((await db.execute(
        stmt.order_by(Report.created_at, Report.id)
        .limit(settings.import_max_rows + 1)
        .with_for_update()
    )).scalars().all())
    if len(reports) > settings.import_max_rows:
        raise BadRequestError(
            f"Backfill is limited to {settings.import_max_rows} reports per request; "
            "narrow it with office_code",
            error_code="BACKFILL_TOO_LARGE",
            details={"max_rows": settings.import_max_rows},
        )

    contracts_by_office: dict[tuple[str, str], list] = {}
    assigned_ids: list[str] = []

    for report in reports:
        pinned_id, pinned_name = None, ""
        if report.item_id:
            item = await db.get(Item, report.item_id)
            if item is not None:
                pinned_id, pinned_name = item.assigned_partner_id, item.assigned_partner_name

        key = (report.company_code, report.office_code)
        if key not in contracts_by_office:
            contracts_by_office[key] = await load_candidate_contracts(db, *key)

        assignment = resolve_partner(
            ResolutionQuery(
                category=report.category,
                company_code=report.company_code,
                office_code=report.office_code,
                assigned_partner_id=pinned_id,
                assigned_partner_name=pinned_name,
            ),
            contracts_by_office[key],
        )
        if not assignment.is_assigned:
            continue

        report.assigned_partner_id = assignment.partner_id
        report.assigned_partner_name = assignment.partner_name
        assigned_ids.append(report.id)
        await record_audit(
            db,
            audit_event(
                principal, "report_partner_backfill", "report", report.id,
                company_code=report.company_code, office_code=report.office_code,
                details={
                    "partnerId": assignment.partner_id,
                    "assignmentSource": assignment.source.value,
                    "contractId": assignment.contract_id,
                },
            ),
            actor_name=principal.name,
        )

    await db.flush()
    logger.info(
        f"Partner backfill by {principal.id}: {len(assigned_ids)}/{len(reports)} reports assigned"
    )
    return BackfillResult(scanned=len(reports), assigned=len(assigned_ids), ids=assigned_ids)
