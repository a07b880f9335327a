"""Partner resolution: which service partner is responsible for an issue.

Strict priority, first match wins, no merging across tiers:

  1. Manual pin: the item/report already carries `assigned_partner_id`.
     Returned verbatim with its cached name; contracts are not consulted.
  2. Active contracts of the same company that list the category:
       a. office-specific contract for the requested office
       b. company-wide contract (office_code is None)
     Ties inside a tier go to the earliest-created contract, then to the
     earliest position in the input list.
  3. Nothing matched → unassigned. This is a normal outcome ("needs
     manual triage"), not an error.

`resolve_partner` is pure: feed it contract records and one query.
`load_candidate_contracts` is the storage adapter that fetches the
candidate list for a query.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.categories import Category

logger = logging.getLogger(__name__)

CONTRACT_ACTIVE = "active"


class AssignmentSource(str, enum.Enum):
    ITEM = "item"
    CONTRACT = "contract"
    UNASSIGNED = "unassigned"


@dataclass(frozen=True)
class ContractRecord:
    id: str
    partner_id: str
    company_code: str
    categories: frozenset[str]
    office_code: str | None = None
    status: str = CONTRACT_ACTIVE
    created_at: datetime | None = None
    partner_name: str = ""

    @property
    def is_company_wide(self) -> bool:
        return self.office_code is None


@dataclass(frozen=True)
class ResolutionQuery:
    category: Category | str | None
    company_code: str
    office_code: str | None = None
    assigned_partner_id: str | None = None
    assigned_partner_name: str = ""


@dataclass(frozen=True)
class PartnerAssignment:
    partner_id: str | None
    partner_name: str
    source: AssignmentSource
    contract_id: str | None = None

    @property
    def is_assigned(self) -> bool:
        return self.partner_id is not None

    def as_dict(self) -> dict:
        return {
            "partner_id": self.partner_id,
            "partner_name": self.partner_name,
            "source": self.source.value,
            "contract_id": self.contract_id,
        }


UNASSIGNED = PartnerAssignment(partner_id=None, partner_name="", source=AssignmentSource.UNASSIGNED)


def _category_value(category: Category | str | None) -> str | None:
    if category is None:
        return None
    return category.value if isinstance(category, Category) else str(category)


def _sort_key(contract: ContractRecord) -> tuple:
    tier = 1 if contract.is_company_wide else 0
    if contract.created_at is None:
        return (tier, 1, datetime.min)
    return (tier, 0, contract.created_at)


def matching_contracts(
    query: ResolutionQuery,
    contracts: Iterable[ContractRecord],
) -> list[ContractRecord]:
    """Eligible contracts for `query`, best first."""
    category = _category_value(query.category)
    if category is None:
        return []

    eligible = [
        c for c in contracts
        if c.status == CONTRACT_ACTIVE
        and c.company_code == query.company_code
        and category in c.categories
        and (c.office_code is None or c.office_code == query.office_code)
    ]
    # sorted() is stable, so input order breaks exact created_at ties
    return sorted(eligible, key=_sort_key)


def resolve_partner(
    query: ResolutionQuery,
    contracts: Iterable[ContractRecord] = (),
) -> PartnerAssignment:
    if query.assigned_partner_id:
        return PartnerAssignment(
            partner_id=query.assigned_partner_id,
            partner_name=query.assigned_partner_name or "",
            source=AssignmentSource.ITEM,
        )

    candidates = matching_contracts(query, contracts)
    if not candidates:
        return UNASSIGNED

    best = candidates[0]
    return PartnerAssignment(
        partner_id=best.partner_id,
        partner_name=best.partner_name,
        source=AssignmentSource.CONTRACT,
        contract_id=best.id,
    )


# ── Storage adapter ─────────────────────────────────────────

async def load_candidate_contracts(
    db: AsyncSession,
    company_code: str,
    office_code: str | None,
) -> list[ContractRecord]:
    """Fetch active contracts of active partners that could match a query,
    in creation order.

    Category membership is left to `resolve_partner` so the JSON column
    does not need database-specific containment operators.
    """
    from onetouch.models.contract import Contract  # deferred: keeps the pure API model-free
    from onetouch.models.partner import Partner

    office_clause = Contract.office_code.is_(None)
    if office_code is not None:
        office_clause = or_(office_clause, Contract.office_code == office_code)

    result = await db.execute(
        select(Contract, Partner.name)
        .join(Partner, Partner.id == Contract.partner_id)
        .where(
            Contract.company_code == company_code,
            Contract.status == CONTRACT_ACTIVE,
            Partner.status == "active",
            office_clause,
        )
        .order_by(Contract.created_at, Contract.id)
    )
    return [contract.as_record(partner_name) for contract, partner_name in result.all()]


async def resolve_partner_for(
    db: AsyncSession,
    query: ResolutionQuery,
) -> PartnerAssignment:
    """Resolve `query` against the contracts currently in storage."""
    if query.assigned_partner_id:
        return resolve_partner(query)

    contracts = await load_candidate_contracts(db, query.company_code, query.office_code)
    assignment = resolve_partner(query, contracts)
    logger.debug(
        "Partner resolution for %s/%s category=%s → %s (%s)",
        query.company_code, query.office_code, _category_value(query.category),
        assignment.partner_id, assignment.source.value,
    )
    return assignment
