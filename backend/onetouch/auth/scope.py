"""Scope resolution: which rows a principal may see or mutate.

Two orthogonal axes:
  - Company hierarchy roles are scoped by (company_code, office_code).
      system_admin   → no restriction
      company_admin  → own company, every office
      office_admin   → own company, own office
      staff          → own company, own office
  - Contractors are scoped only by partner identity: they see resources
    whose `assigned_partner_id` equals their partner id, in any company.

`resolve()` gives the office-level scope used by most listings;
`resolve_company()` gives the company-level scope used by company-wide
resources (offices, contracts, audit logs).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from onetouch.auth.decisions import Allowed, Decision, Denied, DenialReason
from onetouch.auth.principal import Principal
from onetouch.auth.roles import Role


class ScopeLevel(str, enum.Enum):
    OFFICE = "office"
    COMPANY = "company"


class Action(str, enum.Enum):
    LIST = "list"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceType(str, enum.Enum):
    ACCOUNT = "account"
    COMPANY = "company"
    OFFICE = "office"
    ITEM = "item"
    REPORT = "report"
    CONTRACT = "contract"
    PARTNER = "partner"


@dataclass(frozen=True)
class Resource:
    """Boundary identifiers of a single target row."""
    type: ResourceType
    id: str | None = None
    company_code: str | None = None
    office_code: str | None = None
    assigned_partner_id: str | None = None


@dataclass(frozen=True)
class Scope:
    """Filters to AND into a query, or to validate one resource against.

    A `None` company/office filter means "no restriction on that column".
    A partner-scoped Scope ignores company/office entirely.
    """
    company_code: str | None = None
    office_code: str | None = None
    partner_id: str | None = None

    @property
    def is_partner_scoped(self) -> bool:
        return self.partner_id is not None

    @property
    def is_unrestricted(self) -> bool:
        return (
            self.partner_id is None
            and self.company_code is None
            and self.office_code is None
        )


# ── Resolution ──────────────────────────────────────────────

def resolve_contractor_filter(principal: Principal) -> Scope:
    """Partner-only scope for a contractor principal."""
    if not principal.is_contractor:
        raise ValueError(f"{principal.role.value} is not scoped by partner")
    return Scope(partner_id=principal.partner_id)


def resolve(principal: Principal) -> Scope:
    """Office-level scope for `principal`."""
    role = principal.role
    if role is Role.CONTRACTOR:
        return resolve_contractor_filter(principal)
    if role is Role.SYSTEM_ADMIN:
        return Scope()
    if role is Role.COMPANY_ADMIN:
        return Scope(company_code=principal.company_code)
    return Scope(company_code=principal.company_code, office_code=principal.office_code)


def resolve_company(principal: Principal) -> Scope:
    """Company-level scope: like `resolve` but never filters by office."""
    scope = resolve(principal)
    if scope.is_partner_scoped:
        return scope
    return Scope(company_code=scope.company_code)


def resolve_for_level(principal: Principal, level: ScopeLevel) -> Scope:
    if ScopeLevel(level) is ScopeLevel.COMPANY:
        return resolve_company(principal)
    return resolve(principal)


# ── Single-resource check ───────────────────────────────────

def check_scope(scope: Scope, resource: Resource) -> Decision:
    """Validate `resource` against an already-resolved scope."""
    if scope.is_partner_scoped:
        if resource.assigned_partner_id != scope.partner_id:
            return Denied(
                DenialReason.NOT_ASSIGNED_PARTNER,
                details={"resource_type": resource.type.value, "resource_id": resource.id},
            )
        return Allowed(scope)

    if scope.company_code is not None and resource.company_code != scope.company_code:
        return Denied(
            DenialReason.WRONG_COMPANY,
            details={"resource_type": resource.type.value, "resource_id": resource.id},
        )
    if scope.office_code is not None and resource.office_code != scope.office_code:
        return Denied(
            DenialReason.WRONG_OFFICE,
            details={"resource_type": resource.type.value, "resource_id": resource.id},
        )
    return Allowed(scope)


def authorize_resource_access(
    principal: Principal,
    resource: Resource,
    *,
    action: Action | None = None,
    level: ScopeLevel = ScopeLevel.OFFICE,
) -> Decision:
    """Decide whether `principal` may touch `resource`.

    The self-delete rule is checked first and applies to every role.
    """
    if (
        action is Action.DELETE
        and resource.type is ResourceType.ACCOUNT
        and resource.id == principal.id
    ):
        return Denied(
            DenialReason.SELF_DELETE_FORBIDDEN,
            details={"account_id": principal.id},
        )

    return check_scope(resolve_for_level(principal, level), resource)
