"""AccessGuard: the single authorization entry point for every operation.

  1. Role eligibility: principal.role must be in `required_roles`.
  2. Boundary: if a target resource is given, delegate to
     `scope.authorize_resource_access`.
  3. Return `Allowed(scope)` so the caller can apply the same filters to
     its own query, or `Denied(reason)`.

Usage:
    decision = authorize(principal, OFFICE_ADMIN_AND_ABOVE, item.as_resource(),
                         action=Action.UPDATE)
    scope = ensure_allowed(decision)   # raises AccessDeniedError if denied
"""

from __future__ import annotations

from collections.abc import Iterable

from onetouch.auth.decisions import Allowed, Decision, Denied, DenialReason
from onetouch.auth.principal import Principal
from onetouch.auth.roles import Role, can_manage
from onetouch.auth.scope import (
    Action,
    Resource,
    ScopeLevel,
    authorize_resource_access,
    resolve_for_level,
)
from onetouch.middleware.exceptions import AccessDeniedError


def authorize(
    principal: Principal,
    required_roles: Iterable[Role],
    resource: Resource | None = None,
    *,
    action: Action | None = None,
    level: ScopeLevel = ScopeLevel.OFFICE,
) -> Decision:
    roles = frozenset(Role(r) for r in required_roles)
    if principal.role not in roles:
        return Denied(
            DenialReason.ROLE_NOT_ALLOWED,
            details={
                "role": principal.role.value,
                "required": sorted(r.value for r in roles),
            },
        )

    if resource is None:
        return Allowed(resolve_for_level(principal, level))

    return authorize_resource_access(principal, resource, action=action, level=level)


def ensure_allowed(decision: Decision):
    """Return the scope of an Allowed decision, raise for a Denied one."""
    if isinstance(decision, Denied):
        raise AccessDeniedError(decision)
    return decision.scope


def authorize_account_role(principal: Principal, target_role: Role) -> Decision:
    """May `principal` create or modify an account holding `target_role`?

    Contractor accounts sit outside the hierarchy, so only system_admin
    may manage them; anyone else gets InvalidRoleForHierarchy.
    """
    target_role = Role(target_role)
    if can_manage(principal.role, target_role):
        return Allowed(resolve_for_level(principal, ScopeLevel.OFFICE))

    if not target_role.in_hierarchy:
        return Denied(
            DenialReason.INVALID_ROLE_FOR_HIERARCHY,
            message="Only a system administrator can manage contractor accounts",
            details={"target_role": target_role.value},
        )
    return Denied(
        DenialReason.ROLE_NOT_ALLOWED,
        message="Cannot manage an account at or above your own level",
        details={"role": principal.role.value, "target_role": target_role.value},
    )
