"""Role hierarchy for OneTouch RBAC.

Design:
  - Four company-hierarchy roles with strictly increasing levels:
      staff (1) < office_admin (2) < company_admin (3) < system_admin (4)
  - `contractor` is not part of the ordering. Contractors are scoped by
    partner identity (see `onetouch.auth.scope`), so asking for their
    level is an error rather than a silent 0.
  - An account may only create/modify accounts strictly below its own
    level. system_admin manages everyone.
"""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    CONTRACTOR = "contractor"
    STAFF = "staff"
    OFFICE_ADMIN = "office_admin"
    COMPANY_ADMIN = "company_admin"
    SYSTEM_ADMIN = "system_admin"

    @property
    def in_hierarchy(self) -> bool:
        return self is not Role.CONTRACTOR


class InvalidRoleForHierarchy(ValueError):
    """Raised when a role outside the company hierarchy is given a level."""

    def __init__(self, role: Role | str):
        self.role = role
        value = role.value if isinstance(role, Role) else role
        super().__init__(f"Role {value!r} has no level in the company hierarchy")


# ── Level table ─────────────────────────────────────────────

ROLE_LEVELS: dict[Role, int] = {
    Role.STAFF: 1,
    Role.OFFICE_ADMIN: 2,
    Role.COMPANY_ADMIN: 3,
    Role.SYSTEM_ADMIN: 4,
}

HIERARCHY_ROLES: frozenset[Role] = frozenset(ROLE_LEVELS)

# Convenience role sets for route declarations
ALL_ROLES: frozenset[Role] = frozenset(Role)
STAFF_AND_ABOVE: frozenset[Role] = HIERARCHY_ROLES
OFFICE_ADMIN_AND_ABOVE: frozenset[Role] = frozenset(
    {Role.OFFICE_ADMIN, Role.COMPANY_ADMIN, Role.SYSTEM_ADMIN}
)
COMPANY_ADMIN_AND_ABOVE: frozenset[Role] = frozenset(
    {Role.COMPANY_ADMIN, Role.SYSTEM_ADMIN}
)


# ── Queries ─────────────────────────────────────────────────

def level_of(role: Role) -> int:
    """Return the hierarchy level of `role`.

    Raises InvalidRoleForHierarchy for contractor (or any value that is
    not a hierarchy role).
    """
    try:
        return ROLE_LEVELS[Role(role)]
    except (KeyError, ValueError):
        raise InvalidRoleForHierarchy(role) from None


def can_manage(actor_role: Role, target_role: Role) -> bool:
    """True iff `actor_role` may create or modify an account of `target_role`."""
    actor_role = Role(actor_role)
    target_role = Role(target_role)
    if actor_role is Role.SYSTEM_ADMIN:
        return True
    if not actor_role.in_hierarchy or not target_role.in_hierarchy:
        return False
    return level_of(actor_role) > level_of(target_role)


def roles_manageable_by(actor_role: Role) -> frozenset[Role]:
    """Roles visible in account listings for `actor_role`.

    Every hierarchy role at or below the actor's own level. Contractors
    have no hierarchy level and therefore see none.
    """
    actor_role = Role(actor_role)
    if not actor_role.in_hierarchy:
        return frozenset()
    my_level = ROLE_LEVELS[actor_role]
    return frozenset(r for r, level in ROLE_LEVELS.items() if level <= my_level)
