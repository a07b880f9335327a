"""Structured allow/deny results returned by the access engine.

The engine never raises for a normal denial. It returns `Denied` with a
`DenialReason` and enough detail to render a specific message upstream;
routers turn that into an HTTP error (see `onetouch.middleware.exceptions`).

Both result types are truthy/falsy so `if can_transition(...)` reads
naturally while the reason stays available.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from onetouch.auth.scope import Scope


class DenialReason(str, enum.Enum):
    ROLE_NOT_ALLOWED = "RoleNotAllowed"
    WRONG_COMPANY = "WrongCompany"
    WRONG_OFFICE = "WrongOffice"
    NOT_ASSIGNED_PARTNER = "NotAssignedPartner"
    SELF_DELETE_FORBIDDEN = "SelfDeleteForbidden"
    INVALID_STATUS_VALUE = "InvalidStatusValue"
    ILLEGAL_TRANSITION = "IllegalTransition"
    INVALID_ROLE_FOR_HIERARCHY = "InvalidRoleForHierarchy"

    @property
    def http_status(self) -> int:
        return 400 if self in _BAD_REQUEST_REASONS else 403

    @property
    def error_code(self) -> str:
        """SCREAMING_SNAKE code used in error response bodies."""
        return self.name


_BAD_REQUEST_REASONS = frozenset({
    DenialReason.INVALID_STATUS_VALUE,
    DenialReason.ILLEGAL_TRANSITION,
    DenialReason.INVALID_ROLE_FOR_HIERARCHY,
})

_DEFAULT_MESSAGES: dict[DenialReason, str] = {
    DenialReason.ROLE_NOT_ALLOWED: "Your role is not allowed to perform this operation",
    DenialReason.WRONG_COMPANY: "Resource belongs to another company",
    DenialReason.WRONG_OFFICE: "Resource belongs to another office",
    DenialReason.NOT_ASSIGNED_PARTNER: "Resource is not assigned to your partner organization",
    DenialReason.SELF_DELETE_FORBIDDEN: "You cannot deactivate your own account",
    DenialReason.INVALID_STATUS_VALUE: "Invalid report status",
    DenialReason.ILLEGAL_TRANSITION: "This status transition is not allowed",
    DenialReason.INVALID_ROLE_FOR_HIERARCHY: "Role has no place in the company hierarchy",
}


@dataclass(frozen=True)
class Allowed:
    scope: Scope

    allowed = True

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    reason: DenialReason
    message: str = ""
    details: dict = field(default_factory=dict)

    allowed = False

    def __post_init__(self):
        if not self.message:
            object.__setattr__(self, "message", _DEFAULT_MESSAGES[self.reason])

    def __bool__(self) -> bool:
        return False


Decision = Union[Allowed, Denied]
