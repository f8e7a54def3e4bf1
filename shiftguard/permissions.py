"""Role and ownership gates for time entries, reports and UI segments."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .signatures import SignatureState
    from .time_entries import TimeEntry

SIGNED_PERIOD_REASON = "period is signed; immutable."
NOT_OWNER_REASON = "can only edit own entries."


class Role(str, enum.Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    OWNER = "owner"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


REPORT_ROLES = {Role.MANAGER, Role.OWNER, Role.SUPER_ADMIN}
AUDIT_ROLES = {Role.OWNER, Role.SUPER_ADMIN}


@dataclass(frozen=True)
class EditDecision:
    can_edit: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.can_edit


def can_edit_time_entry(
    entry: "TimeEntry",
    signature_state: "SignatureState",
    acting_identity: str,
    acting_role: "Role | str",
) -> EditDecision:
    """
    Decide whether a time entry may still be changed.

    Two gates, in order: a signed period blocks everyone (including the
    manager who signed it); otherwise employees may only touch their own
    entries while managers and owners may touch any.

    Args:
        entry: Entry to be edited
        signature_state: State of the period containing ``entry.clock_in``
        acting_identity: Membership id of the editor
        acting_role: Editor's role in the restaurant
    """
    if signature_state.is_signed:
        return EditDecision(False, SIGNED_PERIOD_REASON)

    if Role.parse(acting_role) is Role.EMPLOYEE and acting_identity != entry.membership_id:
        return EditDecision(False, NOT_OWNER_REASON)

    return EditDecision(True)


def can_access(role: "Role | str", segment: str) -> bool:
    role = Role.parse(role)
    if segment == "employee":
        return role in {Role.EMPLOYEE, Role.MANAGER, Role.SUPER_ADMIN}
    if segment == "manager":
        return role in {Role.MANAGER, Role.SUPER_ADMIN}
    if segment == "admin":
        return role is Role.SUPER_ADMIN
    return False


def can_manage_reports(role: "Role | str") -> bool:
    return Role.parse(role) in REPORT_ROLES


def can_access_audit_logs(role: "Role | str") -> bool:
    return Role.parse(role) in AUDIT_ROLES
