from __future__ import annotations

from sqlalchemy.orm import Session

from shiftguard.domain.models import Membership
from shiftguard.domain.repositories import MembershipRepository
from shiftguard.errors import PermissionDenied
from shiftguard.permissions import can_manage_reports


def require_manager(session: Session, actor_membership_id: str, restaurant_id: str, action: str) -> Membership:
    """
    Load the acting membership and check it manages ``restaurant_id``.

    Raises:
        NotFound: Unknown membership
        PermissionDenied: Not an active manager/owner of that restaurant
    """
    actor = MembershipRepository.require(session, actor_membership_id)
    if actor.restaurant_id != restaurant_id or actor.status != "active" or not can_manage_reports(actor.role):
        raise PermissionDenied(f"Forbidden: only managers and owners can {action}")
    return actor
