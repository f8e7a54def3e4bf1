from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .permissions import Role

MANAGER_RATE_ROLES = {Role.MANAGER, Role.OWNER}


def effective_hourly_rate(
    role: "Role | str",
    default_rate: Optional[Decimal],
    manager_rate: Optional[Decimal],
    working_as_manager: bool = False,
) -> Decimal:
    """
    Pick the hourly rate for a piece of work.

    Priority:
    1. Manager rate, when working as manager with a manager/owner role and the rate is set
    2. Member's default rate
    3. Zero
    """
    if working_as_manager and Role.parse(role) in MANAGER_RATE_ROLES and manager_rate is not None:
        return Decimal(manager_rate)
    if default_rate is not None:
        return Decimal(default_rate)
    return Decimal("0")
