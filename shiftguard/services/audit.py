"""Audit trail for state-changing operations."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from shiftguard.domain.models import AuditLog
from shiftguard.domain.repositories import AuditLogRepository

logger = logging.getLogger(__name__)

TIME_ENTRY_CREATE = "time_entry.create"
TIME_ENTRY_EDIT = "time_entry.edit"
TIME_ENTRY_CLOCK_OUT = "time_entry.clock_out"
TIME_ENTRY_CLOSE_HANGING = "time_entry.close_hanging"
TIME_ENTRY_CLOSE_BY_MANAGER = "time_entry.close_by_manager"
REPORT_DAILY_GENERATE = "report_daily.generate"
REPORT_DAILY_SIGN = "report_daily.sign"
REPORT_DAILY_UNSIGN = "report_daily.unsign"
SHIFT_ASSIGN = "shift.assign"


def record_audit(
    session: Session,
    actor_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    restaurant_id: Optional[str] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit row to the current transaction.

    The row is committed together with the change it describes, so a failed
    write leaves neither behind.
    """
    entry = AuditLog(
        actor_id=actor_id,
        restaurant_id=restaurant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        before=before,
        after=after,
    )
    AuditLogRepository.create(session, entry, commit=False)
    logger.debug("Audit %s on %s:%s by %s", action, entity_type, entity_id, actor_id)
    return entry


def get_audit_logs(
    session: Session,
    restaurant_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> Dict[str, Any]:
    return AuditLogRepository.query(
        session,
        restaurant_id=restaurant_id,
        entity_type=entity_type,
        action=action,
        limit=limit,
        offset=offset,
    )


def get_entity_history(session: Session, entity_type: str, entity_id: str) -> List[AuditLog]:
    return AuditLogRepository.get_by_entity(session, entity_type, entity_id)
