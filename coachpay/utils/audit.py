"""
Audit logging utilities.

Every money-affecting action, and every failure of one, is logged with
its input snapshot so the computation can be reconstructed.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from coachpay.models.audit import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    """Round-trip through json so Decimals and datetimes become strings."""
    return json.loads(json.dumps(value, default=str))


async def log_action(
    db: AsyncSession,
    actor: str,
    action: AuditAction,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    action_metadata: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Log an auditable action.

    Args:
        db: Database session
        actor: Admin id, or "system"
        action: Type of action being performed
        target_type: Type of entity affected (e.g., "lead", "enrollment")
        target_id: ID of the affected entity
        action_metadata: Input snapshot and outcome

    Returns:
        Created AuditLog entry
    """
    log_entry = AuditLog(
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        action_metadata=_json_safe(action_metadata) if action_metadata else None,
    )
    db.add(log_entry)
    # Note: commit should happen in the calling context
    return log_entry


def money(value: Optional[Decimal]) -> Optional[str]:
    """Decimal to string for snapshots."""
    return None if value is None else str(value)
