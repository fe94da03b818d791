"""Audit trail for dataroom mutations (folders, trash, permissions).

Every entry belongs to one dataroom. Routers call ``log`` once the mutation
has committed, so a failed audit write never undoes or blocks it.

    audit_service.log(db, dataroom.id, auth.user_id, "move", "folder", dataroom.id,
                      {"updated_count": 3}, client_ip(request))
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..models.user import AuditLog

logger = logging.getLogger(__name__)


def log(
    db: Session,
    dataroom_id: str,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> None:
    """Record one mutation in its own commit. Never raises."""
    try:
        db.add(AuditLog(
            dataroom_id=dataroom_id,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=json.dumps(details, default=str) if details else None,
            ip_address=ip_address,
        ))
        db.commit()
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning(
            "Failed to write audit entry",
            extra={"dataroom_id": dataroom_id, "action": action, "error": str(e)},
        )
        db.rollback()


def get_by_resource(
    db: Session, dataroom_id: str, resource_type: str, resource_id: str, limit: int = 100
) -> list[AuditLog]:
    """Newest first, within one dataroom."""
    return (
        db.query(AuditLog)
        .filter(
            AuditLog.dataroom_id == dataroom_id,
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == resource_id,
        )
        .order_by(AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def purge_old_entries(db: Session, days: int = 365) -> int:
    """Run at startup; ``days`` <= 0 keeps the whole trail."""
    if days <= 0:
        return 0

    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    try:
        count = db.query(AuditLog).filter(AuditLog.created_at < cutoff).delete()
        db.commit()
    except sqlalchemy.exc.SQLAlchemyError as e:
        logger.warning("Failed to purge audit trail", extra={"error": str(e)})
        db.rollback()
        return 0
    if count:
        logger.info("Purged old audit entries", extra={"purged_count": count, "days": days})
    return count
