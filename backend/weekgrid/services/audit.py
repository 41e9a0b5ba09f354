import logging
import uuid
from typing import Any, Optional, Union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from weekgrid.models.audit_log import AuditLog
from weekgrid.services.errors import PersistenceFailure

logger = logging.getLogger(__name__)


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError):
        return None


def log_action(
    db: Session,
    org_id: Union[uuid.UUID, str, None],
    user_id: Union[uuid.UUID, str],
    action: str,
    resource_type: str,
    resource_id: Any = None,
    details: dict | None = None,
):
    entry = AuditLog(
        org_id=_as_uuid(org_id),
        user_id=_as_uuid(user_id),
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details.copy() if isinstance(details, dict) else {},
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Could not record %s on %s %s: %s", action, resource_type, resource_id, exc)
        raise PersistenceFailure(f"Could not record the '{action}' action in the audit log") from exc
    return entry


def list_actions(db: Session, resource_type: str, resource_id: Any) -> list[AuditLog]:
    """History of one resource, oldest first."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.resource_type == resource_type, AuditLog.resource_id == str(resource_id))
        .order_by(AuditLog.created_at, AuditLog.id)
        .all()
    )
