from __future__ import annotations

import logging

from sqlmodel import Session, col, select

from semon.domain.models import AuditLog
from semon.infra.db import engine

logger = logging.getLogger(__name__)

AUDIT_CREATE = "CREATE"
AUDIT_UPDATE = "UPDATE"
AUDIT_DELETE = "DELETE"
AUDIT_LOGIN = "LOGIN"


def write_audit_log(
    *,
    actor_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None,
    description: str = "",
) -> None:
    log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
    )
    try:
        with Session(engine) as session:
            session.add(log)
            session.commit()
    except Exception:
        # Audit trail is advisory and never rolls back the mutation it describes.
        logger.warning(
            "audit write failed: %s %s %s",
            action,
            entity_type,
            entity_id,
            exc_info=True,
        )


def list_audit_logs(
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    limit: int = 50,
) -> list[AuditLog]:
    statement = select(AuditLog)
    if entity_type is not None:
        statement = statement.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        statement = statement.where(AuditLog.entity_id == entity_id)
    statement = statement.order_by(col(AuditLog.ts).desc()).limit(limit)
    with Session(engine) as session:
        return list(session.exec(statement).all())
