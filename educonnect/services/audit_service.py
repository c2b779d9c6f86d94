import json
import logging
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from educonnect.core.config import settings
from educonnect.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def client_ip(request: Request | None) -> str | None:
    if request is None or request.client is None:
        return None
    return request.client.host


def log_action(
    db: Session,
    *,
    user_id: int | None,
    action: str,
    resource_type: str,
    resource_id: int | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> None:
    """Insert an audit log entry.

    Runs inside a SAVEPOINT: if the insert fails only the savepoint is
    rolled back and the caller's transaction stays usable.
    """
    if not settings.audit_log_enabled:
        return
    user_agent = request.headers.get("user-agent") if request is not None else None
    try:
        with db.begin_nested():
            db.add(AuditLog(
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=json.dumps(details, ensure_ascii=False) if details else None,
                ip_address=client_ip(request),
                user_agent=user_agent[:500] if user_agent else None,
            ))
            db.flush()
    except Exception:
        logger.warning("Failed to write audit log", exc_info=True)
