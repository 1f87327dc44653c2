from typing import Any, Dict, Optional

from app.extensions import db
from app.models.audit_log import AuditLog
from app.utils.transaction import best_effort


class AuditTrail:
    """Fire-and-forget activity log. A failed append never undoes the change it describes."""

    def record(
        self,
        *,
        actor_id: Optional[str],
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        with best_effort(f"audit {action}"):
            log = AuditLog()
            log.actor_id = actor_id
            log.action = action
            log.entity_type = entity_type
            log.entity_id = entity_id or "*"
            log.payload = payload or {}

            db.session.add(log)
