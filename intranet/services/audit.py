import enum
from typing import Any, Optional

from intranet.services.base import BaseService
from intranet.models.audit_log import AuditLog


def _serialize(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(i) for i in obj]
    return obj


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int],
        user_role: Optional[Any],
        details: Optional[dict] = None,
        organization_id: Optional[int] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ):
        """
        Create an audit log entry in the caller's transaction.
        Strictly append-only: the entry is flushed, the caller commits.
        """
        db_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            user_role=_serialize(user_role),
            details=_serialize(details or {}),
            organization_id=organization_id or self.org_id,
            before_state=_serialize(before_state),
            after_state=_serialize(after_state)
        )
        self.db.add(db_log)
        self.db.flush()
        return db_log

    @staticmethod
    def log(db, *args, **kwargs):
        service = AuditService(db)
        return service.log_action(*args, **kwargs)
