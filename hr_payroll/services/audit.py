from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect

from hr_payroll.services.base import BaseService
from hr_payroll.models.audit_log import AuditLog

# Fields never written to the audit trail
SENSITIVE_FIELDS = {"password", "hashed_password", "token", "refresh_token", "secret"}


def model_to_dict(obj: Any) -> Optional[Dict[str, Any]]:
    """Column snapshot of an ORM instance, suitable for old/new audit values."""
    if obj is None:
        return None
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def sanitize(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if data is None:
        return None
    if hasattr(data, "model_dump"):
        data = data.model_dump()
    cleaned = {k: ("[REDACTED]" if k in SENSITIVE_FIELDS else v) for k, v in data.items()}
    return jsonable_encoder(cleaned)


def calculate_changes(old_value: Optional[dict], new_value: Optional[dict]) -> Optional[dict]:
    if not old_value or not new_value:
        return None
    changes = {}
    for key in set(old_value) | set(new_value):
        if key in SENSITIVE_FIELDS:
            continue
        if old_value.get(key) != new_value.get(key):
            changes[key] = {"from": old_value.get(key), "to": new_value.get(key)}
    return changes or None


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity: str,
        entity_id: Optional[int] = None,
        user_id: Optional[int] = None,
        entity_name: Optional[str] = None,
        old_value: Optional[dict] = None,
        new_value: Optional[dict] = None,
    ) -> Optional[AuditLog]:
        """
        Append an audit entry in its own small transaction.
        Call after the primary mutation has committed; a failure here is
        logged and swallowed so it can never undo or block payroll writes.
        """
        try:
            old_clean = sanitize(old_value)
            new_clean = sanitize(new_value)
            db_log = AuditLog(
                tenant_id=self.tenant_id,
                user_id=user_id,
                action=action,
                entity=entity,
                entity_id=entity_id,
                entity_name=entity_name,
                old_value=old_clean,
                new_value=new_clean,
                changes=calculate_changes(old_clean, new_clean),
            )
            self.db.add(db_log)
            self.db.commit()
            self._logger.debug(f"Audit log created: {action} on {entity}")
            return db_log
        except Exception as e:
            self.db.rollback()
            self._logger.error(f"FAILED TO AUDIT LOG: {e}", exc_info=True)
            return None

    # Static wrapper for call sites that only hold a session
    @staticmethod
    def log(db, tenant_id: Optional[int], *args, **kwargs):
        service = AuditService(db, tenant_id)
        return service.log_action(*args, **kwargs)
