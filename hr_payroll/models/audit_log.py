from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from hr_payroll.database import Base


class AuditLog(Base):
    """Append-only audit trail of payroll mutations."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=True, index=True)
    user_id = Column(Integer, nullable=True)
    action = Column(String, nullable=False, index=True)  # CREATE, UPDATE, DELETE, STATUS_CHANGE, BULK_GENERATE ...
    entity = Column(String, nullable=False, index=True)
    entity_id = Column(Integer, nullable=True)
    entity_name = Column(String, nullable=True)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    changes = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
