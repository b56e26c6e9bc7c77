"""Audit log model"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid

from orderbridge.database import Base, utcnow


class AuditLog(Base):
    """Audit trail for actions the system takes on its own"""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"))

    # Actor information
    actor_type = Column(String(50), default="system")  # system, webhook
    actor_name = Column(String(255))

    # Action details
    action = Column(String(100), nullable=False)  # auto_accept_order, ...
    resource_type = Column(String(50))  # order, webhook_queue_entry
    resource_id = Column(Uuid)

    data_json = Column(JSON)  # {"before": {...}, "after": {...}}

    created_at = Column(DateTime, default=utcnow)
