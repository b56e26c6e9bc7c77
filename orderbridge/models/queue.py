"""Webhook retry queue model"""

import uuid
from sqlalchemy import Column, String, Integer, DateTime, JSON, Text, LargeBinary, Uuid

from orderbridge.database import Base, utcnow


class WebhookQueueEntry(Base):
    """Webhook event parked for replay"""
    __tablename__ = "webhook_queue"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    platform = Column(String(50), nullable=False, index=True)
    tenant_hint = Column(String(255))  # Routing parameter of the original request

    # Original request, kept verbatim so replay verifies the same signature
    raw_body = Column(LargeBinary, nullable=False)
    headers = Column(JSON, default=dict)

    attempt_count = Column(Integer, nullable=False, default=1)
    max_attempts = Column(Integer, nullable=False, default=5)
    next_attempt_at = Column(DateTime, nullable=False, index=True)
    last_error = Column(Text)

    processed_at = Column(DateTime)  # Resolved
    abandoned_at = Column(DateTime)  # Retry budget exhausted or permanent failure

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_abandoned(self) -> bool:
        return self.abandoned_at is not None
