"""Acceptance deadline model"""

import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from orderbridge.database import Base, utcnow


class Urgency(str, enum.Enum):
    """How soon the restaurant has to fulfil an order"""
    SAME_DAY = "same_day"
    ADVANCE = "advance"


class TimerOutcome(str, enum.Enum):
    ACCEPTED = "accepted"
    SKIPPED = "skipped"  # Order had already left pending
    NOT_PERMITTED = "not_permitted"  # Integration settings forbid auto-accept
    NOTIFY_FAILED = "notify_failed"
    ALREADY_FIRED = "already_fired"
    MISSING = "missing"


class AcceptanceTimer(Base):
    """Persisted auto-accept deadline for a pending order"""
    __tablename__ = "acceptance_timers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    platform_integration_id = Column(Uuid, ForeignKey("platform_integrations.id"), nullable=False)

    urgency = Column(String(20), nullable=False)
    deadline_at = Column(DateTime, nullable=False)
    fire_at = Column(DateTime, nullable=False, index=True)  # Deadline minus safety margin

    fired_at = Column(DateTime)
    outcome = Column(String(50))
    last_error = Column(Text)

    created_at = Column(DateTime, default=utcnow)

    # Relationships
    order = relationship("Order", back_populates="acceptance_timer")
