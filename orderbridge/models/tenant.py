"""Tenant-related models"""

import enum
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Index, Uuid, text
from sqlalchemy.orm import relationship

from orderbridge.database import Base, utcnow


class Platform(str, enum.Enum):
    """Delivery platforms that push order webhooks"""
    UBER_EATS = "uber_eats"
    DELIVEROO = "deliveroo"
    JUST_EAT = "just_eat"


class Organization(Base):
    """Restaurant organization (tenant)"""
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    branches = relationship("Branch", back_populates="organization")
    integrations = relationship("PlatformIntegration", back_populates="organization")


class Branch(Base):
    """Physical restaurant location belonging to an organization"""
    __tablename__ = "branches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    organization = relationship("Organization", back_populates="branches")


class PlatformIntegration(Base):
    """One organization's connection to one delivery platform"""
    __tablename__ = "platform_integrations"
    __table_args__ = (
        # At most one active integration per (organization, platform)
        Index(
            "uq_platform_integrations_active",
            "organization_id",
            "platform",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    platform = Column(String(50), nullable=False)
    platform_restaurant_id = Column(String(255))  # Store id on the platform side

    # {"webhook_secret": "...", "client_secret": "...", "api_token": "..."}
    credentials = Column(JSON, default=dict)
    # {"auto_accept_orders": false, "auto_accept_same_day": true, "branch_id": "...", "currency": "GBP"}
    settings = Column(JSON, default=dict)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    organization = relationship("Organization", back_populates="integrations")

    @property
    def webhook_secret(self) -> str:
        """Secret used to sign this tenant's webhooks"""
        credentials = self.credentials or {}
        return credentials.get("webhook_secret") or credentials.get("client_secret") or ""

    def setting(self, key: str, default=None):
        return (self.settings or {}).get(key, default)
