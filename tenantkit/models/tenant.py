"""Tenant model - represents each organization using the platform."""
import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from tenantkit.database import Base
from tenantkit.utils.dates import utcnow, isoformat


class Tenant(Base):
    """Tenant model - each organization."""

    __tablename__ = 'tenants'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    profiles = relationship('Profile', back_populates='tenant', cascade='all, delete-orphan')
    invitations = relationship('Invitation', back_populates='tenant', cascade='all, delete-orphan')
    subscription = relationship('Subscription', back_populates='tenant', uselist=False)

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}')>"

    @property
    def owner(self):
        """Earliest owner profile, the one shown as the organization contact."""
        owners = [p for p in self.profiles if p.role == 'owner']
        if not owners:
            return None
        return min(owners, key=lambda p: p.created_at)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
