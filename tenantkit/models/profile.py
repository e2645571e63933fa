"""Profile model - one per auth principal, pinned to a single tenant."""
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, validates
from tenantkit.database import Base
from tenantkit.utils.dates import utcnow, isoformat


class UserRole(enum.Enum):
    """User roles within a tenant."""
    OWNER = 'owner'
    ADMIN = 'admin'
    MEMBER = 'member'


class Profile(Base):
    """Profile model - the tenant membership of an authenticated principal."""

    __tablename__ = 'profiles'

    # Same id the auth provider issued for the principal
    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=UserRole.MEMBER.value)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    tenant = relationship('Tenant', back_populates='profiles')

    __table_args__ = (
        CheckConstraint("role IN ('owner', 'admin', 'member')", name='check_profile_role'),
    )

    def __repr__(self):
        return f"<Profile(id={self.id}, tenant_id={self.tenant_id}, role='{self.role}')>"

    @validates('tenant_id')
    def validate_tenant_id(self, key, value):
        if self.tenant_id is not None and value != self.tenant_id:
            raise ValueError("A profile cannot move to another tenant")
        return value

    @validates('role')
    def validate_role(self, key, value):
        if value not in {r.value for r in UserRole}:
            raise ValueError(f"Unknown role: {value}")
        return value

    def is_owner(self):
        """Check if user is owner of tenant."""
        return self.role == UserRole.OWNER.value

    def is_admin(self):
        """Check if user is admin or owner."""
        return self.role in [UserRole.OWNER.value, UserRole.ADMIN.value]

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'email': self.email,
            'role': self.role,
            'created_at': isoformat(self.created_at),
        }
