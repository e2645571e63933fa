"""Invitation model - single-use capability to join a tenant."""
import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, validates
from tenantkit.database import Base
from tenantkit.utils.dates import utcnow, isoformat


class InvitationStatus(enum.Enum):
    """Invitation lifecycle states."""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    EXPIRED = 'expired'


INVITABLE_ROLES = ('admin', 'member')


class Invitation(Base):
    """
    Pending or consumed invitation.

    The token is the only proof of the right to join; cancellation deletes the row.
    """

    __tablename__ = 'invitations'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default='member')
    invited_by = Column(String(36), ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    token = Column(String(64), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default=InvitationStatus.PENDING.value, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    accepted_at = Column(DateTime, nullable=True)

    # Relationships
    tenant = relationship('Tenant', back_populates='invitations')
    inviter = relationship('Profile', foreign_keys=[invited_by])

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'member')", name='check_invitation_role'),
        CheckConstraint("status IN ('pending', 'accepted', 'expired')", name='check_invitation_status'),
    )

    def __repr__(self):
        return f"<Invitation(id={self.id}, email='{self.email}', status='{self.status}')>"

    @validates('role')
    def validate_role(self, key, value):
        if value not in INVITABLE_ROLES:
            raise ValueError(f"Invitations cannot grant role '{value}'")
        return value

    @property
    def is_pending(self):
        return self.status == InvitationStatus.PENDING.value

    def is_expired(self, now=None):
        """True once expires_at has passed, whatever the stored status says."""
        return self.expires_at <= (now or utcnow())

    def is_usable(self, now=None):
        return self.is_pending and not self.is_expired(now)

    def to_dict(self):
        """Public view; the token is deliberately omitted."""
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'email': self.email,
            'role': self.role,
            'invited_by': self.invited_by,
            'status': self.status,
            'expires_at': isoformat(self.expires_at),
            'created_at': isoformat(self.created_at),
            'accepted_at': isoformat(self.accepted_at),
        }
