"""
Subscription model - the billing state of a tenant.
"""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, CheckConstraint, Boolean
from sqlalchemy.orm import relationship
from tenantkit.database import Base
from tenantkit.utils.dates import utcnow, isoformat


SUBSCRIPTION_STATUSES = ('active', 'canceled', 'past_due', 'trialing')


class Subscription(Base):
    """
    Tenant subscription plan and billing status.

    Relationship: One-to-One with Tenant. Rows are never deleted; a canceled
    subscription falls back to the free tier.
    """
    __tablename__ = 'subscriptions'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=True)
    tenant_id = Column(String(36), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, unique=True)

    # Plan and Status
    tier = Column(String(20), nullable=False, default='free')
    status = Column(String(20), nullable=False, default='trialing')

    # Stripe Integration
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True, unique=True)

    # Billing period
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant', back_populates='subscription')

    # Table constraints
    __table_args__ = (
        CheckConstraint(
            "tier IN ('free', 'starter', 'standard', 'business', 'premium')",
            name='check_subscription_tier'
        ),
        CheckConstraint(
            "status IN ('active', 'canceled', 'past_due', 'trialing')",
            name='check_subscription_status'
        ),
    )

    def __repr__(self):
        return f'<Subscription tenant_id={self.tenant_id} tier={self.tier} status={self.status}>'

    @property
    def is_trial(self):
        """Check if subscription is in trial period."""
        return self.status == 'trialing'

    @property
    def is_active(self):
        """Check if subscription is active (trial or paid)."""
        return self.status in ('trialing', 'active')

    @property
    def is_past_due(self):
        """Check if subscription payment is overdue."""
        return self.status == 'past_due'

    @property
    def is_canceled(self):
        """Check if subscription is canceled."""
        return self.status == 'canceled'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'tenant_id': self.tenant_id,
            'tier': self.tier,
            'status': self.status,
            'stripe_customer_id': self.stripe_customer_id,
            'stripe_subscription_id': self.stripe_subscription_id,
            'current_period_start': isoformat(self.current_period_start),
            'current_period_end': isoformat(self.current_period_end),
            'cancel_at_period_end': self.cancel_at_period_end,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
