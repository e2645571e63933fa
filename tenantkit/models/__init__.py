"""Models package - exports all SQLAlchemy models."""
from tenantkit.models.tenant import Tenant
from tenantkit.models.profile import Profile, UserRole
from tenantkit.models.invitation import Invitation, InvitationStatus, INVITABLE_ROLES
from tenantkit.models.subscription import Subscription, SUBSCRIPTION_STATUSES
from tenantkit.models.webhook_event import WebhookEvent

__all__ = [
    'Tenant', 'Profile', 'UserRole',
    'Invitation', 'InvitationStatus', 'INVITABLE_ROLES',
    'Subscription', 'SUBSCRIPTION_STATUSES',
    'WebhookEvent',
]
