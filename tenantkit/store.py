"""
Entity store access.

Row-level reads and writes over the SQLAlchemy session. Every team and
invitation query goes through :class:`TenantScope`, which injects the
``tenant_id`` predicate so a caller can never read or mutate another
tenant's rows by omission.
"""
import logging
from sqlalchemy import case, func
from sqlalchemy.orm import joinedload

from tenantkit.models import Profile, Tenant, Subscription

logger = logging.getLogger(__name__)


class TenantScope:
    """Query builder pinned to one tenant."""

    def __init__(self, session, tenant_id):
        if not tenant_id:
            raise ValueError("TenantScope requires a tenant_id")
        self.session = session
        self.tenant_id = tenant_id

    def query(self, model, *criteria):
        """``SELECT ... WHERE tenant_id = :tenant AND <criteria>``"""
        return self.session.query(model).filter(model.tenant_id == self.tenant_id, *criteria)

    def get(self, model, row_id):
        """Single row by id, or None when it belongs to another tenant."""
        return self.query(model, model.id == row_id).one_or_none()

    def count(self, model, *criteria) -> int:
        """Count-only query mode."""
        return (
            self.session.query(func.count(model.id))
            .filter(model.tenant_id == self.tenant_id, *criteria)
            .scalar()
        )

    def count_by(self, model, column, *criteria) -> dict:
        """Row counts grouped by ``column``."""
        rows = (
            self.session.query(column, func.count(model.id))
            .filter(model.tenant_id == self.tenant_id, *criteria)
            .group_by(column)
            .all()
        )
        return {key: total for key, total in rows}

    def add(self, instance):
        """Insert a row, stamping it with the scoped tenant."""
        if instance.tenant_id is None:
            instance.tenant_id = self.tenant_id
        elif instance.tenant_id != self.tenant_id:
            raise ValueError("Row belongs to a different tenant")
        self.session.add(instance)
        return instance

    def update(self, model, values, *criteria) -> int:
        """Update-by-predicate; returns the number of rows affected."""
        if 'tenant_id' in values:
            raise ValueError("tenant_id cannot be changed through a scoped update")
        return self.query(model, *criteria).update(values, synchronize_session='fetch')

    def delete(self, model, *criteria) -> int:
        """Delete-by-predicate; returns the number of rows removed."""
        return self.query(model, *criteria).delete(synchronize_session='fetch')


def get_profile(session, principal_id):
    """Profile for an auth principal, or None."""
    return session.query(Profile).filter(Profile.id == principal_id).one_or_none()


def get_profile_with_tenant(session, principal_id):
    """Profile joined with its tenant in a single round-trip."""
    return (
        session.query(Profile)
        .options(joinedload(Profile.tenant))
        .filter(Profile.id == principal_id)
        .one_or_none()
    )


def get_tenant(session, tenant_id):
    return session.query(Tenant).filter(Tenant.id == tenant_id).one_or_none()


def get_subscription_for_tenant(session, tenant_id):
    return session.query(Subscription).filter(Subscription.tenant_id == tenant_id).one_or_none()


def get_subscription_by_stripe_id(session, stripe_subscription_id):
    if not stripe_subscription_id:
        return None
    return (
        session.query(Subscription)
        .filter(Subscription.stripe_subscription_id == stripe_subscription_id)
        .one_or_none()
    )


def escape_like(value, escape='\\'):
    """Literal text for a LIKE pattern."""
    return (
        value.replace(escape, escape * 2)
        .replace('%', escape + '%')
        .replace('_', escape + '_')
    )


def organization_contact(session, tenant_id):
    """Owner of the tenant, else its longest-standing admin, else any member."""
    rank = case((Profile.role == 'owner', 0), (Profile.role == 'admin', 1), else_=2)
    return (
        session.query(Profile)
        .filter(Profile.tenant_id == tenant_id)
        .order_by(rank, Profile.created_at.asc())
        .first()
    )


def find_organization(session, domain=None):
    """
    Locate an existing organization and the person to contact about it.

    Membership decides existence, so a tenant whose owner was demoted or
    removed still counts.

    Args:
        session: SQLAlchemy session
        domain: Email domain to match against member emails. ``None`` matches
            any tenant in the deployment.

    Returns:
        ``(tenant, contact_profile)`` or ``None``. ``contact_profile`` is None
        for a tenant without members.
    """
    if domain:
        pattern = f"%@{escape_like(domain.lower())}"
        member = (
            session.query(Profile)
            .options(joinedload(Profile.tenant))
            .filter(func.lower(Profile.email).like(pattern, escape='\\'))
            .order_by(Profile.created_at.asc())
            .first()
        )
        if member is None:
            return None
        tenant = member.tenant
    else:
        tenant = session.query(Tenant).order_by(Tenant.created_at.asc()).first()
        if tenant is None:
            return None
    return tenant, organization_contact(session, tenant.id)
