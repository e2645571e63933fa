"""
Subscription Service for tenant trial creation and plan lookups.
"""

import logging
from datetime import timedelta

from flask import current_app

from tenantkit.models import Subscription
from tenantkit.pricing import get_plan
from tenantkit.store import get_subscription_for_tenant
from tenantkit.utils.dates import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TRIAL_DAYS = 14


def create_trial_subscription(tenant_id, user_id, session, now=None):
    """
    Create the free trial subscription of a new tenant.

    Args:
        tenant_id: ID of the tenant
        user_id: Principal that bootstrapped the tenant
        session: Database session
        now: Trial start, defaults to the current time

    Returns:
        Subscription: Created subscription (added to the session, not committed)
    """
    now = now or utcnow()
    trial_days = current_app.config.get('TRIAL_DAYS', DEFAULT_TRIAL_DAYS)

    subscription = Subscription(
        user_id=user_id,
        tenant_id=tenant_id,
        tier='free',
        status='trialing',
        current_period_start=now,
        current_period_end=now + timedelta(days=trial_days),
        cancel_at_period_end=False,
    )
    session.add(subscription)

    logger.info(f"[BILLING] Trial subscription created for tenant {tenant_id} ({trial_days} days)")
    return subscription


def get_tenant_plan(session, tenant_id):
    """Pricing plan in force for a tenant; free when no subscription row exists."""
    subscription = get_subscription_for_tenant(session, tenant_id)
    tier = subscription.tier if subscription else 'free'
    return get_plan(tier, current_app.config)


def get_subscription_summary(session, tenant_id):
    """Subscription row plus its plan and remaining trial days."""
    subscription = get_subscription_for_tenant(session, tenant_id)
    if subscription is None:
        return {'subscription': None, 'plan': get_plan('free', current_app.config).to_dict(),
                'trial_days_left': None}

    trial_days_left = None
    if subscription.is_trial and subscription.current_period_end:
        remaining = subscription.current_period_end - utcnow()
        trial_days_left = max(remaining.days, 0)

    return {
        'subscription': subscription.to_dict(),
        'plan': get_plan(subscription.tier, current_app.config).to_dict(),
        'trial_days_left': trial_days_left,
    }
