"""
Stripe checkout and billing portal orchestration.

The Stripe customer id is persisted on the tenant's subscription row as soon
as the customer exists, before the checkout session is requested, so a
failed checkout retried later reuses the same customer.
"""
import logging

from flask import current_app

from tenantkit.exceptions import ConfigurationError, ValidationError
from tenantkit.pricing import get_plan
from tenantkit.services.subscription_service import create_trial_subscription
from tenantkit.store import get_profile, get_subscription_for_tenant

logger = logging.getLogger(__name__)


def ensure_customer(session, payment_client, principal, profile) -> str:
    """Stripe customer id of the tenant, created on first use."""
    subscription = get_subscription_for_tenant(session, profile.tenant_id)
    if subscription is not None and subscription.stripe_customer_id:
        return subscription.stripe_customer_id

    customer = payment_client.create_customer(
        email=principal.email,
        metadata={'user_id': principal.id, 'tenant_id': profile.tenant_id},
    )

    if subscription is None:
        # Tenant bootstrap left no subscription row behind; repair it here
        logger.warning(f"[BILLING] Tenant {profile.tenant_id} had no subscription row, creating one")
        subscription = create_trial_subscription(profile.tenant_id, principal.id, session)

    subscription.stripe_customer_id = customer['id']
    session.commit()
    logger.info(f"[BILLING] Stripe customer {customer['id']} linked to tenant {profile.tenant_id}")
    return customer['id']


def start_checkout(session, payment_client, principal, tier, price_id=None, origin=None) -> str:
    """
    Start a subscription checkout for the caller's tenant.

    Args:
        session: Database session
        payment_client: Stripe client
        principal: Authenticated caller
        tier: Paid tier being purchased
        price_id: Stripe price; defaults to the tier's configured price
        origin: Web client origin for the redirect URLs

    Returns:
        str: Checkout URL

    Raises:
        ConfigurationError: Caller has no profile/tenant
        ValidationError: Unknown tier or price
        PaymentProviderError: Stripe failure, message passed through
    """
    profile = get_profile(session, principal.id)
    if profile is None:
        raise ConfigurationError("No tenant found for user")

    plan = get_plan(tier, current_app.config)
    if plan is None or not plan.is_paid:
        raise ValidationError(f"Invalid tier: {tier}")
    if price_id and plan.provider_price_id and price_id != plan.provider_price_id:
        raise ValidationError("Price does not match the selected tier")
    price_id = price_id or plan.provider_price_id
    if not price_id:
        raise ValidationError(f"No price configured for the {plan.name} plan")

    origin = (origin or current_app.config['APP_BASE_URL']).rstrip('/')
    customer_id = ensure_customer(session, payment_client, principal, profile)

    checkout = payment_client.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        success_url=f"{origin}/dashboard?success=true",
        cancel_url=f"{origin}/pricing?canceled=true",
        metadata={'user_id': principal.id, 'tenant_id': profile.tenant_id, 'tier': tier},
    )
    logger.info(f"[BILLING] Checkout started for tenant {profile.tenant_id} ({tier})")
    return checkout['url']


def open_billing_portal(session, payment_client, principal, customer_id, origin=None) -> str:
    """
    Billing portal URL for the caller's Stripe customer.

    Raises:
        ValidationError: No customer id, or one that belongs to another tenant
    """
    if not customer_id:
        raise ValidationError("Customer ID is required")

    profile = get_profile(session, principal.id)
    if profile is None:
        raise ConfigurationError("No tenant found for user")
    subscription = get_subscription_for_tenant(session, profile.tenant_id)
    if subscription is None or subscription.stripe_customer_id != customer_id:
        raise ValidationError("Customer does not belong to your organization")

    origin = (origin or current_app.config['APP_BASE_URL']).rstrip('/')
    portal = payment_client.create_billing_portal_session(
        customer_id=customer_id,
        return_url=f"{origin}/dashboard",
    )
    return portal['url']
