"""
Tenant bootstrap for self-service registration.

The first principal of an organization becomes its owner; later sign-ups
from the same organization scope need an invitation.
"""
import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from tenantkit.exceptions import OrganizationExistsError, UpstreamProviderError
from tenantkit.models import Profile, Tenant
from tenantkit.services.auth_service import normalize_email, sign_up_or_resume, validate_password
from tenantkit.services.invitation_service import accept_invitation
from tenantkit.services.subscription_service import create_trial_subscription
from tenantkit.store import find_organization, get_profile, get_subscription_for_tenant

logger = logging.getLogger(__name__)

SCOPE_DOMAIN = 'domain'
SCOPE_GLOBAL = 'global'


def default_tenant_name(email):
    return f"{email}'s Organization"


def check_existing_organization(session, email):
    """
    Existing ``(tenant, contact)`` in the caller's organization scope, or None.

    TENANT_SCOPE selects per-domain or deployment-wide matching. When the
    lookup itself fails, ON_CHECK_FAILURE decides: 'allow' lets the
    registration through, 'deny' blocks it.
    """
    config = current_app.config
    domain = email.rsplit('@', 1)[-1] if config.get('TENANT_SCOPE', SCOPE_DOMAIN) == SCOPE_DOMAIN else None

    try:
        return find_organization(session, domain)
    except SQLAlchemyError as e:
        session.rollback()
        if config.get('ON_CHECK_FAILURE', 'allow') == 'deny':
            logger.error(f"[AUTH] Organization check failed for {email}: {e}")
            raise UpstreamProviderError(
                "We could not verify your organization right now. Please try again later.",
                status_code=503,
            ) from e
        logger.warning(f"[AUTH] Organization check failed for {email}, continuing registration: {e}")
        return None


def bootstrap_owner(session, principal, tenant_name):
    """
    Provision tenant, owner profile and trial subscription for ``principal``.

    Each row is get-or-create, so calling again after a partial failure only
    fills in what is missing. A failure rolls back the whole bootstrap.

    Returns:
        Profile: The owner profile (tenant loaded)
    """
    try:
        profile = get_profile(session, principal.id)
        if profile is None:
            tenant = Tenant(name=tenant_name)
            session.add(tenant)
            session.flush()
            profile = Profile(
                id=principal.id,
                tenant_id=tenant.id,
                email=principal.email,
                role='owner',
            )
            session.add(profile)
            session.flush()
            logger.info(f"[AUTH] Tenant '{tenant_name}' created with owner {principal.email}")
        else:
            tenant = profile.tenant

        if get_subscription_for_tenant(session, tenant.id) is None:
            create_trial_subscription(tenant.id, principal.id, session)

        session.commit()
    except Exception:
        session.rollback()
        raise
    return profile


def register(session, email, password, confirm_password, organization_name=None, invite_token=None):
    """
    Self-service registration.

    Args:
        session: Database session
        email: Caller's email
        password / confirm_password: Checked before any provider call
        organization_name: Tenant name, defaults to "{email}'s Organization"
        invite_token: Join an existing tenant through an invitation instead

    Returns:
        Profile of the registered principal

    Raises:
        ValidationError: Bad email or password
        OrganizationExistsError: The organization scope already has a tenant
        InvalidInvitationError: Unusable invite token
    """
    validate_password(password, confirm_password)
    email = normalize_email(email)

    if invite_token:
        return accept_invitation(session, invite_token, password, confirm_password)

    existing = check_existing_organization(session, email)
    if existing is not None:
        tenant, contact = existing
        logger.info(f"[AUTH] Registration for {email} blocked: organization '{tenant.name}' exists")
        raise OrganizationExistsError(tenant.name, contact.email if contact else None)

    tenant_name = (organization_name or '').strip() or default_tenant_name(email)
    principal = sign_up_or_resume(
        session,
        email,
        password,
        redirect_to=f"{current_app.config['APP_BASE_URL'].rstrip('/')}/verify-email",
        metadata={'role': 'owner', 'tenant_name': tenant_name},
    )
    return bootstrap_owner(session, principal, tenant_name)
