"""
Invitation lifecycle: issue, look up, accept, cancel, expire.

Tokens are 256-bit URL-safe random strings and single-use. Acceptance
claims the invitation with a conditional UPDATE, so of two concurrent
attempts on the same token only one sees a row change.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from tenantkit.exceptions import (
    BusinessLogicError,
    InvalidInvitationError,
    PermissionDeniedError,
    PlanLimitError,
    ValidationError,
)
from tenantkit.models import Invitation, InvitationStatus, INVITABLE_ROLES, Profile
from tenantkit.services.auth_service import normalize_email, sign_up_or_resume, validate_password
from tenantkit.services.email_service import send_invitation_email
from tenantkit.services.roles import is_manager
from tenantkit.services.subscription_service import get_tenant_plan
from tenantkit.store import TenantScope, get_profile, get_tenant
from tenantkit.utils.dates import utcnow

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
DEFAULT_TTL_DAYS = 7

PENDING = InvitationStatus.PENDING.value
ACCEPTED = InvitationStatus.ACCEPTED.value
EXPIRED = InvitationStatus.EXPIRED.value


@dataclass
class InvitationResult:
    invitation: Invitation
    invite_url: str
    email_sent: bool

    @property
    def message(self):
        if self.email_sent:
            return f"Invitation sent to {self.invitation.email}"
        return f"Invitation created! Share this link: {self.invite_url}"

    def to_dict(self):
        return {
            'invitation': self.invitation.to_dict(),
            'invite_url': self.invite_url,
            'email_sent': self.email_sent,
            'message': self.message,
        }


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def build_invite_url(token) -> str:
    base_url = current_app.config['APP_BASE_URL'].rstrip('/')
    return f"{base_url}/accept-invite?token={token}"


def _require_manager(actor, action):
    if not is_manager(actor.role):
        raise PermissionDeniedError(f"Only owners and admins can {action}")


def _check_seat_limit(session, scope, now):
    """Profiles plus live invitations must stay within the plan's max_users."""
    if not current_app.config.get('ENFORCE_SEAT_LIMITS', True):
        return
    plan = get_tenant_plan(session, scope.tenant_id)
    seats = scope.count(Profile) + scope.count(
        Invitation, Invitation.status == PENDING, Invitation.expires_at > now
    )
    if not plan.allows_users(seats + 1):
        raise PlanLimitError(
            f"Your {plan.name} plan allows up to {plan.max_users} users. Upgrade to invite more.",
            payload={'max_users': plan.max_users, 'tier': plan.id},
        )


def issue_invitation(session, actor, email, role='member', send_email=True, now=None):
    """
    Create a pending invitation and try to email it.

    The invitation is committed before the email goes out; a failed email
    only flips ``email_sent`` so the inviter can share the link by hand.

    Returns:
        InvitationResult
    """
    _require_manager(actor, "invite users")
    email = normalize_email(email)
    if role not in INVITABLE_ROLES:
        raise ValidationError("Invitations can only grant the admin or member role")

    now = now or utcnow()
    scope = TenantScope(session, actor.tenant_id)

    if scope.count(Profile, func.lower(Profile.email) == email):
        raise BusinessLogicError("This user is already a member of your organization")

    # Only one live token per email and tenant
    replaced = scope.delete(Invitation, Invitation.email == email, Invitation.status == PENDING)
    if replaced:
        logger.info(f"[INVITE] Replaced {replaced} pending invitation(s) for {email}")

    _check_seat_limit(session, scope, now)

    ttl_days = current_app.config.get('INVITATION_TTL_DAYS', DEFAULT_TTL_DAYS)
    invitation = scope.add(Invitation(
        email=email,
        role=role,
        invited_by=actor.id,
        token=generate_token(),
        status=PENDING,
        expires_at=now + timedelta(days=ttl_days),
        created_at=now,
    ))
    session.commit()
    logger.info(f"[INVITE] {actor.email} invited {email} as {role} to tenant {actor.tenant_id}")

    invite_url = build_invite_url(invitation.token)
    email_sent = False
    if send_email:
        tenant = get_tenant(session, actor.tenant_id)
        email_sent = send_invitation_email(email, invite_url, tenant.name, role)
        if not email_sent:
            logger.warning(f"[INVITE] Email to {email} failed, returning link for manual sharing")

    return InvitationResult(invitation=invitation, invite_url=invite_url, email_sent=email_sent)


def get_valid_invitation(session, token, now=None):
    """
    Pending, unexpired invitation for ``token``.

    Raises:
        InvalidInvitationError: for every failure, with the same message
    """
    if not token:
        raise InvalidInvitationError()
    invitation = session.query(Invitation).filter(Invitation.token == token).one_or_none()
    if invitation is None or not invitation.is_usable(now):
        raise InvalidInvitationError()
    return invitation


def describe_invitation(session, token):
    """Preview shown on the accept-invite page."""
    invitation = get_valid_invitation(session, token)
    return {
        'email': invitation.email,
        'role': invitation.role,
        'tenant_name': invitation.tenant.name,
        'expires_at': invitation.expires_at.isoformat(),
    }


def claim_invitation(session, invitation_id, now=None) -> bool:
    """Atomically move a live invitation to accepted; False if someone else got it."""
    now = now or utcnow()
    rows = (
        session.query(Invitation)
        .filter(
            Invitation.id == invitation_id,
            Invitation.status == PENDING,
            Invitation.expires_at > now,
        )
        .update({'status': ACCEPTED, 'accepted_at': now}, synchronize_session='fetch')
    )
    session.commit()
    return rows == 1


def release_invitation(session, invitation_id) -> None:
    """Hand a claimed invitation back so the invitee can retry."""
    try:
        session.rollback()
        session.query(Invitation).filter(
            Invitation.id == invitation_id,
            Invitation.status == ACCEPTED,
        ).update({'status': PENDING, 'accepted_at': None}, synchronize_session='fetch')
        session.commit()
    except Exception:
        session.rollback()
        logger.exception(f"[INVITE] Could not release invitation {invitation_id}")


def accept_invitation(session, token, password, confirm_password):
    """
    Create the invitee's account and profile.

    Returns:
        Profile: New profile with the invitation's tenant and role
    """
    validate_password(password, confirm_password)
    invitation = get_valid_invitation(session, token)
    invitation_id = invitation.id
    tenant_id = invitation.tenant_id
    role = invitation.role
    email = invitation.email

    if not claim_invitation(session, invitation_id):
        logger.info(f"[INVITE] Invitation {invitation_id} was claimed concurrently")
        raise InvalidInvitationError()

    try:
        principal = sign_up_or_resume(
            session,
            email,
            password,
            redirect_to=f"{current_app.config['APP_BASE_URL'].rstrip('/')}/dashboard",
            metadata={'role': role, 'tenant_id': tenant_id},
        )
        profile = get_profile(session, principal.id)
        if profile is None:
            profile = Profile(
                id=principal.id,
                tenant_id=tenant_id,
                email=principal.email or email,
                role=role,
            )
            session.add(profile)
            session.commit()
        elif profile.tenant_id != tenant_id:
            raise BusinessLogicError("This account already belongs to another organization")
    except Exception:
        release_invitation(session, invitation_id)
        raise

    logger.info(f"[INVITE] {email} joined tenant {tenant_id} as {role}")
    return profile


def list_invitations(session, actor):
    _require_manager(actor, "view invitations")
    scope = TenantScope(session, actor.tenant_id)
    return scope.query(Invitation).order_by(Invitation.created_at.desc()).all()


def cancel_invitation(session, actor, invitation_id) -> int:
    """Hard delete; deleting an invitation that is already gone is not an error."""
    _require_manager(actor, "cancel invitations")
    scope = TenantScope(session, actor.tenant_id)
    removed = scope.delete(Invitation, Invitation.id == invitation_id)
    session.commit()
    if removed:
        logger.info(f"[INVITE] Invitation {invitation_id} cancelled by {actor.email}")
    return removed


def expire_stale_invitations(session, now=None) -> int:
    """Mark every pending invitation past its expiry as expired."""
    now = now or utcnow()
    rows = (
        session.query(Invitation)
        .filter(Invitation.status == PENDING, Invitation.expires_at <= now)
        .update({'status': EXPIRED}, synchronize_session='fetch')
    )
    session.commit()
    return rows
