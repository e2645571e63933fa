"""Authentication flows layered on the auth provider."""
import logging
import re

from flask import current_app

from tenantkit.exceptions import EmailAlreadyRegisteredError, SaasError, ValidationError
from tenantkit.extensions import get_auth_provider, get_session_events
from tenantkit.services.email_service import send_verification_email
from tenantkit.services.session_context import (
    SessionContext,
    SIGNED_IN,
    SIGNED_OUT,
    USER_UPDATED,
)
from tenantkit.store import get_profile

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def normalize_email(email) -> str:
    """Trimmed, lower-cased email; raises ValidationError when malformed."""
    email = (email or '').strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email address is required")
    return email


def validate_password(password, confirm_password) -> None:
    """Same checks for sign-up, invitation acceptance and password change."""
    if not password:
        raise ValidationError("Password is required")
    if password != confirm_password:
        raise ValidationError("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _app_url(path):
    return f"{current_app.config['APP_BASE_URL'].rstrip('/')}{path}"


def sign_up_or_resume(db, email, password, redirect_to=None, metadata=None):
    """
    Create the provider account, or pick up one that never got a profile.

    A sign-up whose local writes failed leaves the provider account behind.
    Signing in with the same credentials lets the retry finish setup; any
    other existing account keeps the "already registered" error.

    Returns:
        Principal
    """
    provider = get_auth_provider()
    try:
        return provider.sign_up(email, password, redirect_to=redirect_to, metadata=metadata)
    except EmailAlreadyRegisteredError as registered:
        try:
            principal = provider.sign_in(email, password).principal
        except SaasError:
            raise registered
        if get_profile(db, principal.id) is not None:
            raise registered
        logger.warning(f"[AUTH] Resuming setup for {email}: account exists without a profile")
        return principal


def sign_in(db, email, password):
    """
    Exchange email/password for provider tokens.

    Returns:
        (AuthTokens, SessionContext)
    """
    email = normalize_email(email)
    if not password:
        raise ValidationError("Password is required")

    tokens = get_auth_provider().sign_in(email, password)
    context = SessionContext(tokens.principal, tokens.access_token)
    context.apply(SIGNED_IN, db)
    get_session_events().emit(SIGNED_IN, context)
    logger.info(f"[AUTH] {email} signed in")
    return tokens, context


def sign_out(context: SessionContext) -> None:
    get_auth_provider().sign_out(context.access_token)
    context.apply(SIGNED_OUT)
    get_session_events().emit(SIGNED_OUT, context)
    logger.info(f"[AUTH] Principal {context.principal.id} signed out")


def request_password_reset(email) -> None:
    email = normalize_email(email)
    get_auth_provider().reset_password(email, redirect_to=_app_url('/reset-password'))
    logger.info(f"[AUTH] Password reset requested for {email}")


def update_password(db, context: SessionContext, password, confirm_password) -> None:
    validate_password(password, confirm_password)
    get_auth_provider().update_password(context.principal.id, password)
    context.apply(USER_UPDATED, db)
    get_session_events().emit(USER_UPDATED, context)


def resend_verification(email) -> bool:
    """Send a fresh verification link through our own mail channel."""
    email = normalize_email(email)
    link = get_auth_provider().generate_verification_link(email, redirect_to=_app_url('/dashboard'))
    return send_verification_email(email, link)
