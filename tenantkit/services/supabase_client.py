"""
Supabase Auth adapter.

Principals (id, email, verified flag) and credentials live in Supabase; this
module wraps the calls tenantkit needs and translates Supabase errors into
application exceptions.

KEYS:
- SB_PUBLISHABLE_KEY (legacy SUPABASE_ANON_KEY) for sign-up/sign-in calls
- SB_SECRET_KEY (legacy SUPABASE_SERVICE_ROLE_KEY) for admin calls, server-only
"""
import logging
from dataclasses import dataclass
from typing import Optional

from supabase import AuthError, Client, create_client

from tenantkit.exceptions import (
    AuthenticationError,
    EmailAlreadyRegisteredError,
    RateLimitedError,
    UpstreamProviderError,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ('429', 'rate limit', 'too many requests')

RATE_LIMIT_MESSAGES = {
    'signup': "Too many signup attempts. Please wait a few minutes and try again.",
    'login': "Too many login attempts. Please wait a few minutes and try again.",
}


@dataclass
class Principal:
    """Authenticated identity issued by the auth provider."""
    id: str
    email: str
    email_verified: bool = False

    def to_dict(self):
        return {'id': self.id, 'email': self.email, 'email_verified': self.email_verified}


@dataclass
class AuthTokens:
    access_token: str
    refresh_token: Optional[str]
    principal: Principal


def is_rate_limited(exc) -> bool:
    """HTTP 429 or a message carrying a rate-limit marker."""
    if getattr(exc, 'status', None) == 429:
        return True
    message = str(getattr(exc, 'message', None) or exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def translate_auth_error(exc, action):
    """Map a Supabase auth failure to the exception shown to the caller."""
    if is_rate_limited(exc):
        return RateLimitedError(
            RATE_LIMIT_MESSAGES.get(action, "Too many attempts. Please wait a few minutes and try again.")
        )

    message = str(getattr(exc, 'message', None) or exc)
    lowered = message.lower()

    if action == 'login':
        if 'email not confirmed' in lowered:
            return AuthenticationError(
                "Please verify your email before signing in. Check your inbox for the verification link."
            )
        return AuthenticationError("Invalid email or password. Please check your credentials and try again.")

    if action == 'signup' and ('already registered' in lowered or 'already exists' in lowered):
        return EmailAlreadyRegisteredError()

    return UpstreamProviderError(message or f"Auth provider failed during {action}")


def _to_principal(user) -> Principal:
    return Principal(
        id=str(user.id),
        email=user.email,
        email_verified=getattr(user, 'email_confirmed_at', None) is not None,
    )


class SupabaseAuthProvider:
    """Auth principal provider backed by Supabase Auth."""

    def __init__(self, url: str, publishable_key: str, secret_key: Optional[str] = None):
        if not url or not publishable_key:
            raise ValueError("SUPABASE_URL and SB_PUBLISHABLE_KEY are required")
        self.client: Client = create_client(url, publishable_key)
        self.admin: Optional[Client] = create_client(url, secret_key) if secret_key else None
        logger.info("[AUTH] Supabase client initialized", extra={'supabase_url': url})

    @classmethod
    def from_config(cls, config):
        return cls(
            config.get('SUPABASE_URL'),
            config.get('SUPABASE_PUBLISHABLE_KEY'),
            config.get('SUPABASE_SECRET_KEY'),
        )

    def _require_admin(self) -> Client:
        if self.admin is None:
            raise UpstreamProviderError("SB_SECRET_KEY is required for this operation", status_code=500)
        return self.admin

    def get_principal(self, access_token: str) -> Optional[Principal]:
        """Validate a bearer credential; None when Supabase rejects it."""
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError as e:
            logger.info(f"[AUTH] Rejected bearer token: {e}")
            return None
        if not response or not response.user:
            return None
        return _to_principal(response.user)

    def sign_up(self, email: str, password: str, redirect_to: Optional[str] = None,
                metadata: Optional[dict] = None) -> Principal:
        options = {'data': metadata or {}}
        if redirect_to:
            options['email_redirect_to'] = redirect_to
        try:
            response = self.client.auth.sign_up({
                'email': email,
                'password': password,
                'options': options,
            })
        except AuthError as e:
            logger.warning(f"[AUTH] Sign-up failed for {email}: {e}")
            raise translate_auth_error(e, 'signup') from e
        if not response.user:
            raise UpstreamProviderError("Signup failed: no user returned from auth provider")
        return _to_principal(response.user)

    def sign_in(self, email: str, password: str) -> AuthTokens:
        try:
            response = self.client.auth.sign_in_with_password({'email': email, 'password': password})
        except AuthError as e:
            logger.info(f"[AUTH] Sign-in failed for {email}: {e}")
            raise translate_auth_error(e, 'login') from e
        if not response.user or not response.session:
            raise AuthenticationError("Invalid email or password. Please check your credentials and try again.")
        return AuthTokens(
            access_token=response.session.access_token,
            refresh_token=response.session.refresh_token,
            principal=_to_principal(response.user),
        )

    def sign_out(self, access_token: str) -> None:
        try:
            self._require_admin().auth.admin.sign_out(access_token)
        except AuthError as e:
            raise translate_auth_error(e, 'logout') from e

    def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        options = {'redirect_to': redirect_to} if redirect_to else {}
        try:
            self.client.auth.reset_password_for_email(email, options)
        except AuthError as e:
            raise translate_auth_error(e, 'reset_password') from e

    def update_password(self, principal_id: str, password: str) -> None:
        try:
            self._require_admin().auth.admin.update_user_by_id(principal_id, {'password': password})
        except AuthError as e:
            raise translate_auth_error(e, 'update_password') from e

    def generate_verification_link(self, email: str, redirect_to: Optional[str] = None) -> str:
        """Magic link that confirms the address when followed."""
        params = {'type': 'magiclink', 'email': email}
        if redirect_to:
            params['options'] = {'redirect_to': redirect_to}
        try:
            response = self._require_admin().auth.admin.generate_link(params)
        except AuthError as e:
            raise translate_auth_error(e, 'verification') from e
        return response.properties.action_link
