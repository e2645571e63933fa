"""
Explicit per-request session state.

A :class:`SessionContext` is created when a bearer credential is accepted
and invalidated on sign-out. Session lifecycle events go through
:class:`SessionEvents`; what the core does about an event is decided by the
pure :func:`session_reaction`.
"""
import logging

from tenantkit.exceptions import ConfigurationError
from tenantkit.store import get_profile_with_tenant

logger = logging.getLogger(__name__)

SIGNED_IN = 'signed_in'
TOKEN_REFRESHED = 'token_refreshed'
USER_UPDATED = 'user_updated'
SIGNED_OUT = 'signed_out'

REFRESH_EVENTS = frozenset({SIGNED_IN, TOKEN_REFRESHED, USER_UPDATED})

REFRESH_PROFILE = 'refresh_profile'
CLEAR = 'clear'
IGNORE = 'ignore'


def session_reaction(event, session) -> str:
    """Action the core takes for a session lifecycle event."""
    if event == SIGNED_OUT:
        return CLEAR
    if event in REFRESH_EVENTS and session is not None and session.principal is not None:
        return REFRESH_PROFILE
    return IGNORE


class SessionEvents:
    """Subscription point for session lifecycle notifications."""

    def __init__(self):
        self._handlers = []

    def on_session_change(self, handler):
        """Register ``handler(event, session)``; returns an unsubscribe callable."""
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, event, session):
        for handler in list(self._handlers):
            handler(event, session)


class SessionContext:
    """Principal, credential and tenant membership for one caller."""

    def __init__(self, principal, access_token, profile=None):
        self.principal = principal
        self.access_token = access_token
        self.profile = profile
        self.active = True

    @classmethod
    def from_credential(cls, db, principal, access_token):
        context = cls(principal, access_token)
        context.refresh(db)
        return context

    def refresh(self, db):
        """Re-derive the profile (and tenant) from the store."""
        self.profile = get_profile_with_tenant(db, self.principal.id)
        return self.profile

    def invalidate(self):
        self.access_token = None
        self.profile = None
        self.active = False

    def apply(self, event, db=None) -> str:
        action = session_reaction(event, self)
        if action == REFRESH_PROFILE and db is not None:
            self.refresh(db)
        elif action == CLEAR:
            self.invalidate()
        logger.debug(f"[AUTH] Session event {event} -> {action}")
        return action

    @property
    def tenant(self):
        return self.profile.tenant if self.profile else None

    @property
    def tenant_id(self):
        return self.profile.tenant_id if self.profile else None

    @property
    def role(self):
        return self.profile.role if self.profile else None

    def require_profile(self):
        """Profile of the caller; a principal without one is a configuration error."""
        if self.profile is None:
            raise ConfigurationError("No tenant found for user")
        return self.profile
