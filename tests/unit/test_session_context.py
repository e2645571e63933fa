"""
Unit tests for session lifecycle handling.
"""

import pytest

from tenantkit.exceptions import ConfigurationError
from tenantkit.models import Profile
from tenantkit.services.session_context import (
    CLEAR,
    IGNORE,
    REFRESH_PROFILE,
    SessionContext,
    SessionEvents,
    session_reaction,
)
from tenantkit.services.supabase_client import Principal


class TestSessionReaction:
    """Tests for the event -> action table."""

    def test_signed_out_clears(self):
        assert session_reaction('signed_out', None) == CLEAR

    def test_refresh_events_with_principal(self):
        context = SessionContext(Principal(id='p1', email='a@acme.com'), 'token')
        for event in ('signed_in', 'token_refreshed', 'user_updated'):
            assert session_reaction(event, context) == REFRESH_PROFILE

    def test_refresh_events_without_session(self):
        assert session_reaction('signed_in', None) == IGNORE

    def test_unknown_event(self):
        context = SessionContext(Principal(id='p1', email='a@acme.com'), 'token')
        assert session_reaction('password_recovery', context) == IGNORE


class TestSessionEvents:
    """Tests for the subscription hub."""

    def test_emit_and_unsubscribe(self):
        events = SessionEvents()
        received = []

        unsubscribe = events.on_session_change(lambda event, session: received.append(event))
        events.emit('signed_in', None)
        unsubscribe()
        events.emit('signed_out', None)

        assert received == ['signed_in']

    def test_unsubscribe_twice_is_harmless(self):
        events = SessionEvents()
        unsubscribe = events.on_session_change(lambda event, session: None)

        unsubscribe()
        unsubscribe()


class TestSessionContext:
    """Tests for SessionContext against the store."""

    def test_from_credential_loads_profile(self, session, owner):
        principal = Principal(id=owner.id, email=owner.email)

        context = SessionContext.from_credential(session, principal, 'token')

        assert context.role == 'owner'
        assert context.tenant_id == owner.tenant_id
        assert context.tenant.name == 'Acme'

    def test_principal_without_profile(self, session):
        context = SessionContext.from_credential(session, Principal(id='nobody', email='x@y.com'), 'token')

        assert context.profile is None
        assert context.tenant_id is None
        with pytest.raises(ConfigurationError, match='No tenant found for user'):
            context.require_profile()

    def test_signed_out_invalidates(self, session, owner):
        context = SessionContext.from_credential(session, Principal(id=owner.id, email=owner.email), 'token')

        action = context.apply('signed_out')

        assert action == CLEAR
        assert context.active is False
        assert context.access_token is None
        assert context.profile is None

    def test_user_updated_refreshes_role(self, session, owner, admin):
        context = SessionContext.from_credential(session, Principal(id=admin.id, email=admin.email), 'token')
        session.query(Profile).filter_by(id=admin.id).update({'role': 'member'})
        session.commit()

        context.apply('user_updated', session)

        assert context.role == 'member'
