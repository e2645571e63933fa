"""
Integration tests for the invitation lifecycle.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from tenantkit.exceptions import (
    BusinessLogicError,
    InvalidInvitationError,
    PermissionDeniedError,
    PlanLimitError,
    UpstreamProviderError,
    ValidationError,
)
from tenantkit.models import Invitation, Profile, Subscription
from tenantkit.services import invitation_service
from tenantkit.services.email_service import mail
from tenantkit.services.invitation_service import (
    accept_invitation,
    cancel_invitation,
    claim_invitation,
    describe_invitation,
    expire_stale_invitations,
    issue_invitation,
    list_invitations,
)
from tenantkit.utils.dates import utcnow


class TestIssueInvitation:
    """Tests for issue_invitation."""

    def test_owner_invites_member(self, app, session, owner):
        before = utcnow()

        with mail.record_messages() as outbox:
            result = issue_invitation(session, owner, 'Carol@Acme.com', role='member')

        invitation = result.invitation
        assert invitation.email == 'carol@acme.com'
        assert invitation.status == 'pending'
        assert invitation.tenant_id == owner.tenant_id
        assert invitation.invited_by == owner.id
        assert len(invitation.token) >= 43
        assert invitation.expires_at - before >= timedelta(days=7)
        assert invitation.expires_at - before < timedelta(days=7, minutes=1)

        assert result.email_sent is True
        assert result.invite_url == f"http://app.test/accept-invite?token={invitation.token}"
        assert result.message == 'Invitation sent to carol@acme.com'
        assert len(outbox) == 1
        assert outbox[0].recipients == ['carol@acme.com']
        assert outbox[0].subject == "You've been invited to join Acme"
        assert result.invite_url in outbox[0].body

    def test_tokens_are_unique(self, session, owner):
        first = issue_invitation(session, owner, 'carol@acme.com', send_email=False)
        second = issue_invitation(session, owner, 'dave@acme.com', send_email=False)

        assert first.invitation.token != second.invitation.token

    def test_admin_can_invite(self, session, admin):
        result = issue_invitation(session, admin, 'carol@acme.com', role='admin', send_email=False)

        assert result.invitation.role == 'admin'

    def test_member_cannot_invite(self, session, member):
        with pytest.raises(PermissionDeniedError):
            issue_invitation(session, member, 'carol@acme.com', send_email=False)

        assert session.query(Invitation).count() == 0

    def test_owner_role_cannot_be_granted(self, session, owner):
        with pytest.raises(ValidationError):
            issue_invitation(session, owner, 'carol@acme.com', role='owner', send_email=False)

    def test_existing_member_cannot_be_invited(self, session, owner, member):
        with pytest.raises(BusinessLogicError, match='already a member'):
            issue_invitation(session, owner, member.email, send_email=False)

    def test_reinvite_replaces_pending_invitation(self, session, owner):
        first = issue_invitation(session, owner, 'carol@acme.com', send_email=False)
        first_token = first.invitation.token

        second = issue_invitation(session, owner, 'carol@acme.com', role='admin', send_email=False)

        pending = session.query(Invitation).filter(Invitation.email == 'carol@acme.com').all()
        assert [inv.token for inv in pending] == [second.invitation.token]
        assert first_token != second.invitation.token

    def test_email_failure_returns_link(self, session, owner, monkeypatch):
        monkeypatch.setattr(invitation_service, 'send_invitation_email', lambda *args: False)

        result = issue_invitation(session, owner, 'carol@acme.com')

        assert result.email_sent is False
        assert result.invite_url in result.message
        assert session.query(Invitation).count() == 1

    def test_unconfigured_smtp_still_creates_invitation(self, app, session, owner):
        app.config['MAIL_PASSWORD'] = ''

        result = issue_invitation(session, owner, 'carol@acme.com')

        assert result.email_sent is False
        assert result.message.startswith('Invitation created! Share this link:')


class TestSeatLimits:
    """Profiles plus live invitations must fit the plan."""

    @pytest.fixture
    def free_plan(self, session, tenant):
        session.query(Subscription).filter(Subscription.tenant_id == tenant.id).update({'tier': 'free'})
        session.commit()

    def test_full_team_cannot_invite(self, session, free_plan, owner, admin, member):
        with pytest.raises(PlanLimitError) as exc_info:
            issue_invitation(session, owner, 'carol@acme.com', send_email=False)

        assert exc_info.value.status_code == 402
        assert exc_info.value.payload['max_users'] == 3

    def test_pending_invitations_take_seats(self, session, free_plan, owner, admin):
        issue_invitation(session, owner, 'carol@acme.com', send_email=False)

        with pytest.raises(PlanLimitError):
            issue_invitation(session, owner, 'dave@acme.com', send_email=False)

    def test_limits_can_be_disabled(self, app, session, free_plan, owner, admin, member):
        app.config['ENFORCE_SEAT_LIMITS'] = False

        result = issue_invitation(session, owner, 'carol@acme.com', send_email=False)

        assert result.invitation.status == 'pending'


class TestAcceptInvitation:
    """Tests for accept_invitation."""

    def test_accept_creates_profile(self, session, owner, auth_provider):
        token = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.token

        profile = accept_invitation(session, token, 'secret123', 'secret123')

        assert profile.tenant_id == owner.tenant_id
        assert profile.role == 'member'
        assert profile.email == 'carol@acme.com'
        invitation = session.query(Invitation).filter(Invitation.token == token).one()
        assert invitation.status == 'accepted'
        assert invitation.accepted_at is not None
        _, email, redirect_to, metadata = auth_provider.calls[-1]
        assert metadata == {'role': 'member', 'tenant_id': owner.tenant_id}
        assert redirect_to == 'http://app.test/dashboard'

    def test_token_is_single_use(self, session, owner):
        token = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.token
        accept_invitation(session, token, 'secret123', 'secret123')

        with pytest.raises(InvalidInvitationError):
            accept_invitation(session, token, 'secret123', 'secret123')

        assert session.query(Profile).filter(Profile.email == 'carol@acme.com').count() == 1

    def test_expired_token_rejected_like_unknown(self, session, owner):
        invitation = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation
        invitation.expires_at = utcnow() - timedelta(seconds=1)
        session.commit()

        with pytest.raises(InvalidInvitationError) as expired:
            accept_invitation(session, invitation.token, 'secret123', 'secret123')
        with pytest.raises(InvalidInvitationError) as unknown:
            accept_invitation(session, 'no-such-token', 'secret123', 'secret123')

        assert expired.value.message == unknown.value.message == 'Invalid or expired invitation'
        assert session.query(Profile).filter(Profile.email == 'carol@acme.com').count() == 0

    def test_only_one_claim_wins(self, session, owner):
        invitation = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation

        assert claim_invitation(session, invitation.id) is True
        assert claim_invitation(session, invitation.id) is False

    def test_sign_up_failure_releases_claim(self, session, owner, auth_provider):
        token = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.token
        auth_provider.sign_up_error = UpstreamProviderError('auth service unavailable')

        with pytest.raises(UpstreamProviderError):
            accept_invitation(session, token, 'secret123', 'secret123')

        invitation = session.query(Invitation).filter(Invitation.token == token).one()
        assert invitation.status == 'pending'
        assert invitation.accepted_at is None

        auth_provider.sign_up_error = None
        profile = accept_invitation(session, token, 'secret123', 'secret123')
        assert profile.role == 'member'

    def test_retry_after_profile_failure_resumes_account(self, session, owner, auth_provider, monkeypatch):
        token = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.token
        real_get_profile = invitation_service.get_profile
        failures = []

        def get_profile_once_failing(session, profile_id):
            if not failures:
                failures.append(profile_id)
                raise OperationalError('SELECT profiles', {}, Exception('connection lost'))
            return real_get_profile(session, profile_id)

        monkeypatch.setattr(invitation_service, 'get_profile', get_profile_once_failing)

        with pytest.raises(OperationalError):
            accept_invitation(session, token, 'secret123', 'secret123')

        assert 'carol@acme.com' in auth_provider.users
        assert session.query(Invitation).filter(Invitation.token == token).one().status == 'pending'

        profile = accept_invitation(session, token, 'secret123', 'secret123')

        assert profile.id == auth_provider.users['carol@acme.com']['id']
        assert profile.tenant_id == owner.tenant_id
        assert ('sign_in', 'carol@acme.com') in auth_provider.calls

    def test_password_mismatch_does_not_consume(self, session, owner):
        token = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.token

        with pytest.raises(ValidationError):
            accept_invitation(session, token, 'secret123', 'secret999')

        assert describe_invitation(session, token)['email'] == 'carol@acme.com'

    def test_describe_invitation(self, session, owner):
        token = issue_invitation(session, owner, 'carol@acme.com', role='admin', send_email=False).invitation.token

        preview = describe_invitation(session, token)

        assert preview['tenant_name'] == 'Acme'
        assert preview['role'] == 'admin'
        assert 'token' not in preview


class TestCancelAndExpire:
    """Cancellation is a hard delete; expiry is a status sweep."""

    def test_cancel_is_idempotent(self, session, owner):
        invitation_id = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.id

        assert cancel_invitation(session, owner, invitation_id) == 1
        assert cancel_invitation(session, owner, invitation_id) == 0
        assert session.query(Invitation).count() == 0

    def test_cannot_cancel_other_tenants_invitation(self, session, owner, outsider):
        invitation_id = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.id

        assert cancel_invitation(session, outsider, invitation_id) == 0
        assert session.query(Invitation).count() == 1

    def test_member_cannot_cancel(self, session, owner, member):
        invitation_id = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation.id

        with pytest.raises(PermissionDeniedError):
            cancel_invitation(session, member, invitation_id)

    def test_list_is_tenant_scoped(self, session, owner, outsider):
        issue_invitation(session, owner, 'carol@acme.com', send_email=False)
        issue_invitation(session, outsider, 'mallory@globex.com', send_email=False)

        assert [inv.email for inv in list_invitations(session, owner)] == ['carol@acme.com']

    def test_expire_stale_invitations(self, session, owner):
        stale = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation
        fresh = issue_invitation(session, owner, 'dave@acme.com', send_email=False).invitation
        stale.expires_at = utcnow() - timedelta(days=1)
        session.commit()

        assert expire_stale_invitations(session) == 1

        session.expire_all()
        assert session.get(Invitation, stale.id).status == 'expired'
        assert session.get(Invitation, fresh.id).status == 'pending'

    def test_expire_cli_command(self, app, session, owner):
        stale = issue_invitation(session, owner, 'carol@acme.com', send_email=False).invitation
        stale.expires_at = utcnow() - timedelta(days=1)
        session.commit()

        result = app.test_cli_runner().invoke(args=['expire-invitations'])

        assert result.exit_code == 0
        assert '1 invitation(s) marked as expired.' in result.output


class TestInvitationEndpoints:
    """HTTP flow: invite, preview, accept."""

    def test_invite_preview_accept(self, client, owner, auth_headers):
        tenant_id = owner.tenant_id
        response = client.post('/team/invitations', json={'email': 'carol@acme.com', 'role': 'admin'},
                               headers=auth_headers(owner))
        assert response.status_code == 201
        body = response.get_json()
        assert body['email_sent'] is True
        token = body['invite_url'].split('token=')[1]

        preview = client.get(f'/auth/invitations/{token}')
        assert preview.status_code == 200
        assert preview.get_json()['tenant_name'] == 'Acme'

        accepted = client.post('/auth/accept-invite', json={
            'token': token,
            'password': 'secret123',
            'confirmPassword': 'secret123',
        })
        assert accepted.status_code == 201
        assert accepted.get_json()['user']['role'] == 'admin'
        assert accepted.get_json()['tenant']['id'] == tenant_id

        again = client.get(f'/auth/invitations/{token}')
        assert again.status_code == 404
        assert again.get_json()['message'] == 'Invalid or expired invitation'

    def test_member_cannot_invite_over_http(self, client, member, auth_headers):
        response = client.post('/team/invitations', json={'email': 'carol@acme.com'},
                               headers=auth_headers(member))

        assert response.status_code == 403

    def test_list_and_cancel(self, client, owner, auth_headers):
        headers = auth_headers(owner)
        client.post('/team/invitations', json={'email': 'carol@acme.com'}, headers=headers)

        listed = client.get('/team/invitations', headers=headers).get_json()['invitations']
        assert len(listed) == 1
        assert 'token' not in listed[0]

        deleted = client.delete(f"/team/invitations/{listed[0]['id']}", headers=headers)
        assert deleted.get_json() == {'status': 'ok', 'removed': 1}
        deleted_again = client.delete(f"/team/invitations/{listed[0]['id']}", headers=headers)
        assert deleted_again.get_json() == {'status': 'ok', 'removed': 0}
