"""Authentication blueprint: registration, invitations, sessions and passwords."""
import logging

from flask import Blueprint, g, jsonify, request

from tenantkit.database import get_session
from tenantkit.middleware import require_principal
from tenantkit.services import auth_service
from tenantkit.services.invitation_service import accept_invitation, describe_invitation
from tenantkit.services.tenant_service import register as register_account

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _field(data, *names):
    """First non-empty value among camelCase/snake_case spellings."""
    for name in names:
        value = data.get(name)
        if value not in (None, ''):
            return value
    return None


def _account_payload(profile):
    return {
        'user': profile.to_dict(),
        'tenant': profile.tenant.to_dict() if profile.tenant else None,
    }


@auth_bp.route('/register', methods=['POST'])
def register():
    """Self-service sign-up; the first user of an organization becomes its owner."""
    data = request.get_json(silent=True) or {}
    profile = register_account(
        get_session(),
        email=data.get('email'),
        password=data.get('password'),
        confirm_password=_field(data, 'confirmPassword', 'confirm_password'),
        organization_name=_field(data, 'organizationName', 'organization_name', 'tenantName'),
        invite_token=_field(data, 'inviteToken', 'invite_token', 'token'),
    )
    return jsonify(_account_payload(profile)), 201


@auth_bp.route('/invitations/<token>', methods=['GET'])
def invitation_preview(token):
    return jsonify(describe_invitation(get_session(), token))


@auth_bp.route('/accept-invite', methods=['POST'])
def accept_invite():
    data = request.get_json(silent=True) or {}
    profile = accept_invitation(
        get_session(),
        data.get('token'),
        data.get('password'),
        _field(data, 'confirmPassword', 'confirm_password'),
    )
    return jsonify(_account_payload(profile)), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    tokens, context = auth_service.sign_in(get_session(), data.get('email'), data.get('password'))
    payload = {
        'access_token': tokens.access_token,
        'refresh_token': tokens.refresh_token,
        'principal': tokens.principal.to_dict(),
        'user': context.profile.to_dict() if context.profile else None,
        'tenant': context.tenant.to_dict() if context.tenant else None,
    }
    return jsonify(payload)


@auth_bp.route('/logout', methods=['POST'])
@require_principal
def logout():
    auth_service.sign_out(g.session_context)
    return jsonify({'status': 'ok'})


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    data = request.get_json(silent=True) or {}
    auth_service.request_password_reset(data.get('email'))
    return jsonify({'status': 'ok'})


@auth_bp.route('/update-password', methods=['POST'])
@require_principal
def update_password():
    data = request.get_json(silent=True) or {}
    auth_service.update_password(
        get_session(),
        g.session_context,
        data.get('password'),
        _field(data, 'confirmPassword', 'confirm_password'),
    )
    return jsonify({'status': 'ok'})


@auth_bp.route('/resend-verification', methods=['POST'])
def resend_verification():
    data = request.get_json(silent=True) or {}
    email_sent = auth_service.resend_verification(data.get('email'))
    return jsonify({'status': 'ok', 'email_sent': email_sent})


@auth_bp.route('/me', methods=['GET'])
@require_principal
def me():
    context = g.session_context
    profile = context.require_profile()
    payload = _account_payload(profile)
    payload['principal'] = context.principal.to_dict()
    return jsonify(payload)
