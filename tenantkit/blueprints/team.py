"""
Team management blueprint.
Owners and admins manage roles, removals and invitations inside their tenant.
"""
from flask import Blueprint, g, jsonify, request

from tenantkit.blueprints.metrics import invitations_total
from tenantkit.database import get_session
from tenantkit.decorators.permissions import admin_or_owner, require_role
from tenantkit.middleware import require_principal
from tenantkit.services import invitation_service, team_service
from tenantkit.services.roles import assignable_roles

team_bp = Blueprint('team', __name__, url_prefix='/team')


def _team_payload(members, actor):
    return {
        'users': [member.to_dict() for member in members],
        'assignable_roles': list(assignable_roles(actor.role)),
    }


@team_bp.route('/users', methods=['GET'])
@require_principal
@require_role()
def list_users():
    actor = g.session_context.profile
    return jsonify(_team_payload(team_service.list_team(get_session(), actor), actor))


@team_bp.route('/users/<user_id>', methods=['PATCH'])
@require_principal
@require_role()
def change_role(user_id):
    actor = g.session_context.profile
    data = request.get_json(silent=True) or {}
    members = team_service.update_role(get_session(), actor, user_id, data.get('role'))
    return jsonify(_team_payload(members, actor))


@team_bp.route('/users/<user_id>', methods=['DELETE'])
@require_principal
@require_role()
def remove_user(user_id):
    actor = g.session_context.profile
    members = team_service.remove_member(get_session(), actor, user_id)
    return jsonify(_team_payload(members, actor))


@team_bp.route('/stats', methods=['GET'])
@require_principal
@require_role()
def stats():
    return jsonify(team_service.team_stats(get_session(), g.session_context.profile))


@team_bp.route('/invitations', methods=['GET'])
@require_principal
@admin_or_owner
def list_invitations():
    invitations = invitation_service.list_invitations(get_session(), g.session_context.profile)
    return jsonify({'invitations': [invitation.to_dict() for invitation in invitations]})


@team_bp.route('/invitations', methods=['POST'])
@require_principal
@admin_or_owner
def invite():
    data = request.get_json(silent=True) or {}
    result = invitation_service.issue_invitation(
        get_session(),
        g.session_context.profile,
        data.get('email'),
        role=data.get('role') or 'member',
    )
    invitations_total.labels(outcome='emailed' if result.email_sent else 'link_only').inc()
    return jsonify(result.to_dict()), 201


@team_bp.route('/invitations/<invitation_id>', methods=['DELETE'])
@require_principal
@admin_or_owner
def cancel_invitation(invitation_id):
    removed = invitation_service.cancel_invitation(get_session(), g.session_context.profile, invitation_id)
    return jsonify({'status': 'ok', 'removed': removed})
