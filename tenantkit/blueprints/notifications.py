"""Invitation email handler."""
import logging

from flask import Blueprint, jsonify, request

from tenantkit.blueprints import register_handler_errors
from tenantkit.exceptions import EmailDeliveryError, ValidationError
from tenantkit.middleware import enable_cors
from tenantkit.services.email_service import deliver_invitation_email

logger = logging.getLogger(__name__)

notifications_bp = Blueprint('notifications', __name__)
enable_cors(notifications_bp)
register_handler_errors(notifications_bp, {EmailDeliveryError: 500})


@notifications_bp.route('/invite-email', methods=['POST'])
def invite_email():
    """Body: ``{email, inviteUrl, tenantName, role}``. Returns ``{ok, message}``."""
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    invite_url = data.get('inviteUrl')

    if not email or not invite_url:
        raise ValidationError("Missing required fields: email and inviteUrl")

    deliver_invitation_email(
        email,
        invite_url,
        data.get('tenantName') or 'your organization',
        data.get('role') or 'member',
    )
    return jsonify({'ok': True, 'message': f"Invitation sent to {email}"})
