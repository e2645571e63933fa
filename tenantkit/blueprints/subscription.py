"""Pricing catalogue and the caller's subscription."""
from flask import Blueprint, current_app, g, jsonify

from tenantkit.database import get_session
from tenantkit.decorators.permissions import require_role
from tenantkit.middleware import require_principal
from tenantkit.pricing import list_plans
from tenantkit.services.subscription_service import get_subscription_summary

subscription_bp = Blueprint('subscription', __name__)


@subscription_bp.route('/pricing', methods=['GET'])
def pricing():
    return jsonify({'plans': [plan.to_dict() for plan in list_plans(current_app.config)]})


@subscription_bp.route('/subscription', methods=['GET'])
@require_principal
@require_role()
def current_subscription():
    return jsonify(get_subscription_summary(get_session(), g.session_context.tenant_id))
