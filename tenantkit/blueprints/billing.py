"""
Billing handlers: Stripe checkout and billing portal sessions.
"""
from flask import Blueprint, current_app, g, jsonify, request

from tenantkit.blueprints import register_handler_errors
from tenantkit.database import get_session
from tenantkit.extensions import get_payment_client
from tenantkit.middleware import enable_cors, require_principal
from tenantkit.services.checkout_service import open_billing_portal, start_checkout

billing_bp = Blueprint('billing', __name__)
enable_cors(billing_bp)
register_handler_errors(billing_bp)


def request_origin():
    return request.headers.get('Origin') or current_app.config['APP_BASE_URL']


@billing_bp.route('/checkout', methods=['POST'])
@require_principal
def checkout():
    """Body: ``{priceId, tier}``. Returns ``{url}``."""
    data = request.get_json(silent=True) or {}
    url = start_checkout(
        get_session(),
        get_payment_client(),
        g.session_context.principal,
        tier=data.get('tier'),
        price_id=data.get('priceId'),
        origin=request_origin(),
    )
    return jsonify({'url': url})


@billing_bp.route('/billing-portal', methods=['POST'])
@require_principal
def billing_portal():
    """Body: ``{customer_id}``. Returns ``{url}``."""
    data = request.get_json(silent=True) or {}
    url = open_billing_portal(
        get_session(),
        get_payment_client(),
        g.session_context.principal,
        customer_id=data.get('customer_id'),
        origin=request_origin(),
    )
    return jsonify({'url': url})
