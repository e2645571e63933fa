"""
Webhooks Blueprint for Stripe notifications.
Verifies the signature and hands the event to the reconciliation service.
"""

import logging
from flask import Blueprint, current_app, jsonify, request

from tenantkit.blueprints import register_handler_errors
from tenantkit.blueprints.metrics import webhook_events_total
from tenantkit.database import get_session
from tenantkit.extensions import get_payment_client
from tenantkit.middleware import enable_cors
from tenantkit.services.billing_service import BillingService
from tenantkit.services.stripe_client import construct_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__)
enable_cors(webhooks_bp)
register_handler_errors(webhooks_bp)


@webhooks_bp.route('/webhook', methods=['POST'])
def stripe_webhook():
    """
    Handle Stripe webhook deliveries.

    Handled events:
    - checkout.session.completed
    - customer.subscription.updated / customer.subscription.deleted
    - invoice.payment_failed / invoice.payment_succeeded

    Anything else is acknowledged and ignored.
    """
    config = current_app.config
    event = construct_event(
        request.get_data(),
        request.headers.get('Stripe-Signature'),
        config.get('STRIPE_WEBHOOK_SECRET'),
        tolerance=config.get('STRIPE_WEBHOOK_TOLERANCE', 300),
    )

    event_type = event.get('type')
    logger.info(f"[WEBHOOK] Received {event_type} ({event.get('id')})")

    service = BillingService(
        get_session(),
        payment_client=get_payment_client(),
        unknown_status_policy=config.get('UNKNOWN_STATUS_POLICY', 'active'),
    )
    outcome = service.process_event(event)
    webhook_events_total.labels(event_type=event_type or 'unknown', outcome=outcome).inc()

    return jsonify({'received': True})
