"""
Subscription reconciliation from Stripe webhook events.

Every effect is an absolute assignment issued as one UPDATE keyed by
``tenant_id`` or ``stripe_subscription_id``: replaying an event, or
receiving two deliveries at once, converges on the same row. A key that
matches no row is logged and skipped.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tenantkit.models import Subscription, WebhookEvent
from tenantkit.pricing import TIERS
from tenantkit.utils.dates import from_unix, utcnow

logger = logging.getLogger(__name__)

APPLIED = 'applied'
NOOP = 'noop'
IGNORED = 'ignored'
DUPLICATE = 'duplicate'

STATUS_MAP = {
    'active': 'active',
    'past_due': 'past_due',
    'canceled': 'canceled',
}

UNKNOWN_STATUS_ACTIVE = 'active'
UNKNOWN_STATUS_KEEP = 'keep'


def _subscription_period(provider_subscription):
    """
    (start, end) of the current billing period.

    Newer Stripe API versions moved the period onto subscription items.
    """
    start = provider_subscription.get('current_period_start')
    end = provider_subscription.get('current_period_end')
    if start is None or end is None:
        items = (provider_subscription.get('items') or {}).get('data') or []
        if items:
            start = items[0].get('current_period_start', start)
            end = items[0].get('current_period_end', end)
    return from_unix(start), from_unix(end)


def _invoice_subscription_id(invoice):
    subscription_id = invoice.get('subscription')
    if subscription_id:
        return subscription_id
    details = ((invoice.get('parent') or {}).get('subscription_details') or {})
    return details.get('subscription')


class BillingService:
    """Applies Stripe events to subscription rows."""

    def __init__(self, db_session: Session, payment_client=None,
                 unknown_status_policy: str = UNKNOWN_STATUS_ACTIVE):
        """
        Args:
            db_session: SQLAlchemy session
            payment_client: Client with ``retrieve_subscription`` (checkout completion only)
            unknown_status_policy: 'active' maps unrecognized provider statuses to
                active, 'keep' leaves the stored status alone
        """
        self.db = db_session
        self.payment_client = payment_client
        self.unknown_status_policy = unknown_status_policy
        self.handlers = {
            'checkout.session.completed': self.handle_checkout_completed,
            'customer.subscription.updated': self.handle_subscription_updated,
            'customer.subscription.deleted': self.handle_subscription_deleted,
            'invoice.payment_failed': self.handle_payment_failed,
            'invoice.payment_succeeded': self.handle_payment_succeeded,
        }

    def process_event(self, event: Dict[str, Any]) -> str:
        """
        Apply one webhook event.

        Returns:
            'applied', 'noop' (no matching row), 'ignored' (unhandled type)
            or 'duplicate' (event id already processed)
        """
        event_id = event.get('id')
        event_type = event.get('type')
        handler = self.handlers.get(event_type)

        if handler is None:
            logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")
            return IGNORED

        if event_id and not self._begin(event_id, event_type):
            return DUPLICATE

        data_object = (event.get('data') or {}).get('object') or {}
        try:
            outcome = handler(data_object)
            if event_id:
                self.db.query(WebhookEvent).filter(WebhookEvent.id == event_id).update(
                    {'status': 'processed', 'outcome': outcome, 'processed_at': utcnow()},
                    synchronize_session='fetch',
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            if event_id:
                self._mark_failed(event_id)
            raise

        logger.info(f"[WEBHOOK] {event_type} {event_id or ''} -> {outcome}")
        return outcome

    def _begin(self, event_id: str, event_type: str) -> bool:
        """Record the delivery; False when this event id was already processed."""
        existing = self.db.get(WebhookEvent, event_id, populate_existing=True)
        if existing is not None:
            if existing.is_processed:
                logger.info(f"[WEBHOOK] Event already processed: {event_id}")
                return False
            # Earlier delivery failed or is still running; handlers are idempotent
            existing.status = 'processing'
            self.db.commit()
            return True

        try:
            self.db.add(WebhookEvent(id=event_id, type=event_type, status='processing'))
            self.db.commit()
        except IntegrityError:
            # Race condition: another worker recorded the same event
            self.db.rollback()
            logger.warning(f"[WEBHOOK] Dedupe conflict (race): {event_id}")
            return False
        return True

    def _mark_failed(self, event_id: str) -> None:
        try:
            self.db.query(WebhookEvent).filter(WebhookEvent.id == event_id).update(
                {'status': 'failed'}, synchronize_session='fetch'
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"[WEBHOOK] Could not mark {event_id} as failed")

    def _apply(self, column, key, values: Dict[str, Any]) -> str:
        """``UPDATE subscriptions SET <values> WHERE <column> = <key>``"""
        if not key:
            logger.warning(f"[WEBHOOK] Event carries no {column.key}, skipping")
            return NOOP
        rows = self.db.query(Subscription).filter(column == key).update(values, synchronize_session='fetch')
        if rows == 0:
            logger.warning(f"[WEBHOOK] No subscription with {column.key}={key}, skipping")
            return NOOP
        return APPLIED

    def map_status(self, provider_status: Optional[str]) -> Optional[str]:
        """Local status for a provider status; None means leave it unchanged."""
        if provider_status in STATUS_MAP:
            return STATUS_MAP[provider_status]
        logger.warning(f"[WEBHOOK] Unrecognized subscription status '{provider_status}' "
                       f"(policy: {self.unknown_status_policy})")
        if self.unknown_status_policy == UNKNOWN_STATUS_KEEP:
            return None
        return 'active'

    def handle_checkout_completed(self, checkout_session: Dict[str, Any]) -> str:
        metadata = checkout_session.get('metadata') or {}
        tenant_id = metadata.get('tenant_id')
        tier = metadata.get('tier')
        if not tenant_id or not tier:
            logger.warning("[WEBHOOK] Missing metadata in checkout session, skipping")
            return NOOP
        if tier not in TIERS:
            logger.warning(f"[WEBHOOK] Unknown tier in checkout metadata: {tier}, skipping")
            return NOOP

        subscription_id = checkout_session.get('subscription')
        if not subscription_id:
            logger.warning("[WEBHOOK] Checkout session has no subscription, skipping")
            return NOOP

        provider_subscription = self.payment_client.retrieve_subscription(subscription_id)
        period_start, period_end = _subscription_period(provider_subscription)

        values = {
            'tier': tier,
            'status': 'active',
            'stripe_subscription_id': subscription_id,
            'current_period_start': period_start,
            'current_period_end': period_end,
            'cancel_at_period_end': False,
        }
        if checkout_session.get('customer'):
            values['stripe_customer_id'] = checkout_session['customer']

        return self._apply(Subscription.tenant_id, tenant_id, values)

    def handle_subscription_updated(self, provider_subscription: Dict[str, Any]) -> str:
        subscription_id = provider_subscription.get('id')
        period_start, period_end = _subscription_period(provider_subscription)

        values = {'cancel_at_period_end': bool(provider_subscription.get('cancel_at_period_end', False))}
        status = self.map_status(provider_subscription.get('status'))
        if status is not None:
            values['status'] = status
        if period_start is not None:
            values['current_period_start'] = period_start
        if period_end is not None:
            values['current_period_end'] = period_end

        return self._apply(Subscription.stripe_subscription_id, subscription_id, values)

    def handle_subscription_deleted(self, provider_subscription: Dict[str, Any]) -> str:
        subscription_id = provider_subscription.get('id')
        return self._apply(
            Subscription.stripe_subscription_id,
            subscription_id,
            {'status': 'canceled', 'tier': 'free', 'cancel_at_period_end': False},
        )

    def handle_payment_failed(self, invoice: Dict[str, Any]) -> str:
        subscription_id = _invoice_subscription_id(invoice)
        return self._apply(
            Subscription.stripe_subscription_id,
            subscription_id,
            {'status': 'past_due'},
        )

    def handle_payment_succeeded(self, invoice: Dict[str, Any]) -> str:
        subscription_id = _invoice_subscription_id(invoice)
        return self._apply(
            Subscription.stripe_subscription_id,
            subscription_id,
            {'status': 'active'},
        )
