"""Stripe API client for customers, checkout and webhook verification."""
import hashlib
import hmac
import json
import logging
import os
import time
from typing import Any, Dict, Optional

import requests

from tenantkit.exceptions import PaymentProviderError, WebhookSignatureError

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 300


def _encode(params: Dict[str, Any], prefix: str = '') -> Dict[str, Any]:
    """Flatten nested dicts/lists into Stripe's bracketed form keys."""
    encoded = {}
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, dict):
            encoded.update(_encode(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    encoded.update(_encode(item, item_name))
                else:
                    encoded[item_name] = item
        elif isinstance(value, bool):
            encoded[name] = 'true' if value else 'false'
        elif value is not None:
            encoded[name] = value
    return encoded


class StripeClient:
    """Thin client for the Stripe REST API."""

    BASE_URL = "https://api.stripe.com/v1"

    def __init__(self, secret_key: Optional[str] = None, timeout: int = 10):
        """
        Initialize Stripe client.

        Args:
            secret_key: Stripe secret key. If None, reads from env STRIPE_SECRET_KEY
            timeout: Transport timeout in seconds
        """
        self.secret_key = secret_key or os.getenv('STRIPE_SECRET_KEY')
        if not self.secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required")

        self.timeout = timeout
        self.headers = {
            'Authorization': f'Bearer {self.secret_key}',
        }

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.BASE_URL}{path}"
        payload = _encode(params or {})

        try:
            if method == 'GET':
                response = requests.get(url, params=payload, headers=self.headers, timeout=self.timeout)
            else:
                response = requests.post(url, data=payload, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"[STRIPE] {method} {path} failed: {e}")
            raise PaymentProviderError(f"Payment provider unreachable: {e}") from e

        if not response.ok:
            message = self._error_message(response)
            logger.error(f"[STRIPE] {method} {path} -> {response.status_code}: {message}")
            raise PaymentProviderError(message, payload={'provider_status': response.status_code})

        return response.json()

    @staticmethod
    def _error_message(response) -> str:
        try:
            return response.json()['error']['message']
        except (ValueError, KeyError, TypeError):
            return f"Stripe request failed with status {response.status_code}"

    def create_customer(self, email: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        logger.info(f"[STRIPE] Creating customer for tenant {metadata.get('tenant_id')}")
        return self._request('POST', '/customers', {'email': email, 'metadata': metadata})

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        """Subscription-mode checkout with a single line item."""
        data = self._request('POST', '/checkout/sessions', {
            'customer': customer_id,
            'mode': 'subscription',
            'line_items': [{'price': price_id, 'quantity': 1}],
            'success_url': success_url,
            'cancel_url': cancel_url,
            'metadata': metadata,
        })
        logger.info(f"[STRIPE] Checkout session created: {data.get('id')}")
        return data

    def create_billing_portal_session(self, customer_id: str, return_url: str) -> Dict[str, Any]:
        return self._request('POST', '/billing_portal/sessions', {
            'customer': customer_id,
            'return_url': return_url,
        })

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self._request('GET', f'/subscriptions/{subscription_id}')


def compute_signature(secret: str, timestamp, payload: bytes) -> str:
    """Hex HMAC-SHA256 of ``"{timestamp}.{payload}"``."""
    signed = f"{timestamp}.".encode('utf-8') + payload
    return hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()


def _parse_signature_header(header: str):
    timestamp = None
    signatures = []
    for item in header.split(','):
        key, _, value = item.strip().partition('=')
        if key == 't':
            timestamp = value
        elif key == 'v1':
            signatures.append(value)
    return timestamp, signatures


def construct_event(payload: bytes, sig_header: Optional[str], secret: Optional[str],
                    tolerance: int = DEFAULT_TOLERANCE, now: Optional[float] = None) -> Dict[str, Any]:
    """
    Verify a ``Stripe-Signature`` header and decode the event.

    Raises:
        WebhookSignatureError: missing header/secret, bad signature, stale timestamp
            or a body that is not JSON
    """
    if not secret:
        raise WebhookSignatureError("Webhook secret not configured")
    if not sig_header:
        raise WebhookSignatureError("No signature found")

    timestamp, signatures = _parse_signature_header(sig_header)
    if not timestamp or not signatures:
        raise WebhookSignatureError("Unable to extract timestamp and signatures from header")

    expected = compute_signature(secret, timestamp, payload)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError("No signatures found matching the expected signature for payload")

    try:
        age = (now if now is not None else time.time()) - int(timestamp)
    except ValueError:
        raise WebhookSignatureError("Invalid timestamp in signature header")
    if tolerance and age > tolerance:
        raise WebhookSignatureError("Timestamp outside the tolerance zone")

    try:
        return json.loads(payload)
    except ValueError:
        raise WebhookSignatureError("Invalid payload")
