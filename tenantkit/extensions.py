"""
Per-application collaborators.

Providers live in ``app.extensions`` so each app (and each test) can swap in
its own implementation; they are built from config on first use.
"""
from flask import current_app

from tenantkit.services.session_context import SessionEvents

AUTH_PROVIDER = 'tenantkit.auth_provider'
PAYMENT_CLIENT = 'tenantkit.payment_client'
SESSION_EVENTS = 'tenantkit.session_events'


def init_extensions(app):
    app.extensions.setdefault(AUTH_PROVIDER, None)
    app.extensions.setdefault(PAYMENT_CLIENT, None)
    app.extensions.setdefault(SESSION_EVENTS, SessionEvents())


def get_auth_provider():
    provider = current_app.extensions.get(AUTH_PROVIDER)
    if provider is None:
        from tenantkit.services.supabase_client import SupabaseAuthProvider
        provider = SupabaseAuthProvider.from_config(current_app.config)
        current_app.extensions[AUTH_PROVIDER] = provider
    return provider


def get_payment_client():
    client = current_app.extensions.get(PAYMENT_CLIENT)
    if client is None:
        from tenantkit.services.stripe_client import StripeClient
        client = StripeClient(current_app.config.get('STRIPE_SECRET_KEY'))
        current_app.extensions[PAYMENT_CLIENT] = client
    return client


def get_session_events() -> SessionEvents:
    return current_app.extensions[SESSION_EVENTS]
