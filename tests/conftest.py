import json
import time
import uuid
from datetime import datetime

import pytest

from tenantkit import create_app
from tenantkit import database
from tenantkit.exceptions import AuthenticationError, EmailAlreadyRegisteredError
from tenantkit.extensions import AUTH_PROVIDER, PAYMENT_CLIENT
from tenantkit.models import Profile, Subscription, Tenant
from tenantkit.services.stripe_client import compute_signature
from tenantkit.services.supabase_client import AuthTokens, Principal


class FakeAuthProvider:
    """In-memory auth provider with the SupabaseAuthProvider interface."""

    def __init__(self):
        self.users = {}
        self.tokens = {}
        self.calls = []
        self.sign_up_error = None

    def add_user(self, email, password='password123', principal_id=None, verified=True):
        user = {
            'id': principal_id or str(uuid.uuid4()),
            'email': email,
            'password': password,
            'verified': verified,
        }
        self.users[email] = user
        return self._principal(user)

    def issue_token(self, principal_id):
        token = f"token-{uuid.uuid4().hex}"
        self.tokens[token] = principal_id
        return token

    def _principal(self, user):
        return Principal(id=user['id'], email=user['email'], email_verified=user['verified'])

    def _user_by_id(self, principal_id):
        for user in self.users.values():
            if user['id'] == principal_id:
                return user
        return None

    def get_principal(self, access_token):
        user = self._user_by_id(self.tokens.get(access_token))
        return self._principal(user) if user else None

    def sign_up(self, email, password, redirect_to=None, metadata=None):
        self.calls.append(('sign_up', email, redirect_to, metadata))
        if self.sign_up_error is not None:
            raise self.sign_up_error
        if email in self.users:
            raise EmailAlreadyRegisteredError()
        return self.add_user(email, password, verified=False)

    def sign_in(self, email, password):
        self.calls.append(('sign_in', email))
        user = self.users.get(email)
        if user is None or user['password'] != password:
            raise AuthenticationError("Invalid email or password. Please check your credentials and try again.")
        principal = self._principal(user)
        return AuthTokens(
            access_token=self.issue_token(principal.id),
            refresh_token=f"refresh-{uuid.uuid4().hex}",
            principal=principal,
        )

    def sign_out(self, access_token):
        self.calls.append(('sign_out', access_token))
        self.tokens.pop(access_token, None)

    def reset_password(self, email, redirect_to=None):
        self.calls.append(('reset_password', email, redirect_to))

    def update_password(self, principal_id, password):
        self.calls.append(('update_password', principal_id))
        self._user_by_id(principal_id)['password'] = password

    def generate_verification_link(self, email, redirect_to=None):
        self.calls.append(('generate_verification_link', email, redirect_to))
        return f"https://auth.test/verify?email={email}&redirect_to={redirect_to}"


class FakePaymentClient:
    """Records Stripe calls and answers with canned objects."""

    def __init__(self):
        self.customers = []
        self.checkout_sessions = []
        self.portal_sessions = []
        self.subscriptions = {}
        self.checkout_error = None
        self.subscription_error = None

    def create_customer(self, email, metadata):
        customer = {'id': f"cus_{len(self.customers) + 1}", 'email': email, 'metadata': metadata}
        self.customers.append(customer)
        return customer

    def create_checkout_session(self, customer_id, price_id, success_url, cancel_url, metadata):
        if self.checkout_error is not None:
            raise self.checkout_error
        session_id = f"cs_test_{len(self.checkout_sessions) + 1}"
        checkout = {
            'id': session_id,
            'url': f"https://checkout.stripe.test/{session_id}",
            'customer': customer_id,
            'price_id': price_id,
            'success_url': success_url,
            'cancel_url': cancel_url,
            'metadata': metadata,
        }
        self.checkout_sessions.append(checkout)
        return checkout

    def create_billing_portal_session(self, customer_id, return_url):
        portal = {'url': f"https://billing.stripe.test/{customer_id}", 'return_url': return_url}
        self.portal_sessions.append(portal)
        return portal

    def retrieve_subscription(self, subscription_id):
        if self.subscription_error is not None:
            raise self.subscription_error
        return self.subscriptions.get(subscription_id) or {
            'id': subscription_id,
            'status': 'active',
            'current_period_start': 1700000000,
            'current_period_end': 1702592000,
        }


@pytest.fixture(scope='function')
def app():
    """Fresh application and in-memory database for each test."""
    app = create_app('config.TestConfig')
    app.extensions[AUTH_PROVIDER] = FakeAuthProvider()
    app.extensions[PAYMENT_CLIENT] = FakePaymentClient()

    ctx = app.app_context()
    ctx.push()
    yield app
    database.get_session().remove()
    database.drop_all()
    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Scoped database session bound to the test app."""
    return database.get_session()


@pytest.fixture(scope='function')
def auth_provider(app):
    return app.extensions[AUTH_PROVIDER]


@pytest.fixture(scope='function')
def payment_client(app):
    return app.extensions[PAYMENT_CLIENT]


def create_tenant(session, name, tier='standard', status='active'):
    """Tenant with a subscription row, committed."""
    tenant = Tenant(name=name)
    session.add(tenant)
    session.flush()
    session.add(Subscription(tenant_id=tenant.id, tier=tier, status=status))
    session.commit()
    return tenant


def create_profile(session, auth_provider, tenant, email, role, created_at=None):
    """Profile plus matching principal in the fake auth provider."""
    principal = auth_provider.add_user(email)
    profile = Profile(
        id=principal.id,
        tenant_id=tenant.id,
        email=email,
        role=role,
        created_at=created_at or datetime(2024, 1, 1),
    )
    session.add(profile)
    session.commit()
    return profile


@pytest.fixture(scope='function')
def tenant(session):
    return create_tenant(session, 'Acme')


@pytest.fixture(scope='function')
def other_tenant(session):
    return create_tenant(session, 'Globex')


@pytest.fixture(scope='function')
def owner(session, auth_provider, tenant):
    return create_profile(session, auth_provider, tenant, 'alice@acme.com', 'owner',
                          created_at=datetime(2024, 1, 1))


@pytest.fixture(scope='function')
def admin(session, auth_provider, tenant):
    return create_profile(session, auth_provider, tenant, 'dana@acme.com', 'admin',
                          created_at=datetime(2024, 1, 2))


@pytest.fixture(scope='function')
def member(session, auth_provider, tenant):
    return create_profile(session, auth_provider, tenant, 'bob@acme.com', 'member',
                          created_at=datetime(2024, 1, 3))


@pytest.fixture(scope='function')
def outsider(session, auth_provider, other_tenant):
    return create_profile(session, auth_provider, other_tenant, 'eve@globex.com', 'owner')


@pytest.fixture(scope='function')
def auth_headers(auth_provider):
    """Build bearer headers for a profile."""
    def _headers(profile):
        return {'Authorization': f"Bearer {auth_provider.issue_token(profile.id)}"}
    return _headers


@pytest.fixture(scope='function')
def stripe_event(app):
    """Serialize an event and sign it with the test webhook secret."""
    def _signed(event, timestamp=None, secret=None):
        payload = json.dumps(event).encode('utf-8')
        timestamp = timestamp or int(time.time())
        signature = compute_signature(secret or app.config['STRIPE_WEBHOOK_SECRET'], timestamp, payload)
        return payload, {'Stripe-Signature': f"t={timestamp},v1={signature}", 'Content-Type': 'application/json'}
    return _signed


@pytest.fixture(scope='function')
def make_tenant(session):
    def _make(name, tier='standard', status='active'):
        return create_tenant(session, name, tier=tier, status=status)
    return _make


@pytest.fixture(scope='function')
def make_profile(session, auth_provider):
    def _make(tenant, email, role, created_at=None):
        return create_profile(session, auth_provider, tenant, email, role, created_at=created_at)
    return _make
