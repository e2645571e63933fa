"""Middleware for bearer authentication, session context and CORS."""
from functools import wraps

from flask import g, request

from tenantkit.database import get_session
from tenantkit.exceptions import AuthenticationError
from tenantkit.extensions import get_auth_provider
from tenantkit.services.session_context import SessionContext

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
}


def bearer_token():
    """Token from ``Authorization: Bearer <token>``, or None."""
    scheme, _, token = request.headers.get('Authorization', '').partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_session_context():
    """
    Validate the bearer credential and put a SessionContext on g.

    Raises:
        AuthenticationError: header missing or rejected by the auth provider
    """
    token = bearer_token()
    if token is None:
        raise AuthenticationError("Missing authorization header")

    principal = get_auth_provider().get_principal(token)
    if principal is None:
        raise AuthenticationError("Invalid or expired session token")

    g.session_context = SessionContext.from_credential(get_session(), principal, token)
    return g.session_context


def require_principal(f):
    """Decorator: require a valid bearer credential."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        load_session_context()
        return f(*args, **kwargs)
    return decorated_function


def add_cors_headers(response):
    response.headers.update(CORS_HEADERS)
    return response


def enable_cors(blueprint):
    """Permissive CORS on every response of ``blueprint`` (OPTIONS included)."""
    blueprint.after_request(add_cors_headers)
    return blueprint
