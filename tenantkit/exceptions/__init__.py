"""Custom exceptions for the tenantkit application."""


class SaasError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(SaasError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class ValidationError(BusinessLogicError):
    """Missing field, bad password, unknown role or tier."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class ConfigurationError(BusinessLogicError):
    """An authenticated principal is not wired to a tenant."""
    def __init__(self, message="No tenant found for user", payload=None):
        super().__init__(message, 400, payload)


class PlanLimitError(BusinessLogicError):
    """The tenant's plan does not allow another seat."""
    def __init__(self, message, payload=None):
        super().__init__(message, 402, payload)


class OrganizationExistsError(BusinessLogicError):
    """Registration blocked because the organization already exists."""
    def __init__(self, tenant_name, owner_email=None):
        contact = f"your organization owner ({owner_email})" if owner_email else "your organization administrator"
        message = (
            f"An organization with your email domain already exists ({tenant_name}). "
            f"Please contact {contact} for an invitation."
        )
        super().__init__(message, 409, {'tenant_name': tenant_name, 'owner_email': owner_email})


class EmailAlreadyRegisteredError(BusinessLogicError):
    """The auth provider already holds an account for this email."""
    def __init__(self, message="This email is already registered. Please login instead."):
        super().__init__(message, 409)


class AuthenticationError(SaasError):
    """Missing or rejected credential."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class UnauthorizedError(SaasError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)


class PermissionDeniedError(UnauthorizedError):
    """Role rules forbid the action."""
    def __init__(self, message="You do not have permission to perform this action"):
        super().__init__(message)


class NotFoundError(SaasError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InvalidInvitationError(NotFoundError):
    """Uniform rejection for any unusable invitation token."""
    def __init__(self):
        super().__init__("Invalid or expired invitation")


class RateLimitedError(SaasError):
    """The auth provider is throttling the caller."""
    def __init__(self, message="Too many attempts. Please wait a few minutes and try again."):
        super().__init__(message, 429)


class UpstreamProviderError(SaasError):
    """An external provider call failed."""
    def __init__(self, message, status_code=502, payload=None):
        super().__init__(message, status_code, payload)


class PaymentProviderError(UpstreamProviderError):
    """Stripe rejected or failed a request."""


class EmailDeliveryError(UpstreamProviderError):
    """SMTP is missing or refused the message."""
    def __init__(self, message, status_code=500, payload=None):
        super().__init__(message, status_code, payload)


class WebhookSignatureError(SaasError):
    """Webhook payload could not be authenticated."""
    def __init__(self, message="Invalid webhook signature"):
        super().__init__(message, 400)
