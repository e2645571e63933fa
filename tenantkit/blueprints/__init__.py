"""
Blueprints.

``billing``, ``notifications`` and ``webhooks`` are the standalone handlers
used by browser clients and Stripe: CORS enabled, errors reported as
``{"error": message}``.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from tenantkit.exceptions import AuthenticationError, SaasError

logger = logging.getLogger(__name__)


def register_handler_errors(blueprint, error_statuses=None, default_status=400):
    """
    Report every failure inside ``blueprint`` as ``{"error": message}``.

    Args:
        blueprint: Blueprint to attach the handlers to
        error_statuses: Extra ``{exception class: status}`` overrides
        default_status: Status for anything not listed
    """
    statuses = {AuthenticationError: 401}
    statuses.update(error_statuses or {})

    def status_for(error):
        for error_class, status in statuses.items():
            if isinstance(error, error_class):
                return status
        return default_status

    @blueprint.errorhandler(SaasError)
    def handle_saas_error(error):
        logger.warning(f"[{blueprint.name.upper()}] {type(error).__name__}: {error.message}")
        return jsonify({'error': error.message}), status_for(error)

    @blueprint.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        logger.exception(f"[{blueprint.name.upper()}] Unhandled error")
        return jsonify({'error': str(error) or type(error).__name__}), status_for(error)

    return blueprint
