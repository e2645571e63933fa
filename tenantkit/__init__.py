"""Flask application factory."""
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from tenantkit.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize Sentry for error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Providers (auth, payments) and session event hub
    from tenantkit.extensions import init_extensions
    init_extensions(app)

    # Flask-Mail for invitation and verification emails
    from tenantkit.services.email_service import init_mail
    init_mail(app)

    # Prometheus metrics instrumentation
    from tenantkit.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,
            x_proto=1,
            x_host=1,
            x_port=1,
            x_prefix=0
        )

    # Initialize database
    init_db(app)

    # Error Handlers
    from tenantkit.exceptions import SaasError

    @app.errorhandler(SaasError)
    def handle_saas_error(error):
        """Handle custom application exceptions."""
        app.logger.warning(f"SaasError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from tenantkit.blueprints.auth import auth_bp
    from tenantkit.blueprints.team import team_bp
    from tenantkit.blueprints.subscription import subscription_bp
    from tenantkit.blueprints.billing import billing_bp
    from tenantkit.blueprints.notifications import notifications_bp
    from tenantkit.blueprints.webhooks import webhooks_bp
    from tenantkit.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(team_bp)
    app.register_blueprint(subscription_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from tenantkit.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")

    return app
