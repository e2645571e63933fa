"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Public URL of the web client (invite links, redirects)
    APP_BASE_URL = os.getenv('APP_BASE_URL', 'http://localhost:5173')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'tenantkit')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'tenantkit')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'tenantkit')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    AUTO_CREATE_TABLES = os.getenv('AUTO_CREATE_TABLES', 'false').lower() == 'true'

    # Supabase Auth (new key names first, legacy names as fallback)
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_PUBLISHABLE_KEY = os.getenv('SB_PUBLISHABLE_KEY') or os.getenv('SUPABASE_ANON_KEY')
    SUPABASE_SECRET_KEY = os.getenv('SB_SECRET_KEY') or os.getenv('SUPABASE_SERVICE_ROLE_KEY')

    # Stripe
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')
    STRIPE_WEBHOOK_TOLERANCE = int(os.getenv('STRIPE_WEBHOOK_TOLERANCE', '300'))
    STRIPE_STARTER_PRICE_ID = os.getenv('STRIPE_STARTER_PRICE_ID')
    STRIPE_STANDARD_PRICE_ID = os.getenv('STRIPE_STANDARD_PRICE_ID')
    STRIPE_BUSINESS_PRICE_ID = os.getenv('STRIPE_BUSINESS_PRICE_ID')
    STRIPE_PREMIUM_PRICE_ID = os.getenv('STRIPE_PREMIUM_PRICE_ID')

    # Tenancy rules
    # 'domain': one organization per email domain, 'global': one per deployment
    TENANT_SCOPE = os.getenv('TENANT_SCOPE', 'domain')
    # 'allow' keeps registration open when the existence check itself fails
    ON_CHECK_FAILURE = os.getenv('ON_CHECK_FAILURE', 'allow')
    INVITATION_TTL_DAYS = int(os.getenv('INVITATION_TTL_DAYS', '7'))
    TRIAL_DAYS = int(os.getenv('TRIAL_DAYS', '14'))
    ENFORCE_SEAT_LIMITS = os.getenv('ENFORCE_SEAT_LIMITS', 'true').lower() == 'true'

    # Billing reconciliation: 'active' or 'keep' for unrecognized provider statuses
    UNKNOWN_STATUS_POLICY = os.getenv('UNKNOWN_STATUS_POLICY', 'active')

    # Email configuration
    MAIL_SERVER = os.getenv('SMTP_HOST')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASS') or os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@localhost'
    )
    MAIL_SUPPRESS_SEND = False

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    AUTO_CREATE_TABLES = True
    APP_BASE_URL = 'http://app.test'

    SUPABASE_URL = None
    SUPABASE_PUBLISHABLE_KEY = None
    SUPABASE_SECRET_KEY = None

    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_secret'
    STRIPE_STARTER_PRICE_ID = 'price_starter'
    STRIPE_STANDARD_PRICE_ID = 'price_standard'
    STRIPE_BUSINESS_PRICE_ID = 'price_business'
    STRIPE_PREMIUM_PRICE_ID = 'price_premium'

    TENANT_SCOPE = 'domain'
    ON_CHECK_FAILURE = 'allow'
    UNKNOWN_STATUS_POLICY = 'active'

    MAIL_SERVER = 'smtp.test'
    MAIL_USERNAME = 'mailer@test'
    MAIL_PASSWORD = 'secret'
    MAIL_DEFAULT_SENDER = 'no-reply@app.test'
    MAIL_SUPPRESS_SEND = True

    SENTRY_DSN = None
