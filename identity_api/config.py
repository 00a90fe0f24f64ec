"""Application configuration.

Values come from environment variables (a local .env file is loaded by the
app factory). Each environment gets its own class; create_app() picks one
by name.
"""

import os
import tempfile

DEV_SECRET = 'dev-secret-change-me'


def _bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes')


def _database_url(default):
    url = os.getenv('DATABASE_URL', default)
    # Render/Heroku style URLs are rejected by SQLAlchemy 2.x
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Settings shared by every environment."""

    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///identity.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 11 * 1024 * 1024

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')

    # JWT
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', DEV_SECRET)
    JWT_ISSUER = os.getenv('JWT_ISSUER', 'funtime-identity')
    JWT_AUDIENCE = os.getenv('JWT_AUDIENCE', 'funtime-sites')
    JWT_EXPIRATION_MINUTES = int(os.getenv('JWT_EXPIRATION_MINUTES', 60))

    # OTP
    OTP_EXPIRY_MINUTES = int(os.getenv('OTP_EXPIRY_MINUTES', 10))
    OTP_MAX_VERIFY_ATTEMPTS = int(os.getenv('OTP_MAX_VERIFY_ATTEMPTS', 5))
    OTP_MAX_REQUESTS_PER_WINDOW = int(os.getenv('OTP_MAX_REQUESTS_PER_WINDOW', 5))
    OTP_RATE_LIMIT_WINDOW_MINUTES = int(os.getenv('OTP_RATE_LIMIT_WINDOW_MINUTES', 60))
    OTP_BLOCK_MINUTES = int(os.getenv('OTP_BLOCK_MINUTES', 60))
    OTP_COOLDOWN_SECONDS = int(os.getenv('OTP_COOLDOWN_SECONDS', 60))

    # Request rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = _bool('RATELIMIT_ENABLED', True)
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True

    # File storage
    STORAGE_TYPE = os.getenv('STORAGE_TYPE', 'local')
    STORAGE_LOCAL_PATH = os.getenv(
        'STORAGE_LOCAL_PATH',
        os.path.join(os.path.abspath(os.path.dirname(os.path.dirname(__file__))), 'uploads')
    )
    STORAGE_LOCAL_BASE_URL = os.getenv('STORAGE_LOCAL_BASE_URL', '')
    STORAGE_ORGANIZE_BY_MONTH = _bool('STORAGE_ORGANIZE_BY_MONTH', True)
    AWS_BUCKET_NAME = os.getenv('AWS_BUCKET_NAME', 'funtime-identity')
    AWS_REGION = os.getenv('AWS_REGION', 'us-east-1')
    AWS_ACCESS_KEY_ID = os.getenv('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.getenv('AWS_SECRET_ACCESS_KEY')

    # Geocoding
    GEOCODING_ENABLED = _bool('GEOCODING_ENABLED', False)
    GEOCODING_PROVIDER = os.getenv('GEOCODING_PROVIDER', 'none')
    GEOCODING_CACHE_ENABLED = _bool('GEOCODING_CACHE_ENABLED', True)
    GEOCODING_CACHE_MINUTES = int(os.getenv('GEOCODING_CACHE_MINUTES', 1440))
    GEOCODING_TIMEOUT = int(os.getenv('GEOCODING_TIMEOUT', 10))
    GOOGLE_GEOCODING_API_KEY = os.getenv('GOOGLE_GEOCODING_API_KEY', '')
    GOOGLE_GEOCODING_REGION = os.getenv('GOOGLE_GEOCODING_REGION')
    AZURE_MAPS_SUBSCRIPTION_KEY = os.getenv('AZURE_MAPS_SUBSCRIPTION_KEY', '')
    NOMINATIM_BASE_URL = os.getenv('NOMINATIM_BASE_URL', 'https://nominatim.openstreetmap.org')
    NOMINATIM_CONTACT_EMAIL = os.getenv('NOMINATIM_CONTACT_EMAIL', '')
    NOMINATIM_USER_AGENT = os.getenv('NOMINATIM_USER_AGENT', 'FuntimeIdentityApi/1.0')
    NOMINATIM_RATE_LIMIT_MS = int(os.getenv('NOMINATIM_RATE_LIMIT_MS', 1000))

    # Notifications
    SMTP_HOST = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    SMTP_PORT = int(os.getenv('SMTP_PORT', '587'))
    SMTP_USER = os.getenv('SMTP_USER', '')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD', '')
    SMTP_TIMEOUT = int(os.getenv('SMTP_TIMEOUT', '10'))
    FROM_EMAIL = os.getenv('FROM_EMAIL', os.getenv('SMTP_USER', ''))
    FROM_NAME = os.getenv('FROM_NAME', 'Funtime')
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_FROM_NUMBER = os.getenv('TWILIO_FROM_NUMBER')
    NOTIFICATION_SEND_IMMEDIATELY = _bool('NOTIFICATION_SEND_IMMEDIATELY', False)
    NOTIFICATION_MAX_ATTEMPTS = int(os.getenv('NOTIFICATION_MAX_ATTEMPTS', 3))

    # Push / presence tracking
    REDIS_URL = os.getenv('REDIS_URL')
    SOCKETIO_ASYNC_MODE = os.getenv('SOCKETIO_ASYNC_MODE')


class DevelopmentConfig(Config):
    DEBUG = True
    NOTIFICATION_SEND_IMMEDIATELY = _bool('NOTIFICATION_SEND_IMMEDIATELY', True)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-secret-key-for-testing-only-32b'
    RATELIMIT_ENABLED = False
    STORAGE_TYPE = 'local'
    STORAGE_LOCAL_PATH = os.path.join(tempfile.gettempdir(), 'identity-api-test-uploads')
    STORAGE_LOCAL_BASE_URL = ''
    GEOCODING_ENABLED = False
    GEOCODING_PROVIDER = 'none'
    NOTIFICATION_SEND_IMMEDIATELY = False
    REDIS_URL = None
    SOCKETIO_ASYNC_MODE = 'threading'
    SMTP_USER = ''
    SMTP_PASSWORD = ''


class ProductionConfig(Config):
    DEBUG = False


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
