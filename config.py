import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

class Config:
    """Base settings shared by every environment"""
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Use DATABASE_URL when set, otherwise a local SQLite file
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL',
        f"sqlite:///{os.path.join(BASE_DIR, 'enquiries.db')}"
    )
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1MB request body limit

    # ── Admin auth ──
    AUTH_SECRET = os.environ.get('AUTH_SECRET', '')
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', '')
    ADMIN_PASSWORD_HASH = os.environ.get('ADMIN_PASSWORD_HASH', '')
    ADMIN_PASSWORD_HASH_B64 = os.environ.get('ADMIN_PASSWORD_HASH_B64', '')

    SESSION_TOKEN_COOKIE = 'triage_session'
    SESSION_TOKEN_LIFETIME = 8 * 60 * 60  # 8 hours (seconds)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    LOGIN_FAILURE_DELAY = 1.0            # seconds to stall a failed login

    # ── Triage policy ──
    SLA_MINUTES = {
        'HIGH': 15,
        'NORMAL': 60,
    }
    TRIAGE_ROW_LIMIT = 200

    # ── Rate limits (Flask-Limiter) ──
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True
    LOGIN_RATE_LIMIT = '10 per minute'
    ENQUIRY_RATE_LIMIT = '20 per minute'

    # Logging
    @staticmethod
    def get_logging_config(log_dir):
        return {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': '[%(asctime)s] %(levelname)s in %(module)s: %(message)s',
                }
            },
            'handlers': {
                'file': {
                    'class': 'logging.handlers.RotatingFileHandler',
                    'filename': os.path.join(log_dir, 'enquiries.log'),
                    'maxBytes': 1024 * 1024 * 10, # 10MB
                    'backupCount': 5,
                    'formatter': 'default',
                    'encoding': 'utf-8'
                },
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'default'
                }
            },
            'root': {
                'level': 'INFO',
                'handlers': ['file', 'console']
            }
        }

class DevelopmentConfig(Config):
    """Development settings"""
    DEBUG = True
    SESSION_COOKIE_SECURE = False  # plain HTTP in development

class TestingConfig(Config):
    """Test settings"""
    TESTING = True
    SESSION_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False
    LOGIN_FAILURE_DELAY = 0

class ProductionConfig(Config):
    """Production settings"""
    DEBUG = False
    SESSION_COOKIE_SECURE = True   # cookie only travels over HTTPS

    # Refuse to start without a usable admin auth configuration
    def __init__(self):
        from services.auth_service import AuthConfigError, validate_auth_config

        try:
            validate_auth_config(vars(Config))
        except AuthConfigError as exc:
            raise RuntimeError(f"Admin auth configuration is invalid: {exc}") from exc

# Settings class selected by FLASK_ENV
config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
