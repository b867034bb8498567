"""Configuration module for the POS Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'storepos')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'storepos')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'storepos')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Stock: advisory reorder threshold used when a product has no min_stock
    LOW_STOCK_THRESHOLD = int(os.getenv('LOW_STOCK_THRESHOLD', '10'))

    # Invoice numbering
    INVOICE_PREFIX = os.getenv('INVOICE_PREFIX', 'FAC-')
    INVOICE_NUMBER_WIDTH = int(os.getenv('INVOICE_NUMBER_WIDTH', '8'))

    # Sale commit retries (deadlocks, dropped connections)
    COMMIT_MAX_RETRIES = int(os.getenv('COMMIT_MAX_RETRIES', '3'))
    COMMIT_RETRY_DELAY = float(os.getenv('COMMIT_RETRY_DELAY', '0.05'))  # seconds
    COMMIT_RETRY_BACKOFF = float(os.getenv('COMMIT_RETRY_BACKOFF', '2.0'))

    # Business Information (printed on invoices)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Mi Negocio')
    BUSINESS_ADDRESS = os.getenv('BUSINESS_ADDRESS', '')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '')
    BUSINESS_EMAIL = os.getenv('BUSINESS_EMAIL', '')

    # Redis Cache Configuration
    # Read cache for sales summaries, invalidated on every commit/cancel
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_SALES_TTL = int(os.getenv('CACHE_SALES_TTL', '60'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'storepos')


class TestingConfig(Config):
    """Configuration used by the test-suite (SQLite, no cache, no backoff)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///storepos_test.db')
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
    COMMIT_RETRY_DELAY = 0.0
