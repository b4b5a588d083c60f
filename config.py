"""Configuration module for the lotpos Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    TESTING = False

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'pos')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'pos')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'pos')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '1' if DEBUG else '0') == '1'

    # Upper bound for every statement / lock wait inside the sale commit
    COMMIT_TIMEOUT_MS = int(os.getenv('COMMIT_TIMEOUT_MS', '5000'))

    # Checkout rules
    EXPIRY_WARNING_DAYS = int(os.getenv('EXPIRY_WARNING_DAYS', '7'))
    MAX_CART_LINES = int(os.getenv('MAX_CART_LINES', '50'))
    MAX_LINE_QUANTITY = int(os.getenv('MAX_LINE_QUANTITY', '1000'))
    MAX_OVERRIDE_PRICE = int(os.getenv('MAX_OVERRIDE_PRICE', '1000000'))


class TestConfig(Config):
    """Configuration used by the test-suite (SQLite file set by the fixtures)."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///lotpos-test.db')
    SQLALCHEMY_ECHO = False
    COMMIT_TIMEOUT_MS = 15000
