"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
logging and workflow settings. It uses environment variables for sensitive information and defaults for development.
In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'portal.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection; JSON clients send the token in the X-CSRFToken header
    WTF_CSRF_ENABLED = True

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Prefix for requisition transaction IDs (validation only accepts "QR")
    TRANSACTION_ID_PREFIX = os.environ.get("TRANSACTION_ID_PREFIX", "QR")

    APP_NAME = "Quote Approval Portal"


class TestConfig(Config):
    """In-memory database, no CSRF."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "WARNING"
