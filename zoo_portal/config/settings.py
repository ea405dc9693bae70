"""
Flask Configuration Classes

Environment-specific settings (Development, Testing, Production) for the zoo
portal application factory. Values come from environment variables, loaded
from a ``.env`` file via python-dotenv when one is present.

Key Components:
- BaseConfig with Flask, session, sanitizer, rate-limit and catalog settings
- DevelopmentConfig, TestingConfig and ProductionConfig overrides
- get_config() to select a class by name or FLASK_ENV
- validate_configuration() to list settings unsafe for the environment

Author: Zoo Portal Team
Version: 1.0.0
"""

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Type

from dotenv import load_dotenv

# Load environment variables early
load_dotenv()

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes', 'on')


class BaseConfig:
    """
    Settings shared by every environment.
    """

    # Flask Core Configuration
    SECRET_KEY = os.getenv('SECRET_KEY', os.urandom(32).hex())
    DEBUG = False
    TESTING = False

    # Application Metadata
    APP_NAME = os.getenv('APP_NAME', 'Zoo Portal')
    APP_VERSION = os.getenv('APP_VERSION', '1.0.0')
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(
        hours=int(os.getenv('SESSION_LIFETIME_HOURS', '12'))
    )
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', 'false')

    # Request Parsing Configuration (membership photos arrive as data URLs)
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', str(2 * 1024 * 1024)))
    JSON_SORT_KEYS = False

    # Submission-safety layer
    SANITIZER_MAX_LENGTH = int(os.getenv('SANITIZER_MAX_LENGTH', '255'))
    RATE_LIMIT_MAX_SUBMISSIONS = int(os.getenv('RATE_LIMIT_MAX_SUBMISSIONS', '5'))
    RATE_LIMIT_WINDOW_SECONDS = int(os.getenv('RATE_LIMIT_WINDOW_SECONDS', '10'))
    RATELIMIT_STORAGE_URL = os.getenv('RATELIMIT_STORAGE_URL', 'memory://')

    # Catalog backend consumed by the sync-catalog command
    CATALOG_BASE_URL = os.getenv('CATALOG_BASE_URL', 'http://localhost:5000')
    CATALOG_HEALTH_PATH = os.getenv('CATALOG_HEALTH_PATH', '/ping')
    CATALOG_PATH = os.getenv('CATALOG_PATH', '/api/animals')
    CATALOG_TIMEOUT_SECONDS = float(os.getenv('CATALOG_TIMEOUT_SECONDS', '10'))
    CATALOG_WAKE_MAX_ATTEMPTS = int(os.getenv('CATALOG_WAKE_MAX_ATTEMPTS', '10'))
    CATALOG_WAKE_MAX_ELAPSED_SECONDS = float(os.getenv('CATALOG_WAKE_MAX_ELAPSED_SECONDS', '90'))
    CATALOG_WAKE_INITIAL_DELAY = float(os.getenv('CATALOG_WAKE_INITIAL_DELAY', '1'))
    CATALOG_WAKE_MAX_DELAY = float(os.getenv('CATALOG_WAKE_MAX_DELAY', '8'))
    CATALOG_FETCH_MAX_ATTEMPTS = int(os.getenv('CATALOG_FETCH_MAX_ATTEMPTS', '3'))
    CATALOG_FETCH_INITIAL_DELAY = float(os.getenv('CATALOG_FETCH_INITIAL_DELAY', '1'))
    CATALOG_FETCH_MAX_DELAY = float(os.getenv('CATALOG_FETCH_MAX_DELAY', '4'))

    # Storage
    ANIMALS_PATH = os.getenv('ANIMALS_PATH', str(PACKAGE_ROOT / 'resources' / 'animals.json'))
    DATA_DIR = os.getenv('DATA_DIR', str(Path.cwd() / 'var' / 'data'))
    COLLECTION_BACKEND = os.getenv('COLLECTION_BACKEND', 'json')

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'console')


class TestingConfig(BaseConfig):
    """
    Testing configuration: in-memory collections and a fixed secret key so
    session cookies stay valid across test client requests.
    """

    TESTING = True
    DEBUG = True
    SECRET_KEY = 'testing-secret-key-not-for-production-use-0123456789'
    COLLECTION_BACKEND = 'memory'
    LOG_LEVEL = 'WARNING'
    LOG_FORMAT = 'console'
    CATALOG_BASE_URL = 'http://catalog.test'


class ProductionConfig(BaseConfig):
    DEBUG = False
    SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', 'true')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')


config_map = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(environment: Optional[str] = None) -> Type[BaseConfig]:
    """
    Get configuration class for the specified environment.

    Args:
        environment: Target environment name (defaults to FLASK_ENV)

    Raises:
        ValueError: If environment is not supported
    """
    if environment is None:
        environment = os.getenv('FLASK_ENV', 'development')

    environment = environment.lower()

    if environment not in config_map:
        raise ValueError(
            f"Unsupported environment '{environment}'. "
            f"Supported environments: {list(config_map.keys())}"
        )

    return config_map[environment]


def validate_configuration(config: Type[BaseConfig]) -> List[str]:
    """
    Validate configuration settings and return list of issues.

    Returns:
        List of validation error messages (empty if valid)
    """
    issues = []

    if not config.SECRET_KEY or len(config.SECRET_KEY) < 32:
        issues.append("SECRET_KEY should be at least 32 characters long")

    if config.SANITIZER_MAX_LENGTH <= 0:
        issues.append("SANITIZER_MAX_LENGTH must be positive")

    if config.RATE_LIMIT_MAX_SUBMISSIONS < 1:
        issues.append("RATE_LIMIT_MAX_SUBMISSIONS must be at least 1")

    if config.RATE_LIMIT_WINDOW_SECONDS < 1:
        issues.append("RATE_LIMIT_WINDOW_SECONDS must be at least 1")

    if config.CATALOG_WAKE_MAX_ATTEMPTS < 1 or config.CATALOG_FETCH_MAX_ATTEMPTS < 1:
        issues.append("Catalog attempt limits must be at least 1")

    if config.COLLECTION_BACKEND not in ('json', 'memory'):
        issues.append("COLLECTION_BACKEND must be 'json' or 'memory'")

    if not config.DEBUG and not config.SESSION_COOKIE_SECURE:
        issues.append("SESSION_COOKIE_SECURE should be enabled in non-debug environments")

    if issues:
        logger.warning(
            "Configuration validation found issues",
            extra={'config_class': config.__name__, 'issues': issues}
        )

    return issues


__all__ = [
    'BaseConfig',
    'DevelopmentConfig',
    'TestingConfig',
    'ProductionConfig',
    'config_map',
    'get_config',
    'validate_configuration',
]
