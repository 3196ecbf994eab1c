"""
Database configuration for the storefront backend.

Supports:
- Local development (SQLite)
- Managed PostgreSQL through DATABASE_URL (Heroku style)
- AWS Lambda behind RDS Proxy
"""
import os
import re
from pathlib import Path


DATABASE_URL_PATTERN = re.compile(
    r'postgres(?:ql)?://(?P<user>[^:]+):(?P<password>[^@]+)@(?P<host>[^:/]+)'
    r'(?::(?P<port>\d+))?/(?P<name>[^?]+)'
)


def get_database_config(base_dir: Path) -> dict:
    """
    Returns the default database configuration for the current environment.

    Resolution order:
    1. DATABASE_URL (postgres:// or postgresql://)
    2. DB_HOST and friends
    3. SQLite file in the project root
    """
    database_url = os.getenv('DATABASE_URL', '')

    if database_url.startswith('postgres'):
        return parse_database_url(database_url)

    if os.getenv('DB_HOST'):
        return _get_env_config()

    return {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': base_dir / 'db.sqlite3',
    }


def parse_database_url(url: str) -> dict:
    """Parse a PostgreSQL DATABASE_URL into a Django config dict."""
    match = DATABASE_URL_PATTERN.match(url)
    if not match:
        raise ValueError("Invalid DATABASE_URL format")

    config = {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': match.group('name'),
        'USER': match.group('user'),
        'PASSWORD': match.group('password'),
        'HOST': match.group('host'),
        'PORT': match.group('port') or '5432',
    }

    if os.getenv('DATABASE_SSL_REQUIRE', '').lower() == 'true':
        config['OPTIONS'] = {'sslmode': 'require'}

    return _apply_lambda_options(config)


def _get_env_config() -> dict:
    config = {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DB_NAME', 'storefront'),
        'USER': os.getenv('DB_USER', 'postgres'),
        'HOST': os.getenv('DB_HOST', 'localhost'),
        'PORT': os.getenv('DB_PORT', '5432'),
    }

    password = os.getenv('DB_PASSWORD')
    if password:
        config['PASSWORD'] = password

    return _apply_lambda_options(config)


def _apply_lambda_options(config: dict) -> dict:
    # RDS Proxy owns pooling on Lambda; keep connections per-invocation.
    if os.getenv('AWS_LAMBDA_FUNCTION_NAME'):
        config['CONN_MAX_AGE'] = 0
        options = config.setdefault('OPTIONS', {})
        options['connect_timeout'] = 5
        options['options'] = '-c statement_timeout=30000'
    return config
