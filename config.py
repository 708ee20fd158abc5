#!/usr/bin/env python3

import os

from os.path import dirname, abspath
from typing import Any
from urllib.parse import urlparse, unquote

from mysql.connector.constants import ClientFlag

# Root of the project, used to resolve relative paths.
_root_dir = dirname(abspath(__file__))


def _env_bool(name: str, default: bool = False) -> bool:
    """Reads a boolean flag from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default

    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_path(name: str, default: str) -> str:
    """Reads a path from the environment, making it absolute to the project."""
    path = os.environ.get(name, default)
    if not os.path.isabs(path):
        path = os.path.join(_root_dir, path)

    return path


def _database_settings() -> dict:
    """Builds the database settings either from DATABASE_URL or the individual
    DB_* variables."""
    settings = {
        'host': os.environ.get('DB_HOST', 'localhost'),
        'port': int(os.environ.get('DB_PORT', 3306)),
        'database': os.environ.get('DB_NAME', 'duc_ops_db'),
        'user': os.environ.get('DB_USER', 'root'),
        'password': os.environ.get('DB_PASSWORD', ''),
        'ssl': _env_bool('DB_SSL'),
        'pool_size': int(os.environ.get('DB_POOL_SIZE', 5)),
    }

    # A connection URL takes precedence over everything else.
    url = os.environ.get('DATABASE_URL')
    if url:
        parsed = urlparse(url)
        settings['host'] = parsed.hostname or settings['host']
        settings['port'] = parsed.port or settings['port']
        settings['database'] = parsed.path.lstrip('/') or settings['database']
        if parsed.username is not None:
            settings['user'] = unquote(parsed.username)
        if parsed.password is not None:
            settings['password'] = unquote(parsed.password)

    return settings


_db = _database_settings()

_app = {
    'upload_dir': _env_path('UPLOAD_DIR', 'public/uploads'),
    'log_dir': _env_path('LOG_DIR', 'logs'),
    'log_level': os.environ.get('LOG_LEVEL', 'WARNING').upper(),
    'max_upload_bytes': int(os.environ.get('MAX_UPLOAD_BYTES',
                                           10 * 1024 * 1024)),
    'tracking': {
        'rate_limit_ms': int(os.environ.get('TRACK_RATE_LIMIT_MS', 5000)),
        'timeout': float(os.environ.get('TRACK_TIMEOUT', 10)),
    },
    'default_slot_capacity': int(os.environ.get('DEFAULT_SLOT_CAPACITY', 40)),
}

_aftership = {
    'api_key': os.environ.get('AFTERSHIP_API_KEY', ''),
    'slug': os.environ.get('AFTERSHIP_SLUG', 'evri'),
    'base_url': os.environ.get('AFTERSHIP_BASE_URL',
                               'https://api.aftership.com/v4'),
}


def db(key: str) -> Any:
    """Gets a database setting."""
    return _db[key]


def db_conn() -> dict:
    """Connection arguments ready to be handed to the MySQL connector."""
    args = {
        'host': _db['host'],
        'port': _db['port'],
        'database': _db['database'],
        'user': _db['user'],
        'password': _db['password'],
        'charset': 'utf8mb4',
        'autocommit': False,
        # Report matched rows on UPDATE, not only the changed ones.
        'client_flags': [ClientFlag.FOUND_ROWS],
    }

    # Only require encryption when asked to.
    if _db['ssl']:
        args['ssl_disabled'] = False
        args['ssl_verify_cert'] = False
    else:
        args['ssl_disabled'] = True

    return args


def app(key: str) -> Any:
    """Gets an application setting."""
    return _app[key]


def aftership(key: str) -> Any:
    """Gets an AfterShip integration setting."""
    return _aftership[key]
