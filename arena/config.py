import os
from datetime import timedelta

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _normalize_database_url(raw_url):
    if not raw_url:
        return raw_url
    if raw_url.startswith('postgres://'):
        return raw_url.replace('postgres://', 'postgresql://', 1)
    return raw_url


class BaseConfig:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-prod')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # 'sql' talks to the database through SQLAlchemy, 'supabase' through the REST API.
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'sql')
    SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
    SUPABASE_SERVICE_KEY = os.environ.get('SUPABASE_SERVICE_KEY') or os.environ.get('SUPABASE_KEY', '')

    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', False)
    PERMANENT_SESSION_LIFETIME = timedelta(hours=_env_int('SESSION_LIFETIME_HOURS', 24 * 7))

    INVITE_CODE_MAX_ATTEMPTS = _env_int('INVITE_CODE_MAX_ATTEMPTS', 10)
    MAX_TEAMS_PER_OWNER = _env_int('MAX_TEAMS_PER_OWNER', 3)
    MAX_TEAM_MEMBERS = _env_int('MAX_TEAM_MEMBERS', 5)
    NOTIFICATION_RETENTION_HOURS = _env_int('NOTIFICATION_RETENTION_HOURS', 24)

    # Protected system administrator seeded at startup when a password is set.
    SYSTEM_ADMIN_USERNAME = os.environ.get('SYSTEM_ADMIN_USERNAME', 'admin')
    SYSTEM_ADMIN_PASSWORD = os.environ.get('SYSTEM_ADMIN_PASSWORD', '')
    SYSTEM_ADMIN_EMAIL = os.environ.get('SYSTEM_ADMIN_EMAIL', 'admin@arena.local')
    SYSTEM_ADMIN_PHONE = os.environ.get('SYSTEM_ADMIN_PHONE', '0000000000')
    SYSTEM_ADMIN_GAME_ID = os.environ.get('SYSTEM_ADMIN_GAME_ID', 'ADMIN001')


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(
        os.environ.get(
            'DATABASE_URL',
            'sqlite:///' + os.path.join(basedir, '..', 'arena_dev.db')
        )
    )


class TestingConfig(BaseConfig):
    TESTING = True
    STORAGE_BACKEND = 'sql'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SYSTEM_ADMIN_USERNAME = 'sysadmin'
    SYSTEM_ADMIN_PASSWORD = 'sysadmin123'
    SYSTEM_ADMIN_EMAIL = 'sysadmin@test.com'
    SYSTEM_ADMIN_PHONE = '9000000000'


class ProductionConfig(BaseConfig):
    DEBUG = False
    SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', True)
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get('DATABASE_URL'))


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
