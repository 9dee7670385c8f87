"""Startup seeding of the protected system administrator."""
import logging

from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)


def ensure_system_admin(storage, app_config):
    """Create (or re-protect) the system admin user; returns it, or None when unconfigured."""
    password = str(app_config.get('SYSTEM_ADMIN_PASSWORD') or '')
    username = str(app_config.get('SYSTEM_ADMIN_USERNAME') or '').strip()
    if not password or not username:
        return None

    existing = storage.get_user_by_username(username)
    if existing:
        if existing.get('role') != 'admin' or not existing.get('is_protected'):
            existing = storage.update_user(existing['id'], {'role': 'admin', 'is_protected': True})
            logger.info('Restored admin role and protection for system admin %s', username)
        return existing

    user = storage.create_user({
        'username': username,
        'password_hash': generate_password_hash(password),
        'email': str(app_config.get('SYSTEM_ADMIN_EMAIL') or '').strip().lower(),
        'phone': str(app_config.get('SYSTEM_ADMIN_PHONE') or '').strip(),
        'phone_verified': True,
        'game_id': str(app_config.get('SYSTEM_ADMIN_GAME_ID') or 'ADMIN001').strip(),
        'role': 'admin',
        'is_protected': True,
    })
    logger.info('Seeded protected system admin %s', username)
    return user
