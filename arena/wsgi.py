"""WSGI entrypoint used by Gunicorn."""
import logging
import os

from arena.app import create_app
from arena.services.bootstrap import ensure_system_admin
from arena.storage import get_storage

logger = logging.getLogger(__name__)

config_name = os.environ.get('FLASK_ENV', 'production')
app = create_app(config_name)

with app.app_context():
    if ensure_system_admin(get_storage(), app.config) is None:
        logger.info('SYSTEM_ADMIN_PASSWORD not set; skipping system admin bootstrap')
