"""Storage backend selection, done once at app startup."""
from flask import current_app

_EXTENSION_KEY = 'arena_storage'


def create_storage(app):
    backend = str(app.config.get('STORAGE_BACKEND') or 'sql').strip().lower()
    if backend == 'sql':
        from arena.storage.sql import SqlStorage
        return SqlStorage()
    if backend == 'supabase':
        from arena.storage.rest import SupabaseStorage
        return SupabaseStorage(
            url=app.config.get('SUPABASE_URL', ''),
            key=app.config.get('SUPABASE_SERVICE_KEY', ''),
        )
    raise RuntimeError(f'Unknown STORAGE_BACKEND {backend!r}; expected "sql" or "supabase"')


def init_storage(app, storage=None):
    app.extensions[_EXTENSION_KEY] = storage or create_storage(app)
    return app.extensions[_EXTENSION_KEY]


def get_storage(app=None):
    target = app or current_app
    return target.extensions[_EXTENSION_KEY]
