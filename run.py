#!/usr/bin/env python3
"""Entry point for the Arena tournament service."""
import os
from arena.app import create_app, socketio
from arena.services.bootstrap import ensure_system_admin
from arena.storage import get_storage

config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

# Seed the protected system admin on first run
with app.app_context():
    admin = ensure_system_admin(get_storage(), app.config)
    if admin:
        print(f"System admin account: {admin['username']}")

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5001))
    print(f"Arena starting on http://localhost:{port}")
    socketio.run(
        app, host='0.0.0.0', port=port,
        debug=(config_name == 'development'),
        allow_unsafe_werkzeug=True,
    )
