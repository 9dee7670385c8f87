"""Registry of authenticated Socket.IO connections.

Built once in ``create_app`` and handed to whatever needs to push. Delivery
is best-effort and at-most-once: a user with no live connection simply
misses the push and picks up state on the next fetch.
"""
import logging
import threading

from flask import current_app

logger = logging.getLogger(__name__)

_EXTENSION_KEY = 'arena_connections'


class ConnectionRegistry:
    def __init__(self, socketio):
        self._socketio = socketio
        self._lock = threading.Lock()
        self._users_by_sid = {}

    def register(self, sid, user_id):
        with self._lock:
            self._users_by_sid[sid] = user_id
        logger.debug('Socket %s authenticated as user %s', sid, user_id)

    def unregister(self, sid):
        with self._lock:
            return self._users_by_sid.pop(sid, None)

    def sids_for(self, user_id):
        with self._lock:
            return [sid for sid, uid in self._users_by_sid.items() if uid == user_id]

    def connected_user_ids(self):
        with self._lock:
            return set(self._users_by_sid.values())

    def __len__(self):
        with self._lock:
            return len(self._users_by_sid)

    def send_to_user(self, user_id, payload):
        sids = self.sids_for(user_id)
        for sid in sids:
            self._socketio.emit('message', payload, to=sid)
        return len(sids)

    def send_to_all(self, payload):
        with self._lock:
            sids = list(self._users_by_sid)
        for sid in sids:
            self._socketio.emit('message', payload, to=sid)
        return len(sids)


def init_connections(app, socketio):
    app.extensions[_EXTENSION_KEY] = ConnectionRegistry(socketio)
    return app.extensions[_EXTENSION_KEY]


def get_connections(app=None):
    target = app or current_app
    return target.extensions[_EXTENSION_KEY]
