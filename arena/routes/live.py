"""Socket.IO side channel for live unread-count pushes.

A client authenticates its socket by sending ``{"type": "auth", "userId": n}``
as a ``message`` event. The id must match the user in the cookie session the
socket connected with; afterwards the server pushes
``{"type": "unread_count", "count": n}`` messages to it.
"""
import json
import logging

from flask import request, session
from flask_socketio import send

from arena.app import socketio
from arena.services.connections import get_connections
from arena.services.notifications import push_unread_count
from arena.storage import get_storage

logger = logging.getLogger(__name__)


def _session_user_id():
    if session.get('account') != 'user':
        return None
    return session.get('user_id')


@socketio.on('message')
def on_message(data):
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            send({'type': 'error', 'error': 'Invalid message'})
            return
    payload = data if isinstance(data, dict) else {}
    if payload.get('type') != 'auth':
        return

    try:
        user_id = int(payload.get('userId'))
    except (TypeError, ValueError):
        send({'type': 'error', 'error': 'Invalid userId'})
        return

    if _session_user_id() != user_id:
        logger.warning('Rejected socket auth for user %s from sid %s', user_id, request.sid)
        send({'type': 'error', 'error': 'Authentication required'})
        return

    connections = get_connections()
    connections.register(request.sid, user_id)
    push_unread_count(get_storage(), connections, user_id)


@socketio.on('disconnect')
def on_disconnect(*args):
    get_connections().unregister(request.sid)
