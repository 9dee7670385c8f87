import logging

from flask import Blueprint, request, jsonify

from arena.auth_utils import admin_required, login_required, require_user_account
from arena.errors import NotFoundError
from arena.services.cascade import delete_notification_cascade
from arena.services.connections import get_connections
from arena.services.notifications import (
    broadcast_notification, hide_unread_badge, notify_users, push_unread_count,
    push_unread_counts,
)
from arena.storage import get_storage
from arena.validation import json_payload, parse_notification

notifications_bp = Blueprint('notifications', __name__)
logger = logging.getLogger(__name__)


def _current_user_id():
    identity = request.current_user
    require_user_account(identity)
    return identity['id']


@notifications_bp.route('', methods=['GET'])
@login_required
def list_notifications():
    return jsonify(get_storage().list_user_notifications(_current_user_id()))


@notifications_bp.route('/count', methods=['GET'])
@login_required
def unread_count():
    return jsonify({'count': get_storage().count_unread_notifications(_current_user_id())})


@notifications_bp.route('/unread', methods=['GET'])
@login_required
def list_unread():
    return jsonify(get_storage().list_unread_notifications(_current_user_id()))


@notifications_bp.route('/read/<int:notification_id>', methods=['POST'])
@login_required
def mark_read(notification_id):
    user_id = _current_user_id()
    storage = get_storage()
    notification = storage.get_notification(notification_id)
    # Another user's targeted notification is reported as absent.
    if not notification or notification.get('user_id') not in (None, user_id):
        raise NotFoundError('Notification not found')

    storage.mark_as_read(user_id, notification['id'])
    push_unread_count(storage, get_connections(), user_id)
    return jsonify({'message': 'Notification marked as read', 'notification_id': notification['id']})


@notifications_bp.route('/read-all', methods=['POST'])
@login_required
def mark_all_read():
    user_id = _current_user_id()
    storage = get_storage()
    marked = storage.mark_all_as_read(user_id)
    push_unread_count(storage, get_connections(), user_id)
    return jsonify({'message': 'All notifications marked as read', 'marked': marked})


@notifications_bp.route('/hide', methods=['POST'])
@login_required
def hide_notifications():
    hide_unread_badge(get_connections(), _current_user_id())
    return jsonify({'message': 'Notifications hidden for current session'})


@notifications_bp.route('', methods=['POST'])
@admin_required
def create_notification():
    fields, target_ids = parse_notification(json_payload())
    storage = get_storage()
    connections = get_connections()

    if target_ids is None:
        notifications = [broadcast_notification(
            storage, connections, fields['title'], fields['message'],
            notif_type=fields['type'], related_id=fields.get('related_id'),
        )]
    else:
        missing = [user_id for user_id in target_ids if not storage.get_user(user_id)]
        if missing:
            raise NotFoundError('Some target users do not exist', {'user_ids': missing})
        notifications = notify_users(
            storage, connections, target_ids, fields['title'], fields['message'],
            notif_type=fields['type'], related_id=fields.get('related_id'),
        )

    logger.info(
        'Admin %s created %s notification(s): %s',
        request.current_user['username'], len(notifications),
        'broadcast' if target_ids is None else f'users {target_ids}',
    )
    return jsonify({'created': len(notifications), 'notifications': notifications}), 201


@notifications_bp.route('/<int:notification_id>', methods=['DELETE'])
@admin_required
def delete_notification(notification_id):
    storage = get_storage()
    notification = storage.get_notification(notification_id)
    if not notification:
        raise NotFoundError('Notification not found')
    delete_notification_cascade(storage, notification['id'])

    connections = get_connections()
    if notification.get('user_id') is None:
        push_unread_counts(storage, connections)
    else:
        push_unread_count(storage, connections, notification['user_id'])
    return jsonify({'message': 'Notification deleted'})
