"""Notification creation plus live unread-count pushes."""
import logging

from arena.errors import ArenaError

logger = logging.getLogger(__name__)


def unread_count_payload(count):
    return {'type': 'unread_count', 'count': int(count)}


def push_unread_count(storage, connections, user_id):
    """Send ``user_id`` its current unread count if it has a live socket."""
    if not connections.sids_for(user_id):
        return 0
    try:
        count = storage.count_unread_notifications(user_id)
    except ArenaError as exc:
        logger.warning('Skipping unread-count push for user %s: %s', user_id, exc.message)
        return 0
    return connections.send_to_user(user_id, unread_count_payload(count))


def push_unread_counts(storage, connections, user_ids=None):
    targets = connections.connected_user_ids() if user_ids is None else set(user_ids)
    delivered = 0
    for user_id in targets:
        delivered += push_unread_count(storage, connections, user_id)
    return delivered


def hide_unread_badge(connections, user_id):
    """Zero the badge on the user's open sockets without touching read state."""
    payload = unread_count_payload(0)
    payload['hidden'] = True
    return connections.send_to_user(user_id, payload)


def notify_user(storage, connections, user_id, title, message, notif_type='personal', related_id=None):
    notification = storage.create_notification({
        'user_id': user_id,
        'title': title,
        'message': message,
        'type': notif_type,
        'related_id': related_id,
    })
    push_unread_count(storage, connections, user_id)
    return notification


def notify_users(storage, connections, user_ids, title, message, notif_type='personal', related_id=None):
    notifications = []
    for user_id in dict.fromkeys(user_ids):
        notifications.append(
            notify_user(storage, connections, user_id, title, message, notif_type, related_id)
        )
    return notifications


def broadcast_notification(storage, connections, title, message, notif_type='broadcast', related_id=None):
    notification = storage.create_notification({
        'user_id': None,
        'title': title,
        'message': message,
        'type': notif_type,
        'related_id': related_id,
    })
    # Each connected user gets their own count, not a shared one.
    push_unread_counts(storage, connections)
    return notification


def room_info_message(tournament):
    return (
        f"Room ID: {tournament.get('room_id') or 'Not set'}, "
        f"Password: {tournament.get('room_password') or 'Not set'}"
    )


def notify_room_update(storage, connections, tournament):
    """Tell every registrant of ``tournament`` the current room credentials."""
    user_ids = [
        registration['user_id']
        for registration in storage.list_registrations_by_tournament(tournament['id'])
        if registration.get('user_id')
    ]
    notifications = notify_users(
        storage, connections, user_ids,
        title=f"Room Info Updated - {tournament['title']}",
        message=room_info_message(tournament),
        notif_type='tournament',
        related_id=tournament['id'],
    )
    logger.info(
        'Created %s room info notifications for tournament %s',
        len(notifications), tournament['id'],
    )
    return notifications
