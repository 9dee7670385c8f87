"""Application-level cascading deletes, children before parents."""
import logging

logger = logging.getLogger(__name__)


def delete_team_cascade(storage, team_id):
    for member in storage.list_team_members(team_id):
        storage.delete_team_member(member['id'])
    for registration in storage.list_registrations_by_team(team_id):
        storage.delete_registration(registration['id'])
    return storage.delete_team(team_id)


def delete_tournament_cascade(storage, tournament_id):
    for registration in storage.list_registrations_by_tournament(tournament_id):
        storage.delete_registration(registration['id'])
    return storage.delete_tournament(tournament_id)


def delete_notification_cascade(storage, notification_id):
    storage.delete_notification_reads(notification_id)
    return storage.delete_notification(notification_id)


def delete_user_cascade(storage, user):
    user_id = user['id']
    for team in storage.list_teams_by_owner(user_id):
        delete_team_cascade(storage, team['id'])
    for registration in storage.list_registrations_by_user(user_id):
        storage.delete_registration(registration['id'])
    for membership in storage.list_memberships_by_username(user['username']):
        storage.delete_team_member(membership['id'])
    storage.delete_user_notification_reads(user_id)
    for notification in storage.list_user_targeted_notifications(user_id):
        delete_notification_cascade(storage, notification['id'])
    # Tournaments outlive their creator.
    for tournament in storage.list_tournaments_by_creator(user_id):
        storage.update_tournament(tournament['id'], {'created_by': None})
    deleted = storage.delete_user(user_id)
    logger.info('Deleted user %s (%s) with owned teams and registrations', user_id, user['username'])
    return deleted


def cleanup_old_notifications(storage, cutoff):
    """Remove notifications created before ``cutoff``; returns the count."""
    removed = 0
    for notification in storage.list_notifications_older_than(cutoff):
        if delete_notification_cascade(storage, notification['id']):
            removed += 1
    logger.info('Notification cleanup removed %s notifications older than %s', removed, cutoff.isoformat())
    return removed
