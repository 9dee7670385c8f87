"""Tournament registration admission.

All checks read through the storage interface before the insert. On the
supabase backend the check and the insert are separate requests, so two
concurrent registrations of the same team can both pass the check; the
unique index on (tournament_id, team_id) rejects the second insert.
"""
import logging

from arena.errors import (
    AuthorizationError, ConstraintViolation, NotFoundError, ValidationError,
)

logger = logging.getLogger(__name__)

MIN_TEAM_SIZE = {
    'solo': 0,
    'duo': 2,
    'squad': 4,
}


def required_team_size(game_mode):
    return MIN_TEAM_SIZE.get(str(game_mode or 'squad').strip().lower(), MIN_TEAM_SIZE['squad'])


def check_team_size(game_mode, member_count):
    """Raise ValidationError when the roster is below the mode's minimum."""
    mode = str(game_mode or 'squad').strip().lower()
    required = required_team_size(mode)
    if member_count < required:
        raise ValidationError(
            f'{mode.capitalize()} tournaments require at least {required} team members',
            {'current_size': member_count, 'required_size': required},
        )


def is_team_participant(storage, team, user):
    if team['owner_id'] == user['id']:
        return True
    return any(
        member['username'] == user['username']
        for member in storage.list_team_members(team['id'])
    )


def _resolve_solo_team(storage, user, team_id):
    if team_id is None:
        owned = storage.list_teams_by_owner(user['id'])
        if not owned:
            raise ValidationError('Create a team before registering for solo tournaments')
        return owned[0]
    team = storage.get_team(team_id)
    if not team:
        raise NotFoundError('Team not found')
    return team


def register_team(storage, tournament_id, team_id, user):
    """Admit ``team_id`` into ``tournament_id`` on behalf of ``user``."""
    tournament = storage.get_tournament(tournament_id)
    if not tournament:
        raise NotFoundError('Tournament not found')

    game_mode = str(tournament.get('game_mode') or 'squad').lower()

    if game_mode == 'solo':
        team = _resolve_solo_team(storage, user, team_id)
        if not is_team_participant(storage, team, user):
            raise AuthorizationError('You are not a member of this team')
        already = any(
            reg['tournament_id'] == tournament['id']
            for reg in storage.list_registrations_by_user(user['id'])
        )
        if already:
            raise ConstraintViolation('You are already registered for this tournament')
    else:
        if team_id is None:
            raise ValidationError('teamId is required', {'teamId': 'required'})
        team = storage.get_team(team_id)
        if not team:
            raise NotFoundError('Team not found')
        if not is_team_participant(storage, team, user):
            raise AuthorizationError('You are not a member of this team')
        check_team_size(game_mode, storage.count_team_members(team['id']))

    registered = storage.count_registrations(tournament['id'])
    if registered >= int(tournament['total_slots']):
        raise ValidationError('Tournament is already full')

    if storage.check_registration(tournament['id'], team['id']):
        raise ConstraintViolation('Team is already registered for this tournament')

    registration = storage.create_registration({
        'tournament_id': tournament['id'],
        'team_id': team['id'],
        'user_id': user['id'],
        'slot': registered + 1,
        'status': 'pending',
        'payment_status': 'pending',
    })
    logger.info(
        'Team %s registered for tournament %s by user %s (slot %s)',
        team['id'], tournament['id'], user['id'], registration.get('slot'),
    )
    return registration
