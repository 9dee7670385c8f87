import logging

from flask import Blueprint, request, jsonify, current_app

from arena.auth_utils import ensure_team_control, is_admin, login_required, require_user_account
from arena.errors import AuthorizationError, ConstraintViolation, NotFoundError, ValidationError
from arena.services.cascade import delete_team_cascade
from arena.services.invite_codes import generate_invite_code
from arena.services.registrations import is_team_participant
from arena.storage import get_storage
from arena.validation import json_payload, parse_invite_code, parse_team, parse_team_member

teams_bp = Blueprint('teams', __name__)
logger = logging.getLogger(__name__)


def _get_team_or_404(storage, team_id):
    team = storage.get_team(team_id)
    if not team:
        raise NotFoundError('Team not found')
    return team


def _team_payload(storage, team, include_members=False):
    payload = dict(team)
    members = storage.list_team_members(team['id'])
    payload['member_count'] = len(members)
    if include_members:
        payload['members'] = members
    return payload


def _can_view_team(storage, team, identity):
    if is_admin(identity):
        return True
    return is_team_participant(storage, team, identity)


def _find_member(storage, team_id, username):
    for member in storage.list_team_members(team_id):
        if member['username'] == username:
            return member
    return None


def _ensure_unique_name(storage, name, exclude_id=None):
    existing = storage.get_team_by_name(name)
    if existing and existing['id'] != exclude_id:
        raise ConstraintViolation('Team name already exists', {'field': 'name'})


def _ensure_room_on_roster(storage, team):
    limit = current_app.config.get('MAX_TEAM_MEMBERS', 5)
    if storage.count_team_members(team['id']) >= limit:
        raise ValidationError(f'Team cannot have more than {limit} members')


@teams_bp.route('', methods=['GET'])
@login_required
def list_teams():
    identity = request.current_user
    storage = get_storage()
    if is_admin(identity) and request.args.get('scope') == 'all':
        teams = storage.list_teams()
    elif identity.get('account') != 'user':
        teams = []
    else:
        teams = list(storage.list_teams_by_owner(identity['id']))
        seen = {team['id'] for team in teams}
        for membership in storage.list_memberships_by_username(identity['username']):
            if membership['team_id'] in seen:
                continue
            team = storage.get_team(membership['team_id'])
            if team:
                teams.append(team)
                seen.add(team['id'])
    return jsonify([_team_payload(storage, team) for team in teams])


@teams_bp.route('', methods=['POST'])
@login_required
def create_team():
    identity = request.current_user
    require_user_account(identity)
    data = parse_team(json_payload())
    storage = get_storage()

    max_teams = current_app.config.get('MAX_TEAMS_PER_OWNER', 3)
    if len(storage.list_teams_by_owner(identity['id'])) >= max_teams:
        raise ValidationError(f'You can only create up to {max_teams} teams')
    _ensure_unique_name(storage, data['name'])

    team = storage.create_team({
        'name': data['name'],
        'description': data.get('description', ''),
        'game_type': data['game_type'],
        'owner_id': identity['id'],
        'invite_code': generate_invite_code(
            storage, max_attempts=current_app.config.get('INVITE_CODE_MAX_ATTEMPTS', 10),
        ),
    })
    storage.add_team_member({
        'team_id': team['id'],
        'username': identity['username'],
        'game_id': identity['game_id'],
        'role': 'captain',
    })
    logger.info('User %s created team %s (%s)', identity['id'], team['id'], team['name'])
    return jsonify(_team_payload(storage, team, include_members=True)), 201


@teams_bp.route('/code/<code>', methods=['GET'])
@login_required
def get_team_by_code(code):
    storage = get_storage()
    team = storage.get_team_by_invite_code(parse_invite_code(code))
    if not team:
        raise NotFoundError('No team found with this invite code')
    return jsonify(_team_payload(storage, team))


@teams_bp.route('/join', methods=['POST'])
@login_required
def join_team():
    identity = request.current_user
    require_user_account(identity)
    data = json_payload()
    code = parse_invite_code(data.get('inviteCode', data.get('invite_code')))
    storage = get_storage()

    team = storage.get_team_by_invite_code(code)
    if not team:
        raise NotFoundError('No team found with this invite code')
    if _find_member(storage, team['id'], identity['username']):
        raise ConstraintViolation('You are already a member of this team')
    _ensure_room_on_roster(storage, team)

    member = storage.add_team_member({
        'team_id': team['id'],
        'username': identity['username'],
        'game_id': identity['game_id'],
        'role': 'member',
    })
    logger.info('User %s joined team %s by invite code', identity['id'], team['id'])
    return jsonify({'team': _team_payload(storage, team), 'member': member}), 201


@teams_bp.route('/<int:team_id>', methods=['GET'])
@login_required
def get_team(team_id):
    storage = get_storage()
    team = _get_team_or_404(storage, team_id)
    if not _can_view_team(storage, team, request.current_user):
        raise AuthorizationError('You are not a member of this team')
    return jsonify(_team_payload(storage, team, include_members=True))


@teams_bp.route('/<int:team_id>', methods=['PATCH'])
@login_required
def update_team(team_id):
    storage = get_storage()
    team = _get_team_or_404(storage, team_id)
    ensure_team_control(team, request.current_user)
    data = parse_team(json_payload(), partial=True)
    if 'name' in data:
        _ensure_unique_name(storage, data['name'], exclude_id=team['id'])
    if data:
        team = storage.update_team(team['id'], data) or team
    return jsonify(_team_payload(storage, team))


@teams_bp.route('/<int:team_id>', methods=['DELETE'])
@login_required
def delete_team(team_id):
    storage = get_storage()
    team = _get_team_or_404(storage, team_id)
    ensure_team_control(team, request.current_user)
    delete_team_cascade(storage, team['id'])
    logger.info('Team %s deleted by %s', team['id'], request.current_user['username'])
    return jsonify({'message': 'Team deleted successfully'})


@teams_bp.route('/<int:team_id>/members', methods=['GET'])
@login_required
def list_members(team_id):
    storage = get_storage()
    team = _get_team_or_404(storage, team_id)
    if not _can_view_team(storage, team, request.current_user):
        raise AuthorizationError('You are not a member of this team')
    return jsonify(storage.list_team_members(team['id']))


@teams_bp.route('/<int:team_id>/members', methods=['POST'])
@login_required
def add_member(team_id):
    storage = get_storage()
    team = _get_team_or_404(storage, team_id)
    ensure_team_control(team, request.current_user)
    data = parse_team_member(json_payload())

    if _find_member(storage, team['id'], data['username']):
        raise ConstraintViolation('Member is already on this team', {'field': 'username'})
    if not storage.get_user_by_username(data['username']):
        raise NotFoundError(
            f"User '{data['username']}' does not exist. They need to sign up first.",
            {'username': 'unknown user'},
        )
    _ensure_room_on_roster(storage, team)

    member = storage.add_team_member({'team_id': team['id'], **data})
    return jsonify(member), 201


@teams_bp.route('/members/<int:member_id>', methods=['PATCH'])
@login_required
def update_member(member_id):
    storage = get_storage()
    member = storage.get_team_member(member_id)
    if not member:
        raise NotFoundError('Team member not found')
    ensure_team_control(_get_team_or_404(storage, member['team_id']), request.current_user)
    data = parse_team_member(json_payload(), partial=True)
    data.pop('username', None)
    if 'game_id' in data and data['game_id'] == member['username']:
        raise ValidationError('Invalid request data', {'game_id': 'must differ from username'})
    if data:
        member = storage.update_team_member(member['id'], data) or member
    return jsonify(member)


@teams_bp.route('/members/<int:member_id>', methods=['DELETE'])
@login_required
def remove_member(member_id):
    storage = get_storage()
    member = storage.get_team_member(member_id)
    if not member:
        raise NotFoundError('Team member not found')
    ensure_team_control(_get_team_or_404(storage, member['team_id']), request.current_user)
    storage.delete_team_member(member['id'])
    return jsonify({'message': 'Team member removed successfully'})
