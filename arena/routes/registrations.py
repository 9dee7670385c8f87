import logging

from flask import Blueprint, request, jsonify

from arena.auth_utils import admin_required, is_admin, login_required, require_user_account
from arena.errors import AuthorizationError, NotFoundError
from arena.services.registrations import register_team
from arena.storage import get_storage
from arena.validation import json_payload, parse_registration_request, parse_registration_update

registrations_bp = Blueprint('registrations', __name__)
logger = logging.getLogger(__name__)


def _get_registration_or_404(storage, registration_id):
    registration = storage.get_registration(registration_id)
    if not registration:
        raise NotFoundError('Registration not found')
    return registration


@registrations_bp.route('', methods=['POST'])
@login_required
def create_registration():
    identity = request.current_user
    require_user_account(identity)
    data = parse_registration_request(json_payload())
    registration = register_team(get_storage(), data['tournament_id'], data['team_id'], identity)
    return jsonify(registration), 201


@registrations_bp.route('/user', methods=['GET'])
@login_required
def list_user_registrations():
    require_user_account(request.current_user)
    storage = get_storage()
    results = []
    for registration in storage.list_registrations_by_user(request.current_user['id']):
        tournament = storage.get_tournament(registration['tournament_id'])
        team = storage.get_team(registration['team_id'])
        results.append({
            **registration,
            'tournament_title': tournament['title'] if tournament else None,
            'team_name': team['name'] if team else None,
        })
    return jsonify(results)


@registrations_bp.route('/counts', methods=['GET'])
def registration_counts():
    storage = get_storage()
    counts = {
        str(tournament['id']): storage.count_registrations(tournament['id'])
        for tournament in storage.list_tournaments()
    }
    return jsonify(counts)


@registrations_bp.route('/<int:registration_id>', methods=['PATCH'])
@admin_required
def update_registration(registration_id):
    storage = get_storage()
    registration = _get_registration_or_404(storage, registration_id)
    data = parse_registration_update(json_payload())
    updated = storage.update_registration(registration['id'], data)
    if not updated:
        raise NotFoundError('Registration not found')
    logger.info('Registration %s updated by %s: %s', registration['id'], request.current_user['username'], data)
    return jsonify(updated)


@registrations_bp.route('/<int:registration_id>', methods=['DELETE'])
@login_required
def delete_registration(registration_id):
    identity = request.current_user
    storage = get_storage()
    registration = _get_registration_or_404(storage, registration_id)
    is_registrant = identity.get('account') == 'user' and registration['user_id'] == identity['id']
    if not is_registrant and not is_admin(identity):
        raise AuthorizationError('You can only cancel your own registrations')
    storage.delete_registration(registration['id'])
    return jsonify({'message': 'Registration cancelled'})
