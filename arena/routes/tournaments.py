import logging

from flask import Blueprint, request, jsonify

from arena.auth_utils import admin_required, is_admin, load_current_identity
from arena.errors import NotFoundError, ValidationError
from arena.services.cascade import delete_tournament_cascade
from arena.services.connections import get_connections
from arena.services.notifications import notify_room_update
from arena.storage import get_storage
from arena.validation import (
    TOURNAMENT_STATUSES, json_payload, parse_tournament_create, parse_tournament_update,
    serialize_tournament,
)

tournaments_bp = Blueprint('tournaments', __name__)
logger = logging.getLogger(__name__)


def _get_tournament_or_404(storage, tournament_id):
    tournament = storage.get_tournament(tournament_id)
    if not tournament:
        raise NotFoundError('Tournament not found')
    return tournament


def _room_visibility(storage):
    """Return (is_admin, tournament ids the caller holds a registration in)."""
    identity = load_current_identity()
    if identity is None:
        return False, set()
    if is_admin(identity):
        return True, set()
    if identity.get('account') != 'user':
        return False, set()
    return False, {
        registration['tournament_id']
        for registration in storage.list_registrations_by_user(identity['id'])
    }


@tournaments_bp.route('', methods=['GET'])
def list_tournaments():
    storage = get_storage()
    status = str(request.args.get('status') or '').strip().lower()
    if status:
        if status not in TOURNAMENT_STATUSES:
            raise ValidationError('Invalid status filter', {'status': f'must be one of: {", ".join(TOURNAMENT_STATUSES)}'})
        tournaments = storage.list_tournaments_by_status(status)
    else:
        tournaments = storage.list_tournaments()

    admin_view, registered_ids = _room_visibility(storage)
    return jsonify([
        serialize_tournament(
            tournament,
            reveal_room=admin_view or tournament['id'] in registered_ids,
            registration_count=storage.count_registrations(tournament['id']),
        )
        for tournament in tournaments
    ])


@tournaments_bp.route('/<int:tournament_id>', methods=['GET'])
def get_tournament(tournament_id):
    storage = get_storage()
    tournament = _get_tournament_or_404(storage, tournament_id)
    admin_view, registered_ids = _room_visibility(storage)
    return jsonify(serialize_tournament(
        tournament,
        reveal_room=admin_view or tournament['id'] in registered_ids,
        registration_count=storage.count_registrations(tournament['id']),
    ))


@tournaments_bp.route('', methods=['POST'])
@admin_required
def create_tournament():
    identity = request.current_user
    data = parse_tournament_create(json_payload())
    data['created_by'] = identity['id'] if identity.get('account') == 'user' else None
    tournament = get_storage().create_tournament(data)
    logger.info('Tournament %s (%s) created by %s', tournament['id'], tournament['title'], identity['username'])
    return jsonify(serialize_tournament(tournament, reveal_room=True, registration_count=0)), 201


@tournaments_bp.route('/<int:tournament_id>', methods=['PUT', 'PATCH'])
@admin_required
def update_tournament(tournament_id):
    storage = get_storage()
    existing = _get_tournament_or_404(storage, tournament_id)
    updates = parse_tournament_update(json_payload(), existing)
    if not updates:
        raise ValidationError('No tournament fields to update')

    tournament = storage.update_tournament(existing['id'], updates)
    if not tournament:
        raise NotFoundError('Tournament not found')

    room_changed = any(
        key in updates and updates[key] != existing.get(key)
        for key in ('room_id', 'room_password')
    )
    if room_changed and tournament.get('room_id'):
        notify_room_update(storage, get_connections(), tournament)

    return jsonify(serialize_tournament(
        tournament, reveal_room=True,
        registration_count=storage.count_registrations(tournament['id']),
    ))


@tournaments_bp.route('/<int:tournament_id>', methods=['DELETE'])
@admin_required
def delete_tournament(tournament_id):
    storage = get_storage()
    tournament = _get_tournament_or_404(storage, tournament_id)
    delete_tournament_cascade(storage, tournament['id'])
    logger.info('Tournament %s deleted by %s', tournament['id'], request.current_user['username'])
    return jsonify({'message': 'Tournament deleted successfully'})


@tournaments_bp.route('/<int:tournament_id>/room-notification', methods=['POST'])
@admin_required
def send_room_notification(tournament_id):
    storage = get_storage()
    tournament = _get_tournament_or_404(storage, tournament_id)
    if not tournament.get('room_id') or not tournament.get('room_password'):
        raise ValidationError('Room ID and password must be set before notifying players')
    notifications = notify_room_update(storage, get_connections(), tournament)
    return jsonify({'message': 'Room details sent', 'notified': len(notifications)})


@tournaments_bp.route('/<int:tournament_id>/registrations', methods=['GET'])
def list_tournament_registrations(tournament_id):
    storage = get_storage()
    tournament = _get_tournament_or_404(storage, tournament_id)
    registrations = []
    for registration in storage.list_registrations_by_tournament(tournament['id']):
        team = storage.get_team(registration['team_id'])
        registrations.append({**registration, 'team_name': team['name'] if team else None})
    return jsonify(registrations)
