"""Administrator user management.

Protected accounts (``is_protected``) cannot be demoted, revoked or
deleted by anyone, and no administrator may demote or delete themselves.
"""
import logging

from flask import Blueprint, request, jsonify
from werkzeug.security import generate_password_hash

from arena.auth_utils import ADMIN_ACCOUNT, USER_ACCOUNT, admin_required, ensure_not_protected, public_user
from arena.errors import AuthorizationError, ConstraintViolation, NotFoundError, ValidationError
from arena.routes.auth import ensure_unique_user_fields
from arena.services.cascade import delete_user_cascade
from arena.storage import get_storage
from arena.validation import (
    USER_ROLES, json_payload, parse_admin_account, parse_role, parse_user_registration,
)

admin_bp = Blueprint('admin', __name__)
logger = logging.getLogger(__name__)


def _get_user_or_404(storage, user_id):
    user = storage.get_user(user_id)
    if not user:
        raise NotFoundError('User not found')
    return user


def _is_self(identity, account, record_id):
    return identity.get('account') == account and identity.get('id') == record_id


@admin_bp.route('/users', methods=['GET'])
@admin_required
def list_users():
    storage = get_storage()
    role = str(request.args.get('role') or '').strip().lower()
    if role:
        if role not in USER_ROLES:
            raise ValidationError('Invalid role filter', {'role': f'must be one of: {", ".join(USER_ROLES)}'})
        users = storage.list_users_by_role(role)
    else:
        users = storage.list_users()
    return jsonify([public_user(user) for user in users])


@admin_bp.route('/users', methods=['POST'])
@admin_required
def create_user():
    data = json_payload()
    parsed = parse_user_registration(data)
    role = parse_role({'role': data.get('role', 'user')})['role']
    storage = get_storage()
    ensure_unique_user_fields(
        storage, email=parsed['email'], phone=parsed['phone'], username=parsed['username'],
    )
    user = storage.create_user({
        'username': parsed['username'],
        'password_hash': generate_password_hash(parsed['password']),
        'email': parsed['email'],
        'phone': parsed['phone'],
        'phone_verified': True,
        'game_id': parsed['game_id'],
        'role': role,
        'is_protected': False,
    })
    logger.info('Admin %s created user %s with role %s', request.current_user['username'], user['username'], role)
    return jsonify(public_user(user)), 201


@admin_bp.route('/users/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id):
    storage = get_storage()
    user = _get_user_or_404(storage, user_id)
    payload = public_user(user)
    payload['teams'] = storage.list_teams_by_owner(user['id'])
    payload['registrations'] = storage.list_registrations_by_user(user['id'])
    return jsonify(payload)


@admin_bp.route('/users/<int:user_id>/role', methods=['PATCH'])
@admin_required
def update_user_role(user_id):
    identity = request.current_user
    storage = get_storage()
    user = _get_user_or_404(storage, user_id)
    role = parse_role(json_payload())['role']

    if role == user['role']:
        return jsonify(public_user(user))
    if role != 'admin':
        if _is_self(identity, USER_ACCOUNT, user['id']):
            logger.warning('Admin %s attempted to demote themselves', identity['username'])
            raise AuthorizationError('You cannot change your own role')
        ensure_not_protected(user, 'demote')

    updated = storage.update_user(user['id'], {'role': role})
    logger.info('Admin %s changed role of %s to %s', identity['username'], user['username'], role)
    return jsonify(public_user(updated))


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    identity = request.current_user
    storage = get_storage()
    user = _get_user_or_404(storage, user_id)
    if _is_self(identity, USER_ACCOUNT, user['id']):
        logger.warning('Admin %s attempted to delete their own account', identity['username'])
        raise AuthorizationError('You cannot delete your own account')
    ensure_not_protected(user, 'delete')

    delete_user_cascade(storage, user)
    logger.info('Admin %s deleted user %s', identity['username'], user['username'])
    return jsonify({'message': 'User deleted successfully'})


@admin_bp.route('/administrators', methods=['GET'])
@admin_required
def list_administrators():
    storage = get_storage()
    return jsonify({
        'users': [public_user(user) for user in storage.list_users_by_role('admin')],
        'accounts': [public_user(admin) for admin in storage.list_admins()],
    })


@admin_bp.route('/administrators', methods=['POST'])
@admin_required
def create_administrator():
    data = parse_admin_account(json_payload())
    storage = get_storage()
    if storage.get_admin_by_username(data['username']):
        raise ConstraintViolation('Username already exists', {'field': 'username'})

    admin = storage.create_admin({
        'username': data['username'],
        'password_hash': generate_password_hash(data['password']),
        'email': data['email'],
        'phone': data['phone'],
        'display_name': data['display_name'],
        'access_level': data['access_level'],
        'is_active': True,
        'is_protected': False,
    })
    logger.info('Admin %s created administrator account %s', request.current_user['username'], admin['username'])
    return jsonify(public_user(admin)), 201


@admin_bp.route('/administrators/<int:user_id>/revoke', methods=['PATCH'])
@admin_required
def revoke_administrator(user_id):
    identity = request.current_user
    storage = get_storage()
    user = _get_user_or_404(storage, user_id)
    if _is_self(identity, USER_ACCOUNT, user['id']):
        logger.warning('Admin %s attempted to revoke their own privileges', identity['username'])
        raise AuthorizationError('You cannot revoke your own admin privileges')
    ensure_not_protected(user, 'revoke')
    if user['role'] != 'admin':
        raise ValidationError('User is not an administrator')

    updated = storage.update_user(user['id'], {'role': 'user'})
    logger.info('Admin %s revoked admin privileges of %s', identity['username'], user['username'])
    return jsonify(public_user(updated))


@admin_bp.route('/administrators/accounts/<int:admin_id>', methods=['DELETE'])
@admin_required
def delete_administrator_account(admin_id):
    identity = request.current_user
    storage = get_storage()
    admin = storage.get_admin(admin_id)
    if not admin:
        raise NotFoundError('Administrator not found')
    if _is_self(identity, ADMIN_ACCOUNT, admin['id']):
        raise AuthorizationError('You cannot delete your own account')
    ensure_not_protected(admin, 'delete')

    storage.delete_admin(admin['id'])
    logger.info('Admin %s deleted administrator account %s', identity['username'], admin['username'])
    return jsonify({'message': 'Administrator deleted successfully'})
