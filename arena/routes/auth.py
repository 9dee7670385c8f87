import logging

from flask import Blueprint, request, jsonify
from werkzeug.security import generate_password_hash, check_password_hash

from arena.auth_utils import (
    ADMIN_ACCOUNT, USER_ACCOUNT, login_required, login_user, logout_user,
    public_user, require_user_account,
)
from arena.errors import AuthenticationError, ConstraintViolation
from arena.storage import get_storage
from arena.time_utils import utcnow_naive
from arena.validation import json_payload, parse_login, parse_profile_update, parse_user_registration

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


def ensure_unique_user_fields(storage, email=None, phone=None, username=None, exclude_id=None):
    lookups = (
        ('username', username, storage.get_user_by_username, 'Username already exists'),
        ('email', email, storage.get_user_by_email, 'Email already exists'),
        ('phone', phone, storage.get_user_by_phone, 'Phone number already exists'),
    )
    for field, value, lookup, message in lookups:
        if not value:
            continue
        existing = lookup(value)
        if existing and existing['id'] != exclude_id:
            raise ConstraintViolation(message, {'field': field})


@auth_bp.route('/register', methods=['POST'])
def register():
    data = parse_user_registration(json_payload())
    storage = get_storage()
    ensure_unique_user_fields(
        storage, email=data['email'], phone=data['phone'], username=data['username'],
    )

    user = storage.create_user({
        'username': data['username'],
        'password_hash': generate_password_hash(data['password']),
        'email': data['email'],
        'phone': data['phone'],
        'phone_verified': True,
        'game_id': data['game_id'],
        'role': 'user',
        'is_protected': False,
    })
    login_user(USER_ACCOUNT, user)
    logger.info('Registered user %s (%s)', user['id'], user['username'])
    return jsonify(public_user(user)), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = parse_login(json_payload())
    user = get_storage().get_user_by_username(data['username'])
    if not user or not check_password_hash(user['password_hash'], str(data['password'])):
        raise AuthenticationError('Invalid username or password')

    login_user(USER_ACCOUNT, user)
    return jsonify(public_user(user))


@auth_bp.route('/admin/login', methods=['POST'])
def admin_login():
    data = parse_login(json_payload())
    storage = get_storage()
    admin = storage.get_admin_by_username(data['username'])
    if not admin or not check_password_hash(admin['password_hash'], str(data['password'])):
        raise AuthenticationError('Invalid username or password')
    if not admin.get('is_active', True):
        raise AuthenticationError('Administrator account is disabled')

    admin = storage.update_admin(admin['id'], {'last_login': utcnow_naive()}) or admin
    login_user(ADMIN_ACCOUNT, admin)
    logger.info('Administrator %s logged in', admin['username'])
    identity = public_user(admin)
    identity['role'] = 'admin'
    identity['account'] = ADMIN_ACCOUNT
    return jsonify(identity)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/user', methods=['GET'])
@login_required
def get_current_user():
    return jsonify(request.current_user)


@auth_bp.route('/user', methods=['PATCH'])
@login_required
def update_current_user():
    identity = request.current_user
    require_user_account(identity)
    data = parse_profile_update(json_payload())
    storage = get_storage()
    ensure_unique_user_fields(
        storage, email=data.get('email'), phone=data.get('phone'), exclude_id=identity['id'],
    )

    updates = {key: value for key, value in data.items() if key != 'password'}
    if 'password' in data:
        updates['password_hash'] = generate_password_hash(data['password'])
    if not updates:
        return jsonify(identity)

    user = storage.update_user(identity['id'], updates)
    if not user:
        raise AuthenticationError('Authentication required')
    return jsonify(public_user(user))
