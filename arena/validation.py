"""Request payload parsing and response shaping for the route layer.

Parsers accept both the camelCase keys sent by the web client and the
snake_case column names, and return dicts keyed by column name ready for
the storage layer. Every failure raises ``ValidationError`` with a
field-keyed ``details`` dict.
"""
import re

from flask import request

from arena.errors import ValidationError
from arena.time_utils import parse_iso_datetime

GAME_TYPES = ('BGMI', 'COD', 'FREEFIRE')
TEAM_SIZE_MODES = ('solo', 'duo', 'squad')
TOURNAMENT_STATUSES = ('upcoming', 'live', 'completed')
MEMBER_ROLES = ('captain', 'member', 'substitute')
REGISTRATION_STATUSES = ('pending', 'approved', 'rejected')
PAYMENT_STATUSES = ('pending', 'paid', 'failed', 'refunded')
USER_ROLES = ('user', 'admin')
ACCESS_LEVELS = ('standard', 'super', 'owner')
NOTIFICATION_TYPES = ('general', 'tournament', 'system', 'personal', 'broadcast')

_EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
_PHONE_PATTERN = re.compile(r'^\+?\d{10,15}$')
_MISSING = object()


def json_payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Invalid JSON payload')
    return data


def _pick(data, *keys):
    for key in keys:
        if key in data:
            return data[key]
    return _MISSING


def _text(data, keys, field, required=False, max_len=None, errors=None):
    raw = _pick(data, *keys)
    if raw is _MISSING or raw is None:
        if required:
            errors[field] = 'required'
        return _MISSING
    value = str(raw).strip()
    if required and not value:
        errors[field] = 'required'
        return _MISSING
    if max_len and len(value) > max_len:
        errors[field] = f'must be at most {max_len} characters'
        return _MISSING
    return value


def _int(data, keys, field, required=False, minimum=None, errors=None):
    raw = _pick(data, *keys)
    if raw is _MISSING or raw is None or raw == '':
        if required:
            errors[field] = 'required'
        return _MISSING
    if isinstance(raw, bool):
        errors[field] = 'must be an integer'
        return _MISSING
    try:
        value = int(raw)
    except (TypeError, ValueError):
        errors[field] = 'must be an integer'
        return _MISSING
    if isinstance(raw, float) and raw != value:
        errors[field] = 'must be an integer'
        return _MISSING
    if minimum is not None and value < minimum:
        errors[field] = f'must be at least {minimum}'
        return _MISSING
    return value


def _bool(data, keys, field, errors=None):
    raw = _pick(data, *keys)
    if raw is _MISSING or raw is None:
        return _MISSING
    if isinstance(raw, bool):
        return raw
    normalized = str(raw).strip().lower()
    if normalized in {'1', 'true', 'yes', 'on'}:
        return True
    if normalized in {'0', 'false', 'no', 'off'}:
        return False
    errors[field] = 'must be a boolean'
    return _MISSING


def _choice(data, keys, field, choices, required=False, errors=None, upper=False):
    value = _text(data, keys, field, required=required, errors=errors)
    if value is _MISSING:
        return _MISSING
    value = value.upper() if upper else value.lower()
    if value not in choices:
        errors[field] = f'must be one of: {", ".join(choices)}'
        return _MISSING
    return value


def _finish(values, errors, message='Invalid request data'):
    if errors:
        raise ValidationError(message, errors)
    return {key: value for key, value in values.items() if value is not _MISSING}


def password_complexity_error(raw_password):
    password = str(raw_password or '')
    if len(password) < 8:
        return 'Password must be at least 8 characters long'
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return 'Password must include at least one letter and one number'
    return None


def _check_password(password, errors):
    if password is _MISSING:
        return
    complexity_error = password_complexity_error(password)
    if complexity_error:
        errors['password'] = complexity_error


def _check_email(email, errors):
    if email is not _MISSING and not _EMAIL_PATTERN.match(email):
        errors['email'] = 'must be a valid email address'


def _normalize_phone(phone, errors):
    if phone is _MISSING:
        return phone
    digits = re.sub(r'[\s\-()]', '', phone)
    if not _PHONE_PATTERN.match(digits):
        errors['phone'] = 'must be 10 to 15 digits'
        return _MISSING
    return digits


# ── Accounts ──────────────────────────────────────────────────────────

def parse_user_registration(data):
    errors = {}
    values = {
        'username': _text(data, ('username',), 'username', required=True, max_len=80, errors=errors),
        'password': _text(data, ('password',), 'password', required=True, errors=errors),
        'email': _text(data, ('email',), 'email', required=True, max_len=120, errors=errors),
        'phone': _text(data, ('phone',), 'phone', required=True, errors=errors),
        'game_id': _text(data, ('gameId', 'game_id'), 'game_id', required=True, max_len=80, errors=errors),
    }
    _check_password(values['password'], errors)
    if values['email'] is not _MISSING:
        values['email'] = values['email'].lower()
    _check_email(values['email'], errors)
    values['phone'] = _normalize_phone(values['phone'], errors)
    return _finish(values, errors)


def parse_login(data):
    errors = {}
    values = {
        'username': _text(data, ('username',), 'username', required=True, errors=errors),
        'password': _pick(data, 'password'),
    }
    if values['password'] is _MISSING or not str(values['password'] or ''):
        errors['password'] = 'required'
    return _finish(values, errors, 'Username and password are required')


def parse_profile_update(data):
    errors = {}
    values = {
        'email': _text(data, ('email',), 'email', max_len=120, errors=errors),
        'phone': _text(data, ('phone',), 'phone', errors=errors),
        'game_id': _text(data, ('gameId', 'game_id'), 'game_id', max_len=80, errors=errors),
        'password': _text(data, ('password',), 'password', errors=errors),
    }
    if values['email'] is not _MISSING:
        values['email'] = values['email'].lower()
    _check_email(values['email'], errors)
    values['phone'] = _normalize_phone(values['phone'], errors)
    _check_password(values['password'], errors)
    if values['game_id'] == '':
        errors['game_id'] = 'required'
    return _finish(values, errors)


def parse_admin_account(data):
    errors = {}
    values = {
        'username': _text(data, ('username',), 'username', required=True, max_len=80, errors=errors),
        'password': _text(data, ('password',), 'password', required=True, errors=errors),
        'email': _text(data, ('email',), 'email', required=True, max_len=120, errors=errors),
        'phone': _text(data, ('phone',), 'phone', required=True, errors=errors),
        'display_name': _text(data, ('displayName', 'display_name'), 'display_name', max_len=120, errors=errors),
        'access_level': _choice(
            data, ('accessLevel', 'access_level'), 'access_level', ACCESS_LEVELS, errors=errors,
        ),
    }
    _check_password(values['password'], errors)
    if values['email'] is not _MISSING:
        values['email'] = values['email'].lower()
    _check_email(values['email'], errors)
    values['phone'] = _normalize_phone(values['phone'], errors)
    parsed = _finish(values, errors)
    parsed.setdefault('display_name', parsed['username'])
    parsed.setdefault('access_level', 'standard')
    return parsed


def parse_role(data):
    errors = {}
    values = {'role': _choice(data, ('role',), 'role', USER_ROLES, required=True, errors=errors)}
    return _finish(values, errors)


# ── Teams ─────────────────────────────────────────────────────────────

def parse_team(data, partial=False):
    errors = {}
    values = {
        'name': _text(data, ('name',), 'name', required=not partial, max_len=120, errors=errors),
        'description': _text(data, ('description',), 'description', max_len=2000, errors=errors),
        'game_type': _choice(
            data, ('gameType', 'game_type'), 'game_type', GAME_TYPES,
            required=not partial, errors=errors, upper=True,
        ),
    }
    parsed = _finish(values, errors)
    if not partial:
        parsed.setdefault('description', '')
    return parsed


def parse_invite_code(raw_code):
    from arena.services.invite_codes import is_valid_invite_code
    code = str(raw_code or '').strip()
    if not is_valid_invite_code(code):
        raise ValidationError('Invite code must be 6 digits', {'invite_code': 'must be 6 digits'})
    return code


def parse_team_member(data, partial=False):
    errors = {}
    values = {
        'username': _text(data, ('username',), 'username', required=not partial, max_len=80, errors=errors),
        'game_id': _text(data, ('gameId', 'game_id'), 'game_id', required=not partial, max_len=80, errors=errors),
        'role': _choice(data, ('role',), 'role', MEMBER_ROLES, errors=errors),
    }
    username = values['username']
    game_id = values['game_id']
    if username is not _MISSING and game_id is not _MISSING and username == game_id:
        errors['game_id'] = 'must differ from username'
    parsed = _finish(values, errors)
    if not partial:
        parsed.setdefault('role', 'member')
    return parsed


# ── Tournaments ───────────────────────────────────────────────────────

def _tournament_values(data, creating, errors):
    values = {
        'title': _text(data, ('title',), 'title', required=creating, max_len=200, errors=errors),
        'description': _text(data, ('description',), 'description', errors=errors),
        'map_type': _text(data, ('mapType', 'map_type'), 'map_type', required=creating, max_len=50, errors=errors),
        'game_mode': _choice(
            data, ('gameMode', 'game_mode', 'teamType', 'team_type'), 'game_mode',
            TEAM_SIZE_MODES, errors=errors,
        ),
        'game_type': _choice(
            data, ('gameType', 'game_type'), 'game_type', GAME_TYPES, errors=errors, upper=True,
        ),
        'is_paid': _bool(data, ('isPaid', 'is_paid'), 'is_paid', errors=errors),
        'entry_fee': _int(data, ('entryFee', 'entry_fee'), 'entry_fee', minimum=0, errors=errors),
        'prize_pool': _int(data, ('prizePool', 'prize_pool'), 'prize_pool', minimum=0, errors=errors),
        # ``slots`` is the deprecated spelling of ``total_slots``.
        'total_slots': _int(
            data, ('totalSlots', 'total_slots', 'slots'), 'total_slots',
            required=creating, minimum=1, errors=errors,
        ),
        'room_id': _text(data, ('roomId', 'room_id'), 'room_id', max_len=80, errors=errors),
        'room_password': _text(
            data, ('roomPassword', 'room_password', 'password'), 'room_password',
            max_len=80, errors=errors,
        ),
        'status': _choice(data, ('status',), 'status', TOURNAMENT_STATUSES, errors=errors),
    }

    raw_date = _pick(data, 'date')
    if raw_date is _MISSING or raw_date in (None, ''):
        if creating:
            errors['date'] = 'required'
        values['date'] = _MISSING
    else:
        parsed_date = parse_iso_datetime(raw_date)
        if parsed_date is None:
            errors['date'] = 'must be an ISO-8601 date'
            values['date'] = _MISSING
        else:
            values['date'] = parsed_date
    return values


def _check_live_room(merged, errors):
    if merged.get('status') != 'live':
        return
    if not merged.get('room_id'):
        errors['room_id'] = 'required when status is live'
    if not merged.get('room_password'):
        errors['room_password'] = 'required when status is live'


def parse_tournament_create(data):
    errors = {}
    values = _tournament_values(data, creating=True, errors=errors)
    parsed = {key: value for key, value in values.items() if value is not _MISSING}
    parsed.setdefault('description', '')
    parsed.setdefault('game_mode', 'squad')
    parsed.setdefault('game_type', 'BGMI')
    parsed.setdefault('is_paid', False)
    parsed.setdefault('entry_fee', 0)
    parsed.setdefault('prize_pool', 0)
    parsed.setdefault('status', 'upcoming')
    _check_live_room(parsed, errors)
    if errors:
        raise ValidationError('Invalid tournament data', errors)
    return parsed


def parse_tournament_update(data, existing):
    """Validate a partial update against the merged result with ``existing``."""
    errors = {}
    values = _tournament_values(data, creating=False, errors=errors)
    updates = {key: value for key, value in values.items() if value is not _MISSING}
    if 'room_id' in updates and updates['room_id'] == '':
        updates['room_id'] = None
    if 'room_password' in updates and updates['room_password'] == '':
        updates['room_password'] = None
    _check_live_room({**existing, **updates}, errors)
    if errors:
        raise ValidationError('Invalid tournament data', errors)
    return updates


# ── Registrations ─────────────────────────────────────────────────────

def parse_registration_request(data):
    errors = {}
    values = {
        'tournament_id': _int(
            data, ('tournamentId', 'tournament_id'), 'tournament_id',
            required=True, minimum=1, errors=errors,
        ),
        'team_id': _int(data, ('teamId', 'team_id'), 'team_id', minimum=1, errors=errors),
    }
    parsed = _finish(values, errors)
    parsed.setdefault('team_id', None)
    return parsed


def parse_registration_update(data):
    errors = {}
    values = {
        'status': _choice(data, ('status',), 'status', REGISTRATION_STATUSES, errors=errors),
        'payment_status': _choice(
            data, ('paymentStatus', 'payment_status'), 'payment_status',
            PAYMENT_STATUSES, errors=errors,
        ),
        'slot': _int(data, ('slot',), 'slot', minimum=1, errors=errors),
    }
    parsed = _finish(values, errors)
    if not parsed:
        raise ValidationError('No registration fields to update')
    return parsed


# ── Notifications ─────────────────────────────────────────────────────

def parse_notification(data):
    """Parse an admin notification; returns (fields, target_user_ids or None for broadcast)."""
    errors = {}
    values = {
        'title': _text(data, ('title',), 'title', required=True, max_len=200, errors=errors),
        'message': _text(data, ('message',), 'message', required=True, errors=errors),
        'type': _choice(data, ('type',), 'type', NOTIFICATION_TYPES, errors=errors),
        'related_id': _int(data, ('relatedId', 'related_id'), 'related_id', errors=errors),
    }
    target_ids = None
    broadcast = _bool(data, ('isBroadcast', 'is_broadcast', 'broadcast'), 'broadcast', errors=errors)
    raw_ids = _pick(data, 'userIds', 'user_ids')
    single = _int(data, ('userId', 'user_id'), 'user_id', minimum=1, errors=errors)
    if raw_ids is not _MISSING and raw_ids is not None:
        if not isinstance(raw_ids, list) or not raw_ids:
            errors['user_ids'] = 'must be a non-empty list of user ids'
        else:
            try:
                target_ids = [int(item) for item in raw_ids]
            except (TypeError, ValueError):
                errors['user_ids'] = 'must be a non-empty list of user ids'
    elif single is not _MISSING:
        target_ids = [single]
    if broadcast is True and target_ids:
        errors['broadcast'] = 'cannot target specific users'
    elif broadcast is False and target_ids is None and 'user_id' not in errors:
        errors['user_ids'] = 'required for targeted notifications'

    parsed = _finish(values, errors)
    parsed.setdefault('type', 'broadcast' if target_ids is None else 'personal')
    return parsed, target_ids


# ── Response shaping ──────────────────────────────────────────────────

def serialize_tournament(tournament, reveal_room=False, registration_count=None):
    payload = dict(tournament)
    # ``slots`` mirrors ``total_slots`` for older clients.
    payload['slots'] = payload.get('total_slots')
    if not reveal_room:
        payload['room_id'] = None
        payload['room_password'] = None
    if registration_count is not None:
        payload['registration_count'] = registration_count
    return payload
