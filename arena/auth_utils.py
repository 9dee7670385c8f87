import logging
from functools import wraps

from flask import request, session

from arena.errors import AuthenticationError, AuthorizationError
from arena.storage import get_storage

logger = logging.getLogger(__name__)

USER_ACCOUNT = 'user'
ADMIN_ACCOUNT = 'admin'

_PRIVATE_FIELDS = ('password_hash',)


def public_user(record):
    """Copy of a user or admin record without credential columns."""
    if record is None:
        return None
    return {key: value for key, value in record.items() if key not in _PRIVATE_FIELDS}


def login_user(account, record):
    session.clear()
    session.permanent = True
    session['user_id'] = record['id']
    session['account'] = account


def logout_user():
    session.clear()


def _identity_from_admin(admin):
    identity = public_user(admin)
    identity['role'] = 'admin'
    identity['account'] = ADMIN_ACCOUNT
    return identity


def load_current_identity():
    """Resolve the session cookie to a user or admin identity dict, or None."""
    user_id = session.get('user_id')
    if user_id is None:
        return None
    storage = get_storage()
    if session.get('account') == ADMIN_ACCOUNT:
        admin = storage.get_admin(user_id)
        if not admin or not admin.get('is_active', True):
            return None
        return _identity_from_admin(admin)
    user = storage.get_user(user_id)
    if not user:
        return None
    identity = public_user(user)
    identity['account'] = USER_ACCOUNT
    return identity


def is_admin(identity):
    return bool(identity) and identity.get('role') == 'admin'


def login_required(f):
    """Decorator to require a session on a route."""
    @wraps(f)
    def decorated(*args, **kwargs):
        identity = load_current_identity()
        if identity is None:
            if session.get('user_id') is not None:
                session.clear()
            raise AuthenticationError('Authentication required')
        request.current_user = identity
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator to require an authenticated admin on a route."""
    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not is_admin(request.current_user):
            raise AuthorizationError('Admin access required')
        return f(*args, **kwargs)
    return decorated


def require_user_account(identity):
    if identity.get('account') != USER_ACCOUNT:
        raise AuthorizationError('Administrator accounts cannot perform this action')


def ensure_team_control(team, identity):
    if team['owner_id'] == identity.get('id') and identity.get('account') == USER_ACCOUNT:
        return
    if is_admin(identity):
        return
    raise AuthorizationError('Only the team owner can manage this team')


def ensure_not_protected(record, action='modify'):
    if record and record.get('is_protected'):
        logger.warning(
            'Refused to %s protected account %s (%s)',
            action, record.get('id'), record.get('username'),
        )
        raise AuthorizationError(f'Cannot {action} a protected account')
