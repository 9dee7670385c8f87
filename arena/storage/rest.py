"""
Supabase implementation of the storage interface.

Talks to the PostgREST API through the supabase client. There are no
client-side transactions: a check followed by an insert (e.g. registration)
can race with another request. The unique indexes on the Supabase tables are
the backstop and surface here as ConstraintViolation.
"""

import logging
import re
from datetime import datetime
from functools import wraps
from typing import Optional, List

import httpx
from postgrest.exceptions import APIError
from supabase import create_client, Client

from arena.errors import ConstraintViolation, UpstreamError
from arena.storage.base import Storage

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = '23505'
_FOREIGN_KEY_VIOLATION = '23503'
_KEY_DETAIL_PATTERN = re.compile(r'Key \(([^)]+)\)')

_DUPLICATE_MESSAGES = {
    'tournament_id, team_id': 'Team is already registered for this tournament',
    'user_id, notification_id': 'Notification already marked as read',
    'team_id, username': 'Member is already on this team',
    'invite_code': 'Invite code already in use',
    'username': 'Username already exists',
    'email': 'Email already exists',
    'phone': 'Phone number already exists',
    'name': 'Team name already exists',
}


def _describe_api_error(exc: APIError):
    detail = ' '.join(str(part) for part in (exc.details, exc.message) if part)
    match = _KEY_DETAIL_PATTERN.search(detail)
    if match:
        columns = match.group(1).strip()
        message = _DUPLICATE_MESSAGES.get(columns)
        if message:
            return message, {'field': columns}
    return 'Record conflicts with an existing record', None


def _translate_errors(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                message, details = _describe_api_error(exc)
                raise ConstraintViolation(message, details) from exc
            if exc.code == _FOREIGN_KEY_VIOLATION:
                raise ConstraintViolation('Referenced record does not exist') from exc
            logger.error('Supabase API error in %s: code=%s message=%s', func.__name__, exc.code, exc.message)
            raise UpstreamError(f'{exc.code}: {exc.message}') from exc
        except httpx.HTTPError as exc:
            logger.error('Supabase transport error in %s: %s', func.__name__, exc)
            raise UpstreamError(str(exc)) from exc
    return wrapper


def _serialize(data: dict) -> dict:
    payload = {}
    for key, value in data.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        payload[key] = value
    return payload


def _sort_newest_first(rows: List[dict]) -> List[dict]:
    return sorted(rows, key=lambda row: (str(row.get('created_at') or ''), row['id']), reverse=True)


class SupabaseStorage(Storage):
    """Supabase REST storage"""

    name = 'supabase'

    def __init__(self, client: Optional[Client] = None, url: str = '', key: str = ''):
        if client is None:
            if not url or not key:
                raise RuntimeError('SUPABASE_URL and SUPABASE_SERVICE_KEY must be set for the supabase storage backend')
            client = create_client(url, key)
        self._client = client

    def _table(self, name):
        return self._client.table(name)

    def _get_by(self, table, column, value) -> Optional[dict]:
        response = self._table(table).select('*').eq(column, value).limit(1).execute()
        return dict(response.data[0]) if response.data else None

    def _list_by(self, table, column=None, value=None, order='id', desc=False) -> List[dict]:
        query = self._table(table).select('*')
        if column is not None:
            query = query.eq(column, value)
        response = query.order(order, desc=desc).execute()
        return [dict(row) for row in response.data or []]

    def _count_by(self, table, column, value) -> int:
        response = self._table(table).select('id', count='exact').eq(column, value).limit(1).execute()
        return response.count or 0

    def _insert(self, table, data) -> dict:
        response = self._table(table).insert(_serialize(data)).execute()
        return dict(response.data[0])

    def _update(self, table, row_id, changes) -> Optional[dict]:
        changes = {key: value for key, value in changes.items() if key != 'id'}
        if not changes:
            return self._get_by(table, 'id', row_id)
        response = self._table(table).update(_serialize(changes)).eq('id', row_id).execute()
        return dict(response.data[0]) if response.data else None

    def _delete(self, table, row_id) -> bool:
        response = self._table(table).delete().eq('id', row_id).execute()
        return bool(response.data)

    # ── Users ─────────────────────────────────────────────────────────

    @_translate_errors
    def get_user(self, user_id):
        return self._get_by('users', 'id', user_id)

    @_translate_errors
    def get_user_by_username(self, username):
        return self._get_by('users', 'username', username)

    @_translate_errors
    def get_user_by_email(self, email):
        return self._get_by('users', 'email', email)

    @_translate_errors
    def get_user_by_phone(self, phone):
        return self._get_by('users', 'phone', phone)

    @_translate_errors
    def list_users(self):
        return self._list_by('users')

    @_translate_errors
    def list_users_by_role(self, role):
        return self._list_by('users', 'role', role)

    @_translate_errors
    def create_user(self, data):
        return self._insert('users', data)

    @_translate_errors
    def update_user(self, user_id, changes):
        return self._update('users', user_id, changes)

    @_translate_errors
    def delete_user(self, user_id):
        return self._delete('users', user_id)

    # ── Admin accounts ────────────────────────────────────────────────

    @_translate_errors
    def get_admin(self, admin_id):
        return self._get_by('admins', 'id', admin_id)

    @_translate_errors
    def get_admin_by_username(self, username):
        return self._get_by('admins', 'username', username)

    @_translate_errors
    def list_admins(self):
        return self._list_by('admins')

    @_translate_errors
    def create_admin(self, data):
        return self._insert('admins', data)

    @_translate_errors
    def update_admin(self, admin_id, changes):
        return self._update('admins', admin_id, changes)

    @_translate_errors
    def delete_admin(self, admin_id):
        return self._delete('admins', admin_id)

    # ── Teams ─────────────────────────────────────────────────────────

    @_translate_errors
    def get_team(self, team_id):
        return self._get_by('teams', 'id', team_id)

    @_translate_errors
    def get_team_by_name(self, name):
        # PostgREST also reads '*' as a wildcard, so matches are re-checked exactly
        pattern = re.sub(r'([\\%_])', r'\\\1', name)
        response = self._table('teams').select('*').ilike('name', pattern).execute()
        for row in response.data or []:
            if str(row.get('name', '')).lower() == name.lower():
                return dict(row)
        return None

    @_translate_errors
    def get_team_by_invite_code(self, invite_code):
        return self._get_by('teams', 'invite_code', invite_code)

    @_translate_errors
    def list_teams(self):
        return self._list_by('teams')

    @_translate_errors
    def list_teams_by_owner(self, owner_id):
        return self._list_by('teams', 'owner_id', owner_id)

    @_translate_errors
    def create_team(self, data):
        return self._insert('teams', data)

    @_translate_errors
    def update_team(self, team_id, changes):
        return self._update('teams', team_id, changes)

    @_translate_errors
    def delete_team(self, team_id):
        return self._delete('teams', team_id)

    # ── Team members ──────────────────────────────────────────────────

    @_translate_errors
    def list_team_members(self, team_id):
        return self._list_by('team_members', 'team_id', team_id)

    @_translate_errors
    def get_team_member(self, member_id):
        return self._get_by('team_members', 'id', member_id)

    @_translate_errors
    def count_team_members(self, team_id):
        return self._count_by('team_members', 'team_id', team_id)

    @_translate_errors
    def list_memberships_by_username(self, username):
        return self._list_by('team_members', 'username', username)

    @_translate_errors
    def add_team_member(self, data):
        return self._insert('team_members', data)

    @_translate_errors
    def update_team_member(self, member_id, changes):
        return self._update('team_members', member_id, changes)

    @_translate_errors
    def delete_team_member(self, member_id):
        return self._delete('team_members', member_id)

    # ── Tournaments ───────────────────────────────────────────────────

    @_translate_errors
    def get_tournament(self, tournament_id):
        return self._get_by('tournaments', 'id', tournament_id)

    @_translate_errors
    def list_tournaments(self):
        return self._list_by('tournaments', order='date')

    @_translate_errors
    def list_tournaments_by_status(self, status):
        return self._list_by('tournaments', 'status', status, order='date')

    @_translate_errors
    def list_tournaments_by_creator(self, user_id):
        return self._list_by('tournaments', 'created_by', user_id, order='date')

    @_translate_errors
    def create_tournament(self, data):
        return self._insert('tournaments', data)

    @_translate_errors
    def update_tournament(self, tournament_id, changes):
        return self._update('tournaments', tournament_id, changes)

    @_translate_errors
    def delete_tournament(self, tournament_id):
        return self._delete('tournaments', tournament_id)

    # ── Registrations ─────────────────────────────────────────────────

    @_translate_errors
    def get_registration(self, registration_id):
        return self._get_by('registrations', 'id', registration_id)

    @_translate_errors
    def list_registrations_by_tournament(self, tournament_id):
        return self._list_by('registrations', 'tournament_id', tournament_id)

    @_translate_errors
    def list_registrations_by_user(self, user_id):
        return self._list_by('registrations', 'user_id', user_id)

    @_translate_errors
    def list_registrations_by_team(self, team_id):
        return self._list_by('registrations', 'team_id', team_id)

    @_translate_errors
    def count_registrations(self, tournament_id):
        return self._count_by('registrations', 'tournament_id', tournament_id)

    @_translate_errors
    def check_registration(self, tournament_id, team_id):
        response = self._table('registrations').select('id')\
            .eq('tournament_id', tournament_id)\
            .eq('team_id', team_id)\
            .limit(1)\
            .execute()
        return bool(response.data)

    @_translate_errors
    def create_registration(self, data):
        return self._insert('registrations', data)

    @_translate_errors
    def update_registration(self, registration_id, changes):
        return self._update('registrations', registration_id, changes)

    @_translate_errors
    def delete_registration(self, registration_id):
        return self._delete('registrations', registration_id)

    # ── Notifications ─────────────────────────────────────────────────

    def _visible(self, user_id) -> List[dict]:
        targeted = self._table('notifications').select('*').eq('user_id', user_id).execute()
        broadcast = self._table('notifications').select('*').is_('user_id', 'null').execute()
        rows = [dict(row) for row in (targeted.data or []) + (broadcast.data or [])]
        return _sort_newest_first(rows)

    def _read_ids(self, user_id) -> set:
        response = self._table('notification_reads').select('notification_id')\
            .eq('user_id', user_id)\
            .execute()
        return {row['notification_id'] for row in response.data or []}

    @_translate_errors
    def get_notification(self, notification_id):
        return self._get_by('notifications', 'id', notification_id)

    @_translate_errors
    def list_user_notifications(self, user_id):
        return self._mark_read_state(self._visible(user_id), self._read_ids(user_id))

    @_translate_errors
    def list_broadcast_notifications(self):
        response = self._table('notifications').select('*').is_('user_id', 'null').execute()
        return _sort_newest_first([dict(row) for row in response.data or []])

    @_translate_errors
    def list_unread_notifications(self, user_id):
        read_ids = self._read_ids(user_id)
        unread = [row for row in self._visible(user_id) if row['id'] not in read_ids]
        return self._mark_read_state(unread, read_ids)

    @_translate_errors
    def count_unread_notifications(self, user_id):
        read_ids = self._read_ids(user_id)
        return sum(1 for row in self._visible(user_id) if row['id'] not in read_ids)

    @_translate_errors
    def create_notification(self, data):
        return self._insert('notifications', data)

    @_translate_errors
    def mark_as_read(self, user_id, notification_id):
        pair = {'user_id': user_id, 'notification_id': notification_id}
        self._table('notification_reads').upsert(
            pair, on_conflict='user_id,notification_id', ignore_duplicates=True,
        ).execute()
        response = self._table('notification_reads').select('*')\
            .eq('user_id', user_id)\
            .eq('notification_id', notification_id)\
            .limit(1)\
            .execute()
        return dict(response.data[0]) if response.data else pair

    @_translate_errors
    def mark_all_as_read(self, user_id):
        read_ids = self._read_ids(user_id)
        pairs = [
            {'user_id': user_id, 'notification_id': row['id']}
            for row in self._visible(user_id)
            if row['id'] not in read_ids
        ]
        if pairs:
            self._table('notification_reads').upsert(
                pairs, on_conflict='user_id,notification_id', ignore_duplicates=True,
            ).execute()
        return len(pairs)

    @_translate_errors
    def delete_notification(self, notification_id):
        return self._delete('notifications', notification_id)

    @_translate_errors
    def list_user_targeted_notifications(self, user_id):
        return self._list_by('notifications', 'user_id', user_id)

    @_translate_errors
    def delete_notification_reads(self, notification_id):
        response = self._table('notification_reads').delete().eq('notification_id', notification_id).execute()
        return len(response.data or [])

    @_translate_errors
    def delete_user_notification_reads(self, user_id):
        response = self._table('notification_reads').delete().eq('user_id', user_id).execute()
        return len(response.data or [])

    @_translate_errors
    def list_notifications_older_than(self, cutoff):
        response = self._table('notifications').select('*')\
            .lt('created_at', cutoff.isoformat())\
            .order('id')\
            .execute()
        return [dict(row) for row in response.data or []]
