"""In-memory stand-in for the supabase client's PostgREST query builder.

Covers the subset of the builder API the REST storage uses and raises the
same ``APIError`` payloads PostgREST returns for unique violations.
"""
import copy
import re
from dataclasses import dataclass, field
from typing import Optional

from postgrest.exceptions import APIError

from arena.time_utils import utcnow_naive

UNIQUE_KEYS = {
    'users': (('username',), ('email',), ('phone',)),
    'admins': (('username',), ('email',)),
    'teams': (('name',), ('invite_code',)),
    'team_members': (('team_id', 'username'),),
    'registrations': (('tournament_id', 'team_id'),),
    'notification_reads': (('user_id', 'notification_id'),),
}

TIMESTAMP_COLUMNS = {
    'registrations': 'registered_at',
}


@dataclass
class FakeResponse:
    data: list = field(default_factory=list)
    count: Optional[int] = None


def _like_to_regex(pattern):
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == '\\':
            escaped = True
        elif char in '%*':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return re.compile(''.join(parts), re.IGNORECASE | re.DOTALL)


class FakeQuery:
    def __init__(self, client, table):
        self._client = client
        self._table = table
        self._action = 'select'
        self._payload = None
        self._filters = []
        self._order = None
        self._limit = None
        self._on_conflict = None
        self._ignore_duplicates = False
        self._count = None

    # ── actions ──
    def select(self, columns='*', count=None):
        self._action = 'select'
        self._count = count
        return self

    def insert(self, payload):
        self._action = 'insert'
        self._payload = payload
        return self

    def upsert(self, payload, on_conflict='', ignore_duplicates=False):
        self._action = 'upsert'
        self._payload = payload
        self._on_conflict = tuple(col.strip() for col in on_conflict.split(',') if col.strip())
        self._ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self._action = 'update'
        self._payload = payload
        return self

    def delete(self):
        self._action = 'delete'
        return self

    # ── filters ──
    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column, value):
        expected = None if value in ('null', None) else value
        self._filters.append(lambda row: row.get(column) is expected)
        return self

    def lt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and str(row.get(column)) < str(value))
        return self

    def ilike(self, column, pattern):
        regex = _like_to_regex(pattern)
        self._filters.append(lambda row: row.get(column) is not None and regex.fullmatch(str(row.get(column))) is not None)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matching(self):
        return [row for row in self._client.rows(self._table) if all(check(row) for check in self._filters)]

    def execute(self):
        self._client.calls.append((self._table, self._action))
        if self._client.fail_with is not None:
            raise self._client.fail_with
        if self._action == 'insert':
            payloads = self._payload if isinstance(self._payload, list) else [self._payload]
            return FakeResponse([self._client.insert_row(self._table, payload) for payload in payloads])
        if self._action == 'upsert':
            payloads = self._payload if isinstance(self._payload, list) else [self._payload]
            created = []
            for payload in payloads:
                if self._client.find_conflict(self._table, payload, [self._on_conflict]):
                    if self._ignore_duplicates:
                        continue
                created.append(self._client.insert_row(self._table, payload))
            return FakeResponse(created)
        if self._action == 'update':
            updated = []
            for row in self._matching():
                candidate = {**row, **self._payload}
                self._client.check_unique(self._table, candidate, exclude_id=row['id'])
                row.update(copy.deepcopy(self._payload))
                updated.append(copy.deepcopy(row))
            return FakeResponse(updated)
        if self._action == 'delete':
            doomed = self._matching()
            doomed_ids = {row['id'] for row in doomed}
            self._client.tables[self._table] = [
                row for row in self._client.rows(self._table) if row['id'] not in doomed_ids
            ]
            return FakeResponse([copy.deepcopy(row) for row in doomed])

        rows = self._matching()
        total = len(rows) if self._count == 'exact' else None
        if self._order:
            column, desc = self._order
            rows = sorted(rows, key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
        if self._limit is not None:
            rows = rows[:self._limit]
        if self._client.max_rows is not None:
            rows = rows[:self._client.max_rows]
        return FakeResponse([copy.deepcopy(row) for row in rows], total)


class FakeSupabaseClient:
    def __init__(self):
        self.tables = {}
        self.sequences = {}
        self.calls = []
        self.fail_with = None
        # PostgREST's db-max-rows cap on returned rows
        self.max_rows = None

    def table(self, name):
        return FakeQuery(self, name)

    def rows(self, table):
        return self.tables.setdefault(table, [])

    def find_conflict(self, table, candidate, key_sets, exclude_id=None):
        for columns in key_sets:
            if not columns or any(candidate.get(col) is None for col in columns):
                continue
            for row in self.rows(table):
                if row['id'] == exclude_id:
                    continue
                if all(row.get(col) == candidate.get(col) for col in columns):
                    return columns
        return None

    def check_unique(self, table, candidate, exclude_id=None):
        columns = self.find_conflict(table, candidate, UNIQUE_KEYS.get(table, ()), exclude_id)
        if columns:
            cols = ', '.join(columns)
            values = ', '.join(str(candidate.get(col)) for col in columns)
            raise APIError({
                'code': '23505',
                'message': f'duplicate key value violates unique constraint "{table}_{"_".join(columns)}_key"',
                'details': f'Key ({cols})=({values}) already exists.',
                'hint': None,
            })

    def insert_row(self, table, payload):
        self.check_unique(table, payload)
        self.sequences[table] = self.sequences.get(table, 0) + 1
        row = copy.deepcopy(payload)
        row['id'] = self.sequences[table]
        timestamp_column = TIMESTAMP_COLUMNS.get(table, 'created_at')
        row.setdefault(timestamp_column, utcnow_naive().isoformat())
        self.rows(table).append(row)
        return copy.deepcopy(row)
