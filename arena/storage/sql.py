"""SQLAlchemy-backed storage, running on the Flask-SQLAlchemy session."""
import logging
from functools import wraps

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from arena.app import db
from arena.errors import ConstraintViolation, UpstreamError
from arena.models import (
    User, Admin, Team, TeamMember, Tournament, Registration,
    Notification, NotificationRead,
)
from arena.storage.base import Storage

logger = logging.getLogger(__name__)

# Columns whose unique index failure maps to a readable duplicate message.
_UNIQUE_FIELDS = (
    ('tournament_id', 'Team is already registered for this tournament'),
    ('notification_id', 'Notification already marked as read'),
    ('team_id', 'Member is already on this team'),
    ('invite_code', 'Invite code already in use'),
    ('username', 'Username already exists'),
    ('email', 'Email already exists'),
    ('phone', 'Phone number already exists'),
    ('name', 'Team name already exists'),
)


def _describe_integrity_error(exc):
    text = str(getattr(exc, 'orig', exc)).lower()
    if 'foreign key' in text:
        return 'Referenced record does not exist', None
    for field, message in _UNIQUE_FIELDS:
        if field in text:
            return message, {'field': field}
    return 'Record conflicts with an existing record', None


def _translate_errors(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError as exc:
            db.session.rollback()
            message, details = _describe_integrity_error(exc)
            raise ConstraintViolation(message, details) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error('SQL storage failure in %s: %s', func.__name__, exc)
            raise UpstreamError(str(exc)) from exc
    return wrapper


def _as_dict(row):
    return row.to_dict() if row is not None else None


def _as_dicts(rows):
    return [row.to_dict() for row in rows]


class SqlStorage(Storage):
    """Relational storage; every mutation commits in its own transaction."""

    name = 'sql'

    def _get(self, model, row_id):
        return db.session.get(model, row_id)

    def _insert(self, model, data):
        row = model(**data)
        db.session.add(row)
        db.session.commit()
        return row.to_dict()

    def _update(self, model, row_id, changes):
        row = db.session.get(model, row_id)
        if not row:
            return None
        for key, value in changes.items():
            if key == 'id' or not hasattr(model, key):
                continue
            setattr(row, key, value)
        db.session.commit()
        return row.to_dict()

    def _delete(self, model, row_id):
        row = db.session.get(model, row_id)
        if not row:
            return False
        db.session.delete(row)
        db.session.commit()
        return True

    # ── Users ─────────────────────────────────────────────────────────

    @_translate_errors
    def get_user(self, user_id):
        return _as_dict(self._get(User, user_id))

    @_translate_errors
    def get_user_by_username(self, username):
        return _as_dict(User.query.filter_by(username=username).first())

    @_translate_errors
    def get_user_by_email(self, email):
        return _as_dict(User.query.filter_by(email=email).first())

    @_translate_errors
    def get_user_by_phone(self, phone):
        return _as_dict(User.query.filter_by(phone=phone).first())

    @_translate_errors
    def list_users(self):
        return _as_dicts(User.query.order_by(User.id.asc()).all())

    @_translate_errors
    def list_users_by_role(self, role):
        return _as_dicts(User.query.filter_by(role=role).order_by(User.id.asc()).all())

    @_translate_errors
    def create_user(self, data):
        return self._insert(User, data)

    @_translate_errors
    def update_user(self, user_id, changes):
        return self._update(User, user_id, changes)

    @_translate_errors
    def delete_user(self, user_id):
        return self._delete(User, user_id)

    # ── Admin accounts ────────────────────────────────────────────────

    @_translate_errors
    def get_admin(self, admin_id):
        return _as_dict(self._get(Admin, admin_id))

    @_translate_errors
    def get_admin_by_username(self, username):
        return _as_dict(Admin.query.filter_by(username=username).first())

    @_translate_errors
    def list_admins(self):
        return _as_dicts(Admin.query.order_by(Admin.id.asc()).all())

    @_translate_errors
    def create_admin(self, data):
        return self._insert(Admin, data)

    @_translate_errors
    def update_admin(self, admin_id, changes):
        return self._update(Admin, admin_id, changes)

    @_translate_errors
    def delete_admin(self, admin_id):
        return self._delete(Admin, admin_id)

    # ── Teams ─────────────────────────────────────────────────────────

    @_translate_errors
    def get_team(self, team_id):
        return _as_dict(self._get(Team, team_id))

    @_translate_errors
    def get_team_by_name(self, name):
        return _as_dict(Team.query.filter(db.func.lower(Team.name) == name.lower()).first())

    @_translate_errors
    def get_team_by_invite_code(self, invite_code):
        return _as_dict(Team.query.filter_by(invite_code=invite_code).first())

    @_translate_errors
    def list_teams(self):
        return _as_dicts(Team.query.order_by(Team.id.asc()).all())

    @_translate_errors
    def list_teams_by_owner(self, owner_id):
        return _as_dicts(Team.query.filter_by(owner_id=owner_id).order_by(Team.id.asc()).all())

    @_translate_errors
    def create_team(self, data):
        return self._insert(Team, data)

    @_translate_errors
    def update_team(self, team_id, changes):
        return self._update(Team, team_id, changes)

    @_translate_errors
    def delete_team(self, team_id):
        return self._delete(Team, team_id)

    # ── Team members ──────────────────────────────────────────────────

    @_translate_errors
    def list_team_members(self, team_id):
        return _as_dicts(
            TeamMember.query.filter_by(team_id=team_id).order_by(TeamMember.id.asc()).all()
        )

    @_translate_errors
    def get_team_member(self, member_id):
        return _as_dict(self._get(TeamMember, member_id))

    @_translate_errors
    def count_team_members(self, team_id):
        return TeamMember.query.filter_by(team_id=team_id).count()

    @_translate_errors
    def list_memberships_by_username(self, username):
        return _as_dicts(
            TeamMember.query.filter_by(username=username).order_by(TeamMember.id.asc()).all()
        )

    @_translate_errors
    def add_team_member(self, data):
        return self._insert(TeamMember, data)

    @_translate_errors
    def update_team_member(self, member_id, changes):
        return self._update(TeamMember, member_id, changes)

    @_translate_errors
    def delete_team_member(self, member_id):
        return self._delete(TeamMember, member_id)

    # ── Tournaments ───────────────────────────────────────────────────

    @_translate_errors
    def get_tournament(self, tournament_id):
        return _as_dict(self._get(Tournament, tournament_id))

    @_translate_errors
    def list_tournaments(self):
        return _as_dicts(Tournament.query.order_by(Tournament.date.asc()).all())

    @_translate_errors
    def list_tournaments_by_status(self, status):
        return _as_dicts(
            Tournament.query.filter_by(status=status).order_by(Tournament.date.asc()).all()
        )

    @_translate_errors
    def list_tournaments_by_creator(self, user_id):
        return _as_dicts(
            Tournament.query.filter_by(created_by=user_id).order_by(Tournament.date.asc()).all()
        )

    @_translate_errors
    def create_tournament(self, data):
        return self._insert(Tournament, data)

    @_translate_errors
    def update_tournament(self, tournament_id, changes):
        return self._update(Tournament, tournament_id, changes)

    @_translate_errors
    def delete_tournament(self, tournament_id):
        return self._delete(Tournament, tournament_id)

    # ── Registrations ─────────────────────────────────────────────────

    @_translate_errors
    def get_registration(self, registration_id):
        return _as_dict(self._get(Registration, registration_id))

    @_translate_errors
    def list_registrations_by_tournament(self, tournament_id):
        return _as_dicts(
            Registration.query.filter_by(tournament_id=tournament_id)
            .order_by(Registration.id.asc()).all()
        )

    @_translate_errors
    def list_registrations_by_user(self, user_id):
        return _as_dicts(
            Registration.query.filter_by(user_id=user_id).order_by(Registration.id.asc()).all()
        )

    @_translate_errors
    def list_registrations_by_team(self, team_id):
        return _as_dicts(
            Registration.query.filter_by(team_id=team_id).order_by(Registration.id.asc()).all()
        )

    @_translate_errors
    def count_registrations(self, tournament_id):
        return Registration.query.filter_by(tournament_id=tournament_id).count()

    @_translate_errors
    def check_registration(self, tournament_id, team_id):
        return Registration.query.filter_by(
            tournament_id=tournament_id, team_id=team_id,
        ).first() is not None

    @_translate_errors
    def create_registration(self, data):
        return self._insert(Registration, data)

    @_translate_errors
    def update_registration(self, registration_id, changes):
        return self._update(Registration, registration_id, changes)

    @_translate_errors
    def delete_registration(self, registration_id):
        return self._delete(Registration, registration_id)

    # ── Notifications ─────────────────────────────────────────────────

    def _visible_query(self, user_id):
        return Notification.query.filter(
            or_(Notification.user_id == user_id, Notification.user_id.is_(None))
        )

    def _read_ids(self, user_id):
        rows = db.session.query(NotificationRead.notification_id).filter(
            NotificationRead.user_id == user_id
        ).all()
        return {row[0] for row in rows}

    @_translate_errors
    def get_notification(self, notification_id):
        return _as_dict(self._get(Notification, notification_id))

    @_translate_errors
    def list_user_notifications(self, user_id):
        notifications = _as_dicts(
            self._visible_query(user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc()).all()
        )
        return self._mark_read_state(notifications, self._read_ids(user_id))

    @_translate_errors
    def list_broadcast_notifications(self):
        return _as_dicts(
            Notification.query.filter(Notification.user_id.is_(None))
            .order_by(Notification.created_at.desc(), Notification.id.desc()).all()
        )

    @_translate_errors
    def list_unread_notifications(self, user_id):
        read_ids = self._read_ids(user_id)
        query = self._visible_query(user_id)
        if read_ids:
            query = query.filter(Notification.id.notin_(sorted(read_ids)))
        notifications = _as_dicts(
            query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
        )
        return self._mark_read_state(notifications, read_ids)

    @_translate_errors
    def count_unread_notifications(self, user_id):
        read_ids = self._read_ids(user_id)
        query = self._visible_query(user_id)
        if read_ids:
            query = query.filter(Notification.id.notin_(sorted(read_ids)))
        return query.count()

    @_translate_errors
    def create_notification(self, data):
        return self._insert(Notification, data)

    @_translate_errors
    def mark_as_read(self, user_id, notification_id):
        existing = NotificationRead.query.filter_by(
            user_id=user_id, notification_id=notification_id,
        ).first()
        if existing:
            return existing.to_dict()
        read = NotificationRead(user_id=user_id, notification_id=notification_id)
        db.session.add(read)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent request recorded the same pair first.
            db.session.rollback()
            existing = NotificationRead.query.filter_by(
                user_id=user_id, notification_id=notification_id,
            ).first()
            if existing is None:
                raise
            return existing.to_dict()
        return read.to_dict()

    @_translate_errors
    def mark_all_as_read(self, user_id):
        read_ids = self._read_ids(user_id)
        created = 0
        for notification in self._visible_query(user_id).all():
            if notification.id in read_ids:
                continue
            db.session.add(NotificationRead(user_id=user_id, notification_id=notification.id))
            created += 1
        db.session.commit()
        return created

    @_translate_errors
    def delete_notification(self, notification_id):
        return self._delete(Notification, notification_id)

    @_translate_errors
    def list_user_targeted_notifications(self, user_id):
        return _as_dicts(
            Notification.query.filter_by(user_id=user_id).order_by(Notification.id.asc()).all()
        )

    @_translate_errors
    def delete_notification_reads(self, notification_id):
        deleted = NotificationRead.query.filter_by(
            notification_id=notification_id,
        ).delete(synchronize_session=False)
        db.session.commit()
        return deleted

    @_translate_errors
    def delete_user_notification_reads(self, user_id):
        deleted = NotificationRead.query.filter_by(
            user_id=user_id,
        ).delete(synchronize_session=False)
        db.session.commit()
        return deleted

    @_translate_errors
    def list_notifications_older_than(self, cutoff):
        return _as_dicts(
            Notification.query.filter(Notification.created_at < cutoff)
            .order_by(Notification.id.asc()).all()
        )
