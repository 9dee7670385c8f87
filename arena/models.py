from arena.app import db
from arena.time_utils import utcnow_naive, isoformat_or_none


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20), unique=True, nullable=False)
    phone_verified = db.Column(db.Boolean, default=True, nullable=False)
    game_id = db.Column(db.String(80), nullable=False)
    role = db.Column(db.String(20), default='user', nullable=False)  # user, admin
    is_protected = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'id': self.id, 'username': self.username,
            'password_hash': self.password_hash,
            'email': self.email, 'phone': self.phone,
            'phone_verified': self.phone_verified, 'game_id': self.game_id,
            'role': self.role, 'is_protected': self.is_protected,
            'created_at': isoformat_or_none(self.created_at),
        }


class Admin(db.Model):
    """Elevated account authenticated separately from ``users``."""
    __tablename__ = 'admins'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    access_level = db.Column(db.String(20), default='standard', nullable=False)  # standard, super, owner
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_protected = db.Column(db.Boolean, default=False, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'id': self.id, 'username': self.username,
            'password_hash': self.password_hash,
            'email': self.email, 'phone': self.phone,
            'display_name': self.display_name,
            'access_level': self.access_level, 'is_active': self.is_active,
            'is_protected': self.is_protected,
            'last_login': isoformat_or_none(self.last_login),
            'created_at': isoformat_or_none(self.created_at),
        }


class Team(db.Model):
    __tablename__ = 'teams'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, default='')
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    game_type = db.Column(db.String(20), default='BGMI', nullable=False)  # BGMI, COD, FREEFIRE
    invite_code = db.Column(db.String(6), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name, 'description': self.description,
            'owner_id': self.owner_id, 'game_type': self.game_type,
            'invite_code': self.invite_code,
            'created_at': isoformat_or_none(self.created_at),
        }


class TeamMember(db.Model):
    __tablename__ = 'team_members'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False)
    username = db.Column(db.String(80), nullable=False)
    game_id = db.Column(db.String(80), nullable=False)
    role = db.Column(db.String(20), default='member', nullable=False)  # captain, member, substitute
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('team_id', 'username', name='uq_team_members_team_username'),
    )

    def to_dict(self):
        return {
            'id': self.id, 'team_id': self.team_id, 'username': self.username,
            'game_id': self.game_id, 'role': self.role,
            'created_at': isoformat_or_none(self.created_at),
        }


class Tournament(db.Model):
    __tablename__ = 'tournaments'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    date = db.Column(db.DateTime, nullable=False)
    map_type = db.Column(db.String(50), nullable=False)
    game_mode = db.Column(db.String(10), default='squad', nullable=False)  # solo, duo, squad
    game_type = db.Column(db.String(20), default='BGMI', nullable=False)
    is_paid = db.Column(db.Boolean, default=False, nullable=False)
    entry_fee = db.Column(db.Integer, default=0)
    prize_pool = db.Column(db.Integer, default=0)
    total_slots = db.Column(db.Integer, nullable=False)
    room_id = db.Column(db.String(80), nullable=True)
    room_password = db.Column(db.String(80), nullable=True)
    status = db.Column(db.String(20), default='upcoming', nullable=False)  # upcoming, live, completed
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.Index('ix_tournaments_status_date', 'status', 'date'),
    )

    def to_dict(self):
        return {
            'id': self.id, 'title': self.title, 'description': self.description,
            'date': isoformat_or_none(self.date), 'map_type': self.map_type,
            'game_mode': self.game_mode, 'game_type': self.game_type,
            'is_paid': self.is_paid, 'entry_fee': self.entry_fee,
            'prize_pool': self.prize_pool, 'total_slots': self.total_slots,
            'room_id': self.room_id, 'room_password': self.room_password,
            'status': self.status, 'created_by': self.created_by,
            'created_at': isoformat_or_none(self.created_at),
        }


class Registration(db.Model):
    __tablename__ = 'registrations'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    slot = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), default='pending', nullable=False)  # pending, approved, rejected
    payment_status = db.Column(db.String(20), default='pending', nullable=False)  # pending, paid, failed, refunded
    registered_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'team_id', name='uq_registrations_tournament_team'),
    )

    def to_dict(self):
        return {
            'id': self.id, 'tournament_id': self.tournament_id,
            'team_id': self.team_id, 'user_id': self.user_id,
            'slot': self.slot, 'status': self.status,
            'payment_status': self.payment_status,
            'registered_at': isoformat_or_none(self.registered_at),
        }


# ── Notifications ─────────────────────────────────────────────────────

class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)  # null = broadcast
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), default='general', nullable=False)
    related_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'id': self.id, 'user_id': self.user_id, 'title': self.title,
            'message': self.message, 'type': self.type,
            'related_id': self.related_id,
            'created_at': isoformat_or_none(self.created_at),
        }


class NotificationRead(db.Model):
    """Per-user read marker; covers both targeted and broadcast notifications."""
    __tablename__ = 'notification_reads'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    notification_id = db.Column(db.Integer, db.ForeignKey('notifications.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('user_id', 'notification_id', name='uq_notification_reads_user_notification'),
    )

    def to_dict(self):
        return {
            'id': self.id, 'user_id': self.user_id,
            'notification_id': self.notification_id,
            'created_at': isoformat_or_none(self.created_at),
        }
