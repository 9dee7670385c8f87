"""
Storage interface - the single contract both persistence variants satisfy.

Records cross this boundary as plain dicts keyed by column name. Lookups
return None for absence instead of raising; mutations raise
ConstraintViolation for uniqueness/referential conflicts and UpstreamError
for provider failures. Deletes never cascade: callers remove dependent rows
first (see arena.services.cascade).
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class Storage(ABC):
    """Persistence contract for users, teams, tournaments and notifications"""

    name = 'abstract'

    # ── Users ─────────────────────────────────────────────────────────

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[dict]:
        """Get user by ID"""
        pass

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[dict]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[dict]:
        pass

    @abstractmethod
    def get_user_by_phone(self, phone: str) -> Optional[dict]:
        pass

    @abstractmethod
    def list_users(self) -> List[dict]:
        pass

    @abstractmethod
    def list_users_by_role(self, role: str) -> List[dict]:
        pass

    @abstractmethod
    def create_user(self, data: dict) -> dict:
        """Insert a user; duplicate username/email/phone raises ConstraintViolation"""
        pass

    @abstractmethod
    def update_user(self, user_id: int, changes: dict) -> Optional[dict]:
        pass

    @abstractmethod
    def delete_user(self, user_id: int) -> bool:
        pass

    # ── Admin accounts ────────────────────────────────────────────────

    @abstractmethod
    def get_admin(self, admin_id: int) -> Optional[dict]:
        pass

    @abstractmethod
    def get_admin_by_username(self, username: str) -> Optional[dict]:
        pass

    @abstractmethod
    def list_admins(self) -> List[dict]:
        pass

    @abstractmethod
    def create_admin(self, data: dict) -> dict:
        pass

    @abstractmethod
    def update_admin(self, admin_id: int, changes: dict) -> Optional[dict]:
        pass

    @abstractmethod
    def delete_admin(self, admin_id: int) -> bool:
        pass

    # ── Teams ─────────────────────────────────────────────────────────

    @abstractmethod
    def get_team(self, team_id: int) -> Optional[dict]:
        pass

    @abstractmethod
    def get_team_by_name(self, name: str) -> Optional[dict]:
        """Case-insensitive match on the team name"""
        pass

    @abstractmethod
    def get_team_by_invite_code(self, invite_code: str) -> Optional[dict]:
        pass

    @abstractmethod
    def list_teams(self) -> List[dict]:
        pass

    @abstractmethod
    def list_teams_by_owner(self, owner_id: int) -> List[dict]:
        pass

    @abstractmethod
    def create_team(self, data: dict) -> dict:
        """Insert a team; ``data`` must already carry its invite code"""
        pass

    @abstractmethod
    def update_team(self, team_id: int, changes: dict) -> Optional[dict]:
        pass

    @abstractmethod
    def delete_team(self, team_id: int) -> bool:
        pass

    # ── Team members ──────────────────────────────────────────────────

    @abstractmethod
    def list_team_members(self, team_id: int) -> List[dict]:
        pass

    @abstractmethod
    def get_team_member(self, member_id: int) -> Optional[dict]:
        pass

    @abstractmethod
    def count_team_members(self, team_id: int) -> int:
        pass

    @abstractmethod
    def list_memberships_by_username(self, username: str) -> List[dict]:
        """Roster entries carrying ``username`` across all teams"""
        pass

    @abstractmethod
    def add_team_member(self, data: dict) -> dict:
        pass

    @abstractmethod
    def update_team_member(self, member_id: int, changes: dict) -> Optional[dict]:
        pass

    @abstractmethod
    def delete_team_member(self, member_id: int) -> bool:
        pass

    # ── Tournaments ───────────────────────────────────────────────────

    @abstractmethod
    def get_tournament(self, tournament_id: int) -> Optional[dict]:
        pass

    @abstractmethod
    def list_tournaments(self) -> List[dict]:
        pass

    @abstractmethod
    def list_tournaments_by_status(self, status: str) -> List[dict]:
        pass

    @abstractmethod
    def list_tournaments_by_creator(self, user_id: int) -> List[dict]:
        pass

    @abstractmethod
    def create_tournament(self, data: dict) -> dict:
        pass

    @abstractmethod
    def update_tournament(self, tournament_id: int, changes: dict) -> Optional[dict]:
        """Partial update; room-credential rules are checked by the caller"""
        pass

    @abstractmethod
    def delete_tournament(self, tournament_id: int) -> bool:
        pass

    # ── Registrations ─────────────────────────────────────────────────

    @abstractmethod
    def get_registration(self, registration_id: int) -> Optional[dict]:
        pass

    @abstractmethod
    def list_registrations_by_tournament(self, tournament_id: int) -> List[dict]:
        pass

    @abstractmethod
    def list_registrations_by_user(self, user_id: int) -> List[dict]:
        pass

    @abstractmethod
    def list_registrations_by_team(self, team_id: int) -> List[dict]:
        pass

    @abstractmethod
    def count_registrations(self, tournament_id: int) -> int:
        pass

    @abstractmethod
    def check_registration(self, tournament_id: int, team_id: int) -> bool:
        """True when the (tournament, team) pair is already registered"""
        pass

    @abstractmethod
    def create_registration(self, data: dict) -> dict:
        pass

    @abstractmethod
    def update_registration(self, registration_id: int, changes: dict) -> Optional[dict]:
        pass

    @abstractmethod
    def delete_registration(self, registration_id: int) -> bool:
        pass

    # ── Notifications ─────────────────────────────────────────────────

    @abstractmethod
    def get_notification(self, notification_id: int) -> Optional[dict]:
        pass

    @abstractmethod
    def list_user_notifications(self, user_id: int) -> List[dict]:
        """Targeted + broadcast notifications, newest first, with per-user ``is_read``"""
        pass

    @abstractmethod
    def list_broadcast_notifications(self) -> List[dict]:
        pass

    @abstractmethod
    def list_unread_notifications(self, user_id: int) -> List[dict]:
        """Visible notifications minus the ones the user has marked read"""
        pass

    @abstractmethod
    def count_unread_notifications(self, user_id: int) -> int:
        pass

    @abstractmethod
    def create_notification(self, data: dict) -> dict:
        pass

    @abstractmethod
    def mark_as_read(self, user_id: int, notification_id: int) -> dict:
        """Record a read-pair; a repeated call leaves exactly one record"""
        pass

    @abstractmethod
    def mark_all_as_read(self, user_id: int) -> int:
        """Mark every visible notification read; returns how many were new"""
        pass

    @abstractmethod
    def delete_notification(self, notification_id: int) -> bool:
        pass

    @abstractmethod
    def list_user_targeted_notifications(self, user_id: int) -> List[dict]:
        pass

    @abstractmethod
    def delete_notification_reads(self, notification_id: int) -> int:
        pass

    @abstractmethod
    def delete_user_notification_reads(self, user_id: int) -> int:
        pass

    @abstractmethod
    def list_notifications_older_than(self, cutoff) -> List[dict]:
        pass

    # ── Shared helpers ────────────────────────────────────────────────

    @staticmethod
    def _mark_read_state(notifications, read_ids):
        for notification in notifications:
            notification['is_read'] = notification['id'] in read_ids
        return notifications
