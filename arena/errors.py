"""Error taxonomy shared by the storage and route layers.

Storage variants translate provider failures into these classes so the
route layer never sees SQLAlchemy or PostgREST error shapes. A single
handler registered in ``create_app`` turns them into JSON responses.
"""


class ArenaError(Exception):
    status_code = 500
    public_message = None

    def __init__(self, message='', details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'error': self.public_message or self.message}
        if self.details is not None and self.public_message is None:
            payload['details'] = self.details
        return payload


class ValidationError(ArenaError):
    status_code = 400


class ConstraintViolation(ArenaError):
    status_code = 400


class NotFoundError(ArenaError):
    status_code = 404


class AuthenticationError(ArenaError):
    status_code = 401


class AuthorizationError(ArenaError):
    status_code = 403


class UpstreamError(ArenaError):
    """Backing database or REST provider failure; detail stays server-side."""
    status_code = 500
    public_message = 'Internal server error'
