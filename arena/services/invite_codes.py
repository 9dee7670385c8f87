"""Six-digit team invite codes.

Best-effort uniqueness: candidates are checked against existing teams for a
bounded number of attempts, then a timestamp-derived code is used. That
fallback can still collide; the unique index on ``teams.invite_code`` is the
real guarantee and create_team raises ConstraintViolation when it trips.
"""
import logging
import random
import re
import time

logger = logging.getLogger(__name__)

INVITE_CODE_PATTERN = re.compile(r'^\d{6}$')
DEFAULT_MAX_ATTEMPTS = 10


def random_invite_code(rng=random):
    return str(rng.randint(100000, 999999))


def timestamp_invite_code(clock=time.time):
    millis = int(round(clock() * 1000))
    return f'{millis % 1000000:06d}'


def is_valid_invite_code(raw_code):
    return bool(INVITE_CODE_PATTERN.match(str(raw_code or '').strip()))


def generate_invite_code(storage, max_attempts=DEFAULT_MAX_ATTEMPTS, rng=random, clock=time.time):
    for _ in range(max(1, int(max_attempts))):
        candidate = random_invite_code(rng)
        if storage.get_team_by_invite_code(candidate) is None:
            return candidate

    fallback = timestamp_invite_code(clock)
    logger.warning(
        'Invite code generation collided %s times; using timestamp fallback %s',
        max_attempts, fallback,
    )
    return fallback
