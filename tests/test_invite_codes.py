"""Tests for invite-code generation and its collision fallback."""
import logging
import random

import pytest

from arena.errors import ConstraintViolation
from arena.services.invite_codes import (
    generate_invite_code, is_valid_invite_code, random_invite_code, timestamp_invite_code,
)


class _SequenceRng:
    def __init__(self, values):
        self._values = list(values)
        self.calls = 0

    def randint(self, low, high):
        assert (low, high) == (100000, 999999)
        self.calls += 1
        return self._values.pop(0)


class _CodeLookup:
    def __init__(self, taken):
        self.taken = set(taken)
        self.lookups = []

    def get_team_by_invite_code(self, code):
        self.lookups.append(code)
        return {'invite_code': code} if code in self.taken else None


def _make_owner(storage):
    return storage.create_user({
        'username': 'owner', 'password_hash': 'x', 'email': 'owner@test.com',
        'phone': '1234567890', 'game_id': 'owner_gid',
    })


def test_random_codes_are_six_digits():
    rng = random.Random(1234)
    for _ in range(200):
        assert is_valid_invite_code(random_invite_code(rng))


def test_is_valid_invite_code():
    assert is_valid_invite_code('123456')
    assert not is_valid_invite_code('12345')
    assert not is_valid_invite_code('1234567')
    assert not is_valid_invite_code('12a456')
    assert not is_valid_invite_code(None)


def test_generate_returns_first_unused_candidate():
    rng = _SequenceRng([111111, 222222, 333333])
    lookup = _CodeLookup({'111111', '222222'})
    assert generate_invite_code(lookup, rng=rng) == '333333'
    assert lookup.lookups == ['111111', '222222', '333333']


def test_generate_falls_back_to_timestamp_after_ten_collisions(caplog):
    rng = _SequenceRng([111111] * 10)
    lookup = _CodeLookup({'111111'})
    with caplog.at_level(logging.WARNING, logger='arena.services.invite_codes'):
        code = generate_invite_code(lookup, rng=rng, clock=lambda: 1700000123.456)
    assert code == '123456'
    assert rng.calls == 10
    assert 'timestamp fallback' in caplog.text


def test_timestamp_code_is_zero_padded():
    assert timestamp_invite_code(lambda: 1.005) == '001005'
    assert is_valid_invite_code(timestamp_invite_code())


def test_ten_teams_with_seeded_collisions_get_unique_codes(storage):
    owner = _make_owner(storage)
    seeded = ['100000', '100001', '100002']
    for index, code in enumerate(seeded):
        storage.create_team({
            'name': f'Seed{index}', 'owner_id': owner['id'],
            'game_type': 'BGMI', 'invite_code': code,
        })

    # Every draw first replays an already-used code before yielding a fresh one.
    values = []
    for index in range(10):
        values.extend([100000 + (index % 3), 200000 + index])
    rng = _SequenceRng(values)

    codes = []
    for index in range(10):
        code = generate_invite_code(storage, rng=rng)
        storage.create_team({
            'name': f'Team{index}', 'owner_id': owner['id'],
            'game_type': 'BGMI', 'invite_code': code,
        })
        codes.append(code)

    all_codes = [team['invite_code'] for team in storage.list_teams()]
    assert len(all_codes) == 13
    assert len(set(all_codes)) == 13
    assert all(is_valid_invite_code(code) for code in all_codes)
    assert codes == [str(200000 + index) for index in range(10)]


def test_colliding_fallback_code_is_rejected_by_storage(storage):
    owner = _make_owner(storage)
    storage.create_team({'name': 'Taken', 'owner_id': owner['id'], 'game_type': 'BGMI', 'invite_code': '123456'})
    code = generate_invite_code(
        storage, rng=_SequenceRng([123456] * 10), clock=lambda: 1700000123.456,
    )
    assert code == '123456'
    with pytest.raises(ConstraintViolation) as excinfo:
        storage.create_team({'name': 'Unlucky', 'owner_id': owner['id'], 'game_type': 'BGMI', 'invite_code': code})
    assert excinfo.value.message == 'Invite code already in use'
    assert storage.get_team_by_name('Unlucky') is None
