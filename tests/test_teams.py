"""Tests for team creation, invite codes, rosters and team deletion."""
import json
import re

_phone_counter = [7000000000]


def _register(app, username):
    client = app.test_client()
    _phone_counter[0] += 1
    res = client.post('/api/register', json={
        'username': username,
        'email': f'{username}@test.com',
        'phone': str(_phone_counter[0]),
        'gameId': f'{username}_gid',
        'password': 'password123',
    })
    assert res.status_code == 201
    return client, json.loads(res.data)


def _create_team(client, name='AlphaSquad', game_type='BGMI'):
    return client.post('/api/teams', json={
        'name': name, 'description': 'Test team', 'gameType': game_type,
    })


def _add_member(client, team_id, username, role='member'):
    return client.post(f'/api/teams/{team_id}/members', json={
        'username': username, 'gameId': f'{username}_ign', 'role': role,
    })


def test_create_team_generates_invite_code(app):
    client, user = _register(app, 'alice')
    res = _create_team(client)
    assert res.status_code == 201
    team = json.loads(res.data)
    assert re.fullmatch(r'\d{6}', team['invite_code'])
    assert team['owner_id'] == user['id']
    assert team['game_type'] == 'BGMI'


def test_create_team_adds_owner_as_captain(app):
    client, user = _register(app, 'alice')
    team = json.loads(_create_team(client).data)
    assert team['member_count'] == 1
    assert team['members'][0]['username'] == 'alice'
    assert team['members'][0]['role'] == 'captain'
    assert team['members'][0]['game_id'] == user['game_id']


def test_create_team_requires_login(client):
    res = _create_team(client)
    assert res.status_code == 401


def test_create_team_validates_payload(app):
    client, _ = _register(app, 'alice')
    res = client.post('/api/teams', json={'name': '', 'gameType': 'CHESS'})
    assert res.status_code == 400
    details = json.loads(res.data)['details']
    assert details['name'] == 'required'
    assert 'game_type' in details


def test_create_team_rejects_duplicate_name(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    assert _create_team(alice, 'Shared').status_code == 201
    res = _create_team(bob, 'Shared')
    assert res.status_code == 400
    assert json.loads(res.data)['error'] == 'Team name already exists'


def test_team_names_are_unique_regardless_of_case(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    assert _create_team(alice, 'AlphaSquad').status_code == 201
    res = _create_team(bob, 'alphasquad')
    assert res.status_code == 400
    assert json.loads(res.data)['error'] == 'Team name already exists'

    second = json.loads(_create_team(bob, 'BravoSquad').data)
    res = bob.patch(f"/api/teams/{second['id']}", json={'name': 'ALPHASQUAD'})
    assert res.status_code == 400
    res = bob.patch(f"/api/teams/{second['id']}", json={'name': 'bravosquad'})
    assert res.status_code == 200
    assert json.loads(res.data)['name'] == 'bravosquad'


def test_owner_team_limit(app):
    client, _ = _register(app, 'alice')
    for index in range(3):
        assert _create_team(client, f'Team{index}').status_code == 201
    res = _create_team(client, 'Team3')
    assert res.status_code == 400
    assert 'up to 3 teams' in json.loads(res.data)['error']


def test_list_teams_includes_owned_and_joined(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    alpha = json.loads(_create_team(alice, 'Alpha').data)
    json.loads(_create_team(bob, 'Bravo').data)
    assert _add_member(alice, alpha['id'], 'bob').status_code == 201

    names = sorted(team['name'] for team in json.loads(bob.get('/api/teams').data))
    assert names == ['Alpha', 'Bravo']
    names = [team['name'] for team in json.loads(alice.get('/api/teams').data)]
    assert names == ['Alpha']


def test_add_member(app):
    alice, _ = _register(app, 'alice')
    _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    res = _add_member(alice, team['id'], 'bob', role='substitute')
    assert res.status_code == 201
    member = json.loads(res.data)
    assert member['username'] == 'bob'
    assert member['role'] == 'substitute'
    assert member['team_id'] == team['id']


def test_add_member_rejects_duplicate(app):
    alice, _ = _register(app, 'alice')
    _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    assert _add_member(alice, team['id'], 'bob').status_code == 201
    res = _add_member(alice, team['id'], 'bob')
    assert res.status_code == 400
    assert json.loads(res.data)['error'] == 'Member is already on this team'
    assert len(json.loads(alice.get(f"/api/teams/{team['id']}/members").data)) == 2


def test_add_member_requires_existing_user(app):
    alice, _ = _register(app, 'alice')
    team = json.loads(_create_team(alice).data)
    res = _add_member(alice, team['id'], 'ghost')
    assert res.status_code == 404
    assert "'ghost' does not exist" in json.loads(res.data)['error']


def test_add_member_rejects_game_id_equal_to_username(app):
    alice, _ = _register(app, 'alice')
    _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    res = alice.post(f"/api/teams/{team['id']}/members", json={'username': 'bob', 'gameId': 'bob'})
    assert res.status_code == 400
    assert json.loads(res.data)['details']['game_id'] == 'must differ from username'


def test_add_member_enforces_roster_limit(app):
    alice, _ = _register(app, 'alice')
    team = json.loads(_create_team(alice).data)
    for name in ('m1', 'm2', 'm3', 'm4', 'm5'):
        _register(app, name)
    for name in ('m1', 'm2', 'm3', 'm4'):
        assert _add_member(alice, team['id'], name).status_code == 201
    res = _add_member(alice, team['id'], 'm5')
    assert res.status_code == 400
    assert 'more than 5 members' in json.loads(res.data)['error']


def test_only_owner_can_add_members(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    _register(app, 'carol')
    team = json.loads(_create_team(alice).data)
    res = _add_member(bob, team['id'], 'carol')
    assert res.status_code == 403


def test_admin_can_manage_any_team(app, admin_client):
    alice, _ = _register(app, 'alice')
    _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    assert _add_member(admin_client, team['id'], 'bob').status_code == 201
    res = admin_client.patch(f"/api/teams/{team['id']}", json={'description': 'Edited by admin'})
    assert res.status_code == 200
    assert json.loads(res.data)['description'] == 'Edited by admin'


def test_lookup_and_join_by_invite_code(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    team = json.loads(_create_team(alice).data)

    found = bob.get(f"/api/teams/code/{team['invite_code']}")
    assert found.status_code == 200
    assert json.loads(found.data)['name'] == 'AlphaSquad'

    joined = bob.post('/api/teams/join', json={'inviteCode': team['invite_code']})
    assert joined.status_code == 201
    assert json.loads(joined.data)['member']['username'] == 'bob'

    again = bob.post('/api/teams/join', json={'inviteCode': team['invite_code']})
    assert again.status_code == 400
    assert 'already a member' in json.loads(again.data)['error']


def test_join_rejects_malformed_or_unknown_code(app):
    bob, _ = _register(app, 'bob')
    assert bob.post('/api/teams/join', json={'inviteCode': '12ab'}).status_code == 400
    assert bob.get('/api/teams/code/12345').status_code == 400
    res = bob.post('/api/teams/join', json={'inviteCode': '000001'})
    assert res.status_code == 404


def test_get_team_requires_participation(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    assert alice.get(f"/api/teams/{team['id']}").status_code == 200
    assert bob.get(f"/api/teams/{team['id']}").status_code == 403
    assert bob.get('/api/teams/9999').status_code == 404


def test_member_roster_requires_participation(app, admin_client):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    res = alice.get(f"/api/teams/{team['id']}/members")
    assert res.status_code == 200
    assert [m['username'] for m in json.loads(res.data)] == ['alice']
    assert bob.get(f"/api/teams/{team['id']}/members").status_code == 403
    assert admin_client.get(f"/api/teams/{team['id']}/members").status_code == 200


def test_update_team_rejects_taken_name(app):
    alice, _ = _register(app, 'alice')
    _create_team(alice, 'First')
    second = json.loads(_create_team(alice, 'Second').data)
    res = alice.patch(f"/api/teams/{second['id']}", json={'name': 'First'})
    assert res.status_code == 400
    res = alice.patch(f"/api/teams/{second['id']}", json={'name': 'Renamed'})
    assert json.loads(res.data)['name'] == 'Renamed'


def test_update_and_remove_member(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    member = json.loads(_add_member(alice, team['id'], 'bob').data)

    assert bob.patch(f"/api/teams/members/{member['id']}", json={'role': 'captain'}).status_code == 403
    res = alice.patch(f"/api/teams/members/{member['id']}", json={'role': 'substitute'})
    assert json.loads(res.data)['role'] == 'substitute'

    assert alice.delete(f"/api/teams/members/{member['id']}").status_code == 200
    assert alice.delete(f"/api/teams/members/{member['id']}").status_code == 404


def test_delete_team_cascades_members_and_registrations(app, admin_client, storage):
    alice, _ = _register(app, 'alice')
    for name in ('m1', 'm2'):
        _register(app, name)
    team = json.loads(_create_team(alice).data)
    member_ids = [m['id'] for m in storage.list_team_members(team['id'])]
    for name in ('m1', 'm2'):
        member_ids.append(json.loads(_add_member(alice, team['id'], name).data)['id'])
    assert len(member_ids) == 3

    registration_ids = []
    for title in ('Solo Cup', 'Solo Open'):
        tournament = json.loads(admin_client.post('/api/tournaments', json={
            'title': title, 'date': '2030-01-01T18:00:00', 'mapType': 'Erangel',
            'gameMode': 'solo', 'totalSlots': 10,
        }).data)
        reg = alice.post('/api/registrations', json={'tournamentId': tournament['id'], 'teamId': team['id']})
        assert reg.status_code == 201
        registration_ids.append(json.loads(reg.data)['id'])

    res = alice.delete(f"/api/teams/{team['id']}")
    assert res.status_code == 200
    assert storage.get_team(team['id']) is None
    for member_id in member_ids:
        assert storage.get_team_member(member_id) is None
    for registration_id in registration_ids:
        assert storage.get_registration(registration_id) is None


def test_non_owner_cannot_delete_team(app):
    alice, _ = _register(app, 'alice')
    bob, _ = _register(app, 'bob')
    team = json.loads(_create_team(alice).data)
    assert bob.delete(f"/api/teams/{team['id']}").status_code == 403
