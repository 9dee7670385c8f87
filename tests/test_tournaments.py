"""Tests for admin tournament management and room credential handling."""
import json


def _register(app, username, phone):
    client = app.test_client()
    res = client.post('/api/register', json={
        'username': username, 'email': f'{username}@test.com', 'phone': phone,
        'gameId': f'{username}_gid', 'password': 'password123',
    })
    assert res.status_code == 201
    return client, json.loads(res.data)


def _tournament_payload(**overrides):
    payload = {
        'title': 'Sunday Scrims',
        'description': 'Weekly squad scrims',
        'date': '2030-06-01T18:30:00',
        'mapType': 'Erangel',
        'gameMode': 'squad',
        'gameType': 'BGMI',
        'isPaid': True,
        'entryFee': 50,
        'prizePool': 1000,
        'totalSlots': 20,
    }
    payload.update(overrides)
    return payload


def _create(admin_client, **overrides):
    res = admin_client.post('/api/tournaments', json=_tournament_payload(**overrides))
    assert res.status_code == 201, res.data
    return json.loads(res.data)


def test_admin_creates_tournament(admin_client, storage):
    tournament = _create(admin_client)
    assert tournament['title'] == 'Sunday Scrims'
    assert tournament['game_mode'] == 'squad'
    assert tournament['total_slots'] == 20
    assert tournament['slots'] == 20
    assert tournament['status'] == 'upcoming'
    assert tournament['is_paid'] is True
    assert tournament['created_by'] == storage.get_user_by_username('sysadmin')['id']


def test_non_admin_cannot_create_tournament(app, client):
    assert client.post('/api/tournaments', json=_tournament_payload()).status_code == 401
    user_client, _ = _register(app, 'player', '1111111111')
    assert user_client.post('/api/tournaments', json=_tournament_payload()).status_code == 403


def test_create_validates_fields(admin_client):
    res = admin_client.post('/api/tournaments', json={
        'title': '', 'date': 'next tuesday', 'mapType': 'Erangel',
        'gameMode': 'trio', 'totalSlots': 0, 'entryFee': -5,
    })
    assert res.status_code == 400
    details = json.loads(res.data)['details']
    assert set(details) >= {'title', 'date', 'game_mode', 'total_slots', 'entry_fee'}


def test_deprecated_aliases_are_accepted(admin_client):
    payload = _tournament_payload(slots=12, teamType='duo')
    del payload['totalSlots']
    del payload['gameMode']
    res = admin_client.post('/api/tournaments', json=payload)
    assert res.status_code == 201
    tournament = json.loads(res.data)
    assert tournament['total_slots'] == 12
    assert tournament['slots'] == 12
    assert tournament['game_mode'] == 'duo'


def test_live_tournament_requires_room_credentials(admin_client):
    res = admin_client.post('/api/tournaments', json=_tournament_payload(status='live'))
    assert res.status_code == 400
    details = json.loads(res.data)['details']
    assert 'room_id' in details and 'room_password' in details

    tournament = _create(admin_client)
    res = admin_client.put(f"/api/tournaments/{tournament['id']}", json={'status': 'live'})
    assert res.status_code == 400

    res = admin_client.put(f"/api/tournaments/{tournament['id']}", json={
        'status': 'live', 'roomId': 'R-1001', 'roomPassword': 'pw42',
    })
    assert res.status_code == 200
    assert json.loads(res.data)['status'] == 'live'

    # Already-stored credentials satisfy the rule on later updates.
    res = admin_client.patch(f"/api/tournaments/{tournament['id']}", json={'prizePool': 2000})
    assert res.status_code == 200
    res = admin_client.patch(f"/api/tournaments/{tournament['id']}", json={'roomPassword': ''})
    assert res.status_code == 400


def test_update_unknown_tournament_returns_404(admin_client):
    res = admin_client.put('/api/tournaments/9999', json={'title': 'Nope'})
    assert res.status_code == 404


def test_list_and_filter_by_status(client, admin_client):
    _create(admin_client, title='Later')
    live = _create(admin_client, title='Now', status='live', roomId='R1', roomPassword='P1')
    _create(admin_client, title='Done', status='completed')

    all_titles = {t['title'] for t in json.loads(client.get('/api/tournaments').data)}
    assert all_titles == {'Later', 'Now', 'Done'}

    live_list = json.loads(client.get('/api/tournaments?status=live').data)
    assert [t['id'] for t in live_list] == [live['id']]
    assert client.get('/api/tournaments?status=paused').status_code == 400


def test_room_credentials_hidden_from_public_and_unregistered(app, client, admin_client):
    tournament = _create(admin_client, gameMode='solo', roomId='R-77', roomPassword='secret')

    public = json.loads(client.get(f"/api/tournaments/{tournament['id']}").data)
    assert public['room_id'] is None
    assert public['room_password'] is None

    admin_view = json.loads(admin_client.get(f"/api/tournaments/{tournament['id']}").data)
    assert admin_view['room_id'] == 'R-77'

    player, _ = _register(app, 'player', '1111111111')
    team = json.loads(player.post('/api/teams', json={'name': 'Solo Team', 'gameType': 'BGMI'}).data)
    before = json.loads(player.get(f"/api/tournaments/{tournament['id']}").data)
    assert before['room_password'] is None

    player.post('/api/registrations', json={'tournamentId': tournament['id'], 'teamId': team['id']})
    after = json.loads(player.get(f"/api/tournaments/{tournament['id']}").data)
    assert after['room_id'] == 'R-77'
    assert after['room_password'] == 'secret'

    listed = json.loads(player.get('/api/tournaments').data)
    assert listed[0]['room_password'] == 'secret'


def test_room_change_notifies_registered_players(app, admin_client, storage):
    tournament = _create(admin_client, gameMode='solo')
    player, user = _register(app, 'player', '1111111111')
    team = json.loads(player.post('/api/teams', json={'name': 'Solo Team', 'gameType': 'BGMI'}).data)
    player.post('/api/registrations', json={'tournamentId': tournament['id'], 'teamId': team['id']})

    admin_client.put(f"/api/tournaments/{tournament['id']}", json={'roomId': 'R-9', 'roomPassword': 'pw9'})

    notifications = storage.list_user_notifications(user['id'])
    assert len(notifications) == 1
    assert notifications[0]['type'] == 'tournament'
    assert notifications[0]['related_id'] == tournament['id']
    assert 'R-9' in notifications[0]['message'] and 'pw9' in notifications[0]['message']

    # Unrelated edits do not re-notify.
    admin_client.put(f"/api/tournaments/{tournament['id']}", json={'title': 'Renamed'})
    assert len(storage.list_user_notifications(user['id'])) == 1


def test_explicit_room_notification(app, admin_client, storage):
    tournament = _create(admin_client, gameMode='solo')
    res = admin_client.post(f"/api/tournaments/{tournament['id']}/room-notification")
    assert res.status_code == 400

    player, user = _register(app, 'player', '1111111111')
    team = json.loads(player.post('/api/teams', json={'name': 'Solo Team', 'gameType': 'BGMI'}).data)
    player.post('/api/registrations', json={'tournamentId': tournament['id'], 'teamId': team['id']})
    admin_client.put(f"/api/tournaments/{tournament['id']}", json={'roomId': 'R-1', 'roomPassword': 'pw1'})

    res = admin_client.post(f"/api/tournaments/{tournament['id']}/room-notification")
    assert res.status_code == 200
    assert json.loads(res.data)['notified'] == 1
    assert len(storage.list_user_notifications(user['id'])) == 2


def test_delete_tournament_cascades_registrations(app, admin_client, storage):
    tournament = _create(admin_client, gameMode='solo')
    player, _ = _register(app, 'player', '1111111111')
    team = json.loads(player.post('/api/teams', json={'name': 'Solo Team', 'gameType': 'BGMI'}).data)
    registration = json.loads(player.post('/api/registrations', json={
        'tournamentId': tournament['id'], 'teamId': team['id'],
    }).data)

    assert player.delete(f"/api/tournaments/{tournament['id']}").status_code == 403
    assert admin_client.delete(f"/api/tournaments/{tournament['id']}").status_code == 200
    assert storage.get_tournament(tournament['id']) is None
    assert storage.get_registration(registration['id']) is None
    assert storage.get_team(team['id']) is not None
