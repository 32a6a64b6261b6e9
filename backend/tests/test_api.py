import sqlalchemy as sa

from conftest import TestConfig
from imposter import create_app, db


def create_game(client, name='Host', **extra):
    res = client.post('/api/games/create', json={'name': name, **extra})
    assert res.status_code == 201
    return res.get_json()


def seat_players(client, code, names=('Bob', 'Cara', 'Dan'), account_ids=None):
    players = {}
    for name in names:
        body = {'code': code, 'name': name}
        if account_ids and name in account_ids:
            body['account_id'] = account_ids[name]
        res = client.post('/api/games/join', json=body)
        assert res.status_code == 201
        players[name] = res.get_json()['you']['id']
    return players


def current_round(flask_app, code):
    return flask_app.extensions['imposter'].registry.get(code).current_round


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json()['ok'] is True


def test_create_join_and_state(client):
    game = create_game(client)
    assert game['status'] == 'lobby'
    assert game['you']['isHost'] is True
    code = game['code']
    seat_players(client, code.lower(), names=('Alice',))
    res = client.get(f'/api/games/{code}/state', query_string={'name': 'alice'})
    assert res.status_code == 200
    state = res.get_json()
    assert state['code'] == code
    assert [p['name'] for p in state['players']] == ['Host', 'Alice']
    assert state['you']['isHost'] is False
    # Session id works as well as the room code
    res = client.get(f"/api/games/{game['sessionId']}/state", query_string={'name': 'Host'})
    assert res.get_json()['code'] == code


def test_error_statuses(client):
    res = client.post('/api/games/join', json={'code': 'NOPE99', 'name': 'Bob'})
    assert res.status_code == 404
    assert res.get_json()['code'] == 'room_not_found'

    res = client.post('/api/games/create', json={})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_input'

    code = create_game(client)['code']
    seat_players(client, code, names=('Bob', 'Cara'))
    res = client.post('/api/games/join', json={'code': code, 'name': 'BOB'})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'name_taken'

    res = client.post(f'/api/games/{code}/start', json={'name': 'Bob'})
    assert res.status_code == 403
    assert res.get_json()['code'] == 'not_host'

    res = client.post(f'/api/games/{code}/start', json={'name': 'Host'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'too_few_players'

    res = client.post(f'/api/games/{code}/state')
    assert res.status_code == 405

    res = client.get(f'/api/games/{code}/state', query_string={'name': 'Zed'})
    assert res.status_code == 404
    assert res.get_json()['code'] == 'player_not_found'

    res = client.post(f'/api/games/{code}/new-round', json={'name': 'Host', 'round_number': 'one'})
    assert res.status_code == 400


def test_join_after_start_refused(client):
    code = create_game(client)['code']
    seat_players(client, code)
    client.post(f'/api/games/{code}/start', json={'name': 'Host'})
    res = client.post('/api/games/join', json={'code': code, 'name': 'Late'})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'game_already_started'


def test_full_standard_round(client, flask_app):
    game = create_game(client)
    code = game['code']
    players = {'Host': game['you']['id'], **seat_players(client, code)}
    res = client.post(f'/api/games/{code}/start', json={'name': 'Host'})
    assert res.status_code == 200
    started = res.get_json()
    assert started['phase'] == 'round'
    assert started['roundNumber'] == 1
    assert sorted(started['turnOrder']) == sorted(players)

    round_ = current_round(flask_app, code)
    for name, pid in players.items():
        state = client.get(f'/api/games/{code}/state', query_string={'name': name}).get_json()
        assignment = state['assignment']
        assert assignment['isImposter'] == (pid in round_.imposter_ids)
        if assignment['isImposter']:
            assert assignment['word'] is None
            assert assignment['category'] == round_.category
        else:
            assert assignment['word'] == round_.word

    res = client.post(f'/api/games/{code}/start-vote', json={'name': 'Host', 'round_number': 1})
    assert res.get_json()['votePhase'] == 'voting'

    # Early reveal is refused
    res = client.post(f'/api/games/{code}/reveal', json={'name': 'Host'})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'votes_incomplete'

    for name, pid in players.items():
        body = {'name': name, 'no_imposter': True}
        res = client.post(f'/api/games/{code}/vote', json=body)
        assert res.status_code == 200
        assert res.get_json()['hasVoted'] is True

    res = client.post(f'/api/games/{code}/reveal', json={'name': 'Host', 'round_number': 1})
    assert res.status_code == 200
    revealed = res.get_json()
    assert revealed['votePhase'] == 'revealed'
    reveal = revealed['reveal']
    assert reveal['ejectedPlayerId'] is None
    assert reveal['crewWon'] == (len(round_.imposter_ids) == 0)
    assert sorted(reveal['imposterIds']) == sorted(round_.imposter_ids)

    # Repeated reveal returns the same result
    again = client.post(f'/api/games/{code}/reveal', json={'name': 'Host'}).get_json()
    assert again['reveal'] == reveal

    res = client.post(f'/api/games/{code}/new-round', json={'name': 'Host', 'round_number': 1})
    assert res.get_json()['roundNumber'] == 2
    # Stale request for round 1 is ignored
    res = client.post(f'/api/games/{code}/new-round', json={'name': 'Host', 'round_number': 1})
    assert res.get_json()['roundNumber'] == 2


def test_vote_validation(client):
    game = create_game(client)
    code = game['code']
    players = {'Host': game['you']['id'], **seat_players(client, code)}
    client.post(f'/api/games/{code}/start', json={'name': 'Host'})
    client.post(f'/api/games/{code}/start-vote', json={'name': 'Host'})

    res = client.post(f'/api/games/{code}/vote', json={'name': 'Bob', 'accused': [players['Bob']]})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_vote'

    res = client.post(f'/api/games/{code}/vote', json={'name': 'Bob', 'accused': []})
    assert res.status_code == 400

    res = client.post(f'/api/games/{code}/vote', json={'name': 'Bob', 'accused': [players['Cara'], players['Dan']]})
    assert res.status_code == 200
    assert res.get_json()['votedCount'] == 1


def test_custom_game_flow(client):
    game = create_game(client, custom=True)
    code = game['code']
    assert game['isCustom'] is True
    seat_players(client, code, names=('Bob', 'Cara'))

    started = client.post(f'/api/games/{code}/start', json={'name': 'Host'}).get_json()
    assert started['needsSetup'] is True
    assert started['phase'] == 'setup'

    res = client.post(f'/api/games/{code}/custom-round', json={'name': 'Host', 'category': 'Animals', 'word': ''})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_round_setup'

    res = client.post(f'/api/games/{code}/custom-round', json={'name': 'Host', 'category': 'Animals', 'word': 'giraffe'})
    assert res.status_code == 200
    host_view = res.get_json()
    assert host_view['assignment'] is None
    assert host_view['hostRound'] == {'category': 'Animals', 'word': 'giraffe'}
    assert host_view['totalVoters'] == 2

    bob = client.get(f'/api/games/{code}/state', query_string={'name': 'Bob'}).get_json()
    assert bob['assignment']['word'] in ('giraffe', None)
    assert bob['assignment']['totalPlayers'] == 2

    # Auto round needs four including the host
    res = client.post(f'/api/games/{code}/auto-round', json={'name': 'Host'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'too_few_players'

    client.post(f'/api/games/{code}/start-vote', json={'name': 'Host'})
    res = client.post(f'/api/games/{code}/vote', json={'name': 'Host', 'no_imposter': True})
    assert res.status_code == 403
    assert res.get_json()['code'] == 'not_allowed_to_vote'

    res = client.post(f'/api/games/{code}/lobby', json={'name': 'Host'})
    assert res.get_json()['status'] == 'lobby'


def test_leave_hands_over_host(client):
    game = create_game(client)
    code = game['code']
    players = seat_players(client, code, names=('Bob',))
    res = client.post(f'/api/games/{code}/leave', json={'name': 'Host'})
    body = res.get_json()
    assert body['removed'] is True
    assert body['newHostId'] == players['Bob']
    state = client.get(f'/api/games/{code}/state', query_string={'name': 'Bob'}).get_json()
    assert state['you']['isHost'] is True


def test_rejoin_over_http(client):
    code = create_game(client)['code']
    seat_players(client, code)
    client.post(f'/api/games/{code}/start', json={'name': 'Host'})
    res = client.post('/api/games/rejoin', json={'code': code.lower(), 'name': 'cara'})
    assert res.status_code == 200
    snapshot = res.get_json()
    assert snapshot['you']['name'] == 'Cara'
    assert snapshot['assignment'] is not None

    res = client.post('/api/games/rejoin', json={'code': code, 'name': 'Stranger'})
    assert res.status_code == 404


def test_accounts_sign_up_and_in(client):
    res = client.post('/api/users', json={'username': 'alice', 'password': 'secret'})
    assert res.status_code == 201
    user_id = res.get_json()['userId']
    client.post('/api/auth/sign-out')

    res = client.post('/api/users', json={'username': 'ALICE', 'password': 'other'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Username taken'

    res = client.post('/api/users', json={'username': 'b', 'password': 'secret'})
    assert res.status_code == 400

    res = client.post('/api/auth/sign-in', json={'username': 'alice', 'password': 'wrong'})
    assert res.status_code == 401

    res = client.post('/api/auth/sign-in', json={'username': 'Alice', 'password': 'secret'})
    assert res.status_code == 200
    assert res.get_json()['userId'] == user_id

    res = client.get(f'/api/users/{user_id}')
    assert res.get_json()['username'] == 'alice'
    assert res.get_json()['stats']['teamWins'] == 0

    assert client.get('/api/users/999').status_code == 404


def test_reveal_records_stats_for_signed_in_players(client):
    user_ids = {}
    for name in ('hostacct', 'bobacct'):
        res = client.post('/api/users', json={'username': name, 'password': 'secret'})
        user_ids[name] = res.get_json()['userId']
        client.post('/api/auth/sign-out')

    game = create_game(client, account_id=user_ids['hostacct'])
    code = game['code']
    seat_players(client, code, account_ids={'Bob': user_ids['bobacct']})
    client.post(f'/api/games/{code}/start', json={'name': 'Host'})
    client.post(f'/api/games/{code}/start-vote', json={'name': 'Host'})
    for name in ('Host', 'Bob', 'Cara', 'Dan'):
        client.post(f'/api/games/{code}/vote', json={'name': name, 'no_imposter': True})
    reveal = client.post(f'/api/games/{code}/reveal', json={'name': 'Host'}).get_json()['reveal']
    # Repeat must not double count
    client.post(f'/api/games/{code}/reveal', json={'name': 'Host'})

    for name in ('hostacct', 'bobacct'):
        stats = client.get(f"/api/users/{user_ids[name]}/stats").get_json()
        assert sum(stats[k] for k in ('teamWins', 'teamLosses', 'imposterWins', 'imposterLosses')) == 1
        assert stats['correctVotes'] == (1 if reveal['noImposterRound'] else 0)

    board = client.get('/api/leaderboard').get_json()
    assert {row['username'] for row in board} == {'hostacct', 'bobacct'}
    assert all(row['rounds'] == 1 for row in board)


def test_app_boot_leaves_schema_to_migrations():
    app = create_app(TestConfig)
    with app.app_context():
        assert sa.inspect(db.engine).get_table_names() == []
