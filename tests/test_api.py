def _create_room(host, **overrides):
    body = {'title': 'Sketchy', 'max_players': 4, 'total_rounds': 1}
    body.update(overrides)
    res = host.post('/api/rooms', json=body)
    assert res.status_code == 201
    return res.get_json()['room']['id']


def test_auth_flow(client, login_as):
    alice = login_as('alice')
    me = alice.get('/api/auth/me').get_json()
    assert me['user']['username'] == 'alice'

    res = client.post('/api/auth/register', json={'username': 'alice', 'password': 'x'})
    assert res.status_code == 409
    res = client.post('/api/auth/login', json={'username': 'alice', 'password': 'nope'})
    assert res.status_code == 401
    res = client.post('/api/auth/login', json={'username': 'alice', 'password': 'password'})
    assert res.status_code == 200

    assert alice.post('/api/auth/logout').status_code == 200
    assert alice.get('/api/auth/me').status_code == 401


def test_each_client_keeps_its_own_login(login_as):
    host, guest = login_as('host'), login_as('guest')
    assert host.get('/api/auth/me').get_json()['user']['username'] == 'host'
    assert guest.get('/api/auth/me').get_json()['user']['username'] == 'guest'
    assert host.get('/api/auth/me').get_json()['user']['id'] == host.user['id']


def test_engine_calls_require_login(client):
    res = client.post('/api/rooms', json={'title': 'x'})
    assert res.status_code == 401
    assert res.get_json()['kind'] == 'unauthenticated'


def test_create_list_and_get_room(client, login_as):
    host = login_as('host')
    room_id = _create_room(host)

    listed = client.get('/api/rooms').get_json()['rooms']
    assert [r['id'] for r in listed] == [room_id]
    assert listed[0]['host_name'] == 'host'

    room = client.get(f'/api/rooms/{room_id}').get_json()['room']
    assert room['status'] == 'waiting'
    assert room['players'][0]['is_host'] is True
    assert room['round'] is None

    assert client.get('/api/rooms/404').status_code == 404


def test_bad_room_settings_are_validation_errors(login_as):
    host = login_as('host')
    res = host.post('/api/rooms', json={'max_players': 0})
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'validation'


def test_private_room_join_over_http(login_as):
    host, guest = login_as('host'), login_as('guest')
    room_id = _create_room(host, is_private=True, password='abcd')

    res = guest.post(f'/api/rooms/{room_id}/join', json={'password': 'wrong'})
    assert res.status_code == 403
    assert res.get_json()['kind'] == 'forbidden'

    res = guest.post(f'/api/rooms/{room_id}/join', json={'password': 'abcd'})
    assert res.status_code == 200
    assert res.get_json()['player']['seat_order'] == 2

    res = guest.post(f'/api/rooms/{room_id}/join', json={'password': 'abcd'})
    assert res.status_code == 409


def test_full_room_over_http(login_as):
    host, guest, late = login_as('host'), login_as('guest'), login_as('late')
    room_id = _create_room(host, max_players=2)
    assert guest.post(f'/api/rooms/{room_id}/join').status_code == 200
    res = late.post(f'/api/rooms/{room_id}/join')
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'capacity'


def test_full_game_over_http(login_as):
    a, b, c = login_as('ann'), login_as('bob'), login_as('cat')
    room_id = _create_room(a)
    for p in (b, c):
        assert p.post(f'/api/rooms/{room_id}/join').status_code == 200

    # start needs everybody ready
    res = a.post(f'/api/rooms/{room_id}/start')
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'precondition'
    for p in (a, b, c):
        assert p.post(f'/api/rooms/{room_id}/ready').get_json()['ready'] is True
    assert b.post(f'/api/rooms/{room_id}/start').status_code == 403
    res = a.post(f'/api/rooms/{room_id}/start')
    assert res.get_json()['round']['phase'] == 'collecting_words'

    # words
    for p, word in ((a, 'sun'), (b, 'moon'), (c, 'star')):
        assert p.post(f'/api/rooms/{room_id}/word', json={'word': word}).status_code == 201
    assert a.post(f'/api/rooms/{room_id}/word', json={'word': 'again'}).status_code == 409
    status = b.get(f'/api/rooms/{room_id}/words-status').get_json()
    assert status['all_submitted'] is True
    assert status['my_word'] == 'moon'

    # drawing
    assert a.post(f'/api/rooms/{room_id}/start-drawing').status_code == 200
    assert b.get(f'/api/rooms/{room_id}/my-drawing-word').get_json()['word'] == 'sun'
    for p in (a, b, c):
        assert p.post(f'/api/rooms/{room_id}/save-drawing', json={'drawing': 'data:image/png;base64,AAAA'}).status_code == 200
        done = p.post(f'/api/rooms/{room_id}/finish-drawing').get_json()
        assert done['success'] is True
    drawing = a.get(f'/api/rooms/{room_id}/drawing-status').get_json()
    assert drawing['phase'] == 'guessing'
    assert drawing['completed_count'] == drawing['total_count'] == 3

    # guessing
    to_guess = a.get(f'/api/rooms/{room_id}/drawings-to-guess').get_json()
    assert to_guess['total'] == 2
    ids = {'ann': a.user['id'], 'bob': b.user['id'], 'cat': c.user['id']}
    assert a.post(f'/api/rooms/{room_id}/guess', json={'artist_id': ids['ann'], 'guess': 'me'}).status_code == 400
    guesses = [
        (a, 'bob', 'sun'), (a, 'cat', 'moon'),
        (b, 'ann', 'star'), (b, 'cat', 'moon'),
        (c, 'ann', 'comet'), (c, 'bob', 'sun'),
    ]
    for p, target, text in guesses:
        res = p.post(f'/api/rooms/{room_id}/guess', json={'artist_id': ids[target], 'guess': text})
        assert res.status_code == 201

    # one round configured, so the last guess finishes the game
    room = a.get(f'/api/rooms/{room_id}').get_json()['room']
    assert room['status'] == 'finished'

    results = a.get(f'/api/rooms/{room_id}/results').get_json()
    assert len(results['chains']) == 3
    assert a.get(f'/api/rooms/{room_id}/results?round=x').status_code == 400

    history = a.get('/api/rooms/history').get_json()['rooms']
    assert [r['id'] for r in history] == [room_id]
    stats = a.get('/api/rooms/stats').get_json()['stats']
    assert stats['completed_games'] == 1


def test_host_escape_hatches_over_http(login_as):
    a, b = login_as('ann'), login_as('bob')
    room_id = _create_room(a, total_rounds=2)
    b.post(f'/api/rooms/{room_id}/join')
    for p in (a, b):
        p.post(f'/api/rooms/{room_id}/ready')
    a.post(f'/api/rooms/{room_id}/start')
    for p, word in ((a, 'sun'), (b, 'moon')):
        p.post(f'/api/rooms/{room_id}/word', json={'word': word})
    a.post(f'/api/rooms/{room_id}/start-drawing')
    b.post(f'/api/rooms/{room_id}/finish-drawing')

    assert b.post(f'/api/rooms/{room_id}/force-guessing').status_code == 403
    assert a.post(f'/api/rooms/{room_id}/force-guessing').status_code == 200
    status = b.get(f'/api/rooms/{room_id}/guess-status').get_json()
    assert status['targets'] == [b.user['id']]

    res = a.post(f'/api/rooms/{room_id}/finish-round')
    assert res.status_code == 200
    assert res.get_json()['round'] == {
        'id': res.get_json()['round']['id'],
        'room_id': room_id,
        'number': 2,
        'phase': 'collecting_words',
        'phase_deadline': None,
    }
    assert a.get(f'/api/rooms/{room_id}/results?round=1').status_code == 200


def test_leave_over_http(login_as):
    a, b = login_as('ann'), login_as('bob')
    room_id = _create_room(a)
    b.post(f'/api/rooms/{room_id}/join')
    assert b.post(f'/api/rooms/{room_id}/leave').status_code == 200
    assert b.post(f'/api/rooms/{room_id}/leave').status_code == 404
    room = a.get(f'/api/rooms/{room_id}').get_json()['room']
    assert room['current_players'] == 1
