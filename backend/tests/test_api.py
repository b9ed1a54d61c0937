def _lineup(players, roles=('civilian', 'civilian', 'sheriff', 'mafia', 'don')):
    return [
        {'player_id': p.id, 'role': role, 'slot_number': slot}
        for slot, (p, role) in enumerate(zip(players, roles), start=1)
    ]


def test_register_login_and_profile(client, make_club):
    club = make_club('Red Night')
    res = client.post('/register', json={'email': 'Alice@Example.com', 'password': 'pw', 'name': 'Alice'})
    assert res.status_code == 201
    assert res.get_json()['user']['email'] == 'alice@example.com'
    assert client.post('/register', json={'email': 'alice@example.com', 'password': 'x', 'name': 'A'}).status_code == 400

    res = client.put('/profile', json={'nickname': 'Ace', 'club_id': club.id, 'birthday': '1990-05-01'})
    assert res.status_code == 200
    me = client.get('/me').get_json()
    assert me['nickname'] == 'Ace'
    assert me['club_name'] == 'Red Night'
    assert me['birthday'] == '1990-05-01'


def test_bad_login(client, make_user):
    user = make_user()
    res = client.post('/login', json={'email': user.email, 'password': 'wrong'})
    assert res.status_code == 401


def test_create_game_with_lineup_and_best_move(client, make_user, login):
    referee = make_user(name='Referee')
    players = [make_user() for _ in range(5)]
    login(referee)

    res = client.post('/api/games/', json={
        'name': 'Friday final',
        'result': 'civilians_win',
        'players': _lineup(players),
        'nights': [{'mafia_shot': 1, 'don_check': 3, 'sheriff_check': 4}],
        'best_move': {
            'killed_player_id': players[0].id,
            'nominated_player_ids': [players[3].id, players[4].id, players[1].id],
        },
    })
    assert res.status_code == 201
    game = res.get_json()
    assert game['referee_id'] == referee.id
    assert len(game['players']) == 5
    assert game['warnings'] == []
    killed = [p for p in game['players'] if p['player_id'] == players[0].id][0]
    assert killed['additional_points'] == 0.25

    night = client.get(f"/api/games/{game['id']}/night-actions").get_json()[0]
    assert night['shot_role'] == 'civilian'
    assert night['don_found_sheriff'] is True
    assert night['sheriff_found_mafia'] is True

    # A game has a single best move
    res = client.post(f"/api/games/{game['id']}/best-move", json={
        'killed_player_id': players[1].id, 'nominated_player_ids': [],
    })
    assert res.status_code == 409


def test_game_validation(client, make_user, login):
    user = make_user()
    login(user)

    res = client.post('/api/games/', json={'players': [{'player_id': user.id, 'role': 'werewolf', 'slot_number': 1}]})
    assert res.status_code == 400
    res = client.post('/api/games/', json={'players': [{'player_id': user.id, 'role': 'civilian', 'slot_number': 11}]})
    assert res.status_code == 400
    res = client.post('/api/games/', json={'players': [{'player_id': 9999, 'role': 'civilian', 'slot_number': 1}]})
    assert res.status_code == 400
    assert client.post('/api/games/', json={'result': 'town_win'}).status_code == 400


def test_duplicate_slot_is_accepted_with_warning(client, make_user, login):
    a, b = make_user(), make_user()
    login(a)
    res = client.post('/api/games/', json={'players': [
        {'player_id': a.id, 'role': 'sheriff', 'slot_number': 1},
        {'player_id': b.id, 'role': 'sheriff', 'slot_number': 1},
    ]})
    assert res.status_code == 201
    assert len(res.get_json()['warnings']) == 2


def test_game_lifecycle_admin_delete(client, make_user, make_game, login):
    admin = make_user(role='admin')
    players = [make_user() for _ in range(2)]
    game = make_game([(players[0], 'civilian'), (players[1], 'mafia')])
    login(admin)

    res = client.post(f'/api/games/{game.id}/players', json={'player_id': admin.id, 'role': 'don', 'slot_number': 3})
    assert res.status_code == 201
    gp_id = res.get_json()['id']
    assert client.delete(f'/api/games/{game.id}/players/{gp_id}').status_code == 200

    res = client.put(f'/api/games/{game.id}', json={'result': 'mafia_win', 'name': 'Renamed'})
    assert res.get_json()['result'] == 'mafia_win'

    assert client.get('/api/games/count').get_json() == {'count': 1}
    assert client.delete(f'/api/games/{game.id}').status_code == 200
    assert client.get(f'/api/games/{game.id}').status_code == 404


def test_non_admin_cannot_delete_game(client, make_user, make_game, login):
    user = make_user()
    game = make_game([(user, 'civilian')])
    login(user)
    assert client.delete(f'/api/games/{game.id}').status_code == 403


def test_player_pages(client, make_user, make_game):
    player = make_user(name='Solo', is_tournament_judge=True)
    make_game([(player, 'sheriff'), (make_user(), 'mafia')], result='civilians_win')

    res = client.get(f'/api/players/{player.id}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['stats']['sheriff']['winrate'] == '100.00'
    assert data['recent_games'][0]['won'] is True
    assert client.get('/api/players/judges/count').get_json() == {'count': 1}
    assert client.get('/api/players/999/stats').status_code == 404
    assert client.get('/api/players/?search=solo').get_json()[0]['id'] == player.id


def test_clubs_and_federations(client, make_user, login):
    login(make_user(role='admin'))

    res = client.post('/api/federations/', json={'name': 'North', 'country': 'Norway'})
    assert res.status_code == 201
    federation_id = res.get_json()['id']
    res = client.post('/api/clubs/', json={'name': 'Polar', 'city': 'Oslo', 'federation_id': federation_id})
    assert res.status_code == 201
    club_id = res.get_json()['id']
    assert client.post('/api/clubs/', json={'name': ''}).status_code == 400

    client.put('/profile', json={'club_id': club_id})

    federation = client.get(f'/api/federations/{federation_id}').get_json()
    assert federation['club_count'] == 1
    assert federation['player_count'] == 1
    assert federation['clubs'][0]['name'] == 'Polar'
    assert len(client.get(f'/api/federations/{federation_id}/players').get_json()) == 1
    assert client.get(f'/api/clubs/?federation={federation_id}&search=pol').get_json()[0]['player_count'] == 1
    assert client.get('/api/clubs/top').get_json()[0]['id'] == club_id

    res = client.put(f'/api/clubs/{club_id}', json={'description': 'Arctic club'})
    assert res.get_json()['description'] == 'Arctic club'


def test_dashboard_endpoints(client, make_user, make_game):
    player = make_user()
    for _ in range(7):
        make_game([(player, 'civilian')])

    assert len(client.get('/api/games/recent').get_json()) == 5
    counts = client.get('/api/stats/').get_json()
    assert counts['games'] == 7
    assert counts['players'] == 1


def test_dashboard_endpoints_degrade_without_tables(client):
    from mafiastats import db
    db.drop_all()

    assert client.get('/api/games/recent').get_json() == []
    assert client.get('/api/clubs/top').get_json() == []
    res = client.get('/api/stats/')
    assert res.status_code == 200
    assert res.get_json()['games'] == 0

    db.create_all()


def test_fractional_fouls_are_rejected(client, make_user, login):
    user = make_user()
    login(user)
    res = client.post('/api/games/', json={'players': [
        {'player_id': user.id, 'role': 'civilian', 'slot_number': 1, 'fouls': 2.7},
    ]})
    assert res.status_code == 400
    assert 'fouls' in res.get_json()['error']

    res = client.post('/api/games/', json={'players': [
        {'player_id': user.id, 'role': 'civilian', 'slot_number': 1, 'fouls': 2},
    ]})
    assert res.status_code == 201
    assert res.get_json()['players'][0]['fouls'] == 2


def test_best_move_with_four_nominations_is_rejected(client, make_user, make_game, login):
    players = [make_user() for _ in range(5)]
    game = make_game([(p, role) for p, role in zip(players, ('civilian', 'civilian', 'sheriff', 'mafia', 'don'))])
    login(players[0])

    res = client.post(f'/api/games/{game.id}/best-move', json={
        'killed_player_id': players[0].id,
        'nominated_player_ids': [p.id for p in players[1:]],
    })
    assert res.status_code == 400
    assert client.get(f'/api/games/{game.id}').get_json()['stages'] == []
