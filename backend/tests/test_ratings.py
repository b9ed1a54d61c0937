from decimal import Decimal

from mafiastats.services.ratings import tally_rating


def test_tally_rating_points():
    rows = [
        (1, 'civilian', 'civilians_win', Decimal('0.25')),
        (1, 'don', 'civilians_win', None),
        (1, 'sheriff', 'draw', Decimal('0')),
        (2, 'mafia', 'civilians_win', None),
    ]
    results = tally_rating(rows)

    assert results[1]['games_played'] == 3
    assert results[1]['wins'] == 1
    assert results[1]['civilian_wins'] == 1
    assert results[1]['points'] == Decimal('1.25')
    assert results[1]['best_moves'] == 1
    assert results[1]['don_games'] == 1
    assert results[1]['sheriff_games'] == 1
    assert results[2]['points'] == Decimal('0')


def test_rating_games_flow(client, make_user, make_game, login):
    owner = make_user(name='Owner')
    rival = make_user(name='Rival')
    g1 = make_game([(owner, 'mafia'), (rival, 'civilian')], result='mafia_win')
    g2 = make_game([(owner, 'civilian'), (rival, 'don')], result='civilians_win')
    login(owner)

    res = client.post('/api/ratings/', json={'name': 'Spring league'})
    assert res.status_code == 201
    rating_id = res.get_json()['id']

    res = client.post(f'/api/ratings/{rating_id}/games', json={'game_ids': [g1.id, g2.id]})
    assert res.status_code == 201
    results = {r['player_id']: r for r in res.get_json()['rating']['results']}
    assert results[owner.id]['points'] == 2.0
    assert results[owner.id]['mafia_wins'] == 1
    assert results[rival.id]['points'] == 0.0

    assert client.post(f'/api/ratings/{rating_id}/games', json={'game_id': g1.id}).status_code == 409
    assert client.post(f'/api/ratings/{rating_id}/games', json={'game_id': 999}).status_code == 404
    assert len(client.get(f'/api/ratings/{rating_id}/games').get_json()) == 2

    res = client.delete(f'/api/ratings/{rating_id}/games?game_id={g1.id}')
    assert res.status_code == 200
    rating = client.get(f'/api/ratings/{rating_id}').get_json()
    assert rating['game_count'] == 1
    assert {r['player_id']: r['points'] for r in rating['results']}[owner.id] == 1.0
    assert client.delete(f'/api/ratings/{rating_id}/games?game_id={g1.id}').status_code == 404


def test_only_owner_changes_rating(client, make_user, make_game, login):
    from mafiastats import db
    from mafiastats.models import Rating

    owner = make_user()
    rating = Rating(name='Private', owner_id=owner.id)
    db.session.add(rating)
    db.session.commit()
    game = make_game([(owner, 'civilian')])

    login(make_user())
    res = client.post(f'/api/ratings/{rating.id}/games', json={'game_id': game.id})
    assert res.status_code == 403


def _rating_with_games(client, games):
    rating_id = client.post('/api/ratings/', json={'name': 'League'}).get_json()['id']
    res = client.post(f'/api/ratings/{rating_id}/games', json={'game_ids': [g.id for g in games]})
    assert res.status_code == 201
    return rating_id


def test_deleting_a_game_updates_its_ratings(client, make_user, make_game, login):
    admin = make_user(role='admin')
    rival = make_user()
    g1 = make_game([(admin, 'mafia'), (rival, 'civilian')], result='mafia_win')
    g2 = make_game([(admin, 'civilian'), (rival, 'mafia')], result='mafia_win')
    login(admin)
    rating_id = _rating_with_games(client, [g1, g2])

    assert client.delete(f'/api/games/{g1.id}').status_code == 200

    rating = client.get(f'/api/ratings/{rating_id}').get_json()
    assert rating['game_count'] == 1
    points = {r['player_id']: r['points'] for r in rating['results']}
    assert points == {admin.id: 0.0, rival.id: 1.0}
    res = client.get(f'/api/ratings/{rating_id}/games')
    assert res.status_code == 200
    assert [g['id'] for g in res.get_json()] == [g2.id]


def test_changing_a_result_updates_its_ratings(client, make_user, make_game, login):
    owner = make_user()
    rival = make_user()
    game = make_game([(owner, 'mafia'), (rival, 'civilian')], result='mafia_win')
    login(owner)
    rating_id = _rating_with_games(client, [game])

    res = client.put(f'/api/games/{game.id}', json={'result': 'civilians_win'})
    assert res.status_code == 200

    results = client.get(f'/api/ratings/{rating_id}').get_json()['results']
    points = {r['player_id']: r['points'] for r in results}
    assert points == {owner.id: 0.0, rival.id: 1.0}
