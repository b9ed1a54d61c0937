from mafiastats.services.games.statistics import (
    federation_players, leaderboard, player_recent_games, player_role_stats, win_rate,
)


def test_win_rate_formatting():
    assert win_rate(0, 0) == '0'
    assert win_rate(1, 4) == '25.00'
    assert win_rate(2, 3) == '66.67'
    assert win_rate(0, 5) == '0.00'


def test_player_role_stats(make_user, make_game):
    player = make_user()
    others = [make_user() for _ in range(3)]
    make_game([(player, 'sheriff'), (others[0], 'mafia')], result='civilians_win')
    make_game([(player, 'don'), (others[1], 'civilian')], result='civilians_win')
    make_game([(player, 'civilian'), (others[2], 'mafia')], result='draw')

    stats = player_role_stats(player.id)

    assert stats['overall']['total_games'] == 3
    assert stats['overall']['total_wins'] == 1
    assert stats['overall']['overall_winrate'] == '33.33'
    assert stats['sheriff']['winrate'] == '100.00'
    assert stats['don']['games_played'] == 1
    assert stats['don']['winrate'] == '0.00'
    assert stats['mafia']['winrate'] == '0'


def test_player_without_games_has_zero_stats(make_user):
    player = make_user()
    stats = player_role_stats(player.id)
    assert stats['overall']['total_games'] == 0
    assert stats['overall']['overall_winrate'] == '0'
    assert player_recent_games(player.id) == []


def test_leaderboard_orders_by_games_played(make_user, make_game, make_club):
    club = make_club('Red Night')
    busy = make_user(name='Busy', club=club)
    idle = make_user(name='Idle', club=club)
    outsider = make_user(name='Outsider')
    make_game([(busy, 'mafia'), (outsider, 'civilian')], result='mafia_win')
    make_game([(busy, 'civilian'), (outsider, 'mafia')], result='mafia_win')

    rows = leaderboard(club=str(club.id))

    assert [r['name'] for r in rows] == ['Busy', 'Idle']
    assert rows[0]['total_games'] == 2
    assert rows[0]['mafia_win_rate'] == '100.00'
    assert rows[0]['civ_win_rate'] == '0.00'
    assert rows[1]['civ_win_rate'] == '0'
    # "all" leaves the dimension unconstrained
    assert len(leaderboard(club='all')) == 3


def test_federation_players_use_whole_percentages(make_user, make_game, make_club, make_federation):
    federation = make_federation('North')
    club = make_club('Polar', federation=federation)
    member = make_user(name='Member', club=club)
    rival = make_user()
    make_game([(member, 'civilian'), (rival, 'mafia')], result='civilians_win')
    make_game([(member, 'mafia'), (rival, 'civilian')], result='civilians_win')
    make_game([(member, 'don'), (rival, 'sheriff')], result='mafia_win')

    rows = federation_players(federation.id)

    assert len(rows) == 1
    assert rows[0]['total_games'] == 3
    assert rows[0]['total_wins'] == 2
    assert rows[0]['overall_winrate'] == 67
