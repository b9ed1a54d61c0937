"""Per-player statistics derived from participant rows.

Nothing here is cached: every call rescans the player's participations
joined to their games, so figures always reflect the current records.
"""
from collections import defaultdict
from decimal import Decimal

from mafiastats import db
from mafiastats.models import Club, Game, GamePlayer, ROLES, User
from .scoring import is_win
from .search import build_player_query


def win_rate(wins, games) -> str:
    """Percentage with two decimals, or "0" when there are no games."""
    if not games:
        return '0'
    return '%.2f' % (wins * 100.0 / games)


def _avg_points(total, count) -> str:
    if not count:
        return '0.00'
    return '%.2f' % (Decimal(total) / count)


class _Tally:
    __slots__ = ('games', 'wins', 'points', 'fouls')

    def __init__(self):
        self.games = 0
        self.wins = 0
        self.points = Decimal('0')
        self.fouls = 0

    def add(self, role, result, points, fouls):
        self.games += 1
        if is_win(role, result):
            self.wins += 1
        self.points += points if points is not None else Decimal('0')
        self.fouls += fouls or 0


def _participation_rows(player_ids=None):
    query = (
        db.session.query(GamePlayer.player_id, GamePlayer.role, Game.result,
                         GamePlayer.additional_points, GamePlayer.fouls)
        .join(Game, GamePlayer.game_id == Game.id)
    )
    if player_ids is not None:
        query = query.filter(GamePlayer.player_id.in_(player_ids))
    return query.all()


def player_role_stats(player_id: int) -> dict:
    overall = _Tally()
    by_role = {role: _Tally() for role in ROLES}
    for _pid, role, result, points, fouls in _participation_rows([player_id]):
        overall.add(role, result, points, fouls)
        if role in by_role:
            by_role[role].add(role, result, points, fouls)

    stats = {
        'overall': {
            'total_games': overall.games,
            'total_wins': overall.wins,
            'overall_winrate': win_rate(overall.wins, overall.games),
            'avg_additional_points': _avg_points(overall.points, overall.games),
            'total_fouls': overall.fouls,
        }
    }
    for role, tally in by_role.items():
        stats[role] = {
            'games_played': tally.games,
            'games_won': tally.wins,
            'winrate': win_rate(tally.wins, tally.games),
            'avg_additional_points': _avg_points(tally.points, tally.games),
            'total_fouls': tally.fouls,
        }
    return stats


def player_recent_games(player_id: int, limit: int = 10) -> list:
    rows = (
        db.session.query(GamePlayer, Game)
        .join(Game, GamePlayer.game_id == Game.id)
        .filter(GamePlayer.player_id == player_id)
        .order_by(Game.created_at.desc(), Game.id.desc())
        .limit(limit)
        .all()
    )
    return [{
        'id': game.id,
        'date': game.created_at.isoformat() if game.created_at else None,
        'game_type': game.game_type,
        'role': gp.role,
        'result': game.result,
        'won': is_win(gp.role, game.result),
        'slot': gp.slot_number,
        'extra_points': float(gp.additional_points or 0),
        'fouls': gp.fouls or 0,
    } for gp, game in rows]


def leaderboard(search=None, club=None, federation=None) -> list:
    users = build_player_query(search=search, club=club, federation=federation).all()
    if not users:
        return []

    totals = defaultdict(_Tally)
    per_role = defaultdict(lambda: {role: _Tally() for role in ROLES})
    for pid, role, result, points, fouls in _participation_rows([u.id for u in users]):
        totals[pid].add(role, result, points, fouls)
        if role in ROLES:
            per_role[pid][role].add(role, result, points, fouls)

    rows = []
    for user in users:
        overall = totals.get(user.id) or _Tally()
        roles = per_role.get(user.id) or {role: _Tally() for role in ROLES}
        rows.append({
            'id': user.id,
            'name': user.name,
            'surname': user.surname,
            'nickname': user.nickname,
            'image': user.image,
            'country': user.country,
            'club_id': user.club_id,
            'club_name': user.club.name if user.club else None,
            'total_games': overall.games,
            'civ_win_rate': win_rate(roles['civilian'].wins, roles['civilian'].games),
            'sheriff_win_rate': win_rate(roles['sheriff'].wins, roles['sheriff'].games),
            'mafia_win_rate': win_rate(roles['mafia'].wins, roles['mafia'].games),
            'don_win_rate': win_rate(roles['don'].wins, roles['don'].games),
            'avg_additional_points': _avg_points(overall.points, overall.games),
            'total_fouls': overall.fouls,
        })
    rows.sort(key=lambda r: (-r['total_games'], (r['nickname'] or '').lower(), (r['name'] or '').lower()))
    return rows


def federation_players(federation_id: int) -> list:
    members = (
        User.query.join(Club, User.club_id == Club.id)
        .filter(Club.federation_id == federation_id)
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )
    if not members:
        return []

    totals = defaultdict(_Tally)
    for pid, role, result, points, fouls in _participation_rows([m.id for m in members]):
        totals[pid].add(role, result, points, fouls)

    players = []
    for user in members:
        tally = totals.get(user.id) or _Tally()
        # Whole-number percentage, rounded half up
        overall = int(tally.wins * 100.0 / tally.games + 0.5) if tally.games else 0
        row = user.to_dict()
        row.update({
            'total_games': tally.games,
            'total_wins': tally.wins,
            'overall_winrate': overall,
        })
        players.append(row)
    return players
