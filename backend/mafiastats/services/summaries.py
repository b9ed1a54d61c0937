"""Aggregate counts for clubs, federations and the dashboard, computed at query time."""
from sqlalchemy import func

from mafiastats import db
from mafiastats.models import Club, Federation, Game, GamePlayer, User


def club_game_count(club_id) -> int:
    return (
        db.session.query(func.count(func.distinct(GamePlayer.game_id)))
        .join(User, GamePlayer.player_id == User.id)
        .filter(User.club_id == club_id)
        .scalar()
    ) or 0


def club_summary(club: Club, include_players=False) -> dict:
    data = club.to_dict()
    data['player_count'] = len(club.members)
    data['game_count'] = club_game_count(club.id)
    if include_players:
        data['players'] = [
            {'id': u.id, 'name': u.name, 'surname': u.surname, 'nickname': u.nickname}
            for u in sorted(club.members, key=lambda u: (u.name or '', u.id))
        ]
    return data


def federation_summary(federation: Federation, include_clubs=False) -> dict:
    data = federation.to_dict()
    member_ids = set()
    for club in federation.clubs:
        member_ids.update(u.id for u in club.members)
    data['club_count'] = len(federation.clubs)
    data['game_count'] = Game.query.filter(Game.federation_id == federation.id).count()
    data['player_count'] = len(member_ids)
    if include_clubs:
        data['clubs'] = [
            {
                'id': c.id,
                'name': c.name,
                'city': c.city,
                'country': c.country,
                'player_count': len(c.members),
                'game_count': club_game_count(c.id),
            }
            for c in sorted(federation.clubs, key=lambda c: c.name)
        ]
    return data


def site_counts() -> dict:
    return {
        'games': Game.query.count(),
        'players': User.query.count(),
        'clubs': Club.query.count(),
        'federations': Federation.query.count(),
        'judges': User.query.filter(User.is_tournament_judge.is_(True)).count(),
    }


def recent_games(limit=5) -> list:
    games = Game.query.order_by(Game.created_at.desc(), Game.id.desc()).limit(limit).all()
    return [g.to_dict() for g in games]


def top_clubs(limit=6) -> list:
    rows = (
        db.session.query(Club, func.count(User.id).label('player_count'))
        .outerjoin(User, User.club_id == Club.id)
        .group_by(Club.id)
        .order_by(func.count(User.id).desc(), Club.name.asc())
        .limit(limit)
        .all()
    )
    clubs = []
    for club, player_count in rows:
        data = club.to_dict()
        data['player_count'] = player_count
        data['game_count'] = club_game_count(club.id)
        clubs.append(data)
    return clubs
