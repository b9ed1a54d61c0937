"""Filter composition for the game, club and player search endpoints.

Every optional filter contributes one predicate; predicates are ANDed. A
value of ``"all"`` or an empty string means the dimension is unconstrained.
Values only ever reach the database as bound parameters.
"""
from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import or_

from mafiastats.errors import parse_date, parse_id
from mafiastats.models import Club, Game, GamePlayer, User

UNCONSTRAINED = ('', 'all')


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if value.lower() in UNCONSTRAINED:
        return None
    return value


def _like(term: str) -> str:
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def _text_match(term: str, *columns):
    pattern = _like(term)
    return or_(*[col.ilike(pattern, escape='\\') for col in columns])


def _optional_id(value, field):
    value = _clean(value)
    return parse_id(value, field) if value is not None else None


@dataclass
class GameSearchFilters:
    search: Optional[str] = None
    federation_id: Optional[int] = None
    club_id: Optional[int] = None
    player_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @classmethod
    def from_args(cls, args) -> 'GameSearchFilters':
        date_from = _clean(args.get('from'))
        date_to = _clean(args.get('to'))
        return cls(
            search=_clean(args.get('search')),
            federation_id=_optional_id(args.get('federation'), 'federation'),
            club_id=_optional_id(args.get('club'), 'club'),
            player_id=_optional_id(args.get('player'), 'player'),
            date_from=parse_date(date_from, 'from') if date_from else None,
            date_to=parse_date(date_to, 'to') if date_to else None,
        )

    def to_dict(self):
        return {k: (v.isoformat() if isinstance(v, date) else v) for k, v in asdict(self).items()}


def build_game_query(filters: GameSearchFilters):
    query = Game.query
    if filters.player_id is not None:
        query = query.filter(Game.participants.any(GamePlayer.player_id == filters.player_id))
    if filters.club_id is not None:
        query = query.filter(Game.participants.any(
            GamePlayer.player.has(User.club_id == filters.club_id)
        ))
    if filters.federation_id is not None:
        # Games are attributed to a federation through their referee's club
        query = query.filter(Game.referee.has(
            User.club.has(Club.federation_id == filters.federation_id)
        ))
    if filters.search:
        query = query.filter(_text_match(filters.search, Game.name, Game.description))
    if filters.date_from is not None:
        query = query.filter(Game.created_at >= datetime.combine(filters.date_from, time.min))
    if filters.date_to is not None:
        # Inclusive through the end of the day
        query = query.filter(Game.created_at < datetime.combine(filters.date_to + timedelta(days=1), time.min))
    return query.order_by(Game.created_at.desc(), Game.id.desc())


def build_club_query(search=None, federation=None):
    query = Club.query
    term = _clean(search)
    federation_id = _optional_id(federation, 'federation')
    if term:
        query = query.filter(_text_match(term, Club.name, Club.description, Club.city, Club.country))
    if federation_id is not None:
        query = query.filter(Club.federation_id == federation_id)
    return query.order_by(Club.name.asc())


def build_player_query(search=None, club=None, federation=None):
    query = User.query
    term = _clean(search)
    club_id = _optional_id(club, 'club')
    federation_id = _optional_id(federation, 'federation')
    if term:
        query = query.filter(_text_match(term, User.name, User.surname, User.nickname, User.country))
    if club_id is not None:
        query = query.filter(User.club_id == club_id)
    if federation_id is not None:
        query = query.filter(User.club.has(Club.federation_id == federation_id))
    return query
