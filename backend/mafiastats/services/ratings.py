from collections import defaultdict
from decimal import Decimal

from flask import current_app

from mafiastats import db
from mafiastats.errors import ConflictError, NotFoundError, ValidationError, parse_id
from mafiastats.models import (
    Game, GamePlayer, Rating, RatingGame, RatingResult, ROLE_DON, ROLE_SHERIFF,
    TOWN_ROLES,
)
from mafiastats.services.games.scoring import is_win

WIN_POINTS = Decimal('1')


def _empty_result():
    return {
        'points': Decimal('0'),
        'games_played': 0,
        'wins': 0,
        'civilian_wins': 0,
        'mafia_wins': 0,
        'don_games': 0,
        'sheriff_games': 0,
        'first_outs': 0,
        'best_moves': 0,
    }


def tally_rating(rows):
    """Fold (player_id, role, result, additional_points) rows into per-player results.

    Points are the additional points plus one per win.
    """
    results = defaultdict(_empty_result)
    for player_id, role, result, additional in rows:
        entry = results[player_id]
        entry['games_played'] += 1
        extra = Decimal(additional) if additional is not None else Decimal('0')
        entry['points'] += extra
        if extra > 0:
            entry['best_moves'] += 1
        if role == ROLE_DON:
            entry['don_games'] += 1
        elif role == ROLE_SHERIFF:
            entry['sheriff_games'] += 1
        if is_win(role, result):
            entry['wins'] += 1
            entry['points'] += WIN_POINTS
            if role in TOWN_ROLES:
                entry['civilian_wins'] += 1
            else:
                entry['mafia_wins'] += 1
    return dict(results)


def recalculate_rating_results(rating: Rating) -> None:
    rows = (
        db.session.query(GamePlayer.player_id, GamePlayer.role, Game.result, GamePlayer.additional_points)
        .join(Game, GamePlayer.game_id == Game.id)
        .join(RatingGame, RatingGame.game_id == Game.id)
        .filter(RatingGame.rating_id == rating.id)
        .all()
    )
    RatingResult.query.filter_by(rating_id=rating.id).delete(synchronize_session=False)
    for player_id, values in tally_rating(rows).items():
        db.session.add(RatingResult(rating_id=rating.id, player_id=player_id, **values))
    db.session.commit()
    db.session.expire(rating)
    current_app.logger.info(f"[rating-recalc] rating={rating.id} games={len(rating.rating_games)}")


def add_games_to_rating(rating: Rating, game_ids, added_by=None) -> list:
    ids = []
    for raw in game_ids or []:
        gid = parse_id(raw, 'game_id')
        if gid not in ids:
            ids.append(gid)
    if not ids:
        raise ValidationError('Game ID is required')

    existing = RatingGame.query.filter(RatingGame.rating_id == rating.id, RatingGame.game_id.in_(ids)).first()
    if existing:
        raise ConflictError(f'Game with ID {existing.game_id} is already in this rating')
    found = {g.id for g in Game.query.filter(Game.id.in_(ids)).all()}
    if len(found) != len(ids):
        raise NotFoundError('One or more games not found')

    for gid in ids:
        db.session.add(RatingGame(rating_id=rating.id, game_id=gid, added_by=added_by))
    db.session.commit()
    recalculate_rating_results(rating)
    return ids


def remove_game_from_rating(rating: Rating, game_id) -> None:
    gid = parse_id(game_id, 'game_id')
    link = RatingGame.query.filter_by(rating_id=rating.id, game_id=gid).first()
    if not link:
        raise NotFoundError('Game is not part of this rating')
    db.session.delete(link)
    db.session.commit()
    recalculate_rating_results(rating)


def ratings_with_game(game_id) -> list:
    return (
        Rating.query.join(RatingGame, RatingGame.rating_id == Rating.id)
        .filter(RatingGame.game_id == game_id)
        .all()
    )


def refresh_ratings_for_game(game_id) -> None:
    """Rebuild results of every rating that counts this game."""
    for rating in ratings_with_game(game_id):
        recalculate_rating_results(rating)


def detach_game_from_ratings(game_id) -> list:
    """Drop the game's rating links; the caller deletes the game, commits, then recalculates."""
    affected = ratings_with_game(game_id)
    RatingGame.query.filter_by(game_id=game_id).delete(synchronize_session=False)
    return affected
