from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from mafiastats import db
from mafiastats.errors import ValidationError, parse_count, parse_datetime, parse_id
from mafiastats.models import (
    Club, Federation, Game, GamePlayer, GAME_TYPES, MAX_SLOTS, RESULTS, ROLES, User,
)
from mafiastats.permissions import ADMIN, ANY_USER, roles_required
from mafiastats.services.games.scoring import (
    MAX_NOMINATIONS, apply_best_move, evaluate_night_actions, lineup_warnings, night_actions,
    record_nights,
)
from mafiastats.services.games.search import GameSearchFilters, build_game_query
from mafiastats.services.ratings import (
    detach_game_from_ratings, recalculate_rating_results, refresh_ratings_for_game,
)
from mafiastats.services.summaries import recent_games
from mafiastats.socketio_events import notify_update


games = Blueprint('games', __name__)

GAME_TEXT_FIELDS = ('name', 'description', 'referee_comments')


def _get_game_or_404(game_id) -> Game:
    return db.get_or_404(Game, game_id, description='Game not found')


def _optional_ref(model, value, field):
    if value in (None, '', 'all'):
        return None
    ref = db.session.get(model, parse_id(value, field))
    if ref is None:
        raise ValidationError(f'{field} does not exist')
    return ref.id


def _apply_game_fields(game: Game, data: dict) -> None:
    for field in GAME_TEXT_FIELDS:
        if field in data:
            setattr(game, field, data[field] or None)
    if 'game_type' in data:
        if data['game_type'] not in GAME_TYPES:
            raise ValidationError(f"game_type must be one of {', '.join(GAME_TYPES)}")
        game.game_type = data['game_type']
    if 'result' in data:
        result = data['result'] or None
        if result is not None and result not in RESULTS:
            raise ValidationError(f"result must be one of {', '.join(RESULTS)}")
        game.result = result
    if 'table_number' in data:
        game.table_number = parse_id(data['table_number'], 'table_number') if data['table_number'] else None
    if 'referee_id' in data:
        game.referee_id = _optional_ref(User, data['referee_id'], 'referee_id')
    if 'club_id' in data:
        game.club_id = _optional_ref(Club, data['club_id'], 'club_id')
    if 'federation_id' in data:
        game.federation_id = _optional_ref(Federation, data['federation_id'], 'federation_id')
    if data.get('created_at'):
        game.created_at = parse_datetime(data['created_at'], 'created_at')


def _build_participant(data: dict) -> GamePlayer:
    if not isinstance(data, dict):
        raise ValidationError('Each player entry must be an object')
    player_id = parse_id(data.get('player_id'), 'player_id')
    if db.session.get(User, player_id) is None:
        raise ValidationError(f'Player {player_id} does not exist')
    role = data.get('role')
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    slot = parse_id(data.get('slot_number'), 'slot_number')
    if slot > MAX_SLOTS:
        raise ValidationError(f'slot_number must be between 1 and {MAX_SLOTS}')
    fouls = parse_count(data.get('fouls'), 'fouls')
    try:
        points = Decimal(str(data.get('additional_points') or 0))
    except (TypeError, ValueError, InvalidOperation):
        raise ValidationError('additional_points must be a number')
    return GamePlayer(player_id=player_id, role=role, slot_number=slot, fouls=fouls, additional_points=points)


def _replace_participants(game: Game, entries) -> None:
    if not isinstance(entries, list):
        raise ValidationError('players must be a list')
    if len(entries) > MAX_SLOTS:
        raise ValidationError(f'A game has at most {MAX_SLOTS} players')
    built = [_build_participant(entry) for entry in entries]
    game.participants = built


def _apply_best_move_payload(game: Game, payload) -> Decimal:
    if not isinstance(payload, dict):
        raise ValidationError('best_move must be an object')
    killed_id = parse_id(payload.get('killed_player_id'), 'killed_player_id')
    nominated = [
        parse_id(pid, 'nominated_player_ids')
        for pid in (payload.get('nominated_player_ids') or []) if pid not in (None, '')
    ]
    if len(set(nominated)) > MAX_NOMINATIONS:
        raise ValidationError(f'At most {MAX_NOMINATIONS} players can be nominated')
    return apply_best_move(game, killed_id, nominated)


def _game_payload(game: Game) -> dict:
    payload = game.to_dict(include_stages=True)
    payload['warnings'] = lineup_warnings(game.participants)
    return payload


@games.route('/', methods=['GET'])
def list_games():
    return jsonify([g.to_dict() for g in Game.query.order_by(Game.created_at.desc(), Game.id.desc()).all()])


@games.route('/search', methods=['GET'])
def search_games():
    filters = GameSearchFilters.from_args(request.args)
    current_app.logger.info(f"[search] filters={filters.to_dict()}")
    return jsonify([g.to_dict() for g in build_game_query(filters).all()])


@games.route('/recent', methods=['GET'])
def get_recent_games():
    try:
        limit = int(current_app.config.get('RECENT_GAMES_LIMIT', 5))
        return jsonify(recent_games(limit))
    except Exception as exc:
        # Dashboard lists answer empty on datastore errors
        db.session.rollback()
        current_app.logger.exception(f"[dashboard] recent games unavailable: {exc}")
        return jsonify([])


@games.route('/count', methods=['GET'])
def count_games():
    return jsonify({'count': Game.query.count()})


@games.route('/<int:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify(_game_payload(_get_game_or_404(game_id)))


@games.route('/', methods=['POST'])
@roles_required(*ANY_USER)
def create_game():
    data = request.get_json(silent=True) or {}
    nights = data.get('nights') or []
    if not isinstance(nights, list) or not all(isinstance(n, dict) for n in nights):
        return jsonify({'error': 'nights must be a list of objects'}), 400
    game = Game(game_type=data.get('game_type') or 'classic_10')
    _apply_game_fields(game, data)
    if game.referee_id is None:
        game.referee_id = current_user.id
    _replace_participants(game, data.get('players') or [])
    db.session.add(game)
    db.session.flush()

    record_nights(game, nights)
    if data.get('best_move'):
        if _apply_best_move_payload(game, data['best_move']) is None:
            db.session.rollback()
            return jsonify({'error': 'Killed player is not part of this game'}), 400
    db.session.commit()

    current_app.logger.info(
        f"[game-create] game={game.id} referee={game.referee_id} players={len(game.participants)} result={game.result}"
    )
    notify_update('games')
    notify_update('stats')
    return jsonify(_game_payload(game)), 201


@games.route('/<int:game_id>', methods=['PUT'])
@roles_required(*ANY_USER)
def update_game(game_id):
    game = _get_game_or_404(game_id)
    data = request.get_json(silent=True) or {}
    _apply_game_fields(game, data)
    if 'players' in data:
        _replace_participants(game, data['players'])
    db.session.commit()
    if 'result' in data or 'players' in data:
        refresh_ratings_for_game(game.id)
    notify_update('games')
    return jsonify(_game_payload(game))


@games.route('/<int:game_id>', methods=['DELETE'])
@roles_required(*ADMIN)
def delete_game(game_id):
    game = _get_game_or_404(game_id)
    affected = detach_game_from_ratings(game.id)
    db.session.delete(game)
    db.session.commit()
    for rating in affected:
        recalculate_rating_results(rating)
    current_app.logger.info(f"[game-delete] game={game_id} by={current_user.id}")
    notify_update('games')
    notify_update('stats')
    return jsonify({'message': 'Game deleted'})


@games.route('/<int:game_id>/players', methods=['POST'])
@roles_required(*ANY_USER)
def add_player_to_game(game_id):
    game = _get_game_or_404(game_id)
    if len(game.participants) >= MAX_SLOTS:
        return jsonify({'error': f'A game has at most {MAX_SLOTS} players'}), 400
    participant = _build_participant(request.get_json(silent=True) or {})
    game.participants.append(participant)
    db.session.commit()
    refresh_ratings_for_game(game.id)
    payload = participant.to_dict()
    payload['warnings'] = lineup_warnings(game.participants)
    return jsonify(payload), 201


@games.route('/<int:game_id>/players/<int:game_player_id>', methods=['DELETE'])
@roles_required(*ANY_USER)
def remove_player_from_game(game_id, game_player_id):
    participant = GamePlayer.query.filter_by(id=game_player_id, game_id=game_id).first_or_404()
    db.session.delete(participant)
    db.session.commit()
    refresh_ratings_for_game(game_id)
    return jsonify({'message': 'Player removed from game'})


@games.route('/<int:game_id>/best-move', methods=['POST'])
@roles_required(*ANY_USER)
def submit_best_move(game_id):
    game = _get_game_or_404(game_id)
    if any(s.type == 'best_move' for s in game.stages):
        return jsonify({'error': 'Best move already recorded for this game'}), 409
    bonus = _apply_best_move_payload(game, request.get_json(silent=True) or {})
    if bonus is None:
        db.session.rollback()
        return jsonify({'error': 'Killed player is not part of this game'}), 404
    db.session.commit()
    refresh_ratings_for_game(game.id)
    current_app.logger.info(f"[best-move] game={game.id} bonus={bonus}")
    return jsonify({'bonus': float(bonus), 'game': _game_payload(game)})


@games.route('/<int:game_id>/night-actions', methods=['GET'])
def get_night_actions(game_id):
    game = _get_game_or_404(game_id)
    return jsonify(evaluate_night_actions(game.participants, night_actions(game)))
