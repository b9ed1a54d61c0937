from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from mafiastats import db
from mafiastats.errors import parse_datetime, parse_id
from mafiastats.models import Club, Rating
from mafiastats.permissions import ANY_USER, is_owner_or_admin, roles_required
from mafiastats.services.ratings import add_games_to_rating, remove_game_from_rating


ratings = Blueprint('ratings', __name__)


def _get_rating_or_404(rating_id) -> Rating:
    return db.get_or_404(Rating, rating_id, description='Rating not found')


@ratings.route('/', methods=['GET'])
def list_ratings():
    rows = Rating.query.order_by(Rating.created_at.desc(), Rating.id.desc()).all()
    return jsonify([r.to_dict() for r in rows])


@ratings.route('/', methods=['POST'])
@roles_required(*ANY_USER)
def create_rating():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Rating name is required'}), 400

    rating = Rating(name=name, description=data.get('description'), owner_id=current_user.id)
    if data.get('club_id'):
        club = db.session.get(Club, parse_id(data['club_id'], 'club_id'))
        if club is None:
            return jsonify({'error': 'Club not found'}), 404
        rating.club_id = club.id
    if data.get('start_date'):
        rating.start_date = parse_datetime(data['start_date'], 'start_date')
    if data.get('end_date'):
        rating.end_date = parse_datetime(data['end_date'], 'end_date')
    if rating.start_date and rating.end_date and rating.end_date < rating.start_date:
        return jsonify({'error': 'end_date cannot be before start_date'}), 400
    db.session.add(rating)
    db.session.commit()
    current_app.logger.info(f"[rating-create] rating={rating.id} owner={current_user.id}")
    return jsonify(rating.to_dict()), 201


@ratings.route('/<int:rating_id>', methods=['GET'])
def get_rating(rating_id):
    return jsonify(_get_rating_or_404(rating_id).to_dict(include_results=True))


@ratings.route('/<int:rating_id>/games', methods=['GET'])
def list_rating_games(rating_id):
    rating = _get_rating_or_404(rating_id)
    links = sorted(rating.rating_games, key=lambda link: (link.added_at, link.id), reverse=True)
    rows = []
    for link in links:
        row = link.game.to_dict(include_players=False)
        row['added_at'] = link.added_at.isoformat() if link.added_at else None
        row['added_by'] = link.added_by
        rows.append(row)
    return jsonify(rows)


@ratings.route('/<int:rating_id>/games', methods=['POST'])
@roles_required(*ANY_USER)
def add_rating_games(rating_id):
    rating = _get_rating_or_404(rating_id)
    if not is_owner_or_admin(current_user, rating.owner_id):
        return jsonify({'error': 'Only the rating owner can change its games'}), 403
    data = request.get_json(silent=True) or {}
    game_ids = data.get('game_ids')
    if game_ids is None and data.get('game_id') is not None:
        game_ids = [data['game_id']]
    if game_ids is not None and not isinstance(game_ids, list):
        return jsonify({'error': 'game_ids must be a list'}), 400
    added = add_games_to_rating(rating, game_ids, added_by=current_user.email)
    return jsonify({'added': added, 'rating': rating.to_dict(include_results=True)}), 201


@ratings.route('/<int:rating_id>/games', methods=['DELETE'])
@roles_required(*ANY_USER)
def remove_rating_game(rating_id):
    rating = _get_rating_or_404(rating_id)
    if not is_owner_or_admin(current_user, rating.owner_id):
        return jsonify({'error': 'Only the rating owner can change its games'}), 403
    game_id = request.args.get('game_id')
    if not game_id:
        return jsonify({'error': 'Game ID is required'}), 400
    remove_game_from_rating(rating, game_id)
    return jsonify({'message': 'Game removed from rating', 'rating': rating.to_dict(include_results=True)})
