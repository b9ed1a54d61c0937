from flask import Blueprint, jsonify, request, current_app

from mafiastats import db
from mafiastats.models import User
from mafiastats.services.games.statistics import leaderboard, player_recent_games, player_role_stats


players = Blueprint('players', __name__)


@players.route('/', methods=['GET'])
def list_players():
    rows = leaderboard(
        search=request.args.get('search'),
        club=request.args.get('club'),
        federation=request.args.get('federation'),
    )
    return jsonify(rows)


@players.route('/judges/count', methods=['GET'])
def count_judges():
    count = User.query.filter(User.is_tournament_judge.is_(True)).count()
    return jsonify({'count': count})


@players.route('/<int:player_id>', methods=['GET'])
def get_player(player_id):
    player = db.get_or_404(User, player_id, description='Player not found')
    limit = int(current_app.config.get('PLAYER_RECENT_GAMES_LIMIT', 10))
    data = player.to_dict()
    data['stats'] = player_role_stats(player.id)
    data['recent_games'] = player_recent_games(player.id, limit)
    return jsonify(data)


@players.route('/<int:player_id>/stats', methods=['GET'])
def get_player_stats(player_id):
    db.get_or_404(User, player_id, description='Player not found')
    return jsonify(player_role_stats(player_id))
