from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from mafiastats import db
from mafiastats.errors import ValidationError, parse_id
from mafiastats.models import Club, Federation
from mafiastats.permissions import ADMIN, roles_required
from mafiastats.services.games.search import build_club_query
from mafiastats.services.summaries import club_summary, top_clubs
from mafiastats.socketio_events import notify_update


clubs = Blueprint('clubs', __name__)

CLUB_FIELDS = ('name', 'description', 'url', 'country', 'city')


def _apply_club_fields(club: Club, data: dict) -> None:
    for field in CLUB_FIELDS:
        if field in data:
            setattr(club, field, data[field])
    if not (club.name or '').strip():
        raise ValidationError('Club name is required')
    if 'federation_id' in data:
        if data['federation_id'] in (None, ''):
            club.federation_id = None
        else:
            federation = db.session.get(Federation, parse_id(data['federation_id'], 'federation_id'))
            if federation is None:
                raise ValidationError('federation_id does not exist')
            club.federation_id = federation.id


@clubs.route('/', methods=['GET'])
def list_clubs():
    query = build_club_query(search=request.args.get('search'), federation=request.args.get('federation'))
    return jsonify([club_summary(c) for c in query.all()])


@clubs.route('/top', methods=['GET'])
def get_top_clubs():
    try:
        limit = int(current_app.config.get('TOP_CLUBS_LIMIT', 6))
        return jsonify(top_clubs(limit))
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(f"[dashboard] top clubs unavailable: {exc}")
        return jsonify([])


@clubs.route('/<int:club_id>', methods=['GET'])
def get_club(club_id):
    club = db.get_or_404(Club, club_id, description='Club not found')
    return jsonify(club_summary(club, include_players=True))


@clubs.route('/', methods=['POST'])
@roles_required(*ADMIN)
def create_club():
    club = Club()
    _apply_club_fields(club, request.get_json(silent=True) or {})
    db.session.add(club)
    db.session.commit()
    current_app.logger.info(f"[club-create] club={club.id} by={current_user.id}")
    notify_update('clubs')
    notify_update('stats')
    return jsonify(club_summary(club)), 201


@clubs.route('/<int:club_id>', methods=['PUT'])
@roles_required(*ADMIN)
def update_club(club_id):
    club = db.get_or_404(Club, club_id, description='Club not found')
    _apply_club_fields(club, request.get_json(silent=True) or {})
    db.session.commit()
    notify_update('clubs')
    return jsonify(club_summary(club))
