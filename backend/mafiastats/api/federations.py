from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from mafiastats import db
from mafiastats.errors import ValidationError
from mafiastats.models import Federation
from mafiastats.permissions import ADMIN, roles_required
from mafiastats.services.games.statistics import federation_players
from mafiastats.services.summaries import federation_summary
from mafiastats.socketio_events import notify_update


federations = Blueprint('federations', __name__)

FEDERATION_FIELDS = ('name', 'description', 'url', 'country', 'city', 'additional_points_conditions')


def _apply_federation_fields(federation: Federation, data: dict) -> None:
    for field in FEDERATION_FIELDS:
        if field in data:
            setattr(federation, field, data[field])
    if not (federation.name or '').strip():
        raise ValidationError('Federation name is required')


@federations.route('/', methods=['GET'])
def list_federations():
    rows = Federation.query.order_by(Federation.name.asc()).all()
    return jsonify([federation_summary(f) for f in rows])


@federations.route('/<int:federation_id>', methods=['GET'])
def get_federation(federation_id):
    federation = db.get_or_404(Federation, federation_id, description='Federation not found')
    return jsonify(federation_summary(federation, include_clubs=True))


@federations.route('/<int:federation_id>/players', methods=['GET'])
def get_federation_players(federation_id):
    db.get_or_404(Federation, federation_id, description='Federation not found')
    return jsonify(federation_players(federation_id))


@federations.route('/', methods=['POST'])
@roles_required(*ADMIN)
def create_federation():
    federation = Federation()
    _apply_federation_fields(federation, request.get_json(silent=True) or {})
    db.session.add(federation)
    db.session.commit()
    current_app.logger.info(f"[federation-create] federation={federation.id} by={current_user.id}")
    notify_update('stats')
    return jsonify(federation_summary(federation)), 201


@federations.route('/<int:federation_id>', methods=['PUT'])
@roles_required(*ADMIN)
def update_federation(federation_id):
    federation = db.get_or_404(Federation, federation_id, description='Federation not found')
    _apply_federation_fields(federation, request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify(federation_summary(federation))
