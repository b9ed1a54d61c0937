from flask import Blueprint, jsonify, current_app

from mafiastats import db
from mafiastats.services.summaries import site_counts


stats = Blueprint('stats', __name__)

EMPTY_COUNTS = {'games': 0, 'players': 0, 'clubs': 0, 'federations': 0, 'judges': 0}


@stats.route('/', methods=['GET'])
def get_stats():
    try:
        return jsonify(site_counts())
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(f"[dashboard] counts unavailable: {exc}")
        return jsonify(dict(EMPTY_COUNTS))
