from flask import current_app
from flask_socketio import emit, join_room, leave_room

from mafiastats import db, socketio
from mafiastats.services.summaries import recent_games, site_counts, top_clubs

NAMESPACE = '/ws'


def _games_payload():
    return recent_games(int(current_app.config.get('RECENT_GAMES_LIMIT', 5)))


def _clubs_payload():
    return top_clubs(int(current_app.config.get('TOP_CLUBS_LIMIT', 6)))


# Data types a dashboard client can subscribe to
FETCHERS = {
    'games': _games_payload,
    'clubs': _clubs_payload,
    'stats': site_counts,
}


def _room(data_type: str) -> str:
    return f"data:{data_type}"


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_subscribe(data_type):
    if isinstance(data_type, dict):
        data_type = data_type.get('type')
    fetch = FETCHERS.get(data_type)
    if fetch is None:
        emit('error', {'message': f'Unknown data type: {data_type}'})
        return
    join_room(_room(data_type))
    try:
        emit(f'{data_type}:data', fetch())
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(f"[ws] subscribe type={data_type} failed: {exc}")
        emit(f'{data_type}:error', {'message': f'Failed to fetch {data_type} data'})


def handle_unsubscribe(data_type):
    if isinstance(data_type, dict):
        data_type = data_type.get('type')
    if data_type not in FETCHERS:
        emit('error', {'message': f'Unknown data type: {data_type}'})
        return
    leave_room(_room(data_type))
    emit('unsubscribed', {'type': data_type})


def handle_ping(data):
    emit('pong', data or {})


def notify_update(data_type: str) -> None:
    """Tell subscribers of ``data_type`` to refetch."""
    socketio.emit(f'{data_type}:update', {'type': data_type}, to=_room(data_type), namespace=NAMESPACE)


def register_socketio_handlers() -> None:
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('subscribe', handle_subscribe, namespace=NAMESPACE)
    socketio.on_event('unsubscribe', handle_unsubscribe, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
