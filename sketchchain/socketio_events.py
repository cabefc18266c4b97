from flask_socketio import join_room, leave_room, emit
from sketchchain import socketio

NAMESPACE = '/ws'


def room_channel(room_id) -> str:
    return f"room:{room_id}"


def broadcast_room_state(room, round_=None) -> None:
    """Tell everyone watching a room that its state changed.

    Clients re-fetch through the HTTP status calls; the event only saves
    them from polling.
    """
    payload = {
        'room_id': room.id,
        'status': room.status,
        'current_round': room.current_round,
        'phase': round_.phase if round_ is not None else None,
    }
    socketio.emit('state_update', payload, to=room_channel(room.id), namespace=NAMESPACE)


def _room_id_from(data):
    room_id = (data or {}).get('room_id')
    try:
        return int(room_id)
    except (TypeError, ValueError):
        return None


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_room(data):
    room_id = _room_id_from(data)
    if room_id is None:
        emit('error', {'message': 'room_id is required'})
        return
    channel = room_channel(room_id)
    join_room(channel)
    emit('joined', {'room': channel})


def handle_leave_room(data):
    room_id = _room_id_from(data)
    if room_id is None:
        emit('error', {'message': 'room_id is required'})
        return
    channel = room_channel(room_id)
    leave_room(channel)
    emit('left', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('join_room', handle_join_room, namespace=NAMESPACE)
    socketio.on_event('leave_room', handle_leave_room, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
