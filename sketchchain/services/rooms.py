from typing import List, Optional

from flask import current_app
from sqlalchemy import func

from sketchchain import db
from sketchchain.errors import (
    AuthorizationError, CapacityError, ConflictError, NotFoundError, PreconditionError, ValidationError,
)
from sketchchain.models import (
    ROOM_FINISHED, ROOM_PLAYING, ROOM_WAITING, Room, RoomPlayer,
)
from sketchchain.socketio_events import broadcast_room_state
from . import rounds
from .access import commit, current_round, get_membership, get_room, require_host, require_membership, seated_members


def _bounded_int(value, field: str, default: int, upper: int) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a whole number')
    if number < 1:
        raise ValidationError(f'{field} must be at least 1')
    if number > upper:
        raise ValidationError(f'{field} must be at most {upper}')
    return number


def create_room(creator_id: int, title: Optional[str] = None, mode: Optional[str] = None,
                capacity=None, total_rounds=None, is_private: bool = False,
                password: Optional[str] = None) -> Room:
    """Create a room and seat its creator as host in seat 1."""
    cfg = current_app.config
    capacity = _bounded_int(capacity, 'Capacity', cfg.get('DEFAULT_CAPACITY', 8), cfg.get('MAX_ROOM_CAPACITY', 16))
    total_rounds = _bounded_int(total_rounds, 'Total rounds', cfg.get('DEFAULT_TOTAL_ROUNDS', 3), cfg.get('MAX_TOTAL_ROUNDS', 10))
    is_private = bool(is_private)
    if is_private and not password:
        raise ValidationError('A private room needs a password')

    room = Room(
        title=(title or '').strip() or 'Game room',
        game_mode=(mode or '').strip() or cfg.get('DEFAULT_GAME_MODE', 'classic'),
        host_id=creator_id,
        is_private=is_private,
        max_players=capacity,
        current_players=1,
        status=ROOM_WAITING,
        current_round=0,
        total_rounds=total_rounds,
    )
    if is_private:
        room.set_password(password)
    db.session.add(room)
    db.session.flush()
    db.session.add(RoomPlayer(room_id=room.id, user_id=creator_id, seat_order=1, is_host=True))
    commit()
    current_app.logger.info(f"[room-create] room={room.id} host={creator_id} private={is_private}")
    return room


def list_joinable_rooms(limit: Optional[int] = None) -> List[Room]:
    limit = limit or current_app.config.get('ROOMS_PAGE_SIZE', 20)
    return (
        Room.query
        .filter(Room.status.in_((ROOM_WAITING, ROOM_PLAYING)))
        .order_by(Room.created_at.desc(), Room.id.desc())
        .limit(limit)
        .all()
    )


def list_finished_rooms(limit: Optional[int] = None) -> List[Room]:
    limit = limit or current_app.config.get('ROOMS_PAGE_SIZE', 20)
    return (
        Room.query
        .filter_by(status=ROOM_FINISHED)
        .order_by(Room.created_at.desc(), Room.id.desc())
        .limit(limit)
        .all()
    )


def host_stats(user_id: int) -> dict:
    counts = dict(
        db.session.query(Room.status, func.count(Room.id))
        .filter(Room.host_id == user_id)
        .group_by(Room.status)
        .all()
    )
    return {
        'total_games': sum(counts.values()),
        'completed_games': counts.get(ROOM_FINISHED, 0),
        'waiting_games': counts.get(ROOM_WAITING, 0),
        'active_games': counts.get(ROOM_PLAYING, 0),
    }


def room_snapshot(room_id: int) -> dict:
    room = get_room(room_id)
    payload = room.to_dict(include_players=True)
    payload['round'] = current_round(room).to_dict() if room.current_round else None
    return payload


def join_room(room_id: int, user_id: int, password: Optional[str] = None) -> RoomPlayer:
    room = get_room(room_id, lock=True)
    if room.status != ROOM_WAITING:
        raise NotFoundError('Room not found or the game has already started', room_id=room_id)
    if room.is_private and not room.check_password(password):
        raise AuthorizationError('Wrong room password')
    if get_membership(room, user_id) is not None:
        raise ConflictError('You are already in this room')
    if room.current_players >= room.max_players:
        raise CapacityError('Room is full', max_players=room.max_players)

    # Seats are never reused, so a leave leaves a gap rather than a duplicate
    last_seat = db.session.query(func.max(RoomPlayer.seat_order)).filter_by(room_id=room.id).scalar() or 0
    membership = RoomPlayer(room_id=room.id, user_id=user_id, seat_order=last_seat + 1)
    db.session.add(membership)
    room.current_players += 1
    db.session.add(room)
    commit()
    current_app.logger.info(f"[join] room={room.id} user={user_id} seat={membership.seat_order}")
    broadcast_room_state(room)
    return membership


def leave_room(room_id: int, user_id: int) -> None:
    room = get_room(room_id, lock=True)
    membership = require_membership(room, user_id)
    was_host = membership.is_host
    db.session.delete(membership)
    room.current_players = max(0, room.current_players - 1)
    db.session.flush()

    remaining = seated_members(room)
    live = None
    before = None
    if not remaining:
        room.status = ROOM_FINISHED
    else:
        if was_host:
            successor = remaining[0]
            successor.is_host = True
            room.host_id = successor.user_id
            db.session.add(successor)
            current_app.logger.info(f"[host] room={room.id} host {user_id} -> {successor.user_id}")
        if room.status == ROOM_PLAYING:
            round_ = current_round(room)
            before = round_.phase
            live = rounds.advance_if_ready(room, round_)
    db.session.add(room)
    commit()
    current_app.logger.info(f"[leave] room={room.id} user={user_id} remaining={room.current_players}")
    if live is None:
        broadcast_room_state(room)
    else:
        rounds.publish_state(room, live, before)


def set_ready(room_id: int, user_id: int) -> bool:
    room = get_room(room_id, lock=True)
    membership = require_membership(room, user_id)
    membership.is_ready = not membership.is_ready
    db.session.add(membership)
    commit()
    broadcast_room_state(room)
    return membership.is_ready


def begin_game(room_id: int, user_id: int):
    room = get_room(room_id, lock=True)
    require_host(room, user_id)
    if room.status != ROOM_WAITING:
        raise ConflictError('The game has already started', status=room.status)
    members = seated_members(room)
    ready = sum(1 for m in members if m.is_ready)
    if ready < len(members):
        raise PreconditionError('Not every player is ready', ready=ready, total=len(members))

    room.status = ROOM_PLAYING
    room.current_round = 1
    db.session.add(room)
    first = rounds.open_round(room, 1)
    commit()
    current_app.logger.info(f"[start] room={room.id} players={len(members)} rounds={room.total_rounds}")
    broadcast_room_state(room, first)
    return first
