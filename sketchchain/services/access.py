from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sketchchain import db
from sketchchain.errors import AuthorizationError, ConflictError, NotFoundError, StorageError
from sketchchain.models import Room, RoomPlayer, Round


def get_room(room_id: int, lock: bool = False) -> Room:
    """Load a room, optionally taking a row lock for the rest of the transaction."""
    query = Room.query.filter_by(id=room_id)
    if lock:
        query = query.with_for_update()
    room = query.first()
    if room is None:
        raise NotFoundError('Room not found', room_id=room_id)
    return room


def get_membership(room: Room, user_id: int):
    return RoomPlayer.query.filter_by(room_id=room.id, user_id=user_id).first()


def require_membership(room: Room, user_id: int) -> RoomPlayer:
    membership = get_membership(room, user_id)
    if membership is None:
        raise NotFoundError('You are not a player in this room', room_id=room.id)
    return membership


def require_host(room: Room, user_id: int) -> RoomPlayer:
    membership = get_membership(room, user_id)
    if membership is None or not membership.is_host:
        raise AuthorizationError('Only the host may do that', room_id=room.id)
    return membership


def seated_members(room: Room) -> List[RoomPlayer]:
    return RoomPlayer.query.filter_by(room_id=room.id).order_by(RoomPlayer.seat_order).all()


def member_ids(room: Room) -> List[int]:
    return [m.user_id for m in seated_members(room)]


def get_round(room: Room, number: int) -> Round:
    round_ = Round.query.filter_by(room_id=room.id, number=number).first()
    if round_ is None:
        raise NotFoundError('Round not found', room_id=room.id, round=number)
    return round_


def current_round(room: Room) -> Round:
    """The round named by ``room.current_round``; the room owns that pointer."""
    if not room.current_round:
        raise NotFoundError('The game has not started yet', room_id=room.id)
    return get_round(room, room.current_round)


def flush_unique(what: str) -> None:
    """Flush pending inserts, turning a unique-constraint hit into a conflict."""
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f'{what} already exists') from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError('Storage failure') from exc


def commit() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError('Update conflicts with existing data') from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError('Storage failure') from exc
