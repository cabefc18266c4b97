"""Round state machine.

A round moves strictly forward through
``collecting_words -> drawing -> guessing -> closed``. ``Round.phase`` is
the only record of where a round is and ``Room.current_round`` the only
record of which round is live; both are changed here and nowhere else.

Every mutating call locks the room row, decides, writes and commits once,
so two racing requests cannot both observe "I was the last one" and fire
the same transition twice. Automatic transitions go through
:func:`advance_if_ready`.
"""

from typing import Optional

from flask import current_app

from sketchchain import db
from sketchchain.errors import (
    ConflictError, NotFoundError, PreconditionError, ValidationError,
)
from sketchchain.models import (
    ACTION_DRAWING, ACTION_DRAWING_COMPLETED, ACTION_GUESS_TARGET, ARTIST_ACTIONS,
    PHASES, PHASE_CLOSED, PHASE_COLLECTING_WORDS, PHASE_DRAWING, PHASE_GUESSING,
    ROOM_FINISHED, ROOM_PLAYING,
    ChainEntry, Drawing, Room, Round, User, utcnow,
)
from sketchchain.socketio_events import broadcast_room_state
from . import chain, ledger, scoring
from .access import (
    commit, current_round, get_round, get_room, member_ids, require_host, require_membership,
)
from .scheduler import deadline_for, schedule_phase_timer


# ---- transitions ----

def open_round(room: Room, number: int) -> Round:
    """Create round ``number`` in the word collection phase. Caller commits."""
    round_ = Round(room_id=room.id, number=number, phase=PHASE_COLLECTING_WORDS)
    db.session.add(round_)
    db.session.flush()
    current_app.logger.info(f"[round-open] room={room.id} round={number}")
    return round_


def _enter_phase(room: Room, round_: Round, phase: str) -> None:
    if PHASES.index(phase) <= PHASES.index(round_.phase):
        raise PreconditionError(
            f'Round cannot move from {round_.phase} to {phase}',
            phase=round_.phase,
        )
    round_.phase = phase
    round_.phase_deadline = deadline_for(current_app.config, phase)
    if phase == PHASE_CLOSED:
        round_.closed_at = utcnow()
    db.session.add(round_)
    current_app.logger.info(f"[phase] room={room.id} round={round_.number} {phase}")


def _artist_entries(round_: Round):
    return (
        ChainEntry.query
        .filter(ChainEntry.round_id == round_.id, ChainEntry.action_kind.in_(ARTIST_ACTIONS))
        .order_by(ChainEntry.action_order, ChainEntry.id)
        .all()
    )


def _artist_entry(round_: Round, user_id: int) -> Optional[ChainEntry]:
    return ChainEntry.query.filter(
        ChainEntry.round_id == round_.id,
        ChainEntry.assignee_id == user_id,
        ChainEntry.action_kind.in_(ARTIST_ACTIONS),
    ).first()


def _enter_guessing(room: Room, round_: Round) -> None:
    """Turn every artist with something to show into a guess target."""
    entries = _artist_entries(round_)
    drawn = {d.player_id for d in Drawing.query.filter_by(round_id=round_.id).all()}
    artists = [
        e.assignee_id for e in entries
        if e.action_kind == ACTION_DRAWING_COMPLETED or e.assignee_id in drawn
    ]
    for order, artist_id in enumerate(chain.build_guess_targets(artists), start=1):
        db.session.add(ChainEntry(
            round_id=round_.id,
            assignee_id=artist_id,
            action_kind=ACTION_GUESS_TARGET,
            action_order=order,
        ))
    _enter_phase(room, round_, PHASE_GUESSING)


def _close_round(room: Room, round_: Round) -> Round:
    """Score and close ``round_``; open the next one or finish the game.

    Returns the round that is now live (the new one, or the closed one when
    the game is over).
    """
    scoring.score_round(room, round_)
    _enter_phase(room, round_, PHASE_CLOSED)
    if room.current_round < room.total_rounds:
        room.current_round += 1
        db.session.add(room)
        return open_round(room, room.current_round)
    room.status = ROOM_FINISHED
    db.session.add(room)
    scoring.record_winners(room)
    return round_


def advance_if_ready(room: Room, round_: Round) -> Round:
    """Fire whichever automatic transition the round's state now allows.

    drawing -> guessing once every seated artist has finished, and
    guessing -> closed once every seated member has guessed every target but
    themselves. Neither fires with nobody to wait for. Caller holds the room
    lock and commits. Returns the live round afterwards.
    """
    members = member_ids(room)
    if round_.phase == PHASE_DRAWING:
        active = [e for e in _artist_entries(round_) if e.assignee_id in members]
        if active and all(e.action_kind == ACTION_DRAWING_COMPLETED for e in active):
            _enter_guessing(room, round_)
    elif round_.phase == PHASE_GUESSING:
        if ledger.guess_target_ids(round_) and ledger.status(ledger.GUESS, round_, members).complete:
            return _close_round(room, round_)
    return round_


def publish_state(room: Room, live_round: Round, before: Optional[str] = None) -> None:
    broadcast_room_state(room, live_round)
    if live_round.phase != before:
        schedule_phase_timer(
            current_app._get_current_object(), room.id, live_round.number,
            live_round.phase, live_round.phase_deadline,
        )


def _playing_round(room: Room) -> Round:
    if room.status != ROOM_PLAYING:
        raise PreconditionError('The game is not in progress', status=room.status)
    return current_round(room)


def _validate_text(text, field: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f'{field} is required')
    text = text.strip()
    limit = int(current_app.config.get('MAX_WORD_LENGTH', 100))
    if len(text) > limit:
        raise ValidationError(f'{field} must be at most {limit} characters')
    return text


# ---- word collection ----

def submit_word(room_id: int, user_id: int, text) -> ledger.LedgerStatus:
    text = _validate_text(text, 'Word')
    room = get_room(room_id, lock=True)
    require_membership(room, user_id)
    round_ = _playing_round(room)
    if ledger.exists(ledger.WORD, round_, user_id):
        raise ConflictError('You already submitted a word this round', kind=ledger.WORD)
    if round_.phase != PHASE_COLLECTING_WORDS:
        raise PreconditionError('Words are no longer being collected', phase=round_.phase)

    ledger.submit(ledger.WORD, round_, user_id, text)
    result = ledger.status(ledger.WORD, round_, member_ids(room))
    commit()
    current_app.logger.info(
        f"[word] room={room.id} round={round_.number} user={user_id} "
        f"{result.submitted_count}/{result.total_expected}"
    )
    broadcast_room_state(room, round_)
    return result


def words_status(room_id: int, user_id: int) -> dict:
    room = get_room(room_id)
    require_membership(room, user_id)
    round_ = current_round(room)
    result = ledger.status(ledger.WORD, round_, member_ids(room))
    payload = result.to_dict()
    payload.update({
        'round': round_.number,
        'phase': round_.phase,
        'my_word': ledger.words_by_player(round_).get(user_id),
    })
    return payload


# ---- drawing ----

def begin_drawing_phase(room_id: int, user_id: int) -> Round:
    room = get_room(room_id, lock=True)
    require_host(room, user_id)
    round_ = _playing_round(room)
    if round_.phase != PHASE_COLLECTING_WORDS:
        raise ConflictError('Drawing has already started', phase=round_.phase)

    members = member_ids(room)
    min_players = max(2, int(current_app.config.get('MIN_PLAYERS', 2)))
    if len(members) < min_players:
        raise PreconditionError(f'At least {min_players} players are required to draw', total=len(members))
    words = ledger.status(ledger.WORD, round_, members)
    if not words.complete:
        raise PreconditionError(
            'Not every player has submitted a word',
            submitted=words.submitted_count, total=words.total_expected,
        )

    plan = chain.build_drawing_chain(members, ledger.words_by_player(round_))
    for gap in plan.gaps:
        current_app.logger.warning(
            f"[chain-gap] room={room.id} round={round_.number} artist={gap.artist_id} "
            f"missing word from {gap.source_player_id}"
        )
    for a in plan.assignments:
        db.session.add(ChainEntry(
            round_id=round_.id,
            assignee_id=a.artist_id,
            action_kind=ACTION_DRAWING,
            payload=a.word,
            source_player_id=a.source_player_id,
            action_order=a.order,
        ))
    _enter_phase(room, round_, PHASE_DRAWING)
    commit()
    publish_state(room, round_)
    return round_


def my_drawing_word(room_id: int, user_id: int) -> dict:
    room = get_room(room_id)
    require_membership(room, user_id)
    round_ = current_round(room)
    entry = _artist_entry(round_, user_id)
    if entry is None:
        raise NotFoundError('No word to draw for you this round', round=round_.number)
    return {
        'word': entry.payload,
        'round': round_.number,
        'phase': round_.phase,
        'completed': entry.action_kind == ACTION_DRAWING_COMPLETED,
    }


def save_drawing(room_id: int, user_id: int, image) -> Drawing:
    if not isinstance(image, str) or not image:
        raise ValidationError('Drawing data is required')
    limit = int(current_app.config.get('MAX_DRAWING_BYTES', 2 * 1024 * 1024))
    if len(image) > limit:
        raise ValidationError('Drawing is too large', limit=limit)

    room = get_room(room_id, lock=True)
    require_membership(room, user_id)
    round_ = _playing_round(room)
    entry = _artist_entry(round_, user_id)
    if entry is None:
        raise NotFoundError('No word to draw for you this round', round=round_.number)
    if entry.action_kind == ACTION_DRAWING_COMPLETED:
        raise ConflictError('Your drawing is already finished')
    if round_.phase != PHASE_DRAWING:
        raise PreconditionError('Drawings are no longer accepted', phase=round_.phase)

    drawing = ledger.save_drawing(round_, user_id, image)
    commit()
    return drawing


def complete_drawing(room_id: int, user_id: int) -> dict:
    """Mark the caller's drawing as finished; repeating it is a no-op."""
    room = get_room(room_id, lock=True)
    require_membership(room, user_id)
    round_ = _playing_round(room)
    entry = _artist_entry(round_, user_id)
    if entry is None:
        raise NotFoundError('No word to draw for you this round', round=round_.number)

    before = round_.phase
    live = round_
    if entry.action_kind != ACTION_DRAWING_COMPLETED:
        if round_.phase != PHASE_DRAWING:
            raise PreconditionError('Drawing phase is over', phase=round_.phase)
        entry.action_kind = ACTION_DRAWING_COMPLETED
        db.session.add(entry)
        db.session.flush()
        live = advance_if_ready(room, round_)
        commit()
        current_app.logger.info(f"[draw-done] room={room.id} round={round_.number} user={user_id}")
        publish_state(room, live, before)

    return _drawing_progress(room, round_)


def _drawing_progress(room: Room, round_: Round) -> dict:
    """Completion counts over the artists still seated in the room."""
    members = set(member_ids(room))
    active = [e for e in _artist_entries(round_) if e.assignee_id in members]
    completed = sum(1 for e in active if e.action_kind == ACTION_DRAWING_COMPLETED)
    return {
        'completed_count': completed,
        'total_count': len(active),
        'all_completed': bool(active) and completed == len(active),
        'phase': round_.phase,
    }


def drawing_status(room_id: int) -> dict:
    room = get_room(room_id)
    round_ = current_round(room)
    entries = _artist_entries(round_)
    drawn = {d.player_id for d in Drawing.query.filter_by(round_id=round_.id).all()}
    names = {u.id: u.username for u in User.query.filter(User.id.in_([e.assignee_id for e in entries])).all()} if entries else {}
    members = set(member_ids(room))
    players = [{
        'user_id': e.assignee_id,
        'username': names.get(e.assignee_id),
        'status': e.action_kind,
        'has_drawing': e.assignee_id in drawn,
        'seated': e.assignee_id in members,
    } for e in entries]
    payload = _drawing_progress(room, round_)
    payload.update({
        'players': players,
        'round': round_.number,
        'phase_deadline': round_.phase_deadline,
    })
    return payload


def force_guessing_phase(room_id: int, user_id: int) -> Round:
    """Host escape hatch: stop waiting for artists who have not finished."""
    room = get_room(room_id, lock=True)
    require_host(room, user_id)
    round_ = _playing_round(room)
    if round_.phase in (PHASE_GUESSING, PHASE_CLOSED):
        raise ConflictError('Guessing has already started', phase=round_.phase)
    if round_.phase != PHASE_DRAWING:
        raise PreconditionError('Drawing has not started yet', phase=round_.phase)
    _enter_guessing(room, round_)
    commit()
    publish_state(room, round_, PHASE_DRAWING)
    return round_


# ---- guessing ----

def drawings_to_guess(room_id: int, user_id: int) -> list:
    room = get_room(room_id)
    require_membership(room, user_id)
    round_ = current_round(room)
    if round_.phase != PHASE_GUESSING:
        raise PreconditionError('Guessing has not started', phase=round_.phase)

    targets = [t for t in ledger.guess_target_ids(round_) if t != user_id]
    drawings = {d.player_id: d.image for d in Drawing.query.filter_by(round_id=round_.id).all()}
    guessed = {
        g.target_id for g in ledger.guesses_by(round_, user_id)
    }
    names = {u.id: u.username for u in User.query.filter(User.id.in_(targets)).all()} if targets else {}
    return [{
        'artist_id': t,
        'artist_name': names.get(t),
        'drawing': drawings.get(t),
        'already_guessed': t in guessed,
    } for t in targets]


def submit_guess(room_id: int, user_id: int, target_id, text) -> ledger.LedgerStatus:
    text = _validate_text(text, 'Guess')
    try:
        target_id = int(target_id)
    except (TypeError, ValueError):
        raise ValidationError('artist_id must be a player id')
    if target_id == user_id:
        raise ValidationError('You cannot guess your own drawing')

    room = get_room(room_id, lock=True)
    require_membership(room, user_id)
    round_ = _playing_round(room)
    if ledger.exists(ledger.GUESS, round_, user_id, target_id):
        raise ConflictError('You already guessed this drawing', kind=ledger.GUESS)
    if round_.phase != PHASE_GUESSING:
        raise PreconditionError('Guesses are not being accepted', phase=round_.phase)
    if target_id not in ledger.guess_target_ids(round_):
        raise NotFoundError('That player has no drawing to guess', artist_id=target_id)

    ledger.submit(ledger.GUESS, round_, user_id, text, target_id=target_id)
    result = ledger.status(ledger.GUESS, round_, member_ids(room))
    live = advance_if_ready(room, round_)
    commit()
    current_app.logger.info(f"[guess] room={room.id} round={round_.number} user={user_id} target={target_id}")
    publish_state(room, live, PHASE_GUESSING)
    return result


def guess_status(room_id: int) -> dict:
    room = get_room(room_id)
    round_ = current_round(room)
    payload = ledger.status(ledger.GUESS, round_, member_ids(room)).to_dict()
    payload.update({
        'targets': ledger.guess_target_ids(round_),
        'round': round_.number,
        'phase': round_.phase,
        'phase_deadline': round_.phase_deadline,
    })
    return payload


def finish_round(room_id: int, user_id: int) -> Round:
    """Host escape hatch: close guessing without waiting for stragglers."""
    room = get_room(room_id, lock=True)
    require_host(room, user_id)
    round_ = _playing_round(room)
    if round_.phase == PHASE_CLOSED:
        raise ConflictError('Round is already closed', phase=round_.phase)
    if round_.phase != PHASE_GUESSING:
        raise PreconditionError('Guessing has not started', phase=round_.phase)
    live = _close_round(room, round_)
    commit()
    publish_state(room, live, PHASE_GUESSING)
    return live


# ---- deadlines ----

def expire_phase(room_id: int, round_number: int, phase: str) -> bool:
    """Run the escape hatch for a timed phase that is still open.

    Returns False when the round has already moved on.
    """
    room = get_room(room_id, lock=True)
    round_ = get_round(room, round_number)
    if room.status != ROOM_PLAYING or round_.phase != phase:
        current_app.logger.info(
            f"[timer-abort] room={room_id} round={round_number} expected={phase} actual={round_.phase}"
        )
        db.session.rollback()
        return False
    if phase == PHASE_DRAWING:
        _enter_guessing(room, round_)
        live = round_
    elif phase == PHASE_GUESSING:
        live = _close_round(room, round_)
    else:
        db.session.rollback()
        return False
    commit()
    publish_state(room, live, phase)
    return True
