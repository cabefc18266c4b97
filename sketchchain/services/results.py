"""Rebuild each chain of a finished round for the results screen.

A chain runs from the player who wrote a word, to the artist who drew it,
to everyone who guessed that drawing. Players who left mid-round leave
holes; those are filled with placeholders instead of failing the page.
"""

from typing import Optional

from sketchchain.errors import PreconditionError
from sketchchain.models import (
    ARTIST_ACTIONS, PHASE_CLOSED, ChainEntry, Drawing, Guess, Round, User, WordSubmission,
)
from .access import get_round, get_room, seated_members
from .chain import is_correct_guess

UNKNOWN_PLAYER = 'Unknown player'


def _latest_closed_round(room) -> Round:
    round_ = (
        Round.query
        .filter_by(room_id=room.id, phase=PHASE_CLOSED)
        .order_by(Round.number.desc())
        .first()
    )
    if round_ is None:
        raise PreconditionError('No round has finished yet', room_id=room.id)
    return round_


def compile_results(room_id: int, round_number: Optional[int] = None) -> dict:
    room = get_room(room_id)
    if round_number is None:
        round_ = _latest_closed_round(room)
    else:
        round_ = get_round(room, round_number)
        if round_.phase != PHASE_CLOSED:
            raise PreconditionError('Results are shown once the round is closed', phase=round_.phase)

    words = WordSubmission.query.filter_by(round_id=round_.id).order_by(WordSubmission.id).all()
    entries = ChainEntry.query.filter(
        ChainEntry.round_id == round_.id,
        ChainEntry.action_kind.in_(ARTIST_ACTIONS),
    ).all()
    artist_by_source = {e.source_player_id: e for e in entries}
    drawings = {d.player_id: d.image for d in Drawing.query.filter_by(round_id=round_.id).all()}
    guesses = Guess.query.filter_by(round_id=round_.id).order_by(Guess.id).all()

    user_ids = {w.player_id for w in words} | {e.assignee_id for e in entries} | {g.guesser_id for g in guesses}
    names = {u.id: u.username for u in User.query.filter(User.id.in_(user_ids)).all()} if user_ids else {}

    chains = []
    for word in words:
        entry = artist_by_source.get(word.player_id)
        artist_id = entry.assignee_id if entry is not None else None
        received = [g for g in guesses if artist_id is not None and g.target_id == artist_id]
        guess_views = [{
            'guesser_id': g.guesser_id,
            'guesser_name': names.get(g.guesser_id, UNKNOWN_PLAYER),
            'text': g.text,
            'correct': is_correct_guess(g.text, word.text),
        } for g in received]
        correct = sum(1 for g in guess_views if g['correct'])
        chains.append({
            'author_id': word.player_id,
            'author_name': names.get(word.player_id, UNKNOWN_PLAYER),
            'original_word': word.text,
            'artist_id': artist_id,
            'artist_name': names.get(artist_id, UNKNOWN_PLAYER) if artist_id is not None else UNKNOWN_PLAYER,
            'drawing': drawings.get(artist_id) if artist_id is not None else None,
            'has_drawing': artist_id in drawings,
            'guesses': guess_views,
            'correct_count': correct,
            'fooled_count': len(guess_views) - correct,
            'accuracy': (correct / len(guess_views)) if guess_views else None,
        })

    return {
        'room_id': room.id,
        'round': round_.number,
        'total_rounds': room.total_rounds,
        'status': room.status,
        'chains': chains,
        'scores': [m.to_dict() for m in seated_members(room)],
    }
