from collections import Counter
from typing import Dict

from flask import current_app

from sketchchain import db
from sketchchain.models import (
    ARTIST_ACTIONS, ChainEntry, Guess, Room, RoomPlayer, Round, User,
)
from .chain import is_correct_guess


def drawn_words(round_: Round) -> Dict[int, str]:
    """Artist id -> the word that artist was given to draw."""
    entries = ChainEntry.query.filter(
        ChainEntry.round_id == round_.id,
        ChainEntry.action_kind.in_(ARTIST_ACTIONS),
    ).all()
    return {e.assignee_id: e.payload for e in entries}


def score_round(room: Room, round_: Round) -> Dict[int, int]:
    """Apply scoring for a round that is being closed.

    +1 to each guesser whose guess matches the word the artist drew, and +1
    to the artist for every such guess. Deltas land on the room membership
    (if the player is still seated) and on the account's lifetime points.
    Caller commits.
    """
    words = drawn_words(round_)
    deltas = Counter()
    for guess in Guess.query.filter_by(round_id=round_.id).all():
        if is_correct_guess(guess.text, words.get(guess.target_id)):
            deltas[guess.guesser_id] += 1
            deltas[guess.target_id] += 1

    for user_id, points in deltas.items():
        membership = RoomPlayer.query.filter_by(room_id=room.id, user_id=user_id).first()
        if membership is not None:
            membership.score += points
            db.session.add(membership)
        user = db.session.get(User, user_id)
        if user is not None:
            user.points += points
            db.session.add(user)

    current_app.logger.info(
        f"[score] room={room.id} round={round_.number} deltas={dict(deltas)}"
    )
    return dict(deltas)


def record_winners(room: Room) -> list:
    """Credit a win to every top scorer still seated when the game ends."""
    members = RoomPlayer.query.filter_by(room_id=room.id).all()
    if not members:
        return []
    best = max(m.score for m in members)
    winners = [m for m in members if m.score == best]
    for m in winners:
        user = db.session.get(User, m.user_id)
        if user is not None:
            user.games_won += 1
            db.session.add(user)
    current_app.logger.info(
        f"[finish] room={room.id} winners={[m.user_id for m in winners]} score={best}"
    )
    return [m.user_id for m in winners]
