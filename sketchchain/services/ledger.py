"""Submission ledger: at most one word, drawing or guess per key.

Keys are ``(round, player)`` for words and drawings and
``(round, guesser, target)`` for guesses. The unique constraints on the
tables back the application-level check, so two racing inserts still end
with exactly one row and one ``ConflictError``.
"""

from typing import Dict, Iterable, List, NamedTuple, Optional

from sketchchain import db
from sketchchain.errors import ConflictError, ValidationError
from sketchchain.models import (
    ACTION_GUESS_TARGET, ChainEntry, Drawing, Guess, Round, WordSubmission,
)
from .access import flush_unique

WORD = 'word'
DRAWING = 'drawing'
GUESS = 'guess'


class LedgerStatus(NamedTuple):
    kind: str
    submitted_count: int
    total_expected: int
    players: Dict[int, bool]

    @property
    def complete(self) -> bool:
        return self.total_expected > 0 and self.submitted_count == self.total_expected

    def to_dict(self):
        return {
            'kind': self.kind,
            'submitted_count': self.submitted_count,
            'total_expected': self.total_expected,
            'all_submitted': self.complete,
            'players': [{'user_id': uid, 'submitted': flag} for uid, flag in self.players.items()],
        }


def _existing(kind: str, round_: Round, player_id: int, target_id: Optional[int]):
    if kind == WORD:
        return WordSubmission.query.filter_by(round_id=round_.id, player_id=player_id).first()
    if kind == DRAWING:
        return Drawing.query.filter_by(round_id=round_.id, player_id=player_id).first()
    if kind == GUESS:
        return Guess.query.filter_by(round_id=round_.id, guesser_id=player_id, target_id=target_id).first()
    raise ValueError(f'unknown submission kind: {kind}')


def exists(kind: str, round_: Round, player_id: int, target_id: Optional[int] = None) -> bool:
    return _existing(kind, round_, player_id, target_id) is not None


def submit(kind: str, round_: Round, player_id: int, payload: str, target_id: Optional[int] = None):
    """Insert one submission or raise ``ConflictError`` if the key is taken."""
    if kind == GUESS:
        if target_id is None:
            raise ValidationError('A guess needs a target')
        if target_id == player_id:
            raise ValidationError('You cannot guess your own drawing')

    if _existing(kind, round_, player_id, target_id) is not None:
        raise ConflictError(f'{kind.capitalize()} already submitted this round', kind=kind)

    if kind == WORD:
        row = WordSubmission(round_id=round_.id, player_id=player_id, text=payload)
    elif kind == DRAWING:
        row = Drawing(round_id=round_.id, player_id=player_id, image=payload)
    else:
        row = Guess(round_id=round_.id, guesser_id=player_id, target_id=target_id, text=payload)
    db.session.add(row)
    flush_unique(kind.capitalize())
    return row


def save_drawing(round_: Round, player_id: int, image: str) -> Drawing:
    """Store a drawing draft; repeated saves overwrite the same row."""
    drawing = _existing(DRAWING, round_, player_id, None)
    if drawing is None:
        return submit(DRAWING, round_, player_id, image)
    drawing.image = image
    db.session.add(drawing)
    return drawing


def words_by_player(round_: Round) -> Dict[int, str]:
    return {w.player_id: w.text for w in WordSubmission.query.filter_by(round_id=round_.id).all()}


def guesses_by(round_: Round, guesser_id: int) -> List[Guess]:
    return Guess.query.filter_by(round_id=round_.id, guesser_id=guesser_id).all()


def guess_target_ids(round_: Round) -> List[int]:
    entries = (
        ChainEntry.query
        .filter_by(round_id=round_.id, action_kind=ACTION_GUESS_TARGET)
        .order_by(ChainEntry.action_order, ChainEntry.id)
        .all()
    )
    return [e.assignee_id for e in entries]


def status(kind: str, round_: Round, members: Iterable[int]) -> LedgerStatus:
    """Per-member submission flags against the membership at call time."""
    members = list(members)
    if kind == WORD:
        done = set(words_by_player(round_))
        flags = {m: m in done for m in members}
    elif kind == DRAWING:
        done = {d.player_id for d in Drawing.query.filter_by(round_id=round_.id).all()}
        flags = {m: m in done for m in members}
    elif kind == GUESS:
        targets = guess_target_ids(round_)
        pairs = {(g.guesser_id, g.target_id) for g in Guess.query.filter_by(round_id=round_.id).all()}
        flags = {}
        for m in members:
            owed = [t for t in targets if t != m]
            flags[m] = all((m, t) in pairs for t in owed)
    else:
        raise ValueError(f'unknown submission kind: {kind}')
    return LedgerStatus(kind, sum(1 for f in flags.values() if f), len(members), flags)
