"""Circular chain assignment.

Pure functions over plain ids and words; no database access. The round
state machine feeds them the current roster in seat order and persists
whatever they return.
"""

from typing import Dict, Iterable, List, NamedTuple, Optional


class DrawingAssignment(NamedTuple):
    artist_id: int
    source_player_id: int
    word: str
    order: int


class ChainGap(NamedTuple):
    artist_id: int
    source_player_id: int


class ChainPlan(NamedTuple):
    assignments: List[DrawingAssignment]
    gaps: List[ChainGap]


def build_drawing_chain(ordered_players: List[int], words_by_player: Dict[int, str]) -> ChainPlan:
    """Give each player the word of the previous seat in the ring.

    ``ordered_players`` is the current roster sorted by seat order; gaps left
    by departed players are closed by treating it as a fresh ring of its own
    length. ``p[i]`` draws the word of ``p[(i - 1 + n) % n]``. A player whose
    predecessor has no word is reported as a gap instead of failing the ring.
    """
    n = len(ordered_players)
    if n < 2:
        raise ValueError('a drawing chain needs at least two players')
    if len(set(ordered_players)) != n:
        raise ValueError('duplicate player in roster')

    assignments = []
    gaps = []
    for i, artist_id in enumerate(ordered_players):
        source_id = ordered_players[(i - 1 + n) % n]
        word = words_by_player.get(source_id)
        if word is None:
            gaps.append(ChainGap(artist_id, source_id))
            continue
        assignments.append(DrawingAssignment(artist_id, source_id, word, i + 1))
    return ChainPlan(assignments, gaps)


def build_guess_targets(artist_ids: Iterable[int]) -> List[int]:
    """One guess target per distinct artist, keeping first-seen order."""
    seen = set()
    targets = []
    for artist_id in artist_ids:
        if artist_id in seen:
            continue
        seen.add(artist_id)
        targets.append(artist_id)
    return targets


def normalize_guess(text: Optional[str]) -> str:
    return ' '.join((text or '').split()).casefold()


def is_correct_guess(guess: Optional[str], word: Optional[str]) -> bool:
    if not guess or not word:
        return False
    return normalize_guess(guess) == normalize_guess(word)
