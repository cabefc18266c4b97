import pytest

from sketchchain.errors import NotFoundError, PreconditionError
from sketchchain.services import rooms as rooms_svc
from sketchchain.services import rounds as rounds_svc
from sketchchain.services.results import UNKNOWN_PLAYER, compile_results


def _play_round(room_id, ids, words, guesses):
    for uid, word in zip(ids, words):
        rounds_svc.submit_word(room_id, uid, word)
    rounds_svc.begin_drawing_phase(room_id, ids[0])
    for uid in ids:
        rounds_svc.save_drawing(room_id, uid, f'img-{uid}')
        rounds_svc.complete_drawing(room_id, uid)
    for guesser, target, text in guesses:
        rounds_svc.submit_guess(room_id, guesser, target, text)


def test_results_need_a_closed_round(game_factory):
    room_id, ids = game_factory(n=2)
    with pytest.raises(PreconditionError):
        compile_results(room_id)
    with pytest.raises(PreconditionError):
        compile_results(room_id, 1)
    with pytest.raises(NotFoundError):
        compile_results(room_id, 7)


def test_full_round_chains(game_factory):
    room_id, (a, b, c) = game_factory(n=3, total_rounds=1)
    # b draws "sun", c draws "moon", a draws "star"
    _play_round(room_id, [a, b, c], ['sun', 'moon', 'star'], [
        (a, b, 'sun'), (a, c, 'cheese'),
        (b, a, 'star'), (b, c, 'moon'),
        (c, a, 'planet'), (c, b, 'SUN'),
    ])

    results = compile_results(room_id)
    assert results['round'] == 1
    assert results['status'] == 'finished'
    chains = {ch['author_id']: ch for ch in results['chains']}
    assert set(chains) == {a, b, c}

    sun = chains[a]
    assert sun['original_word'] == 'sun'
    assert sun['artist_id'] == b
    assert sun['drawing'] == f'img-{b}'
    assert [(g['guesser_id'], g['correct']) for g in sun['guesses']] == [(a, True), (c, True)]
    assert sun['accuracy'] == 1.0

    moon = chains[b]
    assert moon['artist_id'] == c
    assert moon['correct_count'] == 1
    assert moon['fooled_count'] == 1
    assert moon['accuracy'] == 0.5

    # no two submitters share a drawing
    artists = [ch['artist_id'] for ch in results['chains']]
    assert len(set(artists)) == len(artists)

    scores = {s['user_id']: s['score'] for s in results['scores']}
    assert scores == {a: 2, b: 4, c: 2}


def test_missing_links_get_placeholders(game_factory):
    room_id, (a, b, c) = game_factory(n=3, total_rounds=1)
    for uid, word in zip([a, b, c], ['sun', 'moon', 'star']):
        rounds_svc.submit_word(room_id, uid, word)
    rounds_svc.begin_drawing_phase(room_id, a)
    rounds_svc.save_drawing(room_id, c, 'img-c')
    rounds_svc.complete_drawing(room_id, c)
    # b (who drew "sun") leaves without drawing anything
    rooms_svc.leave_room(room_id, b)
    rounds_svc.force_guessing_phase(room_id, a)
    rounds_svc.finish_round(room_id, a)

    chains = {ch['author_id']: ch for ch in compile_results(room_id, 1)['chains']}
    assert chains[a]['drawing'] is None
    assert chains[a]['has_drawing'] is False
    assert chains[a]['guesses'] == []
    assert chains[a]['accuracy'] is None
    assert chains[b]['drawing'] == 'img-c'
    assert chains[b]['author_name'] != UNKNOWN_PLAYER
