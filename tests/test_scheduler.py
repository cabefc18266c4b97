import time

import pytest

from sketchchain import db, socketio
from sketchchain.services import rooms as rooms_svc
from sketchchain.services import rounds as rounds_svc
from sketchchain.services import scheduler
from sketchchain.services.access import current_round, get_room
from sketchchain.services.scheduler import deadline_for, phase_duration, schedule_phase_timer


@pytest.fixture()
def live_timers(flask_app, monkeypatch):
    """Timers enabled; background tasks are captured instead of started."""
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda fn, *args, **kwargs: started.append(fn))
    yield started
    scheduler._scheduled_phase_keys.clear()


def _start_drawing(room_id, ids, words):
    for uid, word in zip(ids, words):
        rounds_svc.submit_word(room_id, uid, word)
    rounds_svc.begin_drawing_phase(room_id, ids[0])


def test_untimed_phases_have_no_deadline(flask_app):
    assert deadline_for(flask_app.config, 'drawing') is None
    assert deadline_for(flask_app.config, 'collecting_words') is None


def test_configured_durations_set_deadlines():
    config = {'DRAWING_DURATION_SEC': 90, 'GUESS_DURATION_SEC': 30}
    assert phase_duration(config, 'drawing') == 90
    assert phase_duration(config, 'guessing') == 30
    assert phase_duration(config, 'closed') == 0
    assert deadline_for(config, 'drawing', now=1000.0) == 1090.0
    assert deadline_for(config, 'guessing', now=1000.0) == 1030.0


def test_timers_do_not_run_in_tests(flask_app):
    assert schedule_phase_timer(flask_app, 1, 1, 'drawing', None) is False
    assert schedule_phase_timer(flask_app, 1, 1, 'drawing', 1234.0) is False


def test_timed_phase_records_deadline(flask_app, game_factory):
    flask_app.config['DRAWING_DURATION_SEC'] = 60
    room_id, ids = game_factory(n=2)
    for uid, word in zip(ids, ['cat', 'dog']):
        rounds_svc.submit_word(room_id, uid, word)
    rounds_svc.begin_drawing_phase(room_id, ids[0])

    round_ = current_round(get_room(room_id))
    assert round_.phase == 'drawing'
    assert round_.phase_deadline is not None
    assert rounds_svc.drawing_status(room_id)['phase_deadline'] == round_.phase_deadline


def test_leave_that_opens_guessing_schedules_its_timer(flask_app, game_factory, live_timers):
    flask_app.config['GUESS_DURATION_SEC'] = 30
    room_id, ids = game_factory(n=3)
    _start_drawing(room_id, ids, ['a', 'b', 'c'])
    rounds_svc.complete_drawing(room_id, ids[0])
    rounds_svc.complete_drawing(room_id, ids[1])
    assert live_timers == []

    rooms_svc.leave_room(room_id, ids[2])

    round_ = current_round(get_room(room_id))
    assert round_.phase == 'guessing'
    assert round_.phase_deadline is not None
    assert len(live_timers) == 1
    assert (room_id, 1, 'guessing') in scheduler._scheduled_phase_keys


def test_timer_worker_expires_the_phase(flask_app, game_factory, live_timers):
    room_id, ids = game_factory(n=2)
    _start_drawing(room_id, ids, ['cat', 'dog'])
    rounds_svc.complete_drawing(room_id, ids[0])
    key = (room_id, 1, 'drawing')

    assert schedule_phase_timer(flask_app, room_id, 1, 'drawing', time.time() - 1) is True
    assert schedule_phase_timer(flask_app, room_id, 1, 'drawing', time.time() - 1) is False
    assert len(live_timers) == 1
    assert key in scheduler._scheduled_phase_keys

    # the worker runs in its own app context and session
    db.session.commit()
    live_timers[0]()

    assert key not in scheduler._scheduled_phase_keys
    round_ = current_round(get_room(room_id))
    assert round_.phase == 'guessing'
    assert rounds_svc.guess_status(room_id)['targets'] == [ids[0]]
