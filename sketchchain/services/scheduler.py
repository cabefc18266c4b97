import time
from typing import Optional, Set, Tuple

from sketchchain import socketio
from sketchchain.models import PHASE_DRAWING, PHASE_GUESSING


_scheduled_phase_keys: Set[Tuple[int, int, str]] = set()


def phase_duration(config, phase: str) -> int:
    if phase == PHASE_DRAWING:
        return int(config.get('DRAWING_DURATION_SEC', 0) or 0)
    if phase == PHASE_GUESSING:
        return int(config.get('GUESS_DURATION_SEC', 0) or 0)
    return 0


def deadline_for(config, phase: str, now: Optional[float] = None) -> Optional[float]:
    """Epoch deadline for a phase that is being entered, or None if untimed."""
    duration = phase_duration(config, phase)
    if duration <= 0:
        return None
    return (now if now is not None else time.time()) + duration


def schedule_phase_timer(app, room_id: int, round_number: int, phase: str, deadline: Optional[float]) -> bool:
    """Schedule the deadline escape hatch for a phase just entered.

    - No-ops when the phase is untimed
    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (room, round, phase)

    Returns whether a timer was started.
    """
    if deadline is None:
        return False
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return False

    key = (room_id, round_number, phase)
    if key in _scheduled_phase_keys:
        app.logger.info(f"[timer-skip] room={room_id} round={round_number} phase={phase} already scheduled")
        return False
    _scheduled_phase_keys.add(key)
    app.logger.info(f"[timer-set] room={room_id} round={round_number} phase={phase} deadline={deadline}")

    def _worker():
        delay = max(0.0, deadline - time.time())
        if delay:
            time.sleep(delay)
        _scheduled_phase_keys.discard(key)
        # Imported here: the round service schedules timers itself
        from sketchchain.services.rounds import expire_phase
        with app.app_context():
            app.logger.info(f"[timer-fire] room={room_id} round={round_number} phase={phase}")
            expire_phase(room_id, round_number, phase)

    socketio.start_background_task(_worker)
    return True
