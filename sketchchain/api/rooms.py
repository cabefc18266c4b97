from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from sketchchain import db
from sketchchain.errors import GameError, StorageError, ValidationError
from sketchchain.services import results as results_svc
from sketchchain.services import rooms as rooms_svc
from sketchchain.services import rounds as rounds_svc


rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(GameError)
def handle_game_error(exc):
    return jsonify(exc.to_dict()), exc.status_code


@rooms.errorhandler(SQLAlchemyError)
def handle_storage_error(exc):
    db.session.rollback()
    current_app.logger.error(f"[storage] {exc.__class__.__name__}: {exc}")
    err = StorageError('Storage failure')
    return jsonify(err.to_dict()), err.status_code


def _payload():
    return request.get_json(silent=True) or {}


# ---- room registry ----

@rooms.route('', methods=['POST'])
@login_required
def create_room():
    data = _payload()
    room = rooms_svc.create_room(
        current_user.id,
        title=data.get('title'),
        mode=data.get('game_mode'),
        capacity=data.get('max_players'),
        total_rounds=data.get('total_rounds'),
        is_private=data.get('is_private', False),
        password=data.get('password'),
    )
    return jsonify({'success': True, 'room': room.to_dict(include_players=True)}), 201


@rooms.route('', methods=['GET'])
def list_rooms():
    return jsonify({'rooms': [r.to_dict() for r in rooms_svc.list_joinable_rooms()]})


@rooms.route('/history', methods=['GET'])
def room_history():
    return jsonify({'rooms': [r.to_dict() for r in rooms_svc.list_finished_rooms()]})


@rooms.route('/stats', methods=['GET'])
@login_required
def room_stats():
    return jsonify({'stats': rooms_svc.host_stats(current_user.id)})


@rooms.route('/<int:room_id>', methods=['GET'])
def get_room(room_id):
    return jsonify({'room': rooms_svc.room_snapshot(room_id)})


@rooms.route('/<int:room_id>/join', methods=['POST'])
@login_required
def join_room(room_id):
    membership = rooms_svc.join_room(room_id, current_user.id, _payload().get('password'))
    return jsonify({'success': True, 'player': membership.to_dict()})


@rooms.route('/<int:room_id>/leave', methods=['POST'])
@login_required
def leave_room(room_id):
    rooms_svc.leave_room(room_id, current_user.id)
    return jsonify({'success': True})


@rooms.route('/<int:room_id>/ready', methods=['POST'])
@login_required
def toggle_ready(room_id):
    ready = rooms_svc.set_ready(room_id, current_user.id)
    return jsonify({'success': True, 'ready': ready})


@rooms.route('/<int:room_id>/start', methods=['POST'])
@login_required
def start_game(room_id):
    round_ = rooms_svc.begin_game(room_id, current_user.id)
    return jsonify({'success': True, 'round': round_.to_dict()})


# ---- words ----

@rooms.route('/<int:room_id>/word', methods=['POST'])
@login_required
def submit_word(room_id):
    status = rounds_svc.submit_word(room_id, current_user.id, _payload().get('word'))
    return jsonify({'success': True, 'status': status.to_dict()}), 201


@rooms.route('/<int:room_id>/words-status', methods=['GET'])
@login_required
def words_status(room_id):
    return jsonify(rounds_svc.words_status(room_id, current_user.id))


# ---- drawing ----

@rooms.route('/<int:room_id>/start-drawing', methods=['POST'])
@login_required
def start_drawing(room_id):
    round_ = rounds_svc.begin_drawing_phase(room_id, current_user.id)
    return jsonify({'success': True, 'round': round_.to_dict()})


@rooms.route('/<int:room_id>/my-drawing-word', methods=['GET'])
@login_required
def my_drawing_word(room_id):
    return jsonify(rounds_svc.my_drawing_word(room_id, current_user.id))


@rooms.route('/<int:room_id>/save-drawing', methods=['POST'])
@login_required
def save_drawing(room_id):
    rounds_svc.save_drawing(room_id, current_user.id, _payload().get('drawing'))
    return jsonify({'success': True})


@rooms.route('/<int:room_id>/finish-drawing', methods=['POST'])
@login_required
def finish_drawing(room_id):
    return jsonify(dict(rounds_svc.complete_drawing(room_id, current_user.id), success=True))


@rooms.route('/<int:room_id>/drawing-status', methods=['GET'])
@login_required
def drawing_status(room_id):
    return jsonify(rounds_svc.drawing_status(room_id))


@rooms.route('/<int:room_id>/force-guessing', methods=['POST'])
@login_required
def force_guessing(room_id):
    round_ = rounds_svc.force_guessing_phase(room_id, current_user.id)
    return jsonify({'success': True, 'round': round_.to_dict()})


# ---- guessing ----

@rooms.route('/<int:room_id>/drawings-to-guess', methods=['GET'])
@login_required
def drawings_to_guess(room_id):
    drawings = rounds_svc.drawings_to_guess(room_id, current_user.id)
    return jsonify({'drawings': drawings, 'total': len(drawings)})


@rooms.route('/<int:room_id>/guess', methods=['POST'])
@login_required
def submit_guess(room_id):
    data = _payload()
    status = rounds_svc.submit_guess(room_id, current_user.id, data.get('artist_id'), data.get('guess'))
    return jsonify({'success': True, 'status': status.to_dict()}), 201


@rooms.route('/<int:room_id>/guess-status', methods=['GET'])
@login_required
def guess_status(room_id):
    return jsonify(rounds_svc.guess_status(room_id))


@rooms.route('/<int:room_id>/finish-round', methods=['POST'])
@login_required
def finish_round(room_id):
    round_ = rounds_svc.finish_round(room_id, current_user.id)
    return jsonify({'success': True, 'round': round_.to_dict()})


@rooms.route('/<int:room_id>/results', methods=['GET'])
@login_required
def get_results(room_id):
    round_number = request.args.get('round')
    if round_number is not None:
        try:
            round_number = int(round_number)
        except ValueError:
            raise ValidationError('round must be a number')
    return jsonify(results_svc.compile_results(room_id, round_number))
