from datetime import datetime, timezone
from sketchchain import db, bcrypt
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

# Room lifecycle
ROOM_WAITING = 'waiting'
ROOM_PLAYING = 'playing'
ROOM_FINISHED = 'finished'

# Round phases, strictly forward
PHASE_COLLECTING_WORDS = 'collecting_words'
PHASE_DRAWING = 'drawing'
PHASE_GUESSING = 'guessing'
PHASE_CLOSED = 'closed'
PHASES = (PHASE_COLLECTING_WORDS, PHASE_DRAWING, PHASE_GUESSING, PHASE_CLOSED)

# Chain entry kinds
ACTION_DRAWING = 'drawing'
ACTION_DRAWING_COMPLETED = 'drawing_completed'
ACTION_GUESS_TARGET = 'guess_target'
ARTIST_ACTIONS = (ACTION_DRAWING, ACTION_DRAWING_COMPLETED)
ARTIST_ENTRY_CLAUSE = "action_kind IN ('drawing', 'drawing_completed')"


def utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)
    games_won = db.Column(db.Integer, default=0, nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'points': self.points,
            'games_won': self.games_won,
        }


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(120), nullable=False)
    game_mode = db.Column(db.String(32), nullable=False, default='classic')
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    is_private = db.Column(db.Boolean, default=False, nullable=False)
    password_hash = db.Column(db.String(128), nullable=True)
    max_players = db.Column(db.Integer, nullable=False)
    current_players = db.Column(db.Integer, default=0, nullable=False)
    status = db.Column(db.String(16), default=ROOM_WAITING, nullable=False, index=True)  # waiting, playing, finished
    current_round = db.Column(db.Integer, default=0, nullable=False)
    total_rounds = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    host = db.relationship('User', foreign_keys=[host_id])
    members = db.relationship('RoomPlayer', back_populates='room', order_by='RoomPlayer.seat_order')
    rounds = db.relationship('Round', back_populates='room', order_by='Round.number')

    __table_args__ = (
        db.CheckConstraint('current_players >= 0 AND current_players <= max_players', name='ck_room_player_count'),
    )

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash or password is None:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self, include_players=False):
        data = {
            'id': self.id,
            'title': self.title,
            'game_mode': self.game_mode,
            'host_id': self.host_id,
            'host_name': self.host.username if self.host else None,
            'is_private': self.is_private,
            'max_players': self.max_players,
            'current_players': self.current_players,
            'status': self.status,
            'current_round': self.current_round,
            'total_rounds': self.total_rounds,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_players:
            data['players'] = [m.to_dict() for m in self.members]
        return data


class RoomPlayer(db.Model):
    """Membership of a user in a room, seated in join order."""
    __tablename__ = 'room_player'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    seat_order = db.Column(db.Integer, nullable=False)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    is_ready = db.Column(db.Boolean, default=False, nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    room = db.relationship('Room', back_populates='members')
    user = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('room_id', 'user_id', name='uq_room_player_user'),
        db.UniqueConstraint('room_id', 'seat_order', name='uq_room_player_seat'),
    )

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'username': self.user.username if self.user else None,
            'seat_order': self.seat_order,
            'is_host': self.is_host,
            'is_ready': self.is_ready,
            'score': self.score,
        }


class Round(db.Model):
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False)
    number = db.Column(db.Integer, nullable=False)
    phase = db.Column(db.String(32), default=PHASE_COLLECTING_WORDS, nullable=False)
    # Epoch seconds; set only when a phase duration is configured
    phase_deadline = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    room = db.relationship('Room', back_populates='rounds')

    __table_args__ = (
        db.UniqueConstraint('room_id', 'number', name='uq_round_room_number'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'number': self.number,
            'phase': self.phase,
            'phase_deadline': self.phase_deadline,
        }


class WordSubmission(db.Model):
    __tablename__ = 'word_submission'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    text = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('round_id', 'player_id', name='uq_word_round_player'),
    )


class ChainEntry(db.Model):
    """Assignment of a player to an action within a round.

    For a drawing entry the assignee is the artist, ``payload`` is the word
    to draw and ``source_player_id`` is the player who wrote that word.
    """
    __tablename__ = 'chain_entry'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    assignee_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    action_kind = db.Column(db.String(32), nullable=False)
    payload = db.Column(db.Text, nullable=True)
    source_player_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    action_order = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('round_id', 'assignee_id', 'action_kind', name='uq_chain_entry_kind'),
        # One artist entry per player per round, whether or not it is finished
        db.Index(
            'uq_chain_entry_artist', 'round_id', 'assignee_id', unique=True,
            sqlite_where=db.text(ARTIST_ENTRY_CLAUSE),
            postgresql_where=db.text(ARTIST_ENTRY_CLAUSE),
        ),
    )


class Drawing(db.Model):
    __tablename__ = 'drawing'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    image = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('round_id', 'player_id', name='uq_drawing_round_player'),
    )


class Guess(db.Model):
    __tablename__ = 'guess'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    guesser_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    target_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    text = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    guesser = db.relationship('User', foreign_keys=[guesser_id])
    target = db.relationship('User', foreign_keys=[target_id])

    __table_args__ = (
        db.UniqueConstraint('round_id', 'guesser_id', 'target_id', name='uq_guess_round_pair'),
        db.CheckConstraint('guesser_id != target_id', name='ck_guess_not_self'),
    )
