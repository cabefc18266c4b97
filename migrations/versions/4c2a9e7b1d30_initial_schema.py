"""initial schema: users, rooms, memberships, rounds, submissions, chain

Revision ID: 4c2a9e7b1d30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7b1d30'
down_revision = None
branch_labels = None
depends_on = None

ARTIST_ENTRY_CLAUSE = "action_kind IN ('drawing', 'drawing_completed')"


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('games_won', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_user_username'), 'user', ['username'], unique=True)

    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=120), nullable=False),
        sa.Column('game_mode', sa.String(length=32), nullable=False),
        sa.Column('host_id', sa.Integer(), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('password_hash', sa.String(length=128), nullable=True),
        sa.Column('max_players', sa.Integer(), nullable=False),
        sa.Column('current_players', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('current_round', sa.Integer(), nullable=False),
        sa.Column('total_rounds', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('current_players >= 0 AND current_players <= max_players', name='ck_room_player_count'),
        sa.ForeignKeyConstraint(['host_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_room_status'), 'room', ['status'], unique=False)

    op.create_table(
        'room_player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('seat_order', sa.Integer(), nullable=False),
        sa.Column('is_host', sa.Boolean(), nullable=False),
        sa.Column('is_ready', sa.Boolean(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['room.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'user_id', name='uq_room_player_user'),
        sa.UniqueConstraint('room_id', 'seat_order', name='uq_room_player_seat'),
    )
    op.create_index(op.f('ix_room_player_room_id'), 'room_player', ['room_id'], unique=False)

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('phase', sa.String(length=32), nullable=False),
        sa.Column('phase_deadline', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['room_id'], ['room.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'number', name='uq_round_room_number'),
    )

    op.create_table(
        'word_submission',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.ForeignKeyConstraint(['player_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'player_id', name='uq_word_round_player'),
    )
    op.create_index(op.f('ix_word_submission_round_id'), 'word_submission', ['round_id'], unique=False)

    op.create_table(
        'chain_entry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('assignee_id', sa.Integer(), nullable=False),
        sa.Column('action_kind', sa.String(length=32), nullable=False),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('source_player_id', sa.Integer(), nullable=True),
        sa.Column('action_order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.ForeignKeyConstraint(['assignee_id'], ['user.id']),
        sa.ForeignKeyConstraint(['source_player_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'assignee_id', 'action_kind', name='uq_chain_entry_kind'),
    )
    op.create_index(op.f('ix_chain_entry_round_id'), 'chain_entry', ['round_id'], unique=False)
    op.create_index(
        'uq_chain_entry_artist', 'chain_entry', ['round_id', 'assignee_id'], unique=True,
        sqlite_where=sa.text(ARTIST_ENTRY_CLAUSE),
        postgresql_where=sa.text(ARTIST_ENTRY_CLAUSE),
    )

    op.create_table(
        'drawing',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('image', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.ForeignKeyConstraint(['player_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'player_id', name='uq_drawing_round_player'),
    )
    op.create_index(op.f('ix_drawing_round_id'), 'drawing', ['round_id'], unique=False)

    op.create_table(
        'guess',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('guesser_id', sa.Integer(), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('guesser_id != target_id', name='ck_guess_not_self'),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.ForeignKeyConstraint(['guesser_id'], ['user.id']),
        sa.ForeignKeyConstraint(['target_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'guesser_id', 'target_id', name='uq_guess_round_pair'),
    )
    op.create_index(op.f('ix_guess_round_id'), 'guess', ['round_id'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_guess_round_id'), table_name='guess')
    op.drop_table('guess')
    op.drop_index(op.f('ix_drawing_round_id'), table_name='drawing')
    op.drop_table('drawing')
    op.drop_index('uq_chain_entry_artist', table_name='chain_entry')
    op.drop_index(op.f('ix_chain_entry_round_id'), table_name='chain_entry')
    op.drop_table('chain_entry')
    op.drop_index(op.f('ix_word_submission_round_id'), table_name='word_submission')
    op.drop_table('word_submission')
    op.drop_table('round')
    op.drop_index(op.f('ix_room_player_room_id'), table_name='room_player')
    op.drop_table('room_player')
    op.drop_index(op.f('ix_room_status'), table_name='room')
    op.drop_table('room')
    op.drop_index(op.f('ix_user_username'), table_name='user')
    op.drop_table('user')
