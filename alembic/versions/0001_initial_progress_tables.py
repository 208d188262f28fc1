"""Initial migration - progress core tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── student_aggregates table ──────────────────────────────────────
    op.create_table(
        'student_aggregates',
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('total_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_practice_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_streak_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_streak_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity_date', sa.Date(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('day_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('day_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('day_practice_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('student_id'),
    )

    # ── exercise_attempts table ───────────────────────────────────────
    op.create_table(
        'exercise_attempts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('exercise_id', sa.UUID(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('time_spent_seconds', sa.Integer(), nullable=False),
        sa.Column('correct_count', sa.Integer(), nullable=False),
        sa.Column('total_count', sa.Integer(), nullable=False),
        sa.Column('mistakes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'student_id', 'exercise_id', 'occurred_at', name='uq_attempt_student_exercise_time'
        ),
    )
    op.create_index('ix_exercise_attempts_student_id', 'exercise_attempts', ['student_id'])
    op.create_index('ix_exercise_attempts_exercise_id', 'exercise_attempts', ['exercise_id'])

    # ── progress_snapshots table ──────────────────────────────────────
    op.create_table(
        'progress_snapshots',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('snapshot_date', sa.Date(), nullable=False),
        sa.Column('total_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_practice_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('daily_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('daily_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('daily_practice_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'snapshot_date', name='uq_snapshot_student_date'),
    )
    op.create_index('ix_progress_snapshots_student_id', 'progress_snapshots', ['student_id'])

    # ── achievements table ────────────────────────────────────────────
    op.create_table(
        'achievements',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon_url', sa.String(512), nullable=True),
        sa.Column('criteria', sa.Text(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_achievements_is_active', 'achievements', ['is_active'])

    # ── student_achievements table ────────────────────────────────────
    op.create_table(
        'student_achievements',
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('achievement_id', sa.UUID(), nullable=False),
        sa.Column('earned_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['achievement_id'], ['achievements.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('student_id', 'achievement_id'),
    )


def downgrade() -> None:
    op.drop_table('student_achievements')
    op.drop_index('ix_achievements_is_active', table_name='achievements')
    op.drop_table('achievements')
    op.drop_index('ix_progress_snapshots_student_id', table_name='progress_snapshots')
    op.drop_table('progress_snapshots')
    op.drop_index('ix_exercise_attempts_exercise_id', table_name='exercise_attempts')
    op.drop_index('ix_exercise_attempts_student_id', table_name='exercise_attempts')
    op.drop_table('exercise_attempts')
    op.drop_table('student_aggregates')
