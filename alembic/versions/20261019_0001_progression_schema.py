"""Progression and entitlement schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Per-user progression state
    op.create_table(
        'user_progression_state',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('total_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('study_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_study_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('total_xp >= 0', name='ck_user_progression_state_total_xp_non_negative'),
        sa.CheckConstraint('level >= 1', name='ck_user_progression_state_level_min'),
    )
    op.create_index('ix_user_progression_state_user_id', 'user_progression_state', ['user_id'], unique=True)

    # Append-only XP ledger
    op.create_table(
        'xp_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('xp_value', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('xp_value > 0', name='ck_xp_events_xp_value_positive'),
    )
    op.create_index('ix_xp_events_user_created', 'xp_events', ['user_id', 'created_at'])

    # Usage counters, one row per (user, feature)
    op.create_table(
        'usage_counters',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('feature', sa.String(50), nullable=False),
        sa.Column('period_kind', sa.String(10), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lifetime_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'feature', name='uq_usage_counters_user_feature'),
        sa.CheckConstraint('used >= 0', name='ck_usage_counters_used_non_negative'),
    )

    # Badge catalog
    op.create_table(
        'badge_definitions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('criteria_type', sa.String(50), nullable=False),
        sa.Column('criteria_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('icon', sa.String(32), nullable=True),
        sa.Column('tier', sa.String(20), nullable=False, server_default='bronze'),
        sa.Column('bonus_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Badge awards; the unique constraint is the at-most-once guarantee
    op.create_table(
        'badge_awards',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('badge_id', sa.String(64), sa.ForeignKey('badge_definitions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('awarded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'badge_id', name='uq_badge_awards_user_badge'),
    )

    # Recorded study sessions
    op.create_table(
        'study_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('session_type', sa.String(30), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'question_attempts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('session_id', sa.Uuid(), sa.ForeignKey('study_sessions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('unit', sa.String(100), nullable=False, server_default='unknown'),
        sa.Column('correct', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_question_attempts_user_unit', 'question_attempts', ['user_id', 'unit'])

    # Subscription tiers (written by billing, read here)
    op.create_table(
        'user_subscriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('tier', sa.String(20), nullable=False, server_default='free'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_user_subscriptions_user_id', 'user_subscriptions', ['user_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_user_subscriptions_user_id', table_name='user_subscriptions')
    op.drop_table('user_subscriptions')
    op.drop_index('ix_question_attempts_user_unit', table_name='question_attempts')
    op.drop_table('question_attempts')
    op.drop_table('study_sessions')
    op.drop_table('badge_awards')
    op.drop_table('badge_definitions')
    op.drop_table('usage_counters')
    op.drop_index('ix_xp_events_user_created', table_name='xp_events')
    op.drop_table('xp_events')
    op.drop_index('ix_user_progression_state_user_id', table_name='user_progression_state')
    op.drop_table('user_progression_state')
