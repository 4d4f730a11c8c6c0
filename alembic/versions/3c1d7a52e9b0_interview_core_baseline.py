"""interview_core_baseline

Revision ID: 3c1d7a52e9b0
Revises:
Create Date: 2026-10-19 09:12:44.104218

Production-safe migration: only creates tables that do not exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3c1d7a52e9b0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SESSION_STATUS = sa.Enum('PENDING', 'ACTIVE', 'COMPLETED', 'FAILED', 'FEEDBACK_GENERATED', name='sessionstatus')


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('interview_sessions'):
        op.create_table('interview_sessions',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('job_title', sa.String(), nullable=False),
            sa.Column('company', sa.String(), nullable=True),
            sa.Column('interview_type', sa.String(), nullable=True),
            sa.Column('jd_context', sa.Text(), nullable=True),
            sa.Column('resume_snapshot', sa.JSON(), nullable=True),
            sa.Column('openai_session_id', sa.String(), nullable=True),
            sa.Column('fallback_mode', sa.Boolean(), nullable=False),
            sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
            sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
            sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('duration', sa.Integer(), nullable=True),
            sa.Column('duration_seconds', sa.Integer(), nullable=True),
            sa.Column('status', SESSION_STATUS, nullable=False),
            sa.Column('failure_reason', sa.Text(), nullable=True),
            sa.Column('feedback_status', sa.String(), nullable=False),
            sa.Column('feedback_error', sa.Text(), nullable=True),
            sa.Column('feedback_claimed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('audio_url', sa.String(), nullable=True),
            sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id', name='pk_interview_sessions')
        )
        op.create_index('idx_sessions_user_created', 'interview_sessions', ['user_id', 'created_at'], unique=False)
        op.create_index('ix_interview_sessions_user_id', 'interview_sessions', ['user_id'], unique=False)
        op.create_index('ix_interview_sessions_openai_session_id', 'interview_sessions', ['openai_session_id'], unique=False)
        op.create_index('ix_interview_sessions_status', 'interview_sessions', ['status'], unique=False)
        op.create_index('ix_interview_sessions_expires_at', 'interview_sessions', ['expires_at'], unique=False)

    if not table_exists('transcripts'):
        op.create_table('transcripts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.String(length=36), nullable=False),
            sa.Column('role', sa.String(), nullable=False),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('confidence', sa.Float(), nullable=True),
            sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
            sa.Column('sequence_number', sa.Integer(), nullable=False),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['session_id'], ['interview_sessions.id'], name='fk_transcripts_session_id_interview_sessions'),
            sa.PrimaryKeyConstraint('id', name='pk_transcripts'),
            sa.UniqueConstraint('session_id', 'sequence_number', name='uq_transcripts_session_sequence')
        )
        op.create_index('idx_transcripts_session_sequence', 'transcripts', ['session_id', 'sequence_number'], unique=False)
        op.create_index('ix_transcripts_id', 'transcripts', ['id'], unique=False)
        op.create_index('ix_transcripts_session_id', 'transcripts', ['session_id'], unique=False)
        op.create_index('ix_transcripts_expires_at', 'transcripts', ['expires_at'], unique=False)

    if not table_exists('feedback'):
        op.create_table('feedback',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('summary', sa.Text(), nullable=True),
            sa.Column('strengths', sa.JSON(), nullable=True),
            sa.Column('areas_for_improvement', sa.JSON(), nullable=True),
            sa.Column('filler_word_count', sa.Integer(), nullable=False),
            sa.Column('transcript_score', sa.Float(), nullable=True),
            sa.Column('clarity_score', sa.Float(), nullable=True),
            sa.Column('conciseness_score', sa.Float(), nullable=True),
            sa.Column('technical_depth_score', sa.Float(), nullable=True),
            sa.Column('star_method_score', sa.Float(), nullable=True),
            sa.Column('overall_score', sa.Float(), nullable=True),
            sa.Column('structured_data', sa.JSON(), nullable=True),
            sa.Column('enhanced_feedback_generated', sa.Boolean(), nullable=False),
            sa.Column('enhanced_report_data', sa.JSON(), nullable=True),
            sa.Column('tone_analysis', sa.JSON(), nullable=True),
            sa.Column('sentiment_progression', sa.JSON(), nullable=True),
            sa.Column('keyword_relevance_score', sa.Float(), nullable=True),
            sa.Column('enhanced_generated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('enhanced_status', sa.String(), nullable=False),
            sa.Column('enhanced_claimed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('enhanced_error', sa.Text(), nullable=True),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['session_id'], ['interview_sessions.id'], name='fk_feedback_session_id_interview_sessions'),
            sa.PrimaryKeyConstraint('id', name='pk_feedback')
        )
        # One feedback row per session
        op.create_index('ix_feedback_session_id', 'feedback', ['session_id'], unique=True)
        op.create_index('idx_feedback_user_created', 'feedback', ['user_id', 'created_at'], unique=False)
        op.create_index('ix_feedback_id', 'feedback', ['id'], unique=False)
        op.create_index('ix_feedback_user_id', 'feedback', ['user_id'], unique=False)
        op.create_index('ix_feedback_overall_score', 'feedback', ['overall_score'], unique=False)
        op.create_index('ix_feedback_expires_at', 'feedback', ['expires_at'], unique=False)

    if not table_exists('usage_events'):
        op.create_table('usage_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(), nullable=True),
            sa.Column('session_id', sa.String(length=36), nullable=True),
            sa.Column('event_type', sa.String(), nullable=False),
            sa.Column('details', sa.JSON(), nullable=True),
            sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('month_key', sa.String(length=7), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id', name='pk_usage_events')
        )
        op.create_index('idx_usage_user_type_month', 'usage_events', ['user_id', 'event_type', 'month_key'], unique=False)
        op.create_index('ix_usage_events_id', 'usage_events', ['id'], unique=False)
        op.create_index('ix_usage_events_user_id', 'usage_events', ['user_id'], unique=False)
        op.create_index('ix_usage_events_session_id', 'usage_events', ['session_id'], unique=False)
        op.create_index('ix_usage_events_event_type', 'usage_events', ['event_type'], unique=False)
        op.create_index('ix_usage_events_occurred_at', 'usage_events', ['occurred_at'], unique=False)
        op.create_index('ix_usage_events_month_key', 'usage_events', ['month_key'], unique=False)
        op.create_index('ix_usage_events_expires_at', 'usage_events', ['expires_at'], unique=False)


def downgrade() -> None:
    # Children first
    for table_name in ('usage_events', 'feedback', 'transcripts', 'interview_sessions'):
        if table_exists(table_name):
            op.drop_table(table_name)
    SESSION_STATUS.drop(op.get_bind(), checkfirst=True)
