"""Initial onboarding assessment schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

IN_PROGRESS_ONLY = sa.text("status = 'in_progress'")


def upgrade():
    # Create tests table
    op.create_table(
        'tests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('test_number', sa.Integer(), nullable=False),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=True),
        sa.Column('passing_score', sa.Integer(), nullable=False, server_default='70'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('passing_score >= 0 AND passing_score <= 100', name='ck_tests_passing_score_range'),
    )
    op.create_index('ix_tests_test_number', 'tests', ['test_number'])

    # Create test_questions table
    op.create_table(
        'test_questions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('test_id', sa.String(36), sa.ForeignKey('tests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_number', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('question_type', sa.String(20), nullable=False),
        sa.Column('max_points', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('correct_answer', sa.Text(), nullable=True),
        sa.Column('reference_answer', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('test_id', 'question_number', name='uq_test_questions_test_number'),
    )
    op.create_index('ix_test_questions_test_id', 'test_questions', ['test_id'])

    # Create test_attempts table
    op.create_table(
        'test_attempts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('test_id', sa.String(36), sa.ForeignKey('tests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=True),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_by', sa.String(255), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    op.create_index('ix_test_attempts_user_id', 'test_attempts', ['user_id'])
    op.create_index('ix_test_attempts_test_id', 'test_attempts', ['test_id'])
    op.create_index('ix_test_attempts_status', 'test_attempts', ['status'])
    # At most one in-progress attempt per candidate and test
    op.create_index(
        'uq_test_attempts_one_in_progress', 'test_attempts', ['user_id', 'test_id'],
        unique=True,
        sqlite_where=IN_PROGRESS_ONLY,
        postgresql_where=IN_PROGRESS_ONLY,
    )

    # Create test_responses table
    op.create_table(
        'test_responses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('attempt_id', sa.String(36), sa.ForeignKey('test_attempts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.String(36), sa.ForeignKey('test_questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('answer_text', sa.Text(), nullable=False, server_default=''),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('auto_scored', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_test_responses_attempt_question'),
    )
    op.create_index('ix_test_responses_attempt_id', 'test_responses', ['attempt_id'])

    # Create evaluations table
    op.create_table(
        'evaluations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('response_id', sa.String(36), sa.ForeignKey('test_responses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('attempt_id', sa.String(36), sa.ForeignKey('test_attempts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('evaluator_id', sa.String(255), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('is_final', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('evaluated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_evaluations_response_id', 'evaluations', ['response_id'])
    op.create_index('ix_evaluations_attempt_id', 'evaluations', ['attempt_id'])

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('attempt_id', sa.String(36), sa.ForeignKey('test_attempts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('response_id', sa.String(36), sa.ForeignKey('test_responses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('changed_by', sa.String(255), nullable=False),
        sa.Column('old_value', sa.JSON(), nullable=True),
        sa.Column('new_value', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_logs_attempt_id', 'audit_logs', ['attempt_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('evaluations')
    op.drop_table('test_responses')
    op.drop_table('test_attempts')
    op.drop_table('test_questions')
    op.drop_table('tests')
