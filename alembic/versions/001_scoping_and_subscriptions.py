"""Create scoping, applicant and notification tables

Revision ID: 001_scoping_and_subscriptions
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_scoping_and_subscriptions'
down_revision = None
branch_labels = None
depends_on = None


def _id_column() -> sa.Column:
    return sa.Column('id', sa.String(length=36), nullable=False)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    """Create users, jobs, events, applicants, interviews and notification tables."""
    op.create_table(
        'users',
        _id_column(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('scoped_departments', sa.Text(), nullable=True),
        sa.Column('scoped_offices', sa.Text(), nullable=True),
        sa.Column('scope_mode', sa.String(length=10), nullable=False, server_default='or'),
        sa.Column('event_access', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'offices',
        _id_column(),
        sa.Column('name', sa.String(length=200), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'jobs',
        _id_column(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('office_id', sa.String(length=36), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='open'),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['office_id'], ['offices.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_department', 'jobs', ['department'])
    op.create_index('ix_jobs_office_id', 'jobs', ['office_id'])

    op.create_table(
        'job_reviewers',
        _id_column(),
        sa.Column('job_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'user_id', name='uq_job_reviewers_job_user'),
    )
    op.create_index('ix_job_reviewers_job_id', 'job_reviewers', ['job_id'])
    op.create_index('ix_job_reviewers_user_id', 'job_reviewers', ['user_id'])

    op.create_table(
        'recruitment_events',
        _id_column(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recruitment_events_date', 'recruitment_events', ['date'])

    op.create_table(
        'event_reviewers',
        _id_column(),
        sa.Column('event_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['event_id'], ['recruitment_events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_reviewers_event_user'),
    )
    op.create_index('ix_event_reviewers_event_id', 'event_reviewers', ['event_id'])
    op.create_index('ix_event_reviewers_user_id', 'event_reviewers', ['user_id'])

    op.create_table(
        'applicants',
        _id_column(),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('job_id', sa.String(length=36), nullable=True),
        sa.Column('event_id', sa.String(length=36), nullable=True),
        sa.Column('stage', sa.String(length=50), nullable=False, server_default='new'),
        sa.Column('source', sa.String(length=50), nullable=False, server_default='public'),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['event_id'], ['recruitment_events.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_applicants_email', 'applicants', ['email'])
    op.create_index('ix_applicants_job_id', 'applicants', ['job_id'])
    op.create_index('ix_applicants_event_id', 'applicants', ['event_id'])

    op.create_table(
        'interviews',
        _id_column(),
        sa.Column('applicant_id', sa.String(length=36), nullable=False),
        sa.Column('interview_type', sa.String(length=50), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('location', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='scheduled'),
        sa.Column('scheduled_by_id', sa.String(length=36), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['applicant_id'], ['applicants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['scheduled_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_interviews_applicant_id', 'interviews', ['applicant_id'])

    op.create_table(
        'interview_participants',
        _id_column(),
        sa.Column('interview_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.ForeignKeyConstraint(['interview_id'], ['interviews.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('interview_id', 'user_id', name='uq_interview_participants'),
    )
    op.create_index('ix_interview_participants_interview_id', 'interview_participants', ['interview_id'])

    op.create_table(
        'notification_subscriptions',
        _id_column(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('value', sa.String(length=500), nullable=False, server_default=''),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'type', 'value', name='uq_notification_subscriptions'),
    )
    op.create_index('ix_notification_subscriptions_user_id', 'notification_subscriptions', ['user_id'])
    op.create_index('idx_notification_subscriptions_type_value', 'notification_subscriptions', ['type', 'value'])

    op.create_table(
        'job_notification_subs',
        _id_column(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('job_id', sa.String(length=36), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'job_id', name='uq_job_notification_subs'),
    )
    op.create_index('ix_job_notification_subs_user_id', 'job_notification_subs', ['user_id'])
    op.create_index('ix_job_notification_subs_job_id', 'job_notification_subs', ['job_id'])

    op.create_table(
        'notifications',
        _id_column(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.String(length=500), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_read', 'notifications', ['read'])


def downgrade() -> None:
    """Drop every table created by this revision, dependents first."""
    for table in (
        'notifications',
        'job_notification_subs',
        'notification_subscriptions',
        'interview_participants',
        'interviews',
        'applicants',
        'event_reviewers',
        'recruitment_events',
        'job_reviewers',
        'jobs',
        'offices',
        'users',
    ):
        op.drop_table(table)
