"""household core schema: members, households, links, tasks, routines

Revision ID: 3a7c1e9d2b40
Revises:
Create Date: 2025-03-01 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c1e9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'family_member',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_family_member_email', 'family_member', ['email'], unique=True)

    op.create_table(
        'household',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'linked_household',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('family_member_id', sa.Integer(), nullable=False),
        sa.Column('household_id', sa.Integer(), nullable=False),
        sa.Column('link_code', sa.String(length=6), nullable=False),
        sa.Column('linked_at', sa.DateTime(), nullable=False),
        sa.Column('linked_by_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['family_member_id'], ['family_member.id']),
        sa.ForeignKeyConstraint(['household_id'], ['household.id']),
        sa.ForeignKeyConstraint(['linked_by_id'], ['family_member.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('family_member_id', 'household_id', name='uq_linked_household_member'),
    )
    op.create_index('ix_linked_household_family_member_id', 'linked_household', ['family_member_id'])

    op.create_table(
        'member_profile',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('household_id', sa.Integer(), nullable=False),
        sa.Column('family_member_id', sa.Integer(), nullable=False),
        sa.Column('display_name', sa.String(length=64), nullable=False),
        sa.Column('profile_color', sa.String(length=16), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('points_total', sa.Integer(), nullable=False),
        sa.Column('current_streak', sa.Integer(), nullable=False),
        sa.Column('longest_streak', sa.Integer(), nullable=False),
        sa.Column('last_completion_date', sa.Date(), nullable=True),
        sa.Column('streak_multiplier', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['household_id'], ['household.id']),
        sa.ForeignKeyConstraint(['family_member_id'], ['family_member.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('household_id', 'family_member_id', name='uq_profile_household_member'),
    )
    op.create_index('ix_member_profile_household_id', 'member_profile', ['household_id'])
    op.create_index('ix_member_profile_family_member_id', 'member_profile', ['family_member_id'])

    op.create_table(
        'link_code',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('household_id', sa.Integer(), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('used_by_household_id', sa.Integer(), nullable=True),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['child_id'], ['family_member.id']),
        sa.ForeignKeyConstraint(['household_id'], ['household.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['family_member.id']),
        sa.ForeignKeyConstraint(['used_by_household_id'], ['household.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_link_code_code', 'link_code', ['code'], unique=True)
    op.create_index('ix_link_code_child_id', 'link_code', ['child_id'])
    op.create_index('ix_link_code_expires_at', 'link_code', ['expires_at'])

    op.create_table(
        'household_link',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('household1_id', sa.Integer(), nullable=False),
        sa.Column('household2_id', sa.Integer(), nullable=False),
        sa.Column('link_code', sa.String(length=6), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('accepted_by_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['child_id'], ['family_member.id']),
        sa.ForeignKeyConstraint(['household1_id'], ['household.id']),
        sa.ForeignKeyConstraint(['household2_id'], ['household.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['family_member.id']),
        sa.ForeignKeyConstraint(['accepted_by_id'], ['family_member.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('child_id', 'household1_id', 'household2_id', name='uq_link_child_households'),
        sa.CheckConstraint('household1_id <> household2_id', name='ck_link_distinct_households'),
    )
    op.create_index('ix_household_link_child_id', 'household_link', ['child_id'])
    op.create_index('ix_link_household1_status', 'household_link', ['household1_id', 'status'])
    op.create_index('ix_link_household2_status', 'household_link', ['household2_id', 'status'])

    op.create_table(
        'sharing_setting',
        sa.Column('link_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('value', sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(['link_id'], ['household_link.id']),
        sa.PrimaryKeyConstraint('link_id', 'category'),
    )

    op.create_table(
        'pending_change',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('link_id', sa.Integer(), nullable=False),
        sa.Column('setting', sa.String(length=32), nullable=False),
        sa.Column('current_value', sa.String(length=32), nullable=False),
        sa.Column('proposed_value', sa.String(length=32), nullable=False),
        sa.Column('proposed_by_id', sa.Integer(), nullable=False),
        sa.Column('proposed_by_household_id', sa.Integer(), nullable=False),
        sa.Column('proposed_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('previous_rejections', sa.Integer(), nullable=False),
        sa.Column('last_rejected_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['link_id'], ['household_link.id']),
        sa.ForeignKeyConstraint(['proposed_by_id'], ['family_member.id']),
        sa.ForeignKeyConstraint(['proposed_by_household_id'], ['household.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pending_change_link_id', 'pending_change', ['link_id'])

    op.create_table(
        'proposal_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('link_id', sa.Integer(), nullable=False),
        sa.Column('setting', sa.String(length=32), nullable=False),
        sa.Column('proposed_at', sa.DateTime(), nullable=False),
        sa.Column('proposed_by_id', sa.Integer(), nullable=False),
        sa.Column('proposed_by_household_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['link_id'], ['household_link.id']),
        sa.ForeignKeyConstraint(['proposed_by_id'], ['family_member.id']),
        sa.ForeignKeyConstraint(['proposed_by_household_id'], ['household.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_history_rate_window', 'proposal_history',
                    ['link_id', 'setting', 'proposed_by_household_id', 'proposed_at'])

    op.create_table(
        'task',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('household_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points_value', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('completed_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['household_id'], ['household.id']),
        sa.ForeignKeyConstraint(['completed_by_id'], ['member_profile.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_task_household_id', 'task', ['household_id'])
    op.create_index('ix_task_status', 'task', ['status'])

    op.create_table(
        'task_assignee',
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['profile_id'], ['member_profile.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('task_id', 'profile_id'),
    )

    op.create_table(
        'routine',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('household_id', sa.Integer(), nullable=False),
        sa.Column('assigned_to_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points_reward', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['household_id'], ['household.id']),
        sa.ForeignKeyConstraint(['assigned_to_id'], ['member_profile.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_routine_household_id', 'routine', ['household_id'])


def downgrade():
    op.drop_index('ix_routine_household_id', table_name='routine')
    op.drop_table('routine')
    op.drop_table('task_assignee')
    op.drop_index('ix_task_status', table_name='task')
    op.drop_index('ix_task_household_id', table_name='task')
    op.drop_table('task')
    op.drop_index('ix_history_rate_window', table_name='proposal_history')
    op.drop_table('proposal_history')
    op.drop_index('ix_pending_change_link_id', table_name='pending_change')
    op.drop_table('pending_change')
    op.drop_table('sharing_setting')
    op.drop_index('ix_link_household2_status', table_name='household_link')
    op.drop_index('ix_link_household1_status', table_name='household_link')
    op.drop_index('ix_household_link_child_id', table_name='household_link')
    op.drop_table('household_link')
    op.drop_index('ix_link_code_expires_at', table_name='link_code')
    op.drop_index('ix_link_code_child_id', table_name='link_code')
    op.drop_index('ix_link_code_code', table_name='link_code')
    op.drop_table('link_code')
    op.drop_index('ix_member_profile_family_member_id', table_name='member_profile')
    op.drop_index('ix_member_profile_household_id', table_name='member_profile')
    op.drop_table('member_profile')
    op.drop_index('ix_linked_household_family_member_id', table_name='linked_household')
    op.drop_table('linked_household')
    op.drop_table('household')
    op.drop_index('ix_family_member_email', table_name='family_member')
    op.drop_table('family_member')
