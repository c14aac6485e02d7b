"""add sync_intent outbox; resolved_at to pending_change

Revision ID: b61d0f4e8c27
Revises: 3a7c1e9d2b40
Create Date: 2025-03-08 16:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b61d0f4e8c27'
down_revision = '3a7c1e9d2b40'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    change_cols = {c['name'] for c in insp.get_columns('pending_change')}
    if 'resolved_at' not in change_cols:
        op.add_column('pending_change', sa.Column('resolved_at', sa.DateTime(), nullable=True))
        # Decided proposals from before this column get their last known decision time
        op.execute(
            "UPDATE pending_change SET resolved_at = last_rejected_at "
            "WHERE status = 'rejected' AND resolved_at IS NULL"
        )

    if 'sync_intent' not in existing_tables:
        op.create_table(
            'sync_intent',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('link_id', sa.Integer(), nullable=False),
            sa.Column('child_id', sa.Integer(), nullable=False),
            sa.Column('source_household_id', sa.Integer(), nullable=False),
            sa.Column('target_household_id', sa.Integer(), nullable=False),
            sa.Column('delta', sa.Integer(), nullable=False),
            sa.Column('reason', sa.String(length=64), nullable=True),
            sa.Column('status', sa.String(length=32), nullable=False),
            sa.Column('attempts', sa.Integer(), nullable=False),
            sa.Column('last_error', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('processed_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['link_id'], ['household_link.id']),
            sa.ForeignKeyConstraint(['child_id'], ['family_member.id']),
            sa.ForeignKeyConstraint(['source_household_id'], ['household.id']),
            sa.ForeignKeyConstraint(['target_household_id'], ['household.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_sync_intent_status', 'sync_intent', ['status'])


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if 'sync_intent' in set(insp.get_table_names()):
        op.drop_index('ix_sync_intent_status', table_name='sync_intent')
        op.drop_table('sync_intent')

    change_cols = {c['name'] for c in insp.get_columns('pending_change')}
    if 'resolved_at' in change_cols:
        with op.batch_alter_table('pending_change') as batch_op:
            batch_op.drop_column('resolved_at')
