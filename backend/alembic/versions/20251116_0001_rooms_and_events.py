"""rooms and events

Revision ID: 20251116_0001
Revises: 
Create Date: 2025-11-16
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20251116_0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('rooms',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('color', sa.String(), nullable=True),
        sa.Column('allow_overlap', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False)
    )
    op.create_table('events',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('room_id', sa.String(), sa.ForeignKey('rooms.id'), nullable=False, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('starts_at', sa.DateTime(), nullable=False),
        sa.Column('ends_at', sa.DateTime(), nullable=False),
        sa.Column('recurrence_rule', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='draft', index=True),
        sa.Column('created_by', sa.String(), nullable=False, index=True),
        sa.Column('reviewer_id', sa.String(), nullable=True),
        sa.Column('reviewer_notes', sa.String(), nullable=True),
        sa.Column('parent_event_id', sa.String(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('ends_at > starts_at', name='ck_events_range')
    )
    op.create_index('ix_events_room_starts_at', 'events', ['room_id', 'starts_at'])


def downgrade():
    op.drop_index('ix_events_room_starts_at', table_name='events')
    op.drop_table('events')
    op.drop_table('rooms')
