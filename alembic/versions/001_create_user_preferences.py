"""Create user preferences table

Revision ID: 001
Revises: 
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('user_preferences',
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('interests', sa.JSON(), nullable=False),
        sa.Column('age_group', sa.String(length=20), nullable=False),
        sa.Column('activity_types', sa.JSON(), nullable=False),
        sa.Column('preferred_environment', sa.String(length=20), nullable=False),
        sa.Column('price_range', sa.String(length=20), nullable=False),
        sa.Column('time_preference', sa.String(length=20), nullable=False),
        sa.Column('group_size', sa.String(length=50), nullable=False),
        sa.Column('accessibility_needs', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('user_id')
    )
    op.create_index(op.f('ix_user_preferences_user_id'), 'user_preferences', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_user_preferences_user_id'), table_name='user_preferences')
    op.drop_table('user_preferences')
