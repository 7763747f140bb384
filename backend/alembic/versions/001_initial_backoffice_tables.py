"""Initial back office tables: profiles, supporters, withdrawals.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'profiles',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('user_type', sa.String(50), nullable=False, server_default='creator'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_profile_user_type', 'profiles', ['user_type'])

    op.create_table(
        'supporters',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('profiles.uuid'), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount_cents >= 0', name='ck_supporter_amount_non_negative'),
    )
    op.create_index('idx_supporter_creator_id', 'supporters', ['creator_id'])
    op.create_index('idx_supporter_status', 'supporters', ['status'])

    op.create_table(
        'withdrawals',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('profiles.uuid'), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount_cents >= 0', name='ck_withdrawal_amount_non_negative'),
        sa.CheckConstraint('updated_at >= created_at', name='ck_withdrawal_updated_after_created'),
    )
    op.create_index('idx_withdrawal_creator_id', 'withdrawals', ['creator_id'])
    op.create_index('idx_withdrawal_status', 'withdrawals', ['status'])


def downgrade():
    op.drop_index('idx_withdrawal_status', table_name='withdrawals')
    op.drop_index('idx_withdrawal_creator_id', table_name='withdrawals')
    op.drop_table('withdrawals')
    op.drop_index('idx_supporter_status', table_name='supporters')
    op.drop_index('idx_supporter_creator_id', table_name='supporters')
    op.drop_table('supporters')
    op.drop_index('idx_profile_user_type', table_name='profiles')
    op.drop_table('profiles')
