"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the analytics schema:
    - users: account with optional timezone preference
    - urls: short URLs with lifecycle fields
    - clicks / impressions: immutable event logs aggregated by the engine
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('timezone', sa.String(length=64), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('email'),
        )

    if 'urls' not in existing_tables:
        op.create_table(
            'urls',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('short_code', sa.String(length=20), nullable=False),
            sa.Column('original_url', sa.Text(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_urls_short_code', 'urls', ['short_code'], unique=True)
        op.create_index('ix_urls_user_id', 'urls', ['user_id'])
        op.create_index('ix_urls_expiry_date', 'urls', ['expiry_date'])

    if 'clicks' not in existing_tables:
        op.create_table(
            'clicks',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('url_id', sa.Integer(), nullable=False),
            sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('ip_address', sa.String(length=45), nullable=True),
            sa.Column('user_agent', sa.String(length=500), nullable=True),
            sa.Column('referrer', sa.Text(), nullable=True),
            sa.Column('country', sa.String(length=2), nullable=True),
            sa.Column('device_type', sa.String(length=50), nullable=True),
            sa.Column('browser', sa.String(length=100), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_clicks_url_id', 'clicks', ['url_id'])
        op.create_index('ix_clicks_clicked_at', 'clicks', ['clicked_at'])

    if 'impressions' not in existing_tables:
        op.create_table(
            'impressions',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('url_id', sa.Integer(), nullable=False),
            sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
            sa.Column('ip_address', sa.String(length=45), nullable=True),
            sa.Column('user_agent', sa.String(length=500), nullable=True),
            sa.Column('referrer', sa.Text(), nullable=True),
            sa.Column('is_unique', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('source', sa.String(length=255), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_impressions_url_id', 'impressions', ['url_id'])
        op.create_index('ix_impressions_timestamp', 'impressions', ['timestamp'])


def downgrade() -> None:
    op.drop_index('ix_impressions_timestamp', table_name='impressions')
    op.drop_index('ix_impressions_url_id', table_name='impressions')
    op.drop_table('impressions')

    op.drop_index('ix_clicks_clicked_at', table_name='clicks')
    op.drop_index('ix_clicks_url_id', table_name='clicks')
    op.drop_table('clicks')

    op.drop_index('ix_urls_expiry_date', table_name='urls')
    op.drop_index('ix_urls_user_id', table_name='urls')
    op.drop_index('ix_urls_short_code', table_name='urls')
    op.drop_table('urls')

    op.drop_table('users')
