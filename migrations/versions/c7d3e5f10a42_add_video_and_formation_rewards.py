"""add videos, video watches, formations and user formations

Revision ID: c7d3e5f10a42
Revises: a41c07d2e9b1
Create Date: 2026-10-18 10:41:27.905113

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c7d3e5f10a42'
down_revision = 'a41c07d2e9b1'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'videos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('url', sa.String(length=500), nullable=True),
        sa.Column('platform', sa.String(length=20), nullable=False),
        sa.Column('earnings', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("platform IN ('youtube', 'tiktok')", name='chk_video_platform'),
    )

    op.create_table(
        'video_watches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('video_id', sa.Integer(), sa.ForeignKey('videos.id', ondelete='CASCADE'), nullable=False),
        sa.Column('earnings_claimed', sa.Numeric(18, 2), nullable=False),
        sa.Column('watched_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id', 'video_id', name='uq_video_watch_user_video'),
    )
    with op.batch_alter_table('video_watches') as batch_op:
        batch_op.create_index('ix_video_watches_user_id', ['user_id'])

    op.create_table(
        'formations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('file_url', sa.String(length=500), nullable=True),
        sa.Column('rewards_amount', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'user_formations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('formation_id', sa.Integer(), sa.ForeignKey('formations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rewards_amount', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('downloaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id', 'formation_id', name='uq_user_formation'),
    )
    with op.batch_alter_table('user_formations') as batch_op:
        batch_op.create_index('ix_user_formations_user_id', ['user_id'])


def downgrade():
    op.drop_table('user_formations')
    op.drop_table('formations')
    op.drop_table('video_watches')
    op.drop_table('videos')
