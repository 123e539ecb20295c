"""create users, referral edges, bonus settings, claimed bonuses and withdrawals

Revision ID: a41c07d2e9b1
Revises:
Create Date: 2026-10-17 09:12:04.311820

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a41c07d2e9b1'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=80), nullable=False, unique=True),
        sa.Column('name', sa.String(length=150), nullable=True),
        sa.Column('email', sa.String(length=120), nullable=False, unique=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=10), nullable=True),
        sa.Column('country_code', sa.String(length=40), nullable=True),
        sa.Column('currency', sa.String(length=10), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='user'),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('referral_code', sa.String(length=80), nullable=False, unique=True),
        sa.Column('referred_by_code', sa.String(length=80), nullable=True),
        sa.Column('account_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('transaction_reference', sa.String(length=128), nullable=True),
        sa.Column('affiliation_fee', sa.Numeric(18, 2), nullable=True),
        sa.Column('balance', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('withdrawable_balance', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('youtube_balance', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('tiktok_balance', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('welcome_bonus', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('total_withdrawals', sa.Numeric(18, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            'referred_by_code IS NULL OR referred_by_code <> referral_code',
            name='chk_no_self_referral'
        ),
    )
    with op.batch_alter_table('users') as batch_op:
        batch_op.create_index('ix_users_role', ['role'])
        batch_op.create_index('ix_users_referred_by_code', ['referred_by_code'])

    op.create_table(
        'referrals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('referrer_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('referred_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('commission', sa.Numeric(18, 2), nullable=False),
        sa.Column('paid', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('referrer_id', 'referred_id', 'level', name='uq_referral_edge'),
        sa.CheckConstraint('level >= 1 AND level <= 3', name='chk_referral_level_range'),
    )
    with op.batch_alter_table('referrals') as batch_op:
        batch_op.create_index('ix_referrals_referrer_id', ['referrer_id'])
        batch_op.create_index('ix_referrals_referred_id', ['referred_id'])
        batch_op.create_index('idx_referral_referrer_level', ['referrer_id', 'level'])

    op.create_table(
        'bonus_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('welcome_bonus_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('referral_target', sa.Integer(), nullable=True),
        sa.Column('bonus_enabled', sa.Boolean(), nullable=True),
        sa.Column('affiliation_fee', sa.Numeric(18, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'claimed_bonuses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id', 'type', name='uq_claimed_bonus_user_type'),
    )
    with op.batch_alter_table('claimed_bonuses') as batch_op:
        batch_op.create_index('ix_claimed_bonuses_user_id', ['user_id'])

    op.create_table(
        'withdrawals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('country', sa.String(length=40), nullable=False),
        sa.Column('method', sa.String(length=40), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('admin_confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    with op.batch_alter_table('withdrawals') as batch_op:
        batch_op.create_index('ix_withdrawals_user_id', ['user_id'])
        batch_op.create_index('ix_withdrawals_status', ['status'])
        batch_op.create_index('idx_withdrawal_user_status', ['user_id', 'status'])


def downgrade():
    op.drop_table('withdrawals')
    op.drop_table('claimed_bonuses')
    op.drop_table('bonus_settings')
    op.drop_table('referrals')
    op.drop_table('users')
