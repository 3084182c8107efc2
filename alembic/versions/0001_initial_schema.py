"""initial_schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name, nullable=False):
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def _enum(name, *values):
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('whatsapp_link', sa.String(100), nullable=True),
        sa.Column('role', _enum('profilerole', 'member', 'admin'), nullable=False),
        sa.Column('member_code', sa.String(20), nullable=True),
        _money('monthly_subscription'),
        _money('fine'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)
    op.create_index('ix_profiles_member_code', 'profiles', ['member_code'], unique=True)

    op.create_table(
        'loan_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('member_id', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=False),
        _money('amount'),
        sa.Column('duration_months', sa.Integer(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=True),
        sa.Column('status', _enum('loanrequeststatus', 'pending', 'approved', 'rejected'), nullable=False),
        _money('approved_amount', nullable=True),
        sa.Column('remark', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_loan_requests_member_id', 'loan_requests', ['member_id'])

    op.create_table(
        'loans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('member_id', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('request_id', sa.Uuid(), sa.ForeignKey('loan_requests.id'), nullable=True, unique=True),
        _money('amount'),
        sa.Column('interest_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('duration_months', sa.Integer(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=True),
        sa.Column('status', _enum('loanstatus', 'pending', 'approved', 'active', 'completed', 'rejected'), nullable=False),
        _money('principal_remaining'),
        _money('outstanding_interest'),
        _money('monthly_emi_amount', nullable=True),
        sa.Column('approved_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_loans_member_id', 'loans', ['member_id'])

    op.create_table(
        'loan_payments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('loan_id', sa.Uuid(), sa.ForeignKey('loans.id'), nullable=False),
        sa.Column('member_id', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('period_year', sa.Integer(), nullable=False),
        sa.Column('period_month', sa.Integer(), nullable=False),
        sa.Column('period_key', sa.String(7), nullable=False),
        sa.Column('payment_type', _enum('paymenttype', 'principal', 'interest', 'penalty', 'subscription', 'combined'), nullable=False),
        _money('amount'),
        _money('principal_component'),
        _money('interest_component'),
        _money('penalty_component'),
        _money('subscription_component'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('loan_id', 'period_key', name='uq_loan_payment_period'),
    )
    op.create_index('ix_loan_payments_loan_id', 'loan_payments', ['loan_id'])
    op.create_index('ix_loan_payments_member_id', 'loan_payments', ['member_id'])
    op.create_index('ix_loan_payments_period_key', 'loan_payments', ['period_key'])

    op.create_table(
        'monthly_loan_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('member_id', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('period_key', sa.String(7), nullable=False),
        sa.Column('period_year', sa.Integer(), nullable=False),
        sa.Column('period_month', sa.Integer(), nullable=False),
        _money('opening_outstanding'),
        _money('credit_limit'),
        _money('interest_due'),
        _money('monthly_subscription'),
        _money('interest_paid'),
        _money('principal_paid'),
        _money('new_loan_taken'),
        _money('penalty'),
        _money('additional_principal'),
        _money('closing_outstanding'),
        _money('total_monthly_income'),
        _money('monthly_installment_income'),
        _money('available_loan_amount'),
        sa.Column('status', _enum('recordstatus', 'draft', 'finalized'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('finalized_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('finalized_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('member_id', 'period_key', name='uq_monthly_record_member_period'),
    )
    op.create_index('ix_monthly_loan_records_member_id', 'monthly_loan_records', ['member_id'])
    op.create_index('ix_monthly_loan_records_period_key', 'monthly_loan_records', ['period_key'])

    op.create_table(
        'system_settings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('setting_key', sa.String(100), nullable=False),
        sa.Column('setting_value', sa.Text(), nullable=True),
        sa.Column('setting_type', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
    )
    op.create_index('ix_system_settings_setting_key', 'system_settings', ['setting_key'], unique=True)

    op.create_table(
        'notices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('priority', _enum('noticepriority', 'low', 'medium', 'high'), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('notices')
    op.drop_index('ix_system_settings_setting_key', table_name='system_settings')
    op.drop_table('system_settings')
    op.drop_table('monthly_loan_records')
    op.drop_table('loan_payments')
    op.drop_table('loans')
    op.drop_table('loan_requests')
    op.drop_index('ix_profiles_member_code', table_name='profiles')
    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_table('profiles')
