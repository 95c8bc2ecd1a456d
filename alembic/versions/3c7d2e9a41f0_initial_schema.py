"""initial_schema

Creates the user, chart of accounts, budget, PRF, PRF item and import
history tables.

Revision ID: 3c7d2e9a41f0
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c7d2e9a41f0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'app_user',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(200), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(200), nullable=False),
        sa.Column('full_name', sa.String(300), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='USER'),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'chart_of_accounts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('coa_code', sa.String(50), nullable=False),
        sa.Column('coa_name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('expense_type', sa.String(10), nullable=True),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('parent_coa_id', sa.Integer(), sa.ForeignKey('chart_of_accounts.id'), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_chart_of_accounts_coa_code', 'chart_of_accounts', ['coa_code'], unique=True)

    op.create_table(
        'budget',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('coa_id', sa.Integer(), sa.ForeignKey('chart_of_accounts.id'), nullable=False),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('quarter', sa.Integer(), nullable=True),
        sa.Column('month', sa.Integer(), nullable=True),
        sa.Column('allocated_amount', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('utilized_amount', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('budget_type', sa.String(20), nullable=False, server_default='Annual'),
        sa.Column('expense_type', sa.String(10), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Active'),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('app_user.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_budget_coa_id', 'budget', ['coa_id'])
    op.create_index('ix_budget_fiscal_year', 'budget', ['fiscal_year'])

    op.create_table(
        'prf',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('prf_no', sa.String(50), nullable=False),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('requestor_id', sa.Integer(), sa.ForeignKey('app_user.id'), nullable=True),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('coa_id', sa.Integer(), sa.ForeignKey('chart_of_accounts.id'), nullable=True),
        sa.Column('requested_amount', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('approved_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('actual_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('priority', sa.String(20), nullable=False, server_default='Medium'),
        sa.Column('status', sa.String(50), nullable=False, server_default='Draft'),
        sa.Column('request_date', sa.Date(), nullable=True),
        sa.Column('required_date', sa.Date(), nullable=True),
        sa.Column('approval_date', sa.Date(), nullable=True),
        sa.Column('completion_date', sa.Date(), nullable=True),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('app_user.id'), nullable=True),
        sa.Column('justification', sa.Text(), nullable=True),
        sa.Column('vendor_name', sa.String(255), nullable=True),
        sa.Column('vendor_contact', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('date_submit', sa.Date(), nullable=True),
        sa.Column('submit_by', sa.String(200), nullable=True),
        sa.Column('sum_description_requested', sa.String(1000), nullable=True),
        sa.Column('purchase_cost_code', sa.String(50), nullable=True),
        sa.Column('required_for', sa.String(500), nullable=True),
        sa.Column('budget_year', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_prf_prf_no', 'prf', ['prf_no'], unique=True)
    op.create_index('ix_prf_purchase_cost_code', 'prf', ['purchase_cost_code'])
    op.create_index('ix_prf_budget_year', 'prf', ['budget_year'])

    op.create_table(
        'prf_item',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('prf_id', sa.Integer(), sa.ForeignKey('prf.id', ondelete='CASCADE'), nullable=False),
        sa.Column('item_name', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('specifications', sa.Text(), nullable=True),
        sa.Column('purchase_cost_code', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Pending'),
        sa.Column('status_overridden', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('picked_up_by', sa.String(200), nullable=True),
        sa.Column('picked_up_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_prf_item_prf_id', 'prf_item', ['prf_id'])

    op.create_table(
        'import_record',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('import_type', sa.String(20), nullable=False, server_default='PRF'),
        sa.Column('source_name', sa.String(500), nullable=False),
        sa.Column('imported_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('validate_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('total_records', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('imported_records', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped_records', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('errors_json', sa.Text(), nullable=True),
        sa.Column('warnings_json', sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('import_record')
    op.drop_index('ix_prf_item_prf_id', table_name='prf_item')
    op.drop_table('prf_item')
    op.drop_index('ix_prf_budget_year', table_name='prf')
    op.drop_index('ix_prf_purchase_cost_code', table_name='prf')
    op.drop_index('ix_prf_prf_no', table_name='prf')
    op.drop_table('prf')
    op.drop_index('ix_budget_fiscal_year', table_name='budget')
    op.drop_index('ix_budget_coa_id', table_name='budget')
    op.drop_table('budget')
    op.drop_index('ix_chart_of_accounts_coa_code', table_name='chart_of_accounts')
    op.drop_table('chart_of_accounts')
    op.drop_table('app_user')
