"""create_expense_approval_tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates companies, users, approval rules and their steps, claims with their
frozen chain, the approval action ledger and the audit log.

approval_actions and audit_logs are append-only at the DB level:
UPDATE and DELETE are revoked from PUBLIC.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'companies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('base_currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('sequential', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('require_manager_approval', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('thresholds', sa.JSON(), nullable=False),
        sa.Column('conditional_rules', sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('company_id', sa.Uuid(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='employee'),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('manager_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approval_limit', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_company_id', 'users', ['company_id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'approval_rules',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('company_id', sa.Uuid(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('min_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('max_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('categories', sa.JSON(), nullable=False),
        sa.Column('departments', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_approval_rules_company_id', 'approval_rules', ['company_id'])

    op.create_table(
        'approval_rule_steps',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('rule_id', sa.Uuid(), sa.ForeignKey('approval_rules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('approver_role', sa.String(length=50), nullable=False),
        sa.Column('is_manager_approver', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('approval_limit', sa.Numeric(18, 2), nullable=True),
        sa.Column('required', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('rule_id', 'sequence', name='uq_rule_step_sequence'),
    )
    op.create_index('ix_approval_rule_steps_rule_id', 'approval_rule_steps', ['rule_id'])

    op.create_table(
        'claims',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('company_id', sa.Uuid(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('submitted_by', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('converted_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('base_currency', sa.String(length=3), nullable=False),
        sa.Column('exchange_rate', sa.Numeric(18, 8), nullable=False, server_default='1'),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('current_approver_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approval_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('resolution', sa.String(length=20), nullable=True),
        sa.Column('rule_id', sa.Uuid(), sa.ForeignKey('approval_rules.id'), nullable=True),
        sa.Column('conditional_snapshot', sa.JSON(), nullable=False),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_claims_company_id', 'claims', ['company_id'])
    op.create_index('ix_claims_submitted_by', 'claims', ['submitted_by'])
    op.create_index('ix_claims_status', 'claims', ['status'])
    op.create_index('ix_claims_current_approver_id', 'claims', ['current_approver_id'])

    op.create_table(
        'claim_steps',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('claim_id', sa.Uuid(), sa.ForeignKey('claims.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('approver_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('approver_role', sa.String(length=50), nullable=False),
        sa.Column('assignment', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('claim_id', 'position', name='uq_claim_step_position'),
    )
    op.create_index('ix_claim_steps_claim_id', 'claim_steps', ['claim_id'])
    op.create_index('ix_claim_steps_approver_id', 'claim_steps', ['approver_id'])

    op.create_table(
        'approval_actions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('claim_id', sa.Uuid(), sa.ForeignKey('claims.id'), nullable=False),
        sa.Column('approver_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('decision', sa.String(length=20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('sequence_index', sa.Integer(), nullable=False),
        sa.Column('is_override', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('claim_id', 'sequence_index', name='uq_approval_action_level'),
    )
    op.create_index('ix_approval_actions_claim_id', 'approval_actions', ['claim_id'])
    op.create_index('ix_approval_actions_approver_id', 'approval_actions', ['approver_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('company_id', sa.Uuid(), sa.ForeignKey('companies.id'), nullable=True),
        sa.Column('actor_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('actor_email', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=True),
        sa.Column('before_state', sa.Text(), nullable=True),
        sa.Column('after_state', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_audit_logs_company_id', 'audit_logs', ['company_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])

    for table in ('approval_actions', 'audit_logs'):
        op.execute(f"REVOKE UPDATE, DELETE ON {table} FROM PUBLIC;")
        op.execute(f"GRANT SELECT, INSERT ON {table} TO PUBLIC;")


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('approval_actions')
    op.drop_table('claim_steps')
    op.drop_table('claims')
    op.drop_table('approval_rule_steps')
    op.drop_table('approval_rules')
    op.drop_table('users')
    op.drop_table('companies')
