"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('password_hash', sa.String(length=255), nullable=False),
    sa.Column('full_name', sa.String(length=255), nullable=True),
    sa.Column('is_admin', sa.Boolean(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_table('qbo_tokens',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('company_id', sa.String(length=64), nullable=False),
    sa.Column('company_name', sa.String(length=255), nullable=True),
    sa.Column('access_token', sa.Text(), nullable=False),
    sa.Column('refresh_token', sa.Text(), nullable=False),
    sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('refresh_expires_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('prospect_id', sa.String(length=36), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_qbo_tokens_company_id', 'qbo_tokens', ['company_id'], unique=True)
    op.create_index('ix_qbo_tokens_prospect_id', 'qbo_tokens', ['prospect_id'], unique=False)
    op.create_table('prospects',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('company_name', sa.String(length=255), nullable=False),
    sa.Column('contact_name', sa.String(length=255), nullable=True),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('phone', sa.String(length=50), nullable=True),
    sa.Column('industry', sa.String(length=100), nullable=True),
    sa.Column('annual_revenue', sa.Float(), nullable=True),
    sa.Column('employee_count', sa.Integer(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('qb_company_id', sa.String(length=64), nullable=True),
    sa.Column('workflow_stage', sa.String(length=50), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_prospects_email', 'prospects', ['email'], unique=False)
    op.create_index('ix_prospects_qb_company_id', 'prospects', ['qb_company_id'], unique=False)
    op.create_table('financial_snapshots',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('company_id', sa.String(length=64), nullable=False),
    sa.Column('revenue', sa.Float(), nullable=False),
    sa.Column('expenses', sa.Float(), nullable=False),
    sa.Column('net_income', sa.Float(), nullable=False),
    sa.Column('gross_profit', sa.Float(), nullable=False),
    sa.Column('total_assets', sa.Float(), nullable=False),
    sa.Column('current_assets', sa.Float(), nullable=False),
    sa.Column('total_liabilities', sa.Float(), nullable=False),
    sa.Column('current_liabilities', sa.Float(), nullable=False),
    sa.Column('profit_margin', sa.Float(), nullable=False),
    sa.Column('current_ratio', sa.Float(), nullable=False),
    sa.Column('debt_to_equity', sa.Float(), nullable=False),
    sa.Column('operating_margin', sa.Float(), nullable=False),
    sa.Column('gross_margin', sa.Float(), nullable=False),
    sa.Column('revenue_growth_rate', sa.Float(), nullable=False),
    sa.Column('source', sa.String(length=20), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_financial_snapshots_company_id', 'financial_snapshots', ['company_id'], unique=False)
    op.create_table('call_transcripts',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('prospect_id', sa.String(length=36), nullable=False),
    sa.Column('company_name', sa.String(length=255), nullable=True),
    sa.Column('file_name', sa.String(length=255), nullable=True),
    sa.Column('transcript_text', sa.Text(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_call_transcripts_prospect_id', 'call_transcripts', ['prospect_id'], unique=False)
    op.create_table('ai_analyses',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('prospect_id', sa.String(length=36), nullable=True),
    sa.Column('company_id', sa.String(length=64), nullable=True),
    sa.Column('transcript_id', sa.String(length=36), nullable=True),
    sa.Column('closeability_score', sa.Integer(), nullable=True),
    sa.Column('financial_health_score', sa.Integer(), nullable=True),
    sa.Column('insights', sa.JSON(), nullable=True),
    sa.Column('model', sa.String(length=100), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ai_analyses_prospect_id', 'ai_analyses', ['prospect_id'], unique=False)
    op.create_index('ix_ai_analyses_company_id', 'ai_analyses', ['company_id'], unique=False)
    op.create_table('generated_reports',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('prospect_id', sa.String(length=36), nullable=False),
    sa.Column('company_id', sa.String(length=64), nullable=True),
    sa.Column('report_type', sa.String(length=50), nullable=False),
    sa.Column('content', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_generated_reports_prospect_id', 'generated_reports', ['prospect_id'], unique=False)
    op.create_index('ix_generated_reports_company_id', 'generated_reports', ['company_id'], unique=False)
    op.create_table('audit_events',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('company_id', sa.String(length=64), nullable=True),
    sa.Column('prospect_id', sa.String(length=36), nullable=True),
    sa.Column('actor_user_id', sa.String(length=36), nullable=True),
    sa.Column('action', sa.String(length=255), nullable=False),
    sa.Column('metadata', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_events_company_id', 'audit_events', ['company_id'], unique=False)
    op.create_index('ix_audit_events_prospect_id', 'audit_events', ['prospect_id'], unique=False)


def downgrade():
    op.drop_index('ix_audit_events_prospect_id', table_name='audit_events')
    op.drop_index('ix_audit_events_company_id', table_name='audit_events')
    op.drop_table('audit_events')
    op.drop_index('ix_generated_reports_company_id', table_name='generated_reports')
    op.drop_index('ix_generated_reports_prospect_id', table_name='generated_reports')
    op.drop_table('generated_reports')
    op.drop_index('ix_ai_analyses_company_id', table_name='ai_analyses')
    op.drop_index('ix_ai_analyses_prospect_id', table_name='ai_analyses')
    op.drop_table('ai_analyses')
    op.drop_index('ix_call_transcripts_prospect_id', table_name='call_transcripts')
    op.drop_table('call_transcripts')
    op.drop_index('ix_financial_snapshots_company_id', table_name='financial_snapshots')
    op.drop_table('financial_snapshots')
    op.drop_index('ix_prospects_qb_company_id', table_name='prospects')
    op.drop_index('ix_prospects_email', table_name='prospects')
    op.drop_table('prospects')
    op.drop_index('ix_qbo_tokens_prospect_id', table_name='qbo_tokens')
    op.drop_index('ix_qbo_tokens_company_id', table_name='qbo_tokens')
    op.drop_table('qbo_tokens')
    op.drop_table('users')
