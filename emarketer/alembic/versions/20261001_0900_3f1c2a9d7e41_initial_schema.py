"""initial_schema

Revision ID: 3f1c2a9d7e41
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7e41'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'companies',
        sa.Column('id', sa.TEXT(), nullable=False),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('domain', sa.TEXT(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'memberships',
        sa.Column('id', sa.TEXT(), nullable=False),
        sa.Column('user_id', sa.TEXT(), nullable=False),
        sa.Column('company_id', sa.TEXT(), nullable=False),
        sa.Column('role', sa.TEXT(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'company_id', name='uq_memberships_user_company'),
    )
    op.create_index('idx_memberships_user_created', 'memberships', ['user_id', 'created_at'])
    op.create_index('idx_memberships_company', 'memberships', ['company_id'])

    op.create_table(
        'integrations',
        sa.Column('id', sa.TEXT(), nullable=False),
        sa.Column('user_id', sa.TEXT(), nullable=True),
        sa.Column('company_id', sa.TEXT(), nullable=True),
        sa.Column('platform', sa.TEXT(), nullable=False),
        sa.Column('account_id', sa.TEXT(), nullable=False),
        sa.Column('account_name', sa.TEXT(), nullable=True),
        sa.Column('access_token', sa.TEXT(), nullable=False),
        sa.Column('refresh_token', sa.TEXT(), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_sync_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'company_id', 'platform', 'account_id', name='uq_integrations_company_platform_account'
        ),
        sa.UniqueConstraint(
            'user_id', 'platform', 'account_id', name='uq_integrations_user_platform_account'
        ),
        sa.CheckConstraint('user_id IS NOT NULL OR company_id IS NOT NULL', name='ck_integrations_owner'),
    )
    op.create_index('idx_integrations_active_platform', 'integrations', ['is_active', 'platform'])

    op.create_table(
        'sync_logs',
        sa.Column('id', sa.TEXT(), nullable=False),
        sa.Column('integration_id', sa.TEXT(), nullable=False),
        sa.Column('company_id', sa.TEXT(), nullable=True),
        sa.Column('user_id', sa.TEXT(), nullable=True),
        sa.Column('platform', sa.TEXT(), nullable=False),
        sa.Column('sync_type', sa.TEXT(), nullable=False),
        sa.Column('triggered_by', sa.TEXT(), nullable=False),
        sa.Column('status', sa.TEXT(), nullable=False),
        sa.Column('records_processed', sa.INTEGER(), nullable=False),
        sa.Column('records_created', sa.INTEGER(), nullable=False),
        sa.Column('records_updated', sa.INTEGER(), nullable=False),
        sa.Column('records_failed', sa.INTEGER(), nullable=False),
        sa.Column('error', sa.JSON(), nullable=True),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('duration_ms', sa.INTEGER(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_sync_logs_company_created', 'sync_logs', ['company_id', 'created_at'])
    op.create_index('idx_sync_logs_integration_created', 'sync_logs', ['integration_id', 'created_at'])
    op.create_index('idx_sync_logs_status', 'sync_logs', ['status'])

    op.create_table(
        'campaigns',
        sa.Column('id', sa.TEXT(), nullable=False),
        sa.Column('integration_id', sa.TEXT(), nullable=False),
        sa.Column('company_id', sa.TEXT(), nullable=True),
        sa.Column('user_id', sa.TEXT(), nullable=True),
        sa.Column('platform', sa.TEXT(), nullable=False),
        sa.Column('external_id', sa.TEXT(), nullable=False),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('status', sa.TEXT(), nullable=True),
        sa.Column('spend', sa.FLOAT(), nullable=False),
        sa.Column('impressions', sa.INTEGER(), nullable=False),
        sa.Column('clicks', sa.INTEGER(), nullable=False),
        sa.Column('conversions', sa.FLOAT(), nullable=False),
        sa.Column('revenue', sa.FLOAT(), nullable=False),
        sa.Column('ctr', sa.FLOAT(), nullable=False),
        sa.Column('cpc', sa.FLOAT(), nullable=False),
        sa.Column('roas', sa.FLOAT(), nullable=False),
        sa.Column('metrics_date', sa.DATE(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('integration_id', 'external_id', name='uq_campaigns_integration_external'),
    )
    op.create_index('idx_campaigns_company_platform', 'campaigns', ['company_id', 'platform'])

    op.create_table(
        'chat_messages',
        sa.Column('id', sa.TEXT(), nullable=False),
        sa.Column('user_id', sa.TEXT(), nullable=False),
        sa.Column('company_id', sa.TEXT(), nullable=True),
        sa.Column('role', sa.TEXT(), nullable=False),
        sa.Column('content', sa.TEXT(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_chat_messages_user_created', 'chat_messages', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('idx_chat_messages_user_created', table_name='chat_messages')
    op.drop_table('chat_messages')
    op.drop_index('idx_campaigns_company_platform', table_name='campaigns')
    op.drop_table('campaigns')
    op.drop_index('idx_sync_logs_status', table_name='sync_logs')
    op.drop_index('idx_sync_logs_integration_created', table_name='sync_logs')
    op.drop_index('idx_sync_logs_company_created', table_name='sync_logs')
    op.drop_table('sync_logs')
    op.drop_index('idx_integrations_active_platform', table_name='integrations')
    op.drop_table('integrations')
    op.drop_index('idx_memberships_company', table_name='memberships')
    op.drop_index('idx_memberships_user_created', table_name='memberships')
    op.drop_table('memberships')
    op.drop_table('companies')
