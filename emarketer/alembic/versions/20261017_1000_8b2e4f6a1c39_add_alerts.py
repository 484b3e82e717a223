"""add_alerts

Revision ID: 8b2e4f6a1c39
Revises: 3f1c2a9d7e41
Create Date: 2026-10-17 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8b2e4f6a1c39'
down_revision = '3f1c2a9d7e41'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'alerts',
        sa.Column('id', sa.TEXT(), nullable=False),
        sa.Column('company_id', sa.TEXT(), nullable=True),
        sa.Column('user_id', sa.TEXT(), nullable=True),
        sa.Column('type', sa.TEXT(), nullable=False),
        sa.Column('severity', sa.TEXT(), nullable=False, server_default='medium'),
        sa.Column('message', sa.TEXT(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')", name='ck_alerts_severity'
        ),
        sa.CheckConstraint('user_id IS NOT NULL OR company_id IS NOT NULL', name='ck_alerts_owner'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_alerts_company_created', 'alerts', ['company_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('idx_alerts_company_created', table_name='alerts')
    op.drop_table('alerts')
