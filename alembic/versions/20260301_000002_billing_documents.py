"""Add billing documents (invoices and proposals)

Revision ID: 20260301_000002
Revises: 20260101_000001
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260301_000002'
down_revision: Union[str, None] = '20260101_000001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'billing_documents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('number', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('issuer_name', sa.String(length=255), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=False),
        sa.Column('client_email', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('scope', sa.Text(), nullable=True),
        sa.Column('timeline', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.DECIMAL(precision=18, scale=4), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('pay_to_address', sa.String(length=64), nullable=True),
        sa.Column('network', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_billing_documents_user_id', 'billing_documents', ['user_id'], unique=False)
    op.create_index('ix_billing_documents_number', 'billing_documents', ['number'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_billing_documents_number', table_name='billing_documents')
    op.drop_index('ix_billing_documents_user_id', table_name='billing_documents')
    op.drop_table('billing_documents')
