"""Account directory schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create customers table
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('record_ref', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('allowed_transfer_refs', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_customers_id'), 'customers', ['id'], unique=False)
    op.create_index(op.f('ix_customers_record_ref'), 'customers', ['record_ref'], unique=True)

    # Create accounts table
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('record_ref', sa.String(), nullable=False),
        sa.Column('account_id', sa.String(), nullable=False),
        sa.Column('pin', sa.String(), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('owner_ref', sa.String(), nullable=False),
        sa.ForeignKeyConstraint(['owner_ref'], ['customers.record_ref'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_accounts_id'), 'accounts', ['id'], unique=False)
    op.create_index(op.f('ix_accounts_record_ref'), 'accounts', ['record_ref'], unique=True)
    op.create_index(op.f('ix_accounts_account_id'), 'accounts', ['account_id'], unique=True)


def downgrade() -> None:
    op.drop_table('accounts')
    op.drop_table('customers')
