"""Initial ledger schema: products, clients, shifts, sales, client movements

Revision ID: 20261018_initial_ledger
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_name', ['name'], unique=False)
        batch_op.create_index('ix_products_category', ['category'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_barcode'), ['barcode'], unique=False)

    # ==========================================================================
    # 2. CLIENTS (fiado accounts)
    # ==========================================================================
    op.create_table('clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('authorized', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credit_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('clients', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_clients_name'), ['name'], unique=False)

    # ==========================================================================
    # 3. SHIFTS
    # ==========================================================================
    op.create_table('shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('seller', sa.String(length=128), nullable=False),
        sa.Column('shift_type', sa.String(length=8), nullable=False, server_default='day'),
        sa.Column('status', sa.String(length=8), nullable=False, server_default='open'),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('initial_cash', sa.Integer(), nullable=True),
        sa.Column('cash_expected', sa.Integer(), nullable=True),
        sa.Column('cash_counted', sa.Integer(), nullable=True),
        sa.Column('difference', sa.Integer(), nullable=True),
        sa.Column('total_sales', sa.Integer(), nullable=True),
        sa.Column('tickets', sa.Integer(), nullable=True),
        sa.Column('payments_breakdown', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shifts_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_start_time'), ['start_time'], unique=False)
        batch_op.create_index(
            'uq_shifts_single_open',
            ['status'],
            unique=True,
            sqlite_where=sa.text("status = 'open'"),
            postgresql_where=sa.text("status = 'open'"),
        )

    # ==========================================================================
    # 4. SALES (sales and returns, items embedded as JSON)
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ticket', sa.String(length=32), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False, server_default='sale'),
        sa.Column('total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('cash_received', sa.Integer(), nullable=True),
        sa.Column('change_amount', sa.Integer(), nullable=True),
        sa.Column('shift_id', sa.Integer(), nullable=True),
        sa.Column('seller', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('notes', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index('ix_sales_ticket', ['ticket'], unique=False)
        batch_op.create_index('ix_sales_shift_created', ['shift_id', 'created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_kind'), ['kind'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_payment_method'), ['payment_method'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_shift_id'), ['shift_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_created_at'), ['created_at'], unique=False)
        batch_op.create_index(
            'uq_sales_sale_ticket',
            ['ticket'],
            unique=True,
            sqlite_where=sa.text("kind = 'sale'"),
            postgresql_where=sa.text("kind = 'sale'"),
        )

    # ==========================================================================
    # 5. CLIENT MOVEMENTS (append-only)
    # ==========================================================================
    op.create_table('client_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('client_movements', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_client_movements_client_id'), ['client_id'], unique=False)
        batch_op.create_index('ix_client_movements_client_created', ['client_id', 'created_at'], unique=False)


def downgrade():
    op.drop_table('client_movements')
    op.drop_table('sales')
    op.drop_table('shifts')
    op.drop_table('clients')
    op.drop_table('products')
