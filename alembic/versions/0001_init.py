from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

ID = sa.String(36)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    ]


def upgrade():
    op.create_table(
        'stores',
        sa.Column('id', ID, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('user_id', sa.String(100), nullable=False, index=True),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=True),
        *_timestamps()
    )
    op.create_table(
        'customers',
        sa.Column('id', ID, primary_key=True),
        sa.Column('user_id', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('street_address', sa.String(500), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
    )
    op.create_table(
        'products',
        sa.Column('id', ID, primary_key=True),
        sa.Column('store_id', ID, sa.ForeignKey('stores.id'), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_archived', sa.Boolean, nullable=False, server_default=sa.false()),
    )
    for table in ('sizes', 'colors'):
        op.create_table(
            table,
            sa.Column('id', ID, primary_key=True),
            sa.Column('store_id', ID, sa.ForeignKey('stores.id'), nullable=False),
            sa.Column('name', sa.String(100), nullable=False),
            sa.Column('value', sa.String(50), nullable=False),
        )
    op.create_table(
        'product_variants',
        sa.Column('id', ID, primary_key=True),
        sa.Column('product_id', ID, sa.ForeignKey('products.id'), nullable=False, index=True),
        sa.Column('size_id', ID, sa.ForeignKey('sizes.id'), nullable=True),
        sa.Column('color_id', ID, sa.ForeignKey('colors.id'), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('stock', sa.Integer, nullable=False, server_default='0'),
    )
    op.create_table(
        'promo_codes',
        sa.Column('id', ID, primary_key=True),
        sa.Column('store_id', ID, sa.ForeignKey('stores.id'), nullable=False, index=True),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('discount', sa.Numeric(10, 2), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('end_date', sa.DateTime, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('max_uses', sa.Integer, nullable=True),
        sa.Column('max_uses_per_user', sa.Integer, nullable=True),
        sa.Column('uses_count', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('store_id', 'code', name='uq_promo_codes_store_code')
    )
    op.create_table(
        'orders',
        sa.Column('id', ID, primary_key=True),
        sa.Column('store_id', ID, sa.ForeignKey('stores.id'), nullable=False, index=True),
        sa.Column('customer_id', ID, sa.ForeignKey('customers.id'), nullable=True, index=True),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('gateway_order_id', sa.String(100), nullable=True, unique=True),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('payment_source', sa.String(20), nullable=True),
        sa.Column('is_paid', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('paid_at', sa.DateTime, nullable=True),
        sa.Column('order_status', sa.String(20), nullable=False, server_default='PENDING', index=True),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('alternate_phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text, nullable=False),
        sa.Column('tracking_id', sa.String(100), nullable=True),
        sa.Column('invoice_link', sa.String(500), nullable=True),
        sa.Column('gateway_invoice_id', sa.String(100), nullable=True),
        sa.Column('invoice_generated_at', sa.DateTime, nullable=True),
        sa.Column('promo_code_id', ID, sa.ForeignKey('promo_codes.id'), nullable=True),
        *_timestamps()
    )
    op.create_table(
        'order_items',
        sa.Column('id', ID, primary_key=True),
        sa.Column('order_id', ID, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('product_id', ID, sa.ForeignKey('products.id'), nullable=False),
        sa.Column('variant_id', ID, sa.ForeignKey('product_variants.id'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('product_name_snapshot', sa.String(200), nullable=True),
        sa.Column('size_snapshot', sa.String(100), nullable=True),
        sa.Column('color_snapshot', sa.String(100), nullable=True),
    )
    op.create_table(
        'promo_redemptions',
        sa.Column('id', ID, primary_key=True),
        sa.Column('promo_code_id', ID, sa.ForeignKey('promo_codes.id'), nullable=False, index=True),
        sa.Column('customer_id', ID, sa.ForeignKey('customers.id'), nullable=True, index=True),
        sa.Column('order_id', ID, sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_table(
        'subscribers',
        sa.Column('id', ID, primary_key=True),
        sa.Column('store_id', ID, sa.ForeignKey('stores.id'), nullable=False, index=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('store_id', 'email', name='uq_subscribers_store_email')
    )


def downgrade():
    for table in (
        'subscribers', 'promo_redemptions', 'order_items', 'orders', 'promo_codes',
        'product_variants', 'colors', 'sizes', 'products', 'customers', 'stores',
    ):
        op.drop_table(table)
