from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('mobile_no', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('image', sa.String(length=500), nullable=True),
        sa.Column('role', sa.String(length=10), nullable=False, server_default='USER'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_mobile_no', 'users', ['mobile_no'], unique=True)

    op.create_table(
        'addresses',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('address_name', sa.String(length=100), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('apt_number', sa.String(length=50), nullable=True),
        sa.Column('street', sa.String(length=500), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=False),
        sa.Column('zip_code', sa.String(length=20), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=False),
    )
    op.create_index('ix_addresses_user_id', 'addresses', ['user_id'])

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('priority', sa.Integer, nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('priority', name='uq_categories_priority'),
    )
    op.create_index('ix_categories_priority', 'categories', ['priority'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=220), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('material', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='DRAFT'),
        sa.Column('category_id', sa.Integer, sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_products_slug', 'products', ['slug'], unique=True)
    op.create_index('ix_products_category_id', 'products', ['category_id'])

    op.create_table(
        'product_assets',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('asset_url', sa.String(length=500), nullable=False),
        sa.Column('type', sa.String(length=10), nullable=False, server_default='IMAGE'),
    )
    op.create_index('ix_product_assets_product_id', 'product_assets', ['product_id'])

    op.create_table(
        'product_colors',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('color', sa.String(length=50), nullable=False),
    )
    op.create_index('ix_product_colors_product_id', 'product_colors', ['product_id'])

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('color_id', sa.Integer, sa.ForeignKey('product_colors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('size', sa.String(length=20), nullable=False),
        sa.Column('stock', sa.Integer, nullable=False, server_default='0'),
        sa.UniqueConstraint('color_id', 'size', name='uq_product_variants_color_size'),
        sa.CheckConstraint('stock >= 0', name='ck_product_variants_stock_non_negative'),
    )
    op.create_index('ix_product_variants_color_id', 'product_variants', ['color_id'])

    op.create_table(
        'discounts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False, server_default='PERCENTAGE'),
        sa.Column('value', sa.Numeric(10, 2), nullable=False),
        sa.Column('min_purchase', sa.Numeric(10, 2), nullable=True),
        sa.Column('usage_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('usage_limit', sa.Integer, nullable=True),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('end_date', sa.DateTime, nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='ACTIVE'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_discounts_code', 'discounts', ['code'], unique=True)

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_number', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('address_id', sa.Integer, sa.ForeignKey('addresses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='PENDING'),
        sa.Column('fulfillment', sa.String(length=30), nullable=False, server_default='PENDING'),
        sa.Column('paid', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_discount', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('discount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('discount_code', sa.String(length=50), nullable=True),
        sa.Column('provider_order_id', sa.String(length=100), nullable=True),
        sa.Column('external_shipping_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_variant_id', sa.Integer, sa.ForeignKey('product_variants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price_at_order', sa.Numeric(10, 2), nullable=False),
        sa.Column('size', sa.String(length=20), nullable=False),
        sa.Column('color', sa.String(length=50), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('product_image', sa.String(length=500), nullable=True),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_variant_id', 'order_items', ['product_variant_id'])

    op.create_table(
        'wishlists',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_wishlists_user_product'),
    )
    op.create_index('ix_wishlists_user_id', 'wishlists', ['user_id'])

def downgrade():
    op.drop_table('wishlists')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('discounts')
    op.drop_table('product_variants')
    op.drop_table('product_colors')
    op.drop_table('product_assets')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('addresses')
    op.drop_table('users')
