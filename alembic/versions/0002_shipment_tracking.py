from alembic import op
import sqlalchemy as sa

revision = '0002_shipment_tracking'
down_revision = '0001_init'
branch_labels = None
depends_on = None

def upgrade():
    op.add_column('orders', sa.Column('awb', sa.String(length=100), nullable=True))
    op.add_column('orders', sa.Column('delivery_status', sa.String(length=50), nullable=True))
    op.add_column('orders', sa.Column('etd', sa.String(length=50), nullable=True))
    op.add_column('orders', sa.Column('delivered_at', sa.DateTime, nullable=True))

    op.create_table(
        'shipment_timeline',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(length=100), nullable=False),
        sa.Column('note', sa.Text, nullable=True),
        sa.Column('timestamp', sa.DateTime, nullable=False),
        sa.Column('type', sa.String(length=10), nullable=False, server_default='INFO'),
    )
    op.create_index('ix_shipment_timeline_order_id', 'shipment_timeline', ['order_id'])

    op.create_table(
        'carrier_events',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('awb_number', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=True),
        sa.Column('status_code', sa.String(length=20), nullable=True),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('event_time', sa.DateTime, nullable=False),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('courier_name', sa.String(length=100), nullable=True),
        sa.Column('payment_type', sa.String(length=20), nullable=True),
        sa.Column('edd', sa.DateTime, nullable=True),
        sa.Column('raw_payload', sa.JSON, nullable=False),
        sa.Column('received_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_carrier_events_order_id', 'carrier_events', ['order_id'])

def downgrade():
    op.drop_table('carrier_events')
    op.drop_table('shipment_timeline')
    op.drop_column('orders', 'delivered_at')
    op.drop_column('orders', 'etd')
    op.drop_column('orders', 'delivery_status')
    op.drop_column('orders', 'awb')
