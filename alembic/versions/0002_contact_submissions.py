from alembic import op
import sqlalchemy as sa

revision = '0002_contact_submissions'
down_revision = '0001_init'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'contact_submissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('store_id', sa.String(36), sa.ForeignKey('stores.id'), nullable=False, index=True),
        sa.Column('customer_id', sa.String(100), nullable=True, index=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(50), nullable=False),
        sa.Column('whatsapp_number', sa.String(50), nullable=True),
        sa.Column('query_type', sa.String(100), nullable=False),
        sa.Column('order_number', sa.String(100), nullable=True),
        sa.Column('issue_type', sa.String(100), nullable=True),
        sa.Column('bulk_order_details', sa.Text, nullable=True),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('source', sa.String(100), nullable=False, server_default='website'),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING', index=True),
        sa.Column('status_update_reason', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )


def downgrade():
    op.drop_table('contact_submissions')
