"""baseline schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261018_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True),
                      server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True),
                              server_default=sa.func.now(), nullable=False))
    return cols


def _employee_fk(name: str, ondelete: str = 'SET NULL', nullable: bool = True):
    return sa.Column(name, sa.Uuid(), sa.ForeignKey('employees.id', ondelete=ondelete),
                     nullable=nullable)


def upgrade() -> None:
    # Assumes a fresh database; run_migrations.py stamps existing ones
    op.create_table('roles',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('name', sa.String(length=50), nullable=False, unique=True),
                    sa.Column('description', sa.Text()),
                    sa.Column('permissions', sa.JSON(), nullable=False),
                    *_timestamps())

    op.create_table('employees',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('name', sa.String(length=100), nullable=False),
                    sa.Column('email', sa.String(length=255), nullable=False, unique=True),
                    sa.Column('password_hash', sa.String(length=255), nullable=False),
                    sa.Column('role_id', sa.Uuid(), sa.ForeignKey('roles.id'), nullable=False),
                    sa.Column('designation', sa.String(length=100), nullable=False),
                    sa.Column('department', sa.String(length=100), nullable=False),
                    sa.Column('status', sa.String(length=20), nullable=False),
                    sa.Column('last_login', sa.DateTime(timezone=True)),
                    *_timestamps(),
                    sa.CheckConstraint("status IN ('active', 'inactive')", name='check_employee_status'))
    op.create_index('ix_employees_email', 'employees', ['email'])
    op.create_index('ix_employees_role_id', 'employees', ['role_id'])
    op.create_index('idx_employees_role_status', 'employees', ['role_id', 'status'])

    op.create_table('inventory_items',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('name', sa.String(length=150), nullable=False),
                    sa.Column('barcode', sa.String(length=64), unique=True),
                    sa.Column('category', sa.String(length=50), nullable=False),
                    sa.Column('unit', sa.String(length=20), nullable=False),
                    sa.Column('hsn_code', sa.String(length=10)),
                    sa.Column('gst_rate', sa.Numeric(5, 2), nullable=False),
                    sa.Column('stock', sa.Integer(), nullable=False),
                    sa.Column('threshold', sa.Integer(), nullable=False),
                    *_timestamps(),
                    sa.CheckConstraint('stock >= 0', name='check_inventory_stock_positive'),
                    sa.CheckConstraint('threshold >= 0', name='check_inventory_threshold_positive'),
                    sa.CheckConstraint('gst_rate >= 0 AND gst_rate <= 100', name='check_inventory_gst_rate_valid'))
    op.create_index('ix_inventory_items_name', 'inventory_items', ['name'])
    op.create_index('ix_inventory_items_barcode', 'inventory_items', ['barcode'])
    op.create_index('idx_inventory_stock_level', 'inventory_items', ['stock', 'threshold'])

    op.create_table('inventory_transactions',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('item_id', sa.Uuid(), sa.ForeignKey('inventory_items.id', ondelete='SET NULL')),
                    sa.Column('item_name', sa.String(length=150), nullable=False),
                    sa.Column('barcode', sa.String(length=64)),
                    sa.Column('action', sa.String(length=3), nullable=False),
                    sa.Column('quantity', sa.Integer(), nullable=False),
                    _employee_fk('user_id'),
                    sa.Column('user_name', sa.String(length=100)),
                    sa.Column('reason', sa.Text()),
                    *_timestamps(updated=False),
                    sa.CheckConstraint("action IN ('IN', 'OUT')", name='check_inventory_tx_action'),
                    sa.CheckConstraint('quantity > 0', name='check_inventory_tx_quantity_positive'))
    op.create_index('ix_inventory_transactions_item_id', 'inventory_transactions', ['item_id'])
    op.create_index('ix_inventory_transactions_created_at', 'inventory_transactions', ['created_at'])

    op.create_table('attendance_records',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    _employee_fk('employee_id', 'CASCADE', nullable=False),
                    sa.Column('employee_name', sa.String(length=100), nullable=False),
                    sa.Column('status', sa.String(length=10), nullable=False),
                    sa.Column('note', sa.Text()),
                    sa.Column('recorded_by', sa.String(length=100)),
                    *_timestamps(updated=False),
                    sa.CheckConstraint("status IN ('Present', 'Absent', 'Late')", name='check_attendance_status'))
    op.create_index('idx_attendance_employee_time', 'attendance_records', ['employee_id', 'created_at'])

    op.create_table('purchase_requests',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('request_number', sa.String(length=20), nullable=False, unique=True),
                    _employee_fk('created_by_id'),
                    sa.Column('created_by_name', sa.String(length=100)),
                    sa.Column('items', sa.JSON(), nullable=False),
                    sa.Column('reason', sa.Text()),
                    sa.Column('needed_by', sa.String(length=20)),
                    sa.Column('status', sa.String(length=30), nullable=False),
                    sa.Column('approvals', sa.JSON(), nullable=False),
                    sa.Column('history', sa.JSON(), nullable=False),
                    *_timestamps(),
                    sa.CheckConstraint(
                        "status IN ('pending-supervisor', 'pending-executive', 'approved', 'rejected')",
                        name='check_purchase_status'))
    op.create_index('ix_purchase_requests_request_number', 'purchase_requests', ['request_number'])
    op.create_index('ix_purchase_requests_created_by_id', 'purchase_requests', ['created_by_id'])
    op.create_index('ix_purchase_requests_status', 'purchase_requests', ['status'])

    op.create_table('notifications',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('title', sa.String(length=200), nullable=False),
                    sa.Column('message', sa.Text(), nullable=False),
                    sa.Column('severity', sa.String(length=10), nullable=False),
                    sa.Column('meta', sa.JSON()),
                    sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
                    *_timestamps(updated=False))
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table('einvoice_records',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('supplier_gstin', sa.String(length=15), nullable=False),
                    sa.Column('supplier_name', sa.String(length=200)),
                    sa.Column('supplier_state', sa.String(length=2)),
                    sa.Column('recipient_gstin', sa.String(length=15), nullable=False),
                    sa.Column('recipient_name', sa.String(length=200)),
                    sa.Column('recipient_state', sa.String(length=2)),
                    sa.Column('invoice_type', sa.String(length=10), nullable=False),
                    sa.Column('invoice_number', sa.String(length=50), nullable=False),
                    sa.Column('invoice_date', sa.String(length=10)),
                    sa.Column('taxable_amount', sa.Numeric(15, 2), nullable=False),
                    sa.Column('cgst', sa.Numeric(15, 2), nullable=False),
                    sa.Column('sgst', sa.Numeric(15, 2), nullable=False),
                    sa.Column('igst', sa.Numeric(15, 2), nullable=False),
                    sa.Column('total_amount', sa.Numeric(15, 2), nullable=False),
                    sa.Column('irn', sa.String(length=100), unique=True),
                    sa.Column('ack_no', sa.String(length=30)),
                    sa.Column('qrcode', sa.Text()),
                    sa.Column('signed_invoice', sa.Text()),
                    sa.Column('status', sa.String(length=10), nullable=False),
                    sa.Column('items', sa.JSON(), nullable=False),
                    _employee_fk('generated_by'),
                    sa.Column('generated_by_name', sa.String(length=100)),
                    sa.Column('ewb_no', sa.String(length=20), unique=True),
                    sa.Column('ewb_valid_from', sa.DateTime(timezone=True)),
                    sa.Column('ewb_valid_upto', sa.DateTime(timezone=True)),
                    sa.Column('ewb_qrcode', sa.Text()),
                    sa.Column('ewb_distance', sa.Integer()),
                    sa.Column('ewb_vehicle_no', sa.String(length=20)),
                    sa.Column('ewb_transporter_id', sa.String(length=20)),
                    sa.Column('ewb_transporter_name', sa.String(length=200)),
                    sa.Column('ewb_transporter_gstin', sa.String(length=15)),
                    sa.Column('ewb_status', sa.String(length=20)),
                    sa.Column('ewb_generated_at', sa.DateTime(timezone=True)),
                    _employee_fk('ewb_generated_by'),
                    *_timestamps(),
                    sa.CheckConstraint("status IN ('pending', 'generated', 'failed')", name='check_einvoice_status'),
                    sa.CheckConstraint('cgst = 0 AND sgst = 0 OR igst = 0', name='check_einvoice_tax_split'))
    op.create_index('ix_einvoice_records_supplier_gstin', 'einvoice_records', ['supplier_gstin'])
    op.create_index('ix_einvoice_records_irn', 'einvoice_records', ['irn'])
    op.create_index('ix_einvoice_records_generated_by', 'einvoice_records', ['generated_by'])
    op.create_index('ix_einvoice_records_created_at', 'einvoice_records', ['created_at'])
    op.create_index('idx_einvoice_gstin_created', 'einvoice_records', ['supplier_gstin', 'created_at'])

    op.create_table('gst_records',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('file_url', sa.String(length=500), nullable=False),
                    sa.Column('file_name', sa.String(length=255), nullable=False),
                    sa.Column('original_name', sa.String(length=255)),
                    sa.Column('content_type', sa.String(length=50), nullable=False),
                    sa.Column('size', sa.Integer(), nullable=False),
                    sa.Column('type', sa.String(length=10), nullable=False),
                    sa.Column('business_date', sa.String(length=10), nullable=False),
                    _employee_fk('uploaded_by'),
                    sa.Column('uploaded_by_name', sa.String(length=100)),
                    sa.Column('vendor_name', sa.String(length=200)),
                    sa.Column('customer_name', sa.String(length=200)),
                    sa.Column('gst_amount', sa.Numeric(15, 2)),
                    sa.Column('total_amount', sa.Numeric(15, 2)),
                    *_timestamps(updated=False),
                    sa.CheckConstraint("type IN ('sales', 'purchase')", name='check_gst_record_type'))
    op.create_index('ix_gst_records_type', 'gst_records', ['type'])
    op.create_index('ix_gst_records_uploaded_by', 'gst_records', ['uploaded_by'])

    op.create_table('invoices',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('bill_number', sa.String(length=30), nullable=False, unique=True),
                    sa.Column('bill_date', sa.DateTime(timezone=True), nullable=False),
                    sa.Column('due_date', sa.DateTime(timezone=True)),
                    sa.Column('customer_name', sa.String(length=200), nullable=False),
                    sa.Column('customer_phone', sa.String(length=20)),
                    sa.Column('customer_email', sa.String(length=255)),
                    sa.Column('customer_address', sa.Text()),
                    sa.Column('customer_gstin', sa.String(length=15)),
                    sa.Column('supplier_state', sa.String(length=2), nullable=False),
                    sa.Column('recipient_state', sa.String(length=2), nullable=False),
                    sa.Column('items', sa.JSON(), nullable=False),
                    sa.Column('taxable_value', sa.Numeric(15, 2), nullable=False),
                    sa.Column('cgst', sa.Numeric(15, 2), nullable=False),
                    sa.Column('sgst', sa.Numeric(15, 2), nullable=False),
                    sa.Column('igst', sa.Numeric(15, 2), nullable=False),
                    sa.Column('gst_total', sa.Numeric(15, 2), nullable=False),
                    sa.Column('discount', sa.Numeric(15, 2), nullable=False),
                    sa.Column('shipping_charges', sa.Numeric(15, 2), nullable=False),
                    sa.Column('grand_total', sa.Numeric(15, 2), nullable=False),
                    sa.Column('payment_status', sa.String(length=20), nullable=False),
                    sa.Column('notes', sa.Text()),
                    _employee_fk('created_by'),
                    sa.Column('created_by_name', sa.String(length=100)),
                    *_timestamps(updated=False),
                    sa.CheckConstraint("payment_status IN ('pending', 'partial', 'paid')",
                                       name='check_invoice_payment_status'),
                    sa.CheckConstraint('cgst = 0 AND sgst = 0 OR igst = 0', name='check_invoice_tax_split'))
    op.create_index('ix_invoices_bill_number', 'invoices', ['bill_number'])
    op.create_index('idx_invoice_created', 'invoices', ['created_at'])

    op.create_table('invoice_drafts',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    _employee_fk('owner_id', 'CASCADE', nullable=False),
                    sa.Column('kind', sa.String(length=10), nullable=False),
                    sa.Column('title', sa.String(length=200)),
                    sa.Column('payload', sa.JSON(), nullable=False),
                    sa.Column('totals', sa.JSON(), nullable=False),
                    *_timestamps(),
                    sa.CheckConstraint("kind IN ('invoice', 'einvoice')", name='check_draft_kind'))
    op.create_index('ix_invoice_drafts_owner_id', 'invoice_drafts', ['owner_id'])

    op.create_table('delivery_challans',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('challan_number', sa.String(length=20), nullable=False, unique=True),
                    sa.Column('challan_date', sa.String(length=10), nullable=False),
                    sa.Column('po_number', sa.String(length=50)),
                    sa.Column('po_date', sa.String(length=10)),
                    sa.Column('customer_name', sa.String(length=200), nullable=False),
                    sa.Column('customer_address', sa.Text()),
                    sa.Column('transport', sa.String(length=200)),
                    sa.Column('consigned_to', sa.String(length=200)),
                    sa.Column('party_sales_tax_no', sa.String(length=50)),
                    sa.Column('items', sa.JSON(), nullable=False),
                    sa.Column('value_of_consignment', sa.Numeric(15, 2)),
                    sa.Column('notes', sa.Text()),
                    _employee_fk('created_by'),
                    sa.Column('created_by_name', sa.String(length=100)),
                    *_timestamps(updated=False))
    op.create_index('ix_delivery_challans_challan_number', 'delivery_challans', ['challan_number'])

    op.create_table('finished_products',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('product_name', sa.String(length=150), nullable=False),
                    sa.Column('barcode', sa.String(length=64), unique=True),
                    sa.Column('category', sa.String(length=50), nullable=False),
                    sa.Column('stock', sa.Integer(), nullable=False),
                    sa.Column('min_stock', sa.Integer(), nullable=False),
                    sa.Column('unit', sa.String(length=20), nullable=False),
                    *_timestamps(),
                    sa.CheckConstraint('stock >= 0', name='check_product_stock_positive'))
    op.create_index('ix_finished_products_barcode', 'finished_products', ['barcode'])

    op.create_table('finished_product_transactions',
                    sa.Column('id', sa.Uuid(), primary_key=True),
                    sa.Column('product_id', sa.Uuid(),
                              sa.ForeignKey('finished_products.id', ondelete='SET NULL')),
                    sa.Column('product_name', sa.String(length=150), nullable=False),
                    sa.Column('action', sa.String(length=15), nullable=False),
                    sa.Column('quantity', sa.Integer(), nullable=False),
                    sa.Column('reason', sa.Text()),
                    _employee_fk('user_id'),
                    sa.Column('user_name', sa.String(length=100)),
                    *_timestamps(updated=False),
                    sa.CheckConstraint("action IN ('MANUFACTURED', 'DISPATCHED')", name='check_product_tx_action'))
    op.create_index('ix_finished_product_transactions_product_id', 'finished_product_transactions', ['product_id'])
    op.create_index('ix_finished_product_transactions_created_at', 'finished_product_transactions', ['created_at'])

    op.create_table('document_sequences',
                    sa.Column('scope', sa.String(length=40), primary_key=True),
                    sa.Column('last_seq', sa.Integer(), nullable=False, server_default='0'))


def downgrade() -> None:
    for table in (
        'document_sequences',
        'finished_product_transactions',
        'finished_products',
        'delivery_challans',
        'invoice_drafts',
        'invoices',
        'gst_records',
        'einvoice_records',
        'notifications',
        'purchase_requests',
        'attendance_records',
        'inventory_transactions',
        'inventory_items',
        'employees',
        'roles',
    ):
        op.drop_table(table)
