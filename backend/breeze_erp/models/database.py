"""
Database models for the Breeze ERP backend.

Generic ``Uuid`` and ``JSON`` column types keep the schema portable between
PostgreSQL (production) and SQLite (tests).
"""

import re
from datetime import datetime, UTC
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON, Boolean, DateTime, Integer, String, Text, Numeric, Uuid,
    ForeignKey, Column, Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func


Base = declarative_base()

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
GSTIN_PATTERN = re.compile(r'^[0-3][0-9][A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$')
HSN_PATTERN = re.compile(r'^\d{4}(\d{2})?(\d{2})?$')


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class StockAction(str, Enum):
    """Raw-material inventory movement."""
    IN = "IN"
    OUT = "OUT"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"


class PurchaseStatus(str, Enum):
    """Purchase request review stages."""
    PENDING_SUPERVISOR = "pending-supervisor"
    PENDING_EXECUTIVE = "pending-executive"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class EInvoiceStatus(str, Enum):
    PENDING = "pending"
    GENERATED = "generated"
    FAILED = "failed"


class GstRecordType(str, Enum):
    SALES = "sales"
    PURCHASE = "purchase"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class DraftKind(str, Enum):
    INVOICE = "invoice"
    EINVOICE = "einvoice"


class ProductAction(str, Enum):
    """Finished-goods movement."""
    MANUFACTURED = "MANUFACTURED"
    DISPATCHED = "DISPATCHED"


class Role(Base):
    """Named permission set; ``fullAccess`` grants every permission."""
    __tablename__ = 'roles'

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(Text)
    permissions = Column(JSON, default=dict, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, server_default=func.now(), nullable=False)

    employees = relationship("Employee", back_populates="role")

    @property
    def full_access(self) -> bool:
        return bool((self.permissions or {}).get("fullAccess"))


class Employee(Base):
    """Employee account used for authentication and attendance."""
    __tablename__ = 'employees'

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role_id = Column(Uuid, ForeignKey('roles.id'), nullable=False, index=True)
    designation = Column(String(100), default="Associate", nullable=False)
    department = Column(String(100), default="Operations", nullable=False)
    status = Column(String(20), default=EmployeeStatus.ACTIVE.value, nullable=False)
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="employees", lazy="selectin")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')",
                        name='check_employee_status'),
    )

    @validates('email')
    def validate_email(self, key, email):
        if not email or not EMAIL_PATTERN.match(email):
            raise ValueError(f"Invalid email format: {email}")
        return email.lower()

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE.value


class InventoryItem(Base):
    """Raw material / component held in stock."""
    __tablename__ = 'inventory_items'

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(150), nullable=False, index=True)
    barcode = Column(String(64), unique=True, index=True)
    category = Column(String(50), default="General", nullable=False)
    unit = Column(String(20), default="pcs", nullable=False)
    hsn_code = Column(String(10))
    gst_rate = Column(Numeric(5, 2), default=18, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    threshold = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_inventory_stock_positive'),
        CheckConstraint('threshold >= 0', name='check_inventory_threshold_positive'),
        CheckConstraint('gst_rate >= 0 AND gst_rate <= 100',
                        name='check_inventory_gst_rate_valid'),
        Index('idx_inventory_stock_level', 'stock', 'threshold'),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.threshold

    @validates('hsn_code')
    def validate_hsn_code(self, key, hsn_code):
        # HSN codes can be 4, 6, or 8 digits
        if hsn_code and not HSN_PATTERN.match(hsn_code):
            raise ValueError(f"Invalid HSN code format: {hsn_code}")
        return hsn_code or None


class InventoryTransaction(Base):
    """Stock movement log written by the scan endpoint."""
    __tablename__ = 'inventory_transactions'

    id = Column(Uuid, primary_key=True, default=uuid4)
    item_id = Column(Uuid, ForeignKey('inventory_items.id', ondelete='SET NULL'), index=True)
    item_name = Column(String(150), nullable=False)
    barcode = Column(String(64))
    action = Column(String(3), nullable=False)
    quantity = Column(Integer, nullable=False)
    user_id = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'))
    user_name = Column(String(100))
    reason = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("action IN ('IN', 'OUT')", name='check_inventory_tx_action'),
        CheckConstraint('quantity > 0', name='check_inventory_tx_quantity_positive'),
    )


class AttendanceRecord(Base):
    __tablename__ = 'attendance_records'

    id = Column(Uuid, primary_key=True, default=uuid4)
    employee_id = Column(Uuid, ForeignKey('employees.id', ondelete='CASCADE'),
                         nullable=False)
    employee_name = Column(String(100), nullable=False)
    status = Column(String(10), nullable=False)
    note = Column(Text)
    recorded_by = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("status IN ('Present', 'Absent', 'Late')",
                        name='check_attendance_status'),
        Index('idx_attendance_employee_time', 'employee_id', 'created_at'),
    )


class PurchaseRequest(Base):
    """Purchase request; review state lives in ``status``/``approvals``/``history``."""
    __tablename__ = 'purchase_requests'

    id = Column(Uuid, primary_key=True, default=uuid4)
    request_number = Column(String(20), unique=True, nullable=False, index=True)
    created_by_id = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'), index=True)
    created_by_name = Column(String(100))
    items = Column(JSON, default=list, nullable=False)
    reason = Column(Text)
    needed_by = Column(String(20))
    status = Column(String(30), default=PurchaseStatus.PENDING_SUPERVISOR.value,
                    nullable=False, index=True)
    approvals = Column(JSON, default=dict, nullable=False)
    history = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending-supervisor', 'pending-executive', 'approved', 'rejected')",
            name='check_purchase_status'),
    )


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Uuid, primary_key=True, default=uuid4)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(10), default=NotificationSeverity.INFO.value, nullable=False)
    meta = Column(JSON, default=dict)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False, index=True)


class EInvoiceRecord(Base):
    """Registered e-invoice (IRN) and any e-way bill issued against it."""
    __tablename__ = 'einvoice_records'

    id = Column(Uuid, primary_key=True, default=uuid4)
    supplier_gstin = Column(String(15), nullable=False, index=True)
    supplier_name = Column(String(200))
    supplier_state = Column(String(2))
    recipient_gstin = Column(String(15), nullable=False)
    recipient_name = Column(String(200))
    recipient_state = Column(String(2))
    invoice_type = Column(String(10), default="INV", nullable=False)
    invoice_number = Column(String(50), nullable=False)
    invoice_date = Column(String(10))
    taxable_amount = Column(Numeric(15, 2), default=0, nullable=False)
    cgst = Column(Numeric(15, 2), default=0, nullable=False)
    sgst = Column(Numeric(15, 2), default=0, nullable=False)
    igst = Column(Numeric(15, 2), default=0, nullable=False)
    total_amount = Column(Numeric(15, 2), default=0, nullable=False)
    irn = Column(String(100), unique=True, index=True)
    ack_no = Column(String(30))
    qrcode = Column(Text)
    signed_invoice = Column(Text)
    status = Column(String(10), default=EInvoiceStatus.PENDING.value, nullable=False)
    items = Column(JSON, default=list, nullable=False)
    generated_by = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'), index=True)
    generated_by_name = Column(String(100))

    # E-way bill
    ewb_no = Column(String(20), unique=True)
    ewb_valid_from = Column(DateTime(timezone=True))
    ewb_valid_upto = Column(DateTime(timezone=True))
    ewb_qrcode = Column(Text)
    ewb_distance = Column(Integer)
    ewb_vehicle_no = Column(String(20))
    ewb_transporter_id = Column(String(20))
    ewb_transporter_name = Column(String(200))
    ewb_transporter_gstin = Column(String(15))
    ewb_status = Column(String(20))
    ewb_generated_at = Column(DateTime(timezone=True))
    ewb_generated_by = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'))

    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'generated', 'failed')",
                        name='check_einvoice_status'),
        CheckConstraint('cgst = 0 AND sgst = 0 OR igst = 0',
                        name='check_einvoice_tax_split'),
    )


class GstRecord(Base):
    """Uploaded GST bill (sales or purchase) stored on local disk."""
    __tablename__ = 'gst_records'

    id = Column(Uuid, primary_key=True, default=uuid4)
    file_url = Column(String(500), nullable=False)
    file_name = Column(String(255), nullable=False)
    original_name = Column(String(255))
    content_type = Column(String(50), nullable=False)
    size = Column(Integer, nullable=False)
    type = Column(String(10), nullable=False, index=True)
    business_date = Column(String(10), nullable=False)
    uploaded_by = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'), index=True)
    uploaded_by_name = Column(String(100))
    vendor_name = Column(String(200))
    customer_name = Column(String(200))
    gst_amount = Column(Numeric(15, 2))
    total_amount = Column(Numeric(15, 2))
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("type IN ('sales', 'purchase')", name='check_gst_record_type'),
    )


class Invoice(Base):
    """Customer bill with server-computed GST split."""
    __tablename__ = 'invoices'

    id = Column(Uuid, primary_key=True, default=uuid4)
    bill_number = Column(String(30), unique=True, nullable=False, index=True)
    bill_date = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    due_date = Column(DateTime(timezone=True))
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(20))
    customer_email = Column(String(255))
    customer_address = Column(Text)
    customer_gstin = Column(String(15))
    supplier_state = Column(String(2), nullable=False)
    recipient_state = Column(String(2), nullable=False)
    items = Column(JSON, default=list, nullable=False)
    taxable_value = Column(Numeric(15, 2), nullable=False)
    cgst = Column(Numeric(15, 2), default=0, nullable=False)
    sgst = Column(Numeric(15, 2), default=0, nullable=False)
    igst = Column(Numeric(15, 2), default=0, nullable=False)
    gst_total = Column(Numeric(15, 2), default=0, nullable=False)
    discount = Column(Numeric(15, 2), default=0, nullable=False)
    shipping_charges = Column(Numeric(15, 2), default=0, nullable=False)
    grand_total = Column(Numeric(15, 2), nullable=False)
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    notes = Column(Text)
    created_by = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'))
    created_by_name = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("payment_status IN ('pending', 'partial', 'paid')",
                        name='check_invoice_payment_status'),
        CheckConstraint('cgst = 0 AND sgst = 0 OR igst = 0',
                        name='check_invoice_tax_split'),
        Index('idx_invoice_created', 'created_at'),
    )

    @validates('customer_gstin')
    def validate_customer_gstin(self, key, gstin):
        if gstin:
            gstin = gstin.strip().upper()
            if not GSTIN_PATTERN.match(gstin):
                raise ValueError(f"Invalid GSTIN format: {gstin}")
        return gstin or None


class InvoiceDraft(Base):
    """Work-in-progress invoice or e-invoice form owned by one employee."""
    __tablename__ = 'invoice_drafts'

    id = Column(Uuid, primary_key=True, default=uuid4)
    owner_id = Column(Uuid, ForeignKey('employees.id', ondelete='CASCADE'),
                      nullable=False, index=True)
    kind = Column(String(10), default=DraftKind.INVOICE.value, nullable=False)
    title = Column(String(200))
    payload = Column(JSON, default=dict, nullable=False)
    totals = Column(JSON, default=dict, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("kind IN ('invoice', 'einvoice')", name='check_draft_kind'),
    )


class DeliveryChallan(Base):
    __tablename__ = 'delivery_challans'

    id = Column(Uuid, primary_key=True, default=uuid4)
    challan_number = Column(String(20), unique=True, nullable=False, index=True)
    challan_date = Column(String(10), nullable=False)
    po_number = Column(String(50))
    po_date = Column(String(10))
    customer_name = Column(String(200), nullable=False)
    customer_address = Column(Text)
    transport = Column(String(200))
    consigned_to = Column(String(200))
    party_sales_tax_no = Column(String(50))
    items = Column(JSON, default=list, nullable=False)
    value_of_consignment = Column(Numeric(15, 2))
    notes = Column(Text)
    created_by = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'))
    created_by_name = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)


class FinishedProduct(Base):
    __tablename__ = 'finished_products'

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_name = Column(String(150), nullable=False)
    barcode = Column(String(64), unique=True, index=True)
    category = Column(String(50), default="General", nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    min_stock = Column(Integer, default=0, nullable=False)
    unit = Column(String(20), default="pcs", nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow,
                        onupdate=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_product_stock_positive'),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= (self.min_stock or 1)


class FinishedProductTransaction(Base):
    __tablename__ = 'finished_product_transactions'

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(Uuid, ForeignKey('finished_products.id', ondelete='SET NULL'), index=True)
    product_name = Column(String(150), nullable=False)
    action = Column(String(15), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(Text)
    user_id = Column(Uuid, ForeignKey('employees.id', ondelete='SET NULL'))
    user_name = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=_utcnow,
                        server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("action IN ('MANUFACTURED', 'DISPATCHED')",
                        name='check_product_tx_action'),
    )


class DocumentSequence(Base):
    """Per-scope counter for human-readable document numbers."""
    __tablename__ = 'document_sequences'

    scope = Column(String(40), primary_key=True)
    last_seq = Column(Integer, nullable=False, default=0)


Index('idx_employees_role_status', Employee.role_id, Employee.status)
Index('idx_einvoice_gstin_created', EInvoiceRecord.supplier_gstin, EInvoiceRecord.created_at)
