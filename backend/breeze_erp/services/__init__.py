"""Service layer: business rules over the async SQLAlchemy session.

Routers stay thin; services raise ``utils.errors.DomainError`` subclasses
that the application handler renders with the error envelope.
"""

__all__ = [
    "attendance_service",
    "challan_service",
    "dashboard_service",
    "einvoice_service",
    "employee_service",
    "finished_product_service",
    "gst_service",
    "inventory_service",
    "invoice_service",
    "notification_service",
    "pdf_service",
    "purchase_service",
    "tax_calculator",
]
