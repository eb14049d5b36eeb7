"""API routers package.

Each module exposes ``router``; main.py mounts them under /api/v1 with the
prefixes listed in ``API_ROUTERS``.
"""
from . import (
    attendance,
    auth,
    dashboard,
    delivery_challans,
    einvoice,
    employees,
    finished_products,
    gst,
    inventory,
    invoices,
    notifications,
    purchase_requests,
    system,
    tax,
)

API_ROUTERS = [
    (auth.router, "/auth", ["Authentication"]),
    (employees.router, "", None),
    (inventory.router, "/inventory", None),
    (attendance.router, "/attendance", None),
    (purchase_requests.router, "/purchase-requests", None),
    (notifications.router, "/notifications", None),
    (dashboard.router, "/dashboard", None),
    (einvoice.router, "/einvoice", None),
    (gst.router, "/gst", None),
    (invoices.router, "/invoices", None),
    (delivery_challans.router, "/delivery-challans", None),
    (tax.router, "/tax", None),
    (finished_products.router, "/finished-products", None),
    (system.router, "/system", None),
]

__all__ = ["API_ROUTERS"]
