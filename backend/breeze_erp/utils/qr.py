"""QR code helpers for e-invoice and e-way bill documents."""

from __future__ import annotations

import base64
import io

import qrcode

DATA_URL_PREFIX = "data:image/png;base64,"


def qr_png(data: str) -> bytes:
    """Encode ``data`` as a PNG QR code."""
    img = qrcode.make(data)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def qr_data_url(data: str) -> str:
    """PNG QR code as a ``data:`` URL suitable for an <img> src."""
    return DATA_URL_PREFIX + base64.b64encode(qr_png(data)).decode("ascii")


__all__ = ["DATA_URL_PREFIX", "qr_png", "qr_data_url"]
