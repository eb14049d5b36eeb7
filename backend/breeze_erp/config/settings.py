"""Application settings module.

Centralized configuration using environment variables with sane defaults.
Company identity and the supplier state code feed invoice PDFs and tax
calculation; e-invoice credentials switch the gateway from demo mode to the
NIC sandbox.
"""
from __future__ import annotations

from functools import lru_cache
import os
from typing import Optional

from pydantic import BaseModel


class Settings(BaseModel):
    # Tax defaults
    DEFAULT_GST_RATE: float = 18.0
    COMPANY_STATE_CODE: str = "33"

    # Auth / security
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Observability toggles
    ENABLE_TRACING: bool = False

    # Document branding
    COMPANY_NAME: str = "BREEZE TECHNIQUES"
    COMPANY_TAGLINE: str = "Pneumatic Equipment Supplier"
    COMPANY_ADDRESS: str = "113-Makkavi Nagar, Irugur, Coimbatore - 641103"
    COMPANY_JURISDICTION: str = "Coimbatore"

    # GST bill uploads
    UPLOAD_DIR: str = "./uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Attendance: clock-ins at or after this local hour are marked Late
    ATTENDANCE_LATE_HOUR: int = 9

    # E-invoice gateway
    EINVOICE_API_URL: str = "https://einv-apisandbox.nic.in"
    EINVOICE_CLIENT_ID: Optional[str] = None
    EINVOICE_CLIENT_SECRET: Optional[str] = None
    EINVOICE_USERNAME: Optional[str] = None
    EINVOICE_PASSWORD: Optional[str] = None
    EINVOICE_RATE_LIMIT: int = 3
    EINVOICE_RATE_WINDOW_SECONDS: float = 1.0

    @property
    def einvoice_configured(self) -> bool:
        return bool(self.EINVOICE_CLIENT_ID and self.EINVOICE_CLIENT_SECRET)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment with type coercion and defaults."""
        def _get_float(name: str, default: float) -> float:
            raw = os.getenv(name)
            if raw is None:
                return default
            try:
                return float(raw)
            except ValueError:
                return default

        def _get_int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                return default

        def _get_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        return cls(
            DEFAULT_GST_RATE=_get_float("DEFAULT_GST_RATE", 18.0),
            COMPANY_STATE_CODE=os.getenv("COMPANY_STATE_CODE", "33"),
            ACCESS_TOKEN_EXPIRE_MINUTES=_get_int("ACCESS_TOKEN_EXPIRE_MINUTES", 30),
            ENABLE_TRACING=_get_bool("ENABLE_TRACING", False),
            COMPANY_NAME=os.getenv("COMPANY_NAME", "BREEZE TECHNIQUES"),
            COMPANY_TAGLINE=os.getenv("COMPANY_TAGLINE", "Pneumatic Equipment Supplier"),
            COMPANY_ADDRESS=os.getenv("COMPANY_ADDRESS", "113-Makkavi Nagar, Irugur, Coimbatore - 641103"),
            COMPANY_JURISDICTION=os.getenv("COMPANY_JURISDICTION", "Coimbatore"),
            UPLOAD_DIR=os.getenv("UPLOAD_DIR", "./uploads"),
            MAX_UPLOAD_BYTES=_get_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
            ATTENDANCE_LATE_HOUR=_get_int("ATTENDANCE_LATE_HOUR", 9),
            EINVOICE_API_URL=os.getenv("EINVOICE_API_URL", "https://einv-apisandbox.nic.in"),
            EINVOICE_CLIENT_ID=os.getenv("EINVOICE_CLIENT_ID") or None,
            EINVOICE_CLIENT_SECRET=os.getenv("EINVOICE_CLIENT_SECRET") or None,
            EINVOICE_USERNAME=os.getenv("EINVOICE_USERNAME") or None,
            EINVOICE_PASSWORD=os.getenv("EINVOICE_PASSWORD") or None,
            EINVOICE_RATE_LIMIT=_get_int("EINVOICE_RATE_LIMIT", 3),
            EINVOICE_RATE_WINDOW_SECONDS=_get_float("EINVOICE_RATE_WINDOW_SECONDS", 1.0),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings.load()


def get_default_gst_rate() -> float:
    return get_settings().DEFAULT_GST_RATE


__all__ = ["Settings", "get_settings", "get_default_gst_rate"]
