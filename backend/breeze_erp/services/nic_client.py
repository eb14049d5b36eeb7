"""Thin async client for the NIC e-invoice sandbox.

Only used when client credentials are configured. Any transport or protocol
failure is logged and reported as ``None`` so callers can fall back to demo
identifiers.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config.settings import Settings

logger = logging.getLogger(__name__)

AUTH_PATH = "/eivital/v1.04/auth"
IRN_PATH = "/eicore/v1.03/Invoice"
EWB_PATH = "/eiewb/v1.03/ewaybill"
TIMEOUT_SECONDS = 10


class NicGateway:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    @property
    def configured(self) -> bool:
        return self.settings.einvoice_configured

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.EINVOICE_API_URL,
            timeout=TIMEOUT_SECONDS,
            transport=self._transport,
            headers={
                "client_id": self.settings.EINVOICE_CLIENT_ID or "",
                "client_secret": self.settings.EINVOICE_CLIENT_SECRET or "",
            },
        )

    async def _post(self, path: str, body: Dict[str, Any], headers: Dict[str, str], what: str) -> Optional[Dict[str, Any]]:
        try:
            async with self._client() as client:
                resp = await client.post(path, json=body, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("NIC %s failed for %s: %s", what, headers.get("Gstin"), exc)
            return None
        if data.get("Status") != 1 or not data.get("Data"):
            logger.warning("NIC %s rejected for %s: %s", what, headers.get("Gstin"), data.get("ErrorDetails"))
            return None
        return data["Data"]

    async def authenticate(self, gstin: str) -> Optional[str]:
        """Return an auth token, or None when unconfigured or rejected."""
        if not self.configured:
            return None
        body = {
            "UserName": self.settings.EINVOICE_USERNAME,
            "Password": self.settings.EINVOICE_PASSWORD,
            "ForceRefreshAccessToken": False,
        }
        data = await self._post(AUTH_PATH, body, {"Gstin": gstin}, "authentication")
        return (data or {}).get("AuthToken")

    async def _authorized_post(self, path: str, gstin: str, payload: Dict[str, Any], what: str) -> Optional[Dict[str, Any]]:
        token = await self.authenticate(gstin)
        if not token:
            return None
        headers = {
            "Gstin": gstin,
            "user_name": self.settings.EINVOICE_USERNAME or "",
            "AuthToken": token,
        }
        return await self._post(path, payload, headers, what)

    async def generate_irn(self, gstin: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Submit a schema 1.1 invoice; returns the NIC ``Data`` block (Irn, AckNo, ...)."""
        data = await self._authorized_post(IRN_PATH, gstin, payload, "IRN generation")
        return data if data and data.get("Irn") else None

    async def generate_ewb(self, gstin: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """E-way bill by IRN; returns the NIC ``Data`` block (EwbNo, EwbDt, EwbValidTill)."""
        data = await self._authorized_post(EWB_PATH, gstin, payload, "EWB generation")
        return data if data and data.get("EwbNo") else None


__all__ = ["NicGateway"]
