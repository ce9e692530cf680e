"""MercadoPago Checkout Pro client."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from portal_apr.server.core.config import MercadoPagoConfig, settings

from .base import DEFAULT_TIMEOUT, GatewayClient

CURRENCY = "CLP"

APPROVED = "approved"
FAILED_STATUSES = frozenset({"rejected", "cancelled"})


class PreferenceItem(BaseModel):
    id: str
    title: str
    quantity: int = 1
    unit_price: int = Field(description="Whole pesos")
    currency_id: str = CURRENCY


class Preference(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    init_point: str
    sandbox_init_point: Optional[str] = None


class MercadoPagoPayment(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | str
    status: str
    status_detail: Optional[str] = None
    external_reference: Optional[str] = None
    transaction_amount: float = 0


class MercadoPagoClient(GatewayClient):
    gateway = "mercadopago"

    def __init__(
        self,
        config: Optional[MercadoPagoConfig] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or settings.mercadopago
        super().__init__(self.config.api_url, timeout=timeout, client=client)

    def _headers(self) -> Dict[str, str]:
        self._require(MERCADOPAGO_ACCESS_TOKEN=self.config.access_token)
        return {"Authorization": f"Bearer {self.config.access_token}", "Content-Type": "application/json"}

    async def create_preference(
        self,
        items: List[PreferenceItem],
        external_reference: str,
        notification_url: str,
        back_url: str,
        payer: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Preference:
        body: Dict[str, Any] = {
            "items": [item.model_dump() for item in items],
            "external_reference": external_reference,
            "notification_url": notification_url,
            "back_urls": {
                "success": f"{back_url}/#payment-success",
                "failure": f"{back_url}/#payment-failure",
                "pending": f"{back_url}/#payment-pending",
            },
            "binary_mode": False,
        }
        if payer:
            body["payer"] = payer
        if metadata:
            body["metadata"] = metadata
        data = await self._request("POST", "/checkout/preferences", json=body, headers=self._headers())
        preference = Preference.model_validate(data)
        self._logger.info(f"MercadoPago preference {preference.id} created for {external_reference}")
        return preference

    async def get_payment(self, payment_id: str) -> MercadoPagoPayment:
        data = await self._request("GET", f"/v1/payments/{payment_id}", headers=self._headers())
        return MercadoPagoPayment.model_validate(data)
