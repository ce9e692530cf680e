"""PayPal Orders v2 client.

Boletas are billed in CLP while PayPal orders use ``PAYPAL_CURRENCY``; the
amount is converted with ``PAYPAL_CLP_PER_USD`` and rounded to cents.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from portal_apr.billing.tarifa import redondear
from portal_apr.server.core.config import PayPalConfig, settings

from .base import DEFAULT_TIMEOUT, GatewayClient

COMPLETED = "COMPLETED"


class PayPalLink(BaseModel):
    href: str
    rel: str
    method: Optional[str] = None


class PayPalOrder(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    status: str
    links: List[PayPalLink] = Field(default_factory=list)

    @property
    def approval_url(self) -> Optional[str]:
        for link in self.links:
            if link.rel in ("approve", "payer-action"):
                return link.href
        return None


class PayPalClient(GatewayClient):
    gateway = "paypal"

    def __init__(
        self,
        config: Optional[PayPalConfig] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or settings.paypal
        super().__init__(self.config.api_url, timeout=timeout, client=client)

    def convert_clp(self, monto_clp: float) -> float:
        return redondear(monto_clp / self.config.clp_per_usd, 2)

    async def get_access_token(self) -> str:
        """OAuth2 client-credentials token."""
        self._require(PAYPAL_CLIENT_ID=self.config.client_id, PAYPAL_CLIENT_SECRET=self.config.client_secret)
        data = await self._request(
            "POST",
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.config.client_id, self.config.client_secret),
        )
        return data["access_token"]

    async def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {await self.get_access_token()}", "Content-Type": "application/json"}

    async def create_order(
        self,
        monto_clp: float,
        external_reference: str,
        description: str,
        return_url: str,
        cancel_url: str,
    ) -> PayPalOrder:
        amount = self.convert_clp(monto_clp)
        body: Dict[str, Any] = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": external_reference,
                    "custom_id": external_reference,
                    "description": description[:127],
                    "amount": {"currency_code": self.config.currency, "value": f"{amount:.2f}"},
                }
            ],
            "application_context": {"return_url": return_url, "cancel_url": cancel_url, "user_action": "PAY_NOW"},
        }
        data = await self._request("POST", "/v2/checkout/orders", json=body, headers=await self._headers())
        order = PayPalOrder.model_validate(data)
        self._logger.info(f"PayPal order {order.id} created for {external_reference}: {amount} {self.config.currency}")
        return order

    async def capture_order(self, order_id: str) -> PayPalOrder:
        data = await self._request(
            "POST", f"/v2/checkout/orders/{order_id}/capture", json={}, headers=await self._headers()
        )
        return PayPalOrder.model_validate(data)
