"""Flow (flow.cl) payment API client.

Requests are form encoded and signed: the parameters, sorted by name, are
concatenated as ``name + value`` and signed with HMAC-SHA256 using the
merchant secret. The hex digest travels in the ``s`` parameter.
"""

from __future__ import annotations

import hashlib
import hmac
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from portal_apr.server.core.config import FlowConfig, settings

from .base import DEFAULT_TIMEOUT, GatewayClient

SIGNATURE_PARAM = "s"


class FlowStatus(IntEnum):
    PENDIENTE = 1
    PAGADO = 2
    RECHAZADO = 3
    ANULADO = 4


class FlowPayment(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str
    token: str
    flowOrder: Optional[int] = None


class FlowPaymentStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    flowOrder: Optional[int] = None
    commerceOrder: str
    status: int
    amount: float = 0
    payer: Optional[str] = None
    subject: Optional[str] = None


def sign_params(params: Mapping[str, Any], secret_key: str) -> str:
    """HMAC-SHA256 hex signature of the sorted ``key + value`` string, ignoring ``s``."""
    payload = "".join(f"{key}{params[key]}" for key in sorted(params) if key != SIGNATURE_PARAM)
    return hmac.new(secret_key.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


class FlowClient(GatewayClient):
    gateway = "flow"

    def __init__(
        self,
        config: Optional[FlowConfig] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or settings.flow
        super().__init__(self.config.api_url, timeout=timeout, client=client)

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self._require(FLOW_API_KEY=self.config.api_key, FLOW_SECRET_KEY=self.config.secret_key)
        params = {"apiKey": self.config.api_key, **params}
        params[SIGNATURE_PARAM] = sign_params(params, self.config.secret_key)
        return params

    def verify_signature(self, params: Mapping[str, Any], signature: str) -> bool:
        if not self.config.secret_key or not signature:
            return False
        return hmac.compare_digest(sign_params(params, self.config.secret_key), signature)

    async def create_payment(
        self,
        commerce_order: str,
        subject: str,
        amount: float,
        email: str,
        url_confirmation: str,
        url_return: str,
        optional: Optional[Dict[str, Any]] = None,
    ) -> FlowPayment:
        """
        Create a payment and return the URL the socio is redirected to.

        Flow only accepts whole pesos, so ``amount`` is rounded.
        """
        params: Dict[str, Any] = {
            "commerceOrder": commerce_order,
            "subject": subject,
            "amount": int(round(amount)),
            "email": email,
            "urlConfirmation": url_confirmation,
            "urlReturn": url_return,
        }
        if optional:
            params.update(optional)
        data = await self._request("POST", "/payment/create", data=self._signed(params))
        payment = FlowPayment.model_validate(data)
        if payment.token and "token=" not in payment.url:
            payment.url = f"{payment.url}?token={payment.token}"
        self._logger.info(f"Flow payment created: order={commerce_order}, amount={params['amount']}")
        return payment

    async def get_payment_status(self, token: str) -> FlowPaymentStatus:
        data = await self._request("POST", "/payment/getStatus", data=self._signed({"token": token}))
        return FlowPaymentStatus.model_validate(data)
