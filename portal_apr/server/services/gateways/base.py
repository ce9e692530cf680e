"""Shared HTTP plumbing for the payment gateway clients.

Every client wraps one ``httpx.AsyncClient``. A preconfigured client can be
injected (tests pass one built on ``httpx.MockTransport``); otherwise one is
created with the default timeout. Non-2xx responses and transport failures
are raised as ``PaymentGatewayError`` carrying the status code and body.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from portal_apr.core.errors import PaymentGatewayError
from portal_apr.core.logging_config import get_logger

DEFAULT_TIMEOUT = 30.0


class GatewayClient:
    """Base class for the Flow, MercadoPago and PayPal clients."""

    gateway = "gateway"

    def __init__(self, base_url: str, *, timeout: float = DEFAULT_TIMEOUT, client: Optional[httpx.AsyncClient] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._logger = get_logger(f"portal_apr.gateways.{self.gateway}")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            PaymentGatewayError: transport failure, non-2xx status or a body that is not JSON
        """
        try:
            r = await self._client.request(method, self._url(path), **kwargs)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._logger.error(f"{method} {path} failed: {e.response.status_code} {e.response.text[:500]}")
            raise PaymentGatewayError(
                self.gateway,
                f"HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code, "body": e.response.text[:2000]},
            ) from e
        except httpx.HTTPError as e:
            self._logger.error(f"{method} {path} transport error: {e}")
            raise PaymentGatewayError(self.gateway, f"Error de conexión: {e}") from e

        try:
            return r.json()
        except ValueError as e:
            raise PaymentGatewayError(self.gateway, "Respuesta inválida del proveedor") from e

    def _require(self, **values: Optional[str]) -> None:
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise PaymentGatewayError(self.gateway, f"Pasarela no configurada: faltan {', '.join(missing)}")
