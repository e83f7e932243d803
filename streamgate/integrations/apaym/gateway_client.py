"""
Apaym payment gateway client.

Two calls are used by the engine:
- POST {base}/transactions/initialize  -> hosted payment page URL + reference
- GET  {base}/transactions/verify/{id} -> authoritative transaction status

Callbacks from the gateway are verified separately (see
streamgate.payments.signatures); this client only talks outbound.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from streamgate.config import settings

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"


@dataclass
class GatewayInitiation:
    """Response from the initialize call."""
    payment_url: str
    gateway_reference: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayStatus:
    """Response from the verify call."""
    status: str
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_SUCCESS


class ApaymGatewayError(Exception):
    """Error from the Apaym API."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ApaymGatewayClient:
    """
    Async client for the Apaym REST API.

    Handles:
    - Creating a transaction and obtaining the hosted payment URL
    - Querying the authoritative status of a transaction
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the Apaym client.

        Args:
            base_url: API root (APAYM_BASE_URL if not provided)
            api_key: Bearer API key (APAYM_API_KEY if not provided)
            timeout: Per-request timeout in seconds (APAYM_TIMEOUT_SECONDS if not provided)
        """
        self.base_url = (base_url or settings.APAYM_BASE_URL).rstrip("/")
        self.api_key = api_key or settings.APAYM_API_KEY
        self.timeout = settings.APAYM_TIMEOUT_SECONDS if timeout is None else timeout

        self._client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self.timeout,
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _request(self, method: str, path: str, payload: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Send one request and decode the JSON body.

        Raises:
            ApaymGatewayError: on HTTP error status, transport failure or timeout
        """
        url = f"{self.base_url}{path}"
        try:
            if method == "POST":
                response = await self._client.post(url, json=payload)
            else:
                response = await self._client.get(url)
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error("Apaym API HTTP error", extra={
                "path": path,
                "status_code": e.response.status_code,
                "response": e.response.text[:500],
            })
            raise ApaymGatewayError(
                f"Apaym API error: {e.response.status_code}",
                code=str(e.response.status_code),
            )
        except httpx.TimeoutException as e:
            logger.error("Apaym API timeout", extra={"path": path, "timeout": self.timeout})
            raise ApaymGatewayError(f"Request timed out: {str(e)}", code="timeout")
        except httpx.RequestError as e:
            logger.error("Apaym API request error", extra={
                "path": path,
                "error": str(e),
            })
            raise ApaymGatewayError(f"Request failed: {str(e)}")
        except ValueError as e:
            raise ApaymGatewayError("Invalid JSON from Apaym API", details={"error": str(e)})

        if not isinstance(data, dict):
            raise ApaymGatewayError("Unexpected Apaym API response shape")
        return data

    async def initiate_transaction(
        self,
        *,
        amount: int,
        currency: str,
        transaction_id: str,
        callback_url: str,
        cancel_url: str,
        customer: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GatewayInitiation:
        """
        Create a transaction on the gateway.

        Returns:
            GatewayInitiation with the hosted payment URL the customer is sent to
        """
        payload = {
            "amount": amount,
            "currency": currency,
            "transaction_id": transaction_id,
            "callback_url": callback_url,
            "cancel_url": cancel_url,
            "customer": customer,
            "metadata": metadata or {},
        }
        data = await self._request("POST", "/transactions/initialize", payload)

        payment_url = data.get("payment_url")
        if not payment_url:
            logger.error("Apaym initialize returned no payment_url", extra={
                "transaction_id": transaction_id,
            })
            raise ApaymGatewayError("No payment_url in initialize response", details={"response": data})

        logger.info("Apaym transaction initialized", extra={
            "transaction_id": transaction_id,
            "gateway_reference": data.get("reference"),
        })
        return GatewayInitiation(
            payment_url=payment_url,
            gateway_reference=data.get("reference"),
            raw=data,
        )

    async def query_status(self, transaction_id: str) -> GatewayStatus:
        """Ask the gateway for the authoritative status of a transaction."""
        data = await self._request("GET", f"/transactions/verify/{transaction_id}")

        status = data.get("status")
        if not status:
            raise ApaymGatewayError("No status in verify response", details={"response": data})

        logger.info("Apaym transaction status fetched", extra={
            "transaction_id": transaction_id,
            "status": status,
        })
        return GatewayStatus(status=str(status), raw=data)
