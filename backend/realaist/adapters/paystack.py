"""
Paystack REST client.

Thin async wrapper over the transaction endpoints the campaign pipeline
needs: initialize, verify and refund. Amounts are always in the smallest
currency unit. Provider error messages are surfaced verbatim.

API Documentation: https://paystack.com/docs/api/transaction/
"""

from typing import Any, Optional

import httpx
import structlog

from realaist.config import settings

logger = structlog.get_logger()


class PaymentError(Exception):
    """Paystack rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int = 502, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class PaystackClient:
    """
    Async Paystack client.

    Pass `transport` to route requests somewhere other than the network
    (for example `httpx.MockTransport` in tests).
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key or settings.paystack_secret_key
        self.base_url = (base_url or settings.paystack_base_url).rstrip("/")
        self.timeout = timeout or settings.paystack_timeout
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
    ) -> dict[str, Any]:
        if not self.secret_key:
            raise PaymentError("Paystack secret key not configured", status_code=500)

        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException:
            logger.error("paystack_timeout", path=path)
            raise PaymentError("Payment provider timed out", status_code=504)
        except httpx.RequestError as e:
            logger.error("paystack_request_failed", path=path, error=str(e))
            raise PaymentError(f"Payment provider unreachable: {e}", status_code=502)

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("status"):
            message = body.get("message") or f"Paystack returned HTTP {response.status_code}"
            logger.error(
                "paystack_request_rejected",
                path=path,
                status_code=response.status_code,
                message=message,
            )
            status_code = response.status_code if response.status_code >= 400 else 502
            raise PaymentError(message, status_code=status_code, details=body)

        return body.get("data") or {}

    async def initialize_transaction(
        self,
        email: str,
        amount: int,
        reference: str,
        callback_url: Optional[str] = None,
        metadata: Optional[dict] = None,
        currency: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Initialize a transaction.

        Args:
            email: Customer email
            amount: Amount in cents
            reference: Unique transaction reference
            callback_url: Where Paystack redirects after payment
            metadata: Extra data echoed back on verify and webhooks
            currency: ISO currency code

        Returns:
            `{authorization_url, access_code, reference}`
        """
        payload = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "currency": currency or settings.paystack_currency,
            "callback_url": callback_url or settings.paystack_callback_url,
            "metadata": metadata or {},
        }
        return await self._request("POST", "/transaction/initialize", json=payload)

    async def verify_transaction(self, reference: str) -> dict[str, Any]:
        """Fetch the current state of a transaction."""
        return await self._request("GET", f"/transaction/verify/{reference}")

    async def refund_transaction(
        self,
        reference: str,
        amount: Optional[int] = None,
        merchant_note: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Refund a transaction, fully unless `amount` (cents) is given.
        """
        payload: dict[str, Any] = {"transaction": reference}
        if amount is not None:
            payload["amount"] = amount
        if merchant_note:
            payload["merchant_note"] = merchant_note
        return await self._request("POST", "/refund", json=payload)
