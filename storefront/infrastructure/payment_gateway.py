"""Razorpay REST client.

Only the two calls the service needs are wrapped: order (payment intent)
creation and invoice creation. Amounts cross this boundary as integers in
the currency's minor unit.
"""

import random
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, Optional

import httpx

from shared.core import get_logger

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit decimal amount (rupees) to integer minor units (paise)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGatewayError(Exception):
    """The gateway could not be reached or rejected the request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PaymentGatewayNotConfigured(PaymentGatewayError):
    pass


class RazorpayClient:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.key_id = key_id
        self.configured = bool(key_id and key_secret)
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    def create_order(self, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Create a gateway order. ``amount`` is in minor units."""
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        return self._post("/orders", payload)

    def create_invoice(
        self,
        customer: Dict[str, Any],
        line_items: list[Dict[str, Any]],
        description: str,
        notes: Optional[Dict[str, str]] = None,
        currency: str = "INR",
    ) -> Dict[str, Any]:
        payload = {
            "type": "invoice",
            "description": description,
            "customer": customer,
            "line_items": line_items,
            "currency": currency,
            "notes": notes or {},
            "partial_payment": False,
        }
        return self._post("/invoices", payload)

    def close(self):
        self._client.close()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.configured:
            raise PaymentGatewayNotConfigured("Payment gateway credentials are not configured")

        last_error: Optional[PaymentGatewayError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._client.post(path, json=payload)
            except httpx.HTTPError as e:
                last_error = PaymentGatewayError(f"Gateway request failed: {e}")
            else:
                if response.status_code < 400:
                    return response.json()
                message = self._error_message(response)
                if response.status_code < 500:
                    # 4xx is never retried
                    raise PaymentGatewayError(message, response.status_code)
                last_error = PaymentGatewayError(message, response.status_code)

            logger.warning(
                f"Gateway call {path} failed (attempt {attempt}/{self.max_attempts})",
                extra={'extra_fields': {'path': path, 'attempt': attempt, 'error': str(last_error)}}
            )
            if attempt < self.max_attempts:
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                self._sleep(delay + random.uniform(0, delay))

        raise last_error

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"Gateway returned HTTP {response.status_code}"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("description"):
            return error["description"]
        return f"Gateway returned HTTP {response.status_code}"
