"""Razorpay payment gateway adapter.

Wraps the two gateway interactions the purchase workflow needs:
- creating an order through the Razorpay SDK's Orders resource
- checking the HMAC-SHA256 signature the gateway attaches to a payment
  callback, keyed with the account's key secret

The SDK client is blocking, so order creation runs in a worker thread. The
adapter is built from settings and handed to ``PurchaseService``; there is no
module-level client.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import razorpay
import requests
import structlog
from razorpay import errors as razorpay_errors

from learnpath.config.settings import Settings


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class GatewayError(Exception):
    """Payment gateway call failed or returned an unusable answer."""

    def __init__(
        self,
        message: str = "Payment gateway request failed",
        code: str = "gateway_error",
    ):
        self.message = message
        self.code = code
        super().__init__(message)


class GatewayNotConfiguredError(GatewayError):
    """Gateway key id or key secret missing."""

    def __init__(self, message: str = "Payment gateway is not configured"):
        super().__init__(message, "gateway_not_configured")


SDK_ERRORS = (
    razorpay_errors.BadRequestError,
    razorpay_errors.GatewayError,
    razorpay_errors.ServerError,
)


# ==============================================================================
# Gateway
# ==============================================================================


@dataclass
class GatewayOrder:
    """Order as returned by the gateway."""

    id: str
    amount: int
    currency: str
    receipt: str | None = None
    status: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "GatewayOrder":
        """Build from the Orders API JSON body."""
        return cls(
            id=payload["id"],
            amount=int(payload.get("amount") or 0),
            currency=payload.get("currency") or "",
            receipt=payload.get("receipt"),
            status=payload.get("status"),
            raw=payload,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the dictionary handed back to checkout clients."""
        return {
            **self.raw,
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "receipt": self.receipt,
            "status": self.status,
        }


class RazorpayGateway:
    """Razorpay client wrapper."""

    def __init__(
        self,
        settings: Settings,
        client: razorpay.Client | None = None,
    ) -> None:
        """Initialize from settings.

        Args:
            settings: Application settings with the Razorpay credentials.
            client: Optional prebuilt SDK client, used to stub the API.
        """
        self.settings = settings
        self._key_id = settings.razorpay_key_id
        self._key_secret = settings.razorpay_key_secret
        self._timeout = settings.razorpay_timeout_seconds
        self._client = client

    @property
    def is_configured(self) -> bool:
        """Check if key id and key secret are set."""
        return bool(self._key_id and self._key_secret)

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise GatewayNotConfiguredError(
                "Razorpay is not configured. "
                "Please set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )

    @property
    def client(self) -> razorpay.Client:
        """SDK client, created on first use."""
        if self._client is None:
            self._ensure_configured()
            self._client = razorpay.Client(auth=(self._key_id, self._key_secret))
        return self._client

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check a payment callback signature against the key secret.

        Signatures are hex digests; anything outside ASCII can never match.

        Raises:
            GatewayNotConfiguredError: If the key secret is missing
        """
        if not self._key_secret:
            raise GatewayNotConfiguredError
        if not signature.isascii():
            return False

        try:
            self.client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay_errors.SignatureVerificationError:
            return False
        return True

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        """Create an order.

        Args:
            amount: Amount in minor currency units (paise for INR).
            currency: ISO currency code.
            receipt: Merchant receipt reference.

        Returns:
            The created order.

        Raises:
            GatewayNotConfiguredError: If credentials are missing.
            GatewayError: On timeout, transport error, an SDK error answer or
                a body without an order id.
        """
        self._ensure_configured()

        body = {"amount": amount, "currency": currency, "receipt": receipt}

        try:
            payload = await asyncio.wait_for(
                asyncio.to_thread(self.client.order.create, body),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            logger.error("gateway_timeout", receipt=receipt)
            raise GatewayError("Payment gateway timeout") from e
        except SDK_ERRORS as e:
            logger.error("gateway_order_failed", error=str(e), receipt=receipt)
            raise GatewayError(f"Payment gateway error: {e}") from e
        except requests.RequestException as e:
            logger.error("gateway_request_error", error=str(e))
            raise GatewayError(f"Payment gateway request error: {e}") from e
        except ValueError as e:
            logger.error("gateway_invalid_response", error=str(e))
            raise GatewayError("Payment gateway returned invalid JSON") from e

        if not isinstance(payload, dict) or not payload.get("id"):
            logger.error("gateway_order_without_id", receipt=receipt)
            raise GatewayError("Payment gateway returned an order without id")

        order = GatewayOrder.from_payload(payload)
        logger.info(
            "gateway_order_created",
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
        )
        return order
