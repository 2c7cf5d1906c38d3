"""Course purchase module.

Provides:
- Gateway order creation with pending purchase records
- Signature-checked payment verification, completing a purchase once
- Idempotent settlement (preview unlock, enrollment, roster) and its
  reconciliation
"""

from .gateway import (
    GatewayError,
    GatewayNotConfiguredError,
    GatewayOrder,
    RazorpayGateway,
)
from .models import PURCHASES_TABLES_CQL, Purchase, PurchaseStatus, SettlementStep
from .service import (
    MissingPaymentFieldsError,
    PaymentConfirmation,
    PurchaseAlreadyCompletedError,
    PurchaseError,
    PurchaseNotFoundError,
    PurchaseService,
    SettlementError,
    SignatureMismatchError,
)


__all__ = [
    "PURCHASES_TABLES_CQL",
    "GatewayError",
    "GatewayNotConfiguredError",
    "GatewayOrder",
    "MissingPaymentFieldsError",
    "PaymentConfirmation",
    "Purchase",
    "PurchaseAlreadyCompletedError",
    "PurchaseError",
    "PurchaseNotFoundError",
    "PurchaseService",
    "PurchaseStatus",
    "RazorpayGateway",
    "SettlementError",
    "SettlementStep",
    "SignatureMismatchError",
]
