"""
Billing Configuration

Purchase lifecycle values, provider constants and webhook contract
details shared by the billing module.

Usage:
    from imagegen.src.billing.shared.config import PurchaseStatus, PAID_WEBHOOK_EVENTS

    if event in PAID_WEBHOOK_EVENTS:
        ...
"""

from enum import Enum
from typing import Tuple


# =============================================================================
# PURCHASE LIFECYCLE
# =============================================================================
class PurchaseStatus(str, Enum):
    """Purchase status. Only pending -> completed is performed here."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentProvider(str, Enum):
    """Where the purchase was checked out."""
    ABACATEPAY = "abacatepay"
    STRIPE = "stripe"


class LedgerEntryType(str, Enum):
    """credit_ledger.type values written by this module."""
    PURCHASE = "purchase"


# =============================================================================
# ABACATEPAY
# =============================================================================
# Webhook events that confirm a payment
PAID_WEBHOOK_EVENTS: Tuple[str, ...] = (
    "billing.paid",
    "payment.approved",
    "pix.paid",
    "pixQrCode.paid",
)

# Shared secret may arrive as a query param or one of these headers
WEBHOOK_SECRET_QUERY_PARAM: str = "webhookSecret"
WEBHOOK_SECRET_HEADERS: Tuple[str, ...] = (
    "X-Webhook-Secret",
    "X-Abacatepay-Secret",
)

# HMAC-SHA256 signature headers, checked in order
WEBHOOK_SIGNATURE_HEADERS: Tuple[str, ...] = (
    "X-Abacatepay-Signature",
    "X-Webhook-Signature",
    "X-Signature",
)
WEBHOOK_SIGNATURE_PREFIX: str = "sha256="

# Billing frequencies
ONE_TIME_FREQUENCY: str = "ONE_TIME"
RECURRING_FREQUENCY: str = "MULTIPLE_PAYMENTS"
PAYMENT_METHODS: Tuple[str, ...] = ("PIX",)

# Product line description shown on the PIX checkout
CREDIT_PACK_DESCRIPTION: str = "{tokens} créditos para geração de imagens"
SUBSCRIPTION_DESCRIPTION: str = "Assinatura mensal - {name}"


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================
SUBSCRIPTION_STATUS_ACTIVE: str = "active"


# =============================================================================
# CONFIRMATION MESSAGES
# =============================================================================
MESSAGE_ACTIVATED: str = "Créditos ativados com sucesso!"
MESSAGE_ALREADY_PROCESSED: str = "Pagamento já foi processado"
MESSAGE_PENDING: str = "Pagamento ainda não confirmado. Status: {status}"
MESSAGE_NOT_FOUND: str = "Nenhuma compra pendente encontrada"
