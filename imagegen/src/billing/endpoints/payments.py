"""
Payment Endpoints

API endpoints for the product catalog, checkouts, payment confirmation,
balance and purchase history.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from imagegen.common.security.jwt import TokenPayload
from imagegen.src.billing.credits import credit_manager
from imagegen.src.billing.payments import payment_service, purchase_store, reconciliation_service
from .dependencies import get_current_user, get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing-payments"])


# ============================================================================
# Request Models
# ============================================================================

class AbacatePayCheckoutRequest(BaseModel):
    """Request for a PIX checkout."""
    product_id: str
    cellphone: Optional[str] = Field(None, description="Buyer phone, digits or formatted")
    tax_id: Optional[str] = Field(None, description="Buyer CPF or CNPJ")


class StripeCheckoutRequest(BaseModel):
    """Request for a card checkout."""
    product_id: str


class ConfirmPaymentRequest(BaseModel):
    """Request for payment confirmation. Without a billing id the latest pending purchase is used."""
    billing_id: Optional[str] = None


# ============================================================================
# Response Models
# ============================================================================

class ConfirmPaymentResponse(BaseModel):
    activated: bool
    status: str
    message: str
    credits_added: Optional[int] = None
    provider_status: Optional[str] = None


class ProductResponse(BaseModel):
    id: str
    name: str
    tokens_granted: int
    price_in_cents: int
    is_unlimited: bool


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/products")
async def list_products() -> List[ProductResponse]:
    """Active products, cheapest first."""
    products = await purchase_store.list_products()
    return [
        ProductResponse(
            id=p.id,
            name=p.name,
            tokens_granted=p.tokens_granted,
            price_in_cents=p.price_in_cents,
            is_unlimited=p.is_unlimited,
        )
        for p in products
    ]


@router.post("/abacatepay/checkout")
async def create_abacatepay_checkout(
    request: AbacatePayCheckoutRequest,
    user: TokenPayload = Depends(get_current_user)
) -> Dict:
    """
    Create a PIX billing for a product.

    Returns the hosted checkout url, the AbacatePay billing id and our purchase id.
    """
    return await payment_service.create_abacatepay_checkout(
        user,
        request.product_id,
        cellphone=request.cellphone,
        tax_id=request.tax_id,
    )


@router.post("/stripe/checkout")
async def create_stripe_checkout(
    request: StripeCheckoutRequest,
    user: TokenPayload = Depends(get_current_user)
) -> Dict:
    """Create a Stripe Checkout session for a product."""
    return await payment_service.create_stripe_checkout(user, request.product_id)


@router.post("/abacatepay/confirm", response_model=ConfirmPaymentResponse, response_model_exclude_none=True)
async def confirm_payment(
    request: Optional[ConfirmPaymentRequest] = None,
    user_id: str = Depends(get_current_user_id)
) -> Dict:
    """
    Confirm a PIX payment with AbacatePay and activate its credits.

    Answers `activated`, `pending` or `not_found`. Safe to call repeatedly;
    credits are granted once.
    """
    billing_id = request.billing_id if request else None
    result = await reconciliation_service.confirm_for_user(user_id, billing_id=billing_id)
    return result.to_dict()


@router.get("/balance")
async def get_balance(user_id: str = Depends(get_current_user_id)) -> Dict:
    """Get the caller's credit balance and plan state."""
    return await credit_manager.get_balance(user_id)


@router.get("/purchases")
async def get_purchases(
    user_id: str = Depends(get_current_user_id),
    limit: int = Query(20, ge=1, le=100, description="Number of purchases"),
    offset: int = Query(0, ge=0, description="Offset for pagination")
) -> Dict:
    """Get the caller's purchases, newest first."""
    purchases, total = await purchase_store.list_for_user(user_id, limit=limit, offset=offset)

    return {
        'purchases': [
            {
                'id': p.id,
                'product_id': p.product_id,
                'provider': p.provider,
                'status': p.status,
                'amount_paid': p.amount_paid,
                'tokens_granted': p.tokens_granted,
                'created_at': p.created_time.isoformat() if p.created_time else None,
                'completed_at': p.completed_at.isoformat() if p.completed_at else None,
            }
            for p in purchases
        ],
        'total': total,
        'limit': limit,
        'offset': offset,
    }
