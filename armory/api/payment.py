"""Payment endpoints: pricing, checkout, cancellation and billing webhooks."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from armory.api.dependencies import get_billing_service, get_current_account, get_subscription_service
from armory.api.owner import subscription_view
from armory.errors import BillingError
from armory.models.account import Account
from armory.models.enums import SubscriptionStatus, SubscriptionTier
from armory.schemas.subscription import (
    CancelResponse,
    CheckoutRequest,
    CheckoutResponse,
    PaymentResponse,
    PricingResponse,
)
from armory.services.billing import BillingService
from armory.services.subscription_policy import allowed_targets
from armory.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/payment", tags=["payment"])


@router.get("/pricing", response_model=PricingResponse)
async def pricing(
    current_account: Annotated[Account, Depends(get_current_account)],
):
    """List the tiers the current account can subscribe to."""
    return PricingResponse(
        current_tier=current_account.tier,
        available_tiers=[tier for tier in SubscriptionTier if tier in allowed_targets(current_account.tier)],
    )


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    checkout: CheckoutRequest,
    current_account: Annotated[Account, Depends(get_current_account)],
    service: Annotated[SubscriptionService, Depends(get_subscription_service)],
):
    """Start a hosted checkout for a tier upgrade."""
    url = service.start_checkout(current_account, checkout.tier.value)
    return CheckoutResponse(url=url)


@router.post("/cancel", response_model=CancelResponse)
async def cancel_subscription(
    current_account: Annotated[Account, Depends(get_current_account)],
    service: Annotated[SubscriptionService, Depends(get_subscription_service)],
):
    """Cancel the current subscription at the end of its billing period."""
    account = service.cancel(current_account)
    view = subscription_view(account, service)
    if account.status == SubscriptionStatus.PENDING_CANCELLATION and account.subscription_end_date:
        message = (
            "Your subscription has been cancelled but will remain active until "
            f"{account.subscription_end_date:%B %d, %Y}."
        )
    else:
        message = "Your subscription has been cancelled."
    return CancelResponse(message=message, subscription=view)


@router.get("/history", response_model=list[PaymentResponse])
async def payment_history(
    current_account: Annotated[Account, Depends(get_current_account)],
    service: Annotated[SubscriptionService, Depends(get_subscription_service)],
):
    """List the current account's payments, newest first."""
    return service.payment_history(current_account)


@router.post("/webhook")
async def handle_webhook(
    request: Request,
    billing: Annotated[BillingService | None, Depends(get_billing_service)],
    service: Annotated[SubscriptionService, Depends(get_subscription_service)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
):
    """Receive Stripe webhook events."""
    if billing is None:
        raise BillingError("Payments are not configured")

    payload = await request.body()
    event = billing.construct_event(payload, stripe_signature)
    handled = service.handle_billing_event(event)
    logger.info(f"Billing event {event['type']} {'applied' if handled else 'ignored'}")
    return {"received": True}
