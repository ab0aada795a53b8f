# prepwise/routers/billing.py

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from prepwise.base.database import get_db
from prepwise.base.dependencies import get_stripe_client, verify_api_key
from prepwise.base.models import (
    CancelSubscriptionRequest,
    CancelSubscriptionResult,
    CheckoutRequest,
    CheckoutSession,
    PortalRequest,
    PortalSession,
    SubscriptionSummary,
)
from prepwise.services.billing_service import BillingService

router = APIRouter(prefix="/billing", tags=["Billing"])
secured = [Depends(verify_api_key)]


@router.post("/checkout", response_model=CheckoutSession, summary="Create a Stripe checkout session", dependencies=secured)
def create_checkout(req: CheckoutRequest, db: Session = Depends(get_db), stripe=Depends(get_stripe_client)):
    return BillingService(stripe).create_checkout_session(req, db)


@router.post("/portal", response_model=PortalSession, summary="Create a customer portal session", dependencies=secured)
def create_portal(req: PortalRequest, stripe=Depends(get_stripe_client)):
    return BillingService(stripe).create_portal_session(req)


@router.get("/subscription/{user_id}", response_model=Optional[SubscriptionSummary], dependencies=secured)
def get_subscription(user_id: str, db: Session = Depends(get_db), stripe=Depends(get_stripe_client)):
    return BillingService(stripe).get_subscription(user_id, db)


@router.post("/cancel", response_model=CancelSubscriptionResult, summary="Cancel a subscription at period end",
             dependencies=secured)
def cancel_subscription(req: CancelSubscriptionRequest, db: Session = Depends(get_db), stripe=Depends(get_stripe_client)):
    return BillingService(stripe).cancel_subscription(req, db)


@router.post("/webhook", summary="Stripe webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    stripe=Depends(get_stripe_client),
):
    payload = await request.body()
    return BillingService(stripe).handle_webhook(payload, stripe_signature, db)
