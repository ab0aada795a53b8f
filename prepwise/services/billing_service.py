# prepwise/services/billing_service.py

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from prepwise.base.config import AppConfig, settings
from prepwise.base.logging_config import billing_logger as logger
from prepwise.base.metrics import stripe_webhook_counter
from prepwise.base.models import (
    CancelSubscriptionRequest,
    CancelSubscriptionResult,
    CheckoutRequest,
    CheckoutSession,
    PortalRequest,
    PortalSession,
    SubscriptionSummary,
)
from prepwise.base.schema import ProfileModel
from prepwise.models.stripe_client import (
    StripeAPIError,
    StripeClient,
    WebhookSignatureError,
    construct_event,
)

# (monthly, annual) conversation minutes per tier
PLAN_MINUTES = {
    "intro": (60, 720),
    "professional": (330, 3960),
    "executive": (900, 10800),
}
FREE_PLAN_MINUTES = 25


def get_minutes_for_plan(tier: str, is_annual: bool) -> int:
    if tier not in PLAN_MINUTES:
        return FREE_PLAN_MINUTES
    monthly, annual = PLAN_MINUTES[tier]
    return annual if is_annual else monthly


def tier_from_product_name(name: Optional[str]) -> str:
    lowered = (name or "").lower()
    if "professional" in lowered:
        return "professional"
    if "executive" in lowered:
        return "executive"
    return "intro"


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.utcfromtimestamp(value) if value else None


def _summary(subscription: Dict[str, Any]) -> SubscriptionSummary:
    items = (subscription.get("items") or {}).get("data") or []
    product_id = items[0].get("price", {}).get("product") if items else None
    return SubscriptionSummary(
        id=subscription["id"],
        status=subscription.get("status", "unknown"),
        current_period_end=subscription.get("current_period_end"),
        product_id=product_id,
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
    )


class BillingService:
    """
    Thin layer over Stripe. The only local state it touches is the
    subscription fields and conversation-minutes ledger on the profile.
    """

    def __init__(self, stripe_client: Optional[StripeClient] = None, config: AppConfig = settings):
        self.stripe = stripe_client
        self.config = config

    def _client(self) -> StripeClient:
        if self.stripe is None:
            raise HTTPException(status_code=500, detail="Stripe API key is not configured")
        return self.stripe

    # === Checkout & Portal ===

    def create_checkout_session(self, req: CheckoutRequest, db: Session) -> CheckoutSession:
        if not (req.price_id and req.user_id and req.success_url and req.cancel_url):
            raise HTTPException(status_code=400, detail="Missing required parameters")
        client = self._client()

        try:
            client.retrieve_price(req.price_id)
        except StripeAPIError as e:
            raise HTTPException(status_code=400, detail=f"Invalid price ID: {e.message}")

        profile = db.query(ProfileModel).filter_by(id=req.user_id).first()
        if not profile:
            raise HTTPException(status_code=404, detail="User profile not found")

        customer_id = profile.stripe_customer_id
        if not customer_id:
            try:
                customer = client.create_customer(profile.email, profile.name, req.user_id)
            except StripeAPIError as e:
                raise HTTPException(status_code=500, detail=f"Failed to create customer: {e.message}")
            customer_id = customer["id"]
            profile.stripe_customer_id = customer_id
            db.commit()
            logger.info(f"[Checkout] Created Stripe customer {customer_id} for {req.user_id}")

        try:
            session = client.create_checkout_session(
                customer_id=customer_id,
                price_id=req.price_id,
                success_url=req.success_url,
                cancel_url=req.cancel_url,
                user_id=req.user_id,
            )
        except StripeAPIError as e:
            raise HTTPException(status_code=400, detail=f"Stripe checkout error: {e.message}")

        logger.info(f"[Checkout] Session {session.get('id')} for {req.user_id} / {req.price_id}")
        return CheckoutSession(id=session["id"], url=session["url"])

    def create_portal_session(self, req: PortalRequest) -> PortalSession:
        if not req.customer_id or not req.return_url:
            raise HTTPException(status_code=400, detail="Missing required parameters")
        client = self._client()
        try:
            session = client.create_portal_session(req.customer_id, req.return_url)
        except StripeAPIError as e:
            raise HTTPException(status_code=400, detail=e.message)
        return PortalSession(url=session["url"])

    # === Subscription lookup ===

    def get_subscription(self, user_id: str, db: Session) -> Optional[SubscriptionSummary]:
        client = self._client()
        profile = db.query(ProfileModel).filter_by(id=user_id).first()
        if not profile:
            raise HTTPException(status_code=404, detail="User profile not found")
        if not profile.stripe_customer_id:
            return None

        if profile.current_subscription_id:
            try:
                return _summary(client.retrieve_subscription(profile.current_subscription_id))
            except StripeAPIError as e:
                logger.warning(f"[Subscription] Stored subscription {profile.current_subscription_id} unavailable: {e}")

        subscriptions = client.list_subscriptions(profile.stripe_customer_id, status="active", limit=1)
        if not subscriptions:
            return None
        return _summary(subscriptions[0])

    def cancel_subscription(self, req: CancelSubscriptionRequest, db: Session) -> CancelSubscriptionResult:
        """Cancels at the end of the paid period; access and minutes stay until then."""
        if not req.subscription_id:
            raise HTTPException(status_code=400, detail="Missing subscription_id parameter")
        client = self._client()

        try:
            subscription = client.cancel_at_period_end(req.subscription_id)
        except StripeAPIError as e:
            raise HTTPException(status_code=400, detail=e.message)

        profile = db.query(ProfileModel).filter_by(current_subscription_id=req.subscription_id).first()
        if profile is not None:
            profile.subscription_cancel_at_period_end = True
            db.commit()
            logger.info(f"[Subscription] {profile.id} set to cancel {req.subscription_id} at period end")
        else:
            logger.warning(f"[Subscription] No profile holds {req.subscription_id}, Stripe updated only")

        return CancelSubscriptionResult(subscription=_summary(subscription))

    # === Webhook ===

    def handle_webhook(self, payload: bytes, signature: Optional[str], db: Session) -> dict:
        if not self.config.STRIPE_WEBHOOK_SECRET:
            raise HTTPException(status_code=500, detail="Stripe webhook secret is not configured")
        try:
            event = construct_event(
                payload,
                signature,
                self.config.STRIPE_WEBHOOK_SECRET,
                tolerance=self.config.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except WebhookSignatureError as e:
            logger.warning(f"[Webhook] Signature verification failed: {e}")
            raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

        event_type = event.get("type", "unknown")
        obj = (event.get("data") or {}).get("object") or {}
        stripe_webhook_counter.labels(event_type=event_type).inc()
        logger.info(f"[Webhook] {event_type} ({event.get('id')})")

        if event_type == "checkout.session.completed":
            self._on_checkout_completed(obj, db)
        elif event_type == "customer.subscription.updated":
            self._on_subscription_updated(obj, db)
        elif event_type == "customer.subscription.deleted":
            self._on_subscription_deleted(obj, db)
        elif event_type == "invoice.paid":
            self._on_invoice_paid(obj, db)
        else:
            logger.info(f"[Webhook] Unhandled event type {event_type}")

        return {"received": True}

    def _find_profile(self, metadata: Optional[dict], customer_id: Optional[str], db: Session) -> ProfileModel:
        user_id = (metadata or {}).get("user_id")
        profile = None
        if user_id:
            profile = db.query(ProfileModel).filter_by(id=user_id).first()
        if profile is None and customer_id:
            profile = db.query(ProfileModel).filter_by(stripe_customer_id=customer_id).first()
        if profile is None:
            raise HTTPException(status_code=400, detail="Could not find user for subscription event")
        return profile

    def _plan_for_subscription(self, subscription: Dict[str, Any]) -> Tuple[str, bool]:
        client = self._client()
        price_id = subscription["items"]["data"][0]["price"]["id"]
        price = client.retrieve_price(price_id)
        product = client.retrieve_product(price["product"])
        tier = tier_from_product_name(product.get("name"))
        is_annual = (price.get("recurring") or {}).get("interval") == "year"
        return tier, is_annual

    def _apply_plan(self, profile: ProfileModel, subscription: Dict[str, Any], tier: str, is_annual: bool,
                    db: Session) -> None:
        plan_minutes = get_minutes_for_plan(tier, is_annual)
        remaining = max(0, (profile.total_conversation_minutes or 0) - (profile.used_conversation_minutes or 0))

        profile.subscription_tier = tier
        profile.subscription_status = subscription.get("status") or "active"
        profile.current_subscription_id = subscription["id"]
        profile.subscription_current_period_start = _timestamp(subscription.get("current_period_start"))
        profile.subscription_current_period_end = _timestamp(subscription.get("current_period_end"))
        profile.subscription_cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
        if subscription.get("customer"):
            profile.stripe_customer_id = subscription["customer"]
        profile.total_conversation_minutes = plan_minutes + remaining
        profile.used_conversation_minutes = 0
        db.commit()

        logger.info(
            f"[Plan] {profile.id} -> {tier} ({'annual' if is_annual else 'monthly'}): "
            f"{plan_minutes} + {remaining} carried over = {profile.total_conversation_minutes} min"
        )

    def _on_checkout_completed(self, session: Dict[str, Any], db: Session) -> None:
        user_id = (session.get("metadata") or {}).get("user_id")
        subscription_id = session.get("subscription")
        if not user_id or not subscription_id:
            raise HTTPException(status_code=400, detail="Missing user_id or subscription_id in session metadata")

        subscription = self._client().retrieve_subscription(subscription_id)
        subscription.setdefault("status", "active")
        profile = self._find_profile(session.get("metadata"), session.get("customer"), db)
        tier, is_annual = self._plan_for_subscription(subscription)
        self._apply_plan(profile, subscription, tier, is_annual, db)

    def _on_subscription_updated(self, subscription: Dict[str, Any], db: Session) -> None:
        profile = self._find_profile(subscription.get("metadata"), subscription.get("customer"), db)
        tier, is_annual = self._plan_for_subscription(subscription)
        self._apply_plan(profile, subscription, tier, is_annual, db)

    def _on_subscription_deleted(self, subscription: Dict[str, Any], db: Session) -> None:
        profile = self._find_profile(subscription.get("metadata"), subscription.get("customer"), db)

        # Minutes are left untouched so remaining balance survives cancellation
        profile.subscription_tier = "free"
        profile.subscription_status = "canceled"
        profile.current_subscription_id = None
        profile.subscription_current_period_start = None
        profile.subscription_current_period_end = None
        profile.subscription_cancel_at_period_end = False
        db.commit()
        logger.info(f"[Plan] {profile.id} subscription canceled, back to free tier")

    def _on_invoice_paid(self, invoice: Dict[str, Any], db: Session) -> None:
        if invoice.get("billing_reason") != "subscription_cycle" or not invoice.get("subscription"):
            logger.info(f"[Invoice] {invoice.get('id')} paid ({invoice.get('billing_reason')}), no ledger change")
            return

        profile = self._find_profile(None, invoice.get("customer"), db)
        subscription = self._client().retrieve_subscription(invoice["subscription"])
        tier, is_annual = self._plan_for_subscription(subscription)
        self._apply_plan(profile, subscription, tier, is_annual, db)
        logger.info(f"[Invoice] Renewal applied for {profile.id}")
