import logging
from typing import Any, Dict, List, Optional

import stripe

from prepwise.base.config import settings
from prepwise.base.error_handlers import ExternalServiceError

logger = logging.getLogger("stripe_client")


class StripeAPIError(ExternalServiceError):
    service = "stripe"

    def __init__(self, message: str, status_code: int = 502, code: Optional[str] = None):
        super().__init__(message, status_code=status_code)
        self.code = code


class WebhookSignatureError(Exception):
    pass


def _plain(value: Any) -> Any:
    """Copies StripeObjects into plain dicts and lists."""
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


class StripeClient:
    """
    Wraps the ``stripe`` SDK calls used for checkout, billing portal,
    customers, prices, products and subscriptions.

    Every call passes the key and API version explicitly, so several clients
    can coexist in one process. Results come back as plain dicts and SDK
    errors are re-raised as ``StripeAPIError``.
    """

    def __init__(self, secret_key: str, api_version: str = "2023-10-16"):
        if not secret_key:
            raise ValueError("STRIPE_SECRET_KEY environment variable is required")
        self.secret_key = secret_key
        self.api_version = api_version

    def _call(self, label: str, method, *args, **params) -> Dict[str, Any]:
        logger.info(f"[Stripe] {label}")
        try:
            result = method(*args, api_key=self.secret_key, stripe_version=self.api_version, **params)
        except stripe.error.StripeError as e:
            message = e.user_message or str(e)
            logger.error(f"[Stripe] {label} failed ({e.http_status}): {message}")
            raise StripeAPIError(message, status_code=e.http_status or 502, code=e.code)
        return _plain(result)

    # === Catalog ===

    def retrieve_price(self, price_id: str) -> Dict[str, Any]:
        return self._call(f"retrieve price {price_id}", stripe.Price.retrieve, price_id)

    def retrieve_product(self, product_id: str) -> Dict[str, Any]:
        return self._call(f"retrieve product {product_id}", stripe.Product.retrieve, product_id)

    # === Customers & Sessions ===

    def create_customer(self, email: Optional[str], name: Optional[str], user_id: str) -> Dict[str, Any]:
        return self._call(
            f"create customer for {user_id}",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"user_id": user_id},
        )

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        user_id: str,
    ) -> Dict[str, Any]:
        return self._call(
            f"create checkout session for {customer_id}",
            stripe.checkout.Session.create,
            customer=customer_id,
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=cancel_url,
            metadata={"user_id": user_id},
            subscription_data={"metadata": {"user_id": user_id}},
        )

    def create_portal_session(self, customer_id: str, return_url: str) -> Dict[str, Any]:
        return self._call(
            f"create portal session for {customer_id}",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )

    # === Subscriptions ===

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self._call(f"retrieve subscription {subscription_id}", stripe.Subscription.retrieve, subscription_id)

    def list_subscriptions(self, customer_id: str, status: str = "active", limit: int = 1) -> List[Dict[str, Any]]:
        result = self._call(
            f"list subscriptions for {customer_id}",
            stripe.Subscription.list,
            customer=customer_id,
            status=status,
            limit=limit,
        )
        return result.get("data", [])

    def cancel_at_period_end(self, subscription_id: str) -> Dict[str, Any]:
        return self._call(
            f"cancel subscription {subscription_id} at period end",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=True,
        )


def construct_event(payload: bytes, signature_header: Optional[str], secret: str,
                    tolerance: int = 300) -> Dict[str, Any]:
    """
    Verifies the ``Stripe-Signature`` header against the raw body and parses
    the event.

    Raises:
        WebhookSignatureError: header missing, signature mismatch, timestamp
            outside the tolerance window, or a body that is not JSON.
    """
    if not signature_header:
        raise WebhookSignatureError("Missing Stripe-Signature header")
    try:
        event = stripe.Webhook.construct_event(payload, signature_header, secret, tolerance=tolerance)
    except stripe.error.SignatureVerificationError as e:
        raise WebhookSignatureError(e.user_message or str(e))
    except ValueError as e:
        raise WebhookSignatureError(f"Invalid payload: {e}")
    return _plain(event)


def build_stripe_client() -> Optional[StripeClient]:
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("[Stripe] STRIPE_SECRET_KEY not set, billing unavailable")
        return None
    return StripeClient(secret_key=settings.STRIPE_SECRET_KEY, api_version=settings.STRIPE_API_VERSION)
