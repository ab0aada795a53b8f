"""
Stripe billing: webhook signatures, checkout and the minutes ledger updates
driven by subscription events.
"""
import hashlib
import hmac
import json
import time

import pytest
from fastapi import HTTPException

from prepwise.base.config import AppConfig, settings
from prepwise.base.models import CancelSubscriptionRequest, CheckoutRequest, PortalRequest
from prepwise.base.schema import ProfileModel
from prepwise.models.stripe_client import WebhookSignatureError, construct_event
from prepwise.services.billing_service import BillingService, get_minutes_for_plan, tier_from_product_name

SECRET = "whsec_unit"


def stripe_signature(payload, secret, timestamp=None):
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event(event_type, obj):
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}}).encode("utf-8")


def post_event(client, event_type, obj):
    payload = event(event_type, obj)
    return client.post(
        "/billing/webhook",
        content=payload,
        headers={"Stripe-Signature": stripe_signature(payload, settings.STRIPE_WEBHOOK_SECRET)},
    )


@pytest.fixture
def subscriber(db, profile, fake_stripe):
    fake_stripe.add_plan("price_pro_m", "prod_pro", "PrepWise Professional")
    fake_stripe.add_plan("price_intro_y", "prod_intro", "PrepWise Intro", interval="year")
    fake_stripe.add_subscription("sub_1", "price_pro_m", customer="cus_1", user_id=profile.id)

    profile.used_conversation_minutes = 20
    db.commit()
    return profile


# === Signatures ===

def test_valid_signature_parses_event():
    payload = b'{"id": "evt_1", "type": "invoice.paid"}'
    parsed = construct_event(payload, stripe_signature(payload, SECRET), SECRET)
    assert parsed["id"] == "evt_1"
    assert parsed["type"] == "invoice.paid"
    assert type(parsed) is dict


def test_tampered_payload_is_rejected():
    header = stripe_signature(b'{"id": "evt_1"}', SECRET)
    with pytest.raises(WebhookSignatureError):
        construct_event(b'{"id": "evt_2"}', header, SECRET)


def test_stale_timestamp_is_rejected():
    payload = b"{}"
    header = stripe_signature(payload, SECRET, timestamp=int(time.time()) - 301)
    with pytest.raises(WebhookSignatureError, match="tolerance"):
        construct_event(payload, header, SECRET, tolerance=300)


@pytest.mark.parametrize("header", [None, "", "v1=abc", "t=notanumber,v1=abc"])
def test_malformed_headers_are_rejected(header):
    with pytest.raises(WebhookSignatureError):
        construct_event(b"{}", header, SECRET)


# === Plans ===

def test_minutes_per_plan():
    assert get_minutes_for_plan("intro", False) == 60
    assert get_minutes_for_plan("professional", True) == 3960
    assert get_minutes_for_plan("executive", False) == 900
    assert get_minutes_for_plan("enterprise", False) == 25


def test_tier_from_product_name():
    assert tier_from_product_name("PrepWise Professional") == "professional"
    assert tier_from_product_name("Executive (annual)") == "executive"
    assert tier_from_product_name(None) == "intro"


# === Checkout & Portal ===

def test_checkout_creates_customer_once(db, profile, fake_stripe):
    fake_stripe.add_plan("price_pro_m", "prod_pro", "PrepWise Professional")
    service = BillingService(fake_stripe)
    req = CheckoutRequest(
        price_id="price_pro_m",
        user_id=profile.id,
        success_url="https://prepwise.ai/billing/success",
        cancel_url="https://prepwise.ai/billing",
    )

    session = service.create_checkout_session(req, db)
    service.create_checkout_session(req, db)

    assert session.url == "https://checkout.stripe.test/session"
    assert len(fake_stripe.customers) == 1
    db.refresh(profile)
    assert profile.stripe_customer_id == "cus_1"
    assert fake_stripe.checkout_sessions[1]["customer"] == "cus_1"


def test_checkout_validation(db, profile, fake_stripe):
    service = BillingService(fake_stripe)

    with pytest.raises(HTTPException) as exc:
        service.create_checkout_session(CheckoutRequest(price_id="price_x", user_id=profile.id), db)
    assert exc.value.status_code == 400

    full = dict(success_url="https://prepwise.ai/ok", cancel_url="https://prepwise.ai/no")
    with pytest.raises(HTTPException) as exc:
        service.create_checkout_session(CheckoutRequest(price_id="price_x", user_id=profile.id, **full), db)
    assert exc.value.detail.startswith("Invalid price ID:")

    fake_stripe.add_plan("price_pro_m", "prod_pro", "PrepWise Professional")
    with pytest.raises(HTTPException) as exc:
        service.create_checkout_session(CheckoutRequest(price_id="price_pro_m", user_id="ghost", **full), db)
    assert exc.value.status_code == 404


def test_portal_requires_return_url(fake_stripe):
    with pytest.raises(HTTPException) as exc:
        BillingService(fake_stripe).create_portal_session(PortalRequest(customer_id="cus_1"))
    assert exc.value.status_code == 400


def test_missing_stripe_client_is_500(db, profile):
    with pytest.raises(HTTPException) as exc:
        BillingService(None).create_portal_session(PortalRequest(customer_id="cus_1", return_url="https://x"))
    assert exc.value.status_code == 500


def test_missing_parameters_are_400_without_stripe_client(db):
    service = BillingService(None)
    with pytest.raises(HTTPException) as exc:
        service.create_checkout_session(CheckoutRequest(price_id="price_pro_m"), db)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        service.create_portal_session(PortalRequest(customer_id="cus_1"))
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        service.cancel_subscription(CancelSubscriptionRequest(), db)
    assert exc.value.status_code == 400


def test_checkout_endpoint(client, profile, fake_stripe):
    fake_stripe.add_plan("price_pro_m", "prod_pro", "PrepWise Professional")
    res = client.post("/billing/checkout", json={
        "price_id": "price_pro_m",
        "user_id": profile.id,
        "success_url": "https://prepwise.ai/billing/success",
        "cancel_url": "https://prepwise.ai/billing",
    })
    assert res.status_code == 200
    assert res.json() == {"id": "cs_1", "url": "https://checkout.stripe.test/session"}


# === Subscription lookup ===

def test_subscription_lookup(db, subscriber, fake_stripe):
    service = BillingService(fake_stripe)
    assert service.get_subscription(subscriber.id, db) is None

    subscriber.stripe_customer_id = "cus_1"
    db.commit()
    summary = service.get_subscription(subscriber.id, db)
    assert summary.id == "sub_1"
    assert summary.product_id == "prod_pro"

    subscriber.current_subscription_id = "sub_gone"
    db.commit()
    assert service.get_subscription(subscriber.id, db).id == "sub_1"


def test_cancel_subscription_at_period_end(client, db, subscriber, fake_stripe):
    subscriber.current_subscription_id = "sub_1"
    db.commit()

    res = client.post("/billing/cancel", json={"subscription_id": "sub_1"})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["subscription"]["id"] == "sub_1"
    assert body["subscription"]["cancel_at_period_end"] is True
    assert fake_stripe.subscriptions["sub_1"]["cancel_at_period_end"] is True

    db.expire_all()
    profile = db.get(ProfileModel, subscriber.id)
    assert profile.subscription_cancel_at_period_end is True
    assert profile.subscription_tier == "free"


def test_cancel_unknown_subscription_is_400(client, subscriber):
    res = client.post("/billing/cancel", json={"subscription_id": "sub_missing"})
    assert res.status_code == 400
    assert "No such subscription" in res.json()["error"]


# === Webhook ===

def test_checkout_completed_carries_over_remaining_minutes(client, db, subscriber):
    res = post_event(client, "checkout.session.completed", {
        "id": "cs_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "metadata": {"user_id": subscriber.id},
    })
    assert res.status_code == 200
    assert res.json() == {"received": True}

    db.expire_all()
    profile = db.get(ProfileModel, subscriber.id)
    assert profile.subscription_tier == "professional"
    assert profile.subscription_status == "active"
    assert profile.current_subscription_id == "sub_1"
    assert profile.stripe_customer_id == "cus_1"
    assert profile.total_conversation_minutes == 330 + 5
    assert profile.used_conversation_minutes == 0


def test_subscription_updated_switches_plan(client, db, subscriber, fake_stripe):
    subscription = fake_stripe.add_subscription("sub_2", "price_intro_y", customer="cus_1", user_id=subscriber.id)
    assert post_event(client, "customer.subscription.updated", subscription).status_code == 200

    db.expire_all()
    profile = db.get(ProfileModel, subscriber.id)
    assert profile.subscription_tier == "intro"
    assert profile.total_conversation_minutes == 720 + 5


def test_subscription_deleted_keeps_minutes(client, db, subscriber, fake_stripe):
    subscriber.stripe_customer_id = "cus_1"
    subscriber.subscription_tier = "professional"
    subscriber.current_subscription_id = "sub_1"
    db.commit()

    subscription = dict(fake_stripe.subscriptions["sub_1"], status="canceled", metadata={})
    assert post_event(client, "customer.subscription.deleted", subscription).status_code == 200

    db.expire_all()
    profile = db.get(ProfileModel, subscriber.id)
    assert profile.subscription_tier == "free"
    assert profile.subscription_status == "canceled"
    assert profile.current_subscription_id is None
    assert profile.total_conversation_minutes == 25
    assert profile.used_conversation_minutes == 20


def test_invoice_paid_only_renews_on_cycle(client, db, subscriber):
    subscriber.stripe_customer_id = "cus_1"
    db.commit()

    first = {"id": "in_1", "customer": "cus_1", "subscription": "sub_1", "billing_reason": "subscription_create"}
    post_event(client, "invoice.paid", first)
    db.expire_all()
    assert db.get(ProfileModel, subscriber.id).used_conversation_minutes == 20

    renewal = dict(first, id="in_2", billing_reason="subscription_cycle")
    post_event(client, "invoice.paid", renewal)
    db.expire_all()
    profile = db.get(ProfileModel, subscriber.id)
    assert profile.used_conversation_minutes == 0
    assert profile.total_conversation_minutes == 335


def test_unknown_customer_is_rejected(client, subscriber, fake_stripe):
    subscription = dict(fake_stripe.subscriptions["sub_1"], customer="cus_other", metadata={})
    res = post_event(client, "customer.subscription.updated", subscription)
    assert res.status_code == 400


def test_bad_signature_is_400(client):
    res = client.post("/billing/webhook", content=event("invoice.paid", {}), headers={"Stripe-Signature": "t=1,v1=bad"})
    assert res.status_code == 400
    assert res.json()["error"].startswith("Webhook Error:")


def test_unhandled_event_is_acknowledged(client):
    assert post_event(client, "customer.created", {"id": "cus_9"}).json() == {"received": True}


def test_webhook_without_secret_is_500(db, fake_stripe):
    service = BillingService(fake_stripe, config=AppConfig(STRIPE_WEBHOOK_SECRET=None))
    with pytest.raises(HTTPException) as exc:
        service.handle_webhook(b"{}", "t=1,v1=x", db)
    assert exc.value.status_code == 500
