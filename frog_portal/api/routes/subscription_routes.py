"""
Subscription Routes (Stripe)

POST /subscriptions/checkout - Start a membership checkout session
POST /subscriptions/portal - Open the Stripe billing portal
POST /subscriptions/cancel - Cancel the membership now
POST /subscriptions/sync - Recover Stripe ids for a member by email
GET /subscriptions/status - Membership state
POST /stripe/webhook - Stripe events (signature verified)
"""

import logging

import stripe
from fastapi import APIRouter, HTTPException, Depends, Request

from frog_portal.core.auth import get_current_user
from frog_portal.services.mongo_service import record_webhook_event
from frog_portal.services.profile_service import load_profile, update_profile
from frog_portal.services.stripe_service import (
    PaymentError, WEBHOOK_HANDLERS, get_stripe_service, handle_checkout_completed, period_end
)
from frog_portal.schemas.schemas import UrlResponse, SubscriptionStatusResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Subscriptions"])


def _require_profile(user: dict) -> dict:
    profile = load_profile(user["user_id"])
    if not profile:
        raise HTTPException(status_code=404, detail="プロフィールが見つかりません")
    return profile


def _stripe_failure(e: stripe.StripeError) -> HTTPException:
    logger.error("Stripe call failed: %s", e)
    return HTTPException(status_code=502, detail="決済サービスでエラーが発生しました")


@router.post("/subscriptions/checkout", response_model=UrlResponse)
async def create_checkout(user: dict = Depends(get_current_user)):
    profile = _require_profile(user)
    if profile["is_member"]:
        raise HTTPException(status_code=400, detail="既にメンバーシップに登録済みです")

    try:
        url = get_stripe_service().create_checkout_session(user["user_id"], profile["email"])
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    except stripe.StripeError as e:
        raise _stripe_failure(e) from e
    return UrlResponse(url=url)


@router.post("/subscriptions/portal", response_model=UrlResponse)
async def create_portal(user: dict = Depends(get_current_user)):
    profile = _require_profile(user)
    if not profile["stripe_customer_id"]:
        raise HTTPException(status_code=404, detail="Stripeの顧客情報が見つかりません")

    try:
        url = get_stripe_service().create_portal_session(profile["stripe_customer_id"])
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    except stripe.StripeError as e:
        raise _stripe_failure(e) from e
    return UrlResponse(url=url)


@router.post("/subscriptions/cancel", response_model=MessageResponse)
async def cancel_subscription(user: dict = Depends(get_current_user)):
    """
    Cancel immediately and end membership.

    A subscription Stripe already reports as canceled still counts as a
    successful cancel so the profile can be brought back in line.
    """
    profile = _require_profile(user)
    subscription_id = profile["stripe_subscription_id"]
    if not subscription_id:
        raise HTTPException(status_code=404, detail="有効なサブスクリプションが見つかりません")

    service = get_stripe_service()
    try:
        service.cancel_subscription(subscription_id)
    except stripe.InvalidRequestError as e:
        try:
            current = service.retrieve_subscription(subscription_id)
        except stripe.StripeError:
            raise HTTPException(status_code=400, detail="サブスクリプションを解約できませんでした") from e
        if current.get("status") != "canceled":
            raise HTTPException(status_code=400, detail="サブスクリプションを解約できませんでした") from e
        logger.info("Subscription %s was already canceled", subscription_id)
    except stripe.StripeError as e:
        raise _stripe_failure(e) from e

    update_profile(user["user_id"], {
        "is_member": False,
        "subscription_status": "canceled",
        "stripe_subscription_id": None,
    })
    logger.info("User %s canceled subscription %s", user["user_id"], subscription_id)
    return MessageResponse(message="サブスクリプションを解約しました")


@router.post("/subscriptions/sync", response_model=SubscriptionStatusResponse)
async def sync_subscription(user: dict = Depends(get_current_user)):
    """
    Fill in missing Stripe ids by looking up an active subscription for the member's email.

    Only repairs existing members. Non-members get their status back unchanged;
    membership is granted by checkout and the Stripe webhooks alone.
    """
    profile = _require_profile(user)
    if not profile["is_member"]:
        return SubscriptionStatusResponse(**profile)
    if profile["stripe_customer_id"] and profile["stripe_subscription_id"]:
        return SubscriptionStatusResponse(**profile)

    service = get_stripe_service()
    try:
        found = service.find_active_subscription(profile["email"])
        if not found:
            raise HTTPException(status_code=404, detail="有効なサブスクリプションが見つかりません")
        subscription = service.retrieve_subscription(found["subscription_id"])
    except stripe.StripeError as e:
        raise _stripe_failure(e) from e

    update_profile(user["user_id"], {
        "stripe_customer_id": found["customer_id"],
        "stripe_subscription_id": found["subscription_id"],
        "subscription_status": subscription.get("status"),
        "subscription_period_end": period_end(subscription),
    })
    logger.info("Synced Stripe subscription %s for user %s", found["subscription_id"], user["user_id"])
    return SubscriptionStatusResponse(**load_profile(user["user_id"]))


@router.get("/subscriptions/status", response_model=SubscriptionStatusResponse)
async def subscription_status(user: dict = Depends(get_current_user)):
    return SubscriptionStatusResponse(**_require_profile(user))


@router.post("/stripe/webhook")
async def stripe_webhook(request: Request):
    """
    Keep membership in sync with Stripe.

    Handled: checkout.session.completed, customer.subscription.updated,
    customer.subscription.deleted. Other events are acknowledged.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")

    service = get_stripe_service()
    try:
        event = service.construct_event(payload, signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail="Webhook signature verification failed") from e

    event_type = event["type"]
    data = event["data"]["object"]
    handled = True

    try:
        if event_type == "checkout.session.completed":
            handle_checkout_completed(service, data)
        elif event_type in WEBHOOK_HANDLERS:
            WEBHOOK_HANDLERS[event_type](data)
        else:
            handled = False
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    except stripe.StripeError as e:
        raise _stripe_failure(e) from e

    record_webhook_event("stripe", event_type, {"id": event.get("id"), "object_id": data.get("id")}, handled)
    return {"received": True}
