"""
Stripe Subscription Service

Membership of the learning area is a Stripe subscription:
- checkout sessions start a subscription for the configured price
- the billing portal lets members manage payment details
- webhooks keep profiles.is_member and the subscription fields in sync

The stripe SDK is wrapped in a small class so routes and webhook handlers
share one configured entry point.
"""

import logging
from datetime import datetime
from typing import Optional

import stripe
from sqlalchemy import text

from frog_portal.core.config import get_settings
from frog_portal.db.postgres import get_db_session, fetch_one

logger = logging.getLogger(__name__)

settings = get_settings()


class PaymentError(Exception):
    """Raised for payment flow errors that map to an HTTP status."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def period_end(subscription) -> Optional[datetime]:
    # Newer API versions report the period on the subscription items
    end = subscription.get("current_period_end")
    if end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            end = items[0].get("current_period_end")
    return datetime.utcfromtimestamp(end) if end else None


def _object_id(value) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


class StripeService:
    def __init__(self, api_key: Optional[str] = None):
        stripe.api_key = api_key or settings.stripe_secret_key

    # ------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------

    def create_checkout_session(self, user_id: int, email: str) -> str:
        if not settings.stripe_price_id:
            raise PaymentError("料金プランが設定されていません", status_code=500)

        session = stripe.checkout.Session.create(
            mode="subscription",
            line_items=[{"price": settings.stripe_price_id, "quantity": 1}],
            success_url=f"{settings.app_url}/learning/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.app_url}/learning",
            customer_email=email,
            client_reference_id=str(user_id),
            metadata={"userId": str(user_id)},
        )
        return session.url

    def create_portal_session(self, customer_id: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=f"{settings.app_url}/settings",
            )
        except stripe.InvalidRequestError as e:
            # Raised when the customer portal has not been configured
            raise PaymentError(f"カスタマーポータルを開けません: {e.user_message or e}", status_code=400) from e
        return session.url

    # ------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------

    def retrieve_subscription(self, subscription_id: str):
        return stripe.Subscription.retrieve(subscription_id)

    def cancel_subscription(self, subscription_id: str):
        return stripe.Subscription.cancel(subscription_id)

    def find_active_subscription(self, email: str) -> Optional[dict]:
        """Look a member up by email: returns customer_id and subscription_id."""
        customers = stripe.Customer.list(email=email, limit=1)
        if not customers.data:
            return None
        customer_id = customers.data[0].id
        subscriptions = stripe.Subscription.list(customer=customer_id, status="active", limit=1)
        if not subscriptions.data:
            return None
        return {"customer_id": customer_id, "subscription_id": subscriptions.data[0].id}

    def construct_event(self, payload: bytes, signature: str):
        return stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)


# ============================================================
# WEBHOOK HANDLERS
# ============================================================

def handle_checkout_completed(service: StripeService, session: dict) -> int:
    """Mark the paying user as a member. Returns the user id."""
    metadata = session.get("metadata") or {}
    user_id = metadata.get("userId") or session.get("client_reference_id")
    if not user_id:
        raise PaymentError("No userId found")

    subscription_id = _object_id(session.get("subscription"))
    customer_id = _object_id(session.get("customer"))
    if not subscription_id or not customer_id:
        raise PaymentError("Missing subscription or customer ID")

    subscription = service.retrieve_subscription(subscription_id)

    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE profiles SET is_member = :member, stripe_customer_id = :customer,
                    stripe_subscription_id = :subscription, subscription_status = :status,
                    subscription_period_end = :period_end, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = :uid
            """),
            {
                "member": True, "customer": customer_id, "subscription": subscription_id,
                "status": subscription.get("status"), "period_end": period_end(subscription),
                "uid": int(user_id)
            }
        )
    logger.info("User %s subscribed (%s)", user_id, subscription_id)
    return int(user_id)


def _profile_for_subscription(subscription: dict) -> Optional[dict]:
    profile = fetch_one(
        "SELECT user_id FROM profiles WHERE stripe_subscription_id = :sid",
        {"sid": subscription.get("id")}
    )
    if not profile and subscription.get("customer"):
        profile = fetch_one(
            "SELECT user_id FROM profiles WHERE stripe_customer_id = :cid",
            {"cid": _object_id(subscription.get("customer"))}
        )
    return profile


def handle_subscription_updated(subscription: dict) -> Optional[int]:
    profile = _profile_for_subscription(subscription)
    if not profile:
        logger.warning("No profile for subscription %s", subscription.get("id"))
        return None

    status = subscription.get("status")
    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE profiles SET is_member = :member, subscription_status = :status,
                    subscription_period_end = :period_end, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = :uid
            """),
            {
                "member": status in ("active", "trialing"), "status": status,
                "period_end": period_end(subscription), "uid": profile["user_id"]
            }
        )
    return profile["user_id"]


def handle_subscription_deleted(subscription: dict) -> Optional[int]:
    profile = _profile_for_subscription(subscription)
    if not profile:
        logger.warning("No profile for deleted subscription %s", subscription.get("id"))
        return None

    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE profiles SET is_member = :member, subscription_status = 'canceled',
                    stripe_subscription_id = NULL, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = :uid
            """),
            {"member": False, "uid": profile["user_id"]}
        )
    logger.info("Membership ended for user %s", profile["user_id"])
    return profile["user_id"]


WEBHOOK_HANDLERS = {
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
}


# Singleton instance
_stripe_service: StripeService = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service (singleton pattern)"""
    global _stripe_service
    if _stripe_service is None:
        _stripe_service = StripeService()
    return _stripe_service
