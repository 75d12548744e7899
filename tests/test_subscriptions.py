from datetime import datetime

import pytest
import stripe

from frog_portal.api.routes import subscription_routes
from frog_portal.services.stripe_service import period_end
from tests.conftest import make_member, scalar, sql

PERIOD_END = 1893456000  # 2030-01-01 00:00:00 UTC


class FakeStripe:
    def __init__(self):
        self.calls = []
        self.cancel_error = None
        self.subscription = {"id": "sub_123", "status": "active", "current_period_end": PERIOD_END}
        self.active = {"customer_id": "cus_found", "subscription_id": "sub_found"}
        self.event = None

    def create_checkout_session(self, user_id, email):
        self.calls.append(("checkout", user_id, email))
        return "https://checkout.stripe.com/c/pay/cs_test"

    def create_portal_session(self, customer_id):
        self.calls.append(("portal", customer_id))
        return "https://billing.stripe.com/p/session/test"

    def cancel_subscription(self, subscription_id):
        self.calls.append(("cancel", subscription_id))
        if self.cancel_error:
            raise self.cancel_error
        return {"id": subscription_id, "status": "canceled"}

    def retrieve_subscription(self, subscription_id):
        self.calls.append(("retrieve", subscription_id))
        return dict(self.subscription, id=subscription_id)

    def find_active_subscription(self, email):
        self.calls.append(("find", email))
        return self.active

    def construct_event(self, payload, signature):
        if signature != "t=1,v1=valid":
            raise stripe.SignatureVerificationError("No signatures found", signature)
        return self.event


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(subscription_routes, "get_stripe_service", lambda: fake)
    return fake


def send_event(client, fake_stripe, event_type, obj):
    fake_stripe.event = {"id": "evt_1", "type": event_type, "data": {"object": obj}}
    return client.post("/api/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=valid"})


def status_of(client, user):
    return client.get("/api/subscriptions/status", headers=user["headers"]).json()


def test_period_end_falls_back_to_items():
    assert period_end({"current_period_end": PERIOD_END}) == datetime(2030, 1, 1)
    assert period_end({"items": {"data": [{"current_period_end": PERIOD_END}]}}) == datetime(2030, 1, 1)
    assert period_end({}) is None


class TestSessions:
    def test_checkout(self, client, user, fake_stripe):
        response = client.post("/api/subscriptions/checkout", headers=user["headers"])
        assert response.json() == {"url": "https://checkout.stripe.com/c/pay/cs_test"}
        assert fake_stripe.calls == [("checkout", user["user_id"], "taro@example.com")]

    def test_checkout_for_member(self, client, user, fake_stripe):
        make_member(user["user_id"])
        assert client.post("/api/subscriptions/checkout", headers=user["headers"]).status_code == 400

    def test_portal_needs_customer(self, client, user, fake_stripe):
        assert client.post("/api/subscriptions/portal", headers=user["headers"]).status_code == 404
        make_member(user["user_id"])
        response = client.post("/api/subscriptions/portal", headers=user["headers"])
        assert response.json()["url"].startswith("https://billing.stripe.com/")
        assert fake_stripe.calls == [("portal", "cus_123")]

    def test_stripe_outage(self, client, user, fake_stripe, monkeypatch):
        def fail(user_id, email):
            raise stripe.APIConnectionError("connection refused")
        monkeypatch.setattr(fake_stripe, "create_checkout_session", fail)
        assert client.post("/api/subscriptions/checkout", headers=user["headers"]).status_code == 502


class TestCancel:
    def test_cancel(self, client, user, fake_stripe):
        make_member(user["user_id"])
        response = client.post("/api/subscriptions/cancel", headers=user["headers"])
        assert response.status_code == 200
        assert fake_stripe.calls == [("cancel", "sub_123")]
        assert status_of(client, user)["is_member"] is False
        assert scalar("SELECT stripe_subscription_id FROM profiles WHERE user_id = :uid",
                      {"uid": user["user_id"]}) is None

    def test_already_canceled_counts_as_success(self, client, user, fake_stripe):
        make_member(user["user_id"])
        fake_stripe.cancel_error = stripe.InvalidRequestError("No such subscription", "id")
        fake_stripe.subscription["status"] = "canceled"
        response = client.post("/api/subscriptions/cancel", headers=user["headers"])
        assert response.status_code == 200
        assert status_of(client, user)["subscription_status"] == "canceled"

    def test_cancel_rejected(self, client, user, fake_stripe):
        make_member(user["user_id"])
        fake_stripe.cancel_error = stripe.InvalidRequestError("Cannot cancel", "id")
        response = client.post("/api/subscriptions/cancel", headers=user["headers"])
        assert response.status_code == 400
        assert status_of(client, user)["is_member"] is True

    def test_no_subscription(self, client, user, fake_stripe):
        assert client.post("/api/subscriptions/cancel", headers=user["headers"]).status_code == 404


class TestSync:
    @pytest.fixture
    def member_without_ids(self, user):
        sql("UPDATE profiles SET is_member = :member WHERE user_id = :uid", {"member": True, "uid": user["user_id"]})
        return user

    def test_recovers_ids_by_email(self, client, member_without_ids, fake_stripe):
        user = member_without_ids
        response = client.post("/api/subscriptions/sync", headers=user["headers"])
        assert response.status_code == 200
        assert response.json()["is_member"] is True
        assert response.json()["subscription_status"] == "active"
        assert scalar("SELECT stripe_customer_id FROM profiles WHERE user_id = :uid",
                      {"uid": user["user_id"]}) == "cus_found"

    def test_nothing_found(self, client, member_without_ids, fake_stripe):
        fake_stripe.active = None
        assert client.post("/api/subscriptions/sync", headers=member_without_ids["headers"]).status_code == 404

    def test_non_member_is_not_granted_membership(self, client, user, fake_stripe):
        response = client.post("/api/subscriptions/sync", headers=user["headers"])
        assert response.status_code == 200
        assert response.json()["is_member"] is False
        assert fake_stripe.calls == []
        assert scalar("SELECT stripe_subscription_id FROM profiles WHERE user_id = :uid",
                      {"uid": user["user_id"]}) is None

    def test_already_linked(self, client, user, fake_stripe):
        make_member(user["user_id"])
        assert client.post("/api/subscriptions/sync", headers=user["headers"]).json()["is_member"] is True
        assert fake_stripe.calls == []


class TestWebhook:
    def test_missing_signature(self, client, fake_stripe):
        assert client.post("/api/stripe/webhook", content=b"{}").status_code == 400

    def test_bad_signature(self, client, fake_stripe):
        response = client.post("/api/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=forged"})
        assert response.status_code == 400

    def test_checkout_completed(self, client, user, fake_stripe, webhook_events):
        response = send_event(client, fake_stripe, "checkout.session.completed", {
            "id": "cs_1", "metadata": {"userId": str(user["user_id"])},
            "subscription": "sub_new", "customer": {"id": "cus_new"},
        })
        assert response.json() == {"received": True}
        status = status_of(client, user)
        assert status["is_member"] is True
        assert status["subscription_period_end"].startswith("2030-01-01")
        assert webhook_events[-1]["event_type"] == "checkout.session.completed"

    def test_checkout_without_user(self, client, fake_stripe):
        response = send_event(client, fake_stripe, "checkout.session.completed",
                              {"id": "cs_1", "subscription": "sub_new", "customer": "cus_new"})
        assert response.status_code == 400
        assert response.json()["detail"] == "No userId found"

    @pytest.mark.parametrize("status, member", [("active", True), ("trialing", True), ("past_due", False)])
    def test_subscription_updated(self, client, user, fake_stripe, status, member):
        make_member(user["user_id"])
        send_event(client, fake_stripe, "customer.subscription.updated",
                   {"id": "sub_123", "customer": "cus_123", "status": status})
        assert status_of(client, user)["is_member"] is member
        assert status_of(client, user)["subscription_status"] == status

    def test_subscription_deleted_matched_by_customer(self, client, user, fake_stripe):
        make_member(user["user_id"], subscription_id="sub_old")
        send_event(client, fake_stripe, "customer.subscription.deleted",
                   {"id": "sub_other", "customer": "cus_123", "status": "canceled"})
        assert status_of(client, user) == {
            "is_member": False, "subscription_status": "canceled", "subscription_period_end": None
        }

    def test_other_events_acknowledged(self, client, fake_stripe, webhook_events):
        response = send_event(client, fake_stripe, "invoice.paid", {"id": "in_1"})
        assert response.status_code == 200
        assert webhook_events[-1]["handled"] is False
