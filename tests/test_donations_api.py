"""Integration tests for the donation endpoints."""

from types import SimpleNamespace

import pytest
import stripe

from conftest import STUDENT_EMAIL


def _donate(client, headers, **overrides):
    body = {"amount": 5000, "campaign_id": "campaign-1", "message": "Go team!"}
    body.update(overrides)
    return client.post("/api/donations", json=body, headers=headers)


@pytest.fixture()
def stripe_client(make_client, enabled_gateway, monkeypatch):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id=f"pi_{len(calls)}", client_secret="secret_abc", status="requires_payment_method")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)
    client = make_client(gateway=enabled_gateway)
    client.intent_calls = calls
    return client


class TestDisabledPayments:
    def test_donation_stays_pending(self, client, student_headers):
        response = _donate(client, student_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["payments_enabled"] is False
        assert body["payment"] is None
        assert body["donation"]["status"] == "pending"
        assert body["donation"]["processor_fee"] == 175
        assert body["donation"]["platform_fee"] == 250
        assert body["donation"]["donor_name"] == "Alex Thompson"

    def test_anonymous(self, client, student_headers):
        body = _donate(client, student_headers, anonymous=True).json()
        assert body["donation"]["donor_name"] == "Anonymous"

    def test_paused_campaign_rejected(self, client, student_headers):
        assert _donate(client, student_headers, campaign_id="campaign-3").status_code == 409

    def test_unknown_campaign(self, client, student_headers):
        assert _donate(client, student_headers, campaign_id="nope").status_code == 404

    @pytest.mark.parametrize("amount", [0, -5, 10.5, 5000.0, True])
    def test_invalid_amount(self, client, student_headers, amount):
        assert _donate(client, student_headers, amount=amount).status_code == 422

    def test_requires_auth(self, client):
        assert _donate(client, {}).status_code == 401


class TestEnabledPayments:
    def test_creates_payment_intent(self, stripe_client, login):
        headers = login(stripe_client, STUDENT_EMAIL)
        response = _donate(stripe_client, headers)

        assert response.status_code == 201
        body = response.json()
        donation = body["donation"]
        assert body["payments_enabled"] is True
        assert body["payment"]["payment_intent_id"] == "pi_1"
        assert body["payment"]["client_secret"] == "secret_abc"
        assert body["payment"]["fees"]["total_charge"] == 5425
        assert donation["payment_intent_id"] == "pi_1"

        call = stripe_client.intent_calls[0]
        assert call["amount"] == 5425
        assert call["metadata"]["donation_id"] == donation["id"]
        assert call["metadata"]["campaign_id"] == "campaign-1"

    def test_provider_failure(self, make_client, enabled_gateway, monkeypatch, login):
        def create(**kwargs):
            raise stripe.CardError("Your card was declined.", None, "card_declined")

        monkeypatch.setattr(stripe.PaymentIntent, "create", create)
        client = make_client(gateway=enabled_gateway)
        headers = login(client, STUDENT_EMAIL)

        response = _donate(client, headers)

        assert response.status_code == 502
        assert response.json()["detail"] == "Your card was declined."

    def test_confirm_credits_campaign(self, stripe_client, login, monkeypatch):
        headers = login(stripe_client, STUDENT_EMAIL)
        donation = _donate(stripe_client, headers).json()["donation"]
        monkeypatch.setattr(
            stripe.PaymentIntent,
            "retrieve",
            lambda intent_id, **kw: SimpleNamespace(id=intent_id, status="succeeded"),
        )

        response = stripe_client.post(f"/api/donations/{donation['id']}/confirm", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        campaign = stripe_client.get("/api/campaigns/campaign-1").json()
        assert campaign["current_amount"] == 275000 + 5000
        assert campaign["donor_count"] == 16

        # confirming twice doesn't double count
        stripe_client.post(f"/api/donations/{donation['id']}/confirm", headers=headers)
        campaign = stripe_client.get("/api/campaigns/campaign-1").json()
        assert campaign["current_amount"] == 275000 + 5000

    def test_confirm_not_yet_paid(self, stripe_client, login, monkeypatch):
        headers = login(stripe_client, STUDENT_EMAIL)
        donation = _donate(stripe_client, headers).json()["donation"]
        monkeypatch.setattr(
            stripe.PaymentIntent,
            "retrieve",
            lambda intent_id, **kw: SimpleNamespace(id=intent_id, status="requires_payment_method"),
        )

        response = stripe_client.post(f"/api/donations/{donation['id']}/confirm", headers=headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "Payment status: requires_payment_method"

    def test_admin_refund(self, stripe_client, login, monkeypatch):
        headers = login(stripe_client, STUDENT_EMAIL)
        admin = login(stripe_client, "admin@believefundraising.com")
        donation = _donate(stripe_client, headers).json()["donation"]
        monkeypatch.setattr(
            stripe.PaymentIntent,
            "retrieve",
            lambda intent_id, **kw: SimpleNamespace(id=intent_id, status="succeeded"),
        )
        refunds = []
        monkeypatch.setattr(
            stripe.Refund,
            "create",
            lambda **kw: refunds.append(kw) or SimpleNamespace(id="re_1", status="succeeded"),
        )
        stripe_client.post(f"/api/donations/{donation['id']}/confirm", headers=headers)

        response = stripe_client.delete(f"/api/donations/{donation['id']}", headers=admin)

        assert response.status_code == 200
        assert response.json()["status"] == "refunded"
        assert refunds == [{"api_key": "sk_test_123", "payment_intent": "pi_1"}]
        campaign = stripe_client.get("/api/campaigns/campaign-1").json()
        assert campaign["current_amount"] == 275000

    def test_refund_of_disputed_donation(self, stripe_client, login, monkeypatch):
        headers = login(stripe_client, STUDENT_EMAIL)
        admin = login(stripe_client, "admin@believefundraising.com")
        donation = _donate(stripe_client, headers).json()["donation"]
        refunds = []
        monkeypatch.setattr(
            stripe.Refund,
            "create",
            lambda **kw: refunds.append(kw) or SimpleNamespace(id="re_1", status="succeeded"),
        )
        webhook_headers = {"stripe-signature": "t=1,v1=test"}
        stripe_client.post(
            "/api/webhooks/stripe",
            json={"id": "evt_paid", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}},
            headers=webhook_headers,
        )
        stripe_client.post(
            "/api/webhooks/stripe",
            json={
                "id": "evt_dispute",
                "type": "charge.dispute.created",
                "data": {"object": {"id": "dp_1", "payment_intent": "pi_1"}},
            },
            headers=webhook_headers,
        )
        campaign = stripe_client.get("/api/campaigns/campaign-1").json()
        assert campaign["current_amount"] == 280000

        response = stripe_client.delete(f"/api/donations/{donation['id']}", headers=admin)

        assert response.status_code == 200
        assert response.json()["status"] == "refunded"
        assert [r["payment_intent"] for r in refunds] == ["pi_1"]
        campaign = stripe_client.get("/api/campaigns/campaign-1").json()
        assert campaign["current_amount"] == 275000
        assert campaign["donor_count"] == 15


class TestListings:
    def test_admin_lists_all(self, client, admin_headers):
        body = client.get("/api/donations", headers=admin_headers).json()
        assert body["total"] == 2

    def test_non_admin_forbidden(self, client, student_headers):
        assert client.get("/api/donations", headers=student_headers).status_code == 403

    def test_campaign_donations_are_public(self, client, student_headers):
        _donate(client, student_headers)  # pending, not listed
        body = client.get("/api/donations/campaign/campaign-1").json()
        assert body["total"] == 2
        assert {d["donor_name"] for d in body["data"]} == {"John Smith", "Anonymous"}

    def test_my_donations(self, client, student_headers):
        _donate(client, student_headers)
        body = client.get("/api/donations/my-donations", headers=student_headers).json()
        assert body["total"] == 3

    def test_admin_update(self, client, admin_headers):
        response = client.put(
            "/api/donations/donation-1", json={"message": "Thanks!"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Thanks!"

    def test_admin_update_cannot_change_status(self, client, admin_headers, student_headers):
        pending = _donate(client, student_headers).json()["donation"]

        response = client.put(
            f"/api/donations/{pending['id']}", json={"status": "completed"}, headers=admin_headers
        )

        assert response.status_code == 422
        mine = client.get("/api/donations/my-donations", headers=student_headers).json()
        assert {d["id"]: d["status"] for d in mine["data"]}[pending["id"]] == "pending"
        campaign = client.get("/api/campaigns/campaign-1").json()
        assert campaign["current_amount"] == 275000

    def test_admin_clears_review_flag(self, client, admin_headers):
        response = client.put(
            "/api/donations/donation-1", json={"flagged_for_review": True}, headers=admin_headers
        )
        assert response.json()["flagged_for_review"] is True
        response = client.put(
            "/api/donations/donation-1", json={"flagged_for_review": False}, headers=admin_headers
        )
        assert response.json()["flagged_for_review"] is False
        assert response.json()["status"] == "completed"

    def test_refund_without_payment_intent(self, client, admin_headers):
        response = client.delete("/api/donations/donation-1", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "refunded"
        campaign = client.get("/api/campaigns/campaign-1").json()
        assert campaign["current_amount"] == 275000 - 5000


class TestPaymentEndpoints:
    def test_status_disabled(self, client):
        body = client.get("/api/payments/status").json()
        assert body == {"enabled": False, "currency": "usd", "publishable_key": None}

    def test_fee_preview(self, client):
        body = client.get("/api/payments/fees", params={"amount": 5000}).json()
        assert body["fees"]["processor_fee"] == 175
        assert body["fees"]["platform_fee"] == 250
        assert body["fees"]["net_amount"] == 4575
        assert body["formatted"]["total_charge"] == "54.25"

    def test_fee_preview_rejects_zero(self, client):
        assert client.get("/api/payments/fees", params={"amount": 0}).status_code == 422
