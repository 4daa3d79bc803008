"""Integration tests for the Stripe webhook endpoint."""

import json

import pytest

from app.models.campaign import Campaign
from app.models.donation import Donation
from app.services.webhooks import InMemoryWebhookEventStore

WEBHOOK_URL = "/api/webhooks/stripe"


def _post_event(client, event: dict, signature: str | None = "t=1,v1=test"):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["stripe-signature"] = signature
    return client.post(WEBHOOK_URL, content=json.dumps(event), headers=headers)


def _intent_event(event_id: str, event_type: str, intent: dict) -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": intent}}


@pytest.fixture()
def pending_donation(client, db):
    donation = Donation(
        id="donation-77",
        campaign_id="campaign-1",
        donor_id="student-1",
        donor_name="Alex Thompson",
        amount=5000,
        currency="usd",
        processor_fee=175,
        platform_fee=250,
        status="pending",
        payment_intent_id="pi_77",
    )
    db.add(donation)
    db.commit()
    return donation.id


def _campaign(db, campaign_id="campaign-1") -> Campaign:
    db.expire_all()
    return db.get(Campaign, campaign_id)


def _donation(db, donation_id) -> Donation:
    db.expire_all()
    return db.get(Donation, donation_id)


class TestWebhookEndpoint:
    def test_missing_signature(self, client):
        response = _post_event(client, _intent_event("evt_1", "foo.bar", {}), signature=None)
        assert response.status_code == 400
        assert response.json()["detail"] == "Webhook Error: Missing stripe-signature header"

    def test_invalid_json(self, client):
        response = client.post(
            WEBHOOK_URL, content=b"{not json", headers={"stripe-signature": "t=1,v1=x"}
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Webhook Error: ")

    def test_unknown_type_is_acknowledged(self, client):
        response = _post_event(client, _intent_event("evt_foo", "foo.bar", {"id": "x"}))
        assert response.status_code == 200
        assert response.json() == {"received": True, "eventId": "evt_foo", "duplicate": False}

    def test_payment_succeeded_credits_campaign_once(self, client, db, pending_donation):
        event = _intent_event("evt_ok", "payment_intent.succeeded", {"id": "pi_77"})

        first = _post_event(client, event)
        assert first.status_code == 200
        assert first.json()["duplicate"] is False

        donation = _donation(db, pending_donation)
        assert donation.status == "completed"
        assert donation.completed_at is not None
        campaign = _campaign(db)
        assert campaign.current_amount == 275000 + 5000
        assert campaign.donor_count == 16

        again = _post_event(client, event)
        assert again.status_code == 200
        assert again.json() == {"received": True, "eventId": "evt_ok", "duplicate": True}
        assert _campaign(db).current_amount == 275000 + 5000

    def test_resolves_donation_from_metadata(self, client, db, pending_donation):
        event = _intent_event(
            "evt_meta",
            "payment_intent.succeeded",
            {"id": "pi_other", "metadata": {"donation_id": pending_donation}},
        )
        assert _post_event(client, event).status_code == 200
        assert _donation(db, pending_donation).status == "completed"

    def test_payment_failed(self, client, db, pending_donation):
        event = _intent_event(
            "evt_fail",
            "payment_intent.payment_failed",
            {"id": "pi_77", "last_payment_error": {"message": "Your card has insufficient funds."}},
        )
        assert _post_event(client, event).status_code == 200

        donation = _donation(db, pending_donation)
        assert donation.status == "failed"
        assert donation.failure_reason == "Your card has insufficient funds."
        assert _campaign(db).current_amount == 275000

    def test_dispute_flags_donation(self, client, db, pending_donation):
        event = _intent_event(
            "evt_dispute",
            "charge.dispute.created",
            {"id": "dp_1", "payment_intent": "pi_77", "reason": "fraudulent"},
        )
        assert _post_event(client, event).status_code == 200

        donation = _donation(db, pending_donation)
        assert donation.status == "disputed"
        assert donation.flagged_for_review is True

    def test_handler_failure_is_retried(self, client, db, admin_headers):
        broken = _intent_event("evt_broken", "payment_intent.succeeded", {})

        response = _post_event(client, broken)
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Webhook Error: ")

        stored = client.get("/api/webhooks/events/evt_broken", headers=admin_headers).json()
        assert stored["status"] == "failed"
        assert stored["processed"] is False
        assert stored["error"]

        # redelivery runs the handler again instead of reporting a duplicate
        assert _post_event(client, broken).status_code == 400


class TestEventLog:
    def test_admin_can_list_events(self, client, admin_headers):
        _post_event(client, _intent_event("evt_a", "foo.bar", {}))
        _post_event(client, _intent_event("evt_b", "customer.created", {}))

        events = client.get("/api/webhooks/events", headers=admin_headers).json()
        assert {e["id"] for e in events} == {"evt_a", "evt_b"}

        only_foo = client.get(
            "/api/webhooks/events", params={"type": "foo.bar"}, headers=admin_headers
        ).json()
        assert [e["id"] for e in only_foo] == ["evt_a"]

        single = client.get("/api/webhooks/events/evt_a", headers=admin_headers).json()
        assert single["type"] == "foo.bar"
        assert single["processed"] is True

    def test_unknown_event(self, client, admin_headers):
        response = client.get("/api/webhooks/events/evt_missing", headers=admin_headers)
        assert response.status_code == 404

    def test_students_forbidden(self, client, student_headers):
        assert client.get("/api/webhooks/events", headers=student_headers).status_code == 403


def test_in_memory_store(make_client, gateway):
    store = InMemoryWebhookEventStore()
    client = make_client(gateway=gateway, event_store=store)

    response = _post_event(client, _intent_event("evt_mem", "foo.bar", {}))

    assert response.status_code == 200
    assert store.get("evt_mem").processed is True
