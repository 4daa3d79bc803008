import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from app.core.errors import LedgerError
from app.core.locks import KeyedLock
from app.models.campaign import Campaign
from app.models.donation import Donation
from app.schemas.webhook import WebhookEvent

logger = logging.getLogger("app.ledger")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FundraisingLedger:
    """
    Applies payment outcomes to donations and campaign totals.

    Each call opens its own session; work on a single donation is serialized
    so a webhook and a manual confirm can't both credit the campaign.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._locks = KeyedLock()

    # -- webhook handlers -------------------------------------------------

    def record_payment_succeeded(self, event: WebhookEvent) -> None:
        intent = event.data_object
        intent_id = _require_object_id(event)
        logger.info("Payment succeeded: %s", intent_id)

        donation_id = self._resolve_donation_id(intent_id, intent)
        if donation_id is None:
            logger.warning("No donation for payment intent %s; nothing to credit", intent_id)
            return
        self.complete_donation(donation_id, payment_intent_id=intent_id)

    def record_payment_failed(self, event: WebhookEvent) -> None:
        intent = event.data_object
        intent_id = _require_object_id(event)
        error = intent.get("last_payment_error") or {}
        reason = (error.get("message") if isinstance(error, dict) else None) or "payment failed"
        logger.info("Payment failed: %s (%s)", intent_id, reason)

        donation_id = self._resolve_donation_id(intent_id, intent)
        if donation_id is None:
            logger.warning("No donation for failed payment intent %s", intent_id)
            return

        with self._locks.hold(donation_id), self._session_factory() as db:
            donation = db.get(Donation, donation_id)
            if donation is None:
                logger.warning("Donation %s vanished before failure notice", donation_id)
                return
            if donation.status != "pending":
                logger.info(
                    "Donation %s is %s; ignoring failure notice", donation.id, donation.status
                )
                return
            donation.status = "failed"
            donation.failure_reason = reason[:400]
            db.commit()

    def flag_dispute(self, event: WebhookEvent) -> None:
        dispute = event.data_object
        dispute_id = _require_object_id(event)
        intent_id = dispute.get("payment_intent")
        logger.warning(
            "Charge dispute created: %s payment_intent=%s reason=%s",
            dispute_id,
            intent_id,
            dispute.get("reason"),
        )

        donation_id = self._resolve_donation_id(intent_id, dispute) if intent_id else None
        if donation_id is None:
            logger.warning("Dispute %s matches no donation; review manually", dispute_id)
            return

        with self._locks.hold(donation_id), self._session_factory() as db:
            donation = db.get(Donation, donation_id)
            if donation is None:
                logger.warning("Dispute %s: donation %s no longer exists", dispute_id, donation_id)
                return
            donation.status = "disputed"
            donation.flagged_for_review = True
            db.commit()
        logger.warning("Donation %s flagged for manual review", donation_id)

    # -- shared with the donation routes ----------------------------------

    def complete_donation(
        self, donation_id: str, payment_intent_id: str | None = None
    ) -> bool:
        """Mark a donation completed and credit its campaign. False if already done."""
        with self._locks.hold(donation_id), self._session_factory() as db:
            donation = db.get(Donation, donation_id)
            if donation is None:
                raise LedgerError(f"Donation {donation_id} not found")
            if donation.status == "completed":
                logger.info("Donation %s already completed", donation.id)
                return False
            if donation.status not in ("pending", "failed"):
                logger.warning(
                    "Donation %s is %s; not completing", donation.id, donation.status
                )
                return False

            donation.status = "completed"
            donation.failure_reason = None
            donation.completed_at = _utcnow()
            if payment_intent_id and not donation.payment_intent_id:
                donation.payment_intent_id = payment_intent_id

            campaign = db.get(Campaign, donation.campaign_id)
            if campaign is not None:
                campaign.current_amount += donation.amount
                campaign.donor_count += 1
            db.commit()

        logger.info("Donation %s completed, campaign credited", donation_id)
        return True

    def refund_donation(self, donation_id: str) -> None:
        with self._locks.hold(donation_id), self._session_factory() as db:
            donation = db.get(Donation, donation_id)
            if donation is None:
                raise LedgerError(f"Donation {donation_id} not found")
            if donation.status == "refunded":
                return

            if donation.is_credited:
                campaign = db.get(Campaign, donation.campaign_id)
                if campaign is not None:
                    campaign.current_amount = max(campaign.current_amount - donation.amount, 0)
                    campaign.donor_count = max(campaign.donor_count - 1, 0)
            donation.status = "refunded"
            db.commit()
        logger.info("Donation %s refunded", donation_id)

    def _resolve_donation_id(self, intent_id: str, obj: dict) -> str | None:
        with self._session_factory() as db:
            donation = (
                db.query(Donation)
                .filter(Donation.payment_intent_id == intent_id)
                .first()
            )
            if donation is not None:
                return donation.id

            metadata = obj.get("metadata") or {}
            donation_id = metadata.get("donation_id")
            if donation_id and db.get(Donation, donation_id) is not None:
                return donation_id
        return None


def _require_object_id(event: WebhookEvent) -> str:
    obj_id = event.data_object.get("id")
    if not obj_id:
        raise LedgerError(f"Event {event.id} payload has no object id")
    return obj_id
