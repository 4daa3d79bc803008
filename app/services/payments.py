import logging

import stripe

from app.core.config import DEV_STRIPE_KEY, Settings
from app.core.errors import InvalidAmount
from app.core.fees import FeeBreakdown, FeeSchedule, calculate_fees, validate_amount
from app.schemas.payment import PaymentIntentRequest, PaymentResult

logger = logging.getLogger("app.payments")

NOT_CONFIGURED = "Stripe is not configured or enabled"


class PaymentGateway:
    """
    Thin wrapper over the Stripe SDK.

    Every public operation returns a PaymentResult; provider failures are
    reported in `error` and never raised to the caller. Without a usable API
    key the gateway is disabled and short-circuits before any network call.
    """

    def __init__(
        self,
        api_key: str | None,
        schedule: FeeSchedule | None = None,
        currency: str = "usd",
    ):
        self._api_key = api_key
        self.schedule = schedule or FeeSchedule()
        self.currency = currency.lower()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGateway":
        return cls(
            api_key=settings.STRIPE_API_KEY if settings.payments_enabled else None,
            schedule=FeeSchedule(
                processor_bps=settings.STRIPE_FEE_BPS,
                processor_flat=settings.STRIPE_FEE_FLAT_CENTS,
                platform_bps=settings.PLATFORM_FEE_BPS,
            ),
            currency=settings.STRIPE_CURRENCY,
        )

    def is_enabled(self) -> bool:
        return bool(self._api_key) and self._api_key != DEV_STRIPE_KEY

    def calculate_fees(self, amount: int, currency: str | None = None) -> FeeBreakdown:
        return calculate_fees(amount, currency or self.currency, self.schedule)

    def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentResult:
        if not self.is_enabled():
            return PaymentResult(success=False, error=NOT_CONFIGURED)

        try:
            fees = self.calculate_fees(request.amount, request.currency)
        except InvalidAmount as e:
            return PaymentResult(success=False, error=e.message)

        metadata = {
            **request.metadata,
            "original_amount": str(fees.gross_amount),
            "processor_fee": str(fees.processor_fee),
            "platform_fee": str(fees.platform_fee),
        }
        params = dict(
            amount=fees.total_charge,
            currency=fees.currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )
        if request.description:
            params["description"] = request.description
        if request.idempotency_key:
            params["idempotency_key"] = request.idempotency_key

        try:
            intent = stripe.PaymentIntent.create(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            logger.error("Stripe payment intent creation failed: %s", e)
            return PaymentResult(
                success=False,
                fees=fees,
                error=_error_message(e, "Payment processing failed"),
            )

        logger.info(
            "payment intent created id=%s amount=%s currency=%s",
            intent.id,
            fees.total_charge,
            fees.currency,
        )
        return PaymentResult(
            success=True,
            payment_intent_id=intent.id,
            client_secret=getattr(intent, "client_secret", None),
            status=getattr(intent, "status", None),
            fees=fees,
        )

    def confirm_payment(self, payment_intent_id: str) -> PaymentResult:
        if not self.is_enabled():
            return PaymentResult(success=False, error=NOT_CONFIGURED)

        try:
            intent = stripe.PaymentIntent.retrieve(
                payment_intent_id, api_key=self._api_key
            )
        except stripe.StripeError as e:
            logger.error("Stripe payment confirmation failed: %s", e)
            return PaymentResult(
                success=False,
                payment_intent_id=payment_intent_id,
                error=_error_message(e, "Payment confirmation failed"),
            )

        if intent.status != "succeeded":
            return PaymentResult(
                success=False,
                payment_intent_id=intent.id,
                status=intent.status,
                error=f"Payment status: {intent.status}",
            )
        return PaymentResult(
            success=True, payment_intent_id=intent.id, status=intent.status
        )

    def refund_payment(
        self, payment_intent_id: str, amount: int | None = None
    ) -> PaymentResult:
        if not self.is_enabled():
            return PaymentResult(success=False, error=NOT_CONFIGURED)

        params: dict = {"payment_intent": payment_intent_id}
        if amount is not None:
            # partial refund; omitted means full
            try:
                params["amount"] = validate_amount(amount)
            except InvalidAmount as e:
                return PaymentResult(success=False, error=e.message)

        try:
            refund = stripe.Refund.create(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            logger.error("Stripe refund failed: %s", e)
            return PaymentResult(
                success=False,
                payment_intent_id=payment_intent_id,
                error=_error_message(e, "Refund failed"),
            )

        logger.info(
            "refund created id=%s payment_intent=%s amount=%s",
            refund.id,
            payment_intent_id,
            amount if amount is not None else "full",
        )
        return PaymentResult(
            success=True,
            payment_intent_id=payment_intent_id,
            refund_id=refund.id,
            status=getattr(refund, "status", None),
        )


def _error_message(exc: stripe.StripeError, fallback: str) -> str:
    return getattr(exc, "user_message", None) or str(exc) or fallback
