"""
Stripe Card Payments

Active when ENV_MODE is staging or production. Needs STRIPE_SECRET_KEY;
STRIPE_WEBHOOK_SECRET turns on signature checks for the webhook route.

Card data never passes through this service. The browser confirms the card
against the client_secret, and the order is settled from whatever
retrieve_outcome (or the webhook) reports afterwards.
"""

import json
import logging
import time
from typing import Optional

import stripe
from stripe import (
    StripeError,
    CardError,
    InvalidRequestError,
    AuthenticationError,
    APIConnectionError,
    SignatureVerificationError,
)

from restaurant_billing.core.config import get_settings
from restaurant_billing.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
    PaymentOutcome,
    PaymentOutcomeResult,
)

logger = logging.getLogger(__name__)

STRIPE_API_VERSION = "2023-10-16"

# Checked in order; StripeError must stay last as the catch-all
_CREATE_ERRORS = (
    (InvalidRequestError, "invalid_request", None),
    (AuthenticationError, "authentication_error", "Payment service configuration error"),
    (APIConnectionError, "connection_error", "Payment service temporarily unavailable"),
    (StripeError, "stripe_error", None),
)


def _map_intent_status(intent) -> PaymentOutcome:
    """Collapse Stripe's PaymentIntent statuses onto PaymentOutcome."""
    if intent.status == "succeeded":
        return PaymentOutcome.SUCCEEDED
    if intent.status == "canceled":
        return PaymentOutcome.CANCELED
    # A declined attempt sends the intent back to requires_payment_method
    if intent.status == "requires_payment_method" and intent.get("last_payment_error"):
        return PaymentOutcome.FAILED
    return PaymentOutcome.PENDING


class StripePaymentService(BasePaymentService):
    """Card payments through the Stripe PaymentIntents API."""

    def __init__(self):
        settings = get_settings()

        if not settings.stripe_secret_key:
            raise ValueError(
                f"STRIPE_SECRET_KEY is required when ENV_MODE={settings.env_mode.value}"
            )

        stripe.api_key = settings.stripe_secret_key
        stripe.api_version = STRIPE_API_VERSION

        self._webhook_secret = settings.stripe_webhook_secret
        self._currency = settings.stripe_currency

        logger.info(f"💳 Stripe payments enabled (api_version={STRIPE_API_VERSION})")

    @property
    def provider_name(self) -> str:
        return "stripe"

    async def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[dict] = None,
    ) -> PaymentIntentResult:
        """
        Open a PaymentIntent for ``amount`` minor units.

        Stripe errors come back as an unsuccessful result carrying an
        error_code; only the amount check happens locally.
        """
        currency = (currency or self._currency).lower()

        if amount <= 0:
            return PaymentIntentResult(
                success=False,
                currency=currency,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        started = time.perf_counter()
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata={"source": "restaurant_billing", **(metadata or {})},
                automatic_payment_methods={"enabled": True},
            )
        except StripeError as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            code, message = next(
                (code, message) for error_type, code, message in _CREATE_ERRORS
                if isinstance(e, error_type)
            )
            log = logger.critical if code == "authentication_error" else logger.error
            log(f"Stripe: create_intent failed ({code}) - {e}")

            return PaymentIntentResult(
                success=False,
                currency=currency,
                error_message=message or str(e),
                error_code=code,
                response_time_ms=elapsed_ms,
            )

        logger.info(f"Stripe: {intent.id} opened for {intent.amount} {intent.currency}")

        return PaymentIntentResult(
            success=True,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
            response_time_ms=(time.perf_counter() - started) * 1000,
        )

    async def retrieve_outcome(self, payment_intent_id: str) -> PaymentOutcomeResult:
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        except CardError as e:
            logger.warning(f"Stripe: {payment_intent_id} declined - {e.code}")
            return PaymentOutcomeResult(
                outcome=PaymentOutcome.FAILED,
                payment_intent_id=payment_intent_id,
                error_message=e.user_message,
                error_code=e.code,
            )
        except StripeError as e:
            logger.error(f"Stripe: lookup of {payment_intent_id} failed - {e}")
            return PaymentOutcomeResult(
                outcome=PaymentOutcome.ERROR,
                payment_intent_id=payment_intent_id,
                error_message=e.user_message or str(e),
                error_code=e.code or "stripe_error",
            )

        outcome = _map_intent_status(intent)
        logger.info(f"Stripe: {intent.id} is {intent.status} -> {outcome.value}")

        result = PaymentOutcomeResult(
            outcome=outcome,
            payment_intent_id=intent.id,
            amount=intent.amount_received or intent.amount,
            currency=intent.currency,
            metadata={key: str(value) for key, value in (intent.get("metadata") or {}).items()},
        )
        last_error = intent.get("last_payment_error")
        if outcome == PaymentOutcome.FAILED and last_error:
            result.error_message = last_error.get("message")
            result.error_code = last_error.get("code")
        return result

    async def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> Optional[dict]:
        """
        Parse a webhook body, checking its signature when a secret is set.

        Without STRIPE_WEBHOOK_SECRET the body is trusted as-is, which is
        only acceptable against Stripe's test mode.
        """
        if not self._webhook_secret:
            logger.warning("Stripe: STRIPE_WEBHOOK_SECRET unset, webhook not verified")
            try:
                return json.loads(payload)
            except json.JSONDecodeError:
                return None

        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except SignatureVerificationError as e:
            logger.warning(f"Stripe: bad webhook signature - {e}")
            return None
        except ValueError as e:
            logger.error(f"Stripe: unreadable webhook payload - {e}")
            return None

        logger.debug(f"Stripe: webhook {event['type']} verified")
        return event

    async def health_check(self) -> bool:
        """A cheap authenticated call; False on any Stripe error."""
        try:
            stripe.Account.retrieve()
        except StripeError as e:
            logger.error(f"Stripe: health check failed - {e}")
            return False
        return True
